import logging
import os

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

load_dotenv()

from db.deps import get_asset_db
from schemas.accounts import CheckoutRequest, RegisterHrRequest, RegisterUserRequest
from schemas.assets import AssetCreate, AssetUpdate
from schemas.requests import (
    AssignRequestDto,
    CreateAssetRequestDto,
    DecisionRequest,
    RemoveEmployeeRequest,
    StatusChangeRequest,
)
from services import affiliation_registry, credit_ledger, payment_reconciliation, request_lifecycle
from services.account_service import is_hr, register_hr, register_user, serialize_user
from services.asset_service import create_asset, delete_asset, serialize_asset, update_asset
from services.errors import AssetVerseError, InventoryInvariantError
from services.identity_service import principal_from_authorization
from services.payment_gateway import PaymentGatewayError, StripeCheckoutGateway


app = FastAPI(title="AssetVerse")

AUTH_LOGGER = logging.getLogger("asset_verse.auth")
ERROR_LOGGER = logging.getLogger("asset_verse.errors")


def _parse_csv_env(name: str, default: str) -> list[str]:
    raw = os.environ.get(name, default)
    return [item.strip() for item in str(raw).split(",") if item.strip()]


_CORS_ALLOW_ORIGINS = _parse_csv_env(
    "CORS_ALLOW_ORIGINS",
    "http://localhost:5173,http://127.0.0.1:5173",
)
_CORS_ALLOW_CREDENTIALS = str(os.environ.get("CORS_ALLOW_CREDENTIALS", "true")).strip().lower() in {"1", "true", "yes", "on"}
if "*" in _CORS_ALLOW_ORIGINS:
    # Browsers reject wildcard origins with credentials.
    _CORS_ALLOW_CREDENTIALS = False

app.add_middleware(
    CORSMiddleware,
    allow_origins=_CORS_ALLOW_ORIGINS,
    allow_credentials=_CORS_ALLOW_CREDENTIALS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AssetVerseError)
async def handle_asset_verse_error(request: Request, exc: AssetVerseError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(InventoryInvariantError)
async def handle_inventory_invariant_error(request: Request, exc: InventoryInvariantError):
    ERROR_LOGGER.error("Inventory invariant violation path=%s detail=%s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"detail": "Inventory ledger rejected the change.", "code": "InventoryInvariant"})


def get_payment_gateway():
    try:
        return StripeCheckoutGateway.from_env()
    except PaymentGatewayError as exc:
        raise HTTPException(status_code=503, detail=f"Payment gateway unavailable: {exc}") from exc


def require_principal(authorization: str | None = Header(None)) -> str:
    email = principal_from_authorization(authorization)
    if not email:
        AUTH_LOGGER.warning("Rejected request without a valid bearer token")
        raise HTTPException(status_code=401, detail="unauthorized access")
    return email


def require_hr(principal: str = Depends(require_principal), db: Session = Depends(get_asset_db)) -> str:
    if not is_hr(db, principal):
        AUTH_LOGGER.warning("HR route refused principal=%s", principal)
        raise HTTPException(status_code=403, detail="forbidden access")
    return principal


@app.get("/healthz")
def healthcheck():
    return {"status": "ok"}


@app.get("/api/healthz")
def healthcheck_api(db: Session = Depends(get_asset_db)):
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:
        raise HTTPException(status_code=503, detail=f"db_unavailable: {exc}") from exc


@app.post("/api/users")
def create_user(payload: RegisterUserRequest, db: Session = Depends(get_asset_db)):
    user, created = register_user(db, payload)
    if not created:
        return {"message": "user exists", "user": serialize_user(user)}
    return {"message": "user created", "user": serialize_user(user)}


@app.post("/api/users/hr")
def create_hr_user(payload: RegisterHrRequest, db: Session = Depends(get_asset_db)):
    user, created = register_hr(db, payload)
    if not created:
        return {"message": "user exists", "user": serialize_user(user)}
    return {"message": "user created", "user": serialize_user(user)}


@app.get("/api/hr/credit")
def get_hr_credit(hr_email: str = Depends(require_hr), db: Session = Depends(get_asset_db)):
    return credit_ledger.get_balance(db, hr_email)


@app.post("/api/assets")
def create_asset_route(payload: AssetCreate, hr_email: str = Depends(require_hr), db: Session = Depends(get_asset_db)):
    return serialize_asset(create_asset(db, hr_email, payload))


@app.patch("/api/assets/{asset_id}")
def update_asset_route(
    asset_id: int,
    payload: AssetUpdate,
    hr_email: str = Depends(require_hr),
    db: Session = Depends(get_asset_db),
):
    return serialize_asset(update_asset(db, asset_id, hr_email, payload))


@app.delete("/api/assets/{asset_id}")
def delete_asset_route(asset_id: int, hr_email: str = Depends(require_hr), db: Session = Depends(get_asset_db)):
    delete_asset(db, asset_id, hr_email)
    return {"message": "Deleted"}


@app.post("/api/requests")
def create_request_route(
    payload: CreateAssetRequestDto,
    principal: str = Depends(require_principal),
    db: Session = Depends(get_asset_db),
):
    request = request_lifecycle.create_request(db, principal, payload)
    return request_lifecycle.serialize_request(request)


@app.delete("/api/requests/{request_id}")
def withdraw_request_route(request_id: int, principal: str = Depends(require_principal), db: Session = Depends(get_asset_db)):
    request_lifecycle.withdraw_request(db, request_id, principal)
    return {"message": "Request withdrawn"}


@app.patch("/api/requests/{request_id}/decision")
def decide_request_route(
    request_id: int,
    payload: DecisionRequest,
    hr_email: str = Depends(require_hr),
    db: Session = Depends(get_asset_db),
):
    result = request_lifecycle.decide_request(db, request_id, hr_email, payload.decision)
    return result.to_dict()


@app.patch("/api/requests/{request_id}/assign")
def assign_request_route(
    request_id: int,
    payload: AssignRequestDto,
    hr_email: str = Depends(require_hr),
    db: Session = Depends(get_asset_db),
):
    result = request_lifecycle.assign_request(db, request_id, hr_email, payload.employeeEmail, payload.employeeName)
    return result.to_dict()


@app.patch("/api/requests/{request_id}/status")
def set_request_status_route(
    request_id: int,
    payload: StatusChangeRequest,
    hr_email: str = Depends(require_hr),
    db: Session = Depends(get_asset_db),
):
    result = request_lifecycle.set_request_status(db, request_id, hr_email, payload.requestStatus)
    return result.to_dict()


@app.patch("/api/assigned-assets/{assignment_id}/return")
def return_assignment_route(
    assignment_id: int,
    principal: str = Depends(require_principal),
    db: Session = Depends(get_asset_db),
):
    result = request_lifecycle.return_assignment(db, assignment_id, principal)
    return result.to_dict()


@app.get("/api/hr/employees")
def get_team(hr_email: str = Depends(require_hr), db: Session = Depends(get_asset_db)):
    return affiliation_registry.team_roster(db, hr_email)


@app.patch("/api/hr/employees/remove")
def remove_team_member(
    payload: RemoveEmployeeRequest,
    hr_email: str = Depends(require_hr),
    db: Session = Depends(get_asset_db),
):
    try:
        removed = affiliation_registry.deactivate(db, payload.employeeEmail.strip(), hr_email, hr_email)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return {"ok": True, "removed": removed}


@app.get("/api/packages")
def get_packages(db: Session = Depends(get_asset_db)):
    return payment_reconciliation.list_packages(db)


@app.post("/api/payments/checkout-session")
def create_checkout_session(
    payload: CheckoutRequest,
    hr_email: str = Depends(require_hr),
    db: Session = Depends(get_asset_db),
    gateway=Depends(get_payment_gateway),
):
    try:
        url = payment_reconciliation.start_checkout(db, gateway, payload.packageId, hr_email)
    except PaymentGatewayError as exc:
        raise HTTPException(status_code=503, detail=f"Payment gateway unavailable: {exc}") from exc
    return {"url": url}


@app.patch("/api/payments/reconcile")
def reconcile_payment(
    session_id: str = Query(..., alias="session_id"),
    db: Session = Depends(get_asset_db),
    gateway=Depends(get_payment_gateway),
):
    try:
        result = payment_reconciliation.reconcile(db, gateway, session_id)
    except PaymentGatewayError as exc:
        raise HTTPException(status_code=503, detail=f"Payment gateway unavailable: {exc}") from exc
    return result.to_dict()
