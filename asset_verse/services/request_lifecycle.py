from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from models.asset_models import (
    REQUEST_APPROVED,
    REQUEST_ASSIGNED,
    REQUEST_COMPLETED,
    REQUEST_PENDING,
    REQUEST_REJECTED,
    REQUEST_RETURNED,
    REQUEST_STATUSES,
    REQUEST_TERMINAL_STATUSES,
    RETURNABLE_TYPE,
    ASSIGNMENT_ASSIGNED,
    Asset,
    AssetRequest,
    AssignedAsset,
    EmployeeAffiliation,
    User,
)
from schemas.requests import CreateAssetRequestDto
from services import affiliation_registry, assignment_tracker, credit_ledger, inventory_ledger
from services.audit_service import log_audit
from services.errors import (
    AlreadyProcessedError,
    ForbiddenError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    NotReturnableError,
)


LOGGER = logging.getLogger("asset_verse.requests")

DECISIONS = {REQUEST_APPROVED, REQUEST_REJECTED}
STATUS_TRANSITIONS = {
    REQUEST_APPROVED: {REQUEST_COMPLETED},
    REQUEST_ASSIGNED: {REQUEST_RETURNED, REQUEST_COMPLETED, REQUEST_REJECTED},
}
# Statuses a Return on the linked assignment may close.
RETURN_SOURCE_STATUSES = {REQUEST_APPROVED, REQUEST_ASSIGNED}
# Largest value a BIGINT primary key can hold.
MAX_IDENTIFIER = 2**63 - 1


@dataclass
class LifecycleResult:
    request: AssetRequest | None
    assignment: AssignedAsset | None = None
    affiliation: EmployeeAffiliation | None = None

    def to_dict(self) -> dict:
        return {
            "ok": True,
            "request": serialize_request(self.request) if self.request is not None else None,
            "assignment": assignment_tracker.serialize_assignment(self.assignment) if self.assignment is not None else None,
            "affiliation": affiliation_registry.serialize_affiliation(self.affiliation) if self.affiliation is not None else None,
        }


@contextmanager
def _transaction(db: Session):
    try:
        yield
        db.commit()
    except Exception:
        db.rollback()
        raise


def _resolve_positive_id(raw_value: int | str | None, label: str) -> int:
    raw = str(raw_value if raw_value is not None else "").strip()
    if not raw or not (raw.isascii() and raw.isdigit()):
        raise InvalidInputError(f"{label} must be a numeric identifier.")
    value = int(raw)
    if value <= 0:
        raise InvalidInputError(f"{label} must be greater than zero.")
    if value > MAX_IDENTIFIER:
        raise InvalidInputError(f"{label} is out of range.")
    return value


def _load_request_for_hr(db: Session, request_id: int, hr_email: str) -> AssetRequest:
    request = db.get(AssetRequest, request_id)
    if request is None:
        raise NotFoundError("Request not found")
    if request.HREmail != hr_email:
        raise ForbiddenError("forbidden access")
    return request


def _claim(db: Session, request_id: int, from_status: str, to_status: str, **values) -> bool:
    """Compare-and-set the request status; False means another writer got there first."""
    stmt = (
        update(AssetRequest)
        .where(AssetRequest.RequestID == request_id, AssetRequest.RequestStatus == from_status)
        .values(RequestStatus=to_status, UpdatedAt=datetime.now(), **values)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1


def _employee_metadata(db: Session, request: AssetRequest, holder_email: str, holder_name: str | None) -> dict:
    employee = db.execute(select(User).where(User.Email == holder_email)).scalars().first()
    return {
        "employeeName": holder_name or (employee.DisplayName if employee else None) or "N/A",
        "employeePhoto": (employee.PhotoURL if employee else "") or "",
        "companyName": request.CompanyName,
        "companyLogo": request.CompanyLogo or "",
    }


def create_request(db: Session, principal_email: str, payload: CreateAssetRequestDto) -> AssetRequest:
    if (payload.requesterEmail or "").strip() != principal_email:
        raise InvalidInputError("requesterEmail must match the authenticated user.")
    asset_id = _resolve_positive_id(payload.assetId, "assetId")
    quantity = int(payload.assetQTY if payload.assetQTY is not None else 1)
    if quantity < 1:
        raise InvalidInputError("assetQTY must be at least 1.")

    with _transaction(db):
        asset = db.get(Asset, asset_id)
        if asset is None:
            raise NotFoundError("Asset not found")
        hr_email = (payload.hrEmail or asset.HREmail).strip()
        if hr_email != asset.HREmail:
            raise InvalidInputError("hrEmail does not own the requested asset.")

        request = AssetRequest(
            AssetID=asset.AssetID,
            AssetName=asset.ProductName,
            AssetImage=asset.ProductImage or "",
            AssetType=asset.ProductType,
            AssetQuantity=quantity,
            EmployeeEmail=principal_email,
            EmployeeName=payload.requesterName,
            HREmail=hr_email,
            CompanyName=payload.companyName or asset.CompanyName,
            CompanyLogo=payload.companyLogo or "",
            RequestStatus=REQUEST_PENDING,
            Note=payload.note or "",
            CreatedAt=datetime.now(),
            UpdatedAt=datetime.now(),
        )
        db.add(request)
        db.flush()
        log_audit(db, "Request", request.RequestID, "CreateRequest", f"asset={asset.AssetID} qty={quantity}", principal_email)

    LOGGER.info("Request created request_id=%s employee=%s asset_id=%s qty=%s", request.RequestID, principal_email, asset_id, quantity)
    return request


def withdraw_request(db: Session, request_id: int, principal_email: str) -> None:
    with _transaction(db):
        request = db.get(AssetRequest, request_id)
        if request is None:
            raise NotFoundError("Request not found")
        if request.EmployeeEmail != principal_email:
            raise ForbiddenError("forbidden access")
        if request.RequestStatus != REQUEST_PENDING:
            raise AlreadyProcessedError("Already processed")
        deleted = db.execute(
            delete(AssetRequest)
            .where(AssetRequest.RequestID == request_id, AssetRequest.RequestStatus == REQUEST_PENDING)
            .execution_options(synchronize_session=False)
        ).rowcount
        if deleted != 1:
            raise AlreadyProcessedError("Already processed")
        log_audit(db, "Request", request_id, "WithdrawRequest", None, principal_email)
    LOGGER.info("Request withdrawn request_id=%s employee=%s", request_id, principal_email)


def _grant(
    db: Session,
    request: AssetRequest,
    hr_email: str,
    target_status: str,
    holder_email: str,
    holder_name: str | None,
    **claim_values,
) -> tuple[AssignedAsset, EmployeeAffiliation]:
    now = datetime.now()
    if not _claim(db, request.RequestID, REQUEST_PENDING, target_status, ApprovalDate=now, ProcessedBy=hr_email, **claim_values):
        raise AlreadyProcessedError("Already processed")

    credit_ledger.try_debit(db, hr_email, 1)
    if request.AssetID is None:
        raise NotFoundError("Asset not found")
    inventory_ledger.try_debit(db, request.AssetID, int(request.AssetQuantity or 1))

    assignment = assignment_tracker.create_from_request(db, request, holder_email, holder_name, hr_email, now)
    affiliation = affiliation_registry.ensure_active(
        db,
        holder_email,
        hr_email,
        _employee_metadata(db, request, holder_email, holder_name),
    )
    log_audit(
        db,
        "Request",
        request.RequestID,
        "Approve" if target_status == REQUEST_APPROVED else "Assign",
        f"assignment={assignment.AssignmentID} holder={holder_email} qty={assignment.AssetQuantity}",
        hr_email,
    )
    return assignment, affiliation


def decide_request(db: Session, request_id: int, hr_email: str, decision: str) -> LifecycleResult:
    decision = (decision or "").strip().lower()
    if decision not in DECISIONS:
        raise InvalidInputError("Invalid decision")

    assignment = None
    affiliation = None
    with _transaction(db):
        request = _load_request_for_hr(db, request_id, hr_email)
        if request.RequestStatus != REQUEST_PENDING:
            raise AlreadyProcessedError("Already processed")

        if decision == REQUEST_REJECTED:
            if not _claim(db, request_id, REQUEST_PENDING, REQUEST_REJECTED, ApprovalDate=datetime.now(), ProcessedBy=hr_email):
                raise AlreadyProcessedError("Already processed")
            log_audit(db, "Request", request_id, "Reject", None, hr_email)
        else:
            assignment, affiliation = _grant(
                db,
                request,
                hr_email,
                REQUEST_APPROVED,
                holder_email=request.EmployeeEmail,
                holder_name=request.EmployeeName,
            )

    db.refresh(request)
    LOGGER.info("Request decided request_id=%s hr=%s decision=%s", request_id, hr_email, decision)
    return LifecycleResult(request=request, assignment=assignment, affiliation=affiliation)


def assign_request(
    db: Session,
    request_id: int,
    hr_email: str,
    employee_email: str | None = None,
    employee_name: str | None = None,
) -> LifecycleResult:
    with _transaction(db):
        request = _load_request_for_hr(db, request_id, hr_email)
        if request.RequestStatus != REQUEST_PENDING:
            raise AlreadyProcessedError("Already processed")

        holder_email = (employee_email or "").strip() or request.EmployeeEmail
        if holder_email == request.EmployeeEmail:
            holder_name = employee_name or request.EmployeeName
        else:
            holder = db.execute(select(User).where(User.Email == holder_email)).scalars().first()
            holder_name = employee_name or (holder.DisplayName if holder else None)
        assignment, affiliation = _grant(
            db,
            request,
            hr_email,
            REQUEST_ASSIGNED,
            holder_email=holder_email,
            holder_name=holder_name,
            AssignedEmployeeEmail=holder_email,
            AssignedEmployeeName=holder_name,
            AssignedAt=datetime.now(),
        )

    db.refresh(request)
    LOGGER.info("Request assigned request_id=%s hr=%s holder=%s", request_id, hr_email, holder_email)
    return LifecycleResult(request=request, assignment=assignment, affiliation=affiliation)


def set_request_status(db: Session, request_id: int, hr_email: str, status: str) -> LifecycleResult:
    status = (status or "").strip().lower()
    if status not in REQUEST_STATUSES:
        raise InvalidInputError("Invalid request status")

    assignment = None
    with _transaction(db):
        request = _load_request_for_hr(db, request_id, hr_email)
        current = request.RequestStatus
        if status not in STATUS_TRANSITIONS.get(current, set()):
            if current in REQUEST_TERMINAL_STATUSES:
                raise AlreadyProcessedError("Already processed")
            raise InvalidStateError(f"Invalid status transition: {current} -> {status}")

        if not _claim(db, request_id, current, status):
            raise AlreadyProcessedError("Already processed")

        if current == REQUEST_ASSIGNED and status in {REQUEST_RETURNED, REQUEST_REJECTED}:
            assignment = assignment_tracker.find_open_for_request(db, request_id)
            if assignment is not None:
                if status == REQUEST_RETURNED and assignment.AssetType != RETURNABLE_TYPE:
                    raise NotReturnableError()
                if not assignment_tracker.mark_returned(db, assignment.AssignmentID, datetime.now()):
                    raise InvalidStateError("Assignment already returned")
                if assignment.AssetID is not None:
                    inventory_ledger.adjust_available(db, assignment.AssetID, int(assignment.AssetQuantity or 1))
        log_audit(db, "Request", request_id, "SetStatus", f"{current} -> {status}", hr_email)

    db.refresh(request)
    if assignment is not None:
        db.refresh(assignment)
    LOGGER.info("Request status changed request_id=%s hr=%s from=%s to=%s", request_id, hr_email, current, status)
    return LifecycleResult(request=request, assignment=assignment)


def return_assignment(db: Session, assignment_id: int, caller_email: str) -> LifecycleResult:
    request = None
    with _transaction(db):
        assignment = db.get(AssignedAsset, assignment_id)
        if assignment is None:
            raise NotFoundError("Not found")
        if assignment.EmployeeEmail != caller_email:
            raise ForbiddenError("forbidden access")
        if assignment.Status != ASSIGNMENT_ASSIGNED:
            raise InvalidStateError("Already returned")
        if assignment.AssetType != RETURNABLE_TYPE:
            raise NotReturnableError("not returnable")

        if not assignment_tracker.mark_returned(db, assignment_id, datetime.now()):
            raise InvalidStateError("Already returned")
        if assignment.AssetID is not None:
            inventory_ledger.adjust_available(db, assignment.AssetID, int(assignment.AssetQuantity or 1))
        if assignment.RequestID is not None:
            db.execute(
                update(AssetRequest)
                .where(
                    AssetRequest.RequestID == assignment.RequestID,
                    AssetRequest.RequestStatus.in_(RETURN_SOURCE_STATUSES),
                )
                .values(RequestStatus=REQUEST_RETURNED, UpdatedAt=datetime.now())
                .execution_options(synchronize_session=False)
            )
            request = db.get(AssetRequest, assignment.RequestID)
        log_audit(db, "Assignment", assignment_id, "Return", f"qty={assignment.AssetQuantity}", caller_email)

    db.refresh(assignment)
    if request is not None:
        db.refresh(request)
    LOGGER.info("Assignment returned assignment_id=%s employee=%s", assignment_id, caller_email)
    return LifecycleResult(request=request, assignment=assignment)


def serialize_request(request: AssetRequest) -> dict:
    return {
        "requestID": request.RequestID,
        "assetID": request.AssetID,
        "assetName": request.AssetName,
        "assetImage": request.AssetImage,
        "assetType": request.AssetType,
        "assetQTY": request.AssetQuantity,
        "employeeEmail": request.EmployeeEmail,
        "employeeName": request.EmployeeName,
        "hrEmail": request.HREmail,
        "companyName": request.CompanyName,
        "companyLogo": request.CompanyLogo,
        "requestStatus": request.RequestStatus,
        "note": request.Note,
        "createdAt": request.CreatedAt,
        "approvalDate": request.ApprovalDate,
        "processedBy": request.ProcessedBy,
        "assignedEmployeeEmail": request.AssignedEmployeeEmail,
        "assignedEmployeeName": request.AssignedEmployeeName,
        "assignedAt": request.AssignedAt,
    }
