from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.upsert import insert_if_absent
from models.asset_models import Package, Payment
from services import credit_ledger
from services.audit_service import log_audit
from services.errors import InvalidInputError, NotFoundError, PaymentNotCompletedError


LOGGER = logging.getLogger("asset_verse.payments")

PAID_STATUS = "paid"


@dataclass
class ReconcileResult:
    payment: Payment
    already_recorded: bool

    def to_dict(self) -> dict:
        payload = {
            "success": True,
            "transactionId": self.payment.TransactionID,
            "alreadyRecorded": self.already_recorded,
            "payment": serialize_payment(self.payment),
        }
        if self.already_recorded:
            payload["message"] = "Payment already recorded"
        return payload


def find_payment(db: Session, transaction_id: str) -> Payment | None:
    return db.execute(
        select(Payment).where(Payment.TransactionID == transaction_id)
    ).scalars().first()


def _employee_limit(raw: str | None) -> int:
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        raise InvalidInputError("Checkout session carries no employeeLimit.") from None
    if value < 0:
        raise InvalidInputError("employeeLimit cannot be negative.")
    return value


def reconcile(db: Session, gateway, session_id: str) -> ReconcileResult:
    """Turn a paid checkout session into exactly one credit and one receipt."""
    session_id = (session_id or "").strip()
    if not session_id:
        raise InvalidInputError("session_id is required.")

    session = gateway.retrieve_session(session_id)
    if session.payment_status != PAID_STATUS:
        LOGGER.warning("Reconcile refused session=%s payment_status=%s", session_id, session.payment_status)
        raise PaymentNotCompletedError()

    transaction_id = (session.payment_intent or "").strip()
    hr_email = (session.customer_email or "").strip()
    if not transaction_id or not hr_email:
        raise InvalidInputError("Checkout session is missing payment intent or customer email.")
    package_name = (session.metadata.get("packageName") or "").strip()
    employee_limit = _employee_limit(session.metadata.get("employeeLimit"))

    existing = find_payment(db, transaction_id)
    if existing is not None:
        LOGGER.info("Reconcile replay transaction=%s", transaction_id)
        return ReconcileResult(payment=existing, already_recorded=True)

    try:
        inserted = insert_if_absent(
            db,
            Payment.__table__,
            {
                "HREmail": hr_email,
                "PackageName": package_name,
                "EmployeeLimit": employee_limit,
                "Amount": Decimal(int(session.amount_total or 0)) / Decimal(100),
                "TransactionID": transaction_id,
                "PaymentDate": datetime.now(),
                "Status": "completed",
            },
        )
        if inserted:
            credit_ledger.credit(db, hr_email, employee_limit, subscription=package_name.lower() or None)
            payment = find_payment(db, transaction_id)
            log_audit(db, "Payment", payment.PaymentID, "Reconcile", f"transaction={transaction_id} limit={employee_limit}", hr_email)
        db.commit()
    except Exception:
        db.rollback()
        raise

    if not inserted:
        # A concurrent reconciliation committed the same transaction first.
        LOGGER.info("Reconcile lost race transaction=%s", transaction_id)
        return ReconcileResult(payment=find_payment(db, transaction_id), already_recorded=True)

    LOGGER.info("Payment reconciled transaction=%s hr=%s limit=%s", transaction_id, hr_email, employee_limit)
    return ReconcileResult(payment=payment, already_recorded=False)


def start_checkout(db: Session, gateway, package_id: int, hr_email: str) -> str:
    package = db.get(Package, package_id)
    if package is None:
        raise NotFoundError("Package not found")
    session = gateway.create_checkout_session(
        amount_cents=int(Decimal(package.Price) * 100),
        product_name=f"AssetVerse Package: {package.Name}",
        customer_email=hr_email,
        metadata={
            "packageId": str(package.PackageID),
            "packageName": package.Name,
            "employeeLimit": str(package.EmployeeLimit),
        },
    )
    LOGGER.info("Checkout started hr=%s package=%s session=%s", hr_email, package.Name, session.session_id)
    return session.url or ""


def list_packages(db: Session) -> list[dict]:
    packages = db.execute(select(Package).order_by(Package.EmployeeLimit)).scalars().all()
    return [
        {
            "packageID": package.PackageID,
            "name": package.Name,
            "employeeLimit": package.EmployeeLimit,
            "price": float(package.Price),
            "features": [item for item in (package.Features or "").split("\n") if item],
        }
        for package in packages
    ]


def serialize_payment(payment: Payment) -> dict:
    return {
        "paymentID": payment.PaymentID,
        "hrEmail": payment.HREmail,
        "packageName": payment.PackageName,
        "employeeLimit": payment.EmployeeLimit,
        "amount": float(payment.Amount) if payment.Amount is not None else None,
        "transactionId": payment.TransactionID,
        "paymentDate": payment.PaymentDate,
        "status": payment.Status,
    }
