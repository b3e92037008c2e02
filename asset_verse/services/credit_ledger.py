from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from models.asset_models import ROLE_HR, User
from services.errors import InsufficientCreditError, InvalidInputError, NotFoundError


LOGGER = logging.getLogger("asset_verse.credit")


def try_debit(db: Session, hr_email: str, amount: int = 1) -> None:
    if amount < 1:
        raise InvalidInputError("Debit amount must be at least 1")
    stmt = (
        update(User)
        .where(User.Email == hr_email, User.Role == ROLE_HR, User.PackageLimit >= amount)
        .values(PackageLimit=User.PackageLimit - amount, UpdatedAt=datetime.now())
        .execution_options(synchronize_session=False)
    )
    if db.execute(stmt).rowcount != 1:
        LOGGER.warning("Credit debit refused hr=%s amount=%s", hr_email, amount)
        raise InsufficientCreditError()
    LOGGER.info("Credit debited hr=%s amount=%s", hr_email, amount)


def credit(db: Session, hr_email: str, amount: int, subscription: str | None = None) -> None:
    if amount < 0:
        raise InvalidInputError("Credit amount cannot be negative")
    values = {"PackageLimit": User.PackageLimit + amount, "UpdatedAt": datetime.now()}
    if subscription:
        values["Subscription"] = subscription
    stmt = (
        update(User)
        .where(User.Email == hr_email, User.Role == ROLE_HR)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if db.execute(stmt).rowcount != 1:
        raise NotFoundError("HR account not found")
    LOGGER.info("Credit added hr=%s amount=%s subscription=%s", hr_email, amount, subscription)


def get_balance(db: Session, hr_email: str) -> dict:
    row = db.execute(
        select(User.PackageLimit, User.Subscription).where(User.Email == hr_email, User.Role == ROLE_HR)
    ).first()
    if row is None:
        raise NotFoundError("HR account not found")
    return {"hrEmail": hr_email, "packageLimit": int(row[0] or 0), "subscription": row[1]}
