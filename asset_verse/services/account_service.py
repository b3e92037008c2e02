from __future__ import annotations

import logging
import os
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.upsert import insert_if_absent
from models.asset_models import ROLE_HR, ROLE_USER, User
from schemas.accounts import RegisterHrRequest, RegisterUserRequest


LOGGER = logging.getLogger("asset_verse.accounts")

DEFAULT_HR_SUBSCRIPTION = "free"
DEFAULT_HR_PACKAGE_LIMIT = 5


def _default_hr_package_limit() -> int:
    raw = (os.environ.get("DEFAULT_HR_PACKAGE_LIMIT") or "").strip()
    try:
        value = int(raw) if raw else DEFAULT_HR_PACKAGE_LIMIT
    except ValueError:
        return DEFAULT_HR_PACKAGE_LIMIT
    return max(value, 0)


def get_user(db: Session, email: str) -> User | None:
    return db.execute(select(User).where(User.Email == email)).scalars().first()


def is_hr(db: Session, email: str | None) -> bool:
    if not email:
        return False
    user = get_user(db, email)
    return bool(user and user.Role == ROLE_HR)


def _register(db: Session, values: dict) -> tuple[User, bool]:
    now = datetime.now()
    try:
        created = insert_if_absent(db, User.__table__, {**values, "CreatedAt": now, "UpdatedAt": now})
        db.commit()
    except Exception:
        db.rollback()
        raise
    return get_user(db, values["Email"]), created


def register_user(db: Session, payload: RegisterUserRequest) -> tuple[User, bool]:
    user, created = _register(
        db,
        {
            "Email": payload.email.strip(),
            "DisplayName": payload.displayName,
            "PhotoURL": payload.photoURL or "",
            "Role": ROLE_USER,
            "PackageLimit": 0,
        },
    )
    if created:
        LOGGER.info("User registered email=%s", user.Email)
    return user, created


def register_hr(db: Session, payload: RegisterHrRequest) -> tuple[User, bool]:
    user, created = _register(
        db,
        {
            "Email": payload.email.strip(),
            "DisplayName": payload.displayName or "HR",
            "PhotoURL": payload.photoURL or "",
            "Role": ROLE_HR,
            "Subscription": DEFAULT_HR_SUBSCRIPTION,
            "PackageLimit": _default_hr_package_limit(),
            "CompanyName": payload.companyName,
            "CompanyLogo": payload.companyLogo or "",
        },
    )
    if created:
        LOGGER.info("HR account registered email=%s package_limit=%s", user.Email, user.PackageLimit)
    return user, created


def serialize_user(user: User) -> dict:
    return {
        "userID": user.UserID,
        "email": user.Email,
        "displayName": user.DisplayName,
        "photoURL": user.PhotoURL,
        "role": user.Role,
        "subscription": user.Subscription,
        "packageLimit": user.PackageLimit,
        "companyName": user.CompanyName,
        "companyLogo": user.CompanyLogo,
        "createdAt": user.CreatedAt,
    }
