from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from db.upsert import insert_if_absent
from models.asset_models import AFFILIATION_ACTIVE, AFFILIATION_INACTIVE, AssignedAsset, EmployeeAffiliation, User


LOGGER = logging.getLogger("asset_verse.affiliations")


def get_active(db: Session, employee_email: str, hr_email: str) -> EmployeeAffiliation | None:
    return db.execute(
        select(EmployeeAffiliation)
        .where(EmployeeAffiliation.EmployeeEmail == employee_email)
        .where(EmployeeAffiliation.HREmail == hr_email)
        .where(EmployeeAffiliation.Status == AFFILIATION_ACTIVE)
        .execution_options(populate_existing=True)
    ).scalars().first()


def ensure_active(db: Session, employee_email: str, hr_email: str, metadata: dict | None = None) -> EmployeeAffiliation:
    """Return the active affiliation for the pair, creating it on first use.

    Display metadata is captured only when the row is created.
    """
    existing = get_active(db, employee_email, hr_email)
    if existing is not None:
        return existing

    metadata = metadata or {}
    created = insert_if_absent(
        db,
        EmployeeAffiliation.__table__,
        {
            "EmployeeEmail": employee_email,
            "EmployeeName": metadata.get("employeeName") or "N/A",
            "EmployeePhoto": metadata.get("employeePhoto") or "",
            "HREmail": hr_email,
            "CompanyName": metadata.get("companyName"),
            "CompanyLogo": metadata.get("companyLogo") or "",
            "AffiliationDate": datetime.now(),
            "Status": AFFILIATION_ACTIVE,
        },
    )
    if created:
        LOGGER.info("Affiliation created employee=%s hr=%s", employee_email, hr_email)
    return get_active(db, employee_email, hr_email)


def deactivate(db: Session, employee_email: str, hr_email: str, remover_email: str) -> bool:
    stmt = (
        update(EmployeeAffiliation)
        .where(EmployeeAffiliation.EmployeeEmail == employee_email)
        .where(EmployeeAffiliation.HREmail == hr_email)
        .where(EmployeeAffiliation.Status == AFFILIATION_ACTIVE)
        .values(Status=AFFILIATION_INACTIVE, RemovedAt=datetime.now(), RemovedBy=remover_email)
        .execution_options(synchronize_session=False)
    )
    removed = db.execute(stmt).rowcount > 0
    if removed:
        LOGGER.info("Affiliation deactivated employee=%s hr=%s by=%s", employee_email, hr_email, remover_email)
    return removed


def serialize_affiliation(affiliation: EmployeeAffiliation) -> dict:
    return {
        "affiliationID": affiliation.AffiliationID,
        "employeeEmail": affiliation.EmployeeEmail,
        "employeeName": affiliation.EmployeeName,
        "employeePhoto": affiliation.EmployeePhoto,
        "hrEmail": affiliation.HREmail,
        "companyName": affiliation.CompanyName,
        "companyLogo": affiliation.CompanyLogo,
        "affiliationDate": affiliation.AffiliationDate,
        "status": affiliation.Status,
        "removedAt": affiliation.RemovedAt,
        "removedBy": affiliation.RemovedBy,
    }


def team_roster(db: Session, hr_email: str) -> list[dict]:
    affiliations = db.execute(
        select(EmployeeAffiliation)
        .where(EmployeeAffiliation.HREmail == hr_email)
        .where(EmployeeAffiliation.Status == AFFILIATION_ACTIVE)
        .order_by(EmployeeAffiliation.AffiliationDate.desc())
    ).scalars().all()
    emails = [item.EmployeeEmail for item in affiliations]
    if not emails:
        return []

    counts = dict(
        db.execute(
            select(AssignedAsset.EmployeeEmail, func.count(AssignedAsset.AssignmentID))
            .where(AssignedAsset.HREmail == hr_email)
            .where(AssignedAsset.EmployeeEmail.in_(emails))
            .group_by(AssignedAsset.EmployeeEmail)
        ).all()
    )
    users = {
        user.Email: user
        for user in db.execute(select(User).where(User.Email.in_(emails))).scalars().all()
    }

    roster = []
    for affiliation in affiliations:
        user = users.get(affiliation.EmployeeEmail)
        payload = serialize_affiliation(affiliation)
        payload["assetsCount"] = int(counts.get(affiliation.EmployeeEmail, 0))
        payload["employeePhoto"] = affiliation.EmployeePhoto or (user.PhotoURL if user else "") or ""
        payload["employeeName"] = affiliation.EmployeeName or (user.DisplayName if user else None) or "N/A"
        payload["joinDate"] = affiliation.AffiliationDate or (user.CreatedAt if user else None)
        roster.append(payload)
    return roster
