from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from models.asset_models import ASSIGNMENT_ASSIGNED, ASSIGNMENT_RETURNED, AssetRequest, AssignedAsset


LOGGER = logging.getLogger("asset_verse.assignments")


def create_from_request(
    db: Session,
    request: AssetRequest,
    holder_email: str,
    holder_name: str | None,
    hr_email: str,
    assigned_at: datetime,
) -> AssignedAsset:
    assignment = AssignedAsset(
        AssetID=request.AssetID,
        RequestID=request.RequestID,
        AssetName=request.AssetName,
        AssetImage=request.AssetImage or "",
        AssetType=request.AssetType,
        AssetQuantity=int(request.AssetQuantity or 1),
        EmployeeEmail=holder_email,
        EmployeeName=holder_name,
        HREmail=hr_email,
        CompanyName=request.CompanyName,
        CompanyLogo=request.CompanyLogo or "",
        RequestDate=request.CreatedAt,
        ApprovalDate=assigned_at,
        AssignmentDate=assigned_at,
        ReturnDate=None,
        Status=ASSIGNMENT_ASSIGNED,
    )
    db.add(assignment)
    db.flush()
    LOGGER.info(
        "Assignment created assignment_id=%s request_id=%s holder=%s quantity=%s",
        assignment.AssignmentID,
        request.RequestID,
        holder_email,
        assignment.AssetQuantity,
    )
    return assignment


def mark_returned(db: Session, assignment_id: int, returned_at: datetime) -> bool:
    """Flip an assignment from assigned to returned; False if it was not assigned."""
    stmt = (
        update(AssignedAsset)
        .where(AssignedAsset.AssignmentID == assignment_id, AssignedAsset.Status == ASSIGNMENT_ASSIGNED)
        .values(Status=ASSIGNMENT_RETURNED, ReturnDate=returned_at)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1


def find_open_for_request(db: Session, request_id: int) -> AssignedAsset | None:
    return db.execute(
        select(AssignedAsset)
        .where(AssignedAsset.RequestID == request_id, AssignedAsset.Status == ASSIGNMENT_ASSIGNED)
        .order_by(AssignedAsset.AssignmentID.desc())
    ).scalars().first()


def serialize_assignment(assignment: AssignedAsset) -> dict:
    return {
        "assignmentID": assignment.AssignmentID,
        "assetID": assignment.AssetID,
        "requestID": assignment.RequestID,
        "assetName": assignment.AssetName,
        "assetImage": assignment.AssetImage,
        "assetType": assignment.AssetType,
        "assetQuantity": assignment.AssetQuantity,
        "employeeEmail": assignment.EmployeeEmail,
        "employeeName": assignment.EmployeeName,
        "hrEmail": assignment.HREmail,
        "companyName": assignment.CompanyName,
        "companyLogo": assignment.CompanyLogo,
        "requestDate": assignment.RequestDate,
        "approvalDate": assignment.ApprovalDate,
        "assignmentDate": assignment.AssignmentDate,
        "returnDate": assignment.ReturnDate,
        "status": assignment.Status,
    }
