from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from models.asset_models import (
    ASSIGNMENT_ASSIGNED,
    REQUEST_OPEN_STATUSES,
    Asset,
    AssetRequest,
    AssignedAsset,
)
from schemas.assets import AssetCreate, AssetUpdate
from services import inventory_ledger
from services.audit_service import log_audit
from services.errors import ForbiddenError, InvalidStateError, NotFoundError


LOGGER = logging.getLogger("asset_verse.inventory")


def _load_owned_asset(db: Session, asset_id: int, hr_email: str) -> Asset:
    asset = db.get(Asset, asset_id)
    if asset is None:
        raise NotFoundError("Asset not found")
    if asset.HREmail != hr_email:
        raise ForbiddenError("forbidden access")
    return asset


def create_asset(db: Session, hr_email: str, payload: AssetCreate) -> Asset:
    quantity = int(payload.productQuantity or 0)
    asset = Asset(
        ProductName=payload.productName,
        ProductImage=payload.productImage or "",
        ProductType=payload.productType,
        ProductQuantity=quantity,
        AvailableQuantity=quantity,
        HREmail=hr_email,
        CompanyName=payload.companyName or "",
        DateAdded=datetime.now(),
        UpdatedDate=datetime.now(),
    )
    try:
        db.add(asset)
        db.flush()
        log_audit(db, "Asset", asset.AssetID, "CreateAsset", f"qty={quantity}", hr_email)
        db.commit()
    except Exception:
        db.rollback()
        raise
    LOGGER.info("Asset created asset_id=%s hr=%s qty=%s", asset.AssetID, hr_email, quantity)
    return asset


def update_asset(db: Session, asset_id: int, hr_email: str, payload: AssetUpdate) -> Asset:
    try:
        asset = _load_owned_asset(db, asset_id, hr_email)
        changes = payload.model_dump(exclude_unset=True)
        if changes.get("productName") is not None:
            asset.ProductName = changes["productName"]
        if "productImage" in changes:
            asset.ProductImage = changes["productImage"] or ""
        if changes.get("productType") is not None:
            asset.ProductType = changes["productType"]
        asset.UpdatedDate = datetime.now()
        db.flush()
        if changes.get("productQuantity") is not None:
            inventory_ledger.set_total(db, asset_id, int(changes["productQuantity"]))
        log_audit(db, "Asset", asset_id, "UpdateAsset", ",".join(sorted(changes)) or None, hr_email)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(asset)
    return asset


def delete_asset(db: Session, asset_id: int, hr_email: str) -> None:
    try:
        asset = _load_owned_asset(db, asset_id, hr_email)
        open_requests = db.execute(
            select(func.count(AssetRequest.RequestID))
            .where(AssetRequest.AssetID == asset_id)
            .where(AssetRequest.RequestStatus.in_(REQUEST_OPEN_STATUSES))
        ).scalar() or 0
        open_assignments = db.execute(
            select(func.count(AssignedAsset.AssignmentID))
            .where(AssignedAsset.AssetID == asset_id)
            .where(AssignedAsset.Status == ASSIGNMENT_ASSIGNED)
        ).scalar() or 0
        if open_requests or open_assignments:
            raise InvalidStateError("Asset still has open requests or assignments.")
        db.delete(asset)
        log_audit(db, "Asset", asset_id, "DeleteAsset", None, hr_email)
        db.commit()
    except Exception:
        db.rollback()
        raise
    LOGGER.info("Asset deleted asset_id=%s hr=%s", asset_id, hr_email)


def serialize_asset(asset: Asset) -> dict:
    return {
        "assetID": asset.AssetID,
        "productName": asset.ProductName,
        "productImage": asset.ProductImage,
        "productType": asset.ProductType,
        "productQuantity": asset.ProductQuantity,
        "availableQuantity": asset.AvailableQuantity,
        "hrEmail": asset.HREmail,
        "companyName": asset.CompanyName,
        "dateAdded": asset.DateAdded,
        "updatedDate": asset.UpdatedDate,
    }
