from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from models.asset_models import Asset
from services.errors import InsufficientStockError, InvalidInputError, InventoryInvariantError, NotFoundError


LOGGER = logging.getLogger("asset_verse.inventory")


def _conditional_update(db: Session, asset_id: int, *conditions, **values) -> bool:
    stmt = (
        update(Asset)
        .where(Asset.AssetID == asset_id, *conditions)
        .values(UpdatedDate=datetime.now(), **values)
        .execution_options(synchronize_session=False)
    )
    return db.execute(stmt).rowcount == 1


def _require_asset_exists(db: Session, asset_id: int) -> None:
    exists = db.execute(select(Asset.AssetID).where(Asset.AssetID == asset_id)).scalar()
    if exists is None:
        raise NotFoundError("Asset not found")


def try_debit(db: Session, asset_id: int, quantity: int) -> None:
    """Take ``quantity`` units out of stock in one compare-and-decrement."""
    if quantity < 1:
        raise InvalidInputError("Quantity must be at least 1")
    debited = _conditional_update(
        db,
        asset_id,
        Asset.AvailableQuantity >= quantity,
        AvailableQuantity=Asset.AvailableQuantity - quantity,
    )
    if not debited:
        _require_asset_exists(db, asset_id)
        LOGGER.warning("Stock debit refused asset_id=%s quantity=%s", asset_id, quantity)
        raise InsufficientStockError()
    LOGGER.info("Stock debited asset_id=%s quantity=%s", asset_id, quantity)


def adjust_available(db: Session, asset_id: int, delta: int) -> None:
    """Apply a signed delta to availableQuantity.

    The result must stay within [0, ProductQuantity]. Leaving that range means a
    caller skipped its own precondition, so the value is never clamped.
    """
    if delta == 0:
        return
    applied = _conditional_update(
        db,
        asset_id,
        Asset.AvailableQuantity + delta >= 0,
        Asset.AvailableQuantity + delta <= Asset.ProductQuantity,
        AvailableQuantity=Asset.AvailableQuantity + delta,
    )
    if not applied:
        _require_asset_exists(db, asset_id)
        LOGGER.error("Inventory invariant violated asset_id=%s delta=%s", asset_id, delta)
        raise InventoryInvariantError(f"Adjusting asset {asset_id} by {delta} leaves available quantity out of range")
    LOGGER.info("Stock adjusted asset_id=%s delta=%s", asset_id, delta)


def set_total(db: Session, asset_id: int, new_total: int) -> None:
    # Both columns move by the same delta so units already checked out stay checked out.
    if new_total < 0:
        raise InvalidInputError("Quantity cannot be negative")
    delta = new_total - Asset.ProductQuantity
    applied = _conditional_update(
        db,
        asset_id,
        Asset.AvailableQuantity + delta >= 0,
        ProductQuantity=new_total,
        AvailableQuantity=Asset.AvailableQuantity + delta,
    )
    if not applied:
        _require_asset_exists(db, asset_id)
        LOGGER.warning("Quantity edit refused asset_id=%s new_total=%s", asset_id, new_total)
        raise InvalidInputError("Quantity cannot be lower than the units currently assigned")
    LOGGER.info("Asset total set asset_id=%s new_total=%s", asset_id, new_total)


def get_stock(db: Session, asset_id: int) -> tuple[int, int]:
    row = db.execute(
        select(Asset.ProductQuantity, Asset.AvailableQuantity).where(Asset.AssetID == asset_id)
    ).first()
    if row is None:
        raise NotFoundError("Asset not found")
    return int(row[0]), int(row[1])
