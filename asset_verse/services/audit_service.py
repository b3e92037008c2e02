from __future__ import annotations

from datetime import datetime

from sqlalchemy.orm import Session

from models.asset_models import AuditLog


def log_audit(
    db: Session,
    entity_type: str,
    entity_id: int,
    action: str,
    details: str | None = None,
    actor_email: str | None = None,
) -> None:
    # Caller owns the transaction; the row commits or rolls back with the change it describes.
    db.add(
        AuditLog(
            EntityType=entity_type,
            EntityID=entity_id,
            Action=action,
            Details=details,
            ActorEmail=actor_email,
            CreatedAt=datetime.now(),
        )
    )
