from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.activity_log import ActivityLog
from app.models.teacher import Teacher


def log_activity(
    db: Session,
    *,
    actor: Teacher | None,
    action: str,
    organisation_id: str | None = None,
    entity_type: str | None = None,
    entity_id: str | int | None = None,
    details: dict | None = None,
) -> None:
    record = ActivityLog(
        organisation_id=organisation_id,
        teacher_id=actor.id if actor is not None else None,
        action=action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        details=details or {},
    )
    db.add(record)


def list_activity(db: Session, organisation_id: str, limit: int) -> list[ActivityLog]:
    query = (
        select(ActivityLog)
        .where(ActivityLog.organisation_id == organisation_id)
        .order_by(ActivityLog.created_at.desc())
        .limit(limit)
    )
    return list(db.execute(query).scalars())
