from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError
from app.models.teacher import Teacher
from app.schemas.teacher import TeacherCreate, TeacherUpdate
from app.services.audit import log_activity
from app.services.memberships import find_teacher

logger = logging.getLogger(__name__)


def _ensure_email_available(db: Session, email: str, teacher_id: int | None = None) -> None:
    statement = select(Teacher).where(Teacher.email == email)
    if teacher_id is not None:
        statement = statement.where(Teacher.id != teacher_id)
    if db.execute(statement).scalar_one_or_none() is not None:
        raise ConflictError("Email already registered", details={"field": "email", "email": email})


def create_teacher(db: Session, payload: TeacherCreate) -> Teacher:
    if db.get(Teacher, payload.id) is not None:
        raise ConflictError("Teacher with this ID already exists", details={"field": "id", "id": payload.id})
    _ensure_email_available(db, payload.email)
    teacher = Teacher(
        id=payload.id,
        name=payload.name,
        email=payload.email,
        global_permissions=payload.global_permissions.model_dump(),
        is_active=payload.is_active,
    )
    db.add(teacher)
    log_activity(db, actor=None, action="teacher.create", entity_type="teacher", entity_id=payload.id)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("Teacher with this ID or email already exists", details={"id": payload.id}) from exc
    db.refresh(teacher)
    logger.info("Created teacher %s", teacher.id)
    return teacher


def update_teacher(db: Session, teacher_id: int, payload: TeacherUpdate, actor: Teacher) -> Teacher:
    teacher = find_teacher(db, teacher_id)
    data = payload.model_dump(exclude_unset=True)
    changes = {key: value for key, value in data.items() if value is not None}
    if "email" in changes:
        _ensure_email_available(db, changes["email"], teacher_id)
        teacher.email = changes["email"]
    if "name" in changes:
        teacher.name = changes["name"].strip()
    if "global_permissions" in changes:
        teacher.global_permissions = dict(changes["global_permissions"])
    if "is_active" in changes:
        teacher.is_active = changes["is_active"]
    log_activity(
        db,
        actor=actor,
        action="teacher.update",
        entity_type="teacher",
        entity_id=teacher_id,
        details={"fields": sorted(changes)},
    )
    db.commit()
    db.refresh(teacher)
    return teacher


def delete_teacher(db: Session, teacher_id: int, actor: Teacher) -> None:
    teacher = find_teacher(db, teacher_id)
    if teacher.memberships:
        raise ConflictError(
            "Teacher still holds organisation memberships",
            details={
                "teacher_id": teacher_id,
                "organisations": sorted(membership.organisation_id for membership in teacher.memberships),
            },
        )
    db.delete(teacher)
    log_activity(db, actor=actor, action="teacher.delete", entity_type="teacher", entity_id=teacher_id)
    db.commit()
    logger.info("Deleted teacher %s", teacher_id)
