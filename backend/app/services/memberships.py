from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.exceptions import ResourceNotFoundError
from app.models.teacher import Teacher, TeacherMembership
from app.services.cell_validation import MembershipLookup


def find_teacher(db: Session, teacher_id: int) -> Teacher:
    teacher = db.get(Teacher, teacher_id)
    if teacher is None:
        raise ResourceNotFoundError("Teacher", teacher_id)
    return teacher


def find_teacher_membership(db: Session, teacher_id: int, organisation_id: str) -> TeacherMembership | None:
    statement = select(TeacherMembership).where(
        TeacherMembership.teacher_id == teacher_id,
        TeacherMembership.organisation_id == organisation_id,
    )
    return db.execute(statement).scalar_one_or_none()


def find_active_membership(db: Session, teacher_id: int, organisation_id: str) -> TeacherMembership | None:
    membership = find_teacher_membership(db, teacher_id, organisation_id)
    if membership is None or not membership.is_active or not membership.teacher.is_active:
        return None
    return membership


def membership_lookup(db: Session) -> MembershipLookup:
    cache: dict[tuple[int, str], TeacherMembership | None] = {}

    def lookup(teacher_id: int, organisation_id: str) -> TeacherMembership | None:
        key = (teacher_id, organisation_id)
        if key not in cache:
            cache[key] = find_active_membership(db, teacher_id, organisation_id)
        return cache[key]

    return lookup


def list_organisation_memberships(db: Session, organisation_id: str) -> list[TeacherMembership]:
    statement = (
        select(TeacherMembership)
        .where(TeacherMembership.organisation_id == organisation_id)
        .order_by(TeacherMembership.teacher_id)
    )
    return list(db.execute(statement).scalars())
