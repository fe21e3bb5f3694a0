"""Read-modify-write operations on the organisation aggregate.

Every mutation loads one organisation row, rebuilds the embedded classroom
documents in memory and commits once. The row's version counter turns the
UPDATE into a conditional write; a lost race surfaces as
``ConcurrentUpdateError`` and ``run_with_retry`` replays the whole operation
from a fresh read.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from app.core.config import get_settings
from app.core.exceptions import (
    ConcurrentUpdateError,
    ConflictError,
    DoubleBookingError,
    GridValidationError,
    NotAMemberError,
    PermissionDeniedError,
    ResourceNotFoundError,
    TeacherNotOnRosterError,
)
from app.models.organisation import Organisation
from app.models.teacher import Teacher, TeacherMembership
from app.schemas.classroom import ClassroomCreate, ClassroomUpdate
from app.schemas.grid import ClassroomDocument, GridCell, normalize_names
from app.schemas.organisation import OrganisationCreate, OrganisationUpdate
from app.schemas.teacher import MembershipCreate, MembershipUpdate
from app.services.audit import log_activity
from app.services.cell_validation import MembershipLookup, validate_cell, validate_classroom_assignment
from app.services.grid_address import GridShape, address_index
from app.services.memberships import (
    find_teacher,
    find_teacher_membership,
    list_organisation_memberships,
    membership_lookup,
)
from app.services.permissions import is_organisation_admin
from app.services.timetable_grid import count_filled, get_cell, heal_grid, initialize_grid, reshape_grid, set_cell

logger = logging.getLogger(__name__)

T = TypeVar("T")


def find_organisation(db: Session, organisation_id: str) -> Organisation:
    organisation = db.get(Organisation, organisation_id)
    if organisation is None:
        raise ResourceNotFoundError("Organisation", organisation_id)
    return organisation


def organisation_shape(organisation: Organisation) -> GridShape:
    return GridShape(organisation.days_count, organisation.period_count)


def load_classrooms(organisation: Organisation) -> list[ClassroomDocument]:
    return [ClassroomDocument.model_validate(item) for item in organisation.classrooms or []]


def store_classrooms(organisation: Organisation, classrooms: list[ClassroomDocument]) -> None:
    organisation.classrooms = [classroom.model_dump() for classroom in classrooms]


def _classroom_position(classrooms: list[ClassroomDocument], classroom_id: str) -> int:
    for position, classroom in enumerate(classrooms):
        if classroom.classroom_id == classroom_id:
            return position
    raise ResourceNotFoundError("Classroom", classroom_id)


def commit_organisation(db: Session, organisation: Organisation) -> None:
    organisation_id = organisation.organisation_id
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise ConcurrentUpdateError(organisation_id) from exc
    db.refresh(organisation)


def run_with_retry(db: Session, operation: Callable[[], T], attempts: int) -> T:
    attempt = 1
    while True:
        try:
            return operation()
        except ConcurrentUpdateError:
            if attempt >= attempts:
                raise
            logger.warning(
                "Concurrent organisation update detected (attempt %d/%d); retrying from a fresh read",
                attempt,
                attempts,
            )
            db.expire_all()
            attempt += 1


def _heal_classroom_grid(organisation_id: str, classroom: ClassroomDocument, expected: GridShape) -> list[GridCell]:
    logger.warning(
        "Healing grid of classroom %s in organisation %s: %d cells stored, %d expected for %dx%d",
        classroom.classroom_id,
        organisation_id,
        len(classroom.grid),
        expected.size,
        expected.days_count,
        expected.period_count,
    )
    return heal_grid(classroom.grid, GridShape(classroom.rows, classroom.columns), expected)


def _aligned_grid(organisation_id: str, classroom: ClassroomDocument, shape: GridShape) -> list[GridCell]:
    if len(classroom.grid) == shape.size:
        return classroom.grid
    return _heal_classroom_grid(organisation_id, classroom, shape)


def _enforce_roster(classroom: ClassroomDocument, teacher_ids: list[int]) -> None:
    missing = [teacher_id for teacher_id in teacher_ids if teacher_id not in classroom.assigned_teachers]
    if not missing:
        return
    if get_settings().classroom_roster_policy == "extend":
        classroom.assigned_teachers = [*classroom.assigned_teachers, *missing]
        logger.info("Extended roster of classroom %s with teachers %s", classroom.classroom_id, missing)
        return
    raise TeacherNotOnRosterError(missing, classroom.classroom_id)


def _check_double_booking(
    classrooms: list[ClassroomDocument],
    classroom_id: str,
    index: int,
    teacher_ids: list[int],
) -> None:
    for other in classrooms:
        if other.classroom_id == classroom_id or index >= len(other.grid):
            continue
        for teacher_id in teacher_ids:
            if teacher_id in other.grid[index].teachers:
                raise DoubleBookingError(teacher_id, other.classroom_id, index)


def classrooms_referencing(classrooms: list[ClassroomDocument], teacher_id: int) -> list[str]:
    return [
        classroom.classroom_id
        for classroom in classrooms
        if teacher_id in classroom.assigned_teachers or teacher_id in classroom.scheduled_teachers()
    ]


# Organisations


def create_organisation(db: Session, payload: OrganisationCreate, actor: Teacher) -> Organisation:
    settings = get_settings()
    if db.get(Organisation, payload.organisation_id) is not None:
        raise ConflictError(
            "Organisation with this ID already exists",
            details={"organisation_id": payload.organisation_id},
        )
    organisation = Organisation(
        organisation_id=payload.organisation_id,
        name=payload.name,
        admin_ref=payload.admin_ref or actor.email.lower(),
        days_count=payload.days_count or settings.default_days_count,
        period_count=payload.period_count or settings.default_period_count,
        teacher_ids=[],
        classrooms=[],
    )
    db.add(organisation)
    log_activity(
        db,
        actor=actor,
        action="organisation.create",
        organisation_id=organisation.organisation_id,
        entity_type="organisation",
        entity_id=organisation.organisation_id,
        details={"days_count": organisation.days_count, "period_count": organisation.period_count},
    )
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError(
            "Organisation with this ID already exists",
            details={"organisation_id": payload.organisation_id},
        ) from exc
    db.refresh(organisation)
    logger.info("Created organisation %s (%dx%d)", organisation.organisation_id, organisation.days_count, organisation.period_count)
    return organisation


def list_visible_organisations(db: Session, actor: Teacher) -> list[Organisation]:
    member_ids = [
        membership.organisation_id
        for membership in actor.memberships
        if membership.is_active and (membership.permissions or {}).get("view", False)
    ]
    statement = (
        select(Organisation)
        .where((Organisation.admin_ref == actor.email.lower()) | Organisation.organisation_id.in_(member_ids))
        .order_by(Organisation.organisation_id)
    )
    return list(db.execute(statement).scalars())


def _apply_shape(organisation: Organisation, new_shape: GridShape) -> None:
    old_shape = organisation_shape(organisation)
    classrooms = load_classrooms(organisation)
    for classroom in classrooms:
        if len(classroom.grid) == old_shape.size:
            classroom.grid = reshape_grid(old_shape, new_shape, classroom.grid)
        else:
            classroom.grid = _heal_classroom_grid(organisation.organisation_id, classroom, new_shape)
        classroom.rows = new_shape.days_count
        classroom.columns = new_shape.period_count
    organisation.days_count = new_shape.days_count
    organisation.period_count = new_shape.period_count
    store_classrooms(organisation, classrooms)
    logger.info(
        "Reshaped organisation %s from %dx%d to %dx%d across %d classroom(s)",
        organisation.organisation_id,
        old_shape.days_count,
        old_shape.period_count,
        new_shape.days_count,
        new_shape.period_count,
        len(classrooms),
    )


def update_organisation_shape(
    db: Session,
    organisation_id: str,
    days_count: int,
    period_count: int,
    actor: Teacher,
) -> Organisation:
    organisation = find_organisation(db, organisation_id)
    new_shape = GridShape(days_count, period_count)
    old_shape = organisation_shape(organisation)
    _apply_shape(organisation, new_shape)
    log_activity(
        db,
        actor=actor,
        action="organisation.reshape",
        organisation_id=organisation_id,
        entity_type="organisation",
        entity_id=organisation_id,
        details={
            "from": [old_shape.days_count, old_shape.period_count],
            "to": [new_shape.days_count, new_shape.period_count],
        },
    )
    commit_organisation(db, organisation)
    return organisation


def update_organisation(db: Session, organisation_id: str, payload: OrganisationUpdate, actor: Teacher) -> Organisation:
    organisation = find_organisation(db, organisation_id)
    changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}
    if "name" in changes:
        organisation.name = changes["name"].strip()
    if "admin_ref" in changes and changes["admin_ref"] != organisation.admin_ref:
        # Handing over the admin role is reserved to the current admin.
        if not is_organisation_admin(organisation, actor):
            raise PermissionDeniedError("admin")
        organisation.admin_ref = changes["admin_ref"]
    if "days_count" in changes or "period_count" in changes:
        new_shape = GridShape(
            changes.get("days_count", organisation.days_count),
            changes.get("period_count", organisation.period_count),
        )
        if new_shape != organisation_shape(organisation):
            _apply_shape(organisation, new_shape)
    log_activity(
        db,
        actor=actor,
        action="organisation.update",
        organisation_id=organisation_id,
        entity_type="organisation",
        entity_id=organisation_id,
        details=changes,
    )
    commit_organisation(db, organisation)
    return organisation


def delete_organisation(db: Session, organisation_id: str, actor: Teacher) -> None:
    organisation = find_organisation(db, organisation_id)
    db.execute(delete(TeacherMembership).where(TeacherMembership.organisation_id == organisation_id))
    db.delete(organisation)
    log_activity(
        db,
        actor=actor,
        action="organisation.delete",
        organisation_id=organisation_id,
        entity_type="organisation",
        entity_id=organisation_id,
    )
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        raise ConcurrentUpdateError(organisation_id) from exc
    logger.info("Deleted organisation %s", organisation_id)


def organisation_stats(db: Session, organisation_id: str) -> dict:
    organisation = find_organisation(db, organisation_id)
    classrooms = load_classrooms(organisation)
    memberships = list_organisation_memberships(db, organisation_id)
    shape = organisation_shape(organisation)
    return {
        "organisation_id": organisation.organisation_id,
        "name": organisation.name,
        "admin_ref": organisation.admin_ref,
        "days_count": shape.days_count,
        "period_count": shape.period_count,
        "slot_count": shape.size,
        "teacher_count": len(organisation.teacher_ids or []),
        "active_teacher_count": sum(
            1 for membership in memberships if membership.is_active and membership.teacher.is_active
        ),
        "classroom_count": len(classrooms),
        "total_subjects": len({subject for membership in memberships for subject in membership.subjects}),
        "total_classes": len({name for membership in memberships for name in membership.classes}),
        "filled_cell_count": sum(count_filled(classroom.grid) for classroom in classrooms),
    }


# Classrooms


def _aligned_classrooms(organisation: Organisation) -> list[ClassroomDocument]:
    """Classrooms as the next write would store them; drifted grids are healed in memory only."""
    shape = organisation_shape(organisation)
    classrooms = load_classrooms(organisation)
    for classroom in classrooms:
        if len(classroom.grid) != shape.size:
            classroom.grid = _aligned_grid(organisation.organisation_id, classroom, shape)
            classroom.rows = shape.days_count
            classroom.columns = shape.period_count
    return classrooms


def list_classrooms(db: Session, organisation_id: str) -> list[ClassroomDocument]:
    return _aligned_classrooms(find_organisation(db, organisation_id))


def get_classroom(db: Session, organisation_id: str, classroom_id: str) -> ClassroomDocument:
    classrooms = _aligned_classrooms(find_organisation(db, organisation_id))
    return classrooms[_classroom_position(classrooms, classroom_id)]


def create_classroom(db: Session, organisation_id: str, payload: ClassroomCreate, actor: Teacher) -> ClassroomDocument:
    organisation = find_organisation(db, organisation_id)
    classrooms = load_classrooms(organisation)
    if any(classroom.classroom_id == payload.classroom_id for classroom in classrooms):
        raise ConflictError(
            "Classroom with this ID already exists in the organisation",
            details={"classroom_id": payload.classroom_id},
        )
    shape = organisation_shape(organisation)
    classroom = ClassroomDocument(
        classroom_id=payload.classroom_id,
        classroom_name=payload.classroom_name,
        assigned_teacher=payload.assigned_teacher,
        assigned_teachers=payload.assigned_teachers,
        assigned_subjects=payload.assigned_subjects,
        rows=shape.days_count,
        columns=shape.period_count,
        grid=initialize_grid(shape),
    )
    validate_classroom_assignment(
        classroom.assigned_teachers,
        classroom.assigned_subjects,
        organisation_id,
        membership_lookup(db),
    )
    classrooms.append(classroom)
    store_classrooms(organisation, classrooms)
    log_activity(
        db,
        actor=actor,
        action="classroom.create",
        organisation_id=organisation_id,
        entity_type="classroom",
        entity_id=classroom.classroom_id,
    )
    commit_organisation(db, organisation)
    logger.info("Created classroom %s in organisation %s", classroom.classroom_id, organisation_id)
    return classroom


def update_classroom(
    db: Session,
    organisation_id: str,
    classroom_id: str,
    payload: ClassroomUpdate,
    actor: Teacher,
) -> ClassroomDocument:
    organisation = find_organisation(db, organisation_id)
    classrooms = load_classrooms(organisation)
    position = _classroom_position(classrooms, classroom_id)
    current = classrooms[position]
    shape = organisation_shape(organisation)
    fields = payload.model_fields_set
    lookup = membership_lookup(db)

    updates = current.model_dump()
    if "classroom_name" in fields and payload.classroom_name is not None:
        updates["classroom_name"] = payload.classroom_name.strip()
    if "assigned_teacher" in fields:
        updates["assigned_teacher"] = payload.assigned_teacher
    if "assigned_teachers" in fields and payload.assigned_teachers is not None:
        updates["assigned_teachers"] = payload.assigned_teachers
    if "assigned_subjects" in fields and payload.assigned_subjects is not None:
        updates["assigned_subjects"] = payload.assigned_subjects

    previous_grid = _aligned_grid(organisation_id, current, shape)
    if "grid" in fields and payload.grid is not None:
        if len(payload.grid) != shape.size:
            raise GridValidationError(
                f"Grid must contain {shape.size} cells for a {shape.days_count}x{shape.period_count} timetable",
                details={"field": "grid", "expected_size": shape.size, "actual_size": len(payload.grid)},
            )
        updates["grid"] = [cell.model_dump() for cell in payload.grid]
    else:
        updates["grid"] = [cell.model_dump() for cell in previous_grid]
    updates["rows"] = shape.days_count
    updates["columns"] = shape.period_count
    candidate = ClassroomDocument.model_validate(updates)

    if fields & {"assigned_teacher", "assigned_teachers", "assigned_subjects"}:
        validate_classroom_assignment(
            candidate.assigned_teachers,
            candidate.assigned_subjects,
            organisation_id,
            lookup,
        )
    reject_double_booking = get_settings().reject_double_booking
    changed_cells = 0
    for index, cell in enumerate(candidate.grid):
        if cell == previous_grid[index]:
            continue
        changed_cells += 1
        try:
            validate_cell(cell, organisation_id, lookup)
        except GridValidationError as exc:
            exc.details["index"] = index
            raise
        if reject_double_booking:
            _check_double_booking(classrooms, classroom_id, index, cell.teachers)
    _enforce_roster(candidate, sorted(candidate.scheduled_teachers()))

    classrooms[position] = candidate
    store_classrooms(organisation, classrooms)
    log_activity(
        db,
        actor=actor,
        action="classroom.update",
        organisation_id=organisation_id,
        entity_type="classroom",
        entity_id=classroom_id,
        details={"fields": sorted(fields), "changed_cells": changed_cells},
    )
    commit_organisation(db, organisation)
    return candidate


def delete_classroom(db: Session, organisation_id: str, classroom_id: str, actor: Teacher) -> None:
    organisation = find_organisation(db, organisation_id)
    classrooms = load_classrooms(organisation)
    position = _classroom_position(classrooms, classroom_id)
    del classrooms[position]
    store_classrooms(organisation, classrooms)
    log_activity(
        db,
        actor=actor,
        action="classroom.delete",
        organisation_id=organisation_id,
        entity_type="classroom",
        entity_id=classroom_id,
    )
    commit_organisation(db, organisation)
    logger.info("Deleted classroom %s from organisation %s", classroom_id, organisation_id)


def get_grid_cell(db: Session, organisation_id: str, classroom_id: str, day: int, period: int) -> tuple[int, GridCell]:
    organisation = find_organisation(db, organisation_id)
    classrooms = _aligned_classrooms(organisation)
    classroom = classrooms[_classroom_position(classrooms, classroom_id)]
    shape = organisation_shape(organisation)
    return address_index(day, period, shape), get_cell(classroom.grid, day, period, shape)


def set_grid_cell(
    db: Session,
    organisation_id: str,
    classroom_id: str,
    day: int,
    period: int,
    teachers: list[int],
    subjects: list[str],
    actor: Teacher,
) -> tuple[ClassroomDocument, int]:
    organisation = find_organisation(db, organisation_id)
    classrooms = load_classrooms(organisation)
    position = _classroom_position(classrooms, classroom_id)
    classroom = classrooms[position]
    # Addresses are checked against the organisation, never the classroom's own rows/columns.
    shape = organisation_shape(organisation)
    index = address_index(day, period, shape)

    cell = GridCell(teachers=teachers, subjects=subjects)
    validate_cell(cell, organisation_id, membership_lookup(db))
    _enforce_roster(classroom, cell.teachers)
    if get_settings().reject_double_booking:
        _check_double_booking(classrooms, classroom_id, index, cell.teachers)

    grid = _aligned_grid(organisation_id, classroom, shape)
    classroom.grid = set_cell(grid, day, period, shape, cell)
    classroom.rows = shape.days_count
    classroom.columns = shape.period_count
    store_classrooms(organisation, classrooms)
    log_activity(
        db,
        actor=actor,
        action="grid.set_cell",
        organisation_id=organisation_id,
        entity_type="classroom",
        entity_id=classroom_id,
        details={"day": day, "period": period, "index": index, "cell": cell.model_dump()},
    )
    commit_organisation(db, organisation)
    return classroom, index


# Memberships


def list_members(
    db: Session,
    organisation_id: str,
    *,
    subject: str | None = None,
    class_name: str | None = None,
    active: bool | None = None,
) -> list[TeacherMembership]:
    find_organisation(db, organisation_id)
    memberships = list_organisation_memberships(db, organisation_id)
    if subject is not None:
        memberships = [membership for membership in memberships if subject.strip() in membership.subjects]
    if class_name is not None:
        memberships = [membership for membership in memberships if class_name.strip() in membership.classes]
    if active is not None:
        memberships = [
            membership
            for membership in memberships
            if (membership.is_active and membership.teacher.is_active) == active
        ]
    return memberships


def get_member(db: Session, organisation_id: str, teacher_id: int) -> TeacherMembership:
    find_organisation(db, organisation_id)
    find_teacher(db, teacher_id)
    membership = find_teacher_membership(db, teacher_id, organisation_id)
    if membership is None:
        raise NotAMemberError(teacher_id, organisation_id)
    return membership


def add_member(db: Session, organisation_id: str, payload: MembershipCreate, actor: Teacher) -> TeacherMembership:
    organisation = find_organisation(db, organisation_id)
    teacher = find_teacher(db, payload.teacher_id)
    if find_teacher_membership(db, teacher.id, organisation_id) is not None:
        raise ConflictError(
            "Teacher is already a member of this organisation",
            details={"teacher_id": teacher.id, "organisation_id": organisation_id},
        )
    membership = TeacherMembership(
        teacher_id=teacher.id,
        organisation_id=organisation_id,
        subjects=payload.subjects,
        classes=payload.classes,
        permissions=payload.permissions.model_dump(),
        is_active=payload.is_active,
    )
    db.add(membership)
    if teacher.id not in (organisation.teacher_ids or []):
        organisation.teacher_ids = [*(organisation.teacher_ids or []), teacher.id]
    log_activity(
        db,
        actor=actor,
        action="membership.add",
        organisation_id=organisation_id,
        entity_type="teacher",
        entity_id=teacher.id,
        details={"subjects": payload.subjects, "classes": payload.classes},
    )
    commit_organisation(db, organisation)
    db.refresh(membership)
    return membership


def update_member(
    db: Session,
    organisation_id: str,
    teacher_id: int,
    payload: MembershipUpdate,
    actor: Teacher,
) -> TeacherMembership:
    organisation = find_organisation(db, organisation_id)
    membership = get_member(db, organisation_id, teacher_id)
    changes = {key: value for key, value in payload.model_dump(exclude_unset=True).items() if value is not None}

    if "subjects" in changes:
        new_subjects = normalize_names(changes["subjects"])
        _ensure_subjects_still_taught(db, organisation, teacher_id, new_subjects)
        membership.subjects = new_subjects
    if "classes" in changes:
        membership.classes = normalize_names(changes["classes"])
    if "permissions" in changes:
        membership.permissions = dict(changes["permissions"])
    if "is_active" in changes:
        membership.is_active = changes["is_active"]

    log_activity(
        db,
        actor=actor,
        action="membership.update",
        organisation_id=organisation_id,
        entity_type="teacher",
        entity_id=teacher_id,
        details=changes,
    )
    # Bump the version so in-flight grid writes validated against the old subjects conflict.
    flag_modified(organisation, "teacher_ids")
    commit_organisation(db, organisation)
    db.refresh(membership)
    return membership


def _subject_taught(
    subject: str,
    teacher_ids: list[int],
    teacher_id: int,
    new_subjects: list[str],
    organisation_id: str,
    lookup: MembershipLookup,
) -> bool:
    for other_id in teacher_ids:
        if other_id == teacher_id:
            if subject in new_subjects:
                return True
            continue
        other = lookup(other_id, organisation_id)
        if other is not None and subject in other.subjects:
            return True
    return False


def _ensure_subjects_still_taught(
    db: Session,
    organisation: Organisation,
    teacher_id: int,
    new_subjects: list[str],
) -> None:
    organisation_id = organisation.organisation_id
    lookup = membership_lookup(db)
    for classroom in load_classrooms(organisation):
        if teacher_id in classroom.assigned_teachers:
            for subject in classroom.assigned_subjects:
                roster = classroom.assigned_teachers
                if not _subject_taught(subject, roster, teacher_id, new_subjects, organisation_id, lookup):
                    raise ConflictError(
                        f"Subject '{subject}' is still assigned to classroom {classroom.classroom_id}",
                        details={
                            "field": "subjects",
                            "subject": subject,
                            "classroom_id": classroom.classroom_id,
                        },
                    )
        for index, cell in enumerate(classroom.grid):
            if teacher_id not in cell.teachers:
                continue
            for subject in cell.subjects:
                if not _subject_taught(subject, cell.teachers, teacher_id, new_subjects, organisation_id, lookup):
                    raise ConflictError(
                        f"Subject '{subject}' is still scheduled for teacher {teacher_id}",
                        details={
                            "field": "subjects",
                            "subject": subject,
                            "classroom_id": classroom.classroom_id,
                            "index": index,
                        },
                    )


def remove_member(db: Session, organisation_id: str, teacher_id: int, actor: Teacher) -> None:
    organisation = find_organisation(db, organisation_id)
    membership = get_member(db, organisation_id, teacher_id)
    referencing = classrooms_referencing(load_classrooms(organisation), teacher_id)
    if referencing:
        raise ConflictError(
            "Teacher is still assigned to classrooms in this organisation",
            details={"teacher_id": teacher_id, "classrooms": referencing},
        )
    db.delete(membership)
    organisation.teacher_ids = [item for item in organisation.teacher_ids or [] if item != teacher_id]
    log_activity(
        db,
        actor=actor,
        action="membership.remove",
        organisation_id=organisation_id,
        entity_type="teacher",
        entity_id=teacher_id,
    )
    commit_organisation(db, organisation)
