"""Per-teacher schedules derived from classroom grids.

The schedule is never stored: every call scans the organisation's grids as they
are at that moment, so it cannot drift from them.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from app.core.exceptions import NotAMemberError
from app.schemas.grid import ClassroomDocument
from app.schemas.teacher import ScheduleSlot, TeacherScheduleOut
from app.services.grid_address import GridShape
from app.services.memberships import find_teacher, find_teacher_membership
from app.services.organisation_service import find_organisation, load_classrooms, organisation_shape


def compute_schedule(
    classrooms: list[ClassroomDocument],
    teacher_id: int,
    shape: GridShape,
) -> list[ScheduleSlot | None]:
    schedule: list[ScheduleSlot | None] = [None] * shape.size
    for classroom in classrooms:
        for index, cell in enumerate(classroom.grid[: shape.size]):
            if teacher_id not in cell.teachers:
                continue
            slot = schedule[index]
            if slot is None:
                schedule[index] = ScheduleSlot(classroom_id=classroom.classroom_id, subjects=list(cell.subjects))
                continue
            # Double booking across classrooms: the later classroom wins the id, subjects are merged.
            slot.classroom_id = classroom.classroom_id
            slot.subjects = list(dict.fromkeys([*slot.subjects, *cell.subjects]))
    return schedule


def get_teacher_schedule(db: Session, organisation_id: str, teacher_id: int) -> TeacherScheduleOut:
    organisation = find_organisation(db, organisation_id)
    find_teacher(db, teacher_id)
    if find_teacher_membership(db, teacher_id, organisation_id) is None:
        raise NotAMemberError(teacher_id, organisation_id)
    shape = organisation_shape(organisation)
    return TeacherScheduleOut(
        organisation_id=organisation_id,
        teacher_id=teacher_id,
        days_count=shape.days_count,
        period_count=shape.period_count,
        schedule=compute_schedule(load_classrooms(organisation), teacher_id, shape),
    )
