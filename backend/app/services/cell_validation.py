from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Protocol

from app.core.exceptions import UnknownTeacherError, UnteachableSubjectError
from app.schemas.grid import GridCell


class MembershipRecord(Protocol):
    subjects: list[str]
    is_active: bool


MembershipLookup = Callable[[int, str], MembershipRecord | None]


def _resolve_memberships(
    teacher_ids: Iterable[int],
    organisation_id: str,
    membership_lookup: MembershipLookup,
    field: str,
) -> dict[int, MembershipRecord]:
    resolved: dict[int, MembershipRecord] = {}
    for teacher_id in teacher_ids:
        membership = membership_lookup(teacher_id, organisation_id)
        if membership is None or not membership.is_active:
            raise UnknownTeacherError(teacher_id, organisation_id, field=field)
        resolved[teacher_id] = membership
    return resolved


def _check_subjects(
    subjects: Iterable[str],
    memberships: dict[int, MembershipRecord],
    field: str,
) -> None:
    for subject in subjects:
        if not any(subject in membership.subjects for membership in memberships.values()):
            raise UnteachableSubjectError(subject, list(memberships), field=field)


def validate_cell(cell: GridCell, organisation_id: str, membership_lookup: MembershipLookup) -> None:
    memberships = _resolve_memberships(cell.teachers, organisation_id, membership_lookup, "teachers")
    # With no teachers every subject fails here, which is the intended outcome.
    _check_subjects(cell.subjects, memberships, "subjects")


def validate_classroom_assignment(
    roster: list[int],
    subjects: list[str],
    organisation_id: str,
    membership_lookup: MembershipLookup,
) -> None:
    memberships = _resolve_memberships(roster, organisation_id, membership_lookup, "assigned_teachers")
    _check_subjects(subjects, memberships, "assigned_subjects")
