from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_permission
from app.core.config import get_settings
from app.models.teacher import PermissionAction, Teacher, TeacherMembership
from app.schemas.teacher import (
    MembershipCreate,
    MembershipOut,
    MembershipUpdate,
    OrganisationTeacherOut,
    TeacherScheduleOut,
)
from app.services.organisation_service import (
    add_member,
    get_member,
    list_members,
    remove_member,
    run_with_retry,
    update_member,
)
from app.services.schedule_aggregator import get_teacher_schedule

router = APIRouter()

settings = get_settings()


def _member_out(membership: TeacherMembership) -> OrganisationTeacherOut:
    teacher = membership.teacher
    return OrganisationTeacherOut(
        id=teacher.id,
        name=teacher.name,
        email=teacher.email,
        is_active=teacher.is_active,
        membership=MembershipOut.model_validate(membership),
    )


@router.get("/organisations/{organisation_id}/teachers", response_model=list[OrganisationTeacherOut])
def list_members_endpoint(
    organisation_id: str,
    subject: str | None = Query(default=None, min_length=1),
    class_name: str | None = Query(default=None, min_length=1),
    active: bool | None = None,
    current_teacher: Teacher = Depends(require_permission(PermissionAction.view)),
    db: Session = Depends(get_db),
) -> list[OrganisationTeacherOut]:
    memberships = list_members(db, organisation_id, subject=subject, class_name=class_name, active=active)
    return [_member_out(membership) for membership in memberships]


@router.post(
    "/organisations/{organisation_id}/teachers",
    response_model=OrganisationTeacherOut,
    status_code=status.HTTP_201_CREATED,
)
def add_member_endpoint(
    organisation_id: str,
    payload: MembershipCreate,
    current_teacher: Teacher = Depends(require_permission(PermissionAction.manage_teachers)),
    db: Session = Depends(get_db),
) -> OrganisationTeacherOut:
    membership = run_with_retry(
        db,
        lambda: add_member(db, organisation_id, payload, current_teacher),
        settings.optimistic_write_attempts,
    )
    return _member_out(membership)


@router.get("/organisations/{organisation_id}/teachers/{teacher_id}", response_model=OrganisationTeacherOut)
def get_member_endpoint(
    organisation_id: str,
    teacher_id: int,
    current_teacher: Teacher = Depends(require_permission(PermissionAction.view)),
    db: Session = Depends(get_db),
) -> OrganisationTeacherOut:
    return _member_out(get_member(db, organisation_id, teacher_id))


@router.put("/organisations/{organisation_id}/teachers/{teacher_id}", response_model=OrganisationTeacherOut)
def update_member_endpoint(
    organisation_id: str,
    teacher_id: int,
    payload: MembershipUpdate,
    current_teacher: Teacher = Depends(require_permission(PermissionAction.manage_teachers)),
    db: Session = Depends(get_db),
) -> OrganisationTeacherOut:
    membership = run_with_retry(
        db,
        lambda: update_member(db, organisation_id, teacher_id, payload, current_teacher),
        settings.optimistic_write_attempts,
    )
    return _member_out(membership)


@router.delete("/organisations/{organisation_id}/teachers/{teacher_id}")
def remove_member_endpoint(
    organisation_id: str,
    teacher_id: int,
    current_teacher: Teacher = Depends(require_permission(PermissionAction.manage_teachers)),
    db: Session = Depends(get_db),
) -> dict:
    run_with_retry(
        db,
        lambda: remove_member(db, organisation_id, teacher_id, current_teacher),
        settings.optimistic_write_attempts,
    )
    return {"success": True}


@router.get(
    "/organisations/{organisation_id}/teachers/{teacher_id}/schedule",
    response_model=TeacherScheduleOut,
)
def get_teacher_schedule_endpoint(
    organisation_id: str,
    teacher_id: int,
    current_teacher: Teacher = Depends(require_permission(PermissionAction.view)),
    db: Session = Depends(get_db),
) -> TeacherScheduleOut:
    return get_teacher_schedule(db, organisation_id, teacher_id)
