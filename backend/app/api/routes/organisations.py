from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_teacher, get_db, require_permission
from app.core.config import get_settings
from app.models.organisation import Organisation
from app.models.teacher import PermissionAction, Teacher
from app.schemas.organisation import (
    OrganisationCreate,
    OrganisationOut,
    OrganisationStatsOut,
    OrganisationSummaryOut,
    OrganisationUpdate,
    ShapeUpdate,
)
from app.services.organisation_service import (
    create_organisation,
    delete_organisation,
    find_organisation,
    list_visible_organisations,
    organisation_stats,
    run_with_retry,
    update_organisation,
    update_organisation_shape,
)

router = APIRouter()

settings = get_settings()


def _summary(organisation: Organisation) -> OrganisationSummaryOut:
    return OrganisationSummaryOut(
        organisation_id=organisation.organisation_id,
        name=organisation.name,
        admin_ref=organisation.admin_ref,
        days_count=organisation.days_count,
        period_count=organisation.period_count,
        teacher_count=len(organisation.teacher_ids or []),
        classroom_count=len(organisation.classrooms or []),
        created_at=organisation.created_at,
        updated_at=organisation.updated_at,
    )


@router.get("", response_model=list[OrganisationSummaryOut])
def list_organisations(
    current_teacher: Teacher = Depends(get_current_teacher),
    db: Session = Depends(get_db),
) -> list[OrganisationSummaryOut]:
    return [_summary(organisation) for organisation in list_visible_organisations(db, current_teacher)]


@router.post("", response_model=OrganisationOut, status_code=status.HTTP_201_CREATED)
def create_organisation_endpoint(
    payload: OrganisationCreate,
    current_teacher: Teacher = Depends(get_current_teacher),
    db: Session = Depends(get_db),
) -> OrganisationOut:
    return create_organisation(db, payload, current_teacher)


@router.get("/{organisation_id}", response_model=OrganisationOut)
def get_organisation(
    organisation_id: str,
    current_teacher: Teacher = Depends(require_permission(PermissionAction.view)),
    db: Session = Depends(get_db),
) -> OrganisationOut:
    return find_organisation(db, organisation_id)


@router.put("/{organisation_id}", response_model=OrganisationOut)
def update_organisation_endpoint(
    organisation_id: str,
    payload: OrganisationUpdate,
    current_teacher: Teacher = Depends(require_permission(PermissionAction.edit)),
    db: Session = Depends(get_db),
) -> OrganisationOut:
    return run_with_retry(
        db,
        lambda: update_organisation(db, organisation_id, payload, current_teacher),
        settings.optimistic_write_attempts,
    )


@router.put("/{organisation_id}/shape", response_model=OrganisationOut)
def update_organisation_shape_endpoint(
    organisation_id: str,
    payload: ShapeUpdate,
    current_teacher: Teacher = Depends(require_permission(PermissionAction.edit)),
    db: Session = Depends(get_db),
) -> OrganisationOut:
    return run_with_retry(
        db,
        lambda: update_organisation_shape(
            db,
            organisation_id,
            payload.days_count,
            payload.period_count,
            current_teacher,
        ),
        settings.optimistic_write_attempts,
    )


@router.delete("/{organisation_id}")
def delete_organisation_endpoint(
    organisation_id: str,
    current_teacher: Teacher = Depends(require_permission(PermissionAction.delete)),
    db: Session = Depends(get_db),
) -> dict:
    run_with_retry(
        db,
        lambda: delete_organisation(db, organisation_id, current_teacher),
        settings.optimistic_write_attempts,
    )
    return {"success": True}


@router.get("/{organisation_id}/stats", response_model=OrganisationStatsOut)
def get_organisation_stats(
    organisation_id: str,
    current_teacher: Teacher = Depends(require_permission(PermissionAction.view)),
    db: Session = Depends(get_db),
) -> OrganisationStatsOut:
    return OrganisationStatsOut(**organisation_stats(db, organisation_id))
