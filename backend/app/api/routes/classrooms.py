from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_permission
from app.core.config import get_settings
from app.models.teacher import PermissionAction, Teacher
from app.schemas.classroom import (
    ClassroomCreate,
    ClassroomOut,
    ClassroomUpdate,
    GridCellOut,
    GridCellUpdate,
    GridCellUpdateOut,
)
from app.services.organisation_service import (
    create_classroom,
    delete_classroom,
    get_classroom,
    get_grid_cell,
    list_classrooms,
    run_with_retry,
    set_grid_cell,
    update_classroom,
)

router = APIRouter()

settings = get_settings()


@router.get("/organisations/{organisation_id}/classrooms", response_model=list[ClassroomOut])
def list_classrooms_endpoint(
    organisation_id: str,
    current_teacher: Teacher = Depends(require_permission(PermissionAction.view)),
    db: Session = Depends(get_db),
) -> list[ClassroomOut]:
    return list_classrooms(db, organisation_id)


@router.post(
    "/organisations/{organisation_id}/classrooms",
    response_model=ClassroomOut,
    status_code=status.HTTP_201_CREATED,
)
def create_classroom_endpoint(
    organisation_id: str,
    payload: ClassroomCreate,
    current_teacher: Teacher = Depends(require_permission(PermissionAction.manage_classrooms)),
    db: Session = Depends(get_db),
) -> ClassroomOut:
    return run_with_retry(
        db,
        lambda: create_classroom(db, organisation_id, payload, current_teacher),
        settings.optimistic_write_attempts,
    )


@router.get("/organisations/{organisation_id}/classrooms/{classroom_id}", response_model=ClassroomOut)
def get_classroom_endpoint(
    organisation_id: str,
    classroom_id: str,
    current_teacher: Teacher = Depends(require_permission(PermissionAction.view)),
    db: Session = Depends(get_db),
) -> ClassroomOut:
    return get_classroom(db, organisation_id, classroom_id)


@router.put("/organisations/{organisation_id}/classrooms/{classroom_id}", response_model=ClassroomOut)
def update_classroom_endpoint(
    organisation_id: str,
    classroom_id: str,
    payload: ClassroomUpdate,
    current_teacher: Teacher = Depends(require_permission(PermissionAction.manage_classrooms)),
    db: Session = Depends(get_db),
) -> ClassroomOut:
    return run_with_retry(
        db,
        lambda: update_classroom(db, organisation_id, classroom_id, payload, current_teacher),
        settings.optimistic_write_attempts,
    )


@router.delete("/organisations/{organisation_id}/classrooms/{classroom_id}")
def delete_classroom_endpoint(
    organisation_id: str,
    classroom_id: str,
    current_teacher: Teacher = Depends(require_permission(PermissionAction.manage_classrooms)),
    db: Session = Depends(get_db),
) -> dict:
    run_with_retry(
        db,
        lambda: delete_classroom(db, organisation_id, classroom_id, current_teacher),
        settings.optimistic_write_attempts,
    )
    return {"success": True}


@router.get(
    "/organisations/{organisation_id}/classrooms/{classroom_id}/grid/{day}/{period}",
    response_model=GridCellOut,
)
def get_grid_cell_endpoint(
    organisation_id: str,
    classroom_id: str,
    day: int,
    period: int,
    current_teacher: Teacher = Depends(require_permission(PermissionAction.view)),
    db: Session = Depends(get_db),
) -> GridCellOut:
    index, cell = get_grid_cell(db, organisation_id, classroom_id, day, period)
    return GridCellOut(
        organisation_id=organisation_id,
        classroom_id=classroom_id,
        day=day,
        period=period,
        cell_index=index,
        cell=cell,
    )


@router.patch(
    "/organisations/{organisation_id}/classrooms/{classroom_id}/grid/{day}/{period}",
    response_model=GridCellUpdateOut,
)
def set_grid_cell_endpoint(
    organisation_id: str,
    classroom_id: str,
    day: int,
    period: int,
    payload: GridCellUpdate,
    current_teacher: Teacher = Depends(require_permission(PermissionAction.edit)),
    db: Session = Depends(get_db),
) -> GridCellUpdateOut:
    classroom, index = run_with_retry(
        db,
        lambda: set_grid_cell(
            db,
            organisation_id,
            classroom_id,
            day,
            period,
            payload.teachers,
            payload.subjects,
            current_teacher,
        ),
        settings.optimistic_write_attempts,
    )
    return GridCellUpdateOut(
        organisation_id=organisation_id,
        classroom_id=classroom_id,
        day=day,
        period=period,
        cell_index=index,
        cell=classroom.grid[index],
        classroom=ClassroomOut.model_validate(classroom.model_dump()),
    )
