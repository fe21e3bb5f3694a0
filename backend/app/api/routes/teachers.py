from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.api.deps import get_current_teacher, get_db
from app.core.exceptions import PermissionDeniedError
from app.models.teacher import Teacher
from app.schemas.teacher import TeacherCreate, TeacherOut, TeacherUpdate
from app.services.memberships import find_teacher
from app.services.permissions import can_access_teacher
from app.services.teacher_service import create_teacher, delete_teacher, update_teacher

router = APIRouter()


@router.post("", response_model=TeacherOut, status_code=status.HTTP_201_CREATED)
def create_teacher_endpoint(payload: TeacherCreate, db: Session = Depends(get_db)) -> TeacherOut:
    return create_teacher(db, payload)


@router.get("/me", response_model=TeacherOut)
def get_me(current_teacher: Teacher = Depends(get_current_teacher)) -> TeacherOut:
    return current_teacher


@router.get("/{teacher_id}", response_model=TeacherOut)
def get_teacher(
    teacher_id: int,
    current_teacher: Teacher = Depends(get_current_teacher),
    db: Session = Depends(get_db),
) -> TeacherOut:
    if not can_access_teacher(current_teacher, teacher_id, "view"):
        raise PermissionDeniedError("view")
    return find_teacher(db, teacher_id)


@router.put("/{teacher_id}", response_model=TeacherOut)
def update_teacher_endpoint(
    teacher_id: int,
    payload: TeacherUpdate,
    current_teacher: Teacher = Depends(get_current_teacher),
    db: Session = Depends(get_db),
) -> TeacherOut:
    if not can_access_teacher(current_teacher, teacher_id, "edit"):
        raise PermissionDeniedError("edit")
    return update_teacher(db, teacher_id, payload, current_teacher)


@router.delete("/{teacher_id}")
def delete_teacher_endpoint(
    teacher_id: int,
    current_teacher: Teacher = Depends(get_current_teacher),
    db: Session = Depends(get_db),
) -> dict:
    if not can_access_teacher(current_teacher, teacher_id, "edit"):
        raise PermissionDeniedError("edit")
    delete_teacher(db, teacher_id, current_teacher)
    return {"success": True}
