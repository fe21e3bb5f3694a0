from collections.abc import Callable, Generator

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from app.core.exceptions import PermissionDeniedError
from app.core.security import decode_token
from app.db.session import SessionLocal
from app.models.teacher import PermissionAction, Teacher
from app.services.permissions import has_permission

security = HTTPBearer()


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_teacher(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db),
) -> Teacher:
    token = credentials.credentials
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
        subject = payload.get("sub")
        if subject is None:
            raise credentials_exception
        teacher_id = int(subject)
    except (JWTError, ValueError) as exc:
        raise credentials_exception from exc

    teacher = db.get(Teacher, teacher_id)
    if teacher is None:
        raise credentials_exception
    if not teacher.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Teacher account is inactive")
    return teacher


def require_permission(action: PermissionAction) -> Callable[..., Teacher]:
    def permission_checker(
        organisation_id: str,
        current_teacher: Teacher = Depends(get_current_teacher),
        db: Session = Depends(get_db),
    ) -> Teacher:
        if not has_permission(db, current_teacher, organisation_id, action):
            raise PermissionDeniedError(action.value)
        return current_teacher

    return permission_checker
