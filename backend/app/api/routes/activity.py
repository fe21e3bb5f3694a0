from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_db, require_permission
from app.core.config import get_settings
from app.models.teacher import PermissionAction, Teacher
from app.schemas.activity import ActivityLogOut
from app.services.audit import list_activity
from app.services.organisation_service import find_organisation

router = APIRouter()

settings = get_settings()


@router.get("/organisations/{organisation_id}/activity", response_model=list[ActivityLogOut])
def list_activity_logs(
    organisation_id: str,
    limit: int | None = Query(default=None, ge=1),
    current_teacher: Teacher = Depends(require_permission(PermissionAction.view)),
    db: Session = Depends(get_db),
) -> list[ActivityLogOut]:
    find_organisation(db, organisation_id)
    effective_limit = min(limit or settings.activity_log_limit, settings.activity_log_limit)
    return list_activity(db, organisation_id, effective_limit)
