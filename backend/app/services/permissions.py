from __future__ import annotations

from sqlalchemy.orm import Session

from app.models.organisation import Organisation
from app.models.teacher import PermissionAction, Teacher
from app.services.memberships import find_active_membership


def is_organisation_admin(organisation: Organisation | None, actor: Teacher) -> bool:
    return organisation is not None and organisation.admin_ref == actor.email.lower()


def has_permission(db: Session, actor: Teacher, organisation_id: str, action: PermissionAction | str) -> bool:
    """Answer whether ``actor`` may perform ``action`` in the organisation.

    A missing organisation answers ``False`` so callers can reject with the same
    403 whether or not the target exists.
    """
    if not actor.is_active:
        return False
    action_name = action.value if isinstance(action, PermissionAction) else action
    organisation = db.get(Organisation, organisation_id)
    if organisation is None:
        return False
    if is_organisation_admin(organisation, actor):
        return True
    membership = find_active_membership(db, actor.id, organisation_id)
    if membership is None:
        return False
    return bool((membership.permissions or {}).get(action_name, False))


def can_access_teacher(actor: Teacher, teacher_id: int, action: str) -> bool:
    """Teachers may always read and edit their own record; others need the global flag."""
    if not actor.is_active:
        return False
    if actor.id == teacher_id:
        return True
    return bool((actor.global_permissions or {}).get(action, False))
