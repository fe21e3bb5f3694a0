import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.sql import func

from app.db.base import Base


class PermissionAction(str, Enum):
    view = "view"
    edit = "edit"
    delete = "delete"
    manage_teachers = "manage_teachers"
    manage_classrooms = "manage_classrooms"


DEFAULT_GLOBAL_PERMISSIONS = {"view": True, "edit": False}
DEFAULT_MEMBERSHIP_PERMISSIONS = {
    PermissionAction.view.value: True,
    PermissionAction.edit.value: False,
    PermissionAction.delete.value: False,
    PermissionAction.manage_teachers.value: False,
    PermissionAction.manage_classrooms.value: False,
}


class Teacher(Base):
    __tablename__ = "teachers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    global_permissions: Mapped[dict] = mapped_column(
        JSON, nullable=False, default=lambda: dict(DEFAULT_GLOBAL_PERMISSIONS)
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), onupdate=func.now())

    memberships: Mapped[list["TeacherMembership"]] = relationship(
        back_populates="teacher",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class TeacherMembership(Base):
    __tablename__ = "teacher_memberships"
    __table_args__ = (UniqueConstraint("teacher_id", "organisation_id", name="uq_teacher_membership_org"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    teacher_id: Mapped[int] = mapped_column(
        ForeignKey("teachers.id", ondelete="CASCADE"), nullable=False, index=True
    )
    organisation_id: Mapped[str] = mapped_column(
        ForeignKey("organisations.organisation_id", ondelete="CASCADE"), nullable=False, index=True
    )
    subjects: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    classes: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    permissions: Mapped[dict] = mapped_column(
        JSON, nullable=False, default=lambda: dict(DEFAULT_MEMBERSHIP_PERMISSIONS)
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    teacher: Mapped[Teacher] = relationship(back_populates="memberships")
