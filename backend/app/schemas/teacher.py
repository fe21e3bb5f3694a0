from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, StrictBool, field_validator

from app.schemas.grid import normalize_names


class GlobalPermissions(BaseModel):
    view: StrictBool = True
    edit: StrictBool = False


class MembershipPermissions(BaseModel):
    view: StrictBool = True
    edit: StrictBool = False
    delete: StrictBool = False
    manage_teachers: StrictBool = False
    manage_classrooms: StrictBool = False


class TeacherBase(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Name cannot be empty")
        return trimmed

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class TeacherCreate(TeacherBase):
    id: int = Field(ge=1)
    global_permissions: GlobalPermissions = Field(default_factory=GlobalPermissions)
    is_active: StrictBool = True


class TeacherUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    email: EmailStr | None = None
    global_permissions: GlobalPermissions | None = None
    is_active: StrictBool | None = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str | None) -> str | None:
        return value.strip().lower() if value is not None else None


class MembershipFields(BaseModel):
    subjects: list[str] = Field(min_length=1, max_length=100)
    classes: list[str] = Field(min_length=1, max_length=100)

    @field_validator("subjects", "classes")
    @classmethod
    def require_names(cls, value: list[str]) -> list[str]:
        normalized = normalize_names(value)
        if not normalized:
            raise ValueError("At least one non-empty entry is required")
        return normalized


class MembershipCreate(MembershipFields):
    teacher_id: int = Field(ge=1)
    permissions: MembershipPermissions = Field(default_factory=MembershipPermissions)
    is_active: StrictBool = True


class MembershipUpdate(BaseModel):
    subjects: list[str] | None = Field(default=None, min_length=1, max_length=100)
    classes: list[str] | None = Field(default=None, min_length=1, max_length=100)
    permissions: MembershipPermissions | None = None
    is_active: StrictBool | None = None

    @field_validator("subjects", "classes")
    @classmethod
    def require_names(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        normalized = normalize_names(value)
        if not normalized:
            raise ValueError("At least one non-empty entry is required")
        return normalized


class MembershipOut(BaseModel):
    organisation_id: str
    subjects: list[str]
    classes: list[str]
    permissions: MembershipPermissions
    is_active: bool
    joined_at: datetime | None = None

    model_config = {"from_attributes": True}


class TeacherOut(TeacherBase):
    id: int
    global_permissions: GlobalPermissions
    is_active: bool
    memberships: list[MembershipOut] = Field(default_factory=list)

    model_config = {"from_attributes": True}


class OrganisationTeacherOut(TeacherBase):
    id: int
    is_active: bool
    membership: MembershipOut


class ScheduleSlot(BaseModel):
    classroom_id: str
    subjects: list[str]


class TeacherScheduleOut(BaseModel):
    organisation_id: str
    teacher_id: int
    days_count: int
    period_count: int
    schedule: list[ScheduleSlot | None]
