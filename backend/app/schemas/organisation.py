from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_validator, model_validator

from app.schemas.classroom import ClassroomOut


class OrganisationCreate(BaseModel):
    organisation_id: str = Field(min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_.-]+$")
    name: str = Field(min_length=1, max_length=200)
    admin_ref: EmailStr | None = None
    days_count: int | None = Field(default=None, ge=1, le=14)
    period_count: int | None = Field(default=None, ge=1, le=24)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Name cannot be empty")
        return trimmed

    @field_validator("admin_ref")
    @classmethod
    def normalize_admin_ref(cls, value: str | None) -> str | None:
        return value.strip().lower() if value is not None else None


class OrganisationUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=200)
    admin_ref: EmailStr | None = None
    days_count: int | None = Field(default=None, ge=1, le=14)
    period_count: int | None = Field(default=None, ge=1, le=24)

    @field_validator("admin_ref")
    @classmethod
    def normalize_admin_ref(cls, value: str | None) -> str | None:
        return value.strip().lower() if value is not None else None

    @model_validator(mode="after")
    def require_any_field(self) -> "OrganisationUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field (name, admin_ref, days_count, period_count) must be provided")
        return self


class ShapeUpdate(BaseModel):
    days_count: int = Field(ge=1, le=14)
    period_count: int = Field(ge=1, le=24)


class OrganisationSummaryOut(BaseModel):
    organisation_id: str
    name: str
    admin_ref: str
    days_count: int
    period_count: int
    teacher_count: int
    classroom_count: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrganisationOut(BaseModel):
    organisation_id: str
    name: str
    admin_ref: str
    days_count: int
    period_count: int
    teacher_ids: list[int]
    classrooms: list[ClassroomOut]
    version: int
    created_at: datetime | None = None
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class OrganisationStatsOut(BaseModel):
    organisation_id: str
    name: str
    admin_ref: str
    days_count: int
    period_count: int
    slot_count: int
    teacher_count: int
    active_teacher_count: int
    classroom_count: int
    total_subjects: int
    total_classes: int
    filled_cell_count: int
