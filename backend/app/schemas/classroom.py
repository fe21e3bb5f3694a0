from pydantic import BaseModel, Field, field_validator, model_validator

from app.schemas.grid import GridCell, normalize_names, unique_ordered


class ClassroomCreate(BaseModel):
    classroom_id: str = Field(min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_.-]+$")
    classroom_name: str = Field(min_length=1, max_length=200)
    assigned_teacher: int | None = None
    assigned_teachers: list[int] = Field(default_factory=list, max_length=200)
    assigned_subjects: list[str] = Field(default_factory=list, max_length=200)

    @field_validator("classroom_name")
    @classmethod
    def normalize_classroom_name(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("Classroom name cannot be empty")
        return trimmed

    @field_validator("assigned_teachers")
    @classmethod
    def dedupe_roster(cls, value: list[int]) -> list[int]:
        return unique_ordered(value)

    @field_validator("assigned_subjects")
    @classmethod
    def normalize_subjects(cls, value: list[str]) -> list[str]:
        return normalize_names(value)


class ClassroomUpdate(BaseModel):
    classroom_name: str | None = Field(default=None, min_length=1, max_length=200)
    assigned_teacher: int | None = None
    assigned_teachers: list[int] | None = Field(default=None, max_length=200)
    assigned_subjects: list[str] | None = Field(default=None, max_length=200)
    grid: list[GridCell] | None = Field(default=None, max_length=14 * 24)

    @field_validator("assigned_teachers")
    @classmethod
    def dedupe_roster(cls, value: list[int] | None) -> list[int] | None:
        return unique_ordered(value) if value is not None else None

    @field_validator("assigned_subjects")
    @classmethod
    def normalize_subjects(cls, value: list[str] | None) -> list[str] | None:
        return normalize_names(value) if value is not None else None

    @model_validator(mode="after")
    def require_any_field(self) -> "ClassroomUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class GridCellUpdate(BaseModel):
    teachers: list[int] = Field(max_length=50)
    subjects: list[str] = Field(max_length=50)


class ClassroomOut(BaseModel):
    classroom_id: str
    classroom_name: str
    assigned_teacher: int | None
    assigned_teachers: list[int]
    assigned_subjects: list[str]
    rows: int
    columns: int
    grid: list[GridCell]

    model_config = {"from_attributes": True}


class GridCellOut(BaseModel):
    organisation_id: str
    classroom_id: str
    day: int
    period: int
    cell_index: int
    cell: GridCell


class GridCellUpdateOut(GridCellOut):
    classroom: ClassroomOut
