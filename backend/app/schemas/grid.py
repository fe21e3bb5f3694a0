from __future__ import annotations

from pydantic import BaseModel, Field, field_validator, model_validator


def unique_ordered(values):
    return list(dict.fromkeys(values))


def normalize_names(values: list[str]) -> list[str]:
    return unique_ordered(item.strip() for item in values if item and item.strip())


class GridCell(BaseModel):
    teachers: list[int] = Field(default_factory=list, max_length=50)
    subjects: list[str] = Field(default_factory=list, max_length=50)

    @field_validator("teachers")
    @classmethod
    def dedupe_teachers(cls, value: list[int]) -> list[int]:
        return unique_ordered(value)

    @field_validator("subjects")
    @classmethod
    def normalize_subjects(cls, value: list[str]) -> list[str]:
        return normalize_names(value)

    def is_empty(self) -> bool:
        return not self.teachers and not self.subjects


class ClassroomDocument(BaseModel):
    """Classroom as embedded in the organisation row.

    ``rows``/``columns`` record the shape the grid was last laid out for. They
    always mirror the organisation after a write and are only consulted when a
    drifted grid has to be healed.
    """

    classroom_id: str = Field(min_length=1, max_length=100)
    classroom_name: str = Field(min_length=1, max_length=200)
    assigned_teacher: int | None = None
    assigned_teachers: list[int] = Field(default_factory=list)
    assigned_subjects: list[str] = Field(default_factory=list)
    rows: int = Field(ge=1)
    columns: int = Field(ge=1)
    grid: list[GridCell] = Field(default_factory=list)

    @field_validator("assigned_teachers")
    @classmethod
    def dedupe_roster(cls, value: list[int]) -> list[int]:
        return unique_ordered(value)

    @field_validator("assigned_subjects")
    @classmethod
    def normalize_assigned_subjects(cls, value: list[str]) -> list[str]:
        return normalize_names(value)

    @model_validator(mode="after")
    def fold_primary_into_roster(self) -> "ClassroomDocument":
        if self.assigned_teacher is not None and self.assigned_teacher not in self.assigned_teachers:
            self.assigned_teachers = [self.assigned_teacher, *self.assigned_teachers]
        return self

    def scheduled_teachers(self) -> set[int]:
        return {teacher_id for cell in self.grid for teacher_id in cell.teachers}
