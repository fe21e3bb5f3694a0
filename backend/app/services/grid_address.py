from __future__ import annotations

from dataclasses import dataclass

from app.core.exceptions import GridValidationError, OutOfRangeError


@dataclass(frozen=True)
class GridShape:
    days_count: int
    period_count: int

    def __post_init__(self) -> None:
        if self.days_count < 1 or self.period_count < 1:
            raise GridValidationError(
                "Timetable shape needs at least one day and one period",
                details={
                    "field": "days_count" if self.days_count < 1 else "period_count",
                    "days_count": self.days_count,
                    "period_count": self.period_count,
                },
            )

    @property
    def size(self) -> int:
        return self.days_count * self.period_count


def to_index(day: int, period: int, period_count: int) -> int:
    return day * period_count + period


def from_index(index: int, period_count: int) -> tuple[int, int]:
    return divmod(index, period_count)


def validate_address(day: int, period: int, days_count: int, period_count: int) -> None:
    if not 0 <= day < days_count or not 0 <= period < period_count:
        raise OutOfRangeError(day, period, days_count, period_count)


def address_index(day: int, period: int, shape: GridShape) -> int:
    validate_address(day, period, shape.days_count, shape.period_count)
    return to_index(day, period, shape.period_count)
