"""Flattened timetable grids and the only sanctioned way to change their shape.

A grid is a row-major list of ``GridCell``; slot ``(day, period)`` lives at
``day * period_count + period``. None of the helpers mutate the list they are
given, so a rejected write never leaves a half-applied grid behind.
"""

from __future__ import annotations

from app.core.exceptions import ShapeMismatchError
from app.schemas.grid import GridCell
from app.services.grid_address import GridShape, address_index, from_index, to_index


def initialize_grid(shape: GridShape) -> list[GridCell]:
    return [GridCell() for _ in range(shape.size)]


def get_cell(cells: list[GridCell], day: int, period: int, shape: GridShape) -> GridCell:
    index = address_index(day, period, shape)
    if len(cells) != shape.size:
        raise ShapeMismatchError(len(cells), shape.size)
    return cells[index]


def set_cell(cells: list[GridCell], day: int, period: int, shape: GridShape, cell: GridCell) -> list[GridCell]:
    index = address_index(day, period, shape)
    if len(cells) != shape.size:
        raise ShapeMismatchError(len(cells), shape.size)
    updated = list(cells)
    updated[index] = cell.model_copy(deep=True)
    return updated


def reshape_grid(old_shape: GridShape, new_shape: GridShape, cells: list[GridCell]) -> list[GridCell]:
    """Carry every cell whose (day, period) still exists into the new layout.

    Slots added by a larger shape start empty, slots outside a smaller shape are
    dropped. Coordinates are preserved, not re-mapped.
    """
    if len(cells) != old_shape.size:
        raise ShapeMismatchError(len(cells), old_shape.size)
    reshaped = initialize_grid(new_shape)
    for index, cell in enumerate(cells):
        day, period = from_index(index, old_shape.period_count)
        if day < new_shape.days_count and period < new_shape.period_count:
            reshaped[to_index(day, period, new_shape.period_count)] = cell.model_copy(deep=True)
    return reshaped


def heal_grid(
    cells: list[GridCell],
    recorded_shape: GridShape | None,
    expected_shape: GridShape,
) -> list[GridCell]:
    if recorded_shape is not None and len(cells) == recorded_shape.size:
        return reshape_grid(recorded_shape, expected_shape, cells)
    return initialize_grid(expected_shape)


def count_filled(cells: list[GridCell]) -> int:
    return sum(1 for cell in cells if not cell.is_empty())
