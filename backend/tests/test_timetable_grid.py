import pytest

from app.core.exceptions import OutOfRangeError, ShapeMismatchError
from app.schemas.grid import GridCell
from app.services.grid_address import GridShape, to_index
from app.services.timetable_grid import (
    count_filled,
    get_cell,
    heal_grid,
    initialize_grid,
    reshape_grid,
    set_cell,
)


def _numbered_grid(shape: GridShape) -> list[GridCell]:
    # Each cell carries its own (day, period) as a subject so moves are visible.
    cells = []
    for index in range(shape.size):
        day, period = divmod(index, shape.period_count)
        cells.append(GridCell(teachers=[1], subjects=[f"{day}-{period}"]))
    return cells


def test_initialize_grid_has_one_empty_cell_per_slot():
    cells = initialize_grid(GridShape(5, 6))
    assert len(cells) == 30
    assert all(cell.is_empty() for cell in cells)
    assert count_filled(cells) == 0


def test_set_cell_returns_new_list_and_leaves_input_untouched():
    shape = GridShape(5, 6)
    cells = initialize_grid(shape)
    cell = GridCell(teachers=[7, 7], subjects=["Math", " Math ", ""])

    updated = set_cell(cells, 1, 2, shape, cell)

    assert updated is not cells
    assert cells[8].is_empty()
    assert updated[8].teachers == [7]
    assert updated[8].subjects == ["Math"]
    assert get_cell(updated, 1, 2, shape) == updated[8]
    assert count_filled(updated) == 1


def test_set_cell_rejects_bad_address_and_wrong_length():
    shape = GridShape(5, 6)
    with pytest.raises(OutOfRangeError):
        set_cell(initialize_grid(shape), 5, 0, shape, GridCell())
    with pytest.raises(ShapeMismatchError) as exc_info:
        set_cell(initialize_grid(GridShape(5, 5)), 0, 0, shape, GridCell())
    assert exc_info.value.status_code == 409
    assert exc_info.value.details == {"actual_size": 25, "expected_size": 30}


def test_get_cell_rejects_out_of_range():
    shape = GridShape(2, 2)
    with pytest.raises(OutOfRangeError):
        get_cell(initialize_grid(shape), 0, 2, shape)


def test_reshape_growing_periods_carries_existing_slots():
    old_shape, new_shape = GridShape(5, 6), GridShape(5, 8)
    reshaped = reshape_grid(old_shape, new_shape, _numbered_grid(old_shape))

    assert len(reshaped) == new_shape.size
    for day in range(5):
        for period in range(8):
            cell = reshaped[to_index(day, period, 8)]
            if period < 6:
                assert cell.subjects == [f"{day}-{period}"]
            else:
                assert cell.is_empty()


def test_reshape_shrinking_periods_drops_trailing_slots():
    old_shape, new_shape = GridShape(5, 8), GridShape(5, 6)
    reshaped = reshape_grid(old_shape, new_shape, _numbered_grid(old_shape))

    assert len(reshaped) == 30
    assert [cell.subjects[0] for cell in reshaped[:6]] == [f"0-{period}" for period in range(6)]
    assert reshaped[to_index(4, 5, 6)].subjects == ["4-5"]
    assert all("-6" not in cell.subjects[0] and "-7" not in cell.subjects[0] for cell in reshaped)


def test_reshape_changing_days_keeps_coordinates():
    old_shape, new_shape = GridShape(5, 3), GridShape(2, 3)
    reshaped = reshape_grid(old_shape, new_shape, _numbered_grid(old_shape))
    assert [cell.subjects for cell in reshaped] == [[f"{d}-{p}"] for d in range(2) for p in range(3)]


def test_reshape_requires_grid_matching_old_shape():
    with pytest.raises(ShapeMismatchError):
        reshape_grid(GridShape(5, 6), GridShape(5, 8), initialize_grid(GridShape(5, 5)))


def test_reshape_does_not_alias_cells():
    old_shape = GridShape(1, 2)
    cells = _numbered_grid(old_shape)
    reshaped = reshape_grid(old_shape, GridShape(1, 3), cells)
    reshaped[0].subjects.append("extra")
    assert cells[0].subjects == ["0-0"]


def test_heal_grid_reshapes_from_recorded_shape():
    recorded = GridShape(2, 2)
    healed = heal_grid(_numbered_grid(recorded), recorded, GridShape(2, 3))
    assert len(healed) == 6
    assert healed[to_index(1, 1, 3)].subjects == ["1-1"]
    assert healed[to_index(1, 2, 3)].is_empty()


def test_heal_grid_falls_back_to_empty_grid():
    healed = heal_grid([GridCell(teachers=[1])] * 3, GridShape(2, 2), GridShape(2, 3))
    assert len(healed) == 6
    assert count_filled(healed) == 0
    assert len(heal_grid([], None, GridShape(1, 4))) == 4
