import pytest

from app.core.exceptions import GridValidationError, OutOfRangeError
from app.services.grid_address import GridShape, address_index, from_index, to_index, validate_address


def test_index_round_trip_covers_every_slot():
    shape = GridShape(5, 6)
    seen = set()
    for day in range(shape.days_count):
        for period in range(shape.period_count):
            index = to_index(day, period, shape.period_count)
            assert from_index(index, shape.period_count) == (day, period)
            seen.add(index)
    assert seen == set(range(shape.size))


def test_row_major_layout():
    assert to_index(1, 2, 6) == 8
    assert from_index(8, 6) == (1, 2)
    assert to_index(4, 7, 8) == 39


@pytest.mark.parametrize(
    ("day", "period", "field"),
    [(-1, 0, "day"), (5, 0, "day"), (0, -1, "period"), (0, 6, "period")],
)
def test_validate_address_rejects_out_of_range(day, period, field):
    with pytest.raises(OutOfRangeError) as exc_info:
        validate_address(day, period, 5, 6)
    assert exc_info.value.status_code == 400
    assert exc_info.value.details["field"] == field


def test_address_index_validates_before_computing():
    shape = GridShape(5, 6)
    assert address_index(0, 5, shape) == 5
    with pytest.raises(OutOfRangeError):
        address_index(0, 6, shape)


def test_shape_requires_positive_dimensions():
    with pytest.raises(GridValidationError) as exc_info:
        GridShape(0, 6)
    assert exc_info.value.details["field"] == "days_count"
    with pytest.raises(GridValidationError):
        GridShape(5, 0)
    assert GridShape(1, 1).size == 1
