from app.core.exceptions import (
    AppError,
    ConcurrentUpdateError,
    ConflictError,
    GridValidationError,
    NotAMemberError,
    OutOfRangeError,
    PermissionDeniedError,
    ResourceNotFoundError,
    ShapeMismatchError,
    TeacherNotOnRosterError,
    UnknownTeacherError,
    UnteachableSubjectError,
)
from app.core.security import create_access_token


def test_app_error_defaults():
    err = AppError("Generic error")
    assert err.status_code == 500
    assert err.details == {}
    assert str(err) == "Generic error"


def test_error_status_codes():
    assert ResourceNotFoundError("Organisation", "x").status_code == 404
    assert NotAMemberError(1, "x").status_code == 404
    assert PermissionDeniedError("edit").status_code == 403
    assert ShapeMismatchError(3, 4).status_code == 409
    assert ConcurrentUpdateError("x").status_code == 409
    assert isinstance(ConcurrentUpdateError("x"), ConflictError)


def test_grid_errors_share_validation_base():
    errors = [
        OutOfRangeError(0, 9, 5, 6),
        UnknownTeacherError(1, "x"),
        UnteachableSubjectError("Math", [1]),
        TeacherNotOnRosterError([1], "c1"),
    ]
    for err in errors:
        assert isinstance(err, GridValidationError)
        assert err.status_code == 400
        assert "field" in err.details
    assert errors[0].details["field"] == "period"


def test_handler_renders_message_and_details(client):
    client.post("/api/teachers", json={"id": 1, "name": "Admin", "email": "admin@example.com"})
    client.post(
        "/api/organisations",
        json={"organisation_id": "north-high", "name": "North High"},
        headers={"Authorization": f"Bearer {create_access_token(1)}"},
    )

    response = client.get(
        "/api/organisations/north-high/classrooms/missing",
        headers={"Authorization": f"Bearer {create_access_token(1)}"},
    )

    assert response.status_code == 404
    assert response.json() == {
        "message": "Classroom with id missing not found",
        "details": {"resource": "Classroom", "id": "missing"},
    }
