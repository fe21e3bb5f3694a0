import logging

import pytest

from app.core.config import get_settings
from app.core.security import create_access_token
from app.models.organisation import Organisation


def create_teacher(client, teacher_id, email):
    response = client.post(
        "/api/teachers",
        json={"id": teacher_id, "name": f"Teacher {teacher_id}", "email": email},
    )
    assert response.status_code == 201
    return response.json()


def auth_headers(teacher_id):
    return {"Authorization": f"Bearer {create_access_token(teacher_id)}"}


def add_member(client, organisation_id, teacher_id, subjects, permissions=None):
    payload = {"teacher_id": teacher_id, "subjects": subjects, "classes": ["7A"]}
    if permissions is not None:
        payload["permissions"] = permissions
    response = client.post(
        f"/api/organisations/{organisation_id}/teachers",
        json=payload,
        headers=auth_headers(1),
    )
    assert response.status_code == 201


def set_cell(client, day, period, teachers, subjects, teacher_id=1, classroom_id="c1"):
    return client.patch(
        f"/api/organisations/north-high/classrooms/{classroom_id}/grid/{day}/{period}",
        json={"teachers": teachers, "subjects": subjects},
        headers=auth_headers(teacher_id),
    )


def get_cell(client, day, period, classroom_id="c1"):
    response = client.get(
        f"/api/organisations/north-high/classrooms/{classroom_id}/grid/{day}/{period}",
        headers=auth_headers(1),
    )
    assert response.status_code == 200
    return response.json()


@pytest.fixture()
def school(client):
    """A 5x6 organisation with a Math teacher (2) on the roster of classroom c1."""
    create_teacher(client, 1, "admin@example.com")
    create_teacher(client, 2, "math@example.com")
    create_teacher(client, 3, "physics@example.com")
    response = client.post(
        "/api/organisations",
        json={"organisation_id": "north-high", "name": "North High", "days_count": 5, "period_count": 6},
        headers=auth_headers(1),
    )
    assert response.status_code == 201
    add_member(client, "north-high", 2, ["Math"])
    add_member(client, "north-high", 3, ["Physics"])
    response = client.post(
        "/api/organisations/north-high/classrooms",
        json={
            "classroom_id": "c1",
            "classroom_name": "Room 1",
            "assigned_teacher": 2,
            "assigned_subjects": ["Math"],
        },
        headers=auth_headers(1),
    )
    assert response.status_code == 201
    return client


def test_new_classroom_grid_matches_organisation_shape(school):
    classroom = school.get("/api/organisations/north-high/classrooms/c1", headers=auth_headers(1)).json()

    assert len(classroom["grid"]) == 30
    assert (classroom["rows"], classroom["columns"]) == (5, 6)
    assert classroom["assigned_teachers"] == [2]
    assert all(cell == {"teachers": [], "subjects": []} for cell in classroom["grid"])


def test_set_cell_writes_row_major_index(school):
    response = set_cell(school, 1, 2, [2], ["Math"])

    assert response.status_code == 200
    body = response.json()
    assert body["cell_index"] == 8
    assert body["cell"] == {"teachers": [2], "subjects": ["Math"]}
    assert body["classroom"]["grid"][8] == body["cell"]
    assert sum(1 for cell in body["classroom"]["grid"] if cell["teachers"]) == 1

    fetched = get_cell(school, 1, 2)
    assert fetched["cell_index"] == 8
    assert fetched["cell"] == {"teachers": [2], "subjects": ["Math"]}


def test_unteachable_subject_leaves_cell_unchanged(school):
    assert set_cell(school, 1, 2, [2], ["Math"]).status_code == 200

    response = set_cell(school, 1, 2, [2], ["History"])

    assert response.status_code == 400
    assert response.json()["details"]["field"] == "subjects"
    assert response.json()["details"]["subject"] == "History"
    assert get_cell(school, 1, 2)["cell"] == {"teachers": [2], "subjects": ["Math"]}


def test_subject_without_teacher_is_rejected(school):
    response = set_cell(school, 0, 0, [], ["Math"])
    assert response.status_code == 400


def test_unknown_teacher_is_rejected(school):
    create_teacher(school, 9, "stranger@example.com")
    response = set_cell(school, 0, 0, [9], [])
    assert response.status_code == 400
    assert response.json()["details"]["teacher_id"] == 9


def test_out_of_range_address_is_rejected(school):
    day_response = set_cell(school, 5, 0, [2], ["Math"])
    period_response = set_cell(school, 0, 6, [2], ["Math"])
    negative = school.get(
        "/api/organisations/north-high/classrooms/c1/grid/-1/0",
        headers=auth_headers(1),
    )

    assert day_response.status_code == 400
    assert day_response.json()["details"]["field"] == "day"
    assert period_response.json()["details"]["field"] == "period"
    assert negative.status_code == 400


def test_missing_classroom_is_not_found(school):
    response = set_cell(school, 0, 0, [2], ["Math"], classroom_id="c404")
    assert response.status_code == 404
    assert response.json()["details"] == {"resource": "Classroom", "id": "c404"}


def test_teacher_off_roster_is_rejected_by_default(school):
    response = set_cell(school, 0, 0, [3], ["Physics"])
    assert response.status_code == 400
    assert response.json()["details"]["teachers"] == [3]
    assert get_cell(school, 0, 0)["cell"]["teachers"] == []


def test_roster_extends_when_configured(school, monkeypatch):
    monkeypatch.setattr(get_settings(), "classroom_roster_policy", "extend")

    response = set_cell(school, 0, 0, [3], ["Physics"])

    assert response.status_code == 200
    assert response.json()["classroom"]["assigned_teachers"] == [2, 3]


def test_double_booking_allowed_unless_configured(school, monkeypatch):
    school.post(
        "/api/organisations/north-high/classrooms",
        json={"classroom_id": "c2", "classroom_name": "Room 2", "assigned_teachers": [2]},
        headers=auth_headers(1),
    )
    assert set_cell(school, 0, 0, [2], ["Math"]).status_code == 200
    assert set_cell(school, 0, 0, [2], ["Math"], classroom_id="c2").status_code == 200

    monkeypatch.setattr(get_settings(), "reject_double_booking", True)
    assert set_cell(school, 0, 1, [2], ["Math"]).status_code == 200
    rejected = set_cell(school, 0, 1, [2], ["Math"], classroom_id="c2")

    assert rejected.status_code == 409
    assert rejected.json()["details"] == {"teacher_id": 2, "classroom_id": "c1", "index": 1}


def test_bulk_grid_update_respects_double_booking_setting(school, monkeypatch):
    school.post(
        "/api/organisations/north-high/classrooms",
        json={"classroom_id": "c2", "classroom_name": "Room 2", "assigned_teachers": [2]},
        headers=auth_headers(1),
    )
    monkeypatch.setattr(get_settings(), "reject_double_booking", True)
    assert set_cell(school, 0, 1, [2], ["Math"]).status_code == 200

    grid = [{"teachers": [], "subjects": []} for _ in range(30)]
    grid[1] = {"teachers": [2], "subjects": ["Math"]}
    response = school.put(
        "/api/organisations/north-high/classrooms/c2",
        json={"grid": grid},
        headers=auth_headers(1),
    )

    assert response.status_code == 409
    assert response.json()["details"] == {"teacher_id": 2, "classroom_id": "c1", "index": 1}
    assert get_cell(school, 0, 1, classroom_id="c2")["cell"]["teachers"] == []


def test_cell_writes_need_edit_permission(school):
    create_teacher(school, 4, "viewer@example.com")
    create_teacher(school, 5, "editor@example.com")
    add_member(school, "north-high", 4, ["Math"])
    add_member(school, "north-high", 5, ["Math"], permissions={"view": True, "edit": True})

    assert set_cell(school, 0, 0, [2], ["Math"], teacher_id=4).status_code == 403
    assert set_cell(school, 0, 0, [2], ["Math"], teacher_id=5).status_code == 200
    assert school.get("/api/organisations/north-high/classrooms", headers=auth_headers(4)).status_code == 200


def test_create_classroom_validates_roster_and_subjects(school):
    duplicate = school.post(
        "/api/organisations/north-high/classrooms",
        json={"classroom_id": "c1", "classroom_name": "Again"},
        headers=auth_headers(1),
    )
    unknown = school.post(
        "/api/organisations/north-high/classrooms",
        json={"classroom_id": "c2", "classroom_name": "C2", "assigned_teachers": [42]},
        headers=auth_headers(1),
    )
    unteachable = school.post(
        "/api/organisations/north-high/classrooms",
        json={"classroom_id": "c3", "classroom_name": "C3", "assigned_teachers": [2], "assigned_subjects": ["Art"]},
        headers=auth_headers(1),
    )

    assert duplicate.status_code == 409
    assert unknown.status_code == 400
    assert unknown.json()["details"]["field"] == "assigned_teachers"
    assert unteachable.status_code == 400
    assert unteachable.json()["details"]["field"] == "assigned_subjects"
    listed = school.get("/api/organisations/north-high/classrooms", headers=auth_headers(1)).json()
    assert [classroom["classroom_id"] for classroom in listed] == ["c1"]


def test_bulk_grid_update(school):
    grid = [{"teachers": [], "subjects": []} for _ in range(30)]
    grid[7] = {"teachers": [2], "subjects": ["Math"]}

    response = school.put(
        "/api/organisations/north-high/classrooms/c1",
        json={"classroom_name": "Renamed", "grid": grid},
        headers=auth_headers(1),
    )

    assert response.status_code == 200
    assert response.json()["classroom_name"] == "Renamed"
    assert get_cell(school, 1, 1)["cell"] == {"teachers": [2], "subjects": ["Math"]}


def test_bulk_grid_update_is_all_or_nothing(school):
    short = school.put(
        "/api/organisations/north-high/classrooms/c1",
        json={"grid": [{"teachers": [], "subjects": []}] * 29},
        headers=auth_headers(1),
    )
    assert short.status_code == 400
    assert short.json()["details"]["expected_size"] == 30

    grid = [{"teachers": [], "subjects": []} for _ in range(30)]
    grid[0] = {"teachers": [2], "subjects": ["Math"]}
    grid[1] = {"teachers": [2], "subjects": ["History"]}
    invalid = school.put(
        "/api/organisations/north-high/classrooms/c1",
        json={"grid": grid},
        headers=auth_headers(1),
    )
    assert invalid.status_code == 400
    assert invalid.json()["details"]["index"] == 1
    assert get_cell(school, 0, 0)["cell"]["teachers"] == []


def test_roster_cannot_drop_scheduled_teacher(school):
    assert set_cell(school, 0, 0, [2], ["Math"]).status_code == 200
    add_response = school.put(
        "/api/organisations/north-high/classrooms/c1",
        json={"assigned_teachers": [2, 3], "assigned_subjects": ["Math", "Physics"]},
        headers=auth_headers(1),
    )
    assert add_response.status_code == 200
    assert add_response.json()["assigned_teachers"] == [2, 3]

    response = school.put(
        "/api/organisations/north-high/classrooms/c1",
        json={"assigned_teacher": 3, "assigned_teachers": [3], "assigned_subjects": []},
        headers=auth_headers(1),
    )

    assert response.status_code == 400
    assert response.json()["details"]["teachers"] == [2]


def test_delete_classroom(school):
    response = school.delete("/api/organisations/north-high/classrooms/c1", headers=auth_headers(1))
    assert response.status_code == 200
    missing = school.get("/api/organisations/north-high/classrooms/c1", headers=auth_headers(1))
    assert missing.status_code == 404


def test_drifted_grid_is_healed_on_write(school, session_factory, caplog):
    with session_factory() as db:
        organisation = db.get(Organisation, "north-high")
        classrooms = [dict(item) for item in organisation.classrooms]
        classrooms[0]["grid"] = classrooms[0]["grid"][:7]
        organisation.classrooms = classrooms
        db.commit()

    with caplog.at_level(logging.WARNING, logger="app.services.organisation_service"):
        response = set_cell(school, 1, 2, [2], ["Math"])

    assert response.status_code == 200
    assert len(response.json()["classroom"]["grid"]) == 30
    assert response.json()["cell_index"] == 8
    assert any("Healing grid" in record.getMessage() for record in caplog.records)


def test_drifted_grid_reads_return_healed_view(school, session_factory):
    with session_factory() as db:
        organisation = db.get(Organisation, "north-high")
        classrooms = [dict(item) for item in organisation.classrooms]
        classrooms[0]["grid"] = classrooms[0]["grid"][:7]
        organisation.classrooms = classrooms
        db.commit()

    cell = school.get("/api/organisations/north-high/classrooms/c1/grid/0/0", headers=auth_headers(1))
    classroom = school.get("/api/organisations/north-high/classrooms/c1", headers=auth_headers(1))
    listed = school.get("/api/organisations/north-high/classrooms", headers=auth_headers(1))

    assert cell.status_code == 200
    assert cell.json()["cell"] == {"teachers": [], "subjects": []}
    assert len(classroom.json()["grid"]) == 30
    assert (classroom.json()["rows"], classroom.json()["columns"]) == (5, 6)
    assert len(listed.json()[0]["grid"]) == 30

    # Reads heal in memory only; the stored document is untouched until the next write.
    with session_factory() as db:
        assert len(db.get(Organisation, "north-high").classrooms[0]["grid"]) == 7
