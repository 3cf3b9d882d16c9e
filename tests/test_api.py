# tests/test_api.py
from datetime import date
from http import HTTPStatus

import pytest

from shiftwatch.models.schedule import Schedule
from shiftwatch.models.user import User

ADMIN = {"X-User-Id": "100", "X-User-Role": "admin"}
OWL = {"X-User-Id": "1", "X-User-Role": "owl"}
OTHER_OWL = {"X-User-Id": "2", "X-User-Role": "owl"}


@pytest.fixture
def seeded(sync_session):
    """
    Users 1, 2, 42 and 100 (admin) plus one daily 18:00 UTC schedule without
    an end date.
    """
    sync_session.add_all(
        [
            User(id=1, phone="+27820000001", name="Owl One", role="owl"),
            User(id=2, phone="+27820000002", name="Owl Two", role="owl"),
            User(id=42, phone="+27820000042", name="Forty Two", role="owl"),
            User(id=100, phone="+27820000100", name="Admin", role="admin"),
        ]
    )
    schedule = Schedule(
        name="Evening patrol",
        cron_expr="0 18 * * *",
        duration_minutes=120,
        timezone="UTC",
        start_date=date(2025, 1, 1),
    )
    sync_session.add(schedule)
    sync_session.commit()
    return schedule


def _book(client, schedule_id: int, start: str, headers=OWL):
    return client.post(
        "/bookings",
        json={"schedule_id": schedule_id, "start_time": start},
        headers=headers,
    )


def test_health_endpoint_ok(client):
    response = client.get("/health")

    assert response.status_code == HTTPStatus.OK
    data = response.json()
    assert data["status"] == "ok"
    assert data["app_name"] == "ShiftWatch"
    assert "timestamp_utc" in data


def test_available_shifts_over_five_day_window(client, seeded):
    response = client.get(
        "/shifts/available",
        params={"from": "2025-01-06T00:00:00Z", "to": "2025-01-10T00:00:00Z"},
    )

    assert response.status_code == HTTPStatus.OK
    data = response.json()
    assert [slot["start_time"] for slot in data] == [
        f"2025-01-{day:02d}T18:00:00Z" for day in range(6, 11)
    ]
    assert data[0]["end_time"] == "2025-01-06T20:00:00Z"
    assert data[0]["schedule_name"] == "Evening patrol"
    assert data[0]["timezone"] == "UTC"


def test_available_shifts_rejects_inverted_window(client, seeded):
    response = client.get(
        "/shifts/available",
        params={"from": "2025-01-10T00:00:00Z", "to": "2025-01-06T00:00:00Z"},
    )

    assert response.status_code == HTTPStatus.UNPROCESSABLE_ENTITY
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_book_then_conflict(client, seeded):
    first = _book(client, seeded.id, "2025-01-06T18:00:00Z")
    assert first.status_code == HTTPStatus.CREATED
    booking = first.json()
    assert booking["user_id"] == 1
    assert booking["checked_in_at"] is None
    assert booking["shift_end"] == "2025-01-06T20:00:00Z"

    second = _book(client, seeded.id, "2025-01-06T18:00:00Z", headers=OTHER_OWL)
    assert second.status_code == HTTPStatus.CONFLICT
    assert second.json() == {
        "detail": "This shift slot is already booked.",
        "code": "BOOKING_CONFLICT",
    }

    available = client.get(
        "/shifts/available",
        params={"from": "2025-01-06T00:00:00Z", "to": "2025-01-08T00:00:00Z"},
    ).json()
    assert [slot["start_time"] for slot in available] == [
        "2025-01-07T18:00:00Z",
        "2025-01-08T18:00:00Z",
    ]


def test_book_invalid_time_and_unknown_schedule(client, seeded):
    invalid = _book(client, seeded.id, "2025-01-06T18:15:00Z")
    assert invalid.status_code == HTTPStatus.BAD_REQUEST
    assert invalid.json()["code"] == "SHIFT_TIME_INVALID"

    missing = _book(client, 999, "2025-01-06T18:00:00Z")
    assert missing.status_code == HTTPStatus.NOT_FOUND
    assert missing.json()["code"] == "SCHEDULE_NOT_FOUND"


def test_booking_requires_caller_identity(client, seeded):
    response = _book(client, seeded.id, "2025-01-06T18:00:00Z", headers={})

    assert response.status_code == HTTPStatus.UNAUTHORIZED


def test_my_bookings_and_cancel(client, seeded):
    created = _book(client, seeded.id, "2030-01-07T18:00:00Z").json()

    mine = client.get("/bookings/me", headers=OWL)
    assert mine.status_code == HTTPStatus.OK
    assert [b["id"] for b in mine.json()] == [created["id"]]

    forbidden = client.post(f"/bookings/{created['id']}/cancel", headers=OTHER_OWL)
    assert forbidden.status_code == HTTPStatus.FORBIDDEN

    cancelled = client.post(f"/bookings/{created['id']}/cancel", headers=OWL)
    assert cancelled.status_code == HTTPStatus.NO_CONTENT
    assert client.get("/bookings/me", headers=OWL).json() == []


def test_cancel_past_shift_is_refused(client, seeded):
    created = _book(client, seeded.id, "2025-01-06T18:00:00Z").json()

    response = client.post(f"/bookings/{created['id']}/cancel", headers=OWL)

    assert response.status_code == HTTPStatus.BAD_REQUEST
    assert response.json()["code"] == "BOOKING_NOT_CANCELLABLE"


def test_attendance_owner_admin_and_stranger(client, seeded):
    created = _book(client, seeded.id, "2025-01-06T18:00:00Z").json()
    url = f"/bookings/{created['id']}/attendance"

    first = client.patch(url, json={"attended": True}, headers=OWL)
    assert first.status_code == HTTPStatus.OK
    checked_in_at = first.json()["checked_in_at"]
    assert checked_in_at is not None

    again = client.patch(url, json={"attended": True}, headers=OWL)
    assert again.json()["checked_in_at"] == checked_in_at

    stranger = client.patch(url, json={"attended": False}, headers=OTHER_OWL)
    assert stranger.status_code == HTTPStatus.FORBIDDEN
    assert stranger.json()["code"] == "FORBIDDEN"

    cleared = client.patch(url, json={"attended": False}, headers=ADMIN)
    assert cleared.status_code == HTTPStatus.OK
    assert cleared.json()["checked_in_at"] is None

    missing = client.patch("/bookings/9999/attendance", json={"attended": True}, headers=OWL)
    assert missing.status_code == HTTPStatus.NOT_FOUND


def test_admin_assign_unassign_roundtrip(client, seeded):
    slot = {"schedule_id": seeded.id, "start_time": "2025-01-08T18:00:00Z"}
    window = {"from": "2025-01-06T00:00:00Z", "to": "2025-01-10T00:00:00Z"}

    assigned = client.post("/admin/bookings/assign", json={**slot, "user_id": 42}, headers=ADMIN)
    assert assigned.status_code == HTTPStatus.CREATED
    assert assigned.json()["user_id"] == 42

    roster = client.get("/admin/shifts", params=window, headers=ADMIN).json()
    booked = [s for s in roster if s["is_booked"]]
    assert len(roster) == 5
    assert [(s["start_time"], s["user_id"]) for s in booked] == [("2025-01-08T18:00:00Z", 42)]

    user_bookings = client.get("/admin/users/42/bookings", headers=ADMIN)
    assert [b["id"] for b in user_bookings.json()] == [assigned.json()["id"]]

    unassigned = client.post("/admin/bookings/unassign", json=slot, headers=ADMIN)
    assert unassigned.status_code == HTTPStatus.NO_CONTENT

    available = client.get("/shifts/available", params=window).json()
    assert "2025-01-08T18:00:00Z" in [s["start_time"] for s in available]

    again = client.post("/admin/bookings/unassign", json=slot, headers=ADMIN)
    assert again.status_code == HTTPStatus.NOT_FOUND


def test_admin_assign_unknown_user(client, seeded):
    response = client.post(
        "/admin/bookings/assign",
        json={"user_id": 404, "schedule_id": seeded.id, "start_time": "2025-01-08T18:00:00Z"},
        headers=ADMIN,
    )

    assert response.status_code == HTTPStatus.NOT_FOUND
    assert response.json()["code"] == "USER_NOT_FOUND"


@pytest.mark.parametrize(
    "method, url",
    [
        ("get", "/admin/shifts"),
        ("post", "/admin/bookings/unassign"),
        ("get", "/admin/users/1/bookings"),
        ("get", "/admin/recurring-assignments"),
        ("post", "/schedules"),
        ("delete", "/schedules/1"),
    ],
)
def test_admin_routes_reject_non_admins(client, seeded, method, url):
    response = client.request(method, url, headers=OWL)

    assert response.status_code == HTTPStatus.FORBIDDEN


def test_schedule_crud(client):
    payload = {
        "name": "Weekend mornings",
        "cron_expr": "0 6,10 * * 6,0",
        "timezone": "Africa/Johannesburg",
        "start_date": "2025-01-01",
        "end_date": "2025-12-31",
    }

    created = client.post("/schedules", json=payload, headers=ADMIN)
    assert created.status_code == HTTPStatus.CREATED
    schedule = created.json()
    assert schedule["duration_minutes"] == 120

    listed = client.get("/schedules")
    assert [s["id"] for s in listed.json()] == [schedule["id"]]

    patched = client.patch(
        f"/schedules/{schedule['id']}", json={"duration_minutes": 180}, headers=ADMIN
    )
    assert patched.status_code == HTTPStatus.OK
    assert patched.json()["duration_minutes"] == 180

    deleted = client.delete(f"/schedules/{schedule['id']}", headers=ADMIN)
    assert deleted.status_code == HTTPStatus.NO_CONTENT
    assert client.get(f"/schedules/{schedule['id']}").status_code == HTTPStatus.NOT_FOUND


def test_schedule_with_impossible_rule_is_rejected(client):
    response = client.post(
        "/schedules",
        json={"name": "Never", "cron_expr": "0 0 30 2 *"},
        headers=ADMIN,
    )

    assert response.status_code == HTTPStatus.UNPROCESSABLE_ENTITY
    assert response.json()["code"] == "VALIDATION_ERROR"


def test_recurring_assignment_materialization(client, seeded):
    created = client.post(
        "/admin/recurring-assignments",
        json={
            "user_id": 42,
            "schedule_id": seeded.id,
            "day_of_week": 1,
            "time_slot": "18:00-20:00",
        },
        headers=ADMIN,
    )
    assert created.status_code == HTTPStatus.CREATED

    summary = client.post(
        "/admin/recurring-assignments/materialize",
        json={"from": "2025-01-06T00:00:00Z", "to": "2025-01-19T12:00:00Z"},
        headers=ADMIN,
    )
    assert summary.status_code == HTTPStatus.OK
    assert summary.json()["materialized"] == 2

    starts = [b["shift_start"] for b in client.get("/admin/users/42/bookings", headers=ADMIN).json()]
    assert starts == ["2025-01-13T18:00:00Z", "2025-01-06T18:00:00Z"]

    removed = client.delete(f"/admin/recurring-assignments/{created.json()['id']}", headers=ADMIN)
    assert removed.status_code == HTTPStatus.NO_CONTENT
    assert client.get("/admin/recurring-assignments", headers=ADMIN).json() == []


def test_app_builds_with_user_id_path_routes():
    from shiftwatch.main import create_app

    paths = {route.path for route in create_app().routes}

    assert "/admin/users/{user_id}/bookings" in paths


def test_user_bookings_path_id_is_independent_of_caller_id(client, seeded):
    created = _book(client, seeded.id, "2030-01-07T18:00:00Z", headers=OTHER_OWL).json()

    response = client.get("/admin/users/2/bookings", headers=ADMIN)

    assert response.status_code == HTTPStatus.OK
    assert [b["id"] for b in response.json()] == [created["id"]]
    assert response.json()[0]["user_id"] == 2
