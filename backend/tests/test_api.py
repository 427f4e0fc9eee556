"""HTTP API over the SQL repositories with an in-memory calendar."""

import pytest
from fastapi.testclient import TestClient

from factories import ALICE, BOB, HAIRCUT, MONDAY
from staffbook.config import Settings, get_settings
from staffbook.dependencies import get_calendar, get_uow
from staffbook.main import app
from staffbook.repos.sql import SqlUnitOfWork
from staffbook.services.availability_check import REASON_BOOKING_CONFLICT
from staffbook.services.external_calendar import InMemoryCalendar


@pytest.fixture()
def settings():
    return Settings(business_timezone="UTC")


@pytest.fixture()
def client(db, settings):
    calendar = InMemoryCalendar()
    app.dependency_overrides[get_uow] = lambda: SqlUnitOfWork(db)
    app.dependency_overrides[get_calendar] = lambda: calendar
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def _booking_payload(**overrides) -> dict:
    payload = {
        "service_id": HAIRCUT,
        "staff_id": ALICE,
        "date": MONDAY,
        "time": "10:00",
        "timezone": "UTC",
        "client_name": "Jane Doe",
        "client_email": "jane@example.com",
    }
    payload.update(overrides)
    return payload


def test_health(client: TestClient):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_list_slots(client: TestClient):
    resp = client.get("/slots", params={"service_id": HAIRCUT, "date": MONDAY})
    assert resp.status_code == 200
    body = resp.json()

    assert body["timezone"] == "UTC"
    assert len(body["slots"]) == 31
    assert body["slots"][0] == {"time": "09:00", "staff_id": ALICE, "staff_name": "Alice"}


def test_list_slots_for_staff(client: TestClient):
    resp = client.get("/slots", params={"service_id": HAIRCUT, "date": MONDAY, "staff_id": BOB})
    assert resp.status_code == 200
    assert {slot["staff_id"] for slot in resp.json()["slots"]} == {BOB}


def test_list_slots_unknown_service(client: TestClient):
    resp = client.get("/slots", params={"service_id": 42, "date": MONDAY})
    assert resp.status_code == 404
    assert resp.json()["details"] == []


def test_list_slots_without_business_timezone(client: TestClient, settings):
    settings.business_timezone = None

    resp = client.get("/slots", params={"service_id": HAIRCUT, "date": MONDAY})
    assert resp.status_code == 400
    assert resp.json()["error"] == "Server configuration error [Timezone]."


def test_availability_check(client: TestClient):
    resp = client.post(
        "/availability/check",
        json={
            "staff_id": ALICE,
            "start_utc": "2030-01-07T10:00:00Z",
            "end_utc": "2030-01-07T10:30:00Z",
        },
    )
    assert resp.status_code == 200
    assert resp.json() == {"available": True, "reasons": []}


def test_availability_check_rejects_naive_times(client: TestClient):
    resp = client.post(
        "/availability/check",
        json={
            "staff_id": ALICE,
            "start_utc": "2030-01-07T10:00:00",
            "end_utc": "2030-01-07T10:30:00",
        },
    )
    assert resp.status_code == 400


def test_create_booking_then_conflict(client: TestClient):
    resp = client.post("/bookings", json=_booking_payload())
    assert resp.status_code == 201
    body = resp.json()
    assert body["message"] == "Booking confirmed successfully!"
    assert body["start_utc"].startswith("2030-01-07T10:00:00")
    assert body["warnings"] == []

    resp = client.post("/bookings", json=_booking_payload(time="10:15"))
    assert resp.status_code == 409
    assert resp.json() == {
        "error": "Sorry, the selected time slot is no longer available.",
        "details": [REASON_BOOKING_CONFLICT],
    }

    check = client.post(
        "/availability/check",
        json={
            "staff_id": ALICE,
            "start_utc": "2030-01-07T10:00:00Z",
            "end_utc": "2030-01-07T10:30:00Z",
        },
    )
    assert check.json()["available"] is False


def test_create_booking_missing_fields(client: TestClient):
    payload = _booking_payload()
    del payload["client_email"]

    resp = client.post("/bookings", json=payload)
    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid request."


def test_create_booking_bad_time(client: TestClient):
    resp = client.post("/bookings", json=_booking_payload(time="10h00"))
    assert resp.status_code == 400


def test_reschedule_and_cancel(client: TestClient):
    booking_id = client.post("/bookings", json=_booking_payload()).json()["booking_id"]

    resp = client.put(
        f"/bookings/{booking_id}/reschedule",
        json={"new_date": MONDAY, "new_time": "15:00", "note": "Client asked"},
    )
    assert resp.status_code == 200
    assert resp.json()["start_utc"].startswith("2030-01-07T15:00:00")

    resp = client.put(f"/bookings/{booking_id}/cancel", json={"note": "No longer needed"})
    assert resp.status_code == 200
    assert resp.json()["message"] == f"Booking {booking_id} cancelled successfully."

    resp = client.put(f"/bookings/{booking_id}/cancel", json={})
    assert resp.status_code == 409
    assert resp.json()["error"] == "Booking already in terminal status: cancelled."

    resp = client.put(
        f"/bookings/{booking_id}/reschedule",
        json={"new_date": MONDAY, "new_time": "16:00"},
    )
    assert resp.status_code == 409


def test_cancel_unknown_booking(client: TestClient):
    resp = client.put("/bookings/999/cancel", json={})
    assert resp.status_code == 404
    assert resp.json()["error"] == "Booking 999 not found."
