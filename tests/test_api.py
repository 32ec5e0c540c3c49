from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from api_server import app

RESIDENT_HEADERS = {"X-API-Key": "test-api-key", "X-User-Id": "resident-1"}
NEIGHBOUR_HEADERS = {"X-API-Key": "test-api-key", "X-User-Id": "resident-2"}
ADMIN_HEADERS = {"X-Admin-API-Key": "test-admin-key", "X-User-Id": "admin-1"}


@pytest.fixture
def client():
    return TestClient(app)


def future_slot(hour: int, minutes: int = 60):
    day = (datetime.now(timezone.utc) + timedelta(days=30)).date()
    start = datetime(day.year, day.month, day.day, hour, tzinfo=timezone.utc)
    end = start + timedelta(minutes=minutes)
    return start.isoformat().replace("+00:00", "Z"), end.isoformat().replace("+00:00", "Z")


def body(household_id="h-chen", hour=10, **extra):
    start, end = future_slot(hour)
    payload = {"householdId": household_id, "startTime": start, "endTime": end, "timezoneOffset": 0}
    payload.update(extra)
    return payload


def test_health_live(client):
    response = client.get("/health/live")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_requires_api_key(client, seed):
    response = client.post("/v1/facilities/hall/reservations", json=body(), headers={"X-User-Id": "resident-1"})
    assert response.status_code == 401


def test_requires_caller_identity(client, seed):
    response = client.post("/v1/facilities/hall/reservations", json=body(), headers={"X-API-Key": "test-api-key"})
    assert response.status_code == 401


def test_approved_then_conflicting_booking(client, seed):
    first = client.post("/v1/facilities/hall/reservations", json=body(), headers=RESIDENT_HEADERS)
    assert first.status_code == 200
    assert first.json()["autoApproved"] is True
    assert len(first.json()["data"]["accessCode"]) == 8

    second = client.post(
        "/v1/facilities/hall/reservations",
        json=body(household_id="h-lin", purpose="Book club"),
        headers=NEIGHBOUR_HEADERS,
    )
    assert second.status_code == 409
    payload = second.json()
    assert payload["success"] is False
    assert payload["errorCode"] == "TIME_OCCUPIED"
    assert payload["allowFrontDeskMessage"] is True
    assert payload["reservation"]["status"] == "rejected"
    assert payload["reservation"]["purpose"] == "Book club"


def test_outside_operating_hours_is_a_bad_request(client, seed):
    response = client.post("/v1/facilities/hall/reservations", json=body(hour=7), headers=RESIDENT_HEADERS)
    assert response.status_code == 400
    payload = response.json()
    assert payload["errorCode"] == "OUTSIDE_OPERATING_HOURS"
    assert payload["details"]["violatedBound"] == "open"


def test_invalid_payload_is_a_bad_request(client, seed):
    response = client.post(
        "/v1/facilities/hall/reservations",
        json={"householdId": "h-chen", "startTime": "tomorrow"},
        headers=RESIDENT_HEADERS,
    )
    assert response.status_code == 400
    assert response.json()["errorCode"] == "VALIDATION_ERROR"


def test_non_member_is_forbidden(client, seed):
    response = client.post(
        "/v1/facilities/hall/reservations",
        json=body(household_id="h-lin"),
        headers=RESIDENT_HEADERS,
    )
    assert response.status_code == 403
    assert response.json()["errorCode"] == "MEMBERSHIP_ERROR"


def test_admin_review_flow(client, seed):
    client.post("/v1/facilities/gym/reservations", json=body(numberOfPeople=4), headers=RESIDENT_HEADERS)
    pending = client.post(
        "/v1/facilities/gym/reservations",
        json=body(household_id="h-lin", numberOfPeople=3),
        headers=NEIGHBOUR_HEADERS,
    ).json()
    assert pending["data"]["status"] == "pending"
    reservation_id = pending["data"]["id"]

    listed = client.get(
        "/v1/facilities/gym/reservations",
        params={"includePending": "true"},
        headers=RESIDENT_HEADERS,
    )
    assert len(listed.json()["data"]) == 2

    denied = client.post(f"/v1/reservations/{reservation_id}/approve", headers={**ADMIN_HEADERS, "X-User-Id": "resident-2"})
    assert denied.status_code == 403

    approved = client.post(f"/v1/reservations/{reservation_id}/approve", headers=ADMIN_HEADERS)
    assert approved.status_code == 200
    assert approved.json()["data"]["status"] == "approved"

    again = client.post(f"/v1/reservations/{reservation_id}/reject", json={"reason": "late"}, headers=ADMIN_HEADERS)
    assert again.status_code == 409
    assert again.json()["errorCode"] == "INVALID_STATE"


def test_operating_hours_endpoints(client, seed):
    update = client.put(
        "/v1/facilities/gym/operating-hours",
        json={"operatingHours": [{"dayOfWeek": 0, "isClosed": True}]},
        headers=ADMIN_HEADERS,
    )
    assert update.status_code == 200

    fetched = client.get("/v1/facilities/gym/operating-hours", headers=RESIDENT_HEADERS)
    assert fetched.json()["data"][0]["isClosed"] is True


def test_admin_creates_facility(client, seed):
    response = client.post(
        "/v1/admin/facilities",
        json={"buildingId": "b1", "name": "Rooftop BBQ"},
        headers=ADMIN_HEADERS,
    )
    assert response.status_code == 200
    assert response.json()["data"]["capacity"] is None
