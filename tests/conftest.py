from __future__ import annotations

import os
import tempfile
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

_DB_DIR = tempfile.mkdtemp(prefix="reservations-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'reservations.db')}"
os.environ["RESERVATIONS_API_KEY"] = "test-api-key"
os.environ["ADMIN_API_KEY"] = "test-admin-key"
os.environ["NOTIFICATIONS_ENABLED"] = "true"
os.environ["DEFAULT_TIMEZONE_OFFSET"] = "0"

from db.session import SessionLocal, engine  # noqa: E402
from reservations.models import (  # noqa: E402
    Base,
    Building,
    BuildingMember,
    Facility,
    FacilityOperatingHours,
    Household,
    HouseholdMember,
    User,
)

NOW = datetime(2025, 1, 1, 0, 0, tzinfo=timezone.utc)


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class RecordingDispatcher:
    def __init__(self):
        self.calls = []

    def notify(self, user_ids, message, metadata):
        self.calls.append((list(user_ids), message, dict(metadata)))


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def seed():
    with SessionLocal() as db:
        with db.begin():
            db.add_all(
                [
                    User(id="resident-1", email="chen@example.com"),
                    User(id="resident-2", email="lin@example.com"),
                    User(id="admin-1", email="admin@example.com"),
                    User(id="outsider", email="outsider@example.com"),
                    Building(id="b1", name="Riverside Tower"),
                    Building(id="b2", name="Harbour Court"),
                ]
            )
            db.flush()
            db.add_all(
                [
                    BuildingMember(user_id="admin-1", building_id="b1", role="ADMIN"),
                    BuildingMember(user_id="resident-2", building_id="b1", role="RESIDENT"),
                    Household(id="h-chen", building_id="b1", name="Chen", apartment_no="12A"),
                    Household(id="h-lin", building_id="b1", name=None, apartment_no="7F"),
                    Household(id="h-far", building_id="b2", name="Far Away", apartment_no="1B"),
                    Facility(id="room", building_id="b1", name="Meeting Room", capacity=None),
                    Facility(id="gym", building_id="b1", name="Gym", capacity=10),
                    Facility(id="hall", building_id="b1", name="Party Hall", capacity=None),
                ]
            )
            db.flush()
            db.add_all(
                [
                    HouseholdMember(user_id="resident-1", household_id="h-chen"),
                    HouseholdMember(user_id="resident-2", household_id="h-lin"),
                    HouseholdMember(user_id="resident-1", household_id="h-far"),
                    # Friday open, Saturday closed
                    FacilityOperatingHours(facility_id="room", day_of_week=5, open_time="09:00", close_time="18:00"),
                    FacilityOperatingHours(
                        facility_id="room", day_of_week=6, open_time="09:00", close_time="18:00", is_closed=True
                    ),
                ]
            )
            db.add_all(
                FacilityOperatingHours(facility_id="hall", day_of_week=day, open_time="09:00", close_time="18:00")
                for day in range(7)
            )
    return SimpleNamespace(
        resident="resident-1",
        neighbour="resident-2",
        admin="admin-1",
        outsider="outsider",
        household="h-chen",
        neighbour_household="h-lin",
        foreign_household="h-far",
    )
