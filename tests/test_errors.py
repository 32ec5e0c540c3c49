from sqlalchemy.exc import IntegrityError, NoResultFound, OperationalError

from reservations.errors import (
    DatabaseError,
    DuplicateRecordError,
    MissingReferenceError,
    RecordNotFoundError,
    SlotUnavailableError,
    map_database_error,
)
from reservations.locks import FacilityLockRegistry


def test_unique_violation_maps_to_duplicate():
    exc = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: facility_operating_hours.day_of_week"))
    mapped = map_database_error(exc)
    assert isinstance(mapped, DuplicateRecordError)
    assert mapped.status_code == 409
    assert mapped.details["type"] == "IntegrityError"


def test_foreign_key_violation_maps_to_missing_reference():
    exc = IntegrityError("INSERT", {}, Exception("FOREIGN KEY constraint failed"))
    assert isinstance(map_database_error(exc), MissingReferenceError)


def test_no_result_maps_to_record_not_found():
    assert isinstance(map_database_error(NoResultFound()), RecordNotFoundError)


def test_unknown_errors_keep_underlying_message():
    mapped = map_database_error(OperationalError("SELECT 1", {}, Exception("database is locked")))
    assert type(mapped) is DatabaseError
    assert mapped.status_code == 500
    assert mapped.details["message"] == "database is locked"


def test_error_payload_shape():
    error = SlotUnavailableError("Time slot is no longer available.", {"capacity": 10})
    assert error.to_payload() == {
        "error": "Time slot is no longer available.",
        "errorCode": "SLOT_UNAVAILABLE",
        "details": {"capacity": 10},
    }


def test_lock_registry_reuses_lock_per_facility():
    registry = FacilityLockRegistry()
    assert registry.lock_for("gym") is registry.lock_for("gym")
    assert registry.lock_for("gym") is not registry.lock_for("room")

    with registry.hold("gym"):
        assert registry.lock_for("gym").locked()
        assert not registry.lock_for("room").locked()
    assert not registry.lock_for("gym").locked()
