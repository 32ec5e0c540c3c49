"""Error types raised by the reservation engine and their HTTP mapping."""

from __future__ import annotations

from typing import Any

from sqlalchemy.exc import IntegrityError, NoResultFound, SQLAlchemyError


class ReservationError(Exception):
    status_code = 400
    error_code = "RESERVATION_ERROR"

    def __init__(self, message: str, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"error": self.message, "errorCode": self.error_code}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(ReservationError):
    error_code = "VALIDATION_ERROR"


class NotFoundError(ReservationError):
    status_code = 404
    error_code = "NOT_FOUND"


class MembershipError(ReservationError):
    status_code = 403
    error_code = "MEMBERSHIP_ERROR"


class PermissionDeniedError(ReservationError):
    status_code = 403
    error_code = "PERMISSION_DENIED"


class ClosedDay(ReservationError):
    error_code = "FACILITY_CLOSED"


class OutsideOperatingHours(ReservationError):
    error_code = "OUTSIDE_OPERATING_HOURS"


class InvalidStateError(ReservationError):
    status_code = 409
    error_code = "INVALID_STATE"


class SlotUnavailableError(ReservationError):
    status_code = 409
    error_code = "SLOT_UNAVAILABLE"


class DatabaseError(ReservationError):
    status_code = 500
    error_code = "DATABASE_ERROR"


class DuplicateRecordError(DatabaseError):
    status_code = 409
    error_code = "DUPLICATE"


class MissingReferenceError(DatabaseError):
    status_code = 400
    error_code = "MISSING_REFERENCE"


class RecordNotFoundError(DatabaseError):
    status_code = 404
    error_code = "RECORD_NOT_FOUND"


def map_database_error(exc: SQLAlchemyError) -> DatabaseError:
    details = {"type": type(exc).__name__, "message": str(getattr(exc, "orig", None) or exc)}

    if isinstance(exc, NoResultFound):
        return RecordNotFoundError("Record not found.", details)

    if isinstance(exc, IntegrityError):
        text = details["message"].lower()
        if "unique" in text or "duplicate" in text:
            return DuplicateRecordError("A record with the same unique fields already exists.", details)
        if "foreign key" in text:
            return MissingReferenceError("A referenced record does not exist.", details)

    return DatabaseError("Database error while processing reservation.", details)
