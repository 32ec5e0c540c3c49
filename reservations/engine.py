"""Core reservation execution and admin review operations."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from app_logger import get_logger
from config import get_settings
from db.session import SessionLocal
from reservations.availability import ACTIVE_STATUSES, find_next_available, find_overlapping
from reservations.decision import (
    Approved,
    Rejected,
    admit,
    append_note,
    conflict_rows,
    decide,
    generate_access_code,
    with_next_available,
)
from reservations.errors import (
    ClosedDay,
    InvalidStateError,
    MembershipError,
    NotFoundError,
    OutsideOperatingHours,
    PermissionDeniedError,
    SlotUnavailableError,
    ValidationError,
    map_database_error,
)
from reservations.locks import facility_locks
from reservations.models import (
    Building,
    BuildingMember,
    Facility,
    FacilityOperatingHours,
    FacilityReservation,
    Household,
    HouseholdMember,
)
from reservations.notifications import (
    DatabaseNotificationDispatcher,
    NotificationDispatcher,
    NullNotificationDispatcher,
    dispatch_safely,
)
from reservations.rules import OperatingHoursResolver, ensure_utc
from reservations.schema import (
    AdminRejectRequest,
    FacilityOut,
    FacilityUpsertRequest,
    FacilityUpsertResponse,
    OperatingHoursEntry,
    OperatingHoursResponse,
    OperatingHoursUpdateRequest,
    ReservationActionResponse,
    ReservationConflictResponse,
    ReservationCreatedResponse,
    ReservationCreateRequest,
    ReservationListResponse,
    ReservationOut,
    ReservationStatus,
)

logger = get_logger("engine")

ADMIN_ROLES = ("ADMIN", "MANAGER")


def default_dispatcher() -> NotificationDispatcher:
    if get_settings().notifications_enabled:
        return DatabaseNotificationDispatcher(SessionLocal)
    return NullNotificationDispatcher()


def _validate(model, payload: dict, what: str):
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        details = [
            {"field": ".".join(str(part) for part in error["loc"]), "message": error["msg"]}
            for error in exc.errors()
        ]
        raise ValidationError(f"Invalid {what} payload.", details) from exc


def _load_facility(db, facility_id: str, *, lock: bool = False) -> Facility:
    stmt = select(Facility).where(Facility.id == facility_id, Facility.is_active.is_(True))
    if lock:
        stmt = stmt.with_for_update()
    facility = db.scalar(stmt)
    if not facility:
        raise NotFoundError("Facility not found.")
    return facility


def _require_household_access(db, *, facility: Facility, household_id: str, user_id: str) -> Household:
    membership = db.scalar(
        select(HouseholdMember).where(
            HouseholdMember.user_id == user_id,
            HouseholdMember.household_id == household_id,
        )
    )
    if not membership:
        raise MembershipError("You must be a member of the household to make a reservation.")

    household = db.get(Household, household_id)
    if not household or household.building_id != facility.building_id:
        raise MembershipError("Household does not belong to the same building as the facility.")
    return household


def _require_building_admin(db, *, user_id: str, building_id: str) -> None:
    membership = db.scalar(
        select(BuildingMember).where(
            BuildingMember.user_id == user_id,
            BuildingMember.building_id == building_id,
        )
    )
    if not membership or membership.role not in ADMIN_ROLES:
        raise PermissionDeniedError("Only building admins can manage facility reservations.")


def _household_member_ids(db, household_id: str) -> list[str]:
    return list(db.scalars(select(HouseholdMember.user_id).where(HouseholdMember.household_id == household_id)))


def _check_operating_hours(
    facility: Facility,
    *,
    start_time: datetime,
    end_time: datetime,
    timezone_offset: int,
) -> None:
    hours = {entry.day_of_week: entry for entry in facility.operating_hours}
    result = OperatingHoursResolver.check(
        start_time=start_time,
        end_time=end_time,
        timezone_offset=timezone_offset,
        operating_hours=hours,
    )
    if result.allowed:
        logger.debug("Operating hours check passed for facility %s: %s", facility.id, result.details)
        return

    logger.info("Operating hours check failed for facility %s: %s", facility.id, result.reason)
    if result.code == "closed":
        raise ClosedDay(result.reason, result.details)
    raise OutsideOperatingHours(result.reason, result.details)


def _dump(model) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True)


def create_reservation(
    facility_id: str,
    requested_by: str,
    payload: dict,
    *,
    now: datetime | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> dict[str, Any]:
    request = _validate(ReservationCreateRequest, payload, "reservation")
    now = ensure_utc(now) if now else datetime.now(timezone.utc)

    if request.start_time >= request.end_time:
        raise ValidationError("End time must be after start time.")
    if request.start_time < now:
        raise ValidationError("Start time must be in the future.")

    timezone_offset = request.timezone_offset
    if timezone_offset is None:
        timezone_offset = get_settings().default_timezone_offset

    # unknown ids are refused before they get a lock entry
    with SessionLocal() as db:
        facility_id = _load_facility(db, facility_id).id

    with facility_locks.hold(facility_id):
        with SessionLocal() as db:
            try:
                with db.begin():
                    facility = _load_facility(db, facility_id, lock=True)
                    household = _require_household_access(
                        db,
                        facility=facility,
                        household_id=request.household_id,
                        user_id=requested_by,
                    )
                    _check_operating_hours(
                        facility,
                        start_time=request.start_time,
                        end_time=request.end_time,
                        timezone_offset=timezone_offset,
                    )

                    overlaps = find_overlapping(
                        db,
                        facility_id=facility.id,
                        start_time=request.start_time,
                        end_time=request.end_time,
                    )
                    decision = decide(
                        overlaps,
                        capacity=facility.capacity,
                        requested_people=request.number_of_people,
                    )

                    reservation = FacilityReservation(
                        facility_id=facility.id,
                        household_id=household.id,
                        requested_by=requested_by,
                        start_time=request.start_time,
                        end_time=request.end_time,
                        number_of_people=request.number_of_people,
                        purpose=request.purpose,
                        notes=request.notes,
                        status=decision.status,
                    )
                    reservation.household = household

                    if isinstance(decision, Rejected):
                        decision = with_next_available(
                            decision,
                            find_next_available(db, facility_id=facility.id, overlaps=overlaps),
                        )
                        reservation.notes = append_note(request.notes, "Auto-rejected", decision.reason)
                    elif isinstance(decision, Approved):
                        reservation.access_code = decision.access_code
                        reservation.approved_by = requested_by
                        reservation.approved_at = now

                    db.add(reservation)
                    db.flush()

                    logger.info(
                        "Reservation %s for facility %s household %s [%s, %s): %s",
                        reservation.id,
                        facility.id,
                        household.id,
                        request.start_time.isoformat(),
                        request.end_time.isoformat(),
                        decision.status.upper(),
                    )

                    data = ReservationOut.model_validate(reservation)
                    facility_name = facility.name
                    recipients = _household_member_ids(db, household.id) if isinstance(decision, Approved) else []
            except SQLAlchemyError as exc:
                logger.exception("Database error while creating reservation for facility %s", facility_id)
                raise map_database_error(exc) from exc

    if isinstance(decision, Rejected):
        response = ReservationConflictResponse(
            error=decision.reason,
            error_code=decision.error_code,
            reservation=data,
            conflict=decision.conflict,
            next_available=decision.next_available,
        )
        result = _dump(response)
        if result.get("nextAvailable") is None:
            result.pop("nextAvailable", None)
        return result

    if isinstance(decision, Approved):
        dispatch_safely(
            dispatcher or default_dispatcher(),
            recipients,
            f"Your reservation for {facility_name} has been approved. Access code: {decision.access_code}",
            {
                "type": "facility_reservation_approved",
                "title": "Reservation Approved",
                "reservationId": data.id,
                "facilityId": facility_id,
            },
        )
        message = "Reservation approved automatically."
    else:
        message = "Reservation request created. Waiting for building admin approval."

    return _dump(ReservationCreatedResponse(message=message, data=data, auto_approved=isinstance(decision, Approved)))


def _facility_id_of(reservation_id: str) -> str:
    with SessionLocal() as db:
        facility_id = db.scalar(select(FacilityReservation.facility_id).where(FacilityReservation.id == reservation_id))
    if facility_id is None:
        raise NotFoundError("Reservation not found.")
    return facility_id


def _load_pending_for_review(db, reservation_id: str, admin_user_id: str) -> FacilityReservation:
    reservation = db.scalar(
        select(FacilityReservation).where(FacilityReservation.id == reservation_id).with_for_update()
    )
    if not reservation:
        raise NotFoundError("Reservation not found.")

    _require_building_admin(db, user_id=admin_user_id, building_id=reservation.facility.building_id)

    if reservation.status != ReservationStatus.PENDING.value:
        raise InvalidStateError("Reservation is not pending.", {"status": reservation.status})
    return reservation


def approve_reservation(
    reservation_id: str,
    admin_user_id: str,
    *,
    now: datetime | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> dict[str, Any]:
    now = ensure_utc(now) if now else datetime.now(timezone.utc)
    facility_id = _facility_id_of(reservation_id)

    with facility_locks.hold(facility_id):
        with SessionLocal() as db:
            try:
                with db.begin():
                    reservation = _load_pending_for_review(db, reservation_id, admin_user_id)

                    others = find_overlapping(
                        db,
                        facility_id=reservation.facility_id,
                        start_time=reservation.start_time,
                        end_time=reservation.end_time,
                        exclude_id=reservation.id,
                    )
                    admission = admit(
                        others,
                        capacity=reservation.facility.capacity,
                        requested_people=reservation.number_of_people,
                    )
                    if admission.has_conflict or admission.capacity_exceeded:
                        raise SlotUnavailableError(
                            "Time slot is no longer available.",
                            {
                                "totalPeople": admission.overlapping_people,
                                "capacity": admission.capacity,
                                "reservations": [
                                    row.model_dump(mode="json", by_alias=True) for row in conflict_rows(others)
                                ],
                            },
                        )

                    access_code = generate_access_code()
                    reservation.status = ReservationStatus.APPROVED.value
                    reservation.access_code = access_code
                    reservation.approved_by = admin_user_id
                    reservation.approved_at = now
                    db.flush()

                    data = ReservationOut.model_validate(reservation)
                    facility_name = reservation.facility.name
                    recipients = _household_member_ids(db, reservation.household_id)
            except SQLAlchemyError as exc:
                logger.exception("Database error while approving reservation %s", reservation_id)
                raise map_database_error(exc) from exc

    logger.info("Reservation %s approved by %s", reservation_id, admin_user_id)
    dispatch_safely(
        dispatcher or default_dispatcher(),
        recipients,
        f"Your reservation for {facility_name} has been approved. Access code: {access_code}",
        {
            "type": "facility_reservation_approved",
            "title": "Reservation Approved",
            "reservationId": reservation_id,
            "facilityId": facility_id,
        },
    )
    return _dump(ReservationActionResponse(message="Reservation approved successfully.", data=data))


def reject_reservation(
    reservation_id: str,
    admin_user_id: str,
    payload: dict | None = None,
    *,
    now: datetime | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> dict[str, Any]:
    request = _validate(AdminRejectRequest, payload or {}, "rejection")
    now = ensure_utc(now) if now else datetime.now(timezone.utc)
    facility_id = _facility_id_of(reservation_id)

    with facility_locks.hold(facility_id):
        with SessionLocal() as db:
            try:
                with db.begin():
                    reservation = _load_pending_for_review(db, reservation_id, admin_user_id)

                    # approvedBy/approvedAt stay empty on rejected rows
                    reservation.status = ReservationStatus.REJECTED.value
                    if request.reason:
                        reservation.notes = append_note(reservation.notes, "Admin Rejection Reason", request.reason)
                    reservation.notes = append_note(
                        reservation.notes, "Reviewed By", f"{admin_user_id} at {now.strftime('%Y-%m-%dT%H:%M:%SZ')}"
                    )
                    db.flush()

                    data = ReservationOut.model_validate(reservation)
                    facility_name = reservation.facility.name
                    recipients = _household_member_ids(db, reservation.household_id)
            except SQLAlchemyError as exc:
                logger.exception("Database error while rejecting reservation %s", reservation_id)
                raise map_database_error(exc) from exc

    logger.info("Reservation %s rejected by %s", reservation_id, admin_user_id)
    suffix = f" Reason: {request.reason}" if request.reason else ""
    dispatch_safely(
        dispatcher or default_dispatcher(),
        recipients,
        f"Your reservation for {facility_name} has been rejected.{suffix}",
        {
            "type": "facility_reservation_rejected",
            "title": "Reservation Rejected",
            "reservationId": reservation_id,
            "facilityId": facility_id,
        },
    )
    return _dump(ReservationActionResponse(message="Reservation rejected.", data=data))


def list_reservations(
    facility_id: str,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    include_pending: bool = False,
    status: str | None = None,
    household_id: str | None = None,
) -> dict[str, Any]:
    with SessionLocal() as db:
        _load_facility(db, facility_id)

        stmt = (
            select(FacilityReservation)
            .where(FacilityReservation.facility_id == facility_id)
            .order_by(FacilityReservation.start_time.asc())
        )
        if start and end:
            stmt = stmt.where(
                FacilityReservation.start_time <= ensure_utc(end),
                FacilityReservation.end_time >= ensure_utc(start),
            )
        if status:
            stmt = stmt.where(FacilityReservation.status == status)
        elif include_pending:
            stmt = stmt.where(FacilityReservation.status.in_((*ACTIVE_STATUSES, ReservationStatus.COMPLETED.value)))
        else:
            stmt = stmt.where(
                FacilityReservation.status.in_((ReservationStatus.APPROVED.value, ReservationStatus.COMPLETED.value))
            )
        if household_id:
            stmt = stmt.where(FacilityReservation.household_id == household_id)

        rows = list(db.scalars(stmt))
        return _dump(ReservationListResponse(data=[ReservationOut.model_validate(row) for row in rows]))


def get_operating_hours(facility_id: str) -> dict[str, Any]:
    with SessionLocal() as db:
        facility = _load_facility(db, facility_id)
        entries = [OperatingHoursEntry.model_validate(entry) for entry in facility.operating_hours]
        return _dump(OperatingHoursResponse(data=entries))


def update_operating_hours(facility_id: str, admin_user_id: str, payload: dict) -> dict[str, Any]:
    request = _validate(OperatingHoursUpdateRequest, payload, "operating hours")

    with SessionLocal() as db:
        try:
            with db.begin():
                facility = _load_facility(db, facility_id)
                _require_building_admin(db, user_id=admin_user_id, building_id=facility.building_id)

                existing = {entry.day_of_week: entry for entry in facility.operating_hours}
                for item in request.operating_hours:
                    entry = existing.get(item.day_of_week)
                    if entry is None:
                        entry = FacilityOperatingHours(facility_id=facility.id, day_of_week=item.day_of_week)
                        facility.operating_hours.append(entry)
                    entry.open_time = item.open_time
                    entry.close_time = item.close_time
                    entry.is_closed = item.is_closed
                db.flush()

                entries = [
                    OperatingHoursEntry.model_validate(entry)
                    for entry in sorted(facility.operating_hours, key=lambda e: e.day_of_week)
                ]
        except SQLAlchemyError as exc:
            logger.exception("Database error while updating operating hours for facility %s", facility_id)
            raise map_database_error(exc) from exc

    return _dump(OperatingHoursResponse(message="Operating hours updated successfully.", data=entries))


def upsert_facility(payload: dict) -> dict[str, Any]:
    model = _validate(FacilityUpsertRequest, payload, "facility")

    with SessionLocal() as db:
        try:
            with db.begin():
                if not db.get(Building, model.building_id):
                    raise NotFoundError("Building not found.")

                facility = db.get(Facility, model.facility_id) if model.facility_id else None
                if facility:
                    if facility.building_id != model.building_id:
                        raise ValidationError("Facility belongs to a different building.")
                    facility.name = model.name
                    facility.capacity = model.capacity
                    facility.is_active = model.is_active
                else:
                    facility = Facility(
                        building_id=model.building_id,
                        name=model.name,
                        capacity=model.capacity,
                        is_active=model.is_active,
                    )
                    if model.facility_id:
                        facility.id = model.facility_id
                    db.add(facility)

                db.flush()
                data = FacilityOut.model_validate(facility)
        except SQLAlchemyError as exc:
            logger.exception("Database error while upserting facility")
            raise map_database_error(exc) from exc

    return _dump(FacilityUpsertResponse(data=data))
