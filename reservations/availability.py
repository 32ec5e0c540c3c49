"""Overlap lookup and next-boundary search for facility reservations."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from sqlalchemy import Select, select
from sqlalchemy.orm import Session, joinedload

from reservations.models import FacilityReservation

ACTIVE_STATUSES = ("pending", "approved")


def overlap_query(*, facility_id, start_time: datetime, end_time: datetime, exclude_id: str | None = None) -> Select:
    stmt = (
        select(FacilityReservation)
        .options(joinedload(FacilityReservation.household))
        .where(
            FacilityReservation.facility_id == facility_id,
            FacilityReservation.status.in_(ACTIVE_STATUSES),
            FacilityReservation.start_time < end_time,
            FacilityReservation.end_time > start_time,
        )
        .order_by(FacilityReservation.start_time.asc())
    )
    if exclude_id is not None:
        stmt = stmt.where(FacilityReservation.id != exclude_id)
    return stmt


def find_overlapping(
    db: Session,
    *,
    facility_id,
    start_time: datetime,
    end_time: datetime,
    exclude_id: str | None = None,
) -> list[FacilityReservation]:
    stmt = overlap_query(
        facility_id=facility_id,
        start_time=start_time,
        end_time=end_time,
        exclude_id=exclude_id,
    )
    return list(db.scalars(stmt).unique())


def latest_ending(overlaps: Iterable[FacilityReservation]) -> FacilityReservation | None:
    return max(overlaps, key=lambda reservation: reservation.end_time, default=None)


def next_reservation_after(db: Session, *, facility_id, after: datetime) -> FacilityReservation | None:
    stmt = (
        select(FacilityReservation)
        .where(
            FacilityReservation.facility_id == facility_id,
            FacilityReservation.status.in_(ACTIVE_STATUSES),
            FacilityReservation.start_time > after,
        )
        .order_by(FacilityReservation.start_time.asc())
        .limit(1)
    )
    return db.scalar(stmt)


def find_next_available(
    db: Session,
    *,
    facility_id,
    overlaps: Iterable[FacilityReservation],
) -> tuple[datetime, datetime] | None:
    """Best-effort hint: the next reservation boundary after the conflict set.

    This is not a free-interval search; the returned window is the first
    active reservation starting after the latest-ending conflict.
    """
    latest = latest_ending(overlaps)
    if latest is None:
        return None
    upcoming = next_reservation_after(db, facility_id=facility_id, after=latest.end_time)
    if upcoming is None:
        return None
    return upcoming.start_time, upcoming.end_time
