"""Admission control and the approve / pending / reject decision.

Everything here is pure: callers pass in the overlap set already read from the
database, so the policy can be exercised without a session.
"""

from __future__ import annotations

import secrets
import string
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Callable, Sequence, Union

from reservations.schema import ConflictDetail, ConflictReservation, NextAvailable, RejectionCode

ACCESS_CODE_ALPHABET = string.ascii_uppercase + string.digits
ACCESS_CODE_LENGTH = 8


def generate_access_code() -> str:
    return "".join(secrets.choice(ACCESS_CODE_ALPHABET) for _ in range(ACCESS_CODE_LENGTH))


def people_of(reservation: Any) -> int:
    return getattr(reservation, "number_of_people", None) or 1


def household_label(reservation: Any) -> str | None:
    household = getattr(reservation, "household", None)
    if household is None:
        return None
    return getattr(household, "name", None) or getattr(household, "apartment_no", None)


def is_exclusive(capacity: int | None) -> bool:
    return not capacity or capacity <= 0


@dataclass(frozen=True)
class AdmissionResult:
    exclusive: bool
    has_overlap: bool
    has_conflict: bool
    capacity_exceeded: bool
    overlapping_people: int
    requested_people: int
    capacity: int | None

    @property
    def total_people(self) -> int:
        return self.overlapping_people + self.requested_people


def admit(overlaps: Sequence[Any], *, capacity: int | None, requested_people: int | None) -> AdmissionResult:
    requested = requested_people or 1
    has_overlap = len(overlaps) > 0

    if is_exclusive(capacity):
        return AdmissionResult(
            exclusive=True,
            has_overlap=has_overlap,
            has_conflict=has_overlap,
            capacity_exceeded=False,
            overlapping_people=sum(people_of(r) for r in overlaps),
            requested_people=requested,
            capacity=None,
        )

    overlapping_people = sum(people_of(r) for r in overlaps)
    return AdmissionResult(
        exclusive=False,
        has_overlap=has_overlap,
        has_conflict=False,
        capacity_exceeded=overlapping_people + requested > capacity,
        overlapping_people=overlapping_people,
        requested_people=requested,
        capacity=capacity,
    )


@dataclass(frozen=True)
class Approved:
    access_code: str
    status: str = "approved"


@dataclass(frozen=True)
class Pending:
    status: str = "pending"


@dataclass(frozen=True)
class Rejected:
    reason: str
    error_code: RejectionCode
    conflict: ConflictDetail
    next_available: NextAvailable | None = None
    status: str = "rejected"


Decision = Union[Approved, Pending, Rejected]


def conflict_rows(overlaps: Sequence[Any]) -> list[ConflictReservation]:
    return [
        ConflictReservation(
            reservation_id=str(r.id),
            household=household_label(r),
            apartment_no=getattr(getattr(r, "household", None), "apartment_no", None),
            start_time=r.start_time,
            end_time=r.end_time,
            number_of_people=people_of(r),
            status=r.status,
        )
        for r in overlaps
    ]


def decide(
    overlaps: Sequence[Any],
    *,
    capacity: int | None,
    requested_people: int | None,
    code_factory: Callable[[], str] = generate_access_code,
) -> Decision:
    """Classify a request given the active reservations that intersect it.

    Evaluated in order: exclusive facility with any overlap is rejected,
    capacity overflow is rejected, no overlap at all is approved, and an
    overlap that still fits within capacity waits for admin review.
    """
    ordered = sorted(overlaps, key=lambda r: r.start_time)
    admission = admit(ordered, capacity=capacity, requested_people=requested_people)

    if admission.exclusive and admission.has_conflict:
        first = ordered[0]
        label = household_label(first) or "another household"
        return Rejected(
            reason=f"Time slot occupied by {label}",
            error_code=RejectionCode.TIME_OCCUPIED,
            conflict=ConflictDetail(
                household=household_label(first),
                start_time=first.start_time,
                end_time=first.end_time,
                reservations=conflict_rows(ordered),
            ),
        )

    if admission.capacity_exceeded:
        return Rejected(
            reason=(
                f"Facility capacity exceeded. Current reservations: "
                f"{admission.overlapping_people}/{admission.capacity}, adding "
                f"{admission.requested_people} would exceed capacity."
            ),
            error_code=RejectionCode.CAPACITY_EXCEEDED,
            conflict=ConflictDetail(
                total_people=admission.overlapping_people,
                capacity=admission.capacity,
                new_reservation_people=admission.requested_people,
                reservations=conflict_rows(ordered),
            ),
        )

    if not admission.has_overlap:
        return Approved(access_code=code_factory())

    return Pending()


def append_note(existing: str | None, tag: str, text: str) -> str:
    return f"{existing or ''}\n[{tag}] {text}".strip()


def with_next_available(decision: Rejected, window: tuple[datetime, datetime] | None) -> Rejected:
    if window is None:
        return decision
    start_time, end_time = window
    return replace(decision, next_available=NextAvailable(start_time=start_time, end_time=end_time))
