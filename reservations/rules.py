"""Operating-hours evaluation for facility reservations.

Operating hours are stored as wall-clock ``HH:MM`` strings per day of week
(0=Sunday .. 6=Saturday). Requests arrive as UTC instants together with the
client's timezone offset in minutes, where ``local = utc + offset``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Protocol

DAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


class OperatingHoursLike(Protocol):
    open_time: str
    close_time: str
    is_closed: bool


@dataclass
class RuleCheckResult:
    allowed: bool
    reason: str | None = None
    code: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_hhmm(value: str) -> int:
    """Minutes since midnight for an ``HH:MM`` string."""
    hours, minutes = value.strip().split(":")[:2]
    hour, minute = int(hours), int(minutes)
    if not (0 <= hour <= 24 and 0 <= minute < 60) or hour * 60 + minute > 24 * 60:
        raise ValueError(f"Invalid HH:MM time: {value!r}")
    return hour * 60 + minute


def format_minutes(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


class OperatingHoursResolver:
    @staticmethod
    def day_of_week(instant: datetime) -> int:
        # UTC calendar date, independent of the host timezone
        weekday = ensure_utc(instant).date().weekday()
        return (weekday + 1) % 7

    @staticmethod
    def local_instant(instant: datetime, timezone_offset: int) -> datetime:
        return ensure_utc(instant) + timedelta(minutes=timezone_offset)

    @classmethod
    def local_minutes(cls, instant: datetime, timezone_offset: int) -> int:
        shifted = cls.local_instant(instant, timezone_offset)
        return shifted.hour * 60 + shifted.minute

    @classmethod
    def check(
        cls,
        *,
        start_time: datetime,
        end_time: datetime,
        timezone_offset: int,
        operating_hours: Mapping[int, OperatingHoursLike],
    ) -> RuleCheckResult:
        day = cls.day_of_week(start_time)
        entry = operating_hours.get(day)
        if entry is None:
            return RuleCheckResult(allowed=True)

        if entry.is_closed:
            return RuleCheckResult(
                allowed=False,
                code="closed",
                reason=f"Facility is closed on {DAY_NAMES[day]}.",
                details={"dayOfWeek": day, "day": DAY_NAMES[day]},
            )

        open_minutes = parse_hhmm(entry.open_time)
        close_minutes = parse_hhmm(entry.close_time)
        local_start = cls.local_instant(start_time, timezone_offset)
        local_end = cls.local_instant(end_time, timezone_offset)
        start_minutes = local_start.hour * 60 + local_start.minute
        # measured from the local start date, so an interval crossing midnight ends past 24:00
        end_minutes = (
            local_end.hour * 60 + local_end.minute + 1440 * (local_end.date() - local_start.date()).days
        )

        window = f"{entry.open_time} - {entry.close_time}"
        details = {
            "requestedStart": format_minutes(start_minutes),
            "requestedEnd": format_minutes(end_minutes % 1440),
            "operatingHours": window,
            "suggestedTimes": {"earliest": entry.open_time, "latest": entry.close_time},
        }

        if start_minutes < open_minutes:
            details["violatedBound"] = "open"
            return RuleCheckResult(
                allowed=False,
                code="outside_hours",
                reason=(
                    f"Reservation must be within operating hours ({window}): "
                    f"start {details['requestedStart']} is before opening time {entry.open_time}."
                ),
                details=details,
            )

        if end_minutes > close_minutes:
            details["violatedBound"] = "close"
            return RuleCheckResult(
                allowed=False,
                code="outside_hours",
                reason=(
                    f"Reservation must be within operating hours ({window}): "
                    f"end {details['requestedEnd']} is after closing time {entry.close_time}."
                ),
                details=details,
            )

        return RuleCheckResult(allowed=True, details=details)
