"""Pydantic schemas for reservation requests, responses and admin flows."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from reservations.rules import ensure_utc, parse_hhmm


class ReservationStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class RejectionCode(str, Enum):
    TIME_OCCUPIED = "TIME_OCCUPIED"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class ReservationCreateRequest(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    household_id: str = Field(min_length=1)
    start_time: datetime
    end_time: datetime
    timezone_offset: Optional[int] = Field(default=None, ge=-840, le=840)
    purpose: Optional[str] = None
    notes: Optional[str] = None
    number_of_people: Optional[int] = Field(default=None, ge=1)

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_validator("purpose", "notes")
    @classmethod
    def blank_to_none(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value or None


class HouseholdSummary(CamelModel):
    id: str
    name: Optional[str] = None
    apartment_no: Optional[str] = None


class ReservationOut(CamelModel):
    id: str
    facility_id: str
    household_id: str
    requested_by: str
    start_time: datetime
    end_time: datetime
    number_of_people: Optional[int] = None
    status: ReservationStatus
    purpose: Optional[str] = None
    notes: Optional[str] = None
    access_code: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    household: Optional[HouseholdSummary] = None

    @field_validator("start_time", "end_time", "approved_at", "created_at")
    @classmethod
    def attach_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


class ConflictReservation(CamelModel):
    reservation_id: str
    household: Optional[str] = None
    apartment_no: Optional[str] = None
    start_time: datetime
    end_time: datetime
    number_of_people: int
    status: str

    @field_validator("start_time", "end_time")
    @classmethod
    def attach_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class ConflictDetail(CamelModel):
    household: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    total_people: Optional[int] = None
    capacity: Optional[int] = None
    new_reservation_people: Optional[int] = None
    reservations: list[ConflictReservation] = Field(default_factory=list)


class NextAvailable(CamelModel):
    start_time: datetime
    end_time: datetime

    @field_validator("start_time", "end_time")
    @classmethod
    def attach_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class ReservationCreatedResponse(CamelModel):
    success: bool = True
    message: str
    data: ReservationOut
    auto_approved: bool


class ReservationConflictResponse(CamelModel):
    success: bool = False
    error: str
    error_code: RejectionCode
    reservation: ReservationOut
    conflict: ConflictDetail
    next_available: Optional[NextAvailable] = None
    allow_front_desk_message: bool = True


class ReservationListResponse(CamelModel):
    success: bool = True
    data: list[ReservationOut]


class ReservationActionResponse(CamelModel):
    success: bool = True
    message: str
    data: ReservationOut


class AdminRejectRequest(CamelModel):
    reason: Optional[str] = None


class OperatingHoursEntry(CamelModel):
    day_of_week: int = Field(ge=0, le=6)
    open_time: str = Field(default="00:00", pattern=r"^\d{2}:\d{2}$")
    close_time: str = Field(default="23:59", pattern=r"^\d{2}:\d{2}$")
    is_closed: bool = False

    @model_validator(mode="after")
    def validate_window(self):
        open_minutes = parse_hhmm(self.open_time)
        close_minutes = parse_hhmm(self.close_time)
        if not self.is_closed and open_minutes >= close_minutes:
            raise ValueError("openTime must be earlier than closeTime.")
        return self


class OperatingHoursUpdateRequest(CamelModel):
    operating_hours: list[OperatingHoursEntry]

    @field_validator("operating_hours")
    @classmethod
    def one_entry_per_day(cls, value: list[OperatingHoursEntry]) -> list[OperatingHoursEntry]:
        days = [entry.day_of_week for entry in value]
        if len(days) != len(set(days)):
            raise ValueError("At most one operating-hours entry per day of week.")
        return value


class OperatingHoursResponse(CamelModel):
    success: bool = True
    message: Optional[str] = None
    data: list[OperatingHoursEntry]


class FacilityUpsertRequest(CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    building_id: str = Field(min_length=1)
    facility_id: Optional[str] = None
    name: str = Field(min_length=1)
    capacity: Optional[int] = Field(default=None, ge=0)
    is_active: bool = True


class FacilityOut(CamelModel):
    id: str
    building_id: str
    name: str
    capacity: Optional[int] = None
    is_active: bool


class FacilityUpsertResponse(CamelModel):
    success: bool = True
    data: FacilityOut
