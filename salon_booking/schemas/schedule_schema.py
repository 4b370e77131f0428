"""Shift, absence, booking and contact data models."""

from datetime import date, time
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field, field_validator, model_validator

from salon_booking.schemas.interval import TimeInterval
from salon_booking.utils import at_local_time, day_bounds


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"


# Statuses that free the slot again
NON_BLOCKING_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.NO_SHOW})

# Statuses that still receive reminders
REMINDABLE_STATUSES = frozenset({BookingStatus.PENDING, BookingStatus.CONFIRMED})


class ReminderKind(str, Enum):
    DAY_BEFORE = "24h"
    TWO_HOURS = "2h"


# Booking attribute holding the idempotency flag of each reminder window
REMINDER_FLAG_FIELDS: dict[ReminderKind, str] = {
    ReminderKind.DAY_BEFORE: "reminder_sent",
    ReminderKind.TWO_HOURS: "reminder_2h_sent",
}


class WorkShift(BaseModel):
    """Recurring weekly working block (or break) for an employee."""

    employee_id: str
    day_of_week: int = Field(ge=1, le=7)
    start_time: time
    end_time: time
    is_break: bool = False

    @model_validator(mode="after")
    def _check_order(self) -> "WorkShift":
        if self.start_time >= self.end_time:
            raise ValueError("Shift start_time must be before end_time")
        return self

    def interval_on(self, day: date, tz: ZoneInfo) -> TimeInterval:
        """Project the shift onto a concrete local date."""
        return TimeInterval(
            start=at_local_time(day, self.start_time, tz),
            end=at_local_time(day, self.end_time, tz),
        )


class Absence(BaseModel):
    """Time off covering whole days, ``start_date`` through ``end_date`` inclusive."""

    employee_id: str
    start_date: date
    end_date: date
    approved: bool = False
    reason: Optional[str] = None

    @model_validator(mode="after")
    def _check_order(self) -> "Absence":
        if self.start_date > self.end_date:
            raise ValueError("Absence start_date must not be after end_date")
        return self

    def interval(self, tz: ZoneInfo) -> TimeInterval:
        start, _ = day_bounds(self.start_date, tz)
        _, end = day_bounds(self.end_date, tz)
        return TimeInterval(start=start, end=end)


class Booking(BaseModel):
    """An appointment of a client with one employee."""

    id: str
    employee_id: str
    client_id: str
    interval: TimeInterval
    status: BookingStatus = BookingStatus.PENDING
    service_name: str = ""
    reminder_sent: bool = False
    reminder_2h_sent: bool = False
    calendar_event_id: Optional[str] = None

    @field_validator("interval")
    @classmethod
    def _check_interval(cls, value: TimeInterval) -> TimeInterval:
        return value.require_valid()

    @property
    def occupies_slot(self) -> bool:
        return self.status not in NON_BLOCKING_STATUSES

    @property
    def receives_reminders(self) -> bool:
        return self.status in REMINDABLE_STATUSES

    def reminder_flag(self, kind: ReminderKind) -> bool:
        return getattr(self, REMINDER_FLAG_FIELDS[kind])


class Contact(BaseModel):
    """Addressing data for a client or employee."""

    user_id: str
    name: str
    email: Optional[str] = None


class DeviceToken(BaseModel):
    """A registered push-notification device token."""

    user_id: str
    token: str
    active: bool = True
