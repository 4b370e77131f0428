"""
Collaborator interfaces the booking core is written against.

Persistence, the device-token registry and the contact directory are
owned elsewhere; the core only sees these protocols. Concrete instances
are constructed once at process start and injected.
"""

from typing import Iterable, Optional, Protocol

from salon_booking.repository.predicates import BookingFilter
from salon_booking.schemas.interval import TimeInterval
from salon_booking.schemas.schedule_schema import (
    Absence,
    Booking,
    BookingStatus,
    Contact,
    ReminderKind,
    WorkShift,
)


class ScheduleRepository(Protocol):
    """Source of shifts, absences and bookings, and the atomic insert boundary."""

    def employee_exists(self, employee_id: str) -> bool:
        ...

    def get_shifts(self, employee_id: str) -> list[WorkShift]:
        ...

    def get_absences(self, employee_id: str, interval: TimeInterval) -> list[Absence]:
        """Absences of any approval state whose days touch ``interval``."""
        ...

    def get_overlapping_bookings(
        self, employee_id: str, interval: TimeInterval, excluding: Optional[str] = None
    ) -> list[Booking]:
        """Bookings of any status overlapping ``interval``, minus ``excluding``."""
        ...

    def query_bookings(self, booking_filter: BookingFilter) -> list[Booking]:
        ...

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        ...

    def insert_booking(self, booking: Booking) -> Booking:
        """Atomically insert as confirmed, or raise ConflictError."""
        ...

    def reschedule_booking(self, booking_id: str, interval: TimeInterval) -> Booking:
        """Atomically move a booking, or raise ConflictError."""
        ...

    def set_status(self, booking_id: str, status: BookingStatus) -> Booking:
        ...

    def set_calendar_event_id(self, booking_id: str, event_id: Optional[str]) -> None:
        ...

    def mark_reminder_sent(self, booking_id: str, kind: ReminderKind) -> None:
        ...


class DeviceTokenStore(Protocol):
    """Registry of push device tokens per user."""

    def active_tokens(self, user_id: str) -> list[str]:
        ...

    def deactivate(self, tokens: Iterable[str]) -> int:
        """Deactivate the given tokens; returns how many were active."""
        ...


class ContactDirectory(Protocol):
    def get_contact(self, user_id: str) -> Optional[Contact]:
        ...
