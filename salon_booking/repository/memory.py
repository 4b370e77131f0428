"""
In-memory schedule store, device-token registry and contact directory.

In production these are backed by the salon's database. The in-memory
versions keep the same contracts, including the serialized insert that
makes check-and-insert atomic, and are used by the console demo and
the test-suite.
"""

import logging
import threading
from typing import Iterable, Optional
from zoneinfo import ZoneInfo

from salon_booking.config import settings
from salon_booking.errors import ConflictError, NotFoundError
from salon_booking.repository.predicates import BookingFilter, occupying_bookings
from salon_booking.schemas.interval import TimeInterval
from salon_booking.schemas.schedule_schema import (
    REMINDER_FLAG_FIELDS,
    Absence,
    Booking,
    BookingStatus,
    Contact,
    DeviceToken,
    ReminderKind,
    WorkShift,
)
from salon_booking.utils import normalize_email, to_local

logger = logging.getLogger(__name__)


class InMemoryScheduleRepository:
    """Dict-backed ScheduleRepository guarded by a single lock."""

    def __init__(self, tz: Optional[ZoneInfo] = None) -> None:
        self._tz = tz or settings.business.tz
        self._lock = threading.Lock()
        self._employees: set[str] = set()
        self._shifts: dict[str, list[WorkShift]] = {}
        self._absences: dict[str, list[Absence]] = {}
        self._bookings: dict[str, Booking] = {}

    # ------------------------------------------------------------------ #
    # Seeding (schedule management lives outside the core)
    # ------------------------------------------------------------------ #

    def add_employee(self, employee_id: str) -> None:
        with self._lock:
            self._employees.add(employee_id)

    def add_shift(self, shift: WorkShift) -> None:
        with self._lock:
            self._employees.add(shift.employee_id)
            self._shifts.setdefault(shift.employee_id, []).append(shift)

    def add_absence(self, absence: Absence) -> None:
        with self._lock:
            self._absences.setdefault(absence.employee_id, []).append(absence)

    def add_booking(self, booking: Booking) -> None:
        """Store a booking without the conflict guard, for seeding."""
        stored = self._localized(booking)
        with self._lock:
            self._bookings[booking.id] = stored

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def employee_exists(self, employee_id: str) -> bool:
        with self._lock:
            return employee_id in self._employees

    def get_shifts(self, employee_id: str) -> list[WorkShift]:
        with self._lock:
            return list(self._shifts.get(employee_id, []))

    def get_absences(self, employee_id: str, interval: TimeInterval) -> list[Absence]:
        with self._lock:
            absences = list(self._absences.get(employee_id, []))
        return [a for a in absences if a.interval(self._tz).overlaps(interval)]

    def get_overlapping_bookings(
        self, employee_id: str, interval: TimeInterval, excluding: Optional[str] = None
    ) -> list[Booking]:
        return self.query_bookings(
            BookingFilter(
                employee_id=employee_id,
                overlapping=interval,
                excluding_ids=frozenset({excluding}) if excluding else frozenset(),
            )
        )

    def query_bookings(self, booking_filter: BookingFilter) -> list[Booking]:
        # Writers mutate stored records in place, so copy under the lock
        with self._lock:
            matched = [
                b.model_copy(deep=True)
                for b in self._bookings.values()
                if booking_filter.matches(b)
            ]
        matched.sort(key=lambda b: b.interval.start)
        return matched

    def get_booking(self, booking_id: str) -> Optional[Booking]:
        with self._lock:
            booking = self._bookings.get(booking_id)
            return booking.model_copy(deep=True) if booking else None

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def insert_booking(self, booking: Booking) -> Booking:
        with self._lock:
            if booking.employee_id not in self._employees:
                raise NotFoundError(f"Employee {booking.employee_id} not found.")
            if booking.id in self._bookings:
                raise ConflictError(f"Booking {booking.id} already exists.", (booking.id,))
            stored = self._localized(booking, status=BookingStatus.CONFIRMED)
            self._raise_on_conflict(stored.employee_id, stored.interval, stored.id)
            self._bookings[stored.id] = stored
        logger.info(
            "Booking inserted: %s for employee %s at %s",
            stored.id, stored.employee_id, stored.interval,
        )
        return stored.model_copy(deep=True)

    def reschedule_booking(self, booking_id: str, interval: TimeInterval) -> Booking:
        interval = self._localize(interval.require_valid())
        with self._lock:
            current = self._require(booking_id)
            self._raise_on_conflict(current.employee_id, interval, booking_id)
            current.interval = interval
            current.reminder_sent = False
            current.reminder_2h_sent = False
            result = current.model_copy(deep=True)
        logger.info("Booking rescheduled: %s to %s", booking_id, interval)
        return result

    def set_status(self, booking_id: str, status: BookingStatus) -> Booking:
        with self._lock:
            current = self._require(booking_id)
            current.status = status
            result = current.model_copy(deep=True)
        logger.info("Booking %s status set to %s", booking_id, status.value)
        return result

    def set_calendar_event_id(self, booking_id: str, event_id: Optional[str]) -> None:
        with self._lock:
            self._require(booking_id).calendar_event_id = event_id

    def mark_reminder_sent(self, booking_id: str, kind: ReminderKind) -> None:
        with self._lock:
            setattr(self._require(booking_id), REMINDER_FLAG_FIELDS[kind], True)

    def reset(self) -> None:
        """Clear all state. Used by test fixtures for isolation."""
        with self._lock:
            self._employees.clear()
            self._shifts.clear()
            self._absences.clear()
            self._bookings.clear()

    def _localize(self, interval: TimeInterval) -> TimeInterval:
        return TimeInterval(
            start=to_local(interval.start, self._tz), end=to_local(interval.end, self._tz)
        )

    def _localized(self, booking: Booking, **changes) -> Booking:
        """Deep copy of ``booking`` with its interval in the business timezone."""
        return booking.model_copy(
            update={"interval": self._localize(booking.interval), **changes}, deep=True
        )

    def _require(self, booking_id: str) -> Booking:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found.")
        return booking

    def _raise_on_conflict(
        self, employee_id: str, interval: TimeInterval, excluding: Optional[str]
    ) -> None:
        # Caller holds self._lock
        blocking = occupying_bookings(employee_id, interval, excluding)
        conflicts = tuple(b.id for b in self._bookings.values() if blocking.matches(b))
        if conflicts:
            raise ConflictError(
                f"Employee {employee_id} is already booked during {interval}.",
                conflicts,
            )


class InMemoryDeviceTokenStore:
    """Push tokens per user, with deactivation instead of deletion."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tokens: dict[str, DeviceToken] = {}

    def register(self, user_id: str, token: str) -> DeviceToken:
        with self._lock:
            record = DeviceToken(user_id=user_id, token=token)
            self._tokens[token] = record
        return record

    def active_tokens(self, user_id: str) -> list[str]:
        with self._lock:
            return [
                t.token for t in self._tokens.values()
                if t.user_id == user_id and t.active
            ]

    def is_active(self, token: str) -> bool:
        with self._lock:
            record = self._tokens.get(token)
            return bool(record and record.active)

    def deactivate(self, tokens: Iterable[str]) -> int:
        count = 0
        with self._lock:
            for token in tokens:
                record = self._tokens.get(token)
                if record is not None and record.active:
                    record.active = False
                    count += 1
        if count:
            logger.info("Deactivated %d device token(s)", count)
        return count


class InMemoryContactDirectory:
    def __init__(self, contacts: Iterable[Contact] = ()) -> None:
        self._contacts: dict[str, Contact] = {}
        for contact in contacts:
            self.add(contact)

    def add(self, contact: Contact) -> None:
        if contact.email:
            contact = contact.model_copy(update={"email": normalize_email(contact.email)})
        self._contacts[contact.user_id] = contact

    def get_contact(self, user_id: str) -> Optional[Contact]:
        return self._contacts.get(user_id)
