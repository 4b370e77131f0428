"""
Booking workflow at the insert boundary: check, insert, notify.

``AvailabilityChecker`` is only a fast pre-check. Two concurrent requests
can both see a free slot; the repository's atomic insert is what decides,
and the loser gets ConflictError. Notification outcomes are logged and
returned but never turn a stored booking into a failure.
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable, Optional

from salon_booking.errors import ConflictError, InvalidArgumentError, NotFoundError
from salon_booking.logging_context import booking_scope
from salon_booking.notifications.orchestrator import NotificationOrchestrator
from salon_booking.repository.base import ScheduleRepository
from salon_booking.scheduling.availability import AvailabilityChecker
from salon_booking.schemas.interval import TimeInterval
from salon_booking.schemas.notification_schema import (
    BookingCancelled,
    BookingConfirmed,
    BookingRescheduled,
    NotificationOutcome,
    OutcomeKey,
)
from salon_booking.schemas.schedule_schema import Booking, BookingStatus

logger = logging.getLogger(__name__)


def new_booking_id() -> str:
    return f"BK-{uuid.uuid4().hex[:6].upper()}"


@dataclass
class BookingResult:
    """A stored booking together with the notification outcomes it triggered."""

    booking: Booking
    notifications: dict[str, NotificationOutcome] = field(default_factory=dict)


class BookingService:
    """Creates, reschedules and cancels bookings and emits lifecycle events."""

    def __init__(
        self,
        repository: ScheduleRepository,
        checker: AvailabilityChecker,
        orchestrator: NotificationOrchestrator,
        id_factory: Callable[[], str] = new_booking_id,
    ) -> None:
        self._repository = repository
        self._checker = checker
        self._orchestrator = orchestrator
        self._id_factory = id_factory

    async def book(
        self,
        employee_id: str,
        client_id: str,
        interval: TimeInterval,
        service_name: str = "",
    ) -> BookingResult:
        """
        Book ``interval`` with ``employee_id`` for ``client_id``.

        Raises:
            InvalidArgumentError: Malformed interval or identifiers.
            NotFoundError: Unknown employee.
            ConflictError: Slot unavailable, or lost to a concurrent booking.
        """
        if not client_id or not client_id.strip():
            raise InvalidArgumentError("client_id must be a non-empty string.")
        decision = self._checker.explain(employee_id, interval)
        if not decision.available:
            raise ConflictError(
                f"Slot {interval} is not available for {employee_id} "
                f"({decision.reason.value if decision.reason else 'unavailable'}).",
                tuple(decision.conflicting_booking_ids),
            )

        pending = Booking(
            id=self._id_factory(),
            employee_id=employee_id,
            client_id=client_id,
            interval=interval,
            status=BookingStatus.PENDING,
            service_name=service_name,
        )
        stored = self._repository.insert_booking(pending)

        with booking_scope(stored.id):
            outcomes = await self._orchestrator.dispatch(BookingConfirmed(booking=stored))
            stored = self._record_calendar_id(stored, outcomes)
        return BookingResult(booking=stored, notifications=outcomes)

    async def reschedule(self, booking_id: str, interval: TimeInterval) -> BookingResult:
        """Move a booking to ``interval``, ignoring its own current slot."""
        current = self._require(booking_id)
        if not current.occupies_slot or current.status == BookingStatus.COMPLETED:
            raise InvalidArgumentError(
                f"Booking {booking_id} is {current.status.value} and cannot be rescheduled."
            )
        decision = self._checker.explain(
            current.employee_id, interval, excluding_booking_id=booking_id
        )
        if not decision.available:
            raise ConflictError(
                f"Slot {interval} is not available for {current.employee_id} "
                f"({decision.reason.value if decision.reason else 'unavailable'}).",
                tuple(decision.conflicting_booking_ids),
            )

        updated = self._repository.reschedule_booking(booking_id, interval)
        with booking_scope(booking_id):
            outcomes = await self._orchestrator.dispatch(
                BookingRescheduled(booking=updated, previous_interval=current.interval)
            )
            updated = self._record_calendar_id(updated, outcomes)
        return BookingResult(booking=updated, notifications=outcomes)

    async def cancel(self, booking_id: str, reason: Optional[str] = None) -> BookingResult:
        """Cancel a booking; cancelling twice is a no-op."""
        current = self._require(booking_id)
        if current.status == BookingStatus.CANCELLED:
            logger.info("Booking %s already cancelled", booking_id)
            return BookingResult(booking=current)
        if current.status in (BookingStatus.COMPLETED, BookingStatus.NO_SHOW):
            raise InvalidArgumentError(
                f"Booking {booking_id} is {current.status.value} and cannot be cancelled."
            )

        cancelled = self._repository.set_status(booking_id, BookingStatus.CANCELLED)
        with booking_scope(booking_id):
            outcomes = await self._orchestrator.dispatch(
                BookingCancelled(booking=cancelled, reason=reason)
            )
        calendar = outcomes.get(OutcomeKey.CALENDAR.value)
        if calendar and calendar.success and not calendar.skipped:
            self._repository.set_calendar_event_id(booking_id, None)
            cancelled = cancelled.model_copy(update={"calendar_event_id": None})
        return BookingResult(booking=cancelled, notifications=outcomes)

    def _require(self, booking_id: str) -> Booking:
        if not booking_id or not booking_id.strip():
            raise InvalidArgumentError("booking_id must be a non-empty string.")
        booking = self._repository.get_booking(booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found.")
        return booking

    def _record_calendar_id(
        self, booking: Booking, outcomes: dict[str, NotificationOutcome]
    ) -> Booking:
        calendar = outcomes.get(OutcomeKey.CALENDAR.value)
        if calendar and calendar.success and calendar.external_id:
            if calendar.external_id != booking.calendar_event_id:
                self._repository.set_calendar_event_id(booking.id, calendar.external_id)
                return booking.model_copy(update={"calendar_event_id": calendar.external_id})
        return booking
