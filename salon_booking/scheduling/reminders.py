"""
Periodic reminder trigger.

Each cycle finds bookings whose reminder window has opened and whose
flag is still unset, dispatches a ReminderDue for each, and then sets
the flag whatever the per-channel outcome, so a window fires at most
once. A booking whose dispatch raised keeps its flag unset and is
picked up again next cycle.

Windows, for a booking starting at ``start``:

    24h reminder: start - 24h <= now < start - 2h
    2h  reminder: start - 2h  <= now < start

The 24h window closes where the 2h window opens, so a booking made at
short notice gets only the 2h reminder.

The trigger never reads the wall clock itself; ``now`` is passed in.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from salon_booking.config import settings
from salon_booking.errors import InvalidArgumentError
from salon_booking.logging_context import booking_scope, get_booking_logger
from salon_booking.notifications.orchestrator import NotificationOrchestrator
from salon_booking.notifications.report import summarize_batch
from salon_booking.repository.base import ScheduleRepository
from salon_booking.repository.predicates import BookingFilter
from salon_booking.schemas.notification_schema import NotificationOutcome, ReminderDue
from salon_booking.schemas.schedule_schema import REMINDABLE_STATUSES, Booking, ReminderKind

logger = get_booking_logger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def default_leads() -> dict[ReminderKind, timedelta]:
    return {
        ReminderKind.DAY_BEFORE: timedelta(hours=settings.reminders.day_before_hours),
        ReminderKind.TWO_HOURS: timedelta(hours=settings.reminders.two_hours_hours),
    }


class ReminderTrigger:
    """Dispatches due reminders and persists their idempotency flags."""

    def __init__(
        self,
        repository: ScheduleRepository,
        orchestrator: NotificationOrchestrator,
        leads: Optional[dict[ReminderKind, timedelta]] = None,
    ) -> None:
        self._repository = repository
        self._orchestrator = orchestrator
        self._leads = default_leads()
        if leads is not None:
            self._leads.update(leads)
        if any(lead <= timedelta(0) for lead in self._leads.values()):
            raise ValueError("Reminder leads must be positive")
        if self._leads[ReminderKind.TWO_HOURS] >= self._leads[ReminderKind.DAY_BEFORE]:
            raise ValueError("The 2h reminder lead must be shorter than the 24h lead")

    def due(self, kind: ReminderKind, now: datetime) -> list[Booking]:
        """Bookings whose ``kind`` window is open at ``now`` and not yet reminded."""
        opens_from = now
        if kind == ReminderKind.DAY_BEFORE:
            opens_from = now + self._leads[ReminderKind.TWO_HOURS]
        return self._repository.query_bookings(
            BookingFilter(
                statuses=REMINDABLE_STATUSES,
                starts_after=opens_from,
                starts_no_later_than=now + self._leads[kind],
                reminder_unsent=kind,
            )
        )

    async def process_due(self, now: datetime) -> int:
        """
        Run one reminder cycle.

        Returns:
            Number of reminders dispatched and flagged.

        Raises:
            InvalidArgumentError: If ``now`` is not timezone-aware.
        """
        if now.tzinfo is None:
            raise InvalidArgumentError("now must be timezone-aware")

        batch: list[dict[str, NotificationOutcome]] = []
        for kind in (ReminderKind.TWO_HOURS, ReminderKind.DAY_BEFORE):
            for booking in self.due(kind, now):
                with booking_scope(booking.id):
                    outcomes = await self._remind(booking, kind)
                if outcomes is not None:
                    batch.append(outcomes)

        if batch:
            logger.info(
                "Reminder cycle at %s: %d reminder(s), %s",
                now.isoformat(), len(batch), summarize_batch(batch).describe(),
            )
        else:
            logger.debug("Reminder cycle at %s: nothing due", now.isoformat())
        return len(batch)

    async def _remind(
        self, booking: Booking, kind: ReminderKind
    ) -> Optional[dict[str, NotificationOutcome]]:
        current = self._repository.get_booking(booking.id)
        if current is None or not current.receives_reminders or current.reminder_flag(kind):
            return None
        try:
            outcomes = await self._orchestrator.dispatch(ReminderDue(booking=current, kind=kind))
        except Exception:
            logger.exception("Reminder %s for booking %s could not be dispatched", kind.value, current.id)
            return None
        self._repository.mark_reminder_sent(current.id, kind)
        return outcomes

    async def run_forever(
        self,
        interval_seconds: Optional[float] = None,
        clock: Clock = utc_now,
        stop: Optional[asyncio.Event] = None,
    ) -> None:
        """Call ``process_due(clock())`` every ``interval_seconds`` until ``stop`` is set."""
        interval = interval_seconds or settings.reminders.poll_seconds
        stop = stop or asyncio.Event()
        logger.info("Reminder trigger started, polling every %.0fs", interval)
        while not stop.is_set():
            try:
                await self.process_due(clock())
            except Exception:
                logger.exception("Reminder cycle failed")
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Reminder trigger stopped")
