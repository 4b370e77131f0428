"""
Booking-lifecycle notification fan-out.

Each lifecycle event maps to a fixed set of channel sends:

    BookingConfirmed   -> email client, push client, notify employee, calendar upsert
    ReminderDue        -> email client, push client
    BookingCancelled   -> calendar delete
    BookingRescheduled -> calendar upsert

All sends for one event run concurrently and are awaited to completion
(settle-all). Every send has its own timeout, is attempted exactly once,
and turns any failure into a NotificationOutcome, so ``dispatch`` always
returns a complete outcome map and never raises for a channel failure.

The employee is notified by push only when they have an active device
token and the push backend is reachable; otherwise an email goes out
instead. A push that was attempted and failed stays a failure. Tokens a
push gateway reports as permanently invalid are deactivated in the
token store.

Usage:
    orchestrator = NotificationOrchestrator(email, push, calendar, tokens, contacts)
    outcomes = await orchestrator.dispatch(BookingConfirmed(booking=booking))
    outcomes["notify_employee"].fallback_used
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional
from zoneinfo import ZoneInfo

from salon_booking.config import settings
from salon_booking.errors import ChannelError, ChannelUnreachableError
from salon_booking.logging_context import booking_scope, get_booking_logger
from salon_booking.notifications.channels import CalendarChannel, EmailChannel, PushChannel
from salon_booking.notifications.report import summarize
from salon_booking.notifications.templates import (
    build_calendar_event,
    build_confirmation,
    build_employee_assignment,
    build_reminder,
)
from salon_booking.repository.base import ContactDirectory, DeviceTokenStore
from salon_booking.schemas.notification_schema import (
    BookingCancelled,
    BookingConfirmed,
    BookingRescheduled,
    LifecycleEvent,
    NotificationOutcome,
    NotificationPayload,
    OutcomeKey,
    ReminderDue,
    SendResult,
)
from salon_booking.schemas.schedule_schema import Booking, Contact

logger = get_booking_logger(__name__)

SendFactory = Callable[[], Awaitable[NotificationOutcome]]


@dataclass(frozen=True)
class ChannelTimeouts:
    """Upper bound, in seconds, on a single send per channel."""

    email: float = settings.notifications.email_timeout_seconds
    push: float = settings.notifications.push_timeout_seconds
    calendar: float = settings.notifications.calendar_timeout_seconds


class UnsupportedEventError(TypeError):
    """Raised when dispatch is handed an event type with no route."""


class NotificationOrchestrator:
    """Fans one lifecycle event out to its channels and reports per-channel outcomes."""

    def __init__(
        self,
        email: EmailChannel,
        push: PushChannel,
        calendar: CalendarChannel,
        tokens: DeviceTokenStore,
        contacts: ContactDirectory,
        timeouts: Optional[ChannelTimeouts] = None,
        tz: Optional[ZoneInfo] = None,
    ) -> None:
        self._email = email
        self._push = push
        self._calendar = calendar
        self._tokens = tokens
        self._contacts = contacts
        self._timeouts = timeouts or ChannelTimeouts()
        self._tz = tz or settings.business.tz

    async def dispatch(self, event: LifecycleEvent) -> dict[str, NotificationOutcome]:
        """
        Send every notification ``event`` calls for and wait for all of them.

        Returns:
            Outcome per channel, keyed by OutcomeKey value.

        Raises:
            UnsupportedEventError: If the event type has no route.
        """
        with booking_scope(event.booking.id):
            plan = self._plan(event)
            logger.info(
                "Dispatching %s for booking %s to %s",
                type(event).__name__, event.booking.id, ", ".join(plan),
            )
            results = await asyncio.gather(
                *(self._settle(key, factory) for key, factory in plan.items())
            )
            outcomes = dict(zip(plan, results))
            logger.info(
                "Dispatch of %s for booking %s settled: %s",
                type(event).__name__, event.booking.id, summarize(outcomes).describe(),
            )
            return outcomes

    # ------------------------------------------------------------------ #
    # Routing
    # ------------------------------------------------------------------ #

    def _plan(self, event: LifecycleEvent) -> dict[str, SendFactory]:
        booking = event.booking
        if isinstance(event, BookingConfirmed):
            client = self._contact(booking.client_id)
            employee = self._contact(booking.employee_id)
            to_client = build_confirmation(booking, employee, self._tz)
            to_employee = build_employee_assignment(booking, client, self._tz)
            return {
                OutcomeKey.EMAIL_CLIENT.value: lambda: self._email_user(
                    OutcomeKey.EMAIL_CLIENT.value, client, to_client
                ),
                OutcomeKey.PUSH_CLIENT.value: lambda: self._push_user(
                    OutcomeKey.PUSH_CLIENT.value, booking.client_id, to_client
                ),
                OutcomeKey.NOTIFY_EMPLOYEE.value: lambda: self._notify_employee(
                    employee, to_employee
                ),
                OutcomeKey.CALENDAR.value: lambda: self._calendar_upsert(
                    booking, client, employee
                ),
            }
        if isinstance(event, ReminderDue):
            client = self._contact(booking.client_id)
            employee = self._contact(booking.employee_id)
            reminder = build_reminder(booking, employee, event.kind, self._tz)
            return {
                OutcomeKey.EMAIL_CLIENT.value: lambda: self._email_user(
                    OutcomeKey.EMAIL_CLIENT.value, client, reminder
                ),
                OutcomeKey.PUSH_CLIENT.value: lambda: self._push_user(
                    OutcomeKey.PUSH_CLIENT.value, booking.client_id, reminder
                ),
            }
        if isinstance(event, BookingCancelled):
            return {
                OutcomeKey.CALENDAR.value: lambda: self._calendar_delete(booking),
            }
        if isinstance(event, BookingRescheduled):
            client = self._contact(booking.client_id)
            employee = self._contact(booking.employee_id)
            return {
                OutcomeKey.CALENDAR.value: lambda: self._calendar_upsert(
                    booking, client, employee
                ),
            }
        raise UnsupportedEventError(f"No notification route for {type(event).__name__}")

    async def _settle(self, key: str, factory: SendFactory) -> NotificationOutcome:
        """Run one planned send, converting any failure into an outcome."""
        try:
            return await factory()
        except asyncio.TimeoutError as exc:
            logger.warning("Channel %s %s", key, exc or "timed out")
            return NotificationOutcome(
                channel_name=key, success=False, error=str(exc) or "timed out"
            )
        except ChannelError as exc:
            logger.warning("Channel %s failed: %s", key, exc)
            return NotificationOutcome(channel_name=key, success=False, error=str(exc))
        except Exception as exc:
            logger.warning("Channel %s raised %s: %s", key, type(exc).__name__, exc)
            return NotificationOutcome(
                channel_name=key, success=False, error=f"{type(exc).__name__}: {exc}"
            )

    # ------------------------------------------------------------------ #
    # Channel sends
    # ------------------------------------------------------------------ #

    async def _email_user(
        self, key: str, contact: Contact, payload: NotificationPayload
    ) -> NotificationOutcome:
        if not contact.email:
            return NotificationOutcome(
                channel_name=key,
                success=False,
                skipped=True,
                error=f"no email address for {contact.user_id}",
            )
        result = await self._bounded(
            self._email.send(contact.email, payload), self._timeouts.email
        )
        return self._from_result(key, result)

    async def _push_user(
        self, key: str, user_id: str, payload: NotificationPayload
    ) -> NotificationOutcome:
        tokens = self._tokens.active_tokens(user_id)
        if not tokens:
            return NotificationOutcome(channel_name=key, success=True, skipped=True)
        result = await self._bounded(self._push.send(tokens, payload), self._timeouts.push)
        self._prune_tokens(result)
        return self._from_result(key, result)

    async def _notify_employee(
        self, employee: Contact, payload: NotificationPayload
    ) -> NotificationOutcome:
        key = OutcomeKey.NOTIFY_EMPLOYEE.value
        tokens = self._tokens.active_tokens(employee.user_id)
        if not tokens:
            return await self._email_fallback(employee, payload, "no active device tokens")

        try:
            result = await self._bounded(self._push.send(tokens, payload), self._timeouts.push)
        except ChannelUnreachableError as exc:
            return await self._email_fallback(employee, payload, str(exc))
        self._prune_tokens(result)
        return self._from_result(key, result)

    async def _email_fallback(
        self, employee: Contact, payload: NotificationPayload, reason: str
    ) -> NotificationOutcome:
        key = OutcomeKey.NOTIFY_EMPLOYEE.value
        logger.info("Employee %s notified by email instead of push: %s", employee.user_id, reason)
        try:
            outcome = await self._email_user(key, employee, payload)
        except (asyncio.TimeoutError, ChannelError) as exc:
            logger.warning("Email fallback for %s failed: %s", employee.user_id, exc)
            outcome = NotificationOutcome(
                channel_name=key, success=False, error=str(exc) or "timed out"
            )
        return outcome.model_copy(
            update={"fallback_used": True, "metadata": {"fallback_reason": reason}}
        )

    async def _calendar_upsert(
        self, booking: Booking, client: Contact, employee: Contact
    ) -> NotificationOutcome:
        key = OutcomeKey.CALENDAR.value
        event = build_calendar_event(booking, client, employee)
        external_id = await self._bounded(
            self._calendar.upsert(event), self._timeouts.calendar
        )
        return NotificationOutcome(channel_name=key, success=True, external_id=external_id)

    async def _calendar_delete(self, booking: Booking) -> NotificationOutcome:
        key = OutcomeKey.CALENDAR.value
        if not booking.calendar_event_id:
            return NotificationOutcome(channel_name=key, success=True, skipped=True)
        await self._bounded(
            self._calendar.delete(booking.calendar_event_id), self._timeouts.calendar
        )
        return NotificationOutcome(
            channel_name=key, success=True, external_id=booking.calendar_event_id
        )

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    async def _bounded(awaitable: Awaitable, timeout: float):
        try:
            return await asyncio.wait_for(awaitable, timeout)
        except asyncio.TimeoutError:
            raise asyncio.TimeoutError(f"timed out after {timeout}s") from None

    def _prune_tokens(self, result: SendResult) -> None:
        if result.invalid_targets:
            removed = self._tokens.deactivate(result.invalid_targets)
            logger.info("Deactivated %d invalid push token(s)", removed)

    def _contact(self, user_id: str) -> Contact:
        contact = self._contacts.get_contact(user_id)
        if contact is None:
            logger.warning("No contact record for %s", user_id)
            return Contact(user_id=user_id, name=user_id)
        return contact

    @staticmethod
    def _from_result(key: str, result: SendResult) -> NotificationOutcome:
        return NotificationOutcome(
            channel_name=key,
            success=result.success,
            error=result.error,
            invalidated_targets=list(result.invalid_targets),
        )
