"""
Booking core entry point.

Wires the repository, channels and token store once at process start and
runs the reminder trigger. Push and calendar go through the in-memory
backends until a provider adapter is plugged in; email goes out over SMTP
unless a sender is injected.

Usage:
    Reminder loop: python main.py
    Single cycle:  python main.py once
    Console demo:  python main.py console
"""

import asyncio
import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from salon_booking.config import settings
from salon_booking.notifications.backends import InMemoryCalendarBackend, InMemoryPushBackend
from salon_booking.notifications.channels import (
    CalendarChannel,
    EmailChannel,
    EmailSender,
    PushChannel,
    SmtpEmailSender,
)
from salon_booking.notifications.orchestrator import NotificationOrchestrator
from salon_booking.repository.memory import (
    InMemoryContactDirectory,
    InMemoryDeviceTokenStore,
    InMemoryScheduleRepository,
)
from salon_booking.scheduling.availability import AvailabilityChecker
from salon_booking.scheduling.booking_service import BookingService
from salon_booking.scheduling.reminders import ReminderTrigger

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Every collaborator of the booking core, constructed once."""

    repository: InMemoryScheduleRepository
    tokens: InMemoryDeviceTokenStore
    contacts: InMemoryContactDirectory
    push_backend: InMemoryPushBackend
    calendar_backend: InMemoryCalendarBackend
    checker: AvailabilityChecker
    orchestrator: NotificationOrchestrator
    service: BookingService
    trigger: ReminderTrigger


def build_runtime(email_sender: Optional[EmailSender] = None) -> Runtime:
    """Construct and inject all collaborators."""
    tz = settings.business.tz
    repository = InMemoryScheduleRepository(tz=tz)
    tokens = InMemoryDeviceTokenStore()
    contacts = InMemoryContactDirectory()
    push_backend = InMemoryPushBackend()
    calendar_backend = InMemoryCalendarBackend()

    sender = email_sender or SmtpEmailSender(
        settings.notifications.smtp_host,
        settings.notifications.smtp_port,
        timeout=settings.notifications.email_timeout_seconds,
    )
    orchestrator = NotificationOrchestrator(
        email=EmailChannel(sender, settings.notifications.email_from),
        push=PushChannel(push_backend),
        calendar=CalendarChannel(calendar_backend, settings.notifications.calendar_id),
        tokens=tokens,
        contacts=contacts,
        tz=tz,
    )
    checker = AvailabilityChecker(repository, tz=tz)
    return Runtime(
        repository=repository,
        tokens=tokens,
        contacts=contacts,
        push_backend=push_backend,
        calendar_backend=calendar_backend,
        checker=checker,
        orchestrator=orchestrator,
        service=BookingService(repository, checker, orchestrator),
        trigger=ReminderTrigger(repository, orchestrator),
    )


def _run_reminder_loop() -> None:
    """Poll for due reminders until interrupted."""
    runtime = build_runtime()
    try:
        asyncio.run(runtime.trigger.run_forever())
    except KeyboardInterrupt:
        logger.info("Reminder loop interrupted")


def _run_once() -> None:
    """Run a single reminder cycle, as a cron job would."""
    runtime = build_runtime()
    sent = asyncio.run(runtime.trigger.process_due(datetime.now(timezone.utc)))
    logger.info("Reminder cycle dispatched %d reminder(s)", sent)


def _run_console_mode() -> None:
    """Start the offline console demo (no SMTP or provider credentials)."""
    from console_demo import ConsoleSession

    session = ConsoleSession()
    session.run()


if __name__ == "__main__":
    mode = sys.argv[1] if len(sys.argv) > 1 else ""
    if mode == "console":
        _run_console_mode()
    elif mode == "once":
        _run_once()
    else:
        _run_reminder_loop()
