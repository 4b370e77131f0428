"""Shared test fixtures and helpers."""

from datetime import date, datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

import pytest

from salon_booking.notifications.backends import (
    InMemoryCalendarBackend,
    InMemoryPushBackend,
    RecordingEmailSender,
)
from salon_booking.notifications.channels import CalendarChannel, EmailChannel, PushChannel
from salon_booking.notifications.orchestrator import ChannelTimeouts, NotificationOrchestrator
from salon_booking.repository.memory import (
    InMemoryContactDirectory,
    InMemoryDeviceTokenStore,
    InMemoryScheduleRepository,
)
from salon_booking.scheduling.availability import AvailabilityChecker
from salon_booking.scheduling.booking_service import BookingService
from salon_booking.scheduling.reminders import ReminderTrigger
from salon_booking.schemas.interval import TimeInterval
from salon_booking.schemas.schedule_schema import (
    Booking,
    BookingStatus,
    Contact,
    ReminderKind,
    WorkShift,
)

TZ = ZoneInfo("America/Guayaquil")
MONDAY = date(2025, 3, 17)

EMPLOYEE = "emp-1"
CLIENT = "cli-1"
EMPLOYEE_EMAIL = "ana@salon.example"
CLIENT_EMAIL = "maria@example.com"


def at(day: date, hour: int, minute: int = 0) -> datetime:
    """Aware business-local datetime."""
    return datetime.combine(day, time(hour, minute), tzinfo=TZ)


def make_interval(
    hour: int, minute: int = 0, minutes: int = 30, day: date = MONDAY
) -> TimeInterval:
    """Helper to create a business-local TimeInterval."""
    start = at(day, hour, minute)
    return TimeInterval(start=start, end=start + timedelta(minutes=minutes))


def make_shift(
    start: time = time(9, 0),
    end: time = time(17, 0),
    day_of_week: int = 1,
    is_break: bool = False,
    employee_id: str = EMPLOYEE,
) -> WorkShift:
    return WorkShift(
        employee_id=employee_id,
        day_of_week=day_of_week,
        start_time=start,
        end_time=end,
        is_break=is_break,
    )


def make_booking(
    booking_id: str = "BK-1",
    interval: Optional[TimeInterval] = None,
    status: BookingStatus = BookingStatus.CONFIRMED,
    employee_id: str = EMPLOYEE,
    client_id: str = CLIENT,
    **kwargs,
) -> Booking:
    """Helper to create a Booking with sensible defaults."""
    return Booking(
        id=booking_id,
        employee_id=employee_id,
        client_id=client_id,
        interval=interval or make_interval(10),
        status=status,
        service_name=kwargs.pop("service_name", "Haircut"),
        **kwargs,
    )


@pytest.fixture
def repository():
    """Employee working Monday 09:00-17:00 with a 13:00-14:00 break."""
    repo = InMemoryScheduleRepository(tz=TZ)
    repo.add_shift(make_shift())
    repo.add_shift(make_shift(time(13, 0), time(14, 0), is_break=True))
    return repo


@pytest.fixture
def checker(repository):
    return AvailabilityChecker(repository, tz=TZ, slot_step_minutes=30)


@pytest.fixture
def tokens():
    return InMemoryDeviceTokenStore()


@pytest.fixture
def contacts():
    return InMemoryContactDirectory([
        Contact(user_id=EMPLOYEE, name="Ana Torres", email=EMPLOYEE_EMAIL),
        Contact(user_id=CLIENT, name="Maria Perez", email=CLIENT_EMAIL),
    ])


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture
def push_backend():
    return InMemoryPushBackend()


@pytest.fixture
def calendar_backend():
    return InMemoryCalendarBackend()


@pytest.fixture
def timeouts():
    return ChannelTimeouts(email=0.2, push=0.2, calendar=0.2)


@pytest.fixture
def orchestrator(email_sender, push_backend, calendar_backend, tokens, contacts, timeouts):
    return NotificationOrchestrator(
        email=EmailChannel(email_sender, "citas@salon.example"),
        push=PushChannel(push_backend),
        calendar=CalendarChannel(calendar_backend, "primary"),
        tokens=tokens,
        contacts=contacts,
        timeouts=timeouts,
        tz=TZ,
    )


@pytest.fixture
def service(repository, checker, orchestrator):
    ids = iter(f"BK-{n}" for n in range(100, 1000))
    return BookingService(repository, checker, orchestrator, id_factory=lambda: next(ids))


@pytest.fixture
def trigger(repository, orchestrator):
    return ReminderTrigger(
        repository,
        orchestrator,
        leads={
            ReminderKind.DAY_BEFORE: timedelta(hours=24),
            ReminderKind.TWO_HOURS: timedelta(hours=2),
        },
    )
