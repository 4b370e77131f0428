"""Message construction for booking-lifecycle notifications."""

from typing import Optional
from zoneinfo import ZoneInfo

from salon_booking.config import settings
from salon_booking.schemas.notification_schema import CalendarEvent, NotificationPayload
from salon_booking.schemas.schedule_schema import Booking, Contact, ReminderKind
from salon_booking.utils import to_local

# Calendar reminder overrides, in minutes before start
CALENDAR_REMINDERS: list[tuple[str, int]] = [("email", 24 * 60), ("popup", 30)]


def _when(booking: Booking, tz: ZoneInfo) -> tuple[str, str]:
    start = to_local(booking.interval.start, tz)
    return start.strftime("%d/%m/%Y"), start.strftime("%H:%M")


def _service(booking: Booking) -> str:
    return booking.service_name or "your appointment"


def _base_data(booking: Booking, kind: str, day: str, hour: str) -> dict[str, str]:
    return {
        "type": kind,
        "booking_id": booking.id,
        "date": day,
        "time": hour,
    }


def build_confirmation(
    booking: Booking, employee: Contact, tz: Optional[ZoneInfo] = None
) -> NotificationPayload:
    """Client-facing confirmation for a newly confirmed booking."""
    day, hour = _when(booking, tz or settings.business.tz)
    return NotificationPayload(
        title="Booking confirmed",
        body=(
            f"Your booking for {_service(booking)} with {employee.name} "
            f"on {day} at {hour} is confirmed."
        ),
        data={**_base_data(booking, "booking_confirmed", day, hour), "employee": employee.name},
    )


def build_employee_assignment(
    booking: Booking, client: Contact, tz: Optional[ZoneInfo] = None
) -> NotificationPayload:
    """Employee-facing notice of a new booking."""
    day, hour = _when(booking, tz or settings.business.tz)
    return NotificationPayload(
        title="New booking assigned",
        body=f"You have a booking with {client.name} on {day} at {hour}.",
        data={**_base_data(booking, "booking_assigned", day, hour), "client": client.name},
    )


def build_reminder(
    booking: Booking,
    employee: Contact,
    kind: ReminderKind,
    tz: Optional[ZoneInfo] = None,
) -> NotificationPayload:
    """Client-facing reminder for the 24h or 2h window."""
    day, hour = _when(booking, tz or settings.business.tz)
    lead = "coming up" if kind == ReminderKind.DAY_BEFORE else "in about two hours"
    return NotificationPayload(
        title="Booking reminder",
        body=(
            f"Reminder: {_service(booking)} with {employee.name} is {lead}, "
            f"on {day} at {hour}."
        ),
        data={
            **_base_data(booking, "booking_reminder", day, hour),
            "window": kind.value,
        },
    )


def build_calendar_event(
    booking: Booking,
    client: Contact,
    employee: Contact,
    tz_name: Optional[str] = None,
) -> CalendarEvent:
    """Shared-calendar representation of a booking."""
    return CalendarEvent(
        booking_id=booking.id,
        external_id=booking.calendar_event_id,
        summary=f"Booking - {client.name}",
        description=f"Service: {_service(booking)}\nStaff: {employee.name}",
        interval=booking.interval,
        timezone=tz_name or settings.business.timezone,
        location=settings.business.name,
    )
