"""Shared date/time helpers used across the booking core."""

from datetime import date, datetime, time, timedelta
from zoneinfo import ZoneInfo


def to_local(value: datetime, tz: ZoneInfo) -> datetime:
    """Express a datetime in the business timezone.

    Naive datetimes are taken to already be business-local wall-clock time.

    Examples:
        >>> to_local(datetime(2025, 3, 17, 9, 0), ZoneInfo("UTC")).tzinfo
        zoneinfo.ZoneInfo(key='UTC')
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def iso_weekday(value: date) -> int:
    """Day of week as 1 (Monday) .. 7 (Sunday)."""
    return value.isoweekday()


def at_local_time(day: date, wall_time: time, tz: ZoneInfo) -> datetime:
    """Combine a calendar date and a wall-clock time into an aware datetime."""
    return datetime.combine(day, wall_time, tzinfo=tz)


def day_bounds(day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """Return the aware [start, end) bounds of a whole local day."""
    start = datetime.combine(day, time.min, tzinfo=tz)
    return start, datetime.combine(day + timedelta(days=1), time.min, tzinfo=tz)


def normalize_email(value: str) -> str:
    """Trim and lowercase an email address.

    Examples:
        >>> normalize_email("  Ana.Perez@Example.COM ")
        'ana.perez@example.com'
    """
    return value.strip().lower()
