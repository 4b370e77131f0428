"""Lifecycle events, channel payloads and per-channel outcomes."""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

from salon_booking.schemas.interval import TimeInterval
from salon_booking.schemas.schedule_schema import Booking, ReminderKind


class OutcomeKey(str, Enum):
    """Stable keys of the map returned by ``dispatch``."""

    EMAIL_CLIENT = "email_client"
    PUSH_CLIENT = "push_client"
    NOTIFY_EMPLOYEE = "notify_employee"
    CALENDAR = "calendar"


class LifecycleEvent(BaseModel):
    """Base class for booking-lifecycle events."""

    booking: Booking


class BookingConfirmed(LifecycleEvent):
    pass


class ReminderDue(LifecycleEvent):
    kind: ReminderKind


class BookingCancelled(LifecycleEvent):
    reason: Optional[str] = None


class BookingRescheduled(LifecycleEvent):
    previous_interval: Optional[TimeInterval] = None


class NotificationPayload(BaseModel):
    """Channel-neutral message content."""

    title: str
    body: str
    data: dict[str, str] = Field(default_factory=dict)


class SendResult(BaseModel):
    """What a channel reports back for one send."""

    success: bool
    error: Optional[str] = None
    invalid_targets: list[str] = Field(default_factory=list)
    delivered: int = 0


class CalendarEvent(BaseModel):
    """A booking as it should appear in the shared calendar."""

    booking_id: str
    external_id: Optional[str] = None
    summary: str
    description: str
    interval: TimeInterval
    timezone: str
    location: Optional[str] = None


class NotificationOutcome(BaseModel):
    """Result of one channel for one dispatched event."""

    channel_name: str
    success: bool
    error: Optional[str] = None
    invalidated_targets: list[str] = Field(default_factory=list)
    skipped: bool = False
    fallback_used: bool = False
    external_id: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
