"""
Notification channel adapters: email, push and shared calendar.

Each adapter wraps a provider backend behind the same small contract:
one ``send`` per target returning a SendResult, or ChannelUnreachableError
when the backend as a whole cannot be used. Provider wire formats stay in
the backends; in production those talk to SMTP, a push gateway such as
FCM, and a calendar API.
"""

import asyncio
import logging
import smtplib
from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import Any, Awaitable, Callable, Optional, Protocol

from salon_booking.errors import ChannelError, ChannelSendFailedError, ChannelUnreachableError
from salon_booking.schemas.notification_schema import (
    CalendarEvent,
    NotificationPayload,
    SendResult,
)
from salon_booking.notifications.templates import CALENDAR_REMINDERS

logger = logging.getLogger(__name__)

EMAIL = "email"
PUSH = "push"
CALENDAR = "calendar"

# Push error codes meaning the token will never work again
PERMANENT_TOKEN_ERRORS = frozenset({
    "registration-token-not-registered",
    "invalid-registration-token",
    "unregistered",
})


class NotificationChannel(Protocol):
    """Sends one notification to one target."""

    name: str

    async def send(self, target: Any, payload: NotificationPayload) -> SendResult:
        ...


# ---------------------------------------------------------------------- #
# Email
# ---------------------------------------------------------------------- #

EmailSender = Callable[[EmailMessage], Awaitable[None]]


class SmtpEmailSender:
    """Delivers an EmailMessage through a plain SMTP relay."""

    def __init__(self, host: str, port: int, timeout: float = 10.0) -> None:
        self.host = host
        self.port = port
        self.timeout = timeout

    async def __call__(self, message: EmailMessage) -> None:
        await asyncio.to_thread(self._send, message)

    def _send(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            smtp.send_message(message)


class EmailChannel:
    """Email adapter; ``target`` is a recipient address."""

    name = EMAIL

    def __init__(self, sender: EmailSender, from_address: str) -> None:
        self._sender = sender
        self._from = from_address

    def build_message(self, to_address: str, payload: NotificationPayload) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self._from
        message["To"] = to_address
        message["Subject"] = payload.title
        message.set_content(payload.body)
        return message

    async def send(self, target: str, payload: NotificationPayload) -> SendResult:
        message = self.build_message(target, payload)
        try:
            await self._sender(message)
        except (ConnectionError, smtplib.SMTPConnectError, smtplib.SMTPServerDisconnected) as exc:
            raise ChannelUnreachableError(self.name, f"mail relay unreachable: {exc}") from exc
        except smtplib.SMTPException as exc:
            logger.warning("Email to %s rejected: %s", target, exc)
            return SendResult(success=False, error=str(exc))
        return SendResult(success=True, delivered=1)


# ---------------------------------------------------------------------- #
# Push
# ---------------------------------------------------------------------- #


@dataclass
class TokenResult:
    """Per-token outcome reported by a push gateway."""

    token: str
    success: bool
    error_code: Optional[str] = None


@dataclass
class MulticastResponse:
    results: list[TokenResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return len(self.results) - self.success_count


class PushBackend(Protocol):
    """Push gateway: multicast one message to many device tokens."""

    @property
    def available(self) -> bool:
        ...

    async def send_multicast(
        self, tokens: list[str], payload: NotificationPayload
    ) -> MulticastResponse:
        ...


class PushChannel:
    """Push adapter; ``target`` is the list of a user's active device tokens."""

    name = PUSH

    def __init__(self, backend: PushBackend) -> None:
        self._backend = backend

    @property
    def available(self) -> bool:
        return self._backend.available

    async def send(self, target: list[str], payload: NotificationPayload) -> SendResult:
        if not self._backend.available:
            raise ChannelUnreachableError(self.name, "push backend is not available")
        if not target:
            return SendResult(success=False, error="no device tokens")

        response = await self._backend.send_multicast(list(target), payload)
        invalid = [
            r.token for r in response.results
            if not r.success and r.error_code in PERMANENT_TOKEN_ERRORS
        ]
        logger.debug(
            "Push multicast: %d ok, %d failed, %d invalid",
            response.success_count, response.failure_count, len(invalid),
        )
        if response.success_count == 0:
            codes = sorted({r.error_code or "unknown" for r in response.results})
            return SendResult(
                success=False,
                error=f"push failed for all {len(target)} token(s): {', '.join(codes)}",
                invalid_targets=invalid,
            )
        return SendResult(
            success=True,
            delivered=response.success_count,
            invalid_targets=invalid,
        )


# ---------------------------------------------------------------------- #
# Calendar
# ---------------------------------------------------------------------- #


class CalendarBackend(Protocol):
    """Calendar API operating on provider-shaped event bodies."""

    async def insert_event(self, calendar_id: str, body: dict[str, Any]) -> str:
        ...

    async def update_event(self, calendar_id: str, event_id: str, body: dict[str, Any]) -> str:
        ...

    async def delete_event(self, calendar_id: str, event_id: str) -> None:
        ...


class CalendarChannel:
    """Keeps the shared calendar in step with bookings."""

    name = CALENDAR

    def __init__(self, backend: CalendarBackend, calendar_id: str = "primary") -> None:
        self._backend = backend
        self._calendar_id = calendar_id

    @staticmethod
    def event_body(event: CalendarEvent) -> dict[str, Any]:
        return {
            "summary": event.summary,
            "description": event.description,
            "location": event.location,
            "start": {"dateTime": event.interval.start.isoformat(), "timeZone": event.timezone},
            "end": {"dateTime": event.interval.end.isoformat(), "timeZone": event.timezone},
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": method, "minutes": minutes}
                    for method, minutes in CALENDAR_REMINDERS
                ],
            },
            "extendedProperties": {"private": {"booking_id": event.booking_id}},
        }

    async def upsert(self, event: CalendarEvent) -> str:
        """Create the event, or update it when it already has an external id."""
        body = self.event_body(event)
        try:
            if event.external_id:
                return await self._backend.update_event(self._calendar_id, event.external_id, body)
            return await self._backend.insert_event(self._calendar_id, body)
        except ChannelError:
            raise
        except Exception as exc:
            raise ChannelSendFailedError(self.name, f"upsert failed: {exc}") from exc

    async def delete(self, external_event_id: str) -> None:
        try:
            await self._backend.delete_event(self._calendar_id, external_event_id)
        except ChannelError:
            raise
        except Exception as exc:
            raise ChannelSendFailedError(self.name, f"delete failed: {exc}") from exc
