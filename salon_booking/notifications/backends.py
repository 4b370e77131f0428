"""
In-memory provider backends for email, push and calendar.

Used by the console demo and the test-suite in place of SMTP, a push
gateway and a calendar API. Each backend records what it was asked to
do and can be told to fail, hang, or be unreachable.
"""

import asyncio
import itertools
import logging
import smtplib
from email.message import EmailMessage
from typing import Any, Optional

from salon_booking.notifications.channels import MulticastResponse, TokenResult
from salon_booking.schemas.notification_schema import NotificationPayload

logger = logging.getLogger(__name__)


class RecordingEmailSender:
    """EmailSender that keeps every message instead of delivering it."""

    def __init__(self, fail: bool = False, unreachable: bool = False, delay: float = 0.0) -> None:
        self.fail = fail
        self.unreachable = unreachable
        self.delay = delay
        self.sent: list[EmailMessage] = []

    async def __call__(self, message: EmailMessage) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.unreachable:
            raise ConnectionRefusedError("mail relay refused connection")
        if self.fail:
            raise smtplib.SMTPDataError(554, b"message rejected")
        self.sent.append(message)

    def recipients(self) -> list[str]:
        return [str(m["To"]) for m in self.sent]


class InMemoryPushBackend:
    """Push gateway stand-in with per-token failure injection."""

    def __init__(
        self,
        available: bool = True,
        invalid_tokens: Optional[set[str]] = None,
        failing_tokens: Optional[set[str]] = None,
        delay: float = 0.0,
    ) -> None:
        self._available = available
        self.invalid_tokens = set(invalid_tokens or ())
        self.failing_tokens = set(failing_tokens or ())
        self.delay = delay
        self.calls: list[tuple[list[str], NotificationPayload]] = []

    @property
    def available(self) -> bool:
        return self._available

    def set_available(self, value: bool) -> None:
        self._available = value

    async def send_multicast(
        self, tokens: list[str], payload: NotificationPayload
    ) -> MulticastResponse:
        if self.delay:
            await asyncio.sleep(self.delay)
        self.calls.append((list(tokens), payload))
        results = []
        for token in tokens:
            if token in self.invalid_tokens:
                results.append(TokenResult(token, False, "registration-token-not-registered"))
            elif token in self.failing_tokens:
                results.append(TokenResult(token, False, "unavailable"))
            else:
                results.append(TokenResult(token, True))
        return MulticastResponse(results=results)

    def tokens_sent(self) -> list[str]:
        return [t for tokens, _ in self.calls for t in tokens]


class InMemoryCalendarBackend:
    """Calendar API stand-in keyed by generated event ids."""

    def __init__(self, fail: bool = False, delay: float = 0.0) -> None:
        self.fail = fail
        self.delay = delay
        self.events: dict[str, dict[str, Any]] = {}
        self.deleted: list[str] = []
        self._ids = itertools.count(1)

    async def _maybe_fail(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("calendar API error 503")

    async def insert_event(self, calendar_id: str, body: dict[str, Any]) -> str:
        await self._maybe_fail()
        event_id = f"evt-{next(self._ids)}"
        self.events[event_id] = {**body, "calendar_id": calendar_id}
        return event_id

    async def update_event(self, calendar_id: str, event_id: str, body: dict[str, Any]) -> str:
        await self._maybe_fail()
        if event_id not in self.events:
            raise KeyError(f"calendar event {event_id} not found")
        self.events[event_id] = {**body, "calendar_id": calendar_id}
        return event_id

    async def delete_event(self, calendar_id: str, event_id: str) -> None:
        await self._maybe_fail()
        self.events.pop(event_id, None)
        self.deleted.append(event_id)
