"""Correlation ID logging context for tracing a booking across modules.

Provides a booking_id-aware logger that attaches the booking being
processed to every log message, making it easy to follow one booking
through availability checks, channel fan-out and reminder cycles.

Usage:
    from salon_booking.logging_context import get_booking_logger, booking_scope

    logger = get_booking_logger(__name__)
    with booking_scope("BK-1042"):
        logger.info("Dispatching")  # record.booking_id == "BK-1042"
"""

import logging
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator

_booking_id: ContextVar[str] = ContextVar("booking_id", default="NO_BOOKING")


def get_booking_id() -> str:
    """Retrieve the current correlation ID."""
    return _booking_id.get()


@contextmanager
def booking_scope(booking_id: str) -> Iterator[None]:
    """Bind ``booking_id`` for the duration of the block, then restore."""
    token = _booking_id.set(booking_id)
    try:
        yield
    finally:
        _booking_id.reset(token)


class BookingIdFilter(logging.Filter):
    """Injects booking_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.booking_id = _booking_id.get()  # type: ignore[attr-defined]
        return True


def get_booking_logger(name: str) -> logging.Logger:
    """Return a logger with the BookingIdFilter attached.

    The filter adds ``booking_id`` to each record so formatters can
    include ``%(booking_id)s`` in their format string.
    """
    logger = logging.getLogger(name)
    if not any(isinstance(f, BookingIdFilter) for f in logger.filters):
        logger.addFilter(BookingIdFilter())
    return logger
