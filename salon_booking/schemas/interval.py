"""Half-open time interval value type."""

from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict

from salon_booking.errors import InvalidArgumentError


class TimeInterval(BaseModel):
    """A contiguous half-open range ``[start, end)``.

    Construction does not enforce ``start < end`` so that callers can hand
    a malformed candidate to the availability checker and get an
    InvalidArgumentError back; call :meth:`require_valid` before use.
    """

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    def require_valid(self) -> "TimeInterval":
        """Raise InvalidArgumentError unless ``start < end`` with matching awareness."""
        if (self.start.tzinfo is None) != (self.end.tzinfo is None):
            raise InvalidArgumentError(
                "Interval bounds must both be timezone-aware or both be naive."
            )
        if self.start >= self.end:
            raise InvalidArgumentError(
                f"Interval start {self.start.isoformat()} must be before "
                f"end {self.end.isoformat()}."
            )
        return self

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "TimeInterval") -> bool:
        """True iff the ranges share at least one instant; touching ends do not."""
        return self.start < other.end and other.start < self.end

    def contains(self, other: "TimeInterval") -> bool:
        """True iff ``other`` lies entirely within this interval."""
        return self.start <= other.start and other.end <= self.end

    def shifted(self, delta: timedelta) -> "TimeInterval":
        return TimeInterval(start=self.start + delta, end=self.end + delta)

    def __str__(self) -> str:
        return f"[{self.start.isoformat()}, {self.end.isoformat()})"
