"""
Typed booking filters.

Dynamic booking queries are expressed as a BookingFilter value instead of
SQL fragments. An in-memory store evaluates it with ``matches``; a
database-backed store maps each field to a bound parameter.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional

from salon_booking.schemas.interval import TimeInterval
from salon_booking.schemas.schedule_schema import (
    NON_BLOCKING_STATUSES,
    Booking,
    BookingStatus,
    ReminderKind,
)

BookingPredicate = Callable[[Booking], bool]


@dataclass(frozen=True)
class BookingFilter:
    """Conjunction of optional booking constraints; unset fields match everything."""

    employee_id: Optional[str] = None
    overlapping: Optional[TimeInterval] = None
    statuses: Optional[frozenset[BookingStatus]] = None
    exclude_statuses: frozenset[BookingStatus] = field(default_factory=frozenset)
    excluding_ids: frozenset[str] = field(default_factory=frozenset)
    starts_after: Optional[datetime] = None
    starts_no_later_than: Optional[datetime] = None
    reminder_unsent: Optional[ReminderKind] = None

    def predicates(self) -> list[BookingPredicate]:
        """Build one predicate per constrained field."""
        preds: list[BookingPredicate] = []
        if self.employee_id is not None:
            employee_id = self.employee_id
            preds.append(lambda b: b.employee_id == employee_id)
        if self.overlapping is not None:
            window = self.overlapping
            preds.append(lambda b: b.interval.overlaps(window))
        if self.statuses is not None:
            statuses = self.statuses
            preds.append(lambda b: b.status in statuses)
        if self.exclude_statuses:
            excluded = self.exclude_statuses
            preds.append(lambda b: b.status not in excluded)
        if self.excluding_ids:
            ids = self.excluding_ids
            preds.append(lambda b: b.id not in ids)
        if self.starts_after is not None:
            lower = self.starts_after
            preds.append(lambda b: b.interval.start > lower)
        if self.starts_no_later_than is not None:
            upper = self.starts_no_later_than
            preds.append(lambda b: b.interval.start <= upper)
        if self.reminder_unsent is not None:
            kind = self.reminder_unsent
            preds.append(lambda b: not b.reminder_flag(kind))
        return preds

    def matches(self, booking: Booking) -> bool:
        return all(pred(booking) for pred in self.predicates())


def occupying_bookings(
    employee_id: str, interval: TimeInterval, excluding: Optional[str] = None
) -> BookingFilter:
    """Filter for bookings of ``employee_id`` that block ``interval``."""
    return BookingFilter(
        employee_id=employee_id,
        overlapping=interval,
        exclude_statuses=NON_BLOCKING_STATUSES,
        excluding_ids=frozenset({excluding}) if excluding else frozenset(),
    )
