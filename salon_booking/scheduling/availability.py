"""
Slot availability against working hours, breaks, absences and bookings.

A candidate interval is bookable for an employee only if it sits inside
one of that day's non-break shifts, touches none of the day's breaks,
overlaps no approved absence, and overlaps no booking that still
occupies its slot. Intervals are half-open, so back-to-back bookings
never conflict.

This is an advisory pre-check with no side effects. The authoritative
double-booking guard is the repository's atomic insert.

Usage:
    checker = AvailabilityChecker(repository)
    if checker.is_available("emp-1", TimeInterval(start=..., end=...)):
        ...
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Optional
from zoneinfo import ZoneInfo

from salon_booking.config import settings
from salon_booking.errors import InvalidArgumentError, NotFoundError
from salon_booking.repository.base import ScheduleRepository
from salon_booking.schemas.interval import TimeInterval
from salon_booking.schemas.schedule_schema import WorkShift
from salon_booking.utils import iso_weekday, to_local

logger = logging.getLogger(__name__)


class UnavailableReason(str, Enum):
    """Why a candidate interval was rejected."""

    OUTSIDE_SHIFT = "outside_shift"
    ON_BREAK = "on_break"
    ABSENT = "absent"
    BOOKED = "booked"


@dataclass
class AvailabilityDecision:
    """Outcome of an availability check."""

    available: bool
    reason: Optional[UnavailableReason] = None
    conflicting_booking_ids: list[str] = field(default_factory=list)


class AvailabilityChecker:
    """Read-only decision function over a ScheduleRepository."""

    def __init__(
        self,
        repository: ScheduleRepository,
        tz: Optional[ZoneInfo] = None,
        slot_step_minutes: Optional[int] = None,
    ) -> None:
        self._repository = repository
        self._tz = tz or settings.business.tz
        if slot_step_minutes is None:
            slot_step_minutes = settings.business.slot_step_minutes
        if slot_step_minutes <= 0:
            raise InvalidArgumentError(f"Slot step must be positive, got {slot_step_minutes} minutes.")
        self._step = timedelta(minutes=slot_step_minutes)

    def is_available(
        self,
        employee_id: str,
        candidate: TimeInterval,
        excluding_booking_id: Optional[str] = None,
    ) -> bool:
        """
        Decide whether ``candidate`` can be booked for ``employee_id``.

        Args:
            employee_id: The employee to check.
            candidate: Requested half-open interval.
            excluding_booking_id: A booking to ignore, so that editing a
                booking does not conflict with itself.

        Raises:
            InvalidArgumentError: Malformed interval or identifiers.
            NotFoundError: Unknown employee.
        """
        return self.explain(employee_id, candidate, excluding_booking_id).available

    def explain(
        self,
        employee_id: str,
        candidate: TimeInterval,
        excluding_booking_id: Optional[str] = None,
    ) -> AvailabilityDecision:
        """Same decision as ``is_available`` with the reason for a rejection."""
        self._validate_arguments(employee_id, candidate, excluding_booking_id)
        if not self._repository.employee_exists(employee_id):
            raise NotFoundError(f"Employee {employee_id} not found.")

        local = self._localize(candidate)
        day = local.start.date()
        shifts = self._shifts_for(employee_id, day)

        working = [s.interval_on(day, self._tz) for s in shifts if not s.is_break]
        if not any(w.contains(local) for w in working):
            return self._reject(employee_id, local, UnavailableReason.OUTSIDE_SHIFT)

        breaks = [s.interval_on(day, self._tz) for s in shifts if s.is_break]
        if any(b.overlaps(local) for b in breaks):
            return self._reject(employee_id, local, UnavailableReason.ON_BREAK)

        for absence in self._repository.get_absences(employee_id, local):
            if absence.approved and absence.interval(self._tz).overlaps(local):
                return self._reject(employee_id, local, UnavailableReason.ABSENT)

        conflicts = [
            b.id
            for b in self._repository.get_overlapping_bookings(
                employee_id, local, excluding_booking_id
            )
            if b.occupies_slot
            and b.id != excluding_booking_id
            and self._localize(b.interval).overlaps(local)
        ]
        if conflicts:
            return self._reject(employee_id, local, UnavailableReason.BOOKED, conflicts)

        return AvailabilityDecision(available=True)

    def free_slots(
        self,
        employee_id: str,
        day: date,
        duration: timedelta,
        step: Optional[timedelta] = None,
    ) -> list[TimeInterval]:
        """List bookable intervals of ``duration`` on ``day``, stepping through each shift."""
        if duration <= timedelta(0):
            raise InvalidArgumentError(f"Slot duration must be positive, got {duration}.")
        if step is None:
            step = self._step
        if step <= timedelta(0):
            raise InvalidArgumentError(f"Slot step must be positive, got {step}.")
        if not self._repository.employee_exists(employee_id):
            raise NotFoundError(f"Employee {employee_id} not found.")

        seen: set[datetime] = set()
        slots: list[TimeInterval] = []
        working = sorted(
            (s for s in self._shifts_for(employee_id, day) if not s.is_break),
            key=lambda s: s.start_time,
        )
        for shift in working:
            bounds = shift.interval_on(day, self._tz)
            candidate = TimeInterval(start=bounds.start, end=bounds.start + duration)
            while candidate.end <= bounds.end:
                if candidate.start not in seen and self.is_available(employee_id, candidate):
                    seen.add(candidate.start)
                    slots.append(candidate)
                candidate = candidate.shifted(step)
        return slots

    def _shifts_for(self, employee_id: str, day: date) -> list[WorkShift]:
        weekday = iso_weekday(day)
        return [s for s in self._repository.get_shifts(employee_id) if s.day_of_week == weekday]

    def _localize(self, interval: TimeInterval) -> TimeInterval:
        return TimeInterval(
            start=to_local(interval.start, self._tz),
            end=to_local(interval.end, self._tz),
        )

    @staticmethod
    def _validate_arguments(
        employee_id: str, candidate: TimeInterval, excluding_booking_id: Optional[str]
    ) -> None:
        if not employee_id or not employee_id.strip():
            raise InvalidArgumentError("employee_id must be a non-empty string.")
        if excluding_booking_id is not None and not excluding_booking_id.strip():
            raise InvalidArgumentError("excluding_booking_id must be non-empty when given.")
        candidate.require_valid()

    @staticmethod
    def _reject(
        employee_id: str,
        candidate: TimeInterval,
        reason: UnavailableReason,
        conflicts: Optional[list[str]] = None,
    ) -> AvailabilityDecision:
        logger.debug(
            "Slot %s unavailable for %s: %s", candidate, employee_id, reason.value
        )
        return AvailabilityDecision(
            available=False,
            reason=reason,
            conflicting_booking_ids=conflicts or [],
        )
