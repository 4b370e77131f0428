from salon_booking.scheduling.availability import (
    AvailabilityChecker,
    AvailabilityDecision,
    UnavailableReason,
)
from salon_booking.scheduling.booking_service import BookingResult, BookingService
from salon_booking.scheduling.reminders import ReminderTrigger

__all__ = [
    "AvailabilityChecker", "AvailabilityDecision", "UnavailableReason",
    "BookingService", "BookingResult",
    "ReminderTrigger",
]
