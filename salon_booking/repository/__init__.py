from salon_booking.repository.base import ContactDirectory, DeviceTokenStore, ScheduleRepository
from salon_booking.repository.memory import (
    InMemoryContactDirectory,
    InMemoryDeviceTokenStore,
    InMemoryScheduleRepository,
)
from salon_booking.repository.predicates import BookingFilter, occupying_bookings

__all__ = [
    "ScheduleRepository", "DeviceTokenStore", "ContactDirectory",
    "InMemoryScheduleRepository", "InMemoryDeviceTokenStore", "InMemoryContactDirectory",
    "BookingFilter", "occupying_bookings",
]
