from barberbook.reservation.availability_feed import AvailabilityFeed
from barberbook.reservation.errors import (
    BookingCreationFailed,
    BookingNotFound,
    CancellationFailed,
    CleanupFailed,
    HoldCreationFailed,
    InvalidBookingRequest,
    InvalidToken,
    RegistrationTokenError,
    ReservationError,
    ScheduleViolation,
    SlotUnavailable,
    TokenAlreadyUsed,
    TokenExpired,
)
from barberbook.reservation.manager import SlotReservationManager
from barberbook.reservation.registration import RegistrationTokenService

__all__ = [
    "AvailabilityFeed",
    "BookingCreationFailed",
    "BookingNotFound",
    "CancellationFailed",
    "CleanupFailed",
    "HoldCreationFailed",
    "InvalidBookingRequest",
    "InvalidToken",
    "RegistrationTokenError",
    "RegistrationTokenService",
    "ReservationError",
    "ScheduleViolation",
    "SlotReservationManager",
    "SlotUnavailable",
    "TokenAlreadyUsed",
    "TokenExpired",
]
