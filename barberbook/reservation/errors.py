"""
Reservation error taxonomy.

Every failure the reservation core can report is a ReservationError with a
stable ``code`` (used to pick the user-facing message) and a ``retryable``
flag telling the caller whether resubmitting the same request may succeed.
"""

from typing import Any


class ReservationError(Exception):
    """Base exception for reservation and booking lifecycle errors."""

    code: str = "reservation_error"
    retryable: bool = False

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class SlotUnavailable(ReservationError):
    """Another active hold already occupies the requested slot."""

    code = "slot_unavailable"


class ScheduleViolation(ReservationError):
    """Requested time is outside shop/employee hours, closed, or in the past buffer."""

    code = "schedule_violation"


class HoldCreationFailed(ReservationError):
    """The hold could not be written; no booking was attempted."""

    code = "hold_creation_failed"
    retryable = True


class BookingCreationFailed(ReservationError):
    """The hold was taken but the booking could not be created; the hold was rolled back."""

    code = "booking_creation_failed"
    retryable = True


class CleanupFailed(ReservationError):
    """Rolling back a hold failed; a pending hold may be blocking the slot."""

    code = "cleanup_failed"


class BookingNotFound(ReservationError):
    code = "booking_not_found"


class InvalidBookingRequest(ReservationError):
    """The request or the requested status change is not valid for this booking."""

    code = "invalid_booking_request"


class RegistrationTokenError(ReservationError):
    """Base for employee self-registration token failures."""

    code = "registration_token_error"


class InvalidToken(RegistrationTokenError):
    code = "invalid_token"


class TokenExpired(RegistrationTokenError):
    code = "token_expired"


class TokenAlreadyUsed(RegistrationTokenError):
    code = "token_already_used"


class CancellationFailed(ReservationError):
    """The booking and its hold could not be cancelled; nothing was changed."""

    code = "cancellation_failed"
    retryable = True
