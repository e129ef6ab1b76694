"""
Customer-facing booking desk.

Wraps the SlotReservationManager so that no reservation failure reaches
the caller as an exception: every call returns a BookingOutcome carrying
a translated message, the stable error code, and whether retrying the
same request may succeed.
"""

from datetime import datetime
from typing import Optional, TypedDict

from barberbook.config import settings
from barberbook.logging_context import booking_session, get_session_logger
from barberbook.reservation.errors import ReservationError
from barberbook.reservation.manager import SlotReservationManager
from barberbook.reservation.schedule import available_times
from barberbook.schemas.booking_schema import BookingRequest
from barberbook.schemas.shop_schema import Shop
from barberbook.store.document_store import StoreError
from barberbook.tools.messages import get_message

logger = get_session_logger(__name__)


class BookingOutcome(TypedDict, total=False):
    """Result from book, cancel, or reschedule."""

    success: bool
    message: str
    session_id: str
    error_code: Optional[str]
    retryable: bool
    booking_id: Optional[str]
    hold_id: Optional[str]


class BookingDesk:
    def __init__(
        self, manager: SlotReservationManager, language: str = settings.default_language
    ) -> None:
        self.manager = manager
        self.language = language

    def _failure(self, session_id: str, error: Exception) -> BookingOutcome:
        if isinstance(error, ReservationError):
            code, retryable = error.code, error.retryable
        else:
            code, retryable = "store_unavailable", True
        logger.info("Booking desk returning %s: %s", code, error)
        return {
            "success": False,
            "message": get_message(code, self.language),
            "session_id": session_id,
            "error_code": code,
            "retryable": retryable,
            "booking_id": None,
            "hold_id": None,
        }

    async def book(
        self, shop: Shop, request: BookingRequest, now: Optional[datetime] = None
    ) -> BookingOutcome:
        with booking_session() as session_id:
            try:
                result = await self.manager.reserve_slot(shop, request, now=now)
            except (ReservationError, StoreError) as e:
                return self._failure(session_id, e)
        return {
            "success": True,
            "message": get_message("booked", self.language, date=result.date, time=result.time),
            "session_id": session_id,
            "error_code": None,
            "retryable": False,
            "booking_id": result.booking_id,
            "hold_id": result.hold_id,
        }

    async def cancel(
        self, booking_id: str, reason: str, cancelled_by: str = "customer"
    ) -> BookingOutcome:
        with booking_session() as session_id:
            try:
                changed = await self.manager.cancel_booking(booking_id, reason, cancelled_by)
            except (ReservationError, StoreError) as e:
                return self._failure(session_id, e)
        return {
            "success": True,
            "message": get_message("cancelled" if changed else "already_cancelled", self.language),
            "session_id": session_id,
            "error_code": None,
            "retryable": False,
            "booking_id": booking_id,
            "hold_id": None,
        }

    async def reschedule(
        self,
        shop: Shop,
        booking_id: str,
        new_date: str,
        new_time: str,
        reason: str = "Customer requested reschedule",
        now: Optional[datetime] = None,
    ) -> BookingOutcome:
        with booking_session() as session_id:
            try:
                result = await self.manager.reschedule_booking(
                    shop, booking_id, new_date, new_time, reason, now=now
                )
            except (ReservationError, StoreError) as e:
                return self._failure(session_id, e)
        return {
            "success": True,
            "message": get_message("rescheduled", self.language, date=result.date, time=result.time),
            "session_id": session_id,
            "error_code": None,
            "retryable": False,
            "booking_id": booking_id,
            "hold_id": result.hold_id,
        }

    async def available_times(
        self,
        shop: Shop,
        selected_date: str,
        employee_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> list[str]:
        """Bookable times for a date, or an empty list when the store is unreachable."""
        try:
            blocked = await self.manager.blocked_times(shop.id, selected_date, employee_id)
        except StoreError as e:
            logger.warning("Could not load blocked times for %s %s: %s", shop.id, selected_date, e)
            return []
        return available_times(
            shop, selected_date, employee_id, blocked, now or self.manager.now()
        )
