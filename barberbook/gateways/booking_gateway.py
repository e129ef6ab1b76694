"""
Booking-creation and cancellation boundary.

The hosted backend exposes two functions: ``createBooking`` (the commit
point for a Booking, which also e-mails the shop and the customer) and
``cancelBooking`` (which triggers cancellation e-mails). HttpBookingGateway
talks to them over HTTPS; StoreBookingGateway performs the same work
directly against a document store for offline use and tests.
"""

import logging
from typing import Any, Optional, Protocol

import httpx

from barberbook.config import BackendConfig, settings
from barberbook.schemas.booking_schema import (
    ACTIVE_BOOKING_STATUSES,
    BOOKINGS_COLLECTION,
    BookingRequest,
)
from barberbook.store.document_store import DocumentStore
from barberbook.utils import is_valid_email

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """The booking backend rejected the call or could not be reached."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload or {}


class BookingGateway(Protocol):
    async def create_booking(self, request: BookingRequest, time_slot_id: str) -> str:
        """Create the booking and return its identifier."""
        ...

    async def cancel_booking(
        self, booking_id: str, reason: str, contact: dict[str, Any]
    ) -> None:
        """Notify the backend that a booking was cancelled."""
        ...


def _missing_fields(request: BookingRequest) -> list[str]:
    required = [
        ("shopId", request.shop_id),
        ("shopEmail", request.shop_email),
        ("customerName", request.customer_name),
        ("customerEmail", request.customer_email),
        ("selectedDate", request.selected_date),
        ("selectedTime", request.selected_time),
    ]
    missing = [name for name, value in required if not value or not value.strip()]
    if not request.selected_services:
        missing.append("selectedServices")
    return missing


class HttpBookingGateway:
    """Calls the hosted cloud functions with httpx."""

    def __init__(
        self,
        config: BackendConfig = settings.backend,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = config.functions_base_url.rstrip("/")
        self._timeout = config.request_timeout_sec
        self._client = client

    async def _post(self, endpoint: str, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}/{endpoint}"
        try:
            if self._client is not None:
                response = await self._client.post(url, json=body, timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(url, json=body)
        except httpx.TimeoutException as e:
            raise GatewayError(f"{endpoint} timed out after {self._timeout}s") from e
        except httpx.HTTPError as e:
            raise GatewayError(f"{endpoint} request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if response.status_code >= 400:
            logger.error("%s failed: %s %s", endpoint, response.status_code, data)
            raise GatewayError(
                data.get("error") or f"{endpoint} returned {response.status_code}",
                status_code=response.status_code,
                payload=data,
            )
        return data

    async def create_booking(self, request: BookingRequest, time_slot_id: str) -> str:
        data = await self._post("createBooking", request.to_payload(time_slot_id))
        booking_id = data.get("bookingId")
        if not booking_id:
            raise GatewayError("createBooking returned no bookingId", payload=data)
        logger.info("Booking created remotely: %s", booking_id)
        return str(booking_id)

    async def cancel_booking(
        self, booking_id: str, reason: str, contact: dict[str, Any]
    ) -> None:
        await self._post("cancelBooking", {"bookingId": booking_id, "reason": reason, **contact})
        logger.info("Cancellation sent for booking %s", booking_id)


class StoreBookingGateway:
    """Offline stand-in for the hosted functions, writing to a DocumentStore."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store
        self._fail_creates = 0
        self._fail_cancels = 0
        self.sent_emails: list[dict[str, str]] = []

    def fail_next_create(self, times: int = 1) -> None:
        self._fail_creates += times

    def fail_next_cancel(self, times: int = 1) -> None:
        self._fail_cancels += times

    def _send_email(self, to: str, subject: str, booking_id: str) -> None:
        self.sent_emails.append({"to": to, "subject": subject, "bookingId": booking_id})
        logger.info("Email '%s' sent to %s for booking %s", subject, to, booking_id)

    async def create_booking(self, request: BookingRequest, time_slot_id: str) -> str:
        if self._fail_creates:
            self._fail_creates -= 1
            raise GatewayError("Error creating booking", status_code=500)

        missing = _missing_fields(request)
        if missing:
            raise GatewayError(
                f"Missing required fields: {', '.join(missing)}", status_code=400
            )
        if not is_valid_email(request.shop_email) or not is_valid_email(request.customer_email):
            raise GatewayError("Invalid email address", status_code=400)

        conflicts = await self._store.query(
            BOOKINGS_COLLECTION,
            {
                "shopId": request.shop_id,
                "selectedDate": request.selected_date,
                "selectedTime": request.selected_time,
                "employeeId": request.employee_id,
                "status": ACTIVE_BOOKING_STATUSES,
            },
        )
        if conflicts:
            raise GatewayError("Time slot is not available", status_code=409)

        booking_id = await self._store.add(
            BOOKINGS_COLLECTION, request.to_payload(time_slot_id)
        )
        self._send_email(request.shop_email, "New booking", booking_id)
        self._send_email(request.customer_email, "Booking confirmation", booking_id)
        return booking_id

    async def cancel_booking(
        self, booking_id: str, reason: str, contact: dict[str, Any]
    ) -> None:
        if self._fail_cancels:
            self._fail_cancels -= 1
            raise GatewayError("Error cancelling booking", status_code=500)
        for key in ("customerEmail", "shopEmail"):
            if contact.get(key):
                self._send_email(contact[key], f"Booking cancelled: {reason}", booking_id)
