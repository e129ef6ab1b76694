"""Booking request, booking record, and reservation result models."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from barberbook.utils import canonical_date, canonical_time

BOOKINGS_COLLECTION = "bookings"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"


# Statuses that still occupy their time on the shop calendar.
ACTIVE_BOOKING_STATUSES = (
    BookingStatus.PENDING.value,
    BookingStatus.CONFIRMED.value,
    BookingStatus.RESCHEDULED.value,
)


class ServiceItem(BaseModel):
    """A selected service: name, price and duration in minutes."""

    name: str
    price: float
    duration: int = 30

    @field_validator("price")
    @classmethod
    def _non_negative_price(cls, value: float) -> float:
        if value < 0:
            raise ValueError("price must be >= 0")
        return value


class BookingRequest(BaseModel):
    """Validated booking request data submitted by a customer."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    shop_id: str
    shop_email: str
    customer_name: str
    customer_email: str
    customer_phone: str
    selected_services: list[ServiceItem] = Field(default_factory=list)
    custom_service: Optional[str] = None
    selected_date: str
    selected_time: str
    employee_id: Optional[str] = None
    employee_name: Optional[str] = None

    @field_validator("selected_date")
    @classmethod
    def _canonical_date(cls, value: str) -> str:
        return canonical_date(value)

    @field_validator("selected_time")
    @classmethod
    def _canonical_time(cls, value: str) -> str:
        """Holds are keyed on the padded form, so " 9:00" and "09:00" are one slot."""
        return canonical_time(value)

    @property
    def total_price(self) -> float:
        return round(sum(s.price for s in self.selected_services), 2)

    def to_payload(self, time_slot_id: str) -> dict[str, Any]:
        """Body sent to the booking-creation endpoint."""
        payload = self.model_dump(mode="json", by_alias=True)
        payload["totalPrice"] = self.total_price
        payload["timeSlotId"] = time_slot_id
        payload["status"] = BookingStatus.PENDING.value
        return payload


class Booking(BaseModel):
    """Durable booking record, linked 1:1 to a TimeSlotHold via time_slot_id."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    shop_id: str
    shop_email: Optional[str] = None
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None
    selected_services: list[ServiceItem] = Field(default_factory=list)
    custom_service: Optional[str] = None
    selected_date: str
    selected_time: str
    total_price: float = 0.0
    status: BookingStatus = BookingStatus.PENDING
    time_slot_id: Optional[str] = None
    employee_id: Optional[str] = None
    employee_name: Optional[str] = None
    created_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    previous_date: Optional[str] = None
    previous_time: Optional[str] = None


class ReservationResult(BaseModel):
    """Outcome of a successful reserve_slot or reschedule_booking call."""

    booking_id: str
    hold_id: str
    hold_status: str
    shop_id: str
    date: str
    time: str
    employee_id: Optional[str] = None
    total_price: float = 0.0
    state_trace: list[str] = Field(default_factory=list)
