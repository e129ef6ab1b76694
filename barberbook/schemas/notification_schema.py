"""Shop-owner notification records (best-effort, informational only)."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

NOTIFICATIONS_COLLECTION = "notifications"


class NotificationType(str, Enum):
    NEW_BOOKING = "new_booking"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_MODIFIED = "booking_modified"


class Notification(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    type: NotificationType
    shop_id: str
    title: str
    message: str
    booking_id: Optional[str] = None
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    appointment_date: Optional[str] = None
    appointment_time: Optional[str] = None
    employee_id: Optional[str] = None
    total_price: Optional[float] = None
    cancellation_reason: Optional[str] = None
    cancelled_by: Optional[str] = None
    read: bool = False
