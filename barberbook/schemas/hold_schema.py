"""Time-slot hold records (the bookedTimeSlots collection)."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

HOLDS_COLLECTION = "bookedTimeSlots"


class HoldStatus(str, Enum):
    PENDING = "pending"
    BOOKED = "booked"
    CANCELLED = "cancelled"


ACTIVE_HOLD_STATUSES = (HoldStatus.BOOKED.value, HoldStatus.PENDING.value)


class TimeSlotHold(BaseModel):
    """A claim on one (shop, date, time, employee-or-none) slot.

    At most one hold per tuple may be pending or booked at any instant.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: Optional[str] = None
    shop_id: str
    date: str
    time: str
    employee_id: Optional[str] = None
    employee_name: Optional[str] = None
    status: HoldStatus = HoldStatus.PENDING
    created_at: Optional[datetime] = None
    booking_id: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status.value in ACTIVE_HOLD_STATUSES

    def to_document(self) -> dict[str, Any]:
        """Store payload; the id is the document key and createdAt is stamped by the server."""
        return self.model_dump(mode="json", by_alias=True, exclude={"id", "created_at"})
