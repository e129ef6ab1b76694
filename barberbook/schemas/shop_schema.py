"""Shop opening hours, closures, and employee schedule models."""

from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from barberbook.utils import parse_time, to_minutes


class DayHours(BaseModel):
    """Opening hours for a single weekday."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    open: str
    close: str
    slot_duration: Optional[int] = None

    @field_validator("open", "close")
    @classmethod
    def _check_hhmm(cls, value: str) -> str:
        parse_time(value)
        return value.strip()

    @field_validator("slot_duration")
    @classmethod
    def _check_duration(cls, value: Optional[int]) -> Optional[int]:
        if value is not None and value <= 0:
            raise ValueError("slot_duration must be positive")
        return value

    @property
    def open_minutes(self) -> int:
        return to_minutes(self.open)

    @property
    def close_minutes(self) -> int:
        return to_minutes(self.close)


class Closure(BaseModel):
    """A date range during which the shop takes no bookings (holiday, vacation)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    start_date: date
    end_date: date
    type: str = "holiday"
    reason: Optional[str] = None

    def covers(self, day: date) -> bool:
        return self.start_date <= day <= self.end_date


class Employee(BaseModel):
    """A bookable stylist with a per-weekday list of bookable hours."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    schedule: dict[str, list[int]] = Field(default_factory=dict)

    def works_at(self, weekday: str, hour: int) -> bool:
        return hour in self.schedule.get(weekday, [])


class Shop(BaseModel):
    """Shop record as read from the barberShops collection."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    email: str
    availability: Optional[dict[str, DayHours]] = None
    closures: list[Closure] = Field(default_factory=list)
    employees: list[Employee] = Field(default_factory=list)
    timezone: str = "UTC"

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {value!r}") from None
        return value

    def local_time(self, now: datetime) -> datetime:
        """``now`` on the shop's wall clock; naive datetimes are taken as already local."""
        if now.tzinfo is None:
            return now
        return now.astimezone(ZoneInfo(self.timezone))

    def get_employee(self, employee_id: str) -> Optional[Employee]:
        for employee in self.employees:
            if employee.id == employee_id:
                return employee
        return None
