"""
Slot grid generation and schedule validation.

A shop's bookable slots for a date come from its weekday opening hours
stepped by the day's slot duration. A request is valid only if its time
sits on that grid, the day is not covered by a closure, the slot is not
inside the past-buffer window for today, and, when a stylist is chosen,
the slot's hour is in that stylist's schedule for the weekday.
"""

import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta
from typing import Optional

from barberbook.config import settings
from barberbook.reservation.errors import ScheduleViolation
from barberbook.schemas.shop_schema import DayHours, Shop
from barberbook.utils import (
    canonical_date,
    canonical_time,
    format_minutes,
    parse_date,
    parse_time,
    weekday_name,
)

logger = logging.getLogger(__name__)

# Used when a shop has never configured opening hours.
DEFAULT_DAY_HOURS = DayHours(open="09:00", close="18:00", slot_duration=30)


def day_hours_for(shop: Shop, day: date) -> Optional[DayHours]:
    """Opening hours for the weekday of ``day``; None when the shop is closed."""
    if shop.availability is None:
        return DEFAULT_DAY_HOURS
    return shop.availability.get(weekday_name(day))


def generate_time_slots(
    hours: Optional[DayHours], default_minutes: Optional[int] = None
) -> list[str]:
    """Generate HH:MM slot starts from open (inclusive) to close (exclusive)."""
    if hours is None:
        return []
    step = hours.slot_duration or default_minutes or settings.reservation.default_slot_minutes
    return [
        format_minutes(minute)
        for minute in range(hours.open_minutes, hours.close_minutes, step)
    ]


def is_closed_on(shop: Shop, day: date) -> bool:
    return any(closure.covers(day) for closure in shop.closures)


def shop_slots(shop: Shop, day: date) -> list[str]:
    """The shop's slot grid for ``day``, empty when closed."""
    if is_closed_on(shop, day):
        return []
    return generate_time_slots(day_hours_for(shop, day))


def is_time_slot_past(
    day: date,
    time: str,
    now: datetime,
    buffer_minutes: Optional[int] = None,
) -> bool:
    """True when ``day`` is today and ``time`` starts within the buffer of ``now``.

    ``now`` is read on the shop's wall clock (see Shop.local_time). Dates
    before today are always past; dates after today never are.
    """
    if buffer_minutes is None:
        buffer_minutes = settings.reservation.past_buffer_minutes
    today = now.date()
    if day < today:
        return True
    if day > today:
        return False
    hour, minute = parse_time(time)
    slot_start = datetime.combine(day, datetime.min.time()).replace(
        hour=hour, minute=minute, tzinfo=now.tzinfo
    )
    return now > slot_start - timedelta(minutes=buffer_minutes)


def validate_request(
    shop: Shop,
    selected_date: str,
    selected_time: str,
    employee_id: Optional[str],
    now: datetime,
    buffer_minutes: Optional[int] = None,
) -> None:
    """Raise ScheduleViolation unless the slot is bookable for this shop/stylist.

    ``now`` may be in any timezone; the past-buffer check runs on the shop's
    wall clock.
    """
    selected_date = canonical_date(selected_date)
    selected_time = canonical_time(selected_time)
    try:
        day = parse_date(selected_date)
        hour, _ = parse_time(selected_time)
    except ValueError:
        raise ScheduleViolation(
            f"Invalid date or time: {selected_date} {selected_time}",
            date=selected_date,
            time=selected_time,
        ) from None

    if is_closed_on(shop, day):
        raise ScheduleViolation(f"{shop.name} is closed on {selected_date}", date=selected_date)

    grid = generate_time_slots(day_hours_for(shop, day))
    if not grid:
        raise ScheduleViolation(
            f"{shop.name} is closed on {weekday_name(day)}", date=selected_date
        )
    if selected_time not in grid:
        raise ScheduleViolation(
            f"{selected_time} is outside {shop.name}'s hours on {weekday_name(day)}",
            date=selected_date,
            time=selected_time,
        )

    if is_time_slot_past(day, selected_time, shop.local_time(now), buffer_minutes):
        raise ScheduleViolation(
            f"{selected_date} {selected_time} is in the past", date=selected_date, time=selected_time
        )

    if employee_id is not None:
        employee = shop.get_employee(employee_id)
        if employee is None:
            raise ScheduleViolation(f"Unknown stylist: {employee_id}", employee_id=employee_id)
        if not employee.works_at(weekday_name(day), hour):
            raise ScheduleViolation(
                "Selected time is not available for this stylist",
                employee_id=employee_id,
                time=selected_time,
            )


def is_slot_available(
    shop: Shop,
    selected_date: str,
    selected_time: str,
    employee_id: Optional[str],
    blocked_times: Iterable[str],
    now: datetime,
) -> bool:
    """Pure predicate used to grey out slots in a live view."""
    if canonical_time(selected_time) in set(blocked_times):
        return False
    try:
        validate_request(shop, selected_date, selected_time, employee_id, now)
    except ScheduleViolation:
        return False
    return True


def available_times(
    shop: Shop,
    selected_date: str,
    employee_id: Optional[str],
    blocked_times: Iterable[str],
    now: datetime,
) -> list[str]:
    """The shop grid for ``selected_date`` filtered by is_slot_available."""
    try:
        day = parse_date(selected_date)
    except ValueError:
        return []
    blocked = set(blocked_times)
    return [
        slot
        for slot in shop_slots(shop, day)
        if is_slot_available(shop, selected_date, slot, employee_id, blocked, now)
    ]
