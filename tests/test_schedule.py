"""Tests for slot grid generation and schedule validation."""

from datetime import date, datetime, timezone

import pytest
from pydantic import ValidationError

from barberbook.reservation.errors import ScheduleViolation
from barberbook.reservation.schedule import (
    available_times,
    day_hours_for,
    generate_time_slots,
    is_closed_on,
    is_slot_available,
    is_time_slot_past,
    shop_slots,
    validate_request,
)
from barberbook.schemas.shop_schema import Closure, DayHours, Shop
from tests.conftest import DAY, NOW

SATURDAY = date(2025, 3, 1)


class TestGenerateTimeSlots:
    def test_half_hour_grid(self):
        slots = generate_time_slots(DayHours(open="09:00", close="17:00", slot_duration=30))
        assert len(slots) == 16
        assert slots[0] == "09:00"
        assert slots[-1] == "16:30"

    def test_close_is_exclusive(self):
        slots = generate_time_slots(DayHours(open="09:00", close="10:00", slot_duration=20))
        assert slots == ["09:00", "09:20", "09:40"]

    def test_no_hours_means_no_slots(self):
        assert generate_time_slots(None) == []

    def test_missing_duration_uses_default(self):
        slots = generate_time_slots(DayHours(open="09:00", close="10:00"), default_minutes=15)
        assert slots == ["09:00", "09:15", "09:30", "09:45"]

    def test_shop_without_hours_uses_default_grid(self):
        shop = Shop(id="new", name="New Shop", email="new@example.com")
        slots = shop_slots(shop, SATURDAY)
        assert slots[0] == "09:00"
        assert slots[-1] == "17:30"
        assert len(slots) == 18


class TestClosures:
    def test_closure_covers_range(self, acme):
        shop = acme.model_copy(update={
            "closures": [Closure(start_date=date(2025, 2, 28), end_date=date(2025, 3, 2))]
        })
        assert is_closed_on(shop, SATURDAY)
        assert shop_slots(shop, SATURDAY) == []

    def test_day_outside_closure_is_open(self, acme):
        shop = acme.model_copy(update={
            "closures": [Closure(start_date=date(2025, 3, 10), end_date=date(2025, 3, 12))]
        })
        assert not is_closed_on(shop, SATURDAY)

    def test_weekday_without_hours_is_closed(self, acme):
        availability = {k: v for k, v in acme.availability.items() if k != "Saturday"}
        shop = acme.model_copy(update={"availability": availability})
        assert day_hours_for(shop, SATURDAY) is None
        assert shop_slots(shop, SATURDAY) == []


class TestIsTimeSlotPast:
    def test_earlier_day_is_past(self):
        assert is_time_slot_past(date(2025, 2, 27), "16:00", NOW, 15)

    def test_later_day_is_never_past(self):
        assert not is_time_slot_past(date(2025, 3, 1), "09:00", NOW, 15)

    def test_inside_buffer_is_past(self):
        assert is_time_slot_past(date(2025, 2, 28), "12:10", NOW, 15)

    def test_exactly_at_buffer_is_not_past(self):
        assert not is_time_slot_past(date(2025, 2, 28), "12:15", NOW, 15)

    def test_zero_buffer(self):
        now = datetime(2025, 2, 28, 12, 0, 30, tzinfo=timezone.utc)
        assert is_time_slot_past(date(2025, 2, 28), "12:00", now, 0)


class TestValidateRequest:
    def test_open_slot_passes(self, acme):
        validate_request(acme, DAY, "09:00", None, NOW)

    def test_before_opening(self, acme):
        with pytest.raises(ScheduleViolation, match="outside"):
            validate_request(acme, DAY, "08:30", None, NOW)

    def test_at_closing_time(self, acme):
        with pytest.raises(ScheduleViolation):
            validate_request(acme, DAY, "17:00", None, NOW)

    def test_off_grid_time(self, acme):
        with pytest.raises(ScheduleViolation):
            validate_request(acme, DAY, "09:15", None, NOW)

    def test_unparseable_date(self, acme):
        with pytest.raises(ScheduleViolation, match="Invalid date"):
            validate_request(acme, "01/03/2025", "09:00", None, NOW)

    def test_past_slot(self, acme):
        with pytest.raises(ScheduleViolation, match="past"):
            validate_request(acme, "2025-02-28", "12:00", None, NOW)

    def test_closure(self, acme):
        shop = acme.model_copy(update={
            "closures": [Closure(start_date=SATURDAY, end_date=SATURDAY, reason="Holiday")]
        })
        with pytest.raises(ScheduleViolation, match="closed"):
            validate_request(shop, DAY, "09:00", None, NOW)

    def test_employee_hour(self, acme):
        validate_request(acme, DAY, "14:00", "jane", NOW)
        validate_request(acme, DAY, "14:30", "jane", NOW)

    def test_employee_off_hour(self, acme):
        with pytest.raises(ScheduleViolation, match="stylist"):
            validate_request(acme, DAY, "11:00", "jane", NOW)

    def test_unknown_employee(self, acme):
        with pytest.raises(ScheduleViolation, match="Unknown stylist"):
            validate_request(acme, DAY, "09:00", "bob", NOW)

    def test_padded_time_is_accepted(self, acme):
        validate_request(acme, f" {DAY}", " 9:00 ", None, NOW)

    def test_violation_details(self, acme):
        with pytest.raises(ScheduleViolation) as exc_info:
            validate_request(acme, DAY, "08:30", None, NOW)
        assert exc_info.value.code == "schedule_violation"
        assert exc_info.value.details["time"] == "08:30"
        assert not exc_info.value.retryable


class TestShopTimezone:
    """NOW is 12:00 UTC, which is 13:00 on a Berlin shop's clock."""

    def test_buffer_uses_shop_wall_clock(self, acme):
        berlin = acme.model_copy(update={"timezone": "Europe/Berlin"})
        validate_request(acme, "2025-02-28", "13:00", None, NOW)
        with pytest.raises(ScheduleViolation, match="past"):
            validate_request(berlin, "2025-02-28", "13:00", None, NOW)
        validate_request(berlin, "2025-02-28", "13:30", None, NOW)

    def test_today_follows_shop_date(self, acme):
        # 20:30 UTC on Feb 28 is already 09:30 on Mar 1 in Auckland.
        now = datetime(2025, 2, 28, 20, 30, tzinfo=timezone.utc)
        auckland = acme.model_copy(update={"timezone": "Pacific/Auckland"})
        validate_request(acme, DAY, "09:00", None, now)
        with pytest.raises(ScheduleViolation, match="past"):
            validate_request(auckland, DAY, "09:00", None, now)

    def test_available_times_start_after_local_buffer(self, acme):
        berlin = acme.model_copy(update={"timezone": "Europe/Berlin"})
        assert available_times(acme, "2025-02-28", None, [], NOW)[0] == "12:30"
        assert available_times(berlin, "2025-02-28", None, [], NOW)[0] == "13:30"

    def test_naive_now_is_taken_as_local(self, acme):
        berlin = acme.model_copy(update={"timezone": "Europe/Berlin"})
        naive = datetime(2025, 2, 28, 12, 0)
        assert berlin.local_time(naive) is naive

    def test_unknown_timezone_rejected(self):
        with pytest.raises(ValidationError, match="Unknown timezone"):
            Shop(id="x", name="X", email="x@example.com", timezone="Mars/Olympus")


class TestAvailability:
    def test_blocked_slot_unavailable(self, acme):
        assert not is_slot_available(acme, DAY, "09:00", None, ["09:00"], NOW)

    def test_free_slot_available(self, acme):
        assert is_slot_available(acme, DAY, "09:30", None, ["09:00"], NOW)

    def test_invalid_slot_unavailable(self, acme):
        assert not is_slot_available(acme, DAY, "08:30", None, [], NOW)

    def test_available_times_for_employee(self, acme):
        times = available_times(acme, DAY, "jane", ["10:00"], NOW)
        assert times == ["09:00", "09:30", "10:30", "14:00", "14:30"]

    def test_available_times_bad_date(self, acme):
        assert available_times(acme, "not-a-date", None, [], NOW) == []
