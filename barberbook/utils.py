"""Shared utilities used across the reservation modules."""

import re
from datetime import date, datetime

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PHONE_DIGITS = 6

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def normalize_phone(value: str) -> str:
    """Normalize a phone number by stripping everything except digits and a leading +.

    Examples:
        >>> normalize_phone("0412 345 678")
        '0412345678'
        >>> normalize_phone("+90 (532) 123-4567")
        '+905321234567'
    """
    value = value.strip()
    if value.startswith("+"):
        return "+" + re.sub(r"[^\d]", "", value[1:])
    return re.sub(r"[^\d]", "", value)


def is_valid_phone(value: str) -> bool:
    return len(re.sub(r"[^\d]", "", value)) >= MIN_PHONE_DIGITS


def is_valid_email(value: str) -> bool:
    return bool(EMAIL_PATTERN.match(value.strip()))


def parse_date(value: str) -> date:
    """Parse an ISO calendar day (YYYY-MM-DD)."""
    return datetime.strptime(value.strip(), "%Y-%m-%d").date()


def parse_time(value: str) -> tuple[int, int]:
    """Parse an HH:MM wall-clock time into (hour, minute)."""
    parsed = datetime.strptime(value.strip(), "%H:%M")
    return parsed.hour, parsed.minute


def to_minutes(value: str) -> int:
    hour, minute = parse_time(value)
    return hour * 60 + minute


def format_minutes(total: int) -> str:
    return f"{total // 60:02d}:{total % 60:02d}"


def weekday_name(day: date) -> str:
    """English weekday name, the key used by shop and employee schedules."""
    return WEEKDAYS[day.weekday()]


def canonical_date(value: str) -> str:
    """``value`` as YYYY-MM-DD, the form holds and bookings are keyed on.

    Unparseable input comes back stripped so schedule validation can reject it.
    """
    try:
        return parse_date(value).isoformat()
    except ValueError:
        return value.strip()


def canonical_time(value: str) -> str:
    """``value`` as zero-padded HH:MM ("9:00 " -> "09:00"); unparseable input is stripped."""
    try:
        return format_minutes(to_minutes(value))
    except ValueError:
        return value.strip()
