"""Correlation ID logging context for tracing a booking session across modules.

Every customer action at the booking desk runs inside a ``booking_session``;
the hold, booking, flip and compensation steps it triggers all log with the
same ``session_id``, so one customer's reservation reads back as a single
trail even when many sessions interleave on the event loop.

Usage:
    from barberbook.logging_context import booking_session, get_session_logger

    logger = get_session_logger(__name__)
    with booking_session() as session_id:
        logger.info("Reserving slot")  # record.session_id == session_id
"""

import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from typing import Optional

NO_SESSION_ID = "NO_SESSION_ID"

_session_id: ContextVar[str] = ContextVar("session_id", default=NO_SESSION_ID)


def new_session_id() -> str:
    return f"BK-{uuid.uuid4().hex[:8].upper()}"


def set_session_id(session_id: str) -> Token:
    """Set the correlation ID for the current async context."""
    return _session_id.set(session_id)


def get_session_id() -> str:
    return _session_id.get()


@contextmanager
def booking_session(session_id: Optional[str] = None) -> Iterator[str]:
    """Scope a correlation ID to one desk call; the previous ID is restored on exit."""
    token = set_session_id(session_id or new_session_id())
    try:
        yield _session_id.get()
    finally:
        _session_id.reset(token)


class SessionIdFilter(logging.Filter):
    """Injects session_id into every log record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = _session_id.get()  # type: ignore[attr-defined]
        return True


def get_session_logger(name: str) -> logging.Logger:
    """Return a logger with the SessionIdFilter attached."""
    logger = logging.getLogger(name)
    if not any(isinstance(f, SessionIdFilter) for f in logger.filters):
        logger.addFilter(SessionIdFilter())
    return logger
