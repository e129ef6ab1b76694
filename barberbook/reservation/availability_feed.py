"""
Live feed of blocked times for the slot picker.

An AvailabilityFeed owns at most one standing subscription at a time. Every
change of date or stylist tears the previous subscription down before the
new one is opened, so updates for a stale selection never reach the view.
Use it as a context manager to guarantee teardown on every exit path:

    with AvailabilityFeed(store, shop.id) as feed:
        feed.select("2025-03-01", employee_id="jane")
        feed.on_change(render)
"""

import logging
from collections.abc import Callable
from typing import Optional

from barberbook.reservation.manager import SlotReservationManager
from barberbook.schemas.hold_schema import HOLDS_COLLECTION
from barberbook.store.document_store import Document, DocumentStore, Subscription

logger = logging.getLogger(__name__)

BlockedTimesListener = Callable[[list[str]], None]


class AvailabilityFeed:
    """Keeps the set of blocked times for one (shop, date[, stylist]) current."""

    def __init__(self, store: DocumentStore, shop_id: str) -> None:
        self._store = store
        self.shop_id = shop_id
        self.date: Optional[str] = None
        self.employee_id: Optional[str] = None
        self._subscription: Optional[Subscription] = None
        self._blocked: Optional[list[str]] = None
        self._listeners: list[BlockedTimesListener] = []
        self._closed = False

    @property
    def blocked_times(self) -> list[str]:
        return list(self._blocked or [])

    @property
    def is_subscribed(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def on_change(self, listener: BlockedTimesListener) -> Callable[[], None]:
        """Register a listener; returns a function that removes it."""
        self._listeners.append(listener)
        listener(self.blocked_times)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def select(self, date: str, employee_id: Optional[str] = None) -> None:
        """Re-point the feed at a new date/stylist, replacing the old subscription."""
        if self._closed:
            raise RuntimeError("AvailabilityFeed is closed")
        if self.is_subscribed and (date, employee_id) == (self.date, self.employee_id):
            return
        self._teardown()
        self.date = date
        self.employee_id = employee_id
        filters = SlotReservationManager.hold_filters(self.shop_id, date, employee_id)
        self._subscription = self._store.subscribe(HOLDS_COLLECTION, filters, self._on_snapshot)
        logger.debug("Watching blocked slots for %s %s employee=%s", self.shop_id, date, employee_id)

    def _on_snapshot(self, docs: list[Document]) -> None:
        blocked = sorted({doc["time"] for doc in docs})
        if blocked == self._blocked:
            return
        self._blocked = blocked
        for listener in list(self._listeners):
            listener(self.blocked_times)

    def _teardown(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._blocked = None

    def close(self) -> None:
        self._teardown()
        self._listeners.clear()
        self._closed = True

    def __enter__(self) -> "AvailabilityFeed":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    async def __aenter__(self) -> "AvailabilityFeed":
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.close()
