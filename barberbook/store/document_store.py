"""
Document store interface and an in-memory implementation.

In production, this fronts a hosted document database (per-document atomic
updates, batched writes, equality/"in" queries, and push subscriptions).
The in-memory store reproduces exactly that surface and nothing more: no
multi-document transactions over query predicates are offered.

Usage:
    store = InMemoryDocumentStore()
    doc_id = await store.add("bookedTimeSlots", {"shopId": "s1", "status": "pending"})
    docs = await store.query("bookedTimeSlots", {"shopId": "s1", "status": ("pending", "booked")})
"""

import asyncio
import copy
import itertools
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)

Document = dict[str, Any]
Filters = dict[str, Any]
SnapshotCallback = Callable[[list[Document]], None]
_BatchOp = tuple[str, str, str, Optional[Document], Optional[Document]]

_IN_TYPES = (list, tuple, set, frozenset)


class StoreError(Exception):
    """Raised when a store operation fails (network, permission, injected fault)."""


class DocumentNotFound(StoreError):
    """Raised when updating a document that does not exist."""


class PreconditionFailed(StoreError):
    """Raised when a conditional update finds the document changed."""


def _matches(doc: Document, filters: Filters) -> bool:
    """Equality filters; a list/tuple/set value means 'field in values'."""
    for key, expected in filters.items():
        value = doc.get(key)
        if isinstance(expected, _IN_TYPES):
            if value not in expected:
                return False
        elif value != expected:
            return False
    return True


class Subscription:
    """Handle for a standing query; unsubscribe() is idempotent."""

    def __init__(self, release: Callable[[], None], collection: str, filters: Filters) -> None:
        self._release: Optional[Callable[[], None]] = release
        self.collection = collection
        self.filters = dict(filters)

    @property
    def active(self) -> bool:
        return self._release is not None

    def unsubscribe(self) -> None:
        if self._release is not None:
            self._release()
            self._release = None


class WriteBatch:
    """Set/update/delete operations committed together: all apply or none do."""

    def __init__(self, store: "InMemoryDocumentStore") -> None:
        self._store = store
        self._ops: list[_BatchOp] = []
        self._committed = False

    def set(self, collection: str, doc_id: str, data: Document) -> "WriteBatch":
        self._ops.append(("set", collection, doc_id, dict(data), None))
        return self

    def update(
        self,
        collection: str,
        doc_id: str,
        changes: Document,
        expect: Optional[Document] = None,
    ) -> "WriteBatch":
        """Queue an update; with ``expect``, the commit fails unless those fields still match."""
        self._ops.append(("update", collection, doc_id, dict(changes), expect))
        return self

    def delete(self, collection: str, doc_id: str) -> "WriteBatch":
        self._ops.append(("delete", collection, doc_id, None, None))
        return self

    def __len__(self) -> int:
        return len(self._ops)

    async def commit(self) -> None:
        if self._committed:
            raise StoreError("Batch already committed")
        await self._store._commit_batch(self._ops)
        self._committed = True


class DocumentStore(Protocol):
    """The subset of the hosted document database the reservation core uses."""

    async def add(self, collection: str, data: Document, server_timestamp: bool = True) -> str: ...

    async def get(self, collection: str, doc_id: str) -> Optional[Document]: ...

    async def set(self, collection: str, doc_id: str, data: Document) -> None: ...

    async def update(self, collection: str, doc_id: str, changes: Document) -> None: ...

    async def delete(self, collection: str, doc_id: str) -> None: ...

    async def query(self, collection: str, filters: Filters) -> list[Document]: ...

    def batch(self) -> WriteBatch: ...

    def subscribe(
        self, collection: str, filters: Filters, callback: SnapshotCallback
    ) -> Subscription: ...


class InMemoryDocumentStore:
    """
    Process-local document store with per-document atomicity.

    Every operation yields to the event loop (``latency`` seconds, 0 by
    default) so concurrently running sessions interleave between a read
    and the write that depends on it, as they would against a remote store.
    """

    def __init__(self, latency: float = 0.0) -> None:
        self._latency = latency
        self._collections: dict[str, dict[str, Document]] = {}
        self._subscribers: dict[int, tuple[str, Filters, SnapshotCallback]] = {}
        self._subscriber_ids = itertools.count(1)
        self._failures: dict[tuple[str, Optional[str]], int] = {}
        self._last_timestamp: Optional[datetime] = None
        self.write_count = 0

    # ------------------------------------------------------------------ #
    # Fault injection
    # ------------------------------------------------------------------ #

    def fail_next(self, op: str, collection: Optional[str] = None, times: int = 1) -> None:
        """Make the next ``times`` calls of ``op`` (on ``collection``) raise StoreError.

        ``op`` is one of add, get, set, update, delete, query, commit.
        """
        self._failures[(op, collection)] = self._failures.get((op, collection), 0) + times

    def _maybe_fail(self, op: str, collection: Optional[str]) -> None:
        for key in ((op, collection), (op, None)):
            remaining = self._failures.get(key, 0)
            if remaining > 0:
                if remaining == 1:
                    del self._failures[key]
                else:
                    self._failures[key] = remaining - 1
                logger.debug("Injected store failure: %s on %s", op, collection)
                raise StoreError(f"Injected failure for {op} on {collection or '*'}")

    async def _yield(self) -> None:
        await asyncio.sleep(self._latency)

    def _server_timestamp(self) -> datetime:
        """Strictly increasing UTC timestamps, so creation order is total."""
        now = datetime.now(timezone.utc)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    # ------------------------------------------------------------------ #
    # Single-document operations
    # ------------------------------------------------------------------ #

    def _docs(self, collection: str) -> dict[str, Document]:
        return self._collections.setdefault(collection, {})

    async def add(self, collection: str, data: Document, server_timestamp: bool = True) -> str:
        await self._yield()
        self._maybe_fail("add", collection)
        doc_id = uuid.uuid4().hex[:20]
        doc = copy.deepcopy(data)
        if server_timestamp:
            doc["createdAt"] = self._server_timestamp()
        self._docs(collection)[doc_id] = doc
        self.write_count += 1
        self._notify(collection)
        return doc_id

    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        await self._yield()
        self._maybe_fail("get", collection)
        doc = self._docs(collection).get(doc_id)
        if doc is None:
            return None
        return {"id": doc_id, **copy.deepcopy(doc)}

    async def set(self, collection: str, doc_id: str, data: Document) -> None:
        await self._yield()
        self._maybe_fail("set", collection)
        self._docs(collection)[doc_id] = copy.deepcopy(data)
        self.write_count += 1
        self._notify(collection)

    async def update(self, collection: str, doc_id: str, changes: Document) -> None:
        await self._yield()
        self._maybe_fail("update", collection)
        docs = self._docs(collection)
        if doc_id not in docs:
            raise DocumentNotFound(f"{collection}/{doc_id} does not exist")
        docs[doc_id].update(copy.deepcopy(changes))
        self.write_count += 1
        self._notify(collection)

    async def delete(self, collection: str, doc_id: str) -> None:
        await self._yield()
        self._maybe_fail("delete", collection)
        if self._docs(collection).pop(doc_id, None) is not None:
            self.write_count += 1
            self._notify(collection)

    async def query(self, collection: str, filters: Filters) -> list[Document]:
        await self._yield()
        self._maybe_fail("query", collection)
        return self._snapshot(collection, filters)

    def _snapshot(self, collection: str, filters: Filters) -> list[Document]:
        return [
            {"id": doc_id, **copy.deepcopy(doc)}
            for doc_id, doc in self._docs(collection).items()
            if _matches(doc, filters)
        ]

    # ------------------------------------------------------------------ #
    # Batched writes
    # ------------------------------------------------------------------ #

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    async def _commit_batch(self, ops: list[_BatchOp]) -> None:
        await self._yield()
        self._maybe_fail("commit", None)
        for kind, collection, doc_id, _, expect in ops:
            if kind != "update":
                continue
            current = self._docs(collection).get(doc_id)
            if current is None:
                raise DocumentNotFound(f"{collection}/{doc_id} does not exist")
            if expect and not _matches(current, expect):
                raise PreconditionFailed(f"{collection}/{doc_id} no longer matches {expect}")

        touched: set[str] = set()
        for kind, collection, doc_id, data, _ in ops:
            docs = self._docs(collection)
            if kind == "set":
                docs[doc_id] = copy.deepcopy(data)
            elif kind == "update":
                docs[doc_id].update(copy.deepcopy(data))
            else:
                docs.pop(doc_id, None)
            touched.add(collection)
        self.write_count += len(ops)
        for collection in touched:
            self._notify(collection)

    # ------------------------------------------------------------------ #
    # Subscriptions
    # ------------------------------------------------------------------ #

    def subscribe(
        self, collection: str, filters: Filters, callback: SnapshotCallback
    ) -> Subscription:
        """Register a standing query; the callback fires now and after every change."""
        sub_id = next(self._subscriber_ids)
        self._subscribers[sub_id] = (collection, dict(filters), callback)
        logger.debug("Subscribed #%d to %s %s", sub_id, collection, filters)

        def release() -> None:
            self._subscribers.pop(sub_id, None)
            logger.debug("Unsubscribed #%d from %s", sub_id, collection)

        callback(self._snapshot(collection, filters))
        return Subscription(release, collection, filters)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def _notify(self, collection: str) -> None:
        for sub_collection, filters, callback in list(self._subscribers.values()):
            if sub_collection != collection:
                continue
            try:
                callback(self._snapshot(collection, filters))
            except Exception:
                logger.exception("Snapshot listener on %s raised", collection)
