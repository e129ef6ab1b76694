from barberbook.store.document_store import (
    DocumentNotFound,
    DocumentStore,
    InMemoryDocumentStore,
    PreconditionFailed,
    StoreError,
    Subscription,
    WriteBatch,
)

__all__ = [
    "DocumentStore",
    "InMemoryDocumentStore",
    "Subscription",
    "WriteBatch",
    "StoreError",
    "DocumentNotFound",
    "PreconditionFailed",
]
