"""Document store provider module.

Exports:
    DocumentStore: Abstract base class for document stores
    DocumentSnapshot: Point-in-time document copy
    Subscription: Disposable change subscription handle
    InMemoryDocumentStore: Dict-backed implementation
    SqlDocumentStore: PostgreSQL JSONB implementation
"""

from portal.providers.document_store.base import (
    MUST_NOT_EXIST,
    DocumentSnapshot,
    DocumentStore,
    deep_merge,
)
from portal.providers.document_store.memory_adapter import InMemoryDocumentStore
from portal.providers.document_store.sql_adapter import SqlDocumentStore
from portal.providers.document_store.subscriptions import ChangeListener, Subscription

__all__ = [
    "MUST_NOT_EXIST",
    "ChangeListener",
    "DocumentSnapshot",
    "DocumentStore",
    "InMemoryDocumentStore",
    "SqlDocumentStore",
    "Subscription",
    "deep_merge",
]
