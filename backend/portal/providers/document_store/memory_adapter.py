"""In-memory document store.

Default backend for local-first mode and the backend every unit test runs
against.
"""

import asyncio
import copy
from typing import Any

from portal.providers.document_store.base import (
    MUST_NOT_EXIST,
    DocumentSnapshot,
    DocumentStore,
    deep_merge,
    matches_filters,
)
from portal.providers.document_store.subscriptions import (
    ChangeListener,
    Subscription,
    SubscriptionHub,
)
from portal.providers.errors import WriteConflictError


class InMemoryDocumentStore(DocumentStore):
    """Dict-backed store with versions and subscriptions.

    Attributes:
        writes: Record of (operation, collection, key) for test assertions.
    """

    def __init__(self) -> None:
        self._documents: dict[str, dict[str, DocumentSnapshot]] = {}
        self._lock = asyncio.Lock()
        self._hub = SubscriptionHub()
        self._pending_errors: list[Exception] = []
        self.writes: list[tuple[str, str, str]] = []

    def fail_next_writes(self, *errors: Exception) -> None:
        """Make the next writes raise the given errors, one per write.

        Lets tests simulate conflicts and outages without a real backend.
        """
        self._pending_errors.extend(errors)

    def listener_count(self, collection: str, key: str) -> int:
        return self._hub.listener_count(collection, key)

    def _raise_pending_error(self) -> None:
        if self._pending_errors:
            raise self._pending_errors.pop(0)

    @staticmethod
    def _check_version(
        collection: str,
        key: str,
        current: DocumentSnapshot | None,
        expected_version: int | None,
    ) -> None:
        if expected_version is None:
            return
        actual = current.version if current is not None else None
        if expected_version == MUST_NOT_EXIST:
            if current is not None:
                raise WriteConflictError(collection, key, expected_version, actual)
        elif actual != expected_version:
            raise WriteConflictError(collection, key, expected_version, actual)

    async def get_document(self, collection: str, key: str) -> DocumentSnapshot | None:
        snapshot = self._documents.get(collection, {}).get(key)
        return _copy(snapshot) if snapshot is not None else None

    async def set_document(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
        expected_version: int | None = None,
    ) -> DocumentSnapshot:
        async with self._lock:
            self._raise_pending_error()
            current = self._documents.get(collection, {}).get(key)
            self._check_version(collection, key, current, expected_version)

            if merge and current is not None:
                body = deep_merge(current.data, data)
            else:
                body = copy.deepcopy(data)
            snapshot = DocumentSnapshot(
                collection=collection,
                key=key,
                data=body,
                version=(current.version + 1) if current is not None else 1,
            )
            self._documents.setdefault(collection, {})[key] = snapshot
            self.writes.append(("set", collection, key))

        await self._hub.publish(collection, key, _copy(snapshot))
        return _copy(snapshot)

    async def delete_document(
        self,
        collection: str,
        key: str,
        *,
        expected_version: int | None = None,
    ) -> bool:
        async with self._lock:
            self._raise_pending_error()
            current = self._documents.get(collection, {}).get(key)
            self._check_version(collection, key, current, expected_version)
            if current is None:
                return False
            del self._documents[collection][key]
            self.writes.append(("delete", collection, key))

        await self._hub.publish(collection, key, None)
        return True

    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
    ) -> list[DocumentSnapshot]:
        documents = self._documents.get(collection, {})
        return [
            _copy(documents[key])
            for key in sorted(documents)
            if matches_filters(documents[key].data, filters or {})
        ]

    async def subscribe(
        self,
        collection: str,
        key: str,
        listener: ChangeListener,
    ) -> Subscription:
        subscription = self._hub.add(collection, key, listener)
        await self._hub.deliver(
            subscription, listener, await self.get_document(collection, key)
        )
        return subscription


def _copy(snapshot: DocumentSnapshot) -> DocumentSnapshot:
    return DocumentSnapshot(
        collection=snapshot.collection,
        key=snapshot.key,
        data=copy.deepcopy(snapshot.data),
        version=snapshot.version,
    )
