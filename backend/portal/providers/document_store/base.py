"""Abstract base class and types for document stores.

The store is keyed and collection-oriented: point reads, full or
merge-patch writes guarded by an optional expected version, equality
queries, and push-based change subscriptions.
"""

import copy
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from portal.providers.document_store.subscriptions import ChangeListener, Subscription

# expected_version value meaning "the document must not exist yet"
MUST_NOT_EXIST = 0


@dataclass(frozen=True)
class DocumentSnapshot:
    """Point-in-time copy of a stored document.

    Attributes:
        collection: Collection name.
        key: Document key.
        data: Document body. A private copy, safe to mutate.
        version: Store version, starts at 1 and grows on every write.
    """

    collection: str
    key: str
    data: dict[str, Any] = field(default_factory=dict)
    version: int = 1


def deep_merge(base: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """Merge-patch semantics: nested dicts merge, everything else replaces.

    Lists are replaced whole. Keys absent from the patch are preserved.

    Args:
        base: Current document body (not modified).
        patch: Fields to overwrite.

    Returns:
        New merged dict.
    """
    merged = copy.deepcopy(base)
    for name, value in patch.items():
        if isinstance(value, dict) and isinstance(merged.get(name), dict):
            merged[name] = deep_merge(merged[name], value)
        else:
            merged[name] = copy.deepcopy(value)
    return merged


def matches_filters(data: dict[str, Any], filters: dict[str, Any]) -> bool:
    """Equality match on top-level or dotted field paths."""
    for path, expected in filters.items():
        current: Any = data
        for part in path.split("."):
            if not isinstance(current, dict) or part not in current:
                return False
            current = current[part]
        if current != expected:
            return False
    return True


class DocumentStore(ABC):
    """Abstract base class for document stores.

    Every document carries a version. Writes with expected_version are a
    compare-and-set; a mismatch raises WriteConflictError.
    """

    @abstractmethod
    async def get_document(self, collection: str, key: str) -> DocumentSnapshot | None:
        """Read one document.

        Returns:
            Snapshot, or None if the document does not exist.

        Raises:
            TransientStoreError: Backend temporarily unavailable.
        """
        ...

    @abstractmethod
    async def set_document(
        self,
        collection: str,
        key: str,
        data: dict[str, Any],
        *,
        merge: bool = False,
        expected_version: int | None = None,
    ) -> DocumentSnapshot:
        """Create or write a document.

        Args:
            collection: Collection name.
            key: Document key.
            data: Full body, or the patch when merge=True.
            merge: Merge-patch into the existing body instead of replacing it.
            expected_version: None skips the check. MUST_NOT_EXIST (0)
                requires the document to be absent. Any other value must
                equal the current version.

        Returns:
            Snapshot after the write.

        Raises:
            WriteConflictError: expected_version did not match.
            TransientStoreError: Backend temporarily unavailable.
        """
        ...

    @abstractmethod
    async def delete_document(
        self,
        collection: str,
        key: str,
        *,
        expected_version: int | None = None,
    ) -> bool:
        """Delete a document.

        Returns:
            True if a document was deleted, False if none existed.

        Raises:
            WriteConflictError: expected_version did not match.
        """
        ...

    @abstractmethod
    async def query(
        self,
        collection: str,
        filters: dict[str, Any] | None = None,
    ) -> list[DocumentSnapshot]:
        """List documents whose fields equal the given values.

        Args:
            collection: Collection name.
            filters: Field path (dotted for nesting) to required value.

        Returns:
            Matching snapshots ordered by key.
        """
        ...

    @abstractmethod
    async def subscribe(
        self,
        collection: str,
        key: str,
        listener: ChangeListener,
    ) -> Subscription:
        """Watch one document.

        The listener first receives the current snapshot (None if absent),
        then one call per subsequent write or delete. Delivery is
        at-least-once.

        Returns:
            Disposable subscription handle.
        """
        ...
