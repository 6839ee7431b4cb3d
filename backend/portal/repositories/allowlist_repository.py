"""Repository for allow-list entries.

Entries live in the "allowlist" collection keyed by normalized employee id.
Claims are written with an expected version so two principals racing for
the same id cannot both win.
"""

from portal.models.allowlist import AllowlistEntry, AllowlistStatus
from portal.models.document import Versioned
from portal.providers.document_store.base import (
    MUST_NOT_EXIST,
    DocumentSnapshot,
    DocumentStore,
)

ALLOWLIST_COLLECTION = "allowlist"


def _versioned(snapshot: DocumentSnapshot) -> Versioned[AllowlistEntry]:
    return Versioned(
        value=AllowlistEntry.model_validate(snapshot.data), version=snapshot.version
    )


class AllowlistRepository:
    """Stateless repository for allow-list entries."""

    @staticmethod
    async def get(store: DocumentStore, employee_id: str) -> AllowlistEntry | None:
        snapshot = await store.get_document(ALLOWLIST_COLLECTION, employee_id)
        if snapshot is None:
            return None
        return AllowlistEntry.model_validate(snapshot.data)

    @staticmethod
    async def get_with_version(
        store: DocumentStore, employee_id: str
    ) -> Versioned[AllowlistEntry] | None:
        snapshot = await store.get_document(ALLOWLIST_COLLECTION, employee_id)
        return _versioned(snapshot) if snapshot is not None else None

    @staticmethod
    async def create(
        store: DocumentStore, entry: AllowlistEntry
    ) -> Versioned[AllowlistEntry]:
        """Insert a new entry.

        Raises:
            WriteConflictError: An entry already exists for the id.
        """
        snapshot = await store.set_document(
            ALLOWLIST_COLLECTION,
            entry.employee_id,
            entry.to_document(),
            expected_version=MUST_NOT_EXIST,
        )
        return _versioned(snapshot)

    @staticmethod
    async def save(
        store: DocumentStore,
        entry: AllowlistEntry,
        *,
        expected_version: int | None = None,
    ) -> Versioned[AllowlistEntry]:
        """Replace an entry.

        Raises:
            WriteConflictError: The entry changed since it was read.
        """
        snapshot = await store.set_document(
            ALLOWLIST_COLLECTION,
            entry.employee_id,
            entry.to_document(),
            expected_version=expected_version,
        )
        return _versioned(snapshot)

    @staticmethod
    async def find_claimed_by(
        store: DocumentStore, principal_id: str
    ) -> list[Versioned[AllowlistEntry]]:
        """Entries whose claim is held by the principal."""
        snapshots = await store.query(
            ALLOWLIST_COLLECTION, {"claimed_by_principal_id": principal_id}
        )
        return [_versioned(snapshot) for snapshot in snapshots]

    @staticmethod
    async def list_all(
        store: DocumentStore,
        *,
        active: bool | None = None,
        status: AllowlistStatus | None = None,
    ) -> list[AllowlistEntry]:
        """List entries ordered by employee id with optional filters."""
        filters: dict[str, object] = {}
        if active is not None:
            filters["active"] = active
        if status is not None:
            filters["status"] = status.value
        snapshots = await store.query(ALLOWLIST_COLLECTION, filters)
        return [AllowlistEntry.model_validate(snapshot.data) for snapshot in snapshots]

    @staticmethod
    async def delete(store: DocumentStore, employee_id: str) -> bool:
        return await store.delete_document(ALLOWLIST_COLLECTION, employee_id)
