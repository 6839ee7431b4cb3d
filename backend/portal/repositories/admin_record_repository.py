"""Repository for administrator-side onboarding records.

Records live in the "admin_records" collection keyed by employee id.
Steps are migrated on read, same as profiles.
"""

from typing import Any

from portal.models.admin_record import AdminRecord
from portal.models.document import Versioned
from portal.providers.document_store.base import DocumentSnapshot, DocumentStore
from portal.services.step_catalog import migrate_steps

ADMIN_RECORDS_COLLECTION = "admin_records"


def _parse(data: dict[str, Any]) -> AdminRecord:
    body = dict(data)
    body["steps"] = [step.to_document() for step in migrate_steps(body.get("steps"))]
    return AdminRecord.model_validate(body)


def _versioned(snapshot: DocumentSnapshot) -> Versioned[AdminRecord]:
    return Versioned(value=_parse(snapshot.data), version=snapshot.version)


class AdminRecordRepository:
    """Stateless repository for admin records."""

    @staticmethod
    async def get(store: DocumentStore, employee_id: str) -> AdminRecord | None:
        snapshot = await store.get_document(ADMIN_RECORDS_COLLECTION, employee_id)
        return _parse(snapshot.data) if snapshot is not None else None

    @staticmethod
    async def get_with_version(
        store: DocumentStore, employee_id: str
    ) -> Versioned[AdminRecord] | None:
        snapshot = await store.get_document(ADMIN_RECORDS_COLLECTION, employee_id)
        return _versioned(snapshot) if snapshot is not None else None

    @staticmethod
    async def save(
        store: DocumentStore,
        record: AdminRecord,
        *,
        expected_version: int | None = None,
    ) -> Versioned[AdminRecord]:
        """Merge-write every record field.

        Args:
            store: Document store.
            record: Record to persist.
            expected_version: Version the caller read. MUST_NOT_EXIST for a
                new record, None to skip the check.

        Raises:
            WriteConflictError: The record changed since it was read.
        """
        snapshot = await store.set_document(
            ADMIN_RECORDS_COLLECTION,
            record.employee_id,
            record.to_document(),
            merge=True,
            expected_version=expected_version,
        )
        return _versioned(snapshot)

    @staticmethod
    async def list_all(store: DocumentStore) -> list[AdminRecord]:
        snapshots = await store.query(ADMIN_RECORDS_COLLECTION)
        return [_parse(snapshot.data) for snapshot in snapshots]

    @staticmethod
    async def delete(store: DocumentStore, employee_id: str) -> bool:
        return await store.delete_document(ADMIN_RECORDS_COLLECTION, employee_id)
