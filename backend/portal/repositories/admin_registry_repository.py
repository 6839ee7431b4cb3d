"""Repository for the administrator registry.

Registrations live in the "admins" collection keyed by principal id.
Malformed registrations are skipped with a warning, so role resolution
treats them as absent.
"""

import logging

from pydantic import ValidationError

from portal.models.admin_record import AdminRegistration
from portal.models.document import utc_now
from portal.providers.document_store.base import DocumentSnapshot, DocumentStore

logger = logging.getLogger(__name__)

ADMINS_COLLECTION = "admins"


def _parse(snapshot: DocumentSnapshot) -> AdminRegistration | None:
    try:
        return AdminRegistration.model_validate(
            {**snapshot.data, "principal_id": snapshot.key}
        )
    except ValidationError:
        logger.warning(
            "Ignoring malformed admin registration", extra={"principal_id": snapshot.key}
        )
        return None


class AdminRegistryRepository:
    """Stateless repository for admin registrations."""

    @staticmethod
    async def get(store: DocumentStore, principal_id: str) -> AdminRegistration | None:
        snapshot = await store.get_document(ADMINS_COLLECTION, principal_id)
        return _parse(snapshot) if snapshot is not None else None

    @staticmethod
    async def list_all(store: DocumentStore) -> list[AdminRegistration]:
        snapshots = await store.query(ADMINS_COLLECTION)
        return [reg for reg in map(_parse, snapshots) if reg is not None]

    @staticmethod
    async def grant(store: DocumentStore, principal_id: str, email: str) -> AdminRegistration:
        """Register (or re-register) a principal as administrator."""
        registration = AdminRegistration(
            principal_id=principal_id,
            email=email.strip().lower(),
            role="admin",
            is_admin=True,
            created_at=utc_now(),
        )
        await store.set_document(ADMINS_COLLECTION, principal_id, registration.to_document())
        return registration

    @staticmethod
    async def revoke(store: DocumentStore, principal_id: str) -> bool:
        return await store.delete_document(ADMINS_COLLECTION, principal_id)
