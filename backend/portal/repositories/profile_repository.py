"""Repository for EmployeeProfile documents.

Profiles live in the "profiles" collection keyed by principal id. Every
read runs the step migration so callers only ever see canonical steps
and a stage that agrees with them.
"""

import logging
from typing import Any

from portal.models.document import Versioned
from portal.models.profile import EmployeeProfile, ProfileStatus
from portal.providers.document_store.base import (
    MUST_NOT_EXIST,
    DocumentSnapshot,
    DocumentStore,
)
from portal.services.step_catalog import migrate_steps, stage_for

logger = logging.getLogger(__name__)

PROFILES_COLLECTION = "profiles"


def _parse(data: dict[str, Any]) -> EmployeeProfile:
    body = dict(data)
    steps = migrate_steps(body.get("steps"))
    body["steps"] = [step.to_document() for step in steps]
    profile = EmployeeProfile.model_validate(body)
    return profile.model_copy(update={"stage": stage_for(profile.steps)})


def _versioned(snapshot: DocumentSnapshot) -> Versioned[EmployeeProfile]:
    return Versioned(value=_parse(snapshot.data), version=snapshot.version)


class ProfileRepository:
    """Stateless repository for profile documents.

    All methods are static. Pass the DocumentStore for every call.
    """

    @staticmethod
    async def get(store: DocumentStore, principal_id: str) -> EmployeeProfile | None:
        """Fetch a profile by principal id.

        Args:
            store: Document store.
            principal_id: Profile owner.

        Returns:
            Migrated profile, or None if the principal never signed in.
        """
        snapshot = await store.get_document(PROFILES_COLLECTION, principal_id)
        return _parse(snapshot.data) if snapshot is not None else None

    @staticmethod
    async def get_with_version(
        store: DocumentStore, principal_id: str
    ) -> Versioned[EmployeeProfile] | None:
        """Fetch a profile together with its store version."""
        snapshot = await store.get_document(PROFILES_COLLECTION, principal_id)
        return _versioned(snapshot) if snapshot is not None else None

    @staticmethod
    async def create(
        store: DocumentStore, profile: EmployeeProfile
    ) -> Versioned[EmployeeProfile]:
        """Insert a new profile.

        Raises:
            WriteConflictError: A profile already exists for the principal.
        """
        snapshot = await store.set_document(
            PROFILES_COLLECTION,
            profile.principal_id,
            profile.to_document(),
            expected_version=MUST_NOT_EXIST,
        )
        return _versioned(snapshot)

    @staticmethod
    async def save(
        store: DocumentStore,
        profile: EmployeeProfile,
        *,
        expected_version: int | None = None,
    ) -> Versioned[EmployeeProfile]:
        """Merge-write every profile field.

        Args:
            store: Document store.
            profile: Profile to persist.
            expected_version: Version the caller read, None to skip the check.

        Raises:
            WriteConflictError: The profile changed since it was read.
        """
        snapshot = await store.set_document(
            PROFILES_COLLECTION,
            profile.principal_id,
            profile.to_document(),
            merge=True,
            expected_version=expected_version,
        )
        return _versioned(snapshot)

    @staticmethod
    async def patch(
        store: DocumentStore,
        principal_id: str,
        fields: dict[str, Any],
        *,
        expected_version: int | None = None,
    ) -> Versioned[EmployeeProfile]:
        """Merge-patch named fields only.

        Args:
            store: Document store.
            principal_id: Profile owner.
            fields: JSON-ready field values.
            expected_version: Version the caller read, None to skip the check.
        """
        snapshot = await store.set_document(
            PROFILES_COLLECTION,
            principal_id,
            fields,
            merge=True,
            expected_version=expected_version,
        )
        return _versioned(snapshot)

    @staticmethod
    async def find_by_employee_id(
        store: DocumentStore, employee_id: str
    ) -> Versioned[EmployeeProfile] | None:
        """Fetch the profile linked to an employee id.

        Returns:
            The linked profile, or None if nobody linked the id.
        """
        snapshots = await store.query(PROFILES_COLLECTION, {"employee_id": employee_id})
        if not snapshots:
            return None
        if len(snapshots) > 1:
            logger.error(
                "Employee id linked to multiple profiles",
                extra={
                    "employee_id": employee_id,
                    "principal_ids": [s.key for s in snapshots],
                },
            )
        return _versioned(snapshots[0])

    @staticmethod
    async def list_all(
        store: DocumentStore,
        *,
        status: ProfileStatus | None = None,
    ) -> list[EmployeeProfile]:
        """List profiles ordered by principal id, optionally filtered by status."""
        filters = {"status": status.value} if status is not None else None
        snapshots = await store.query(PROFILES_COLLECTION, filters)
        return [_parse(snapshot.data) for snapshot in snapshots]

    @staticmethod
    async def delete(store: DocumentStore, principal_id: str) -> bool:
        """Delete a profile. Returns False if it did not exist."""
        return await store.delete_document(PROFILES_COLLECTION, principal_id)
