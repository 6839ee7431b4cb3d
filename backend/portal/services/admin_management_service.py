"""Admin management service.

Write-side operations behind the administrator portal: allow-list
maintenance, admin records (step overrides, shift decisions, appointment,
details, notifications), profile status and the admin registry.

Admin records are written with an expected version and retried on
conflict. Changes that a merge cannot express (a step reset, a new
appointment over an existing one) are also written straight into the
linked profile; everything else reaches the profile through a
reconciliation pass.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from portal.core.errors import (
    ConflictError,
    EmployeeIdAlreadyClaimedError,
    EmployeeIdInactiveError,
    EmployeeIdNotFoundError,
    NotFoundError,
    SyncFailedError,
)
from portal.models.admin_record import (
    AdminRecord,
    AdminRegistration,
    EmployeeDetails,
    Notification,
    NotificationKind,
)
from portal.models.allowlist import AllowlistEntry, AllowlistStatus
from portal.models.document import utc_now
from portal.models.profile import (
    AppointmentInfo,
    EmployeeProfile,
    ProfileStatus,
    ShiftStatus,
    Step,
)
from portal.providers.config import ProviderConfig
from portal.providers.document_store.base import MUST_NOT_EXIST, DocumentStore
from portal.providers.errors import TransientStoreError, WriteConflictError
from portal.providers.retry import with_retries
from portal.repositories.admin_record_repository import AdminRecordRepository
from portal.repositories.admin_registry_repository import AdminRegistryRepository
from portal.repositories.allowlist_repository import AllowlistRepository
from portal.repositories.profile_repository import ProfileRepository
from portal.services.identity_linking import normalize_employee_id
from portal.services.onboarding_workflow import (
    force_complete,
    is_onboarding_complete,
    reset_step,
)
from portal.services.profile_sync import SyncReconciler
from portal.services.step_catalog import default_steps, stage_for

logger = logging.getLogger(__name__)

_MAX_PER_PAGE = 100

T = TypeVar("T")


@dataclass(frozen=True)
class CascadeDeleteResult:
    """What deleting an allow-list entry removed.

    Attributes:
        employee_id: Deleted entry.
        record_deleted: An admin record existed and was deleted.
        profile_principal_id: Owner of the deleted linked profile, if any.
    """

    employee_id: str
    record_deleted: bool
    profile_principal_id: str | None


@dataclass(frozen=True)
class DashboardStats:
    total_profiles: int
    linked_profiles: int
    completed_profiles: int
    pending_shift_approvals: int
    allowlist_total: int
    allowlist_claimed: int


class AdminManagementService:
    """Administrator write operations.

    Args:
        store: Document store.
        config: Retry policy. Defaults to environment configuration.
    """

    def __init__(self, store: DocumentStore, config: ProviderConfig | None = None) -> None:
        self._store = store
        self._config = config or ProviderConfig.from_env()

    # -----------------------------------------------------------------------
    # Allow-list
    # -----------------------------------------------------------------------

    async def list_allowlist(
        self,
        *,
        active: bool | None = None,
        status: AllowlistStatus | None = None,
    ) -> list[AllowlistEntry]:
        """List allow-list entries ordered by employee id."""
        return await AllowlistRepository.list_all(self._store, active=active, status=status)

    async def get_allowlist_entry(self, employee_id: str) -> AllowlistEntry:
        """Fetch one entry.

        Raises:
            InvalidEmployeeIdError: Id does not normalize.
            EmployeeIdNotFoundError: No such entry.
        """
        normalized = normalize_employee_id(employee_id)
        entry = await AllowlistRepository.get(self._store, normalized)
        if entry is None:
            raise EmployeeIdNotFoundError(normalized)
        return entry

    async def create_allowlist_entry(
        self,
        *,
        employee_id: str,
        full_name: str = "",
        email: str | None = None,
        active: bool = True,
    ) -> AllowlistEntry:
        """Register an HR-issued employee id.

        Args:
            employee_id: Id in any accepted spelling, stored normalized.
            full_name: Name HR recorded.
            email: Expected email. Linking then requires a match.
            active: Whether the id can be claimed.

        Returns:
            Created entry.

        Raises:
            InvalidEmployeeIdError: Id does not normalize.
            ConflictError: DUPLICATE_EMPLOYEE_ID if the entry exists.
        """
        normalized = normalize_employee_id(employee_id)
        entry = AllowlistEntry(
            employee_id=normalized,
            full_name=full_name.strip(),
            email=email.strip().lower() if email and email.strip() else None,
            active=active,
            created_at=utc_now(),
        )
        try:
            written = await AllowlistRepository.create(self._store, entry)
        except WriteConflictError as exc:
            raise ConflictError(
                code="DUPLICATE_EMPLOYEE_ID",
                message=f"Employee ID {normalized} is already on the allow-list",
            ) from exc

        logger.info("Allow-list entry created", extra={"employee_id": normalized})
        return written.value

    async def update_allowlist_entry(
        self,
        employee_id: str,
        *,
        full_name: str | None = None,
        email: str | None = None,
        active: bool | None = None,
    ) -> AllowlistEntry:
        """Update entry attributes. An empty email clears the requirement.

        Raises:
            InvalidEmployeeIdError: Id does not normalize.
            EmployeeIdNotFoundError: No such entry.
        """
        normalized = normalize_employee_id(employee_id)

        async def attempt() -> AllowlistEntry:
            current = await AllowlistRepository.get_with_version(self._store, normalized)
            if current is None:
                raise EmployeeIdNotFoundError(normalized)
            updates: dict = {}
            if full_name is not None:
                updates["full_name"] = full_name.strip()
            if email is not None:
                updates["email"] = email.strip().lower() or None
            if active is not None:
                updates["active"] = active
            written = await AllowlistRepository.save(
                self._store,
                current.value.model_copy(update=updates),
                expected_version=current.version,
            )
            return written.value

        return await self._retrying(attempt, employee_id=normalized)

    async def assign_allowlist_entry(self, employee_id: str, principal_id: str) -> AllowlistEntry:
        """Reserve an entry for a principal who has not linked yet.

        The principal can then link the id; sign-in repair never releases
        an assigned claim.

        Raises:
            EmployeeIdNotFoundError: No such entry.
            EmployeeIdInactiveError: Entry is deactivated.
            EmployeeIdAlreadyClaimedError: Another principal holds it.
        """
        normalized = normalize_employee_id(employee_id)

        async def attempt() -> AllowlistEntry:
            current = await AllowlistRepository.get_with_version(self._store, normalized)
            if current is None:
                raise EmployeeIdNotFoundError(normalized)
            entry = current.value
            if not entry.active:
                raise EmployeeIdInactiveError(normalized)
            if entry.claimed_by_principal_id not in (None, principal_id):
                raise EmployeeIdAlreadyClaimedError(normalized)
            if entry.claimed_by_principal_id == principal_id:
                return entry
            written = await AllowlistRepository.save(
                self._store,
                entry.model_copy(
                    update={
                        "claimed_by_principal_id": principal_id,
                        "claimed_at": utc_now(),
                        "status": AllowlistStatus.ASSIGNED,
                    }
                ),
                expected_version=current.version,
            )
            return written.value

        entry = await self._retrying(attempt, employee_id=normalized)
        logger.info(
            "Allow-list entry assigned",
            extra={"employee_id": normalized, "principal_id": principal_id},
        )
        return entry

    async def delete_allowlist_entry(self, employee_id: str) -> CascadeDeleteResult:
        """Delete an entry together with its admin record and linked profile.

        Raises:
            EmployeeIdNotFoundError: No such entry.
        """
        normalized = normalize_employee_id(employee_id)
        entry = await AllowlistRepository.get(self._store, normalized)
        if entry is None:
            raise EmployeeIdNotFoundError(normalized)

        record_deleted = await AdminRecordRepository.delete(self._store, normalized)
        linked = await ProfileRepository.find_by_employee_id(self._store, normalized)
        principal_id = None
        if linked is not None:
            principal_id = linked.value.principal_id
            await ProfileRepository.delete(self._store, principal_id)
        await AllowlistRepository.delete(self._store, normalized)

        logger.info(
            "Allow-list entry deleted",
            extra={
                "employee_id": normalized,
                "record_deleted": record_deleted,
                "principal_id": principal_id,
            },
        )
        return CascadeDeleteResult(
            employee_id=normalized,
            record_deleted=record_deleted,
            profile_principal_id=principal_id,
        )

    # -----------------------------------------------------------------------
    # Admin records
    # -----------------------------------------------------------------------

    async def get_record(self, employee_id: str) -> AdminRecord:
        """Admin record for an allow-listed id, unsaved defaults if none yet.

        Raises:
            EmployeeIdNotFoundError: Id is not on the allow-list.
        """
        normalized = normalize_employee_id(employee_id)
        record, _ = await self._load_record(normalized)
        return record

    async def list_records(self) -> list[AdminRecord]:
        return await AdminRecordRepository.list_all(self._store)

    async def override_step(self, employee_id: str, step_id: str, *, done: bool) -> AdminRecord:
        """Force a step done (with every predecessor) or reset it (with every successor).

        Both the admin record and the linked profile are written, since a
        merge never un-does a step.

        Raises:
            UnknownStepError: Step id is not part of the sequence.
            EmployeeIdNotFoundError: Id is not on the allow-list.
        """
        normalized = normalize_employee_id(employee_id)
        now = utc_now()

        def transform(steps: list[Step]) -> list[Step]:
            return force_complete(steps, step_id, now) if done else reset_step(steps, step_id)

        record = await self._update_record(
            normalized, lambda r: r.model_copy(update={"steps": transform(r.steps)})
        )

        def update_profile(profile: EmployeeProfile) -> EmployeeProfile:
            steps = transform(profile.steps)
            updates: dict = {"steps": steps, "stage": stage_for(steps)}
            if done and is_onboarding_complete(steps):
                updates["status"] = ProfileStatus.ACTIVE
            return profile.model_copy(update=updates)

        await self._update_linked_profile(normalized, update_profile)
        logger.info(
            "Step overridden",
            extra={"employee_id": normalized, "step_id": step_id, "done": done},
        )
        return record

    async def decide_shift(self, employee_id: str, *, approved: bool) -> AdminRecord:
        """Approve or reject the employee's shift selection.

        Raises:
            NotFoundError: Nothing to decide, no shift was selected.
        """
        normalized = normalize_employee_id(employee_id)
        linked = await ProfileRepository.find_by_employee_id(self._store, normalized)
        selected = linked.value.shift if linked is not None else None

        def mutate(record: AdminRecord) -> AdminRecord:
            shift = record.shift
            if shift.is_empty and selected is not None and not selected.is_empty:
                shift = shift.model_copy(
                    update={
                        "position": selected.position,
                        "shift_code": selected.shift_code,
                        "submitted_at": selected.submitted_at,
                    }
                )
            if shift.is_empty:
                raise NotFoundError("Shift selection", normalized)
            shift = shift.model_copy(
                update={
                    "approved": approved,
                    "status": ShiftStatus.APPROVED if approved else ShiftStatus.REJECTED,
                    "decided_at": utc_now(),
                }
            )
            return record.model_copy(update={"shift": shift})

        record = await self._update_record(normalized, mutate)
        await self._reconcile_linked_profile(normalized)
        logger.info(
            "Shift decided", extra={"employee_id": normalized, "approved": approved}
        )
        return record

    async def set_appointment(
        self, employee_id: str, appointment: AppointmentInfo
    ) -> AdminRecord:
        """Schedule (or reschedule) the employee's appointment."""
        normalized = normalize_employee_id(employee_id)
        record = await self._update_record(
            normalized, lambda r: r.model_copy(update={"appointment": appointment})
        )
        await self._update_linked_profile(
            normalized, lambda p: p.model_copy(update={"appointment": appointment})
        )
        return record

    async def set_details(self, employee_id: str, details: EmployeeDetails) -> AdminRecord:
        normalized = normalize_employee_id(employee_id)
        return await self._update_record(
            normalized, lambda r: r.model_copy(update={"details": details})
        )

    async def send_notification(
        self,
        employee_id: str,
        *,
        title: str,
        body: str = "",
        kind: NotificationKind = NotificationKind.INFO,
    ) -> AdminRecord:
        """Append a message to the employee's notifications."""
        normalized = normalize_employee_id(employee_id)
        notification = Notification(title=title, body=body, kind=kind, created_at=utc_now())
        return await self._update_record(
            normalized,
            lambda r: r.model_copy(update={"notifications": [*r.notifications, notification]}),
        )

    # -----------------------------------------------------------------------
    # Profiles
    # -----------------------------------------------------------------------

    async def list_profiles(
        self,
        *,
        page: int = 1,
        per_page: int = 50,
        status: ProfileStatus | None = None,
    ) -> tuple[list[EmployeeProfile], int]:
        """List profiles with pagination.

        Args:
            page: Page number (1-based).
            per_page: Items per page (max 100).
            status: Filter by account status.

        Returns:
            Tuple of (profile list, total count).
        """
        per_page = min(per_page, _MAX_PER_PAGE)
        profiles = await ProfileRepository.list_all(self._store, status=status)
        offset = (page - 1) * per_page
        return profiles[offset : offset + per_page], len(profiles)

    async def get_profile(self, principal_id: str) -> EmployeeProfile:
        profile = await ProfileRepository.get(self._store, principal_id)
        if profile is None:
            raise NotFoundError("Profile", principal_id)
        return profile

    async def set_profile_status(
        self, principal_id: str, status: ProfileStatus
    ) -> EmployeeProfile:
        """Change a profile's account status.

        Raises:
            NotFoundError: No such profile.
        """
        await self.get_profile(principal_id)
        written = await ProfileRepository.patch(
            self._store,
            principal_id,
            {"status": status.value, "updated_at": utc_now().isoformat()},
        )
        logger.info(
            "Profile status changed",
            extra={"principal_id": principal_id, "status": status.value},
        )
        return written.value

    async def delete_profile(self, principal_id: str) -> None:
        """Delete a profile and release every allow-list claim it holds.

        Raises:
            NotFoundError: No such profile.
        """
        await self.get_profile(principal_id)
        for claimed in await AllowlistRepository.find_claimed_by(self._store, principal_id):
            released = claimed.value.model_copy(
                update={
                    "claimed_by_principal_id": None,
                    "claimed_at": None,
                    "status": AllowlistStatus.UNCLAIMED,
                }
            )
            try:
                await AllowlistRepository.save(
                    self._store, released, expected_version=claimed.version
                )
            except WriteConflictError:
                logger.warning(
                    "Claim changed while releasing, left as is",
                    extra={"principal_id": principal_id, "employee_id": released.employee_id},
                )
        await ProfileRepository.delete(self._store, principal_id)
        logger.info("Profile deleted", extra={"principal_id": principal_id})

    # -----------------------------------------------------------------------
    # Dashboard
    # -----------------------------------------------------------------------

    async def dashboard_stats(self) -> DashboardStats:
        profiles = await ProfileRepository.list_all(self._store)
        entries = await AllowlistRepository.list_all(self._store)
        linked = [p for p in profiles if p.employee_id is not None]
        return DashboardStats(
            total_profiles=len(profiles),
            linked_profiles=len(linked),
            completed_profiles=sum(1 for p in linked if is_onboarding_complete(p.steps)),
            pending_shift_approvals=sum(
                1
                for p in linked
                if not p.shift.is_empty and p.shift.status == ShiftStatus.PENDING
            ),
            allowlist_total=len(entries),
            allowlist_claimed=sum(1 for e in entries if e.claimed_by_principal_id),
        )

    # -----------------------------------------------------------------------
    # Admin registry
    # -----------------------------------------------------------------------

    async def list_admins(self) -> list[AdminRegistration]:
        return await AdminRegistryRepository.list_all(self._store)

    async def grant_admin(self, principal_id: str, email: str) -> AdminRegistration:
        registration = await AdminRegistryRepository.grant(self._store, principal_id, email)
        logger.info("Admin granted", extra={"principal_id": principal_id})
        return registration

    async def revoke_admin(self, *, admin_principal_id: str, target_principal_id: str) -> None:
        """Remove a principal from the admin registry.

        Raises:
            ConflictError: CANNOT_DEMOTE_SELF if revoking yourself.
            NotFoundError: Target has no registration.
        """
        if admin_principal_id == target_principal_id:
            raise ConflictError(
                code="CANNOT_DEMOTE_SELF",
                message="Cannot remove your own admin status",
            )
        if not await AdminRegistryRepository.revoke(self._store, target_principal_id):
            raise NotFoundError("Admin registration", target_principal_id)
        logger.info("Admin revoked", extra={"principal_id": target_principal_id})

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    async def _load_record(self, employee_id: str) -> tuple[AdminRecord, int]:
        """Record and its version. MUST_NOT_EXIST stands for an unsaved default."""
        current = await AdminRecordRepository.get_with_version(self._store, employee_id)
        if current is not None:
            return current.value, current.version
        if await AllowlistRepository.get(self._store, employee_id) is None:
            raise EmployeeIdNotFoundError(employee_id)
        return AdminRecord(employee_id=employee_id, steps=default_steps()), MUST_NOT_EXIST

    async def _update_record(
        self,
        employee_id: str,
        mutate: Callable[[AdminRecord], AdminRecord],
    ) -> AdminRecord:
        async def attempt() -> AdminRecord:
            record, version = await self._load_record(employee_id)
            updated = mutate(record).model_copy(update={"updated_at": utc_now()})
            written = await AdminRecordRepository.save(
                self._store, updated, expected_version=version
            )
            return written.value

        return await self._retrying(attempt, employee_id=employee_id)

    async def _update_linked_profile(
        self,
        employee_id: str,
        mutate: Callable[[EmployeeProfile], EmployeeProfile],
    ) -> EmployeeProfile | None:
        async def attempt() -> EmployeeProfile | None:
            current = await ProfileRepository.find_by_employee_id(self._store, employee_id)
            if current is None:
                return None
            updated = mutate(current.value).model_copy(update={"updated_at": utc_now()})
            written = await ProfileRepository.save(
                self._store, updated, expected_version=current.version
            )
            return written.value

        return await self._retrying(attempt, employee_id=employee_id)

    async def _reconcile_linked_profile(self, employee_id: str) -> None:
        linked = await ProfileRepository.find_by_employee_id(self._store, employee_id)
        if linked is None:
            return
        reconciler = SyncReconciler(
            self._store, linked.value.principal_id, employee_id, self._config
        )
        await reconciler.reconcile_once()

    async def _retrying(
        self, attempt: Callable[[], Awaitable[T]], *, employee_id: str
    ) -> T:
        try:
            return await with_retries(attempt, self._config)
        except (WriteConflictError, TransientStoreError) as exc:
            logger.error(
                "Admin write failed after retries", extra={"employee_id": employee_id}
            )
            raise SyncFailedError() from exc
