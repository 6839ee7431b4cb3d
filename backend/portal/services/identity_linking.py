"""Identity-linking service.

Binds a signed-in principal to exactly one HR-issued employee id and
bootstraps/repairs employee profiles on sign-in.

Linking is all-or-nothing across two documents (allow-list entry and
profile) without transactions:
1. Mark the link as pending on the profile.
2. Claim the entry with an expected version (loses cleanly to a racer).
3. Re-check the claim, then write the profile with an expected version.
4. If step 3 fails, restore the entry before re-raising.
If the process dies between 2 and 4, ensure_profile() on a later sign-in
releases the dangling claim once the pending mark outlives its lease.
"""

import logging
import re
from dataclasses import dataclass
from datetime import timedelta

from portal.core.config import settings
from portal.core.errors import (
    EmployeeIdAlreadyClaimedError,
    EmployeeIdInactiveError,
    EmployeeIdLockedError,
    EmployeeIdNotFoundError,
    IdentityMismatchError,
    InvalidEmployeeIdError,
    SyncFailedError,
)
from portal.models.allowlist import AllowlistEntry, AllowlistStatus
from portal.models.document import Versioned, utc_now
from portal.models.principal import Principal
from portal.models.profile import EmployeeProfile, ProfileStatus, ShiftStatus
from portal.providers.config import ProviderConfig
from portal.providers.document_store.base import DocumentStore
from portal.providers.errors import TransientStoreError, WriteConflictError
from portal.providers.retry import with_retries
from portal.repositories.admin_record_repository import AdminRecordRepository
from portal.repositories.allowlist_repository import AllowlistRepository
from portal.repositories.profile_repository import ProfileRepository
from portal.services.step_catalog import default_steps, stage_for

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[\s\-_]")


def normalize_employee_id(
    raw_value: str,
    *,
    prefix: str | None = None,
    max_digits: int | None = None,
) -> str:
    """Normalize user input to the canonical employee id form.

    Uppercases, strips whitespace, dashes and underscores, then requires the
    prefix followed by 1..max_digits ASCII digits ("sp-001 " -> "SP001").

    Args:
        raw_value: What the user typed.
        prefix: Required prefix. Defaults to settings.employee_id_prefix.
        max_digits: Max digit count. Defaults to settings.employee_id_max_digits.

    Returns:
        Canonical id.

    Raises:
        InvalidEmployeeIdError: Input does not normalize to a valid id.
    """
    prefix = (prefix or settings.employee_id_prefix).upper()
    max_digits = max_digits or settings.employee_id_max_digits

    value = _SEPARATORS.sub("", str(raw_value or "")).upper()
    if not value.startswith(prefix):
        raise InvalidEmployeeIdError(str(raw_value or ""))
    digits = value[len(prefix) :]
    if not re.fullmatch(rf"[0-9]{{1,{max_digits}}}", digits):
        raise InvalidEmployeeIdError(str(raw_value or ""))
    return prefix + digits


def _link_in_progress(profile: EmployeeProfile, employee_id: str) -> bool:
    if profile.pending_employee_id != employee_id or profile.pending_since is None:
        return False
    age = utc_now() - profile.pending_since
    return age < timedelta(seconds=settings.link_lease_seconds)


def _in_auto_allow_range(employee_id: str) -> bool:
    if not settings.auto_allow_enabled:
        return False
    number = int(employee_id[len(settings.employee_id_prefix) :])
    return settings.auto_allow_min <= number <= settings.auto_allow_max


@dataclass(frozen=True)
class LinkResult:
    """Successful link.

    Attributes:
        employee_id: Canonical employee id now bound to the principal.
        profile: Profile after linking.
        already_linked: True when this was an idempotent repeat.
    """

    employee_id: str
    profile: EmployeeProfile
    already_linked: bool = False


class IdentityLinkingService:
    """Links principals to employee ids and keeps the binding consistent.

    Args:
        store: Document store.
        config: Retry policy. Defaults to environment configuration.
    """

    def __init__(self, store: DocumentStore, config: ProviderConfig | None = None) -> None:
        self._store = store
        self._config = config or ProviderConfig.from_env()

    # -----------------------------------------------------------------------
    # Profile bootstrap
    # -----------------------------------------------------------------------

    async def ensure_profile(self, principal: Principal) -> EmployeeProfile:
        """Create the profile on first sign-in, refresh it afterwards.

        Also repairs the allow-list side of the binding: a linked profile
        re-asserts its claim, an unlinked one releases claims it left behind.

        Args:
            principal: Signed-in principal.

        Returns:
            Current profile.
        """
        now = utc_now()
        existing = await ProfileRepository.get_with_version(self._store, principal.id)

        if existing is None:
            steps = default_steps()
            profile = EmployeeProfile(
                principal_id=principal.id,
                email=principal.email.strip().lower(),
                display_name=principal.display_name,
                status=ProfileStatus.PENDING,
                steps=steps,
                stage=stage_for(steps),
                created_at=now,
                updated_at=now,
                last_login_at=now,
            )
            try:
                written = await ProfileRepository.create(self._store, profile)
                logger.info("Created employee profile", extra={"principal_id": principal.id})
                profile = written.value
            except WriteConflictError:
                # Another request bootstrapped it first
                profile = await ProfileRepository.get(self._store, principal.id)
        else:
            patch = {"last_login_at": now.isoformat()}
            if principal.email:
                patch["email"] = principal.email.strip().lower()
            if principal.display_name:
                patch["display_name"] = principal.display_name
            profile = (
                await ProfileRepository.patch(self._store, principal.id, patch)
            ).value

        await self._repair_claims(principal, profile)
        return profile

    async def _repair_claims(self, principal: Principal, profile: EmployeeProfile) -> None:
        if profile.employee_id is not None:
            current = await AllowlistRepository.get_with_version(
                self._store, profile.employee_id
            )
            if current is None:
                logger.warning(
                    "Linked employee id has no allow-list entry",
                    extra={"principal_id": principal.id, "employee_id": profile.employee_id},
                )
                return
            entry = current.value
            if entry.claimed_by_principal_id == principal.id:
                if entry.status != AllowlistStatus.VERIFIED:
                    await self._save_claim(entry, principal.id, current.version)
                return
            if entry.claimed_by_principal_id is None:
                logger.info(
                    "Re-asserting lost claim",
                    extra={"principal_id": principal.id, "employee_id": entry.employee_id},
                )
                await self._save_claim(entry, principal.id, current.version)
            else:
                logger.error(
                    "Linked employee id is claimed by another principal",
                    extra={
                        "principal_id": principal.id,
                        "employee_id": entry.employee_id,
                        "claimed_by": entry.claimed_by_principal_id,
                    },
                )
            return

        claims = [
            claimed
            for claimed in await AllowlistRepository.find_claimed_by(self._store, principal.id)
            if claimed.value.status != AllowlistStatus.ASSIGNED
        ]
        if not claims:
            return

        # Read after the claims: a link marks itself pending before claiming
        fresh = await ProfileRepository.get(self._store, principal.id)
        for claimed in claims:
            employee_id = claimed.value.employee_id
            if fresh is not None and (
                fresh.employee_id == employee_id or _link_in_progress(fresh, employee_id)
            ):
                logger.info(
                    "Claim belongs to a link in progress, kept",
                    extra={"principal_id": principal.id, "employee_id": employee_id},
                )
                continue
            logger.info(
                "Releasing dangling claim",
                extra={"principal_id": principal.id, "employee_id": employee_id},
            )
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
                    extra={"employee_id": employee_id},
                )

    async def _save_claim(
        self, entry: AllowlistEntry, principal_id: str, version: int
    ) -> Versioned[AllowlistEntry]:
        claimed = entry.model_copy(
            update={
                "claimed_by_principal_id": principal_id,
                "claimed_at": entry.claimed_at or utc_now(),
                "status": AllowlistStatus.VERIFIED,
            }
        )
        return await AllowlistRepository.save(self._store, claimed, expected_version=version)

    # -----------------------------------------------------------------------
    # Linking
    # -----------------------------------------------------------------------

    async def link_identity(self, principal: Principal, claimed_employee_id: str) -> LinkResult:
        """Bind the principal to an employee id.

        Validation short-circuits in this order: format, existence,
        activation, email match, existing claim.

        Args:
            principal: Signed-in principal.
            claimed_employee_id: Id as the user typed it.

        Returns:
            LinkResult. Repeating a successful link returns already_linked=True
            with no further writes.

        Raises:
            InvalidEmployeeIdError, EmployeeIdNotFoundError,
            EmployeeIdInactiveError, IdentityMismatchError,
            EmployeeIdAlreadyClaimedError: Nothing is written.
            EmployeeIdLockedError: Principal is linked to a different id.
            SyncFailedError: Store kept conflicting or failing, or the claim
                was released before the profile could be linked.
        """
        employee_id = normalize_employee_id(claimed_employee_id)

        current = await ProfileRepository.get(self._store, principal.id)
        if current is None:
            current = await self.ensure_profile(principal)
        if current.employee_id is not None:
            if current.employee_id != employee_id:
                raise EmployeeIdLockedError(current.employee_id)
            return LinkResult(employee_id=employee_id, profile=current, already_linked=True)

        try:
            previous, claimed_version = await with_retries(
                lambda: self._claim(principal, employee_id), self._config
            )
        except Exception as exc:
            await self._clear_pending(principal.id, employee_id)
            if isinstance(exc, (WriteConflictError, TransientStoreError)):
                raise SyncFailedError() from exc
            raise

        try:
            profile = await with_retries(
                lambda: self._write_linked_profile(principal, employee_id), self._config
            )
        except Exception as exc:
            await self._restore_claim(previous, claimed_version)
            await self._clear_pending(principal.id, employee_id)
            if isinstance(exc, (WriteConflictError, TransientStoreError)):
                raise SyncFailedError() from exc
            raise

        logger.info(
            "Linked employee id",
            extra={"principal_id": principal.id, "employee_id": employee_id},
        )
        return LinkResult(employee_id=employee_id, profile=profile)

    async def _claim(
        self, principal: Principal, employee_id: str
    ) -> tuple[AllowlistEntry, int]:
        """Validate, mark the link as pending on the profile, then claim.

        The pending mark is written before the claim so that sign-in repair
        never sees the claim without it.

        Returns:
            (entry as it was before the claim, version after the claim)
        """
        current = await AllowlistRepository.get_with_version(self._store, employee_id)
        if current is None:
            if not _in_auto_allow_range(employee_id):
                raise EmployeeIdNotFoundError(employee_id)
            await self._mark_pending(principal.id, employee_id)
            entry = AllowlistEntry(employee_id=employee_id, active=True, created_at=utc_now())
            created = await AllowlistRepository.create(self._store, entry)
            logger.info("Auto-registered employee id", extra={"employee_id": employee_id})
            written = await self._save_claim(created.value, principal.id, created.version)
            return created.value, written.version

        entry = current.value
        if not entry.active:
            raise EmployeeIdInactiveError(employee_id)
        if entry.email and entry.email.strip().lower() != principal.email.strip().lower():
            raise IdentityMismatchError(employee_id)
        if (
            entry.claimed_by_principal_id is not None
            and entry.claimed_by_principal_id != principal.id
        ):
            raise EmployeeIdAlreadyClaimedError(employee_id)

        await self._mark_pending(principal.id, employee_id)
        written = await self._save_claim(entry, principal.id, current.version)
        return entry, written.version

    async def _mark_pending(self, principal_id: str, employee_id: str) -> None:
        await ProfileRepository.patch(
            self._store,
            principal_id,
            {"pending_employee_id": employee_id, "pending_since": utc_now().isoformat()},
        )

    async def _clear_pending(self, principal_id: str, employee_id: str) -> None:
        try:
            profile = await ProfileRepository.get(self._store, principal_id)
            if profile is None or profile.pending_employee_id != employee_id:
                return
            await ProfileRepository.patch(
                self._store,
                principal_id,
                {"pending_employee_id": None, "pending_since": None},
            )
        except (WriteConflictError, TransientStoreError):
            logger.warning(
                "Could not clear pending link, it expires with its lease",
                extra={"principal_id": principal_id, "employee_id": employee_id},
            )

    async def _write_linked_profile(
        self, principal: Principal, employee_id: str
    ) -> EmployeeProfile:
        current = await ProfileRepository.get_with_version(self._store, principal.id)
        profile = current.value
        if profile.employee_id is not None and profile.employee_id != employee_id:
            raise EmployeeIdLockedError(profile.employee_id)

        entry = await AllowlistRepository.get(self._store, employee_id)
        if entry is None or entry.claimed_by_principal_id != principal.id:
            logger.error(
                "Claim lost before the profile was linked",
                extra={
                    "principal_id": principal.id,
                    "employee_id": employee_id,
                    "claimed_by": entry.claimed_by_principal_id if entry else None,
                },
            )
            raise SyncFailedError()

        now = utc_now()
        updates: dict = {
            "employee_id": employee_id,
            "pending_employee_id": None,
            "pending_since": None,
            "verified": True,
            "status": ProfileStatus.ACTIVE,
            "updated_at": now,
        }
        record = await AdminRecordRepository.get(self._store, employee_id)
        if record is not None:
            # Administrator prepared the onboarding before first sign-in
            updates["steps"] = record.steps
            if not record.shift.is_empty or record.shift.status != ShiftStatus.PENDING:
                updates["shift"] = record.shift
            if profile.appointment.is_empty and not record.appointment.is_empty:
                updates["appointment"] = record.appointment
        else:
            updates["steps"] = default_steps()
        updates["stage"] = stage_for(updates["steps"])

        written = await ProfileRepository.save(
            self._store,
            profile.model_copy(update=updates),
            expected_version=current.version,
        )
        return written.value

    async def _restore_claim(self, previous: AllowlistEntry, version: int) -> None:
        try:
            await AllowlistRepository.save(self._store, previous, expected_version=version)
        except WriteConflictError:
            logger.warning(
                "Claim changed since it was taken, not rolled back",
                extra={"employee_id": previous.employee_id},
            )
        except Exception:
            logger.exception(
                "Could not roll back claim, will be released on next sign-in",
                extra={"employee_id": previous.employee_id},
            )
