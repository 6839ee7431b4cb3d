"""Sync reconciler.

Keeps the employee profile convergent with the administrator's record.

The merge rules are pure functions of (current, incoming):
- Steps merge by canonical id; done is a union, so a merge never un-does a
  step; the earliest completion time wins. Unknown ids are dropped.
- Appointment comes from the admin record only when the employee's is empty.
- Shift: admin position/shift fill an empty selection; an admin decision
  (approved/rejected) always flows through.
- Two profile snapshots: scalar fields follow the later updated_at, ties
  broken by comparing the serialized payload, so merge is commutative.

SyncReconciler is the transport shell: it subscribes to both documents,
re-reads on every notification, and writes only when the merge changed
something.
"""

import json
import logging
from datetime import UTC, datetime

from portal.core.errors import SyncFailedError
from portal.models.admin_record import AdminRecord
from portal.models.document import utc_now
from portal.models.profile import EmployeeProfile, ShiftStatus, Step
from portal.providers.config import ProviderConfig
from portal.providers.document_store.base import DocumentSnapshot, DocumentStore
from portal.providers.document_store.subscriptions import Subscription
from portal.providers.errors import TransientStoreError, WriteConflictError
from portal.providers.retry import with_retries
from portal.repositories.admin_record_repository import (
    ADMIN_RECORDS_COLLECTION,
    AdminRecordRepository,
)
from portal.repositories.profile_repository import (
    PROFILES_COLLECTION,
    ProfileRepository,
)
from portal.services.step_catalog import earliest, migrate_steps, stage_for

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=UTC)

# Fields that are merged field-by-field rather than taken from the winner
_MERGED_FIELDS = {"steps", "stage", "employee_id", "verified", "created_at", "updated_at"}


# =============================================================================
# Pure merge
# =============================================================================


def merge_steps(left: list[Step], right: list[Step]) -> list[Step]:
    """Union two step lists over the canonical sequence."""
    by_id = {step.id: step for step in migrate_steps(right)}
    merged = []
    for step in migrate_steps(left):
        other = by_id[step.id]
        done = step.done or other.done
        completed_at = earliest(
            step.completed_at if step.done else None,
            other.completed_at if other.done else None,
        )
        merged.append(step.model_copy(update={"done": done, "completed_at": completed_at}))
    return migrate_steps(merged)


def _timestamp(value: datetime | None) -> datetime:
    if value is None:
        return _EPOCH
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def _scalar_key(profile: EmployeeProfile) -> tuple[datetime, str]:
    payload = profile.model_dump(mode="json", exclude=_MERGED_FIELDS)
    return _timestamp(profile.updated_at), json.dumps(payload, sort_keys=True)


def _merge_employee_id(left: str | None, right: str | None) -> str | None:
    # Ids are immutable once set; min() only keeps the merge symmetric if
    # corrupted data ever disagrees
    values = [value for value in (left, right) if value]
    return min(values) if values else None


def merge_profiles(a: EmployeeProfile, b: EmployeeProfile) -> EmployeeProfile:
    """Merge two snapshots of the same profile.

    Commutative and idempotent: merge(a, b) == merge(b, a) and
    merge(a, merge(a, b)) == merge(a, b).
    """
    winner, loser = (a, b) if _scalar_key(a) >= _scalar_key(b) else (b, a)
    steps = merge_steps(winner.steps, loser.steps)
    return winner.model_copy(
        update={
            "steps": steps,
            "stage": stage_for(steps),
            "employee_id": _merge_employee_id(a.employee_id, b.employee_id),
            "verified": winner.verified or loser.verified,
            "created_at": earliest(winner.created_at, loser.created_at),
            "updated_at": max(_timestamp(a.updated_at), _timestamp(b.updated_at))
            if (a.updated_at or b.updated_at)
            else None,
        }
    )


def apply_admin_record(profile: EmployeeProfile, record: AdminRecord) -> EmployeeProfile:
    """Fold the administrator's record into the profile. Idempotent."""
    steps = merge_steps(profile.steps, record.steps)
    updates: dict = {"steps": steps, "stage": stage_for(steps)}

    if profile.appointment.is_empty and not record.appointment.is_empty:
        updates["appointment"] = record.appointment

    shift = profile.shift
    if shift.is_empty and not record.shift.is_empty:
        shift = shift.model_copy(
            update={"position": record.shift.position, "shift_code": record.shift.shift_code}
        )
    if record.shift.status != ShiftStatus.PENDING:
        shift = shift.model_copy(
            update={
                "status": record.shift.status,
                "approved": record.shift.status == ShiftStatus.APPROVED,
                "decided_at": record.shift.decided_at,
            }
        )
    updates["shift"] = shift

    return profile.model_copy(update=updates)


def reconcile(
    current: EmployeeProfile,
    incoming: EmployeeProfile | AdminRecord,
) -> EmployeeProfile:
    """Merge whichever side changed into the current profile."""
    if isinstance(incoming, AdminRecord):
        return apply_admin_record(current, incoming)
    return merge_profiles(current, incoming)


def _same_state(left: EmployeeProfile, right: EmployeeProfile) -> bool:
    return left.model_dump(mode="json", exclude={"updated_at"}) == right.model_dump(
        mode="json", exclude={"updated_at"}
    )


# =============================================================================
# Transport shell
# =============================================================================


class SyncReconciler:
    """Keeps one employee's profile merged with their admin record.

    Args:
        store: Document store.
        principal_id: Profile key.
        employee_id: Admin record key.
        config: Retry policy. Defaults to environment configuration.
    """

    def __init__(
        self,
        store: DocumentStore,
        principal_id: str,
        employee_id: str,
        config: ProviderConfig | None = None,
    ) -> None:
        self._store = store
        self._principal_id = principal_id
        self._employee_id = employee_id
        self._config = config or ProviderConfig.from_env()
        self._subscriptions: list[Subscription] = []
        self._stopped = False

    @property
    def running(self) -> bool:
        return bool(self._subscriptions) and not self._stopped

    async def start(self) -> None:
        """Subscribe to both documents. The initial deliveries run one merge."""
        if self._subscriptions or self._stopped:
            return
        self._subscriptions.append(
            await self._store.subscribe(
                PROFILES_COLLECTION, self._principal_id, self._on_profile_change
            )
        )
        self._subscriptions.append(
            await self._store.subscribe(
                ADMIN_RECORDS_COLLECTION, self._employee_id, self._on_record_change
            )
        )

    async def stop(self) -> None:
        """Release both subscriptions. Later notifications are ignored."""
        self._stopped = True
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()

    async def _on_profile_change(self, snapshot: DocumentSnapshot | None) -> None:
        if self._stopped or snapshot is None:
            return
        await self.reconcile_once()

    async def _on_record_change(self, snapshot: DocumentSnapshot | None) -> None:
        if self._stopped or snapshot is None:
            return
        await self.reconcile_once()

    async def reconcile_once(
        self, incoming: EmployeeProfile | None = None
    ) -> EmployeeProfile | None:
        """Read both sides, merge, and write if anything changed.

        Args:
            incoming: Optional profile snapshot held elsewhere (another tab,
                an offline client) to fold in as well.

        Returns:
            The merged profile, or None if the profile does not exist.

        Raises:
            SyncFailedError: Conflicts or transient errors outlasted retries.
        """

        async def attempt() -> EmployeeProfile | None:
            current = await ProfileRepository.get_with_version(self._store, self._principal_id)
            if current is None:
                return None
            merged = current.value
            if incoming is not None:
                merged = reconcile(merged, incoming)
            record = await AdminRecordRepository.get(self._store, self._employee_id)
            if record is not None:
                merged = reconcile(merged, record)

            if _same_state(merged, current.value):
                return current.value

            merged = merged.model_copy(update={"updated_at": utc_now()})
            written = await ProfileRepository.save(
                self._store, merged, expected_version=current.version
            )
            logger.info(
                "Reconciled profile",
                extra={"principal_id": self._principal_id, "employee_id": self._employee_id},
            )
            return written.value

        try:
            return await with_retries(attempt, self._config)
        except (WriteConflictError, TransientStoreError) as exc:
            logger.error(
                "Reconciliation failed after retries",
                extra={"principal_id": self._principal_id, "employee_id": self._employee_id},
            )
            raise SyncFailedError() from exc
