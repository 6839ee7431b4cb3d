"""Onboarding state machine.

Owns the ordered step list: gating, completion, next actionable step and
step-specific payload side effects.

The transition functions are pure and return new step lists.
OnboardingService wraps them in versioned read-modify-write cycles.

Step states:
    LOCKED  -> predecessor not done
    PENDING -> unlocked, not done
    DONE    -> completed (only an administrator reset undoes it)
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from portal.core.errors import (
    EmployeeNotLinkedError,
    NotFoundError,
    StepAlreadyDoneError,
    StepLockedError,
    StepRequirementsError,
    StepRequiresAdminError,
    SyncFailedError,
    UnknownStepError,
)
from portal.models.document import utc_now
from portal.models.profile import (
    EmployeeProfile,
    FootwearAcknowledgement,
    I9Acknowledgement,
    ProfileStatus,
    ShiftSelection,
    ShiftStatus,
    Step,
)
from portal.providers.config import ProviderConfig
from portal.providers.document_store.base import DocumentStore
from portal.providers.errors import TransientStoreError, WriteConflictError
from portal.providers.retry import with_retries
from portal.repositories.admin_record_repository import AdminRecordRepository
from portal.repositories.profile_repository import ProfileRepository
from portal.services.step_catalog import (
    FINAL_STEP_ID,
    apply_gating,
    canonical_step_id,
    requires_admin,
    stage_for,
)

logger = logging.getLogger(__name__)


class StepState(str, Enum):
    LOCKED = "locked"
    PENDING = "pending"
    DONE = "done"


@dataclass(frozen=True)
class OnboardingProgress:
    """Summary of a step list.

    Attributes:
        completed: Number of steps done.
        total: Number of steps.
        percent: Whole-number completion percentage.
        next_step_id: First step not done, None when complete.
        complete: True when every step is done.
    """

    completed: int
    total: int
    percent: int
    next_step_id: str | None
    complete: bool


# =============================================================================
# Pure transitions
# =============================================================================


def step_state(step: Step) -> StepState:
    if step.done:
        return StepState.DONE
    if step.locked:
        return StepState.LOCKED
    return StepState.PENDING


def find_step(steps: list[Step], step_id: str) -> int:
    """Index of a step, accepting legacy ids.

    Raises:
        UnknownStepError: Id is not part of the sequence.
    """
    canonical = canonical_step_id(step_id)
    for index, step in enumerate(steps):
        if step.id == canonical:
            return index
    raise UnknownStepError(step_id)


def next_step(steps: list[Step]) -> Step | None:
    """First step that is not done (the next actionable step)."""
    for step in steps:
        if not step.done:
            return step
    return None


def is_onboarding_complete(steps: list[Step]) -> bool:
    return bool(steps) and all(step.done for step in steps)


def progress(steps: list[Step]) -> OnboardingProgress:
    completed = sum(1 for step in steps if step.done)
    total = len(steps)
    upcoming = next_step(steps)
    return OnboardingProgress(
        completed=completed,
        total=total,
        percent=(completed * 100) // total if total else 0,
        next_step_id=upcoming.id if upcoming else None,
        complete=is_onboarding_complete(steps),
    )


def apply_completion(steps: list[Step], step_id: str, now: datetime) -> list[Step]:
    """Mark one step done, enforcing gating.

    Args:
        steps: Current canonical steps.
        step_id: Step to complete.
        now: Completion timestamp.

    Returns:
        New step list with the step done and its successor unlocked.

    Raises:
        UnknownStepError: Id is not part of the sequence.
        StepLockedError: Predecessor not done.
        StepAlreadyDoneError: Step completed earlier.
    """
    index = find_step(steps, step_id)
    step = steps[index]
    if index > 0 and not steps[index - 1].done:
        raise StepLockedError(step.id, blocked_by=steps[index - 1].id)
    if step.done:
        raise StepAlreadyDoneError(step.id)

    updated = list(steps)
    updated[index] = step.model_copy(update={"done": True, "completed_at": now})
    return apply_gating(updated)


def force_complete(steps: list[Step], step_id: str, now: datetime) -> list[Step]:
    """Administrator override: complete a step and every predecessor at once.

    Steps already done keep their original completion time.

    Raises:
        UnknownStepError: Id is not part of the sequence.
    """
    index = find_step(steps, step_id)
    updated = [
        step.model_copy(update={"done": True, "completed_at": step.completed_at or now})
        if position <= index and not step.done
        else step
        for position, step in enumerate(steps)
    ]
    return apply_gating(updated)


def reset_step(steps: list[Step], step_id: str) -> list[Step]:
    """Administrator override: un-complete a step and every later step.

    Raises:
        UnknownStepError: Id is not part of the sequence.
    """
    index = find_step(steps, step_id)
    updated = [
        step.model_copy(update={"done": False, "completed_at": None})
        if position >= index
        else step
        for position, step in enumerate(steps)
    ]
    return apply_gating(updated)


# =============================================================================
# Step payloads
# =============================================================================


class ShiftPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    position: str = Field(default="", max_length=100)
    shift_code: str = Field(default="", max_length=50)


class FootwearPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ack1: bool = False
    ack2: bool = False
    ack3: bool = False
    ack4: bool = False
    ack5: bool = False


class I9Payload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    ack: bool = False


class StepPayload(BaseModel):
    """Data submitted with a step completion. Only the part for the step is read."""

    model_config = ConfigDict(extra="forbid")

    shift: ShiftPayload | None = None
    footwear: FootwearPayload | None = None
    i9: I9Payload | None = None


def apply_step_payload(
    profile: EmployeeProfile,
    step_id: str,
    payload: StepPayload | None,
    now: datetime,
) -> dict:
    """Validate a step's payload and compute the profile fields it sets.

    Args:
        profile: Profile before completion.
        step_id: Canonical step id being completed.
        payload: Submitted data, may be None.
        now: Completion timestamp.

    Returns:
        Field updates for the profile (model values, not JSON).

    Raises:
        StepRequirementsError: Required fields or acknowledgements missing.
    """
    payload = payload or StepPayload()

    if step_id == "shift_selection":
        shift = payload.shift or ShiftPayload()
        position = shift.position.strip()
        shift_code = shift.shift_code.strip()
        missing = [
            name for name, value in (("position", position), ("shift_code", shift_code))
            if not value
        ]
        if missing:
            raise StepRequirementsError(step_id, missing)
        return {
            "shift": ShiftSelection(
                position=position,
                shift_code=shift_code,
                approved=False,
                status=ShiftStatus.PENDING,
                submitted_at=now,
            )
        }

    if step_id == "footwear":
        submitted = payload.footwear or FootwearPayload()
        current = profile.footwear
        footwear = FootwearAcknowledgement(
            **{
                name: getattr(current, name) or getattr(submitted, name)
                for name in ("ack1", "ack2", "ack3", "ack4", "ack5")
            }
        )
        missing = footwear.missing()
        if missing:
            raise StepRequirementsError(step_id, missing)
        return {"footwear": footwear.model_copy(update={"acknowledged_at": now})}

    if step_id == "i9":
        acknowledged = profile.i9.ack or (payload.i9 is not None and payload.i9.ack)
        if not acknowledged:
            raise StepRequirementsError(step_id, ["ack"])
        return {"i9": I9Acknowledgement(ack=True, acknowledged_at=now)}

    if step_id == FINAL_STEP_ID:
        return {"status": ProfileStatus.ACTIVE}

    return {}


# =============================================================================
# Service
# =============================================================================


@dataclass(frozen=True)
class StepCompletion:
    """Outcome of a successful step completion."""

    profile: EmployeeProfile
    step_id: str
    next_step_id: str | None
    onboarding_complete: bool


class OnboardingService:
    """Versioned read-modify-write around the pure transitions.

    Args:
        store: Document store.
        config: Retry policy. Defaults to environment configuration.
    """

    def __init__(self, store: DocumentStore, config: ProviderConfig | None = None) -> None:
        self._store = store
        self._config = config or ProviderConfig.from_env()

    async def get_profile(self, principal_id: str) -> EmployeeProfile:
        """Load a linked profile.

        Raises:
            NotFoundError: Principal never signed in.
            EmployeeNotLinkedError: Profile has no employee id yet.
        """
        profile = await ProfileRepository.get(self._store, principal_id)
        if profile is None:
            raise NotFoundError("Profile")
        if profile.employee_id is None:
            raise EmployeeNotLinkedError()
        return profile

    async def complete_step(
        self,
        principal_id: str,
        step_id: str,
        payload: StepPayload | None = None,
    ) -> StepCompletion:
        """Complete one step for the principal's linked profile.

        On a version conflict the whole cycle re-runs against a fresh read,
        so a completion by another tab in the meantime surfaces as
        StepAlreadyDoneError rather than a duplicate write.

        Args:
            principal_id: Profile owner.
            step_id: Step to complete (legacy ids accepted).
            payload: Step-specific data.

        Returns:
            StepCompletion with the written profile.

        Raises:
            UnknownStepError, StepLockedError, StepAlreadyDoneError,
            StepRequiresAdminError, StepRequirementsError: Nothing is written.
            EmployeeNotLinkedError: Profile not linked yet.
            SyncFailedError: Store kept conflicting or failing.
        """

        async def attempt() -> EmployeeProfile:
            current = await ProfileRepository.get_with_version(self._store, principal_id)
            if current is None:
                raise NotFoundError("Profile")
            profile = current.value
            if profile.employee_id is None:
                raise EmployeeNotLinkedError()

            now = utc_now()
            steps = apply_completion(profile.steps, step_id, now)
            canonical = steps[find_step(steps, step_id)].id
            if requires_admin(canonical):
                raise StepRequiresAdminError(canonical)
            updates = apply_step_payload(profile, canonical, payload, now)
            updated = profile.model_copy(
                update={
                    **updates,
                    "steps": steps,
                    "stage": stage_for(steps),
                    "updated_at": now,
                }
            )
            written = await ProfileRepository.save(
                self._store, updated, expected_version=current.version
            )
            return written.value

        try:
            profile = await with_retries(attempt, self._config)
        except (WriteConflictError, TransientStoreError) as exc:
            logger.error(
                "Step completion failed after retries",
                extra={"principal_id": principal_id, "step_id": step_id},
            )
            raise SyncFailedError() from exc

        upcoming = next_step(profile.steps)
        logger.info(
            "Onboarding step completed",
            extra={
                "principal_id": principal_id,
                "employee_id": profile.employee_id,
                "step_id": step_id,
            },
        )
        return StepCompletion(
            profile=profile,
            step_id=canonical_step_id(step_id) or step_id,
            next_step_id=upcoming.id if upcoming else None,
            onboarding_complete=is_onboarding_complete(profile.steps),
        )

    async def mark_notification_read(self, principal_id: str, index: int) -> None:
        """Mark one administrator notification as read.

        Raises:
            EmployeeNotLinkedError: Profile not linked yet.
            NotFoundError: No notification at that index.
        """
        profile = await self.get_profile(principal_id)
        current = await AdminRecordRepository.get_with_version(
            self._store, profile.employee_id
        )
        if current is None or not 0 <= index < len(current.value.notifications):
            raise NotFoundError("Notification", str(index))

        notifications = list(current.value.notifications)
        notifications[index] = notifications[index].model_copy(update={"read": True})
        await AdminRecordRepository.save(
            self._store,
            current.value.model_copy(update={"notifications": notifications}),
            expected_version=current.version,
        )
