"""Canonical onboarding step catalog and step-list migration.

Every step list read from the store passes through migrate_steps(), which
is the only place legacy ids are translated. Callers downstream can
assume canonical ids in canonical order.
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from portal.models.profile import STAGE_COMPLETED, Step

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StepDefinition:
    id: str
    label: str
    # Completed by an administrator only, never from the employee portal
    admin_completed: bool = False


DEFAULT_STEPS: tuple[StepDefinition, ...] = (
    StepDefinition("shift_selection", "Shift Selection"),
    StepDefinition("footwear", "Safety Footwear"),
    StepDefinition("i9", "I-9 Verification Ready"),
    StepDefinition("photo_badge", "Photo Badge", admin_completed=True),
    StepDefinition("firstday", "First Day Preparation"),
)

STEP_IDS: tuple[str, ...] = tuple(definition.id for definition in DEFAULT_STEPS)

FIRST_STEP_ID = STEP_IDS[0]
FINAL_STEP_ID = STEP_IDS[-1]

# Ids written by earlier versions of the portal
LEGACY_STEP_IDS: dict[str, str] = {
    "documents": "photo_badge",
    "badge": "photo_badge",
    "first_day": "firstday",
}


def requires_admin(step_id: str) -> bool:
    """Whether only an administrator may complete the step."""
    canonical = canonical_step_id(step_id)
    return any(d.admin_completed for d in DEFAULT_STEPS if d.id == canonical)


def canonical_step_id(step_id: str) -> str | None:
    """Map a stored or requested step id to its canonical id.

    Returns:
        Canonical id, or None if the id is not part of the sequence.
    """
    candidate = LEGACY_STEP_IDS.get(step_id, step_id)
    return candidate if candidate in STEP_IDS else None


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def earliest(*values: datetime | None) -> datetime | None:
    """Earliest non-null timestamp, or None."""
    present = [_as_utc(v) for v in values if v is not None]
    return min(present) if present else None


def apply_gating(steps: list[Step]) -> list[Step]:
    """Recompute locked flags: step 0 never locked, step i locked until i-1 is done."""
    gated: list[Step] = []
    for index, step in enumerate(steps):
        unlocked = index == 0 or steps[index - 1].done
        gated.append(step.model_copy(update={"locked": not unlocked}))
    return gated


def default_steps() -> list[Step]:
    """Fresh canonical step list: first step pending, the rest locked."""
    return apply_gating(
        [Step(id=definition.id, label=definition.label) for definition in DEFAULT_STEPS]
    )


def migrate_steps(raw_steps: Iterable[Step | dict[str, Any]] | None) -> list[Step]:
    """Normalize any stored step list to the canonical sequence.

    - Legacy ids are translated; unknown ids are dropped.
    - Entries that collapse onto the same id are merged (done wins, earliest
      completion time kept).
    - Missing steps are added as not done; labels come from the catalog.
    - Locked flags are recomputed.

    Args:
        raw_steps: Stored steps as models or raw dicts. None or empty yields
            the default list.

    Returns:
        Canonical, gated step list.
    """
    merged: dict[str, tuple[bool, datetime | None]] = {}
    for item in raw_steps or []:
        if isinstance(item, Step):
            step = item
        else:
            try:
                step = Step.model_validate(item)
            except ValidationError:
                logger.warning("Dropping malformed step entry", extra={"entry": str(item)[:200]})
                continue

        step_id = canonical_step_id(step.id)
        if step_id is None:
            continue

        done, completed_at = merged.get(step_id, (False, None))
        if step.done:
            completed_at = earliest(completed_at, step.completed_at)
        merged[step_id] = (done or step.done, completed_at)

    steps = []
    for definition in DEFAULT_STEPS:
        done, completed_at = merged.get(definition.id, (False, None))
        steps.append(
            Step(
                id=definition.id,
                label=definition.label,
                done=done,
                completed_at=completed_at if done else None,
            )
        )
    return apply_gating(steps)


def stage_for(steps: list[Step]) -> str:
    """Id of the first step not done, or "completed"."""
    for step in steps:
        if not step.done:
            return step.id
    return STAGE_COMPLETED
