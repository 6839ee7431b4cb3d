"""Tests for the step catalog and step-list migration.

Every stored step list passes through migrate_steps(); these tests pin the
legacy-id table, ordering, gating and duplicate handling.
"""

from datetime import UTC, datetime

from portal.models.profile import STAGE_COMPLETED, Step
from portal.services.step_catalog import (
    FINAL_STEP_ID,
    FIRST_STEP_ID,
    STEP_IDS,
    apply_gating,
    canonical_step_id,
    default_steps,
    earliest,
    migrate_steps,
    requires_admin,
    stage_for,
)

_EARLY = datetime(2024, 3, 1, 9, 0, tzinfo=UTC)
_LATE = datetime(2024, 3, 2, 9, 0, tzinfo=UTC)


class TestCatalog:
    def test_sequence_order(self):
        assert STEP_IDS == ("shift_selection", "footwear", "i9", "photo_badge", "firstday")
        assert FIRST_STEP_ID == "shift_selection"
        assert FINAL_STEP_ID == "firstday"

    def test_default_steps_only_first_unlocked(self):
        steps = default_steps()

        assert [s.id for s in steps] == list(STEP_IDS)
        assert [s.locked for s in steps] == [False, True, True, True, True]
        assert not any(s.done for s in steps)
        assert all(s.label for s in steps)

    def test_only_photo_badge_is_completed_by_admin(self):
        assert [sid for sid in STEP_IDS if requires_admin(sid)] == ["photo_badge"]
        assert requires_admin("badge") is True
        assert requires_admin("orientation") is False


class TestCanonicalStepId:
    def test_canonical_ids_map_to_themselves(self):
        for step_id in STEP_IDS:
            assert canonical_step_id(step_id) == step_id

    def test_legacy_ids_are_translated(self):
        assert canonical_step_id("documents") == "photo_badge"
        assert canonical_step_id("badge") == "photo_badge"
        assert canonical_step_id("first_day") == "firstday"

    def test_unknown_id_returns_none(self):
        assert canonical_step_id("orientation") is None


class TestMigrateSteps:
    def test_none_yields_defaults(self):
        assert migrate_steps(None) == default_steps()

    def test_empty_list_yields_defaults(self):
        assert migrate_steps([]) == default_steps()

    def test_raw_dicts_with_legacy_ids(self):
        raw = [
            {"id": "shift_selection", "done": True, "completed_at": _EARLY.isoformat()},
            {"id": "footwear", "done": True},
            {"id": "i9", "done": True},
            {"id": "badge", "done": True},
            {"id": "first_day", "done": False},
        ]

        steps = migrate_steps(raw)

        assert [s.id for s in steps] == list(STEP_IDS)
        assert [s.done for s in steps] == [True, True, True, True, False]
        assert steps[0].completed_at == _EARLY
        assert steps[4].locked is False

    def test_unknown_ids_are_dropped(self):
        steps = migrate_steps([{"id": "orientation", "done": True}])

        assert [s.id for s in steps] == list(STEP_IDS)
        assert not any(s.done for s in steps)

    def test_reorders_out_of_order_input(self):
        steps = migrate_steps(
            [Step(id="i9"), Step(id="shift_selection", done=True), Step(id="footwear")]
        )

        assert [s.id for s in steps] == list(STEP_IDS)
        assert steps[0].done is True

    def test_collapsing_ids_merge_done_and_earliest_time(self):
        steps = migrate_steps(
            [
                {"id": "documents", "done": True, "completed_at": _LATE.isoformat()},
                {"id": "badge", "done": True, "completed_at": _EARLY.isoformat()},
                {"id": "photo_badge", "done": False},
            ]
        )

        badge = steps[STEP_IDS.index("photo_badge")]
        assert badge.done is True
        assert badge.completed_at == _EARLY

    def test_stored_locked_flags_are_recomputed(self):
        steps = migrate_steps(
            [
                {"id": "shift_selection", "done": True, "locked": True},
                {"id": "footwear", "done": False, "locked": True},
                {"id": "i9", "done": False, "locked": False},
            ]
        )

        assert [s.locked for s in steps[:3]] == [False, False, True]

    def test_malformed_entries_are_skipped(self):
        steps = migrate_steps([{"done": True}, {"id": "shift_selection", "done": True}])

        assert steps[0].done is True

    def test_labels_come_from_catalog(self):
        steps = migrate_steps([{"id": "footwear", "label": "Old label"}])

        assert steps[1].label == "Safety Footwear"

    def test_completed_at_cleared_when_not_done(self):
        steps = migrate_steps([{"id": "i9", "done": False, "completed_at": _EARLY.isoformat()}])

        assert steps[2].completed_at is None

    def test_is_idempotent(self):
        once = migrate_steps([{"id": "badge", "done": True}, {"id": "shift_selection", "done": True}])

        assert migrate_steps(once) == once


class TestGatingAndStage:
    def test_done_step_unlocks_successor(self):
        steps = default_steps()
        steps[0] = steps[0].model_copy(update={"done": True})

        gated = apply_gating(steps)

        assert gated[1].locked is False
        assert gated[2].locked is True

    def test_stage_is_first_step_not_done(self):
        steps = migrate_steps([{"id": "shift_selection", "done": True}])

        assert stage_for(steps) == "footwear"

    def test_stage_completed_when_all_done(self):
        steps = migrate_steps([{"id": step_id, "done": True} for step_id in STEP_IDS])

        assert stage_for(steps) == STAGE_COMPLETED


class TestEarliest:
    def test_ignores_none(self):
        assert earliest(None, _LATE, None, _EARLY) == _EARLY

    def test_all_none(self):
        assert earliest(None, None) is None

    def test_naive_timestamps_treated_as_utc(self):
        naive = datetime(2024, 3, 1, 8, 0)

        assert earliest(naive, _EARLY) == naive.replace(tzinfo=UTC)
