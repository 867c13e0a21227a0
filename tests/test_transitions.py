# tests/test_transitions.py
"""Unit tests for the stage catalog and the transition validator."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from app.services.errors import IllegalTransitionError
from app.services.stages import (
    ORDERED_STAGES, RegistrationStage, display_order, get_stage_config, is_stage_complete, progress_fraction,
)
from app.services.transitions import (
    VALID_TRANSITIONS, get_next_stages, is_valid_transition, notes_required, validate_transition,
)

S = RegistrationStage

ALLOWED = {
    (S.SALE_COMPLETE, S.DOCUMENTS_COLLECTED),
    (S.DOCUMENTS_COLLECTED, S.SUBMITTED_TO_DMV),
    (S.SUBMITTED_TO_DMV, S.DMV_PROCESSING),
    (S.DMV_PROCESSING, S.STICKER_READY),
    (S.DMV_PROCESSING, S.REJECTED),
    (S.STICKER_READY, S.STICKER_DELIVERED),
    (S.REJECTED, S.SUBMITTED_TO_DMV),
}


class TestTransitions:
    def test_table_matches_lifecycle(self):
        pairs = {(current, target) for current, targets in VALID_TRANSITIONS.items() for target in targets}
        assert pairs == ALLOWED

    def test_every_other_pair_is_rejected(self):
        for current in S:
            for target in S:
                if (current, target) in ALLOWED:
                    continue
                assert not is_valid_transition(current, target)
                with pytest.raises(IllegalTransitionError):
                    validate_transition(current, target, rejection_notes="notes")

    def test_skipping_a_stage_lists_allowed_next(self):
        with pytest.raises(IllegalTransitionError) as exc:
            validate_transition("sale_complete", "dmv_processing")
        assert "documents_collected" in exc.value.message
        assert exc.value.current == "sale_complete"

    def test_delivered_is_terminal(self):
        assert get_next_stages(S.STICKER_DELIVERED) == []
        with pytest.raises(IllegalTransitionError) as exc:
            validate_transition(S.STICKER_DELIVERED, S.REJECTED, "late")
        assert "terminal" in exc.value.message

    def test_rejection_requires_notes(self):
        assert notes_required("rejected")
        assert not notes_required("sticker_ready")
        for notes in (None, "", "   "):
            with pytest.raises(IllegalTransitionError):
                validate_transition(S.DMV_PROCESSING, S.REJECTED, notes)
        assert validate_transition(S.DMV_PROCESSING, "rejected", "VIN mismatch on title") == S.REJECTED

    def test_unknown_stage(self):
        with pytest.raises(IllegalTransitionError):
            validate_transition(S.SALE_COMPLETE, "teleported")
        assert not is_valid_transition("bogus", "documents_collected")
        assert get_next_stages("bogus") == []


class TestStageCatalog:
    def test_ordered_stages_exclude_rejected(self):
        assert [cfg.order for cfg in ORDERED_STAGES] == [1, 2, 3, 4, 5, 6]
        assert S.REJECTED not in [cfg.key for cfg in ORDERED_STAGES]

    def test_rejected_displays_at_dmv_position(self):
        assert get_stage_config(S.REJECTED).order == 0
        assert display_order(S.REJECTED) == 4
        assert progress_fraction(S.REJECTED) == progress_fraction(S.DMV_PROCESSING)

    def test_progress_bounds(self):
        assert progress_fraction(S.SALE_COMPLETE) == pytest.approx(1 / 6)
        assert progress_fraction(S.STICKER_DELIVERED) == 1

    def test_ownership_labels(self):
        assert get_stage_config(S.DMV_PROCESSING).ownership_label == "State"
        assert get_stage_config(S.SALE_COMPLETE).ownership_label == "Triple J"

    def test_is_stage_complete(self):
        assert is_stage_complete(S.SUBMITTED_TO_DMV, S.SALE_COMPLETE)
        assert not is_stage_complete(S.SUBMITTED_TO_DMV, S.DMV_PROCESSING)
        assert is_stage_complete(S.STICKER_DELIVERED, S.STICKER_DELIVERED)
        assert not is_stage_complete(S.STICKER_DELIVERED, S.REJECTED)

    def test_unknown_stage_raises(self):
        with pytest.raises(ValueError):
            get_stage_config("nope")
