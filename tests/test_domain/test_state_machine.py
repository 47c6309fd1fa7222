"""Tests for the SettlementStateMachine domain guard.

These tests verify that:
    1. Every forward transition, including skips, is allowed.
    2. Backward moves and exits from terminal states are blocked.
    3. The convenience function advance works.
"""

from __future__ import annotations

import pytest
from statemachine.exceptions import TransitionNotAllowed

from usdc_hub.domain.enums import SettlementState
from usdc_hub.domain.exceptions import InvalidStateTransitionError
from usdc_hub.domain.state_machine import SettlementStateMachine, advance


class TestHappyPath:
    """Test the full lifecycle: SUBMITTED -> SETTLED."""

    def test_full_lifecycle(self) -> None:
        sm = SettlementStateMachine("SUBMITTED")
        assert sm.status == "SUBMITTED"

        sm.observe_confirming()
        assert sm.status == "CONFIRMING"

        sm.observe_processing()
        assert sm.status == "PROCESSING"

        sm.observe_mined()
        assert sm.status == "SETTLED"

    def test_default_start_state(self) -> None:
        assert SettlementStateMachine().status == "SUBMITTED"


class TestSkippedStates:
    """A transfer first seen late skips intermediate states."""

    def test_submitted_straight_to_settled(self) -> None:
        sm = SettlementStateMachine("SUBMITTED")
        sm.observe_mined()
        assert sm.status == "SETTLED"

    def test_submitted_straight_to_processing(self) -> None:
        sm = SettlementStateMachine("SUBMITTED")
        sm.observe_processing()
        assert sm.status == "PROCESSING"

    def test_confirming_to_settled(self) -> None:
        sm = SettlementStateMachine("CONFIRMING")
        sm.observe_mined()
        assert sm.status == "SETTLED"


class TestFailurePath:
    def test_submission_reverted(self) -> None:
        sm = SettlementStateMachine("SUBMITTED")
        sm.submission_reverted()
        assert sm.status == "FAILED"

    def test_cannot_fail_once_confirming(self) -> None:
        sm = SettlementStateMachine("CONFIRMING")
        with pytest.raises(TransitionNotAllowed):
            sm.submission_reverted()


class TestInvalidTransitions:
    """Verify that illegal transitions raise TransitionNotAllowed."""

    def test_cannot_go_back_to_confirming(self) -> None:
        sm = SettlementStateMachine("PROCESSING")
        with pytest.raises(TransitionNotAllowed):
            sm.observe_confirming()

    def test_cannot_leave_settled(self) -> None:
        sm = SettlementStateMachine("SETTLED")
        with pytest.raises(TransitionNotAllowed):
            sm.observe_processing()

    def test_cannot_leave_failed(self) -> None:
        sm = SettlementStateMachine("FAILED")
        with pytest.raises(TransitionNotAllowed):
            sm.observe_mined()

    def test_unknown_status_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown status"):
            SettlementStateMachine("PENDING")


class TestAllowedEvents:
    """Test the get_allowed_events helper."""

    def test_submitted_allowed(self) -> None:
        allowed = SettlementStateMachine("SUBMITTED").get_allowed_events()
        assert set(allowed) == {
            "observe_confirming",
            "observe_processing",
            "observe_mined",
            "submission_reverted",
        }

    def test_processing_allowed(self) -> None:
        assert SettlementStateMachine("PROCESSING").get_allowed_events() == ["observe_mined"]

    def test_settled_is_final(self) -> None:
        assert SettlementStateMachine("SETTLED").get_allowed_events() == []

    def test_failed_is_final(self) -> None:
        assert SettlementStateMachine("FAILED").get_allowed_events() == []


class TestAdvance:
    """Test the advance() convenience function."""

    def test_valid_advance(self) -> None:
        result = advance(SettlementState.CONFIRMING, SettlementState.PROCESSING)
        assert result is SettlementState.PROCESSING

    def test_backward_raises(self) -> None:
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            advance(SettlementState.PROCESSING, SettlementState.CONFIRMING)
        assert exc_info.value.current_state == "PROCESSING"
        assert exc_info.value.attempted_state == "CONFIRMING"

    def test_terminal_is_absorbing(self) -> None:
        with pytest.raises(InvalidStateTransitionError):
            advance(SettlementState.SETTLED, SettlementState.FAILED)

    def test_submitted_is_never_a_target(self) -> None:
        with pytest.raises(InvalidStateTransitionError):
            advance(SettlementState.CONFIRMING, SettlementState.SUBMITTED)
