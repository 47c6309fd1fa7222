"""Settlement State Machine Guard.

Uses python-statemachine to enforce legal settlement transitions at the
domain level. The tracker decides which state an indexer response maps to;
this guard decides whether moving there is allowed. Terminal states have no
outgoing transitions, so a late poll response can never reopen a finished
transfer.

Transition table:
    SUBMITTED   -> CONFIRMING   (observe_confirming)
    SUBMITTED   -> PROCESSING   (observe_processing)
    CONFIRMING  -> PROCESSING   (observe_processing)
    SUBMITTED   -> SETTLED      (observe_mined)
    CONFIRMING  -> SETTLED      (observe_mined)
    PROCESSING  -> SETTLED      (observe_mined)
    SUBMITTED   -> FAILED       (submission_reverted)

Skipping states is legal: a transfer first seen by the indexer already mined
goes SUBMITTED -> SETTLED directly.
"""

from __future__ import annotations

from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from usdc_hub.domain.enums import SettlementState
from usdc_hub.domain.exceptions import InvalidStateTransitionError

# Event fired to reach each target state
EVENT_FOR_TARGET: dict[SettlementState, str] = {
    SettlementState.CONFIRMING: "observe_confirming",
    SettlementState.PROCESSING: "observe_processing",
    SettlementState.SETTLED: "observe_mined",
    SettlementState.FAILED: "submission_reverted",
}


class SettlementStateMachine(StateMachine):
    """State machine that guards settlement lifecycle transitions.

    Usage:
        sm = SettlementStateMachine(current_status="CONFIRMING")
        sm.observe_mined()  # transitions to SETTLED
        sm.status           # "SETTLED"
    """

    # --- States ---
    SUBMITTED = State("SUBMITTED", initial=True)
    CONFIRMING = State("CONFIRMING")
    PROCESSING = State("PROCESSING")
    SETTLED = State("SETTLED", final=True)
    FAILED = State("FAILED", final=True)

    # --- Events / Transitions ---

    # Indexer observations
    observe_confirming = SUBMITTED.to(CONFIRMING)
    observe_processing = SUBMITTED.to(PROCESSING) | CONFIRMING.to(PROCESSING)
    observe_mined = SUBMITTED.to(SETTLED) | CONFIRMING.to(SETTLED) | PROCESSING.to(SETTLED)

    # Origin chain inclusion failure
    submission_reverted = SUBMITTED.to(FAILED)

    def __init__(self, current_status: str = "SUBMITTED") -> None:
        """Initialize the state machine at a given status.

        Args:
            current_status: The current SettlementState value (e.g., "CONFIRMING").
        """
        valid_values = {s.value for s in self.states}
        if current_status not in valid_values:
            valid = ", ".join(sorted(valid_values))
            raise ValueError(
                f"Unknown status '{current_status}'. Valid states: {valid}"
            )
        super().__init__(start_value=current_status)

    @property
    def status(self) -> str:
        """Return the current state value as a string (matches SettlementState)."""
        return str(self.current_state.value)

    def get_allowed_events(self) -> list[str]:
        """Return a list of event names that can fire from the current state."""
        return [event.id for event in self.allowed_events]


def advance(current: SettlementState, target: SettlementState) -> SettlementState:
    """Validate a move from ``current`` to ``target`` and return the new state.

    Raises:
        InvalidStateTransitionError: If the guard rejects the transition.
    """
    event_name = EVENT_FOR_TARGET.get(target)
    if event_name is None:
        raise InvalidStateTransitionError(current.value, target.value)

    sm = SettlementStateMachine(current_status=current.value)
    try:
        getattr(sm, event_name)()
    except TransitionNotAllowed as err:
        raise InvalidStateTransitionError(current.value, target.value) from err
    return SettlementState(sm.status)
