"""Domain enumerations for the USDC hub transfer core.

These enums define the canonical states and kinds used throughout the system.
They are framework-agnostic (no web3, no httpx, no FastAPI imports).
"""

import enum


class ActionKind(enum.StrEnum):
    """The four supported transfer operations."""

    CONVERT = "convert"  # pool coin -> USDC.4 on the hub chain
    REDEEM = "redeem"  # USDC.4 -> pool coin on the hub chain
    DEPOSIT = "deposit"  # origin chain USDC -> hub chain USDC.4
    WITHDRAW = "withdraw"  # hub chain USDC.4 -> destination chain USDC

    @property
    def is_cross_chain(self) -> bool:
        """Whether settlement involves an outbound leg reported by the indexer."""
        return self in (ActionKind.DEPOSIT, ActionKind.WITHDRAW)


class SettlementState(enum.StrEnum):
    """Lifecycle of a tracked transfer, ordered by progress rather than time.

    SETTLED and FAILED are absorbing. See domain/state_machine.py for the
    transition table.
    """

    SUBMITTED = "SUBMITTED"
    CONFIRMING = "CONFIRMING"
    PROCESSING = "PROCESSING"
    SETTLED = "SETTLED"
    FAILED = "FAILED"

    @property
    def progress(self) -> int:
        return _PROGRESS[self]

    @property
    def is_terminal(self) -> bool:
        return self in (SettlementState.SETTLED, SettlementState.FAILED)

    @property
    def description(self) -> str:
        """Human-readable status line for display."""
        return _DESCRIPTIONS[self]


_PROGRESS = {
    SettlementState.SUBMITTED: 0,
    SettlementState.CONFIRMING: 1,
    SettlementState.PROCESSING: 2,
    SettlementState.SETTLED: 3,
    SettlementState.FAILED: 3,
}

_DESCRIPTIONS = {
    SettlementState.SUBMITTED: "Transaction submitted",
    SettlementState.CONFIRMING: "Confirming on source chain",
    SettlementState.PROCESSING: "Processing cross-chain transfer",
    SettlementState.SETTLED: "Completed on destination chain",
    SettlementState.FAILED: "Transaction failed",
}


class TransferOutcome(enum.StrEnum):
    """What the caller is told about a transfer after funds move.

    UNKNOWN means tracking stopped (cancel or deadline) before a terminal
    state was observed. The transfer may still settle; re-query by
    origin transaction id.
    """

    PENDING = "PENDING"
    SETTLED = "SETTLED"
    FAILED = "FAILED"
    UNKNOWN = "UNKNOWN"


class LegRole(enum.StrEnum):
    """Which chain an indexer-reported outbound leg hash belongs to."""

    HUB = "hub"  # deposits: the outbound leg executes on the hub chain
    DESTINATION = "destination"  # withdrawals: the outbound leg is on the target chain


class SubmissionStage(enum.StrEnum):
    """The on-chain step at which a submission failed."""

    APPROVAL = "approval"
    ACTION = "action"
