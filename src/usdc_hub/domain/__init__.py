"""Domain layer - pure transfer logic with zero web3 or HTTP dependencies."""

from usdc_hub.domain.actions import TransferAction, ValidAction, validate_action
from usdc_hub.domain.amounts import (
    AmountBounds,
    apply_slippage,
    from_base_units,
    proportional_allocation,
    to_base_units,
)
from usdc_hub.domain.approval import needs_approval
from usdc_hub.domain.collaborators import (
    ChainReader,
    ContractRef,
    Indexer,
    OutboundLeg,
    Receipt,
    SettlementQueryResult,
    Signer,
)
from usdc_hub.domain.enums import (
    ActionKind,
    LegRole,
    SettlementState,
    SubmissionStage,
    TransferOutcome,
)
from usdc_hub.domain.exceptions import (
    ChainUnavailableError,
    ConfigurationError,
    IndexerUnavailableError,
    InvalidAmountError,
    InvalidSlippageError,
    InvalidStateTransitionError,
    SubmissionFailedError,
    TransferError,
    TransferValidationError,
    UnknownOutcomeError,
)
from usdc_hub.domain.state_machine import SettlementStateMachine, advance

__all__ = [
    "TransferAction",
    "ValidAction",
    "validate_action",
    "AmountBounds",
    "apply_slippage",
    "from_base_units",
    "proportional_allocation",
    "to_base_units",
    "needs_approval",
    "ChainReader",
    "ContractRef",
    "Indexer",
    "OutboundLeg",
    "Receipt",
    "SettlementQueryResult",
    "Signer",
    "ActionKind",
    "LegRole",
    "SettlementState",
    "SubmissionStage",
    "TransferOutcome",
    "ChainUnavailableError",
    "ConfigurationError",
    "IndexerUnavailableError",
    "InvalidAmountError",
    "InvalidSlippageError",
    "InvalidStateTransitionError",
    "SubmissionFailedError",
    "TransferError",
    "TransferValidationError",
    "UnknownOutcomeError",
    "SettlementStateMachine",
    "advance",
]
