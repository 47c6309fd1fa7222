"""Domain exceptions for the USDC hub transfer core.

These exceptions are framework-agnostic. The API layer's middleware translates
them to HTTP responses; the settlement tracker absorbs IndexerUnavailableError
and never lets it escape the poll loop.
"""

from __future__ import annotations


class TransferError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str, code: str = "TRANSFER_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(self.message)


# --- Validation Errors (nothing has been sent to a chain) ---


class TransferValidationError(TransferError):
    """Raised when a transfer action violates an input rule.

    Only the first violated rule is reported.
    """

    def __init__(self, field: str, reason: str, code: str = "VALIDATION_ERROR") -> None:
        super().__init__(message=f"Invalid {field}: {reason}", code=code)
        self.field = field
        self.reason = reason


class InvalidAmountError(TransferValidationError):
    """Raised when an amount is not a positive finite decimal at the token's precision."""

    def __init__(self, reason: str, field: str = "amount") -> None:
        super().__init__(field=field, reason=reason, code="INVALID_AMOUNT")


class InvalidBasisPointsError(TransferValidationError):
    """Raised when a basis-point ratio is outside [0, 10000)."""

    def __init__(self, value: object, field: str = "ratio_bps", code: str = "INVALID_BASIS_POINTS") -> None:
        super().__init__(
            field=field,
            reason=f"{value!r} is not an integer in [0, 10000)",
            code=code,
        )
        self.value = value


class InvalidSlippageError(InvalidBasisPointsError):
    """Raised when slippage_bps is outside [0, 10000)."""

    def __init__(self, value: object) -> None:
        super().__init__(value=value, field="slippage_bps", code="INVALID_SLIPPAGE")


class WrongNetworkError(TransferValidationError):
    """Raised when the signer is connected to a chain other than the action's origin."""

    def __init__(self, expected_chain_id: int, actual_chain_id: int) -> None:
        super().__init__(
            field="origin_chain",
            reason=f"signer is on chain {actual_chain_id}, action requires chain {expected_chain_id}",
            code="WRONG_NETWORK",
        )
        self.expected_chain_id = expected_chain_id
        self.actual_chain_id = actual_chain_id


# --- Configuration Errors ---


class ConfigurationError(TransferError):
    """Raised when a contract address needed for an action is not configured."""

    def __init__(self, setting: str) -> None:
        super().__init__(
            message=f"Missing deployment setting: {setting}",
            code="CONFIGURATION_ERROR",
        )
        self.setting = setting


# --- Submission Errors (terminal, never retried automatically) ---

NOT_ENOUGH_COINS_HINT = (
    "Not enough coins removed. Try increasing the slippage tolerance "
    "or the gas allocation percentage."
)


class SubmissionFailedError(TransferError):
    """Raised when an approval or action transaction is rejected, reverts,
    or is not included before the inclusion timeout."""

    def __init__(
        self,
        message: str,
        stage: str,
        tx_id: str | None = None,
        hint: str | None = None,
    ) -> None:
        super().__init__(message=message, code="SUBMISSION_FAILED")
        self.stage = stage
        self.tx_id = tx_id
        if hint is None and "not enough coins removed" in message.lower():
            hint = NOT_ENOUGH_COINS_HINT
        self.hint = hint


# --- Tracking Errors ---


class IndexerUnavailableError(TransferError):
    """Raised by the indexer adapter when a lookup cannot be completed.

    Transient: the tracker logs it and keeps polling. It never means the
    transfer failed.
    """

    def __init__(self, origin_tx_id: str, detail: str) -> None:
        super().__init__(
            message=f"Indexer unavailable for {origin_tx_id}: {detail}",
            code="INDEXER_UNAVAILABLE",
        )
        self.origin_tx_id = origin_tx_id
        self.detail = detail


class ChainUnavailableError(TransferError):
    """Raised when a hub-chain receipt lookup cannot be completed."""

    def __init__(self, origin_tx_id: str, detail: str) -> None:
        super().__init__(
            message=f"Hub chain unavailable for {origin_tx_id}: {detail}",
            code="CHAIN_UNAVAILABLE",
        )
        self.origin_tx_id = origin_tx_id
        self.detail = detail


class UnknownOutcomeError(TransferError):
    """Raised when tracking stopped before a terminal state was observed.

    Distinct from failure: the origin transaction is already committed and
    may still settle. Re-query by origin transaction id later.
    """

    def __init__(self, origin_tx_id: str) -> None:
        super().__init__(
            message=(
                f"Outcome unknown for {origin_tx_id}: tracking stopped before settlement. "
                "The transfer may still complete; re-query by origin transaction id."
            ),
            code="UNKNOWN_OUTCOME",
        )
        self.origin_tx_id = origin_tx_id


# --- State Machine Errors ---


class InvalidStateTransitionError(TransferError):
    """Raised when an attempted settlement state transition is not allowed.

    Example: SETTLED -> CONFIRMING (terminal states are absorbing).
    """

    def __init__(self, current_state: str, attempted_state: str) -> None:
        super().__init__(
            message=f"Invalid state transition: {current_state} -> {attempted_state}",
            code="INVALID_STATE_TRANSITION",
        )
        self.current_state = current_state
        self.attempted_state = attempted_state
