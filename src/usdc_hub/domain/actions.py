"""Transfer actions and their one-time validation.

A TransferAction is what a caller asks for. ``validate_action`` checks it
against the deployment once and returns a ValidAction with every symbol,
chain id and amount resolved; nothing downstream validates again.

Field usage per kind:

    kind      origin_chain   source_token   destination_selector   gas_reserve_bps
    --------  -------------  -------------  ---------------------  ---------------
    convert   hub            pool coin      USDC.4                 (unset)
    redeem    hub            USDC.4         pool coin              (unset)
    deposit   origin chain   USDC           hub chain id           (unset)
    withdraw  hub            USDC.4         target chain id        required
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from eth_utils import is_address, to_checksum_address

from usdc_hub.domain.amounts import BPS_DENOMINATOR, parse_decimal, to_base_units
from usdc_hub.domain.enums import ActionKind
from usdc_hub.domain.exceptions import (
    InvalidBasisPointsError,
    InvalidSlippageError,
    TransferValidationError,
)

if TYPE_CHECKING:
    from decimal import Decimal

    from usdc_hub.registry import Deployment, PoolCoin

LP_SYMBOL = "USDC.4"
ORIGIN_TOKEN_SYMBOL = "USDC"


@dataclass(frozen=True)
class TransferAction:
    """A requested transfer, exactly as the caller supplied it."""

    kind: ActionKind | str
    origin_chain: int
    source_token: str
    destination_selector: str | int
    amount: str
    recipient: str
    slippage_bps: int
    gas_reserve_bps: int | None = None


@dataclass(frozen=True)
class ValidAction:
    """A TransferAction that passed validation, with lookups resolved.

    Attributes:
        action: The original request.
        kind: Parsed action kind.
        origin_chain_id: Chain the action transaction is sent on.
        source_symbol: Token spent by the action.
        source_decimals: Precision of the source token.
        amount: Parsed decimal amount.
        base_units: ``amount`` in the source token's base units.
        recipient: Checksummed recipient address.
        slippage_bps: Slippage tolerance in basis points.
        gas_reserve_bps: Gas carve-out ratio (withdrawals only, else 0).
        target_coin: Pool coin received (redeem) or spent (convert).
        destination_chain_id: Chain that receives the funds.
    """

    action: TransferAction
    kind: ActionKind
    origin_chain_id: int
    source_symbol: str
    source_decimals: int
    amount: Decimal
    base_units: int
    recipient: str
    slippage_bps: int
    gas_reserve_bps: int
    target_coin: PoolCoin | None
    destination_chain_id: int

    @property
    def is_cross_chain(self) -> bool:
        return self.kind.is_cross_chain


def _is_bps(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value < BPS_DENOMINATOR


def _parse_chain_id(value: str | int) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    return int(text) if text.isdigit() else None


def validate_action(action: TransferAction, deployment: Deployment) -> ValidAction:
    """Validate a TransferAction against the deployment.

    Returns:
        The ValidAction to hand to the orchestrator.

    Raises:
        TransferValidationError: For the first violated rule (or one of its
            subclasses InvalidAmountError / InvalidSlippageError /
            InvalidBasisPointsError). No partial repair is attempted.
    """
    # --- kind ---
    try:
        kind = ActionKind(action.kind)
    except ValueError as err:
        valid = ", ".join(k.value for k in ActionKind)
        raise TransferValidationError("kind", f"{action.kind!r} is not one of {valid}") from err

    # --- amount ---
    amount = parse_decimal(action.amount)

    # --- recipient ---
    if not action.recipient:
        raise TransferValidationError("recipient", "a recipient address is required")
    if not is_address(action.recipient):
        raise TransferValidationError("recipient", f"{action.recipient!r} is not a valid address")
    recipient = to_checksum_address(action.recipient)

    # --- origin chain ---
    if kind is ActionKind.DEPOSIT:
        if action.origin_chain not in deployment.networks:
            supported = sorted(deployment.networks)
            raise TransferValidationError(
                "origin_chain", f"deposits must originate on one of {supported}"
            )
    elif not deployment.is_hub(action.origin_chain):
        raise TransferValidationError(
            "origin_chain", f"{kind.value} runs on the hub chain {deployment.hub.chain_id}"
        )

    # --- source token ---
    target_coin: PoolCoin | None = None
    if kind is ActionKind.CONVERT:
        coin = deployment.coin(action.source_token)
        if coin is None:
            raise TransferValidationError(
                "source_token", f"{action.source_token!r} is not a pool coin"
            )
        target_coin = coin
        source_decimals = coin.decimals
    elif kind is ActionKind.DEPOSIT:
        if action.source_token != ORIGIN_TOKEN_SYMBOL:
            raise TransferValidationError(
                "source_token", f"deposits spend {ORIGIN_TOKEN_SYMBOL}, got {action.source_token!r}"
            )
        source_decimals = deployment.networks[action.origin_chain].usdc_decimals
    else:
        if action.source_token != deployment.lp_symbol:
            raise TransferValidationError(
                "source_token", f"{kind.value} spends {deployment.lp_symbol}, got {action.source_token!r}"
            )
        source_decimals = deployment.lp_decimals

    base_units = to_base_units(amount, source_decimals)

    # --- destination selector ---
    selector = action.destination_selector
    if selector is None or str(selector).strip() == "":
        raise TransferValidationError("destination_selector", "a destination is required")

    if kind is ActionKind.CONVERT:
        if selector != deployment.lp_symbol:
            raise TransferValidationError(
                "destination_selector", f"convert produces {deployment.lp_symbol}, got {selector!r}"
            )
        destination_chain_id = deployment.hub.chain_id
    elif kind is ActionKind.REDEEM:
        coin = deployment.coin(str(selector))
        # Redeem always spends the LP token, which is never a pool coin
        if coin is None:
            raise TransferValidationError(
                "destination_selector", f"{selector!r} is not a pool coin"
            )
        target_coin = coin
        destination_chain_id = deployment.hub.chain_id
    else:
        chain_id = _parse_chain_id(selector)
        if chain_id is None:
            raise TransferValidationError(
                "destination_selector", f"{selector!r} is not a chain id"
            )
        if kind is ActionKind.DEPOSIT and not deployment.is_hub(chain_id):
            raise TransferValidationError(
                "destination_selector",
                f"deposits settle on the hub chain {deployment.hub.chain_id}",
            )
        if kind is ActionKind.WITHDRAW:
            if chain_id == action.origin_chain:
                raise TransferValidationError(
                    "destination_selector", "target chain must differ from the origin chain"
                )
            if chain_id not in deployment.networks:
                raise TransferValidationError(
                    "destination_selector", f"withdrawals to chain {chain_id} are not supported"
                )
        destination_chain_id = chain_id

    # --- slippage ---
    if not _is_bps(action.slippage_bps):
        raise InvalidSlippageError(action.slippage_bps)

    # --- gas reserve ---
    if kind is ActionKind.WITHDRAW:
        if action.gas_reserve_bps is None:
            raise TransferValidationError("gas_reserve_bps", "withdrawals require a gas reserve ratio")
        if not _is_bps(action.gas_reserve_bps):
            raise InvalidBasisPointsError(action.gas_reserve_bps, field="gas_reserve_bps")
        gas_reserve_bps = action.gas_reserve_bps
    else:
        if action.gas_reserve_bps is not None:
            raise TransferValidationError(
                "gas_reserve_bps", f"{kind.value} does not take a gas reserve"
            )
        gas_reserve_bps = 0

    return ValidAction(
        action=action,
        kind=kind,
        origin_chain_id=action.origin_chain,
        source_symbol=action.source_token,
        source_decimals=source_decimals,
        amount=amount,
        base_units=base_units,
        recipient=recipient,
        slippage_bps=action.slippage_bps,
        gas_reserve_bps=gas_reserve_bps,
        target_coin=target_coin,
        destination_chain_id=destination_chain_id,
    )
