"""Transfer Orchestrator - one approve-then-act sequence for every action kind.

This is the application layer that coordinates between:
    - Validation (TransferAction -> ValidAction)
    - Amount bounds (fresh quote, integer floor slippage)
    - The Signer collaborator (allowance, approval, action, inclusion)
    - A SettlementTracker per origin transaction

Ordering inside one execute() call is strict: approval is included before the
action is sent, and the action is included before tracking starts. Nothing is
retried automatically; a failed submission is the caller's decision.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from eth_abi import encode

from usdc_hub.domain.actions import TransferAction, ValidAction, validate_action
from usdc_hub.domain.amounts import compute_bounds, proportional_allocation, rescale
from usdc_hub.domain.approval import needs_approval
from usdc_hub.domain.collaborators import ContractRef
from usdc_hub.domain.enums import ActionKind, LegRole, SubmissionStage
from usdc_hub.domain.exceptions import (
    ChainUnavailableError,
    IndexerUnavailableError,
    SubmissionFailedError,
    TransferValidationError,
    WrongNetworkError,
)
from usdc_hub.logging_config import get_logger, transfer_context
from usdc_hub.services.settlement_tracker import SettlementHandle, SettlementTracker

if TYPE_CHECKING:
    from collections.abc import Callable

    from usdc_hub.domain.amounts import AmountBounds
    from usdc_hub.domain.collaborators import ChainReader, Indexer, Signer
    from usdc_hub.registry import Deployment, PoolCoin
    from usdc_hub.services.settlement_tracker import SettlementUpdate

logger = get_logger(__name__)

# Gas forwarded to the revert handler when a deposit call fails on the hub
DEPOSIT_REVERT_GAS_LIMIT = 100_000


@dataclass(frozen=True)
class TransferPlan:
    """Everything execute() sends, computed without side effects.

    Attributes:
        action: The validated action.
        bounds: Input amount, fresh expected output and its slippage bound.
        token: ERC-20 the spender must be allowed to pull.
        spender: Contract that pulls ``bounds.base_units`` of ``token``.
        target: Contract the action transaction calls.
        method: Function name on ``target``.
        args: Positional call arguments.
        output_decimals: Precision of the token the action delivers.
        leg_role: Chain an outbound leg hash belongs to (None for same-chain kinds).
    """

    action: ValidAction
    bounds: AmountBounds
    token: ContractRef
    spender: str
    target: ContractRef
    method: str
    args: tuple[Any, ...]
    output_decimals: int
    leg_role: LegRole | None = None

    @property
    def kind(self) -> ActionKind:
        return self.action.kind

    @property
    def is_cross_chain(self) -> bool:
        return self.leg_role is not None

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "origin_chain_id": self.action.origin_chain_id,
            "destination_chain_id": self.action.destination_chain_id,
            "recipient": self.action.recipient,
            "bounds": self.bounds.to_dict(),
            "token": self.token.address,
            "spender": self.spender,
            "target": self.target.address,
            "method": self.method,
        }


def _zrc20_setting(coin: PoolCoin) -> str:
    return f"zrc20_{coin.symbol.lower().replace('.', '_')}_address"


class TransferOrchestrator:
    """Runs transfers and hands each origin transaction to its own tracker."""

    def __init__(
        self,
        deployment: Deployment,
        indexer: Indexer,
        *,
        poll_interval_seconds: float | None = None,
    ) -> None:
        self._deployment = deployment
        self._indexer = indexer
        self._poll_interval = poll_interval_seconds

    @property
    def deployment(self) -> Deployment:
        return self._deployment

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    async def plan(
        self,
        action: TransferAction | ValidAction,
        reader: ChainReader,
        sender: str | None = None,
    ) -> TransferPlan:
        """Validate (if needed) and compute the exact calls for an action.

        ``reader`` is only used for quotes that must be read fresh from the
        pool. ``sender`` receives refunds if a deposit reverts on the hub; it
        defaults to the recipient.
        """
        valid = self._ensure_valid(action)
        sender = sender or valid.recipient

        if valid.kind is ActionKind.CONVERT:
            plan = self._plan_convert(valid)
        elif valid.kind is ActionKind.REDEEM:
            plan = await self._plan_redeem(valid, reader)
        elif valid.kind is ActionKind.DEPOSIT:
            plan = self._plan_deposit(valid, sender)
        else:
            plan = self._plan_withdraw(valid)

        logger.info(
            "transfer.planned",
            kind=valid.kind.value,
            base_units=plan.bounds.base_units,
            expected_output=plan.bounds.expected_output_base_units,
            min_output=plan.bounds.min_output_base_units,
            gas_reserve=plan.bounds.gas_reserve_base_units,
        )
        return plan

    def _ensure_valid(self, action: TransferAction | ValidAction) -> ValidAction:
        if isinstance(action, ValidAction):
            return action
        return validate_action(action, self._deployment)

    def _pool(self) -> ContractRef:
        return ContractRef("pool", self._deployment.require(self._deployment.pool_address, "pool_address"))

    def _lp_token(self) -> ContractRef:
        return ContractRef(
            "erc20",
            self._deployment.require(self._deployment.lp_token_address, "lp_token_address"),
        )

    def _plan_convert(self, valid: ValidAction) -> TransferPlan:
        coin = valid.target_coin
        pool = self._pool()
        token = ContractRef("erc20", self._deployment.require(coin.address, _zrc20_setting(coin)))

        # Stable pool: one pool coin mints one LP token, rescaled to LP precision
        expected = rescale(valid.base_units, coin.decimals, self._deployment.lp_decimals)
        bounds = compute_bounds(valid.base_units, expected, valid.slippage_bps)

        amounts = [0] * self._deployment.pool_size
        amounts[coin.pool_index] = valid.base_units
        return TransferPlan(
            action=valid,
            bounds=bounds,
            token=token,
            spender=pool.address,
            target=pool,
            method="add_liquidity",
            args=(amounts, bounds.min_output_base_units, valid.recipient),
            output_decimals=self._deployment.lp_decimals,
        )

    async def _plan_redeem(self, valid: ValidAction, reader: ChainReader) -> TransferPlan:
        coin = valid.target_coin
        pool = self._pool()

        # Quote is read from the pool on every plan, never cached
        expected = int(
            await reader.call(pool, "calc_withdraw_one_coin", (valid.base_units, coin.pool_index))
        )
        bounds = compute_bounds(valid.base_units, expected, valid.slippage_bps)
        return TransferPlan(
            action=valid,
            bounds=bounds,
            token=self._lp_token(),
            spender=pool.address,
            target=pool,
            method="remove_liquidity_one_coin",
            args=(valid.base_units, coin.pool_index, bounds.min_output_base_units, valid.recipient),
            output_decimals=coin.decimals,
        )

    def _plan_deposit(self, valid: ValidAction, sender: str) -> TransferPlan:
        network = self._deployment.networks[valid.origin_chain_id]
        prefix = network.name.lower()
        gateway = ContractRef(
            "gateway", self._deployment.require(network.gateway_address, f"{prefix}_gateway_address")
        )
        usdc = self._deployment.require(network.usdc_address, f"{prefix}_usdc_address")
        converter = self._deployment.require(self._deployment.converter_address, "converter_address")

        expected = rescale(valid.base_units, network.usdc_decimals, self._deployment.lp_decimals)
        bounds = compute_bounds(valid.base_units, expected, valid.slippage_bps)

        payload = encode(["address", "uint256"], [valid.recipient, bounds.min_output_base_units])
        revert_options = (sender, False, sender, b"", DEPOSIT_REVERT_GAS_LIMIT)
        return TransferPlan(
            action=valid,
            bounds=bounds,
            token=ContractRef("erc20", usdc),
            spender=gateway.address,
            target=gateway,
            method="depositAndCall",
            args=(converter, valid.base_units, usdc, payload, revert_options),
            output_decimals=self._deployment.lp_decimals,
            leg_role=LegRole.HUB,
        )

    def _plan_withdraw(self, valid: ValidAction) -> TransferPlan:
        withdrawer = ContractRef(
            "withdrawer",
            self._deployment.require(self._deployment.withdrawer_address, "withdrawer_address"),
        )
        destination = self._deployment.networks[valid.destination_chain_id]

        # Up to gas_reserve may be swapped for destination-chain gas
        gas_reserve = proportional_allocation(valid.base_units, valid.gas_reserve_bps)
        expected = rescale(
            valid.base_units - gas_reserve, self._deployment.lp_decimals, destination.usdc_decimals
        )
        bounds = compute_bounds(valid.base_units, expected, valid.slippage_bps, gas_reserve)

        recipient = encode(["address"], [valid.recipient])
        return TransferPlan(
            action=valid,
            bounds=bounds,
            token=self._lp_token(),
            spender=withdrawer.address,
            target=withdrawer,
            method="withdrawToChain",
            args=(
                valid.destination_chain_id,
                recipient,
                valid.base_units,
                bounds.min_output_base_units,
                gas_reserve,
            ),
            output_decimals=destination.usdc_decimals,
            leg_role=LegRole.DESTINATION,
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def execute(
        self,
        action: TransferAction | ValidAction,
        signer: Signer,
        *,
        on_update: Callable[[SettlementUpdate], None] | None = None,
        on_settled: Callable[[SettlementUpdate], None] | None = None,
    ) -> SettlementHandle:
        """Approve if needed, send the action, await inclusion, start tracking.

        Returns:
            A SettlementHandle. If the action transaction was broadcast but
            reverted or was never included, the handle is already FAILED.

        Raises:
            TransferValidationError: Before anything is sent.
            SubmissionFailedError: If the approval failed, or the action was
                rejected before it was broadcast.
        """
        valid = self._ensure_valid(action)
        with transfer_context(kind=valid.kind.value, origin_chain_id=valid.origin_chain_id):
            return await self._execute(valid, signer, on_update=on_update, on_settled=on_settled)

    async def _execute(
        self,
        valid: ValidAction,
        signer: Signer,
        *,
        on_update: Callable[[SettlementUpdate], None] | None,
        on_settled: Callable[[SettlementUpdate], None] | None,
    ) -> SettlementHandle:
        connected = await signer.chain_id()
        if connected != valid.origin_chain_id:
            raise WrongNetworkError(valid.origin_chain_id, connected)

        plan = await self.plan(valid, signer, sender=signer.address)
        approval_tx_id = await self._ensure_allowance(plan, signer)

        try:
            tx_id = await signer.send_action(plan.target, plan.method, plan.args)
        except SubmissionFailedError as exc:
            logger.warning("transfer.action_rejected", error=exc.message)
            raise SubmissionFailedError(
                exc.message, stage=SubmissionStage.ACTION.value, tx_id=exc.tx_id, hint=exc.hint
            ) from exc
        logger.info("transfer.action_sent", tx_id=tx_id, method=plan.method)

        tracker = SettlementTracker(
            tx_id,
            self._indexer,
            poll_interval_seconds=self._poll_interval,
            leg_role=plan.leg_role or LegRole.HUB,
            origin_is_hub=self._deployment.is_hub(valid.origin_chain_id),
            on_settled=on_settled,
        )
        if on_update is not None:
            tracker.subscribe(on_update)
        context = {
            "kind": valid.kind,
            "origin_chain_id": valid.origin_chain_id,
            "destination_chain_id": valid.destination_chain_id,
            "bounds": plan.bounds,
            "approval_tx_id": approval_tx_id,
            "deployment": self._deployment,
        }

        try:
            receipt = await signer.await_inclusion(tx_id)
        except SubmissionFailedError as exc:
            # Broadcast but not included: the transfer failed, tracking never starts
            logger.warning("transfer.action_failed", tx_id=tx_id, error=exc.message, hint=exc.hint)
            tracker.mark_failed(exc.message)
            return SettlementHandle(tracker, **context)

        logger.info("transfer.action_included", tx_id=tx_id, block_number=receipt.block_number)

        if not plan.is_cross_chain:
            tracker.complete_on_inclusion(receipt.tx_id)
            return SettlementHandle(tracker, **context)

        return tracker.start(**context)

    async def _ensure_allowance(self, plan: TransferPlan, signer: Signer) -> str | None:
        """Send and await an approval only when the current allowance is short."""
        required = plan.bounds.base_units
        allowance = await signer.get_allowance(plan.token, signer.address, plan.spender)
        if not needs_approval(allowance, required):
            logger.info("transfer.approval_skipped", allowance=allowance, required=required)
            return None

        approval_tx_id: str | None = None
        try:
            approval_tx_id = await signer.send_approval(plan.token, plan.spender, required)
            logger.info("transfer.approval_sent", tx_id=approval_tx_id, amount=required)
            await signer.await_inclusion(approval_tx_id)
        except SubmissionFailedError as exc:
            logger.warning("transfer.approval_failed", tx_id=approval_tx_id, error=exc.message)
            raise SubmissionFailedError(
                exc.message,
                stage=SubmissionStage.APPROVAL.value,
                tx_id=exc.tx_id or approval_tx_id,
                hint=exc.hint,
            ) from exc

        logger.info("transfer.approval_included", tx_id=approval_tx_id)
        return approval_tx_id

    # ------------------------------------------------------------------
    # Re-tracking
    # ------------------------------------------------------------------

    def _resume(
        self,
        origin_tx_id: str,
        origin_chain: int,
        destination_chain_id: int | None,
        kind: ActionKind | None,
        hub_reader: ChainReader | None,
    ) -> tuple[SettlementTracker, dict[str, Any]]:
        origin_is_hub = self._deployment.is_hub(origin_chain)
        if kind is None:
            # Without a kind, hub-origin transfers are withdrawals, whose
            # outbound leg lands on the destination chain; anything else is
            # a deposit into the hub.
            kind = ActionKind.WITHDRAW if origin_is_hub else ActionKind.DEPOSIT

        receipts = None
        if not kind.is_cross_chain:
            if not origin_is_hub:
                raise TransferValidationError(
                    field="origin_chain",
                    reason=f"{kind.value} transactions are sent on the hub chain",
                )
            if hub_reader is None:
                raise ValueError(f"a hub reader is required to track a {kind.value}")
            receipts = hub_reader
            destination_chain_id = self._deployment.hub.chain_id
        elif destination_chain_id is None and not origin_is_hub:
            destination_chain_id = self._deployment.hub.chain_id

        tracker = SettlementTracker(
            origin_tx_id,
            self._indexer,
            poll_interval_seconds=self._poll_interval,
            leg_role=LegRole.DESTINATION if origin_is_hub else LegRole.HUB,
            origin_is_hub=origin_is_hub,
            receipts=receipts,
        )
        context = {
            "kind": kind,
            "origin_chain_id": origin_chain,
            "destination_chain_id": destination_chain_id,
            "deployment": self._deployment,
        }
        return tracker, context

    def track(
        self,
        origin_tx_id: str,
        origin_chain: int,
        *,
        kind: ActionKind | None = None,
        destination_chain_id: int | None = None,
        hub_reader: ChainReader | None = None,
        on_update: Callable[[SettlementUpdate], None] | None = None,
    ) -> SettlementHandle:
        """Resume tracking from an origin transaction id alone.

        Convert and redeem transactions never reach the indexer, so their
        ``kind`` must be given together with a ``hub_reader`` that can fetch
        the origin receipt. Without a kind, a hub-origin transaction is
        tracked as a withdrawal.
        """
        tracker, context = self._resume(
            origin_tx_id, origin_chain, destination_chain_id, kind, hub_reader
        )
        if on_update is not None:
            tracker.subscribe(on_update)
        logger.info(
            "transfer.tracking_resumed",
            origin_tx_id=origin_tx_id,
            origin_chain=origin_chain,
            kind=context["kind"].value,
        )
        return tracker.start(**context)

    async def query(
        self,
        origin_tx_id: str,
        origin_chain: int,
        *,
        kind: ActionKind | None = None,
        destination_chain_id: int | None = None,
        hub_reader: ChainReader | None = None,
    ) -> SettlementHandle:
        """Poll once and return a handle on the resulting snapshot.

        The handle is not live: nothing keeps polling, so ``wait()`` and
        ``updates()`` return immediately with the snapshot's state.

        Raises:
            IndexerUnavailableError: If the indexer lookup failed, so the
                caller can tell "not indexed yet" apart from "could not ask".
            ChainUnavailableError: If the hub receipt lookup failed.
        """
        tracker, context = self._resume(
            origin_tx_id, origin_chain, destination_chain_id, kind, hub_reader
        )
        await tracker.poll_once()
        error = tracker.record.last_error
        if error is not None:
            if context["kind"].is_cross_chain:
                raise IndexerUnavailableError(origin_tx_id, error)
            raise ChainUnavailableError(origin_tx_id, error)
        return SettlementHandle(tracker, **context)
