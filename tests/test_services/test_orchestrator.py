"""Tests for the TransferOrchestrator approve-then-act sequence.

Every test runs against a SimulatedSigner and a ScriptedIndexer, so the
ordering of approval, action, inclusion and tracking is observable from
``signer.sent`` and ``indexer.calls``.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock

import pytest
import structlog
from eth_abi import decode

from conftest import (
    ARBITRUM_GATEWAY,
    ARBITRUM_USDC,
    CONVERTER,
    POOL,
    RECIPIENT,
    USDC_ARB_ZRC20,
    WITHDRAWER,
    make_convert,
    make_deposit,
    make_redeem,
    make_withdraw,
)
from usdc_hub.config import ARBITRUM_CHAIN_ID, BASE_CHAIN_ID, HUB_CHAIN_ID
from usdc_hub.domain.actions import validate_action
from usdc_hub.domain.collaborators import ContractRef
from usdc_hub.domain.enums import ActionKind, LegRole, SettlementState, TransferOutcome
from usdc_hub.domain.exceptions import (
    ChainUnavailableError,
    ConfigurationError,
    IndexerUnavailableError,
    SubmissionFailedError,
    TransferValidationError,
    UnknownOutcomeError,
    WrongNetworkError,
)
from usdc_hub.indexer.scripted import ScriptedIndexer, mined, outage, pending
from usdc_hub.registry import Deployment
from usdc_hub.services.orchestrator import DEPOSIT_REVERT_GAS_LIMIT, TransferOrchestrator
from usdc_hub.services.settlement_tracker import SettlementUpdate
from usdc_hub.signing.simulated import SIMULATED_ADDRESS, SimulatedSigner


def make_orchestrator(
    deployment: Deployment, indexer: ScriptedIndexer | None = None
) -> TransferOrchestrator:
    return TransferOrchestrator(deployment, indexer or ScriptedIndexer(), poll_interval_seconds=0)


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


class TestPlanDeposit:
    @pytest.mark.asyncio
    async def test_bounds(self, deployment: Deployment) -> None:
        plan = await make_orchestrator(deployment).plan(make_deposit(), SimulatedSigner())

        assert plan.bounds.base_units == 100_000_000
        assert plan.bounds.expected_output_base_units == 100 * 10**18
        assert plan.bounds.min_output_base_units == 995 * 10**17
        assert plan.bounds.gas_reserve_base_units == 0
        assert plan.leg_role is LegRole.HUB

    @pytest.mark.asyncio
    async def test_calls(self, deployment: Deployment) -> None:
        plan = await make_orchestrator(deployment).plan(
            make_deposit(), SimulatedSigner(), sender=SIMULATED_ADDRESS
        )

        assert plan.token.address == ARBITRUM_USDC
        assert plan.spender == ARBITRUM_GATEWAY
        assert plan.target.name == "gateway"
        assert plan.method == "depositAndCall"

        receiver, amount, asset, payload, revert_options = plan.args
        assert receiver == CONVERTER
        assert amount == 100_000_000
        assert asset == ARBITRUM_USDC
        assert revert_options == (
            SIMULATED_ADDRESS,
            False,
            SIMULATED_ADDRESS,
            b"",
            DEPOSIT_REVERT_GAS_LIMIT,
        )

        recipient, min_out = decode(["address", "uint256"], payload)
        assert recipient.lower() == RECIPIENT
        assert min_out == plan.bounds.min_output_base_units

    @pytest.mark.asyncio
    async def test_plan_sends_nothing(self, deployment: Deployment) -> None:
        signer = SimulatedSigner(chain_id=ARBITRUM_CHAIN_ID)
        await make_orchestrator(deployment).plan(make_deposit(), signer)
        assert signer.sent == []


class TestPlanWithdraw:
    @pytest.mark.asyncio
    async def test_gas_reserve_and_bounds(self, deployment: Deployment) -> None:
        plan = await make_orchestrator(deployment).plan(make_withdraw(), SimulatedSigner())

        assert plan.bounds.base_units == 100 * 10**18
        assert plan.bounds.gas_reserve_base_units == 10 * 10**18
        # 90 USDC.4 left after the gas carve-out, at 6 destination decimals
        assert plan.bounds.expected_output_base_units == 90_000_000
        assert plan.bounds.min_output_base_units == 89_550_000
        assert plan.output_decimals == 6
        assert plan.leg_role is LegRole.DESTINATION

    @pytest.mark.asyncio
    async def test_calls(self, deployment: Deployment) -> None:
        plan = await make_orchestrator(deployment).plan(make_withdraw(), SimulatedSigner())

        assert plan.spender == WITHDRAWER
        assert plan.token.address == POOL
        assert plan.method == "withdrawToChain"
        chain_id, recipient, amount, min_out, gas_reserve = plan.args
        assert chain_id == BASE_CHAIN_ID
        assert decode(["address"], recipient)[0].lower() == RECIPIENT
        assert amount == 100 * 10**18
        assert min_out == 89_550_000
        assert gas_reserve == 10 * 10**18


class TestPlanHubActions:
    @pytest.mark.asyncio
    async def test_convert(self, deployment: Deployment) -> None:
        plan = await make_orchestrator(deployment).plan(make_convert(), SimulatedSigner())

        assert plan.token.address == USDC_ARB_ZRC20
        assert plan.spender == POOL
        assert plan.method == "add_liquidity"
        amounts, min_out, recipient = plan.args
        assert amounts == [100_000_000, 0, 0, 0]
        assert min_out == 995 * 10**17
        assert recipient.lower() == RECIPIENT
        assert not plan.is_cross_chain

    @pytest.mark.asyncio
    async def test_redeem_reads_fresh_quote(self, deployment: Deployment) -> None:
        signer = SimulatedSigner(quotes={"calc_withdraw_one_coin": lambda _amount, _index: 98_000_000})
        plan = await make_orchestrator(deployment).plan(make_redeem(), signer)

        assert plan.bounds.expected_output_base_units == 98_000_000
        assert plan.bounds.min_output_base_units == 97_510_000
        assert plan.method == "remove_liquidity_one_coin"
        assert plan.args[:3] == (100 * 10**18, 2, 97_510_000)

    @pytest.mark.asyncio
    async def test_missing_address_is_configuration_error(
        self, unconfigured_deployment: Deployment
    ) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            await make_orchestrator(unconfigured_deployment).plan(make_convert(), SimulatedSigner())
        assert exc_info.value.setting == "pool_address"

    @pytest.mark.asyncio
    async def test_accepts_validated_action(self, deployment: Deployment) -> None:
        valid = validate_action(make_convert(), deployment)
        plan = await make_orchestrator(deployment).plan(valid, SimulatedSigner())
        assert plan.action is valid
        assert plan.to_dict()["kind"] == "convert"


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------


class TestApproval:
    @pytest.mark.asyncio
    async def test_approval_sent_before_action(self, deployment: Deployment) -> None:
        signer = SimulatedSigner(chain_id=ARBITRUM_CHAIN_ID)
        handle = await make_orchestrator(deployment).execute(make_deposit(), signer)
        handle.cancel()

        assert signer.methods_sent() == ["approve", "depositAndCall"]
        approve = signer.sent[0]
        assert approve.contract.address == ARBITRUM_USDC
        assert approve.args == (ARBITRUM_GATEWAY, 100_000_000)
        assert handle.approval_tx_id == approve.tx_id

    @pytest.mark.asyncio
    async def test_sufficient_allowance_skips_approval(self, deployment: Deployment) -> None:
        signer = SimulatedSigner(
            chain_id=ARBITRUM_CHAIN_ID,
            allowances={(ARBITRUM_USDC, ARBITRUM_GATEWAY): 100_000_000},
        )
        handle = await make_orchestrator(deployment).execute(make_deposit(), signer)
        handle.cancel()

        assert signer.methods_sent() == ["depositAndCall"]
        assert handle.approval_tx_id is None

    @pytest.mark.asyncio
    async def test_short_allowance_is_topped_up(self, deployment: Deployment) -> None:
        signer = SimulatedSigner(
            chain_id=ARBITRUM_CHAIN_ID,
            allowances={(ARBITRUM_USDC, ARBITRUM_GATEWAY): 99_999_999},
        )
        handle = await make_orchestrator(deployment).execute(make_deposit(), signer)
        handle.cancel()

        assert signer.methods_sent() == ["approve", "depositAndCall"]

    @pytest.mark.asyncio
    async def test_rejected_approval(self, deployment: Deployment) -> None:
        signer = SimulatedSigner(chain_id=ARBITRUM_CHAIN_ID, reject={"approve": "user denied"})
        indexer = ScriptedIndexer()

        with pytest.raises(SubmissionFailedError) as exc_info:
            await make_orchestrator(deployment, indexer).execute(make_deposit(), signer)

        assert exc_info.value.stage == "approval"
        assert signer.sent == []
        assert indexer.calls == []

    @pytest.mark.asyncio
    async def test_reverted_approval_stops_before_action(self, deployment: Deployment) -> None:
        signer = SimulatedSigner(chain_id=ARBITRUM_CHAIN_ID, revert={"approve": "paused"})

        with pytest.raises(SubmissionFailedError) as exc_info:
            await make_orchestrator(deployment).execute(make_deposit(), signer)

        assert exc_info.value.stage == "approval"
        assert exc_info.value.tx_id == signer.sent[0].tx_id
        assert signer.methods_sent() == ["approve"]


class TestActionSubmission:
    @pytest.mark.asyncio
    async def test_wrong_network(self, deployment: Deployment) -> None:
        signer = SimulatedSigner(chain_id=HUB_CHAIN_ID)

        with pytest.raises(WrongNetworkError) as exc_info:
            await make_orchestrator(deployment).execute(make_deposit(), signer)

        assert exc_info.value.expected_chain_id == ARBITRUM_CHAIN_ID
        assert exc_info.value.actual_chain_id == HUB_CHAIN_ID
        assert signer.sent == []

    @pytest.mark.asyncio
    async def test_rejected_action_raises(self, deployment: Deployment) -> None:
        signer = SimulatedSigner(chain_id=HUB_CHAIN_ID, reject={"withdrawToChain": "insufficient funds"})
        indexer = ScriptedIndexer()

        with pytest.raises(SubmissionFailedError) as exc_info:
            await make_orchestrator(deployment, indexer).execute(make_withdraw(), signer)

        assert exc_info.value.stage == "action"
        assert signer.methods_sent() == ["approve"]
        assert indexer.calls == []

    @pytest.mark.asyncio
    async def test_reverted_action_returns_failed_handle(self, deployment: Deployment) -> None:
        signer = SimulatedSigner(
            chain_id=HUB_CHAIN_ID, revert={"withdrawToChain": "Not enough coins removed"}
        )
        indexer = ScriptedIndexer()
        updates: list[SettlementUpdate] = []

        handle = await make_orchestrator(deployment, indexer).execute(
            make_withdraw(), signer, on_update=updates.append
        )

        assert handle.state is SettlementState.FAILED
        assert handle.outcome is TransferOutcome.FAILED
        assert handle.origin_tx_id == signer.sent[-1].tx_id
        assert [u.state for u in updates] == [SettlementState.FAILED]
        assert indexer.calls == []

        with pytest.raises(SubmissionFailedError) as exc_info:
            await handle.result(timeout=1)
        assert exc_info.value.hint is not None
        assert "slippage" in exc_info.value.hint


class TestSettlement:
    @pytest.mark.asyncio
    async def test_deposit_tracks_until_settled(self, deployment: Deployment) -> None:
        indexer = ScriptedIndexer([None, pending(), mined("0xhub")])
        signer = SimulatedSigner(chain_id=ARBITRUM_CHAIN_ID)
        settled: list[SettlementUpdate] = []

        handle = await make_orchestrator(deployment, indexer).execute(
            make_deposit(), signer, on_settled=settled.append
        )
        final = await handle.result(timeout=2)

        origin = signer.sent[-1].tx_id
        assert final.state is SettlementState.SETTLED
        assert handle.origin_tx_id == origin
        assert handle.hub_tx_id == "0xhub"
        assert handle.destination_tx_id is None
        assert set(indexer.calls) == {origin}
        assert len(settled) == 1
        assert handle.kind is ActionKind.DEPOSIT
        assert handle.bounds is not None

    @pytest.mark.asyncio
    async def test_withdraw_records_destination_leg(self, deployment: Deployment) -> None:
        indexer = ScriptedIndexer([mined("0xdest")])
        signer = SimulatedSigner(chain_id=HUB_CHAIN_ID)

        handle = await make_orchestrator(deployment, indexer).execute(make_withdraw(), signer)
        await handle.result(timeout=2)

        assert handle.hub_tx_id == handle.origin_tx_id
        assert handle.destination_tx_id == "0xdest"
        assert set(handle.explorer_links()) == {"origin", "hub", "destination"}

    @pytest.mark.asyncio
    async def test_convert_settles_on_inclusion(self, deployment: Deployment) -> None:
        indexer = ScriptedIndexer()
        signer = SimulatedSigner(chain_id=HUB_CHAIN_ID)

        handle = await make_orchestrator(deployment, indexer).execute(make_convert(), signer)

        assert handle.state is SettlementState.SETTLED
        assert handle.hub_tx_id == handle.origin_tx_id
        assert signer.methods_sent() == ["approve", "add_liquidity"]
        assert indexer.calls == []

    @pytest.mark.asyncio
    async def test_redeem_settles_on_inclusion(self, deployment: Deployment) -> None:
        signer = SimulatedSigner(chain_id=HUB_CHAIN_ID, allowances={(POOL, POOL): 10**30})

        handle = await make_orchestrator(deployment).execute(make_redeem(), signer)

        assert handle.outcome is TransferOutcome.SETTLED
        assert signer.methods_sent() == ["remove_liquidity_one_coin"]

    @pytest.mark.asyncio
    async def test_signer_logs_carry_transfer_context(self, deployment: Deployment) -> None:
        signer = ContextRecordingSigner(chain_id=ARBITRUM_CHAIN_ID)

        await make_orchestrator(deployment, ScriptedIndexer([mined("0xhub")])).execute(
            make_deposit(), signer
        )

        assert signer.context["kind"] == "deposit"
        assert signer.context["origin_chain_id"] == ARBITRUM_CHAIN_ID
        assert "kind" not in structlog.contextvars.get_contextvars()


class ContextRecordingSigner(SimulatedSigner):
    async def send_action(self, contract: ContractRef, method: str, args: tuple) -> str:
        self.context = structlog.contextvars.get_contextvars()
        return await super().send_action(contract, method, args)


class TestResume:
    @pytest.mark.asyncio
    async def test_track_deposit(self, deployment: Deployment) -> None:
        indexer = ScriptedIndexer([pending(), mined("0xhub")])
        orchestrator = make_orchestrator(deployment, indexer)

        handle = orchestrator.track("0xorigin", ARBITRUM_CHAIN_ID)
        await handle.result(timeout=2)

        assert handle.hub_tx_id == "0xhub"
        assert handle.destination_chain_id == HUB_CHAIN_ID
        assert indexer.calls[0] == "0xorigin"

    @pytest.mark.asyncio
    async def test_track_withdraw(self, deployment: Deployment) -> None:
        indexer = ScriptedIndexer([mined("0xdest")])
        handle = make_orchestrator(deployment, indexer).track(
            "0xorigin", HUB_CHAIN_ID, destination_chain_id=BASE_CHAIN_ID
        )
        await handle.result(timeout=2)

        assert handle.hub_tx_id == "0xorigin"
        assert handle.destination_tx_id == "0xdest"
        assert handle.kind is ActionKind.WITHDRAW

    @pytest.mark.asyncio
    async def test_query_polls_once(self, deployment: Deployment) -> None:
        indexer = ScriptedIndexer([pending()])
        handle = await make_orchestrator(deployment, indexer).query("0xorigin", ARBITRUM_CHAIN_ID)

        assert handle.state is SettlementState.CONFIRMING
        assert indexer.calls == ["0xorigin"]
        assert not handle.tracker.running

    @pytest.mark.asyncio
    async def test_query_not_indexed(self, deployment: Deployment) -> None:
        handle = await make_orchestrator(deployment, ScriptedIndexer([None])).query(
            "0xorigin", ARBITRUM_CHAIN_ID
        )
        assert handle.state is SettlementState.SUBMITTED

    @pytest.mark.asyncio
    async def test_query_surfaces_outage(self, deployment: Deployment) -> None:
        indexer = ScriptedIndexer([outage("timeout")])

        with pytest.raises(IndexerUnavailableError) as exc_info:
            await make_orchestrator(deployment, indexer).query("0xorigin", ARBITRUM_CHAIN_ID)
        assert exc_info.value.detail == "timeout"

    @pytest.mark.asyncio
    async def test_query_handle_is_not_live(self, deployment: Deployment) -> None:
        handle = await make_orchestrator(deployment, ScriptedIndexer([pending()])).query(
            "0xorigin", ARBITRUM_CHAIN_ID
        )

        assert await asyncio.wait_for(handle.wait(), 1) is TransferOutcome.PENDING
        with pytest.raises(UnknownOutcomeError):
            await asyncio.wait_for(handle.result(), 1)
        updates = await asyncio.wait_for(_collect(handle.updates()), 1)
        assert [u.state for u in updates] == [SettlementState.CONFIRMING]


async def _collect(updates: AsyncIterator[SettlementUpdate]) -> list[SettlementUpdate]:
    return [update async for update in updates]


async def _send_on_hub(signer: SimulatedSigner, method: str = "add_liquidity") -> str:
    return await signer.send_action(ContractRef("pool", POOL), method, ([1, 0, 0, 0], 1, RECIPIENT))


class TestResumeHubActions:
    @pytest.mark.asyncio
    async def test_track_convert_settles_from_receipt(self, deployment: Deployment) -> None:
        indexer = ScriptedIndexer()
        signer = SimulatedSigner(chain_id=HUB_CHAIN_ID)
        tx_id = await _send_on_hub(signer)
        await signer.await_inclusion(tx_id)

        handle = make_orchestrator(deployment, indexer).track(
            tx_id, HUB_CHAIN_ID, kind=ActionKind.CONVERT, hub_reader=signer
        )
        await handle.result(timeout=2)

        assert handle.state is SettlementState.SETTLED
        assert handle.hub_tx_id == tx_id
        assert handle.kind is ActionKind.CONVERT
        assert indexer.calls == []

    @pytest.mark.asyncio
    async def test_track_redeem_waits_for_inclusion(self, deployment: Deployment) -> None:
        signer = SimulatedSigner(chain_id=HUB_CHAIN_ID)
        tx_id = await _send_on_hub(signer, "remove_liquidity_one_coin")

        handle = make_orchestrator(deployment).track(
            tx_id, HUB_CHAIN_ID, kind=ActionKind.REDEEM, hub_reader=signer
        )
        for _ in range(5):
            await asyncio.sleep(0)
        assert handle.state is SettlementState.SUBMITTED

        await signer.await_inclusion(tx_id)
        assert await handle.wait(timeout=2) is TransferOutcome.SETTLED

    @pytest.mark.asyncio
    async def test_query_reverted_convert_is_failed(self, deployment: Deployment) -> None:
        signer = SimulatedSigner(chain_id=HUB_CHAIN_ID, revert={"add_liquidity": "slippage"})
        tx_id = await _send_on_hub(signer)
        with pytest.raises(SubmissionFailedError):
            await signer.await_inclusion(tx_id)

        handle = await make_orchestrator(deployment).query(
            tx_id, HUB_CHAIN_ID, kind=ActionKind.CONVERT, hub_reader=signer
        )

        assert handle.state is SettlementState.FAILED
        assert "slippage" in handle.snapshot().failure_reason

    @pytest.mark.asyncio
    async def test_query_pending_convert(self, deployment: Deployment) -> None:
        signer = SimulatedSigner(chain_id=HUB_CHAIN_ID)
        tx_id = await _send_on_hub(signer)

        handle = await make_orchestrator(deployment).query(
            tx_id, HUB_CHAIN_ID, kind=ActionKind.CONVERT, hub_reader=signer
        )

        assert handle.state is SettlementState.SUBMITTED

    @pytest.mark.asyncio
    async def test_query_receipt_outage(self, deployment: Deployment) -> None:
        reader = MagicMock()
        reader.get_receipt = AsyncMock(side_effect=ConnectionError("rpc down"))

        with pytest.raises(ChainUnavailableError) as exc_info:
            await make_orchestrator(deployment).query(
                "0xorigin", HUB_CHAIN_ID, kind=ActionKind.REDEEM, hub_reader=reader
            )
        assert exc_info.value.detail == "rpc down"

    @pytest.mark.asyncio
    async def test_hub_kind_requires_hub_origin(self, deployment: Deployment) -> None:
        with pytest.raises(TransferValidationError) as exc_info:
            await make_orchestrator(deployment).query(
                "0xorigin", ARBITRUM_CHAIN_ID, kind=ActionKind.CONVERT, hub_reader=SimulatedSigner()
            )
        assert exc_info.value.field == "origin_chain"

    def test_hub_kind_requires_reader(self, deployment: Deployment) -> None:
        with pytest.raises(ValueError, match="hub reader"):
            make_orchestrator(deployment).track("0xorigin", HUB_CHAIN_ID, kind=ActionKind.REDEEM)
