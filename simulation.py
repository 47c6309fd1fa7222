#!/usr/bin/env python3
"""USDC Hub - End-to-End Simulation.

Runs transfers against an in-memory signer and a scripted indexer:

    Scenario 1: Happy Path Deposit
        - Arbitrum USDC deposited into the hub, approval sent first
        - Indexer reports nothing, then confirming, processing, mined -> SETTLED

    Scenario 2: Indexer Outage
        - Withdrawal to Base while the indexer is down for several polls
        - Outage is logged and absorbed; the transfer still SETTLES

    Scenario 3: Reverted Withdrawal
        - Pool reverts with "Not enough coins removed"
        - Handle is FAILED, tracking never starts, hint is surfaced

    Scenario 4: Caller Deadline
        - Indexer never reports the outbound leg mined
        - Caller gives up -> outcome UNKNOWN (not FAILED), re-query advised

    Scenario 5: Convert on the Hub
        - USDC.ARB converted to USDC.4; inclusion is settlement

Usage:
    uv run python simulation.py
    uv run python simulation.py --scenario 3
    uv run python simulation.py --poll-interval 0.2
"""

from __future__ import annotations

import argparse
import asyncio

# ---------------------------------------------------------------------------
# Configure structured logging BEFORE importing app modules
# ---------------------------------------------------------------------------
from usdc_hub.logging_config import get_logger, setup_logging

setup_logging(log_level="INFO", json_logs=False)
logger = get_logger("simulation")

from usdc_hub.config import ARBITRUM_CHAIN_ID, BASE_CHAIN_ID, HUB_CHAIN_ID, Settings  # noqa: E402
from usdc_hub.domain.actions import TransferAction  # noqa: E402
from usdc_hub.domain.enums import ActionKind, TransferOutcome  # noqa: E402
from usdc_hub.domain.exceptions import SubmissionFailedError, UnknownOutcomeError  # noqa: E402
from usdc_hub.indexer.scripted import ScriptedIndexer, executed, mined, outage, pending  # noqa: E402
from usdc_hub.registry import Deployment  # noqa: E402
from usdc_hub.services.orchestrator import TransferOrchestrator  # noqa: E402
from usdc_hub.services.settlement_tracker import SettlementUpdate  # noqa: E402
from usdc_hub.signing.simulated import SimulatedSigner, fake_tx_hash  # noqa: E402

RECIPIENT = "0x742d35cc6634c0532925a3b844bc9e7595f2bd18"

SIMULATED_DEPLOYMENT = {
    "pool_address": "0x1000000000000000000000000000000000000001",
    "converter_address": "0x1000000000000000000000000000000000000002",
    "withdrawer_address": "0x1000000000000000000000000000000000000003",
    "zrc20_usdc_arb_address": "0x2000000000000000000000000000000000000001",
    "zrc20_usdc_sol_address": "0x2000000000000000000000000000000000000002",
    "zrc20_usdc_base_address": "0x2000000000000000000000000000000000000003",
    "zrc20_usdc_avax_address": "0x2000000000000000000000000000000000000004",
    "arbitrum_gateway_address": "0x3000000000000000000000000000000000000001",
    "base_gateway_address": "0x3000000000000000000000000000000000000002",
    "avalanche_gateway_address": "0x3000000000000000000000000000000000000003",
}

_poll_interval = 0.1


def build_deployment() -> Deployment:
    return Deployment.from_settings(Settings(_env_file=None, **SIMULATED_DEPLOYMENT))


# ---------------------------------------------------------------------------
# Print helpers
# ---------------------------------------------------------------------------
def banner(text: str) -> None:
    """Print a prominent banner."""
    width = 70
    print("\n" + "=" * width)
    print(f"  {text}")
    print("=" * width + "\n")


def section(text: str) -> None:
    """Print a section header."""
    print(f"\n--- {text} ---\n")


def print_update(update: SettlementUpdate) -> None:
    hub = f" hub={update.hub_tx_id[:14]}..." if update.hub_tx_id else ""
    dest = f" destination={update.destination_tx_id[:14]}..." if update.destination_tx_id else ""
    print(f"  -> {update.state.value:<11} {update.description}{hub}{dest}")


def print_links(links: dict[str, str]) -> None:
    for label, url in links.items():
        print(f"     {label:<12} {url}")


# ===========================================================================
# Scenario 1: Happy Path Deposit
# ===========================================================================
async def scenario_1_happy_deposit() -> None:
    banner("SCENARIO 1: Happy Path Deposit (Arbitrum -> hub)")
    hub_tx = fake_tx_hash()
    indexer = ScriptedIndexer([None, None, pending(), executed(hub_tx), mined(hub_tx)])
    orchestrator = TransferOrchestrator(build_deployment(), indexer, poll_interval_seconds=_poll_interval)
    signer = SimulatedSigner(chain_id=ARBITRUM_CHAIN_ID)

    action = TransferAction(
        kind=ActionKind.DEPOSIT,
        origin_chain=ARBITRUM_CHAIN_ID,
        source_token="USDC",
        destination_selector=HUB_CHAIN_ID,
        amount="100",
        recipient=RECIPIENT,
        slippage_bps=50,
    )
    section("Submitting")
    handle = await orchestrator.execute(action, signer, on_update=print_update)
    print(f"  Sent: {', '.join(signer.methods_sent())}")
    print(f"  Min output: {handle.bounds.min_output_base_units} base units of USDC.4")

    section("Tracking")
    final = await handle.result(timeout=10)
    print(f"\n  ✅ Outcome: {handle.outcome.value} after {final.poll_count} polls")
    print_links(handle.explorer_links())


# ===========================================================================
# Scenario 2: Indexer Outage
# ===========================================================================
async def scenario_2_indexer_outage() -> None:
    banner("SCENARIO 2: Indexer Outage During a Withdrawal (hub -> Base)")
    dest_tx = fake_tx_hash()
    indexer = ScriptedIndexer(
        [outage("502 Bad Gateway"), outage("timeout"), outage("timeout"), pending(), mined(dest_tx)]
    )
    orchestrator = TransferOrchestrator(build_deployment(), indexer, poll_interval_seconds=_poll_interval)
    signer = SimulatedSigner(chain_id=HUB_CHAIN_ID)

    action = TransferAction(
        kind=ActionKind.WITHDRAW,
        origin_chain=HUB_CHAIN_ID,
        source_token="USDC.4",
        destination_selector=BASE_CHAIN_ID,
        amount="250.5",
        recipient=RECIPIENT,
        slippage_bps=50,
        gas_reserve_bps=1000,
    )
    handle = await orchestrator.execute(action, signer, on_update=print_update)
    print(f"  Gas reserve: {handle.bounds.gas_reserve_base_units} base units of USDC.4")

    final = await handle.result(timeout=10)
    print(f"\n  ✅ Outcome: {handle.outcome.value}, {len(indexer.calls)} lookups, state never FAILED")
    print(f"  Destination tx: {final.destination_tx_id}")


# ===========================================================================
# Scenario 3: Reverted Withdrawal
# ===========================================================================
async def scenario_3_reverted_withdrawal() -> None:
    banner("SCENARIO 3: Reverted Withdrawal")
    indexer = ScriptedIndexer()
    orchestrator = TransferOrchestrator(build_deployment(), indexer, poll_interval_seconds=_poll_interval)
    signer = SimulatedSigner(
        chain_id=HUB_CHAIN_ID,
        revert={"withdrawToChain": "Not enough coins removed"},
    )

    action = TransferAction(
        kind=ActionKind.WITHDRAW,
        origin_chain=HUB_CHAIN_ID,
        source_token="USDC.4",
        destination_selector=ARBITRUM_CHAIN_ID,
        amount="10",
        recipient=RECIPIENT,
        slippage_bps=10,
        gas_reserve_bps=500,
    )
    handle = await orchestrator.execute(action, signer, on_update=print_update)
    try:
        await handle.result(timeout=1)
    except SubmissionFailedError as exc:
        print(f"\n  ❌ Outcome: {handle.outcome.value} ({exc.message})")
        print(f"  Hint: {exc.hint}")
    print(f"  Indexer lookups: {len(indexer.calls)}")


# ===========================================================================
# Scenario 4: Caller Deadline
# ===========================================================================
async def scenario_4_caller_deadline() -> None:
    banner("SCENARIO 4: Caller Deadline")
    indexer = ScriptedIndexer([None, pending()])
    orchestrator = TransferOrchestrator(build_deployment(), indexer, poll_interval_seconds=_poll_interval)
    signer = SimulatedSigner(chain_id=ARBITRUM_CHAIN_ID)

    action = TransferAction(
        kind=ActionKind.DEPOSIT,
        origin_chain=ARBITRUM_CHAIN_ID,
        source_token="USDC",
        destination_selector=HUB_CHAIN_ID,
        amount="42",
        recipient=RECIPIENT,
        slippage_bps=50,
    )
    handle = await orchestrator.execute(action, signer, on_update=print_update)
    try:
        await handle.result(timeout=_poll_interval * 5)
    except UnknownOutcomeError as exc:
        print(f"\n  ⏳ Outcome: {handle.outcome.value}")
        print(f"  {exc.message}")

    assert handle.outcome is TransferOutcome.UNKNOWN
    section("Re-query by origin transaction id")
    resumed = await orchestrator.query(handle.origin_tx_id, ARBITRUM_CHAIN_ID)
    print(f"  State now: {resumed.state.value} ({resumed.state.description})")


# ===========================================================================
# Scenario 5: Convert on the Hub
# ===========================================================================
async def scenario_5_convert() -> None:
    banner("SCENARIO 5: Convert USDC.ARB to USDC.4")
    deployment = build_deployment()
    indexer = ScriptedIndexer()
    orchestrator = TransferOrchestrator(deployment, indexer, poll_interval_seconds=_poll_interval)
    pool = deployment.pool_address
    signer = SimulatedSigner(
        chain_id=HUB_CHAIN_ID,
        allowances={(deployment.coins["USDC.ARB"].address, pool): 10**12},
    )

    action = TransferAction(
        kind=ActionKind.CONVERT,
        origin_chain=HUB_CHAIN_ID,
        source_token="USDC.ARB",
        destination_selector="USDC.4",
        amount="1000",
        recipient=RECIPIENT,
        slippage_bps=30,
    )
    handle = await orchestrator.execute(action, signer, on_update=print_update)
    print(f"\n  ✅ Outcome: {handle.outcome.value}; sent: {', '.join(signer.methods_sent())}")


# ===========================================================================
# Main
# ===========================================================================
SCENARIOS = {
    1: scenario_1_happy_deposit,
    2: scenario_2_indexer_outage,
    3: scenario_3_reverted_withdrawal,
    4: scenario_4_caller_deadline,
    5: scenario_5_convert,
}


async def run_all() -> None:
    """Run all scenarios sequentially."""
    print("\n" + "🚀" * 35)
    print("  USDC HUB - SIMULATION")
    print(f"  Poll interval: {_poll_interval}s")
    print("🚀" * 35 + "\n")

    for scenario in SCENARIOS.values():
        await scenario()

    print("\n" + "=" * 70)
    print("  ✅ ALL SCENARIOS COMPLETED")
    print("=" * 70 + "\n")


async def run_scenario(num: int) -> None:
    """Run a specific scenario."""
    if num not in SCENARIOS:
        print(f"Unknown scenario {num}. Available: {', '.join(map(str, SCENARIOS))}")
        return
    await SCENARIOS[num]()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="USDC Hub Simulation")
    parser.add_argument(
        "--scenario",
        type=int,
        default=0,
        help="Run a specific scenario (1-5). Default: run all.",
    )
    parser.add_argument(
        "--poll-interval",
        type=float,
        default=_poll_interval,
        help="Seconds between indexer polls.",
    )
    args = parser.parse_args()
    _poll_interval = args.poll_interval

    if args.scenario == 0:
        asyncio.run(run_all())
    else:
        asyncio.run(run_scenario(args.scenario))
