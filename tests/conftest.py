"""Shared test fixtures for the USDC hub test suite.

Provides:
    - A fully configured Deployment with deterministic contract addresses
    - A Deployment with no contract addresses, for configuration errors
    - Factory functions for each TransferAction kind
"""

from __future__ import annotations

import pytest

from usdc_hub.config import ARBITRUM_CHAIN_ID, BASE_CHAIN_ID, HUB_CHAIN_ID, Settings
from usdc_hub.domain.actions import TransferAction
from usdc_hub.registry import Deployment

RECIPIENT = "0x742d35cc6634c0532925a3b844bc9e7595f2bd18"

POOL = "0x1000000000000000000000000000000000000001"
CONVERTER = "0x1000000000000000000000000000000000000002"
WITHDRAWER = "0x1000000000000000000000000000000000000003"
USDC_ARB_ZRC20 = "0x2000000000000000000000000000000000000001"
ARBITRUM_GATEWAY = "0x3000000000000000000000000000000000000001"
ARBITRUM_USDC = "0x4000000000000000000000000000000000000001"

TEST_DEPLOYMENT = {
    "pool_address": POOL,
    "converter_address": CONVERTER,
    "withdrawer_address": WITHDRAWER,
    "zrc20_usdc_arb_address": USDC_ARB_ZRC20,
    "zrc20_usdc_sol_address": "0x2000000000000000000000000000000000000002",
    "zrc20_usdc_base_address": "0x2000000000000000000000000000000000000003",
    "zrc20_usdc_avax_address": "0x2000000000000000000000000000000000000004",
    "arbitrum_gateway_address": ARBITRUM_GATEWAY,
    "base_gateway_address": "0x3000000000000000000000000000000000000002",
    "avalanche_gateway_address": "0x3000000000000000000000000000000000000003",
    "arbitrum_usdc_address": ARBITRUM_USDC,
}

# ---------------------------------------------------------------------------
# Deployment Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    """Return settings with every deployment address configured."""
    return Settings(_env_file=None, **TEST_DEPLOYMENT)


@pytest.fixture
def deployment(settings: Settings) -> Deployment:
    return Deployment.from_settings(settings)


@pytest.fixture
def unconfigured_deployment() -> Deployment:
    """Return a deployment where no hub contract address is set."""
    return Deployment.from_settings(Settings(_env_file=None))


# ---------------------------------------------------------------------------
# Action Factories
# ---------------------------------------------------------------------------


def make_deposit(**overrides: object) -> TransferAction:
    fields = {
        "kind": "deposit",
        "origin_chain": ARBITRUM_CHAIN_ID,
        "source_token": "USDC",
        "destination_selector": HUB_CHAIN_ID,
        "amount": "100",
        "recipient": RECIPIENT,
        "slippage_bps": 50,
    }
    fields.update(overrides)
    return TransferAction(**fields)


def make_withdraw(**overrides: object) -> TransferAction:
    fields = {
        "kind": "withdraw",
        "origin_chain": HUB_CHAIN_ID,
        "source_token": "USDC.4",
        "destination_selector": BASE_CHAIN_ID,
        "amount": "100",
        "recipient": RECIPIENT,
        "slippage_bps": 50,
        "gas_reserve_bps": 1000,
    }
    fields.update(overrides)
    return TransferAction(**fields)


def make_convert(**overrides: object) -> TransferAction:
    fields = {
        "kind": "convert",
        "origin_chain": HUB_CHAIN_ID,
        "source_token": "USDC.ARB",
        "destination_selector": "USDC.4",
        "amount": "100",
        "recipient": RECIPIENT,
        "slippage_bps": 50,
    }
    fields.update(overrides)
    return TransferAction(**fields)


def make_redeem(**overrides: object) -> TransferAction:
    fields = {
        "kind": "redeem",
        "origin_chain": HUB_CHAIN_ID,
        "source_token": "USDC.4",
        "destination_selector": "USDC.BASE",
        "amount": "100",
        "recipient": RECIPIENT,
        "slippage_bps": 50,
    }
    fields.update(overrides)
    return TransferAction(**fields)
