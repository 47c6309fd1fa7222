"""Tests for the read-only pool snapshot and account balances."""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock

import pytest
from eth_utils import to_checksum_address

from conftest import POOL, RECIPIENT, USDC_ARB_ZRC20
from usdc_hub.domain.collaborators import ContractRef
from usdc_hub.domain.exceptions import ConfigurationError, TransferValidationError
from usdc_hub.registry import Deployment
from usdc_hub.services.pool_service import PoolService


def make_reader(balances: list[int], virtual_price: int = 10**18) -> AsyncMock:
    async def call(contract: ContractRef, method: str, args: tuple[Any, ...] = ()) -> int:
        assert contract.address == POOL
        if method == "get_virtual_price":
            return virtual_price
        return balances[args[0]]

    reader = AsyncMock()
    reader.call.side_effect = call
    return reader


class TestPoolSnapshot:
    @pytest.mark.asyncio
    async def test_balances_and_shares(self, deployment: Deployment) -> None:
        reader = make_reader([400_000_000, 100_000_000, 300_000_000, 200_000_000])
        snapshot = await PoolService(reader, deployment).snapshot()

        assert [a.symbol for a in snapshot.assets] == ["USDC.ARB", "USDC.SOL", "USDC.BASE", "USDC.AVAX"]
        assert [a.balance for a in snapshot.assets] == [
            Decimal("400"),
            Decimal("100"),
            Decimal("300"),
            Decimal("200"),
        ]
        assert [a.share_percent for a in snapshot.assets] == [
            Decimal("40.00"),
            Decimal("10.00"),
            Decimal("30.00"),
            Decimal("20.00"),
        ]
        assert snapshot.total_liquidity == Decimal("1000")
        assert snapshot.assets[1].chain_id == 900

    @pytest.mark.asyncio
    async def test_virtual_price(self, deployment: Deployment) -> None:
        reader = make_reader([0, 0, 0, 0], virtual_price=1_002_000_000_000_000_000)
        snapshot = await PoolService(reader, deployment).snapshot()
        assert snapshot.virtual_price == Decimal("1.002")

    @pytest.mark.asyncio
    async def test_empty_pool_has_zero_shares(self, deployment: Deployment) -> None:
        snapshot = await PoolService(make_reader([0, 0, 0, 0]), deployment).snapshot()
        assert all(a.share_percent == 0 for a in snapshot.assets)
        assert snapshot.total_liquidity == 0

    @pytest.mark.asyncio
    async def test_to_dict_uses_strings(self, deployment: Deployment) -> None:
        snapshot = await PoolService(make_reader([1_500_000, 0, 0, 0]), deployment).snapshot()
        data = snapshot.to_dict()
        assert data["assets"][0]["share_percent"] == "100.00"
        assert isinstance(data["total_liquidity"], str)

    @pytest.mark.asyncio
    async def test_unconfigured_pool(self, unconfigured_deployment: Deployment) -> None:
        with pytest.raises(ConfigurationError):
            await PoolService(make_reader([0, 0, 0, 0]), unconfigured_deployment).snapshot()


def make_balance_reader(holdings: dict[str, int]) -> AsyncMock:
    async def call(contract: ContractRef, method: str, args: tuple[Any, ...] = ()) -> int:
        assert method == "balanceOf"
        assert args == (to_checksum_address(RECIPIENT),)
        return holdings.get(contract.address, 0)

    reader = AsyncMock()
    reader.call.side_effect = call
    return reader


class TestAccountBalances:
    @pytest.mark.asyncio
    async def test_lp_token_first_then_pool_coins(self, deployment: Deployment) -> None:
        reader = make_balance_reader({POOL: 5 * 10**17, USDC_ARB_ZRC20: 12_500_000})

        balances = await PoolService(reader, deployment).balances(RECIPIENT)

        assert [b.symbol for b in balances] == ["USDC.4", "USDC.ARB", "USDC.SOL", "USDC.BASE", "USDC.AVAX"]
        assert balances[0].balance == Decimal("0.5")
        assert balances[0].chain_id == 7000
        assert balances[1].base_units == 12_500_000
        assert balances[1].balance == Decimal("12.5")
        assert balances[1].to_dict()["balance"] == "12.500000"

    @pytest.mark.asyncio
    async def test_unconfigured_tokens_are_skipped(self, unconfigured_deployment: Deployment) -> None:
        reader = make_balance_reader({})

        balances = await PoolService(reader, unconfigured_deployment).balances(RECIPIENT)

        assert [b.symbol for b in balances] == []
        reader.call.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_account(self, deployment: Deployment) -> None:
        with pytest.raises(TransferValidationError) as exc_info:
            await PoolService(make_balance_reader({}), deployment).balances("not-an-address")
        assert exc_info.value.field == "account"
