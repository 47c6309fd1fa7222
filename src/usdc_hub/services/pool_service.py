"""Pool Service - read-only views of the stable pool on the hub chain.

Two reads are offered: the pool's own liquidity snapshot, and one account's
holdings of every pool coin and the LP token.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from eth_utils import is_address, to_checksum_address

from usdc_hub.domain.amounts import from_base_units
from usdc_hub.domain.collaborators import ContractRef
from usdc_hub.domain.exceptions import TransferValidationError
from usdc_hub.logging_config import get_logger

if TYPE_CHECKING:
    from usdc_hub.domain.collaborators import ChainReader
    from usdc_hub.registry import Deployment

logger = get_logger(__name__)

VIRTUAL_PRICE_DECIMALS = 18


@dataclass(frozen=True)
class PoolAsset:
    symbol: str
    chain_id: int
    balance: Decimal
    share_percent: Decimal


@dataclass(frozen=True)
class PoolSnapshot:
    """Balances of every pool coin, in pool index order."""

    assets: tuple[PoolAsset, ...]
    total_liquidity: Decimal
    virtual_price: Decimal

    def to_dict(self) -> dict:
        return {
            "assets": [
                {
                    "symbol": asset.symbol,
                    "chain_id": asset.chain_id,
                    "balance": str(asset.balance),
                    "share_percent": str(asset.share_percent),
                }
                for asset in self.assets
            ],
            "total_liquidity": str(self.total_liquidity),
            "virtual_price": str(self.virtual_price),
        }


@dataclass(frozen=True)
class TokenBalance:
    symbol: str
    chain_id: int
    address: str
    base_units: int
    balance: Decimal

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "chain_id": self.chain_id,
            "address": self.address,
            "base_units": self.base_units,
            "balance": str(self.balance),
        }


class PoolService:
    """Reads balances and the virtual price from the pool contract."""

    def __init__(self, reader: ChainReader, deployment: Deployment) -> None:
        self._reader = reader
        self._deployment = deployment

    async def snapshot(self) -> PoolSnapshot:
        pool = ContractRef("pool", self._deployment.require(self._deployment.pool_address, "pool_address"))
        coins = sorted(self._deployment.coins.values(), key=lambda c: c.pool_index)

        raw_price, *raw_balances = await asyncio.gather(
            self._reader.call(pool, "get_virtual_price"),
            *(self._reader.call(pool, "balances", (coin.pool_index,)) for coin in coins),
        )

        balances = [
            from_base_units(int(raw), coin.decimals) for raw, coin in zip(raw_balances, coins)
        ]
        total = sum(balances, Decimal(0))

        assets = tuple(
            PoolAsset(
                symbol=coin.symbol,
                chain_id=coin.home_chain_id,
                balance=balance,
                share_percent=(balance * 100 / total).quantize(Decimal("0.01")) if total else Decimal(0),
            )
            for coin, balance in zip(coins, balances)
        )
        snapshot = PoolSnapshot(
            assets=assets,
            total_liquidity=total,
            virtual_price=from_base_units(int(raw_price), VIRTUAL_PRICE_DECIMALS),
        )
        logger.info(
            "pool.snapshot_read",
            total_liquidity=str(total),
            virtual_price=str(snapshot.virtual_price),
        )
        return snapshot

    async def balances(self, account: str) -> tuple[TokenBalance, ...]:
        """Read ``account``'s LP token and pool coin balances on the hub chain.

        Tokens without a configured address are left out.

        Raises:
            TransferValidationError: If ``account`` is not an address.
        """
        if not is_address(account):
            raise TransferValidationError("account", f"{account!r} is not a valid address")
        owner = to_checksum_address(account)

        deployment = self._deployment
        tokens = [
            (deployment.lp_symbol, deployment.hub.chain_id, deployment.lp_token_address, deployment.lp_decimals)
        ]
        tokens += [
            (coin.symbol, coin.home_chain_id, coin.address, coin.decimals)
            for coin in sorted(deployment.coins.values(), key=lambda c: c.pool_index)
        ]
        tokens = [token for token in tokens if token[2]]

        raw = await asyncio.gather(
            *(
                self._reader.call(ContractRef("erc20", address), "balanceOf", (owner,))
                for _, _, address, _ in tokens
            )
        )
        result = tuple(
            TokenBalance(
                symbol=symbol,
                chain_id=chain_id,
                address=address,
                base_units=int(amount),
                balance=from_base_units(int(amount), decimals),
            )
            for (symbol, chain_id, address, decimals), amount in zip(tokens, raw)
        )
        logger.info("pool.balances_read", account=owner, tokens=len(result))
        return result
