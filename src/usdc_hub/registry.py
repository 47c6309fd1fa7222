"""Deployment registry: networks, pool coins and contract addresses.

A Deployment is built once from Settings and passed by reference to the
orchestrator, the validators and the pool service. Addresses are looked up
lazily through ``require()`` so a missing one fails the action that needs it
rather than the whole process.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from eth_utils import to_checksum_address

from usdc_hub.config import (
    ARBITRUM_CHAIN_ID,
    AVALANCHE_CHAIN_ID,
    BASE_CHAIN_ID,
    HUB_CHAIN_ID,
    SOLANA_CHAIN_ID,
)
from usdc_hub.domain.actions import LP_SYMBOL
from usdc_hub.domain.exceptions import ConfigurationError

if TYPE_CHECKING:
    from usdc_hub.config import Settings


def _address(value: str) -> str:
    """Checksum a configured address; an empty string means not deployed."""
    return to_checksum_address(value) if value else ""


@dataclass(frozen=True)
class Network:
    """An EVM chain that can originate deposits or receive withdrawals."""

    chain_id: int
    name: str
    explorer_url: str
    gateway_address: str = ""
    usdc_address: str = ""
    usdc_decimals: int = 6


@dataclass(frozen=True)
class PoolCoin:
    """A ZRC-20 USDC representation held by the stable pool."""

    symbol: str
    pool_index: int
    address: str
    decimals: int
    home_chain_id: int


@dataclass(frozen=True)
class Deployment:
    """Every address and constant the transfer core needs."""

    hub: Network
    networks: dict[int, Network]
    coins: dict[str, PoolCoin]
    pool_address: str = ""
    lp_token_address: str = ""
    lp_decimals: int = 18
    converter_address: str = ""
    withdrawer_address: str = ""
    lp_symbol: str = LP_SYMBOL
    extra_explorers: dict[int, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings) -> Deployment:
        hub = Network(
            chain_id=HUB_CHAIN_ID,
            name="ZetaChain",
            explorer_url="https://zetachain.blockscout.com",
        )
        networks = {
            ARBITRUM_CHAIN_ID: Network(
                chain_id=ARBITRUM_CHAIN_ID,
                name="Arbitrum",
                explorer_url="https://arbiscan.io",
                gateway_address=_address(settings.arbitrum_gateway_address),
                usdc_address=_address(settings.arbitrum_usdc_address),
            ),
            BASE_CHAIN_ID: Network(
                chain_id=BASE_CHAIN_ID,
                name="Base",
                explorer_url="https://basescan.org",
                gateway_address=_address(settings.base_gateway_address),
                usdc_address=_address(settings.base_usdc_address),
            ),
            AVALANCHE_CHAIN_ID: Network(
                chain_id=AVALANCHE_CHAIN_ID,
                name="Avalanche",
                explorer_url="https://snowtrace.io",
                gateway_address=_address(settings.avalanche_gateway_address),
                usdc_address=_address(settings.avalanche_usdc_address),
            ),
        }
        coins = {
            "USDC.ARB": PoolCoin("USDC.ARB", 0, _address(settings.zrc20_usdc_arb_address), 6, ARBITRUM_CHAIN_ID),
            "USDC.SOL": PoolCoin("USDC.SOL", 1, _address(settings.zrc20_usdc_sol_address), 6, SOLANA_CHAIN_ID),
            "USDC.BASE": PoolCoin("USDC.BASE", 2, _address(settings.zrc20_usdc_base_address), 6, BASE_CHAIN_ID),
            "USDC.AVAX": PoolCoin("USDC.AVAX", 3, _address(settings.zrc20_usdc_avax_address), 6, AVALANCHE_CHAIN_ID),
        }
        return cls(
            hub=hub,
            networks=networks,
            coins=coins,
            pool_address=_address(settings.pool_address),
            lp_token_address=_address(settings.lp_token_address or settings.pool_address),
            lp_decimals=settings.lp_token_decimals,
            converter_address=_address(settings.converter_address),
            withdrawer_address=_address(settings.withdrawer_address),
            extra_explorers={SOLANA_CHAIN_ID: "https://solscan.io"},
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    @property
    def pool_size(self) -> int:
        return len(self.coins)

    def network(self, chain_id: int) -> Network | None:
        if chain_id == self.hub.chain_id:
            return self.hub
        return self.networks.get(chain_id)

    def coin(self, symbol: str) -> PoolCoin | None:
        return self.coins.get(symbol)

    def is_hub(self, chain_id: int) -> bool:
        return chain_id == self.hub.chain_id

    def explorer_tx_url(self, chain_id: int, tx_id: str) -> str | None:
        """Return the block-explorer link for a transaction, if the chain is known."""
        network = self.network(chain_id)
        base = network.explorer_url if network else self.extra_explorers.get(chain_id)
        if not base:
            return None
        return f"{base}/tx/{tx_id}"

    @staticmethod
    def require(value: str, setting: str) -> str:
        """Return ``value`` or raise ConfigurationError naming the missing setting."""
        if not value:
            raise ConfigurationError(setting)
        return value
