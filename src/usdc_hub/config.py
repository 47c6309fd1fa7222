"""Application configuration via pydantic-settings.

Reads from .env file or environment variables. Contract addresses default to
empty strings; an action that needs an unset address fails with a
ConfigurationError before anything is sent to a chain.

Usage:
    from usdc_hub.config import get_settings
    settings = get_settings()
    print(settings.indexer_base_url)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

# EVM chain ids of the supported networks
HUB_CHAIN_ID = 7000
ARBITRUM_CHAIN_ID = 42161
BASE_CHAIN_ID = 8453
AVALANCHE_CHAIN_ID = 43114
SOLANA_CHAIN_ID = 900


class Settings(BaseSettings):
    """Central configuration for the USDC hub transfer core."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_env: Literal["development", "staging", "production"] = "development"
    app_debug: bool = True
    app_log_level: str = "DEBUG"
    app_host: str = "0.0.0.0"
    app_port: int = 8000

    # --- Cross-chain indexer ---
    indexer_base_url: str = "https://zetachain.blockpi.network/lcd/v1/public"
    indexer_timeout_seconds: float = 15.0
    indexer_retry_attempts: int = 3

    # --- Settlement tracking ---
    poll_interval_seconds: float = 10.0
    inclusion_timeout_seconds: float = 300.0

    # --- Amount defaults ---
    default_slippage_bps: int = 50  # 0.5%
    default_gas_reserve_bps: int = 1000  # 10%

    # --- RPC endpoints ---
    hub_rpc_url: str = "https://zetachain-evm.blockpi.network/v1/rpc/public"
    arbitrum_rpc_url: str = "https://arb1.arbitrum.io/rpc"
    base_rpc_url: str = "https://mainnet.base.org"
    avalanche_rpc_url: str = "https://api.avax.network/ext/bc/C/rpc"

    # --- Hub chain deployment ---
    pool_address: str = ""
    lp_token_address: str = ""  # empty: the pool contract is its own LP token
    lp_token_decimals: int = 18
    converter_address: str = ""
    withdrawer_address: str = ""
    zrc20_usdc_arb_address: str = ""
    zrc20_usdc_sol_address: str = ""
    zrc20_usdc_base_address: str = ""
    zrc20_usdc_avax_address: str = ""

    # --- Origin chain deployment ---
    arbitrum_gateway_address: str = ""
    base_gateway_address: str = ""
    avalanche_gateway_address: str = ""
    arbitrum_usdc_address: str = "0xaf88d065e77c8cC2239327C5EDb3A432268e5831"
    base_usdc_address: str = "0x833589fCD6eDb6E08f4c7C32D4f71B54bdA02913"
    avalanche_usdc_address: str = "0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E"

    @property
    def is_development(self) -> bool:
        return self.app_env == "development"

    def rpc_url_for(self, chain_id: int) -> str:
        """Return the RPC endpoint configured for an EVM chain id."""
        urls = {
            HUB_CHAIN_ID: self.hub_rpc_url,
            ARBITRUM_CHAIN_ID: self.arbitrum_rpc_url,
            BASE_CHAIN_ID: self.base_rpc_url,
            AVALANCHE_CHAIN_ID: self.avalanche_rpc_url,
        }
        if chain_id not in urls:
            raise ValueError(f"No RPC endpoint for chain {chain_id}")
        return urls[chain_id]


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton of the application settings."""
    return Settings()
