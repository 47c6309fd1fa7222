"""Pydantic API schemas."""

from usdc_hub.schemas.transfers import (
    AccountBalancesResponse,
    AmountBoundsResponse,
    HealthResponse,
    PoolAssetResponse,
    PoolSnapshotResponse,
    QuoteRequest,
    QuoteResponse,
    SettlementStatusResponse,
    TokenBalanceResponse,
)

__all__ = [
    "AccountBalancesResponse",
    "AmountBoundsResponse",
    "HealthResponse",
    "PoolAssetResponse",
    "PoolSnapshotResponse",
    "QuoteRequest",
    "QuoteResponse",
    "SettlementStatusResponse",
    "TokenBalanceResponse",
]
