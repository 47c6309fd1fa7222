"""Application services - transfer orchestration and settlement tracking."""

from usdc_hub.services.orchestrator import TransferOrchestrator, TransferPlan
from usdc_hub.services.pool_service import PoolAsset, PoolService, PoolSnapshot
from usdc_hub.services.settlement_tracker import (
    SettlementHandle,
    SettlementRecord,
    SettlementTracker,
    SettlementUpdate,
)

__all__ = [
    "TransferOrchestrator",
    "TransferPlan",
    "PoolAsset",
    "PoolService",
    "PoolSnapshot",
    "SettlementHandle",
    "SettlementRecord",
    "SettlementTracker",
    "SettlementUpdate",
]
