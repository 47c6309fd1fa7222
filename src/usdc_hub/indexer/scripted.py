"""In-memory indexer that replays a scripted sequence of responses.

Each lookup consumes the next step; the last step repeats forever. A step is
a SettlementQueryResult, None (not indexed yet) or an exception instance,
which is raised as-is.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from usdc_hub.domain.collaborators import (
    CCTX_STATUS_OUTBOUND_MINED,
    FINALIZATION_EXECUTED,
    OutboundLeg,
    SettlementQueryResult,
)
from usdc_hub.domain.exceptions import IndexerUnavailableError

if TYPE_CHECKING:
    from collections.abc import Iterable

Step = SettlementQueryResult | None | Exception


def pending(cctx_index: str = "0xcctx", leg_hash: str | None = None) -> SettlementQueryResult:
    """A CCTX whose outbound leg has no finalization signal yet."""
    return SettlementQueryResult(
        cctx_index=cctx_index,
        status="PendingOutbound",
        outbound_legs=(OutboundLeg(hash=leg_hash, finalization_status="NotFinalized"),),
    )


def executed(leg_hash: str, cctx_index: str = "0xcctx") -> SettlementQueryResult:
    """A CCTX whose outbound leg executed but is not reported mined yet."""
    return SettlementQueryResult(
        cctx_index=cctx_index,
        status="PendingOutbound",
        outbound_legs=(OutboundLeg(hash=leg_hash, finalization_status=FINALIZATION_EXECUTED),),
    )


def mined(leg_hash: str, cctx_index: str = "0xcctx") -> SettlementQueryResult:
    """A CCTX whose outbound leg is mined: the transfer settled."""
    return SettlementQueryResult(
        cctx_index=cctx_index,
        status=CCTX_STATUS_OUTBOUND_MINED,
        outbound_legs=(OutboundLeg(hash=leg_hash, finalization_status=FINALIZATION_EXECUTED),),
    )


def outage(detail: str = "connection refused") -> IndexerUnavailableError:
    return IndexerUnavailableError("-", detail)


class ScriptedIndexer:
    """Indexer collaborator for tests and the simulation script."""

    def __init__(self, steps: Iterable[Step] = (None,), *, latency_seconds: float = 0.0) -> None:
        self._steps: list[Step] = list(steps) or [None]
        self._latency = latency_seconds
        self.calls: list[str] = []

    async def lookup_by_origin_tx(self, tx_id: str) -> SettlementQueryResult | None:
        self.calls.append(tx_id)
        if self._latency:
            await asyncio.sleep(self._latency)
        step = self._steps.pop(0) if len(self._steps) > 1 else self._steps[0]
        if isinstance(step, Exception):
            raise step
        return step

    async def ping(self) -> bool:
        return True
