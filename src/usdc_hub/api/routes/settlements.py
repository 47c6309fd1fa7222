"""Settlement status REST API routes.

Tracking state is not persisted; a status request re-derives it from the
origin transaction id with a single lookup: the indexer for deposits and
withdrawals, the hub receipt for conversions and redemptions.

Routes:
    GET    /api/v1/settlements/{origin_tx_id}?origin_chain=&kind=  - One-shot status
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from usdc_hub.api.deps import get_hub_reader, get_orchestrator
from usdc_hub.domain.collaborators import ChainReader
from usdc_hub.domain.enums import ActionKind
from usdc_hub.logging_config import get_logger
from usdc_hub.schemas.transfers import SettlementStatusResponse
from usdc_hub.services.orchestrator import TransferOrchestrator

router = APIRouter(prefix="/api/v1/settlements", tags=["Settlements"])
logger = get_logger(__name__)


@router.get(
    "/{origin_tx_id}",
    response_model=SettlementStatusResponse,
    summary="Get the settlement state of an origin transaction",
)
async def get_settlement(
    origin_tx_id: str,
    origin_chain: int = Query(..., description="Chain id the origin transaction was sent on"),
    destination_chain: int | None = Query(default=None, description="Destination chain id, if known"),
    kind: ActionKind | None = Query(
        default=None, description="Action kind; required for convert and redeem"
    ),
    orchestrator: TransferOrchestrator = Depends(get_orchestrator),
    hub_reader: ChainReader = Depends(get_hub_reader),
) -> SettlementStatusResponse:
    """Look the origin transaction up once and map it to a SettlementState."""
    handle = await orchestrator.query(
        origin_tx_id,
        origin_chain,
        kind=kind,
        destination_chain_id=destination_chain,
        hub_reader=hub_reader,
    )
    snapshot = handle.snapshot()
    return SettlementStatusResponse(
        origin_tx_id=snapshot.origin_tx_id,
        state=snapshot.state.value,
        description=snapshot.description,
        terminal=snapshot.terminal,
        hub_tx_id=snapshot.hub_tx_id,
        destination_tx_id=snapshot.destination_tx_id,
        cctx_index=snapshot.cctx_index,
        indexer_status=snapshot.indexer_status,
        explorer_links=handle.explorer_links(),
    )
