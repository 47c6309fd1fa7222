"""Transfer planning REST API routes.

Execution needs a signer, which lives with the user's wallet, so the HTTP
surface only plans: it validates an action and returns the exact bounds and
calls the wallet should sign.

Routes:
    POST   /api/v1/transfers/quote  - Validate an action and return its plan
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from usdc_hub.api.deps import get_app_settings, get_hub_reader, get_orchestrator
from usdc_hub.config import Settings
from usdc_hub.domain.actions import TransferAction
from usdc_hub.domain.amounts import format_amount
from usdc_hub.domain.collaborators import ChainReader
from usdc_hub.domain.enums import ActionKind
from usdc_hub.logging_config import get_logger
from usdc_hub.schemas.transfers import AmountBoundsResponse, QuoteRequest, QuoteResponse
from usdc_hub.services.orchestrator import TransferOrchestrator

router = APIRouter(prefix="/api/v1/transfers", tags=["Transfers"])
logger = get_logger(__name__)


@router.post(
    "/quote",
    response_model=QuoteResponse,
    summary="Plan a transfer without sending it",
)
async def quote_transfer(
    request: QuoteRequest,
    orchestrator: TransferOrchestrator = Depends(get_orchestrator),
    reader: ChainReader = Depends(get_hub_reader),
    settings: Settings = Depends(get_app_settings),
) -> QuoteResponse:
    """Validate the action and compute its slippage-bounded amounts."""
    gas_reserve_bps = request.gas_reserve_bps
    if gas_reserve_bps is None and request.kind == ActionKind.WITHDRAW.value:
        gas_reserve_bps = settings.default_gas_reserve_bps

    action = TransferAction(
        kind=request.kind,
        origin_chain=request.origin_chain,
        source_token=request.source_token,
        destination_selector=request.destination_selector,
        amount=request.amount,
        recipient=request.recipient,
        slippage_bps=(
            request.slippage_bps if request.slippage_bps is not None else settings.default_slippage_bps
        ),
        gas_reserve_bps=gas_reserve_bps,
    )
    plan = await orchestrator.plan(action, reader)

    return QuoteResponse(
        kind=plan.kind.value,
        origin_chain_id=plan.action.origin_chain_id,
        destination_chain_id=plan.action.destination_chain_id,
        recipient=plan.action.recipient,
        bounds=AmountBoundsResponse(**plan.bounds.to_dict()),
        expected_output=format_amount(
            plan.bounds.expected_output_base_units, plan.output_decimals, places=6
        ),
        min_output=format_amount(plan.bounds.min_output_base_units, plan.output_decimals, places=6),
        token=plan.token.address,
        spender=plan.spender,
        target=plan.target.address,
        method=plan.method,
    )
