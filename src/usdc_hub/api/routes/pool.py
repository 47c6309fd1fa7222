"""Pool REST API routes.

Routes:
    GET    /api/v1/pool                     - Balances, shares and virtual price of the stable pool
    GET    /api/v1/pool/balances/{account}  - One account's LP token and pool coin balances
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from usdc_hub.api.deps import get_pool_service
from usdc_hub.schemas.transfers import AccountBalancesResponse, PoolSnapshotResponse
from usdc_hub.services.pool_service import PoolService

router = APIRouter(prefix="/api/v1/pool", tags=["Pool"])


@router.get(
    "",
    response_model=PoolSnapshotResponse,
    summary="Get the stable pool snapshot",
)
async def get_pool(
    service: PoolService = Depends(get_pool_service),
) -> PoolSnapshotResponse:
    snapshot = await service.snapshot()
    return PoolSnapshotResponse.model_validate(snapshot.to_dict())


@router.get(
    "/balances/{account}",
    response_model=AccountBalancesResponse,
    summary="Get an account's hub-chain balances",
)
async def get_balances(
    account: str,
    service: PoolService = Depends(get_pool_service),
) -> AccountBalancesResponse:
    """Read balances before sizing a convert, redeem or withdraw."""
    balances = await service.balances(account)
    return AccountBalancesResponse(
        account=account,
        balances=[balance.to_dict() for balance in balances],
    )
