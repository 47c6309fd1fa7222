"""Health check endpoint.

Verifies that the cross-chain indexer answers, returns structured status.
Used by Docker healthchecks, load balancers, and monitoring systems.
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from usdc_hub.logging_config import get_logger
from usdc_hub.schemas.transfers import HealthResponse

router = APIRouter(tags=["Health"])
logger = get_logger(__name__)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns the health status of the application and its dependencies.",
)
async def health_check(request: Request) -> HealthResponse:
    """Check that the indexer endpoint is reachable."""
    indexer = request.app.state.indexer
    ping = getattr(indexer, "ping", None)

    if ping is None:
        indexer_status = "unknown"
    elif await ping():
        indexer_status = "healthy"
    else:
        indexer_status = "unhealthy"
        logger.error("health.indexer_check_failed")

    return HealthResponse(
        status="ok" if indexer_status != "unhealthy" else "degraded",
        version="0.1.0",
        indexer=indexer_status,
    )
