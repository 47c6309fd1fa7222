"""FastAPI application entry point for the USDC hub transfer service.

Lifecycle:
    1. Startup: Initialize logging, build the Deployment, open the indexer
       client and the hub-chain reader.
    2. Running: Serve the quote, settlement and pool endpoints.
    3. Shutdown: Close the indexer HTTP client.

Run with:
    uv run uvicorn usdc_hub.main:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI

from usdc_hub.config import HUB_CHAIN_ID, get_settings
from usdc_hub.logging_config import get_logger, setup_logging

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application startup and shutdown lifecycle."""
    settings = get_settings()

    # 1. Setup structured logging
    setup_logging(
        log_level=settings.app_log_level,
        json_logs=not settings.is_development,
    )
    logger = get_logger(__name__)
    logger.info(
        "app.starting",
        env=settings.app_env,
        debug=settings.app_debug,
    )

    # 2. Collaborators shared by every request
    from usdc_hub.indexer.zeta_indexer import ZetaChainIndexer
    from usdc_hub.registry import Deployment
    from usdc_hub.signing.web3_signer import Web3Reader

    app.state.deployment = Deployment.from_settings(settings)
    app.state.indexer = ZetaChainIndexer(
        settings.indexer_base_url,
        timeout_seconds=settings.indexer_timeout_seconds,
        retry_attempts=settings.indexer_retry_attempts,
    )
    app.state.hub_reader = Web3Reader(settings.rpc_url_for(HUB_CHAIN_ID))

    logger.info(
        "app.started",
        host=settings.app_host,
        port=settings.app_port,
        indexer=settings.indexer_base_url,
    )

    yield

    # Shutdown
    logger.info("app.shutting_down")
    await app.state.indexer.aclose()
    logger.info("app.stopped")


def create_app() -> FastAPI:
    """Application factory - creates and configures the FastAPI app."""
    settings = get_settings()

    app = FastAPI(
        title="USDC Hub",
        description=(
            "Cross-chain USDC transfers through a hub-chain stable pool: "
            "plan, submit and track settlement."
        ),
        version="0.1.0",
        lifespan=lifespan,
        debug=settings.app_debug,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )

    # --- Middleware ---
    from usdc_hub.api.middleware import setup_middleware

    setup_middleware(app)

    # --- REST API Routes ---
    from usdc_hub.api.routes.health import router as health_router
    from usdc_hub.api.routes.pool import router as pool_router
    from usdc_hub.api.routes.settlements import router as settlements_router
    from usdc_hub.api.routes.transfers import router as transfers_router

    app.include_router(health_router)
    app.include_router(transfers_router)
    app.include_router(settlements_router)
    app.include_router(pool_router)

    return app


# The app instance used by Uvicorn
app = create_app()
