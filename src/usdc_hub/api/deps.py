"""FastAPI dependency injection providers.

The lifespan in main.py builds one Deployment, indexer and hub-chain reader
and stores them on ``app.state``; routes receive them through Depends() so
tests can swap any of them with ``app.dependency_overrides``.
"""

from __future__ import annotations

from fastapi import Depends, Request

from usdc_hub.config import Settings, get_settings
from usdc_hub.domain.collaborators import ChainReader, Indexer
from usdc_hub.registry import Deployment
from usdc_hub.services.orchestrator import TransferOrchestrator
from usdc_hub.services.pool_service import PoolService


def get_deployment(request: Request) -> Deployment:
    """Provide the process-wide Deployment."""
    return request.app.state.deployment


def get_indexer(request: Request) -> Indexer:
    """Provide the cross-chain indexer client."""
    return request.app.state.indexer


def get_hub_reader(request: Request) -> ChainReader:
    """Provide a read-only client for the hub chain."""
    return request.app.state.hub_reader


def get_orchestrator(
    deployment: Deployment = Depends(get_deployment),
    indexer: Indexer = Depends(get_indexer),
) -> TransferOrchestrator:
    """Provide a TransferOrchestrator bound to the shared collaborators."""
    return TransferOrchestrator(deployment, indexer)


def get_pool_service(
    reader: ChainReader = Depends(get_hub_reader),
    deployment: Deployment = Depends(get_deployment),
) -> PoolService:
    """Provide a PoolService reading from the hub chain."""
    return PoolService(reader, deployment)


def get_app_settings() -> Settings:
    """Provide the application settings."""
    return get_settings()
