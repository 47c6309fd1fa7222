"""ZetaChain cross-chain transaction indexer client.

Looks up the cross-chain transaction (CCTX) created by an origin-chain
transaction through the public LCD endpoint:

    GET {base_url}/zeta-chain/crosschain/inboundHashToCctxData/{tx_hash}

A 404 or an empty ``CrossChainTxs`` list means the origin transaction has not
been indexed yet. Every other failure raises IndexerUnavailableError, which
the settlement tracker treats as "no news", never as a failed transfer.
"""

from __future__ import annotations

from typing import Any

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from usdc_hub.config import get_settings
from usdc_hub.domain.collaborators import OutboundLeg, SettlementQueryResult
from usdc_hub.domain.exceptions import IndexerUnavailableError
from usdc_hub.logging_config import get_logger

logger = get_logger(__name__)

CCTX_BY_INBOUND_HASH_PATH = "/zeta-chain/crosschain/inboundHashToCctxData/{tx_hash}"


def _optional_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_cctx_response(data: Any) -> SettlementQueryResult | None:
    """Map an ``inboundHashToCctxData`` body to a SettlementQueryResult.

    Raises:
        ValueError: If the body does not have the expected shape.
    """
    if not isinstance(data, dict):
        raise ValueError("response body is not a JSON object")

    txs = data.get("CrossChainTxs") or []
    if not isinstance(txs, list):
        raise ValueError("CrossChainTxs is not a list")
    if not txs:
        return None

    cctx = txs[0]
    if not isinstance(cctx, dict):
        raise ValueError("CrossChainTxs[0] is not an object")

    status = cctx.get("cctx_status") or {}
    if not isinstance(status, dict):
        raise ValueError("cctx_status is not an object")
    legs = tuple(
        OutboundLeg(
            hash=params.get("hash") or None,
            finalization_status=params.get("tx_finalization_status") or None,
            receiver_chain_id=_optional_int(params.get("receiver_chainId")),
        )
        for params in cctx.get("outbound_params") or []
        if isinstance(params, dict)
    )
    return SettlementQueryResult(
        cctx_index=cctx.get("index") or None,
        status=status.get("status") or "",
        status_message=status.get("status_message") or "",
        outbound_legs=legs,
    )


class ZetaChainIndexer:
    """Indexer collaborator backed by the ZetaChain LCD REST API."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout_seconds: float | None = None,
        retry_attempts: int | None = None,
        backoff_seconds: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: LCD root URL (settings default).
            timeout_seconds: Per-request timeout (settings default).
            retry_attempts: Attempts per lookup for transport errors.
            backoff_seconds: Exponential backoff multiplier between attempts.
            transport: Optional httpx transport (tests use MockTransport).
        """
        settings = get_settings()
        self._base_url = (base_url or settings.indexer_base_url).rstrip("/")
        self._retry_attempts = max(1, retry_attempts or settings.indexer_retry_attempts)
        self._backoff = backoff_seconds
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout_seconds or settings.indexer_timeout_seconds,
            headers={"accept": "application/json"},
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> ZetaChainIndexer:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _get(self, path: str) -> httpx.Response:
        """GET with tenacity retries on transport errors (timeouts, resets)."""
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(multiplier=self._backoff, max=4),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        ):
            with attempt:
                return await self._client.get(path)
        raise RuntimeError("unreachable")  # pragma: no cover

    async def lookup_by_origin_tx(self, tx_id: str) -> SettlementQueryResult | None:
        """Return the CCTX for ``tx_id`` or None if it is not indexed yet.

        Raises:
            IndexerUnavailableError: On transport failure after retries,
                a non-2xx status other than 404, or a malformed body.
        """
        path = CCTX_BY_INBOUND_HASH_PATH.format(tx_hash=tx_id)
        try:
            response = await self._get(path)
        except httpx.TransportError as exc:
            raise IndexerUnavailableError(tx_id, f"{type(exc).__name__}: {exc}") from exc

        if response.status_code == 404:
            logger.debug("indexer.not_indexed", origin_tx_id=tx_id)
            return None

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise IndexerUnavailableError(
                tx_id, f"HTTP {exc.response.status_code}: {exc.response.text[:200]}"
            ) from exc

        try:
            result = parse_cctx_response(response.json())
        except ValueError as exc:
            raise IndexerUnavailableError(tx_id, f"malformed response: {exc}") from exc

        if result is not None:
            logger.debug(
                "indexer.cctx_found",
                origin_tx_id=tx_id,
                cctx_index=result.cctx_index,
                status=result.status,
                legs=len(result.outbound_legs),
            )
        return result

    async def ping(self) -> bool:
        """Return True when the LCD endpoint answers at all."""
        try:
            response = await self._client.get("/cosmos/base/tendermint/v1beta1/node_info")
        except httpx.HTTPError as exc:
            logger.warning("indexer.ping_failed", error=str(exc))
            return False
        return response.status_code < 500
