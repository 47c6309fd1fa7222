"""FastAPI middleware for request tracing, error handling, and CORS.

Middleware stack (applied bottom-up):
    1. RequestIDMiddleware - injects X-Request-ID into every request/response
    2. ErrorHandlerMiddleware - catches domain exceptions -> structured JSON errors
    3. CORSMiddleware - lets the browser wallet front end call the API
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import structlog
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from usdc_hub.domain.exceptions import (
    ChainUnavailableError,
    ConfigurationError,
    IndexerUnavailableError,
    SubmissionFailedError,
    TransferError,
    TransferValidationError,
)

if TYPE_CHECKING:
    from fastapi import FastAPI, Request, Response

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# 1. Request ID Middleware
# ---------------------------------------------------------------------------
class RequestIDMiddleware(BaseHTTPMiddleware):
    """Inject a unique X-Request-ID into every request for log correlation."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


# ---------------------------------------------------------------------------
# 2. Error Handler Middleware
# ---------------------------------------------------------------------------
def _error(status_code: int, exc: TransferError, **extra: object) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": exc.code, "message": exc.message, **extra},
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Catch domain exceptions and return structured JSON error responses."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except TransferValidationError as exc:
            logger.warning("transfer.validation_failed", field=exc.field, reason=exc.reason)
            return _error(422, exc, field=exc.field)
        except ConfigurationError as exc:
            logger.error("deployment.not_configured", setting=exc.setting)
            return _error(503, exc)
        except IndexerUnavailableError as exc:
            logger.warning("indexer.unavailable", origin_tx_id=exc.origin_tx_id, error=exc.detail)
            return _error(503, exc)
        except ChainUnavailableError as exc:
            logger.warning("chain.unavailable", origin_tx_id=exc.origin_tx_id, error=exc.detail)
            return _error(503, exc)
        except SubmissionFailedError as exc:
            logger.warning("transfer.submission_failed", stage=exc.stage, tx_id=exc.tx_id)
            return _error(400, exc, stage=exc.stage, hint=exc.hint)
        except TransferError as exc:
            logger.error("domain.error", error=exc.message, code=exc.code)
            return _error(400, exc)
        except Exception as exc:
            logger.exception("unhandled.error", error=str(exc))
            return JSONResponse(
                status_code=500,
                content={
                    "error": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                },
            )


# ---------------------------------------------------------------------------
# Setup function
# ---------------------------------------------------------------------------
def setup_middleware(app: FastAPI) -> None:
    """Register all middleware on the FastAPI application.

    Order matters - middleware is applied bottom-up, so the last added
    middleware runs first.
    """
    # CORS (runs first)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Tighten in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Error handling (runs second)
    app.add_middleware(ErrorHandlerMiddleware)

    # Request ID (runs last = outermost)
    app.add_middleware(RequestIDMiddleware)
