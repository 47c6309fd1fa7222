"""Structured logging configuration using structlog.

JSON output in production, coloured console output in development. Poll
cycles and transfer steps log dotted event names with the origin transaction
id attached, so one transfer can be followed across every log line.

Usage:
    from usdc_hub.logging_config import setup_logging, get_logger, transfer_context
    setup_logging(log_level="DEBUG", json_logs=False)
    logger = get_logger()
    with transfer_context(kind="deposit", origin_chain_id=42161):
        logger.info("settlement.polled", origin_tx_id="0xabc", state="CONFIRMING")
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Iterator

# Transaction ids longer than this are shortened in console output only
_CONSOLE_TX_ID_LENGTH = 18
_TX_ID_KEYS = ("tx_id", "origin_tx_id", "hub_tx_id", "destination_tx_id", "approval_tx_id")


def _shorten_tx_ids(
    _logger: Any, _method: str, event_dict: structlog.types.EventDict
) -> structlog.types.EventDict:
    """Render 0x-hashes as ``0x1234abcd…cdef`` for readable console lines."""
    for key in _TX_ID_KEYS:
        value = event_dict.get(key)
        if isinstance(value, str) and len(value) > _CONSOLE_TX_ID_LENGTH:
            event_dict[key] = f"{value[:10]}…{value[-4:]}"
    return event_dict


def setup_logging(log_level: str = "DEBUG", json_logs: bool = False) -> None:
    """Configure structlog with shared processors.

    Args:
        log_level: Standard Python log level string (DEBUG, INFO, WARNING, etc.)
        json_logs: If True, output JSON (for production). If False, colored console.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_logs:
        # Production: JSON output for log aggregation, full hashes and
        # tracebacks as structured data
        formatter_processors: list[structlog.types.Processor] = [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    else:
        # Development: colored, human-readable output
        formatter_processors = [
            _shorten_tx_ids,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # Configure the standard library root logger
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            *formatter_processors,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.DEBUG))

    # Quiet noisy third-party loggers; RPC and HTTP clients log every request
    for noisy_logger in ("uvicorn.access", "httpx", "httpcore", "web3", "urllib3"):
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)


@contextmanager
def transfer_context(**fields: Any) -> Iterator[None]:
    """Bind transfer identifiers to every log line emitted inside the block.

    Context variables are copied into tasks created inside the block, so a
    settlement poll loop started here keeps the same fields for its lifetime.
    """
    with structlog.contextvars.bound_contextvars(**fields):
        yield


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Optional logger name. If None, uses the calling module's name.

    Returns:
        A bound structlog logger with context variable support.
    """
    return structlog.get_logger(name)
