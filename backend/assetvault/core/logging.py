"""Structured logging configuration using structlog."""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from assetvault.core.config import settings

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = (
    "watchdog",
    "googleapiclient.discovery",
    "googleapiclient.discovery_cache",
    "httpx",
    "aiosqlite",
)


def setup_logging(*, json_output: bool | None = None) -> None:
    """Configure structured logging for the server and the bridge CLI.

    Args:
        json_output: Force JSON (True) or console (False) rendering. Defaults
            to console output in debug mode and JSON otherwise.
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)
    if json_output is None:
        json_output = not settings.debug

    shared_processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        processors = shared_processors + [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = shared_processors + [
            structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    for name in ["uvicorn", "uvicorn.error", "uvicorn.access"]:
        logging.getLogger(name).setLevel(log_level)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Optional logger name. If not provided, uses the caller's module name.

    Returns:
        A bound structlog logger instance.
    """
    return structlog.get_logger(name)


def bind_import_context(**values: Any) -> None:
    """Attach import identifiers (job_id, project_id, ...) to every log line
    emitted from the current task."""
    structlog.contextvars.bind_contextvars(**values)


def clear_import_context() -> None:
    """Drop identifiers bound with bind_import_context."""
    structlog.contextvars.clear_contextvars()
