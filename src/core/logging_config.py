"""Structured logging configuration.

This module initializes structlog with a stable JSON format on stderr.
Worker entry points select the level once from the verbosity setting.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from core.constants import DEBUG_VERBOSITY, DEFAULT_VERBOSITY

_configured = False


def configure_logging(verbosity: int = DEFAULT_VERBOSITY) -> None:
    """Configure structlog processors and the minimum level.

    Args:
        verbosity: Worker verbosity; values at or above the debug
            threshold enable debug events.
    """
    global _configured
    level = logging.DEBUG if verbosity >= DEBUG_VERBOSITY else logging.INFO
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=_stderr_logger_factory,
        cache_logger_on_first_use=False,
    )
    _configured = True


def _stderr_logger_factory(*args: Any) -> structlog.PrintLogger:
    # Resolve stderr per logger so redirected streams are honored.
    return structlog.PrintLogger(file=sys.stderr)


def get_logger(name: str) -> Any:
    """Return a module logger instance.

    Args:
        name: Logger name, usually __name__.

    Returns:
        A structlog logger with structured output.
    """
    if not _configured:
        configure_logging()
    return structlog.get_logger(name)
