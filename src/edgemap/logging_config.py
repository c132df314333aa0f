"""structlog configuration for applications embedding edgemap.

Library modules take their loggers from :func:`get_logger`; nothing is
configured at import time. Call :func:`configure_logging` once at startup
to get readable console output (or leave structlog's defaults alone).
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from edgemap.config import debug_enabled


def configure_logging(debug: bool | None = None) -> None:
    """Configure structlog for console output on stderr.

    Args:
        debug: Log at debug level. Defaults to the EDGEMAP_DEBUG env var.
    """
    if debug is None:
        debug = debug_enabled()
    level = logging.DEBUG if debug else logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> Any:
    """Get a named structlog logger."""
    return structlog.get_logger(name)
