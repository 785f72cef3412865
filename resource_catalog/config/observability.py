"""Structured logging configuration."""

import logging
import sys
from typing import Optional, TextIO

import structlog


def configure_logging(level: str = "INFO", json: bool = True, stream: Optional[TextIO] = None) -> None:
    """Configure structlog once for the process.

    The server logs JSON lines to stdout; the CLI passes ``stream=sys.stderr``
    so log output never mixes with command output.
    """
    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level.upper())),
        logger_factory=structlog.PrintLoggerFactory(file=stream or sys.stdout),
        cache_logger_on_first_use=False,
    )
