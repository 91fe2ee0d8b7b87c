"""structlog configuration shared by the CLI and long-running scripts."""

from __future__ import annotations

import logging
import sys
from typing import IO, Optional

import structlog


def configure_logging(level: str = "INFO", stream: Optional[IO[str]] = None, json: bool = False) -> None:
    """Route structlog events to ``stream`` (stderr by default) above ``level``."""

    numeric = getattr(logging, level.upper(), None)
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")
    renderer = structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=True),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(stream or sys.stderr),
    )


__all__ = ["configure_logging"]
