from __future__ import annotations

import logging

import structlog

from .config import LOG_LEVEL


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Console key/value logging for hosts that don't configure structlog themselves."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level.upper())),
        cache_logger_on_first_use=True,
    )
