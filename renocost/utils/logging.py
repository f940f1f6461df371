"""structlog configuration for RenoCost entry points."""

import logging
import sys
from typing import Optional

import structlog

from renocost.config.settings import settings


def configure_logging(level: Optional[str] = None, json_logs: bool = False) -> None:
    """Configure structlog with timestamps and a console (or JSON) renderer.

    Args:
        level: Minimum level name (default from settings.log_level).
        json_logs: Render JSON lines instead of the dev console format.
    """
    level_name = (level or settings.log_level).upper()
    min_level = logging.getLevelName(level_name)
    if not isinstance(min_level, int):
        min_level = logging.INFO

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(min_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )
