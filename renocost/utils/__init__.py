"""Utility modules for RenoCost."""

from renocost.utils.logging import configure_logging
from renocost.utils.pipeline_logger import (
    log_pipeline_start,
    log_pipeline_complete,
    log_pipeline_failed,
    log_tier_attempt,
    log_tier_failed,
)

__all__ = [
    "configure_logging",
    "log_pipeline_start",
    "log_pipeline_complete",
    "log_pipeline_failed",
    "log_tier_attempt",
    "log_tier_failed",
]
