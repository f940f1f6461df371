"""Pipeline Output Logger for RenoCost.

Provides highly visible, formatted banners for estimate runs and model
tier attempts, alongside structured structlog events. Banners go to
stderr so stdout stays free for estimate output.
"""

import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog

logger = structlog.get_logger(__name__)

# Visual markers for different log types
BANNER_WIDTH = 80
PIPELINE_BANNER_CHAR = "█"
TIER_BANNER_CHAR = "═"
RETRY_BANNER_CHAR = "~"
FAILURE_BANNER_CHAR = "!"


def _create_banner(char: str, text: str, width: int = BANNER_WIDTH) -> str:
    """Create a centered banner with given character."""
    text_with_spaces = f" {text} "
    padding = (width - len(text_with_spaces)) // 2
    return char * padding + text_with_spaces + char * (width - padding - len(text_with_spaces))


def _print(line: str = "") -> None:
    print(line, file=sys.stderr)


def _print_block(char: str, title: str, rows: List[str]) -> None:
    _print()
    _print(char * BANNER_WIDTH)
    _print(_create_banner(char, title))
    _print(char * BANNER_WIDTH)
    for row in rows:
        _print(row)
    _print(char * BANNER_WIDTH)
    _print()


def log_pipeline_start(run_id: str, request_summary: Dict[str, Any], tier_count: int) -> None:
    """Log estimate run start with prominent banner."""
    _print_block(PIPELINE_BANNER_CHAR, "RENOCOST ESTIMATE STARTED", [
        f"║ Run ID      : {run_id}",
        f"║ Timestamp   : {datetime.utcnow().isoformat()}",
        f"║ Room        : {request_summary.get('room_type')} ({request_summary.get('square_footage')} sq ft)",
        f"║ Quality     : {request_summary.get('quality_tier')}",
        f"║ ZIP Code    : {request_summary.get('zip_code') or 'N/A'}",
        f"║ Images      : {request_summary.get('images', 0)}",
        f"║ Model Tiers : {tier_count}",
    ])

    logger.info("pipeline_start_logged", run_id=run_id, tier_count=tier_count, **request_summary)


def log_tier_attempt(
    run_id: str,
    tier_index: int,
    model_id: str,
    vision: bool,
    text_only_retry: bool = False,
) -> None:
    """Log a model tier attempt."""
    mode = "VISION" if vision else "TEXT"
    retry_info = " (TEXT-ONLY RETRY)" if text_only_retry else ""
    char = RETRY_BANNER_CHAR if text_only_retry else TIER_BANNER_CHAR

    _print_block(char, f"▶ TIER {tier_index}: {model_id}{retry_info}", [
        f"║ Run ID   : {run_id}",
        f"║ Mode     : {mode}",
    ])

    logger.info(
        "tier_attempt_logged",
        run_id=run_id,
        tier=tier_index,
        model_id=model_id,
        vision=vision,
        text_only_retry=text_only_retry,
    )


def log_tier_failed(run_id: str, failure: Dict[str, Any]) -> None:
    """Log a tier failure before the cascade advances."""
    _print_block(FAILURE_BANNER_CHAR, f"✗ TIER {failure.get('tier')} FAILED: {failure.get('model_id')}", [
        f"! Run ID   : {run_id}",
        f"! Kind     : {failure.get('kind')}",
        f"! Status   : {failure.get('status_code') or 'N/A'}",
        f"! Attempts : {failure.get('attempts')}",
        f"! Error    : {failure.get('message')}",
    ])

    logger.warning("tier_failed_logged", run_id=run_id, **failure)


def log_pipeline_complete(
    run_id: str,
    contract: Dict[str, Any],
    duration_ms: int,
    model_id: str,
    parse_mode: str,
) -> None:
    """Log estimate completion with summary."""
    total = contract.get("totalCost", {})
    _print_block(PIPELINE_BANNER_CHAR, "✓ ESTIMATE COMPLETED", [
        f"║ Run ID      : {run_id}",
        f"║ Timestamp   : {datetime.utcnow().isoformat()}",
        f"║ Duration    : {duration_ms:,} ms ({duration_ms / 1000:.2f}s)",
        f"║ Model       : {model_id}",
        f"║ Parse Mode  : {parse_mode}",
        f"║ Total Cost  : ${total.get('low', 0):,.0f} - ${total.get('high', 0):,.0f}",
        f"║ Line Items  : {len(contract.get('breakdown', []))}",
        f"║ Confidence  : {contract.get('confidence', 0):.2f}",
        f"║ Warnings    : {len(contract.get('warnings', []))}",
    ])

    logger.info(
        "pipeline_complete_logged",
        run_id=run_id,
        duration_ms=duration_ms,
        model_id=model_id,
        parse_mode=parse_mode,
    )


def log_pipeline_failed(
    run_id: str,
    error_code: str,
    error: str,
    tiers_attempted: Optional[List[int]] = None,
) -> None:
    """Log estimate failure with details."""
    tiers = ", ".join(str(t) for t in tiers_attempted) if tiers_attempted else "None"
    _print_block(FAILURE_BANNER_CHAR, "✗ ESTIMATE FAILED", [
        f"! Run ID          : {run_id}",
        f"! Timestamp       : {datetime.utcnow().isoformat()}",
        f"! Error Code      : {error_code}",
        f"! Error           : {error}",
        f"! Tiers Attempted : {tiers}",
    ])

    logger.error("pipeline_failed_logged", run_id=run_id, error_code=error_code, error=error)
