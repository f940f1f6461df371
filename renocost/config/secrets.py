"""Unified secret access for RenoCost.

Secrets come from the process environment; a local .env file is loaded
by config.settings at import time for development.

Usage:
    from renocost.config.secrets import get_gemini_api_key, get_secret

    # Get the Gemini key (cached)
    api_key = get_gemini_api_key()

    # Get any secret by name
    custom_secret = get_secret('MY_SECRET_NAME')
"""

import os
from functools import lru_cache
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)


def get_secret(secret_id: str) -> Optional[str]:
    """
    Get secret from the environment.

    Args:
        secret_id: The name of the secret (e.g., 'GEMINI_API_KEY')

    Returns:
        The secret value, or None if not found or blank
    """
    value = os.environ.get(secret_id)
    if value and value.strip():
        logger.debug("secret_loaded", secret_id=secret_id)
        return value.strip()

    logger.warning("secret_missing", secret_id=secret_id)
    return None


# Cached secret accessors for commonly used secrets

@lru_cache(maxsize=1)
def get_gemini_api_key() -> Optional[str]:
    """Get Gemini API key from secrets."""
    return get_secret('GEMINI_API_KEY')


def clear_secret_cache() -> None:
    """Clear cached secrets. Useful for testing or when secrets are rotated."""
    get_gemini_api_key.cache_clear()
