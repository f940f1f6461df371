"""RenoCost configuration.

This package contains:
- settings: Environment variables and configuration
- secrets: Unified secret access (environment / .env)
- errors: Custom exceptions and error codes
"""

from renocost.config.settings import settings
from renocost.config.errors import EstimatorError
from renocost.config.secrets import get_secret, get_gemini_api_key

__all__ = [
    "settings",
    "EstimatorError",
    "get_secret",
    "get_gemini_api_key",
]
