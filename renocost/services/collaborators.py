"""External collaborator interfaces for the estimate pipeline.

Credential storage, persistence and seller quotes live outside the
pipeline. These abstract base classes define what the pipeline consumes;
EnvironmentCredentialStore is the default credential source.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

import structlog

from renocost.config.errors import ConfigurationError, ErrorCode
from renocost.config.secrets import get_gemini_api_key, get_secret
from renocost.models.estimate import NormalizedEstimate
from renocost.models.estimate_request import EstimateRequest

logger = structlog.get_logger(__name__)


class CredentialStore(ABC):
    """Supplies the model API key."""

    @abstractmethod
    def get_api_key(self) -> str:
        """Return the API key.

        Raises:
            ConfigurationError: If no key is configured.
        """


class EstimateRepository(ABC):
    """Receives finalized estimates for storage."""

    @abstractmethod
    async def save(self, request: EstimateRequest, estimate: NormalizedEstimate) -> None:
        """Persist an estimate."""


class SellerQuoteProvider(ABC):
    """Supplies comparative seller pricing for display only."""

    @abstractmethod
    async def quotes_for(self, material: str, zip_code: Optional[str]) -> List[str]:
        """Return display strings such as "Home Depot: $8.49/sq ft"."""


class EnvironmentCredentialStore(CredentialStore):
    """Reads the API key from the environment (or .env) via config.secrets."""

    def __init__(self, secret_id: str = "GEMINI_API_KEY"):
        self.secret_id = secret_id

    def get_api_key(self) -> str:
        if self.secret_id == "GEMINI_API_KEY":
            api_key = get_gemini_api_key()
        else:
            api_key = get_secret(self.secret_id)
        if not api_key:
            raise ConfigurationError(
                f"{self.secret_id} is not configured",
                code=ErrorCode.API_KEY_MISSING,
                details={"secret_id": self.secret_id},
            )
        return api_key


class StaticCredentialStore(CredentialStore):
    """Fixed API key, e.g. from a command-line flag."""

    def __init__(self, api_key: Optional[str]):
        self._api_key = api_key

    def get_api_key(self) -> str:
        if not self._api_key or not self._api_key.strip():
            raise ConfigurationError("API key is empty", code=ErrorCode.API_KEY_MISSING)
        return self._api_key.strip()
