"""RenoCost configuration settings.

Loads configuration from environment variables with sensible defaults.
Secrets are loaded via the secrets module (environment / .env), never from this class directly.
"""

import os
from typing import List, Optional
from dataclasses import dataclass, field
from dotenv import load_dotenv

# Load .env file for non-secret configuration (model tiers, timeouts, etc.)
load_dotenv()


DEFAULT_MODEL_TIERS = "gemini-3.0-pro:vision:json,gemini-2.5-flash:vision:json,gemini-2.0-flash:text:json"


def _parse_model_tiers(raw: str) -> List["ModelTier"]:
    """Parse MODEL_TIERS ("model_id:vision|text:json|plain,...") into ModelTier entries."""
    from renocost.models.model_tier import ModelTier

    tiers = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        model_id, *flags = [p.strip() for p in chunk.split(":")]
        flags = [f.lower() for f in flags]
        tiers.append(ModelTier(
            model_id=model_id,
            supports_vision="vision" in flags,
            supports_json_mode="json" in flags,
        ))
    return tiers


@dataclass
class Settings:
    """Application settings loaded from environment variables.

    Note: The Gemini API key is resolved through the credential store
    (config.secrets), not stored here.
    """

    # Gemini API
    gemini_base_url: str = field(default_factory=lambda: os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta"))
    model_tiers_raw: str = field(default_factory=lambda: os.getenv("MODEL_TIERS", DEFAULT_MODEL_TIERS))
    llm_temperature: float = field(default_factory=lambda: float(os.getenv("LLM_TEMPERATURE", "0.3")))
    llm_top_p: float = field(default_factory=lambda: float(os.getenv("LLM_TOP_P", "0.9")))
    llm_top_k: int = field(default_factory=lambda: int(os.getenv("LLM_TOP_K", "32")))
    llm_max_output_tokens: int = field(default_factory=lambda: int(os.getenv("LLM_MAX_OUTPUT_TOKENS", "4096")))

    # Transport Configuration
    transport_timeout_seconds: float = field(default_factory=lambda: float(os.getenv("TRANSPORT_TIMEOUT_SECONDS", "60")))
    transport_max_retries: int = field(default_factory=lambda: int(os.getenv("TRANSPORT_MAX_RETRIES", "2")))
    backoff_base: float = field(default_factory=lambda: float(os.getenv("BACKOFF_BASE", "2.0")))
    backoff_max_delay: float = field(default_factory=lambda: float(os.getenv("BACKOFF_MAX_DELAY", "30")))
    backoff_jitter: float = field(default_factory=lambda: float(os.getenv("BACKOFF_JITTER", "0.5")))

    # Image Payloads
    max_images: int = field(default_factory=lambda: int(os.getenv("MAX_IMAGES", "2")))
    image_max_dimension: int = field(default_factory=lambda: int(os.getenv("IMAGE_MAX_DIMENSION", "1024")))
    image_max_bytes: int = field(default_factory=lambda: int(os.getenv("IMAGE_MAX_BYTES", str(512 * 1024))))

    # Pricing
    price_cache_ttl_seconds: float = field(default_factory=lambda: float(os.getenv("PRICE_CACHE_TTL_SECONDS", "3600")))

    # Synthesis
    divergence_tolerance: float = field(default_factory=lambda: float(os.getenv("DIVERGENCE_TOLERANCE", "0.15")))
    degraded_confidence_penalty: float = field(default_factory=lambda: float(os.getenv("DEGRADED_CONFIDENCE_PENALTY", "0.10")))
    vision_confidence_bonus: float = field(default_factory=lambda: float(os.getenv("VISION_CONFIDENCE_BONUS", "0.05")))

    # Logging
    log_level: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    _model_tiers: Optional[list] = field(default=None, repr=False)

    @property
    def model_tiers(self) -> list:
        """Ordered model cascade parsed from MODEL_TIERS."""
        if self._model_tiers is None:
            self._model_tiers = _parse_model_tiers(self.model_tiers_raw)
        return self._model_tiers

    def validate(self) -> None:
        """Validate settings are usable.

        Raises:
            ValueError: If a setting is out of range.
        """
        if not self.model_tiers:
            raise ValueError("MODEL_TIERS must list at least one model")
        if self.transport_max_retries < 0:
            raise ValueError("TRANSPORT_MAX_RETRIES must be >= 0")
        if self.max_images < 0:
            raise ValueError("MAX_IMAGES must be >= 0")
        if self.image_max_bytes <= 0:
            raise ValueError("IMAGE_MAX_BYTES must be positive")


# Singleton settings instance
settings = Settings()
