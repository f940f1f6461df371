"""RenoCost services.

- transport: HTTP execution with retry, backoff and cancellation
- pricing_oracle: static price/labor tables with regional multipliers
- model_orchestrator: prompt + image payloads and the model tier cascade
- response_normalizer: strict decode with degraded scalar fallback
- quote_synthesizer: categorize, re-price and aggregate line items
- estimate_pipeline: end-to-end run with state tracking
"""

from renocost.services.transport import TransportRequest, TransportResponse, TransportService
from renocost.services.pricing_oracle import PricingOracle
from renocost.services.image_processor import ImageProcessor
from renocost.services.model_orchestrator import ModelOrchestrator
from renocost.services.response_normalizer import ResponseNormalizer
from renocost.services.quote_synthesizer import QuoteSynthesizer
from renocost.services.estimate_pipeline import EstimatePipeline
from renocost.services.collaborators import (
    CredentialStore,
    EnvironmentCredentialStore,
    EstimateRepository,
    SellerQuoteProvider,
    StaticCredentialStore,
)

__all__ = [
    "TransportRequest",
    "TransportResponse",
    "TransportService",
    "PricingOracle",
    "ImageProcessor",
    "ModelOrchestrator",
    "ResponseNormalizer",
    "QuoteSynthesizer",
    "EstimatePipeline",
    "CredentialStore",
    "EnvironmentCredentialStore",
    "EstimateRepository",
    "SellerQuoteProvider",
    "StaticCredentialStore",
]
