"""Estimate Pipeline for RenoCost.

Runs one estimate generation end to end:

    IDLE -> CASCADING(tier=i) -> SUCCEEDED -> NORMALIZING -> SYNTHESIZING -> COMPLETE
                               \\-> EXHAUSTED -> FAILED

A request with zero square footage skips the model cascade and yields a
zero-cost estimate (IDLE -> SYNTHESIZING -> COMPLETE) with a warning.

Only ConfigurationError, ModelUnavailableError and UnusableResponseError
(plus caller-initiated cancellation) reach the caller. Every run owns its
own PipelineTrace; the pricing oracle cache is the only shared state.
"""

import asyncio
import time
from typing import Dict, List, Optional
from uuid import uuid4

import structlog

from renocost.config.errors import (
    ConfigurationError,
    EstimatorError,
    ModelUnavailableError,
    TransportError,
    UnusableResponseError,
)
from renocost.models.estimate import CostRange, NormalizedEstimate, Timeline
from renocost.models.estimate_request import EstimateRequest
from renocost.models.pipeline import PipelineState, PipelineTrace
from renocost.services.collaborators import EstimateRepository, SellerQuoteProvider
from renocost.services.model_orchestrator import ModelOrchestrator
from renocost.services.pricing_oracle import PricingOracle
from renocost.services.quote_synthesizer import QuoteSynthesizer
from renocost.services.response_normalizer import ResponseNormalizer
from renocost.utils.pipeline_logger import (
    log_pipeline_complete,
    log_pipeline_failed,
    log_pipeline_start,
)

logger = structlog.get_logger(__name__)

ZERO_AREA_WARNING = "Square footage is 0, so no costs were estimated"


def _zero_area_estimate() -> NormalizedEstimate:
    """Degenerate estimate for a request with no area; no model is called."""
    return NormalizedEstimate(
        total_cost=CostRange.zero(),
        timeline=Timeline(days_low=0, days_high=0),
        warnings=[ZERO_AREA_WARNING],
        confidence=0.0,
    )


class EstimatePipeline:
    """Estimate generation pipeline.

    Composes the pricing oracle, model orchestrator, response normalizer
    and quote synthesizer. Collaborators are injected; defaults are built
    from settings.
    """

    def __init__(
        self,
        orchestrator: Optional[ModelOrchestrator] = None,
        oracle: Optional[PricingOracle] = None,
        normalizer: Optional[ResponseNormalizer] = None,
        synthesizer: Optional[QuoteSynthesizer] = None,
        repository: Optional[EstimateRepository] = None,
        seller_quotes: Optional[SellerQuoteProvider] = None,
    ):
        """Initialize EstimatePipeline.

        Args:
            orchestrator: Model cascade (default: ModelOrchestrator()).
            oracle: Pricing reference shared with the synthesizer.
            normalizer: Response normalizer.
            synthesizer: Quote synthesizer (default uses `oracle`).
            repository: Optional sink for finalized estimates.
            seller_quotes: Optional display-only comparative pricing source.
        """
        self.oracle = oracle or PricingOracle()
        self.orchestrator = orchestrator or ModelOrchestrator()
        self.normalizer = normalizer or ResponseNormalizer()
        self.synthesizer = synthesizer or QuoteSynthesizer(oracle=self.oracle)
        self.repository = repository
        self.seller_quotes = seller_quotes

    async def run(
        self,
        request: EstimateRequest,
        cancel_event: Optional[asyncio.Event] = None,
        trace: Optional[PipelineTrace] = None,
    ) -> NormalizedEstimate:
        """Generate a final estimate for one request.

        Args:
            request: Project description.
            cancel_event: Setting this event aborts the run.
            trace: Optional caller-owned trace recording state transitions.

        Returns:
            Final NormalizedEstimate.

        Raises:
            ConfigurationError: Missing or rejected API key.
            ModelUnavailableError: Every model tier failed.
            UnusableResponseError: Model output had no cost signal.
            TransportError: CANCELLED when cancel_event is set.
        """
        trace = trace if trace is not None else PipelineTrace()
        run_id = uuid4().hex[:12]
        start_time = time.time()
        trace.record(PipelineState.IDLE, run_id=run_id)

        log_pipeline_start(run_id, {
            "room_type": request.room_type.value,
            "square_footage": request.square_footage,
            "quality_tier": request.quality_tier.value,
            "zip_code": request.zip_code,
            "images": len(request.images),
        }, tier_count=len(self.orchestrator.tiers))

        try:
            pricing_context = self.oracle.build_context(request)
            if request.square_footage == 0:
                logger.warning("zero_square_footage", run_id=run_id, room_type=request.room_type.value)
                normalized = _zero_area_estimate()
            else:
                raw = await self.orchestrator.generate(
                    request,
                    pricing_context,
                    cancel_event=cancel_event,
                    trace=trace,
                    run_id=run_id,
                )

                trace.record(PipelineState.NORMALIZING, model_id=raw.model_id)
                normalized = self.normalizer.normalize(raw)

            trace.record(PipelineState.SYNTHESIZING, parse_mode=normalized.parse_mode.value)
            estimate = self.synthesizer.synthesize(normalized, pricing_context)

        except (ConfigurationError, ModelUnavailableError, UnusableResponseError) as e:
            trace.failure_code = e.code
            trace.record(PipelineState.FAILED, code=e.code)
            log_pipeline_failed(run_id, e.code, e.message, trace.tiers_attempted)
            raise
        except TransportError as e:
            trace.failure_code = e.code
            trace.record(PipelineState.FAILED, code=e.code, kind=e.kind.value)
            logger.info("estimate_run_cancelled", run_id=run_id, kind=e.kind.value)
            raise

        trace.record(PipelineState.COMPLETE)
        duration_ms = int((time.time() - start_time) * 1000)
        log_pipeline_complete(
            run_id,
            estimate.to_contract(),
            duration_ms=duration_ms,
            model_id=estimate.model_id,
            parse_mode=estimate.parse_mode.value,
        )

        await self._save(request, estimate, run_id)
        return estimate

    async def _save(self, request: EstimateRequest, estimate: NormalizedEstimate, run_id: str) -> None:
        """Hand the estimate to the repository; failures never fail the run."""
        if self.repository is None:
            return
        try:
            await self.repository.save(request, estimate)
            logger.info("estimate_saved", run_id=run_id)
        except (EstimatorError, OSError, RuntimeError, ValueError) as e:
            logger.error("estimate_save_failed", run_id=run_id, error=str(e), error_type=type(e).__name__)

    async def comparative_quotes(self, request: EstimateRequest) -> Dict[str, List[str]]:
        """Collect display-only seller quotes for the request's materials.

        Never used in synthesis. Provider failures yield an empty list for
        that material.
        """
        if self.seller_quotes is None or not request.materials:
            return {}

        results: Dict[str, List[str]] = {}
        for material in request.materials:
            try:
                results[material] = list(await self.seller_quotes.quotes_for(material, request.zip_code))
            except (EstimatorError, OSError, RuntimeError, ValueError) as e:
                logger.warning("seller_quotes_failed", material=material, error=str(e))
                results[material] = []
        return results
