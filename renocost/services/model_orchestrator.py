"""Model Orchestrator for RenoCost.

Builds Gemini generateContent requests (text-only or text + images) and
cascades across the configured model tiers until one returns usable
candidate text.

Cascade rules (per tier, index 0 upward, never revisiting a tier):
- 2xx with candidate text: return immediately
- 400/404, timeout, exhausted retries, empty candidates, API error
  envelope: advance to the next tier
- 413 on a vision request: drop images and retry the same tier text-only
  within that tier's remaining attempt budget, then advance; images stay
  dropped for the remaining tiers
  (with max_retries = 0 the 413 used the tier's only attempt, so there is
  no text-only retry and the cascade advances with a PAYLOAD_TOO_LARGE
  failure)
- 401/403: abort with ConfigurationError
- cancellation: propagate TransportError(CANCELLED)

Each tier gets at most max_retries + 1 transport attempts, so a cascade
over N tiers makes at most N * (max_retries + 1) attempts.
"""

import asyncio
import json
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog

from renocost.config.settings import settings
from renocost.config.errors import (
    ConfigurationError,
    ErrorCode,
    ModelUnavailableError,
    TransportError,
    TransportErrorKind,
)
from renocost.models.estimate_request import EstimateRequest
from renocost.models.model_tier import ModelTier, RawModelResponse
from renocost.models.pipeline import PipelineState, PipelineTrace
from renocost.models.pricing import PricingContext
from renocost.services.collaborators import CredentialStore, EnvironmentCredentialStore
from renocost.services.image_processor import CompressedImage, ImageProcessor
from renocost.services.prompt_builder import build_text_prompt, build_vision_prompt
from renocost.services.transport import TransportRequest, TransportResponse, TransportService
from renocost.utils.pipeline_logger import log_tier_attempt, log_tier_failed

logger = structlog.get_logger(__name__)


SAFETY_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)
SAFETY_THRESHOLD = "BLOCK_ONLY_HIGH"

VALIDATION_PROMPT = "Respond with exactly: OK"


def extract_candidate_text(payload: bytes) -> str:
    """Extract the first candidate's text from a generateContent response.

    Raises:
        TransportError: DECODE_FAILED for a non-JSON body, SERVER_FAULT for
            an API error envelope, NO_DATA when no candidate carries text.
    """
    try:
        envelope = json.loads(payload)
    except ValueError as e:
        raise TransportError(TransportErrorKind.DECODE_FAILED) from e
    if not isinstance(envelope, dict):
        raise TransportError(TransportErrorKind.DECODE_FAILED, message="Response is not a JSON object")

    error = envelope.get("error")
    if error:
        message = error.get("message") if isinstance(error, dict) else str(error)
        raise TransportError(TransportErrorKind.SERVER_FAULT, message=f"API error: {message}")

    candidates = envelope.get("candidates")
    for candidate in candidates if isinstance(candidates, list) else []:
        content = candidate.get("content") if isinstance(candidate, dict) else None
        parts = content.get("parts") if isinstance(content, dict) else None
        if not isinstance(parts, list):
            continue
        text = "".join(
            part["text"] for part in parts
            if isinstance(part, dict) and isinstance(part.get("text"), str)
        )
        if text.strip():
            return text

    feedback = envelope.get("promptFeedback")
    block_reason = feedback.get("blockReason") if isinstance(feedback, dict) else None
    if block_reason:
        raise TransportError(TransportErrorKind.NO_DATA, message=f"Prompt blocked: {block_reason}")
    raise TransportError(TransportErrorKind.NO_DATA, message="No candidate text in response")


class ModelOrchestrator:
    """Cascading multi-model estimate generator.

    Provides:
    - generate(): prompt + image payloads, tier cascade, RawModelResponse
    - validate_api_key(): cheap probe of the configured key
    """

    def __init__(
        self,
        credential_store: Optional[CredentialStore] = None,
        transport: Optional[TransportService] = None,
        image_processor: Optional[ImageProcessor] = None,
        tiers: Optional[Sequence[ModelTier]] = None,
        base_url: Optional[str] = None,
    ):
        """Initialize ModelOrchestrator.

        Args:
            credential_store: API key source (default: environment).
            transport: HTTP transport (default: new TransportService).
            image_processor: Image compression (default from settings).
            tiers: Ordered model cascade (default from settings).
            base_url: Gemini API base URL (default from settings).
        """
        self.credential_store = credential_store or EnvironmentCredentialStore()
        self.transport = transport or TransportService()
        self.image_processor = image_processor or ImageProcessor()
        self.tiers: List[ModelTier] = list(tiers) if tiers is not None else list(settings.model_tiers)
        self.base_url = (base_url or settings.gemini_base_url).rstrip("/")

        if not self.tiers:
            raise ValueError("ModelOrchestrator requires at least one model tier")

    @property
    def attempts_per_tier(self) -> int:
        return self.transport.max_retries + 1

    @property
    def max_total_attempts(self) -> int:
        """Upper bound on transport attempts for one generate() call."""
        return len(self.tiers) * self.attempts_per_tier

    # -------------------------------------------------------------------------
    # Request building
    # -------------------------------------------------------------------------

    def endpoint_for(self, tier: ModelTier) -> str:
        return f"{self.base_url}/models/{tier.model_id}:generateContent"

    def build_request_body(
        self,
        tier: ModelTier,
        prompt: str,
        images: Sequence[CompressedImage] = (),
    ) -> Dict[str, Any]:
        """Build a generateContent body for one tier.

        Images are attached only when the tier supports vision.
        """
        parts: List[Dict[str, Any]] = [{"text": prompt}]
        if tier.supports_vision:
            parts.extend(image.to_inline_part() for image in images)

        generation_config: Dict[str, Any] = {
            "temperature": settings.llm_temperature,
            "topP": settings.llm_top_p,
            "topK": settings.llm_top_k,
            "maxOutputTokens": settings.llm_max_output_tokens,
        }
        if tier.supports_json_mode:
            generation_config["responseMimeType"] = "application/json"

        return {
            "contents": [{"parts": parts, "role": "user"}],
            "generationConfig": generation_config,
            "safetySettings": [
                {"category": category, "threshold": SAFETY_THRESHOLD}
                for category in SAFETY_CATEGORIES
            ],
        }

    def _transport_request(self, tier: ModelTier, api_key: str, body: Dict[str, Any]) -> TransportRequest:
        return TransportRequest(
            url=self.endpoint_for(tier),
            method="POST",
            headers={"x-goog-api-key": api_key},
            json_body=body,
        )

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    async def generate(
        self,
        request: EstimateRequest,
        pricing_context: PricingContext,
        cancel_event: Optional[asyncio.Event] = None,
        trace: Optional[PipelineTrace] = None,
        run_id: str = "",
    ) -> RawModelResponse:
        """Generate raw estimate text through the tier cascade.

        Args:
            request: Project description.
            pricing_context: Pricing reference embedded in the prompt.
            cancel_event: Setting this event aborts the cascade.
            trace: Optional state trace to record transitions into.
            run_id: Identifier used in log banners.

        Returns:
            RawModelResponse from the first tier that succeeded.

        Raises:
            ConfigurationError: Missing or rejected API key.
            ModelUnavailableError: Every tier failed.
            TransportError: CANCELLED when cancel_event is set.
        """
        trace = trace if trace is not None else PipelineTrace()
        api_key = self.credential_store.get_api_key()

        images = self.image_processor.prepare(request.images) if request.has_images else []
        text_prompt = build_text_prompt(request, pricing_context)
        vision_prompt = build_vision_prompt(request, pricing_context) if images else text_prompt

        failures: List[Dict[str, Any]] = []
        images_dropped = False
        total_attempts = 0

        for index, tier in enumerate(self.tiers):
            trace.record(PipelineState.CASCADING, tier=index, model_id=tier.model_id)
            attach = images if (images and tier.supports_vision and not images_dropped) else []
            tier_attempts = 0
            max_retries: Optional[int] = None
            text_only_retry = False

            while True:
                if attach:
                    trace.record(PipelineState.VISION_ATTEMPT, tier=index, images=len(attach))
                log_tier_attempt(run_id, index, tier.model_id, vision=bool(attach), text_only_retry=text_only_retry)

                try:
                    text, response = await self._call_tier(
                        tier,
                        vision_prompt if attach else text_prompt,
                        attach,
                        api_key,
                        cancel_event,
                        max_retries,
                    )
                except TransportError as e:
                    tier_attempts += e.attempts
                    total_attempts += e.attempts
                    self._raise_if_fatal(e, tier)

                    if attach and e.is_payload_too_large:
                        trace.record(PipelineState.PAYLOAD_REJECTED, tier=index, status_code=e.status_code)
                        images_dropped = True
                        attach = []
                        remaining = self.attempts_per_tier - tier_attempts
                        if remaining > 0:
                            trace.record(PipelineState.TEXT_ONLY_RETRY, tier=index)
                            max_retries = remaining - 1
                            text_only_retry = True
                            continue

                    failure = {
                        "tier": index,
                        "model_id": tier.model_id,
                        "code": _failure_code(e),
                        "kind": e.kind.value,
                        "status_code": e.status_code,
                        "message": e.message,
                        "attempts": tier_attempts,
                    }
                    failures.append(failure)
                    log_tier_failed(run_id, failure)
                    break

                total_attempts += response.attempts
                trace.record(PipelineState.SUCCEEDED, tier=index, model_id=tier.model_id)
                logger.info(
                    "model_tier_succeeded",
                    tier=index,
                    model_id=tier.model_id,
                    vision_used=bool(attach),
                    attempts=total_attempts,
                    latency_ms=response.latency_ms,
                )
                return RawModelResponse(
                    text=text,
                    status_code=response.status_code,
                    latency_ms=response.latency_ms,
                    model_id=tier.model_id,
                    vision_used=bool(attach),
                    attempts=total_attempts,
                )

        trace.record(PipelineState.EXHAUSTED, tiers=len(self.tiers), attempts=total_attempts)
        logger.error("model_cascade_exhausted", tiers=len(self.tiers), attempts=total_attempts)
        raise ModelUnavailableError(failures, details={"attempts": total_attempts})

    async def _call_tier(
        self,
        tier: ModelTier,
        prompt: str,
        images: Sequence[CompressedImage],
        api_key: str,
        cancel_event: Optional[asyncio.Event],
        max_retries: Optional[int],
    ) -> Tuple[str, TransportResponse]:
        body = self.build_request_body(tier, prompt, images)
        response = await self.transport.execute(
            self._transport_request(tier, api_key, body),
            cancel_event=cancel_event,
            max_retries=max_retries,
        )
        try:
            text = extract_candidate_text(response.payload)
        except TransportError as e:
            e.attempts = response.attempts
            raise
        return text, response

    @staticmethod
    def _raise_if_fatal(error: TransportError, tier: ModelTier) -> None:
        if error.kind == TransportErrorKind.UNAUTHORIZED:
            logger.error("model_api_key_rejected", model_id=tier.model_id, status_code=error.status_code)
            raise ConfigurationError(
                "Gemini API key was rejected",
                code=ErrorCode.API_KEY_REJECTED,
                details={"model_id": tier.model_id, "status_code": error.status_code},
            ) from error
        if error.kind == TransportErrorKind.CANCELLED:
            logger.info("model_cascade_cancelled", model_id=tier.model_id)
            raise error

    # -------------------------------------------------------------------------
    # Key validation
    # -------------------------------------------------------------------------

    async def validate_api_key(self, cancel_event: Optional[asyncio.Event] = None) -> bool:
        """Probe the configured API key against the tiers in order.

        401/403 -> False; 429 or a well-formed 200 -> True; anything else
        moves on to the next tier. False if no tier gives an answer.

        Raises:
            ConfigurationError: If no API key is configured.
        """
        api_key = self.credential_store.get_api_key()
        body = {
            "contents": [{"parts": [{"text": VALIDATION_PROMPT}], "role": "user"}],
            "generationConfig": {"temperature": 0.1, "maxOutputTokens": 10},
        }

        for tier in self.tiers:
            try:
                response = await self.transport.execute(
                    self._transport_request(tier, api_key, body),
                    cancel_event=cancel_event,
                    max_retries=0,
                )
            except TransportError as e:
                if e.kind == TransportErrorKind.UNAUTHORIZED:
                    logger.error("api_key_invalid", model_id=tier.model_id, status_code=e.status_code)
                    return False
                if e.kind == TransportErrorKind.RATE_LIMITED:
                    logger.warning("api_key_validation_rate_limited", model_id=tier.model_id)
                    return True
                if e.kind == TransportErrorKind.CANCELLED:
                    raise
                logger.warning(
                    "api_key_validation_tier_skipped",
                    model_id=tier.model_id,
                    kind=e.kind.value,
                    status_code=e.status_code,
                )
                continue

            if _is_valid_envelope(response.payload):
                logger.info("api_key_validated", model_id=tier.model_id)
                return True

        return False


def _failure_code(error: TransportError) -> str:
    if error.is_payload_too_large:
        return ErrorCode.PAYLOAD_TOO_LARGE
    if error.kind == TransportErrorKind.NO_DATA:
        return ErrorCode.MODEL_EMPTY_RESPONSE
    return error.code


def _is_valid_envelope(payload: bytes) -> bool:
    try:
        envelope = json.loads(payload)
    except ValueError:
        return False
    return isinstance(envelope, dict) and not envelope.get("error") and envelope.get("candidates") is not None
