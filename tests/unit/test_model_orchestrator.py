"""Unit tests for ModelOrchestrator.

Tests cover:
- Tier cascade ordering and advancement rules
- Attempt bounds across the cascade
- Vision payloads, image capping and 413 text-only retry
- Fatal credential failures and cancellation
- API key validation
"""

import asyncio
import json

import httpx
import pytest

from renocost.config.errors import (
    ConfigurationError,
    ErrorCode,
    ModelUnavailableError,
    TransportError,
    TransportErrorKind,
)
from renocost.models.model_tier import ModelTier
from renocost.models.pipeline import PipelineState, PipelineTrace
from renocost.services.collaborators import EnvironmentCredentialStore, StaticCredentialStore
from renocost.services.model_orchestrator import ModelOrchestrator, extract_candidate_text
from renocost.services.prompt_builder import build_text_prompt
from renocost.services.transport import TransportService
from tests.fixtures.gemini_stub import TEST_TIERS, ok, status, timeout
from tests.fixtures.mock_gemini_responses import gemini_envelope, gemini_error


PRO, FLASH, LITE = (tier.model_id for tier in TEST_TIERS)


@pytest.fixture
def pricing_context(oracle, kitchen_request):
    return oracle.build_context(kitchen_request)


def _inline_parts(body):
    return [p for p in body["contents"][0]["parts"] if "inlineData" in p]


# =============================================================================
# CASCADE
# =============================================================================


class TestCascade:
    """Tests for tier ordering and advancement."""

    @pytest.mark.asyncio
    async def test_first_tier_success(self, orchestrator, gemini_stub, kitchen_request, pricing_context, kitchen_text):
        """A 200 from tier 0 is returned without touching later tiers."""
        gemini_stub.script(PRO, ok(kitchen_text))

        raw = await orchestrator.generate(kitchen_request, pricing_context)

        assert raw.text == kitchen_text
        assert raw.model_id == PRO
        assert raw.status_code == 200
        assert raw.attempts == 1
        assert raw.vision_used is False
        assert gemini_stub.models_called == [PRO]

    @pytest.mark.asyncio
    async def test_not_found_advances_once(self, orchestrator, gemini_stub, kitchen_request, pricing_context, kitchen_text):
        """404 on tier 0 moves to tier 1, which succeeds."""
        gemini_stub.script(FLASH, ok(kitchen_text))
        trace = PipelineTrace()

        raw = await orchestrator.generate(kitchen_request, pricing_context, trace=trace)

        assert raw.model_id == FLASH
        assert raw.attempts == 2
        assert gemini_stub.models_called == [PRO, FLASH]
        assert trace.tiers_attempted == [0, 1]
        assert trace.current == PipelineState.SUCCEEDED

    @pytest.mark.asyncio
    async def test_timeouts_exhaust_tier_then_advance(self, orchestrator, gemini_stub, kitchen_request, pricing_context, kitchen_text):
        """A tier that keeps timing out uses its full retry budget, then the next tier runs."""
        gemini_stub.script(PRO, timeout())
        gemini_stub.script(FLASH, ok(kitchen_text))

        raw = await orchestrator.generate(kitchen_request, pricing_context)

        assert gemini_stub.calls_for(PRO) == 3
        assert raw.model_id == FLASH
        assert raw.attempts == 4

    @pytest.mark.asyncio
    async def test_empty_candidates_advance(self, orchestrator, gemini_stub, kitchen_request, pricing_context, kitchen_text):
        """A 200 without candidate text counts as a tier failure."""
        gemini_stub.script(PRO, lambda request: httpx.Response(200, json=gemini_envelope(candidates=[])))
        gemini_stub.script(FLASH, ok(kitchen_text))

        raw = await orchestrator.generate(kitchen_request, pricing_context)

        assert raw.model_id == FLASH

    @pytest.mark.asyncio
    async def test_error_envelope_advances(self, orchestrator, gemini_stub, kitchen_request, pricing_context, kitchen_text):
        """An API error envelope on a 200 counts as a tier failure."""
        gemini_stub.script(
            PRO,
            lambda request: httpx.Response(200, json=gemini_error(400, "Invalid argument", "INVALID_ARGUMENT")),
        )
        gemini_stub.script(FLASH, ok(kitchen_text))

        raw = await orchestrator.generate(kitchen_request, pricing_context)

        assert raw.model_id == FLASH

    @pytest.mark.asyncio
    @pytest.mark.parametrize("envelope", [
        {"candidates": ["oops"]},
        {"candidates": [{"content": "oops"}]},
        {"candidates": [{"content": {"parts": "oops"}}]},
        {"candidates": {"content": {}}},
    ])
    async def test_malformed_envelope_advances(self, orchestrator, gemini_stub, kitchen_request, pricing_context, kitchen_text, envelope):
        """A 200 whose candidates are not objects counts as an empty response."""
        gemini_stub.script(PRO, lambda request: httpx.Response(200, json=envelope))
        gemini_stub.script(FLASH, ok(kitchen_text))
        trace = PipelineTrace()

        raw = await orchestrator.generate(kitchen_request, pricing_context, trace=trace)

        assert raw.model_id == FLASH
        assert trace.tiers_attempted == [0, 1]

    @pytest.mark.asyncio
    async def test_empty_response_failure_code(self, orchestrator, gemini_stub, kitchen_request, pricing_context):
        """Tiers answering without candidate text report MODEL_EMPTY_RESPONSE."""
        for model_id in (PRO, FLASH, LITE):
            gemini_stub.script(model_id, lambda request: httpx.Response(200, json={"candidates": ["oops"]}))

        with pytest.raises(ModelUnavailableError) as exc_info:
            await orchestrator.generate(kitchen_request, pricing_context)

        assert [f["code"] for f in exc_info.value.failures] == [ErrorCode.MODEL_EMPTY_RESPONSE] * 3

    @pytest.mark.asyncio
    async def test_all_tiers_fail(self, orchestrator, gemini_stub, kitchen_request, pricing_context):
        """When every tier fails the failures are reported per tier."""
        trace = PipelineTrace()

        with pytest.raises(ModelUnavailableError) as exc_info:
            await orchestrator.generate(kitchen_request, pricing_context, trace=trace)

        failures = exc_info.value.failures
        assert [f["model_id"] for f in failures] == [PRO, FLASH, LITE]
        assert all(f["status_code"] == 404 for f in failures)
        assert exc_info.value.code == ErrorCode.MODEL_UNAVAILABLE
        assert trace.current == PipelineState.EXHAUSTED

    @pytest.mark.asyncio
    async def test_attempts_bounded_by_tiers_times_retries(self, orchestrator, gemini_stub, kitchen_request, pricing_context):
        """Persistent 503s make exactly N * (R + 1) attempts."""
        for model_id in (PRO, FLASH, LITE):
            gemini_stub.script(model_id, status(503, "overloaded"))

        with pytest.raises(ModelUnavailableError) as exc_info:
            await orchestrator.generate(kitchen_request, pricing_context)

        assert len(gemini_stub.requests) == orchestrator.max_total_attempts == 9
        assert exc_info.value.details["attempts"] == 9
        assert [f["attempts"] for f in exc_info.value.failures] == [3, 3, 3]

    @pytest.mark.asyncio
    async def test_rejected_key_aborts(self, orchestrator, gemini_stub, kitchen_request, pricing_context):
        """401 stops the cascade with a configuration error."""
        gemini_stub.script(PRO, status(401, gemini_error(401, "API key not valid", "UNAUTHENTICATED")))

        with pytest.raises(ConfigurationError) as exc_info:
            await orchestrator.generate(kitchen_request, pricing_context)

        assert exc_info.value.code == ErrorCode.API_KEY_REJECTED
        assert gemini_stub.models_called == [PRO]

    @pytest.mark.asyncio
    async def test_missing_key_fails_before_any_call(self, transport, gemini_stub, kitchen_request, pricing_context, monkeypatch):
        """No configured key raises before the network is touched."""
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        orchestrator = ModelOrchestrator(
            credential_store=EnvironmentCredentialStore(),
            transport=transport,
            tiers=TEST_TIERS,
        )

        with pytest.raises(ConfigurationError) as exc_info:
            await orchestrator.generate(kitchen_request, pricing_context)

        assert exc_info.value.code == ErrorCode.API_KEY_MISSING
        assert gemini_stub.requests == []

    @pytest.mark.asyncio
    async def test_cancel_propagates(self, orchestrator, gemini_stub, kitchen_request, pricing_context, kitchen_text):
        """A set cancel event aborts the cascade."""
        gemini_stub.script(PRO, ok(kitchen_text))
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(TransportError) as exc_info:
            await orchestrator.generate(kitchen_request, pricing_context, cancel_event=cancel)

        assert exc_info.value.kind == TransportErrorKind.CANCELLED
        assert gemini_stub.requests == []

    def test_requires_a_tier(self, transport):
        """An empty cascade is rejected at construction."""
        with pytest.raises(ValueError):
            ModelOrchestrator(transport=transport, tiers=[])


# =============================================================================
# VISION
# =============================================================================


class TestVision:
    """Tests for image attachment and payload rejection."""

    @pytest.mark.asyncio
    async def test_caps_images_to_most_recent(self, orchestrator, gemini_stub, kitchen_request, pricing_context, kitchen_text, make_image):
        """Five photos with a cap of two attach exactly two inline parts."""
        photos = tuple(make_image(100 + i, 100) for i in range(5))
        request = kitchen_request.model_copy(update={"images": photos})
        gemini_stub.script(PRO, ok(kitchen_text))

        raw = await orchestrator.generate(request, pricing_context)

        body = gemini_stub.body(0)
        assert len(_inline_parts(body)) == 2
        assert "Analyze the attached photos" in body["contents"][0]["parts"][0]["text"]
        assert raw.vision_used is True

    @pytest.mark.asyncio
    async def test_payload_too_large_retries_text_only(self, orchestrator, gemini_stub, kitchen_request, pricing_context, kitchen_text, make_image):
        """413 on a vision call retries the same tier without images."""
        request = kitchen_request.model_copy(update={"images": (make_image(),)})
        gemini_stub.script(PRO, status(413, "Request payload size exceeds the limit"), ok(kitchen_text))
        trace = PipelineTrace()

        raw = await orchestrator.generate(request, pricing_context, trace=trace)

        assert gemini_stub.models_called == [PRO, PRO]
        assert len(_inline_parts(gemini_stub.body(0))) == 1
        assert _inline_parts(gemini_stub.body(1)) == []
        assert raw.model_id == PRO
        assert raw.vision_used is False
        assert raw.attempts == 2
        assert trace.states[:5] == [
            PipelineState.CASCADING,
            PipelineState.VISION_ATTEMPT,
            PipelineState.PAYLOAD_REJECTED,
            PipelineState.TEXT_ONLY_RETRY,
            PipelineState.SUCCEEDED,
        ]

    @pytest.mark.asyncio
    async def test_dropped_images_stay_dropped(self, orchestrator, gemini_stub, kitchen_request, pricing_context, kitchen_text, make_image):
        """After a 413 later tiers are called text-only."""
        request = kitchen_request.model_copy(update={"images": (make_image(),)})
        gemini_stub.script(PRO, status(413, "too large"), status(500, "boom"))
        gemini_stub.script(FLASH, ok(kitchen_text))

        raw = await orchestrator.generate(request, pricing_context)

        assert gemini_stub.calls_for(PRO) == 3
        assert raw.model_id == FLASH
        assert _inline_parts(gemini_stub.body(3)) == []
        assert raw.attempts == 4

    @pytest.mark.asyncio
    async def test_payload_too_large_without_retry_budget(self, transport, gemini_stub, kitchen_request, pricing_context, kitchen_text, make_image):
        """With no retries left after a 413 the cascade advances text-only."""
        orchestrator = ModelOrchestrator(
            credential_store=StaticCredentialStore("test-api-key"),
            transport=TransportService(client=transport.client, max_retries=0),
            tiers=TEST_TIERS,
        )
        request = kitchen_request.model_copy(update={"images": (make_image(),)})
        gemini_stub.script(PRO, status(413, "too large"), ok(kitchen_text))
        gemini_stub.script(FLASH, ok(kitchen_text))
        trace = PipelineTrace()

        raw = await orchestrator.generate(request, pricing_context, trace=trace)

        assert gemini_stub.models_called == [PRO, FLASH]
        assert _inline_parts(gemini_stub.body(1)) == []
        assert raw.model_id == FLASH
        assert raw.attempts == 2
        assert PipelineState.TEXT_ONLY_RETRY not in trace.states

    @pytest.mark.asyncio
    async def test_payload_too_large_failure_code(self, transport, gemini_stub, kitchen_request, pricing_context, make_image):
        """A 413 that ends a tier is reported as PAYLOAD_TOO_LARGE."""
        orchestrator = ModelOrchestrator(
            credential_store=StaticCredentialStore("test-api-key"),
            transport=TransportService(client=transport.client, max_retries=0),
            tiers=TEST_TIERS[:1],
        )
        request = kitchen_request.model_copy(update={"images": (make_image(),)})
        gemini_stub.script(PRO, status(413, "too large"))

        with pytest.raises(ModelUnavailableError) as exc_info:
            await orchestrator.generate(request, pricing_context)

        assert exc_info.value.failures[0]["code"] == ErrorCode.PAYLOAD_TOO_LARGE

    @pytest.mark.asyncio
    async def test_text_tier_gets_no_images(self, orchestrator, gemini_stub, kitchen_request, pricing_context, kitchen_text, make_image):
        """Tiers without vision never receive inline images."""
        request = kitchen_request.model_copy(update={"images": (make_image(),)})
        gemini_stub.script(LITE, ok(kitchen_text))

        raw = await orchestrator.generate(request, pricing_context)

        assert raw.model_id == LITE
        assert raw.vision_used is False
        assert _inline_parts(gemini_stub.body(2)) == []


# =============================================================================
# REQUEST BODY
# =============================================================================


class TestRequestBody:
    """Tests for generateContent request construction."""

    @pytest.mark.asyncio
    async def test_endpoint_and_key_header(self, orchestrator, gemini_stub, kitchen_request, pricing_context, kitchen_text):
        """Requests target the tier endpoint and carry the key in a header."""
        gemini_stub.script(PRO, ok(kitchen_text))

        await orchestrator.generate(kitchen_request, pricing_context)

        sent = gemini_stub.requests[0]
        assert str(sent.url) == f"https://gemini.test/v1beta/models/{PRO}:generateContent"
        assert sent.headers["x-goog-api-key"] == "test-api-key"
        assert "key=" not in str(sent.url)

    def test_json_mode_tier(self, orchestrator):
        """JSON-mode tiers request application/json output."""
        body = orchestrator.build_request_body(TEST_TIERS[0], "prompt")

        assert body["generationConfig"]["responseMimeType"] == "application/json"
        assert body["contents"][0]["parts"] == [{"text": "prompt"}]
        assert len(body["safetySettings"]) == 4

    def test_plain_tier(self, orchestrator):
        """Tiers without JSON mode omit responseMimeType."""
        tier = ModelTier(model_id="gemini-plain", supports_vision=False, supports_json_mode=False)

        body = orchestrator.build_request_body(tier, "prompt")

        assert "responseMimeType" not in body["generationConfig"]

    def test_prompt_includes_pricing_reference(self, kitchen_request, pricing_context):
        """The prompt embeds the pricing context summary."""
        prompt = build_text_prompt(kitchen_request, pricing_context)

        assert "## Pricing Reference:" in prompt
        assert "Colorado" in prompt
        assert "Quartz countertops" in prompt


# =============================================================================
# CANDIDATE EXTRACTION
# =============================================================================


class TestExtractCandidateText:
    """Tests for extract_candidate_text."""

    def test_joins_parts(self):
        """Text parts of the first candidate are concatenated."""
        payload = json.dumps(gemini_envelope(candidates=[
            {"content": {"parts": [{"text": '{"a":'}, {"text": " 1}"}]}},
        ])).encode()

        assert extract_candidate_text(payload) == '{"a": 1}'

    def test_blocked_prompt(self):
        """A blocked prompt is reported as NO_DATA with the reason."""
        payload = b'{"candidates": [], "promptFeedback": {"blockReason": "SAFETY"}}'

        with pytest.raises(TransportError) as exc_info:
            extract_candidate_text(payload)

        assert exc_info.value.kind == TransportErrorKind.NO_DATA
        assert "SAFETY" in exc_info.value.message

    def test_not_json(self):
        """Non-JSON bodies fail to decode."""
        with pytest.raises(TransportError) as exc_info:
            extract_candidate_text(b"<html>")

        assert exc_info.value.kind == TransportErrorKind.DECODE_FAILED

    @pytest.mark.parametrize("payload", [
        b'{"candidates": ["oops"]}',
        b'{"candidates": [{"content": "oops"}]}',
        b'{"candidates": [{"content": {"parts": [{"text": 5}, "x"]}}]}',
        b'{"candidates": "oops", "promptFeedback": "oops"}',
    ])
    def test_malformed_candidates(self, payload):
        """Malformed candidate structures are reported as NO_DATA."""
        with pytest.raises(TransportError) as exc_info:
            extract_candidate_text(payload)

        assert exc_info.value.kind == TransportErrorKind.NO_DATA

    def test_skips_non_text_parts(self):
        """Parts without string text are ignored."""
        payload = json.dumps({"candidates": [
            {"content": {"parts": [{"text": 7}, {"inlineData": {}}, {"text": "ok"}]}},
        ]}).encode()

        assert extract_candidate_text(payload) == "ok"


# =============================================================================
# KEY VALIDATION
# =============================================================================


class TestValidateApiKey:
    """Tests for validate_api_key."""

    @pytest.mark.asyncio
    async def test_valid_key(self, orchestrator, gemini_stub):
        """A well-formed 200 confirms the key."""
        gemini_stub.script(PRO, ok("OK"))

        assert await orchestrator.validate_api_key() is True

    @pytest.mark.asyncio
    async def test_rejected_key(self, orchestrator, gemini_stub):
        """401 means the key is invalid."""
        gemini_stub.script(PRO, status(401))

        assert await orchestrator.validate_api_key() is False
        assert len(gemini_stub.requests) == 1

    @pytest.mark.asyncio
    async def test_rate_limited_counts_as_valid(self, orchestrator, gemini_stub):
        """429 proves the key authenticated."""
        gemini_stub.script(PRO, status(429))

        assert await orchestrator.validate_api_key() is True
        assert len(gemini_stub.requests) == 1

    @pytest.mark.asyncio
    async def test_skips_missing_models(self, orchestrator, gemini_stub):
        """Unavailable tiers are skipped until one answers."""
        gemini_stub.script(LITE, ok("OK"))

        assert await orchestrator.validate_api_key() is True
        assert gemini_stub.models_called == [PRO, FLASH, LITE]

    @pytest.mark.asyncio
    async def test_no_tier_answers(self, orchestrator, gemini_stub):
        """False when no tier gives a definite answer."""
        assert await orchestrator.validate_api_key() is False
