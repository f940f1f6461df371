"""Pytest configuration and shared fixtures for RenoCost tests."""

import io
import os

import httpx
import pytest
from PIL import Image

from renocost.config.secrets import clear_secret_cache
from renocost.config.settings import settings
from renocost.models.estimate_request import EstimateRequest, QualityTier, RoomType
from renocost.services.collaborators import StaticCredentialStore
from renocost.services.model_orchestrator import ModelOrchestrator
from renocost.services.pricing_oracle import PricingOracle
from renocost.services.transport import TransportService
from tests.fixtures.gemini_stub import TEST_BASE_URL, TEST_TIERS, GeminiStub
from tests.fixtures.mock_gemini_responses import estimate_text


# ============================================================================
# Settings
# ============================================================================

@pytest.fixture(autouse=True)
def mock_settings(monkeypatch):
    """Deterministic settings for all tests (no backoff delay)."""
    monkeypatch.setattr(settings, "gemini_base_url", TEST_BASE_URL)
    monkeypatch.setattr(settings, "_model_tiers", list(TEST_TIERS))
    monkeypatch.setattr(settings, "transport_timeout_seconds", 5.0)
    monkeypatch.setattr(settings, "transport_max_retries", 2)
    monkeypatch.setattr(settings, "backoff_base", 0.0)
    monkeypatch.setattr(settings, "backoff_max_delay", 0.0)
    monkeypatch.setattr(settings, "backoff_jitter", 0.0)
    monkeypatch.setattr(settings, "max_images", 2)
    monkeypatch.setattr(settings, "image_max_dimension", 1024)
    monkeypatch.setattr(settings, "image_max_bytes", 512 * 1024)
    monkeypatch.setattr(settings, "price_cache_ttl_seconds", 3600.0)
    monkeypatch.setattr(settings, "divergence_tolerance", 0.15)
    monkeypatch.setattr(settings, "degraded_confidence_penalty", 0.10)
    monkeypatch.setattr(settings, "vision_confidence_bonus", 0.05)
    monkeypatch.setenv("GEMINI_API_KEY", "test-api-key")
    clear_secret_cache()
    yield settings
    clear_secret_cache()


# ============================================================================
# Gemini HTTP stub
# ============================================================================

@pytest.fixture
def gemini_stub():
    """Scriptable Gemini endpoint."""
    return GeminiStub()


@pytest.fixture
def transport(gemini_stub):
    """TransportService wired to the Gemini stub."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(gemini_stub))
    return TransportService(client=client)


@pytest.fixture
def orchestrator(transport):
    """ModelOrchestrator over the stubbed transport and test tiers."""
    return ModelOrchestrator(
        credential_store=StaticCredentialStore("test-api-key"),
        transport=transport,
        tiers=TEST_TIERS,
    )


@pytest.fixture
def kitchen_text():
    """Strict kitchen estimate as model text."""
    return estimate_text()


# ============================================================================
# Domain fixtures
# ============================================================================

@pytest.fixture
def oracle():
    """Fresh PricingOracle (empty cache)."""
    return PricingOracle()


@pytest.fixture
def kitchen_request():
    """200 sq ft standard kitchen in Denver."""
    return EstimateRequest(
        room_type=RoomType.KITCHEN,
        square_footage=200,
        quality_tier=QualityTier.STANDARD,
        zip_code="80202",
        location="Denver, CO",
        materials=["Quartz countertops", "Stock cabinets"],
    )


@pytest.fixture
def make_image():
    """Factory for encoded test images.

    noisy=True produces random pixels that JPEG cannot compress well.
    """
    def _make(width: int = 640, height: int = 480, noisy: bool = False, fmt: str = "PNG") -> bytes:
        if noisy:
            image = Image.frombytes("RGB", (width, height), os.urandom(width * height * 3))
        else:
            image = Image.new("RGB", (width, height), (180, 140, 90))
        buffer = io.BytesIO()
        image.save(buffer, format=fmt)
        return buffer.getvalue()
    return _make
