"""Response Normalizer for RenoCost.

Decodes raw model text into a NormalizedEstimate.

Decode order:
1. Strip enclosing markdown code fences
2. Strict decode against the response schema (pydantic DTOs below)
3. Degraded fallback: regex extraction of the "low"/"high" totals
4. No numeric signal at all: UnusableResponseError

Only step 4 raises; malformed content otherwise degrades into a
lower-confidence estimate.
"""

import math
import re
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator
import structlog

from renocost.config.errors import UnusableResponseError
from renocost.models.estimate import (
    CostRange,
    LineItem,
    NormalizedEstimate,
    ParseMode,
    RegionalData,
    Timeline,
)
from renocost.models.model_tier import RawModelResponse
from renocost.services.pricing_tables import NATIONAL_AVERAGE

logger = structlog.get_logger(__name__)


DEFAULT_CONFIDENCE = 0.85
DEGRADED_CONFIDENCE = 0.7
DEGRADED_TIMELINE = Timeline(days_low=7, days_high=14, recommended_season="Any")
DEGRADED_NOTE = (
    "Estimate generated from a partially structured AI response (degraded parsing). "
    "Line items were not available; review the totals before relying on them."
)

_LOW_PATTERN = re.compile(r'"low"\s*:\s*"?\$?\s*([\d,]*\.?\d+)')
_HIGH_PATTERN = re.compile(r'"high"\s*:\s*"?\$?\s*([\d,]*\.?\d+)')


# =============================================================================
# RESPONSE SCHEMA (as returned by the model)
# =============================================================================


class CostRangeDTO(BaseModel):
    low: float = 0.0
    high: float = 0.0

    class Config:
        allow_inf_nan = False


class LineItemDTO(BaseModel):
    """Breakdown entry; costLow/costHigh are line totals."""

    category: Optional[str] = None
    item: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None
    cost_low: Optional[float] = Field(default=None, alias="costLow")
    cost_high: Optional[float] = Field(default=None, alias="costHigh")
    optional: Optional[bool] = None

    class Config:
        populate_by_name = True
        allow_inf_nan = False


class TimelineDTO(BaseModel):
    days_low: float = Field(default=0, alias="daysLow")
    days_high: float = Field(default=0, alias="daysHigh")
    recommended_season: Optional[str] = Field(default=None, alias="recommendedSeason")

    class Config:
        populate_by_name = True
        allow_inf_nan = False


class RegionalDataDTO(BaseModel):
    multiplier: float = 1.0
    region: Optional[str] = None

    class Config:
        allow_inf_nan = False


class EstimateResponseDTO(BaseModel):
    """Model response contract. totalCost is the only required field."""

    total_cost: CostRangeDTO = Field(..., alias="totalCost")
    breakdown: Optional[List[LineItemDTO]] = None
    timeline: Optional[TimelineDTO] = None
    notes: Optional[str] = None
    warnings: Optional[List[str]] = None
    recommendations: Optional[List[str]] = None
    confidence: Optional[float] = None
    regional_data: Optional[RegionalDataDTO] = Field(default=None, alias="regionalData")

    class Config:
        populate_by_name = True
        allow_inf_nan = False

    @field_validator("warnings", "recommendations", mode="before")
    @classmethod
    def drop_non_strings(cls, v):
        """Keep only non-empty string entries."""
        if isinstance(v, list):
            return [s for s in v if isinstance(s, str) and s.strip()]
        return v


# =============================================================================
# HELPERS
# =============================================================================


def strip_code_fences(text: str) -> str:
    """Remove enclosing ```json / ``` markers."""
    cleaned = text.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[7:]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def _clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def _parse_number(raw: str) -> Optional[float]:
    try:
        value = float(raw.replace(",", ""))
    except ValueError:
        return None
    return value if math.isfinite(value) else None


# =============================================================================
# NORMALIZER
# =============================================================================


class ResponseNormalizer:
    """Turns raw model text into a NormalizedEstimate."""

    def normalize(self, raw: RawModelResponse) -> NormalizedEstimate:
        """Normalize one model response.

        Args:
            raw: Text returned by the winning model tier.

        Returns:
            Strict estimate when the text matches the schema, otherwise a
            degraded estimate built from the scalar totals.

        Raises:
            UnusableResponseError: No cost signal could be located.
        """
        text = strip_code_fences(raw.text)

        dto = self._decode_strict(text)
        if dto is not None:
            estimate = self._from_dto(dto, raw)
            logger.info(
                "response_normalized",
                parse_mode=ParseMode.STRICT.value,
                line_items=len(estimate.breakdown),
                confidence=estimate.confidence,
            )
            return estimate

        estimate = self._from_scalars(text, raw)
        logger.warning(
            "response_normalized_degraded",
            total_low=estimate.total_cost.low,
            total_high=estimate.total_cost.high,
            model_id=raw.model_id,
        )
        return estimate

    @staticmethod
    def _decode_strict(text: str) -> Optional[EstimateResponseDTO]:
        candidates = [text]
        start, end = text.find("{"), text.rfind("}")
        if start != -1 and end > start and (start, end) != (0, len(text) - 1):
            candidates.append(text[start:end + 1])

        for candidate in candidates:
            try:
                return EstimateResponseDTO.model_validate_json(candidate)
            except ValidationError as e:
                logger.debug("strict_decode_failed", errors=e.error_count())
        return None

    @staticmethod
    def _from_dto(dto: EstimateResponseDTO, raw: RawModelResponse) -> NormalizedEstimate:
        breakdown = []
        for entry in dto.breakdown or []:
            quantity = entry.quantity if entry.quantity is not None and entry.quantity > 0 else 1.0
            line_total = CostRange.ordered(entry.cost_low or 0.0, entry.cost_high or 0.0)
            breakdown.append(LineItem(
                raw_category=(entry.category or "").strip(),
                name=(entry.item or "").strip(),
                description=(entry.description or "").strip(),
                quantity=quantity,
                unit=(entry.unit or "each").strip() or "each",
                unit_cost=CostRange(low=line_total.low / quantity, high=line_total.high / quantity),
                optional=bool(entry.optional),
            ))

        if dto.timeline is not None:
            days_low = max(0, int(round(dto.timeline.days_low)))
            days_high = max(0, int(round(dto.timeline.days_high)))
            timeline = Timeline(
                days_low=min(days_low, days_high),
                days_high=max(days_low, days_high),
                recommended_season=(dto.timeline.recommended_season or "Any").strip() or "Any",
            )
        else:
            timeline = DEGRADED_TIMELINE

        ai_regional = None
        if dto.regional_data is not None:
            ai_regional = RegionalData(
                multiplier=max(0.0, dto.regional_data.multiplier),
                region=(dto.regional_data.region or NATIONAL_AVERAGE).strip() or NATIONAL_AVERAGE,
            )

        confidence = dto.confidence if dto.confidence is not None else DEFAULT_CONFIDENCE

        return NormalizedEstimate(
            total_cost=CostRange.ordered(dto.total_cost.low, dto.total_cost.high),
            breakdown=breakdown,
            timeline=timeline,
            notes=(dto.notes or "").strip(),
            warnings=list(dto.warnings or []),
            recommendations=list(dto.recommendations or []),
            confidence=_clamp(confidence),
            regional_data=ai_regional or RegionalData(),
            parse_mode=ParseMode.STRICT,
            vision_used=raw.vision_used,
            model_id=raw.model_id,
            ai_regional_data=ai_regional,
        )

    @staticmethod
    def _from_scalars(text: str, raw: RawModelResponse) -> NormalizedEstimate:
        low_match = _LOW_PATTERN.search(text)
        high_match = _HIGH_PATTERN.search(text)
        low = _parse_number(low_match.group(1)) if low_match else None
        high = _parse_number(high_match.group(1)) if high_match else None

        if low is None and high is None:
            logger.error("response_unusable", model_id=raw.model_id, text_length=len(raw.text))
            raise UnusableResponseError(details={"model_id": raw.model_id, "preview": raw.text[:200]})

        if low is None:
            low = high
        if high is None:
            high = low

        return NormalizedEstimate(
            total_cost=CostRange.ordered(low, high),
            breakdown=[],
            timeline=DEGRADED_TIMELINE,
            notes=DEGRADED_NOTE,
            confidence=DEGRADED_CONFIDENCE,
            parse_mode=ParseMode.DEGRADED,
            vision_used=raw.vision_used,
            model_id=raw.model_id,
        )
