"""RenoCost data models."""

from renocost.models.estimate_request import EstimateRequest, RoomType, QualityTier, Urgency
from renocost.models.model_tier import ModelTier, RawModelResponse
from renocost.models.estimate import (
    CostRange,
    LineItem,
    LineItemCategory,
    NormalizedEstimate,
    ParseMode,
    RegionalData,
    Timeline,
)
from renocost.models.pricing import (
    LaborRate,
    PriceCacheEntry,
    PriceQuote,
    PricingContext,
    RegionalProfile,
    ZipPrefixRange,
)
from renocost.models.pipeline import PipelineState, PipelineTrace

__all__ = [
    "EstimateRequest",
    "RoomType",
    "QualityTier",
    "Urgency",
    "ModelTier",
    "RawModelResponse",
    "CostRange",
    "LineItem",
    "LineItemCategory",
    "NormalizedEstimate",
    "ParseMode",
    "RegionalData",
    "Timeline",
    "LaborRate",
    "PriceCacheEntry",
    "PriceQuote",
    "PricingContext",
    "RegionalProfile",
    "ZipPrefixRange",
    "PipelineState",
    "PipelineTrace",
]
