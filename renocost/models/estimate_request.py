"""Estimate request models for RenoCost.

This module defines the caller-facing input to the estimate pipeline.
"""

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator


# =============================================================================
# ENUMS
# =============================================================================


class RoomType(str, Enum):
    """Renovation area types."""

    KITCHEN = "Kitchen"
    BATHROOM = "Bathroom"
    BEDROOM = "Bedroom"
    LIVING_ROOM = "Living Room"
    BASEMENT = "Basement"
    ATTIC = "Attic"
    GARAGE = "Garage"
    DECK = "Deck/Patio"
    WHOLE_HOUSE = "Whole House"
    ADDITION = "Addition"
    EXTERIOR = "Exterior"
    ROOF = "Roof"
    FLOORING = "Flooring Only"
    ELECTRICAL = "Electrical"
    PLUMBING = "Plumbing"
    HVAC = "HVAC"


class QualityTier(str, Enum):
    """Finish quality tier."""

    ECONOMY = "Economy"
    STANDARD = "Standard"
    PREMIUM = "Premium"
    LUXURY = "Luxury"

    @property
    def multiplier(self) -> float:
        return _QUALITY_MULTIPLIERS[self]

    @property
    def description(self) -> str:
        return _QUALITY_DESCRIPTIONS[self]


_QUALITY_MULTIPLIERS = {
    QualityTier.ECONOMY: 0.7,
    QualityTier.STANDARD: 1.0,
    QualityTier.PREMIUM: 1.5,
    QualityTier.LUXURY: 2.5,
}

_QUALITY_DESCRIPTIONS = {
    QualityTier.ECONOMY: "Basic materials, minimal customization",
    QualityTier.STANDARD: "Mid-range materials, standard finishes",
    QualityTier.PREMIUM: "High-quality materials, upgraded features",
    QualityTier.LUXURY: "Top-tier materials, custom craftsmanship",
}


class Urgency(str, Enum):
    """How soon the work has to happen."""

    FLEXIBLE = "Flexible Timeline"
    STANDARD = "Standard (2-4 weeks)"
    RUSH = "Rush (1-2 weeks)"
    EMERGENCY = "Emergency (ASAP)"

    @property
    def multiplier(self) -> float:
        return _URGENCY_MULTIPLIERS[self]


_URGENCY_MULTIPLIERS = {
    Urgency.FLEXIBLE: 0.95,
    Urgency.STANDARD: 1.0,
    Urgency.RUSH: 1.25,
    Urgency.EMERGENCY: 1.5,
}


# =============================================================================
# REQUEST MODEL
# =============================================================================


class EstimateRequest(BaseModel):
    """Renovation project description submitted to the pipeline.

    Immutable once constructed. Images are raw encoded photos ordered
    oldest first, so the most recent photos are at the end.
    """

    room_type: RoomType = Field(..., description="Area being renovated")
    square_footage: float = Field(..., ge=0, description="Area in sq ft (0 yields a zero-cost estimate)")
    quality_tier: QualityTier = Field(default=QualityTier.STANDARD, description="Finish quality tier")
    zip_code: Optional[str] = Field(default=None, description="US ZIP code for regional pricing")
    location: Optional[str] = Field(default=None, description="Free-text location (city, state)")
    urgency: Urgency = Field(default=Urgency.STANDARD, description="Schedule urgency")
    materials: Tuple[str, ...] = Field(default=(), description="Selected material names, in order")
    includes_permits: bool = Field(default=True, description="Include permit costs")
    includes_design: bool = Field(default=False, description="Include design services")
    images: Tuple[bytes, ...] = Field(default=(), repr=False, description="Encoded photos, oldest first")
    description: str = Field(default="", description="Desired renovation description")

    # Optional project context
    project_name: str = Field(default="", description="Display name of the project")
    budget_min: float = Field(default=0.0, ge=0, description="Lower budget bound ($)")
    budget_max: float = Field(default=0.0, ge=0, description="Upper budget bound ($)")
    notes: str = Field(default="", description="Additional notes for the estimator")

    class Config:
        """Pydantic configuration."""

        frozen = True

    @field_validator("zip_code", mode="before")
    @classmethod
    def blank_zip_is_none(cls, v):
        """Treat blank zip codes as missing."""
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("materials", mode="before")
    @classmethod
    def drop_blank_materials(cls, v):
        """Strip material names and drop empty entries, keeping order."""
        if v is None:
            return ()
        return tuple(m.strip() for m in v if isinstance(m, str) and m.strip())

    @model_validator(mode="after")
    def validate_budget(self) -> "EstimateRequest":
        """Ensure budget_min <= budget_max when both are set."""
        if self.budget_min and self.budget_max and self.budget_min > self.budget_max:
            raise ValueError(
                f"budget_min ({self.budget_min}) must not exceed budget_max ({self.budget_max})"
            )
        return self

    @property
    def has_images(self) -> bool:
        return len(self.images) > 0
