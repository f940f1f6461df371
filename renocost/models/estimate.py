"""Normalized estimate models for RenoCost.

This module defines the canonical estimate shape produced by the
normalizer and finalized by the quote synthesizer, plus the response
contract exposed to callers.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


# =============================================================================
# ENUMS
# =============================================================================


class LineItemCategory(str, Enum):
    """Fixed set of line item categories."""

    LABOR = "Labor"
    MATERIALS = "Materials"
    PERMITS = "Permits"
    DESIGN = "Design"
    CONTINGENCY = "Contingency"
    OVERHEAD = "Overhead"


class ParseMode(str, Enum):
    """How the model output was decoded."""

    STRICT = "strict"       # Full schema decode
    DEGRADED = "degraded"   # Scalar extraction only


# =============================================================================
# VALUE MODELS
# =============================================================================


class CostRange(BaseModel):
    """Low/high dollar range."""

    low: float = Field(..., ge=0, description="Low estimate ($)")
    high: float = Field(..., ge=0, description="High estimate ($)")

    class Config:
        frozen = True

    @model_validator(mode="after")
    def validate_order(self) -> "CostRange":
        """Ensure low <= high."""
        if self.low > self.high:
            raise ValueError(f"Cost range must be low <= high, got: low={self.low}, high={self.high}")
        return self

    @classmethod
    def ordered(cls, a: float, b: float) -> "CostRange":
        """Build a range from two values in any order, clamping negatives to zero."""
        a, b = max(float(a), 0.0), max(float(b), 0.0)
        return cls(low=min(a, b), high=max(a, b))

    @classmethod
    def zero(cls) -> "CostRange":
        """Create a zero cost range."""
        return cls(low=0.0, high=0.0)

    @property
    def midpoint(self) -> float:
        return (self.low + self.high) / 2

    def __add__(self, other: "CostRange") -> "CostRange":
        """Add two cost ranges."""
        return CostRange(low=self.low + other.low, high=self.high + other.high)

    def __mul__(self, factor: float) -> "CostRange":
        """Multiply cost range by a non-negative factor."""
        return CostRange(low=self.low * factor, high=self.high * factor)


class LineItem(BaseModel):
    """Single priced line of the breakdown.

    unit_cost is per unit; the line total is quantity x unit_cost.
    """

    category: LineItemCategory = Field(default=LineItemCategory.MATERIALS)
    raw_category: str = Field(default="", description="Category string as reported by the model")
    name: str = Field(default="", description="Item name")
    description: str = Field(default="")
    quantity: float = Field(default=1.0, ge=0)
    unit: str = Field(default="each")
    unit_cost: CostRange = Field(default_factory=CostRange.zero)
    optional: bool = Field(default=False)

    class Config:
        frozen = True

    @property
    def total_cost(self) -> CostRange:
        return self.unit_cost * self.quantity

    @property
    def is_zero_cost(self) -> bool:
        return self.total_cost.high == 0


class Timeline(BaseModel):
    """Working-day duration range."""

    days_low: int = Field(..., ge=0)
    days_high: int = Field(..., ge=0)
    recommended_season: str = Field(default="Any")

    class Config:
        frozen = True

    @model_validator(mode="after")
    def validate_order(self) -> "Timeline":
        if self.days_low > self.days_high:
            raise ValueError(f"Timeline must be days_low <= days_high, got {self.days_low} > {self.days_high}")
        return self


class RegionalData(BaseModel):
    """Regional multiplier applied to the estimate."""

    multiplier: float = Field(default=1.0, ge=0)
    region: str = Field(default="National Average")

    class Config:
        frozen = True


# =============================================================================
# NORMALIZED ESTIMATE
# =============================================================================


class NormalizedEstimate(BaseModel):
    """Canonical estimate. Immutable; the synthesizer returns a new instance."""

    total_cost: CostRange
    breakdown: List[LineItem] = Field(default_factory=list)
    timeline: Timeline
    notes: str = Field(default="")
    warnings: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)
    confidence: float = Field(..., ge=0, le=1)
    regional_data: RegionalData = Field(default_factory=RegionalData)

    # Pipeline metadata (not part of the response contract)
    parse_mode: ParseMode = Field(default=ParseMode.STRICT)
    vision_used: bool = Field(default=False)
    model_id: str = Field(default="")
    ai_regional_data: Optional[RegionalData] = Field(
        default=None, description="Regional data as reported by the model, if any"
    )
    category_totals: Dict[LineItemCategory, CostRange] = Field(default_factory=dict)

    class Config:
        frozen = True
        protected_namespaces = ()

    @property
    def is_degraded(self) -> bool:
        return self.parse_mode == ParseMode.DEGRADED

    @property
    def formatted_total_range(self) -> str:
        """Formatted total cost range, e.g. "$12,000 - $18,500"."""
        return f"${self.total_cost.low:,.0f} - ${self.total_cost.high:,.0f}"

    @property
    def formatted_timeline(self) -> str:
        if self.timeline.days_low == self.timeline.days_high:
            return f"{self.timeline.days_low} days"
        return f"{self.timeline.days_low} - {self.timeline.days_high} days"

    def to_contract(self) -> Dict[str, Any]:
        """Convert to the caller-facing response contract.

        Breakdown costLow/costHigh are line totals (quantity x unit cost).
        """
        return {
            "totalCost": {"low": self.total_cost.low, "high": self.total_cost.high},
            "breakdown": [
                {
                    "category": item.category.value,
                    "item": item.name,
                    "description": item.description,
                    "quantity": item.quantity,
                    "unit": item.unit,
                    "costLow": item.total_cost.low,
                    "costHigh": item.total_cost.high,
                    "optional": item.optional,
                }
                for item in self.breakdown
            ],
            "timeline": {
                "daysLow": self.timeline.days_low,
                "daysHigh": self.timeline.days_high,
                "recommendedSeason": self.timeline.recommended_season,
            },
            "notes": self.notes,
            "warnings": list(self.warnings),
            "recommendations": list(self.recommendations),
            "confidence": self.confidence,
            "regionalData": {
                "multiplier": self.regional_data.multiplier,
                "region": self.regional_data.region,
            },
        }
