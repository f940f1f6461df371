"""Pricing reference models for RenoCost.

This module defines the data models returned by the pricing oracle:
regional profiles, material quotes, labor rates and the pricing context
handed to the model orchestrator and quote synthesizer.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field, model_validator

from renocost.models.estimate import CostRange


# =============================================================================
# REGIONAL PROFILE
# =============================================================================


class ZipPrefixRange(BaseModel):
    """Inclusive range of 3-digit ZIP prefixes belonging to one state."""

    start: int = Field(..., ge=0, le=999)
    end: int = Field(..., ge=0, le=999)
    state: str = Field(..., min_length=2, max_length=2)

    class Config:
        frozen = True

    def contains(self, prefix: int) -> bool:
        return self.start <= prefix <= self.end


class RegionalProfile(BaseModel):
    """State-level cost multiplier resolved from a ZIP code."""

    state: Optional[str] = Field(default=None, description="State abbreviation, None if unmapped")
    state_name: str = Field(default="National Average")
    multiplier: float = Field(default=1.0, ge=0)

    class Config:
        frozen = True

    @property
    def is_mapped(self) -> bool:
        return self.state is not None


# =============================================================================
# LOOKUP RESULTS
# =============================================================================


class PriceQuote(BaseModel):
    """Regionally adjusted material price."""

    query: str = Field(..., description="Name as requested")
    matched_name: str = Field(..., description="Table entry that matched, or the query for defaults")
    price: float = Field(..., ge=0, description="Average price per unit ($)")
    low: float = Field(..., ge=0)
    high: float = Field(..., ge=0)
    unit: str = Field(default="each")
    confidence: float = Field(..., ge=0, le=1)
    source: str = Field(default="Industry Average 2024-2025")
    region: str = Field(default="National Average")

    class Config:
        frozen = True

    @model_validator(mode="after")
    def validate_order(self) -> "PriceQuote":
        if self.low > self.high:
            raise ValueError(f"Price range must be low <= high, got {self.low} > {self.high}")
        return self

    @property
    def price_range(self) -> CostRange:
        return CostRange(low=self.low, high=self.high)

    @property
    def formatted_price(self) -> str:
        return f"${self.price:,.2f}/{self.unit}"


class LaborRate(BaseModel):
    """Regionally adjusted hourly labor rate."""

    trade: str = Field(..., description="Trade as requested")
    matched_trade: str = Field(..., description="Table entry used")
    rate: float = Field(..., ge=0, description="Hourly rate ($/hr)")
    low: float = Field(..., ge=0)
    high: float = Field(..., ge=0)
    location: str = Field(default="National Average")
    source: str = Field(default="BLS & Industry Data 2024")

    class Config:
        frozen = True

    @property
    def rate_range(self) -> CostRange:
        return CostRange(low=self.low, high=self.high)

    @property
    def formatted_rate(self) -> str:
        return f"${self.rate:,.2f}/hour"


class PriceCacheEntry(BaseModel):
    """Cached lookup result with its resolution time."""

    value: Any
    timestamp: float

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return now - self.timestamp < ttl_seconds


# =============================================================================
# PRICING CONTEXT
# =============================================================================


class PricingContext(BaseModel):
    """Internal pricing reference for one request."""

    zip_code: Optional[str] = None
    region: RegionalProfile = Field(default_factory=RegionalProfile)
    labor_rates: List[LaborRate] = Field(default_factory=list)
    material_quotes: List[PriceQuote] = Field(default_factory=list)
    room_cost_per_sqft: Optional[CostRange] = Field(
        default=None, description="Regionally adjusted room cost reference ($/sq ft)"
    )

    class Config:
        frozen = True

    def summary_lines(self) -> List[str]:
        """Human-readable summary lines for prompt embedding."""
        lines = [
            f"- Region: {self.region.state_name} (multiplier {self.region.multiplier:.2f})",
        ]
        if self.room_cost_per_sqft is not None:
            lines.append(
                f"- Room cost reference: ${self.room_cost_per_sqft.low:,.0f}-"
                f"${self.room_cost_per_sqft.high:,.0f} per sq ft"
            )
        for rate in self.labor_rates:
            lines.append(
                f"- {rate.matched_trade.title()}: ${rate.rate:,.2f}/hr "
                f"(${rate.low:,.2f}-${rate.high:,.2f})"
            )
        for quote in self.material_quotes:
            lines.append(
                f"- {quote.query}: {quote.formatted_price} "
                f"(${quote.low:,.2f}-${quote.high:,.2f})"
            )
        return lines
