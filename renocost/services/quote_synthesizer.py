"""Quote Synthesizer for RenoCost.

Merges a normalized model estimate with the pricing oracle into the final
caller-facing estimate:

1. Categorize line items by synonym (exact, then substring; else Materials)
2. Re-price zero-cost items (every item for degraded estimates) from the
   oracle; allocate the reported total when there is no breakdown
3. Sum per-category totals; the overall total is their sum, with a
   warning when it diverges from the model's total beyond tolerance
4. Adjust confidence for degraded parsing and vision analysis
5. Attach regional data (pricing context, then model, then national)
"""

from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from renocost.config.settings import settings
from renocost.models.estimate import (
    CostRange,
    LineItem,
    LineItemCategory,
    NormalizedEstimate,
    RegionalData,
)
from renocost.models.pricing import PricingContext
from renocost.services.pricing_oracle import PricingOracle

logger = structlog.get_logger(__name__)


# Synonyms per category, in matching priority order
CATEGORY_SYNONYMS: List[Tuple[LineItemCategory, Tuple[str, ...]]] = [
    (LineItemCategory.LABOR, ("labor", "labour", "installation", "install", "contractor", "trades")),
    (LineItemCategory.MATERIALS, ("materials", "material", "supplies", "fixtures", "appliances", "equipment")),
    (LineItemCategory.PERMITS, ("permits", "permit", "fees", "fee", "inspection", "inspections", "licensing")),
    (LineItemCategory.DESIGN, ("design", "architect", "architecture", "planning", "drafting")),
    (LineItemCategory.CONTINGENCY, ("contingency", "buffer", "reserve", "unforeseen")),
    (LineItemCategory.OVERHEAD, ("overhead", "margin", "profit", "markup", "management", "supervision")),
]

# Share of the reported total per category when no breakdown is available
ALLOCATION_SHARES: List[Tuple[LineItemCategory, float]] = [
    (LineItemCategory.LABOR, 0.40),
    (LineItemCategory.MATERIALS, 0.35),
    (LineItemCategory.CONTINGENCY, 0.10),
    (LineItemCategory.OVERHEAD, 0.15),
]

ALLOCATION_WARNING = (
    "Detailed line items were unavailable; the reported total was allocated "
    "across Labor, Materials, Contingency and Overhead using typical shares."
)


def categorize(raw_category: str) -> LineItemCategory:
    """Map a free-text category to the fixed category set.

    Exact synonym matches win over substring matches; both follow
    CATEGORY_SYNONYMS order. Unknown categories map to Materials.
    """
    term = raw_category.strip().lower()
    if not term:
        return LineItemCategory.MATERIALS

    for category, synonyms in CATEGORY_SYNONYMS:
        if term == category.value.lower() or term in synonyms:
            return category
    for category, synonyms in CATEGORY_SYNONYMS:
        if any(synonym in term for synonym in synonyms):
            return category
    return LineItemCategory.MATERIALS


def sum_by_category(items: Sequence[LineItem]) -> Dict[LineItemCategory, CostRange]:
    """Per-category line totals, in category enumeration order."""
    totals: Dict[LineItemCategory, CostRange] = {}
    for category in LineItemCategory:
        matching = [item.total_cost for item in items if item.category == category]
        if matching:
            total = CostRange.zero()
            for cost in matching:
                total = total + cost
            totals[category] = total
    return totals


class QuoteSynthesizer:
    """Produces the final estimate from normalized model output."""

    def __init__(
        self,
        oracle: Optional[PricingOracle] = None,
        divergence_tolerance: Optional[float] = None,
        degraded_penalty: Optional[float] = None,
        vision_bonus: Optional[float] = None,
    ):
        self.oracle = oracle or PricingOracle()
        self.divergence_tolerance = (
            divergence_tolerance if divergence_tolerance is not None else settings.divergence_tolerance
        )
        self.degraded_penalty = (
            degraded_penalty if degraded_penalty is not None else settings.degraded_confidence_penalty
        )
        self.vision_bonus = vision_bonus if vision_bonus is not None else settings.vision_confidence_bonus

    def synthesize(self, estimate: NormalizedEstimate, pricing_context: PricingContext) -> NormalizedEstimate:
        """Finalize a normalized estimate.

        Args:
            estimate: Output of the response normalizer.
            pricing_context: Pricing reference built for the request.

        Returns:
            New NormalizedEstimate whose total equals the sum of its
            category totals.
        """
        zip_code = pricing_context.zip_code
        warnings = list(estimate.warnings)

        items = [
            item.model_copy(update={"category": categorize(item.raw_category)})
            for item in estimate.breakdown
        ]

        repriced = 0
        for index, item in enumerate(items):
            if estimate.is_degraded or item.is_zero_cost:
                items[index] = self._reprice(item, zip_code)
                repriced += 1

        if not items and estimate.total_cost.high > 0:
            items = self._allocate(estimate.total_cost)
            warnings.append(ALLOCATION_WARNING)

        category_totals = sum_by_category(items)
        total = CostRange.zero()
        for category_total in category_totals.values():
            total = total + category_total

        divergence = self._divergence(estimate.total_cost, total)
        if divergence is not None and divergence > self.divergence_tolerance:
            warnings.append(
                f"Line items total ${total.low:,.0f} - ${total.high:,.0f}, which differs from the "
                f"AI-reported total of ${estimate.total_cost.low:,.0f} - ${estimate.total_cost.high:,.0f} "
                f"by {divergence:.0%}."
            )
            logger.warning(
                "estimate_total_diverged",
                reported_low=estimate.total_cost.low,
                reported_high=estimate.total_cost.high,
                computed_low=total.low,
                computed_high=total.high,
                divergence=round(divergence, 4),
            )

        confidence = estimate.confidence
        if estimate.is_degraded:
            confidence -= self.degraded_penalty
        if estimate.vision_used:
            confidence += self.vision_bonus
        confidence = max(0.0, min(1.0, confidence))

        regional_data = self._regional_data(estimate, pricing_context)

        logger.info(
            "estimate_synthesized",
            line_items=len(items),
            repriced=repriced,
            total_low=round(total.low, 2),
            total_high=round(total.high, 2),
            confidence=round(confidence, 3),
            region=regional_data.region,
        )

        return estimate.model_copy(update={
            "total_cost": total,
            "breakdown": items,
            "category_totals": category_totals,
            "warnings": warnings,
            "confidence": confidence,
            "regional_data": regional_data,
        })

    def _reprice(self, item: LineItem, zip_code: Optional[str]) -> LineItem:
        """Replace an item's unit cost with the oracle's reference range."""
        if item.category == LineItemCategory.LABOR:
            rate = self.oracle.labor_rate_for(item.name or item.raw_category, zip_code)
            unit_cost, reference_unit = rate.rate_range, "hour"
        else:
            quote = self.oracle.price_for(item.name or item.raw_category, zip_code)
            unit_cost, reference_unit = quote.price_range, quote.unit

        unit = reference_unit if item.unit == "each" else item.unit
        logger.debug(
            "line_item_repriced",
            item=item.name,
            category=item.category.value,
            unit_low=unit_cost.low,
            unit_high=unit_cost.high,
        )
        return item.model_copy(update={"unit_cost": unit_cost, "unit": unit})

    @staticmethod
    def _allocate(total: CostRange) -> List[LineItem]:
        return [
            LineItem(
                category=category,
                raw_category=category.value,
                name=f"{category.value} (allocated)",
                description=f"{share:.0%} of the reported total",
                quantity=1.0,
                unit="lot",
                unit_cost=total * share,
            )
            for category, share in ALLOCATION_SHARES
        ]

    @staticmethod
    def _divergence(reported: CostRange, computed: CostRange) -> Optional[float]:
        """Relative difference of the range midpoints; None without a reported total."""
        if reported.midpoint <= 0:
            return None
        return abs(computed.midpoint - reported.midpoint) / reported.midpoint

    @staticmethod
    def _regional_data(estimate: NormalizedEstimate, pricing_context: PricingContext) -> RegionalData:
        region = pricing_context.region
        if region.is_mapped:
            return RegionalData(multiplier=region.multiplier, region=region.state_name)
        if estimate.ai_regional_data is not None:
            return estimate.ai_regional_data
        return RegionalData()
