"""Unit tests for QuoteSynthesizer.

Tests cover:
- Category mapping by synonym
- Category totals and the summed overall total
- Divergence warnings
- Re-pricing of zero-cost and degraded line items
- Allocation of totals without a breakdown
- Confidence adjustment and regional data selection
"""

import pytest

from renocost.models.estimate import (
    CostRange,
    LineItem,
    LineItemCategory,
    NormalizedEstimate,
    ParseMode,
    RegionalData,
    Timeline,
)
from renocost.models.estimate_request import EstimateRequest, RoomType
from renocost.models.model_tier import RawModelResponse
from renocost.services.quote_synthesizer import (
    ALLOCATION_WARNING,
    QuoteSynthesizer,
    categorize,
    sum_by_category,
)
from renocost.services.response_normalizer import ResponseNormalizer
from tests.fixtures.mock_gemini_responses import (
    BATHROOM_DIVERGENT_ESTIMATE,
    DEGRADED_PROSE,
    ZERO_COST_ITEM_ESTIMATE,
    estimate_text,
)


def normalized(text: str, vision_used: bool = False) -> NormalizedEstimate:
    raw = RawModelResponse(text=text, status_code=200, model_id="gemini-test-pro", vision_used=vision_used)
    return ResponseNormalizer().normalize(raw)


def context_for(oracle, zip_code, room_type=RoomType.KITCHEN):
    request = EstimateRequest(room_type=room_type, square_footage=200, zip_code=zip_code)
    return oracle.build_context(request)


def overall(estimate: NormalizedEstimate) -> CostRange:
    total = CostRange.zero()
    for category_total in estimate.category_totals.values():
        total = total + category_total
    return total


@pytest.fixture
def synthesizer(oracle):
    return QuoteSynthesizer(oracle=oracle)


# =============================================================================
# CATEGORIZE
# =============================================================================


class TestCategorize:
    """Tests for free-text category mapping."""

    @pytest.mark.parametrize("raw_category,expected", [
        ("Labor", LineItemCategory.LABOR),
        ("labour", LineItemCategory.LABOR),
        ("INSTALLATION", LineItemCategory.LABOR),
        ("Fixtures", LineItemCategory.MATERIALS),
        ("Permits", LineItemCategory.PERMITS),
        ("Design", LineItemCategory.DESIGN),
        ("Contingency", LineItemCategory.CONTINGENCY),
        ("Overhead", LineItemCategory.OVERHEAD),
    ])
    def test_exact_synonyms(self, raw_category, expected):
        """Category names and synonyms map case-insensitively."""
        assert categorize(raw_category) == expected

    @pytest.mark.parametrize("raw_category,expected", [
        ("Permit fees", LineItemCategory.PERMITS),
        ("Project management", LineItemCategory.OVERHEAD),
        ("Design & planning", LineItemCategory.DESIGN),
        ("Contractor overhead", LineItemCategory.LABOR),
    ])
    def test_substring_synonyms(self, raw_category, expected):
        """Substring matches follow category priority order."""
        assert categorize(raw_category) == expected

    @pytest.mark.parametrize("raw_category", ["", "   ", "Electrical work", "Misc"])
    def test_unknown_is_materials(self, raw_category):
        """Unrecognized categories default to Materials."""
        assert categorize(raw_category) == LineItemCategory.MATERIALS

    def test_sum_by_category_order(self):
        """Totals are keyed in category enumeration order."""
        items = [
            LineItem(category=LineItemCategory.OVERHEAD, unit_cost=CostRange(low=1, high=2)),
            LineItem(category=LineItemCategory.LABOR, unit_cost=CostRange(low=10, high=20), quantity=2),
            LineItem(category=LineItemCategory.LABOR, unit_cost=CostRange(low=5, high=5)),
        ]

        totals = sum_by_category(items)

        assert list(totals) == [LineItemCategory.LABOR, LineItemCategory.OVERHEAD]
        assert totals[LineItemCategory.LABOR] == CostRange(low=25, high=45)


# =============================================================================
# SYNTHESIZE
# =============================================================================


class TestSynthesize:
    """Tests for the full synthesis step."""

    def test_kitchen_totals_match(self, synthesizer, oracle):
        """A consistent breakdown keeps its total and adds no warnings."""
        estimate = normalized(estimate_text())

        result = synthesizer.synthesize(estimate, context_for(oracle, "80202"))

        assert result.total_cost.low == pytest.approx(15000)
        assert result.total_cost.high == pytest.approx(40000)
        assert result.warnings == estimate.warnings
        totals = result.category_totals
        assert totals[LineItemCategory.LABOR].low == pytest.approx(6000)
        assert totals[LineItemCategory.MATERIALS].high == pytest.approx(14000)
        assert totals[LineItemCategory.PERMITS].low == pytest.approx(800)
        assert LineItemCategory.DESIGN not in totals
        assert result.confidence == pytest.approx(0.82)

    def test_total_equals_category_sum(self, synthesizer, oracle):
        """The overall total is always the sum of category totals."""
        for text in (estimate_text(), estimate_text(BATHROOM_DIVERGENT_ESTIMATE), DEGRADED_PROSE):
            result = synthesizer.synthesize(normalized(text), context_for(oracle, "90210"))

            assert result.total_cost.low == pytest.approx(overall(result).low)
            assert result.total_cost.high == pytest.approx(overall(result).high)

    def test_divergent_total_warns(self, synthesizer, oracle):
        """Line items far from the reported total produce a warning."""
        estimate = normalized(estimate_text(BATHROOM_DIVERGENT_ESTIMATE))

        result = synthesizer.synthesize(estimate, context_for(oracle, None, RoomType.BATHROOM))

        assert result.total_cost == CostRange(low=1000, high=1800)
        assert len(result.warnings) == 1
        assert "differs from the AI-reported total" in result.warnings[0]
        assert [i.category for i in result.breakdown] == [LineItemCategory.LABOR, LineItemCategory.MATERIALS]

    def test_zero_cost_item_repriced(self, synthesizer, oracle):
        """Zero-cost items take the oracle's regional price."""
        estimate = normalized(estimate_text(ZERO_COST_ITEM_ESTIMATE))

        result = synthesizer.synthesize(estimate, context_for(oracle, "90210", RoomType.ROOF))

        roofing = result.breakdown[0]
        assert roofing.unit == "sq ft"
        assert roofing.unit_cost.low == pytest.approx(8.1)
        assert roofing.unit_cost.high == pytest.approx(27.0)
        assert roofing.total_cost.high == pytest.approx(2700)
        roofer = result.breakdown[1]
        assert roofer.total_cost == estimate.breakdown[1].total_cost

    def test_degraded_items_all_repriced(self, synthesizer, oracle):
        """Every line item of a degraded estimate is re-priced."""
        estimate = NormalizedEstimate(
            total_cost=CostRange(low=500, high=800),
            breakdown=[
                LineItem(raw_category="Fixtures", name="Toilet", unit_cost=CostRange(low=999, high=999)),
                LineItem(raw_category="Labor", name="Plumber", quantity=4, unit_cost=CostRange(low=1, high=1)),
            ],
            timeline=Timeline(days_low=1, days_high=2),
            confidence=0.7,
            parse_mode=ParseMode.DEGRADED,
        )

        result = synthesizer.synthesize(estimate, context_for(oracle, None, RoomType.BATHROOM))

        toilet, plumber = result.breakdown
        assert (toilet.unit_cost.low, toilet.unit_cost.high) == (100.0, 600.0)
        assert toilet.unit == "each"
        assert plumber.category == LineItemCategory.LABOR
        assert plumber.unit == "hour"
        assert plumber.total_cost == CostRange(low=220.0, high=520.0)

    def test_degraded_total_allocated(self, synthesizer, oracle):
        """A degraded estimate without items is split across categories."""
        estimate = normalized(DEGRADED_PROSE)

        result = synthesizer.synthesize(estimate, context_for(oracle, "80202"))

        assert ALLOCATION_WARNING in result.warnings
        assert list(result.category_totals) == [
            LineItemCategory.LABOR,
            LineItemCategory.MATERIALS,
            LineItemCategory.CONTINGENCY,
            LineItemCategory.OVERHEAD,
        ]
        assert result.category_totals[LineItemCategory.LABOR].low == pytest.approx(2000)
        assert result.total_cost.low == pytest.approx(5000)
        assert result.total_cost.high == pytest.approx(9000)
        assert not any("differs" in w for w in result.warnings)

    def test_zero_total_without_items(self, synthesizer, oracle):
        """A zero estimate stays zero with no categories."""
        estimate = normalized('{"totalCost": {"low": 0, "high": 0}}')

        result = synthesizer.synthesize(estimate, context_for(oracle, "80202"))

        assert result.total_cost == CostRange.zero()
        assert result.category_totals == {}
        assert result.breakdown == []

    def test_input_not_mutated(self, synthesizer, oracle):
        """Synthesis returns a new estimate."""
        estimate = normalized(estimate_text(ZERO_COST_ITEM_ESTIMATE))

        result = synthesizer.synthesize(estimate, context_for(oracle, "90210"))

        assert result is not estimate
        assert estimate.breakdown[0].is_zero_cost
        assert estimate.category_totals == {}


# =============================================================================
# CONFIDENCE AND REGION
# =============================================================================


class TestConfidenceAndRegion:
    """Tests for confidence adjustment and regional data."""

    def test_degraded_penalty(self, synthesizer, oracle):
        """Degraded parsing lowers confidence."""
        result = synthesizer.synthesize(normalized(DEGRADED_PROSE), context_for(oracle, "80202"))

        assert result.confidence == pytest.approx(0.6)

    def test_vision_bonus(self, synthesizer, oracle):
        """Vision analysis raises confidence."""
        result = synthesizer.synthesize(normalized(estimate_text(), vision_used=True), context_for(oracle, "80202"))

        assert result.confidence == pytest.approx(0.87)

    def test_confidence_clamped(self, oracle):
        """Adjusted confidence stays within [0, 1]."""
        synthesizer = QuoteSynthesizer(oracle=oracle, vision_bonus=0.5)
        estimate = normalized('{"totalCost": {"low": 1, "high": 2}, "confidence": 0.9}', vision_used=True)

        assert synthesizer.synthesize(estimate, context_for(oracle, None)).confidence == 1.0

    def test_region_from_context(self, synthesizer, oracle):
        """A mapped ZIP wins over the model's regional data."""
        result = synthesizer.synthesize(normalized(estimate_text()), context_for(oracle, "90210"))

        assert result.regional_data == RegionalData(multiplier=1.35, region="California")

    def test_region_from_model(self, synthesizer, oracle):
        """Without a mapped ZIP the model's regional data is used."""
        result = synthesizer.synthesize(normalized(estimate_text()), context_for(oracle, None))

        assert result.regional_data == RegionalData(multiplier=1.15, region="Colorado")

    def test_region_default(self, synthesizer, oracle):
        """Neither source yields the national average."""
        estimate = normalized(estimate_text(BATHROOM_DIVERGENT_ESTIMATE))

        result = synthesizer.synthesize(estimate, context_for(oracle, None))

        assert result.regional_data == RegionalData()
