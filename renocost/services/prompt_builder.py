"""Prompt construction for estimate generation.

Builds the text-only and vision prompts sent to the model tiers. Both
embed every request field, the pricing reference for the request's
region, and the exact JSON output schema.
"""

from typing import List

from renocost.models.estimate_request import EstimateRequest
from renocost.models.pricing import PricingContext
from renocost.services.pricing_tables import NATIONAL_AVERAGE


GENERIC_MATERIALS = "standard materials appropriate for this renovation type"
GENERIC_VISION_MATERIALS = "analyze visible materials and suggest appropriate upgrades"
GENERIC_DESCRIPTION = "general renovation and modernization"


# =============================================================================
# OUTPUT SCHEMA
# =============================================================================

OUTPUT_SCHEMA = """{
    "totalCost": {"low": <number>, "high": <number>},
    "breakdown": [
        {"category": "<Labor|Materials|Permits|Design|Contingency|Overhead>", "item": "<name>", "description": "<details>", "quantity": <number>, "unit": "<unit>", "costLow": <number>, "costHigh": <number>, "optional": <boolean>}
    ],
    "timeline": {"daysLow": <number>, "daysHigh": <number>, "recommendedSeason": "<Spring|Summer|Fall|Winter|Any>"},
    "notes": "<summary>",
    "warnings": ["<warning1>"],
    "recommendations": ["<rec1>"],
    "confidence": <0.0-1.0>,
    "regionalData": {"multiplier": <number>, "region": "<name>"}
}"""


# =============================================================================
# SYSTEM PROMPTS
# =============================================================================

ESTIMATOR_PROMPT = """You are an expert renovation cost estimator. Your role is to provide accurate, realistic cost estimates for home renovation projects based on current 2024-2025 market data.

## Estimation Guidelines:
1. Use realistic 2024-2025 pricing (not inflated)
2. Apply the regional cost multiplier from the pricing reference
3. Include labor at the reference rates for the trades involved
4. Factor in material costs at retail + 15-20% contractor markup
5. Add 10-15% contingency for unexpected issues
6. Provide timeline in working days (not calendar days)
7. costLow/costHigh of each line item are line totals (quantity x unit price)"""

VISION_ESTIMATOR_PROMPT = """You are an expert renovation cost estimator working from photos. Analyze the attached photos and provide an accurate renovation cost estimate.

## Photo Analysis Tasks:
1. Identify current room condition (excellent/good/fair/poor)
2. Note existing materials needing replacement
3. Estimate dimensions from visual cues
4. Identify potential issues or complications"""


def _yes_no(flag: bool) -> str:
    return "Yes" if flag else "No"


def _pricing_section(context: PricingContext) -> str:
    lines = context.summary_lines()
    return "## Pricing Reference:\n" + "\n".join(lines)


def _project_lines(request: EstimateRequest, materials: str) -> List[str]:
    lines = [
        f"- Project Name: {request.project_name or 'Renovation Project'}",
        f"- Room Type: {request.room_type.value}",
        f"- Square Footage: {request.square_footage:g} sq ft",
        f"- Location: {request.location or NATIONAL_AVERAGE}",
        f"- ZIP Code: {request.zip_code or 'N/A'}",
        f"- Quality Tier: {request.quality_tier.value} ({request.quality_tier.description})",
        f"- Materials: {materials}",
    ]
    if request.budget_min or request.budget_max:
        lines.append(f"- Budget Range: ${request.budget_min:,.0f} - ${request.budget_max:,.0f}")
    lines.extend([
        f"- Urgency: {request.urgency.value}",
        f"- Includes Permits: {_yes_no(request.includes_permits)}",
        f"- Includes Design Services: {_yes_no(request.includes_design)}",
    ])
    if request.description:
        lines.append(f"- Description: {request.description}")
    lines.append(f"- Additional Notes: {request.notes or 'None'}")
    return lines


def build_text_prompt(request: EstimateRequest, context: PricingContext) -> str:
    """Build the text-only estimate prompt.

    Args:
        request: Project description.
        context: Pricing reference for the request.

    Returns:
        Prompt text.
    """
    materials = ", ".join(request.materials) if request.materials else GENERIC_MATERIALS
    project = "\n".join(_project_lines(request, materials))

    return f"""{ESTIMATOR_PROMPT}

## Project Details:
{project}

{_pricing_section(context)}

## Output Requirements:
Return ONLY valid JSON (no markdown, no explanation). Use this exact structure:

{OUTPUT_SCHEMA}

Include 8-12 detailed line items. Be specific and realistic."""


def build_vision_prompt(request: EstimateRequest, context: PricingContext) -> str:
    """Build the estimate prompt used when photos are attached."""
    materials = ", ".join(request.materials) if request.materials else GENERIC_VISION_MATERIALS
    lines = _project_lines(request, materials)
    if not request.description:
        lines.append(f"- Description: {GENERIC_DESCRIPTION}")
    if request.square_footage <= 0:
        lines[2] = "- Square Footage: Estimate from photos"
    project = "\n".join(lines)

    return f"""{VISION_ESTIMATOR_PROMPT}

## Project Details:
{project}

{_pricing_section(context)}

## Output Requirements:
Return ONLY valid JSON (no markdown). Use this exact structure:

{OUTPUT_SCHEMA}

Include 8-12 line items based on what you observe in the photos."""
