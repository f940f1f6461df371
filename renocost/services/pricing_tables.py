"""Static pricing reference data for RenoCost.

Base material prices, labor rates, ZIP prefix -> state ranges, state
multipliers and room cost references. Loaded once at import and never
mutated. Table order is significant: it breaks ties between equally
long name matches.
"""

from typing import Dict, List, Tuple

from renocost.models.estimate_request import RoomType
from renocost.models.pricing import ZipPrefixRange


# =============================================================================
# MATERIAL PRICES
# =============================================================================

# name -> (average price, unit, range low, range high), national average
MATERIAL_PRICES: Dict[str, Tuple[float, str, float, float]] = {
    # Flooring
    "hardwood flooring": (8.0, "sq ft", 6.0, 15.0),
    "engineered hardwood": (6.0, "sq ft", 4.0, 10.0),
    "laminate flooring": (3.0, "sq ft", 1.50, 5.0),
    "luxury vinyl plank": (4.0, "sq ft", 2.50, 7.0),
    "tile flooring": (5.0, "sq ft", 2.0, 15.0),
    "carpet": (3.0, "sq ft", 1.0, 6.0),
    # Countertops
    "granite countertops": (60.0, "sq ft", 40.0, 100.0),
    "quartz countertops": (75.0, "sq ft", 50.0, 150.0),
    "marble countertops": (100.0, "sq ft", 75.0, 200.0),
    "laminate countertops": (20.0, "sq ft", 10.0, 40.0),
    "butcher block": (50.0, "sq ft", 30.0, 80.0),
    # Cabinets
    "stock cabinets": (150.0, "linear ft", 100.0, 250.0),
    "semi-custom cabinets": (300.0, "linear ft", 200.0, 500.0),
    "custom cabinets": (600.0, "linear ft", 400.0, 1200.0),
    # Paint
    "interior paint": (35.0, "gallon", 25.0, 60.0),
    "exterior paint": (45.0, "gallon", 30.0, 75.0),
    "primer": (25.0, "gallon", 15.0, 40.0),
    # Drywall
    "drywall": (15.0, "sheet", 10.0, 25.0),
    "drywall installation": (2.0, "sq ft", 1.50, 3.50),
    # Plumbing fixtures
    "toilet": (200.0, "each", 100.0, 600.0),
    "bathroom sink": (150.0, "each", 75.0, 400.0),
    "kitchen sink": (250.0, "each", 100.0, 800.0),
    "faucet": (150.0, "each", 50.0, 500.0),
    "bathtub": (400.0, "each", 200.0, 2000.0),
    "shower": (800.0, "each", 400.0, 3000.0),
    # Electrical
    "electrical outlet": (15.0, "each", 5.0, 25.0),
    "light switch": (10.0, "each", 5.0, 20.0),
    "recessed light": (30.0, "each", 15.0, 75.0),
    "ceiling fan": (150.0, "each", 50.0, 400.0),
    "electrical panel": (1500.0, "each", 1000.0, 3000.0),
    # Windows & doors
    "vinyl window": (350.0, "each", 200.0, 600.0),
    "wood window": (500.0, "each", 300.0, 1000.0),
    "interior door": (150.0, "each", 75.0, 400.0),
    "exterior door": (500.0, "each", 250.0, 2000.0),
    # Roofing
    "asphalt shingles": (100.0, "bundle", 75.0, 150.0),
    "metal roofing": (10.0, "sq ft", 6.0, 20.0),
    # Appliances
    "refrigerator": (1200.0, "each", 600.0, 3000.0),
    "stove": (800.0, "each", 400.0, 2500.0),
    "dishwasher": (600.0, "each", 350.0, 1500.0),
    "microwave": (200.0, "each", 100.0, 500.0),
    "washer": (700.0, "each", 400.0, 1500.0),
    "dryer": (650.0, "each", 350.0, 1400.0),
}

DEFAULT_MATERIAL_PRICE: Tuple[float, str, float, float] = (50.0, "each", 25.0, 100.0)
MATCHED_CONFIDENCE = 0.9
DEFAULT_CONFIDENCE = 0.7
MATERIAL_SOURCE = "Industry Average 2024-2025"


# =============================================================================
# LABOR RATES
# =============================================================================

# trade -> (hourly rate, range low, range high), national average
LABOR_RATES: Dict[str, Tuple[float, float, float]] = {
    "general contractor": (75.0, 50.0, 150.0),
    "carpenter": (55.0, 35.0, 85.0),
    "electrician": (75.0, 50.0, 120.0),
    "plumber": (80.0, 55.0, 130.0),
    "hvac technician": (85.0, 60.0, 140.0),
    "painter": (45.0, 30.0, 70.0),
    "tile installer": (55.0, 40.0, 85.0),
    "flooring installer": (50.0, 35.0, 75.0),
    "roofer": (55.0, 40.0, 90.0),
    "drywall installer": (50.0, 35.0, 75.0),
    "cabinet installer": (60.0, 45.0, 90.0),
    "demolition worker": (40.0, 25.0, 60.0),
    "handyman": (50.0, 30.0, 80.0),
}

DEFAULT_TRADE = "general contractor"
LABOR_SOURCE = "BLS & Industry Data 2024"


# Trades typically involved per room type
TRADES_BY_ROOM: Dict[RoomType, List[str]] = {
    RoomType.KITCHEN: [
        "general contractor", "electrician", "plumber",
        "cabinet installer", "tile installer", "painter",
    ],
    RoomType.BATHROOM: ["general contractor", "plumber", "electrician", "tile installer", "painter"],
    RoomType.FLOORING: ["flooring installer", "carpenter"],
    RoomType.ELECTRICAL: ["electrician"],
    RoomType.PLUMBING: ["plumber"],
    RoomType.HVAC: ["hvac technician"],
    RoomType.ROOF: ["roofer", "general contractor"],
    RoomType.BASEMENT: ["general contractor", "electrician", "drywall installer", "painter"],
    RoomType.ATTIC: ["general contractor", "electrician", "drywall installer", "painter"],
}

DEFAULT_TRADES: List[str] = ["general contractor", "carpenter", "painter"]


# =============================================================================
# ROOM COST REFERENCE ($ per sq ft, national average, standard quality)
# =============================================================================

ROOM_COST_PER_SQFT: Dict[RoomType, Tuple[float, float]] = {
    RoomType.KITCHEN: (75.0, 200.0),
    RoomType.BATHROOM: (70.0, 175.0),
    RoomType.BEDROOM: (25.0, 75.0),
    RoomType.LIVING_ROOM: (20.0, 60.0),
    RoomType.BASEMENT: (25.0, 60.0),
    RoomType.ATTIC: (40.0, 80.0),
    RoomType.GARAGE: (15.0, 40.0),
    RoomType.DECK: (15.0, 45.0),
    RoomType.WHOLE_HOUSE: (50.0, 150.0),
    RoomType.ADDITION: (80.0, 200.0),
    RoomType.EXTERIOR: (10.0, 30.0),
    RoomType.ROOF: (4.0, 12.0),
    RoomType.FLOORING: (5.0, 18.0),
    RoomType.ELECTRICAL: (6.0, 15.0),
    RoomType.PLUMBING: (10.0, 35.0),
    RoomType.HVAC: (20.0, 45.0),
}


# =============================================================================
# REGIONAL DATA
# =============================================================================

# 3-digit ZIP prefix ranges (inclusive, non-overlapping)
ZIP_PREFIX_RANGES: List[ZipPrefixRange] = [
    ZipPrefixRange(start=21, end=27, state="MA"),
    ZipPrefixRange(start=100, end=149, state="NY"),
    ZipPrefixRange(start=150, end=196, state="PA"),
    ZipPrefixRange(start=200, end=205, state="DC"),
    ZipPrefixRange(start=206, end=219, state="MD"),
    ZipPrefixRange(start=270, end=289, state="NC"),
    ZipPrefixRange(start=290, end=299, state="SC"),
    ZipPrefixRange(start=300, end=319, state="GA"),
    ZipPrefixRange(start=320, end=339, state="FL"),
    ZipPrefixRange(start=350, end=369, state="AL"),
    ZipPrefixRange(start=386, end=397, state="MS"),
    ZipPrefixRange(start=430, end=458, state="OH"),
    ZipPrefixRange(start=480, end=499, state="MI"),
    ZipPrefixRange(start=570, end=577, state="SD"),
    ZipPrefixRange(start=600, end=629, state="IL"),
    ZipPrefixRange(start=750, end=799, state="TX"),
    ZipPrefixRange(start=800, end=816, state="CO"),
    ZipPrefixRange(start=900, end=961, state="CA"),
    ZipPrefixRange(start=967, end=968, state="HI"),
    ZipPrefixRange(start=980, end=994, state="WA"),
    ZipPrefixRange(start=995, end=999, state="AK"),
]

STATE_MULTIPLIERS: Dict[str, float] = {
    # High cost
    "CA": 1.35,
    "NY": 1.40,
    "HI": 1.50,
    "AK": 1.45,
    "DC": 1.35,
    "MA": 1.25,
    # Mid-high cost
    "WA": 1.20,
    "CO": 1.15,
    "MD": 1.15,
    # Low cost
    "AL": 0.85,
    "MS": 0.85,
    "SD": 0.85,
    "SC": 0.90,
}

STATE_NAMES: Dict[str, str] = {
    "AK": "Alaska",
    "AL": "Alabama",
    "CA": "California",
    "CO": "Colorado",
    "DC": "District of Columbia",
    "FL": "Florida",
    "GA": "Georgia",
    "HI": "Hawaii",
    "IL": "Illinois",
    "MA": "Massachusetts",
    "MD": "Maryland",
    "MI": "Michigan",
    "MS": "Mississippi",
    "NC": "North Carolina",
    "NY": "New York",
    "OH": "Ohio",
    "PA": "Pennsylvania",
    "SC": "South Carolina",
    "SD": "South Dakota",
    "TX": "Texas",
    "WA": "Washington",
}

NATIONAL_AVERAGE = "National Average"
