"""
Budget bands, tier multipliers and per-type price ceilings.

All amounts are whole INR. The values are product policy; change them here rather
than in the services that consume them.
"""

TIERS = ["economy", "premium", "luxury"]

# Total-budget bands per BHK: {tier: (low, high)}
BUDGET_BANDS = {
    1: {"economy": (300000, 400000), "premium": (600000, 700000), "luxury": (800000, 1200000)},
    2: {"economy": (400000, 600000), "premium": (700000, 900000), "luxury": (1000000, 1200000)},
    3: {"economy": (600000, 800000), "premium": (900000, 1200000), "luxury": (1400000, 1800000)},
    4: {"economy": (900000, 1200000), "premium": (1400000, 1800000), "luxury": (2000000, 2500000)},
}

TIER_MULTIPLIERS = {
    "economy": 1.0,
    "premium": 1.4,
    "luxury": 1.9,
}

# Base price ceiling per line kind, as (<=2 BHK, 3 BHK, >=4 BHK)
PRICE_CAPS = {
    "sofa": (35000, 55000, 80000),
    "tv_bench": (15000, 22000, 30000),
    "table:coffee": (8000, 12000, 18000),
    "table:side": (5000, 8000, 12000),
    "table:bedside": (5000, 8000, 12000),
    "table:dining": (25000, 40000, 60000),
    "bed": (30000, 45000, 70000),
    "wardrobe": (30000, 50000, 80000),
    "chair:dining": (5000, 8000, 12000),
    "chair": (7000, 12000, 18000),
    "mirror": (3000, 5000, 8000),
    "shelf": (6000, 9000, 14000),
    "cabinet": (12000, 18000, 28000),
    "bookcase": (10000, 15000, 22000),
    "lamp": (2500, 4000, 7000),
    "washstand": (9000, 14000, 22000),
}

# Fallback ceiling for types without a PRICE_CAPS entry, by carpet area
AREA_BASE_CAPS = [
    (800, 15000),
    (1400, 20000),
]
AREA_BASE_CAP_LARGE = 30000
AREA_BASE_CAP_UNKNOWN = 20000
STYLE_CHANGE_CAP_FACTOR = 1.2

# Carpet-area size tiers (sqft upper bounds)
AREA_SIZE_TIERS = [
    (800, "small"),
    (1200, "medium"),
    (1800, "large"),
]
AREA_SIZE_TIER_MAX = "xl"

# Dining chairs per tier
DINING_CHAIRS_BY_TIER = {
    "economy": 4,
    "premium": 6,
    "luxury": 8,
}

# Minimum sofa seats by living-room width in feet, checked widest first
SOFA_MIN_SEATS_BY_WIDTH = [
    (14, 5),
    (12, 4),
    (10, 3),
]

# Preferred sofa seats when no width or seater count is known: 3+ BHK, smaller homes
SOFA_MIN_SEATS_LARGE_HOME = 4
SOFA_MIN_SEATS_SMALL_HOME = 3

FEET_PER_METRE = 3.28084
