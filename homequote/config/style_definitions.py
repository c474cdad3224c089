"""
Design style definitions used to bias catalog selection.

Each style carries:
1. keywords: short tokens matched against catalog free text (moderate weight)
2. features: ordered descriptive tokens, the first three weigh most
3. negatives: tokens a matching item should avoid
4. room_hints: per-room tokens that nudge subtype/finish choices
"""
from typing import Dict, List, Optional

PREDEFINED_STYLES = [
    "indian_contemporary",
    "modern",
    "minimalist",
    "japandi",
    "scandinavian",
    "mid_century_modern",
    "modern_luxury",
    "contemporary",
    "traditional",
    "boho",
    "eclectic",
    "industrial",
]

STYLE_PROFILES: Dict[str, Dict] = {
    "indian_contemporary": {
        "name": "Indian Contemporary",
        "description": "Modern Indian design with subtle craft elements and warm tones",
        "keywords": ["indian", "handcrafted", "sheesham", "carved", "brass"],
        "features": ["solid wood", "brass accents", "jaali", "warm tones", "handwoven"],
        "negatives": ["chrome", "high gloss"],
        "room_hints": {
            "living": ["sheesham", "jaali"],
            "bedroom": ["carved headboard", "solid wood"],
            "dining": ["solid wood top", "cane"],
        },
    },
    "modern": {
        "name": "Modern",
        "description": "Clean and functional design with neutral colors",
        "keywords": ["modern", "sleek", "contemporary", "clean"],
        "features": ["clean lines", "neutral fabric", "matte finish", "metal legs", "low profile"],
        "negatives": ["ornate", "distressed"],
        "room_hints": {
            "living": ["low-profile", "neutral fabric"],
            "bedroom": ["upholstered", "handle-less"],
            "dining": ["slim profile", "metal legs"],
        },
    },
    "minimalist": {
        "name": "Minimalist",
        "description": "Ultra clean design, minimal ornamentation, simple geometric forms",
        "keywords": ["minimal", "minimalist", "simple", "plain"],
        "features": ["handle-less", "matte", "neutral", "slim profile", "white"],
        "negatives": ["ornate", "heavy carving", "baroque", "floral"],
        "room_hints": {
            "living": ["low-profile", "neutral fabric"],
            "bedroom": ["handle-less", "matte"],
            "dining": ["slim profile", "neutral finish"],
        },
    },
    "japandi": {
        "name": "Japandi",
        "description": "Japanese-Scandinavian warm minimalism with natural materials",
        "keywords": ["japandi", "zen", "natural", "oak"],
        "features": ["light wood", "low profile", "linen", "natural finish", "rounded edges"],
        "negatives": ["glossy", "ornate", "neon"],
        "room_hints": {
            "living": ["low-profile", "light wood"],
            "bedroom": ["platform", "oak"],
            "dining": ["solid wood top", "natural finish"],
        },
    },
    "scandinavian": {
        "name": "Scandinavian",
        "description": "Light woods, hygge comfort, airy and bright spaces",
        "keywords": ["scandinavian", "nordic", "scandi", "oak", "beech"],
        "features": ["light wood", "linen fabric", "tapered legs", "white", "textured fabric"],
        "negatives": ["baroque", "heavy carving"],
        "room_hints": {
            "living": ["light wood", "linen fabric"],
            "bedroom": ["oak", "textured fabric"],
            "dining": ["tapered legs", "light wood"],
        },
    },
    "mid_century_modern": {
        "name": "Mid-Century Modern",
        "description": "1950s-60s inspired design with tapered legs and organic curves",
        "keywords": ["mid-century", "retro", "walnut", "teak"],
        "features": ["tapered legs", "walnut", "curved", "tufted", "bold colour"],
        "negatives": ["distressed", "ornate"],
        "room_hints": {
            "living": ["tapered legs", "tufted"],
            "bedroom": ["walnut", "tapered legs"],
            "dining": ["curved", "walnut"],
        },
    },
    "modern_luxury": {
        "name": "Modern Luxury",
        "description": "Premium materials and finishes with a hotel-like feel",
        "keywords": ["luxury", "velvet", "marble", "premium", "glam"],
        "features": ["velvet", "marble top", "gold finish", "tufted", "high gloss"],
        "negatives": ["rustic", "distressed", "plastic"],
        "room_hints": {
            "living": ["velvet", "marble"],
            "bedroom": ["tufted headboard", "velvet"],
            "dining": ["marble top", "gold finish"],
        },
    },
    "contemporary": {
        "name": "Contemporary",
        "description": "Current trend-driven design with mixed materials",
        "keywords": ["contemporary", "modern", "trendy"],
        "features": ["mixed materials", "glass", "metal", "neutral fabric", "curved"],
        "negatives": ["antique"],
        "room_hints": {
            "living": ["glass", "curved"],
            "bedroom": ["upholstered", "mixed materials"],
            "dining": ["glass top", "metal legs"],
        },
    },
    "traditional": {
        "name": "Traditional",
        "description": "Classic, timeless furniture with detailed woodwork",
        "keywords": ["traditional", "classic", "carved", "antique"],
        "features": ["carved", "solid wood", "rich upholstery", "ornate", "teak"],
        "negatives": ["ultra-modern", "acrylic"],
        "room_hints": {
            "living": ["carved", "rich upholstery"],
            "bedroom": ["four poster", "carved"],
            "dining": ["solid wood top", "carved"],
        },
    },
    "boho": {
        "name": "Boho",
        "description": "Relaxed bohemian style with layered textures and natural materials",
        "keywords": ["boho", "bohemian", "rattan", "cane", "jute"],
        "features": ["rattan", "cane", "macrame", "jute", "natural fibre"],
        "negatives": ["chrome", "high gloss"],
        "room_hints": {
            "living": ["rattan", "cane"],
            "bedroom": ["cane headboard", "jute"],
            "dining": ["cane", "solid wood top"],
        },
    },
    "eclectic": {
        "name": "Eclectic",
        "description": "Intentional mix of styles with a collected look",
        "keywords": ["eclectic", "vintage", "colourful"],
        "features": ["mixed materials", "vintage", "patterned", "bold colour", "brass"],
        "negatives": [],
        "room_hints": {
            "living": ["patterned", "vintage"],
            "bedroom": ["vintage", "bold colour"],
            "dining": ["mixed materials", "brass"],
        },
    },
    "industrial": {
        "name": "Industrial",
        "description": "Raw materials like metal and exposed wood with an urban feel",
        "keywords": ["industrial", "metal", "iron", "loft", "reclaimed"],
        "features": ["metal frame", "black metal", "reclaimed wood", "leather", "exposed bulb"],
        "negatives": ["floral", "pastel", "ornate"],
        "room_hints": {
            "living": ["metal frame", "exposed bulb"],
            "bedroom": ["leather", "black metal"],
            "dining": ["solid wood top", "metal legs"],
        },
    },
}

STYLE_ALIASES = {
    "indian": "indian_contemporary",
    "indian_modern": "indian_contemporary",
    "traditional_indian": "indian_contemporary",
    "ethnic": "indian_contemporary",
    "minimal": "minimalist",
    "scandi": "scandinavian",
    "nordic": "scandinavian",
    "hygge": "scandinavian",
    "mcm": "mid_century_modern",
    "midcentury": "mid_century_modern",
    "mid_century": "mid_century_modern",
    "retro": "mid_century_modern",
    "luxury": "modern_luxury",
    "luxurious": "modern_luxury",
    "glam": "modern_luxury",
    "classic": "traditional",
    "bohemian": "boho",
    "boho_chic": "boho",
    "urban": "industrial",
    "loft": "industrial",
    "warehouse": "industrial",
    "japanese": "japandi",
    "zen": "japandi",
}


def is_valid_style(style: str) -> bool:
    """Check if a style is in the predefined list."""
    return style in PREDEFINED_STYLES


def normalize_style(style: Optional[str]) -> Optional[str]:
    """
    Normalize style name to match predefined styles.
    Handles common variations and aliases. Returns None for unknown styles.
    """
    if not style:
        return None
    style_lower = style.lower().strip().replace(" ", "_").replace("-", "_")

    if style_lower in PREDEFINED_STYLES:
        return style_lower
    if style_lower in STYLE_ALIASES:
        return STYLE_ALIASES[style_lower]

    # Longer phrases like "warm modern look": match any known token inside
    for token in style_lower.split("_"):
        if token in PREDEFINED_STYLES:
            return token
        if token in STYLE_ALIASES:
            return STYLE_ALIASES[token]
    return None


def style_names() -> List[str]:
    """Style ids plus aliases, longest first, for free-text theme detection"""
    names = set(PREDEFINED_STYLES) | set(STYLE_ALIASES)
    return sorted((n.replace("_", " ") for n in names), key=len, reverse=True)
