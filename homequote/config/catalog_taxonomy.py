"""
Item-type taxonomy, room vocabulary and catalog category mapping.

These tables are shared by:
1. The command parser (type and room aliases)
2. The essentials expander (room validation)
3. The selection engine and alternatives service (catalog category resolution)
"""
import re
from typing import List, Optional, Sequence, Tuple

# Closed set of item types a requested line may carry
ITEM_TYPES = [
    "sofa",
    "sofa_bed",
    "chair",
    "table",
    "tv_bench",
    "bed",
    "wardrobe",
    "mirror",
    "mirror_cabinet",
    "cabinet",
    "bookcase",
    "shelf",
    "storage_combination",
    "lamp",
    "stool",
    "shoe_rack",
    "washstand",
    "desk",
    "drawer",
]

TABLE_SUBTYPES = ["coffee", "side", "bedside", "dining"]

# Canonical base rooms; specific bedrooms ("master bedroom", "bedroom 2") are derived from "bedroom"
BASE_ROOMS = [
    "living",
    "bedroom",
    "kitchen",
    "bathroom",
    "dining",
    "foyer",
    "study",
    "balcony",
    "utility",
]

# Free-text phrases mapped to (type, subtype). Ordered: longer phrases first so that
# "sofa bed" wins over "sofa" and "tv table" wins over "table".
TYPE_ALIASES: List[Tuple[str, str, Optional[str]]] = [
    (r"sofa[\s_-]*beds?", "sofa_bed", None),
    (r"mirror[\s_-]*cabinets?", "mirror_cabinet", None),
    (r"storage[\s_-]*combinations?", "storage_combination", None),
    (r"shoe[\s_-]*racks?", "shoe_rack", None),
    (r"tv[\s_-]*(?:bench(?:es)?|units?|stands?|cabinets?|tables?|consoles?)|tv", "tv_bench", None),
    (r"coffee[\s_-]*tables?|cent(?:er|re)[\s_-]*tables?", "table", "coffee"),
    (r"bedside[\s_-]*tables?|night[\s_-]*stands?|bedsides?", "table", "bedside"),
    (r"side[\s_-]*tables?|end[\s_-]*tables?", "table", "side"),
    (r"dining[\s_-]*tables?", "table", "dining"),
    (r"wash[\s_-]*(?:stands?|basins?)", "washstand", None),
    (r"sofas?|couch(?:es)?|sectionals?", "sofa", None),
    (r"book[\s_-]*(?:cases?|shelf|shelves)", "bookcase", None),
    (r"wardrobes?|almirahs?|closets?", "wardrobe", None),
    (r"shelf|shelves|shelving", "shelf", None),
    (r"mirrors?", "mirror", None),
    (r"cabinets?", "cabinet", None),
    (r"lamps?|lights?", "lamp", None),
    (r"drawers?|dressers?|chests?", "drawer", None),
    (r"desks?|study[\s_-]*tables?", "desk", None),
    (r"arm[\s_-]*chairs?|chairs?", "chair", None),
    (r"stools?", "stool", None),
    (r"beds?", "bed", None),
    (r"tables?", "table", None),
]

_COMPILED_TYPE_ALIASES = [(re.compile(rf"^(?:{pattern})$"), item_type, subtype) for pattern, item_type, subtype in TYPE_ALIASES]

# Room aliases mapped to canonical base rooms
ROOM_ALIASES = {
    "living": ["living room", "living", "lounge", "hall", "drawing room"],
    "kitchen": ["kitchen"],
    "bathroom": ["bathroom", "bath", "washroom", "toilet", "lavatory", "restroom", "wc"],
    "dining": ["dining room", "dining area", "dining"],
    "foyer": ["foyer", "entryway", "entrance", "entry"],
    "study": ["study", "home office", "office", "work station", "workstation"],
    "balcony": ["balcony", "veranda", "verandah", "patio", "terrace"],
    "utility": ["utility", "laundry"],
    "bedroom": ["bedroom", "bed room"],
}

# Catalog category per line type; tables refine by subcategory
TYPE_CATEGORY_MAP = {
    "sofa": "Sofa",
    "sofa_bed": "Sofa-bed",
    "tv_bench": "Tv-bench",
    "table": "Table",
    "chair": "Chair",
    "bed": "Bed",
    "wardrobe": "Wardrobe",
    "mirror": "Mirror",
    "mirror_cabinet": "Mirror cabinet",
    "cabinet": "Cabinet",
    "bookcase": "Bookcase",
    "shelf": "Shelf",
    "storage_combination": "Storage combination",
    "stool": "Stool",
    "lamp": "Lamp",
    "shoe_rack": "Shoe rack",
    "washstand": "Wash-stand",
    "desk": "Desk",
    "drawer": "Drawer",
}

# Chair subcategory depends on the room it is placed in
CHAIR_SUBCATEGORY_BY_ROOM = {
    "living": "armchair",
    "balcony": "armchair",
    "dining": "dining",
    "study": "office",
}

# Preferred rooms per type when a command adds a line without naming a room
TYPE_ROOM_PREFERENCES = {
    "sofa": ["living"],
    "sofa_bed": ["living", "study"],
    "tv_bench": ["living"],
    "table": ["living"],
    "bed": ["bedroom"],
    "wardrobe": ["bedroom"],
    "mirror": ["bedroom", "bathroom"],
    "mirror_cabinet": ["bathroom"],
    "washstand": ["bathroom"],
    "bookcase": ["study", "living"],
    "cabinet": ["kitchen", "living"],
    "shelf": ["kitchen", "living"],
    "lamp": ["living"],
    "desk": ["study", "bedroom"],
    "shoe_rack": ["foyer", "living"],
    "drawer": ["bedroom"],
}

MATERIAL_ALIASES = {
    "fabric": ["fabric", "cloth", "linen", "cotton", "velvet", "upholstered"],
    "leather": ["leather", "leatherette", "faux leather"],
    "glass": ["glass"],
    "metal": ["metal", "iron", "steel", "aluminium", "aluminum"],
    "wooden": ["wood", "wooden", "teak", "sheesham", "oak", "walnut", "mango wood", "engineered wood"],
}

SHAPE_ALIASES = {
    "curved": ["curved", "round", "circle", "circular", "oval"],
    "rectangular": ["rectangular", "rectangle", "square", "straight"],
}

# Large-format sofa shapes, preferred when no sofa meets the seat floor
SECTIONAL_KEYWORDS = ["sectional", "chaise", "corner", "l-shape", "l shape", "u-shape", "u shape", "modular"]

# Preferred bed sizes by room when the line carries no explicit size
BED_SIZE_PREFERENCES = {
    "master bedroom": ["king", "queen"],
    "bedroom": ["queen", "double"],
}

TABLE_SUBTYPE_ROOMS = {
    "coffee": ["living"],
    "side": ["living", "balcony"],
    "bedside": ["bedroom"],
    "dining": ["dining", "kitchen"],
}

_SPECIFIC_BEDROOM = re.compile(r"^(?:(?:master|guest|kids?)\s+bedroom(?:\s+\d+)?|bedroom(?:\s+\d+)?)$")


def normalize_item_type(raw: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Map a free-text item phrase to a (type, subtype) pair.

    Returns (None, None) when the phrase does not name a known item type.
    """
    text = re.sub(r"\s+", " ", (raw or "").lower().strip())
    text = re.sub(r"^(?:the|a|an|my)\s+", "", text)
    text = text.replace("_", " ")
    if not text:
        return None, None

    for pattern, item_type, subtype in _COMPILED_TYPE_ALIASES:
        if pattern.match(text):
            return item_type, subtype

    underscored = text.replace(" ", "_")
    if underscored in ITEM_TYPES:
        return underscored, None
    return None, None


def normalize_room(raw: str) -> Optional[str]:
    """Map a room phrase to its canonical name, keeping specific bedroom names intact"""
    text = re.sub(r"\s+", " ", (raw or "").lower().strip())
    if not text:
        return None
    if is_bedroom(text):
        if text in ("bedroom", "bed room", "bedrooms"):
            return "bedroom"
        return re.sub(r"^kid\s", "kids ", text)
    for canonical, aliases in ROOM_ALIASES.items():
        if text in aliases:
            return canonical
    return None


def is_bedroom(room: str) -> bool:
    """True for the generic bedroom and any specific bedroom name"""
    return bool(_SPECIFIC_BEDROOM.match((room or "").lower().strip()))


def is_valid_room(room: str) -> bool:
    return normalize_room(room) is not None


def resolve_category(item_type: str, subtype: Optional[str] = None, room: Optional[str] = None) -> Tuple[str, Optional[str]]:
    """
    Resolve the catalog (category, subcategory_like) for a line.

    Args:
        item_type: Line type from ITEM_TYPES
        subtype: Optional table subtype
        room: Room the line belongs to (drives chair subcategory)

    Returns:
        Tuple of catalog category and an optional subcategory substring
    """
    category = TYPE_CATEGORY_MAP.get(item_type, item_type.replace("_", " ").capitalize())
    subcategory = None
    if item_type == "table" and subtype in TABLE_SUBTYPES:
        subcategory = subtype
    elif item_type == "chair" and room:
        base_room = "bedroom" if is_bedroom(room) else room
        subcategory = CHAIR_SUBCATEGORY_BY_ROOM.get(base_room)
    return category, subcategory


def infer_room_for_type(item_type: str, subtype: Optional[str], rooms: Sequence[str]) -> str:
    """Pick the room a newly added line should live in, given the rooms already planned"""
    preferences = TABLE_SUBTYPE_ROOMS.get(subtype) if item_type == "table" and subtype else None
    preferences = preferences or TYPE_ROOM_PREFERENCES.get(item_type, [])

    for preferred in preferences:
        for room in rooms:
            if room == preferred or (preferred == "bedroom" and is_bedroom(room)):
                return room
    if preferences and not rooms:
        return "master bedroom" if preferences[0] == "bedroom" else preferences[0]
    return rooms[0] if rooms else "living"
