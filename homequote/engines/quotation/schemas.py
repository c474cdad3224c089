"""
Data types for the quotation engine.

Requested lines, catalog items and selections are immutable value types; every
pipeline stage returns new objects instead of mutating its inputs.
"""
import re
from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from homequote.config.catalog_taxonomy import ITEM_TYPES

from .errors import InconsistentSessionPriorError

SEAT_PATTERN = re.compile(r"(\d+)\s*-?\s*seat(?:er)?s?\b")


class SelectionReason(str, Enum):
    """How a selection was resolved"""

    OK = "ok"
    REUSED = "reused"
    PREFERRED = "preferred"
    NO_MATCH = "no_match"
    ERROR = "error"


class ChangeReason(str, Enum):
    """Why a command touched a line"""

    ADDED = "added"
    REMOVED = "removed"
    QTY = "qty"
    MODIFIED = "modified"
    REPLACED = "replaced"


class DeltaReason(str, Enum):
    """Per-line difference between two quotations"""

    ADDED = "added"
    REMOVED = "removed"
    REPLACED = "replaced"
    QTY = "qty"
    PRICE = "price"
    UNCHANGED = "unchanged"


class BudgetScope(str, Enum):
    PER_ITEM = "per_item"
    TOTAL = "total"


# ==================== Lines ====================


@dataclass(frozen=True)
class LineSpecs:
    """Closed set of optional line specifications"""

    subtype: Optional[str] = None
    material: Optional[str] = None
    seater_count: Optional[int] = None
    shape: Optional[str] = None
    size: Optional[str] = None
    feature_flags: FrozenSet[str] = frozenset()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["feature_flags"] = sorted(self.feature_flags)
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LineSpecs":
        data = data or {}
        seater = data.get("seater_count")
        return cls(
            subtype=data.get("subtype") or None,
            material=data.get("material") or None,
            seater_count=int(seater) if seater not in (None, "") else None,
            shape=data.get("shape") or None,
            size=data.get("size") or None,
            feature_flags=frozenset(data.get("feature_flags") or []),
        )


def line_signature(item_type: str, specs: LineSpecs) -> str:
    """Stable identity of a line across turns: type|subtype|seater|material, room excluded"""
    parts = [
        item_type or "",
        specs.subtype or "",
        str(specs.seater_count) if specs.seater_count else "",
        specs.material or "",
    ]
    return "|".join(parts).lower()


@dataclass(frozen=True)
class RequestedLine:
    """One row of the furnishing plan"""

    item_type: str
    room: str
    quantity: int = 1
    specs: LineSpecs = field(default_factory=LineSpecs)
    preferred_item_id: Optional[int] = None
    price_ceiling: Optional[int] = None
    min_seats: Optional[int] = None
    bhk_context: Optional[int] = None

    def __post_init__(self):
        if self.item_type not in ITEM_TYPES:
            raise ValueError(f"Unknown item type: {self.item_type}")
        if int(self.quantity) < 1:
            raise ValueError(f"Quantity must be >= 1, got {self.quantity}")

    @property
    def subtype(self) -> Optional[str]:
        return self.specs.subtype

    @property
    def signature(self) -> str:
        return line_signature(self.item_type, self.specs)

    @property
    def diversity_key(self) -> str:
        return f"{self.item_type}|{self.specs.subtype or ''}"

    @property
    def line_key(self) -> Tuple[str, str]:
        """(room, signature); identifies one line across turns"""
        return self.room, self.signature

    def with_changes(self, **changes) -> "RequestedLine":
        return replace(self, **changes)

    def with_specs(self, **changes) -> "RequestedLine":
        return replace(self, specs=replace(self.specs, **changes))

    def stripped(self) -> "RequestedLine":
        """Drop pinning and per-turn policy annotations, keeping structure"""
        return replace(self, preferred_item_id=None, price_ceiling=None, min_seats=None, bhk_context=None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.item_type,
            "room": self.room,
            "quantity": self.quantity,
            "specifications": self.specs.to_dict(),
            "preferred_item_id": self.preferred_item_id,
            "price_ceiling": self.price_ceiling,
            "min_seats": self.min_seats,
            "bhk_context": self.bhk_context,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RequestedLine":
        return cls(
            item_type=data["type"],
            room=data["room"],
            quantity=int(data.get("quantity") or 1),
            specs=LineSpecs.from_dict(data.get("specifications")),
            preferred_item_id=data.get("preferred_item_id"),
            price_ceiling=data.get("price_ceiling"),
            min_seats=data.get("min_seats"),
            bhk_context=data.get("bhk_context"),
        )


# ==================== Catalog ====================


@dataclass(frozen=True)
class CatalogItem:
    """Read-only copy of a catalog record"""

    id: int
    name: str
    price: int
    category: str
    subcategory: Optional[str] = None
    description: str = ""
    details: str = ""
    variation_name: str = ""
    image_url: Optional[str] = None

    @property
    def text(self) -> str:
        """Lower-cased free text used for keyword matching"""
        return " ".join(
            part for part in (self.name, self.description, self.details, self.variation_name, self.subcategory) if part
        ).lower()

    @property
    def seat_count(self) -> Optional[int]:
        match = SEAT_PATTERN.search(self.text)
        return int(match.group(1)) if match else None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CatalogItem":
        return cls(
            id=int(data["id"]),
            name=data.get("name") or "",
            price=int(data.get("price") or 0),
            category=data.get("category") or "",
            subcategory=data.get("subcategory"),
            description=data.get("description") or "",
            details=data.get("details") or "",
            variation_name=data.get("variation_name") or "",
            image_url=data.get("image_url"),
        )

    @classmethod
    def from_record(cls, record) -> "CatalogItem":
        return cls(
            id=record.id,
            name=record.name,
            price=int(record.price or 0),
            category=record.category,
            subcategory=record.subcategory,
            description=record.description or "",
            details=record.details or "",
            variation_name=record.variation_name or "",
            image_url=record.image_url,
        )


@dataclass(frozen=True)
class CatalogQuery:
    """Filter/order/limit query against the catalog"""

    category: Optional[str] = None
    subcategory_like: Optional[str] = None
    price_ceiling: Optional[int] = None
    descending: bool = False
    limit: int = 100
    offset: int = 0


# ==================== Selections ====================


@dataclass(frozen=True)
class Selection:
    line: RequestedLine
    item: CatalogItem
    reason: SelectionReason = SelectionReason.OK

    @property
    def line_total(self) -> int:
        return self.line.quantity * self.item.price

    def to_dict(self) -> Dict[str, Any]:
        return {"line": self.line.to_dict(), "item": self.item.to_dict(), "reason": self.reason.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Selection":
        return cls(
            line=RequestedLine.from_dict(data["line"]),
            item=CatalogItem.from_dict(data["item"]),
            reason=SelectionReason(data.get("reason", "ok")),
        )


@dataclass(frozen=True)
class UnmetLine:
    """A line no catalog item satisfied after full relaxation"""

    line: RequestedLine
    reasons: Tuple[str, ...] = ()
    reason: SelectionReason = SelectionReason.NO_MATCH

    def to_dict(self) -> Dict[str, Any]:
        return {"line": self.line.to_dict(), "reasons": list(self.reasons), "reason": self.reason.value}


# ==================== Parsing ====================


@dataclass(frozen=True)
class BudgetFact:
    amount: int
    scope: Optional[BudgetScope] = None  # None = ambiguous

    def to_dict(self) -> Dict[str, Any]:
        return {"amount": self.amount, "scope": self.scope.value if self.scope else None}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["BudgetFact"]:
        if not data or not data.get("amount"):
            return None
        scope = data.get("scope")
        return cls(amount=int(data["amount"]), scope=BudgetScope(scope) if scope else None)


@dataclass(frozen=True)
class StyleWeight:
    name: str
    weight: float = 1.0


@dataclass(frozen=True)
class ChangeRecord:
    item_type: str
    reason: ChangeReason
    signature_after: Optional[str] = None
    signature_before: Optional[str] = None
    room: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.item_type,
            "reason": self.reason.value,
            "signature_before": self.signature_before,
            "signature_after": self.signature_after,
            "room": self.room,
        }


@dataclass
class ParsedFacts:
    """Planning facts extracted from one utterance"""

    bhk: Optional[int] = None
    area_sqft: Optional[int] = None
    budget: Optional[BudgetFact] = None
    theme: Optional[str] = None
    style_keywords: List[str] = field(default_factory=list)
    style_override: Optional[str] = None
    style_blend: List[StyleWeight] = field(default_factory=list)
    rooms: List[str] = field(default_factory=list)
    only_rooms: bool = False
    excluded_rooms: List[str] = field(default_factory=list)
    bedroom_target: Optional[int] = None
    bedrooms_removed: Optional[int] = None

    @property
    def style_changed(self) -> bool:
        return bool(self.style_override) or bool(self.style_blend)

    @property
    def has_planning_facts(self) -> bool:
        return bool(
            self.bhk or self.area_sqft or self.rooms or self.excluded_rooms
            or self.bedroom_target is not None or self.bedrooms_removed is not None
        )


@dataclass(frozen=True)
class ReplaceRequest:
    """Replace that needs an alternatives lookup before it can be pinned"""

    item_type: str
    subtype: Optional[str] = None
    room: Optional[str] = None
    name_query: Optional[str] = None


@dataclass(frozen=True)
class AlternativesRequest:
    item_type: Optional[str] = None
    subtype: Optional[str] = None


@dataclass
class RequirementDelta:
    """Result of parsing one utterance against the prior plan"""

    lines: Tuple[RequestedLine, ...] = ()
    changes: List[ChangeRecord] = field(default_factory=list)
    facts: ParsedFacts = field(default_factory=ParsedFacts)
    command: Optional[str] = None
    is_modification: bool = False
    replace_request: Optional[ReplaceRequest] = None
    alternatives_request: Optional[AlternativesRequest] = None

    @property
    def has_commands(self) -> bool:
        return self.command is not None


# ==================== Planning ====================


@dataclass(frozen=True)
class RoomDimension:
    room: str
    width: Optional[float] = None
    height: Optional[float] = None
    unit: str = "ft"


@dataclass
class FloorPlanHint:
    """Structured output of the floor-plan analyzer"""

    bhk: Optional[int] = None
    sqft: Optional[int] = None
    property_type: Optional[str] = None
    rooms: List[str] = field(default_factory=list)
    room_dimensions: List[RoomDimension] = field(default_factory=list)


@dataclass
class RoomPlan:
    rooms: List[str] = field(default_factory=list)
    excluded_rooms: List[str] = field(default_factory=list)
    bhk: Optional[int] = None
    area_sqft: Optional[int] = None
    budget: Optional[BudgetFact] = None
    theme: Optional[str] = None
    tier: str = "economy"
    size_tier: Optional[str] = None
    user_specified_rooms: bool = False
    room_dimensions: List[RoomDimension] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rooms": list(self.rooms),
            "excluded_rooms": list(self.excluded_rooms),
            "bhk": self.bhk,
            "area_sqft": self.area_sqft,
            "budget": self.budget.to_dict() if self.budget else None,
            "theme": self.theme,
            "tier": self.tier,
            "size_tier": self.size_tier,
        }


@dataclass
class StyleProfile:
    """Resolved style bias for one turn"""

    styles: List[str] = field(default_factory=list)
    name: Optional[str] = None
    features: List[str] = field(default_factory=list)
    weights: Dict[str, float] = field(default_factory=dict)
    negatives: List[str] = field(default_factory=list)
    room_hints: Dict[str, List[str]] = field(default_factory=dict)

    def hints_for(self, room: str) -> List[str]:
        room = (room or "").lower()
        if room in self.room_hints:
            return self.room_hints[room]
        if "bedroom" in room:
            return self.room_hints.get("bedroom", [])
        return []


@dataclass
class SelectionFilters:
    """Turn-wide selection inputs shared by all lines"""

    base_cap: int = 20000
    style: Optional[StyleProfile] = None
    style_changed: bool = False
    prev_item_by_key: Dict[str, int] = field(default_factory=dict)
    bhk: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "base_cap": self.base_cap,
            "style_bias": dict(self.style.weights) if self.style else {},
            "style_negatives": list(self.style.negatives) if self.style else [],
            "applied_styles": list(self.style.styles) if self.style else [],
            "style_changed": self.style_changed,
        }


# ==================== Quotation ====================


@dataclass(frozen=True)
class LineDelta:
    signature: str
    item_type: str
    room: Optional[str]
    reason: DeltaReason
    delta: int
    prev_item_id: Optional[int] = None
    new_item_id: Optional[int] = None
    prev_quantity: int = 0
    new_quantity: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["reason"] = self.reason.value
        return data


@dataclass(frozen=True)
class QuotationItem:
    item: CatalogItem
    quantity: int
    line_total: int
    line_type: str
    room: str

    def to_dict(self) -> Dict[str, Any]:
        data = self.item.to_dict()
        data.update({"quantity": self.quantity, "line_total": self.line_total, "line_type": self.line_type, "room": self.room})
        return data


@dataclass
class Quotation:
    items: List[QuotationItem] = field(default_factory=list)
    total_estimate: int = 0
    per_line_delta: List[LineDelta] = field(default_factory=list)
    over_budget: bool = False
    budget_over_by: int = 0
    unmet_lines: List[UnmetLine] = field(default_factory=list)
    clarification: Optional[str] = None

    @property
    def total_delta(self) -> int:
        return sum(d.delta for d in self.per_line_delta)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "items": [i.to_dict() for i in self.items],
            "total_estimate": self.total_estimate,
            "per_line_delta": [d.to_dict() for d in self.per_line_delta],
            "total_delta": self.total_delta,
            "over_budget": self.over_budget,
            "budget_over_by": self.budget_over_by,
            "unmet_lines": [u.to_dict() for u in self.unmet_lines],
            "clarification": self.clarification,
        }


# ==================== Session state ====================


@dataclass
class SessionPrior:
    """Previous turn's persisted state. Replaced wholesale at the end of every turn."""

    filters: Dict[str, Any] = field(default_factory=dict)
    selections: List[Selection] = field(default_factory=list)
    requested_lines: List[RequestedLine] = field(default_factory=list)
    signature_index: Dict[str, List[int]] = field(default_factory=dict)
    alt_offsets: Dict[str, int] = field(default_factory=dict)
    served_ids: Dict[str, List[int]] = field(default_factory=dict)
    summary: Optional[Dict[str, Any]] = None
    rooms: List[str] = field(default_factory=list)
    excluded_rooms: List[str] = field(default_factory=list)
    bhk: Optional[int] = None
    area_sqft: Optional[int] = None
    budget: Optional[BudgetFact] = None
    theme: Optional[str] = None
    style_blend: List[StyleWeight] = field(default_factory=list)
    room_dimensions: List[RoomDimension] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.selections and not self.requested_lines and not self.rooms

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filters": self.filters,
            "selections": [s.to_dict() for s in self.selections],
            "requested_lines": [line.to_dict() for line in self.requested_lines],
            "signature_index": {k: list(v) for k, v in self.signature_index.items()},
            "alt_offsets": dict(self.alt_offsets),
            "served_ids": {k: list(v) for k, v in self.served_ids.items()},
            "summary": self.summary,
            "rooms": list(self.rooms),
            "excluded_rooms": list(self.excluded_rooms),
            "bhk": self.bhk,
            "area_sqft": self.area_sqft,
            "budget": self.budget.to_dict() if self.budget else None,
            "theme": self.theme,
            "style_blend": [asdict(s) for s in self.style_blend],
            "room_dimensions": [asdict(d) for d in self.room_dimensions],
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SessionPrior":
        """Decode a persisted blob; raises InconsistentSessionPriorError on malformed state"""
        if not data:
            return cls()
        if not isinstance(data, dict):
            raise InconsistentSessionPriorError(f"Expected mapping, got {type(data).__name__}")
        try:
            return cls(
                filters=dict(data.get("filters") or {}),
                selections=[Selection.from_dict(s) for s in data.get("selections") or []],
                requested_lines=[RequestedLine.from_dict(line) for line in data.get("requested_lines") or []],
                signature_index={k: [int(i) for i in v] for k, v in (data.get("signature_index") or {}).items()},
                alt_offsets={k: int(v) for k, v in (data.get("alt_offsets") or {}).items()},
                served_ids={k: [int(i) for i in v] for k, v in (data.get("served_ids") or {}).items()},
                summary=data.get("summary"),
                rooms=list(data.get("rooms") or []),
                excluded_rooms=list(data.get("excluded_rooms") or []),
                bhk=data.get("bhk"),
                area_sqft=data.get("area_sqft"),
                budget=BudgetFact.from_dict(data.get("budget")),
                theme=data.get("theme"),
                style_blend=[StyleWeight(**s) for s in data.get("style_blend") or []],
                room_dimensions=[RoomDimension(**d) for d in data.get("room_dimensions") or []],
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise InconsistentSessionPriorError(f"Malformed session prior: {e}") from e


# ==================== Turn result ====================


@dataclass
class TurnResult:
    """Everything one chat turn produces"""

    session_id: str
    quotation: Quotation
    plan: RoomPlan
    requested_lines: List[RequestedLine] = field(default_factory=list)
    alternatives: List[CatalogItem] = field(default_factory=list)
    alternatives_for: Optional[str] = None
    command: Optional[str] = None
    changes: List[ChangeRecord] = field(default_factory=list)
    summary: Optional[Dict[str, Any]] = None
    applied_styles: List[str] = field(default_factory=list)
    processing_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "quotation": self.quotation.to_dict(),
            "plan": self.plan.to_dict(),
            "requested_lines": [line.to_dict() for line in self.requested_lines],
            "alternatives": [item.to_dict() for item in self.alternatives],
            "alternatives_for": self.alternatives_for,
            "command": self.command,
            "changes": [change.to_dict() for change in self.changes],
            "summary": self.summary,
            "applied_styles": list(self.applied_styles),
            "processing_time": self.processing_time,
        }
