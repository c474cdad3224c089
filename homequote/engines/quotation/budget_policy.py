"""
Budget & Constraint Policy

Annotates requested lines with a price ceiling, a minimum sofa seat count and the BHK
context. Lines are immutable; annotate returns new lines.
"""
import logging
from typing import List, Optional, Sequence

from homequote.config.budget_tables import (
    AREA_BASE_CAP_LARGE,
    AREA_BASE_CAP_UNKNOWN,
    AREA_BASE_CAPS,
    FEET_PER_METRE,
    PRICE_CAPS,
    SOFA_MIN_SEATS_BY_WIDTH,
    STYLE_CHANGE_CAP_FACTOR,
    TIER_MULTIPLIERS,
)

from .schemas import BudgetFact, BudgetScope, RequestedLine, RoomDimension

logger = logging.getLogger(__name__)


def cap_key(line: RequestedLine) -> str:
    """PRICE_CAPS key for a line"""
    if line.item_type == "table" and line.subtype:
        return f"table:{line.subtype}"
    if line.item_type == "chair" and line.room in ("dining", "kitchen"):
        return "chair:dining"
    return line.item_type


def base_cap(area_sqft: Optional[int], style_changed: bool = False) -> int:
    """Fallback ceiling for types without a table entry, scaled by carpet area"""
    if not area_sqft:
        cap = AREA_BASE_CAP_UNKNOWN
    else:
        cap = AREA_BASE_CAP_LARGE
        for upper, value in AREA_BASE_CAPS:
            if area_sqft < upper:
                cap = value
                break
    if style_changed:
        cap = int(round(cap * STYLE_CHANGE_CAP_FACTOR))
    return cap


def table_cap(line: RequestedLine, bhk: Optional[int], tier: str) -> Optional[int]:
    caps = PRICE_CAPS.get(cap_key(line))
    if caps is None:
        return None
    if not bhk or bhk <= 2:
        base = caps[0]
    elif bhk == 3:
        base = caps[1]
    else:
        base = caps[2]
    return int(round(base * TIER_MULTIPLIERS.get(tier, 1.0)))


def width_in_feet(dimension: RoomDimension) -> Optional[float]:
    if not dimension.width:
        return None
    unit = (dimension.unit or "ft").lower()
    if unit in ("m", "metre", "meter", "metres", "meters"):
        return dimension.width * FEET_PER_METRE
    if unit in ("cm",):
        return dimension.width / 100 * FEET_PER_METRE
    return dimension.width


def min_sofa_seats(room_dimensions: Sequence[RoomDimension], room: str = "living") -> Optional[int]:
    """Minimum sofa seats implied by the room's recorded width"""
    for dimension in room_dimensions or []:
        if dimension.room != room:
            continue
        width = width_in_feet(dimension)
        if width is None:
            continue
        for min_width, seats in SOFA_MIN_SEATS_BY_WIDTH:
            if width >= min_width:
                return seats
    return None


class BudgetPolicy:
    """Per-line price ceilings and structural constraints"""

    def annotate(
        self,
        lines: Sequence[RequestedLine],
        bhk: Optional[int],
        tier: str,
        area_sqft: Optional[int] = None,
        room_dimensions: Sequence[RoomDimension] = (),
        budget: Optional[BudgetFact] = None,
        style_changed: bool = False,
        fallback_cap: Optional[int] = None,
    ) -> List[RequestedLine]:
        """
        Annotate lines with price ceiling, min seats and BHK context.

        Args:
            lines: Requested lines
            bhk: Home size; picks the <=2 / 3 / >=4 BHK cap column
            tier: Budget tier; scales table caps by the tier multiplier
            area_sqft: Carpet area; drives the fallback cap
            room_dimensions: Floor-plan dimensions; living width drives sofa min seats
            budget: Stated budget; per_item sets the ceiling, total is spread across units
            style_changed: Wholesale style change this turn; widens the fallback cap and
                skips the sofa seat rule
            fallback_cap: Ceiling for types without a table entry; computed from
                area_sqft when not given

        Returns:
            New annotated lines in the same order
        """
        fallback = fallback_cap if fallback_cap is not None else base_cap(area_sqft, style_changed)
        total_units = sum(line.quantity for line in lines) or 1
        share = None
        if budget and budget.scope != BudgetScope.PER_ITEM:
            share = budget.amount // total_units

        annotated = []
        for line in lines:
            ceiling = table_cap(line, bhk, tier) or fallback
            if budget and budget.scope == BudgetScope.PER_ITEM:
                ceiling = budget.amount
            elif share is not None:
                ceiling = min(ceiling, share)

            min_seats = None
            if line.item_type == "sofa" and not style_changed:
                min_seats = min_sofa_seats(room_dimensions, line.room)
            if line.specs.seater_count:
                min_seats = max(min_seats or 0, line.specs.seater_count)

            annotated.append(line.with_changes(price_ceiling=ceiling, min_seats=min_seats, bhk_context=bhk))

        logger.info(
            f"[BUDGET] Annotated {len(annotated)} line(s): tier={tier} bhk={bhk} fallback_cap={fallback} "
            f"share={share} style_changed={style_changed}"
        )
        return annotated
