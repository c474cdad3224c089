"""
Requirement Resolver / Room Planner

Merges parsed facts with floor-plan hints and the session prior into a RoomPlan:
the room set, BHK, carpet area, budget, theme, budget tier and area size tier.
"""
import logging
from typing import List, Optional, Sequence

from homequote.config.budget_tables import (
    AREA_SIZE_TIER_MAX,
    AREA_SIZE_TIERS,
    BUDGET_BANDS,
)
from homequote.config.catalog_taxonomy import is_bedroom, normalize_room

from .schemas import BudgetFact, BudgetScope, FloorPlanHint, ParsedFacts, RoomPlan, SessionPrior

logger = logging.getLogger(__name__)

MAX_NAMED_BEDROOMS = 5
DEFAULT_BAND_BHK = 2
SHARED_ROOMS = ["living", "kitchen", "bathroom"]


def bedroom_names(count: int) -> List[str]:
    """Individually addressable bedroom names: master bedroom, bedroom 2, ..."""
    count = max(0, min(count, MAX_NAMED_BEDROOMS))
    return ["master bedroom"] + [f"bedroom {i}" for i in range(2, count + 1)] if count else []


def classify_tier(bhk: Optional[int], budget_amount: Optional[int]) -> str:
    """
    Classify a total budget into economy/premium/luxury using the per-BHK band table.

    A budget at or above the luxury floor is luxury; one that reaches the top of the
    economy band is premium; anything lower is economy. Without a budget the tier
    follows the home size alone.
    """
    if not budget_amount:
        return "premium" if bhk and bhk >= 3 else "economy"

    band_key = min(max(bhk or DEFAULT_BAND_BHK, 1), max(BUDGET_BANDS))
    bands = BUDGET_BANDS[band_key]
    if budget_amount >= bands["luxury"][0]:
        return "luxury"
    if budget_amount >= bands["economy"][1]:
        return "premium"
    return "economy"


def size_tier(area_sqft: Optional[int]) -> Optional[str]:
    if not area_sqft:
        return None
    for upper, name in AREA_SIZE_TIERS:
        if area_sqft < upper:
            return name
    return AREA_SIZE_TIER_MAX


def _room_covers(room: str, target: str) -> bool:
    if target == "bedroom":
        return is_bedroom(room)
    return room == target or room.startswith(target + " ")


class RoomPlanner:
    """Derive the room set and budget tier for a turn"""

    def __init__(self):
        logger.info("RoomPlanner initialized")

    def resolve(
        self,
        facts: ParsedFacts,
        floor_plan: Optional[FloorPlanHint] = None,
        prior: Optional[SessionPrior] = None,
    ) -> RoomPlan:
        """
        Resolve the plan for this turn.

        Args:
            facts: Facts parsed from the utterance; facts.rooms are treated as an
                explicit enumeration by the user
            floor_plan: Optional analyzer output; fills gaps, never overrides text
            prior: Previous turn's state, used for carry-over

        Returns:
            RoomPlan
        """
        prior = prior or SessionPrior()
        floor_plan = floor_plan or FloorPlanHint()

        bhk = facts.bhk or floor_plan.bhk or prior.bhk
        area_sqft = facts.area_sqft or floor_plan.sqft or prior.area_sqft
        budget = facts.budget or prior.budget
        theme = facts.style_override or facts.theme or prior.theme

        explicit = self._normalize_rooms(facts.rooms)
        excluded = self._normalize_rooms(list(prior.excluded_rooms) + list(facts.excluded_rooms))
        # Naming a room again lifts an earlier exclusion
        excluded = [r for r in excluded if r not in explicit]

        bhk_changed = facts.bhk is not None and facts.bhk != prior.bhk
        if explicit:
            if prior.rooms and not facts.only_rooms:
                rooms = list(dict.fromkeys(list(prior.rooms) + explicit))
            else:
                rooms = explicit
            rooms = self._expand_generic_bedroom(rooms, 1)
        elif floor_plan.rooms and not prior.rooms:
            rooms = self._normalize_rooms(floor_plan.rooms)
            rooms = self._expand_generic_bedroom(rooms, bhk or 1)
        elif bhk and (bhk_changed or not prior.rooms):
            rooms = self._infer_rooms(bhk)
        else:
            rooms = list(prior.rooms)

        target = self._bedroom_target(facts, rooms)
        if target is not None:
            rooms = self._apply_bedroom_target(rooms, target)

        if not explicit and rooms and "bathroom" not in rooms:
            if any(is_bedroom(r) or r == "kitchen" for r in rooms):
                rooms.append("bathroom")

        rooms = [r for r in rooms if not any(_room_covers(r, ex) for ex in excluded)]

        tier = classify_tier(bhk, self._total_amount(budget))
        plan = RoomPlan(
            rooms=rooms,
            excluded_rooms=excluded,
            bhk=bhk,
            area_sqft=area_sqft,
            budget=budget,
            theme=theme,
            tier=tier,
            size_tier=size_tier(area_sqft),
            user_specified_rooms=bool(explicit),
            room_dimensions=list(floor_plan.room_dimensions or prior.room_dimensions),
        )
        logger.info(
            f"[PLANNER] rooms={plan.rooms} excluded={plan.excluded_rooms} bhk={bhk} "
            f"area={area_sqft} tier={tier} explicit={plan.user_specified_rooms}"
        )
        return plan

    @staticmethod
    def _total_amount(budget: Optional[BudgetFact]) -> Optional[int]:
        if not budget or budget.scope == BudgetScope.PER_ITEM:
            return None
        return budget.amount

    @staticmethod
    def _normalize_rooms(raw_rooms: Sequence[str]) -> List[str]:
        rooms = []
        for raw in raw_rooms or []:
            room = normalize_room(raw)
            if room and room not in rooms:
                rooms.append(room)
        return rooms

    @staticmethod
    def _infer_rooms(bhk: int) -> List[str]:
        return ["living", "kitchen", "bathroom"] + bedroom_names(bhk)

    @staticmethod
    def _expand_generic_bedroom(rooms: List[str], count: int) -> List[str]:
        """Replace a generic "bedroom" entry with named bedrooms not already present"""
        if "bedroom" not in rooms:
            return rooms
        expanded: List[str] = []
        for room in rooms:
            if room != "bedroom":
                expanded.append(room)
                continue
            for name in bedroom_names(count):
                if name not in rooms and name not in expanded:
                    expanded.append(name)
        if not any(is_bedroom(r) for r in expanded):
            expanded.append("master bedroom")
        return expanded

    @staticmethod
    def _bedroom_target(facts: ParsedFacts, rooms: Sequence[str]) -> Optional[int]:
        if facts.bedroom_target is not None:
            return facts.bedroom_target
        if facts.bedrooms_removed:
            current = sum(1 for r in rooms if is_bedroom(r))
            return max(0, current - facts.bedrooms_removed)
        return None

    @staticmethod
    def _apply_bedroom_target(rooms: List[str], target: int) -> List[str]:
        """Grow or shrink the bedroom list to target, dropping the highest-numbered first"""
        bedrooms = [r for r in rooms if is_bedroom(r)]
        others = [r for r in rooms if not is_bedroom(r)]
        if len(bedrooms) > target:
            bedrooms = bedrooms[:target]
        else:
            for name in bedroom_names(target):
                if len(bedrooms) >= target:
                    break
                if name not in bedrooms:
                    bedrooms.append(name)
        return others + bedrooms


# Global planner instance
room_planner = RoomPlanner()
