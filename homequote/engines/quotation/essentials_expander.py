"""
Essentials Expander

Expands a room plan into concrete requested lines. An external proposal is tried first;
the deterministic per-room baseline always covers any room the proposal left empty.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from homequote.config.budget_tables import DINING_CHAIRS_BY_TIER
from homequote.config.catalog_taxonomy import infer_room_for_type, is_bedroom, normalize_item_type
from homequote.core.config import settings

from .schemas import LineSpecs, RequestedLine, RoomPlan, StyleProfile

logger = logging.getLogger(__name__)

# (type, subtype, quantity) per base room
Baseline = List[Tuple[str, Optional[str], int]]

ProposeFn = Callable[..., Awaitable[Optional[List[RequestedLine]]]]


class EssentialsExpander:
    """Expand rooms into requested lines"""

    def __init__(self, proposer: Optional[ProposeFn] = None, timeout: Optional[float] = None):
        """
        Args:
            proposer: Async essentials-propose function; None disables proposals
            timeout: Seconds to wait for a proposal before using the baseline
        """
        self.proposer = proposer
        self.timeout = timeout if timeout is not None else settings.llm_timeout_seconds
        self.room_templates = self._define_room_templates()
        logger.info("EssentialsExpander initialized")

    def _define_room_templates(self) -> Dict[str, Baseline]:
        """Fixed per-room baseline"""
        return {
            "living": [("sofa", None, 1), ("tv_bench", None, 1), ("table", "coffee", 1), ("lamp", None, 1)],
            "bedroom": [("bed", None, 1), ("wardrobe", None, 1), ("table", "bedside", 1), ("mirror", None, 1)],
            "dining": [("table", "dining", 1)],
            "kitchen": [("shelf", None, 1)],
            "bathroom": [("washstand", None, 1), ("mirror", None, 1)],
            "balcony": [("chair", None, 2), ("table", "side", 1)],
            "utility": [("shelf", None, 1), ("cabinet", None, 1)],
            "study": [("desk", None, 1), ("chair", None, 1), ("bookcase", None, 1)],
            "foyer": [("shoe_rack", None, 1), ("mirror", None, 1)],
        }

    async def expand(
        self,
        plan: RoomPlan,
        style_profile: Optional[StyleProfile] = None,
        rooms: Optional[Sequence[str]] = None,
        must_have: Iterable[str] = (),
    ) -> List[RequestedLine]:
        """
        Expand rooms into lines.

        Args:
            plan: Resolved room plan (tier, bhk, area, budget, excluded rooms)
            style_profile: Active style, passed through to the proposer
            rooms: Subset of plan.rooms to expand; defaults to every planned room
            must_have: Item names that must appear somewhere in the result

        Returns:
            Deduplicated lines in room order
        """
        target_rooms = list(rooms if rooms is not None else plan.rooms)
        if not target_rooms:
            return []

        proposed = await self._propose(plan, target_rooms, style_profile)
        covered = {line.room for line in proposed}
        baseline = self.baseline_lines(
            [room for room in target_rooms if room not in covered],
            plan.tier,
            all_rooms=plan.rooms,
        )
        if proposed:
            logger.info(f"[ESSENTIALS] Proposal covered {sorted(covered)}; baseline for the rest")

        lines = self.dedupe(proposed + baseline + self._must_have_lines(must_have, target_rooms))
        room_order = {room: idx for idx, room in enumerate(target_rooms)}
        lines.sort(key=lambda line: room_order.get(line.room, len(room_order)))
        logger.info(f"[ESSENTIALS] Expanded {len(target_rooms)} room(s) into {len(lines)} line(s)")
        return lines

    async def _propose(self, plan: RoomPlan, rooms: List[str], style_profile: Optional[StyleProfile]) -> List[RequestedLine]:
        if not self.proposer:
            return []
        try:
            proposed = await asyncio.wait_for(
                self.proposer(rooms, plan.excluded_rooms, plan.bhk, plan.area_sqft, plan.budget, style_profile),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"[ESSENTIALS] Proposal timed out after {self.timeout}s, using baseline")
            return []
        except Exception as e:
            logger.error(f"[ESSENTIALS] Proposal failed, using baseline: {e}", exc_info=True)
            return []
        allowed = set(rooms)
        return [line for line in proposed or [] if line.room in allowed]

    def baseline_lines(self, rooms: Sequence[str], tier: str, all_rooms: Optional[Sequence[str]] = None) -> List[RequestedLine]:
        """Deterministic lines for the given rooms"""
        context = set(all_rooms if all_rooms is not None else rooms)
        has_dining = "dining" in context
        chairs = DINING_CHAIRS_BY_TIER.get(tier, DINING_CHAIRS_BY_TIER["economy"])

        lines: List[RequestedLine] = []
        for room in rooms:
            base = "bedroom" if is_bedroom(room) else room
            template = list(self.room_templates.get(base, []))
            if base == "dining":
                template.append(("chair", None, chairs))
            elif base == "kitchen" and not has_dining:
                template = [("table", "dining", 1)] + template
            for item_type, subtype, quantity in template:
                lines.append(RequestedLine(item_type=item_type, room=room, quantity=quantity, specs=LineSpecs(subtype=subtype)))
        return lines

    @staticmethod
    def _must_have_lines(names: Iterable[str], rooms: Sequence[str]) -> List[RequestedLine]:
        lines = []
        for name in names or []:
            item_type, subtype = normalize_item_type(name)
            if not item_type:
                continue
            room = infer_room_for_type(item_type, subtype, list(rooms))
            lines.append(RequestedLine(item_type=item_type, room=room, specs=LineSpecs(subtype=subtype)))
        return lines

    @staticmethod
    def dedupe(lines: Iterable[RequestedLine]) -> List[RequestedLine]:
        """Merge lines sharing (room, type, subtype), keeping the max quantity"""
        merged: Dict[Tuple[str, str, Optional[str]], RequestedLine] = {}
        for line in lines:
            key = (line.room, line.item_type, line.subtype)
            existing = merged.get(key)
            if existing is None:
                merged[key] = line
            elif line.quantity > existing.quantity:
                merged[key] = existing.with_changes(quantity=line.quantity)
        return list(merged.values())
