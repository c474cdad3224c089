"""
Selection Engine

Resolves each requested line to one catalog item under the line's price ceiling and
structural constraints, with style re-ranking, diversification on a style change and
a never-reuse-an-id-within-a-turn rule.

Catalog reads for all lines fan out concurrently under a semaphore. Picking happens in
line order afterwards, so the outcome does not depend on query completion order.
"""
import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Union

from homequote.config.budget_tables import SOFA_MIN_SEATS_LARGE_HOME, SOFA_MIN_SEATS_SMALL_HOME
from homequote.config.catalog_taxonomy import (
    BED_SIZE_PREFERENCES,
    MATERIAL_ALIASES,
    SECTIONAL_KEYWORDS,
    SHAPE_ALIASES,
    resolve_category,
)
from homequote.core.config import settings
from .catalog_gateway import CatalogGateway
from .errors import CatalogGatewayError
from .schemas import CatalogItem, CatalogQuery, RequestedLine, Selection, SelectionFilters, SelectionReason, UnmetLine
from .style_resolver import StyleResolver

logger = logging.getLogger(__name__)

CEILING_WIDEN_FACTOR = 1.5
MAX_UNMET_REASONS = 5
QUERY_ATTEMPTS = 2
SMALL_SOFA_PATTERN = re.compile(r"\b(?:1|2|one|two)\s*-?\s*seat(?:er)?s?\b")

SelectionOutcome = Union[Selection, UnmetLine]


@dataclass(frozen=True)
class QueryAttempt:
    """One rung of the relaxation ladder"""

    name: str
    query: CatalogQuery


@dataclass
class Prefetch:
    pinned: Dict[int, Optional[CatalogItem]] = field(default_factory=dict)
    rows: Optional[List[CatalogItem]] = None


def text_mentions(text: str, tokens: Sequence[str]) -> bool:
    return any(re.search(rf"\b{re.escape(token)}\b", text) for token in tokens)


def material_tokens(material: Optional[str]) -> List[str]:
    if not material:
        return []
    return MATERIAL_ALIASES.get(material, [material])


def shape_tokens(shape: Optional[str]) -> List[str]:
    if not shape:
        return []
    return SHAPE_ALIASES.get(shape, [shape])


class SelectionEngine:
    """Pick one catalog item per requested line"""

    def __init__(
        self,
        gateway: CatalogGateway,
        style_resolver: Optional[StyleResolver] = None,
        concurrency: Optional[int] = None,
        query_limit: Optional[int] = None,
    ):
        self.gateway = gateway
        self.style_resolver = style_resolver or StyleResolver()
        self.concurrency = concurrency or settings.selection_concurrency
        self.query_limit = query_limit or settings.catalog_query_limit
        logger.info(f"SelectionEngine initialized (concurrency={self.concurrency})")

    # ==================== Public API ====================

    async def select_all(
        self,
        lines: Sequence[RequestedLine],
        filters: SelectionFilters,
        reuse_ids: Optional[Sequence[Optional[int]]] = None,
    ) -> List[SelectionOutcome]:
        """
        Select items for all lines.

        Args:
            lines: Annotated requested lines
            filters: Turn-wide style and diversification inputs
            reuse_ids: Per-line previously chosen id to re-fetch instead of searching

        Returns:
            One Selection or UnmetLine per line, in line order
        """
        lines = list(lines)
        reuse_ids = list(reuse_ids) if reuse_ids is not None else [None] * len(lines)
        semaphore = asyncio.Semaphore(self.concurrency)

        async def prefetch(line: RequestedLine, reuse_id: Optional[int]) -> Prefetch:
            async with semaphore:
                return await self._prefetch(line, reuse_id)

        prefetched = await asyncio.gather(
            *(prefetch(line, reuse_id) for line, reuse_id in zip(lines, reuse_ids)),
            return_exceptions=True,
        )

        used_ids: Set[int] = set()
        results: Dict[int, SelectionOutcome] = {}
        # Pinned lines claim their ids before any line searches
        for idx in self._claim_order(lines, reuse_ids):
            line, reuse_id, pre = lines[idx], reuse_ids[idx], prefetched[idx]
            if isinstance(pre, Exception):
                logger.error(f"[SELECT] Prefetch failed for {line.signature} in {line.room}: {pre}")
                pre = None
            try:
                results[idx] = await self.select_one(line, filters, used_ids, reuse_id=reuse_id, prefetched=pre)
            except Exception as e:
                logger.error(f"[SELECT] Selection failed for {line.signature} in {line.room}: {e}", exc_info=True)
                results[idx] = UnmetLine(line=line, reasons=(f"error: {e}",), reason=SelectionReason.ERROR)
        outcomes = [results[idx] for idx in range(len(lines))]

        met = sum(1 for o in outcomes if isinstance(o, Selection))
        logger.info(f"[SELECT] {met}/{len(lines)} line(s) resolved")
        return outcomes

    async def select_one(
        self,
        line: RequestedLine,
        filters: SelectionFilters,
        used_ids: Set[int],
        reuse_id: Optional[int] = None,
        prefetched: Optional[Prefetch] = None,
    ) -> SelectionOutcome:
        """
        Resolve one line. Marks the chosen id in used_ids.

        Order: preferred id, reused id, then the relaxation ladder with structural
        filters, style re-ranking and diversification.
        """
        prefetched = prefetched or Prefetch()

        for item_id, reason in ((line.preferred_item_id, SelectionReason.PREFERRED), (reuse_id, SelectionReason.REUSED)):
            if not item_id:
                continue
            if item_id in prefetched.pinned:
                item = prefetched.pinned[item_id]
            else:
                item = await self._fetch(item_id)
            if item and item.id not in used_ids:
                used_ids.add(item.id)
                logger.debug(f"[SELECT] {line.signature} -> {item.id} ({reason.value})")
                return Selection(line=line, item=item, reason=reason)
            logger.info(f"[SELECT] Pinned id {item_id} unavailable for {line.signature}, searching")

        attempts = self.build_attempts(line)
        tried: List[str] = []
        for idx, attempt in enumerate(attempts):
            if idx == 0 and prefetched.rows is not None:
                rows = prefetched.rows
            else:
                rows = await self._query(attempt.query)
            tried.append(attempt.name)

            candidates = self.filter_candidates(line, rows, filters, final=idx == len(attempts) - 1)
            for item in candidates:
                if item.id not in used_ids:
                    used_ids.add(item.id)
                    return Selection(line=line, item=item, reason=SelectionReason.OK)
            if candidates:
                tried.append(f"{attempt.name}: all candidates already used")

        logger.warning(f"[SELECT] No match for {line.signature} in {line.room} after {tried}")
        return UnmetLine(line=line, reasons=tuple(tried[:MAX_UNMET_REASONS]))

    # ==================== Ladder ====================

    def build_attempts(self, line: RequestedLine) -> List[QueryAttempt]:
        """Relaxation ladder: ceiling, widened ceiling, no ceiling, category only"""
        category, subcategory = resolve_category(line.item_type, line.subtype, line.room)
        ceiling = line.price_ceiling
        steps = []
        if ceiling is not None:
            steps.append(("ceiling", subcategory, ceiling))
            steps.append(("ceiling_x1.5", subcategory, int(ceiling * CEILING_WIDEN_FACTOR)))
        steps.append(("no_ceiling", subcategory, None))
        if subcategory:
            steps.append(("category_only", None, None))

        return [
            QueryAttempt(
                name=name,
                query=CatalogQuery(
                    category=category,
                    subcategory_like=sub,
                    price_ceiling=cap,
                    descending=cap is not None,
                    limit=self.query_limit,
                ),
            )
            for name, sub, cap in steps
        ]

    async def _prefetch(self, line: RequestedLine, reuse_id: Optional[int]) -> Prefetch:
        prefetch = Prefetch()
        for item_id in (line.preferred_item_id, reuse_id):
            if item_id and item_id not in prefetch.pinned:
                prefetch.pinned[item_id] = await self._fetch(item_id)
        if any(prefetch.pinned.values()):
            return prefetch
        attempts = self.build_attempts(line)
        prefetch.rows = await self._query(attempts[0].query)
        return prefetch

    async def _query(self, query: CatalogQuery) -> List[CatalogItem]:
        """Run a query; gateway failures count as zero rows after one retry"""
        for attempt in range(QUERY_ATTEMPTS):
            try:
                return await self.gateway.query(query)
            except CatalogGatewayError as e:
                logger.warning(f"[SELECT] Catalog query failed (attempt {attempt + 1}/{QUERY_ATTEMPTS}): {e}")
        return []

    async def _fetch(self, item_id: int) -> Optional[CatalogItem]:
        try:
            return await self.gateway.fetch_by_id(item_id)
        except CatalogGatewayError as e:
            logger.warning(f"[SELECT] fetch_by_id({item_id}) failed: {e}")
            return None

    @staticmethod
    def _claim_order(lines: Sequence[RequestedLine], reuse_ids: Sequence[Optional[int]]) -> List[int]:
        pinned = [i for i, line in enumerate(lines) if line.preferred_item_id or reuse_ids[i]]
        searched = [i for i in range(len(lines)) if i not in set(pinned)]
        return pinned + searched

    # ==================== Filters ====================

    def filter_candidates(
        self,
        line: RequestedLine,
        rows: Sequence[CatalogItem],
        filters: SelectionFilters,
        final: bool = True,
    ) -> List[CatalogItem]:
        """
        Apply structural filters, style re-ranking and diversification.

        Each structural filter only applies when it leaves a non-empty subset, except
        the sofa seat floor and the large-home seat preference, which return nothing on
        non-final rungs so the ladder widens the ceiling first.
        """
        rows = list(rows)
        if not rows:
            return []

        rows = self._prefer(rows, material_tokens(line.specs.material))
        rows = self._prefer(rows, shape_tokens(line.specs.shape))

        if line.item_type == "sofa":
            rows = self._filter_seats(line, rows, filters, final)
            if not rows:
                return []

        if line.item_type == "bed":
            rows = self._prefer(rows, self._size_preferences(line))

        rows = self._rank_by_style(line, rows, filters)

        if filters.style_changed:
            previous = filters.prev_item_by_key.get(line.diversity_key)
            if previous is not None and any(r.id != previous for r in rows):
                rows = [r for r in rows if r.id != previous]
        return rows

    @staticmethod
    def _prefer(rows: List[CatalogItem], tokens: Sequence[str]) -> List[CatalogItem]:
        if not tokens:
            return rows
        subset = [r for r in rows if text_mentions(r.text, tokens)]
        return subset or rows

    @staticmethod
    def _size_preferences(line: RequestedLine) -> List[str]:
        if line.specs.size:
            return [line.specs.size.lower()]
        if line.room == "master bedroom":
            return BED_SIZE_PREFERENCES["master bedroom"]
        return BED_SIZE_PREFERENCES["bedroom"]

    def _filter_seats(
        self,
        line: RequestedLine,
        rows: List[CatalogItem],
        filters: SelectionFilters,
        final: bool,
    ) -> List[CatalogItem]:
        min_seats = line.min_seats
        if not min_seats:
            return self._filter_seats_by_home(line, rows, filters, final)

        meeting = [r for r in rows if (r.seat_count or 0) >= min_seats]
        if meeting:
            if line.specs.seater_count:
                exact = [r for r in meeting if r.seat_count == line.specs.seater_count]
                return exact or meeting
            return meeting
        if not final:
            return []
        return self._most_seats(rows, min_seats)

    def _filter_seats_by_home(
        self,
        line: RequestedLine,
        rows: List[CatalogItem],
        filters: SelectionFilters,
        final: bool,
    ) -> List[CatalogItem]:
        """Seat preference from home size when no width or seater count is known"""
        bhk = line.bhk_context or filters.bhk
        if not bhk:
            return rows
        min_seats = SOFA_MIN_SEATS_LARGE_HOME if bhk >= 3 else SOFA_MIN_SEATS_SMALL_HOME
        meeting = [r for r in rows if (r.seat_count or 0) >= min_seats]
        if meeting:
            return meeting
        if bhk < 3:
            return rows

        larger = [r for r in rows if not SMALL_SOFA_PATTERN.search(r.text)]
        if larger:
            return larger
        if not final:
            return []
        return self._most_seats(rows, min_seats)

    @staticmethod
    def _most_seats(rows: List[CatalogItem], min_seats: int) -> List[CatalogItem]:
        """Highest available seat count, sectional shapes first, dearest first"""
        pool = [r for r in rows if text_mentions(r.text, SECTIONAL_KEYWORDS)]
        if pool:
            logger.info(f"[SELECT] No sofa with {min_seats}+ seats; preferring sectional shapes")
        else:
            pool = rows
        most = max((r.seat_count or 0) for r in pool)
        if most:
            logger.info(f"[SELECT] No sofa with {min_seats}+ seats; falling back to {most} seats")
            pool = [r for r in pool if r.seat_count == most]
        return sorted(pool, key=lambda r: (-r.price, r.id))

    def _rank_by_style(self, line: RequestedLine, rows: List[CatalogItem], filters: SelectionFilters) -> List[CatalogItem]:
        if not filters.style:
            return rows
        scored = [(self.style_resolver.score(r.text, filters.style, line.room), r) for r in rows]
        positive = [pair for pair in scored if pair[0] > 0]
        pool = positive or scored
        pool.sort(key=lambda pair: (-pair[0], -pair[1].price, pair[1].id))
        return [r for _, r in pool]
