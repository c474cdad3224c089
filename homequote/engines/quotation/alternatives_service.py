"""
Alternatives Service

Paginated, diversified substitutes for a selected line.
"""
import logging
import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from homequote.config.catalog_taxonomy import MATERIAL_ALIASES, resolve_category
from homequote.core.config import settings
from .catalog_gateway import CatalogGateway
from .errors import CatalogGatewayError
from .schemas import CatalogItem, CatalogQuery, Selection, StyleProfile
from .selection_engine import material_tokens, shape_tokens, text_mentions
from .style_resolver import StyleResolver

logger = logging.getLogger(__name__)


def seat_class(item: CatalogItem) -> str:
    seats = item.seat_count
    if not seats:
        return "na"
    if seats <= 2:
        return "small"
    if seats == 3:
        return "medium"
    return "large"


def material_class(item: CatalogItem) -> str:
    text = item.text
    for canonical, aliases in MATERIAL_ALIASES.items():
        if text_mentions(text, aliases):
            return canonical
    return "other"


def round_robin(items: Iterable[CatalogItem]) -> List[CatalogItem]:
    """Interleave items bucketed by (seat class, material class), buckets in first-seen order"""
    buckets: Dict[Tuple[str, str], List[CatalogItem]] = {}
    for item in items:
        buckets.setdefault((seat_class(item), material_class(item)), []).append(item)
    queues = list(buckets.values())
    merged: List[CatalogItem] = []
    while any(queues):
        for queue in queues:
            if queue:
                merged.append(queue.pop(0))
    return merged


class AlternativesService:
    """Substitute items for a selection"""

    def __init__(
        self,
        gateway: CatalogGateway,
        style_resolver: Optional[StyleResolver] = None,
        page_size: Optional[int] = None,
        query_limit: Optional[int] = None,
    ):
        self.gateway = gateway
        self.style_resolver = style_resolver or StyleResolver()
        self.page_size = page_size or settings.alternatives_page_size
        self.query_limit = query_limit or settings.catalog_query_limit
        logger.info("AlternativesService initialized")

    async def alternatives(
        self,
        selection: Selection,
        style: Optional[StyleProfile] = None,
        limit: Optional[int] = None,
        offset: int = 0,
        show_all: bool = False,
        served_ids: Sequence[int] = (),
    ) -> List[CatalogItem]:
        """
        List substitutes for a selected line.

        Args:
            selection: The current selection to find substitutes for
            style: Active style profile used for re-ranking
            limit: Page size; defaults to the configured page size
            offset: Page offset, honoured only when show_all is set
            show_all: Ignore the price ceiling and the already-served set
            served_ids: Ids already shown for this type in the session

        Returns:
            Up to limit catalog items, never including the current item
        """
        limit = limit or self.page_size
        line = selection.line
        category, subcategory = resolve_category(line.item_type, line.subtype, line.room)

        ceiling = None if show_all else line.price_ceiling
        rows = await self._query(
            CatalogQuery(category=category, subcategory_like=subcategory, price_ceiling=ceiling, limit=self.query_limit)
        )
        excluded = {selection.item.id}
        if not show_all:
            excluded.update(served_ids)

        pool = [r for r in rows if r.id not in excluded]
        if ceiling is not None and len(pool) < limit:
            extra = await self._query(CatalogQuery(category=category, subcategory_like=subcategory, limit=self.query_limit))
            seen = {r.id for r in pool}
            pool.extend(r for r in extra if r.id not in excluded and r.id not in seen)

        pool = self._apply_structure(selection, pool)
        pool = self._rank_by_style(pool, style, line.room)
        diversified = round_robin(pool)

        start = offset if show_all else 0
        page = diversified[start:start + limit]
        logger.info(
            f"[ALTERNATIVES] {line.item_type} in {line.room}: {len(page)} of {len(diversified)} "
            f"(offset={start}, show_all={show_all}, served={len(served_ids)})"
        )
        return page

    async def find_by_name(self, selection: Selection, name_query: str, style: Optional[StyleProfile] = None) -> Optional[CatalogItem]:
        """Match a free-text name inside the first page of lookup alternatives"""
        candidates = await self.alternatives(selection, style=style, limit=settings.replace_lookup_limit, show_all=True)
        tokens = [t for t in re.findall(r"[a-z0-9]+", (name_query or "").lower()) if len(t) > 1]
        if not tokens:
            return candidates[0] if candidates else None

        best, best_hits = None, 0
        for item in candidates:
            hits = sum(1 for token in tokens if token in item.text)
            if hits == len(tokens):
                return item
            if hits > best_hits:
                best, best_hits = item, hits
        return best

    async def _query(self, query: CatalogQuery) -> List[CatalogItem]:
        try:
            return await self.gateway.query(query)
        except CatalogGatewayError as e:
            logger.warning(f"[ALTERNATIVES] Catalog query failed: {e}")
            return []

    @staticmethod
    def _apply_structure(selection: Selection, rows: List[CatalogItem]) -> List[CatalogItem]:
        line = selection.line
        for tokens in (material_tokens(line.specs.material), shape_tokens(line.specs.shape)):
            if tokens:
                subset = [r for r in rows if text_mentions(r.text, tokens)]
                rows = subset or rows
        if line.item_type == "sofa" and line.min_seats:
            meeting = [r for r in rows if (r.seat_count or 0) >= line.min_seats]
            rows = meeting or rows
        return rows

    def _rank_by_style(self, rows: List[CatalogItem], style: Optional[StyleProfile], room: str) -> List[CatalogItem]:
        if not style:
            return rows
        scored = [(self.style_resolver.score(r.text, style, room), r) for r in rows]
        positive = [pair for pair in scored if pair[0] > 0]
        pool = positive or scored
        pool.sort(key=lambda pair: (-pair[0], pair[1].price, pair[1].id))
        return [r for _, r in pool]
