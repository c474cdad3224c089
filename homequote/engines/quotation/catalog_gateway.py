"""
Catalog Query Gateway

Typed query interface over the priced-item store. The quotation engine only talks
to the catalog through this interface; consumers receive CatalogItem copies.
"""
import asyncio
import logging
from typing import Callable, Iterable, List, Optional

from sqlalchemy import asc, desc, select
from sqlalchemy.exc import SQLAlchemyError

from homequote.core.config import settings
from homequote.database.models import CatalogItemRecord
from .errors import CatalogGatewayError
from .schemas import CatalogItem, CatalogQuery

logger = logging.getLogger(__name__)


class CatalogGateway:
    """Query-by-filter/order/limit interface over the catalog"""

    async def query(self, query: CatalogQuery) -> List[CatalogItem]:
        raise NotImplementedError

    async def fetch_by_id(self, item_id: int) -> Optional[CatalogItem]:
        raise NotImplementedError


class SQLCatalogGateway(CatalogGateway):
    """Catalog gateway backed by the catalog_items table"""

    def __init__(self, session_factory: Callable, timeout: Optional[float] = None):
        """
        Args:
            session_factory: Callable returning an AsyncSession context manager
            timeout: Seconds before a query is abandoned
        """
        self.session_factory = session_factory
        self.timeout = timeout if timeout is not None else settings.catalog_timeout_seconds

    async def query(self, query: CatalogQuery) -> List[CatalogItem]:
        stmt = select(CatalogItemRecord).where(CatalogItemRecord.is_available == True)  # noqa: E712

        if query.category:
            stmt = stmt.where(CatalogItemRecord.category.ilike(query.category))
        if query.subcategory_like:
            stmt = stmt.where(CatalogItemRecord.subcategory.ilike(f"%{query.subcategory_like}%"))
        if query.price_ceiling is not None:
            stmt = stmt.where(CatalogItemRecord.price <= query.price_ceiling)

        price_order = desc(CatalogItemRecord.price) if query.descending else asc(CatalogItemRecord.price)
        stmt = stmt.order_by(price_order, asc(CatalogItemRecord.id)).offset(query.offset).limit(query.limit)

        records = await self._execute(stmt, f"query {query.category}/{query.subcategory_like} <= {query.price_ceiling}")
        return [CatalogItem.from_record(r) for r in records]

    async def fetch_by_id(self, item_id: int) -> Optional[CatalogItem]:
        stmt = select(CatalogItemRecord).where(CatalogItemRecord.id == item_id)
        records = await self._execute(stmt, f"fetch id={item_id}")
        return CatalogItem.from_record(records[0]) if records else None

    async def _execute(self, stmt, description: str):
        try:
            async with self.session_factory() as session:
                result = await asyncio.wait_for(session.execute(stmt), timeout=self.timeout)
                return list(result.scalars().all())
        except asyncio.TimeoutError as e:
            logger.warning(f"[CATALOG] Timed out after {self.timeout}s: {description}")
            raise CatalogGatewayError(f"Catalog timeout: {description}") from e
        except SQLAlchemyError as e:
            logger.error(f"[CATALOG] Query failed ({description}): {e}")
            raise CatalogGatewayError(f"Catalog query failed: {description}") from e


class InMemoryCatalogGateway(CatalogGateway):
    """Catalog gateway over a fixed list of items, with the same semantics as the SQL gateway"""

    def __init__(self, items: Iterable[CatalogItem]):
        self.items = {item.id: item for item in items}

    async def query(self, query: CatalogQuery) -> List[CatalogItem]:
        rows = list(self.items.values())
        if query.category:
            category = query.category.lower()
            rows = [r for r in rows if (r.category or "").lower() == category]
        if query.subcategory_like:
            needle = query.subcategory_like.lower()
            rows = [r for r in rows if needle in (r.subcategory or "").lower()]
        if query.price_ceiling is not None:
            rows = [r for r in rows if r.price <= query.price_ceiling]

        if query.descending:
            rows.sort(key=lambda r: (-r.price, r.id))
        else:
            rows.sort(key=lambda r: (r.price, r.id))
        return rows[query.offset:query.offset + query.limit]

    async def fetch_by_id(self, item_id: int) -> Optional[CatalogItem]:
        return self.items.get(item_id)
