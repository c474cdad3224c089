"""
Shared pytest fixtures and configuration for all tests
"""
import json
import sys
from pathlib import Path
from typing import AsyncGenerator, List
from unittest.mock import AsyncMock, Mock

import pytest

# Add the repository root to the path so homequote imports without installation
sys.path.insert(0, str(Path(__file__).parent.parent))

# Import after path is set
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from homequote.database.models import Base, CatalogItemRecord
from homequote.engines.quotation import (
    CatalogItem,
    InMemoryCatalogGateway,
    InMemorySessionStore,
    QuotationEngine,
)


def make_item(item_id, name, price, category, subcategory=None, description="", details=""):
    return CatalogItem(
        id=item_id,
        name=name,
        price=price,
        category=category,
        subcategory=subcategory,
        description=description,
        details=details,
    )


SAMPLE_CATALOG = [
    # Sofas
    make_item(101, "Oslo 3 Seater Fabric Sofa", 32000, "Sofa", "sofa", "Sleek modern sofa with clean lines"),
    make_item(102, "Aria 2 Seater Leather Sofa", 28000, "Sofa", "sofa", "Compact leather loveseat"),
    make_item(103, "Milano 4 Seater Sofa", 36000, "Sofa", "sofa", "Roomy fabric sofa, matte finish"),
    make_item(104, "Havana 5 Seater Sectional L-Shape Sofa", 65000, "Sofa", "sofa", "Large corner sectional"),
    make_item(105, "Cozy 1 Seater Sofa", 12000, "Sofa", "sofa", "Single seat lounge sofa"),
    make_item(106, "Verona 3 Seater Leather Sofa", 45000, "Sofa", "sofa", "Premium top-grain leather"),
    make_item(107, "Lars Curved 3 Seater Velvet Sofa", 39000, "Sofa", "sofa", "Curved silhouette in velvet"),
    # TV benches
    make_item(201, "Strata TV Unit", 18000, "Tv-bench", "tv unit", "Modern low profile tv unit"),
    make_item(202, "Kobe TV Bench", 12000, "Tv-bench", "tv bench", "Engineered wood tv bench"),
    make_item(203, "Grand Media Console", 25000, "Tv-bench", "tv unit", "Walnut media console"),
    # Tables
    make_item(301, "Halo Coffee Table", 9500, "Table", "coffee table", "Round glass coffee table"),
    make_item(302, "Block Coffee Table", 7000, "Table", "coffee table", "Solid wood coffee table"),
    make_item(303, "Marble Coffee Table", 14000, "Table", "coffee table", "Marble top coffee table"),
    make_item(311, "Pip Side Table", 4000, "Table", "side table", "Metal side table"),
    make_item(321, "Nook Bedside Table", 6500, "Table", "bedside table", "Two drawer bedside table"),
    make_item(322, "Luna Bedside Table", 5000, "Table", "bedside table", "Open shelf bedside table"),
    make_item(323, "Mini Bedside Table", 3500, "Table", "bedside table", "Compact bedside table"),
    make_item(331, "Fiesta 6 Seater Dining Table", 30000, "Table", "dining table", "Sheesham dining table"),
    make_item(332, "Cafe 4 Seater Dining Table", 22000, "Table", "dining table", "Compact dining table"),
    # Lamps
    make_item(401, "Arc Floor Lamp", 3000, "Lamp", "floor lamp", "Brushed metal floor lamp"),
    make_item(402, "Drum Table Lamp", 2000, "Lamp", "table lamp", "Linen shade lamp"),
    # Beds
    make_item(501, "Regal King Size Bed", 36000, "Bed", "bed", "Upholstered king size bed"),
    make_item(502, "Nora Queen Bed", 30000, "Bed", "bed", "Queen size bed with storage"),
    make_item(503, "Duo Double Bed", 22000, "Bed", "bed", "Double bed in engineered wood"),
    make_item(504, "Basic Single Bed", 12000, "Bed", "bed", "Single bed"),
    # Wardrobes
    make_item(601, "Atlas 4 Door Wardrobe", 38000, "Wardrobe", "wardrobe", "Four door wardrobe"),
    make_item(602, "Vega 3 Door Wardrobe", 30000, "Wardrobe", "wardrobe", "Three door wardrobe"),
    make_item(603, "Slim 2 Door Wardrobe", 25000, "Wardrobe", "wardrobe", "Two door wardrobe"),
    # Mirrors
    make_item(701, "Sunburst Mirror", 4000, "Mirror", "wall mirror", "Decorative wall mirror"),
    make_item(702, "Oval Mirror", 2500, "Mirror", "wall mirror", "Oval wall mirror"),
    make_item(703, "Square Mirror", 1800, "Mirror", "wall mirror", "Square wall mirror"),
    # Kitchen and bathroom
    make_item(801, "Rail Kitchen Shelf", 7000, "Shelf", "wall shelf", "Metal kitchen shelf"),
    make_item(802, "Float Wall Shelf", 5000, "Shelf", "wall shelf", "Floating shelf"),
    make_item(901, "Basin Washstand", 11000, "Wash-stand", "washstand", "Washstand with basin cabinet"),
    make_item(902, "Compact Washstand", 8000, "Wash-stand", "washstand", "Compact washstand"),
    # Chairs
    make_item(1001, "Dine Chair", 4500, "Chair", "dining chair", "Upholstered dining chair"),
    make_item(1002, "Cane Dining Chair", 4000, "Chair", "dining chair", "Cane back dining chair"),
    make_item(1003, "Bistro Dining Chair", 3500, "Chair", "dining chair", "Metal dining chair"),
    make_item(1011, "Wing Armchair", 9000, "Chair", "armchair", "Fabric wing armchair"),
    make_item(1021, "Ergo Office Chair", 8000, "Chair", "office chair", "Mesh office chair"),
    # Storage and study
    make_item(1101, "Utility Cabinet", 12000, "Cabinet", "cabinet", "Tall storage cabinet"),
    make_item(1201, "Writer Desk", 14000, "Desk", "desk", "Study desk"),
    make_item(1301, "Stack Bookcase", 9000, "Bookcase", "bookcase", "Five shelf bookcase"),
    make_item(1401, "Entry Shoe Rack", 6000, "Shoe rack", "shoe rack", "Three tier shoe rack"),
]


@pytest.fixture
def sample_catalog() -> List[CatalogItem]:
    """Priced catalog covering every baseline line type"""
    return list(SAMPLE_CATALOG)


@pytest.fixture
def catalog_gateway(sample_catalog):
    """In-memory catalog gateway over the sample catalog"""
    return InMemoryCatalogGateway(sample_catalog)


@pytest.fixture
def session_store():
    return InMemorySessionStore()


@pytest.fixture
def engine(catalog_gateway, session_store):
    """Quotation engine with deterministic collaborators only"""
    return QuotationEngine(gateway=catalog_gateway, session_store=session_store)


@pytest.fixture
def test_db_url():
    """Database URL for testing"""
    return "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def test_engine(test_db_url):
    """Async engine sharing one in-memory connection, with tables created"""
    engine = create_async_engine(test_db_url, poolclass=StaticPool, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
async def seeded_catalog(session_factory, sample_catalog):
    """Sample catalog written to the catalog_items table"""
    async with session_factory() as session:
        for item in sample_catalog:
            session.add(
                CatalogItemRecord(
                    id=item.id,
                    name=item.name,
                    price=item.price,
                    category=item.category,
                    subcategory=item.subcategory,
                    description=item.description,
                    details=item.details,
                    is_available=True,
                )
            )
        await session.commit()
    return session_factory


def completion_response(payload, total_tokens: int = 42):
    """Chat-completion shaped mock whose first choice carries payload as JSON"""
    content = payload if isinstance(payload, str) else json.dumps(payload)
    response = Mock()
    response.choices = [Mock()]
    response.choices[0].message = Mock()
    response.choices[0].message.content = content
    response.usage = Mock()
    response.usage.total_tokens = total_tokens
    return response


@pytest.fixture
def make_completion():
    return completion_response


@pytest.fixture
def mock_openai_client():
    """Mock OpenAI client for testing without API calls"""
    mock = Mock()
    mock.chat = Mock()
    mock.chat.completions = Mock()
    mock.chat.completions.create = AsyncMock()
    return mock


@pytest.fixture
def llm_settings(monkeypatch):
    """Enable every LLM collaborator toggle for the duration of a test"""
    from homequote.core.config import settings

    for flag in ("use_llm_intent", "use_llm_summary", "use_llm_essentials", "use_llm_floorplan"):
        monkeypatch.setattr(settings, flag, True)
    return settings
