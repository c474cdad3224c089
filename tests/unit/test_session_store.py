"""
Unit tests for session stores and session prior encoding
"""
import pytest

from homequote.engines.quotation import (
    CatalogItem,
    InconsistentSessionPriorError,
    InMemorySessionStore,
    LineSpecs,
    RequestedLine,
    Selection,
    SessionPrior,
    SQLSessionStore,
)
from homequote.engines.quotation.schemas import BudgetFact, BudgetScope, StyleWeight


@pytest.fixture
def prior():
    line = RequestedLine(item_type="sofa", room="living", specs=LineSpecs(material="leather"), price_ceiling=49000)
    item = CatalogItem(id=106, name="Verona 3 Seater Leather Sofa", price=45000, category="Sofa", subcategory="sofa")
    return SessionPrior(
        selections=[Selection(line=line, item=item)],
        requested_lines=[line],
        signature_index={"sofa|||leather": [106]},
        served_ids={"sofa": [102, 105]},
        rooms=["living"],
        bhk=2,
        budget=BudgetFact(amount=600000, scope=BudgetScope.TOTAL),
        theme="modern",
        style_blend=[StyleWeight("modern", 60.0)],
    )


class TestSessionPrior:
    """Tests for prior decoding"""

    @pytest.mark.unit
    def test_empty(self):
        assert SessionPrior.from_dict(None).is_empty
        assert SessionPrior.from_dict({}).is_empty

    @pytest.mark.unit
    def test_decoded_prior_matches(self, prior):
        decoded = SessionPrior.from_dict(prior.to_dict())

        assert decoded.selections == prior.selections
        assert decoded.budget == prior.budget
        assert decoded.style_blend == prior.style_blend

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "blob",
        [
            ["not", "a", "mapping"],
            {"requested_lines": [{"type": "spaceship", "room": "living"}]},
            {"selections": [{"line": {"type": "sofa", "room": "living"}}]},
            {"requested_lines": [{"type": "sofa", "room": "living", "quantity": -1}]},
        ],
    )
    def test_malformed_raises(self, blob):
        with pytest.raises(InconsistentSessionPriorError):
            SessionPrior.from_dict(blob)


class TestInMemorySessionStore:
    """Tests for the in-memory store"""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_save_and_load(self, prior):
        store = InMemorySessionStore()
        await store.save("s1", prior)

        loaded = await store.load("s1")
        assert loaded.selections == prior.selections
        assert (await store.load("unknown")).is_empty

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stored_state_isolated_from_caller(self, prior):
        store = InMemorySessionStore()
        await store.save("s1", prior)

        loaded = await store.load("s1")
        loaded.rooms.append("kitchen")

        assert (await store.load("s1")).rooms == ["living"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_malformed_state_loads_empty(self):
        store = InMemorySessionStore()
        await store.save_raw("s1", {"requested_lines": [{"type": "spaceship", "room": "living"}]})

        assert (await store.load("s1")).is_empty

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_delete(self, prior):
        store = InMemorySessionStore()
        await store.save("s1", prior)
        await store.delete("s1")

        assert (await store.load("s1")).is_empty


class TestSQLSessionStore:
    """Tests for the database-backed store"""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_save_update_and_load(self, session_factory, prior):
        store = SQLSessionStore(session_factory)
        await store.save("s1", prior)

        prior.theme = "industrial"
        await store.save("s1", prior)

        loaded = await store.load("s1")
        assert loaded.theme == "industrial"
        assert loaded.selections == prior.selections

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_and_deleted(self, session_factory, prior):
        store = SQLSessionStore(session_factory)

        assert (await store.load("missing")).is_empty

        await store.save("s1", prior)
        await store.delete("s1")
        assert (await store.load("s1")).is_empty
