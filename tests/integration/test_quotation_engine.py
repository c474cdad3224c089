"""
Integration tests for the quotation engine
Tests complete multi-turn conversations against an in-memory catalog and session store
"""
from unittest.mock import AsyncMock, Mock

import pytest

from homequote.engines.quotation import (
    FloorPlanHint,
    InMemoryCatalogGateway,
    InMemorySessionStore,
    QuotationEngine,
    SQLCatalogGateway,
    SQLSessionStore,
)
from homequote.engines.quotation.schemas import DeltaReason, RoomDimension
from homequote.services.llm_service import IntentResult

TWO_BHK = "2 BHK, budget ₹600000, modern"


def by_type(result, item_type, room=None):
    return [i for i in result.quotation.items if i.line_type == item_type and (room is None or i.room == room)]


class TestInitialQuotation:
    """Integration tests for the first turn of a session"""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_two_bhk_quotation(self, engine):
        result = await engine.handle_turn("s1", TWO_BHK)

        assert result.plan.tier == "premium"
        assert result.plan.rooms == ["living", "kitchen", "bathroom", "master bedroom", "bedroom 2"]
        assert len(result.quotation.items) == 16
        assert result.quotation.unmet_lines == []
        assert result.quotation.total_estimate <= 600000
        assert result.quotation.over_budget is False
        assert result.applied_styles == ["modern"]
        assert by_type(result, "sofa")[0].item.id == 101
        assert all(d.reason == DeltaReason.ADDED for d in result.quotation.per_line_delta)
        assert result.quotation.total_delta == result.quotation.total_estimate

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_no_catalog_id_repeats(self, engine):
        result = await engine.handle_turn("s1", TWO_BHK)
        ids = [i.item.id for i in result.quotation.items]

        assert len(ids) == len(set(ids))

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_explicit_rooms(self, engine):
        result = await engine.handle_turn("s1", "only living room and kitchen please")

        assert {i.room for i in result.quotation.items} == {"living", "kitchen"}

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_first_turn_command_keeps_named_rooms(self, engine):
        result = await engine.handle_turn("s1", "living room and study, add a bookcase")

        assert result.command == "add"
        assert {i.room for i in result.quotation.items} == {"living", "study"}
        assert by_type(result, "bookcase")

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_exclusion_in_first_turn(self, engine):
        result = await engine.handle_turn("s1", "2 bhk without kitchen")

        assert "kitchen" not in result.plan.rooms
        assert result.plan.excluded_rooms == ["kitchen"]
        assert result.command is None

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_living_width_sets_seat_floor(self, engine):
        floor_plan = FloorPlanHint(room_dimensions=[RoomDimension(room="living", width=15)])
        result = await engine.handle_turn("s1", "2 bhk", floor_plan=floor_plan)

        assert by_type(result, "sofa")[0].item.id == 104

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unmet_line_asks_one_question(self, sample_catalog):
        catalog = [item for item in sample_catalog if item.category != "Tv-bench"]
        engine = QuotationEngine(gateway=InMemoryCatalogGateway(catalog), session_store=InMemorySessionStore())

        result = await engine.handle_turn("s1", "1 bhk")

        assert [u.line.item_type for u in result.quotation.unmet_lines] == ["tv_bench"]
        assert "tv bench (living)" in result.quotation.clarification
        assert by_type(result, "sofa")


class TestFollowUpTurns:
    """Integration tests for commands against an existing quotation"""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_repeat_turn_changes_nothing(self, engine):
        first = await engine.handle_turn("s1", TWO_BHK)
        second = await engine.handle_turn("s1", TWO_BHK)

        assert [i.item.id for i in second.quotation.items] == [i.item.id for i in first.quotation.items]
        assert second.quotation.total_delta == 0
        assert all(d.reason == DeltaReason.UNCHANGED for d in second.quotation.per_line_delta)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_replace_with_id_touches_only_that_line(self, engine):
        first = await engine.handle_turn("s1", TWO_BHK)
        second = await engine.handle_turn("s1", "replace sofa with id 106")

        assert second.command == "replace"
        assert by_type(second, "sofa")[0].item.id == 106
        changed = [d for d in second.quotation.per_line_delta if d.reason != DeltaReason.UNCHANGED]
        assert [(d.item_type, d.reason) for d in changed] == [("sofa", DeltaReason.REPLACED)]
        assert second.quotation.total_estimate == first.quotation.total_estimate + 13000

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_replace_by_name(self, engine):
        await engine.handle_turn("s1", TWO_BHK)
        result = await engine.handle_turn("s1", "replace the sofa with the verona")

        assert by_type(result, "sofa")[0].item.id == 106

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_add_with_id_adds_second_line(self, engine):
        await engine.handle_turn("s1", TWO_BHK)
        result = await engine.handle_turn("s1", "add tv_bench with id 202")

        benches = by_type(result, "tv_bench")
        assert sorted(b.item.id for b in benches) == [201, 202]
        assert result.quotation.total_delta == 12000

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_set_quantity(self, engine):
        await engine.handle_turn("s1", TWO_BHK)
        result = await engine.handle_turn("s1", "set tv_bench qty to 2")

        benches = by_type(result, "tv_bench")
        assert len(benches) == 1
        assert benches[0].quantity == 2
        assert result.quotation.total_delta == benches[0].item.price

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_remove_room(self, engine):
        first = await engine.handle_turn("s1", TWO_BHK)
        result = await engine.handle_turn("s1", "remove the bathroom")

        assert not any(i.room == "bathroom" for i in result.quotation.items)
        removed = [d for d in result.quotation.per_line_delta if d.reason == DeltaReason.REMOVED]
        assert {d.item_type for d in removed} == {"washstand", "mirror"}
        assert len(result.quotation.items) == len(first.quotation.items) - 2

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_exclusion_after_first_turn_removes(self, engine):
        await engine.handle_turn("s1", TWO_BHK)
        result = await engine.handle_turn("s1", "without kitchen")

        assert result.command == "remove"
        assert not any(i.room == "kitchen" for i in result.quotation.items)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_new_room_expanded(self, engine):
        await engine.handle_turn("s1", TWO_BHK)
        result = await engine.handle_turn("s1", "also furnish a study")

        study = {i.line_type for i in result.quotation.items if i.room == "study"}
        assert study == {"desk", "chair", "bookcase"}
        added = [d for d in result.quotation.per_line_delta if d.reason == DeltaReason.ADDED]
        assert len(added) == 3

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_style_change_reselects(self, engine):
        first = await engine.handle_turn("s1", TWO_BHK)
        second = await engine.handle_turn("s1", "switch the style to industrial")

        assert second.applied_styles == ["industrial"]
        assert by_type(second, "sofa")[0].item.id != by_type(first, "sofa")[0].item.id


class TestAlternatives:
    """Integration tests for alternatives"""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_in_turn_alternatives_never_repeat(self, engine):
        await engine.handle_turn("s1", TWO_BHK)
        first = await engine.handle_turn("s1", "show more options for the sofa")
        second = await engine.handle_turn("s1", "show more options for the sofa")

        assert first.alternatives_for == "sofa"
        assert first.alternatives
        assert 101 not in [i.id for i in first.alternatives + second.alternatives]
        assert not {i.id for i in first.alternatives} & {i.id for i in second.alternatives}

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_alternatives_for_session(self, engine):
        await engine.handle_turn("s1", TWO_BHK)

        first = await engine.alternatives_for("s1", "sofa")
        second = await engine.alternatives_for("s1", "sofa")
        everything = await engine.alternatives_for("s1", "sofa", show_all=True, offset=0, limit=10)

        assert not {i.id for i in first} & {i.id for i in second}
        assert len(everything) == 6
        assert await engine.alternatives_for("s1", "desk") == []


class TestSessionOperations:
    """Integration tests for session state operations"""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_current_quotation_and_reset(self, engine):
        result = await engine.handle_turn("s1", TWO_BHK)

        quotation = await engine.current_quotation("s1")
        assert quotation.total_estimate == result.quotation.total_estimate

        await engine.reset_session("s1")
        assert (await engine.get_session("s1")).is_empty

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_sessions_are_independent(self, engine):
        await engine.handle_turn("a", TWO_BHK)
        other = await engine.handle_turn("b", "1 bhk")

        assert other.plan.rooms == ["living", "kitchen", "bathroom", "master bedroom"]
        assert all(d.reason == DeltaReason.ADDED for d in other.quotation.per_line_delta)

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_shared_store_between_engines(self, catalog_gateway, session_store):
        first_engine = QuotationEngine(gateway=catalog_gateway, session_store=session_store)
        second_engine = QuotationEngine(gateway=catalog_gateway, session_store=session_store)

        await first_engine.handle_turn("s1", TWO_BHK)
        result = await second_engine.handle_turn("s1", "replace sofa with id 106")

        assert result.quotation.total_delta == 13000

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_database_backed_engine(self, seeded_catalog):
        engine = QuotationEngine(gateway=SQLCatalogGateway(seeded_catalog), session_store=SQLSessionStore(seeded_catalog))

        first = await engine.handle_turn("s1", TWO_BHK)
        second = await engine.handle_turn("s1", "set tv_bench qty to 2")

        assert len(first.quotation.items) == 16
        assert second.quotation.total_delta == 18000


class TestCollaborators:
    """Integration tests with mocked LLM collaborators"""

    @pytest.fixture
    def llm(self):
        llm = Mock()
        llm.parse_intent = AsyncMock(return_value=IntentResult(rooms=["living", "study"], theme="japandi"))
        llm.summarize = AsyncMock(return_value=None)
        llm.propose_essentials = AsyncMock(return_value=None)
        llm.analyze_floor_plan = AsyncMock(return_value=None)
        return llm

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_intent_fills_gaps(self, catalog_gateway, session_store, llm):
        engine = QuotationEngine(gateway=catalog_gateway, session_store=session_store, llm=llm)

        result = await engine.handle_turn("s1", "furnish my place")

        assert result.plan.rooms == ["living", "study"]
        assert result.plan.theme == "japandi"
        study_chair = [i for i in result.quotation.items if i.room == "study" and i.line_type == "chair"]
        assert study_chair[0].item.id == 1021
        llm.parse_intent.assert_awaited_once()
        llm.analyze_floor_plan.assert_not_called()

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_text_facts_win_over_intent(self, catalog_gateway, session_store, llm):
        llm.parse_intent.return_value = IntentResult(bhk=4, theme="boho")
        engine = QuotationEngine(gateway=catalog_gateway, session_store=session_store, llm=llm)

        result = await engine.handle_turn("s1", "1 bhk modern")

        assert result.plan.bhk == 1
        assert result.plan.theme == "modern"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_failing_collaborator_falls_back(self, catalog_gateway, session_store, llm):
        llm.parse_intent.side_effect = RuntimeError("model overloaded")
        engine = QuotationEngine(gateway=catalog_gateway, session_store=session_store, llm=llm)

        result = await engine.handle_turn("s1", "1 bhk")

        assert len(result.quotation.items) > 0

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_floor_plan_image_analyzed(self, catalog_gateway, session_store, llm):
        llm.parse_intent.return_value = None
        llm.analyze_floor_plan.return_value = FloorPlanHint(bhk=3, sqft=1500)
        engine = QuotationEngine(gateway=catalog_gateway, session_store=session_store, llm=llm)

        result = await engine.handle_turn("s1", "here is my floor plan", floor_plan_image_url="https://example.com/p.png")

        assert result.plan.bhk == 3
        assert result.plan.size_tier == "large"
        llm.analyze_floor_plan.assert_awaited_once_with("https://example.com/p.png")
