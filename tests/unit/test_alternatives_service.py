"""
Unit tests for the Alternatives Service
"""
import pytest

from homequote.engines.quotation import AlternativesService, LineSpecs, RequestedLine, Selection
from homequote.engines.quotation.alternatives_service import material_class, round_robin, seat_class


@pytest.fixture
def service(catalog_gateway):
    return AlternativesService(catalog_gateway, page_size=3)


@pytest.fixture
def sofa_selection(catalog_gateway):
    line = RequestedLine(item_type="sofa", room="living", price_ceiling=35000)
    return Selection(line=line, item=catalog_gateway.items[101])


class TestDiversity:
    """Tests for seat/material bucketing"""

    @pytest.mark.unit
    def test_classes(self, catalog_gateway):
        items = catalog_gateway.items

        assert seat_class(items[105]) == "small"
        assert seat_class(items[101]) == "medium"
        assert seat_class(items[104]) == "large"
        assert seat_class(items[201]) == "na"
        assert material_class(items[102]) == "leather"
        assert material_class(items[107]) == "fabric"

    @pytest.mark.unit
    def test_round_robin_interleaves_buckets(self, catalog_gateway):
        items = catalog_gateway.items
        merged = round_robin([items[102], items[106], items[101], items[107]])

        # (small, leather), (medium, leather), (medium, fabric): one from each before repeats
        assert [i.id for i in merged] == [102, 106, 101, 107]


class TestAlternatives:
    """Tests for alternative listing"""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_excludes_current_item(self, service, sofa_selection):
        page = await service.alternatives(sofa_selection)

        assert len(page) == 3
        assert 101 not in [i.id for i in page]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_within_ceiling_first_then_topped_up(self, service, sofa_selection):
        """Only two sofas other than the current fit under 35000; the third comes from the top-up"""
        page = await service.alternatives(sofa_selection)

        assert [i.id for i in page[:2]] == [105, 102]
        assert page[2].price > 35000

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_served_ids_not_repeated(self, service, sofa_selection):
        first = await service.alternatives(sofa_selection)
        second = await service.alternatives(sofa_selection, served_ids=[i.id for i in first])

        assert second
        assert not {i.id for i in first} & {i.id for i in second}

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_show_all_honours_offset(self, service, sofa_selection):
        first = await service.alternatives(sofa_selection, show_all=True)
        second = await service.alternatives(sofa_selection, show_all=True, offset=3, served_ids=[105])

        assert [i.id for i in first] == [105, 102, 103]
        assert [i.id for i in second] == [107, 106, 104]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_material_preference_kept(self, service, catalog_gateway):
        line = RequestedLine(item_type="sofa", room="living", price_ceiling=50000, specs=LineSpecs(material="leather"))
        selection = Selection(line=line, item=catalog_gateway.items[101])

        page = await service.alternatives(selection)

        assert [i.id for i in page] == [102, 106]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_find_by_name(self, service, sofa_selection):
        match = await service.find_by_name(sofa_selection, "verona")

        assert match.id == 106

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_find_by_name_best_partial_match(self, service, sofa_selection):
        match = await service.find_by_name(sofa_selection, "curved velvet couch")

        assert match.id == 107
