"""
Unit tests for the Budget Policy
"""
import pytest

from homequote.engines.quotation import BudgetPolicy, LineSpecs, RequestedLine
from homequote.engines.quotation.budget_policy import base_cap, cap_key, min_sofa_seats, table_cap
from homequote.engines.quotation.schemas import BudgetFact, BudgetScope, RoomDimension


@pytest.fixture
def policy():
    return BudgetPolicy()


def sofa(**spec_fields):
    return RequestedLine(item_type="sofa", room="living", specs=LineSpecs(**spec_fields))


class TestPriceCeilings:
    """Tests for per-line price ceilings"""

    @pytest.mark.unit
    def test_cap_keys(self):
        assert cap_key(RequestedLine(item_type="table", room="living", specs=LineSpecs(subtype="coffee"))) == "table:coffee"
        assert cap_key(RequestedLine(item_type="chair", room="dining", quantity=4)) == "chair:dining"
        assert cap_key(RequestedLine(item_type="chair", room="study")) == "chair"
        assert cap_key(sofa()) == "sofa"

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "bhk,tier,expected",
        [
            (2, "economy", 35000),
            (2, "premium", 49000),
            (None, "economy", 35000),
            (3, "economy", 55000),
            (5, "luxury", 152000),
        ],
    )
    def test_sofa_table_cap(self, bhk, tier, expected):
        assert table_cap(sofa(), bhk, tier) == expected

    @pytest.mark.unit
    def test_uncapped_type_uses_area_fallback(self):
        desk = RequestedLine(item_type="desk", room="study")

        assert table_cap(desk, 2, "economy") is None
        assert base_cap(None) == 20000
        assert base_cap(700) == 15000
        assert base_cap(1000) == 20000
        assert base_cap(2000) == 30000
        assert base_cap(None, style_changed=True) == 24000

    @pytest.mark.unit
    def test_given_fallback_cap_used(self, policy):
        desk = RequestedLine(item_type="desk", room="study")

        computed = policy.annotate([desk], bhk=2, tier="economy", area_sqft=700)
        given = policy.annotate([desk], bhk=2, tier="economy", area_sqft=700, fallback_cap=18000)

        assert computed[0].price_ceiling == 15000
        assert given[0].price_ceiling == 18000

    @pytest.mark.unit
    def test_total_budget_spread_across_units(self, policy):
        """Each ceiling is the lower of the table cap and the per-unit share"""
        lines = [sofa(), RequestedLine(item_type="chair", room="dining", quantity=3)]
        annotated = policy.annotate(lines, bhk=2, tier="premium", budget=BudgetFact(amount=100000))

        # 4 units -> 25000 share; the dining chair cap is lower than the share
        assert annotated[0].price_ceiling == 25000
        assert annotated[1].price_ceiling == 7000

    @pytest.mark.unit
    def test_per_item_budget_sets_ceiling(self, policy):
        annotated = policy.annotate([sofa()], bhk=2, tier="economy", budget=BudgetFact(amount=60000, scope=BudgetScope.PER_ITEM))

        assert annotated[0].price_ceiling == 60000

    @pytest.mark.unit
    def test_annotation_returns_new_lines(self, policy):
        original = sofa()
        annotated = policy.annotate([original], bhk=3, tier="economy")

        assert original.price_ceiling is None
        assert annotated[0].price_ceiling == 55000
        assert annotated[0].bhk_context == 3


class TestSeatFloor:
    """Tests for the sofa minimum seat rule"""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "width,unit,expected",
        [
            (9, "ft", None),
            (10, "ft", 3),
            (13, "ft", 4),
            (15, "ft", 5),
            (4, "m", 4),
            (460, "cm", 5),
        ],
    )
    def test_min_seats_from_living_width(self, width, unit, expected):
        dimensions = [RoomDimension(room="living", width=width, unit=unit)]

        assert min_sofa_seats(dimensions) == expected

    @pytest.mark.unit
    def test_other_rooms_ignored(self):
        assert min_sofa_seats([RoomDimension(room="master bedroom", width=16)]) is None

    @pytest.mark.unit
    def test_seater_spec_raises_floor(self, policy):
        dimensions = [RoomDimension(room="living", width=11)]
        annotated = policy.annotate([sofa(seater_count=5), sofa()], bhk=2, tier="economy", room_dimensions=dimensions)

        assert annotated[0].min_seats == 5
        assert annotated[1].min_seats == 3

    @pytest.mark.unit
    def test_style_change_skips_width_rule(self, policy):
        dimensions = [RoomDimension(room="living", width=15)]
        annotated = policy.annotate([sofa()], bhk=2, tier="economy", room_dimensions=dimensions, style_changed=True)

        assert annotated[0].min_seats is None
