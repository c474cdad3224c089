"""
Unit tests for the Session Reconciler
Tests line pairing, reuse, forced preservation and per-line deltas
"""
import pytest

from homequote.engines.quotation import (
    CatalogItem,
    LineSpecs,
    RequestedLine,
    Selection,
    SessionReconciler,
    UnmetLine,
    pair_lines,
)
from homequote.engines.quotation.reconciler import build_signature_index, touched_line_keys
from homequote.engines.quotation.schemas import (
    BudgetFact,
    BudgetScope,
    ChangeReason,
    ChangeRecord,
    DeltaReason,
    SelectionReason,
)


def item(item_id, price, category="Sofa"):
    return CatalogItem(id=item_id, name=f"Item {item_id}", price=price, category=category)


def select(item_type, room, item_id, price, quantity=1, **spec_fields):
    line = RequestedLine(item_type=item_type, room=room, quantity=quantity, specs=LineSpecs(**spec_fields))
    return Selection(line=line, item=item(item_id, price))


@pytest.fixture
def reconciler():
    return SessionReconciler()


@pytest.fixture
def prior_selections():
    return [
        select("sofa", "living", 101, 32000),
        select("tv_bench", "living", 201, 18000),
        select("bed", "master bedroom", 501, 36000),
        select("bed", "bedroom 2", 502, 30000),
    ]


class TestPairing:
    """Tests for signature-based line pairing"""

    @pytest.mark.unit
    def test_room_and_signature_first(self):
        prior = [RequestedLine(item_type="bed", room="master bedroom"), RequestedLine(item_type="bed", room="bedroom 2")]
        new = [RequestedLine(item_type="bed", room="bedroom 2"), RequestedLine(item_type="bed", room="master bedroom")]

        assert pair_lines(new, prior) == [1, 0]

    @pytest.mark.unit
    def test_moved_line_still_pairs(self):
        prior = [RequestedLine(item_type="lamp", room="living")]
        new = [RequestedLine(item_type="lamp", room="study")]

        assert pair_lines(new, prior) == [0]

    @pytest.mark.unit
    def test_changed_signature_does_not_pair(self):
        prior = [RequestedLine(item_type="sofa", room="living")]
        new = [RequestedLine(item_type="sofa", room="living", specs=LineSpecs(material="leather"))]

        assert pair_lines(new, prior) == [None]

    @pytest.mark.unit
    def test_signature_index(self, prior_selections):
        index = build_signature_index(prior_selections)

        assert index["bed|||"] == [501, 502]


class TestReuse:
    """Tests for reuse eligibility"""

    @pytest.mark.unit
    def test_untouched_lines_reuse(self, reconciler, prior_selections):
        lines = [s.line for s in prior_selections]

        assert reconciler.reuse_ids(lines, prior_selections, set()) == [101, 201, 501, 502]

    @pytest.mark.unit
    def test_only_reselected_line_loses_reuse(self, reconciler, prior_selections):
        """Another line of the same type keeps its prior item"""
        lines = [s.line for s in prior_selections]

        assert reconciler.reuse_ids(lines, prior_selections, {("master bedroom", "bed|||")}) == [101, 201, None, 502]

    @pytest.mark.unit
    def test_quantity_change_still_reuses(self, reconciler, prior_selections):
        lines = [s.line for s in prior_selections]
        lines[1] = lines[1].with_changes(quantity=2)

        assert reconciler.reuse_ids(lines, prior_selections, set()) == [101, 201, 501, 502]

    @pytest.mark.unit
    def test_signature_index_fallback(self, reconciler, prior_selections):
        lines = [s.line for s in prior_selections]
        index = build_signature_index(prior_selections)

        assert reconciler.reuse_ids(lines, [], set(), signature_index=index) == [101, 201, 501, 502]


class TestPreservation:
    """Tests for forced preservation on command turns"""

    @pytest.mark.unit
    def test_untouched_lines_restored(self, reconciler, prior_selections):
        """A reselected untouched line is forced back to its prior item"""
        current = [
            select("sofa", "living", 106, 45000),
            select("tv_bench", "living", 203, 25000),
            select("bed", "master bedroom", 501, 36000),
            select("bed", "bedroom 2", 502, 30000),
        ]
        selections, unmet, deltas = reconciler.reconcile(current, [], prior_selections, {("living", "sofa|||")}, enforce_preservation=True)

        assert [s.item.id for s in selections] == [106, 201, 501, 502]
        assert selections[1].reason == SelectionReason.REUSED
        assert [d.reason for d in deltas] == [DeltaReason.REPLACED] + [DeltaReason.UNCHANGED] * 3
        assert sum(d.delta for d in deltas) == 13000

    @pytest.mark.unit
    def test_unmet_untouched_line_keeps_prior(self, reconciler, prior_selections):
        current = [select("sofa", "living", 106, 45000), select("bed", "master bedroom", 501, 36000), select("bed", "bedroom 2", 502, 30000)]
        unmet = [UnmetLine(line=prior_selections[1].line, reasons=("ceiling",))]

        selections, remaining, _ = reconciler.reconcile(current, unmet, prior_selections, {("living", "sofa|||")}, enforce_preservation=True)

        assert remaining == []
        assert 201 in [s.item.id for s in selections]

    @pytest.mark.unit
    def test_no_preservation_without_command(self, reconciler, prior_selections):
        current = [select("sofa", "living", 106, 45000)] + list(prior_selections[1:])
        selections, _, _ = reconciler.reconcile(current, [], prior_selections, set(), enforce_preservation=False)

        assert selections[0].item.id == 106

    @pytest.mark.unit
    def test_sibling_of_removed_line_restored(self, reconciler, prior_selections):
        """Removing the master bed frees 501; bedroom 2 still keeps 502"""
        current = [
            select("sofa", "living", 101, 32000),
            select("tv_bench", "living", 201, 18000),
            select("bed", "bedroom 2", 501, 36000),
        ]
        touched = touched_line_keys([ChangeRecord("bed", ChangeReason.REMOVED, None, "bed|||", "master bedroom")])

        selections, _, deltas = reconciler.reconcile(current, [], prior_selections, touched, enforce_preservation=True)

        assert [s.item.id for s in selections] == [101, 201, 502]
        assert [d.reason for d in deltas] == [DeltaReason.UNCHANGED] * 3 + [DeltaReason.REMOVED]

    @pytest.mark.unit
    def test_quantity_change_is_not_reverted(self, reconciler, prior_selections):
        current = [s for s in prior_selections]
        current[1] = select("tv_bench", "living", 201, 18000, quantity=2)
        touched = touched_line_keys([ChangeRecord("tv_bench", ChangeReason.QTY, "tv_bench|||", "tv_bench|||", "living")])

        selections, _, deltas = reconciler.reconcile(current, [], prior_selections, touched, enforce_preservation=True)

        assert (selections[1].item.id, selections[1].line.quantity) == (201, 2)
        assert deltas[1].reason == DeltaReason.QTY


class TestTouchedKeys:
    """Tests for line identities touched by a command"""

    @pytest.mark.unit
    def test_keys_cover_before_and_after(self):
        changes = [
            ChangeRecord("sofa", ChangeReason.MODIFIED, "sofa||3|leather", "sofa|||", "living"),
            ChangeRecord("mirror", ChangeReason.REMOVED, None, "mirror|||", "bathroom"),
        ]

        assert touched_line_keys(changes) == {
            ("living", "sofa||3|leather"),
            ("living", "sofa|||"),
            ("bathroom", "mirror|||"),
        }

    @pytest.mark.unit
    def test_record_without_room_ignored(self):
        assert touched_line_keys([ChangeRecord("lamp", ChangeReason.ADDED, "lamp|||")]) == set()


class TestDeltas:
    """Tests for per-line deltas"""

    @pytest.mark.unit
    def test_added_removed_and_quantity(self, reconciler):
        prior = [select("chair", "dining", 1001, 4500, quantity=4), select("lamp", "living", 401, 3000)]
        current = [select("chair", "dining", 1001, 4500, quantity=6), select("desk", "study", 1201, 14000)]

        deltas = reconciler.compute_deltas(current, prior)
        by_type = {d.item_type: d for d in deltas}

        assert by_type["chair"].reason == DeltaReason.QTY
        assert by_type["chair"].delta == 9000
        assert by_type["desk"].reason == DeltaReason.ADDED
        assert by_type["lamp"].reason == DeltaReason.REMOVED
        assert by_type["lamp"].delta == -3000

    @pytest.mark.unit
    def test_price_change_on_same_item(self, reconciler):
        prior = [select("lamp", "living", 401, 3000)]
        current = [select("lamp", "living", 401, 3200)]

        assert reconciler.compute_deltas(current, prior)[0].reason == DeltaReason.PRICE


class TestQuotation:
    """Tests for quotation assembly"""

    @pytest.mark.unit
    def test_over_budget_flag(self, reconciler, prior_selections):
        quotation = reconciler.build_quotation(prior_selections, [], [], budget=BudgetFact(amount=100000))

        assert quotation.total_estimate == 116000
        assert quotation.over_budget is True
        assert quotation.budget_over_by == 16000

    @pytest.mark.unit
    def test_per_item_budget_never_over(self, reconciler, prior_selections):
        budget = BudgetFact(amount=40000, scope=BudgetScope.PER_ITEM)
        quotation = reconciler.build_quotation(prior_selections, [], [], budget=budget)

        assert quotation.over_budget is False

    @pytest.mark.unit
    def test_single_clarification_for_unmet(self, reconciler):
        unmet = [
            UnmetLine(line=RequestedLine(item_type="tv_bench", room="living")),
            UnmetLine(line=RequestedLine(item_type="table", room="living", specs=LineSpecs(subtype="coffee"))),
        ]
        quotation = reconciler.build_quotation([], unmet, [])

        assert quotation.clarification.count("?") == 1
        assert "tv bench (living)" in quotation.clarification
        assert "coffee table (living)" in quotation.clarification
