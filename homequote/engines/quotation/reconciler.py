"""
Session Reconciler / Diff Engine

Pairs this turn's lines with the previous turn's selections by line signature, enforces
preservation of untouched lines after explicit commands, and computes per-line deltas.
"""
import logging
from typing import AbstractSet, Dict, List, Optional, Sequence, Set, Tuple

from .schemas import (
    BudgetFact,
    BudgetScope,
    ChangeRecord,
    DeltaReason,
    LineDelta,
    Quotation,
    QuotationItem,
    RequestedLine,
    Selection,
    SelectionReason,
    UnmetLine,
)

logger = logging.getLogger(__name__)


def pair_lines(new_lines: Sequence[RequestedLine], prior_lines: Sequence[RequestedLine]) -> List[Optional[int]]:
    """
    Pair each new line with at most one prior line.

    Exact (room, signature) matches are paired first; remaining lines pair by
    signature in occurrence order, so a line moved between rooms still pairs.

    Returns:
        For each new line, the index of its prior partner or None
    """
    pairing: List[Optional[int]] = [None] * len(new_lines)
    taken: Set[int] = set()

    for i, line in enumerate(new_lines):
        for j, prior in enumerate(prior_lines):
            if j not in taken and prior.room == line.room and prior.signature == line.signature:
                pairing[i] = j
                taken.add(j)
                break

    for i, line in enumerate(new_lines):
        if pairing[i] is not None:
            continue
        for j, prior in enumerate(prior_lines):
            if j not in taken and prior.signature == line.signature:
                pairing[i] = j
                taken.add(j)
                break
    return pairing


def build_signature_index(selections: Sequence[Selection]) -> Dict[str, List[int]]:
    """signature -> chosen item ids, in line order"""
    index: Dict[str, List[int]] = {}
    for selection in selections:
        index.setdefault(selection.line.signature, []).append(selection.item.id)
    return index


LineKey = Tuple[str, str]


def touched_line_keys(changes: Sequence[ChangeRecord]) -> Set[LineKey]:
    """(room, signature) of every line a command touched, before and after the change"""
    keys: Set[LineKey] = set()
    for change in changes:
        for signature in (change.signature_after, change.signature_before):
            if signature and change.room:
                keys.add((change.room, signature))
    return keys


class SessionReconciler:
    """Reuse decisions, forced preservation and per-line deltas"""

    def reuse_ids(
        self,
        lines: Sequence[RequestedLine],
        prior_selections: Sequence[Selection],
        reselect_keys: AbstractSet[LineKey] = frozenset(),
        signature_index: Optional[Dict[str, List[int]]] = None,
    ) -> List[Optional[int]]:
        """
        Previously chosen id per line whose signature pairs with a prior line.

        Lines in reselect_keys are picked again from the catalog. Falls back to the
        prior signature index when the prior carries no selections.
        """
        result: List[Optional[int]] = [None] * len(lines)
        if prior_selections:
            pairing = pair_lines(lines, [s.line for s in prior_selections])
            for i, j in enumerate(pairing):
                if j is not None and lines[i].line_key not in reselect_keys:
                    result[i] = prior_selections[j].item.id
        elif signature_index:
            cursor: Dict[str, int] = {}
            for i, line in enumerate(lines):
                ids = signature_index.get(line.signature, [])
                position = cursor.get(line.signature, 0)
                if position < len(ids) and line.line_key not in reselect_keys:
                    result[i] = ids[position]
                cursor[line.signature] = position + 1
        reused = sum(1 for r in result if r is not None)
        logger.info(f"[RECONCILE] {reused}/{len(lines)} line(s) eligible for reuse")
        return result

    def reconcile(
        self,
        selections: Sequence[Selection],
        unmet: Sequence[UnmetLine],
        prior_selections: Sequence[Selection],
        touched_keys: AbstractSet[LineKey],
        enforce_preservation: bool,
    ) -> Tuple[List[Selection], List[UnmetLine], List[LineDelta]]:
        """
        Merge this turn's selections with the prior.

        Args:
            selections: Selection engine output for resolved lines
            unmet: Lines the selection engine could not resolve
            prior_selections: Previous turn's selections
            touched_keys: (room, signature) of the lines an explicit command touched
            enforce_preservation: True on explicit command turns; untouched lines then
                keep their prior item and quantity verbatim

        Returns:
            (selections, unmet lines, per-line deltas)
        """
        selections = list(selections)
        unmet = list(unmet)
        if enforce_preservation and prior_selections:
            selections, unmet = self._preserve_untouched(selections, unmet, prior_selections, touched_keys)
        deltas = self.compute_deltas(selections, prior_selections)
        return selections, unmet, deltas

    def _preserve_untouched(
        self,
        selections: List[Selection],
        unmet: List[UnmetLine],
        prior_selections: Sequence[Selection],
        touched_keys: AbstractSet[LineKey],
    ) -> Tuple[List[Selection], List[UnmetLine]]:
        prior_lines = [s.line for s in prior_selections]
        pairing = pair_lines([s.line for s in selections], prior_lines)
        claimed = {j for j in pairing if j is not None}
        preserved = 0

        result = []
        for selection, j in zip(selections, pairing):
            if j is None or selection.line.line_key in touched_keys:
                result.append(selection)
                continue
            prior = prior_selections[j]
            if selection.item.id != prior.item.id or selection.line.quantity != prior.line.quantity:
                preserved += 1
            line = selection.line.with_changes(quantity=prior.line.quantity)
            result.append(Selection(line=line, item=prior.item, reason=SelectionReason.REUSED))

        remaining_unmet = []
        unmet_pairing = pair_lines([u.line for u in unmet], [p for j, p in enumerate(prior_lines) if j not in claimed])
        unclaimed = [j for j in range(len(prior_lines)) if j not in claimed]
        for entry, k in zip(unmet, unmet_pairing):
            if k is None or entry.line.line_key in touched_keys:
                remaining_unmet.append(entry)
                continue
            prior = prior_selections[unclaimed[k]]
            result.append(Selection(line=entry.line, item=prior.item, reason=SelectionReason.REUSED))
            preserved += 1

        if preserved:
            logger.info(f"[RECONCILE] Forced preservation restored {preserved} untouched line(s)")
        return result, remaining_unmet

    def compute_deltas(self, selections: Sequence[Selection], prior_selections: Sequence[Selection]) -> List[LineDelta]:
        """Per-line delta = new qty * new price - prev qty * prev price"""
        pairing = pair_lines([s.line for s in selections], [p.line for p in prior_selections])
        paired_prior = {j for j in pairing if j is not None}
        deltas: List[LineDelta] = []

        for selection, j in zip(selections, pairing):
            new_total = selection.line_total
            if j is None:
                deltas.append(
                    LineDelta(
                        signature=selection.line.signature,
                        item_type=selection.line.item_type,
                        room=selection.line.room,
                        reason=DeltaReason.ADDED,
                        delta=new_total,
                        new_item_id=selection.item.id,
                        new_quantity=selection.line.quantity,
                    )
                )
                continue
            prior = prior_selections[j]
            if selection.item.id != prior.item.id:
                reason = DeltaReason.REPLACED
            elif selection.line.quantity != prior.line.quantity:
                reason = DeltaReason.QTY
            elif selection.item.price != prior.item.price:
                reason = DeltaReason.PRICE
            else:
                reason = DeltaReason.UNCHANGED
            deltas.append(
                LineDelta(
                    signature=selection.line.signature,
                    item_type=selection.line.item_type,
                    room=selection.line.room,
                    reason=reason,
                    delta=new_total - prior.line_total,
                    prev_item_id=prior.item.id,
                    new_item_id=selection.item.id,
                    prev_quantity=prior.line.quantity,
                    new_quantity=selection.line.quantity,
                )
            )

        for j, prior in enumerate(prior_selections):
            if j in paired_prior:
                continue
            deltas.append(
                LineDelta(
                    signature=prior.line.signature,
                    item_type=prior.line.item_type,
                    room=prior.line.room,
                    reason=DeltaReason.REMOVED,
                    delta=-prior.line_total,
                    prev_item_id=prior.item.id,
                    prev_quantity=prior.line.quantity,
                )
            )
        return deltas

    def build_quotation(
        self,
        selections: Sequence[Selection],
        unmet: Sequence[UnmetLine],
        deltas: Sequence[LineDelta],
        budget: Optional[BudgetFact] = None,
    ) -> Quotation:
        items = [
            QuotationItem(
                item=s.item,
                quantity=s.line.quantity,
                line_total=s.line_total,
                line_type=s.line.item_type,
                room=s.line.room,
            )
            for s in selections
        ]
        total = sum(item.line_total for item in items)
        over_by = 0
        if budget and budget.scope != BudgetScope.PER_ITEM and total > budget.amount:
            over_by = total - budget.amount

        quotation = Quotation(
            items=items,
            total_estimate=total,
            per_line_delta=list(deltas),
            over_budget=over_by > 0,
            budget_over_by=over_by,
            unmet_lines=list(unmet),
            clarification=self.clarification_for(unmet),
        )
        logger.info(
            f"[RECONCILE] Quotation: {len(items)} item(s), total={total}, delta={quotation.total_delta}, "
            f"unmet={len(unmet)}, over_budget={quotation.over_budget}"
        )
        return quotation

    @staticmethod
    def clarification_for(unmet: Sequence[UnmetLine]) -> Optional[str]:
        """One clarification question covering every unmet line"""
        if not unmet:
            return None
        names = []
        for entry in unmet:
            label = entry.line.item_type.replace("_", " ")
            if entry.line.subtype:
                label = f"{entry.line.subtype} {label}"
            names.append(f"{label} ({entry.line.room})")
        listed = ", ".join(dict.fromkeys(names))
        return f"I couldn't find a catalog match for: {listed}. Would you like to raise the budget for these or pick a different type?"
