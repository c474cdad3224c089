"""
Quotation Engine Core

Main orchestration class for one chat turn: parse, plan, expand, annotate, select,
reconcile, quote and persist the next session prior.
"""
import asyncio
import logging
from dataclasses import asdict, replace
from datetime import datetime
from typing import TYPE_CHECKING, Dict, List, Optional, Sequence, Set, Tuple

from homequote.config.catalog_taxonomy import is_bedroom

from .alternatives_service import AlternativesService
from .budget_policy import BudgetPolicy, base_cap
from .catalog_gateway import CatalogGateway
from .command_parser import CommandParser
from .essentials_expander import EssentialsExpander
from .reconciler import LineKey, SessionReconciler, build_signature_index, touched_line_keys
from .room_planner import RoomPlanner
from .schemas import (
    CatalogItem,
    ChangeRecord,
    FloorPlanHint,
    ParsedFacts,
    Quotation,
    ReplaceRequest,
    RequestedLine,
    RequirementDelta,
    RoomPlan,
    Selection,
    SelectionFilters,
    SessionPrior,
    StyleProfile,
    TurnResult,
    UnmetLine,
)
from .selection_engine import SelectionEngine
from .session_store import SessionStore
from .style_resolver import StyleResolver

if TYPE_CHECKING:
    from homequote.services.llm_service import IntentResult, LLMCollaborators, RichSummary

logger = logging.getLogger(__name__)

BARE_REPLACE_LOOKUP = 3


class QuotationEngine:
    """
    Main Quotation Engine

    Orchestrates the command parser, room planner, essentials expander, budget policy,
    selection engine, reconciler and alternatives service for a session.
    """

    def __init__(
        self,
        gateway: CatalogGateway,
        session_store: SessionStore,
        llm: Optional["LLMCollaborators"] = None,
        style_resolver: Optional[StyleResolver] = None,
        parser: Optional[CommandParser] = None,
        planner: Optional[RoomPlanner] = None,
        expander: Optional[EssentialsExpander] = None,
        budget_policy: Optional[BudgetPolicy] = None,
        selection_engine: Optional[SelectionEngine] = None,
        reconciler: Optional[SessionReconciler] = None,
        alternatives_service: Optional[AlternativesService] = None,
    ):
        """
        Args:
            gateway: Catalog query gateway
            session_store: Store for session priors; shared between engine instances
            llm: Optional LLM collaborators; every call falls back when absent or failing
        """
        self.gateway = gateway
        self.session_store = session_store
        self.llm = llm
        self.style_resolver = style_resolver or StyleResolver()
        self.parser = parser or CommandParser()
        self.planner = planner or RoomPlanner()
        self.expander = expander or EssentialsExpander(proposer=llm.propose_essentials if llm else None)
        self.budget_policy = budget_policy or BudgetPolicy()
        self.selection_engine = selection_engine or SelectionEngine(gateway, style_resolver=self.style_resolver)
        self.reconciler = reconciler or SessionReconciler()
        self.alternatives_service = alternatives_service or AlternativesService(gateway, style_resolver=self.style_resolver)

        logger.info("QuotationEngine initialized with all services")

    # ==================== Turn ====================

    async def handle_turn(
        self,
        session_id: str,
        text: str,
        floor_plan: Optional[FloorPlanHint] = None,
        floor_plan_image_url: Optional[str] = None,
    ) -> TurnResult:
        """
        Process one user utterance for a session

        Args:
            session_id: Session the turn belongs to
            text: Raw user utterance
            floor_plan: Structured floor-plan hint, if the caller already has one
            floor_plan_image_url: Floor-plan image to analyze when no hint is given

        Returns:
            TurnResult with the quotation, deltas and any requested alternatives
        """
        start_time = datetime.now()
        prior = await self.session_store.load(session_id)
        prior_lines = [line.stripped() for line in prior.requested_lines]

        # Step 1: Parse commands and facts
        delta = self.parser.parse(text, prior_lines)
        facts = delta.facts

        # Step 2: Collaborator hints
        intent, summary, analyzed_plan = await self._collaborator_hints(text, delta, prior, floor_plan, floor_plan_image_url)
        if intent:
            facts = self._merge_intent(facts, intent, delta.is_modification)
        floor_plan = floor_plan or analyzed_plan
        if delta.has_commands and prior_lines:
            facts = replace(facts, rooms=[], only_rooms=False)

        # Step 3: Plan rooms, tier and style
        plan = self.planner.resolve(facts, floor_plan, prior)
        blend = list(facts.style_blend) or ([] if facts.style_override or facts.theme else list(prior.style_blend))
        style_profile = self.style_resolver.resolve(theme=plan.theme, style_keywords=facts.style_keywords, blend=blend)
        style_changed = self._style_changed(prior, plan.theme, blend)

        # Step 4: Requested lines
        lines, changes, command = await self._build_lines(text, delta, facts, plan, prior_lines, style_profile, summary)
        clarification = None
        if delta.replace_request:
            lines, clarification = await self._resolve_replace(delta.replace_request, lines, prior, style_profile)

        # Step 5: Budget and constraints
        filters = SelectionFilters(
            base_cap=base_cap(plan.area_sqft, style_changed),
            style=style_profile,
            style_changed=style_changed,
            prev_item_by_key={s.line.diversity_key: s.item.id for s in prior.selections},
            bhk=plan.bhk,
        )
        lines = self.budget_policy.annotate(
            lines,
            bhk=plan.bhk,
            tier=plan.tier,
            area_sqft=plan.area_sqft,
            room_dimensions=plan.room_dimensions,
            budget=plan.budget,
            style_changed=style_changed,
            fallback_cap=filters.base_cap,
        )

        # Step 6: Select
        touched = touched_line_keys(changes)
        reselect: Set[LineKey] = set()
        if style_changed or self._budget_changed(prior, plan):
            reselect = {line.line_key for line in lines}
            touched |= reselect
        reuse_ids = self.reconciler.reuse_ids(lines, prior.selections, reselect, prior.signature_index)
        outcomes = await self.selection_engine.select_all(lines, filters, reuse_ids)
        selections = [o for o in outcomes if isinstance(o, Selection)]
        unmet = [o for o in outcomes if isinstance(o, UnmetLine)]

        # Step 7: Reconcile and quote
        selections, unmet, deltas = self.reconciler.reconcile(
            selections,
            unmet,
            prior.selections,
            touched,
            enforce_preservation=bool(command) and not prior.is_empty,
        )
        quotation = self.reconciler.build_quotation(selections, unmet, deltas, plan.budget)
        if clarification and not quotation.clarification:
            quotation.clarification = clarification

        # Step 8: Alternatives
        alt_offsets = dict(prior.alt_offsets)
        served_ids = {k: list(v) for k, v in prior.served_ids.items()}
        alternatives: List[CatalogItem] = []
        alternatives_type = None
        if delta.alternatives_request:
            target = self._find_selection(selections, delta.alternatives_request.item_type, delta.alternatives_request.subtype)
            if target:
                alternatives_type = target.line.item_type
                alternatives = await self.alternatives_service.alternatives(
                    target,
                    style=style_profile,
                    offset=alt_offsets.get(alternatives_type, 0),
                    served_ids=served_ids.get(alternatives_type, []),
                )
                self._record_served(alt_offsets, served_ids, alternatives_type, alternatives)

        # Step 9: Persist the next prior
        summary_dict = summary.model_dump() if summary else prior.summary
        next_prior = SessionPrior(
            filters=self._filters_snapshot(filters, plan),
            selections=selections,
            requested_lines=[line.stripped() for line in lines],
            signature_index=build_signature_index(selections),
            alt_offsets=alt_offsets,
            served_ids=served_ids,
            summary=summary_dict,
            rooms=self._rooms_of(lines) or list(plan.rooms),
            excluded_rooms=list(plan.excluded_rooms),
            bhk=plan.bhk,
            area_sqft=plan.area_sqft,
            budget=plan.budget,
            theme=plan.theme,
            style_blend=blend,
            room_dimensions=list(plan.room_dimensions),
        )
        await self.session_store.save(session_id, next_prior)

        processing_time = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"Turn for {session_id} complete: command={command} lines={len(lines)} "
            f"total={quotation.total_estimate} delta={quotation.total_delta} ({processing_time:.2f}s)"
        )
        return TurnResult(
            session_id=session_id,
            quotation=quotation,
            plan=plan,
            requested_lines=lines,
            alternatives=alternatives,
            alternatives_for=alternatives_type,
            command=command,
            changes=changes,
            summary=summary_dict,
            applied_styles=list(style_profile.styles) if style_profile else [],
            processing_time=processing_time,
        )

    async def _collaborator_hints(
        self,
        text: str,
        delta: RequirementDelta,
        prior: SessionPrior,
        floor_plan: Optional[FloorPlanHint],
        floor_plan_image_url: Optional[str],
    ) -> Tuple[Optional["IntentResult"], Optional["RichSummary"], Optional[FloorPlanHint]]:
        """Intent, summary and floor-plan calls, concurrently; each degrades to None"""
        if not self.llm:
            return None, None, None

        async def nothing():
            return None

        wants_intent = not delta.has_commands and not delta.alternatives_request
        wants_summary = prior.is_empty and not delta.has_commands
        wants_floor_plan = floor_plan is None and bool(floor_plan_image_url)
        results = await asyncio.gather(
            self.llm.parse_intent(text) if wants_intent else nothing(),
            self.llm.summarize(text, asdict(delta.facts)) if wants_summary else nothing(),
            self.llm.analyze_floor_plan(floor_plan_image_url) if wants_floor_plan else nothing(),
            return_exceptions=True,
        )
        cleaned = []
        for name, result in zip(("intent", "summary", "floor_plan"), results):
            if isinstance(result, Exception):
                logger.error(f"[LLM] {name} collaborator raised, using fallback: {result}", exc_info=result)
                result = None
            cleaned.append(result)
        return cleaned[0], cleaned[1], cleaned[2]

    @staticmethod
    def _merge_intent(facts: ParsedFacts, intent: "IntentResult", is_modification: bool) -> ParsedFacts:
        """Fill gaps in the regex facts; deterministic facts always win"""
        merged = replace(
            facts,
            bhk=facts.bhk or intent.bhk,
            area_sqft=facts.area_sqft or intent.area_sqft,
            budget=facts.budget or intent.budget_fact(),
            theme=facts.theme or (None if facts.style_changed else intent.theme),
            style_keywords=list(dict.fromkeys(list(facts.style_keywords) + [k.lower() for k in intent.style_keywords])),
        )
        if not facts.rooms and not is_modification and intent.rooms:
            merged = replace(merged, rooms=list(intent.rooms), only_rooms=intent.only_rooms)
        return merged

    async def _build_lines(
        self,
        text: str,
        delta: RequirementDelta,
        facts: ParsedFacts,
        plan: RoomPlan,
        prior_lines: List[RequestedLine],
        style_profile: Optional[StyleProfile],
        summary: Optional["RichSummary"],
    ) -> Tuple[List[RequestedLine], List[ChangeRecord], Optional[str]]:
        must_have = summary.must_have_items if summary else []

        if not prior_lines:
            lines = await self.expander.expand(plan, style_profile, must_have=must_have)
            if not delta.has_commands:
                return lines, [], None
            outcome = self.parser.apply_commands(text, lines, allow_room_exclusion_removal=delta.is_modification)
            if outcome is None:
                return lines, [], delta.command
            return list(outcome.lines), outcome.changes, outcome.command

        lines = list(delta.lines)
        if delta.has_commands:
            return lines, delta.changes, delta.command

        if facts.has_planning_facts or plan.user_specified_rooms:
            lines = await self._sync_rooms(lines, plan, style_profile, must_have)
        return lines, [], None

    async def _sync_rooms(
        self,
        lines: List[RequestedLine],
        plan: RoomPlan,
        style_profile: Optional[StyleProfile],
        must_have: Sequence[str],
    ) -> List[RequestedLine]:
        """Expand rooms new to the plan and drop lines of rooms it no longer contains"""
        current = self._rooms_of(lines)
        planned = set(plan.rooms)
        kept = [line for line in lines if line.room in planned]
        new_rooms = [room for room in plan.rooms if room not in current]
        if len(kept) != len(lines):
            logger.info(f"[PLANNER] Dropping rooms {sorted(set(current) - planned)}")
        if new_rooms:
            logger.info(f"[PLANNER] Expanding new rooms {new_rooms}")
            kept.extend(await self.expander.expand(plan, style_profile, rooms=new_rooms, must_have=must_have))
        order = {room: idx for idx, room in enumerate(plan.rooms)}
        kept.sort(key=lambda line: order.get(line.room, len(order)))
        return kept

    async def _resolve_replace(
        self,
        request: ReplaceRequest,
        lines: List[RequestedLine],
        prior: SessionPrior,
        style_profile: Optional[StyleProfile],
    ) -> Tuple[List[RequestedLine], Optional[str]]:
        """Pin the line named by a replace command to an alternative found by name or the first one"""
        current = None
        for selection in prior.selections:
            line = selection.line
            if line.item_type == request.item_type and line.subtype == request.subtype and line.room == request.room:
                current = selection
                break
        if current is None:
            return lines, None

        if request.name_query:
            chosen = await self.alternatives_service.find_by_name(current, request.name_query, style=style_profile)
        else:
            page = await self.alternatives_service.alternatives(current, style=style_profile, limit=BARE_REPLACE_LOOKUP)
            chosen = page[0] if page else None

        label = request.item_type.replace("_", " ")
        if not chosen:
            logger.info(f"[ALTERNATIVES] No replacement found for {label} ({request.name_query})")
            return lines, f"I couldn't find another {label} to swap in. Would you like to see all options?"

        updated = []
        pinned = False
        for line in lines:
            if not pinned and line.item_type == request.item_type and line.subtype == request.subtype and line.room == request.room:
                line = line.with_changes(preferred_item_id=chosen.id)
                pinned = True
            updated.append(line)
        logger.info(f"[ALTERNATIVES] Replacing {label} {current.item.id} -> {chosen.id}")
        return updated, None

    # ==================== Session operations ====================

    async def alternatives_for(
        self,
        session_id: str,
        item_type: str,
        subtype: Optional[str] = None,
        room: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        show_all: bool = False,
    ) -> List[CatalogItem]:
        """Alternatives for a selected line outside a chat turn; records served ids"""
        prior = await self.session_store.load(session_id)
        target = self._find_selection(prior.selections, item_type, subtype, room)
        if target is None:
            return []
        style = self.style_resolver.resolve(theme=prior.theme, blend=prior.style_blend)
        page = await self.alternatives_service.alternatives(
            target,
            style=style,
            limit=limit,
            offset=offset if offset is not None else prior.alt_offsets.get(item_type, 0),
            show_all=show_all,
            served_ids=prior.served_ids.get(item_type, []),
        )
        self._record_served(prior.alt_offsets, prior.served_ids, item_type, page)
        await self.session_store.save(session_id, prior)
        return page

    async def get_session(self, session_id: str) -> SessionPrior:
        return await self.session_store.load(session_id)

    async def current_quotation(self, session_id: str) -> Quotation:
        """Re-derive the quotation from the stored selections"""
        prior = await self.session_store.load(session_id)
        return self.reconciler.build_quotation(prior.selections, [], [], prior.budget)

    async def reset_session(self, session_id: str) -> None:
        await self.session_store.delete(session_id)
        logger.info(f"[SESSION] Reset {session_id}")

    # ==================== Helpers ====================

    def _record_served(
        self,
        alt_offsets: Dict[str, int],
        served_ids: Dict[str, List[int]],
        item_type: str,
        items: Sequence[CatalogItem],
    ) -> None:
        alt_offsets[item_type] = alt_offsets.get(item_type, 0) + self.alternatives_service.page_size
        served = served_ids.setdefault(item_type, [])
        served.extend(item.id for item in items if item.id not in served)

    @staticmethod
    def _find_selection(
        selections: Sequence[Selection],
        item_type: Optional[str],
        subtype: Optional[str] = None,
        room: Optional[str] = None,
    ) -> Optional[Selection]:
        if not selections:
            return None
        if not item_type:
            return selections[-1]
        for selection in selections:
            line = selection.line
            if line.item_type != item_type:
                continue
            if subtype and line.subtype != subtype:
                continue
            if room and line.room != room and not (room == "bedroom" and is_bedroom(line.room)):
                continue
            return selection
        return None

    @staticmethod
    def _rooms_of(lines: Sequence[RequestedLine]) -> List[str]:
        return list(dict.fromkeys(line.room for line in lines))

    @staticmethod
    def _style_changed(prior: SessionPrior, theme: Optional[str], blend) -> bool:
        if prior.is_empty:
            return False
        return theme != prior.theme or list(blend) != list(prior.style_blend)

    @staticmethod
    def _budget_changed(prior: SessionPrior, plan: RoomPlan) -> bool:
        return not prior.is_empty and plan.budget != prior.budget

    @staticmethod
    def _filters_snapshot(filters: SelectionFilters, plan: RoomPlan) -> Dict:
        snapshot = filters.to_dict()
        snapshot.update({"tier": plan.tier, "budget": plan.budget.to_dict() if plan.budget else None})
        return snapshot
