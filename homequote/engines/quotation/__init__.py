"""
Quotation Engine

Handles command parsing, room planning, essentials expansion, budget policy,
catalog selection, session reconciliation and alternatives.
"""

from .alternatives_service import AlternativesService
from .budget_policy import BudgetPolicy
from .catalog_gateway import CatalogGateway, InMemoryCatalogGateway, SQLCatalogGateway
from .command_parser import COMMAND_PRECEDENCE, CommandParser, command_parser
from .core import QuotationEngine
from .errors import CatalogGatewayError, CollaboratorError, InconsistentSessionPriorError, QuotationError
from .essentials_expander import EssentialsExpander
from .reconciler import SessionReconciler, pair_lines
from .room_planner import RoomPlanner, classify_tier, room_planner
from .schemas import (
    CatalogItem,
    CatalogQuery,
    FloorPlanHint,
    LineSpecs,
    Quotation,
    RequestedLine,
    RequirementDelta,
    Selection,
    SessionPrior,
    TurnResult,
    UnmetLine,
)
from .selection_engine import SelectionEngine
from .session_store import InMemorySessionStore, SessionStore, SQLSessionStore
from .style_resolver import StyleResolver

__all__ = [
    "QuotationEngine",
    "CommandParser",
    "command_parser",
    "COMMAND_PRECEDENCE",
    "RoomPlanner",
    "room_planner",
    "classify_tier",
    "EssentialsExpander",
    "BudgetPolicy",
    "SelectionEngine",
    "SessionReconciler",
    "pair_lines",
    "AlternativesService",
    "CatalogGateway",
    "SQLCatalogGateway",
    "InMemoryCatalogGateway",
    "SessionStore",
    "SQLSessionStore",
    "InMemorySessionStore",
    "StyleResolver",
    "QuotationError",
    "CatalogGatewayError",
    "CollaboratorError",
    "InconsistentSessionPriorError",
    "CatalogItem",
    "CatalogQuery",
    "FloorPlanHint",
    "LineSpecs",
    "Quotation",
    "RequestedLine",
    "RequirementDelta",
    "Selection",
    "SessionPrior",
    "TurnResult",
    "UnmetLine",
]
