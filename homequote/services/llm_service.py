"""
LLM collaborators: intent parsing, rich summary, essentials proposal and floor-plan analysis.

Every call is fail-closed. A disabled feature, missing API key, timeout, API error or
schema violation yields None, and the caller substitutes its deterministic path.
"""
import asyncio
import json
import logging
from datetime import datetime
from functools import wraps
from typing import Any, Dict, List, Optional, Sequence

import openai
from pydantic import BaseModel, Field, ValidationError, field_validator

from homequote.config.catalog_taxonomy import ITEM_TYPES, TABLE_SUBTYPES, normalize_item_type, normalize_room
from homequote.config.style_definitions import normalize_style
from homequote.core.config import settings
from homequote.engines.quotation.errors import CollaboratorError
from homequote.engines.quotation.schemas import (
    BudgetFact,
    BudgetScope,
    FloorPlanHint,
    LineSpecs,
    RequestedLine,
    RoomDimension,
    StyleProfile,
)

logger = logging.getLogger(__name__)


def retry_on_failure(max_retries: int = 3, delay: float = 1.0):
    """Decorator for retrying API calls on failure"""

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            last_exception = None
            for attempt in range(max_retries):
                try:
                    return await func(*args, **kwargs)
                except (openai.OpenAIError, asyncio.TimeoutError) as e:
                    last_exception = e
                    if attempt < max_retries - 1:
                        wait_time = delay * (2**attempt)  # Exponential backoff
                        logger.warning(f"[LLM] Call failed (attempt {attempt + 1}/{max_retries}), retrying in {wait_time}s: {e}")
                        await asyncio.sleep(wait_time)
                    else:
                        logger.error(f"[LLM] Call failed after {max_retries} attempts: {e}")
            raise CollaboratorError(str(last_exception)) from last_exception

        return wrapper

    return decorator


# ==================== Structured outputs ====================


def _clean_rooms(value: Any) -> List[str]:
    rooms = []
    for raw in value or []:
        room = normalize_room(str(raw))
        if room and room not in rooms:
            rooms.append(room)
    return rooms


class IntentBudget(BaseModel):
    amount: int = Field(gt=0)
    currency: str = "INR"
    scope: Optional[str] = None


class IntentResult(BaseModel):
    """Structured intent returned by the intent-parse call"""

    rooms: List[str] = Field(default_factory=list)
    only_rooms: bool = False
    bhk: Optional[int] = Field(default=None, ge=1, le=10)
    area_sqft: Optional[int] = Field(default=None, gt=0)
    theme: Optional[str] = None
    budget: Optional[IntentBudget] = None
    constraints: List[str] = Field(default_factory=list)
    priorities: List[str] = Field(default_factory=list)
    style_keywords: List[str] = Field(default_factory=list)

    @field_validator("rooms", mode="before")
    @classmethod
    def validate_rooms(cls, value):
        unknown = [r for r in value or [] if normalize_room(str(r)) is None]
        if unknown:
            raise ValueError(f"Unknown room name(s): {unknown}")
        return _clean_rooms(value)

    @field_validator("theme", mode="before")
    @classmethod
    def validate_theme(cls, value):
        return normalize_style(value) if value else None

    def budget_fact(self) -> Optional[BudgetFact]:
        if not self.budget:
            return None
        scope = BudgetScope.PER_ITEM if self.budget.scope == "per_item" else None
        return BudgetFact(amount=self.budget.amount, scope=scope)


class RichSummary(BaseModel):
    """Rich overview of the user's brief"""

    overview: str
    bhk: Optional[int] = Field(default=None, ge=1, le=10)
    sqft: Optional[int] = Field(default=None, gt=0)
    theme: Optional[str] = None
    rooms_detected: List[str] = Field(default_factory=list)
    budget: Optional[int] = Field(default=None, gt=0)
    must_have_items: List[str] = Field(default_factory=list)
    nice_to_have_items: List[str] = Field(default_factory=list)
    items_suggested: List[str] = Field(default_factory=list)

    @field_validator("rooms_detected", mode="before")
    @classmethod
    def validate_rooms(cls, value):
        return _clean_rooms(value)


class FloorPlanResult(BaseModel):
    bhk: Optional[int] = Field(default=None, ge=1, le=10)
    sqft: Optional[int] = Field(default=None, gt=0)
    property_type: Optional[str] = None
    rooms: List[str] = Field(default_factory=list)
    room_dimensions: List[Dict[str, Any]] = Field(default_factory=list)

    @field_validator("rooms", mode="before")
    @classmethod
    def validate_rooms(cls, value):
        return _clean_rooms(value)

    def to_hint(self) -> FloorPlanHint:
        dimensions = []
        for entry in self.room_dimensions:
            room = normalize_room(str(entry.get("room") or entry.get("name") or ""))
            if not room:
                continue
            try:
                width = float(entry["width"]) if entry.get("width") is not None else None
                height = float(entry["height"]) if entry.get("height") is not None else None
            except (TypeError, ValueError):
                continue
            dimensions.append(RoomDimension(room=room, width=width, height=height, unit=str(entry.get("unit") or "ft")))
        return FloorPlanHint(
            bhk=self.bhk,
            sqft=self.sqft,
            property_type=self.property_type,
            rooms=list(self.rooms),
            room_dimensions=dimensions,
        )


def validate_proposed_lines(entries: Sequence[Any], allowed_rooms: Sequence[str]) -> List[RequestedLine]:
    """
    Validate proposal entries one by one.

    Entries with an unknown type or a room outside allowed_rooms are dropped;
    quantities are clamped to at least 1.
    """
    allowed = set(allowed_rooms)
    lines: List[RequestedLine] = []
    for entry in entries or []:
        if not isinstance(entry, dict):
            continue
        raw_type = str(entry.get("type") or "")
        item_type = raw_type if raw_type in ITEM_TYPES else None
        subtype = entry.get("subtype") or None
        if not item_type:
            item_type, alias_subtype = normalize_item_type(raw_type)
            subtype = subtype or alias_subtype
        room = normalize_room(str(entry.get("room") or ""))
        if not item_type or room not in allowed:
            logger.debug(f"[LLM] Dropping proposal entry {entry}")
            continue
        if item_type == "table" and subtype not in TABLE_SUBTYPES:
            subtype = None
        try:
            quantity = max(1, int(entry.get("quantity") or 1))
        except (TypeError, ValueError):
            quantity = 1
        lines.append(RequestedLine(item_type=item_type, room=room, quantity=quantity, specs=LineSpecs(subtype=subtype)))
    return lines


# ==================== Service ====================


class LLMCollaborators:
    """OpenAI-backed implementations of the text and vision collaborators"""

    def __init__(self, client: Optional[openai.AsyncOpenAI] = None, timeout: Optional[float] = None):
        self.timeout = timeout if timeout is not None else settings.llm_timeout_seconds
        self.enabled = bool(client) or bool(settings.openai_api_key)
        self.client = client
        if self.client is None and settings.openai_api_key:
            self.client = openai.AsyncOpenAI(
                api_key=settings.openai_api_key,
                timeout=self.timeout,
                max_retries=settings.llm_max_retries,
            )
        self.api_usage_stats = {
            "total_requests": 0,
            "successful_requests": 0,
            "failed_requests": 0,
            "total_tokens": 0,
            "last_reset": datetime.now(),
        }
        if not self.enabled:
            logger.warning("OpenAI API key not configured - LLM collaborators disabled")
        logger.info("LLMCollaborators initialized")

    @retry_on_failure(max_retries=2, delay=0.5)
    async def _complete_json(self, system_prompt: str, user_content: Any, model: Optional[str] = None) -> Dict[str, Any]:
        """Run one JSON-mode chat completion and decode the body"""
        self.api_usage_stats["total_requests"] += 1
        response = await asyncio.wait_for(
            self.client.chat.completions.create(
                model=model or settings.openai_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_content},
                ],
                max_tokens=settings.openai_max_tokens,
                temperature=settings.openai_temperature,
                response_format={"type": "json_object"},
            ),
            timeout=self.timeout,
        )
        usage = getattr(response, "usage", None)
        if usage is not None and isinstance(getattr(usage, "total_tokens", None), int):
            self.api_usage_stats["total_tokens"] += usage.total_tokens
        data = json.loads(response.choices[0].message.content or "{}")
        self.api_usage_stats["successful_requests"] += 1
        return data

    async def _call(self, name: str, system_prompt: str, user_content: Any, model: Optional[str] = None) -> Optional[Dict[str, Any]]:
        if not self.enabled or self.client is None:
            return None
        try:
            data = await self._complete_json(system_prompt, user_content, model=model)
        except CollaboratorError as e:
            self.api_usage_stats["failed_requests"] += 1
            logger.warning(f"[LLM] {name} unavailable, using fallback: {e}")
            return None
        except json.JSONDecodeError as e:
            self.api_usage_stats["failed_requests"] += 1
            logger.warning(f"[LLM] {name} returned invalid JSON: {e}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"[LLM] {name} returned a non-object payload")
            return None
        return data

    async def parse_intent(self, text: str) -> Optional[IntentResult]:
        """Structured intent for one utterance; None on any failure"""
        if not settings.use_llm_intent:
            return None
        system_prompt = (
            "Extract the furnishing brief as JSON with keys: rooms (list of: living, bedroom, master bedroom, "
            "kitchen, bathroom, dining, foyer, study, balcony, utility), only_rooms (bool), bhk (int), area_sqft (int), "
            "theme (string), budget ({amount, currency, scope: per_item|total}), constraints, priorities, style_keywords. "
            "Omit keys you cannot infer."
        )
        data = await self._call("parse_intent", system_prompt, text)
        if data is None:
            return None
        try:
            return IntentResult.model_validate(data)
        except ValidationError as e:
            logger.warning(f"[LLM] parse_intent schema violation: {e.error_count()} error(s)")
            return None

    async def summarize(self, text: str, hints: Optional[Dict[str, Any]] = None) -> Optional[RichSummary]:
        """Rich overview of the brief; None on any failure"""
        if not settings.use_llm_summary:
            return None
        system_prompt = (
            "Summarize the home furnishing brief as JSON with keys: overview, bhk, sqft, theme, rooms_detected, "
            "budget, must_have_items, nice_to_have_items, items_suggested. Item names must be furniture types."
        )
        payload = json.dumps({"text": text, "hints": hints or {}}, default=str)
        data = await self._call("summarize", system_prompt, payload)
        if data is None:
            return None
        try:
            return RichSummary.model_validate(data)
        except ValidationError as e:
            logger.warning(f"[LLM] summarize schema violation: {e.error_count()} error(s)")
            return None

    async def propose_essentials(
        self,
        rooms: Sequence[str],
        excluded_rooms: Sequence[str],
        bhk: Optional[int],
        sqft: Optional[int],
        budget: Optional[BudgetFact],
        style_profile: Optional[StyleProfile],
    ) -> Optional[List[RequestedLine]]:
        """Proposed essential lines for the rooms; invalid entries dropped, None on call failure"""
        if not settings.use_llm_essentials:
            return None
        system_prompt = (
            "Propose essential furniture lines for each room as JSON {\"lines\": [{type, subtype, room, quantity}]}. "
            f"type must be one of: {', '.join(ITEM_TYPES)}. Only use the given rooms."
        )
        payload = json.dumps(
            {
                "rooms": list(rooms),
                "excluded_rooms": list(excluded_rooms),
                "bhk": bhk,
                "sqft": sqft,
                "budget": budget.to_dict() if budget else None,
                "style": style_profile.name if style_profile else None,
                "style_features": style_profile.features if style_profile else [],
            }
        )
        data = await self._call("propose_essentials", system_prompt, payload)
        if data is None or not isinstance(data.get("lines"), list):
            return None
        return validate_proposed_lines(data["lines"], rooms)

    async def analyze_floor_plan(self, image_url: str) -> Optional[FloorPlanHint]:
        """Room/BHK/area hints from a floor-plan image; None on any failure"""
        if not settings.use_llm_floorplan or not image_url:
            return None
        system_prompt = (
            "Read this floor plan and answer as JSON with keys: bhk, sqft, property_type, rooms, "
            "room_dimensions ([{room, width, height, unit}])."
        )
        content = [
            {"type": "text", "text": "Analyze the floor plan."},
            {"type": "image_url", "image_url": {"url": image_url}},
        ]
        data = await self._call("analyze_floor_plan", system_prompt, content, model=settings.openai_vision_model)
        if data is None:
            return None
        try:
            return FloorPlanResult.model_validate(data).to_hint()
        except ValidationError as e:
            logger.warning(f"[LLM] analyze_floor_plan schema violation: {e.error_count()} error(s)")
            return None

    def get_usage_stats(self) -> Dict[str, Any]:
        return dict(self.api_usage_stats)
