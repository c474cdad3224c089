"""
Pydantic schemas for quotation API endpoints
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from homequote.engines.quotation.schemas import FloorPlanHint, RoomDimension


class RoomDimensionSchema(BaseModel):
    room: str
    width: Optional[float] = None
    height: Optional[float] = None
    unit: str = "ft"


class FloorPlanHintSchema(BaseModel):
    """Pre-analyzed floor plan supplied by the client"""

    bhk: Optional[int] = Field(default=None, ge=1)
    sqft: Optional[int] = Field(default=None, ge=1)
    property_type: Optional[str] = None
    rooms: List[str] = Field(default_factory=list)
    room_dimensions: List[RoomDimensionSchema] = Field(default_factory=list)

    def to_hint(self) -> FloorPlanHint:
        return FloorPlanHint(
            bhk=self.bhk,
            sqft=self.sqft,
            property_type=self.property_type,
            rooms=list(self.rooms),
            room_dimensions=[RoomDimension(**d.model_dump()) for d in self.room_dimensions],
        )


class MessageRequest(BaseModel):
    """One user utterance for a quotation session"""

    message: str = Field(..., min_length=1, max_length=4000)
    floor_plan: Optional[FloorPlanHintSchema] = None
    floor_plan_image_url: Optional[str] = None

    @field_validator("message")
    @classmethod
    def strip_message(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("message must not be blank")
        return value


class AlternativesRequest(BaseModel):
    """Alternatives for a selected line outside a chat turn"""

    item_type: str = Field(..., description="Line type, e.g. 'sofa' or 'bed'")
    subtype: Optional[str] = None
    room: Optional[str] = None
    limit: Optional[int] = Field(default=None, ge=1, le=50)
    offset: Optional[int] = Field(default=None, ge=0)
    show_all: bool = False


class CatalogItemSchema(BaseModel):
    id: int
    name: str
    price: int
    category: str
    subcategory: Optional[str] = None
    description: str = ""
    details: str = ""
    variation_name: str = ""
    image_url: Optional[str] = None


class QuotationItemSchema(CatalogItemSchema):
    """A catalog item placed on the quotation"""

    quantity: int
    line_total: int
    line_type: str
    room: str


class LineDeltaSchema(BaseModel):
    signature: str
    item_type: str
    room: Optional[str] = None
    reason: str
    delta: int
    prev_item_id: Optional[int] = None
    new_item_id: Optional[int] = None
    prev_quantity: int = 0
    new_quantity: int = 0


class RequestedLineSchema(BaseModel):
    type: str
    room: str
    quantity: int
    specifications: Dict[str, Any] = Field(default_factory=dict)
    preferred_item_id: Optional[int] = None
    price_ceiling: Optional[int] = None
    min_seats: Optional[int] = None
    bhk_context: Optional[int] = None


class UnmetLineSchema(BaseModel):
    line: RequestedLineSchema
    reasons: List[str] = Field(default_factory=list)
    reason: str


class QuotationSchema(BaseModel):
    items: List[QuotationItemSchema] = Field(default_factory=list)
    total_estimate: int = 0
    per_line_delta: List[LineDeltaSchema] = Field(default_factory=list)
    total_delta: int = 0
    over_budget: bool = False
    budget_over_by: int = 0
    unmet_lines: List[UnmetLineSchema] = Field(default_factory=list)
    clarification: Optional[str] = None


class RoomPlanSchema(BaseModel):
    rooms: List[str] = Field(default_factory=list)
    excluded_rooms: List[str] = Field(default_factory=list)
    bhk: Optional[int] = None
    area_sqft: Optional[int] = None
    budget: Optional[Dict[str, Any]] = None
    theme: Optional[str] = None
    tier: str
    size_tier: Optional[str] = None


class ChangeSchema(BaseModel):
    type: str
    reason: str
    signature_before: Optional[str] = None
    signature_after: Optional[str] = None
    room: Optional[str] = None


class MessageResponse(BaseModel):
    """Response for one chat turn"""

    session_id: str
    quotation: QuotationSchema
    plan: RoomPlanSchema
    requested_lines: List[RequestedLineSchema] = Field(default_factory=list)
    alternatives: List[CatalogItemSchema] = Field(default_factory=list)
    alternatives_for: Optional[str] = None
    command: Optional[str] = None
    changes: List[ChangeSchema] = Field(default_factory=list)
    summary: Optional[Dict[str, Any]] = None
    applied_styles: List[str] = Field(default_factory=list)
    processing_time: float = 0.0


class StartSessionResponse(BaseModel):
    session_id: str


class AlternativesResponse(BaseModel):
    session_id: str
    item_type: str
    alternatives: List[CatalogItemSchema] = Field(default_factory=list)


class SessionResponse(BaseModel):
    """Stored session state and the quotation derived from it"""

    session_id: str
    rooms: List[str] = Field(default_factory=list)
    excluded_rooms: List[str] = Field(default_factory=list)
    bhk: Optional[int] = None
    area_sqft: Optional[int] = None
    budget: Optional[Dict[str, Any]] = None
    theme: Optional[str] = None
    requested_lines: List[RequestedLineSchema] = Field(default_factory=list)
    quotation: QuotationSchema
