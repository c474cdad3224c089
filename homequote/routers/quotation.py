"""
Quotation API routes: chat turns, alternatives and session state
"""
import uuid

from fastapi import APIRouter, HTTPException, Request
from sqlalchemy.exc import SQLAlchemyError

from homequote.engines.quotation import QuotationEngine, QuotationError
from homequote.middleware.logging_middleware import get_logger
from homequote.schemas.quotation import (
    AlternativesRequest,
    AlternativesResponse,
    MessageRequest,
    MessageResponse,
    SessionResponse,
    StartSessionResponse,
)

logger = get_logger(__name__)
router = APIRouter(tags=["quotation"])


def get_engine(request: Request) -> QuotationEngine:
    """Engine built at start-up and shared by all requests"""
    engine = getattr(request.app.state, "quotation_engine", None)
    if engine is None:
        raise HTTPException(status_code=503, detail="Quotation engine is not ready")
    return engine


def _server_error(action: str, e: Exception) -> HTTPException:
    logger.error(f"Error {action}: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=f"{type(e).__name__}: {str(e)}")


@router.post("/sessions", response_model=StartSessionResponse)
async def start_session():
    """Allocate a new session id; state is created lazily on the first message"""
    session_id = str(uuid.uuid4())
    logger.info(f"[SESSION] Started {session_id}")
    return StartSessionResponse(session_id=session_id)


@router.post("/sessions/{session_id}/messages", response_model=MessageResponse)
async def send_message(session_id: str, body: MessageRequest, request: Request):
    """Process one user utterance and return the updated quotation"""
    engine = get_engine(request)
    try:
        result = await engine.handle_turn(
            session_id,
            body.message,
            floor_plan=body.floor_plan.to_hint() if body.floor_plan else None,
            floor_plan_image_url=body.floor_plan_image_url,
        )
    except (QuotationError, SQLAlchemyError) as e:
        raise _server_error("processing message", e)

    logger.info(
        f"Turn done: total={result.quotation.total_estimate} delta={result.quotation.total_delta} "
        f"items={len(result.quotation.items)} ({result.processing_time:.2f}s)"
    )
    return MessageResponse.model_validate(result.to_dict())


@router.post("/sessions/{session_id}/alternatives", response_model=AlternativesResponse)
async def get_alternatives(session_id: str, body: AlternativesRequest, request: Request):
    """Next page of substitutes for one selected line"""
    engine = get_engine(request)
    try:
        items = await engine.alternatives_for(
            session_id,
            body.item_type,
            subtype=body.subtype,
            room=body.room,
            limit=body.limit,
            offset=body.offset,
            show_all=body.show_all,
        )
    except (QuotationError, SQLAlchemyError) as e:
        raise _server_error("fetching alternatives", e)

    return AlternativesResponse(
        session_id=session_id,
        item_type=body.item_type,
        alternatives=[item.to_dict() for item in items],
    )


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(session_id: str, request: Request):
    """Current rooms, lines and quotation for a session"""
    engine = get_engine(request)
    try:
        prior = await engine.get_session(session_id)
        quotation = await engine.current_quotation(session_id)
    except (QuotationError, SQLAlchemyError) as e:
        raise _server_error("loading session", e)

    if prior.is_empty:
        raise HTTPException(status_code=404, detail="Quotation session not found")

    return SessionResponse(
        session_id=session_id,
        rooms=prior.rooms,
        excluded_rooms=prior.excluded_rooms,
        bhk=prior.bhk,
        area_sqft=prior.area_sqft,
        budget=prior.budget.to_dict() if prior.budget else None,
        theme=prior.theme,
        requested_lines=[line.to_dict() for line in prior.requested_lines],
        quotation=quotation.to_dict(),
    )


@router.delete("/sessions/{session_id}")
async def reset_session(session_id: str, request: Request):
    """Forget all state for a session"""
    engine = get_engine(request)
    try:
        await engine.reset_session(session_id)
    except SQLAlchemyError as e:
        raise _server_error("resetting session", e)
    return {"session_id": session_id, "status": "reset"}
