"""
Session State Store

Load/save of the opaque per-session prior. Stores are injected into the quotation
engine so several engine instances can share one backing store. Per-session
serialization of concurrent turns is the host's responsibility.
"""
import copy
import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from homequote.database.models import SessionPriorRecord
from .errors import InconsistentSessionPriorError
from .schemas import SessionPrior

logger = logging.getLogger(__name__)


class SessionStore:
    """Key-value store for session priors"""

    async def load(self, session_id: str) -> SessionPrior:
        """Return the stored prior, or an empty prior for unknown or unreadable sessions"""
        blob = await self.load_raw(session_id)
        try:
            return SessionPrior.from_dict(blob)
        except InconsistentSessionPriorError as e:
            logger.warning(f"[SESSION] Discarding malformed prior for {session_id}: {e}")
            return SessionPrior()

    async def save(self, session_id: str, prior: SessionPrior) -> None:
        await self.save_raw(session_id, prior.to_dict())

    async def load_raw(self, session_id: str) -> Optional[Any]:
        raise NotImplementedError

    async def save_raw(self, session_id: str, data: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def delete(self, session_id: str) -> None:
        raise NotImplementedError


class InMemorySessionStore(SessionStore):
    """Process-local store; each instance owns its own map"""

    def __init__(self):
        self._data: Dict[str, Any] = {}

    async def load_raw(self, session_id: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(session_id))

    async def save_raw(self, session_id: str, data: Dict[str, Any]) -> None:
        self._data[session_id] = copy.deepcopy(data)
        logger.debug(f"[SESSION] Saved prior for {session_id}")

    async def delete(self, session_id: str) -> None:
        self._data.pop(session_id, None)


class SQLSessionStore(SessionStore):
    """Store backed by the session_priors table"""

    def __init__(self, session_factory: Callable):
        self.session_factory = session_factory

    async def load_raw(self, session_id: str) -> Optional[Any]:
        try:
            async with self.session_factory() as session:
                result = await session.execute(
                    select(SessionPriorRecord).where(SessionPriorRecord.session_id == session_id)
                )
                record = result.scalar_one_or_none()
                return record.data if record else None
        except SQLAlchemyError as e:
            logger.error(f"[SESSION] Failed to load prior for {session_id}: {e}", exc_info=True)
            return None

    async def save_raw(self, session_id: str, data: Dict[str, Any]) -> None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(SessionPriorRecord).where(SessionPriorRecord.session_id == session_id)
            )
            record = result.scalar_one_or_none()
            if record is None:
                session.add(SessionPriorRecord(session_id=session_id, data=data))
            else:
                record.data = data
                record.updated_at = datetime.utcnow()
            await session.commit()
        logger.debug(f"[SESSION] Saved prior for {session_id}")

    async def delete(self, session_id: str) -> None:
        async with self.session_factory() as session:
            await session.execute(delete(SessionPriorRecord).where(SessionPriorRecord.session_id == session_id))
            await session.commit()
