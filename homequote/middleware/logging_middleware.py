"""
Request logging middleware with correlation IDs for request tracing.

Every request gets a short request id (or keeps the one the caller sent in
X-Request-ID). Requests under /api/quotation/sessions/<id> also carry the
quotation session id, so all log lines of one conversation can be grepped together.
"""
import logging
import re
import time
import uuid
from contextvars import ContextVar
from typing import Callable, Dict

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

REQUEST_ID_HEADER = "X-Request-ID"
SESSION_PATH = re.compile(r"/quotation/sessions/([^/]+)")
MAX_REQUEST_ID_LENGTH = 32

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
session_id_var: ContextVar[str] = ContextVar("session_id", default="")

logger = logging.getLogger(__name__)


def get_request_id() -> str:
    return request_id_var.get()


def get_session_id() -> str:
    return session_id_var.get()


def session_id_from_path(path: str) -> str:
    """Quotation session id embedded in a URL path, or empty"""
    match = SESSION_PATH.search(path or "")
    return match.group(1) if match else ""


def incoming_request_id(request: Request) -> str:
    supplied = re.sub(r"[^A-Za-z0-9_\-]", "", request.headers.get(REQUEST_ID_HEADER, ""))
    return supplied[:MAX_REQUEST_ID_LENGTH] or uuid.uuid4().hex[:8]


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log request start and end with timing, and echo the request id back"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = incoming_request_id(request)
        session_id = session_id_from_path(request.url.path)
        request_id_var.set(request_id)
        session_id_var.set(session_id)

        def fields(event: str, **extra) -> Dict:
            return {"request_id": request_id, "session_id": session_id, "event": event, **extra}

        started = time.perf_counter()
        logger.info(
            f"[{request_id}] -> {request.method} {request.url.path}",
            extra=fields("request_start", method=request.method, path=request.url.path),
        )

        try:
            response = await call_next(request)
        except Exception as e:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.error(
                f"[{request_id}] Error: {str(e)[:100]} ({elapsed_ms:.0f}ms)",
                extra=fields("request_error", error=str(e), duration_ms=elapsed_ms),
                exc_info=True,
            )
            raise

        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.log(
            logging.INFO if response.status_code < 400 else logging.WARNING,
            f"[{request_id}] <- {response.status_code} ({elapsed_ms:.0f}ms)",
            extra=fields("request_end", status_code=response.status_code, duration_ms=elapsed_ms),
        )
        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Process-Time"] = f"{elapsed_ms / 1000:.3f}"
        return response


class ContextualLogger(logging.LoggerAdapter):
    """Logger adapter prefixing messages with [request_id][sess:xxxxxxxx]"""

    def __init__(self, name: str):
        super().__init__(logging.getLogger(name), {})

    def process(self, msg, kwargs):
        prefix = ""
        request_id = get_request_id()
        session_id = get_session_id()
        if request_id:
            prefix = f"[{request_id}]"
        if session_id:
            prefix += f"[sess:{session_id[:8]}]"
        return (f"{prefix} {msg}" if prefix else msg), kwargs


def get_logger(name: str) -> ContextualLogger:
    """Get a contextual logger that includes request/session IDs."""
    return ContextualLogger(name)
