"""
Logging configuration for HomeQuote.

Usage:
    # Contextual logger with automatic request/session ID prefix:
    from homequote.middleware.logging_middleware import get_logger
    logger = get_logger(__name__)

    # Or plain standard logging:
    import logging
    logger = logging.getLogger(__name__)
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

import structlog

from homequote.core.config import settings

FILE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
MAX_LOG_BYTES = 10 * 1024 * 1024
LOG_BACKUPS = 5

# Chatty libraries kept at WARNING regardless of the app level
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "openai", "sqlalchemy.engine", "aiosqlite")


def add_request_context(logger, method_name, event_dict):
    """structlog processor adding the current request and quotation session ids"""
    from homequote.middleware.logging_middleware import get_request_id, get_session_id

    request_id = get_request_id()
    session_id = get_session_id()
    if request_id:
        event_dict.setdefault("request_id", request_id)
    if session_id:
        event_dict.setdefault("session_id", session_id)
    return event_dict


def build_processors(log_format: str) -> List:
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        add_request_context,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True, exception_formatter=structlog.dev.plain_traceback))
    return processors


def _file_handler(path: Path, level: int, fmt: str) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def setup_logging(
    level: Optional[str] = None,
    log_format: Optional[str] = None,
    environment: Optional[str] = None,
    log_dir: Optional[str] = None,
):
    """
    Configure structlog and the standard-library root logger.

    Arguments default to the application settings. Production also writes a full
    log and an errors-only log under log_dir, both rotated.
    """
    level = (level or settings.log_level).upper()
    log_format = log_format or settings.log_format
    environment = environment or settings.environment
    log_level = getattr(logging, level, logging.INFO)

    structlog.configure(
        processors=build_processors(log_format),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter("%(message)s" if log_format == "json" else CONSOLE_FORMAT))
    root_logger.addHandler(console_handler)

    if environment == "production":
        directory = Path(log_dir or settings.log_dir)
        directory.mkdir(parents=True, exist_ok=True)
        root_logger.addHandler(_file_handler(directory / "homequote.log", logging.DEBUG, FILE_FORMAT))
        root_logger.addHandler(_file_handler(directory / "homequote_errors.log", logging.ERROR, FILE_FORMAT + "\n%(exc_info)s"))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(f"Logging configured: level={level}, format={log_format}, env={environment}")
