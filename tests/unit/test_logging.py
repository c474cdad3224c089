"""
Unit tests for logging configuration and request context
"""
import logging

import pytest

from homequote.core.logging import add_request_context, setup_logging
from homequote.middleware.logging_middleware import (
    ContextualLogger,
    request_id_var,
    session_id_from_path,
    session_id_var,
)


@pytest.fixture
def request_context():
    request_token = request_id_var.set("ab12cd34")
    session_token = session_id_var.set("0f8e7d6c-5b4a-3210")
    yield
    request_id_var.reset(request_token)
    session_id_var.reset(session_token)


class TestRequestContext:
    """Tests for request and session id propagation"""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "path,expected",
        [
            ("/api/quotation/sessions/abc-123/messages", "abc-123"),
            ("/api/quotation/sessions/abc-123", "abc-123"),
            ("/api/quotation/sessions", ""),
            ("/health", ""),
        ],
    )
    def test_session_id_from_path(self, path, expected):
        assert session_id_from_path(path) == expected

    @pytest.mark.unit
    def test_contextual_logger_prefix(self, request_context):
        msg, _ = ContextualLogger("homequote.test").process("hello", {})

        assert msg == "[ab12cd34][sess:0f8e7d6c] hello"

    @pytest.mark.unit
    def test_no_prefix_outside_request(self):
        msg, _ = ContextualLogger("homequote.test").process("hello", {})

        assert msg == "hello"

    @pytest.mark.unit
    def test_structlog_processor_adds_ids(self, request_context):
        event = add_request_context(None, "info", {"event": "turn"})

        assert event["request_id"] == "ab12cd34"
        assert event["session_id"] == "0f8e7d6c-5b4a-3210"


class TestSetupLogging:
    """Tests for root logger configuration"""

    @pytest.mark.unit
    def test_console_only_outside_production(self):
        setup_logging(level="debug", log_format="console", environment="development")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert logging.getLogger("httpx").level == logging.WARNING

    @pytest.mark.unit
    def test_production_writes_files(self, tmp_path):
        setup_logging(level="info", log_format="json", environment="production", log_dir=str(tmp_path))

        root = logging.getLogger()
        try:
            assert len(root.handlers) == 3
            assert (tmp_path / "homequote.log").exists()
        finally:
            for handler in root.handlers[1:]:
                handler.close()
            root.handlers = root.handlers[:1]
