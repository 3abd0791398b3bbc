"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from explain_api.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    set_request_id,
)


@pytest.fixture
def capture():
    """Logger wired like production: redaction filter plus JSON formatter."""

    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

    yield logger, stream

    logger.handlers.clear()
    clear_request_id()


def test_sensitive_filter_redacts_admin_keys(capture):
    logger, stream = capture

    logger.info(
        "test_event",
        extra={
            "api_key": "sk-secret-123",
            "x-admin-key": "admin-key-123",
            "safe_field": "visible",
        },
    )

    output = stream.getvalue()
    assert "sk-secret-123" not in output
    assert "admin-key-123" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_sensitive_filter_redacts_learner_text(capture):
    logger, stream = capture

    logger.info(
        "chat_event",
        extra={
            "system_prompt": "You are a curious 12 year old",
            "user_message": "My name is Ana and I live at 12 Elm St",
            "message_length": 38,
        },
    )

    output = stream.getvalue()
    assert "curious 12 year old" not in output
    assert "Elm St" not in output
    assert json.loads(output)["message_length"] == 38


def test_sensitive_filter_allows_safe_fields(capture):
    logger, stream = capture

    logger.info(
        "safe_event",
        extra={"path": "/api/chat", "status": 200, "duration_ms": 150.5},
    )

    output = stream.getvalue()
    assert "/api/chat" in output
    assert "200" in output
    assert "[REDACTED]" not in output


def test_sensitive_filter_redacts_nested_dicts(capture):
    logger, stream = capture

    logger.info(
        "nested_event",
        extra={
            "headers": {"x-admin-key": "secret-key", "user-agent": "pytest"},
            "payloads": [{"user_message": "hello"}],
        },
    )

    payload = json.loads(stream.getvalue())
    assert payload["headers"] == {"x-admin-key": "[REDACTED]", "user-agent": "pytest"}
    assert payload["payloads"] == [{"user_message": "[REDACTED]"}]


def test_request_id_is_attached_from_context(capture):
    logger, stream = capture
    set_request_id("req-abc")

    logger.warning("with_context")

    payload = json.loads(stream.getvalue())
    assert payload["request_id"] == "req-abc"
    assert payload["level"] == "warning"
    assert payload["message"] == "with_context"
