"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

from rategate.core.logging import JsonFormatter, SensitiveDataFilter, clear_request_id, set_request_id


def _capture(name: str) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_credentials_and_proxy_headers():
    """Credentials and proxy address headers never reach the output."""

    logger, stream = _capture("test_identity_redaction")

    logger.info(
        "rate_limit.exceeded",
        extra={
            "authorization": "Bearer secret-token",
            "x-real-ip": "203.0.113.7",
            "key_hash": "abcdef0123456789",
        },
    )

    output = stream.getvalue()

    assert "secret-token" not in output
    assert "203.0.113.7" not in output
    assert "[REDACTED]" in output
    assert "abcdef0123456789" in output


def test_sensitive_filter_allows_safe_fields():
    """Verify safe fields pass through unmodified."""

    logger, stream = _capture("test_safe_fields")

    logger.info(
        "rate_limit.allowed",
        extra={
            "limit": 10,
            "remaining": 7,
            "request_path": "/ping",
        },
    )

    data = json.loads(stream.getvalue())

    assert data["limit"] == 10
    assert data["remaining"] == 7
    assert data["request_path"] == "/ping"
    assert "[REDACTED]" not in stream.getvalue()


def test_sensitive_filter_redacts_nested_headers():
    """Ensure nested sensitive fields are redacted."""

    logger, stream = _capture("test_nested")

    logger.info(
        "nested_event",
        extra={
            "headers": {
                "X-Forwarded-For": "198.51.100.4",
                "user-agent": "pytest",
            },
        },
    )

    output = stream.getvalue()

    assert "198.51.100.4" not in output
    assert "[REDACTED]" in output
    assert "pytest" in output


def test_json_formatter_includes_request_id_from_context():
    logger, stream = _capture("test_request_id")

    set_request_id("req-123")
    try:
        logger.info("rate_limit.configured")
    finally:
        clear_request_id()

    data = json.loads(stream.getvalue())

    assert data["message"] == "rate_limit.configured"
    assert data["request_id"] == "req-123"
    assert data["level"] == "info"
