"""Tests for the JSON log formatter and correlation IDs."""
import json
import logging

import pytest

from ratekeeper.lib.logging import (
    JSONFormatter,
    correlation_id_var,
    get_correlation_id,
    get_logger,
    log_with_context,
    set_correlation_id,
)


@pytest.fixture
def captured():
    """Attach a JSON-formatting handler that keeps formatted lines in memory."""
    lines = []

    class ListHandler(logging.Handler):
        def emit(self, record):
            lines.append(json.loads(self.format(record)))

    handler = ListHandler()
    handler.setFormatter(JSONFormatter())
    logger = get_logger("ratekeeper.test")
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    token = correlation_id_var.set(None)
    yield logger, lines
    correlation_id_var.reset(token)
    logger.removeHandler(handler)


@pytest.mark.unit
def test_log_with_context_adds_fields(captured):
    logger, lines = captured

    log_with_context(logger, "info", "Review submitted", review_id=4, kind="user")

    entry = lines[-1]
    assert entry["message"] == "Review submitted"
    assert entry["level"] == "INFO"
    assert entry["logger"] == "ratekeeper.test"
    assert entry["review_id"] == 4
    assert entry["kind"] == "user"
    assert entry["timestamp"].endswith("Z")
    assert "correlation_id" not in entry


@pytest.mark.unit
def test_correlation_id_is_included(captured):
    logger, lines = captured

    set_correlation_id("req-123")
    logger.warning("Cache read failed")

    assert get_correlation_id() == "req-123"
    assert lines[-1]["correlation_id"] == "req-123"


@pytest.mark.unit
def test_exception_text_is_included(captured):
    logger, lines = captured

    try:
        raise RuntimeError("redis down")
    except RuntimeError:
        log_with_context(logger, "warning", "Cache write failed", key="user:1:rating", exc_info=True)

    entry = lines[-1]
    assert "RuntimeError: redis down" in entry["exception"]
    assert entry["key"] == "user:1:rating"
