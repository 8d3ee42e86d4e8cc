"""Tests for structured logging."""

import json
import logging
from datetime import datetime, timezone

from docenrich.logger import JsonFormatter, get_logger


def make_record(msg, **extra):
    record = logging.LogRecord("docenrich", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_json_formatter_includes_extra_fields():
    """Extra fields appear alongside the message."""
    record = make_record("llm.analyze.start", component="llm", provider="openai", document_id=5)

    data = json.loads(JsonFormatter().format(record))

    assert data["message"] == "llm.analyze.start"
    assert data["level"] == "INFO"
    assert data["provider"] == "openai"
    assert data["document_id"] == 5


def test_json_formatter_stringifies_unserializable():
    """Values json cannot encode are converted to strings."""
    when = datetime(2026, 1, 1, tzinfo=timezone.utc)
    record = make_record("llm.ratelimit.updated", reset_at=when)

    data = json.loads(JsonFormatter().format(record))

    assert data["reset_at"] == str(when)


def test_component_logger_passes_kwargs(caplog):
    """Keyword arguments become record attributes."""
    log = get_logger("docenrich.llm.test")

    with caplog.at_level(logging.WARNING, logger="docenrich"):
        log.warning("llm.ratelimit.retry", attempt=2, delay_s=1.5)

    record = caplog.records[-1]
    assert record.getMessage() == "llm.ratelimit.retry"
    assert record.component == "docenrich.llm.test"
    assert record.attempt == 2
