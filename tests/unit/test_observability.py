"""Unit tests for structured logging utilities in ``observability``."""

from __future__ import annotations

import logging

import pytest

from lib_config_binder import bind_trace_id, get_logger
from lib_config_binder.observability import TRACE_ID, log_debug, log_info, make_event


def test_null_handler_present() -> None:
    """Package logger should always include a NullHandler to avoid surprises."""

    logger = get_logger()
    assert any(isinstance(handler, logging.NullHandler) for handler in logger.handlers)


def test_trace_id_in_log(caplog: pytest.LogCaptureFixture) -> None:
    """Structured logs should include the bound trace identifier and contextual fields."""

    caplog.set_level(logging.INFO, logger="lib_config_binder")
    bind_trace_id("trace-123")
    try:
        log_info("proxy_created", path="greeter", target="Greeter")
    finally:
        bind_trace_id(None)
    record = caplog.records[-1]
    assert getattr(record, "context") == {"trace_id": "trace-123", "path": "greeter", "target": "Greeter"}


def test_debug_entries_are_skipped_when_disabled(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="lib_config_binder")
    log_debug("object_bound", path="a")
    assert not [record for record in caplog.records if record.getMessage() == "object_bound"]


def test_bind_trace_id_clears_context() -> None:
    bind_trace_id("trace-temp")
    bind_trace_id(None)
    assert TRACE_ID.get() is None


def test_make_event_merges_optional_payload() -> None:
    event = make_event("db:port", "int", {"value": "5432"})
    assert event == {"path": "db:port", "target": "int", "value": "5432"}
