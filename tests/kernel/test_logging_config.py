"""Tests for the structured logging system (lumber_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from lumber_kernel.exceptions import InsufficientTallyBalanceError
from lumber_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG)


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


def _parse_log(stream: StringIO) -> dict:
    return _parse_all_logs(stream)[0]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "lumber_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("lot_received", extra={"lots_used": 2, "status": "open"})

        record = _parse_log(stream)
        assert record["lots_used"] == 2
        assert record["status"] == "open"

    def test_decimal_and_uuid_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("drawn", extra={"tally_id": uid, "amount_bf": Decimal("12.5000")})

        record = _parse_log(stream)
        assert record["tally_id"] == str(uid)
        assert record["amount_bf"] == "12.5000"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(work_order_id="WO-1", lot_id="TS-20240315-0001")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["work_order_id"] == "WO-1"
        assert record["lot_id"] == "TS-20240315-0001"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "work_order_id" not in record
        assert "job_id" not in record

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_kernel_exception_fields_extracted(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise InsufficientTallyBalanceError("lot-1", "50", "20")
        except InsufficientTallyBalanceError:
            get_logger("test").error("allocation_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "INSUFFICIENT_TALLY_BALANCE"
        assert record["exc_tally_id"] == "lot-1"
        assert record["exc_requested_bf"] == "50"
        assert record["exc_available_bf"] == "20"


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    def test_set_and_get(self):
        LogContext.set(actor_id="yard-clerk", correlation_id=None)

        assert LogContext.get_all() == {"actor_id": "yard-clerk"}

    def test_unknown_field_rejected(self):
        with pytest.raises(KeyError):
            LogContext.set(event_id="nope")

    def test_bind_restores_previous_values(self):
        LogContext.set(job_id="outer")

        with LogContext.bind(job_id="inner"):
            assert LogContext.get_all()["job_id"] == "inner"

        assert LogContext.get_all()["job_id"] == "outer"

    def test_bind_rejects_unknown_field(self):
        with pytest.raises(KeyError):
            LogContext.bind(event_id="nope")

    def test_bind_skips_none(self):
        with LogContext.bind(lot_id=None, job_id="run-1"):
            assert LogContext.get_all() == {"job_id": "run-1"}

    def test_clear(self):
        LogContext.set(trace_id="t-1")
        LogContext.clear()

        assert LogContext.get_all() == {}


# ---------------------------------------------------------------------------
# Configuration tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    def test_idempotent(self):
        reset_logging()
        handler, stream = _make_handler()
        second = logging.StreamHandler(StringIO())
        configure_logging(handler=handler)
        configure_logging(handler=second)
        get_logger("test").info("once")

        handlers = logging.getLogger("lumber_kernel").handlers
        assert len(_parse_all_logs(stream)) == 1
        assert handlers.count(handler) == 1
        assert second not in handlers

    def test_level_filters(self):
        handler, stream = _make_handler()
        configure_logging(level=logging.WARNING, handler=handler)
        get_logger("test").info("hidden")
        get_logger("test").warning("shown")

        assert [r["message"] for r in _parse_all_logs(stream)] == ["shown"]

    def test_does_not_propagate(self):
        configure_logging(handler=logging.NullHandler())

        assert logging.getLogger("lumber_kernel").propagate is False
