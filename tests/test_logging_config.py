"""
Tests for structured logging helpers.
"""

import json
import logging
import threading

from receipt_engine.config import Settings
from receipt_engine.logging_config import (
    CustomJsonFormatter,
    LogContext,
    RequestContextFilter,
    current_log_context,
    get_logger,
    setup_logging_from_settings,
)


def make_record(message="receipt checked"):
    return logging.LogRecord(
        "receipt_engine.test", logging.INFO, __file__, 1, message, None, None
    )


class TestLogContext:
    def test_filter_adds_request_fields(self):
        logger = get_logger("receipt_engine.test")
        context_filter = RequestContextFilter()

        with LogContext(logger, request_file="/uploads/r.png", expected_amount="10.00"):
            inside = make_record()
            context_filter.filter(inside)
        outside = make_record()
        context_filter.filter(outside)

        assert inside.request_file == "/uploads/r.png"
        assert inside.expected_amount == "10.00"
        assert not hasattr(outside, "request_file")

    def test_nested_contexts_merge_and_restore(self):
        logger = get_logger("receipt_engine.test")

        with LogContext(logger, request_file="a.png"):
            with LogContext(logger, expected_amount="5.00"):
                assert current_log_context() == {
                    "request_file": "a.png",
                    "expected_amount": "5.00",
                }
            assert current_log_context() == {"request_file": "a.png"}
        assert current_log_context() == {}

    def test_explicit_extra_is_not_overwritten(self):
        logger = get_logger("receipt_engine.test")
        record = make_record()
        record.request_file = "explicit.png"

        with LogContext(logger, request_file="context.png"):
            RequestContextFilter().filter(record)

        assert record.request_file == "explicit.png"

    def test_overlapping_requests_on_threads_stay_isolated(self):
        logger = get_logger("receipt_engine.test")
        a_entered = threading.Event()
        b_entered = threading.Event()
        a_exited = threading.Event()
        seen = {}

        def request_a():
            with LogContext(logger, request_file="A.png"):
                a_entered.set()
                b_entered.wait(5)
                seen["a"] = dict(current_log_context())
            a_exited.set()

        def request_b():
            a_entered.wait(5)
            with LogContext(logger, request_file="B.png"):
                b_entered.set()
                a_exited.wait(5)
                seen["b"] = dict(current_log_context())

        threads = [threading.Thread(target=request_a), threading.Thread(target=request_b)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(10)

        assert seen["a"] == {"request_file": "A.png"}
        assert seen["b"] == {"request_file": "B.png"}

        record = logging.getLogRecordFactory()(
            "receipt_engine.test", logging.INFO, __file__, 1, "later", None, None
        )
        RequestContextFilter().filter(record)
        assert not hasattr(record, "request_file")
        assert current_log_context() == {}


def test_json_formatter_output():
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(logger)s %(message)s")
    record = logging.LogRecord(
        "receipt_engine.ocr", logging.WARNING, __file__, 10, "engine failed", None, None
    )
    record.engine = 2

    payload = json.loads(formatter.format(record))

    assert payload["level"] == "WARNING"
    assert payload["logger"] == "receipt_engine.ocr"
    assert payload["message"] == "engine failed"
    assert payload["engine"] == 2
    assert "timestamp" in payload


def test_setup_logging_from_settings():
    root = logging.getLogger()
    saved_handlers = root.handlers[:]
    saved_level = root.level
    try:
        setup_logging_from_settings(Settings(log_level="WARNING", environment="production"))

        handler = root.handlers[0]
        assert root.level == logging.WARNING
        assert isinstance(handler.formatter, CustomJsonFormatter)
        assert any(isinstance(f, RequestContextFilter) for f in handler.filters)
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
