import json
import logging

from standup_order.logging import (
    CorrelationFilter,
    StructuredFormatter,
    correlation_context,
    get_correlation_id,
    log_with_context,
)


def test_correlation_context_nests_and_resets():
    assert get_correlation_id() == ""
    with correlation_context("outer") as outer:
        assert outer == "outer"
        with correlation_context() as inner:
            assert inner != "outer"
            assert get_correlation_id() == inner
        assert get_correlation_id() == "outer"
    assert get_correlation_id() == ""


def test_structured_formatter_includes_context():
    record = logging.LogRecord("orders", logging.INFO, __file__, 1, "Command executed", (), None)
    record.extra_data = {"command": "skip"}
    with correlation_context("abc123"):
        CorrelationFilter().filter(record)

    entry = json.loads(StructuredFormatter().format(record))
    assert entry["correlation_id"] == "abc123"
    assert entry["message"] == "Command executed"
    assert entry["data"] == {"command": "skip"}


def test_log_with_context_attaches_fields(caplog):
    logger = logging.getLogger("tests.orders")
    with caplog.at_level(logging.INFO, logger="tests.orders"):
        log_with_context(logger, logging.INFO, "Command refused", command="vacation")
    assert caplog.records[0].extra_data == {"command": "vacation"}
