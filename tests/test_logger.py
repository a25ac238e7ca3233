import contextvars
import json
import logging

import structlog

from bucketfs.monitoring.context import (
    begin_operation,
    get_request_context,
    request_context,
    set_request_context,
)
from bucketfs.monitoring.logger import JsonFormatter, log


def test_json_formatter_includes_context_and_extras():
    record = logging.LogRecord("bucketfs", logging.WARNING, __file__, 10, "upload failed", None, None)
    record.component = "transport"
    record.request_id = "req-1"
    record.operation = "put"
    record.status = 503
    data = json.loads(JsonFormatter().format(record))
    assert data["level"] == "WARNING"
    assert data["message"] == "upload failed"
    assert data["component"] == "transport"
    assert data["request_id"] == "req-1"
    assert data["operation"] == "put"
    assert data["session_id"] is None
    assert data["status"] == 503
    assert "timestamp" in data


def test_log_fills_request_context(caplog):
    def emit():
        set_request_context(request_id="rid-42", operation="stat")
        log("INFO", "stat done", module="cloud_storage", bucket="b1")

    with caplog.at_level(logging.INFO, logger="bucketfs"):
        contextvars.copy_context().run(emit)

    record = caplog.records[-1]
    assert record.getMessage() == "stat done"
    assert record.component == "cloud_storage"
    assert record.request_id == "rid-42"
    assert record.operation == "stat"
    assert record.bucket == "b1"


def test_explicit_fields_override_context(caplog):
    def emit():
        set_request_context(request_id="from-context")
        log("WARNING", "explicit", request_id="explicit-id")

    with caplog.at_level(logging.INFO, logger="bucketfs"):
        contextvars.copy_context().run(emit)
    assert caplog.records[-1].request_id == "explicit-id"
    assert caplog.records[-1].levelno == logging.WARNING


def test_request_context_is_isolated():
    def inner():
        set_request_context(request_id="inner", session_id="s", operation="list")
        return get_request_context()

    assert contextvars.copy_context().run(inner) == {
        "request_id": "inner",
        "session_id": "s",
        "operation": "list",
    }
    assert contextvars.copy_context().run(get_request_context)["session_id"] is None


def test_structlog_events_reach_the_json_logger(caplog):
    with caplog.at_level(logging.INFO, logger="bucketfs"):
        structlog.get_logger("bucketfs.file_access.tests").info("object_uploaded", path="a.txt", size=3)
    record = caplog.records[-1]
    assert record.name == "bucketfs.file_access.tests"
    assert record.getMessage() == "object_uploaded"
    assert record.path == "a.txt"
    assert record.size == 3


def test_begin_operation_binds_and_restores():
    def run():
        set_request_context(operation="outer")
        with begin_operation("get") as first:
            inside = get_request_context()
        with begin_operation("list", "fixed-id") as second:
            pass
        return first, inside, second, get_request_context()

    first, inside, second, after = contextvars.copy_context().run(run)
    assert inside == {"request_id": first, "session_id": None, "operation": "get"}
    assert second == "fixed-id"
    assert after["operation"] == "outer"
    assert after["request_id"] is None


def test_request_context_restores_previous_values():
    def run():
        set_request_context(session_id="outer")
        with request_context(session_id="inner", operation="rmd"):
            inside = get_request_context()
        return inside, get_request_context()

    inside, after = contextvars.copy_context().run(run)
    assert inside["session_id"] == "inner"
    assert inside["operation"] == "rmd"
    assert after["session_id"] == "outer"
    assert after["operation"] is None
