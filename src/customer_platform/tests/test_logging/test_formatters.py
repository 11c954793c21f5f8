# src/customer_platform/tests/test_logging/test_formatters.py
import json
import logging

from customer_platform.core.logging.formatters import ColorFormatter, JsonFormatter


def make_record():
    # create a LogRecord that simulates formatting with args
    return logging.LogRecord("customer_platform", logging.INFO, __file__, 10, "hello %s", ("tester",), None)


def test_json_formatter_basic_fields():
    rec = make_record()
    # attach an extra (simulate extra param)
    rec.custom = "value"
    rec.request_id = "req-1"
    fmt = JsonFormatter(env="testing", service="svc")
    data = json.loads(fmt.format(rec))
    assert data["message"] == "hello tester"
    assert data["level"] == "INFO"
    assert data["service"] == "svc"
    assert data["env"] == "testing"
    assert "timestamp" in data
    assert data["request_id"] == "req-1"
    assert data["custom"] == "value"
    assert "version" in data
    # LogRecord internals are not exported as extras
    assert "msg" not in data
    assert "args" not in data


def test_json_formatter_non_serializable_extra():
    rec = make_record()

    class X:
        def __repr__(self):
            return "<X>"

    rec.obj = X()
    data = json.loads(JsonFormatter(env="dev", service="svc").format(rec))
    # non-serializable obj is stringified
    assert data["obj"] == "<X>"


def test_color_formatter_shows_db_operation_inline():
    rec = logging.LogRecord("customer_platform.db", logging.DEBUG, __file__, 1, "db.operation", None, None)
    rec.request_id = "req-2"
    rec.operation = "SELECT"
    rec.entity = "customer"
    rec.duration_ms = 1.5

    line = ColorFormatter().format(rec)

    assert "db.operation [SELECT customer 1.5ms]" in line
    assert "req-2" in line
