# src/customer_platform/tests/test_logging/test_queue_logging.py
import logging
import time
from pathlib import Path
from types import SimpleNamespace

from customer_platform.core.logging.builder import get_queue_stats, setup_logging, stop_queue_logging
from customer_platform.core.logging.filters import reset_request_id, set_request_id


def make_test_settings(tmp_path: Path, **overrides):
    # Build a lightweight settings object for tests (duck-typed)
    s = SimpleNamespace()
    s.SERVICE_NAME = "customer-service"
    s.ENV = "testing"
    s.LOG_LEVEL = "DEBUG"
    s.LOG_FORMAT = "json"
    s.LOG_TO_STDOUT = False     # write to files, not stdout
    s.LOG_DIR = tmp_path
    s.LOG_MAX_BYTES = 1_000_000
    s.LOG_BACKUP_COUNT = 1
    s.ENABLE_SQL_LOGGING = False
    s.LOG_USE_QUEUE = True      # enable queue for the test
    for key, value in overrides.items():
        setattr(s, key, value)
    return s


def test_queue_listener_writes_file(tmp_path):
    stop_queue_logging()

    settings = make_test_settings(tmp_path)
    setup_logging(settings)
    assert get_queue_stats()["queue_present"] is True

    logger = logging.getLogger("test.queue")

    # The request id is read on the producer side, where the contextvar is set
    token = set_request_id("test-req-1")
    try:
        for i in range(10):
            logger.info("test message %d", i, extra={"iteration": i})
    finally:
        reset_request_id(token)

    time.sleep(0.05)

    # Stop and flush the queue listener so the file is complete
    stop_queue_logging()

    app_log = Path(settings.LOG_DIR) / "app.log"
    assert app_log.exists(), "app.log should exist after logging"
    text = app_log.read_text()
    assert "test message 0" in text
    assert "iteration" in text
    assert "test-req-1" in text


def test_db_operation_records_reach_the_listener(tmp_path):
    from customer_platform.core.logging.operations import log_database_operation

    settings = make_test_settings(tmp_path)
    setup_logging(settings)

    log_database_operation("SELECT_PAGINATED", "customer", 3.14159, "req-db-1")

    stop_queue_logging()

    text = (Path(settings.LOG_DIR) / "app.log").read_text()
    assert "db.operation" in text
    assert "SELECT_PAGINATED" in text
    assert "3.142" in text
    assert "req-db-1" in text


def test_stop_without_listener_is_noop():
    stop_queue_logging()
    stop_queue_logging()
