# src/customer_platform/tests/test_logging/test_operations.py
import logging

from customer_platform.core.logging.operations import OperationKind, log_database_operation


def test_emits_one_debug_record_with_extras(caplog):
    caplog.set_level(logging.DEBUG, logger="customer_platform.db")

    log_database_operation(OperationKind.INSERT, "customer", 12.34567, "req-1")

    records = [r for r in caplog.records if r.name == "customer_platform.db"]
    assert len(records) == 1
    record = records[0]
    assert record.levelno == logging.DEBUG
    assert record.getMessage() == "db.operation"
    assert record.operation == "INSERT"
    assert record.entity == "customer"
    assert record.duration_ms == 12.346
    assert record.request_id == "req-1"


def test_never_raises_when_a_handler_breaks():
    class BrokenHandler(logging.Handler):
        def emit(self, record):
            raise RuntimeError("disk full")

        def handleError(self, record):
            raise RuntimeError("still broken")

    logger = logging.getLogger("customer_platform.db")
    handler = BrokenHandler()
    previous_level = logger.level
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    try:
        log_database_operation("SELECT", "user", 1.0)
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous_level)
