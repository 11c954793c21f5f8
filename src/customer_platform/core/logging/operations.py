"""
Operation-logging sink used by the repository and query layers.

One DEBUG record per storage operation, event name `db.operation`, with the
operation kind, entity, duration and correlation id as structured extras.
"""

import logging
from enum import Enum
from typing import Protocol

logger = logging.getLogger("customer_platform.db")


class OperationKind(str, Enum):
    SELECT = "SELECT"
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    SELECT_PAGINATED = "SELECT_PAGINATED"
    COUNT = "COUNT"
    SELECT_PROJECTION = "SELECT_PROJECTION"


class OperationSink(Protocol):
    def __call__(self, operation: str, entity: str, duration_ms: float,
                 request_id: str | None = None) -> None: ...


def log_database_operation(operation: str, entity: str, duration_ms: float,
                           request_id: str | None = None) -> None:
    """
    Record one storage operation. Never raises: a broken handler or formatter
    must not change the outcome of the operation being logged.
    """
    try:
        extra = {
            "operation": str(getattr(operation, "value", operation)),
            "entity": entity,
            "duration_ms": round(duration_ms, 3),
        }
        if request_id:
            extra["request_id"] = request_id
        logger.debug("db.operation", extra=extra)
    except Exception:  # noqa: BLE001 - logging must not affect the caller
        pass
