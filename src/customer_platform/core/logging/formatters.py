"""
Formatters used by the dictConfig built in `builder.py`.

  - JsonFormatter: one JSON object per line for log collectors; adds
    service/env/version/request_id and every `extra` key passed at the call site
    (e.g. the `operation`, `entity`, `duration_ms` of `db.operation` records).
  - ColorFormatter: compact ANSI-colored lines for local development.
"""

import json
import logging
from typing import Any
from logging import LogRecord

from customer_platform.utils.logging import get_project_version

PROJECT_VERSION = get_project_version()

# LogRecord attributes that are not "extra" context
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """
    Structured JSON formatter.

    Args:
        env: environment name ("development", "production", ...).
        service: logical service name stamped on every record.
        datefmt: passed to logging.Formatter.formatTime.

    Never raises on odd `extra` values: anything json cannot encode is
    stringified.
    """

    def __init__(self, *, env: str | None = None, service: str = "customer-service", datefmt: str | None = None):
        super().__init__(datefmt=datefmt)
        self.env = env
        self.service = service

    def format(self, record: LogRecord) -> str:
        log_record: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "pathname": record.pathname,
            "lineno": record.lineno,
            "request_id": getattr(record, "request_id", "-"),
            "service": self.service,
            "env": self.env,
            "version": PROJECT_VERSION,
        }

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)
        if record.stack_info:
            log_record["stack_info"] = self.formatStack(record.stack_info)

        for key, value in record.__dict__.items():
            if key in log_record or key in _RESERVED_ATTRS or key.startswith("_"):
                continue
            try:
                json.dumps(value)
                log_record[key] = value
            except (TypeError, ValueError):
                log_record[key] = str(value)

        return json.dumps(log_record, ensure_ascii=False, default=str)


class ColorFormatter(logging.Formatter):
    """
    TIMESTAMP | LEVEL | LOGGER | REQUEST_ID | MESSAGE, with the level colored.
    Tracebacks are appended on the following lines.
    """

    COLOR_CODES = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[1;41m",
        "RESET": "\033[0m",
    }

    def __init__(self, fmt: str | None = None, datefmt: str | None = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)

    def format(self, record: LogRecord) -> str:
        color = self.COLOR_CODES.get(record.levelname, "")
        reset = self.COLOR_CODES["RESET"]
        timestamp = self.formatTime(record, self.datefmt)

        base = (
            f"{timestamp} | {color}{record.levelname:<8}{reset} | "
            f"{record.name:<40} | "
            f"{getattr(record, 'request_id', '-'):<36} | "
            f"{record.getMessage()}"
        )

        # db.operation records carry their context in extras; show it inline
        operation = getattr(record, "operation", None)
        if operation is not None and hasattr(record, "duration_ms"):
            base += f" [{operation} {getattr(record, 'entity', '?')} {record.duration_ms}ms]"

        if record.exc_info:
            base = base + "\n" + self.formatException(record.exc_info)

        return base
