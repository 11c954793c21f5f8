"""
Logging builder: create and apply the dictConfig for the service and optionally
move log IO to a background QueueListener.

 - make_dict_config(settings) builds the dictConfig mapping
 - setup_logging(settings) applies it; with LOG_USE_QUEUE the real handlers run
   in a listener thread while producers only enqueue records
 - NonBlockingQueueHandler drops records (and counts them) instead of blocking
   when a bounded queue is full
 - stop_queue_logging() flushes and stops the listener at shutdown

Queue knobs (Settings): LOG_USE_QUEUE, LOG_QUEUE_MAX_SIZE (0 = unbounded),
LOG_QUEUE_BLOCKING.
"""

from __future__ import annotations

from pathlib import Path
import logging
import logging.config
import queue as _queue
import threading
from typing import Optional

from logging.handlers import QueueHandler, QueueListener

from customer_platform.config.settings import Settings
from customer_platform.utils.logging import get_project_name

from .formatters import JsonFormatter, ColorFormatter
from .filters import RequestIdFilter, RedactFilter
from .handlers import (
    get_console_handler,
    get_file_handler,
    get_error_file_handler,
    get_error_console_handler,
)
from .operations import logger as operations_logger

DEFAULT_SERVICE_NAME = "customer-service"
TEXT_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(request_id)s | %(message)s"

_QUEUE_LISTENER: Optional[QueueListener] = None
_QUEUE: Optional[_queue.Queue] = None
_DROPPED_LOGS_COUNT = 0
_DROPPED_LOGS_LOCK = threading.Lock()


class NonBlockingQueueHandler(QueueHandler):
    """
    QueueHandler that never blocks the producer on a full bounded queue:
    the record is dropped and the module-level drop counter incremented.
    """

    def emit(self, record: logging.LogRecord) -> None:
        global _DROPPED_LOGS_COUNT
        try:
            self.queue.put_nowait(self.prepare(record))
        except _queue.Full:
            with _DROPPED_LOGS_LOCK:
                _DROPPED_LOGS_COUNT += 1


def get_queue_stats() -> dict:
    """Dropped-record count and whether a listener queue is installed."""
    with _DROPPED_LOGS_LOCK:
        return {"dropped_logs": _DROPPED_LOGS_COUNT, "queue_present": _QUEUE is not None}


def _writes_files(settings: Settings) -> bool:
    return (not settings.LOG_TO_STDOUT) and bool(settings.LOG_DIR)


def _service_name(settings: Settings) -> str:
    return getattr(settings, "SERVICE_NAME", None) or get_project_name() or DEFAULT_SERVICE_NAME


def make_dict_config(settings: Settings) -> dict:
    """
    Build the dictConfig mapping.

      - formatters: "standard" (colored text, or plain with LOG_FORMAT=json) and "json"
      - filters: "request_id", "redact"
      - handlers: console + file + error_file when writing to LOG_DIR,
        console + error_console otherwise
      - loggers: root, uvicorn.*, sqlalchemy.engine (ENABLE_SQL_LOGGING) and the
        repository operation logger (LOG_DB_OPERATIONS)
    """
    handlers: dict[str, dict] = {"console": get_console_handler(settings)}
    if _writes_files(settings):
        handlers["file"] = get_file_handler(settings)
        handlers["error_file"] = get_error_file_handler(settings)
    else:
        handlers["error_console"] = get_error_console_handler(settings)
    all_handlers = list(handlers)

    loggers = {
        "": {"handlers": all_handlers, "level": settings.LOG_LEVEL, "propagate": True},
        "uvicorn.error": {"handlers": all_handlers, "level": settings.LOG_LEVEL, "propagate": False},
        "uvicorn.access": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "sqlalchemy.engine": {
            "handlers": ["console"],
            "level": "DEBUG" if settings.ENABLE_SQL_LOGGING else "WARNING",
            "propagate": False,
        },
    }
    if getattr(settings, "LOG_DB_OPERATIONS", False):
        # propagates to the root handlers; only the level is lowered
        loggers[operations_logger.name] = {"level": "DEBUG", "propagate": True}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "()": ColorFormatter if settings.LOG_FORMAT == "text" else logging.Formatter,
                "format": TEXT_FORMAT,
            },
            "json": {"()": JsonFormatter, "env": settings.ENV, "service": _service_name(settings)},
        },
        "filters": {
            "request_id": {"()": RequestIdFilter},
            "redact": {"()": RedactFilter},
        },
        "handlers": handlers,
        "loggers": loggers,
    }


def _install_queue(max_size: int, blocking: bool) -> None:
    """
    Move the root logger's handlers behind a QueueListener thread.

    The handlers are detached from every logger that holds them and only run
    inside the listener. Producer-side filters (request id, redaction) go on the
    QueueHandler so they run where the contextvar is set.
    """
    global _QUEUE_LISTENER, _QUEUE

    root_logger = logging.getLogger()
    moved = list(root_logger.handlers)
    if not moved:
        return

    for logger_obj in [root_logger, *logging.Logger.manager.loggerDict.values()]:
        if isinstance(logger_obj, logging.Logger):
            for handler in list(logger_obj.handlers):
                if handler in moved:
                    logger_obj.removeHandler(handler)

    log_queue: _queue.Queue = _queue.Queue(max_size) if max_size > 0 else _queue.Queue()
    handler_cls = NonBlockingQueueHandler if (max_size > 0 and not blocking) else QueueHandler

    listener = QueueListener(log_queue, *moved, respect_handler_level=True)
    listener.start()

    queue_handler = handler_cls(log_queue)
    queue_handler.addFilter(RequestIdFilter())
    queue_handler.addFilter(RedactFilter())
    root_logger.addHandler(queue_handler)

    _QUEUE_LISTENER = listener
    _QUEUE = log_queue


def setup_logging(settings: Settings) -> None:
    """
    Apply the logging configuration.

    Steps:
      1. Stop a listener left by a previous call.
      2. Create LOG_DIR when writing files.
      3. dictConfig(make_dict_config(settings)).
      4. Add a RequestIdFilter to the root logger as a safety net.
      5. With LOG_USE_QUEUE, run the handlers behind a QueueListener.
    """
    stop_queue_logging()

    if _writes_files(settings):
        Path(settings.LOG_DIR).mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(make_dict_config(settings))
    logging.getLogger().addFilter(RequestIdFilter())

    if getattr(settings, "LOG_USE_QUEUE", False):
        _install_queue(
            max_size=getattr(settings, "LOG_QUEUE_MAX_SIZE", 0) or 0,
            blocking=bool(getattr(settings, "LOG_QUEUE_BLOCKING", False)),
        )


def stop_queue_logging() -> None:
    """Stop the QueueListener (flushing queued records) and clear module refs."""
    global _QUEUE_LISTENER, _QUEUE

    listener = _QUEUE_LISTENER
    if listener is None:
        return

    try:
        listener.stop()
    except RuntimeError:
        logging.getLogger(__name__).exception("Failed to stop QueueListener cleanly")
    finally:
        _QUEUE_LISTENER = None
        _QUEUE = None
