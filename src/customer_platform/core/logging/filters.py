"""
Logging filters.

- RequestIdFilter: guarantees every LogRecord has a `request_id` attribute, read
  from a contextvar set by `RequestIDMiddleware` (or by callers such as the
  repository layer passing `extra={"request_id": ...}`).
- RedactFilter: masks sensitive `extra` keys and secret-looking fragments
  (IPs, password=..., token=...) in the rendered message.

`contextvars.ContextVar` is used instead of thread-locals because concurrent
requests share the event-loop thread; each asyncio task keeps its own value
across awaits.
"""
import logging
from logging import LogRecord
import contextvars

from customer_platform.utils.redaction import sanitize_message

_request_id_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)


def set_request_id(request_id: str | None):
    """
    Set the request id in the current context.

    Returns:
        token: contextvar.Token which can be passed to reset_request_id(token)
    """
    return _request_id_ctx.set(request_id)


def reset_request_id(token):
    _request_id_ctx.reset(token)


def get_request_id() -> str | None:
    """The current context's request id, or None outside a request."""
    return _request_id_ctx.get()


class RequestIdFilter(logging.Filter):
    """
    Set `record.request_id` to, in order of preference:
      * the value passed through `extra={"request_id": ...}`
      * the contextvar value set by the middleware
      * the sentinel "-" (keeps `%(request_id)s` format strings from failing)
    """

    def filter(self, record: LogRecord) -> bool:
        record.request_id = (
            getattr(record, "request_id", None) or get_request_id() or "-"
        )
        return True


class RedactFilter(logging.Filter):
    SENSITIVE = {
        "password",
        "secret",
        "token",
        "access_token",
        "refresh_token",
        "ssn",
        "authorization",
        "database_url",
    }

    def filter(self, record: LogRecord) -> bool:
        for key in list(record.__dict__.keys()):
            if key.lower() in self.SENSITIVE:
                record.__dict__[key] = "***REDACTED***"

        if isinstance(record.msg, str) and not record.args:
            record.msg = sanitize_message(record.msg)
        return True
