# src/customer_platform/core/logging/
# ├─ __init__.py        # public API
# ├─ builder.py         # make_dict_config(settings) + setup_logging(settings)
# ├─ formatters.py      # JsonFormatter, ColorFormatter
# ├─ filters.py         # RequestIdFilter, RedactFilter (+ contextvar helpers)
# ├─ handlers.py        # handler config factories (console/file)
# ├─ middleware.py      # FastAPI/Starlette middleware to set request id
# └─ operations.py      # db.operation sink for repositories


from .builder import setup_logging, make_dict_config, stop_queue_logging
from .filters import set_request_id, reset_request_id, get_request_id, RequestIdFilter, RedactFilter
from .middleware import RequestIDMiddleware
from .operations import log_database_operation, OperationKind

__all__ = [
    "setup_logging",
    "make_dict_config",
    "stop_queue_logging",
    "set_request_id",
    "reset_request_id",
    "get_request_id",
    "RequestIdFilter",
    "RedactFilter",
    "RequestIDMiddleware",
    "log_database_operation",
    "OperationKind",
]
