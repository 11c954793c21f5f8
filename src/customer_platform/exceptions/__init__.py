from .base import (
    AppError,
    ValidationError,
    NotFoundError,
    UnauthorizedError,
    ForbiddenError,
    ConflictError,
    DatabaseError,
    ExternalServiceError,
    HTTPStatusError,
    UnknownError,
    is_operational,
)
from .sources import ExternalServiceFailure
from .normalizer import ErrorNormalizer, normalize_error

__all__ = [
    "AppError",
    "ValidationError",
    "NotFoundError",
    "UnauthorizedError",
    "ForbiddenError",
    "ConflictError",
    "DatabaseError",
    "ExternalServiceError",
    "HTTPStatusError",
    "UnknownError",
    "is_operational",
    "ExternalServiceFailure",
    "ErrorNormalizer",
    "normalize_error",
]

# exceptions/
# ├── base.py                    # taxonomy (AppError and subclasses)
# ├── integrity_classifier.py    # raw storage exception -> StorageErrorKind
# ├── mapper.py                  # StorageErrorKind -> DatabaseError, db_error_handler
# ├── sources.py                 # tagged failures raised by external-service clients
# └── normalizer.py              # any exception -> taxonomy member
