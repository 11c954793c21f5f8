"""
Service-level error taxonomy.

Every failure that leaves the service is one of these classes. Each instance
carries everything the HTTP boundary needs to answer the client:

- message: human-friendly message (safe to show to clients outside development)
- status_code: HTTP-style status
- error_code: stable machine-readable code (derived from the status when omitted)
- category: CLIENT_ERROR / SERVER_ERROR / UNKNOWN, a pure function of status_code
- is_operational: False only for faults that are not a declared taxonomy member
- metadata: small key/value context (entity, identifier, field, ...)
- timestamp / request_id: when and for which request the error was created

Instances are built once and only read afterwards: all attributes are exposed
as read-only properties.
"""

from __future__ import annotations

import traceback
from datetime import datetime, timezone
from typing import Any, Mapping

from customer_platform.core.logging.filters import get_request_id


STATUS_TO_ERROR_CODE: dict[int, str] = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "NOT_FOUND",
    409: "CONFLICT",
    422: "VALIDATION_ERROR",
    429: "TOO_MANY_REQUESTS",
    500: "INTERNAL_SERVER_ERROR",
    502: "BAD_GATEWAY",
    503: "SERVICE_UNAVAILABLE",
    504: "GATEWAY_TIMEOUT",
}

CLIENT_ERROR = "CLIENT_ERROR"
SERVER_ERROR = "SERVER_ERROR"
UNKNOWN_CATEGORY = "UNKNOWN"


def error_code_for_status(status_code: int) -> str:
    return STATUS_TO_ERROR_CODE.get(status_code, "UNKNOWN_ERROR")


def category_for_status(status_code: int) -> str:
    if 400 <= status_code < 500:
        return CLIENT_ERROR
    if 500 <= status_code < 600:
        return SERVER_ERROR
    return UNKNOWN_CATEGORY


class AppError(Exception):
    """
    Base class of the taxonomy.

    Args:
        message: client-facing message.
        status_code: HTTP-style status (default 500).
        error_code: canonical code; generated from `status_code` when None.
        is_operational: False marks programming / unexpected faults.
        metadata: extra context, copied on construction.
        request_id: correlation id; falls back to metadata["request_id"],
            then to the id of the request currently being logged.
    """

    default_status_code: int = 500
    default_error_code: str | None = None

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        *,
        is_operational: bool = True,
        metadata: Mapping[str, Any] | None = None,
        request_id: str | None = None,
    ):
        super().__init__(message)
        status = status_code if status_code is not None else self.default_status_code
        meta = dict(metadata or {})

        self._message = message
        self._status_code = status
        self._error_code = error_code or self.default_error_code or error_code_for_status(status)
        self._is_operational = is_operational
        self._metadata = meta
        self._timestamp = datetime.now(timezone.utc).isoformat()
        self._request_id = request_id or meta.get("request_id") or get_request_id()

    @property
    def message(self) -> str:
        return self._message

    @property
    def status_code(self) -> int:
        return self._status_code

    @property
    def error_code(self) -> str:
        return self._error_code

    @property
    def category(self) -> str:
        return category_for_status(self._status_code)

    @property
    def is_operational(self) -> bool:
        return self._is_operational

    @property
    def metadata(self) -> dict[str, Any]:
        # copy: callers must not be able to mutate a built error
        return dict(self._metadata)

    @property
    def timestamp(self) -> str:
        return self._timestamp

    @property
    def request_id(self) -> str | None:
        return self._request_id

    def __str__(self) -> str:
        return f"{self._message} (code: {self._error_code}; status: {self._status_code})"

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(message={self._message!r}, status_code={self._status_code!r}, "
            f"error_code={self._error_code!r})"
        )

    def to_payload(self, include_stack: bool = False) -> dict[str, Any]:
        """
        Return the JSON-serializable response body for this error.

        Shape:
            {
                "error": {
                    "message": "...",
                    "code": "VALIDATION_ERROR",
                    "statusCode": 422,
                    "category": "CLIENT_ERROR",
                    "timestamp": "2025-01-01T00:00:00+00:00",
                    "requestId": "abc" | None,
                    "metadata": {...},      # only when non-empty
                    "stack": "...",         # only when include_stack=True
                }
            }
        """
        body: dict[str, Any] = {
            "message": self._message,
            "code": self._error_code,
            "statusCode": self._status_code,
            "category": self.category,
            "timestamp": self._timestamp,
            "requestId": self._request_id,
        }
        if self._metadata:
            body["metadata"] = dict(self._metadata)
        if include_stack:
            body["stack"] = "".join(
                traceback.format_exception(type(self), self, self.__traceback__)
            )
        return {"error": body}


class ValidationError(AppError):
    """Input rejected before reaching storage (422)."""

    default_status_code = 422
    default_error_code = "VALIDATION_ERROR"

    @classmethod
    def for_field(cls, field: str, value: Any, constraint: str, **kwargs) -> "ValidationError":
        return cls(
            f"Validation failed for field '{field}': {constraint}",
            metadata={"field": field, "value": value, "constraint": constraint},
            **kwargs,
        )


class NotFoundError(AppError):
    default_status_code = 404
    default_error_code = "RESOURCE_NOT_FOUND"

    @classmethod
    def for_resource(cls, resource: str, identifier: Any, **kwargs) -> "NotFoundError":
        return cls(
            f"{resource} with identifier '{identifier}' not found",
            metadata={"resource": resource, "identifier": identifier},
            **kwargs,
        )


class UnauthorizedError(AppError):
    default_status_code = 401

    def __init__(self, message: str = "Authentication required", **kwargs):
        super().__init__(message, **kwargs)


class ForbiddenError(AppError):
    default_status_code = 403

    @classmethod
    def for_action(cls, action: str, resource: str, **kwargs) -> "ForbiddenError":
        return cls(
            f"Forbidden: Cannot {action} {resource}",
            metadata={"action": action, "resource": resource},
            **kwargs,
        )


class ConflictError(AppError):
    default_status_code = 409
    default_error_code = "RESOURCE_CONFLICT"

    @classmethod
    def for_resource(cls, resource: str, constraint: str, **kwargs) -> "ConflictError":
        return cls(
            f"{resource} conflicts with existing data: {constraint}",
            metadata={"resource": resource, "constraint": constraint},
            **kwargs,
        )


class DatabaseError(AppError):
    """
    Storage failure wrapped with operation context.

    Status and code default to 500 / DATABASE_ERROR; storage conditions with a
    well-known meaning (duplicate key, unreachable database, ...) are remapped
    by `exceptions.mapper.database_error_from`.
    """

    default_status_code = 500
    default_error_code = "DATABASE_ERROR"

    @classmethod
    def for_operation(cls, operation: str, **kwargs) -> "DatabaseError":
        metadata = {"operation": operation, **dict(kwargs.pop("metadata", None) or {})}
        return cls(f"Database error during {operation}", metadata=metadata, **kwargs)


class ExternalServiceError(AppError):
    default_status_code = 502
    default_error_code = "EXTERNAL_SERVICE_ERROR"

    @classmethod
    def for_service(cls, service: str, operation: str, error: BaseException | None = None,
                    **kwargs) -> "ExternalServiceError":
        metadata = {"service": service, "operation": operation}
        if error is not None:
            metadata["original_error"] = type(error).__name__
        metadata.update(kwargs.pop("metadata", None) or {})
        return cls(f"External service error: {service} {operation} failed", metadata=metadata, **kwargs)


class HTTPStatusError(AppError):
    """Error carrying a status received from elsewhere; the code follows the status."""


class UnknownError(AppError):
    """Fault that is not a declared taxonomy member (bug, unexpected exception)."""

    default_status_code = 500
    default_error_code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str = "Internal server error", **kwargs):
        kwargs.setdefault("is_operational", False)
        super().__init__(message, **kwargs)


def is_operational(exc: BaseException) -> bool:
    """True for taxonomy errors created deliberately; False for anything else."""
    return isinstance(exc, AppError) and exc.is_operational


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
    "error_code_for_status",
    "category_for_status",
    "STATUS_TO_ERROR_CODE",
    "CLIENT_ERROR",
    "SERVER_ERROR",
    "UNKNOWN_CATEGORY",
]
