"""
Boundary error normalizer.

`ErrorNormalizer.normalize()` turns any exception into exactly one member of the
taxonomy in `exceptions.base`. Sources are recognized by type, checked in this
order (first match wins):

  1. AppError                           -> returned unchanged
  2. storage (SQLAlchemyError)          -> storage code table (mapper.STORAGE_KIND_TO_STATUS)
  3. ExternalServiceFailure             -> service code table (sources.EXTERNAL_CODE_TO_STATUS)
  4. validation (pydantic / FastAPI request validation / "validation" in message) -> 422
  5. transport (refused connection, HTTP status carriers) -> 503 or carried status
  6. anything else                      -> 500 UnknownError, non-operational

Outside development, messages taken from the raw exception are redacted and
unknown errors get a generic message.
"""
import logging
from typing import Any

import httpx
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from customer_platform.utils.redaction import sanitize_message

from .base import (
    AppError,
    ExternalServiceError,
    HTTPStatusError,
    UnknownError,
    ValidationError,
)
from .mapper import database_error_from
from .sources import EXTERNAL_CODE_TO_STATUS, ExternalServiceFailure

logger = logging.getLogger(__name__)

# request-location prefixes FastAPI puts in front of the field path
_LOCATION_PREFIXES = {"body", "query", "path", "header", "cookie"}


def _first_validation_issue(errors: list[dict[str, Any]]) -> tuple[str, Any, str]:
    """(field, value, constraint) of the first pydantic error entry."""
    if not errors:
        return "unknown", None, "Invalid input"

    first = errors[0]
    loc = [str(part) for part in first.get("loc", ())]
    if len(loc) > 1 and loc[0] in _LOCATION_PREFIXES:
        loc = loc[1:]
    field = ".".join(loc) or "unknown"
    return field, first.get("input"), first.get("msg", "Invalid input")


class ErrorNormalizer:
    """
    Classify exceptions into taxonomy errors.

    Args:
        development: when True, raw messages are kept as-is (no redaction, no
            generic replacement for unknown errors).
    """

    def __init__(self, development: bool = False):
        self.development = development

    def _safe(self, message: str) -> str:
        return message if self.development else sanitize_message(message)

    def normalize(self, exc: BaseException, request_id: str | None = None) -> AppError:
        if isinstance(exc, AppError):
            return exc

        if isinstance(exc, SQLAlchemyError):
            return self._from_storage(exc, request_id)

        if isinstance(exc, ExternalServiceFailure):
            return self._from_external_service(exc, request_id)

        if isinstance(exc, (PydanticValidationError, RequestValidationError)):
            return self._from_validation(exc, request_id)

        if "validation" in str(exc).lower():
            return ValidationError.for_field(
                "unknown", None, self._safe(str(exc)), request_id=request_id
            )

        if isinstance(exc, (ConnectionRefusedError, httpx.ConnectError)):
            logger.warning("normalizer.service_unavailable", extra={"exc_type": type(exc).__name__})
            return HTTPStatusError(
                "External service unavailable",
                status_code=503,
                error_code="SERVICE_UNAVAILABLE",
                request_id=request_id,
            )

        if isinstance(exc, StarletteHTTPException):
            return HTTPStatusError(
                self._safe(str(exc.detail)),
                status_code=exc.status_code,
                request_id=request_id,
            )

        if isinstance(exc, httpx.HTTPStatusError):
            return HTTPStatusError(
                self._safe(str(exc)),
                status_code=exc.response.status_code,
                request_id=request_id,
            )

        return self._unknown(exc, request_id)

    __call__ = normalize

    def _from_storage(self, exc: SQLAlchemyError, request_id: str | None) -> AppError:
        error = database_error_from(exc, "database operation", request_id=request_id)
        safe_message = self._safe(error.message)
        if safe_message == error.message:
            return error
        return type(error)(
            safe_message,
            status_code=error.status_code,
            error_code=error.error_code,
            metadata=error.metadata,
            request_id=error.request_id,
        )

    def _from_external_service(self, exc: ExternalServiceFailure, request_id: str | None) -> AppError:
        metadata = {"service": exc.service, "service_code": exc.code}
        mapped = EXTERNAL_CODE_TO_STATUS.get(exc.code or "")

        if mapped is None:
            logger.warning("normalizer.unmapped_external_code", extra=metadata)
            return ExternalServiceError.for_service(
                exc.service,
                exc.operation or "unknown operation",
                exc,
                metadata={"service_code": exc.code},
                request_id=request_id,
            )

        status_code, error_code = mapped
        return ExternalServiceError(
            self._safe(exc.message or f"{exc.service} request failed"),
            status_code=status_code,
            error_code=error_code,
            metadata=metadata,
            request_id=request_id,
        )

    def _from_validation(self, exc: PydanticValidationError | RequestValidationError,
                         request_id: str | None) -> AppError:
        field, value, constraint = _first_validation_issue(list(exc.errors()))
        return ValidationError.for_field(field, value, constraint, request_id=request_id)

    def _unknown(self, exc: BaseException, request_id: str | None) -> AppError:
        logger.error(
            "normalizer.unknown_error",
            extra={"exc_type": type(exc).__name__},
            exc_info=exc,
        )
        message = str(exc) if self.development and str(exc) else "Internal server error"
        return UnknownError(
            message,
            metadata={"original_error": type(exc).__name__},
            request_id=request_id,
        )


def normalize_error(exc: BaseException, request_id: str | None = None, *,
                    development: bool = False) -> AppError:
    """Functional shortcut for `ErrorNormalizer(development).normalize(exc, request_id)`."""
    return ErrorNormalizer(development=development).normalize(exc, request_id)
