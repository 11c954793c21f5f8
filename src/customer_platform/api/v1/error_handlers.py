"""
FastAPI exception handlers: every failure leaving the service goes through the
`ErrorNormalizer` and is answered with the taxonomy payload.

Register them from the app factory:

    from customer_platform.api.v1.error_handlers import register_exception_handlers

    app = FastAPI()
    register_exception_handlers(app)

Response body (see `AppError.to_payload`):

    {"error": {"message": "...", "code": "UNIQUE_CONSTRAINT_VIOLATION",
               "statusCode": 409, "category": "CLIENT_ERROR",
               "timestamp": "...", "requestId": "...", "metadata": {...}}}
"""
import logging

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from customer_platform.core.logging.filters import get_request_id
from customer_platform.core.logging.middleware import REQUEST_ID_HEADER
from customer_platform.exceptions import AppError, ErrorNormalizer

logger = logging.getLogger(__name__)


def _normalizer(request: Request) -> ErrorNormalizer:
    normalizer = getattr(request.app.state, "normalizer", None)
    return normalizer if normalizer is not None else ErrorNormalizer()


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None) or get_request_id()


def error_response(request: Request, exc: Exception) -> JSONResponse:
    """Normalize `exc`, log it once and build the JSON response."""
    normalizer = _normalizer(request)
    request_id = _request_id(request)
    error = normalizer.normalize(exc, request_id)

    log_extra = {
        "method": request.method,
        "path": request.url.path,
        "status_code": error.status_code,
        "error_code": error.error_code,
    }
    if error.status_code >= 500:
        logger.error("http.server_error: %s", error.message, extra=log_extra)
    else:
        # client-level conditions are expected traffic
        logger.info("http.client_error: %s", error.message, extra=log_extra)

    payload = error.to_payload(include_stack=normalizer.development)
    headers = {REQUEST_ID_HEADER: error.request_id} if error.request_id else None
    return JSONResponse(status_code=error.status_code, content=jsonable_encoder(payload), headers=headers)


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return error_response(request, exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Router-level errors (unknown path, wrong method) in the same payload shape."""
    return error_response(request, exc)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return error_response(request, exc)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Last resort: 500 UnknownError.

    Starlette runs this from its outermost middleware and re-raises the
    exception afterwards, so test clients must be built with
    `raise_server_exceptions=False` to observe the response.
    """
    return error_response(request, exc)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
