"""Translate ledger errors into HTTP responses."""

import logging
import math

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from calorie_ledger.errors import (
    BadStateError,
    ConflictError,
    LedgerError,
    NotFoundError,
    RateLimitedError,
    ValidationError,
)

_logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[LedgerError], int, str], ...] = (
    (ValidationError, status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR"),
    (NotFoundError, status.HTTP_404_NOT_FOUND, "NOT_FOUND"),
    (BadStateError, status.HTTP_400_BAD_REQUEST, "BAD_STATE"),
    (ConflictError, status.HTTP_409_CONFLICT, "CONFLICT"),
    (RateLimitedError, status.HTTP_429_TOO_MANY_REQUESTS, "RATE_LIMIT_EXCEEDED"),
)


def register_error_handlers(app: FastAPI) -> None:
    """Install handlers for ledger errors and anything unexpected."""
    app.add_exception_handler(RequestValidationError, _handle_request_validation)
    app.add_exception_handler(LedgerError, _handle_ledger_error)
    app.add_exception_handler(Exception, _handle_unexpected_error)


async def _handle_ledger_error(request: Request, exc: Exception) -> JSONResponse:
    for error_type, status_code, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return _error_response(exc, status_code, code)
    return await _handle_unexpected_error(request, exc)


async def _handle_request_validation(
    request: Request, exc: Exception
) -> JSONResponse:
    details: dict[str, str] = {}
    errors = exc.errors() if isinstance(exc, RequestValidationError) else []
    for error in errors:
        # First element names the source: body, query, path or header.
        location = ".".join(str(part) for part in error["loc"][1:])
        details.setdefault(location or "body", str(error["msg"]))
    return _error_response(
        ValidationError(details), status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR"
    )


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    _logger.error(
        "Unexpected error in %s %s", request.method, _route_path(request), exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "INTERNAL_SERVER_ERROR",
            "message": "An unexpected error occurred",
        },
    )


def _error_response(exc: LedgerError, status_code: int, code: str) -> JSONResponse:
    content: dict[str, object] = {"error": code, "message": exc.message}
    headers: dict[str, str] = {}
    if isinstance(exc, ValidationError):
        content["details"] = exc.field_errors
    if isinstance(exc, RateLimitedError):
        content["retry_after"] = exc.retry_after_ms
        headers["Retry-After"] = str(max(1, math.ceil(exc.retry_after_ms / 1000)))
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", request.url.path)
