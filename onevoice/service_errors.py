"""Error response helpers and exception handler registration."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .exceptions import (
    ConfigurationError,
    InvalidInputError,
    OneVoiceError,
    SessionConflictError,
    SessionNotFoundError,
    StoreUnavailableError,
    UpstreamProviderError,
)
from .service_settings import HTTP_422_UNPROCESSABLE

logger = logging.getLogger(__name__)

# Library error -> HTTP status.
_STATUS_BY_ERROR: tuple[tuple[type[OneVoiceError], int], ...] = (
    (InvalidInputError, status.HTTP_400_BAD_REQUEST),
    (SessionNotFoundError, status.HTTP_404_NOT_FOUND),
    (SessionConflictError, status.HTTP_409_CONFLICT),
    (StoreUnavailableError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (UpstreamProviderError, status.HTTP_502_BAD_GATEWAY),
    (ConfigurationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


def create_error_response(
    status_code: int,
    error_code: str,
    message: str,
    request_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """
    Create a standardized error response.

    Body shape: ``{"ok": false, "error": <CODE>, "detail": <message>}`` plus
    ``request_id`` and ``details`` when available.

    Args:
        status_code: HTTP status code
        error_code: Machine-readable error code (e.g., "MISSING_FIELDS")
        message: Human-readable error message
        request_id: Optional request ID for tracing
        details: Optional additional error details

    Returns:
        JSONResponse with structured error format
    """
    error_data: dict[str, Any] = {
        "ok": False,
        "error": error_code,
        "detail": message,
    }

    if request_id:
        error_data["request_id"] = request_id

    if details:
        error_data["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=error_data,
    )


def status_for_error(exc: OneVoiceError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def onevoice_exception_handler(request: Request, exc: OneVoiceError) -> JSONResponse:
    """
    Handle library errors raised by endpoint logic.

    Invalid input reports its finer-grained reason (e.g. ``MISSING_FIELDS``)
    as the error code; upstream failures carry the provider's status and body.
    """
    request_id = getattr(request.state, "request_id", None)
    status_code = status_for_error(exc)
    error_code = exc.reason if isinstance(exc, InvalidInputError) else exc.code
    details = exc.to_dict() if isinstance(exc, UpstreamProviderError) else None

    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Request failed: %s %s -> %d [request_id=%s] - %s",
        request.method,
        request.url.path,
        status_code,
        request_id,
        exc,
        extra={
            "request_id": request_id,
            "status_code": status_code,
            "error_code": error_code,
        },
    )

    return create_error_response(
        status_code=status_code,
        error_code=error_code,
        message=str(exc),
        request_id=request_id,
        details=details,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Handle request validation errors (422).

    FastAPI raises RequestValidationError when request data fails Pydantic validation
    (e.g., a non-JSON body or a type mismatch).
    """
    request_id = getattr(request.state, "request_id", None)

    errors = exc.errors()
    logger.warning(
        "Validation error: %s %s [request_id=%s] - %d validation errors",
        request.method,
        request.url.path,
        request_id,
        len(errors),
        extra={
            "request_id": request_id,
            "validation_errors": errors,
        },
    )

    formatted_errors = [
        {
            "loc": list(err.get("loc", [])),
            "msg": err.get("msg", "Validation error"),
            "type": err.get("type", "unknown"),
        }
        for err in errors
    ]

    return create_error_response(
        status_code=HTTP_422_UNPROCESSABLE,
        error_code="VALIDATION_ERROR",
        message="Request validation failed",
        request_id=request_id,
        details={"validation_errors": formatted_errors},
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle HTTPException (4xx/5xx errors raised by routing or endpoint logic)."""
    request_id = getattr(request.state, "request_id", None)

    logger.warning(
        "HTTP exception: %s %s -> %d [request_id=%s] - %s",
        request.method,
        request.url.path,
        exc.status_code,
        request_id,
        exc.detail,
        extra={
            "request_id": request_id,
            "status_code": exc.status_code,
            "detail": exc.detail,
        },
    )

    error_code_map = {
        400: "BAD_REQUEST",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        500: "INTERNAL_ERROR",
        503: "SERVICE_UNAVAILABLE",
    }
    error_code = error_code_map.get(exc.status_code, "HTTP_ERROR")

    return create_error_response(
        status_code=exc.status_code,
        error_code=error_code,
        message=str(exc.detail),
        request_id=request_id,
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle all unhandled exceptions (500 Internal Server Error).

    Logs the full traceback and returns a generic error so internal details
    never reach the client.
    """
    request_id = getattr(request.state, "request_id", None)

    logger.exception(
        "Unhandled exception: %s %s [request_id=%s]",
        request.method,
        request.url.path,
        request_id,
        extra={
            "request_id": request_id,
            "exception_type": type(exc).__name__,
        },
        exc_info=exc,
    )

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code="INTERNAL_ERROR",
        message="An unexpected internal error occurred",
        request_id=request_id,
        details={
            "hint": "Check server logs for details",
        },
    )


def register_exception_handlers(app) -> None:
    """Register API exception handlers on the FastAPI app."""
    app.add_exception_handler(OneVoiceError, onevoice_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
