"""Middleware used by the API service."""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request

logger = logging.getLogger(__name__)

EVENT_STREAM = "text/event-stream"


def session_code_of(request: Request) -> str | None:
    """Session code named by the request's ``code`` query parameter, uppercased."""
    code = request.query_params.get("code", "").strip().upper()
    return code or None


async def log_requests(request: Request, call_next):
    """
    Log each request against the session it targets.

    The caller's X-Request-ID is reused (or one is generated) and stored on
    ``request.state`` for the exception handlers. For SSE responses the
    completion line marks the stream as opened; its lifetime is logged by
    the broadcast stream itself.
    """
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    request.state.request_id = request_id
    session = session_code_of(request)
    context = {"request_id": request_id, "session_code": session, "path": request.url.path}

    logger.debug(
        "%s %s session=%s [request_id=%s]",
        request.method,
        request.url.path,
        session or "-",
        request_id,
        extra=context,
    )

    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000
    streaming = response.headers.get("content-type", "").startswith(EVENT_STREAM)

    logger.info(
        "%s %s session=%s -> %d %s(%.1f ms) [request_id=%s]",
        request.method,
        request.url.path,
        session or "-",
        response.status_code,
        "stream opened " if streaming else "",
        elapsed_ms,
        request_id,
        extra={**context, "status_code": response.status_code, "duration_ms": elapsed_ms},
    )

    response.headers["X-Request-ID"] = request_id
    return response


async def add_security_headers(request: Request, call_next):
    """
    Add security headers to all responses.

    Headers added:
    - X-Content-Type-Options: nosniff
    - X-Frame-Options: DENY
    - Referrer-Policy: no-referrer
    """
    response = await call_next(request)

    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "no-referrer"

    return response
