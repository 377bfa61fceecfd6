"""Server-Sent Events endpoint delivering a session log to one listener."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from .broadcast import BroadcastStream
from .codes import normalize_code
from .config import ServiceConfig
from .exceptions import InvalidInputError, SessionNotFoundError
from .service_deps import get_config, get_store
from .service_settings import SSE_HEADERS
from .store import LogKind, SessionStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Streaming"])


@router.get(
    "/stream",
    summary="Listen to a session",
    description=(
        "Server-Sent Events stream of a session log. Existing entries are "
        "replayed first, then new entries and keep-alive pings follow every "
        "poll interval until the session ends."
    ),
    response_class=StreamingResponse,
    responses={
        200: {
            "description": "SSE stream of line/ping/error/end events",
            "content": {"text/event-stream": {}},
        },
        400: {"description": "Missing or malformed code"},
        404: {"description": "No such session"},
    },
)
async def stream_session(
    request: Request,
    config: Annotated[ServiceConfig, Depends(get_config)],
    store: Annotated[SessionStore, Depends(get_store)],
    code: Annotated[str | None, Query(description="Session code")] = None,
    kind: Annotated[
        str,
        Query(description="Which log to deliver", examples=["events", "audio"]),
    ] = LogKind.EVENTS.value,
) -> StreamingResponse:
    """
    Open a broadcast stream.

    SSE Event Format:
        event: line
        data: {"t": 1700000000000, "text": "Hello", "src": "en", "tx": {"es": "Hola"}}

        event: ping
        data: {"t": 1700000000300}

        event: error
        data: {"t": ..., "code": "STORE_UNAVAILABLE", "message": "..."}

        event: end
        data: {"t": ...}

    Raises:
        400: Missing/malformed code or unknown kind
        404: No such session
    """
    session_code = normalize_code(code, config.code_length)
    try:
        log_kind = LogKind(kind)
    except ValueError as e:
        raise InvalidInputError(f"Unknown stream kind {kind!r}") from e

    if not await store.exists(session_code):
        raise SessionNotFoundError(session_code)

    stream = BroadcastStream(
        store,
        session_code,
        kind=log_kind,
        poll_interval=config.poll_interval_sec,
        is_disconnected=request.is_disconnected,
    )
    logger.info("Listener attached: session=%s kind=%s", session_code, log_kind.value)

    return StreamingResponse(
        stream.sse(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
