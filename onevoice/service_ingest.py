"""Ingest endpoints: text lines, audio chunks, and the speech relay."""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query, Request

from .ingest import IngestGateway
from .relay import SpeechRelay, parse_langs
from .service_deps import get_gateway, get_relay

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ingest", tags=["Ingest"])


@router.post("", summary="Append a line or audio chunk to a session")
async def ingest(
    gateway: Annotated[IngestGateway, Depends(get_gateway)],
    payload: Annotated[dict[str, Any] | None, Body()] = None,
) -> dict[str, Any]:
    """
    Append one entry to a session log.

    Body:
        ``{"code", "text"}`` for the event log, or
        ``{"code", "data", "contentType"}`` (base64 data) for the audio log.

    Returns:
        ``{"ok": true, "kind": "events"|"audio"}``

    Raises:
        400: ``MISSING_FIELDS`` when code or payload is absent
        404: No such session
    """
    body = payload or {}
    code = body.get("code")
    if body.get("data"):
        result = await gateway.ingest_chunk(code, body["data"], body.get("contentType"))
    else:
        result = await gateway.ingest_line(code, body.get("text"))
    return result.to_dict()


@router.post("/audio", summary="Transcribe, translate, and append an audio segment")
async def ingest_audio(
    request: Request,
    relay: Annotated[SpeechRelay, Depends(get_relay)],
    code: Annotated[str | None, Query(description="Session code")] = None,
    input_lang: Annotated[
        str | None,
        Query(alias="inputLang", description="Spoken language tag, e.g. 'en-US' or 'AUTO'"),
    ] = None,
    langs: Annotated[
        str | None,
        Query(description="Comma-separated translation targets", examples=["es,vi"]),
    ] = None,
) -> dict[str, Any]:
    """
    Relay one self-contained audio segment (raw request body).

    Returns:
        ``{"ok": true, "text", "tx"}``, ``{"ok": true, "skipped": "tiny"}``
        for segments below the size floor, or ``{"ok": true, "empty": true}``
        when nothing was recognized.

    Raises:
        400: Missing or malformed code
        404: No such session
        502: Transcription failed (an error line is appended for listeners)
    """
    audio = await request.body()
    result = await relay.relay(
        code,
        audio,
        content_type=request.headers.get("content-type"),
        input_lang=input_lang,
        target_langs=parse_langs(langs),
    )
    return result.to_dict()
