"""Provider passthrough endpoints: translation, speech synthesis, voice catalog."""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends
from fastapi.responses import Response

from .exceptions import MISSING_FIELDS, InvalidInputError
from .providers import Providers
from .service_deps import get_providers
from .service_settings import AUDIO_MEDIA_TYPE

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Providers"])

JsonBody = Annotated[dict[str, Any] | None, Body()]


def _require(body: dict[str, Any], *names: str) -> list[str]:
    values = [str(body.get(name) or "").strip() for name in names]
    missing = [name for name, value in zip(names, values, strict=True) if not value]
    if missing:
        raise InvalidInputError(f"Missing {', '.join(missing)}", reason=MISSING_FIELDS)
    return values


@router.post("/translate", summary="Translate text")
async def translate(
    providers: Annotated[Providers, Depends(get_providers)],
    payload: JsonBody = None,
) -> dict[str, Any]:
    """Translate ``{text, targetLang}``. Returns ``{ok, text}``."""
    text, target_lang = _require(payload or {}, "text", "targetLang")
    translated = await providers.translator.translate(text, target_lang)
    return {"ok": True, "text": translated}


@router.post(
    "/tts",
    summary="Synthesize speech (ElevenLabs)",
    response_class=Response,
    responses={200: {"content": {AUDIO_MEDIA_TYPE: {}}}},
)
async def tts(
    providers: Annotated[Providers, Depends(get_providers)],
    payload: JsonBody = None,
) -> Response:
    """Synthesize ``{text, voiceId}`` with the configured low-latency model."""
    text, voice_id = _require(payload or {}, "text", "voiceId")
    audio = await providers.elevenlabs.synthesize(text, voice_id)
    return Response(content=audio, media_type=AUDIO_MEDIA_TYPE)


@router.post(
    "/speak",
    summary="Synthesize speech (OpenAI)",
    response_class=Response,
    responses={200: {"content": {AUDIO_MEDIA_TYPE: {}}}},
)
async def speak(
    providers: Annotated[Providers, Depends(get_providers)],
    payload: JsonBody = None,
) -> Response:
    """Synthesize ``{text, voice="alloy", format="mp3"}``."""
    body = payload or {}
    (text,) = _require(body, "text")
    audio = await providers.openai_speech.synthesize(
        text,
        voice=body.get("voice") or "alloy",
        fmt=body.get("format") or "mp3",
    )
    return Response(content=audio, media_type=AUDIO_MEDIA_TYPE)


@router.get("/voices", summary="List selectable voices")
async def voices(
    providers: Annotated[Providers, Depends(get_providers)],
) -> dict[str, Any]:
    return {"voices": await providers.elevenlabs.list_voices()}
