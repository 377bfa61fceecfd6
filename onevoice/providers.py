"""External provider collaborators: translation, transcription, speech, voice catalog.

Each provider is a thin request/response client. Calls are made once per
request with no retry or backoff; any upstream failure is raised as
``UpstreamProviderError`` carrying the upstream status and body so the
HTTP layer can surface it as a 502.

All providers share an injectable ``HttpClientProtocol``. The default
adapter wraps ``httpx.AsyncClient``; tests pass an ``AsyncMock``.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from .config import ServiceConfig
from .exceptions import ConfigurationError, UpstreamProviderError

logger = logging.getLogger(__name__)


# =============================================================================
# HTTP client seam
# =============================================================================


@dataclass
class HttpResponse:
    """Simple HTTP response wrapper."""

    status_code: int
    text: str = ""
    content: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    json_body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        return self.json_body


class HttpClientProtocol(Protocol):
    """Protocol for HTTP client (for dependency injection in tests)."""

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        timeout: float,
        json: Any = None,
        data: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> HttpResponse:
        """Send a request."""
        ...

    async def close(self) -> None:
        """Release connections."""
        ...


class HttpxClient:
    """``HttpClientProtocol`` adapter over ``httpx.AsyncClient``."""

    def __init__(self) -> None:
        import httpx

        self._httpx = httpx
        self._client: httpx.AsyncClient | None = None

    async def _ensure_client(self) -> Any:
        if self._client is None:
            self._client = self._httpx.AsyncClient()
        return self._client

    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str],
        timeout: float,
        json: Any = None,
        data: dict[str, Any] | None = None,
        files: dict[str, Any] | None = None,
    ) -> HttpResponse:
        client = await self._ensure_client()
        try:
            response = await client.request(
                method,
                url,
                headers=headers,
                json=json,
                data=data,
                files=files,
                timeout=timeout,
            )
        except self._httpx.HTTPError as e:
            raise UpstreamProviderError(url.split("/")[2], f"Request to {url} failed: {e}") from e

        content_type = response.headers.get("content-type", "")
        json_body = None
        if "application/json" in content_type:
            try:
                json_body = response.json()
            except ValueError:
                json_body = None
        return HttpResponse(
            status_code=response.status_code,
            text="" if content_type.startswith("audio/") else response.text,
            content=response.content,
            headers=dict(response.headers),
            json_body=json_body,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _raise_for_status(provider: str, action: str, response: HttpResponse) -> None:
    if not response.ok:
        raise UpstreamProviderError(
            provider,
            f"{action} failed ({response.status_code})",
            status_code=response.status_code,
            body=response.text,
        )


def audio_extension(content_type: str | None) -> str:
    """Map an audio MIME type to a file extension the transcription API accepts."""
    ct = (content_type or "").lower()
    for needle, ext in (("wav", "wav"), ("mp3", "mp3"), ("mpeg", "mp3"), ("ogg", "ogg"), ("m4a", "m4a")):
        if needle in ct:
            return ext
    return "webm"


# =============================================================================
# OpenAI
# =============================================================================


class _OpenAIClient:
    provider = "openai"

    def __init__(
        self,
        http_client: HttpClientProtocol,
        api_key: str | None,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 30.0,
    ) -> None:
        self._http = http_client
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        if not self._api_key:
            raise ConfigurationError("Missing OPENAI_API_KEY")
        return {"Authorization": f"Bearer {self._api_key}"}


class Translator(_OpenAIClient):
    """Text + target language -> translated text (chat completions)."""

    def __init__(self, *args: Any, model: str = "gpt-4o-mini", **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.model = model

    async def translate(self, text: str, target_lang: str) -> str:
        """
        Translate ``text`` into ``target_lang``.

        Raises:
            ConfigurationError: If no API key is configured
            UpstreamProviderError: If the completion request fails
        """
        system = (
            f"You are a professional live interpreter. Translate into {target_lang} "
            "with natural, conversational phrasing. Do not add comments."
        )
        response = await self._http.request(
            "POST",
            f"{self._base_url}/chat/completions",
            headers=self._headers(),
            timeout=self._timeout,
            json={
                "model": self.model,
                "temperature": 0.2,
                "messages": [
                    {"role": "system", "content": system},
                    {"role": "user", "content": text},
                ],
            },
        )
        _raise_for_status(self.provider, "Translation", response)
        body = response.json() or {}
        choices = body.get("choices") or [{}]
        return str((choices[0].get("message") or {}).get("content") or "").strip()

    async def translate_all(self, text: str, targets: list[str]) -> dict[str, str]:
        """
        Translate into several languages concurrently.

        A failed target maps to an empty string; the others are kept.
        """

        async def one(lang: str) -> tuple[str, str]:
            try:
                return lang, await self.translate(text, lang)
            except UpstreamProviderError as e:
                logger.warning("Translation to %s failed: %s", lang, e)
                return lang, ""

        results = await asyncio.gather(*(one(lang) for lang in targets))
        return dict(results)


class Transcriber(_OpenAIClient):
    """Audio bytes -> text, with a fallback model for format/corruption rejections."""

    def __init__(
        self,
        *args: Any,
        model: str = "gpt-4o-mini-transcribe",
        fallback_model: str | None = "whisper-1",
        **kwargs: Any,
    ) -> None:
        super().__init__(*args, **kwargs)
        self.model = model
        self.fallback_model = fallback_model

    async def _transcribe_with(
        self, model: str, audio: bytes, content_type: str, input_lang: str | None
    ) -> HttpResponse:
        data: dict[str, Any] = {"model": model}
        if input_lang and input_lang.upper() != "AUTO":
            data["language"] = input_lang.split("-")[0]
        filename = f"clip.{audio_extension(content_type)}"
        return await self._http.request(
            "POST",
            f"{self._base_url}/audio/transcriptions",
            headers=self._headers(),
            timeout=self._timeout,
            data=data,
            files={"file": (filename, audio, content_type)},
        )

    async def transcribe(
        self, audio: bytes, content_type: str = "audio/webm", input_lang: str | None = None
    ) -> str:
        """
        Transcribe one audio segment.

        The primary model is tried first; a 400 (typically an unsupported or
        truncated container) triggers one attempt with the fallback model.

        Raises:
            UpstreamProviderError: If transcription fails
        """
        response = await self._transcribe_with(self.model, audio, content_type, input_lang)
        if response.status_code == 400 and self.fallback_model:
            logger.info("Transcription rejected by %s; retrying with %s", self.model, self.fallback_model)
            response = await self._transcribe_with(
                self.fallback_model, audio, content_type, input_lang
            )
        _raise_for_status(self.provider, "Transcription", response)
        body = response.json() or {}
        return str(body.get("text") or "").strip()


class OpenAISpeech(_OpenAIClient):
    """Text -> speech audio via the OpenAI speech endpoint."""

    def __init__(self, *args: Any, model: str = "tts-1", **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.model = model

    async def synthesize(self, text: str, voice: str = "alloy", fmt: str = "mp3") -> bytes:
        response = await self._http.request(
            "POST",
            f"{self._base_url}/audio/speech",
            headers=self._headers(),
            timeout=self._timeout,
            json={"model": self.model, "input": text, "voice": voice, "response_format": fmt},
        )
        _raise_for_status(self.provider, "Speech synthesis", response)
        return response.content


# =============================================================================
# ElevenLabs
# =============================================================================


class ElevenLabsSpeech:
    """Text + voice id -> audio bytes, and the selectable voice catalog."""

    provider = "elevenlabs"

    def __init__(
        self,
        http_client: HttpClientProtocol,
        api_key: str | None,
        base_url: str = "https://api.elevenlabs.io/v1",
        model: str = "eleven_flash_v2_5",
        timeout: float = 30.0,
    ) -> None:
        self._http = http_client
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self.model = model
        self._timeout = timeout

    def _headers(self, **extra: str) -> dict[str, str]:
        if not self._api_key:
            raise ConfigurationError("Missing ELEVENLABS_API_KEY")
        return {"xi-api-key": self._api_key, **extra}

    async def synthesize(self, text: str, voice_id: str) -> bytes:
        response = await self._http.request(
            "POST",
            f"{self._base_url}/text-to-speech/{voice_id}",
            headers=self._headers(Accept="audio/mpeg"),
            timeout=self._timeout,
            json={
                "text": text,
                "model_id": self.model,
                "voice_settings": {"stability": 0.5, "similarity_boost": 0.7},
            },
        )
        _raise_for_status(self.provider, "TTS", response)
        return response.content

    async def list_voices(self) -> list[dict[str, Any]]:
        response = await self._http.request(
            "GET",
            f"{self._base_url}/voices",
            headers=self._headers(),
            timeout=self._timeout,
        )
        _raise_for_status(self.provider, "Voice catalog", response)
        body = response.json() or {}
        return [
            {
                "voice_id": voice.get("voice_id"),
                "name": voice.get("name"),
                "labels": voice.get("labels") or {},
            }
            for voice in body.get("voices") or []
        ]


# =============================================================================
# Suite
# =============================================================================


@dataclass
class Providers:
    """Every provider the service uses, sharing one HTTP client."""

    http_client: HttpClientProtocol
    translator: Translator
    transcriber: Transcriber
    openai_speech: OpenAISpeech
    elevenlabs: ElevenLabsSpeech

    async def close(self) -> None:
        await self.http_client.close()


def build_providers(
    config: ServiceConfig, http_client: HttpClientProtocol | None = None
) -> Providers:
    """Construct providers from configuration."""
    client: HttpClientProtocol = http_client if http_client is not None else HttpxClient()
    openai_kwargs: dict[str, Any] = {
        "api_key": config.openai_api_key,
        "base_url": config.openai_base_url,
        "timeout": config.provider_timeout_sec,
    }
    return Providers(
        http_client=client,
        translator=Translator(client, model=config.translation_model, **openai_kwargs),
        transcriber=Transcriber(
            client,
            model=config.transcription_model,
            fallback_model=config.fallback_transcription_model or None,
            **openai_kwargs,
        ),
        openai_speech=OpenAISpeech(client, model=config.speak_model, **openai_kwargs),
        elevenlabs=ElevenLabsSpeech(
            client,
            api_key=config.elevenlabs_api_key,
            base_url=config.elevenlabs_base_url,
            model=config.elevenlabs_model,
            timeout=config.provider_timeout_sec,
        ),
    )


__all__ = [
    "HttpClientProtocol",
    "HttpResponse",
    "HttpxClient",
    "Translator",
    "Transcriber",
    "OpenAISpeech",
    "ElevenLabsSpeech",
    "Providers",
    "build_providers",
    "audio_extension",
]
