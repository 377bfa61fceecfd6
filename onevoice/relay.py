"""Speech relay: operator audio segment -> transcript + translations -> one event line.

The relay sits in front of the ingest gateway. It never talks to listeners;
the resulting line reaches them through the session's event log like any
other ingested line.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from .codes import normalize_code
from .config import DEFAULT_MIN_CHUNK_BYTES
from .exceptions import SessionNotFoundError, UpstreamProviderError
from .ingest import DEFAULT_AUDIO_CONTENT_TYPE, IngestGateway
from .providers import Transcriber, Translator
from .store import DEFAULT_INPUT_LANG, SessionStore

logger = logging.getLogger(__name__)

DEFAULT_TARGET_LANGS = ("es",)


def parse_langs(raw: str | None) -> list[str]:
    """Split a comma-separated target list, dropping blanks and duplicates."""
    if not raw:
        return list(DEFAULT_TARGET_LANGS)
    langs: list[str] = []
    for part in raw.split(","):
        lang = part.strip()
        if lang and lang not in langs:
            langs.append(lang)
    return langs or list(DEFAULT_TARGET_LANGS)


@dataclass
class RelayResult:
    """Outcome of relaying one audio segment."""

    skipped: str | None = None
    empty: bool = False
    text: str = ""
    translations: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"ok": True}
        if self.skipped:
            body["skipped"] = self.skipped
        elif self.empty:
            body["empty"] = True
        else:
            body["text"] = self.text
            body["tx"] = self.translations
        return body


class SpeechRelay:
    """
    Transcribes an audio segment, translates it, and appends the line.

    Args:
        store: Session store
        gateway: Ingest gateway used for the final append
        transcriber: Speech-to-text provider
        translator: Translation provider
        min_chunk_bytes: Segments smaller than this are skipped unprocessed
        code_length: Expected session code length
    """

    def __init__(
        self,
        store: SessionStore,
        gateway: IngestGateway,
        transcriber: Transcriber,
        translator: Translator,
        min_chunk_bytes: int = DEFAULT_MIN_CHUNK_BYTES,
        code_length: int = 4,
    ) -> None:
        self._store = store
        self._gateway = gateway
        self._transcriber = transcriber
        self._translator = translator
        self.min_chunk_bytes = min_chunk_bytes
        self._code_length = code_length

    async def relay(
        self,
        code: str | None,
        audio: bytes,
        content_type: str | None = None,
        input_lang: str | None = None,
        target_langs: list[str] | None = None,
    ) -> RelayResult:
        """
        Relay one segment.

        Args:
            code: Session code
            audio: Raw audio bytes (one self-contained segment)
            content_type: MIME type of ``audio``
            input_lang: Spoken language tag; the session's setting when omitted
            target_langs: Translation targets

        Raises:
            InvalidInputError: Missing or malformed code
            SessionNotFoundError: The session does not exist
            UpstreamProviderError: Transcription failed (an error line is appended first)
        """
        session_code = normalize_code(code or "", self._code_length)
        meta = await self._store.get_session(session_code)
        if meta is None:
            raise SessionNotFoundError(session_code)

        if len(audio) < self.min_chunk_bytes:
            logger.debug("Skipping %d-byte segment for session %s", len(audio), session_code)
            return RelayResult(skipped="tiny")

        lang = input_lang or meta.input_lang or DEFAULT_INPUT_LANG
        targets = target_langs or list(DEFAULT_TARGET_LANGS)

        try:
            text = await self._transcriber.transcribe(
                audio, content_type or DEFAULT_AUDIO_CONTENT_TYPE, lang
            )
        except UpstreamProviderError as e:
            logger.warning("Transcription failed for session %s: %s", session_code, e)
            await self._gateway.ingest_line(
                session_code,
                f"[transcribe error {e.status_code or 'network'}]",
                src=lang,
                tx={target: "" for target in targets},
                error=True,
            )
            raise

        if not text:
            return RelayResult(empty=True)

        translations = await self._translator.translate_all(text, targets)
        await self._gateway.ingest_line(session_code, text, src=lang, tx=translations)
        logger.info(
            "Relayed segment for session %s (%d chars, %d targets)",
            session_code,
            len(text),
            len(targets),
        )
        return RelayResult(text=text, translations=translations)


__all__ = ["SpeechRelay", "RelayResult", "parse_langs", "DEFAULT_TARGET_LANGS"]
