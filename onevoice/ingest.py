"""Ingest gateway: validates producer submissions and appends them to a session log.

The gateway has no knowledge of listeners. Delivery happens when broadcast
streams next poll the store, so an ingest call handled by one process
reaches listeners attached to any other process sharing the store.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from typing import Any

from .codes import normalize_code
from .exceptions import MISSING_FIELDS, InvalidInputError, SessionNotFoundError
from .store import LogKind, SessionStore, audio_entry, text_entry

logger = logging.getLogger(__name__)

DEFAULT_AUDIO_CONTENT_TYPE = "audio/webm"


@dataclass
class IngestResult:
    """Outcome of a successful ingest call."""

    kind: LogKind
    ok: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"ok": self.ok, "kind": self.kind.value}


class IngestGateway:
    """
    Accepts lines and audio chunks for a session code.

    Args:
        store: Session store shared with the rest of the service
        code_length: Expected session code length
    """

    def __init__(self, store: SessionStore, code_length: int = 4) -> None:
        self._store = store
        self._code_length = code_length

    def _validate_code(self, code: str | None) -> str:
        return normalize_code(code, self._code_length)

    async def _append(self, code: str, kind: LogKind, entry: dict[str, Any]) -> IngestResult:
        if not await self._store.append(code, kind, entry):
            raise SessionNotFoundError(code)
        logger.debug("Ingested %s entry for session %s", kind.value, code)
        return IngestResult(kind=kind)

    async def ingest_line(self, code: str | None, text: str | None, **extra: Any) -> IngestResult:
        """
        Append a transcript/translation line to the session's event log.

        Args:
            code: Session code
            text: Line text (must be non-blank)
            **extra: Additional entry fields (e.g. ``src``, ``tx``)

        Raises:
            InvalidInputError: Missing/malformed code or empty text
            SessionNotFoundError: The session does not exist
        """
        if text is not None and not isinstance(text, str):
            raise InvalidInputError("Line text must be a string")
        if not text or not text.strip():
            raise InvalidInputError("Missing text payload", reason=MISSING_FIELDS)
        normalized = self._validate_code(code)
        return await self._append(normalized, LogKind.EVENTS, text_entry(text, **extra))

    async def ingest_chunk(
        self,
        code: str | None,
        data: bytes | str | None,
        content_type: str | None = None,
    ) -> IngestResult:
        """
        Append an audio chunk to the session's audio log.

        Args:
            code: Session code
            data: Raw bytes, or a base64 string
            content_type: MIME type of the chunk (defaults to audio/webm)

        Raises:
            InvalidInputError: Missing/malformed code, empty or undecodable data
            SessionNotFoundError: The session does not exist
        """
        if data is not None and not isinstance(data, (bytes, str)):
            raise InvalidInputError("Audio payload must be bytes or a base64 string")
        if content_type is not None and not isinstance(content_type, str):
            raise InvalidInputError("Audio content type must be a string")
        if not data:
            raise InvalidInputError("Missing audio payload", reason=MISSING_FIELDS)
        normalized = self._validate_code(code)
        if isinstance(data, bytes):
            encoded = base64.b64encode(data).decode("ascii")
        else:
            try:
                base64.b64decode(data, validate=True)
            except (binascii.Error, ValueError) as e:
                raise InvalidInputError(f"Audio payload is not valid base64: {e}") from e
            encoded = data
        entry = audio_entry(encoded, content_type or DEFAULT_AUDIO_CONTENT_TYPE)
        return await self._append(normalized, LogKind.AUDIO, entry)

    async def ingest(
        self,
        code: str | None,
        payload: str | bytes | None,
        content_type: str | None = None,
    ) -> IngestResult:
        """
        Route a payload to the right log.

        Text (``str`` without a content type) goes to the event log; bytes, or
        a base64 string with a content type, go to the audio log.
        """
        if isinstance(payload, bytes) or (payload and content_type):
            return await self.ingest_chunk(code, payload, content_type)
        return await self.ingest_line(code, payload)


__all__ = ["IngestGateway", "IngestResult", "DEFAULT_AUDIO_CONTENT_TYPE"]
