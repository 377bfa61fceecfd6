"""Type definitions for the session store.

This module defines:
- LogKind: the two append-only logs every session owns
- SessionMeta: session metadata snapshot
- Entry helpers producing the wire shape of log entries
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

DEFAULT_INPUT_LANG = "AUTO"

# A log entry is a JSON-serializable mapping: {"t": ms, "text": ...} or
# {"t": ms, "data": base64, "contentType": ...}.
LogEntry = dict[str, Any]


class LogKind(str, Enum):
    """Per-session append-only logs."""

    EVENTS = "events"
    AUDIO = "audio"


def now_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


@dataclass
class SessionMeta:
    """
    Snapshot of a session's metadata record.

    Attributes:
        code: Session code
        created_at: Creation time (ms since epoch)
        expires_at: Absolute expiry time (ms since epoch)
        last_activity: Last append or language change (ms since epoch)
        input_lang: Operator's input language tag ("AUTO" if unset)
        active: Active flag
    """

    code: str
    created_at: int
    expires_at: int
    last_activity: int
    input_lang: str = DEFAULT_INPUT_LANG
    active: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON shape used by the HTTP API."""
        return {
            "code": self.code,
            "createdAt": self.created_at,
            "expiresAt": self.expires_at,
            "lastActivity": self.last_activity,
            "inputLang": self.input_lang,
            "active": self.active,
        }

    def to_hash(self) -> dict[str, str]:
        """Flatten to string fields for hash-based backends."""
        return {
            "createdAt": str(self.created_at),
            "expiresAt": str(self.expires_at),
            "lastActivity": str(self.last_activity),
            "inputLang": self.input_lang,
            "active": "1" if self.active else "0",
        }

    @classmethod
    def from_hash(cls, code: str, data: Mapping[str, Any]) -> SessionMeta:
        """Rebuild from a hash written by ``to_hash``."""
        created_at = int(data.get("createdAt", 0))
        return cls(
            code=code,
            created_at=created_at,
            expires_at=int(data.get("expiresAt", 0)),
            last_activity=int(data.get("lastActivity", created_at)),
            input_lang=str(data.get("inputLang") or DEFAULT_INPUT_LANG),
            active=str(data.get("active", "1")) == "1",
        )


def text_entry(text: str, t: int | None = None, **extra: Any) -> LogEntry:
    """Build an event-log entry for a transcript/translation line."""
    entry: LogEntry = {"t": now_ms() if t is None else t, "text": text}
    entry.update(extra)
    return entry


def audio_entry(data: str, content_type: str, t: int | None = None) -> LogEntry:
    """Build an audio-log entry from base64 data."""
    return {"t": now_ms() if t is None else t, "data": data, "contentType": content_type}


__all__ = [
    "DEFAULT_INPUT_LANG",
    "LogEntry",
    "LogKind",
    "SessionMeta",
    "now_ms",
    "text_entry",
    "audio_entry",
]
