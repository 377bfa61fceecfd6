"""In-process session store.

Keeps sessions in a lock-guarded dict and evaluates expiry lazily on access.
Suitable for development, single-process deployments, and tests; use the
redis backend when several processes must share sessions.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from threading import Lock

from ..exceptions import SessionNotFoundError
from .base import SessionStore
from .types import DEFAULT_INPUT_LANG, LogEntry, LogKind, SessionMeta, now_ms

logger = logging.getLogger(__name__)


@dataclass
class _SessionRecord:
    meta: SessionMeta
    logs: dict[LogKind, list[LogEntry]] = field(
        default_factory=lambda: {kind: [] for kind in LogKind}
    )


class MemorySessionStore(SessionStore):
    """Single-process ``SessionStore`` with the same semantics as the redis backend."""

    def __init__(self, ttl_sec: int, clock: Callable[[], int] = now_ms) -> None:
        super().__init__(ttl_sec, clock)
        self._records: dict[str, _SessionRecord] = {}
        self._lock = Lock()

    def _live(self, code: str) -> _SessionRecord | None:
        """Return the record for ``code`` if present and unexpired. Caller holds the lock."""
        record = self._records.get(code)
        if record is None:
            return None
        if self.now() >= record.meta.expires_at:
            del self._records[code]
            logger.info("Session expired: %s", code)
            return None
        return record

    async def create_session(
        self, code: str, input_lang: str = DEFAULT_INPUT_LANG
    ) -> SessionMeta:
        now = self.now()
        meta = SessionMeta(
            code=code,
            created_at=now,
            expires_at=now + self.ttl_sec * 1000,
            last_activity=now,
            input_lang=input_lang or DEFAULT_INPUT_LANG,
        )
        with self._lock:
            self._records[code] = _SessionRecord(meta=meta)
        return copy.copy(meta)

    async def end_session(self, code: str) -> bool:
        with self._lock:
            return self._records.pop(code, None) is not None

    async def get_session(self, code: str) -> SessionMeta | None:
        if not code:
            return None
        with self._lock:
            record = self._live(code)
            return copy.copy(record.meta) if record else None

    async def set_input_lang(self, code: str, lang: str) -> None:
        with self._lock:
            record = self._live(code)
            if record is None:
                raise SessionNotFoundError(code)
            record.meta.input_lang = lang or DEFAULT_INPUT_LANG
            record.meta.last_activity = self.now()

    async def touch(self, code: str) -> bool:
        with self._lock:
            record = self._live(code)
            if record is None:
                return False
            record.meta.last_activity = self.now()
            return True

    async def list_codes(self) -> list[str]:
        with self._lock:
            return [code for code in list(self._records) if self._live(code) is not None]

    async def append(self, code: str, kind: LogKind, entry: LogEntry) -> bool:
        if not code:
            logger.warning("Append with empty session code dropped (kind=%s)", kind.value)
            return False
        with self._lock:
            record = self._live(code)
            if record is None:
                logger.warning("Append to absent session %s dropped (kind=%s)", code, kind.value)
                return False
            record.logs[kind].append(dict(entry))
            record.meta.last_activity = self.now()
            return True

    async def read_range(
        self, code: str, kind: LogKind, start: int = 0, stop: int | None = None
    ) -> list[LogEntry]:
        with self._lock:
            record = self._live(code)
            if record is None:
                raise SessionNotFoundError(code)
            return [dict(entry) for entry in record.logs[kind][max(start, 0) : stop]]

    async def length(self, code: str, kind: LogKind) -> int:
        with self._lock:
            record = self._live(code)
            if record is None:
                raise SessionNotFoundError(code)
            return len(record.logs[kind])


__all__ = ["MemorySessionStore"]
