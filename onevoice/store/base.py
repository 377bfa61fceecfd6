"""Abstract session store interface.

The store exclusively owns every piece of persisted session state: the
metadata record and the two append-only logs. Other components hold no
authoritative copies. Implementations must provide atomic single-log append
and length reads; the broadcast and ingest layers rely on that and add no
locking of their own.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

from ..exceptions import SessionNotFoundError
from .types import DEFAULT_INPUT_LANG, LogEntry, LogKind, SessionMeta, now_ms


class SessionStore(ABC):
    """
    Session metadata plus per-session event and audio logs, with bounded lifetime.

    Args:
        ttl_sec: Absolute lifetime applied to a session and its logs
        clock: Millisecond clock (injectable for tests)
    """

    def __init__(self, ttl_sec: int, clock: Callable[[], int] = now_ms) -> None:
        self.ttl_sec = ttl_sec
        self._clock = clock

    def now(self) -> int:
        return self._clock()

    # =========================================================================
    # Session metadata
    # =========================================================================

    @abstractmethod
    async def create_session(
        self, code: str, input_lang: str = DEFAULT_INPUT_LANG
    ) -> SessionMeta:
        """Initialize metadata and reset both logs for ``code``."""

    @abstractmethod
    async def end_session(self, code: str) -> bool:
        """Delete metadata and both logs. Returns False if nothing existed."""

    @abstractmethod
    async def get_session(self, code: str) -> SessionMeta | None:
        """Return metadata, or None for an absent or expired session."""

    async def exists(self, code: str) -> bool:
        return await self.get_session(code) is not None

    @abstractmethod
    async def set_input_lang(self, code: str, lang: str) -> None:
        """Update the input language. Raises SessionNotFoundError if absent."""

    async def get_input_lang(self, code: str) -> str:
        meta = await self.get_session(code)
        if meta is None:
            raise SessionNotFoundError(code)
        return meta.input_lang or DEFAULT_INPUT_LANG

    @abstractmethod
    async def touch(self, code: str) -> bool:
        """Record activity on a session. Returns False if absent."""

    @abstractmethod
    async def list_codes(self) -> list[str]:
        """Codes of all live sessions."""

    # =========================================================================
    # Logs
    # =========================================================================

    @abstractmethod
    async def append(self, code: str, kind: LogKind, entry: LogEntry) -> bool:
        """
        Append ``entry`` to the ``kind`` log of ``code``.

        Returns:
            False when ``code`` is empty or the session does not exist; the
            entry is not written and no session is created.
        """

    @abstractmethod
    async def read_range(
        self, code: str, kind: LogKind, start: int = 0, stop: int | None = None
    ) -> list[LogEntry]:
        """
        Entries ``[start, stop)`` in append order (``stop=None`` reads to the end).

        Raises:
            SessionNotFoundError: If the session does not exist.
        """

    @abstractmethod
    async def length(self, code: str, kind: LogKind) -> int:
        """
        Current entry count of a log.

        Raises:
            SessionNotFoundError: If the session does not exist.
        """

    # =========================================================================
    # Resources
    # =========================================================================

    async def ping(self) -> bool:
        """Return True if the backend is reachable."""
        return True

    async def close(self) -> None:
        """Release backend resources."""


__all__ = ["SessionStore"]
