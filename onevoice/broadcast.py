"""Broadcast stream: turns a session log into a live, replayable event sequence.

Each listener connection owns one ``BroadcastStream``. The stream first
replays the whole log from cursor 0, then polls the store at a fixed
interval and delivers the delta ``log[cursor:length]``. There is no
in-process pub/sub: the store is the only shared state, so an entry
appended by any process reaches every listener on its next poll.

Protocol per connection:
    1. Missing code -> InvalidInputError before any event is produced
    2. Replay every existing entry as a ``line`` event
    3. Every ``poll_interval``: deliver new entries, then a ``ping``
    4. Store failure -> ``error`` event, polling continues
    5. Session gone (ended, expired, or superseded) -> ``end`` event, stop
    6. Disconnect / close() -> stop before the next store call
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .config import DEFAULT_POLL_INTERVAL_SEC
from .events import StreamEvent, end_event, error_event, line_event, ping_event
from .exceptions import (
    MISSING_FIELDS,
    STORE_UNAVAILABLE,
    InvalidInputError,
    SessionNotFoundError,
    StoreUnavailableError,
)
from .store import LogEntry, LogKind, SessionStore

logger = logging.getLogger(__name__)


@dataclass
class StreamStats:
    """Per-connection delivery counters."""

    cycles: int = 0
    lines_delivered: int = 0
    pings: int = 0
    errors: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "cycles": self.cycles,
            "lines_delivered": self.lines_delivered,
            "pings": self.pings,
            "errors": self.errors,
        }


class BroadcastStream:
    """
    Live, ordered delivery of one session log to one listener.

    Args:
        store: Shared session store
        code: Session code (already normalized)
        kind: Which log to deliver (events by default)
        poll_interval: Seconds between poll cycles
        is_disconnected: Optional async predicate reporting listener disconnect

    Raises:
        InvalidInputError: If ``code`` is empty.
    """

    def __init__(
        self,
        store: SessionStore,
        code: str,
        kind: LogKind = LogKind.EVENTS,
        poll_interval: float = DEFAULT_POLL_INTERVAL_SEC,
        is_disconnected: Callable[[], Awaitable[bool]] | None = None,
    ) -> None:
        if not code:
            raise InvalidInputError("Missing session code", reason=MISSING_FIELDS)
        self._store = store
        self.code = code
        self.kind = kind
        self.poll_interval = poll_interval
        self._is_disconnected = is_disconnected
        self._cursor = 0
        self._session_created_at: int | None = None
        self._closed = asyncio.Event()
        self.stats = StreamStats()

    @property
    def cursor(self) -> int:
        """Number of entries delivered so far."""
        return self._cursor

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def close(self) -> None:
        """Stop the poll loop. No store call is made after this returns."""
        self._closed.set()

    async def _should_stop(self) -> bool:
        if self._closed.is_set():
            return True
        if self._is_disconnected is not None and await self._is_disconnected():
            logger.debug("Listener disconnected from session %s", self.code)
            self.close()
            return True
        return False

    async def _wait_interval(self) -> None:
        """Sleep one poll interval, waking early if the stream is closed."""
        try:
            await asyncio.wait_for(self._closed.wait(), timeout=self.poll_interval)
        except TimeoutError:
            pass

    async def _same_session(self) -> bool:
        """True while the code still names the session this stream attached to."""
        meta = await self._store.get_session(self.code)
        if meta is None:
            return False
        if self._session_created_at is None:
            self._session_created_at = meta.created_at
        elif meta.created_at != self._session_created_at:
            logger.info("Session %s was superseded; ending stream", self.code)
            return False
        return True

    async def read_new(self) -> list[LogEntry] | None:
        """
        Read entries appended since the cursor and advance it.

        The session identity is checked before and after the read. A batch
        read across a supersede is dropped, so one stream never mixes the
        entries of two sessions that shared a code.

        Returns:
            The new entries (possibly empty), or None if the session no
            longer exists or was replaced by a new session with the same code.

        Raises:
            StoreUnavailableError: If the store fails.
        """
        if not await self._same_session():
            return None

        try:
            length = await self._store.length(self.code, self.kind)
            if length <= self._cursor:
                return []
            entries = await self._store.read_range(self.code, self.kind, self._cursor, length)
        except SessionNotFoundError:
            return None

        if not await self._same_session():
            return None
        self._cursor += len(entries)
        return entries

    async def _cycle(self) -> AsyncIterator[StreamEvent]:
        """One poll: new lines (or an error), or the terminal end event."""
        self.stats.cycles += 1
        try:
            entries = await self.read_new()
        except StoreUnavailableError as e:
            self.stats.errors += 1
            logger.warning("Store read failed for session %s: %s", self.code, e)
            yield error_event(STORE_UNAVAILABLE, str(e))
            return

        if entries is None:
            self.close()
            yield end_event()
            return

        for entry in entries:
            self.stats.lines_delivered += 1
            yield line_event(entry)

    async def events(self) -> AsyncIterator[StreamEvent]:
        """
        Yield events until the session ends or the listener goes away.

        The first cycle is the full replay (cursor 0); it is not followed by
        a ping. Every later cycle ends with a ``ping``.
        """
        logger.info("Broadcast stream opened: session=%s kind=%s", self.code, self.kind.value)
        try:
            async for event in self._cycle():
                yield event
            if self.closed:
                return

            while not await self._should_stop():
                await self._wait_interval()
                if await self._should_stop():
                    return
                async for event in self._cycle():
                    yield event
                if self.closed:
                    return
                self.stats.pings += 1
                yield ping_event()
        finally:
            self.close()
            logger.info(
                "Broadcast stream closed: session=%s cursor=%d stats=%s",
                self.code,
                self._cursor,
                self.stats.to_dict(),
            )

    async def sse(self) -> AsyncIterator[str]:
        """``events()`` rendered as SSE frames."""
        async for event in self.events():
            yield event.to_sse()


__all__ = ["BroadcastStream", "StreamStats"]
