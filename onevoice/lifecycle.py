"""Session lifecycle: code issuance, teardown, language changes, and idle expiry.

Absolute expiry is enforced by the store's TTL. Idle expiry is enforced
here by a background cleanup task that ends sessions whose last activity is
older than the configured idle timeout.

Ending a session only tears down store state. Listener streams are never
killed directly; each observes the session's absence on its next poll and
delivers the terminal ``end`` event itself.
"""

from __future__ import annotations

import asyncio
import logging
from random import Random
from typing import Any

from .codes import generate_code, normalize_code
from .config import ServiceConfig
from .exceptions import InvalidInputError, SessionConflictError, SessionNotFoundError
from .store import DEFAULT_INPUT_LANG, SessionMeta, SessionStore

logger = logging.getLogger(__name__)


def _language_tag(lang: str | None) -> str:
    if lang is not None and not isinstance(lang, str):
        raise InvalidInputError(f"Invalid input language {lang!r}: expected a string")
    return (lang or "").strip() or DEFAULT_INPUT_LANG


class SessionController:
    """
    Creates and ends sessions on a shared store.

    Args:
        store: Session store (constructed once per process and passed in)
        config: Service configuration (code length, retry cap, idle timeout)
        rng: Optional random source for code generation (tests)
    """

    def __init__(
        self,
        store: SessionStore,
        config: ServiceConfig | None = None,
        rng: Random | None = None,
    ) -> None:
        self._store = store
        self._config = config or ServiceConfig()
        self._rng = rng
        self._cleanup_task: asyncio.Task[None] | None = None
        self._shutdown_event: asyncio.Event | None = None

    @property
    def store(self) -> SessionStore:
        return self._store

    # =========================================================================
    # Session operations
    # =========================================================================

    async def _issue_code(self) -> str:
        """
        Generate a code not used by a live session.

        Tries up to ``max_code_attempts`` candidates. When every candidate
        collides, the last one is accepted and the prior session with that
        code is superseded (its logs are reset by ``create_session``). With
        a 32-character alphabet and 4-character codes this requires ~1M
        concurrent sessions to become likely.
        """
        candidate = ""
        for attempt in range(1, self._config.max_code_attempts + 1):
            candidate = generate_code(self._config.code_length, self._rng)
            if not await self._store.exists(candidate):
                return candidate
            logger.debug("Generated code %s collides (attempt %d)", candidate, attempt)
        logger.warning(
            "No unused code after %d attempts; superseding session %s",
            self._config.max_code_attempts,
            candidate,
        )
        return candidate

    async def start(
        self,
        code: str | None = None,
        input_lang: str | None = None,
        replace: bool = False,
    ) -> SessionMeta:
        """
        Create a session and return its metadata.

        Args:
            code: Requested code (normalized to uppercase). Generated if omitted.
            input_lang: Input language tag; defaults to "AUTO".
            replace: Allow a requested code to supersede a live session.

        Raises:
            InvalidInputError: If ``code`` is malformed.
            SessionConflictError: If ``code`` is live and ``replace`` is False.
            StoreUnavailableError: If the store fails.
        """
        language = _language_tag(input_lang)
        if code:
            session_code = normalize_code(code, self._config.code_length)
            if await self._store.exists(session_code):
                if not replace:
                    raise SessionConflictError(session_code)
                logger.info("Replacing live session %s on request", session_code)
        else:
            session_code = await self._issue_code()

        meta = await self._store.create_session(session_code, language)
        logger.info("Session started: %s (inputLang=%s)", session_code, meta.input_lang)
        return meta

    async def stop(self, code: str) -> None:
        """
        End a session. Listeners receive ``end`` on their next poll.

        Raises:
            InvalidInputError: If ``code`` is missing or malformed.
            SessionNotFoundError: If no such session exists.
        """
        session_code = normalize_code(code, self._config.code_length)
        if not await self._store.end_session(session_code):
            raise SessionNotFoundError(session_code)
        logger.info("Session ended: %s", session_code)

    async def get(self, code: str) -> SessionMeta:
        """Return session metadata or raise SessionNotFoundError."""
        session_code = normalize_code(code, self._config.code_length)
        meta = await self._store.get_session(session_code)
        if meta is None:
            raise SessionNotFoundError(session_code)
        return meta

    async def change_language(self, code: str, lang: str | None) -> str:
        """Update the input language mid-session. Returns the stored tag."""
        session_code = normalize_code(code, self._config.code_length)
        value = _language_tag(lang)
        await self._store.set_input_lang(session_code, value)
        logger.info("Session %s input language -> %s", session_code, value)
        return value

    async def get_language(self, code: str) -> str:
        session_code = normalize_code(code, self._config.code_length)
        return await self._store.get_input_lang(session_code)

    # =========================================================================
    # Idle expiry
    # =========================================================================

    async def reap_idle_sessions(self, now_ms: int | None = None) -> int:
        """
        End sessions idle for longer than ``idle_timeout_sec``.

        Returns:
            Number of sessions ended (0 when idle expiry is disabled).
        """
        timeout_sec = self._config.idle_timeout_sec
        if timeout_sec <= 0:
            return 0

        now = now_ms if now_ms is not None else self._store.now()
        cutoff = now - int(timeout_sec * 1000)
        count = 0
        for code in await self._store.list_codes():
            meta = await self._store.get_session(code)
            if meta is None or meta.last_activity > cutoff:
                continue
            if await self._store.end_session(code):
                count += 1
                logger.info("Ended idle session %s (idle %.0fs)", code, (now - meta.last_activity) / 1000)

        if count > 0:
            logger.info("Idle cleanup completed: %d sessions ended", count)
        return count

    async def start_cleanup_task(self) -> asyncio.Task[None]:
        """
        Start the background idle-reaper task.

        Returns:
            The cleanup task (stop it with ``stop_cleanup_task``)
        """
        if self._cleanup_task is not None and not self._cleanup_task.done():
            logger.warning("Cleanup task already running")
            return self._cleanup_task

        self._shutdown_event = asyncio.Event()
        shutdown_event = self._shutdown_event
        interval = self._config.cleanup_interval_sec

        async def cleanup_loop() -> None:
            logger.info("Starting idle cleanup task (interval=%ss)", interval)
            while not shutdown_event.is_set():
                try:
                    await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
                    break
                except TimeoutError:
                    try:
                        await self.reap_idle_sessions()
                    except Exception as e:
                        logger.error("Error in idle cleanup task: %s", e)
            logger.info("Idle cleanup task stopped")

        self._cleanup_task = asyncio.create_task(cleanup_loop())
        return self._cleanup_task

    async def stop_cleanup_task(self) -> None:
        """Signal the cleanup task to stop and wait for it."""
        if self._shutdown_event is not None:
            self._shutdown_event.set()

        if self._cleanup_task is not None:
            try:
                await asyncio.wait_for(self._cleanup_task, timeout=5.0)
            except TimeoutError:
                self._cleanup_task.cancel()
                try:
                    await self._cleanup_task
                except asyncio.CancelledError:
                    pass
            self._cleanup_task = None

    def get_stats(self) -> dict[str, Any]:
        return {
            "idle_timeout_sec": self._config.idle_timeout_sec,
            "cleanup_interval_sec": self._config.cleanup_interval_sec,
            "cleanup_task_running": self._cleanup_task is not None
            and not self._cleanup_task.done(),
        }


__all__ = ["SessionController"]
