"""Redis-backed session store.

Key layout (all namespaced by a fixed prefix and the session code):

    {prefix}:session:{code}   hash   createdAt, expiresAt, lastActivity, inputLang, active
    {prefix}:events:{code}    list   JSON transcript/translation entries
    {prefix}:audio:{code}     list   JSON base64 audio entries

Every key carries the same absolute expiry (``PEXPIREAT``), so a session
and its logs disappear together even if the operator never ends it. The
log primitive is ``RPUSH``/``LLEN``/``LRANGE``; redis executes each as a
single atomic command, which is all the broadcast path needs.

Writes to an existing session (append, language change, touch) run as a
``WATCH``/``MULTI`` transaction on the session hash. If the session is
ended or replaced between the existence check and the write, the
transaction aborts and is retried against the new state, so a write
never recreates keys for an ended session.
"""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any

from redis import asyncio as aioredis
from redis.exceptions import RedisError, WatchError

from ..exceptions import SessionNotFoundError, StoreUnavailableError
from .base import SessionStore
from .types import DEFAULT_INPUT_LANG, LogEntry, LogKind, SessionMeta, now_ms

logger = logging.getLogger(__name__)

# Optimistic-lock retries before a contended write is reported as a store failure.
MAX_WATCH_RETRIES = 8


class RedisSessionStore(SessionStore):
    """
    ``SessionStore`` on a shared redis instance, reachable from any process.

    Args:
        client: ``redis.asyncio.Redis`` client created with ``decode_responses=True``
        ttl_sec: Absolute session lifetime
        prefix: Key namespace prefix
        clock: Millisecond clock (injectable for tests)
    """

    def __init__(
        self,
        client: Any,
        ttl_sec: int,
        prefix: str = "onevoice",
        clock: Callable[[], int] = now_ms,
    ) -> None:
        super().__init__(ttl_sec, clock)
        self._client = client
        self._prefix = prefix

    @classmethod
    def from_url(
        cls, url: str, ttl_sec: int, prefix: str = "onevoice"
    ) -> RedisSessionStore:
        """Create a store with a new connection pool for ``url``."""
        client = aioredis.from_url(url, encoding="utf-8", decode_responses=True)
        return cls(client, ttl_sec=ttl_sec, prefix=prefix)

    # =========================================================================
    # Keys
    # =========================================================================

    def session_key(self, code: str) -> str:
        return f"{self._prefix}:session:{code}"

    def log_key(self, code: str, kind: LogKind) -> str:
        return f"{self._prefix}:{kind.value}:{code}"

    @asynccontextmanager
    async def _guard(self, operation: str) -> AsyncIterator[None]:
        """Translate redis failures into StoreUnavailableError."""
        try:
            yield
        except RedisError as e:
            logger.warning("Redis %s failed: %s", operation, e)
            raise StoreUnavailableError(f"Store {operation} failed: {e}") from e

    async def _write_live(
        self, operation: str, code: str, queue: Callable[[Any, int], None]
    ) -> bool:
        """
        Apply writes for ``code`` only if its session hash exists.

        Args:
            operation: Name used in log and error messages
            code: Session code
            queue: Called with the MULTI pipeline and the session's absolute
                expiry (ms); queues the write commands

        Returns:
            True if the writes were applied, False if the session is absent.

        Raises:
            StoreUnavailableError: On redis failure or persistent contention.
        """
        key = self.session_key(code)
        async with self._guard(operation):
            async with self._client.pipeline(transaction=True) as pipe:
                for _ in range(MAX_WATCH_RETRIES):
                    try:
                        await pipe.watch(key)
                        expires_at = await pipe.hget(key, "expiresAt")
                        if expires_at is None:
                            return False
                        pipe.multi()
                        queue(pipe, int(expires_at))
                        await pipe.execute()
                        return True
                    except WatchError:
                        logger.debug("Session %s changed during %s; retrying", code, operation)
        raise StoreUnavailableError(f"Store {operation} failed: session {code} is contended")

    # =========================================================================
    # Session metadata
    # =========================================================================

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
        key = self.session_key(code)
        async with self._guard("create_session"):
            async with self._client.pipeline(transaction=True) as pipe:
                # Reset: stale logs from a previous session with this code must not leak.
                pipe.delete(key, *(self.log_key(code, kind) for kind in LogKind))
                pipe.hset(key, mapping=meta.to_hash())
                pipe.pexpireat(key, meta.expires_at)
                await pipe.execute()
        return meta

    async def end_session(self, code: str) -> bool:
        key = self.session_key(code)
        async with self._guard("end_session"):
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.exists(key)
                pipe.delete(key, *(self.log_key(code, kind) for kind in LogKind))
                existed, _ = await pipe.execute()
        return bool(existed)

    async def get_session(self, code: str) -> SessionMeta | None:
        if not code:
            return None
        async with self._guard("get_session"):
            data = await self._client.hgetall(self.session_key(code))
        # A hash missing its timestamps was not written by create_session.
        if "createdAt" not in data or "expiresAt" not in data:
            return None
        meta = SessionMeta.from_hash(code, data)
        if self.now() >= meta.expires_at:
            return None
        return meta

    async def exists(self, code: str) -> bool:
        if not code:
            return False
        async with self._guard("exists"):
            return bool(await self._client.exists(self.session_key(code)))

    async def set_input_lang(self, code: str, lang: str) -> None:
        def queue(pipe: Any, expires_at: int) -> None:
            pipe.hset(
                self.session_key(code),
                mapping={"inputLang": lang or DEFAULT_INPUT_LANG, "lastActivity": str(self.now())},
            )

        if not code or not await self._write_live("set_input_lang", code, queue):
            raise SessionNotFoundError(code)

    async def touch(self, code: str) -> bool:
        if not code:
            return False

        def queue(pipe: Any, expires_at: int) -> None:
            pipe.hset(self.session_key(code), "lastActivity", str(self.now()))

        return await self._write_live("touch", code, queue)

    async def list_codes(self) -> list[str]:
        pattern = self.session_key("*")
        codes: list[str] = []
        async with self._guard("list_codes"):
            async for key in self._client.scan_iter(match=pattern):
                codes.append(str(key).rsplit(":", 1)[-1])
        return codes

    # =========================================================================
    # Logs
    # =========================================================================

    async def append(self, code: str, kind: LogKind, entry: LogEntry) -> bool:
        if not code:
            logger.warning("Append with empty session code dropped (kind=%s)", kind.value)
            return False
        log_key = self.log_key(code, kind)
        payload = json.dumps(entry, ensure_ascii=False)

        def queue(pipe: Any, expires_at: int) -> None:
            pipe.rpush(log_key, payload)
            pipe.pexpireat(log_key, expires_at)
            pipe.hset(self.session_key(code), "lastActivity", str(self.now()))

        if not await self._write_live("append", code, queue):
            logger.warning("Append to absent session %s dropped (kind=%s)", code, kind.value)
            return False
        return True

    async def read_range(
        self, code: str, kind: LogKind, start: int = 0, stop: int | None = None
    ) -> list[LogEntry]:
        start = max(start, 0)
        if stop is not None and stop <= start:
            if not await self.exists(code):
                raise SessionNotFoundError(code)
            return []
        # LRANGE is inclusive on both ends.
        end = -1 if stop is None else stop - 1
        async with self._guard("read_range"):
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.exists(self.session_key(code))
                pipe.lrange(self.log_key(code, kind), start, end)
                existed, raw_entries = await pipe.execute()
        if not existed:
            raise SessionNotFoundError(code)
        return [json.loads(raw) for raw in raw_entries]

    async def length(self, code: str, kind: LogKind) -> int:
        async with self._guard("length"):
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.exists(self.session_key(code))
                pipe.llen(self.log_key(code, kind))
                existed, count = await pipe.execute()
        if not existed:
            raise SessionNotFoundError(code)
        return int(count)

    # =========================================================================
    # Resources
    # =========================================================================

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.warning("Redis ping failed: %s", e)
            return False

    async def close(self) -> None:
        await self._client.aclose()


__all__ = ["RedisSessionStore"]
