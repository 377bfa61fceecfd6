"""Session store module for OneVoice.

Provides the session metadata record and the two append-only logs (event and
audio) that every broadcast session owns, with bounded lifetime.

Main components:
- SessionStore: abstract interface used by every other component
- MemorySessionStore: single-process backend
- RedisSessionStore: shared backend reachable from any process
- build_store: construct the backend selected by configuration

Example usage:
    >>> from onevoice.store import LogKind, MemorySessionStore, text_entry
    >>> store = MemorySessionStore(ttl_sec=3600)
    >>> await store.create_session("ABCD")
    >>> await store.append("ABCD", LogKind.EVENTS, text_entry("hello"))
    >>> await store.read_range("ABCD", LogKind.EVENTS)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import SessionStore
from .memory import MemorySessionStore
from .types import (
    DEFAULT_INPUT_LANG,
    LogEntry,
    LogKind,
    SessionMeta,
    audio_entry,
    now_ms,
    text_entry,
)

if TYPE_CHECKING:
    from ..config import ServiceConfig


def build_store(config: ServiceConfig) -> SessionStore:
    """Construct the session store backend selected by ``config.store_backend``."""
    if config.store_backend == "redis":
        from .redis_store import RedisSessionStore

        return RedisSessionStore.from_url(
            config.redis_url, ttl_sec=config.session_ttl_sec, prefix=config.key_prefix
        )
    return MemorySessionStore(ttl_sec=config.session_ttl_sec)


__all__ = [
    # Store classes
    "SessionStore",
    "MemorySessionStore",
    "build_store",
    # Types
    "DEFAULT_INPUT_LANG",
    "LogEntry",
    "LogKind",
    "SessionMeta",
    # Helpers
    "audio_entry",
    "now_ms",
    "text_entry",
]
