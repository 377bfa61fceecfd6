"""
OneVoice live session broadcast core.

Public API:
    - SessionController: start/stop sessions, change input language, idle expiry
    - IngestGateway: append lines and audio chunks to a session
    - BroadcastStream: replay-then-poll delivery of a session log to one listener
    - SpeechRelay: transcribe, translate, and append an audio segment

Storage:
    - SessionStore: abstract store interface
    - MemorySessionStore: single-process backend
    - RedisSessionStore: shared backend (onevoice.store.redis_store)

Configuration:
    - ServiceConfig: runtime settings, loadable from ONEVOICE_* environment variables

The HTTP service lives in ``onevoice.service`` (``create_app``).
"""

__version__ = "0.3.0"

from .broadcast import BroadcastStream, StreamStats
from .codes import CODE_ALPHABET, generate_code, normalize_code
from .config import ServiceConfig
from .events import EventType, StreamEvent
from .exceptions import (
    ConfigurationError,
    InvalidInputError,
    OneVoiceError,
    SessionConflictError,
    SessionNotFoundError,
    StoreUnavailableError,
    UpstreamProviderError,
)
from .ingest import IngestGateway, IngestResult
from .lifecycle import SessionController
from .relay import RelayResult, SpeechRelay
from .store import LogKind, MemorySessionStore, SessionMeta, SessionStore, build_store

__all__ = [
    "__version__",
    # Core
    "BroadcastStream",
    "StreamStats",
    "IngestGateway",
    "IngestResult",
    "SessionController",
    "SpeechRelay",
    "RelayResult",
    # Codes
    "CODE_ALPHABET",
    "generate_code",
    "normalize_code",
    # Events
    "EventType",
    "StreamEvent",
    # Storage
    "LogKind",
    "MemorySessionStore",
    "SessionMeta",
    "SessionStore",
    "build_store",
    # Configuration
    "ServiceConfig",
    # Errors
    "OneVoiceError",
    "InvalidInputError",
    "SessionNotFoundError",
    "SessionConflictError",
    "StoreUnavailableError",
    "UpstreamProviderError",
    "ConfigurationError",
]
