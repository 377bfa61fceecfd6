"""Configuration for the OneVoice service.

Settings are plain dataclass fields with defaults suitable for local
development. ``ServiceConfig.from_env`` overlays environment variables so
deployments can be configured without code changes:

    export ONEVOICE_STORE=redis
    export ONEVOICE_REDIS_URL=redis://localhost:6379/0
    export ONEVOICE_SESSION_TTL_SEC=14400
    export OPENAI_API_KEY=sk-...
"""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from typing import Any, Literal

StoreBackend = Literal["memory", "redis"]

DEFAULT_SESSION_TTL_SEC = 4 * 60 * 60
DEFAULT_POLL_INTERVAL_SEC = 0.3
DEFAULT_CODE_LENGTH = 4
DEFAULT_MAX_CODE_ATTEMPTS = 10
DEFAULT_MIN_CHUNK_BYTES = 3500


def _mask_secret(value: str | None) -> str:
    if not value:
        return "None"
    if len(value) > 6:
        return f"'{value[:3]}...'"
    return "'***'"


@dataclass
class ServiceConfig:
    """
    Runtime configuration for the broadcast service.

    Attributes:
        store_backend: Session store implementation ("memory" or "redis")
        redis_url: Connection URL for the redis backend
        key_prefix: Namespace prefix for every persisted key
        session_ttl_sec: Absolute lifetime of a session and its logs
        idle_timeout_sec: End sessions idle for this long (0 disables)
        cleanup_interval_sec: Interval between idle-reaper runs
        poll_interval_sec: Broadcast stream poll/ping interval
        code_length: Length of generated session codes
        max_code_attempts: Attempts to find an unused code before accepting a collision
        min_chunk_bytes: Audio bodies smaller than this are skipped by the speech relay
        openai_api_key: Key for translation, transcription and speech
        elevenlabs_api_key: Key for TTS and the voice catalog
        provider_timeout_sec: Timeout for each upstream provider call
    """

    store_backend: StoreBackend = "memory"
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "onevoice"
    session_ttl_sec: int = DEFAULT_SESSION_TTL_SEC
    idle_timeout_sec: float = 0.0
    cleanup_interval_sec: float = 60.0
    poll_interval_sec: float = DEFAULT_POLL_INTERVAL_SEC
    code_length: int = DEFAULT_CODE_LENGTH
    max_code_attempts: int = DEFAULT_MAX_CODE_ATTEMPTS
    min_chunk_bytes: int = DEFAULT_MIN_CHUNK_BYTES
    openai_api_key: str | None = None
    openai_base_url: str = "https://api.openai.com/v1"
    translation_model: str = "gpt-4o-mini"
    transcription_model: str = "gpt-4o-mini-transcribe"
    fallback_transcription_model: str = "whisper-1"
    speak_model: str = "tts-1"
    elevenlabs_api_key: str | None = None
    elevenlabs_base_url: str = "https://api.elevenlabs.io/v1"
    elevenlabs_model: str = "eleven_flash_v2_5"
    provider_timeout_sec: float = 30.0

    def __post_init__(self) -> None:
        if self.store_backend not in ("memory", "redis"):
            raise ValueError(
                f"store_backend must be 'memory' or 'redis', got {self.store_backend!r}"
            )
        if self.session_ttl_sec <= 0:
            raise ValueError(f"session_ttl_sec must be > 0, got {self.session_ttl_sec}")
        if self.idle_timeout_sec < 0:
            raise ValueError(f"idle_timeout_sec must be >= 0, got {self.idle_timeout_sec}")
        if self.cleanup_interval_sec <= 0:
            raise ValueError(
                f"cleanup_interval_sec must be > 0, got {self.cleanup_interval_sec}"
            )
        if self.poll_interval_sec <= 0:
            raise ValueError(f"poll_interval_sec must be > 0, got {self.poll_interval_sec}")
        if self.code_length < 3:
            raise ValueError(f"code_length must be >= 3, got {self.code_length}")
        if self.max_code_attempts < 1:
            raise ValueError(f"max_code_attempts must be >= 1, got {self.max_code_attempts}")
        if self.min_chunk_bytes < 0:
            raise ValueError(f"min_chunk_bytes must be >= 0, got {self.min_chunk_bytes}")
        if not self.key_prefix:
            raise ValueError("key_prefix must not be empty")

    def __repr__(self) -> str:
        """Secure repr that masks API keys."""
        parts = []
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name.endswith("_api_key"):
                parts.append(f"{f.name}={_mask_secret(value)}")
            else:
                parts.append(f"{f.name}={value!r}")
        return f"ServiceConfig({', '.join(parts)})"

    @classmethod
    def from_env(cls, prefix: str = "ONEVOICE_") -> ServiceConfig:
        """
        Load configuration from environment variables.

        Every field maps to ``{prefix}{FIELD_NAME_UPPER}`` (for example
        ``ONEVOICE_POLL_INTERVAL_SEC``). ``ONEVOICE_STORE`` is accepted as a
        shorthand for ``ONEVOICE_STORE_BACKEND``. Provider keys also fall back
        to the unprefixed ``OPENAI_API_KEY`` and ``ELEVENLABS_API_KEY``.

        Args:
            prefix: Environment variable prefix (default: "ONEVOICE_")

        Returns:
            ServiceConfig instance with values from environment.

        Raises:
            ValueError: If environment variables contain invalid values.
        """
        config_dict: dict[str, Any] = {}

        if backend := os.getenv(f"{prefix}STORE"):
            config_dict["store_backend"] = backend.strip().lower()

        for f in fields(cls):
            raw = os.getenv(f"{prefix}{f.name.upper()}")
            if raw is None or raw == "":
                continue
            config_dict[f.name] = _coerce(f.name, f.type, raw, prefix)

        for name, fallback in (
            ("openai_api_key", "OPENAI_API_KEY"),
            ("elevenlabs_api_key", "ELEVENLABS_API_KEY"),
        ):
            if name not in config_dict and (value := os.getenv(fallback)):
                config_dict[name] = value

        return cls(**config_dict)


def _coerce(name: str, annotation: Any, raw: str, prefix: str) -> Any:
    """Convert an environment string to the field's declared type."""
    type_name = str(annotation)
    env_name = f"{prefix}{name.upper()}"
    if type_name == "int":
        try:
            return int(raw)
        except ValueError as e:
            raise ValueError(f"Invalid {env_name}: {raw!r} is not an integer") from e
    if type_name == "float":
        try:
            return float(raw)
        except ValueError as e:
            raise ValueError(f"Invalid {env_name}: {raw!r} is not a number") from e
    if name == "store_backend":
        return raw.strip().lower()
    return raw


__all__ = [
    "ServiceConfig",
    "StoreBackend",
    "DEFAULT_SESSION_TTL_SEC",
    "DEFAULT_POLL_INTERVAL_SEC",
    "DEFAULT_CODE_LENGTH",
    "DEFAULT_MAX_CODE_ATTEMPTS",
    "DEFAULT_MIN_CHUNK_BYTES",
]
