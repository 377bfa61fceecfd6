"""Custom exception classes for the OneVoice broadcast core."""

from __future__ import annotations

from typing import Any

# Error codes surfaced to clients in response bodies and stream events.
INVALID_INPUT = "INVALID_INPUT"
MISSING_FIELDS = "MISSING_FIELDS"
INVALID_CODE = "INVALID_CODE"
SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
SESSION_CONFLICT = "SESSION_CONFLICT"
STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
UPSTREAM_PROVIDER_FAILURE = "UPSTREAM_PROVIDER_FAILURE"


class OneVoiceError(Exception):
    """Base error for this library."""

    code: str = "ONEVOICE_ERROR"


class InvalidInputError(OneVoiceError):
    """Raised when a code or payload is missing or malformed.

    Attributes:
        reason: Finer-grained error code (e.g. ``MISSING_FIELDS``)
    """

    code = INVALID_INPUT

    def __init__(self, message: str, reason: str = INVALID_INPUT) -> None:
        self.reason = reason
        super().__init__(message)


class SessionNotFoundError(OneVoiceError):
    """Raised when an operation targets an absent or expired session."""

    code = SESSION_NOT_FOUND

    def __init__(self, session_code: str) -> None:
        self.session_code = session_code
        super().__init__(f"No such session: {session_code!r}")


class SessionConflictError(OneVoiceError):
    """Raised when a requested code already denotes a live session."""

    code = SESSION_CONFLICT

    def __init__(self, session_code: str) -> None:
        self.session_code = session_code
        super().__init__(f"Session {session_code!r} is already active")


class StoreUnavailableError(OneVoiceError):
    """Raised when the backing store cannot be reached or fails."""

    code = STORE_UNAVAILABLE


class UpstreamProviderError(OneVoiceError):
    """Raised when a translation, speech or voice-catalog call fails.

    Attributes:
        provider: Provider name (e.g. ``"openai"``)
        status_code: Upstream HTTP status, if a response was received
        body: Upstream response text, truncated
    """

    code = UPSTREAM_PROVIDER_FAILURE

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
        body: str = "",
    ) -> None:
        self.provider = provider
        self.status_code = status_code
        self.body = body[:500]
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider,
            "upstream_status": self.status_code,
            "upstream_body": self.body,
        }


class ConfigurationError(OneVoiceError):
    """Raised when configuration is invalid."""


__all__ = [
    "OneVoiceError",
    "InvalidInputError",
    "SessionNotFoundError",
    "SessionConflictError",
    "StoreUnavailableError",
    "UpstreamProviderError",
    "ConfigurationError",
    "INVALID_INPUT",
    "MISSING_FIELDS",
    "INVALID_CODE",
    "SESSION_NOT_FOUND",
    "SESSION_CONFLICT",
    "STORE_UNAVAILABLE",
    "UPSTREAM_PROVIDER_FAILURE",
]
