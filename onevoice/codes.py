"""Human-typable session codes.

Codes are short, uppercase, and drawn from an alphabet without visually
ambiguous characters (no ``0/O`` or ``1/I``), so they can be read aloud or
copied from a projector screen.
"""

from __future__ import annotations

import secrets
from random import Random

from .config import DEFAULT_CODE_LENGTH
from .exceptions import INVALID_CODE, MISSING_FIELDS, InvalidInputError

CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_code(length: int = DEFAULT_CODE_LENGTH, rng: Random | None = None) -> str:
    """
    Generate a random session code.

    Args:
        length: Number of characters
        rng: Optional random source (for deterministic tests). Defaults to
            the ``secrets`` module.

    Returns:
        Code string of ``length`` characters from ``CODE_ALPHABET``.
    """
    if rng is None:
        return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))
    return "".join(rng.choice(CODE_ALPHABET) for _ in range(length))


def normalize_code(raw: str | None, length: int = DEFAULT_CODE_LENGTH) -> str:
    """
    Normalize a client-supplied code (strip and uppercase) and validate it.

    Raises:
        InvalidInputError: If the code is empty (``MISSING_FIELDS``) or is
            not a ``length``-character string from the alphabet (``INVALID_CODE``).
    """
    if raw is not None and not isinstance(raw, str):
        raise InvalidInputError(
            f"Invalid session code {raw!r}: expected a string", reason=INVALID_CODE
        )
    code = (raw or "").strip().upper()
    if not code:
        raise InvalidInputError("Missing session code", reason=MISSING_FIELDS)
    if len(code) != length or any(ch not in CODE_ALPHABET for ch in code):
        raise InvalidInputError(
            f"Invalid session code {code!r}: expected {length} characters from {CODE_ALPHABET}",
            reason=INVALID_CODE,
        )
    return code


def is_valid_code(raw: str | None, length: int = DEFAULT_CODE_LENGTH) -> bool:
    """Return True if ``raw`` normalizes to a well-formed code."""
    try:
        normalize_code(raw, length)
    except InvalidInputError:
        return False
    return True


__all__ = ["CODE_ALPHABET", "generate_code", "normalize_code", "is_valid_code"]
