"""
User-facing error message sanitization.

Maps domain errors and generic exception types to short, safe messages
that never expose internal details (SQL, file paths, API keys, stack
traces) to the person on the other side of the chat.

Usage:
    from commitbot.core.error_messages import sanitize_error

    try:
        ...
    except Exception as e:
        logger.error(f"Operation failed: {e}", exc_info=True)
        reply(sanitize_error(e, context="verifying your proof"))
"""

import logging
import re
from typing import Optional

from ..domain.errors import (
    CommitmentNotFound,
    InvalidInput,
    PersistenceFailure,
    UpstreamVerificationFailure,
)
from .defaults_loader import get_message

logger = logging.getLogger(__name__)

_DEFAULT_MESSAGE = "Something went wrong. Please try again later."

# Maps generic exception types to user-friendly messages.
# Order matters: more specific types first.
_TYPE_MAP: dict[type, str] = {
    ConnectionError: "Could not connect to the service. Please try again in a moment.",
    TimeoutError: "The request took too long to complete. Please try again.",
    ValueError: "The request could not be processed. Please try again.",
}

# Patterns matched against str(e) for keyword-based detection.
_KEYWORD_PATTERNS: list[tuple[re.Pattern, str]] = [
    (
        re.compile(r"rate.?limit", re.IGNORECASE),
        "Too many requests. Please wait a moment and try again.",
    ),
    (
        re.compile(r"database|sqlite|operational.?error|locked", re.IGNORECASE),
        "A temporary data issue occurred. Please try again in a moment.",
    ),
    (
        re.compile(r"timeout|timed?\s*out", re.IGNORECASE),
        "The request took too long to complete. Please try again.",
    ),
]


def sanitize_error(
    exc: Optional[BaseException],
    *,
    context: Optional[str] = None,
) -> str:
    """Return a user-safe error message for *exc*.

    Args:
        exc: The caught exception (or None).
        context: Optional description of the failed operation
            (e.g. ``"creating your commitment"``); when given the message
            reads ``"Sorry, there was an error <context>. <reason>"``.

    Returns:
        A sanitized, user-friendly error description.
    """
    message = _DEFAULT_MESSAGE if exc is None else _resolve_message(exc)

    if context:
        return f"Sorry, there was an error {context}. {message}"
    return message


def _resolve_message(exc: BaseException) -> str:
    """Pick the best user-facing message for *exc*."""
    # 1. Domain errors carry their own safe wording
    if isinstance(exc, InvalidInput):
        if exc.invalid_tokens:
            return get_message(
                "invalid_days", "Invalid days: {tokens}."
            ).format(tokens=", ".join(exc.invalid_tokens))
        return get_message("invalid_input", "{detail}").format(detail=str(exc))
    if isinstance(exc, CommitmentNotFound):
        return get_message("not_found", "Commitment not found.")
    if isinstance(exc, PersistenceFailure):
        return get_message("storage_error", _DEFAULT_MESSAGE)
    if isinstance(exc, UpstreamVerificationFailure):
        return get_message("verification_unavailable", _DEFAULT_MESSAGE)

    # 2. Generic type hierarchy
    for exc_type, msg in _TYPE_MAP.items():
        if isinstance(exc, exc_type):
            return msg

    # 3. Keyword patterns in the stringified exception
    raw = str(exc)
    for pattern, msg in _KEYWORD_PATTERNS:
        if pattern.search(raw):
            return msg

    return get_message("default_error", _DEFAULT_MESSAGE)
