"""
Typed domain errors for the commitment core.

Callers catch these to distinguish bad input from missing commitments,
broken time windows, verifier outages and storage failures, and map each
to an appropriate user-facing message (see core.error_messages).
"""

from datetime import datetime
from typing import Iterable, Optional


class DomainError(Exception):
    """Base class for all domain-specific errors."""


class InvalidInput(DomainError):
    """Caller supplied something the core cannot accept (e.g. weekday tokens)."""

    def __init__(self, message: str, invalid_tokens: Optional[Iterable[str]] = None) -> None:
        self.invalid_tokens = list(invalid_tokens or [])
        super().__init__(message)


class CommitmentNotFound(DomainError):
    """Commitment does not exist or is not owned by the requesting user."""

    def __init__(self, commitment_id: int, user_id: Optional[str] = None) -> None:
        self.commitment_id = commitment_id
        self.user_id = user_id
        super().__init__(f"Commitment {commitment_id} not found")


class InvalidRange(DomainError):
    """A computed time window is empty or inverted."""

    def __init__(self, start: Optional[datetime], end: Optional[datetime]) -> None:
        self.start = start
        self.end = end
        super().__init__(f"Invalid date range: start={start} end={end}")


class UpstreamVerificationFailure(DomainError):
    """The proof verification service errored or timed out."""


class PersistenceFailure(DomainError):
    """A storage read or write failed; no partial write should be assumed."""
