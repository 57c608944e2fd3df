"""
Collaborator interfaces (Protocols).

The lifecycle manager depends on these rather than on the concrete
LiteLLM / Tesseract adapters, which are wired at construction time
(constructor injection) with a default fallback.
"""

from typing import Protocol, runtime_checkable

from ..models.value_objects import VerificationVerdict


@runtime_checkable
class ProofVerifier(Protocol):
    """Judges whether an image plus OCR text proves a commitment.

    Implementations fall back to an invalid, low-confidence verdict when the
    upstream answer is unparseable, and raise UpstreamVerificationFailure
    when the upstream call itself fails.
    """

    async def verify(
        self, commitment_text: str, extracted_text: str, image_url: str
    ) -> VerificationVerdict: ...


@runtime_checkable
class TextExtractor(Protocol):
    """OCR over a proof image. Returns "" instead of raising."""

    async def extract_text(self, image_url: str) -> str: ...
