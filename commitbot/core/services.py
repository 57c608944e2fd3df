"""
Service wiring for host processes (chat bot, scheduler).

Services are built lazily on first access from the cached Settings and the
global database session factory.

Usage:
    from commitbot.core.services import get_commitment_service, get_recap_service

    commitment, verdict = await get_commitment_service().verify(user_id, cid, url, text)
    report = await get_recap_service().generate_recap("daily", "automated")
"""

import logging
from typing import Optional

from ..services.commitment_service import CommitmentService
from ..services.recap_service import RecapService
from .config import get_settings

logger = logging.getLogger(__name__)

_commitment_service: Optional[CommitmentService] = None
_recap_service: Optional[RecapService] = None


def get_commitment_service() -> CommitmentService:
    """Get the global commitment lifecycle service"""
    global _commitment_service
    if _commitment_service is None:
        _commitment_service = CommitmentService(settings=get_settings())
        logger.debug("Commitment service created")
    return _commitment_service


def get_recap_service() -> RecapService:
    """Get the global recap service"""
    global _recap_service
    if _recap_service is None:
        _recap_service = RecapService(settings=get_settings())
        logger.debug("Recap service created")
    return _recap_service


def reset_services() -> None:
    """Drop cached service instances (useful for testing)."""
    global _commitment_service, _recap_service
    _commitment_service = None
    _recap_service = None
