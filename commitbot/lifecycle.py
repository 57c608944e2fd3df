"""
Startup and shutdown for a process hosting the commitment core.

Handles configuration, logging and database initialization. The chat
front end and the recap scheduler live in the host process and call
these around their own lifetimes.
"""

import logging

from .core.config import get_settings
from .core.database import close_database, init_database
from .core.services import reset_services
from .utils.logging import setup_logging

logger = logging.getLogger(__name__)


async def startup(log_to_file: bool = True) -> None:
    """Configure logging and open the database."""
    settings = get_settings()
    setup_logging(settings.log_level, log_to_file=log_to_file)
    logger.info(
        f"Commitment core starting up (environment={settings.environment}, "
        f"timezone={settings.timezone}, day boundary {settings.day_boundary_hour:02d}:00)"
    )
    await init_database(settings.database_url)


async def shutdown() -> None:
    """Close the database and drop cached services."""
    await close_database()
    reset_services()
    logger.info("Commitment core shut down")
