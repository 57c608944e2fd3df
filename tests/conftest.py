import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock
from zoneinfo import ZoneInfo

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment variables
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["OPENAI_API_KEY"] = "test-key"
os.environ["TIMEZONE"] = "America/New_York"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

NY = ZoneInfo("America/New_York")


def ny(year, month, day, hour=12, minute=0, second=0, microsecond=0) -> datetime:
    """Aware datetime in the reference zone."""
    return datetime(year, month, day, hour, minute, second, microsecond, tzinfo=NY)


class FrozenClock:
    """Callable clock tests can move around."""

    def __init__(self, instant: datetime) -> None:
        self.instant = instant

    def set(self, instant: datetime) -> None:
        self.instant = instant

    def __call__(self) -> datetime:
        return self.instant.astimezone(timezone.utc)


@pytest.fixture(autouse=True)
def _strip_file_handlers():
    """Remove file handlers from root logger so tests never write to logs/app.log."""
    root = logging.getLogger()
    saved = [h for h in root.handlers if isinstance(h, logging.FileHandler)]
    for h in saved:
        root.removeHandler(h)
    yield
    for h in list(root.handlers):
        if isinstance(h, logging.FileHandler):
            root.removeHandler(h)
    for h in saved:
        root.addHandler(h)


@pytest.fixture
def settings():
    from commitbot.core.config import Settings

    return Settings(
        timezone="America/New_York",
        day_boundary_hour=4,
        database_url="sqlite+aiosqlite:///:memory:",
    )


@pytest.fixture
def clock():
    # Monday 2025-02-03, 10:00 New York
    return FrozenClock(ny(2025, 2, 3, 10))


@pytest.fixture
async def async_engine():
    """In-memory async SQLite engine shared by every session of a test."""
    from commitbot.models.base import Base

    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    """Drop-in replacement for core.database.get_db_session."""
    maker = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)

    @asynccontextmanager
    async def factory():
        async with maker() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    return factory


@pytest.fixture
async def async_session(async_engine):
    factory = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


def make_verdict(is_valid=True, explanation="Looks good", confidence="high"):
    from commitbot.models.value_objects import Confidence, VerificationVerdict

    return VerificationVerdict(
        is_valid=is_valid, explanation=explanation, confidence=Confidence(confidence)
    )


@pytest.fixture
def fake_verifier():
    verifier = AsyncMock()
    verifier.verify.return_value = make_verdict()
    return verifier


@pytest.fixture
def commitment_service(session_factory, settings, clock, fake_verifier):
    from commitbot.services.commitment_service import CommitmentService

    return CommitmentService(
        verifier=fake_verifier,
        session_factory=session_factory,
        settings=settings,
        clock=clock,
    )


@pytest.fixture
def recap_service(session_factory, settings, clock):
    from commitbot.services.recap_service import RecapService

    return RecapService(session_factory=session_factory, settings=settings, clock=clock)
