"""Tests for database initialization, sessions and service wiring."""

import logging

import pytest

from commitbot.core import database


@pytest.fixture
async def memory_db():
    await database.init_database("sqlite+aiosqlite:///:memory:")
    yield
    await database.close_database()


class TestDatabase:
    async def test_health_check(self, memory_db):
        assert await database.health_check() is True

    async def test_session_rolls_back_and_reraises(self, memory_db):
        with pytest.raises(RuntimeError):
            async with database.get_db_session():
                raise RuntimeError("boom")

    async def test_close_resets_state(self):
        await database.init_database("sqlite+aiosqlite:///:memory:")
        await database.close_database()

        assert database._engine is None
        assert database._session_factory is None


class TestLifecycle:
    async def test_startup_and_shutdown(self, monkeypatch):
        from commitbot import lifecycle
        from commitbot.core.config import get_settings
        from commitbot.core.services import get_commitment_service

        root = logging.getLogger()
        saved_handlers, saved_level = list(root.handlers), root.level
        monkeypatch.setattr(get_settings(), "database_url", "sqlite+aiosqlite:///:memory:")
        await lifecycle.startup(log_to_file=False)
        try:
            assert await database.health_check() is True
            first = get_commitment_service()
        finally:
            await lifecycle.shutdown()
            root.handlers[:] = saved_handlers
            root.setLevel(saved_level)

        assert database._engine is None
        assert get_commitment_service() is not first


class TestServiceWiring:
    def test_services_are_cached_until_reset(self):
        from commitbot.core.services import (
            get_commitment_service,
            get_recap_service,
            reset_services,
        )

        try:
            assert get_commitment_service() is get_commitment_service()
            recap = get_recap_service()
            reset_services()
            assert get_recap_service() is not recap
        finally:
            reset_services()


class TestSessionErrorLogging:
    async def test_missing_commitment_is_not_a_session_error(self, memory_db, caplog):
        from unittest.mock import AsyncMock

        from commitbot.domain.errors import CommitmentNotFound
        from commitbot.services.commitment_service import CommitmentService

        service = CommitmentService(verifier=AsyncMock())

        with caplog.at_level(logging.ERROR, logger="commitbot.core.database"):
            with pytest.raises(CommitmentNotFound):
                await service.delete("u1", 999)

        assert not any("Database session error" in r.getMessage() for r in caplog.records)
