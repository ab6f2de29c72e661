"""
Tests for realtycore/database.py — engine options, session scopes and disposal.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import text

from realtycore import database


def _settings(database_url="sqlite+aiosqlite:///:memory:", app_env="test"):
    settings = MagicMock()
    settings.database_url = database_url
    settings.database_pool_size = 7
    settings.database_max_overflow = 3
    settings.app_env = app_env
    return settings


@pytest.fixture
async def fresh_engine():
    """No engine built yet, SQLite settings; whatever the test builds is disposed."""
    with (
        patch.object(database, "_engine", None),
        patch.object(database, "_sessionmaker", None),
        patch("realtycore.database.get_settings", return_value=_settings()),
    ):
        yield
        await database.dispose_engine()


class TestEngineOptions:
    def test_postgres_gets_pool_sizing(self):
        options = database.engine_options(_settings("postgresql+asyncpg://u:p@db/realtycore"))
        assert options["pool_size"] == 7
        assert options["max_overflow"] == 3
        assert options["pool_pre_ping"] is True
        assert options["echo"] is False

    def test_sqlite_keeps_dialect_pool(self):
        options = database.engine_options(_settings())
        assert "pool_size" not in options
        assert "max_overflow" not in options

    def test_echo_in_development(self):
        assert database.engine_options(_settings(app_env="development"))["echo"] is True


class TestSessions:
    async def test_session_scope_runs_queries(self, fresh_engine):
        async with database.session_scope() as session:
            assert (await session.execute(text("SELECT 1"))).scalar() == 1

        assert database.get_engine() is database._engine

    async def test_get_db_rolls_back_on_error(self, fresh_engine):
        session = MagicMock()
        session.commit = AsyncMock()
        session.rollback = AsyncMock()
        context = MagicMock()
        context.__aenter__ = AsyncMock(return_value=session)
        context.__aexit__ = AsyncMock(return_value=False)

        with patch.object(database, "get_sessionmaker", return_value=MagicMock(return_value=context)):
            dependency = database.get_db()
            assert await dependency.__anext__() is session
            with pytest.raises(ValueError):
                await dependency.athrow(ValueError("handler failed"))

        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()


class TestDisposeEngine:
    async def test_noop_without_engine(self, fresh_engine):
        await database.dispose_engine()
        assert database._engine is None

    async def test_disposes_and_forgets(self, fresh_engine):
        engine = MagicMock()
        engine.dispose = AsyncMock()
        database._engine = engine
        database._sessionmaker = MagicMock()

        await database.dispose_engine()

        engine.dispose.assert_awaited_once()
        assert database._engine is None
        assert database._sessionmaker is None
