"""Tests for engine construction and the request-scoped session dependency."""

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, patch

import pytest

from temple.core import database
from temple.core.config import Settings


def _settings(**overrides: object) -> Settings:
    return Settings(_env_file=None, **overrides)  # type: ignore[call-arg]


class TestBuildEngine:
    def test_pool_settings_applied(self) -> None:
        config = _settings(
            database_pool_size=7,
            database_max_overflow=3,
            database_pool_timeout_seconds=2.5,
            environment="test",
        )

        with patch("temple.core.database.create_async_engine") as create:
            database.build_engine(config)

        url = create.call_args.args[0]
        kwargs = create.call_args.kwargs
        assert url == config.database_url
        assert kwargs["pool_size"] == 7
        assert kwargs["max_overflow"] == 3
        assert kwargs["pool_timeout"] == 2.5
        assert kwargs["pool_pre_ping"] is True
        assert kwargs["echo"] is False

    def test_connections_carry_statement_timeout(self) -> None:
        config = _settings(database_statement_timeout_ms=1500)

        with patch("temple.core.database.create_async_engine") as create:
            database.build_engine(config)

        server_settings = create.call_args.kwargs["connect_args"]["server_settings"]
        assert server_settings == {
            "application_name": "temple-api",
            "statement_timeout": "1500",
        }

    def test_non_positive_pool_size_rejected(self) -> None:
        with pytest.raises(ValueError, match="DATABASE_POOL_SIZE"):
            _settings(database_pool_size=0)


def _factory_yielding(session: AsyncMock):
    @asynccontextmanager
    async def factory():
        yield session

    return factory


class TestGetDb:
    @pytest.mark.asyncio
    async def test_commits_on_success(self) -> None:
        session = AsyncMock()
        with patch.object(database, "async_session_factory", _factory_yielding(session)):
            gen = database.get_db()
            assert await gen.__anext__() is session
            with pytest.raises(StopAsyncIteration):
                await gen.__anext__()

        session.commit.assert_awaited_once()
        session.rollback.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rolls_back_and_reraises(self) -> None:
        session = AsyncMock()
        with patch.object(database, "async_session_factory", _factory_yielding(session)):
            gen = database.get_db()
            await gen.__anext__()
            with pytest.raises(RuntimeError, match="boom"):
                await gen.athrow(RuntimeError("boom"))

        session.rollback.assert_awaited_once()
        session.commit.assert_not_awaited()
