"""Tests for RedisCredentialBackend with a mocked redis.asyncio client.

Covers:
- Lua scripts used for consume-once and windowed increment
- Transport errors mark the backend unavailable for the retry window
- Healthy-to-unhealthy transition logged once, not per call
- SCAN-based prefix deletion with glob escaping and batching
- Startup connection failure yields no backend
"""

import logging
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import SecretStr
from redis.backoff import NoBackoff
from redis.exceptions import ConnectionError as RedisConnectionError

from temple.credentials.base import CredentialBackendError
from temple.credentials.redis_backend import (
    _CONSUME_ONCE_SCRIPT,
    _INCR_WITH_WINDOW_SCRIPT,
    _SCAN_BATCH_SIZE,
    RedisCredentialBackend,
    build_redis_client,
    connect_redis_backend,
    escape_glob,
)


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def _make_client() -> MagicMock:
    client = MagicMock()
    scripts: dict[str, AsyncMock] = {}

    def register_script(source: str) -> AsyncMock:
        scripts[source] = AsyncMock()
        return scripts[source]

    client.register_script.side_effect = register_script
    client.scripts = scripts
    client.set = AsyncMock()
    client.get = AsyncMock()
    client.delete = AsyncMock()
    client.ttl = AsyncMock()
    client.aclose = AsyncMock()
    client.ping = AsyncMock()
    return client


def _scan_returning(keys: list[str]):
    calls: list[dict] = []

    def scan_iter(**kwargs):
        calls.append(kwargs)

        async def gen():
            for key in keys:
                yield key

        return gen()

    scan_iter.calls = calls  # type: ignore[attr-defined]
    return scan_iter


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def client() -> MagicMock:
    return _make_client()


@pytest.fixture
def backend(client: MagicMock, clock: FakeClock) -> RedisCredentialBackend:
    return RedisCredentialBackend(client, retry_after_seconds=5.0, clock=clock)


# =============================================================================
# Commands
# =============================================================================


class TestCommands:
    @pytest.mark.asyncio
    async def test_set_passes_ttl(self, backend, client) -> None:
        await backend.set("otp:u1:login", "123456", 300)
        client.set.assert_awaited_once_with("otp:u1:login", "123456", ex=300)

    @pytest.mark.asyncio
    async def test_get_and_delete_uses_consume_script(self, backend, client) -> None:
        client.scripts[_CONSUME_ONCE_SCRIPT].return_value = "123456"

        assert await backend.get_and_delete("otp:u1:login") == "123456"
        client.scripts[_CONSUME_ONCE_SCRIPT].assert_awaited_once_with(
            keys=["otp:u1:login"]
        )

    @pytest.mark.asyncio
    async def test_incr_with_window_uses_script(self, backend, client) -> None:
        client.scripts[_INCR_WITH_WINDOW_SCRIPT].return_value = 3

        assert await backend.incr_with_window("otp_attempts:u1", 3600) == 3
        client.scripts[_INCR_WITH_WINDOW_SCRIPT].assert_awaited_once_with(
            keys=["otp_attempts:u1"], args=[3600]
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize(("raw", "expected"), [(120, 120), (-1, None), (-2, None)])
    async def test_ttl_maps_missing_to_none(self, backend, client, raw, expected) -> None:
        client.ttl.return_value = raw
        assert await backend.ttl("otp:u1") == expected

    def test_expire_only_on_first_increment(self) -> None:
        assert "count == 1" in _INCR_WITH_WINDOW_SCRIPT
        assert "EXPIRE" in _INCR_WITH_WINDOW_SCRIPT


# =============================================================================
# Health
# =============================================================================


class TestHealth:
    @pytest.mark.asyncio
    async def test_error_raises_backend_error_and_marks_unavailable(
        self, backend, client
    ) -> None:
        client.get.side_effect = RedisConnectionError("reset")

        with pytest.raises(CredentialBackendError):
            await backend.get("otp:u1")

        assert backend.is_available() is False

    @pytest.mark.asyncio
    async def test_available_again_after_retry_window(
        self, backend, client, clock
    ) -> None:
        client.get.side_effect = RedisConnectionError("reset")
        with pytest.raises(CredentialBackendError):
            await backend.get("otp:u1")

        clock.now += 4.9
        assert backend.is_available() is False
        clock.now += 0.1
        assert backend.is_available() is True

    @pytest.mark.asyncio
    async def test_success_restores_health(self, backend, client, clock) -> None:
        client.get.side_effect = RedisConnectionError("reset")
        with pytest.raises(CredentialBackendError):
            await backend.get("otp:u1")

        clock.now += 10
        client.get.side_effect = None
        client.get.return_value = "v"
        assert await backend.get("otp:u1") == "v"

        clock.now += 0.001
        assert backend.is_available() is True

    @pytest.mark.asyncio
    async def test_transition_logged_once(self, backend, client, caplog) -> None:
        client.get.side_effect = RedisConnectionError("reset")

        with caplog.at_level(logging.WARNING, logger="temple.credentials.redis_backend"):
            for _ in range(3):
                with pytest.raises(CredentialBackendError):
                    await backend.get("otp:u1")

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1


# =============================================================================
# delete_by_prefix
# =============================================================================


class TestDeleteByPrefix:
    def test_escape_glob(self) -> None:
        assert escape_glob("refresh:a*b?[c]\\") == "refresh:a\\*b\\?\\[c\\]\\\\"

    @pytest.mark.asyncio
    async def test_scans_with_escaped_prefix(self, backend, client) -> None:
        client.scan_iter = _scan_returning(["refresh:u1:a", "refresh:u1:b"])
        client.delete.return_value = 2

        assert await backend.delete_by_prefix("refresh:u1:") == 2
        assert client.scan_iter.calls == [
            {"match": "refresh:u1:*", "count": _SCAN_BATCH_SIZE}
        ]
        client.delete.assert_awaited_once_with("refresh:u1:a", "refresh:u1:b")

    @pytest.mark.asyncio
    async def test_deletes_in_batches(self, backend, client) -> None:
        keys = [f"refresh:u1:d{i}" for i in range(_SCAN_BATCH_SIZE + 3)]
        client.scan_iter = _scan_returning(keys)
        client.delete.side_effect = lambda *batch: len(batch)

        assert await backend.delete_by_prefix("refresh:u1:") == len(keys)
        assert client.delete.await_count == 2

    @pytest.mark.asyncio
    async def test_no_matches_deletes_nothing(self, backend, client) -> None:
        client.scan_iter = _scan_returning([])

        assert await backend.delete_by_prefix("refresh:u1:") == 0
        client.delete.assert_not_awaited()


# =============================================================================
# Connection setup
# =============================================================================


def _config(**overrides: object) -> MagicMock:
    values = {
        "redis_url": None,
        "redis_host": "cache.internal",
        "redis_port": 6380,
        "redis_password": SecretStr("pw"),
        "redis_tls": True,
        "redis_socket_timeout": 2.0,
        "redis_retry_after_seconds": 5.0,
    }
    values.update(overrides)
    return MagicMock(**values)


class TestConnection:
    def test_url_takes_precedence(self) -> None:
        with patch("temple.credentials.redis_backend.Redis") as redis_cls:
            build_redis_client(_config(redis_url="redis://x:6379/0"))

        redis_cls.from_url.assert_called_once()
        assert redis_cls.from_url.call_args.args == ("redis://x:6379/0",)
        redis_cls.assert_not_called()

    def test_discrete_parameters(self) -> None:
        with patch("temple.credentials.redis_backend.Redis") as redis_cls:
            build_redis_client(_config())

        kwargs = redis_cls.call_args.kwargs
        assert kwargs["host"] == "cache.internal"
        assert kwargs["port"] == 6380
        assert kwargs["password"] == "pw"
        assert kwargs["ssl"] is True
        assert kwargs["decode_responses"] is True

    @pytest.mark.parametrize("url", [None, "redis://x:6379/0"])
    def test_commands_not_retried(self, url: str | None) -> None:
        with patch("temple.credentials.redis_backend.Redis") as redis_cls:
            build_redis_client(_config(redis_url=url))

        call = redis_cls.from_url.call_args if url else redis_cls.call_args
        retry = call.kwargs["retry"]
        assert retry._retries == 0
        assert isinstance(retry._backoff, NoBackoff)
        assert call.kwargs["retry_on_timeout"] is False

    @pytest.mark.asyncio
    async def test_unreachable_returns_none_and_closes(self) -> None:
        client = _make_client()
        client.ping.side_effect = RedisConnectionError("refused")

        with patch(
            "temple.credentials.redis_backend.build_redis_client", return_value=client
        ):
            backend = await connect_redis_backend(_config())

        assert backend is None
        client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reachable_returns_backend(self) -> None:
        client = _make_client()

        with patch(
            "temple.credentials.redis_backend.build_redis_client", return_value=client
        ):
            backend = await connect_redis_backend(_config())

        assert isinstance(backend, RedisCredentialBackend)
        assert backend.is_available() is True
