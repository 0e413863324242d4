"""Redis-backed credential backend.

Consume-once and windowed increment run as server-side Lua scripts so each is
a single round trip executed atomically by Redis. That makes them safe across
any number of API processes without in-process locking.

Connection state: one shared client for the process. A transport error flips
the backend to unavailable and the store stops issuing commands for
`retry_after_seconds`; the next command after that window lets redis-py
reconnect. There is no foreground retry loop.
"""

import logging
import time
from collections.abc import Callable

from redis.asyncio import Redis
from redis.asyncio.retry import Retry
from redis.backoff import NoBackoff
from redis.exceptions import RedisError

from temple.core.config import Settings
from temple.credentials.base import CredentialBackend, CredentialBackendError

logger = logging.getLogger(__name__)

# Returns the value and deletes it, or nil when absent
_CONSUME_ONCE_SCRIPT = """
local value = redis.call('GET', KEYS[1])
if value then
    redis.call('DEL', KEYS[1])
end
return value
"""

# TTL is attached only on the 0 -> 1 transition (fixed window)
_INCR_WITH_WINDOW_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('EXPIRE', KEYS[1], ARGV[1])
end
return count
"""

# Keys per SCAN page and per DEL batch during prefix revocation
_SCAN_BATCH_SIZE = 500

_GLOB_SPECIAL = "*?[]\\"


def escape_glob(value: str) -> str:
    """Escape Redis MATCH glob metacharacters in a literal prefix."""
    return "".join(f"\\{ch}" if ch in _GLOB_SPECIAL else ch for ch in value)


class RedisCredentialBackend(CredentialBackend):
    """Credential backend over a shared `redis.asyncio.Redis` client.

    Attributes:
        client: The shared Redis client (decode_responses=True).
    """

    def __init__(
        self,
        client: Redis,
        *,
        retry_after_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.client = client
        self._consume_script = client.register_script(_CONSUME_ONCE_SCRIPT)
        self._incr_script = client.register_script(_INCR_WITH_WINDOW_SCRIPT)
        self._retry_after = retry_after_seconds
        self._clock = clock
        self._healthy = True
        self._failed_at = 0.0

    @property
    def backend_name(self) -> str:
        return "redis"

    def is_available(self) -> bool:
        if self._healthy:
            return True
        return self._clock() - self._failed_at >= self._retry_after

    def _mark_failed(self, exc: Exception) -> None:
        if self._healthy:
            # Only the healthy -> unhealthy edge is logged
            logger.warning("Redis credential store unavailable: %s", exc)
        self._healthy = False
        self._failed_at = self._clock()

    def _mark_ok(self) -> None:
        if not self._healthy:
            logger.info("Redis credential store reconnected")
        self._healthy = True

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        try:
            await self.client.set(key, value, ex=ttl_seconds)
        except RedisError as exc:
            self._mark_failed(exc)
            raise CredentialBackendError(str(exc)) from exc
        self._mark_ok()

    async def get(self, key: str) -> str | None:
        try:
            value = await self.client.get(key)
        except RedisError as exc:
            self._mark_failed(exc)
            raise CredentialBackendError(str(exc)) from exc
        self._mark_ok()
        return value

    async def get_and_delete(self, key: str) -> str | None:
        try:
            value = await self._consume_script(keys=[key])
        except RedisError as exc:
            self._mark_failed(exc)
            raise CredentialBackendError(str(exc)) from exc
        self._mark_ok()
        return value

    async def delete(self, key: str) -> None:
        try:
            await self.client.delete(key)
        except RedisError as exc:
            self._mark_failed(exc)
            raise CredentialBackendError(str(exc)) from exc
        self._mark_ok()

    async def incr_with_window(self, key: str, ttl_seconds: int) -> int:
        try:
            count = await self._incr_script(keys=[key], args=[ttl_seconds])
        except RedisError as exc:
            self._mark_failed(exc)
            raise CredentialBackendError(str(exc)) from exc
        self._mark_ok()
        return int(count)

    async def ttl(self, key: str) -> int | None:
        try:
            remaining = await self.client.ttl(key)
        except RedisError as exc:
            self._mark_failed(exc)
            raise CredentialBackendError(str(exc)) from exc
        self._mark_ok()
        # -2: missing, -1: no expiry (never written by us)
        if remaining is None or remaining < 0:
            return None
        return int(remaining)

    async def delete_by_prefix(self, prefix: str) -> int:
        """Delete all keys under prefix using SCAN, never KEYS.

        SCAN pages through the keyspace without blocking the server, so the
        number of matching keys is unbounded. Deletion happens in batches.
        """
        deleted = 0
        batch: list[str] = []
        try:
            async for key in self.client.scan_iter(
                match=f"{escape_glob(prefix)}*", count=_SCAN_BATCH_SIZE
            ):
                batch.append(key)
                if len(batch) >= _SCAN_BATCH_SIZE:
                    deleted += await self.client.delete(*batch)
                    batch = []
            if batch:
                deleted += await self.client.delete(*batch)
        except RedisError as exc:
            self._mark_failed(exc)
            raise CredentialBackendError(str(exc)) from exc
        self._mark_ok()
        return deleted

    async def close(self) -> None:
        try:
            await self.client.aclose()
        except RedisError as exc:
            logger.warning("Error closing Redis credential store: %s", exc)


def build_redis_client(config: Settings) -> Redis:
    """Create a Redis client from either REDIS_URL or discrete settings.

    REDIS_URL wins when both are set (managed Redis providers hand out URLs).
    Commands are never retried: a dead connection fails the command at once
    and the backend's retry window takes over.
    """
    common = {
        "decode_responses": True,
        "socket_timeout": config.redis_socket_timeout,
        "socket_connect_timeout": config.redis_socket_timeout,
        "retry": Retry(NoBackoff(), 0),
        "retry_on_timeout": False,
    }
    if config.redis_url:
        return Redis.from_url(config.redis_url, **common)
    return Redis(
        host=config.redis_host or "localhost",
        port=config.redis_port,
        password=config.redis_password.get_secret_value() or None,
        ssl=config.redis_tls,
        **common,
    )


async def connect_redis_backend(config: Settings) -> RedisCredentialBackend | None:
    """Eagerly connect once at startup.

    Args:
        config: Application settings with Redis connection parameters.

    Returns:
        A connected backend, or None when the target is unreachable. The
        failure is logged once; the caller runs the store disabled.
    """
    client = build_redis_client(config)
    try:
        await client.ping()
    except (RedisError, OSError) as exc:
        logger.warning(
            "Redis connection failed (%s); credential store disabled", exc
        )
        try:
            await client.aclose()
        except (RedisError, OSError) as close_exc:
            logger.debug("Ignoring error closing failed Redis client: %s", close_exc)
        return None

    logger.info("Redis credential store connected")
    return RedisCredentialBackend(
        client, retry_after_seconds=config.redis_retry_after_seconds
    )
