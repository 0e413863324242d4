"""In-process credential backend.

For tests and single-worker development. Each command runs under one
threading.Lock with no await inside the critical section, so consume-once
is atomic within this process. It is NOT atomic across processes; run
multiple workers against Redis instead.

Expired entries are dropped when next touched; there is no sweeper.
"""

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from temple.credentials.base import CredentialBackend, CredentialBackendError


@dataclass
class _Entry:
    value: str
    expires_at: float


class MemoryCredentialBackend(CredentialBackend):
    """Dict-backed credential backend with per-entry expiry.

    Args:
        clock: Monotonic seconds source. Tests pass a fake to move time.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()
        self._clock = clock

    @property
    def backend_name(self) -> str:
        return "memory"

    def is_available(self) -> bool:
        return True

    def _live(self, key: str) -> _Entry | None:
        # Caller holds the lock
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = _Entry(value, self._clock() + ttl_seconds)

    async def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._live(key)
            return entry.value if entry else None

    async def get_and_delete(self, key: str) -> str | None:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return None
            del self._entries[key]
            return entry.value

    async def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    async def incr_with_window(self, key: str, ttl_seconds: int) -> int:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                self._entries[key] = _Entry("1", self._clock() + ttl_seconds)
                return 1
            try:
                count = int(entry.value) + 1
            except ValueError as e:
                raise CredentialBackendError(f"Value at {key} is not a counter") from e
            entry.value = str(count)
            return count

    async def ttl(self, key: str) -> int | None:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                return None
            return max(0, int(entry.expires_at - self._clock()))

    async def delete_by_prefix(self, prefix: str) -> int:
        with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    async def close(self) -> None:
        with self._lock:
            self._entries.clear()
