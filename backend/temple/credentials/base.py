"""Abstract key-value backend for ephemeral credentials.

Backends deal in raw string keys. Namespacing, fail-open behavior and
logging policy live in CredentialStore; a backend only has to execute each
command atomically and report transport failures as CredentialBackendError.
"""

from abc import ABC, abstractmethod


class CredentialBackendError(Exception):
    """Transport-level failure talking to the backing store.

    Never escapes CredentialStore; it is absorbed into "absent" / no-op.
    """


class CredentialBackend(ABC):
    """Interface every credential backend implements.

    Every write carries a TTL. There is no way to store a value that does
    not expire.
    """

    @property
    @abstractmethod
    def backend_name(self) -> str:
        """Short name used in log lines (e.g., "redis")."""

    @abstractmethod
    def is_available(self) -> bool:
        """Whether commands should be attempted right now.

        Pure read of the current transport state; never does I/O.
        """

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store value under key, replacing any previous value and TTL."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value, or None when missing or expired."""

    @abstractmethod
    async def get_and_delete(self, key: str) -> str | None:
        """Read and delete in one indivisible step.

        Of any number of concurrent callers at most one receives the value.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Delete key. Missing keys are not an error."""

    @abstractmethod
    async def incr_with_window(self, key: str, ttl_seconds: int) -> int:
        """Increment a counter, applying the TTL only when it becomes 1.

        Later increments never extend the window (fixed window).
        """

    @abstractmethod
    async def ttl(self, key: str) -> int | None:
        """Remaining lifetime in whole seconds, or None when missing."""

    @abstractmethod
    async def delete_by_prefix(self, prefix: str) -> int:
        """Delete every key starting with prefix. Returns count deleted."""

    @abstractmethod
    async def close(self) -> None:
        """Release the underlying connection, if any."""
