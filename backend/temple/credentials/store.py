"""Ephemeral credential store.

Namespace-scoped, TTL-bound key-value operations for one-time codes,
attempt counters, session handoff tokens, and per-device refresh tokens.

Fail-open toward "no credential": when the store is disabled (nothing
configured, or the startup connection failed) or the transport drops, writes
are silent no-ops and reads return None. Callers treat None as "not found",
which sends every security check down its reject branch.

Keys look like ``{namespace}:{subject}`` or ``{namespace}:{subject}:{discriminator}``.
"""

import logging
from enum import Enum

from temple.core.config import Settings, settings
from temple.credentials.base import CredentialBackend, CredentialBackendError
from temple.credentials.memory_backend import MemoryCredentialBackend
from temple.credentials.redis_backend import connect_redis_backend

logger = logging.getLogger(__name__)

# Characters a subject or discriminator may not contain: the key separator
# plus glob metacharacters (prefix revocation must not match other subjects)
_FORBIDDEN_KEY_CHARS = frozenset(":*?[]\\")


class CredentialNamespace(Enum):
    """Top-level key namespaces."""

    OTP = "otp"
    OTP_ATTEMPTS = "otp_attempts"
    SESSION = "session"
    REFRESH = "refresh"


def _check_part(name: str, value: str) -> None:
    if not value:
        raise ValueError(f"Credential {name} must not be empty")
    if any(ch in _FORBIDDEN_KEY_CHARS for ch in value):
        raise ValueError(f"Credential {name} contains a reserved character: {value!r}")


def credential_key(
    namespace: CredentialNamespace,
    subject: str,
    discriminator: str | None = None,
) -> str:
    """Build the storage key for a credential.

    Args:
        namespace: Credential namespace.
        subject: Subject identifier (usually a user id).
        discriminator: Optional code type or device id.

    Returns:
        The composite key string.

    Raises:
        ValueError: If subject or discriminator is empty or contains a
            reserved character. This is a programming error, not a store
            failure, so it is raised rather than absorbed.
    """
    _check_part("subject", subject)
    if discriminator is None:
        return f"{namespace.value}:{subject}"
    _check_part("discriminator", discriminator)
    return f"{namespace.value}:{subject}:{discriminator}"


def _check_ttl(ttl_seconds: int) -> None:
    if ttl_seconds <= 0:
        raise ValueError(f"Credential TTL must be positive, got {ttl_seconds}")


class CredentialStore:
    """Fail-open facade over a credential backend.

    Holds one long-lived backend handle for the whole process. ``backend=None``
    is the permanently disabled mode.

    Attributes:
        backend: The owned backend, or None when disabled.
    """

    def __init__(self, backend: CredentialBackend | None) -> None:
        self.backend = backend

    @property
    def enabled(self) -> bool:
        """False when running in permanently disabled mode."""
        return self.backend is not None

    def is_available(self) -> bool:
        """Whether the next command will be sent to the backend."""
        return self.backend is not None and self.backend.is_available()

    async def issue(
        self,
        namespace: CredentialNamespace,
        subject: str,
        value: str,
        ttl_seconds: int,
        *,
        discriminator: str | None = None,
    ) -> None:
        """Store a credential, overwriting any existing value and TTL."""
        _check_ttl(ttl_seconds)
        key = credential_key(namespace, subject, discriminator)
        if not self.is_available():
            return
        try:
            await self.backend.set(key, value, ttl_seconds)  # type: ignore[union-attr]
        except CredentialBackendError:
            logger.debug("issue dropped for %s", key)

    async def read(
        self,
        namespace: CredentialNamespace,
        subject: str,
        *,
        discriminator: str | None = None,
    ) -> str | None:
        """Read a credential without consuming it."""
        key = credential_key(namespace, subject, discriminator)
        if not self.is_available():
            return None
        try:
            return await self.backend.get(key)  # type: ignore[union-attr]
        except CredentialBackendError:
            return None

    async def consume_once(
        self,
        namespace: CredentialNamespace,
        subject: str,
        *,
        discriminator: str | None = None,
    ) -> str | None:
        """Atomically read and delete a credential.

        Of any number of concurrent callers at most one gets the value;
        the rest, and every later read, get None.
        """
        key = credential_key(namespace, subject, discriminator)
        if not self.is_available():
            return None
        try:
            return await self.backend.get_and_delete(key)  # type: ignore[union-attr]
        except CredentialBackendError:
            return None

    async def delete(
        self,
        namespace: CredentialNamespace,
        subject: str,
        *,
        discriminator: str | None = None,
    ) -> None:
        """Delete a credential. Idempotent."""
        key = credential_key(namespace, subject, discriminator)
        if not self.is_available():
            return
        try:
            await self.backend.delete(key)  # type: ignore[union-attr]
        except CredentialBackendError:
            logger.debug("delete dropped for %s", key)

    async def increment_with_window(
        self,
        namespace: CredentialNamespace,
        subject: str,
        ttl_seconds: int,
        *,
        discriminator: str | None = None,
    ) -> int:
        """Increment a fixed-window counter.

        Returns:
            The new count, or 0 when the store is unavailable.
        """
        _check_ttl(ttl_seconds)
        key = credential_key(namespace, subject, discriminator)
        if not self.is_available():
            return 0
        try:
            return await self.backend.incr_with_window(key, ttl_seconds)  # type: ignore[union-attr]
        except CredentialBackendError:
            return 0

    async def read_count(
        self,
        namespace: CredentialNamespace,
        subject: str,
        *,
        discriminator: str | None = None,
    ) -> int:
        """Current value of a counter, 0 when absent or unavailable."""
        raw = await self.read(namespace, subject, discriminator=discriminator)
        if raw is None:
            return 0
        try:
            return int(raw)
        except ValueError:
            logger.warning("Non-integer counter under %s namespace", namespace.value)
            return 0

    async def remaining_ttl(
        self,
        namespace: CredentialNamespace,
        subject: str,
        *,
        discriminator: str | None = None,
    ) -> int | None:
        """Seconds until the credential expires, None when absent."""
        key = credential_key(namespace, subject, discriminator)
        if not self.is_available():
            return None
        try:
            return await self.backend.ttl(key)  # type: ignore[union-attr]
        except CredentialBackendError:
            return None

    async def revoke_all_for_subject(
        self,
        namespace: CredentialNamespace,
        subject: str,
    ) -> int:
        """Delete the subject's bare key and every discriminated key under it.

        Used to log a user out of every device at once.

        Returns:
            Number of discriminated keys deleted (0 when unavailable).
        """
        bare_key = credential_key(namespace, subject)
        if not self.is_available():
            return 0
        try:
            deleted = await self.backend.delete_by_prefix(f"{bare_key}:")  # type: ignore[union-attr]
            await self.backend.delete(bare_key)  # type: ignore[union-attr]
        except CredentialBackendError:
            return 0
        return deleted

    async def close(self) -> None:
        """Release the backend connection."""
        if self.backend is not None:
            await self.backend.close()


async def create_credential_store(config: Settings = settings) -> CredentialStore:
    """Build the process-wide credential store at startup.

    Makes a single connection attempt. Not configured and unreachable both
    yield a disabled store rather than an error.

    Args:
        config: Application settings.

    Returns:
        CredentialStore, possibly disabled.
    """
    if config.credential_store_backend == "memory":
        logger.info("Credential store using in-process memory backend")
        return CredentialStore(MemoryCredentialBackend())

    if not config.redis_configured:
        logger.warning(
            "No Redis configuration found; credential store disabled "
            "(one-time codes and sessions will not persist)"
        )
        return CredentialStore(None)

    return CredentialStore(await connect_redis_backend(config))
