"""Ephemeral credential storage.

Exports:
    CredentialStore and its factory
    CredentialNamespace for key namespaces
    Backends (Redis, in-process memory)
"""

from temple.credentials.base import CredentialBackend, CredentialBackendError
from temple.credentials.memory_backend import MemoryCredentialBackend
from temple.credentials.redis_backend import RedisCredentialBackend
from temple.credentials.store import (
    CredentialNamespace,
    CredentialStore,
    create_credential_store,
    credential_key,
)

__all__ = [
    # Store
    "CredentialStore",
    "CredentialNamespace",
    "create_credential_store",
    "credential_key",
    # Backends
    "CredentialBackend",
    "CredentialBackendError",
    "MemoryCredentialBackend",
    "RedisCredentialBackend",
]
