"""Tests for RefreshSessionService."""

import pytest

from temple.core.auth import ROLE_SUB_ADMIN, ROLE_SUPER_ADMIN, ROLE_USER
from temple.core.tokens import hash_token
from temple.credentials.memory_backend import MemoryCredentialBackend
from temple.credentials.store import CredentialNamespace, CredentialStore
from temple.services.refresh_sessions import RefreshSessionService, refresh_ttl_for_role

_USER = "user-1"
_TTL = 3600


@pytest.fixture
def store() -> CredentialStore:
    return CredentialStore(MemoryCredentialBackend())


@pytest.fixture
def sessions(store: CredentialStore) -> RefreshSessionService:
    return RefreshSessionService(store)


class TestRefreshTtl:
    @pytest.mark.parametrize(
        ("role", "seconds"),
        [
            (ROLE_SUPER_ADMIN, 12 * 3600),
            (ROLE_SUB_ADMIN, 3 * 86400),
            (ROLE_USER, 9 * 86400),
        ],
    )
    def test_ttl_by_role(self, role: str, seconds: int) -> None:
        assert refresh_ttl_for_role(role) == seconds


class TestRefreshSessions:
    @pytest.mark.asyncio
    async def test_token_stored_hashed(
        self, sessions: RefreshSessionService, store: CredentialStore
    ) -> None:
        await sessions.register(_USER, "phone", "raw-token", _TTL)

        stored = await store.read(CredentialNamespace.REFRESH, _USER, discriminator="phone")
        assert stored == hash_token("raw-token")
        assert await sessions.is_valid(_USER, "phone", "raw-token") is True
        assert await sessions.is_valid(_USER, "phone", "other") is False

    @pytest.mark.asyncio
    async def test_rotate_replaces_token(self, sessions: RefreshSessionService) -> None:
        await sessions.register(_USER, "phone", "old", _TTL)

        assert await sessions.rotate(_USER, "phone", "old", "new", _TTL) is True
        assert await sessions.is_valid(_USER, "phone", "new") is True
        assert await sessions.is_valid(_USER, "phone", "old") is False

    @pytest.mark.asyncio
    async def test_replayed_token_cannot_rotate(
        self, sessions: RefreshSessionService
    ) -> None:
        await sessions.register(_USER, "phone", "old", _TTL)
        await sessions.rotate(_USER, "phone", "old", "new", _TTL)

        assert await sessions.rotate(_USER, "phone", "old", "evil", _TTL) is False

    @pytest.mark.asyncio
    async def test_revoke_one_device(self, sessions: RefreshSessionService) -> None:
        await sessions.register(_USER, "phone", "a", _TTL)
        await sessions.register(_USER, "laptop", "b", _TTL)

        await sessions.revoke(_USER, "phone")

        assert await sessions.is_valid(_USER, "phone", "a") is False
        assert await sessions.is_valid(_USER, "laptop", "b") is True

    @pytest.mark.asyncio
    async def test_revoke_all_devices(self, sessions: RefreshSessionService) -> None:
        await sessions.register(_USER, "phone", "a", _TTL)
        await sessions.register(_USER, "laptop", "b", _TTL)
        await sessions.register("user-2", "phone", "c", _TTL)

        assert await sessions.revoke_all(_USER) == 2
        assert await sessions.is_valid(_USER, "laptop", "b") is False
        assert await sessions.is_valid("user-2", "phone", "c") is True
