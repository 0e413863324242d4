"""Multi-device refresh token bookkeeping.

Each device gets ``refresh:{user}:{device}`` holding the SHA-256 of its
current refresh token. Logging out everywhere is one revoke_all_for_subject
call, however many devices the user has.
"""

import logging

from temple.core.auth import ROLE_SUB_ADMIN, ROLE_SUPER_ADMIN
from temple.core.tokens import hash_token, tokens_match
from temple.credentials.store import CredentialNamespace, CredentialStore

logger = logging.getLogger(__name__)

# Absolute session lifetime by role, in seconds
_REFRESH_TTL_BY_ROLE = {
    ROLE_SUPER_ADMIN: 12 * 60 * 60,
    ROLE_SUB_ADMIN: 3 * 24 * 60 * 60,
}
_DEFAULT_REFRESH_TTL = 9 * 24 * 60 * 60


def refresh_ttl_for_role(role: str) -> int:
    """Maximum session duration for a role."""
    return _REFRESH_TTL_BY_ROLE.get(role, _DEFAULT_REFRESH_TTL)


class RefreshSessionService:
    """Stores, checks, rotates and revokes per-device refresh tokens."""

    def __init__(self, store: CredentialStore) -> None:
        self._store = store

    async def register(
        self, user_id: str, device_id: str, refresh_token: str, ttl_seconds: int
    ) -> None:
        """Record a device's refresh token (hashed), replacing any previous one."""
        await self._store.issue(
            CredentialNamespace.REFRESH,
            user_id,
            hash_token(refresh_token),
            ttl_seconds,
            discriminator=device_id,
        )

    async def is_valid(self, user_id: str, device_id: str, refresh_token: str) -> bool:
        """Whether refresh_token is the device's current token."""
        stored = await self._store.read(
            CredentialNamespace.REFRESH, user_id, discriminator=device_id
        )
        return tokens_match(hash_token(refresh_token), stored)

    async def rotate(
        self,
        user_id: str,
        device_id: str,
        presented_token: str,
        new_token: str,
        ttl_seconds: int,
    ) -> bool:
        """Swap the device's token for a new one.

        The old hash is consumed atomically, so a replayed refresh token
        cannot be rotated twice. A mismatch leaves the device logged out.

        Returns:
            True when presented_token was current and new_token is now stored.
        """
        stored = await self._store.consume_once(
            CredentialNamespace.REFRESH, user_id, discriminator=device_id
        )
        if not tokens_match(hash_token(presented_token), stored):
            logger.warning(
                "Refresh token mismatch for user %s device %s", user_id, device_id
            )
            return False
        await self.register(user_id, device_id, new_token, ttl_seconds)
        return True

    async def revoke(self, user_id: str, device_id: str) -> None:
        """Log one device out."""
        await self._store.delete(
            CredentialNamespace.REFRESH, user_id, discriminator=device_id
        )

    async def revoke_all(self, user_id: str) -> int:
        """Log every device out.

        Returns:
            Number of device sessions removed.
        """
        removed = await self._store.revoke_all_for_subject(
            CredentialNamespace.REFRESH, user_id
        )
        logger.info("Revoked %d refresh sessions for user %s", removed, user_id)
        return removed
