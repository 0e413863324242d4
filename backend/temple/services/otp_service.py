"""One-time code issuance and verification.

Built on CredentialStore:
- Codes live under ``otp:{user}:{purpose}`` and are consumed atomically on
  verification. A wrong guess burns the code too, so each code gets exactly
  one comparison.
- Request throttle: ``otp_attempts:{user}:request``, fixed one-hour window.
- Verification lockout: ``otp_attempts:{user}:verify_{purpose}``, fixed window
  of OTP_LOCKOUT_SECONDS, reset on success.
- Password-change handoff token: ``session:{user}``.

When the store is unavailable, issued codes are not stored, so verification
fails closed (False), while throttles read as zero.
"""

import logging
from datetime import datetime, timedelta
from enum import Enum

from temple.core.config import Settings, settings
from temple.core.errors import TooManyRequestsError
from temple.core.tokens import (
    generate_otp,
    generate_secure_token,
    tokens_match,
    utc_now,
)
from temple.credentials.store import CredentialNamespace, CredentialStore

logger = logging.getLogger(__name__)

_REQUEST_WINDOW_SECONDS = 3600
_REQUEST_COUNTER = "request"


class OtpPurpose(Enum):
    """What a one-time code authorizes."""

    LOGIN = "login"
    PASSWORD_CHANGE = "password_change"


def _verify_counter(purpose: OtpPurpose) -> str:
    return f"verify_{purpose.value}"


class OtpService:
    """Issues and verifies one-time codes for a user.

    Args:
        store: The process-wide credential store.
        config: Settings holding TTLs and abuse limits.
    """

    def __init__(self, store: CredentialStore, config: Settings = settings) -> None:
        self._store = store
        self._config = config

    async def _claim_request_slot(self, user_id: str) -> None:
        """Count this code request against the hourly window.

        The increment is the check: concurrent requests each get a distinct
        count back, so at most otp_max_requests_per_hour of them pass. A
        count of 0 means the store is unavailable and the request goes
        through.

        Raises:
            TooManyRequestsError: With seconds until the window resets.
        """
        count = await self._store.increment_with_window(
            CredentialNamespace.OTP_ATTEMPTS,
            user_id,
            _REQUEST_WINDOW_SECONDS,
            discriminator=_REQUEST_COUNTER,
        )
        if count > self._config.otp_max_requests_per_hour:
            remaining = await self._store.remaining_ttl(
                CredentialNamespace.OTP_ATTEMPTS,
                user_id,
                discriminator=_REQUEST_COUNTER,
            )
            wait = remaining if remaining else _REQUEST_WINDOW_SECONDS
            raise TooManyRequestsError(
                f"Too many OTP requests. Please wait {wait} seconds.", wait
            )

    async def issue_code(self, user_id: str, purpose: OtpPurpose) -> str:
        """Generate and store a fresh code, replacing any outstanding one.

        Args:
            user_id: Subject the code is for.
            purpose: What the code authorizes.

        Returns:
            The 6-digit code, for the caller to deliver out of band.

        Raises:
            TooManyRequestsError: If the hourly request limit is reached.
        """
        await self._claim_request_slot(user_id)

        code = generate_otp()
        await self._store.issue(
            CredentialNamespace.OTP,
            user_id,
            code,
            self._config.otp_ttl_seconds,
            discriminator=purpose.value,
        )
        logger.info("OTP issued for user %s, purpose %s", user_id, purpose.value)
        return code

    async def ensure_not_locked(self, user_id: str, purpose: OtpPurpose) -> None:
        """Raise while the user is locked out of verifying this purpose.

        Raises:
            TooManyRequestsError: With seconds until the lockout ends.
        """
        failures = await self._store.read_count(
            CredentialNamespace.OTP_ATTEMPTS,
            user_id,
            discriminator=_verify_counter(purpose),
        )
        if failures >= self._config.otp_max_verify_attempts:
            remaining = await self._store.remaining_ttl(
                CredentialNamespace.OTP_ATTEMPTS,
                user_id,
                discriminator=_verify_counter(purpose),
            )
            wait = remaining if remaining else self._config.otp_lockout_seconds
            raise TooManyRequestsError(
                f"Too many failed attempts. Please wait {wait} seconds.", wait
            )

    async def verify_code(self, user_id: str, code: str, purpose: OtpPurpose) -> bool:
        """Check a presented code against the stored one, consuming it.

        Args:
            user_id: Subject the code was issued to.
            code: Code presented by the caller.
            purpose: Purpose the code must have been issued for.

        Returns:
            True exactly once per issued code when it matches.

        Raises:
            TooManyRequestsError: If the user is locked out.
        """
        await self.ensure_not_locked(user_id, purpose)

        stored = await self._store.consume_once(
            CredentialNamespace.OTP, user_id, discriminator=purpose.value
        )
        if not tokens_match(code, stored):
            await self._store.increment_with_window(
                CredentialNamespace.OTP_ATTEMPTS,
                user_id,
                self._config.otp_lockout_seconds,
                discriminator=_verify_counter(purpose),
            )
            logger.warning(
                "OTP verification failed for user %s, purpose %s",
                user_id,
                purpose.value,
            )
            return False

        await self._store.delete(
            CredentialNamespace.OTP_ATTEMPTS,
            user_id,
            discriminator=_verify_counter(purpose),
        )
        logger.info("OTP verified for user %s, purpose %s", user_id, purpose.value)
        return True

    async def remaining_lifetime(self, user_id: str, purpose: OtpPurpose) -> int | None:
        """Seconds until the outstanding code expires, None if there is none."""
        return await self._store.remaining_ttl(
            CredentialNamespace.OTP, user_id, discriminator=purpose.value
        )

    # -------------------------------------------------------------------------
    # Password-change handoff token
    # -------------------------------------------------------------------------

    async def issue_verification_token(self, user_id: str) -> tuple[str, datetime]:
        """Issue the short-lived token proving a recent password check.

        Returns:
            Tuple of (token, expires_at).
        """
        ttl = self._config.verification_token_ttl_seconds
        token = generate_secure_token()
        await self._store.issue(CredentialNamespace.SESSION, user_id, token, ttl)
        return token, utc_now() + timedelta(seconds=ttl)

    async def check_verification_token(self, user_id: str, token: str) -> bool:
        """Whether token is the user's current handoff token. Does not consume."""
        stored = await self._store.read(CredentialNamespace.SESSION, user_id)
        return tokens_match(token, stored)

    async def clear_verification_token(self, user_id: str) -> None:
        """Drop the handoff token once the password change completes."""
        await self._store.delete(CredentialNamespace.SESSION, user_id)
