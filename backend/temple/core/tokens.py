"""Token, identifier, and deadline helpers shared by the credential and donation code.

All randomness comes from the `secrets` CSPRNG. Nothing here touches storage.
"""

import hashlib
import hmac
import secrets
import string
import time
from datetime import UTC, datetime, timedelta

_BASE36_ALPHABET = string.digits + string.ascii_uppercase

_OTP_DIGITS = 6

# Random bytes per session/refresh token; hex-encoded to 64 characters
_SECURE_TOKEN_BYTES = 32


def utc_now() -> datetime:
    """Current time as an aware UTC datetime.

    Services call this instead of datetime.now() so tests can move the clock.
    """
    return datetime.now(UTC)


def to_base36(value: int) -> str:
    """Encode a non-negative integer in upper-case base 36."""
    if value < 0:
        raise ValueError("value must be non-negative")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[rem])
    return "".join(reversed(digits))


def random_base36(length: int) -> str:
    """Random upper-case base 36 string of the given length."""
    return "".join(secrets.choice(_BASE36_ALPHABET) for _ in range(length))


def generate_public_donation_id() -> str:
    """Human-facing donation id: DON-<base36 epoch millis><4 random chars>.

    The time component keeps ids increasing across creations; the suffix
    separates donations created in the same millisecond.
    """
    millis = time.time_ns() // 1_000_000
    return f"DON-{to_base36(millis)}{random_base36(4)}"


def generate_receipt_number(verified_at: datetime) -> str:
    """Receipt number namespaced by the verification year.

    Args:
        verified_at: The instant of verification (not of creation).

    Returns:
        String like "RCPT-2026-7KQ2ZD".
    """
    return f"RCPT-{verified_at.year}-{random_base36(6)}"


def generate_upload_token() -> str:
    """Single-use bearer token handed to a guest donor."""
    return secrets.token_urlsafe(32)


def generate_otp() -> str:
    """Zero-padded 6-digit numeric one-time code."""
    return f"{secrets.randbelow(10**_OTP_DIGITS):0{_OTP_DIGITS}d}"


def generate_secure_token() -> str:
    """Opaque hex token for session handoff and refresh tokens."""
    return secrets.token_hex(_SECURE_TOKEN_BYTES)


def hash_token(token: str) -> str:
    """SHA-256 hex digest of a token, for storing refresh tokens at rest."""
    return hashlib.sha256(token.encode()).hexdigest()


def tokens_match(presented: str | None, expected: str | None) -> bool:
    """Constant-time comparison that treats a missing side as a mismatch."""
    if not presented or not expected:
        return False
    return hmac.compare_digest(presented.encode(), expected.encode())


def deadline_from(start: datetime, window: timedelta) -> datetime:
    """Fixed deadline: start + window."""
    return start + window


def is_past_deadline(deadline: datetime, now: datetime | None = None) -> bool:
    """True once `now` is strictly after `deadline`.

    Naive datetimes (as some drivers return them) are treated as UTC.
    """
    if deadline.tzinfo is None:
        deadline = deadline.replace(tzinfo=UTC)
    return (now or utc_now()) > deadline
