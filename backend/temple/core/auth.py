"""Caller identity for the donation core.

Access tokens are issued by the auth service. Here we only decode them into a
Principal (user id, email, role). ``create_jwt`` exists for that service and
for tests.
"""

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import jwt

from temple.core.config import settings

# Default JWT expiration: 30 minutes (donor idle timeout)
_DEFAULT_EXPIRATION = timedelta(minutes=30)

ROLE_SUPER_ADMIN = "SUPER_ADMIN"
ROLE_SUB_ADMIN = "SUB_ADMIN"
ROLE_USER = "USER"

ADMIN_ROLES = frozenset({ROLE_SUPER_ADMIN, ROLE_SUB_ADMIN})


@dataclass(frozen=True)
class Principal:
    """An authenticated caller.

    Attributes:
        user_id: The user's id (JWT sub claim).
        email: Email claim, used to match guest donations made with it.
        role: Role claim.
    """

    user_id: uuid.UUID
    email: str | None = None
    role: str = ROLE_USER

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def create_jwt(
    *,
    user_id: str,
    secret: str,
    email: str | None = None,
    role: str = ROLE_USER,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a signed access token with standard claims."""
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "email": email,
        "role": role,
        "aud": settings.auth_audience,
        "iss": settings.auth_issuer,
        "exp": now + (expires_delta or _DEFAULT_EXPIRATION),
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def decode_principal(token: str) -> Principal | None:
    """Decode and verify an access token.

    Returns:
        Principal, or None for any invalid, expired, or malformed token.
        Callers never learn why a token was rejected.
    """
    try:
        payload = jwt.decode(
            token,
            settings.auth_secret.get_secret_value(),
            algorithms=["HS256"],
            audience=settings.auth_audience,
            issuer=settings.auth_issuer,
        )
        user_id = uuid.UUID(payload["sub"])
    except (jwt.InvalidTokenError, KeyError, ValueError, TypeError):
        return None

    role = payload.get("role") or ROLE_USER
    return Principal(user_id=user_id, email=payload.get("email"), role=role)
