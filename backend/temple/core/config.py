"""Application configuration loaded from environment variables.

Settings for database, credential store (Redis), donation workflow, OTP abuse
limits, and authentication. Uses pydantic-settings for validation and .env
file support.
"""

from typing import Literal

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Known insecure default password that must not be used in production
_INSECURE_DEFAULT_PASSWORD = "temple_dev_password"  # nosec B105

# Minimum length for AUTH_SECRET in production (256 bits = 32 bytes)
_MIN_AUTH_SECRET_LENGTH = 32


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_host: str = "localhost"
    database_port: int = 5432
    database_name: str = "temple"
    database_user: str = "temple_user"
    database_password: str = _INSECURE_DEFAULT_PASSWORD

    # Connection pool. Each request holds one connection for its lifetime;
    # the statement timeout bounds any single donation query.
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_pool_timeout_seconds: float = 10.0
    database_statement_timeout_ms: int = 5000

    # API
    api_host: str = "0.0.0.0"  # nosec B104
    api_port: int = 8000
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Application
    environment: str = "development"
    log_level: str = "INFO"

    # Credential store
    # No REDIS_URL and no REDIS_HOST means the store runs disabled: writes are
    # no-ops and reads return nothing. "memory" keeps credentials in-process
    # (single worker only).
    credential_store_backend: Literal["redis", "memory"] = "redis"
    redis_url: str | None = None
    redis_host: str | None = None
    redis_port: int = 6379
    redis_password: SecretStr = SecretStr("")
    redis_tls: bool = False
    redis_socket_timeout: float = 2.0
    # Seconds the store stays disabled after a transport error before the
    # next command is allowed to try the connection again
    redis_retry_after_seconds: float = 5.0

    # Donations
    donation_payment_window_minutes: int = 10

    # OTP
    otp_ttl_seconds: int = 300
    verification_token_ttl_seconds: int = 180
    otp_max_requests_per_hour: int = 5
    otp_max_verify_attempts: int = 5
    otp_lockout_seconds: int = 900

    # Authentication (token issuance lives in the auth service; we only verify)
    auth_secret: SecretStr = SecretStr("")
    auth_issuer: str = "temple-api"
    auth_audience: str = "temple-api"
    auth_cookie_name: str = "temple.session-token"

    # Rate Limiting
    rate_limit_donation_create: str = "5/minute"
    rate_limit_proof_upload: str = "10/minute"
    rate_limit_enabled: bool = True  # Disable for testing

    @property
    def database_url(self) -> str:
        """Async database URL for SQLAlchemy."""
        return (
            f"postgresql+asyncpg://{self.database_user}:{self.database_password}"
            f"@{self.database_host}:{self.database_port}/{self.database_name}"
        )

    @property
    def redis_configured(self) -> bool:
        """Whether any Redis connection target is configured."""
        return bool(self.redis_url or self.redis_host)

    @model_validator(mode="after")
    def check_production_security(self) -> "Settings":
        """Validate configuration invariants.

        Checks:
        - Payment window, OTP limits and pool sizing must be positive (all
          environments)
        - CORS must not use wildcard origin (incompatible with credentials)
        - Database password must not be the default in production
        - AUTH_SECRET must be set and >= 32 chars in production
        """
        if self.donation_payment_window_minutes <= 0:
            msg = (
                "DONATION_PAYMENT_WINDOW_MINUTES must be positive. "
                f"Got: {self.donation_payment_window_minutes}"
            )
            raise ValueError(msg)

        for name in (
            "otp_ttl_seconds",
            "verification_token_ttl_seconds",
            "otp_max_requests_per_hour",
            "otp_max_verify_attempts",
            "otp_lockout_seconds",
            "database_pool_size",
            "database_pool_timeout_seconds",
            "database_statement_timeout_ms",
        ):
            if getattr(self, name) <= 0:
                msg = f"{name.upper()} must be positive. Got: {getattr(self, name)}"
                raise ValueError(msg)

        if "*" in self.allowed_origins:
            msg = (
                "ALLOWED_ORIGINS must not contain '*' (wildcard). "
                "Session cookies are incompatible with wildcard CORS origins."
            )
            raise ValueError(msg)

        if self.environment == "production":
            if self.database_password == _INSECURE_DEFAULT_PASSWORD:
                msg = (
                    "Cannot use default database password in production. "
                    "Set DATABASE_PASSWORD environment variable to a secure value."
                )
                raise ValueError(msg)

            secret_value = self.auth_secret.get_secret_value()
            if len(secret_value) < _MIN_AUTH_SECRET_LENGTH:
                msg = (
                    f"AUTH_SECRET must be at least {_MIN_AUTH_SECRET_LENGTH} "
                    "characters in production."
                )
                raise ValueError(msg)

        return self


settings = Settings()
