"""Application configuration."""

import base64
from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Minimum entropy for secrets (measured by character diversity)
MIN_SECRET_UNIQUE_CHARS = 16

# Key generation command for documentation (split for line length)
KEY_GEN_CMD = (
    'python -c "import secrets,base64;'
    'print(base64.urlsafe_b64encode(secrets.token_bytes(32)).decode())"'
)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "ERP Two-Factor API"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"

    # Database (required - no default for security)
    database_url: str = Field(
        description="PostgreSQL connection URL. Must be set via environment variable."
    )
    database_pool_size: int = 5
    database_max_overflow: int = 10

    # Optional Redis backend for distributed rate limiting
    redis_url: str | None = None

    # Security - Encryption of TOTP secrets at rest
    # Primary encryption key (current key for new encryptions)
    encryption_key: str = Field(min_length=32)
    # Legacy keys for decryption during key rotation (comma-separated, oldest to newest)
    encryption_key_legacy: str = ""

    # Security - JWT
    jwt_secret: str = Field(min_length=32)
    jwt_algorithm: str = "HS256"
    jwt_expiration_hours: int = 1
    two_factor_challenge_minutes: int = 5
    two_factor_reset_minutes: int = 60

    # Two-factor authentication
    two_factor_issuer: str = "ERP"
    totp_valid_window: int = 2  # +/- steps (2 = +/-60s)
    backup_code_count: int = 10
    backup_code_length: int = 8
    max_failed_attempts: int = 5
    lockout_duration_minutes: int = 15
    # Keep the secret after disable so the user can re-enable without re-scanning
    two_factor_purge_on_disable: bool = False

    # QR rendering
    qr_width: int = 200
    qr_margin: int = 2

    # CORS settings
    cors_origins: str = "http://localhost:3000"  # Comma-separated list

    # Trusted proxies for rate limiting (comma-separated IP/CIDR ranges)
    trusted_proxies: str = ""

    # Rate limiting settings (requests per minute)
    rate_limit_enabled: bool = True
    rate_limit_default: int = 100
    rate_limit_two_factor: int = 10

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        """Validate settings for security requirements."""
        # Security: Prevent debug mode in production
        if self.environment == "production" and self.debug:
            raise ValueError(
                "DEBUG mode cannot be enabled in production environment. "
                "This would expose API documentation and detailed error messages."
            )

        url = self.database_url

        if url.startswith("sqlite"):
            # SQLite is only used for local development and tests
            if self.environment == "production":
                raise ValueError("DATABASE_URL must be a PostgreSQL URL in production")
        elif not url.startswith(("postgresql://", "postgres://", "postgresql+asyncpg://")):
            raise ValueError(
                "DATABASE_URL must be a PostgreSQL URL starting with 'postgresql://' or 'postgres://'"
            )

        if self.max_failed_attempts < 1:
            raise ValueError("MAX_FAILED_ATTEMPTS must be at least 1")

        if self.backup_code_length < 6:
            raise ValueError("BACKUP_CODE_LENGTH must be at least 6 characters")

        if self.environment == "production":
            if len(set(self.jwt_secret)) < MIN_SECRET_UNIQUE_CHARS:
                raise ValueError(
                    f"JWT_SECRET must contain at least {MIN_SECRET_UNIQUE_CHARS} unique characters "
                    "for sufficient entropy. Use a cryptographically random value."
                )

            try:
                decoded_key = base64.urlsafe_b64decode(self.encryption_key)
            except ValueError:
                decoded_key = b""
            if len(decoded_key) != 32:
                raise ValueError(
                    "ENCRYPTION_KEY must be a base64-encoded 32-byte key. "
                    f"Generate with: {KEY_GEN_CMD}"
                )

        return self

    @property
    def async_database_url(self) -> str:
        """Get async database URL for SQLAlchemy.

        Uses asyncpg for PostgreSQL (converting sslmode to ssl) and
        aiosqlite for SQLite.
        """
        url = self.database_url
        if url.startswith("sqlite://"):
            return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return url.replace("sslmode=", "ssl=")

    @property
    def is_sqlite(self) -> bool:
        """Whether the configured database is SQLite."""
        return self.database_url.startswith("sqlite")

    @property
    def cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def trusted_proxies_list(self) -> list[str]:
        """Get trusted proxies as a list."""
        if not self.trusted_proxies:
            return []
        return [proxy.strip() for proxy in self.trusted_proxies.split(",") if proxy.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
