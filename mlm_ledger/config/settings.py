"""
Application settings.

Loads configuration from environment variables using pydantic-settings.
"""

from datetime import UTC, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


SUPPORTED_DATABASE_SCHEMES = ("postgresql+asyncpg://", "sqlite+aiosqlite://")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    database_url: str = "sqlite+aiosqlite:///./ledger.db"
    database_echo: bool = False

    # Security
    secret_key: str = Field(
        default="change-me",
        description="Shared secret used to verify bearer tokens",
    )

    # Application
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"
    log_file: str = "logs/ledger.log"

    # HTTP API
    api_host: str = "0.0.0.0"
    api_port: int = Field(
        default=8080, ge=1, le=65535, description="HTTP API port"
    )

    # Month boundaries for activation audits and purges
    ledger_timezone: str = Field(
        default="UTC",
        description="IANA timezone used to compute calendar month boundaries",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Only async drivers are supported."""
        if not v.startswith(SUPPORTED_DATABASE_SCHEMES):
            raise ValueError(
                "DATABASE_URL must use an async driver: "
                "postgresql+asyncpg:// or sqlite+aiosqlite://"
            )
        return v

    @field_validator("ledger_timezone")
    @classmethod
    def validate_ledger_timezone(cls, v: str) -> str:
        """Validate that the timezone is a known IANA name."""
        if v.upper() == "UTC":
            return "UTC"
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown LEDGER_TIMEZONE: {v}") from e
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize log level name."""
        level = v.upper()
        if level not in ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid LOG_LEVEL: {v}")
        return level

    @model_validator(mode="after")
    def validate_production(self) -> "Settings":
        """Validate production-specific requirements."""
        if self.environment == "production":
            if self.debug:
                raise ValueError(
                    "DEBUG must be False in production environment. "
                    "Set DEBUG=false in your .env file."
                )

            if not self.secret_key or len(self.secret_key) < 32:
                raise ValueError(
                    "SECRET_KEY must be at least 32 characters in "
                    "production. Generate one with: openssl rand -hex 32"
                )

            if self.database_url.startswith("sqlite"):
                logger.warning(
                    "DATABASE_URL points at SQLite in production. "
                    "Row locks are not enforced by SQLite."
                )

        return self

    @property
    def tzinfo(self) -> tzinfo:
        """Timezone object for month boundary calculations."""
        if self.ledger_timezone == "UTC":
            return UTC
        return ZoneInfo(self.ledger_timezone)


settings = Settings()
