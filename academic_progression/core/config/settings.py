# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

Settings are loaded from environment variables with sensible defaults.
The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from academic_progression.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> settings.progression.final_period_position
    3
"""

from functools import lru_cache
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Tenant database configuration.

    Attributes:
        user: PostgreSQL username.
        password: PostgreSQL password.
        host: Database host address.
        port: Database port number.
        database: Database name.
        url_override: Full connection URL; wins over the components when set.
        pool_size: Connection pool size.
        max_overflow: Maximum overflow connections.
        echo: Echo SQL statements.
    """

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        extra="ignore",
    )

    user: str = "progression"
    password: SecretStr = SecretStr("progression_password")
    host: str = "localhost"
    port: int = 5432
    database: str = "progression"
    url_override: str | None = Field(default=None, validation_alias="DATABASE_URL")
    pool_size: int = 10
    max_overflow: int = 20
    echo: bool = False

    @property
    def url(self) -> str:
        """Build the async database URL from components."""
        if self.url_override:
            return self.url_override
        pwd = self.password.get_secret_value()
        return f"postgresql+asyncpg://{self.user}:{pwd}@{self.host}:{self.port}/{self.database}"


class ProgressionSettings(BaseSettings):
    """Global defaults for end-of-cycle promotion.

    Per-school values stored on the school row override the mode and
    pass threshold.

    Attributes:
        default_mode: Promotion policy when a school has none configured.
        default_pass_threshold: Minimum aggregated percentage in threshold mode.
        final_period_position: Position of the last period of a cycle.
        terminal_level_name: Reserved name of the graduation class.
        allow_legacy_fallback: Derive classes/students from references when
            the tenant-scoped queries come back empty.
    """

    model_config = SettingsConfigDict(
        env_prefix="PROGRESSION_",
        extra="ignore",
    )

    default_mode: Literal["automatic", "threshold"] = "automatic"
    default_pass_threshold: float = Field(default=50.0, ge=0.0, le=100.0)
    final_period_position: int = Field(default=3, ge=1)
    terminal_level_name: str = "Graduated"
    allow_legacy_fallback: bool = True


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        database: Database settings.
        progression: Promotion defaults.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    progression: ProgressionSettings = Field(default_factory=ProgressionSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production with insecure defaults.
        """
        if self.environment == "production":
            if self.database.password.get_secret_value() == "progression_password":
                raise ValueError(
                    "Database password must be changed from default in production. "
                    "Set DATABASE_PASSWORD environment variable."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    """
    get_settings.cache_clear()
