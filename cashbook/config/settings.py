"""
Configuration Management for Cashbook

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The composition root reads these once and passes them down, so the
storage adapters never depend on module-level state of their own.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_MONGODB_URI = "mongodb://localhost:27017"


class StorageSettings(BaseSettings):
    """Backend selection and fallback behaviour."""

    model_config = SettingsConfigDict(
        env_prefix="STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    storage_type: str = Field(
        default="embedded",
        description="Initial backend: memory, embedded or mongodb"
    )
    fallback_cascade: bool = Field(
        default=True,
        description="Try every remaining backend on failure instead of a single downgrade"
    )

    @field_validator('storage_type')
    @classmethod
    def validate_storage_type(cls, v: str) -> str:
        allowed = {"memory", "embedded", "mongodb"}
        value = v.strip().lower()
        if value not in allowed:
            raise ValueError(f"Unknown storage type: {v}. Allowed: {sorted(allowed)}")
        return value


class EmbeddedStoreSettings(BaseSettings):
    """Embedded (SQLite file) store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="EMBEDDED_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    path: str = Field(
        default="cashbook.db",
        description="Path of the SQLite database file"
    )
    schema_version: int = Field(
        default=1,
        ge=1,
        description="Schema version; bumping it only adds tables/indexes"
    )
    timeout_seconds: float = Field(
        default=5.0,
        gt=0,
        description="How long a connection waits on a locked database"
    )


class MongoSettings(BaseSettings):
    """Document database configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MONGODB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    uri: str = Field(
        default=DEFAULT_MONGODB_URI,
        description="MongoDB connection string"
    )
    db_name: str = Field(
        default="finance_app",
        description="Database name"
    )
    server_selection_timeout_ms: int = Field(
        default=3000,
        ge=100,
        description="Driver server selection timeout"
    )
    connect_attempts: int = Field(
        default=2,
        ge=1,
        le=10,
        description="How many times the initial connect is attempted"
    )

    @property
    def is_configured(self) -> bool:
        """True when a non-default connection string was provided."""
        return bool(self.uri) and self.uri != DEFAULT_MONGODB_URI


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Root log level"
    )

    # Dashboard
    recent_transactions_count: int = Field(
        default=5,
        ge=1,
        le=100,
        description="How many transactions the dashboard lists as recent"
    )
    currency_symbol: str = Field(
        default="Rs.",
        max_length=5,
        description="Prefix used when rendering amounts"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def embedded(self) -> EmbeddedStoreSettings:
        return EmbeddedStoreSettings()

    @property
    def mongodb(self) -> MongoSettings:
        return MongoSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings(settings: Optional[Settings] = None) -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    {setting_name}_error entries for the groups that failed.
    """
    results = {}

    settings = settings or get_settings()

    for name in ("storage", "embedded", "mongodb", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
