"""Configuration package."""

from cashbook.config.settings import (
    DEFAULT_MONGODB_URI,
    AppSettings,
    EmbeddedStoreSettings,
    MongoSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "DEFAULT_MONGODB_URI",
    "AppSettings",
    "EmbeddedStoreSettings",
    "MongoSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
