"""
Storage Services Package

Provides the abstract storage interface, its three implementations
(in-memory, embedded SQLite, MongoDB) and the selector that picks the
active one.
"""

from cashbook.services.storage.interface import (
    CapabilityMissingError,
    SchemaSetupError,
    StorageConnectionError,
    StorageError,
    StorageProvider,
)
from cashbook.services.storage.memory import InMemoryStorage
from cashbook.services.storage.embedded import EmbeddedStorage
from cashbook.services.storage.mongo import MongoStorage, network_available
from cashbook.services.storage.selector import StorageSelector, default_factories

__all__ = [
    # Interface
    "StorageProvider",
    # Exceptions
    "CapabilityMissingError",
    "SchemaSetupError",
    "StorageConnectionError",
    "StorageError",
    # Implementations
    "EmbeddedStorage",
    "InMemoryStorage",
    "MongoStorage",
    "network_available",
    # Selection
    "StorageSelector",
    "default_factories",
]
