"""Services package."""

from cashbook.services.finance import (
    CategoryInUseError,
    FinanceError,
    FinanceService,
    StorageOperationError,
    UnknownCategoryError,
)
from cashbook.services.storage import (
    CapabilityMissingError,
    EmbeddedStorage,
    InMemoryStorage,
    MongoStorage,
    SchemaSetupError,
    StorageConnectionError,
    StorageError,
    StorageProvider,
    StorageSelector,
)

__all__ = [
    # Finance service
    "CategoryInUseError",
    "FinanceError",
    "FinanceService",
    "StorageOperationError",
    "UnknownCategoryError",
    # Storage services
    "CapabilityMissingError",
    "EmbeddedStorage",
    "InMemoryStorage",
    "MongoStorage",
    "SchemaSetupError",
    "StorageConnectionError",
    "StorageError",
    "StorageProvider",
    "StorageSelector",
]
