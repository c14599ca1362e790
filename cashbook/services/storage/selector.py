"""
Storage Provider Selector

Holds which backend is active and hands out the matching adapter.

DESIGN DECISION: The selection lives in a StorageSelector instance owned
by the composition root, not in a module-level variable. Two selectors
can run side by side (e.g. in tests) with different backends.

Switching does not migrate data: after set_storage_type(), reads see
whatever the newly selected backend already holds, possibly nothing.
"""

from typing import Callable, Optional, Union

import structlog

from cashbook.config import Settings, get_settings
from cashbook.models.storage import StorageType
from cashbook.services.storage.embedded import EmbeddedStorage
from cashbook.services.storage.interface import StorageProvider
from cashbook.services.storage.memory import InMemoryStorage
from cashbook.services.storage.mongo import MongoStorage


logger = structlog.get_logger(__name__)

ProviderFactory = Callable[[], StorageProvider]


def default_factories(settings: Settings) -> dict[StorageType, ProviderFactory]:
    """One factory per backend, bound to the given settings."""
    return {
        StorageType.MEMORY: InMemoryStorage,
        StorageType.EMBEDDED: lambda: EmbeddedStorage(settings.embedded),
        StorageType.MONGODB: lambda: MongoStorage(settings.mongodb),
    }


class StorageSelector:
    """
    Maps the active StorageType to an adapter.

    Adapters are built once per type and then reused, so the in-memory
    store keeps its data for as long as the selector lives.
    """

    def __init__(
        self,
        storage_type: Union[StorageType, str, None] = None,
        factories: Optional[dict[StorageType, ProviderFactory]] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        if storage_type is None:
            storage_type = settings.storage.storage_type
        self._storage_type = StorageType(storage_type)
        self._factories = dict(default_factories(settings))
        if factories:
            self._factories.update(factories)
        self._providers: dict[StorageType, StorageProvider] = {}

    def get_storage_type(self) -> StorageType:
        return self._storage_type

    def set_storage_type(self, storage_type: Union[StorageType, str]) -> None:
        """
        Select a backend for all subsequent get_provider() calls.

        Raises:
            ValueError: If the tag is not a known backend
        """
        new_type = StorageType(storage_type)
        if new_type != self._storage_type:
            logger.info(
                "storage_type_switched",
                from_backend=self._storage_type.value,
                to_backend=new_type.value,
            )
        self._storage_type = new_type

    def get_provider(self, storage_type: Union[StorageType, str, None] = None) -> StorageProvider:
        """The adapter for `storage_type`, or for the active backend if omitted."""
        key = self._storage_type if storage_type is None else StorageType(storage_type)
        if key not in self._providers:
            self._providers[key] = self._factories[key]()
        return self._providers[key]

    async def close(self) -> None:
        """Close every adapter built so far."""
        for provider in self._providers.values():
            await provider.close()
