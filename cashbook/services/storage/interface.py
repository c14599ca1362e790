"""
Abstract Storage Interface

DESIGN DECISION: Every backend implements the same interface.
This allows us to:
1. Swap MongoDB, SQLite and in-memory storage at runtime
2. Fall back to a simpler backend when a richer one is unavailable
3. Test the application layer against the in-memory store

CONTRACT:
- "Not found" is a normal outcome: lookups return None, updates and
  deletes return False. Nothing is raised for it.
- A network backend normalizes driver failures (connection refused,
  timeouts) to the same neutral results. A local backend whose file
  cannot be used raises StorageError instead.
- create_* has no neutral result, so it raises StorageError on failure.
- Native driver exceptions never escape; they become StorageError.
- Connection checks never raise; they return a typed StorageResult.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Optional, Union

from cashbook.models.finance import (
    Category,
    EntityId,
    Transaction,
    TransactionCreate,
    TransactionType,
    TransactionUpdate,
)
from cashbook.models.storage import StorageResult, StorageType


class StorageProvider(ABC):
    """
    Abstract interface for cashbook storage.

    Any backend (MongoDB, SQLite, in-memory) must implement these methods.
    """

    storage_type: StorageType

    # -------------------------------------------------------------------------
    # Connection lifecycle
    # -------------------------------------------------------------------------

    @abstractmethod
    async def check_connection(self) -> StorageResult:
        """
        Cheap reachability check.

        Returns:
            A StorageResult; never raises.
        """
        pass

    @abstractmethod
    async def prepare_database(self) -> StorageResult:
        """
        Idempotent setup: create schema/collections and seed default
        categories when the category set is empty.

        Safe to call repeatedly. A failed attempt must leave nothing a
        later attempt cannot repair.
        """
        pass

    async def test_connection(self) -> bool:
        """Boolean view of check_connection()."""
        return (await self.check_connection()).ok

    async def initialize_database(self) -> bool:
        """Boolean view of prepare_database()."""
        return (await self.prepare_database()).ok

    async def close(self) -> None:
        """Release any cached connection. Default: nothing to release."""
        return None

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_all_categories(self) -> list[Category]:
        pass

    @abstractmethod
    async def get_category_by_id(self, category_id: EntityId) -> Optional[Category]:
        """
        Returns:
            The category if found, None otherwise
        """
        pass

    @abstractmethod
    async def create_category(self, name: str) -> Category:
        """
        Create a category and return it with its assigned id.

        Raises:
            StorageError: If the backend rejects the write
        """
        pass

    @abstractmethod
    async def update_category(self, category_id: EntityId, name: str) -> bool:
        """
        Rename a category.

        Returns:
            True if a category was updated, False if it doesn't exist
        """
        pass

    @abstractmethod
    async def delete_category(self, category_id: EntityId) -> bool:
        """
        Delete a category. Referential checks belong to the caller.

        Returns:
            True if deleted, False if it doesn't exist
        """
        pass

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_all_transactions(self) -> list[Transaction]:
        """All transactions, newest date first."""
        pass

    @abstractmethod
    async def get_transactions_by_type(self, transaction_type: TransactionType) -> list[Transaction]:
        """Transactions of one type, newest date first."""
        pass

    @abstractmethod
    async def get_transactions_by_date_range(
        self,
        start_date: Union[date, str],
        end_date: Union[date, str],
    ) -> list[Transaction]:
        """
        Transactions with start_date <= date <= end_date, newest first.

        Both bounds are inclusive and accept a date or an ISO date string.
        """
        pass

    @abstractmethod
    async def create_transaction(self, transaction: Union[TransactionCreate, dict]) -> Transaction:
        """
        Store a new transaction, assigning its id and both timestamps.

        Raises:
            StorageError: If the backend rejects the write
        """
        pass

    @abstractmethod
    async def update_transaction(
        self,
        transaction_id: EntityId,
        updates: Union[TransactionUpdate, dict],
    ) -> bool:
        """
        Merge `updates` into the stored transaction and refresh updated_at.

        Returns:
            True if updated, False if the transaction doesn't exist
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: EntityId) -> bool:
        """
        Returns:
            True if deleted, False if the transaction doesn't exist
        """
        pass


def as_date(value: Union[date, str]) -> date:
    """Accept a date or an ISO date string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value)


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class SchemaSetupError(StorageError):
    """Backend is reachable but its schema could not be prepared."""
    pass


class CapabilityMissingError(StorageError):
    """The running environment cannot reach this backend at all."""
    pass
