"""
In-Memory Storage Implementation

The backend of last resort: no files, no network, nothing that can
fail to connect. Data lives as long as the store instance (the
selector keeps one per process) and is gone on restart.

Ids come from a single generator shared by both collections: the next
id is one greater than the largest id held in either collection.
"""

from datetime import date
from typing import Optional, Union

import structlog

from cashbook.models.finance import (
    DEFAULT_CATEGORIES,
    Category,
    EntityId,
    Transaction,
    TransactionCreate,
    TransactionType,
    TransactionUpdate,
    as_create,
    as_patch,
    merge_transaction,
    sample_transactions,
    sort_by_date_desc,
    utc_now,
)
from cashbook.models.storage import FailureReason, StorageResult, StorageType
from cashbook.services.storage.interface import StorageProvider, as_date


logger = structlog.get_logger(__name__)


class InMemoryStorage(StorageProvider):
    """
    Process-local storage held in two lists.

    Returned models are copies; callers cannot mutate stored state.
    """

    storage_type = StorageType.MEMORY

    def __init__(self, seed: bool = True):
        self._categories: list[Category] = []
        self._transactions: list[Transaction] = []
        self._seed = seed
        self._seeded = False

    def _next_id(self) -> int:
        ids = [c.id for c in self._categories] + [t.id for t in self._transactions]
        return max([0] + [i for i in ids if isinstance(i, int)]) + 1

    def _find_category(self, category_id: EntityId) -> Optional[int]:
        for index, category in enumerate(self._categories):
            if category.id == category_id:
                return index
        return None

    def _find_transaction(self, transaction_id: EntityId) -> Optional[int]:
        for index, transaction in enumerate(self._transactions):
            if transaction.id == transaction_id:
                return index
        return None

    async def check_connection(self) -> StorageResult:
        return StorageResult.success(self.storage_type, "In-memory storage is always available")

    async def prepare_database(self) -> StorageResult:
        """Seed default categories and sample transactions once, only if empty."""
        try:
            if self._seed and not self._seeded and not self._categories and not self._transactions:
                created = [await self.create_category(name) for name in DEFAULT_CATEGORIES]
                for payload in sample_transactions([c.id for c in created]):
                    await self.create_transaction(payload)
                logger.info("memory_storage_seeded", categories=len(created))
            self._seeded = True
            return StorageResult.success(self.storage_type)
        except Exception as e:
            logger.error("memory_storage_seed_failed", error=str(e))
            return StorageResult.failure(
                self.storage_type,
                FailureReason.SCHEMA_SETUP_FAILED,
                f"Failed to seed in-memory storage: {e}",
            )

    # Categories

    async def get_all_categories(self) -> list[Category]:
        return [c.model_copy() for c in self._categories]

    async def get_category_by_id(self, category_id: EntityId) -> Optional[Category]:
        index = self._find_category(category_id)
        return self._categories[index].model_copy() if index is not None else None

    async def create_category(self, name: str) -> Category:
        category = Category(id=self._next_id(), name=name)
        self._categories.append(category)
        return category.model_copy()

    async def update_category(self, category_id: EntityId, name: str) -> bool:
        index = self._find_category(category_id)
        if index is None:
            logger.info("category_not_found", backend=self.storage_type.value, category_id=category_id)
            return False
        self._categories[index] = Category(id=category_id, name=name)
        return True

    async def delete_category(self, category_id: EntityId) -> bool:
        index = self._find_category(category_id)
        if index is None:
            logger.info("category_not_found", backend=self.storage_type.value, category_id=category_id)
            return False
        del self._categories[index]
        return True

    # Transactions

    async def get_all_transactions(self) -> list[Transaction]:
        return [t.model_copy() for t in sort_by_date_desc(self._transactions)]

    async def get_transactions_by_type(self, transaction_type: TransactionType) -> list[Transaction]:
        transaction_type = TransactionType(transaction_type)
        return [
            t.model_copy()
            for t in sort_by_date_desc(self._transactions)
            if t.type == transaction_type
        ]

    async def get_transactions_by_date_range(
        self,
        start_date: Union[date, str],
        end_date: Union[date, str],
    ) -> list[Transaction]:
        start, end = as_date(start_date), as_date(end_date)
        return [
            t.model_copy()
            for t in sort_by_date_desc(self._transactions)
            if start <= t.date <= end
        ]

    async def create_transaction(self, transaction: Union[TransactionCreate, dict]) -> Transaction:
        payload = as_create(transaction)
        now = utc_now()
        stored = Transaction(
            **payload.model_dump(),
            id=self._next_id(),
            created_at=now,
            updated_at=now,
        )
        self._transactions.append(stored)
        return stored.model_copy()

    async def update_transaction(
        self,
        transaction_id: EntityId,
        updates: Union[TransactionUpdate, dict],
    ) -> bool:
        patch = as_patch(updates)
        index = self._find_transaction(transaction_id)
        if index is None:
            logger.info("transaction_not_found", backend=self.storage_type.value, transaction_id=transaction_id)
            return False
        self._transactions[index] = merge_transaction(self._transactions[index], patch)
        return True

    async def delete_transaction(self, transaction_id: EntityId) -> bool:
        index = self._find_transaction(transaction_id)
        if index is None:
            logger.info("transaction_not_found", backend=self.storage_type.value, transaction_id=transaction_id)
            return False
        del self._transactions[index]
        return True
