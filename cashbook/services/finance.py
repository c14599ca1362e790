"""
Finance Service (application data layer)

Holds the in-memory copy of categories and transactions the UI reads,
and writes every change through the active storage backend first.

GUARANTEES:
- Local state only changes after the backend accepted the write
- Summary and recent list are recomputed after every change
- A category referenced by any transaction is never deleted
- Backend failures surface as FinanceError, never as driver exceptions
"""

from datetime import date
from typing import Awaitable, Optional, TypeVar, Union

import structlog

from cashbook.audit import AuditLogger
from cashbook.models.audit import AuditEventBuilder
from cashbook.models.finance import (
    Category,
    EntityId,
    FinanceSummary,
    Transaction,
    TransactionCreate,
    TransactionType,
    TransactionUpdate,
    as_create,
    as_patch,
    calculate_summary,
    recent_transactions,
    sort_by_date_desc,
)
from cashbook.models.storage import StorageType
from cashbook.services.storage import StorageProvider, StorageSelector
from cashbook.services.storage.interface import as_date


logger = structlog.get_logger(__name__)

T = TypeVar("T")


def same_id(a: EntityId, b: EntityId) -> bool:
    """Ids compare by text: SQLite accepts "7" for row 7, MongoDB ids are hex strings."""
    return str(a).strip() == str(b).strip()


class FinanceError(Exception):
    """Base exception for finance operations the UI should report."""
    pass


class CategoryInUseError(FinanceError):
    """Attempted to delete a category that transactions still reference."""

    def __init__(self, category_id: EntityId, usage_count: int):
        self.category_id = category_id
        self.usage_count = usage_count
        super().__init__(
            f"Cannot delete category that is in use ({usage_count} transaction(s))"
        )


class UnknownCategoryError(FinanceError):
    """A transaction referenced a category that does not exist."""
    pass


class StorageOperationError(FinanceError):
    """The storage backend failed unexpectedly."""
    pass


class FinanceService:
    """
    Write-through cache of the cashbook over the active backend.

    Call load() after the storage backend is connected, and again after
    switching backends.
    """

    def __init__(
        self,
        selector: StorageSelector,
        audit_logger: Optional[AuditLogger] = None,
        recent_count: int = 5,
    ):
        self._selector = selector
        self._audit = audit_logger or AuditLogger()
        self._recent_count = recent_count
        self._categories: list[Category] = []
        self._transactions: list[Transaction] = []
        self._summary = FinanceSummary()
        self._recent: list[Transaction] = []

    @property
    def provider(self) -> StorageProvider:
        return self._selector.get_provider()

    @property
    def storage_type(self) -> StorageType:
        return self._selector.get_storage_type()

    @property
    def categories(self) -> list[Category]:
        return list(self._categories)

    @property
    def transactions(self) -> list[Transaction]:
        return list(self._transactions)

    @property
    def summary(self) -> FinanceSummary:
        return self._summary

    @property
    def recent_transactions(self) -> list[Transaction]:
        return list(self._recent)

    def _refresh_derived(self) -> None:
        self._transactions = sort_by_date_desc(self._transactions)
        self._summary = calculate_summary(self._transactions)
        self._recent = recent_transactions(self._transactions, self._recent_count)

    async def _run(self, operation: str, awaitable: Awaitable[T]) -> T:
        """Await a backend call, converting unexpected failures to StorageOperationError."""
        try:
            return await awaitable
        except Exception as e:
            logger.error("finance_operation_failed", operation=operation, error=str(e))
            self._audit.log_error(
                error_type=operation,
                error_message=str(e),
                details={"backend": self.storage_type.value},
            )
            raise StorageOperationError(f"Could not {operation}: {e}") from e

    def _category_exists(self, category_id: EntityId) -> bool:
        return any(same_id(c.id, category_id) for c in self._categories)

    async def load(self) -> None:
        """Replace local state with what the active backend holds."""
        provider = self.provider
        self._categories = await self._run("load categories", provider.get_all_categories())
        self._transactions = await self._run("load transactions", provider.get_all_transactions())
        self._refresh_derived()
        logger.info(
            "finance_data_loaded",
            backend=self.storage_type.value,
            categories=len(self._categories),
            transactions=len(self._transactions),
        )

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def add_transaction(self, transaction: Union[TransactionCreate, dict]) -> Transaction:
        """
        Record a new transaction.

        Raises:
            UnknownCategoryError: If category_id is not a loaded category
            StorageOperationError: If the backend rejects the write
        """
        payload = as_create(transaction)
        if not self._category_exists(payload.category_id):
            raise UnknownCategoryError(f"Category not found: {payload.category_id}")

        created = await self._run("add transaction", self.provider.create_transaction(payload))
        self._transactions.append(created)
        self._refresh_derived()
        self._audit.log(AuditEventBuilder.transaction_created(
            transaction_id=created.id,
            transaction_type=created.type.label,
            amount=str(created.amount),
        ))
        return created

    async def update_transaction(
        self,
        transaction_id: EntityId,
        updates: Union[TransactionUpdate, dict],
    ) -> bool:
        """
        Merge updates into a transaction.

        Returns False if the transaction doesn't exist.
        """
        patch = as_patch(updates)
        if "category_id" in patch and not self._category_exists(patch["category_id"]):
            raise UnknownCategoryError(f"Category not found: {patch['category_id']}")

        provider = self.provider
        updated = await self._run(
            "update transaction",
            provider.update_transaction(transaction_id, TransactionUpdate(**patch)),
        )
        if not updated:
            return False

        # Re-read so local timestamps match what the backend stored
        self._transactions = await self._run("reload transactions", provider.get_all_transactions())
        self._refresh_derived()
        self._audit.log(AuditEventBuilder.transaction_updated(transaction_id, sorted(patch)))
        return True

    async def delete_transaction(self, transaction_id: EntityId) -> bool:
        deleted = await self._run("delete transaction", self.provider.delete_transaction(transaction_id))
        if not deleted:
            return False
        self._transactions = [t for t in self._transactions if not same_id(t.id, transaction_id)]
        self._refresh_derived()
        self._audit.log(AuditEventBuilder.transaction_deleted(transaction_id))
        return True

    def get_transactions_by_type(self, transaction_type: TransactionType) -> list[Transaction]:
        transaction_type = TransactionType(transaction_type)
        return [t for t in self._transactions if t.type == transaction_type]

    def get_transactions_by_date_range(
        self,
        start_date: Union[date, str],
        end_date: Union[date, str],
    ) -> list[Transaction]:
        """Inclusive on both ends."""
        start, end = as_date(start_date), as_date(end_date)
        return [t for t in self._transactions if start <= t.date <= end]

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    def get_category_name(self, category_id: EntityId) -> Optional[str]:
        for category in self._categories:
            if same_id(category.id, category_id):
                return category.name
        return None

    def category_usage(self, category_id: EntityId) -> int:
        return sum(1 for t in self._transactions if same_id(t.category_id, category_id))

    async def add_category(self, name: str) -> Category:
        name = Category(id=0, name=name).name
        created = await self._run("add category", self.provider.create_category(name))
        self._categories.append(created)
        self._audit.log(AuditEventBuilder.category_created(created.id, created.name))
        return created

    async def update_category(self, category_id: EntityId, name: str) -> bool:
        name = Category(id=category_id, name=name).name
        updated = await self._run("update category", self.provider.update_category(category_id, name))
        if not updated:
            return False
        self._categories = [
            Category(id=c.id, name=name) if same_id(c.id, category_id) else c
            for c in self._categories
        ]
        self._audit.log(AuditEventBuilder.category_updated(category_id, name))
        return True

    async def delete_category(self, category_id: EntityId) -> bool:
        """
        Delete a category that no transaction references.

        Raises:
            CategoryInUseError: If any transaction uses the category.
                The backend is not called in that case.
        """
        usage = self.category_usage(category_id)
        if usage:
            self._audit.log(AuditEventBuilder.category_delete_rejected(category_id, usage))
            raise CategoryInUseError(category_id, usage)

        deleted = await self._run("delete category", self.provider.delete_category(category_id))
        if not deleted:
            return False
        self._categories = [c for c in self._categories if not same_id(c.id, category_id)]
        self._audit.log(AuditEventBuilder.category_deleted(category_id))
        return True
