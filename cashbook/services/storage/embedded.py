"""
Embedded Storage Implementation (SQLite)

DESIGN DECISION: A single SQLite file is the embedded, per-installation
persistent store:
1. No server to run, survives restarts
2. Two independently keyed tables with auto-assigned integer ids
3. Secondary indexes back the filtered queries (type, date, name)

Schema creation is gated by PRAGMA user_version. Reopening at the same
version does nothing; a higher version only ever adds objects
(CREATE ... IF NOT EXISTS), so a failed setup is repaired by retrying.

Every operation opens a short-lived connection, runs one transaction
and closes it. Failures raise StorageError without retrying; retrying
or falling back is the initialization controller's job.
"""

import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Iterator, Optional, Union

import structlog

from cashbook.config import EmbeddedStoreSettings, get_settings
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
    utc_now,
)
from cashbook.models.storage import FailureReason, StorageResult, StorageType
from cashbook.services.storage.interface import (
    SchemaSetupError,
    StorageConnectionError,
    StorageError,
    StorageProvider,
    as_date,
)


logger = structlog.get_logger(__name__)


# Statements are additive only; each one is safe to re-run.
SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS categories (
        id    INTEGER PRIMARY KEY AUTOINCREMENT,
        name  TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS transactions (
        id              INTEGER PRIMARY KEY AUTOINCREMENT,
        type            TEXT    NOT NULL CHECK(type IN ('deposit','withdrawal','petty-cash')),
        amount          TEXT    NOT NULL,
        date            TEXT    NOT NULL,
        category_id     INTEGER NOT NULL,
        description     TEXT    NOT NULL,
        ref_number      TEXT,
        cheque_number   TEXT,
        voucher_number  TEXT,
        created_at      TEXT    NOT NULL,
        updated_at      TEXT    NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_categories_name ON categories(name)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_type ON transactions(type)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_date ON transactions(date)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_type_date ON transactions(type, date)",
)

TRANSACTION_COLUMNS = (
    "type",
    "amount",
    "date",
    "category_id",
    "description",
    "ref_number",
    "cheque_number",
    "voucher_number",
    "created_at",
    "updated_at",
)

ORDER_NEWEST_FIRST = "ORDER BY date DESC, id ASC"


def _row_id(value: EntityId) -> Optional[int]:
    """SQLite ids are integers; anything else cannot match a row."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


class EmbeddedStorage(StorageProvider):
    """
    SQLite implementation of cashbook storage.

    Amounts are stored as decimal strings, dates and timestamps as ISO
    strings.
    """

    storage_type = StorageType.EMBEDDED

    def __init__(self, settings: Optional[EmbeddedStoreSettings] = None):
        self._settings = settings or get_settings().embedded
        self._path = self._settings.path

    @property
    def path(self) -> str:
        return self._path

    def _open(self) -> sqlite3.Connection:
        if self._path != ":memory:":
            Path(self._path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self._path, timeout=self._settings.timeout_seconds)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self, conn: sqlite3.Connection) -> bool:
        """Create tables and indexes if the stored version is older. Returns True if it ran."""
        version = conn.execute("PRAGMA user_version").fetchone()[0]
        if version >= self._settings.schema_version:
            return False
        try:
            for statement in SCHEMA_STATEMENTS:
                conn.execute(statement)
            # PRAGMA does not take bound parameters; the value is a validated int.
            conn.execute(f"PRAGMA user_version = {int(self._settings.schema_version)}")
        except sqlite3.Error as e:
            raise SchemaSetupError(f"Failed to create embedded schema: {e}")
        logger.info(
            "embedded_schema_created",
            path=self._path,
            from_version=version,
            to_version=self._settings.schema_version,
        )
        return True

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """One connection, one transaction, closed on exit."""
        try:
            conn = self._open()
        except (sqlite3.Error, OSError) as e:
            raise StorageConnectionError(f"Could not open {self._path}: {e}")
        try:
            with conn:
                self._ensure_schema(conn)
                yield conn
        except sqlite3.Error as e:
            raise StorageError(f"Embedded storage operation failed: {e}")
        finally:
            conn.close()

    def _row_to_category(self, row: sqlite3.Row) -> Category:
        return Category(id=row["id"], name=row["name"])

    def _row_to_transaction(self, row: sqlite3.Row) -> Transaction:
        return Transaction(
            id=row["id"],
            type=TransactionType(row["type"]),
            amount=Decimal(row["amount"]),
            date=date.fromisoformat(row["date"]),
            category_id=row["category_id"],
            description=row["description"],
            ref_number=row["ref_number"],
            cheque_number=row["cheque_number"],
            voucher_number=row["voucher_number"],
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def _transaction_values(self, transaction: Transaction) -> tuple:
        return (
            transaction.type.value,
            str(transaction.amount),
            transaction.date.isoformat(),
            transaction.category_id,
            transaction.description,
            transaction.ref_number,
            transaction.cheque_number,
            transaction.voucher_number,
            transaction.created_at.isoformat(),
            transaction.updated_at.isoformat(),
        )

    # Connection lifecycle

    async def check_connection(self) -> StorageResult:
        try:
            conn = self._open()
            try:
                conn.execute("SELECT COUNT(*) FROM sqlite_master").fetchone()
            finally:
                conn.close()
            return StorageResult.success(self.storage_type, f"Opened {self._path}")
        except (sqlite3.Error, OSError) as e:
            logger.error("embedded_connection_failed", path=self._path, error=str(e))
            return StorageResult.failure(
                self.storage_type,
                FailureReason.UNREACHABLE,
                f"Could not open embedded database at {self._path}: {e}",
            )

    async def prepare_database(self) -> StorageResult:
        """Create the schema if needed and seed default categories into an empty table."""
        try:
            with self._transaction() as conn:
                count = conn.execute("SELECT COUNT(*) FROM categories").fetchone()[0]
                if count == 0:
                    conn.executemany(
                        "INSERT INTO categories(name) VALUES (?)",
                        [(name,) for name in DEFAULT_CATEGORIES],
                    )
                    logger.info("embedded_categories_seeded", count=len(DEFAULT_CATEGORIES))
            return StorageResult.success(self.storage_type)
        except StorageConnectionError as e:
            logger.error("embedded_setup_failed", path=self._path, error=str(e))
            return StorageResult.failure(self.storage_type, FailureReason.UNREACHABLE, str(e))
        except StorageError as e:
            logger.error("embedded_setup_failed", path=self._path, error=str(e))
            return StorageResult.failure(self.storage_type, FailureReason.SCHEMA_SETUP_FAILED, str(e))

    # Categories

    async def get_all_categories(self) -> list[Category]:
        with self._transaction() as conn:
            rows = conn.execute("SELECT id, name FROM categories ORDER BY id").fetchall()
        return [self._row_to_category(r) for r in rows]

    async def get_category_by_id(self, category_id: EntityId) -> Optional[Category]:
        row_id = _row_id(category_id)
        if row_id is None:
            return None
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT id, name FROM categories WHERE id = ?", (row_id,)
            ).fetchone()
        return self._row_to_category(row) if row else None

    async def create_category(self, name: str) -> Category:
        category_name = Category(id=0, name=name).name
        with self._transaction() as conn:
            cursor = conn.execute(
                "INSERT INTO categories(name) VALUES (?)", (category_name,)
            )
            new_id = cursor.lastrowid
        return Category(id=new_id, name=category_name)

    async def update_category(self, category_id: EntityId, name: str) -> bool:
        row_id = _row_id(category_id)
        if row_id is None:
            return False
        category_name = Category(id=row_id, name=name).name
        with self._transaction() as conn:
            cursor = conn.execute(
                "UPDATE categories SET name = ? WHERE id = ?", (category_name, row_id)
            )
        if cursor.rowcount == 0:
            logger.info("category_not_found", backend=self.storage_type.value, category_id=category_id)
        return cursor.rowcount > 0

    async def delete_category(self, category_id: EntityId) -> bool:
        row_id = _row_id(category_id)
        if row_id is None:
            return False
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM categories WHERE id = ?", (row_id,))
        if cursor.rowcount == 0:
            logger.info("category_not_found", backend=self.storage_type.value, category_id=category_id)
        return cursor.rowcount > 0

    # Transactions

    async def get_all_transactions(self) -> list[Transaction]:
        with self._transaction() as conn:
            rows = conn.execute(f"SELECT * FROM transactions {ORDER_NEWEST_FIRST}").fetchall()
        return [self._row_to_transaction(r) for r in rows]

    async def get_transactions_by_type(self, transaction_type: TransactionType) -> list[Transaction]:
        transaction_type = TransactionType(transaction_type)
        with self._transaction() as conn:
            rows = conn.execute(
                f"SELECT * FROM transactions WHERE type = ? {ORDER_NEWEST_FIRST}",
                (transaction_type.value,),
            ).fetchall()
        return [self._row_to_transaction(r) for r in rows]

    async def get_transactions_by_date_range(
        self,
        start_date: Union[date, str],
        end_date: Union[date, str],
    ) -> list[Transaction]:
        start, end = as_date(start_date), as_date(end_date)
        with self._transaction() as conn:
            rows = conn.execute(
                f"SELECT * FROM transactions WHERE date BETWEEN ? AND ? {ORDER_NEWEST_FIRST}",
                (start.isoformat(), end.isoformat()),
            ).fetchall()
        return [self._row_to_transaction(r) for r in rows]

    async def create_transaction(self, transaction: Union[TransactionCreate, dict]) -> Transaction:
        payload = as_create(transaction)
        now = utc_now()
        # id is a placeholder until SQLite assigns one
        stored = Transaction(**payload.model_dump(), id=0, created_at=now, updated_at=now)
        placeholders = ", ".join("?" for _ in TRANSACTION_COLUMNS)
        with self._transaction() as conn:
            cursor = conn.execute(
                f"INSERT INTO transactions({', '.join(TRANSACTION_COLUMNS)}) VALUES ({placeholders})",
                self._transaction_values(stored),
            )
            stored.id = cursor.lastrowid
        return stored

    async def update_transaction(
        self,
        transaction_id: EntityId,
        updates: Union[TransactionUpdate, dict],
    ) -> bool:
        patch = as_patch(updates)
        row_id = _row_id(transaction_id)
        if row_id is None:
            return False
        # Read-merge-write is not atomic: the SELECT runs before sqlite3's
        # implicit BEGIN, so a second writer in between is overwritten
        # (last write wins).
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT * FROM transactions WHERE id = ?", (row_id,)
            ).fetchone()
            if row is None:
                logger.info("transaction_not_found", backend=self.storage_type.value, transaction_id=transaction_id)
                return False
            merged = merge_transaction(self._row_to_transaction(row), patch)
            assignments = ", ".join(f"{column} = ?" for column in TRANSACTION_COLUMNS)
            conn.execute(
                f"UPDATE transactions SET {assignments} WHERE id = ?",
                self._transaction_values(merged) + (row_id,),
            )
        return True

    async def delete_transaction(self, transaction_id: EntityId) -> bool:
        row_id = _row_id(transaction_id)
        if row_id is None:
            return False
        with self._transaction() as conn:
            cursor = conn.execute("DELETE FROM transactions WHERE id = ?", (row_id,))
        if cursor.rowcount == 0:
            logger.info("transaction_not_found", backend=self.storage_type.value, transaction_id=transaction_id)
        return cursor.rowcount > 0
