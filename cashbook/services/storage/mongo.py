"""
MongoDB Storage Implementation

DESIGN DECISION: MongoDB is the networked backend for installations
that run next to a database server. The client is created lazily and
cached; initialize_database() is connect-if-absent.

ID STRATEGY: documents keep MongoDB's native ObjectId, surfaced to the
rest of the system as its 24-character hex string. Lookups accept any
EntityId; values that are not valid ObjectIds (e.g. integers handed
out by another backend) simply match nothing.

Expected driver failures (server unreachable, timeouts) never escape:
reads return empty results, mutations return False. Only create_*
raises, wrapped in StorageError.

In environments without outbound sockets (Python compiled to
WebAssembly), no client is ever constructed and every connection
check fails with CAPABILITY_MISSING.
"""

import socket
import sys
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Optional, Union

import structlog
from bson import ObjectId
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from cashbook.config import MongoSettings, get_settings
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
    CapabilityMissingError,
    StorageConnectionError,
    StorageError,
    StorageProvider,
    as_date,
)


logger = structlog.get_logger(__name__)


# Collection names
CATEGORIES = "categories"
TRANSACTIONS = "transactions"

NEWEST_FIRST = [("date", DESCENDING), ("_id", ASCENDING)]

# Platforms where Python runs without socket access (browser / WASI runtimes)
SOCKETLESS_PLATFORMS = {"emscripten", "wasi"}

ClientFactory = Callable[[MongoSettings], MongoClient]


def network_available() -> bool:
    """Can this process open outbound TCP connections at all?"""
    if sys.platform in SOCKETLESS_PLATFORMS:
        return False
    return hasattr(socket, "create_connection")


def default_client_factory(settings: MongoSettings) -> MongoClient:
    return MongoClient(
        settings.uri,
        serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
    )


def _object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


class MongoStorage(StorageProvider):
    """
    MongoDB implementation of cashbook storage.

    Amounts are stored as decimal strings, dates and timestamps as ISO
    strings, so documents read the same from any driver.
    """

    storage_type = StorageType.MONGODB

    def __init__(
        self,
        settings: Optional[MongoSettings] = None,
        client_factory: Optional[ClientFactory] = None,
        network: Optional[bool] = None,
    ):
        self._settings = settings or get_settings().mongodb
        self._client_factory = client_factory or default_client_factory
        self._network = network_available() if network is None else network
        self._client: Optional[MongoClient] = None
        self._db: Optional[Database] = None

    @property
    def is_connected(self) -> bool:
        return self._db is not None

    def _capability_failure(self) -> StorageResult:
        return StorageResult.failure(
            self.storage_type,
            FailureReason.CAPABILITY_MISSING,
            "MongoDB needs outbound network access, which this environment does not provide",
        )

    def _connect(self) -> Database:
        """Connect if not already connected, retrying the handshake."""
        if self._db is not None:
            return self._db
        if not self._network:
            raise CapabilityMissingError("MongoDB is not available without network access")

        client = None
        for attempt in Retrying(
            stop=stop_after_attempt(self._settings.connect_attempts),
            wait=wait_exponential(multiplier=0.5, max=4),
            retry=retry_if_exception_type(PyMongoError),
            reraise=True,
        ):
            with attempt:
                client = self._client_factory(self._settings)
                try:
                    client.admin.command("ping")
                except PyMongoError:
                    client.close()
                    raise

        self._client = client
        self._db = client[self._settings.db_name]
        logger.info("mongodb_connected", db_name=self._settings.db_name)
        return self._db

    def _collection(self, name: str) -> Collection:
        try:
            return self._connect()[name]
        except PyMongoError as e:
            raise StorageConnectionError(f"Failed to connect to MongoDB: {e}")

    def _doc_to_category(self, doc: dict) -> Category:
        return Category(id=str(doc["_id"]), name=doc["name"])

    def _doc_to_transaction(self, doc: dict) -> Transaction:
        return Transaction(
            id=str(doc["_id"]),
            type=TransactionType(doc["type"]),
            amount=Decimal(doc["amount"]),
            date=date.fromisoformat(doc["date"]),
            category_id=doc["category_id"],
            description=doc["description"],
            ref_number=doc.get("ref_number"),
            cheque_number=doc.get("cheque_number"),
            voucher_number=doc.get("voucher_number"),
            created_at=datetime.fromisoformat(doc["created_at"]),
            updated_at=datetime.fromisoformat(doc["updated_at"]),
        )

    def _transaction_to_doc(self, transaction: Transaction) -> dict:
        return {
            "type": transaction.type.value,
            "amount": str(transaction.amount),
            "date": transaction.date.isoformat(),
            "category_id": transaction.category_id,
            "description": transaction.description,
            "ref_number": transaction.ref_number,
            "cheque_number": transaction.cheque_number,
            "voucher_number": transaction.voucher_number,
            "created_at": transaction.created_at.isoformat(),
            "updated_at": transaction.updated_at.isoformat(),
        }

    def _find_transactions(self, query: dict) -> list[Transaction]:
        try:
            docs = self._collection(TRANSACTIONS).find(query).sort(NEWEST_FIRST)
            return [self._doc_to_transaction(d) for d in docs]
        except (StorageError, PyMongoError) as e:
            logger.error("mongodb_query_failed", collection=TRANSACTIONS, error=str(e))
            return []

    # Connection lifecycle

    async def check_connection(self) -> StorageResult:
        """Ping with a throwaway client; the cached one is left alone."""
        if not self._network:
            return self._capability_failure()
        client = None
        try:
            client = self._client_factory(self._settings)
            client.admin.command("ping")
            return StorageResult.success(self.storage_type, f"Reached {self._settings.uri}")
        except PyMongoError as e:
            logger.error("mongodb_connection_failed", error=str(e))
            return StorageResult.failure(
                self.storage_type,
                FailureReason.UNREACHABLE,
                f"Could not reach MongoDB: {e}",
            )
        except Exception as e:
            logger.error("mongodb_connection_failed", error=str(e), unexpected=True)
            return StorageResult.failure(
                self.storage_type,
                FailureReason.UNEXPECTED,
                f"Unexpected MongoDB client error: {e}",
            )
        finally:
            if client is not None:
                client.close()

    async def prepare_database(self) -> StorageResult:
        """Connect if absent, create indexes, seed default categories into an empty collection."""
        if not self._network:
            return self._capability_failure()
        try:
            db = self._connect()
        except PyMongoError as e:
            logger.error("mongodb_setup_failed", stage="connect", error=str(e))
            return StorageResult.failure(
                self.storage_type,
                FailureReason.UNREACHABLE,
                f"Could not connect to MongoDB: {e}",
            )
        except Exception as e:
            logger.error("mongodb_setup_failed", stage="connect", error=str(e), unexpected=True)
            return StorageResult.failure(
                self.storage_type,
                FailureReason.UNEXPECTED,
                f"Unexpected MongoDB client error: {e}",
            )

        try:
            db[TRANSACTIONS].create_index([("type", ASCENDING)])
            db[TRANSACTIONS].create_index([("date", DESCENDING)])
            db[CATEGORIES].create_index([("name", ASCENDING)])
            if db[CATEGORIES].count_documents({}) == 0:
                db[CATEGORIES].insert_many([{"name": name} for name in DEFAULT_CATEGORIES])
                logger.info("mongodb_categories_seeded", count=len(DEFAULT_CATEGORIES))
            return StorageResult.success(self.storage_type)
        except PyMongoError as e:
            logger.error("mongodb_setup_failed", stage="schema", error=str(e))
            return StorageResult.failure(
                self.storage_type,
                FailureReason.SCHEMA_SETUP_FAILED,
                f"Failed to prepare MongoDB collections: {e}",
            )

    async def close(self) -> None:
        if self._client is not None:
            self._client.close()
            logger.info("mongodb_connection_closed")
        self._client = None
        self._db = None

    # Categories

    async def get_all_categories(self) -> list[Category]:
        try:
            docs = self._collection(CATEGORIES).find({}).sort([("_id", ASCENDING)])
            return [self._doc_to_category(d) for d in docs]
        except (StorageError, PyMongoError) as e:
            logger.error("mongodb_query_failed", collection=CATEGORIES, error=str(e))
            return []

    async def get_category_by_id(self, category_id: EntityId) -> Optional[Category]:
        oid = _object_id(category_id)
        if oid is None:
            return None
        try:
            doc = self._collection(CATEGORIES).find_one({"_id": oid})
        except (StorageError, PyMongoError) as e:
            logger.error("mongodb_query_failed", collection=CATEGORIES, error=str(e))
            return None
        return self._doc_to_category(doc) if doc else None

    async def create_category(self, name: str) -> Category:
        category_name = Category(id="", name=name).name
        try:
            result = self._collection(CATEGORIES).insert_one({"name": category_name})
        except PyMongoError as e:
            raise StorageError(f"Failed to create category: {e}")
        return Category(id=str(result.inserted_id), name=category_name)

    async def update_category(self, category_id: EntityId, name: str) -> bool:
        oid = _object_id(category_id)
        if oid is None:
            return False
        category_name = Category(id=str(oid), name=name).name
        try:
            result = self._collection(CATEGORIES).update_one(
                {"_id": oid},
                {"$set": {"name": category_name}},
            )
        except (StorageError, PyMongoError) as e:
            logger.error("mongodb_write_failed", collection=CATEGORIES, error=str(e))
            return False
        if result.matched_count == 0:
            logger.info("category_not_found", backend=self.storage_type.value, category_id=category_id)
        return result.matched_count > 0

    async def delete_category(self, category_id: EntityId) -> bool:
        oid = _object_id(category_id)
        if oid is None:
            return False
        try:
            result = self._collection(CATEGORIES).delete_one({"_id": oid})
        except (StorageError, PyMongoError) as e:
            logger.error("mongodb_write_failed", collection=CATEGORIES, error=str(e))
            return False
        if result.deleted_count == 0:
            logger.info("category_not_found", backend=self.storage_type.value, category_id=category_id)
        return result.deleted_count > 0

    # Transactions

    async def get_all_transactions(self) -> list[Transaction]:
        return self._find_transactions({})

    async def get_transactions_by_type(self, transaction_type: TransactionType) -> list[Transaction]:
        return self._find_transactions({"type": TransactionType(transaction_type).value})

    async def get_transactions_by_date_range(
        self,
        start_date: Union[date, str],
        end_date: Union[date, str],
    ) -> list[Transaction]:
        start, end = as_date(start_date), as_date(end_date)
        return self._find_transactions({
            "date": {"$gte": start.isoformat(), "$lte": end.isoformat()}
        })

    async def create_transaction(self, transaction: Union[TransactionCreate, dict]) -> Transaction:
        payload = as_create(transaction)
        now = utc_now()
        # id is a placeholder until MongoDB assigns one
        stored = Transaction(**payload.model_dump(), id="", created_at=now, updated_at=now)
        try:
            result = self._collection(TRANSACTIONS).insert_one(self._transaction_to_doc(stored))
        except PyMongoError as e:
            raise StorageError(f"Failed to create transaction: {e}")
        stored.id = str(result.inserted_id)
        return stored

    async def update_transaction(
        self,
        transaction_id: EntityId,
        updates: Union[TransactionUpdate, dict],
    ) -> bool:
        patch = as_patch(updates)
        oid = _object_id(transaction_id)
        if oid is None:
            return False
        try:
            collection = self._collection(TRANSACTIONS)
            doc = collection.find_one({"_id": oid})
            if doc is None:
                logger.info("transaction_not_found", backend=self.storage_type.value, transaction_id=transaction_id)
                return False
            merged = merge_transaction(self._doc_to_transaction(doc), patch)
            changes = self._transaction_to_doc(merged)
            changes.pop("created_at")
            result = collection.update_one({"_id": oid}, {"$set": changes})
        except (StorageError, PyMongoError) as e:
            logger.error("mongodb_write_failed", collection=TRANSACTIONS, error=str(e))
            return False
        return result.matched_count > 0

    async def delete_transaction(self, transaction_id: EntityId) -> bool:
        oid = _object_id(transaction_id)
        if oid is None:
            return False
        try:
            result = self._collection(TRANSACTIONS).delete_one({"_id": oid})
        except (StorageError, PyMongoError) as e:
            logger.error("mongodb_write_failed", collection=TRANSACTIONS, error=str(e))
            return False
        if result.deleted_count == 0:
            logger.info("transaction_not_found", backend=self.storage_type.value, transaction_id=transaction_id)
        return result.deleted_count > 0
