"""Tests for the embedded SQLite backend."""

import sqlite3

import pytest

from cashbook.config import EmbeddedStoreSettings
from cashbook.models.finance import DEFAULT_CATEGORIES
from cashbook.models.storage import FailureReason
from cashbook.services.storage import EmbeddedStorage, StorageError


def user_version(path: str) -> int:
    conn = sqlite3.connect(path)
    try:
        return conn.execute("PRAGMA user_version").fetchone()[0]
    finally:
        conn.close()


def index_names(path: str) -> set[str]:
    conn = sqlite3.connect(path)
    try:
        rows = conn.execute("SELECT name FROM sqlite_master WHERE type = 'index'").fetchall()
    finally:
        conn.close()
    return {r[0] for r in rows}


class TestSchema:
    """Schema creation is versioned and additive."""

    @pytest.mark.asyncio
    async def test_prepare_creates_schema_and_indexes(self, embedded_storage):
        result = await embedded_storage.prepare_database()

        assert result.ok
        assert user_version(embedded_storage.path) == 1
        assert {
            "idx_categories_name",
            "idx_transactions_type",
            "idx_transactions_date",
            "idx_transactions_type_date",
        } <= index_names(embedded_storage.path)

    @pytest.mark.asyncio
    async def test_prepare_seeds_default_categories_once(self, embedded_storage):
        await embedded_storage.prepare_database()
        await embedded_storage.prepare_database()

        names = [c.name for c in await embedded_storage.get_all_categories()]
        assert names == list(DEFAULT_CATEGORIES)

    @pytest.mark.asyncio
    async def test_higher_version_upgrades_in_place(self, tmp_path, make_transaction):
        path = str(tmp_path / "upgrade.db")
        v1 = EmbeddedStorage(EmbeddedStoreSettings(path=path, schema_version=1))
        await v1.prepare_database()
        category = await v1.create_category("Kept")
        await v1.create_transaction(make_transaction(category.id))

        v2 = EmbeddedStorage(EmbeddedStoreSettings(path=path, schema_version=2))
        assert (await v2.prepare_database()).ok
        assert user_version(path) == 2
        assert len(await v2.get_all_transactions()) == 1

    @pytest.mark.asyncio
    async def test_creates_missing_parent_directory(self, tmp_path):
        path = tmp_path / "nested" / "dir" / "cashbook.db"
        store = EmbeddedStorage(EmbeddedStoreSettings(path=str(path)))
        assert (await store.prepare_database()).ok
        assert path.exists()


class TestPersistence:
    """Data outlives the adapter instance."""

    @pytest.mark.asyncio
    async def test_data_survives_reopen(self, embedded_settings, make_transaction):
        first = EmbeddedStorage(embedded_settings)
        await first.prepare_database()
        category = await first.create_category("Durable")
        created = await first.create_transaction(make_transaction(category.id, ref_number="D-1"))

        reopened = EmbeddedStorage(embedded_settings)
        await reopened.prepare_database()
        [stored] = await reopened.get_all_transactions()
        assert stored.id == created.id
        assert stored.ref_number == "D-1"
        assert stored.created_at == created.created_at

    @pytest.mark.asyncio
    async def test_string_ids_are_accepted(self, embedded_storage):
        """Ids that arrive as text from the UI still resolve."""
        await embedded_storage.prepare_database()
        created = await embedded_storage.create_category("Text id")
        fetched = await embedded_storage.get_category_by_id(str(created.id))
        assert fetched.name == "Text id"


class TestFailures:
    """An unusable file surfaces as a typed failure."""

    @pytest.mark.asyncio
    async def test_unopenable_path_reports_unreachable(self, tmp_path):
        # A directory cannot be opened as a database file
        store = EmbeddedStorage(EmbeddedStoreSettings(path=str(tmp_path)))

        check = await store.check_connection()
        assert not check.ok
        assert check.reason == FailureReason.UNREACHABLE

        prepared = await store.prepare_database()
        assert not prepared.ok
        assert await store.test_connection() is False

    @pytest.mark.asyncio
    async def test_operations_raise_storage_error(self, tmp_path):
        store = EmbeddedStorage(EmbeddedStoreSettings(path=str(tmp_path)))
        with pytest.raises(StorageError):
            await store.get_all_categories()
