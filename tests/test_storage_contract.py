"""
Behaviour every storage backend must share.

Each test runs once per adapter (memory, embedded SQLite, MongoDB via
mongomock) through the parametrized `storage` fixture.
"""

import pytest
from datetime import date
from decimal import Decimal

from cashbook.models.finance import TransactionType


class TestConnectionLifecycle:
    """check_connection / prepare_database and their boolean views."""

    @pytest.mark.asyncio
    async def test_connects_and_prepares(self, storage):
        assert (await storage.check_connection()).ok
        assert (await storage.prepare_database()).ok
        assert await storage.test_connection() is True
        assert await storage.initialize_database() is True

    @pytest.mark.asyncio
    async def test_prepare_is_idempotent(self, storage):
        await storage.prepare_database()
        first = await storage.get_all_categories()
        await storage.prepare_database()
        assert len(await storage.get_all_categories()) == len(first)


class TestCategoryContract:
    """Category CRUD."""

    @pytest.mark.asyncio
    async def test_create_then_get_by_id(self, storage):
        await storage.prepare_database()
        created = await storage.create_category("Maintenance")
        fetched = await storage.get_category_by_id(created.id)
        assert fetched is not None
        assert fetched.name == "Maintenance"

    @pytest.mark.asyncio
    async def test_create_appears_in_list(self, storage):
        await storage.prepare_database()
        before = await storage.get_all_categories()
        created = await storage.create_category("Insurance")
        after = await storage.get_all_categories()
        assert len(after) == len(before) + 1
        assert created.id in [c.id for c in after]

    @pytest.mark.asyncio
    async def test_update_renames(self, storage):
        await storage.prepare_database()
        created = await storage.create_category("Misc")
        assert await storage.update_category(created.id, "Sundries") is True
        assert (await storage.get_category_by_id(created.id)).name == "Sundries"

    @pytest.mark.asyncio
    async def test_delete_removes(self, storage):
        await storage.prepare_database()
        created = await storage.create_category("Temporary")
        assert await storage.delete_category(created.id) is True
        assert await storage.get_category_by_id(created.id) is None

    @pytest.mark.asyncio
    async def test_missing_category_is_not_an_error(self, storage):
        await storage.prepare_database()
        created = await storage.create_category("Gone")
        await storage.delete_category(created.id)

        assert await storage.delete_category(created.id) is False
        assert await storage.update_category(created.id, "Back") is False
        assert await storage.get_category_by_id(created.id) is None

    @pytest.mark.asyncio
    async def test_foreign_id_shape_is_not_found(self, storage):
        """Ids handed out by another backend simply match nothing."""
        await storage.prepare_database()
        assert await storage.delete_category("not-an-id") is False
        assert await storage.get_category_by_id(-42) is None


class TestTransactionContract:
    """Transaction CRUD and queries."""

    @pytest.mark.asyncio
    async def test_create_assigns_id_and_timestamps(self, storage, make_transaction):
        await storage.prepare_database()
        category = await storage.create_category("Sales")
        created = await storage.create_transaction(
            make_transaction(category.id, amount="123.45", ref_number="R-1")
        )

        assert created.id is not None
        assert created.amount == Decimal("123.45")
        assert created.ref_number == "R-1"
        assert created.created_at == created.updated_at
        assert created.created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_create_accepts_plain_dict(self, storage):
        await storage.prepare_database()
        category = await storage.create_category("Sales")
        created = await storage.create_transaction({
            "type": "withdrawal",
            "amount": "40",
            "date": "2024-05-06",
            "category_id": category.id,
            "description": "Cheque out",
            "cheque_number": "C-7",
        })
        assert created.type == TransactionType.WITHDRAWAL
        assert created.date == date(2024, 5, 6)
        assert created.reference_number == "C-7"

    @pytest.mark.asyncio
    async def test_update_changes_only_amount_and_updated_at(self, storage, make_transaction):
        await storage.prepare_database()
        category = await storage.create_category("Sales")
        created = await storage.create_transaction(
            make_transaction(category.id, amount="100", ref_number="R-2")
        )

        assert await storage.update_transaction(created.id, {"amount": "999"}) is True

        [updated] = [t for t in await storage.get_all_transactions() if t.id == created.id]
        assert updated.amount == Decimal("999")
        assert updated.updated_at >= created.updated_at
        untouched = {"amount", "updated_at"}
        assert updated.model_dump(exclude=untouched) == created.model_dump(exclude=untouched)

    @pytest.mark.asyncio
    async def test_update_missing_returns_false(self, storage, make_transaction):
        await storage.prepare_database()
        category = await storage.create_category("Sales")
        created = await storage.create_transaction(make_transaction(category.id))
        await storage.delete_transaction(created.id)

        assert await storage.update_transaction(created.id, {"amount": "1"}) is False
        assert await storage.delete_transaction(created.id) is False

    @pytest.mark.asyncio
    async def test_all_transactions_newest_first(self, storage, make_transaction):
        await storage.prepare_database()
        category = await storage.create_category("Sales")
        before = len(await storage.get_all_transactions())
        for day in (3, 1, 2):
            await storage.create_transaction(make_transaction(category.id, on=date(2030, 6, day)))

        transactions = await storage.get_all_transactions()
        assert len(transactions) == before + 3
        assert [t.date for t in transactions[:3]] == [
            date(2030, 6, 3), date(2030, 6, 2), date(2030, 6, 1),
        ]

    @pytest.mark.asyncio
    async def test_filter_by_type(self, storage, make_transaction):
        await storage.prepare_database()
        category = await storage.create_category("Sales")
        existing = len(await storage.get_transactions_by_type(TransactionType.PETTY_CASH))
        await storage.create_transaction(make_transaction(category.id, TransactionType.DEPOSIT))
        await storage.create_transaction(make_transaction(category.id, TransactionType.PETTY_CASH))

        petty = await storage.get_transactions_by_type(TransactionType.PETTY_CASH)
        assert len(petty) == existing + 1
        assert all(t.type == TransactionType.PETTY_CASH for t in petty)

    @pytest.mark.asyncio
    async def test_date_range_is_inclusive(self, storage, make_transaction):
        await storage.prepare_database()
        category = await storage.create_category("Sales")
        for on in (date(2023, 12, 31), date(2024, 1, 1), date(2024, 1, 31), date(2024, 2, 1)):
            await storage.create_transaction(make_transaction(category.id, on=on))

        in_range = await storage.get_transactions_by_date_range("2024-01-01", "2024-01-31")
        assert sorted(t.date for t in in_range) == [date(2024, 1, 1), date(2024, 1, 31)]

    @pytest.mark.asyncio
    async def test_date_range_accepts_dates(self, storage, make_transaction):
        await storage.prepare_database()
        category = await storage.create_category("Sales")
        await storage.create_transaction(make_transaction(category.id, on=date(2024, 3, 15)))

        in_range = await storage.get_transactions_by_date_range(date(2024, 3, 15), date(2024, 3, 15))
        assert [t.date for t in in_range] == [date(2024, 3, 15)]
