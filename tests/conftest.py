"""
Shared fixtures.

No real MongoDB server is needed: the document-database adapter runs
against mongomock, and the embedded adapter against a SQLite file in
pytest's tmp_path.
"""

from datetime import date
from decimal import Decimal

import mongomock
import pytest

from cashbook.config import EmbeddedStoreSettings, MongoSettings
from cashbook.models.finance import TransactionCreate, TransactionType
from cashbook.services.storage import EmbeddedStorage, InMemoryStorage, MongoStorage


@pytest.fixture
def embedded_settings(tmp_path):
    return EmbeddedStoreSettings(path=str(tmp_path / "cashbook.db"))


@pytest.fixture
def mongo_settings():
    return MongoSettings(db_name="cashbook_test", connect_attempts=1)


@pytest.fixture
def memory_storage():
    return InMemoryStorage(seed=False)


@pytest.fixture
def embedded_storage(embedded_settings):
    return EmbeddedStorage(embedded_settings)


@pytest.fixture
def mongo_client():
    return mongomock.MongoClient()


@pytest.fixture
def mongo_storage(mongo_settings, mongo_client):
    return MongoStorage(
        mongo_settings,
        client_factory=lambda settings: mongo_client,
        network=True,
    )


@pytest.fixture(params=["memory", "embedded", "mongo"])
def storage(request):
    """Each adapter in turn, for behaviour all backends must share."""
    return request.getfixturevalue(f"{request.param}_storage")


def make_transaction(
    category_id,
    transaction_type=TransactionType.DEPOSIT,
    amount="100",
    on=date(2024, 1, 15),
    description="Test entry",
    **references,
) -> TransactionCreate:
    return TransactionCreate(
        type=transaction_type,
        amount=Decimal(amount),
        date=on,
        category_id=category_id,
        description=description,
        **references,
    )


@pytest.fixture(name="make_transaction")
def make_transaction_fixture():
    return make_transaction
