"""Tests for the storage start-up flow (capability check, fallback, switching)."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from cashbook.audit import AuditLogger
from cashbook.models.audit import AuditEventType
from cashbook.models.storage import ConnectionState, FailureReason, StorageResult, StorageType
from cashbook.orchestrator import RETRY_OFFER, StorageInitializer, create_app_components
from cashbook.services.storage import EmbeddedStorage, InMemoryStorage, StorageSelector


def fake_provider(storage_type, reachable=True, prepared=True):
    provider = MagicMock()
    provider.storage_type = storage_type
    if reachable:
        check = StorageResult.success(storage_type)
    else:
        check = StorageResult.failure(storage_type, FailureReason.UNREACHABLE, f"{storage_type.value} down")
    if prepared:
        setup = StorageResult.success(storage_type)
    else:
        setup = StorageResult.failure(storage_type, FailureReason.SCHEMA_SETUP_FAILED, "setup failed")
    provider.check_connection = AsyncMock(return_value=check)
    provider.prepare_database = AsyncMock(return_value=setup)
    provider.close = AsyncMock()
    return provider


def make_selector(storage_type, providers):
    return StorageSelector(
        storage_type=storage_type,
        factories={key: (lambda p=p: p) for key, p in providers.items()},
    )


@pytest.fixture
def healthy():
    return {t: fake_provider(t) for t in StorageType}


class TestCapabilityCheck:
    """MongoDB is never contacted without network capability."""

    @pytest.mark.asyncio
    async def test_short_circuits_to_error(self, healthy):
        selector = make_selector(StorageType.MONGODB, healthy)
        initializer = StorageInitializer(selector, network=False)

        status = await initializer.connect()

        assert status.state == ConnectionState.ERROR
        assert status.reason == FailureReason.CAPABILITY_MISSING
        assert status.attempted == [StorageType.MONGODB]
        healthy[StorageType.MONGODB].check_connection.assert_not_awaited()
        healthy[StorageType.EMBEDDED].check_connection.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_offers_exclude_mongodb(self, healthy):
        selector = make_selector(StorageType.MONGODB, healthy)
        status = await StorageInitializer(selector, network=False).connect()
        assert status.offers == [RETRY_OFFER, "embedded", "memory"]

    @pytest.mark.asyncio
    async def test_other_backends_unaffected(self, healthy):
        selector = make_selector(StorageType.EMBEDDED, healthy)
        status = await StorageInitializer(selector, network=False).connect()
        assert status.is_connected


class TestFallback:
    """Failures move down the chain mongodb → embedded → memory."""

    @pytest.mark.asyncio
    async def test_connects_directly_when_healthy(self, healthy):
        selector = make_selector(StorageType.MONGODB, healthy)
        status = await StorageInitializer(selector, network=True).connect()

        assert status.state == ConnectionState.CONNECTED
        assert status.attempted == [StorageType.MONGODB]
        healthy[StorageType.MONGODB].prepare_database.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unreachable_mongodb_downgrades_once_to_embedded(self, healthy):
        healthy[StorageType.MONGODB] = fake_provider(StorageType.MONGODB, reachable=False)
        selector = make_selector(StorageType.MONGODB, healthy)

        status = await StorageInitializer(selector, network=True).connect()

        assert status.is_connected
        assert status.storage_type == StorageType.EMBEDDED
        assert status.attempted == [StorageType.MONGODB, StorageType.EMBEDDED]
        healthy[StorageType.MONGODB].prepare_database.assert_not_awaited()
        healthy[StorageType.EMBEDDED].check_connection.assert_awaited_once()
        healthy[StorageType.MEMORY].check_connection.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_working_backend_becomes_selected(self, healthy):
        healthy[StorageType.MONGODB] = fake_provider(StorageType.MONGODB, reachable=False)
        selector = make_selector(StorageType.MONGODB, healthy)

        await StorageInitializer(selector, network=True).connect()

        assert selector.get_storage_type() == StorageType.EMBEDDED
        assert selector.get_provider() is healthy[StorageType.EMBEDDED]

    @pytest.mark.asyncio
    async def test_schema_failure_treated_like_unreachable(self, healthy):
        healthy[StorageType.MONGODB] = fake_provider(StorageType.MONGODB, prepared=False)
        selector = make_selector(StorageType.MONGODB, healthy)

        status = await StorageInitializer(selector, network=True).connect()
        assert status.storage_type == StorageType.EMBEDDED

    @pytest.mark.asyncio
    async def test_cascades_to_memory(self, healthy):
        healthy[StorageType.MONGODB] = fake_provider(StorageType.MONGODB, reachable=False)
        healthy[StorageType.EMBEDDED] = fake_provider(StorageType.EMBEDDED, reachable=False)
        selector = make_selector(StorageType.MONGODB, healthy)

        status = await StorageInitializer(selector, network=True, cascade=True).connect()

        assert status.is_connected
        assert status.storage_type == StorageType.MEMORY
        assert status.attempted == list(StorageType)

    @pytest.mark.asyncio
    async def test_single_downgrade_without_cascade(self, healthy):
        healthy[StorageType.MONGODB] = fake_provider(StorageType.MONGODB, reachable=False)
        healthy[StorageType.EMBEDDED] = fake_provider(StorageType.EMBEDDED, reachable=False)
        selector = make_selector(StorageType.MONGODB, healthy)

        status = await StorageInitializer(selector, network=True, cascade=False).connect()

        assert status.state == ConnectionState.ERROR
        assert status.storage_type == StorageType.EMBEDDED
        assert "attempted: mongodb, embedded" in status.error_message
        healthy[StorageType.MEMORY].check_connection.assert_not_awaited()
        assert selector.get_storage_type() == StorageType.MONGODB

    @pytest.mark.asyncio
    async def test_memory_failure_has_nowhere_to_go(self, healthy):
        healthy[StorageType.MEMORY] = fake_provider(StorageType.MEMORY, prepared=False)
        selector = make_selector(StorageType.MEMORY, healthy)

        status = await StorageInitializer(selector, network=True).connect()

        assert status.state == ConnectionState.ERROR
        assert status.reason == FailureReason.SCHEMA_SETUP_FAILED
        assert status.offers == [RETRY_OFFER, "mongodb", "embedded"]

    @pytest.mark.asyncio
    async def test_adapter_exception_counts_as_failure(self, healthy):
        healthy[StorageType.MONGODB].check_connection = AsyncMock(side_effect=RuntimeError("boom"))
        selector = make_selector(StorageType.MONGODB, healthy)

        status = await StorageInitializer(selector, network=True).connect()

        assert status.is_connected
        assert status.storage_type == StorageType.EMBEDDED

    @pytest.mark.asyncio
    async def test_transitions_are_audited(self, healthy):
        healthy[StorageType.MONGODB] = fake_provider(StorageType.MONGODB, reachable=False)
        selector = make_selector(StorageType.MONGODB, healthy)
        audit = AuditLogger()

        await StorageInitializer(selector, network=True, audit_logger=audit).connect()

        types = [e.event_type for e in audit.get_recent_events()]
        assert types == [AuditEventType.STORAGE_CONNECTED, AuditEventType.STORAGE_FALLBACK]


class TestRecovery:
    """Retry and manual switching from the error screen."""

    @pytest.mark.asyncio
    async def test_retry_starts_from_requested_backend(self, healthy):
        healthy[StorageType.MEMORY] = fake_provider(StorageType.MEMORY, reachable=False)
        selector = make_selector(StorageType.MEMORY, healthy)
        initializer = StorageInitializer(selector, network=True)
        assert not (await initializer.connect()).is_connected

        healthy[StorageType.MEMORY].check_connection.return_value = StorageResult.success(StorageType.MEMORY)
        status = await initializer.retry()

        assert status.is_connected
        assert status.attempted == [StorageType.MEMORY]

    @pytest.mark.asyncio
    async def test_switch_storage_resets_history(self, healthy):
        healthy[StorageType.MONGODB] = fake_provider(StorageType.MONGODB, reachable=False)
        healthy[StorageType.EMBEDDED] = fake_provider(StorageType.EMBEDDED, reachable=False)
        selector = make_selector(StorageType.MONGODB, healthy)
        initializer = StorageInitializer(selector, network=True, cascade=False)
        await initializer.connect()

        status = await initializer.switch_storage("memory")

        assert status.is_connected
        assert status.attempted == [StorageType.MEMORY]
        assert selector.get_storage_type() == StorageType.MEMORY

    @pytest.mark.asyncio
    async def test_switch_to_unknown_backend_rejected(self, healthy):
        initializer = StorageInitializer(make_selector(StorageType.MEMORY, healthy), network=True)
        with pytest.raises(ValueError):
            await initializer.switch_storage("postgres")


class TestCompositionRoot:
    """create_app_components wires real adapters together."""

    @pytest.mark.asyncio
    async def test_end_to_end_with_real_adapters(self, embedded_settings):
        selector = StorageSelector(
            storage_type=StorageType.EMBEDDED,
            factories={
                StorageType.EMBEDDED: lambda: EmbeddedStorage(embedded_settings),
                StorageType.MEMORY: InMemoryStorage,
            },
        )
        components = create_app_components(selector=selector, network=False)

        status = await components.initializer.connect()
        await components.finance.load()

        assert status.is_connected
        assert components.finance.storage_type == StorageType.EMBEDDED
        assert len(components.finance.categories) == 5
        await components.selector.close()

    def test_selectors_are_independent(self):
        first = StorageSelector(storage_type="memory")
        second = StorageSelector(storage_type="embedded")
        first.set_storage_type("mongodb")
        assert second.get_storage_type() == StorageType.EMBEDDED
