"""
Main Orchestrator for Cashbook

This module ties together all the components and defines the
storage start-up flow:
    requested backend → capability check → connect → prepare schema
        → (on failure) next backend in the fallback chain
        → connected | error

DESIGN DECISION: The orchestrator enforces the boundaries:
- MongoDB is never contacted from an environment without sockets
- A backend is only reported connected after its schema is ready
- The backend that actually works becomes the selected one
- Every transition is audited

This is the "glue" that keeps the app usable even when the preferred
backend is down: the user lands on a working store, or on an error
screen that names what was tried and offers a way out.
"""

from typing import NamedTuple, Optional, Union

import structlog

from cashbook.audit import AuditLogger, configure_logging
from cashbook.config import Settings, get_settings
from cashbook.models.audit import AuditEventBuilder
from cashbook.models.storage import (
    ConnectionState,
    FailureReason,
    InitializationStatus,
    StorageResult,
    StorageType,
    next_fallback,
)
from cashbook.reports import ReportBuilder
from cashbook.services.finance import FinanceService
from cashbook.services.storage import StorageSelector, network_available


logger = structlog.get_logger(__name__)

RETRY_OFFER = "retry"


class StorageInitializer:
    """
    Drives the loading → connected | error state machine.

    Flow for connect():
    1. If the requested backend is MongoDB and the environment has no
       network capability, go straight to ERROR. No adapter is touched.
    2. Check the connection, then prepare the database.
    3. On failure, move to the next backend in the fallback chain.
       With cascade=False only one downgrade is attempted.
    4. On success, make the working backend the selected one.
    5. When nothing works, report ERROR naming every backend attempted.
    """

    def __init__(
        self,
        selector: StorageSelector,
        network: Optional[bool] = None,
        cascade: bool = True,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._selector = selector
        # Probed once; the platform does not change while the app runs
        self._network = network_available() if network is None else network
        self._cascade = cascade
        self._audit = audit_logger or AuditLogger()
        self._status = InitializationStatus(storage_type=selector.get_storage_type())

    @property
    def status(self) -> InitializationStatus:
        return self._status

    @property
    def network(self) -> bool:
        return self._network

    def _can_use(self, storage_type: StorageType) -> bool:
        return storage_type != StorageType.MONGODB or self._network

    def _offers(self, failed: StorageType) -> list[str]:
        return [RETRY_OFFER] + [
            t.value for t in StorageType
            if t != failed and self._can_use(t)
        ]

    async def _try_backend(self, storage_type: StorageType) -> StorageResult:
        """Connection check then schema setup. Never raises."""
        try:
            provider = self._selector.get_provider(storage_type)
            result = await provider.check_connection()
            if not result.ok:
                return result
            return await provider.prepare_database()
        except Exception as e:
            logger.error(
                "storage_attempt_crashed",
                backend=storage_type.value,
                error=str(e),
                exc_info=True,
            )
            return StorageResult.failure(storage_type, FailureReason.UNEXPECTED, str(e))

    def _connected(
        self,
        storage_type: StorageType,
        attempted: list[StorageType],
    ) -> InitializationStatus:
        self._selector.set_storage_type(storage_type)
        self._status = InitializationStatus(
            state=ConnectionState.CONNECTED,
            storage_type=storage_type,
            attempted=attempted,
        )
        logger.info(
            "storage_connected",
            backend=storage_type.value,
            attempted=[t.value for t in attempted],
        )
        self._audit.log(AuditEventBuilder.storage_connected(
            backend=storage_type.value,
            attempted=[t.value for t in attempted],
        ))
        return self._status

    def _failed(
        self,
        storage_type: StorageType,
        attempted: list[StorageType],
        reason: Optional[FailureReason],
        detail: str,
    ) -> InitializationStatus:
        tried = ", ".join(t.value for t in attempted)
        message = f"Failed to connect to {storage_type.value} storage (attempted: {tried})"
        if detail:
            message = f"{message}: {detail}"
        self._status = InitializationStatus(
            state=ConnectionState.ERROR,
            storage_type=storage_type,
            attempted=attempted,
            reason=reason,
            error_message=message,
            offers=self._offers(storage_type),
        )
        logger.error("storage_unavailable", backend=storage_type.value, reason=reason, attempted=tried)
        self._audit.log(AuditEventBuilder.storage_error(
            backend=storage_type.value,
            reason=reason.value if reason else "",
            error_message=message,
            attempted=[t.value for t in attempted],
        ))
        return self._status

    async def connect(self) -> InitializationStatus:
        """Run the start-up flow for the currently selected backend."""
        requested = self._selector.get_storage_type()
        self._status = InitializationStatus(storage_type=requested)

        if not self._can_use(requested):
            return self._failed(
                requested,
                [requested],
                FailureReason.CAPABILITY_MISSING,
                "MongoDB needs outbound network access, which this environment does not provide",
            )

        attempted: list[StorageType] = []
        current = requested
        while True:
            attempted.append(current)
            self._status = InitializationStatus(storage_type=current, attempted=list(attempted))
            result = await self._try_backend(current)
            if result.ok:
                return self._connected(current, attempted)

            fallback = next_fallback(current)
            downgrades_used = len(attempted) - 1
            if fallback is None or (not self._cascade and downgrades_used >= 1):
                return self._failed(current, attempted, result.reason, result.message)

            logger.warning(
                "storage_fallback",
                from_backend=current.value,
                to_backend=fallback.value,
                reason=result.reason,
                message=result.message,
            )
            self._audit.log(AuditEventBuilder.storage_fallback(
                from_backend=current.value,
                to_backend=fallback.value,
                reason=result.message or (result.reason.value if result.reason else ""),
            ))
            current = fallback

    async def retry(self) -> InitializationStatus:
        """Start over from the currently selected backend."""
        return await self.connect()

    async def switch_storage(self, storage_type: Union[StorageType, str]) -> InitializationStatus:
        """
        Select a backend manually and connect to it from scratch.

        Raises:
            ValueError: If the tag is not a known backend
        """
        new_type = StorageType(storage_type)
        previous = self._selector.get_storage_type()
        self._selector.set_storage_type(new_type)
        self._audit.log(AuditEventBuilder.storage_switched(previous.value, new_type.value))
        return await self.connect()


class AppComponents(NamedTuple):
    selector: StorageSelector
    initializer: StorageInitializer
    finance: FinanceService
    reports: ReportBuilder
    audit_logger: AuditLogger


def create_app_components(
    settings: Optional[Settings] = None,
    selector: Optional[StorageSelector] = None,
    network: Optional[bool] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        settings: Defaults to the cached environment settings
        selector: Pre-built selector (tests inject fake adapters here)
        network: Override the network capability probe

    Returns:
        (selector, initializer, finance, reports, audit_logger)
    """
    settings = settings or get_settings()
    configure_logging(settings.app.log_level)

    audit_logger = AuditLogger()
    selector = selector or StorageSelector(settings=settings)
    initializer = StorageInitializer(
        selector,
        network=network,
        cascade=settings.storage.fallback_cascade,
        audit_logger=audit_logger,
    )
    finance = FinanceService(
        selector,
        audit_logger=audit_logger,
        recent_count=settings.app.recent_transactions_count,
    )

    return AppComponents(selector, initializer, finance, ReportBuilder(finance), audit_logger)
