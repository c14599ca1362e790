"""
Audit Models for Cashbook

Every storage lifecycle change and every write to the cashbook is
recorded as an AuditEvent. This provides:
1. Traceability of backend switches and fallbacks
2. Debugging information when a backend misbehaves
3. A history the settings page can show

DESIGN DECISION: Audit events are append-only. We never modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from cashbook.models.finance import EntityId, utc_now


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Storage lifecycle
    STORAGE_CONNECTED = "storage_connected"
    STORAGE_FALLBACK = "storage_fallback"
    STORAGE_ERROR = "storage_error"
    STORAGE_SWITCHED = "storage_switched"

    # Categories
    CATEGORY_CREATED = "category_created"
    CATEGORY_UPDATED = "category_updated"
    CATEGORY_DELETED = "category_deleted"
    CATEGORY_DELETE_REJECTED = "category_delete_rejected"

    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'category', 'transaction', 'storage')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.storage_fallback("mongodb", "embedded", "unreachable")
        event = AuditEventBuilder.category_created(category_id, name)
    """

    @staticmethod
    def storage_connected(backend: str, attempted: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_CONNECTED,
            entity_type="storage",
            entity_id=backend,
            description=f"Connected to {backend} storage",
            details={"attempted": attempted},
        )

    @staticmethod
    def storage_fallback(from_backend: str, to_backend: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_FALLBACK,
            severity=AuditSeverity.WARNING,
            entity_type="storage",
            entity_id=from_backend,
            description=f"Falling back from {from_backend} to {to_backend} storage",
            details={
                "from": from_backend,
                "to": to_backend,
                "reason": reason,
            },
        )

    @staticmethod
    def storage_error(
        backend: str,
        reason: str,
        error_message: str,
        attempted: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            entity_type="storage",
            entity_id=backend,
            description=f"No usable storage backend (last tried: {backend})",
            error_message=error_message,
            details={"reason": reason, "attempted": attempted},
        )

    @staticmethod
    def storage_switched(from_backend: str, to_backend: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_SWITCHED,
            entity_type="storage",
            entity_id=to_backend,
            description=f"Storage switched from {from_backend} to {to_backend}",
            details={"from": from_backend, "to": to_backend},
            is_user_action=True,
        )

    @staticmethod
    def category_created(category_id: EntityId, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_CREATED,
            entity_type="category",
            entity_id=str(category_id),
            description=f"Category created: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def category_updated(category_id: EntityId, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_UPDATED,
            entity_type="category",
            entity_id=str(category_id),
            description=f"Category renamed to: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def category_deleted(category_id: EntityId) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETED,
            entity_type="category",
            entity_id=str(category_id),
            description="Category deleted",
            is_user_action=True,
        )

    @staticmethod
    def category_delete_rejected(category_id: EntityId, usage_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CATEGORY_DELETE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="category",
            entity_id=str(category_id),
            description="Cannot delete category that is in use",
            details={"transaction_count": usage_count},
            is_user_action=True,
        )

    @staticmethod
    def transaction_created(
        transaction_id: EntityId,
        transaction_type: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_CREATED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            description=f"{transaction_type} recorded: {amount}",
            details={"type": transaction_type, "amount": amount},
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(transaction_id: EntityId, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            description=f"Transaction updated ({', '.join(fields) or 'no fields'})",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(transaction_id: EntityId) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=str(transaction_id),
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
