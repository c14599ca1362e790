"""
Data Models Package

This package contains all Pydantic models used by Cashbook.
Every storage backend returns and accepts these shapes.
"""

from cashbook.models.finance import (
    DEFAULT_CATEGORIES,
    Category,
    EntityId,
    FinanceSummary,
    Transaction,
    TransactionCreate,
    TransactionType,
    TransactionUpdate,
    calculate_summary,
    recent_transactions,
    sort_by_date_desc,
)
from cashbook.models.storage import (
    FALLBACK_CHAIN,
    ConnectionState,
    FailureReason,
    InitializationStatus,
    StorageResult,
    StorageType,
)
from cashbook.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "DEFAULT_CATEGORIES",
    "Category",
    "EntityId",
    "FinanceSummary",
    "Transaction",
    "TransactionCreate",
    "TransactionType",
    "TransactionUpdate",
    "calculate_summary",
    "recent_transactions",
    "sort_by_date_desc",
    # Storage status models
    "FALLBACK_CHAIN",
    "ConnectionState",
    "FailureReason",
    "InitializationStatus",
    "StorageResult",
    "StorageType",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
