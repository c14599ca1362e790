"""
Storage Status Models

Typed outcomes for backend connection/setup, and the status the
initialization controller reports to the UI.

DESIGN DECISION: A plain boolean cannot tell "unreachable" from
"schema setup failed" from "this environment cannot open sockets".
StorageResult carries the reason so the fallback controller and the UI
can explain what happened.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class StorageType(str, Enum):
    """Closed set of backends, ordered from richest to simplest."""
    MONGODB = "mongodb"
    EMBEDDED = "embedded"
    MEMORY = "memory"

    @property
    def label(self) -> str:
        return STORAGE_LABELS[self]


STORAGE_LABELS = {
    StorageType.MONGODB: "MongoDB",
    StorageType.EMBEDDED: "Embedded (SQLite)",
    StorageType.MEMORY: "In-memory",
}

# Downgrade order used when a backend fails.
FALLBACK_CHAIN = (StorageType.MONGODB, StorageType.EMBEDDED, StorageType.MEMORY)


def next_fallback(storage_type: StorageType) -> Optional[StorageType]:
    """The backend to try after `storage_type`, or None at the end of the chain."""
    index = FALLBACK_CHAIN.index(storage_type)
    if index + 1 < len(FALLBACK_CHAIN):
        return FALLBACK_CHAIN[index + 1]
    return None


class FailureReason(str, Enum):
    """Why a backend could not be used."""
    UNREACHABLE = "unreachable"
    SCHEMA_SETUP_FAILED = "schema_setup_failed"
    CAPABILITY_MISSING = "capability_missing"
    UNEXPECTED = "unexpected"


class StorageResult(BaseModel):
    """Outcome of a connection check or a database setup step."""

    ok: bool
    backend: StorageType
    reason: Optional[FailureReason] = None
    message: str = ""

    @classmethod
    def success(cls, backend: StorageType, message: str = "") -> "StorageResult":
        return cls(ok=True, backend=backend, message=message)

    @classmethod
    def failure(
        cls,
        backend: StorageType,
        reason: FailureReason,
        message: str,
    ) -> "StorageResult":
        return cls(ok=False, backend=backend, reason=reason, message=message)


class ConnectionState(str, Enum):
    LOADING = "loading"
    CONNECTED = "connected"
    ERROR = "error"


class InitializationStatus(BaseModel):
    """
    What the initialization controller currently knows.

    `attempted` lists the backends tried since the last (re)connect,
    in order. `offers` lists the recovery actions the UI may show when
    the state is ERROR: "retry" plus the backends the user can switch to.
    """

    state: ConnectionState = ConnectionState.LOADING
    storage_type: StorageType
    attempted: list[StorageType] = Field(default_factory=list)
    reason: Optional[FailureReason] = None
    error_message: Optional[str] = None
    offers: list[str] = Field(default_factory=list)

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED
