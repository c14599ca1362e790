"""
Core Finance Models for Cashbook

These models define the schemas shared by every storage backend and
by the application data layer:
1. Category and Transaction (persisted)
2. TransactionCreate / TransactionUpdate (write payloads)
3. FinanceSummary (derived, never persisted)

DESIGN DECISION: Identifiers are `int | str`. The embedded and
in-memory stores hand out sequential integers, the document database
hands out its native id as a string. Callers treat ids as opaque.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


EntityId = Union[int, str]

# Models below have a field named `date`, so annotations use this alias.
CalendarDate = date


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """
    The three kinds of money movement the cashbook tracks.

    Each type carries its own reference field:
    deposit -> ref_number, withdrawal -> cheque_number,
    petty-cash -> voucher_number.
    """
    DEPOSIT = "deposit"
    WITHDRAWAL = "withdrawal"
    PETTY_CASH = "petty-cash"

    @property
    def label(self) -> str:
        return self.value.replace("-", " ").capitalize()

    @property
    def reference_field(self) -> str:
        return REFERENCE_FIELDS[self]


REFERENCE_FIELDS = {
    TransactionType.DEPOSIT: "ref_number",
    TransactionType.WITHDRAWAL: "cheque_number",
    TransactionType.PETTY_CASH: "voucher_number",
}


# =============================================================================
# CATEGORY
# =============================================================================

class Category(BaseModel):
    """A transaction category. Names are not required to be unique."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: EntityId
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Display name"
    )


# =============================================================================
# TRANSACTIONS
# =============================================================================

class TransactionCreate(BaseModel):
    """
    Payload for creating a transaction.

    Only the reference field matching `type` is kept; the other two are
    cleared so exactly one is semantically populated.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    type: TransactionType
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Magnitude of the movement, currency agnostic"
    )
    date: CalendarDate
    category_id: EntityId
    description: str = Field(
        ...,
        min_length=1,
        max_length=500,
    )
    ref_number: Optional[str] = Field(default=None, max_length=50)
    cheque_number: Optional[str] = Field(default=None, max_length=50)
    voucher_number: Optional[str] = Field(default=None, max_length=50)

    @model_validator(mode='after')
    def keep_matching_reference(self):
        keep = REFERENCE_FIELDS[self.type]
        for field_name in REFERENCE_FIELDS.values():
            if field_name != keep:
                setattr(self, field_name, None)
            elif getattr(self, field_name) == "":
                setattr(self, field_name, None)
        return self

    @property
    def reference_number(self) -> Optional[str]:
        return getattr(self, REFERENCE_FIELDS[self.type])


class Transaction(TransactionCreate):
    """A stored transaction, as returned by every backend."""

    id: EntityId
    created_at: datetime
    updated_at: datetime


class TransactionUpdate(BaseModel):
    """
    Partial update for a transaction.

    Only the fields that were explicitly set end up in the merge patch;
    identity and timestamps are never patchable.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    type: Optional[TransactionType] = None
    amount: Optional[Decimal] = Field(default=None, ge=0)
    date: Optional[CalendarDate] = None
    category_id: Optional[EntityId] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    ref_number: Optional[str] = Field(default=None, max_length=50)
    cheque_number: Optional[str] = Field(default=None, max_length=50)
    voucher_number: Optional[str] = Field(default=None, max_length=50)

    def to_patch(self) -> dict[str, Any]:
        """Fields explicitly provided by the caller."""
        return self.model_dump(exclude_unset=True)


def as_create(payload: Union[TransactionCreate, dict]) -> TransactionCreate:
    if isinstance(payload, TransactionCreate):
        return payload
    return TransactionCreate.model_validate(payload)


def as_patch(updates: Union[TransactionUpdate, dict]) -> dict[str, Any]:
    if not isinstance(updates, TransactionUpdate):
        updates = TransactionUpdate.model_validate(updates)
    return updates.to_patch()


def merge_transaction(current: Transaction, patch: dict[str, Any]) -> Transaction:
    """Apply a merge patch and refresh `updated_at`."""
    data = current.model_dump()
    data.update(patch)
    data["updated_at"] = utc_now()
    return Transaction.model_validate(data)


# =============================================================================
# DERIVED SUMMARY
# =============================================================================

class FinanceSummary(BaseModel):
    """Totals derived from the full transaction set."""

    total_deposit: Decimal = Decimal("0")
    total_withdrawal: Decimal = Decimal("0")
    total_petty_cash: Decimal = Decimal("0")
    bank_balance: Decimal = Decimal("0")
    cash_in_hand: Decimal = Decimal("0")


def calculate_summary(transactions: Iterable[Transaction]) -> FinanceSummary:
    """
    Single pass over the transactions.

    bank_balance = deposits - withdrawals
    cash_in_hand = withdrawals - petty cash
    """
    totals = {kind: Decimal("0") for kind in TransactionType}
    for transaction in transactions:
        totals[transaction.type] += transaction.amount

    deposit = totals[TransactionType.DEPOSIT]
    withdrawal = totals[TransactionType.WITHDRAWAL]
    petty_cash = totals[TransactionType.PETTY_CASH]

    return FinanceSummary(
        total_deposit=deposit,
        total_withdrawal=withdrawal,
        total_petty_cash=petty_cash,
        bank_balance=deposit - withdrawal,
        cash_in_hand=withdrawal - petty_cash,
    )


def sort_by_date_desc(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Newest first; equal dates keep their original relative order."""
    return sorted(transactions, key=lambda t: t.date, reverse=True)


def recent_transactions(transactions: Iterable[Transaction], count: int = 5) -> list[Transaction]:
    """The `count` most recent transactions by date."""
    if count <= 0:
        return []
    return sort_by_date_desc(transactions)[:count]


# =============================================================================
# SEED DATA
# =============================================================================

DEFAULT_CATEGORIES = ("Salary", "Rent", "Utilities", "Office Supplies", "Travel")


def sample_transactions(category_ids: list[EntityId], today: Optional[date] = None) -> list[TransactionCreate]:
    """
    Illustrative transactions for a freshly seeded store.

    `category_ids` are the ids of DEFAULT_CATEGORIES, in order.
    """
    today = today or date.today()
    yesterday = today - timedelta(days=1)
    return [
        TransactionCreate(
            type=TransactionType.DEPOSIT,
            amount=Decimal("5000"),
            date=today,
            category_id=category_ids[0],
            description="Monthly salary",
            ref_number="DEP001",
        ),
        TransactionCreate(
            type=TransactionType.WITHDRAWAL,
            amount=Decimal("1500"),
            date=today,
            category_id=category_ids[1],
            description="Office rent payment",
            cheque_number="CHQ101",
        ),
        TransactionCreate(
            type=TransactionType.PETTY_CASH,
            amount=Decimal("200"),
            date=yesterday,
            category_id=category_ids[3],
            description="Office stationery",
            voucher_number="PET001",
        ),
    ]
