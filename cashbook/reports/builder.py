"""
Report Builder

DESIGN DECISION: Reports are built from the finance service's loaded
data, never from a separate storage query. What the report shows is
exactly what the dashboard shows for the same filters.

A report covers one transaction type over an inclusive date range.
Each row carries the reference number that matters for that type
(ref number, cheque number or voucher number).
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, Field

from cashbook.models.finance import CalendarDate, EntityId, TransactionType, utc_now
from cashbook.services.finance import FinanceService
from cashbook.services.storage.interface import as_date


UNCATEGORIZED = "Uncategorized"


class ReportRow(BaseModel):
    transaction_id: EntityId
    date: CalendarDate
    reference: str = ""
    category: str
    description: str = ""
    amount: Decimal


class TransactionReport(BaseModel):
    """One transaction type over an inclusive date range."""

    transaction_type: TransactionType
    date_from: CalendarDate
    date_to: CalendarDate
    rows: list[ReportRow] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=utc_now)

    @property
    def title(self) -> str:
        return f"{self.transaction_type.label} Report"

    @property
    def reference_header(self) -> str:
        return {
            TransactionType.DEPOSIT: "Ref Number",
            TransactionType.WITHDRAWAL: "Cheque Number",
            TransactionType.PETTY_CASH: "Voucher Number",
        }[self.transaction_type]

    @property
    def total(self) -> Decimal:
        return sum((row.amount for row in self.rows), Decimal("0"))

    @property
    def is_empty(self) -> bool:
        return not self.rows


class CategoryTotal(BaseModel):
    category: str
    deposits: Decimal = Decimal("0")
    withdrawals: Decimal = Decimal("0")
    petty_cash: Decimal = Decimal("0")

    @property
    def spent(self) -> Decimal:
        return self.withdrawals + self.petty_cash


class ReportBuilder:
    """Builds reports from a loaded FinanceService."""

    def __init__(self, finance: FinanceService):
        self._finance = finance

    def _category_name(self, category_id: EntityId) -> str:
        return self._finance.get_category_name(category_id) or UNCATEGORIZED

    def build(
        self,
        transaction_type: Union[TransactionType, str],
        date_from: Union[date, str],
        date_to: Union[date, str],
    ) -> TransactionReport:
        """
        Rows for one transaction type, oldest first.

        Raises:
            ValueError: If date_from is after date_to
        """
        transaction_type = TransactionType(transaction_type)
        start, end = as_date(date_from), as_date(date_to)
        if start > end:
            raise ValueError(f"Report start {start} is after end {end}")

        matching = [
            t for t in self._finance.get_transactions_by_date_range(start, end)
            if t.type == transaction_type
        ]
        # sort() is stable, so same-day rows keep the service order
        matching.sort(key=lambda t: t.date)

        rows = [
            ReportRow(
                transaction_id=t.id,
                date=t.date,
                reference=t.reference_number or "",
                category=self._category_name(t.category_id),
                description=t.description,
                amount=t.amount,
            )
            for t in matching
        ]
        return TransactionReport(
            transaction_type=transaction_type,
            date_from=start,
            date_to=end,
            rows=rows,
        )

    def category_breakdown(
        self,
        date_from: Optional[Union[date, str]] = None,
        date_to: Optional[Union[date, str]] = None,
    ) -> list[CategoryTotal]:
        """Per-category totals by type, largest spend first. Open-ended when dates are omitted."""
        transactions = self._finance.transactions
        if date_from is not None:
            start = as_date(date_from)
            transactions = [t for t in transactions if t.date >= start]
        if date_to is not None:
            end = as_date(date_to)
            transactions = [t for t in transactions if t.date <= end]

        totals: dict[str, CategoryTotal] = {}
        for t in transactions:
            name = self._category_name(t.category_id)
            entry = totals.setdefault(name, CategoryTotal(category=name))
            if t.type == TransactionType.DEPOSIT:
                entry.deposits += t.amount
            elif t.type == TransactionType.WITHDRAWAL:
                entry.withdrawals += t.amount
            else:
                entry.petty_cash += t.amount

        return sorted(totals.values(), key=lambda e: (-e.spent, e.category))
