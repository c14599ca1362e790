"""Report generation package."""

from cashbook.reports.builder import (
    CategoryTotal,
    ReportBuilder,
    ReportRow,
    TransactionReport,
    UNCATEGORIZED,
)

__all__ = [
    "CategoryTotal",
    "ReportBuilder",
    "ReportRow",
    "TransactionReport",
    "UNCATEGORIZED",
]
