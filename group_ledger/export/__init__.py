"""CSV export package."""

from group_ledger.export.csv_export import (
    EXPENSE_HEADERS,
    REPORT_HEADERS,
    STATEMENT_HEADERS,
    monthly_report_csv,
    report_filename,
    statement_csv,
)

__all__ = [
    "EXPENSE_HEADERS",
    "REPORT_HEADERS",
    "STATEMENT_HEADERS",
    "monthly_report_csv",
    "report_filename",
    "statement_csv",
]
