"""
CSV Export

Read-only formatters over report and statement views. Nothing here
touches the store; pass in what the queries returned.
"""

import csv
from io import StringIO

from group_ledger.models.group import GroupData
from group_ledger.models.views import LedgerStatement, MonthlyReport


REPORT_HEADERS = [
    "Member Name",
    "Savings",
    "Principal Paid",
    "Interest Paid",
    "Penalty",
    "Total",
    "Date Recorded",
]
EXPENSE_HEADERS = ["EXPENSES - Category", "Description", "Amount", "Date"]
STATEMENT_HEADERS = [
    "Date",
    "Type",
    "Description",
    "Amount",
    "Interest",
    "Balance",
    "Old Rate",
    "New Rate",
    "Reason",
]


def report_filename(month: str) -> str:
    return f"Group_Report_{month}.csv"


def monthly_report_csv(report: MonthlyReport, data: GroupData) -> str:
    """
    Export a monthly report.

    One row per payment record, a blank separator row, then the month's
    admin rewards and misc expenses.
    """
    names = {member.id: member.name for member in data.members}

    buffer = StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(REPORT_HEADERS)

    for record in report.records:
        writer.writerow([
            names.get(record.member_id, "Unknown"),
            record.savings,
            record.principal_paid,
            record.interest_paid,
            record.penalty,
            record.total,
            record.timestamp.date().isoformat(),
        ])

    writer.writerow([])
    writer.writerow(EXPENSE_HEADERS)
    for payment in report.admin_payments:
        writer.writerow([
            "Admin Reward",
            payment.description,
            payment.amount,
            payment.timestamp.date().isoformat(),
        ])
    for payment in report.misc_payments:
        writer.writerow([
            "Misc Expense",
            payment.description,
            payment.amount,
            payment.timestamp.date().isoformat(),
        ])

    content = buffer.getvalue()
    buffer.close()
    return content


def statement_csv(statement: LedgerStatement) -> str:
    """Export a loan statement in display order (newest first)."""
    buffer = StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(STATEMENT_HEADERS)

    for entry in statement.entries:
        writer.writerow([
            entry.date.date().isoformat(),
            entry.entry_type.value,
            entry.description,
            entry.amount,
            "" if entry.interest is None else entry.interest,
            entry.balance,
            "" if entry.old_rate is None else entry.old_rate,
            "" if entry.new_rate is None else entry.new_rate,
            entry.reason or "",
        ])

    content = buffer.getvalue()
    buffer.close()
    return content
