"""Read-side query package: ledger replay and aggregate statistics."""

from group_ledger.queries.ledger import build_statement, collect_events, replay_balance
from group_ledger.queries.statistics import (
    ACTIVE_LOAN_SORT_FIELDS,
    active_loans,
    collection_totals,
    dashboard_stats,
    growth_savings,
    month_summary,
    monthly_report,
    net_liquid_funds,
    outstanding_dues,
    payment_alerts,
    payment_status,
    recent_expenses,
    recent_meeting_notes_count,
    savings_trend,
    suggest_payment,
    total_expenses,
    unread_notification_count,
    visible_meeting_notes,
)

__all__ = [
    "ACTIVE_LOAN_SORT_FIELDS",
    "active_loans",
    "build_statement",
    "collect_events",
    "collection_totals",
    "dashboard_stats",
    "growth_savings",
    "month_summary",
    "monthly_report",
    "net_liquid_funds",
    "outstanding_dues",
    "payment_alerts",
    "payment_status",
    "recent_expenses",
    "recent_meeting_notes_count",
    "replay_balance",
    "savings_trend",
    "suggest_payment",
    "total_expenses",
    "unread_notification_count",
    "visible_meeting_notes",
]
