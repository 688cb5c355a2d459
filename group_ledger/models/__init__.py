"""
Data Models Package

This package contains all Pydantic models used in the Group Ledger system.
All data flowing through the system must conform to these schemas.
"""

from group_ledger.models.group import (
    CURRENT_SCHEMA_VERSION,
    AdminPayment,
    AppNotification,
    AuthUser,
    GroupData,
    GroupSettings,
    InterestRateChangeRecord,
    LoanIssuedRecord,
    MeetingNote,
    Member,
    MiscellaneousPayment,
    NotificationType,
    PaymentRecord,
    UserRole,
    month_of,
    new_id,
    utc_now,
)
from group_ledger.models.results import (
    ErrorKind,
    OperationResult,
    ValidationIssue,
    ValidationResult,
)
from group_ledger.models.views import (
    ActiveLoan,
    CollectionTotals,
    DashboardStats,
    ExpenseEntry,
    LedgerEntry,
    LedgerEntryType,
    LedgerStatement,
    MonthlyReport,
    MonthSummary,
    OutstandingDue,
    PaymentAlert,
    PaymentStatus,
    PaymentSuggestion,
    SavingsTrendPoint,
)
from group_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Group data
    "CURRENT_SCHEMA_VERSION",
    "AdminPayment",
    "AppNotification",
    "AuthUser",
    "GroupData",
    "GroupSettings",
    "InterestRateChangeRecord",
    "LoanIssuedRecord",
    "MeetingNote",
    "Member",
    "MiscellaneousPayment",
    "NotificationType",
    "PaymentRecord",
    "UserRole",
    "month_of",
    "new_id",
    "utc_now",
    # Results
    "ErrorKind",
    "OperationResult",
    "ValidationIssue",
    "ValidationResult",
    # Views
    "ActiveLoan",
    "CollectionTotals",
    "DashboardStats",
    "ExpenseEntry",
    "LedgerEntry",
    "LedgerEntryType",
    "LedgerStatement",
    "MonthlyReport",
    "MonthSummary",
    "OutstandingDue",
    "PaymentAlert",
    "PaymentStatus",
    "PaymentSuggestion",
    "SavingsTrendPoint",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
