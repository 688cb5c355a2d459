"""
Audit Models for Group Ledger

Every ledger mutation, rejection and external call is logged for audit.
This provides:
1. Traceability of who changed group money and when
2. Debugging information when balances look wrong
3. Accountability to the members of the group
4. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from group_ledger.models.group import utc_now


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every mutation operation has its own event type.
    """
    # Members
    MEMBER_ADDED = "member_added"
    MEMBER_UPDATED = "member_updated"
    MEMBER_DELETED = "member_deleted"

    # Loans and collections
    LOAN_ISSUED = "loan_issued"
    PAYMENT_RECORDED = "payment_recorded"
    INTEREST_RATE_ADJUSTED = "interest_rate_adjusted"

    # Expenses
    EXPENSE_ADDED = "expense_added"
    EXPENSE_REMOVED = "expense_removed"

    # Configuration
    SETTINGS_UPDATED = "settings_updated"
    SAVINGS_TARGET_SET = "savings_target_set"
    SAVINGS_TARGET_REMOVED = "savings_target_removed"

    # Meeting notes and notifications
    MEETING_NOTE_ADDED = "meeting_note_added"
    MEETING_NOTE_PUBLISHED = "meeting_note_published"
    MEETING_NOTE_DELETED = "meeting_note_deleted"
    NOTIFICATIONS_READ = "notifications_read"
    NOTIFICATIONS_CLEARED = "notifications_cleared"

    # Rejections
    UNAUTHORIZED_ATTEMPT = "unauthorized_attempt"
    OPERATION_REJECTED = "operation_rejected"

    # Persistence
    DATA_LOADED = "data_loaded"
    DATA_SAVED = "data_saved"
    SAVE_FAILED = "save_failed"

    # Insights
    INSIGHTS_GENERATED = "insights_generated"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


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
    Every mutation creates one of these, accepted or rejected.
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
        description="Type of entity (e.g., 'member', 'loan', 'payment')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Who did it
    actor_id: Optional[str] = Field(
        default=None,
        description="ID of the acting user"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one mutation and its save)"
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

    error_code: Optional[str] = None
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
            "actor_id": self.actor_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         actor_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            self.actor_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


def _money(value: Decimal) -> str:
    return f"₹{value:,.2f}"


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.loan_issued(actor_id, loan_id, member_id, amount, rate)
        event = AuditEventBuilder.unauthorized(actor_id, "add_member")
    """

    @staticmethod
    def member_changed(
        event_type: AuditEventType,
        actor_id: str,
        member_id: str,
        member_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        verb = {
            AuditEventType.MEMBER_ADDED: "added",
            AuditEventType.MEMBER_UPDATED: "updated",
            AuditEventType.MEMBER_DELETED: "deleted",
        }.get(event_type, "changed")
        return AuditEvent(
            event_type=event_type,
            entity_type="member",
            entity_id=member_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Member {verb}: {member_name}",
            details={"member_name": member_name},
            is_user_action=True,
        )

    @staticmethod
    def loan_issued(
        actor_id: str,
        loan_id: str,
        member_id: str,
        amount: Decimal,
        interest_rate: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOAN_ISSUED,
            entity_type="loan",
            entity_id=loan_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Loan of {_money(amount)} issued at {interest_rate}% per month",
            details={
                "member_id": member_id,
                "amount": str(amount),
                "interest_rate": str(interest_rate),
            },
            is_user_action=True,
        )

    @staticmethod
    def payment_recorded(
        actor_id: str,
        record_id: str,
        member_id: str,
        month: str,
        total: Decimal,
        principal_paid: Decimal,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PAYMENT_RECORDED,
            entity_type="payment",
            entity_id=record_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Payment of {_money(total)} recorded for {month}",
            details={
                "member_id": member_id,
                "month": month,
                "total": str(total),
                "principal_paid": str(principal_paid),
            },
            is_user_action=True,
        )

    @staticmethod
    def interest_rate_adjusted(
        actor_id: str,
        change_id: str,
        member_id: str,
        old_rate: Decimal,
        new_rate: Decimal,
        reason: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INTEREST_RATE_ADJUSTED,
            entity_type="interest_rate_change",
            entity_id=change_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Interest adjusted: {old_rate}% → {new_rate}%",
            details={
                "member_id": member_id,
                "old_rate": str(old_rate),
                "new_rate": str(new_rate),
                "reason": reason,
            },
            is_user_action=True,
        )

    @staticmethod
    def expense_changed(
        actor_id: str,
        expense_id: str,
        category: str,
        amount: Decimal,
        removed: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.EXPENSE_REMOVED if removed
                else AuditEventType.EXPENSE_ADDED
            ),
            entity_type=category,
            entity_id=expense_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=(
                f"{'Removed' if removed else 'Added'} {category.replace('_', ' ')}"
                f" of {_money(amount)}"
            ),
            details={"amount": str(amount)},
            is_user_action=True,
        )

    @staticmethod
    def simple(
        event_type: AuditEventType,
        actor_id: str,
        description: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        """Settings, savings targets, meeting notes and notifications."""
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=description,
            details=details or {},
            is_user_action=True,
        )

    @staticmethod
    def unauthorized(
        actor_id: str,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.UNAUTHORIZED_ATTEMPT,
            severity=AuditSeverity.WARNING,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"Unauthorized attempt: {operation}",
            details={"operation": operation},
            is_user_action=True,
        )

    @staticmethod
    def operation_rejected(
        actor_id: str,
        operation: str,
        error_kind: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.OPERATION_REJECTED,
            severity=AuditSeverity.WARNING,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description=f"{operation} rejected: {error_kind}",
            error_code=error_kind,
            error_message=error_message,
            details={"operation": operation},
            is_user_action=True,
        )

    @staticmethod
    def data_loaded(
        member_count: int,
        schema_version: int,
        from_storage: bool,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_LOADED,
            entity_type="group_data",
            description=(
                f"Group data loaded ({member_count} members)"
                if from_storage
                else "No stored data, seeded initial group data"
            ),
            details={
                "member_count": member_count,
                "schema_version": schema_version,
                "from_storage": from_storage,
            },
        )

    @staticmethod
    def save_failed(
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="group_data",
            correlation_id=correlation_id,
            description="Saving group data failed",
            error_message=error_message,
        )

    @staticmethod
    def insights_generated(
        actor_id: str,
        model_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSIGHTS_GENERATED,
            actor_id=actor_id,
            correlation_id=correlation_id,
            description="Financial insights generated",
            details={"model": model_name},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
