"""
Audit Logger

DESIGN DECISION: Every ledger mutation is logged, including rejected ones.
This provides:
1. Complete traceability of group money
2. Debugging capability when a balance looks wrong
3. Members can see who changed what
4. A record of unauthorized attempts

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from group_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType, AuditSeverity
from group_ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and member visibility), if configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("group_ledger.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_unauthorized(
        self,
        actor_id: str,
        operation: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a mutation attempted without the admin role."""
        await self.log(AuditEventBuilder.unauthorized(
            actor_id=actor_id,
            operation=operation,
            correlation_id=correlation_id,
        ))

    async def log_rejected(
        self,
        actor_id: str,
        operation: str,
        error_kind: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a mutation refused for a business-rule reason."""
        await self.log(AuditEventBuilder.operation_rejected(
            actor_id=actor_id,
            operation=operation,
            error_kind=error_kind,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_data_loaded(
        self,
        member_count: int,
        schema_version: int,
        from_storage: bool,
    ) -> None:
        await self.log(AuditEventBuilder.data_loaded(
            member_count=member_count,
            schema_version=schema_version,
            from_storage=from_storage,
        ))

    async def log_data_saved(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEvent(
            event_type=AuditEventType.DATA_SAVED,
            severity=AuditSeverity.DEBUG,
            entity_type="group_data",
            correlation_id=correlation_id,
            description="Group data saved",
        ))

    async def log_save_failed(
        self,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.save_failed(
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_insights_generated(
        self,
        actor_id: str,
        model_name: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.insights_generated(
            actor_id=actor_id,
            model_name=model_name,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., issuing a loan).
    Pass it through all subsequent operations, including the save.
    """
    return uuid4()
