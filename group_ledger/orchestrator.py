"""
Main Orchestrator for Group Ledger

This module ties together the store, persistence, audit logging and the
insights agent, and defines the end-to-end flows for:
1. Startup (load → migrate → seed if empty)
2. Mutation (authorize → validate → apply → audit → save in background)
3. Insights (snapshot → model with timeout → fallback message on failure)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The store never does I/O; saving happens here, after the mutation
- Saves are fire-and-forget; a failed save is logged, never raised
- Every mutation attempt is audited, including rejected ones
- The insights call can never change ledger state

This is the "glue" that keeps the synchronous core free of I/O.
"""

import asyncio
from typing import Callable, Optional
from uuid import UUID

import structlog

from group_ledger.agents import FALLBACK_MESSAGE, FinancialInsights, InsightsAgent, InsightsSnapshot
from group_ledger.audit import AuditLogger, create_correlation_id
from group_ledger.config import LedgerSettings, StorageBackend, get_settings
from group_ledger.export import monthly_report_csv
from group_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from group_ledger.models.group import (
    AdminPayment,
    AuthUser,
    GroupData,
    GroupSettings,
    InterestRateChangeRecord,
    LoanIssuedRecord,
    MeetingNote,
    Member,
    MiscellaneousPayment,
    PaymentRecord,
)
from group_ledger.models.results import ErrorKind, OperationResult
from group_ledger.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsGroupStore,
    GroupDataStorageInterface,
    InMemoryGroupStore,
    JsonFileGroupStore,
    StorageError,
    default_group_data,
)
from group_ledger.store import GroupLedgerStore


logger = structlog.get_logger("group_ledger.orchestrator")


class GroupLedgerService:
    """
    Async facade over GroupLedgerStore.

    Flow for every mutation:
    1. Store applies it under its lock (or returns a rejection)
    2. Audit event is written (success, rejection or unauthorized)
    3. On success a snapshot is saved in a background task

    Reads go straight to `service.store`; they need no audit or save.
    """

    def __init__(
        self,
        store: GroupLedgerStore,
        data_storage: Optional[GroupDataStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        insights_agent: Optional[InsightsAgent] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._store = store
        self._data_storage = data_storage
        self._audit_logger = audit_logger or AuditLogger()
        self._insights_agent = insights_agent
        self._settings = settings or LedgerSettings()
        self._pending_saves: set[asyncio.Task] = set()
        self._save_lock = asyncio.Lock()

    @classmethod
    async def load(
        cls,
        data_storage: Optional[GroupDataStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        insights_agent: Optional[InsightsAgent] = None,
        settings: Optional[LedgerSettings] = None,
    ) -> "GroupLedgerService":
        """
        Load stored data (already migrated by the storage layer) or seed it.

        Storage errors on load propagate: starting on top of unreadable
        data would overwrite it on the first save.
        """
        settings = settings or LedgerSettings()
        audit_logger = audit_logger or AuditLogger()

        data: Optional[GroupData] = None
        if data_storage is not None:
            try:
                data = await data_storage.load()
            except StorageError as e:
                await audit_logger.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"backend": type(data_storage).__name__},
                )
                raise
        from_storage = data is not None
        if data is None:
            data = default_group_data()

        await audit_logger.log_data_loaded(
            member_count=len(data.members),
            schema_version=data.schema_version,
            from_storage=from_storage,
        )

        service = cls(
            GroupLedgerStore.from_settings(data, settings),
            data_storage=data_storage,
            audit_logger=audit_logger,
            insights_agent=insights_agent,
            settings=settings,
        )
        if not from_storage:
            service._schedule_save(create_correlation_id())
        return service

    @property
    def store(self) -> GroupLedgerStore:
        return self._store

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def _schedule_save(self, correlation_id: UUID) -> None:
        if self._data_storage is None:
            return
        snapshot = self._store.snapshot()
        task = asyncio.create_task(self._save(snapshot, correlation_id))
        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)

    async def _save(self, snapshot: GroupData, correlation_id: UUID) -> None:
        # asyncio.Lock wakes waiters in FIFO order, so snapshots land in mutation order
        async with self._save_lock:
            try:
                await self._data_storage.save(snapshot)
            except Exception as e:
                await self._audit_logger.log_save_failed(
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
                return
        await self._audit_logger.log_data_saved(correlation_id)

    async def flush(self) -> None:
        """Wait for every scheduled save to finish."""
        while self._pending_saves:
            await asyncio.gather(*list(self._pending_saves))

    # =========================================================================
    # MUTATION PIPELINE
    # =========================================================================

    async def _complete(
        self,
        auth: AuthUser,
        operation: str,
        result: OperationResult,
        success_event: Callable[[UUID], AuditEvent],
    ) -> OperationResult:
        correlation_id = create_correlation_id()

        if result.success:
            await self._audit_logger.log(success_event(correlation_id))
            self._schedule_save(correlation_id)
        elif result.error_kind == ErrorKind.UNAUTHORIZED:
            await self._audit_logger.log_unauthorized(
                actor_id=auth.id,
                operation=operation,
                correlation_id=correlation_id,
            )
        else:
            await self._audit_logger.log_rejected(
                actor_id=auth.id,
                operation=operation,
                error_kind=result.error_kind.value if result.error_kind else "unknown",
                error_message=result.error_message or "",
                correlation_id=correlation_id,
            )
        return result

    def _member_event(self, auth: AuthUser, event_type: AuditEventType, result: OperationResult):
        def build(correlation_id: UUID) -> AuditEvent:
            member: Member = result.value
            return AuditEventBuilder.member_changed(
                event_type, auth.id, member.id, member.name, correlation_id
            )
        return build

    def _simple_event(
        self,
        auth: AuthUser,
        event_type: AuditEventType,
        description: str,
        entity_type: Optional[str] = None,
        entity_id: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        def build(correlation_id: UUID) -> AuditEvent:
            return AuditEventBuilder.simple(
                event_type,
                auth.id,
                description,
                entity_type=entity_type,
                entity_id=entity_id,
                details=details,
                correlation_id=correlation_id,
            )
        return build

    # =========================================================================
    # MEMBERS
    # =========================================================================

    async def add_member(self, auth: AuthUser, name: str, **fields) -> OperationResult[Member]:
        result = self._store.add_member(auth, name, **fields)
        return await self._complete(
            auth, "add_member", result,
            self._member_event(auth, AuditEventType.MEMBER_ADDED, result),
        )

    async def update_member(self, auth: AuthUser, member_id: str, **changes) -> OperationResult[Member]:
        result = self._store.update_member(auth, member_id, **changes)
        return await self._complete(
            auth, "update_member", result,
            self._member_event(auth, AuditEventType.MEMBER_UPDATED, result),
        )

    async def delete_member(self, auth: AuthUser, member_id: str) -> OperationResult[Member]:
        result = self._store.delete_member(auth, member_id)
        return await self._complete(
            auth, "delete_member", result,
            self._member_event(auth, AuditEventType.MEMBER_DELETED, result),
        )

    # =========================================================================
    # LOANS, PAYMENTS & RATES
    # =========================================================================

    async def issue_loan(self, auth: AuthUser, member_id: str, amount, interest_rate=None) -> OperationResult[LoanIssuedRecord]:
        result = self._store.issue_loan(auth, member_id, amount, interest_rate)

        def build(correlation_id: UUID) -> AuditEvent:
            loan: LoanIssuedRecord = result.value
            return AuditEventBuilder.loan_issued(
                auth.id, loan.id, loan.member_id, loan.amount, loan.interest_rate, correlation_id
            )
        return await self._complete(auth, "issue_loan", result, build)

    async def record_payment(self, auth: AuthUser, member_id: str, month: str, **amounts) -> OperationResult[PaymentRecord]:
        result = self._store.record_payment(auth, member_id, month, **amounts)

        def build(correlation_id: UUID) -> AuditEvent:
            record: PaymentRecord = result.value
            return AuditEventBuilder.payment_recorded(
                auth.id, record.id, record.member_id, record.month,
                record.total, record.principal_paid, correlation_id,
            )
        return await self._complete(auth, "record_payment", result, build)

    async def adjust_interest_rate(
        self,
        auth: AuthUser,
        member_id: str,
        new_rate,
        reason: str = "",
    ) -> OperationResult[InterestRateChangeRecord]:
        result = self._store.adjust_interest_rate(auth, member_id, new_rate, reason)

        def build(correlation_id: UUID) -> AuditEvent:
            change: InterestRateChangeRecord = result.value
            return AuditEventBuilder.interest_rate_adjusted(
                auth.id, change.id, change.member_id, change.old_rate,
                change.new_rate, change.reason, correlation_id,
            )
        return await self._complete(auth, "adjust_interest_rate", result, build)

    # =========================================================================
    # EXPENSES
    # =========================================================================

    def _expense_event(self, auth: AuthUser, category: str, result: OperationResult, removed: bool = False):
        def build(correlation_id: UUID) -> AuditEvent:
            payment = result.value
            return AuditEventBuilder.expense_changed(
                auth.id, payment.id, category, payment.amount, removed, correlation_id
            )
        return build

    async def add_admin_payment(self, auth: AuthUser, month: str, amount, **fields) -> OperationResult[AdminPayment]:
        result = self._store.add_admin_payment(auth, month, amount, **fields)
        return await self._complete(
            auth, "add_admin_payment", result,
            self._expense_event(auth, "admin_payment", result),
        )

    async def add_misc_payment(self, auth: AuthUser, month: str, amount, description: str) -> OperationResult[MiscellaneousPayment]:
        result = self._store.add_misc_payment(auth, month, amount, description)
        return await self._complete(
            auth, "add_misc_payment", result,
            self._expense_event(auth, "misc_payment", result),
        )

    async def remove_admin_payment(self, auth: AuthUser, payment_id: str) -> OperationResult[AdminPayment]:
        result = self._store.remove_admin_payment(auth, payment_id)
        return await self._complete(
            auth, "remove_admin_payment", result,
            self._expense_event(auth, "admin_payment", result, removed=True),
        )

    async def remove_misc_payment(self, auth: AuthUser, payment_id: str) -> OperationResult[MiscellaneousPayment]:
        result = self._store.remove_misc_payment(auth, payment_id)
        return await self._complete(
            auth, "remove_misc_payment", result,
            self._expense_event(auth, "misc_payment", result, removed=True),
        )

    # =========================================================================
    # SETTINGS & TARGETS
    # =========================================================================

    async def update_settings(self, auth: AuthUser, settings: GroupSettings) -> OperationResult[GroupSettings]:
        result = self._store.update_settings(auth, settings)
        return await self._complete(
            auth, "update_settings", result,
            self._simple_event(
                auth, AuditEventType.SETTINGS_UPDATED, "Group settings updated",
                entity_type="settings",
            ),
        )

    async def set_monthly_savings_target(self, auth: AuthUser, month: str, amount) -> OperationResult:
        result = self._store.set_monthly_savings_target(auth, month, amount)
        return await self._complete(
            auth, "set_monthly_savings_target", result,
            self._simple_event(
                auth, AuditEventType.SAVINGS_TARGET_SET, f"Savings target set for {month}",
                entity_type="savings_target", entity_id=month,
                details={"amount": str(result.value)},
            ),
        )

    async def remove_monthly_savings_target(self, auth: AuthUser, month: str) -> OperationResult:
        result = self._store.remove_monthly_savings_target(auth, month)
        return await self._complete(
            auth, "remove_monthly_savings_target", result,
            self._simple_event(
                auth, AuditEventType.SAVINGS_TARGET_REMOVED, f"Savings target removed for {month}",
                entity_type="savings_target", entity_id=month,
            ),
        )

    # =========================================================================
    # MEETING NOTES & NOTIFICATIONS
    # =========================================================================

    async def add_meeting_note(self, auth: AuthUser, month: str, content: str) -> OperationResult[MeetingNote]:
        result = self._store.add_meeting_note(auth, month, content)
        note_id = result.value.id if result.success else None
        return await self._complete(
            auth, "add_meeting_note", result,
            self._simple_event(
                auth, AuditEventType.MEETING_NOTE_ADDED, f"Meeting note drafted for {month}",
                entity_type="meeting_note", entity_id=note_id,
            ),
        )

    async def publish_meeting_note(self, auth: AuthUser, note_id: str) -> OperationResult[MeetingNote]:
        result = self._store.publish_meeting_note(auth, note_id)
        return await self._complete(
            auth, "publish_meeting_note", result,
            self._simple_event(
                auth, AuditEventType.MEETING_NOTE_PUBLISHED, "Meeting note published",
                entity_type="meeting_note", entity_id=note_id,
            ),
        )

    async def delete_meeting_note(self, auth: AuthUser, note_id: str) -> OperationResult[MeetingNote]:
        result = self._store.delete_meeting_note(auth, note_id)
        return await self._complete(
            auth, "delete_meeting_note", result,
            self._simple_event(
                auth, AuditEventType.MEETING_NOTE_DELETED, "Meeting note deleted",
                entity_type="meeting_note", entity_id=note_id,
            ),
        )

    async def mark_notifications_read(self, auth: AuthUser) -> OperationResult[int]:
        result = self._store.mark_notifications_read(auth)
        return await self._complete(
            auth, "mark_notifications_read", result,
            self._simple_event(
                auth, AuditEventType.NOTIFICATIONS_READ,
                f"{result.value or 0} notifications marked read",
            ),
        )

    async def clear_notifications(self, auth: AuthUser) -> OperationResult[int]:
        result = self._store.clear_notifications(auth)
        return await self._complete(
            auth, "clear_notifications", result,
            self._simple_event(
                auth, AuditEventType.NOTIFICATIONS_CLEARED,
                f"{result.value or 0} notifications cleared",
            ),
        )

    # =========================================================================
    # INSIGHTS & EXPORT
    # =========================================================================

    async def get_insights(self, auth: AuthUser) -> OperationResult[FinancialInsights]:
        """
        Ask the AI advisor for a written assessment.

        Admin only. Timeouts and model failures come back as
        EXTERNAL_SERVICE_ERROR carrying the user-facing fallback text.
        """
        correlation_id = create_correlation_id()

        if not auth.is_admin:
            await self._audit_logger.log_unauthorized(auth.id, "get_insights", correlation_id)
            return OperationResult.fail(ErrorKind.UNAUTHORIZED, "get_insights requires the ADMIN role")

        if self._insights_agent is None:
            await self._audit_logger.log_external_service_error(
                service="gemini",
                error_message="Insights agent not configured",
                correlation_id=correlation_id,
            )
            return OperationResult.fail(ErrorKind.EXTERNAL_SERVICE_ERROR, FALLBACK_MESSAGE)

        snapshot = InsightsSnapshot.from_group(
            self._store.snapshot(),
            recent_records=self._settings.insights_recent_records,
        )
        try:
            insights = await asyncio.wait_for(
                self._insights_agent.generate_insights(snapshot),
                timeout=self._settings.insights_timeout_seconds,
            )
        except Exception as e:
            await self._audit_logger.log_external_service_error(
                service="gemini",
                error_message=str(e) or type(e).__name__,
                correlation_id=correlation_id,
            )
            return OperationResult.fail(ErrorKind.EXTERNAL_SERVICE_ERROR, FALLBACK_MESSAGE)

        await self._audit_logger.log_insights_generated(
            actor_id=auth.id,
            model_name=insights.model_name,
            correlation_id=correlation_id,
        )
        return OperationResult.ok(insights)

    def export_monthly_report(self, auth: AuthUser, month: str) -> OperationResult[str]:
        """Monthly report as CSV text (admin only)."""
        report = self._store.monthly_report(auth, month)
        if not report.success:
            return OperationResult.fail(report.error_kind, report.error_message or "")
        return OperationResult.ok(monthly_report_csv(report.value, self._store.snapshot()))


async def create_app_components(
    use_storage: bool = True,
    settings: Optional[LedgerSettings] = None,
) -> tuple[GroupLedgerService, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to persist group data. Set to False for
                    a throwaway in-memory session.
        settings: Ledger settings; read from the environment if None.

    Returns:
        (service, sheets_client)
    """
    settings = settings or get_settings().ledger
    sheets_client = None
    data_storage: Optional[GroupDataStorageInterface] = None
    audit_logger = AuditLogger()  # Local-only logging
    migration_defaults = {
        "default_due_day": settings.default_due_day,
        "default_loan_cap": settings.default_loan_cap,
    }

    if not use_storage or settings.storage_backend == StorageBackend.MEMORY:
        data_storage = InMemoryGroupStore()
    elif settings.storage_backend == StorageBackend.SHEETS:
        try:
            sheets_client = GoogleSheetsClient()
            data_storage = GoogleSheetsGroupStore(
                sheets_client,
                migration_defaults,
                keep_snapshots=sheets_client.settings.snapshot_retention,
            )
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Sheets not configured - fall back to the local file
            logger.warning("sheets_storage_unavailable", error=str(e))
            sheets_client = None
            data_storage = JsonFileGroupStore(settings.data_file_path, migration_defaults)
    else:
        data_storage = JsonFileGroupStore(settings.data_file_path, migration_defaults)

    insights_agent = None
    try:
        insights_agent = InsightsAgent()
    except Exception as e:
        # Gemini not configured - insights degrade to the fallback message
        logger.warning("insights_agent_unavailable", error=str(e))

    service = await GroupLedgerService.load(
        data_storage=data_storage,
        audit_logger=audit_logger,
        insights_agent=insights_agent,
        settings=settings,
    )
    return service, sheets_client
