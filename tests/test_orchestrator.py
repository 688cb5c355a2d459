"""
Integration tests for the async service facade.

Uses in-memory storage and fake models; no network calls.
"""

import asyncio
from decimal import Decimal

import pytest

from group_ledger.agents import (
    EMPTY_RESPONSE_MESSAGE,
    FALLBACK_MESSAGE,
    FinancialInsights,
    InsightsAgent,
    InsightsSnapshot,
    build_prompt,
)
from group_ledger.audit import AuditLogger
from group_ledger.config import GeminiSettings, LedgerSettings
from group_ledger.models.audit import AuditEventType
from group_ledger.models.group import GroupData
from group_ledger.models.results import ErrorKind
from group_ledger.orchestrator import GroupLedgerService, create_app_components
from group_ledger.services.storage import (
    CorruptDataError,
    GroupDataStorageInterface,
    InMemoryAuditStorage,
    InMemoryGroupStore,
    JsonFileGroupStore,
    StorageError,
)
from group_ledger.store import GroupLedgerStore


class FailingGroupStore(GroupDataStorageInterface):
    """Every save fails."""

    async def load(self):
        return None

    async def save(self, data: GroupData) -> bool:
        raise StorageError("disk full")


class FakeResponse:
    def __init__(self, text):
        self.text = text


class FakeModel:
    """Stands in for genai.GenerativeModel."""

    def __init__(self, text="Health score: 8/10", delay=0.0, error=None):
        self.text = text
        self.delay = delay
        self.error = error
        self.prompts = []

    async def generate_content_async(self, prompt):
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return FakeResponse(self.text)


def _agent(model: FakeModel) -> InsightsAgent:
    return InsightsAgent(settings=GeminiSettings(api_key="test-key"), model=model)


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def data_storage():
    return InMemoryGroupStore()


@pytest.fixture
def ledger_settings():
    return LedgerSettings(insights_timeout_seconds=0.2, insights_recent_records=2)


@pytest.fixture
def service(group_data, clock, data_storage, audit_storage, ledger_settings):
    return GroupLedgerService(
        GroupLedgerStore(group_data, clock=clock),
        data_storage=data_storage,
        audit_logger=AuditLogger(audit_storage),
        settings=ledger_settings,
    )


def _types(audit_storage: InMemoryAuditStorage) -> list[AuditEventType]:
    return [event.event_type for event in audit_storage.events]


class TestStartup:
    """Tests for GroupLedgerService.load."""

    async def test_seeds_default_data_when_empty(self, data_storage, audit_storage):
        service = await GroupLedgerService.load(
            data_storage=data_storage,
            audit_logger=AuditLogger(audit_storage),
            settings=LedgerSettings(),
        )
        await service.flush()

        names = [m.name for m in service.store.snapshot().members]
        assert names == ["John Doe", "Jane Smith"]
        assert data_storage.save_count == 1
        assert AuditEventType.DATA_LOADED in _types(audit_storage)

    async def test_uses_stored_data(self, group_data, audit_storage):
        storage = InMemoryGroupStore(group_data)
        service = await GroupLedgerService.load(
            data_storage=storage,
            audit_logger=AuditLogger(audit_storage),
            settings=LedgerSettings(),
        )
        await service.flush()

        assert service.store.snapshot().settings.name == "Test Group"
        assert storage.save_count == 0

    async def test_load_failure_is_logged_and_raised(self, tmp_path, audit_storage):
        """Unreadable data is never silently replaced by the seed."""
        path = tmp_path / "ledger.json"
        path.write_text("{broken", encoding="utf-8")

        with pytest.raises(CorruptDataError):
            await GroupLedgerService.load(
                data_storage=JsonFileGroupStore(path),
                audit_logger=AuditLogger(audit_storage),
                settings=LedgerSettings(),
            )

        assert _types(audit_storage) == [AuditEventType.SYSTEM_ERROR]
        assert path.read_text(encoding="utf-8") == "{broken"

    async def test_settings_reach_the_store(self, group_data, admin):
        service = await GroupLedgerService.load(
            data_storage=InMemoryGroupStore(group_data),
            settings=LedgerSettings(enforce_loan_cap=False),
        )
        result = await service.issue_loan(admin, "m2", Decimal("20000"), Decimal("2"))
        assert result.success is True


class TestMutationPipeline:
    """Every mutation is audited; successes are saved."""

    async def test_success_is_audited_and_saved(self, service, admin, data_storage, audit_storage):
        result = await service.issue_loan(admin, "m1", Decimal("5000"), Decimal("2"))
        await service.flush()

        assert result.success is True
        assert data_storage.save_count == 1
        types = _types(audit_storage)
        assert AuditEventType.LOAN_ISSUED in types
        assert AuditEventType.DATA_SAVED in types

        loan_event = next(e for e in audit_storage.events if e.event_type == AuditEventType.LOAN_ISSUED)
        saved_event = next(e for e in audit_storage.events if e.event_type == AuditEventType.DATA_SAVED)
        assert loan_event.correlation_id == saved_event.correlation_id

        stored = await data_storage.load()
        assert stored.find_member("m1").current_loan_principal == Decimal("5000")

    async def test_unauthorized_is_audited_not_saved(self, service, member_user, data_storage, audit_storage):
        result = await service.add_member(member_user, "Intruder")
        await service.flush()

        assert result.error_kind == ErrorKind.UNAUTHORIZED
        assert data_storage.save_count == 0
        assert _types(audit_storage) == [AuditEventType.UNAUTHORIZED_ATTEMPT]
        assert audit_storage.events[0].actor_id == member_user.id

    async def test_rejection_is_audited(self, service, admin, audit_storage):
        result = await service.issue_loan(admin, "m2", Decimal("50000"), Decimal("2"))
        await service.flush()

        assert result.error_kind == ErrorKind.CAPACITY_EXCEEDED
        event = audit_storage.events[0]
        assert event.event_type == AuditEventType.OPERATION_REJECTED

    async def test_saves_land_in_order(self, service, admin, data_storage):
        """The stored snapshot reflects the last mutation."""
        await service.issue_loan(admin, "m1", Decimal("5000"), Decimal("2"))
        await service.record_payment(admin, "m1", "2024-03", principal_paid=Decimal("1000"))
        await service.record_payment(admin, "m1", "2024-03", principal_paid=Decimal("1000"))
        await service.flush()

        assert data_storage.save_count == 3
        stored = await data_storage.load()
        assert stored.find_member("m1").current_loan_principal == Decimal("3000")
        assert len(stored.records) == 2

    async def test_save_failure_is_logged_not_raised(self, group_data, clock, admin, audit_storage):
        service = GroupLedgerService(
            GroupLedgerStore(group_data, clock=clock),
            data_storage=FailingGroupStore(),
            audit_logger=AuditLogger(audit_storage),
            settings=LedgerSettings(),
        )

        result = await service.add_member(admin, "Meera Shah")
        await service.flush()

        assert result.success is True
        assert service.store.member(result.value.id) is not None
        assert AuditEventType.SAVE_FAILED in _types(audit_storage)

    async def test_no_storage_means_no_save(self, group_data, admin):
        service = GroupLedgerService(GroupLedgerStore(group_data), settings=LedgerSettings())
        result = await service.add_misc_payment(admin, "2024-03", Decimal("50"), "Tea")
        await service.flush()
        assert result.success is True

    async def test_full_admin_session(self, service, admin, data_storage, audit_storage):
        """A run through every kind of mutation."""
        member = (await service.add_member(admin, "Meera Shah", phone="9123456789")).value
        assert (await service.update_member(admin, member.id, due_day=15)).success
        assert (await service.issue_loan(admin, member.id, Decimal("2000"))).success
        assert (await service.record_payment(
            admin, member.id, "2024-03", savings=Decimal("1000"), interest_paid=Decimal("40"),
        )).success
        assert (await service.adjust_interest_rate(admin, member.id, Decimal("1.5"), "loyalty")).success
        reward = (await service.add_admin_payment(admin, "2024-03", Decimal("300"))).value
        misc = (await service.add_misc_payment(admin, "2024-03", Decimal("50"), "Tea")).value
        assert (await service.remove_admin_payment(admin, reward.id)).success
        assert (await service.remove_misc_payment(admin, misc.id)).success
        assert (await service.set_monthly_savings_target(admin, "2024-04", Decimal("1500"))).success
        assert (await service.remove_monthly_savings_target(admin, "2024-04")).success
        settings = service.store.snapshot().settings.model_copy(update={"due_day": 12})
        assert (await service.update_settings(admin, settings)).success
        note = (await service.add_meeting_note(admin, "2024-03", "Minutes")).value
        assert (await service.publish_meeting_note(admin, note.id)).success
        assert (await service.delete_meeting_note(admin, note.id)).success
        assert (await service.mark_notifications_read(admin)).value == 1
        assert (await service.clear_notifications(admin)).value == 1
        assert (await service.delete_member(admin, member.id)).success
        await service.flush()

        assert data_storage.save_count == 18
        assert AuditEventType.OPERATION_REJECTED not in _types(audit_storage)
        stored = await data_storage.load()
        assert stored.find_member(member.id) is None
        assert stored.settings.due_day == 12


class TestInsights:
    """Tests for the insights flow."""

    async def test_success(self, service, admin, audit_storage):
        model = FakeModel()
        service._insights_agent = _agent(model)

        result = await service.get_insights(admin)

        assert result.success is True
        assert result.value == FinancialInsights(text="Health score: 8/10", model_name="gemini-1.5-flash")
        assert "Test Group" in model.prompts[0]
        assert AuditEventType.INSIGHTS_GENERATED in _types(audit_storage)

    async def test_member_is_unauthorized(self, service, member_user):
        service._insights_agent = _agent(FakeModel())
        result = await service.get_insights(member_user)
        assert result.error_kind == ErrorKind.UNAUTHORIZED

    async def test_timeout_returns_fallback(self, service, admin, audit_storage):
        service._insights_agent = _agent(FakeModel(delay=1.0))

        result = await service.get_insights(admin)

        assert result.error_kind == ErrorKind.EXTERNAL_SERVICE_ERROR
        assert result.error_message == FALLBACK_MESSAGE
        assert AuditEventType.EXTERNAL_SERVICE_ERROR in _types(audit_storage)

    async def test_model_error_returns_fallback(self, service, admin):
        service._insights_agent = _agent(FakeModel(error=RuntimeError("quota exceeded")))
        result = await service.get_insights(admin)
        assert result.error_message == FALLBACK_MESSAGE

    async def test_no_agent_returns_fallback(self, service, admin):
        result = await service.get_insights(admin)
        assert result.error_kind == ErrorKind.EXTERNAL_SERVICE_ERROR

    async def test_insights_never_change_state(self, service, admin):
        before = service.store.snapshot().to_json_dict()
        service._insights_agent = _agent(FakeModel())
        await service.get_insights(admin)
        assert service.store.snapshot().to_json_dict() == before

    async def test_empty_response(self):
        agent = _agent(FakeModel(text="   "))
        insights = await agent.generate_insights(InsightsSnapshot.from_group(GroupData()))
        assert insights.text == EMPTY_RESPONSE_MESSAGE


class TestInsightsSnapshot:
    """The model only sees aggregates."""

    async def test_snapshot_figures(self, service, admin):
        await service.issue_loan(admin, "m1", Decimal("5000"), Decimal("2"))
        for month in ("2024-01", "2024-02", "2024-03"):
            await service.record_payment(
                admin, "m1", month, savings=Decimal("1000"), interest_paid=Decimal("100"),
            )

        snapshot = InsightsSnapshot.from_group(service.store.snapshot(), recent_records=2)

        assert snapshot.total_savings == Decimal("3000")
        assert snapshot.total_interest == Decimal("300")
        assert snapshot.active_loan_burden == Decimal("5000")
        assert snapshot.members_with_loans == 1
        assert [p["month"] for p in snapshot.recent_payments] == ["2024-02", "2024-03"]
        assert "9876543210" not in build_prompt(snapshot)


class TestAppComponents:
    """Tests for create_app_components."""

    async def test_memory_session(self, monkeypatch, admin):
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        settings = LedgerSettings(_env_file=None, storage_backend="json")

        service, sheets_client = await create_app_components(use_storage=False, settings=settings)
        await service.flush()

        assert sheets_client is None
        assert len(service.store.snapshot().members) == 2
        result = await service.get_insights(admin)
        assert result.error_message == FALLBACK_MESSAGE

    async def test_json_backend(self, tmp_path):
        path = tmp_path / "ledger.json"
        settings = LedgerSettings(_env_file=None, storage_backend="json", data_file_path=str(path))

        service, _ = await create_app_components(settings=settings)
        await service.flush()

        assert path.exists()


class TestExport:
    """Tests for the CSV export wrapper."""

    async def test_admin_export(self, service, admin):
        await service.record_payment(admin, "m1", "2024-03", savings=Decimal("1000"))
        result = service.export_monthly_report(admin, "2024-03")
        assert result.success is True
        assert "Asha Patel" in result.value

    async def test_member_export_denied(self, service, member_user):
        result = service.export_monthly_report(member_user, "2024-03")
        assert result.error_kind == ErrorKind.UNAUTHORIZED


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
