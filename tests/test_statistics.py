"""
Tests for the aggregate statistics engine.

All figures are pure functions of GroupData and the date passed in.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from group_ledger.models.group import (
    AdminPayment,
    AuthUser,
    LoanIssuedRecord,
    MeetingNote,
    MiscellaneousPayment,
    PaymentRecord,
    UserRole,
)
from group_ledger.models.results import ErrorKind
from group_ledger.models.views import PaymentStatus
from group_ledger.queries import (
    active_loans,
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
)


def _ts(day: int, month: int = 3) -> datetime:
    return datetime(2024, month, day, 12, 0, tzinfo=timezone.utc)


class TestFunds:
    """Tests for net liquid funds and growth savings."""

    def test_net_funds_can_go_negative(self, group_data):
        """1000 + 550 collected - 100 expense - 2000 lent = -550."""
        group_data.settings.initial_net_funds = Decimal("1000")
        group_data.records.append(PaymentRecord(
            member_id="m1", month="2024-03",
            savings=Decimal("500"), interest_paid=Decimal("50"),
        ))
        group_data.loans_issued.append(LoanIssuedRecord(
            member_id="m2", amount=Decimal("2000"), interest_rate=Decimal("2"),
        ))
        group_data.misc_payments.append(MiscellaneousPayment(
            month="2024-03", amount=Decimal("100"), description="Stationery",
        ))

        assert net_liquid_funds(group_data) == Decimal("-550")
        assert net_liquid_funds(group_data, include_baseline=False) == Decimal("-1550")

    def test_growth_savings_excludes_interest(self, group_data):
        group_data.settings.initial_growth_savings = Decimal("10000")
        group_data.records.extend([
            PaymentRecord(member_id="m1", month="2024-03", savings=Decimal("1000"),
                          interest_paid=Decimal("80"), penalty=Decimal("20")),
            PaymentRecord(member_id="m2", month="2024-03", savings=Decimal("1000")),
        ])

        assert growth_savings(group_data) == Decimal("12000")
        assert growth_savings(group_data, include_baseline=False) == Decimal("2000")
        # Baselines are group-level only
        assert growth_savings(group_data, member_id="m1") == Decimal("1000")


class TestDueStatus:
    """Tests for PAID / PENDING / OVERDUE / NONE."""

    def test_pending_up_to_due_day(self, group_data):
        member = group_data.find_member("m1")
        assert payment_status(group_data, member, date(2024, 3, 9)) == PaymentStatus.PENDING
        assert payment_status(group_data, member, date(2024, 3, 10)) == PaymentStatus.PENDING

    def test_overdue_after_due_day(self, group_data):
        member = group_data.find_member("m1")
        assert payment_status(group_data, member, date(2024, 3, 11)) == PaymentStatus.OVERDUE

    def test_paid_beats_overdue(self, group_data):
        group_data.records.append(PaymentRecord(member_id="m1", month="2024-03", savings=Decimal("1000")))
        member = group_data.find_member("m1")
        assert payment_status(group_data, member, date(2024, 3, 25)) == PaymentStatus.PAID

    def test_member_due_day_override(self, group_data):
        member = group_data.find_member("m1")
        member.due_day = 5
        assert payment_status(group_data, member, date(2024, 3, 6)) == PaymentStatus.OVERDUE

    def test_none_when_nothing_owed(self, group_data):
        """No loan and a zero target for the month means NONE."""
        group_data.monthly_savings_targets["2024-03"] = Decimal("0")
        member = group_data.find_member("m1")
        assert payment_status(group_data, member, date(2024, 3, 20)) == PaymentStatus.NONE

    def test_loan_keeps_status_with_zero_target(self, group_data):
        group_data.monthly_savings_targets["2024-03"] = Decimal("0")
        member = group_data.find_member("m1")
        member.current_loan_principal = Decimal("1000")
        assert payment_status(group_data, member, date(2024, 3, 20)) == PaymentStatus.OVERDUE

    def test_payment_alerts(self, group_data):
        """Unpaid members owe the target plus one cycle of interest."""
        member = group_data.find_member("m1")
        member.current_loan_principal = Decimal("5000")
        member.loan_interest_rate = Decimal("2")
        group_data.records.append(PaymentRecord(member_id="m2", month="2024-03", savings=Decimal("1000")))

        alerts = {a.member_id: a for a in payment_alerts(group_data, date(2024, 3, 12))}

        assert alerts["m1"].status == PaymentStatus.OVERDUE
        assert alerts["m1"].amount_due == Decimal("1100")
        assert alerts["m1"].due_date == date(2024, 3, 10)
        assert alerts["m2"].status == PaymentStatus.PAID
        assert alerts["m2"].amount_due == Decimal("0")

    def test_payment_alerts_member_scope(self, group_data):
        alerts = payment_alerts(group_data, date(2024, 3, 1), member_id="m2")
        assert [a.member_id for a in alerts] == ["m2"]

    def test_outstanding_dues(self, group_data):
        member = group_data.find_member("m2")
        member.current_loan_principal = Decimal("1000")
        member.loan_interest_rate = Decimal("1.5")
        group_data.records.append(PaymentRecord(member_id="m1", month="2024-03", savings=Decimal("1000")))

        dues = outstanding_dues(group_data, "2024-03")

        assert [d.member_id for d in dues] == ["m2"]
        assert dues[0].savings_due == Decimal("1000")
        assert dues[0].interest_due == Decimal("15")
        assert dues[0].total_due == Decimal("1015")

    def test_outstanding_dues_skips_zero(self, group_data):
        group_data.monthly_savings_targets["2024-04"] = Decimal("0")
        assert outstanding_dues(group_data, "2024-04") == []


class TestDashboard:
    """Tests for dashboard figures in group and member views."""

    @pytest.fixture
    def busy_group(self, group_data):
        group_data.settings.initial_net_funds = Decimal("500")
        group_data.settings.initial_growth_savings = Decimal("300")
        group_data.find_member("m1").current_loan_principal = Decimal("2000")
        group_data.loans_issued.append(LoanIssuedRecord(
            member_id="m1", amount=Decimal("2000"), interest_rate=Decimal("2"), date=_ts(1),
        ))
        group_data.records.extend([
            PaymentRecord(member_id="m1", month="2024-02", savings=Decimal("1000"),
                          interest_paid=Decimal("40"), timestamp=_ts(5, 2)),
            PaymentRecord(member_id="m1", month="2024-03", savings=Decimal("1000"),
                          penalty=Decimal("50"), timestamp=_ts(12)),
            PaymentRecord(member_id="m2", month="2024-03", savings=Decimal("1000"), timestamp=_ts(8)),
        ])
        group_data.admin_payments.append(AdminPayment(
            month="2024-03", amount=Decimal("200"), timestamp=_ts(15),
        ))
        return group_data

    def test_group_view(self, busy_group):
        stats = dashboard_stats(busy_group, date(2024, 3, 20))

        assert stats.scope == "group"
        # 500 + 3090 collected - 200 expenses - 2000 lent
        assert stats.total_funds == Decimal("1390")
        assert stats.active_loans == Decimal("2000")
        assert stats.interest_earned == Decimal("40")
        assert stats.penalties_collected == Decimal("50")
        assert stats.monthly_collection == Decimal("2050")
        assert stats.growth_savings == Decimal("3300")
        assert stats.expenses == Decimal("200")
        assert stats.member_count == 2

    def test_member_view(self, busy_group):
        stats = dashboard_stats(busy_group, date(2024, 3, 20), member_id="m1")

        assert stats.scope == "m1"
        assert stats.total_funds == Decimal("90")
        assert stats.active_loans == Decimal("2000")
        assert stats.growth_savings == Decimal("2000")
        assert stats.expenses == Decimal("0")
        assert stats.monthly_collection == Decimal("1050")
        assert stats.member_count == 1

    def test_member_without_id_is_rejected(self, store):
        """A member session without a member id sees nothing."""
        orphan = AuthUser(id="x", name="Orphan", role=UserRole.MEMBER)
        result = store.dashboard(orphan, date(2024, 3, 20))
        assert result.error_kind == ErrorKind.UNAUTHORIZED

    def test_savings_trend(self, busy_group):
        points = savings_trend(busy_group)

        assert [p.month for p in points] == ["2024-02", "2024-03"]
        assert [p.growth for p in points] == [Decimal("1000"), Decimal("2000")]
        assert [p.cumulative for p in points] == [Decimal("1000"), Decimal("3000")]
        assert points[0].interest == Decimal("40")

    def test_savings_trend_member_scope(self, busy_group):
        points = savings_trend(busy_group, member_id="m2")
        assert [(p.month, p.cumulative) for p in points] == [("2024-03", Decimal("1000"))]

    def test_monthly_report(self, busy_group):
        report = monthly_report(busy_group, "2024-03")

        assert len(report.records) == 2
        assert report.collection_sum == Decimal("2050")
        assert report.expense_sum == Decimal("200")
        assert report.net_flow == Decimal("1850")
        assert report.dues == []

    def test_month_summary_member_view_hides_expenses(self, busy_group):
        group_view = month_summary(busy_group, "2024-03")
        member_view = month_summary(busy_group, "2024-03", member_id="m2")

        assert group_view.expenses == Decimal("200")
        assert group_view.net_monthly_change == Decimal("1850")
        assert member_view.expenses == Decimal("0")
        assert member_view.admin_payments == []
        assert member_view.totals.savings == Decimal("1000")

    def test_monthly_report_is_admin_only(self, store, member_user):
        assert store.monthly_report(member_user, "2024-03").is_unauthorized


class TestActiveLoans:
    """Tests for the active loan listing."""

    @pytest.fixture
    def lending_store(self, store, admin):
        store.issue_loan(admin, "m2", Decimal("5000"), Decimal("2"))
        store.issue_loan(admin, "m1", Decimal("3000"), Decimal("2"))
        return store

    def test_sort_by_amount(self, lending_store, admin):
        loans = lending_store.active_loans(admin).value
        assert [l.member.id for l in loans] == ["m2", "m1"]
        assert loans[0].utilization == Decimal("50")

    def test_sort_by_name_ascending(self, lending_store, admin):
        loans = lending_store.active_loans(admin, sort_by="name", descending=False).value
        assert [l.member.name for l in loans] == ["Asha Patel", "Ravi Kumar"]

    def test_sort_by_date(self, lending_store, admin):
        loans = lending_store.active_loans(admin, sort_by="date").value
        assert [l.member.id for l in loans] == ["m1", "m2"]

    def test_search(self, lending_store, admin):
        loans = lending_store.active_loans(admin, search="ravi").value
        assert [l.member.id for l in loans] == ["m2"]

    def test_bad_sort_field(self, lending_store, admin):
        result = lending_store.active_loans(admin, sort_by="rate")
        assert result.error_kind == ErrorKind.VALIDATION_ERROR
        with pytest.raises(ValueError):
            active_loans(lending_store.snapshot(), sort_by="rate")

    def test_repaid_loans_drop_out(self, lending_store, admin):
        lending_store.record_payment(admin, "m1", "2024-03", principal_paid=Decimal("3000"))
        loans = lending_store.active_loans(admin).value
        assert [l.member.id for l in loans] == ["m2"]


class TestSuggestionsAndListings:
    """Tests for payment suggestions, expenses and notes."""

    def test_suggest_payment(self, group_data):
        member = group_data.find_member("m1")
        member.current_loan_principal = Decimal("5000")
        member.loan_interest_rate = Decimal("2")
        group_data.monthly_savings_targets["2024-03"] = Decimal("1500")

        suggestion = suggest_payment(group_data, member, "2024-03", date(2024, 3, 12))

        assert suggestion.savings == Decimal("1500")
        assert suggestion.interest == Decimal("100")
        assert suggestion.has_custom_target is True
        assert suggestion.is_late is True

    def test_suggest_payment_not_late_for_other_month(self, group_data):
        member = group_data.find_member("m1")
        suggestion = suggest_payment(group_data, member, "2024-04", date(2024, 3, 12))
        assert suggestion.is_late is False
        assert suggestion.savings == Decimal("1000")

    def test_recent_expenses_newest_first(self, group_data):
        group_data.admin_payments.append(AdminPayment(
            month="2024-03", amount=Decimal("200"), timestamp=_ts(3),
        ))
        group_data.misc_payments.extend([
            MiscellaneousPayment(month="2024-03", amount=Decimal("50"), description="Tea", timestamp=_ts(7)),
            MiscellaneousPayment(month="2024-03", amount=Decimal("80"), description="Rent", timestamp=_ts(1)),
        ])

        entries = recent_expenses(group_data, limit=2)

        assert [e.description for e in entries] == ["Tea", "Admin reward"]
        assert [e.category for e in entries] == ["Misc Expense", "Admin Reward"]

    def test_recent_meeting_notes_count(self, group_data):
        now = _ts(10)
        group_data.meeting_notes.extend([
            MeetingNote(month="2024-03", content="Fresh", author="Admin",
                        published_at=now - timedelta(days=1)),
            MeetingNote(month="2024-02", content="Old", author="Admin",
                        published_at=now - timedelta(days=10)),
            MeetingNote(month="2024-03", content="Draft", author="Admin"),
        ])

        assert recent_meeting_notes_count(group_data, now) == 1
        assert recent_meeting_notes_count(group_data, now, days=30) == 2


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
