"""
Aggregate Statistics Engine

DESIGN DECISION: Statistics are DETERMINISTIC and STATELESS.
Every figure is a pure function of GroupData plus the date passed in.
Nothing here is cached or persisted, and "today" is always a parameter
so the same inputs give the same outputs.

Scoping: functions that take `member_id` compute a group-wide figure when
it is None and a single member's figure otherwise. Authorization is the
caller's job (see store.GroupLedgerStore).
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, Optional

from group_ledger.models.group import (
    GroupData,
    MeetingNote,
    Member,
    PaymentRecord,
    month_of,
)
from group_ledger.models.views import (
    ActiveLoan,
    CollectionTotals,
    DashboardStats,
    ExpenseEntry,
    MonthlyReport,
    MonthSummary,
    OutstandingDue,
    PaymentAlert,
    PaymentStatus,
    PaymentSuggestion,
    SavingsTrendPoint,
)


ZERO = Decimal("0")

ACTIVE_LOAN_SORT_FIELDS = ("name", "amount", "date")


def _sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)


def _records_for(data: GroupData, member_id: Optional[str]) -> list[PaymentRecord]:
    if member_id is None:
        return list(data.records)
    return [r for r in data.records if r.member_id == member_id]


def collection_totals(records: Iterable[PaymentRecord]) -> CollectionTotals:
    """Sum each payment component over a set of records."""
    totals = CollectionTotals()
    for record in records:
        totals.savings += record.savings
        totals.principal += record.principal_paid
        totals.interest += record.interest_paid
        totals.penalty += record.penalty
    return totals


def total_expenses(data: GroupData) -> Decimal:
    """Admin rewards plus miscellaneous expenses."""
    return (
        _sum(p.amount for p in data.admin_payments)
        + _sum(p.amount for p in data.misc_payments)
    )


# =============================================================================
# FUNDS
# =============================================================================

def net_liquid_funds(data: GroupData, include_baseline: bool = True) -> Decimal:
    """
    Cash available to the group.

    baseline + all collections - expenses - disbursed loans.
    A negative result is valid and is not clamped.
    """
    inflow = collection_totals(data.records).total
    disbursed = _sum(loan.amount for loan in data.loans_issued)
    baseline = ZERO
    if include_baseline and data.settings.initial_net_funds is not None:
        baseline = data.settings.initial_net_funds
    return baseline + inflow - total_expenses(data) - disbursed


def growth_savings(
    data: GroupData,
    include_baseline: bool = True,
    member_id: Optional[str] = None,
) -> Decimal:
    """Baseline plus savings contributions; interest and penalties excluded."""
    savings = _sum(r.savings for r in _records_for(data, member_id))
    if include_baseline and member_id is None and data.settings.initial_growth_savings is not None:
        savings += data.settings.initial_growth_savings
    return savings


def dashboard_stats(
    data: GroupData,
    today: date,
    member_id: Optional[str] = None,
) -> DashboardStats:
    """
    Headline dashboard figures.

    Group view includes the carry-over baselines. A member view covers
    only the member's own records and loans: total_funds is the member's
    net contribution (payments in minus loans out) and group expenses are
    not attributed to anyone.
    """
    records = _records_for(data, member_id)
    totals = collection_totals(records)
    current_month = month_of(today)
    monthly_collection = collection_totals(
        r for r in records if r.month == current_month
    ).total

    if member_id is None:
        return DashboardStats(
            total_funds=net_liquid_funds(data),
            active_loans=_sum(m.current_loan_principal for m in data.members),
            interest_earned=totals.interest,
            penalties_collected=totals.penalty,
            monthly_collection=monthly_collection,
            growth_savings=growth_savings(data),
            expenses=total_expenses(data),
            member_count=len(data.members),
            scope="group",
        )

    member = data.find_member(member_id)
    disbursed = _sum(l.amount for l in data.loans_issued if l.member_id == member_id)
    return DashboardStats(
        total_funds=totals.total - disbursed,
        active_loans=member.current_loan_principal if member else ZERO,
        interest_earned=totals.interest,
        penalties_collected=totals.penalty,
        monthly_collection=monthly_collection,
        growth_savings=totals.savings,
        expenses=ZERO,
        member_count=1 if member else 0,
        scope=member_id,
    )


def savings_trend(data: GroupData, member_id: Optional[str] = None) -> list[SavingsTrendPoint]:
    """Monthly savings, cumulative savings and interest, oldest month first."""
    records = _records_for(data, member_id)
    months = sorted({r.month for r in records})

    points = []
    cumulative = ZERO
    for month in months:
        in_month = [r for r in records if r.month == month]
        growth = _sum(r.savings for r in in_month)
        cumulative += growth
        points.append(SavingsTrendPoint(
            month=month,
            growth=growth,
            cumulative=cumulative,
            interest=_sum(r.interest_paid for r in in_month),
        ))
    return points


# =============================================================================
# DUE STATUS
# =============================================================================

def has_paid(data: GroupData, member_id: str, month: str) -> bool:
    return any(r.member_id == member_id and r.month == month for r in data.records)


def due_date_for(data: GroupData, member: Member, today: date) -> date:
    """The member's due date in today's month."""
    due_day = member.effective_due_day(data.settings.due_day)
    return date(today.year, today.month, due_day)


def payment_status(data: GroupData, member: Member, today: date) -> PaymentStatus:
    """
    Collection status for the cycle containing `today`.

    PAID beats everything. A member with no loan in a month whose savings
    target is zero owes nothing and gets NONE. Otherwise the member is
    PENDING up to and including the due day, OVERDUE after it.
    """
    month = month_of(today)
    if has_paid(data, member.id, month):
        return PaymentStatus.PAID
    if not member.has_active_loan and data.savings_target_for(month) <= ZERO:
        return PaymentStatus.NONE
    if today.day > member.effective_due_day(data.settings.due_day):
        return PaymentStatus.OVERDUE
    return PaymentStatus.PENDING


def payment_alerts(
    data: GroupData,
    today: date,
    member_id: Optional[str] = None,
) -> list[PaymentAlert]:
    """Status of every member (or one member) this cycle, NONE excluded."""
    month = month_of(today)
    target = data.savings_target_for(month)

    alerts = []
    for member in data.members:
        if member_id is not None and member.id != member_id:
            continue
        status = payment_status(data, member, today)
        if status == PaymentStatus.NONE:
            continue
        amount_due = ZERO
        if status != PaymentStatus.PAID:
            amount_due = target + member.monthly_interest_due()
        alerts.append(PaymentAlert(
            member_id=member.id,
            member_name=member.name,
            status=status,
            due_day=member.effective_due_day(data.settings.due_day),
            due_date=due_date_for(data, member, today),
            amount_due=amount_due,
        ))
    return alerts


def outstanding_dues(data: GroupData, month: str) -> list[OutstandingDue]:
    """
    What each unpaid member owes for `month`.

    LIMITATION: interest is estimated from the member's present principal
    and rate, even for past months.
    """
    target = data.savings_target_for(month)
    dues = []
    for member in data.members:
        if has_paid(data, member.id, month):
            continue
        interest_due = member.monthly_interest_due()
        total_due = target + interest_due
        if total_due <= ZERO:
            continue
        dues.append(OutstandingDue(
            member_id=member.id,
            member_name=member.name,
            savings_due=target,
            interest_due=interest_due,
            total_due=total_due,
        ))
    return dues


# =============================================================================
# REPORTS
# =============================================================================

def monthly_report(data: GroupData, month: str) -> MonthlyReport:
    """Month-end report for the administrator."""
    records = [r for r in data.records if r.month == month]
    admin_payments = [p for p in data.admin_payments if p.month == month]
    misc_payments = [p for p in data.misc_payments if p.month == month]
    totals = collection_totals(records)

    return MonthlyReport(
        month=month,
        savings_target=data.savings_target_for(month),
        records=records,
        admin_payments=admin_payments,
        misc_payments=misc_payments,
        totals=totals,
        collection_sum=totals.total,
        expense_sum=_sum(p.amount for p in admin_payments) + _sum(p.amount for p in misc_payments),
        dues=outstanding_dues(data, month),
    )


def month_summary(
    data: GroupData,
    month: str,
    member_id: Optional[str] = None,
) -> MonthSummary:
    """
    Per-month history.

    Expenses are group-level and only appear in the group view.
    """
    records = [r for r in _records_for(data, member_id) if r.month == month]
    summary = MonthSummary(
        month=month,
        records=records,
        totals=collection_totals(records),
    )
    if member_id is None:
        summary.admin_payments = [p for p in data.admin_payments if p.month == month]
        summary.misc_payments = [p for p in data.misc_payments if p.month == month]
        summary.expenses = (
            _sum(p.amount for p in summary.admin_payments)
            + _sum(p.amount for p in summary.misc_payments)
        )
    return summary


# =============================================================================
# LOANS & PAYMENTS
# =============================================================================

def _latest_disbursement(data: GroupData, member: Member) -> datetime:
    dates = [l.date for l in data.loans_issued if l.member_id == member.id]
    if dates:
        return max(dates)
    return datetime.combine(member.joining_date, datetime.min.time(), tzinfo=timezone.utc)


def active_loans(
    data: GroupData,
    sort_by: str = "amount",
    descending: bool = True,
    search: str = "",
) -> list[ActiveLoan]:
    """
    Members with outstanding principal.

    sort_by is one of "name", "amount" or "date" (latest disbursement).
    """
    if sort_by not in ACTIVE_LOAN_SORT_FIELDS:
        raise ValueError(f"sort_by must be one of {ACTIVE_LOAN_SORT_FIELDS}, got {sort_by!r}")

    needle = search.strip().lower()
    loans = []
    for member in data.members:
        if not member.has_active_loan:
            continue
        if needle and needle not in member.name.lower():
            continue
        utilization = ZERO
        if member.loan_cap > ZERO:
            utilization = member.current_loan_principal * Decimal("100") / member.loan_cap
        loans.append(ActiveLoan(
            member=member.model_copy(),
            disbursement_date=_latest_disbursement(data, member),
            utilization=utilization,
        ))

    if sort_by == "name":
        loans.sort(key=lambda l: l.member.name.lower(), reverse=descending)
    elif sort_by == "amount":
        loans.sort(key=lambda l: l.member.current_loan_principal, reverse=descending)
    else:
        loans.sort(key=lambda l: l.disbursement_date, reverse=descending)
    return loans


def suggest_payment(
    data: GroupData,
    member: Member,
    month: str,
    today: date,
) -> PaymentSuggestion:
    """Pre-filled payment values: this month's target and one cycle of interest."""
    due_day = member.effective_due_day(data.settings.due_day)
    return PaymentSuggestion(
        member_id=member.id,
        month=month,
        savings=data.savings_target_for(month),
        interest=member.monthly_interest_due(),
        due_day=due_day,
        is_late=month == month_of(today) and today.day > due_day,
        has_custom_target=month in data.monthly_savings_targets,
    )


# =============================================================================
# EXPENSES, NOTES & NOTIFICATIONS
# =============================================================================

def recent_expenses(data: GroupData, limit: int = 5) -> list[ExpenseEntry]:
    """Admin and misc expenses merged, newest first."""
    entries = [
        ExpenseEntry(
            id=p.id,
            category="Admin Reward",
            month=p.month,
            amount=p.amount,
            description=p.description,
            timestamp=p.timestamp,
        )
        for p in data.admin_payments
    ]
    entries.extend(
        ExpenseEntry(
            id=p.id,
            category="Misc Expense",
            month=p.month,
            amount=p.amount,
            description=p.description,
            timestamp=p.timestamp,
        )
        for p in data.misc_payments
    )
    entries.sort(key=lambda e: e.timestamp, reverse=True)
    return entries[:limit]


def unread_notification_count(data: GroupData) -> int:
    return sum(1 for n in data.notifications if not n.read)


def visible_meeting_notes(data: GroupData, include_drafts: bool) -> list[MeetingNote]:
    """Notes in stored order (newest first); drafts only for the administrator."""
    if include_drafts:
        return list(data.meeting_notes)
    return [n for n in data.meeting_notes if n.is_published]


def recent_meeting_notes_count(data: GroupData, now: datetime, days: int = 3) -> int:
    """Notes published within the last `days` days."""
    cutoff = now - timedelta(days=days)
    return sum(
        1 for n in data.meeting_notes
        if n.published_at is not None and n.published_at > cutoff
    )
