"""
Derived View Models

Everything in this module is computed from GroupData by the query layer.
None of it is persisted.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from group_ledger.models.group import (
    AdminPayment,
    Member,
    MiscellaneousPayment,
    PaymentRecord,
)


class LedgerEntryType(str, Enum):
    """Row kinds in a member's loan statement."""
    DISBURSEMENT = "DISBURSEMENT"
    REPAYMENT = "REPAYMENT"
    RATE_ADJUST = "RATE_ADJUST"


class PaymentStatus(str, Enum):
    """Collection status of a member for the current cycle."""
    PAID = "PAID"
    PENDING = "PENDING"
    OVERDUE = "OVERDUE"
    NONE = "NONE"


class LedgerEntry(BaseModel):
    """One row of a loan statement."""

    id: str
    date: datetime
    entry_type: LedgerEntryType
    amount: Decimal = Field(
        default=Decimal("0"),
        description="Signed principal delta (positive for disbursements)"
    )
    interest: Optional[Decimal] = Field(
        default=None,
        description="Interest paid alongside a repayment (never applied to balance)"
    )
    balance: Decimal
    description: str
    old_rate: Optional[Decimal] = None
    new_rate: Optional[Decimal] = None
    reason: Optional[str] = None


class LedgerStatement(BaseModel):
    """A member's loan statement, newest row first."""

    member_id: str
    member_name: str
    entries: list[LedgerEntry] = Field(default_factory=list)
    closing_balance: Decimal = Decimal("0")
    cached_balance: Decimal = Decimal("0")
    total_disbursed: Decimal = Decimal("0")
    total_repaid: Decimal = Decimal("0")
    total_interest_paid: Decimal = Decimal("0")

    @property
    def is_reconciled(self) -> bool:
        """True when the replay agrees with the member's cached principal."""
        return self.closing_balance == self.cached_balance


class DashboardStats(BaseModel):
    """Headline figures for the dashboard."""

    total_funds: Decimal
    active_loans: Decimal
    interest_earned: Decimal
    penalties_collected: Decimal
    monthly_collection: Decimal
    growth_savings: Decimal
    expenses: Decimal
    member_count: int
    scope: str = Field(description="'group' or the member id the figures cover")


class SavingsTrendPoint(BaseModel):
    """One month of the savings chart."""

    month: str
    growth: Decimal
    cumulative: Decimal
    interest: Decimal


class PaymentAlert(BaseModel):
    """A member's collection status for the current month."""

    member_id: str
    member_name: str
    status: PaymentStatus
    due_day: int
    due_date: date
    amount_due: Decimal


class OutstandingDue(BaseModel):
    """
    What an unpaid member owes for a month.

    LIMITATION: interest_due uses the member's present principal and rate,
    not the terms in force during that month.
    """

    member_id: str
    member_name: str
    savings_due: Decimal
    interest_due: Decimal
    total_due: Decimal


class CollectionTotals(BaseModel):
    """Sums of payment components over a set of records."""

    savings: Decimal = Decimal("0")
    principal: Decimal = Decimal("0")
    interest: Decimal = Decimal("0")
    penalty: Decimal = Decimal("0")

    @property
    def total(self) -> Decimal:
        return self.savings + self.principal + self.interest + self.penalty


class MonthlyReport(BaseModel):
    """Admin month-end report."""

    month: str
    savings_target: Decimal
    records: list[PaymentRecord] = Field(default_factory=list)
    admin_payments: list[AdminPayment] = Field(default_factory=list)
    misc_payments: list[MiscellaneousPayment] = Field(default_factory=list)
    totals: CollectionTotals = Field(default_factory=CollectionTotals)
    collection_sum: Decimal = Decimal("0")
    expense_sum: Decimal = Decimal("0")
    dues: list[OutstandingDue] = Field(default_factory=list)

    @property
    def net_flow(self) -> Decimal:
        return self.collection_sum - self.expense_sum

    @property
    def total_outstanding(self) -> Decimal:
        return sum((due.total_due for due in self.dues), Decimal("0"))


class MonthSummary(BaseModel):
    """Per-month history view, scoped to the acting user."""

    month: str
    records: list[PaymentRecord] = Field(default_factory=list)
    admin_payments: list[AdminPayment] = Field(default_factory=list)
    misc_payments: list[MiscellaneousPayment] = Field(default_factory=list)
    totals: CollectionTotals = Field(default_factory=CollectionTotals)
    expenses: Decimal = Decimal("0")

    @property
    def net_monthly_change(self) -> Decimal:
        return self.totals.total - self.expenses


class ActiveLoan(BaseModel):
    """A member with outstanding principal."""

    member: Member
    disbursement_date: datetime
    utilization: Decimal = Field(description="Principal as a percentage of the loan cap")


class PaymentSuggestion(BaseModel):
    """Pre-filled values for recording a member's payment."""

    member_id: str
    month: str
    savings: Decimal
    interest: Decimal
    principal: Decimal = Decimal("0")
    penalty: Decimal = Decimal("0")
    due_day: int
    is_late: bool
    has_custom_target: bool


class ExpenseEntry(BaseModel):
    """An admin or misc expense in a combined listing."""

    id: str
    category: str
    month: str
    amount: Decimal
    description: str
    timestamp: datetime
