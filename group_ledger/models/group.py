"""
Core Data Models for Group Ledger

These models define the strict schemas for the group's data graph.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Serialize to the persisted GroupData JSON shape (camelCase keys)
4. Keep events immutable once recorded

DESIGN DECISION: The whole data graph is one aggregate root (GroupData).
Entities refer to members only through member_id, never by embedding,
so a member delete is a mechanical filter over each collection.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional
from uuid import uuid4

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
)
from pydantic.alias_generators import to_camel


MONTH_PATTERN = r"^\d{4}-(0[1-9]|1[0-2])$"
CURRENT_SCHEMA_VERSION = 2


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Short random identifier (nine hex characters)."""
    return uuid4().hex[:9]


def month_of(day: date) -> str:
    """Format a date as its YYYY-MM month key."""
    return day.strftime("%Y-%m")


def _ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_ensure_utc)]
Month = Annotated[str, Field(pattern=MONTH_PATTERN)]


class _LedgerModel(BaseModel):
    """Base for mutable ledger entities."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        validate_assignment=True,
    )


class _EventModel(BaseModel):
    """
    Base for recorded events.

    CRITICAL: Events are frozen. A recorded payment or disbursement is
    never edited; corrections are new events.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True,
    )


# =============================================================================
# ENUMS
# =============================================================================

class UserRole(str, Enum):
    """Role of the acting user."""
    ADMIN = "ADMIN"
    MEMBER = "MEMBER"


class NotificationType(str, Enum):
    """Kinds of in-app notification."""
    LOAN_DISBURSED = "LOAN_DISBURSED"
    SYSTEM = "SYSTEM"


# =============================================================================
# MEMBERS & SETTINGS
# =============================================================================

class Member(_LedgerModel):
    """
    A group member and their loan terms.

    current_loan_principal is a cached running balance: it is moved only by
    loan issuance and payment recording, and must always equal the replay
    of those events (see queries.ledger).
    """

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=120)
    phone: str = Field(default="", max_length=20)
    joining_date: date = Field(default_factory=date.today)

    current_loan_principal: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Outstanding principal (cached projection)"
    )
    loan_interest_rate: Decimal = Field(
        default=Decimal("0"),
        description="Monthly interest rate in percent, taken from the latest loan"
    )
    loan_cap: Decimal = Field(
        default=Decimal("50000"),
        ge=0,
        description="Hard ceiling on principal at issuance time"
    )
    due_day: Optional[int] = Field(
        default=None,
        ge=1,
        le=28,
        description="Member-specific due day, overrides the group setting"
    )

    @property
    def has_active_loan(self) -> bool:
        return self.current_loan_principal > 0

    def effective_due_day(self, group_due_day: int) -> int:
        """Member override if set, else the group's due day."""
        return self.due_day or group_due_day

    def monthly_interest_due(self) -> Decimal:
        """Interest for one cycle at the present balance and rate."""
        return self.current_loan_principal * self.loan_interest_rate / Decimal("100")


class GroupSettings(_LedgerModel):
    """Process-wide group configuration."""

    name: str = Field(default="Unity Savings Group", min_length=1, max_length=120)
    monthly_savings_amount: Decimal = Field(default=Decimal("1000"), ge=0)
    default_interest_rate: Decimal = Field(default=Decimal("2"))
    due_day: int = Field(default=10, ge=1, le=28)
    admin_password: Optional[str] = None

    # Carry-over from paper ledgers kept before the group used this system
    initial_growth_savings: Optional[Decimal] = None
    initial_net_funds: Optional[Decimal] = None


class AuthUser(BaseModel):
    """
    An already-authenticated user, resolved by an external authenticator.

    The core never verifies phones, OTPs or passwords itself.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    role: UserRole
    member_id: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def administrator(cls, name: str = "Administrator") -> "AuthUser":
        return cls(id="admin-0", name=name, role=UserRole.ADMIN)

    @classmethod
    def for_member(cls, member: Member) -> "AuthUser":
        return cls(
            id=member.id,
            name=member.name,
            role=UserRole.MEMBER,
            member_id=member.id,
        )


# =============================================================================
# EVENTS
# =============================================================================

class PaymentRecord(_EventModel):
    """
    One collection from one member for one calendar month.

    Several records may exist for the same member and month.
    """

    id: str = Field(default_factory=new_id)
    member_id: str
    month: Month
    savings: Decimal = Field(default=Decimal("0"), ge=0)
    principal_paid: Decimal = Field(default=Decimal("0"), ge=0)
    interest_paid: Decimal = Field(default=Decimal("0"), ge=0)
    penalty: Decimal = Field(default=Decimal("0"), ge=0)
    timestamp: UtcDatetime = Field(default_factory=utc_now)
    sequence: int = Field(default=0, ge=0, description="Store-assigned replay order; 0 for legacy data")

    @property
    def total(self) -> Decimal:
        return self.savings + self.principal_paid + self.interest_paid + self.penalty


class LoanIssuedRecord(_EventModel):
    """A disbursement, with the interest rate snapshotted at issuance."""

    id: str = Field(default_factory=new_id)
    member_id: str
    amount: Decimal = Field(..., gt=0)
    interest_rate: Decimal
    date: UtcDatetime = Field(default_factory=utc_now)
    sequence: int = Field(default=0, ge=0)


class InterestRateChangeRecord(_EventModel):
    """Audit record of a manual rate adjustment. Never retroactive."""

    id: str = Field(default_factory=new_id)
    member_id: str
    old_rate: Decimal
    new_rate: Decimal
    reason: str = Field(default="Manual adjustment", max_length=500)
    date: UtcDatetime = Field(default_factory=utc_now)
    sequence: int = Field(default=0, ge=0)


class AdminPayment(_EventModel):
    """Administrator reward paid out of group funds."""

    id: str = Field(default_factory=new_id)
    month: Month
    amount: Decimal = Field(..., gt=0)
    description: str = Field(default="Admin reward", max_length=500)
    period_months: int = Field(
        default=1,
        ge=1,
        description="Months this payment covers (label only)"
    )
    timestamp: UtcDatetime = Field(default_factory=utc_now)


class MiscellaneousPayment(_EventModel):
    """Any other group expense."""

    id: str = Field(default_factory=new_id)
    month: Month
    amount: Decimal = Field(..., gt=0)
    description: str = Field(..., min_length=1, max_length=500)
    timestamp: UtcDatetime = Field(default_factory=utc_now)


class MeetingNote(_LedgerModel):
    """Meeting minutes. Drafts have no published_at."""

    id: str = Field(default_factory=new_id)
    month: Month
    content: str = Field(..., min_length=1)
    author: str
    created_at: UtcDatetime = Field(default_factory=utc_now)
    published_at: Optional[UtcDatetime] = None

    @property
    def is_published(self) -> bool:
        return self.published_at is not None


class AppNotification(_LedgerModel):
    """In-app notification; only the read flag ever changes."""

    id: str = Field(default_factory=new_id)
    notification_type: NotificationType = Field(
        default=NotificationType.SYSTEM,
        alias="type",
    )
    message: str
    timestamp: UtcDatetime = Field(default_factory=utc_now)
    read: bool = False


# =============================================================================
# AGGREGATE ROOT
# =============================================================================

class GroupData(_LedgerModel):
    """
    The single aggregate root persisted as one JSON document.

    Nothing outside this object has an independent lifetime.
    """

    schema_version: int = Field(default=CURRENT_SCHEMA_VERSION)
    settings: GroupSettings = Field(default_factory=GroupSettings)
    members: list[Member] = Field(default_factory=list)
    records: list[PaymentRecord] = Field(default_factory=list)
    loans_issued: list[LoanIssuedRecord] = Field(default_factory=list)
    interest_rate_changes: list[InterestRateChangeRecord] = Field(default_factory=list)
    meeting_notes: list[MeetingNote] = Field(default_factory=list)
    admin_payments: list[AdminPayment] = Field(default_factory=list)
    misc_payments: list[MiscellaneousPayment] = Field(default_factory=list)
    notifications: list[AppNotification] = Field(default_factory=list)
    monthly_savings_targets: dict[str, Decimal] = Field(
        default_factory=dict,
        description="Per-month override of settings.monthly_savings_amount"
    )
    last_event_sequence: int = Field(
        default=0,
        ge=0,
        description="Highest sequence handed to a loan, payment or rate change"
    )

    def find_member(self, member_id: str) -> Optional[Member]:
        for member in self.members:
            if member.id == member_id:
                return member
        return None

    def savings_target_for(self, month: str) -> Decimal:
        """Savings target for a month: override if present, else the default."""
        if month in self.monthly_savings_targets:
            return self.monthly_savings_targets[month]
        return self.settings.monthly_savings_amount

    def to_json_dict(self) -> dict:
        """Serialize to the persisted camelCase JSON shape."""
        return self.model_dump(mode="json", by_alias=True)
