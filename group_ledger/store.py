"""
Group Ledger Store

The event store and every mutation that may change it.

DESIGN DECISION: One store object owns one GroupData and one lock.
There is no module-level state; construct a store per process (or per
test) and pass it around.

CRITICAL RULES:
1. Every mutation requires an ADMIN user and returns UNAUTHORIZED
   otherwise. Nothing is silently skipped.
2. The cached Member.current_loan_principal and the event it mirrors are
   updated under the same lock acquisition, so readers never see one
   without the other.
3. Expected failures (unknown id, bad input, loan cap) come back as
   OperationResult values. Only impossible states raise.
4. Reads hand out deep copies; callers can never mutate the store
   behind the lock's back.
"""

import threading
from copy import deepcopy
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Optional

from pydantic import ValidationError

from group_ledger.config import LedgerSettings
from group_ledger.models.group import (
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
    month_of,
    utc_now,
)
from group_ledger.models.results import (
    ErrorKind,
    OperationResult,
    ValidationIssue,
)
from group_ledger.models.views import (
    ActiveLoan,
    DashboardStats,
    ExpenseEntry,
    LedgerStatement,
    MonthlyReport,
    MonthSummary,
    PaymentAlert,
    PaymentSuggestion,
    SavingsTrendPoint,
)
from group_ledger.queries import ledger, statistics
from group_ledger.validation import LedgerValidator


ZERO = Decimal("0")

UPDATABLE_MEMBER_FIELDS = frozenset({"name", "phone", "joining_date", "loan_cap", "due_day"})


class InvalidAmountError(ValueError):
    """An amount that is not a finite number."""

    def __init__(self, field: str, value: Any):
        self.field = field
        super().__init__(f"{field} must be a finite number, got {value!r}")


def to_decimal(value: Any, field: str = "amount") -> Decimal:
    """
    Coerce ints, floats and strings to Decimal without float artifacts.

    Raises:
        InvalidAmountError: For text that is not a number, NaN or infinity
    """
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidAmountError(field, value) from None
    if not result.is_finite():
        raise InvalidAmountError(field, value)
    return result


def _amount_failure(exc: InvalidAmountError) -> OperationResult:
    issue = ValidationIssue(
        field=exc.field,
        issue_type="invalid_amount",
        message=str(exc),
        severity="error",
    )
    return OperationResult.fail(ErrorKind.VALIDATION_ERROR, str(exc), [issue])


def _pydantic_failure(exc: ValidationError) -> OperationResult:
    issues = [
        ValidationIssue(
            field=".".join(str(part) for part in error["loc"]) or "input",
            issue_type=error["type"],
            message=error["msg"],
            severity="error",
        )
        for error in exc.errors()
    ]
    return OperationResult.fail(
        ErrorKind.VALIDATION_ERROR,
        "; ".join(issue.message for issue in issues) or "Invalid input",
        issues,
    )


class GroupLedgerStore:
    """
    Thread-safe event store with admin-only mutations.

    Usage:
        store = GroupLedgerStore(default_group_data())
        result = store.issue_loan(admin, member_id, Decimal("5000"), Decimal("2"))
        if not result.success:
            print(result.error_kind, result.error_message)
    """

    def __init__(
        self,
        data: Optional[GroupData] = None,
        enforce_loan_cap: bool = True,
        default_loan_cap: Decimal = Decimal("50000"),
        validator: Optional[LedgerValidator] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        """
        Initialize the store.

        Args:
            data: Initial group data. Defaults to an empty group.
            enforce_loan_cap: Reject loans that would push principal past
                             the member's cap (CAPACITY_EXCEEDED).
            default_loan_cap: Cap given to new members when none is passed.
            validator: Input validator. A default one is created if None.
            clock: Source of event timestamps (UTC).
        """
        self._data = data if data is not None else GroupData()
        self._lock = threading.RLock()
        self._enforce_loan_cap = enforce_loan_cap
        self._default_loan_cap = default_loan_cap
        self._validator = validator or LedgerValidator()
        self._clock = clock
        self._last_ledger_time: Optional[datetime] = None

    @classmethod
    def from_settings(cls, data: GroupData, settings: LedgerSettings) -> "GroupLedgerStore":
        return cls(
            data,
            enforce_loan_cap=settings.enforce_loan_cap,
            default_loan_cap=settings.default_loan_cap,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    @staticmethod
    def _require_admin(auth: AuthUser, operation: str) -> Optional[OperationResult]:
        if auth.is_admin:
            return None
        return OperationResult.fail(
            ErrorKind.UNAUTHORIZED,
            f"{operation} requires the ADMIN role",
        )

    @staticmethod
    def _member_not_found(member_id: str) -> OperationResult:
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Member not found: {member_id}")

    def _ledger_stamp(self) -> tuple[datetime, int]:
        """
        Time and sequence number for a new loan, payment or rate change.

        Call with the lock held, and call _ledger_recorded once the event is
        appended. The time never runs behind the previous ledger event, so
        replaying by (time, sequence) follows mutation order even if the
        clock stalls or steps backwards.
        """
        now = self._clock()
        if self._last_ledger_time is not None and now < self._last_ledger_time:
            now = self._last_ledger_time
        return now, self._data.last_event_sequence + 1

    def _ledger_recorded(self, when: datetime, sequence: int) -> None:
        self._last_ledger_time = when
        self._data.last_event_sequence = sequence

    def _member_index(self, member_id: str) -> Optional[int]:
        for index, member in enumerate(self._data.members):
            if member.id == member_id:
                return index
        return None

    def snapshot(self) -> GroupData:
        """Deep copy of the current data, safe to serialize or inspect."""
        with self._lock:
            return deepcopy(self._data)

    def member(self, member_id: str) -> Optional[Member]:
        with self._lock:
            found = self._data.find_member(member_id)
            return found.model_copy() if found else None

    # =========================================================================
    # MEMBERS
    # =========================================================================

    def add_member(
        self,
        auth: AuthUser,
        name: str,
        phone: str = "",
        joining_date: Optional[date] = None,
        loan_cap: Optional[Decimal] = None,
        due_day: Optional[int] = None,
    ) -> OperationResult[Member]:
        """Create a member with no loan and a zero rate."""
        denied = self._require_admin(auth, "add_member")
        if denied:
            return denied

        try:
            cap = to_decimal(loan_cap, "loan_cap") if loan_cap is not None else self._default_loan_cap
        except InvalidAmountError as e:
            return _amount_failure(e)
        validation = self._validator.validate_member(name, phone, cap, due_day)
        if validation.has_errors:
            return OperationResult.invalid(validation)

        with self._lock:
            try:
                member = Member(
                    name=name,
                    phone=phone or "",
                    joining_date=joining_date or self._clock().date(),
                    loan_cap=cap,
                    due_day=due_day,
                )
            except ValidationError as e:
                return _pydantic_failure(e)
            self._data.members.append(member)
            return OperationResult.ok(member.model_copy())

    def update_member(
        self,
        auth: AuthUser,
        member_id: str,
        **changes: Any,
    ) -> OperationResult[Member]:
        """
        Edit a member's identity and terms.

        Accepted keys: name, phone, joining_date, loan_cap, due_day.
        Passing due_day=None clears the member's override. Principal and
        rate only move through loans, payments and rate adjustments.
        """
        denied = self._require_admin(auth, "update_member")
        if denied:
            return denied

        unknown = set(changes) - UPDATABLE_MEMBER_FIELDS
        if unknown:
            return OperationResult.fail(
                ErrorKind.VALIDATION_ERROR,
                f"Fields cannot be updated: {', '.join(sorted(unknown))}",
            )
        if "loan_cap" in changes and changes["loan_cap"] is not None:
            try:
                changes["loan_cap"] = to_decimal(changes["loan_cap"], "loan_cap")
            except InvalidAmountError as e:
                return _amount_failure(e)

        validation = self._validator.validate_member(
            changes.get("name"),
            changes.get("phone"),
            changes.get("loan_cap"),
            changes.get("due_day"),
            operation="update_member",
        )
        if validation.has_errors:
            return OperationResult.invalid(validation)

        with self._lock:
            index = self._member_index(member_id)
            if index is None:
                return self._member_not_found(member_id)
            current = self._data.members[index]
            try:
                updated = Member.model_validate({**current.model_dump(), **changes})
            except ValidationError as e:
                return _pydantic_failure(e)
            self._data.members[index] = updated
            return OperationResult.ok(updated.model_copy())

    def delete_member(self, auth: AuthUser, member_id: str) -> OperationResult[Member]:
        """
        Remove a member and cascade to their payment, loan and rate records.

        Irreversible: there is no tombstone.
        """
        denied = self._require_admin(auth, "delete_member")
        if denied:
            return denied

        with self._lock:
            index = self._member_index(member_id)
            if index is None:
                return self._member_not_found(member_id)
            removed = self._data.members.pop(index)
            self._data.records = [r for r in self._data.records if r.member_id != member_id]
            self._data.loans_issued = [
                l for l in self._data.loans_issued if l.member_id != member_id
            ]
            self._data.interest_rate_changes = [
                c for c in self._data.interest_rate_changes if c.member_id != member_id
            ]
            return OperationResult.ok(removed)

    # =========================================================================
    # LOANS, PAYMENTS & RATES
    # =========================================================================

    def issue_loan(
        self,
        auth: AuthUser,
        member_id: str,
        amount: Decimal,
        interest_rate: Optional[Decimal] = None,
    ) -> OperationResult[LoanIssuedRecord]:
        """
        Disburse a loan.

        Appends a LoanIssuedRecord (rate snapshotted), adds the amount to
        the member's principal, overwrites the member's rate with this
        loan's rate and posts a LOAN_DISBURSED notification.
        """
        denied = self._require_admin(auth, "issue_loan")
        if denied:
            return denied

        try:
            amount = to_decimal(amount)
            rate = (
                to_decimal(interest_rate, "interest_rate")
                if interest_rate is not None
                else None
            )
        except InvalidAmountError as e:
            return _amount_failure(e)

        with self._lock:
            member = self._data.find_member(member_id)
            if member is None:
                return self._member_not_found(member_id)

            if rate is None:
                rate = self._data.settings.default_interest_rate
            validation = self._validator.validate_loan(amount, rate)
            if validation.has_errors:
                return OperationResult.invalid(validation)

            new_principal = member.current_loan_principal + amount
            if self._enforce_loan_cap and new_principal > member.loan_cap:
                return OperationResult.fail(
                    ErrorKind.CAPACITY_EXCEEDED,
                    (
                        f"Loan of {amount} would bring {member.name}'s principal to "
                        f"{new_principal}, above the cap of {member.loan_cap}"
                    ),
                )

            now, sequence = self._ledger_stamp()
            loan = LoanIssuedRecord(
                member_id=member_id,
                amount=amount,
                interest_rate=rate,
                date=now,
                sequence=sequence,
            )
            member.current_loan_principal = new_principal
            member.loan_interest_rate = rate
            self._data.loans_issued.append(loan)
            self._ledger_recorded(now, sequence)
            self._data.notifications.insert(0, AppNotification(
                notification_type=NotificationType.LOAN_DISBURSED,
                message=f"Loan of ₹{amount:,} disbursed to {member.name} at {rate}% monthly interest",
                timestamp=now,
            ))
            return OperationResult.ok(loan)

    def record_payment(
        self,
        auth: AuthUser,
        member_id: str,
        month: str,
        savings: Decimal = ZERO,
        principal_paid: Decimal = ZERO,
        interest_paid: Decimal = ZERO,
        penalty: Decimal = ZERO,
    ) -> OperationResult[PaymentRecord]:
        """
        Record one collection.

        Principal is reduced by principal_paid and floored at zero; an
        overpayment is absorbed, not credited forward. Several records
        for the same member and month are allowed.
        """
        denied = self._require_admin(auth, "record_payment")
        if denied:
            return denied

        try:
            savings = to_decimal(savings, "savings")
            principal_paid = to_decimal(principal_paid, "principal_paid")
            interest_paid = to_decimal(interest_paid, "interest_paid")
            penalty = to_decimal(penalty, "penalty")
        except InvalidAmountError as e:
            return _amount_failure(e)

        with self._lock:
            member = self._data.find_member(member_id)
            if member is None:
                return self._member_not_found(member_id)

            validation = self._validator.validate_payment(
                self._data, member, month, savings, principal_paid, interest_paid, penalty
            )
            if validation.has_errors:
                return OperationResult.invalid(validation)

            timestamp, sequence = self._ledger_stamp()
            record = PaymentRecord(
                member_id=member_id,
                month=month,
                savings=savings,
                principal_paid=principal_paid,
                interest_paid=interest_paid,
                penalty=penalty,
                timestamp=timestamp,
                sequence=sequence,
            )
            member.current_loan_principal = max(
                ZERO, member.current_loan_principal - principal_paid
            )
            self._data.records.append(record)
            self._ledger_recorded(timestamp, sequence)
            return OperationResult(success=True, value=record, issues=validation.issues)

    def adjust_interest_rate(
        self,
        auth: AuthUser,
        member_id: str,
        new_rate: Decimal,
        reason: str = "",
    ) -> OperationResult[InterestRateChangeRecord]:
        """Change a member's rate going forward; past payments are untouched."""
        denied = self._require_admin(auth, "adjust_interest_rate")
        if denied:
            return denied

        try:
            new_rate = to_decimal(new_rate, "new_rate")
        except InvalidAmountError as e:
            return _amount_failure(e)

        with self._lock:
            member = self._data.find_member(member_id)
            if member is None:
                return self._member_not_found(member_id)

            validation = self._validator.validate_rate_change(member, new_rate)
            when, sequence = self._ledger_stamp()
            try:
                change = InterestRateChangeRecord(
                    member_id=member_id,
                    old_rate=member.loan_interest_rate,
                    new_rate=new_rate,
                    reason=reason.strip() or "Manual adjustment",
                    date=when,
                    sequence=sequence,
                )
            except ValidationError as e:
                return _pydantic_failure(e)
            member.loan_interest_rate = new_rate
            self._data.interest_rate_changes.append(change)
            self._ledger_recorded(when, sequence)
            return OperationResult(success=True, value=change, issues=validation.issues)

    # =========================================================================
    # EXPENSES
    # =========================================================================

    def add_admin_payment(
        self,
        auth: AuthUser,
        month: str,
        amount: Decimal,
        description: str = "Admin reward",
        period_months: int = 1,
    ) -> OperationResult[AdminPayment]:
        denied = self._require_admin(auth, "add_admin_payment")
        if denied:
            return denied

        try:
            amount = to_decimal(amount)
        except InvalidAmountError as e:
            return _amount_failure(e)
        validation = self._validator.validate_admin_payment(month, amount, period_months)
        if validation.has_errors:
            return OperationResult.invalid(validation)

        with self._lock:
            try:
                payment = AdminPayment(
                    month=month,
                    amount=amount,
                    description=description.strip() or "Admin reward",
                    period_months=period_months,
                    timestamp=self._clock(),
                )
            except ValidationError as e:
                return _pydantic_failure(e)
            self._data.admin_payments.append(payment)
            return OperationResult.ok(payment)

    def add_misc_payment(
        self,
        auth: AuthUser,
        month: str,
        amount: Decimal,
        description: str,
    ) -> OperationResult[MiscellaneousPayment]:
        denied = self._require_admin(auth, "add_misc_payment")
        if denied:
            return denied

        try:
            amount = to_decimal(amount)
        except InvalidAmountError as e:
            return _amount_failure(e)
        validation = self._validator.validate_misc_payment(month, amount, description)
        if validation.has_errors:
            return OperationResult.invalid(validation)

        with self._lock:
            try:
                payment = MiscellaneousPayment(
                    month=month,
                    amount=amount,
                    description=description,
                    timestamp=self._clock(),
                )
            except ValidationError as e:
                return _pydantic_failure(e)
            self._data.misc_payments.append(payment)
            return OperationResult.ok(payment)

    def remove_admin_payment(self, auth: AuthUser, payment_id: str) -> OperationResult[AdminPayment]:
        denied = self._require_admin(auth, "remove_admin_payment")
        if denied:
            return denied

        with self._lock:
            for index, payment in enumerate(self._data.admin_payments):
                if payment.id == payment_id:
                    return OperationResult.ok(self._data.admin_payments.pop(index))
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Admin payment not found: {payment_id}")

    def remove_misc_payment(
        self,
        auth: AuthUser,
        payment_id: str,
    ) -> OperationResult[MiscellaneousPayment]:
        denied = self._require_admin(auth, "remove_misc_payment")
        if denied:
            return denied

        with self._lock:
            for index, payment in enumerate(self._data.misc_payments):
                if payment.id == payment_id:
                    return OperationResult.ok(self._data.misc_payments.pop(index))
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Misc payment not found: {payment_id}")

    # =========================================================================
    # SETTINGS & TARGETS
    # =========================================================================

    def update_settings(self, auth: AuthUser, settings: GroupSettings) -> OperationResult[GroupSettings]:
        denied = self._require_admin(auth, "update_settings")
        if denied:
            return denied

        validation = self._validator.validate_settings(settings)
        if validation.has_errors:
            return OperationResult.invalid(validation)

        with self._lock:
            self._data.settings = settings.model_copy()
            return OperationResult(success=True, value=settings.model_copy(), issues=validation.issues)

    def set_monthly_savings_target(
        self,
        auth: AuthUser,
        month: str,
        amount: Decimal,
    ) -> OperationResult[Decimal]:
        """Override the savings target for one month (upsert)."""
        denied = self._require_admin(auth, "set_monthly_savings_target")
        if denied:
            return denied

        try:
            amount = to_decimal(amount)
        except InvalidAmountError as e:
            return _amount_failure(e)
        validation = self._validator.validate_savings_target(month, amount)
        if validation.has_errors:
            return OperationResult.invalid(validation)

        with self._lock:
            self._data.monthly_savings_targets[month] = amount
            return OperationResult.ok(amount)

    def remove_monthly_savings_target(self, auth: AuthUser, month: str) -> OperationResult[Decimal]:
        """Drop a month's override; the group default applies again."""
        denied = self._require_admin(auth, "remove_monthly_savings_target")
        if denied:
            return denied

        with self._lock:
            if month not in self._data.monthly_savings_targets:
                return OperationResult.fail(
                    ErrorKind.NOT_FOUND, f"No savings target set for {month}"
                )
            return OperationResult.ok(self._data.monthly_savings_targets.pop(month))

    # =========================================================================
    # MEETING NOTES & NOTIFICATIONS
    # =========================================================================

    def add_meeting_note(
        self,
        auth: AuthUser,
        month: str,
        content: str,
    ) -> OperationResult[MeetingNote]:
        """Create a draft note authored by the acting user, newest first."""
        denied = self._require_admin(auth, "add_meeting_note")
        if denied:
            return denied

        validation = self._validator.validate_meeting_note(month, content)
        if validation.has_errors:
            return OperationResult.invalid(validation)

        with self._lock:
            note = MeetingNote(
                month=month,
                content=content,
                author=auth.name,
                created_at=self._clock(),
            )
            self._data.meeting_notes.insert(0, note)
            return OperationResult.ok(note.model_copy())

    def publish_meeting_note(self, auth: AuthUser, note_id: str) -> OperationResult[MeetingNote]:
        """
        Publish a note.

        Publishing an already published note stamps published_at again.
        """
        denied = self._require_admin(auth, "publish_meeting_note")
        if denied:
            return denied

        with self._lock:
            for note in self._data.meeting_notes:
                if note.id == note_id:
                    note.published_at = self._clock()
                    return OperationResult.ok(note.model_copy())
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Meeting note not found: {note_id}")

    def delete_meeting_note(self, auth: AuthUser, note_id: str) -> OperationResult[MeetingNote]:
        denied = self._require_admin(auth, "delete_meeting_note")
        if denied:
            return denied

        with self._lock:
            for index, note in enumerate(self._data.meeting_notes):
                if note.id == note_id:
                    return OperationResult.ok(self._data.meeting_notes.pop(index))
        return OperationResult.fail(ErrorKind.NOT_FOUND, f"Meeting note not found: {note_id}")

    def mark_notifications_read(self, auth: AuthUser) -> OperationResult[int]:
        """Mark every notification read. Value is how many changed."""
        denied = self._require_admin(auth, "mark_notifications_read")
        if denied:
            return denied

        with self._lock:
            changed = 0
            for notification in self._data.notifications:
                if not notification.read:
                    notification.read = True
                    changed += 1
            return OperationResult.ok(changed)

    def clear_notifications(self, auth: AuthUser) -> OperationResult[int]:
        """Remove all notifications. Value is how many were removed."""
        denied = self._require_admin(auth, "clear_notifications")
        if denied:
            return denied

        with self._lock:
            removed = len(self._data.notifications)
            self._data.notifications = []
            return OperationResult.ok(removed)

    # =========================================================================
    # QUERIES
    # =========================================================================

    @staticmethod
    def _scope(auth: AuthUser) -> Optional[str]:
        """None (whole group) for the administrator, else the member's id."""
        return None if auth.is_admin else auth.member_id

    @staticmethod
    def _member_scope_missing(auth: AuthUser) -> Optional[OperationResult]:
        if not auth.is_admin and not auth.member_id:
            return OperationResult.fail(
                ErrorKind.UNAUTHORIZED, "Member session has no member id"
            )
        return None

    def loan_statement(self, auth: AuthUser, member_id: str) -> OperationResult[LedgerStatement]:
        """A member's replayed loan ledger. Members may only read their own."""
        if not auth.is_admin and auth.member_id != member_id:
            return OperationResult.fail(
                ErrorKind.UNAUTHORIZED, "Members can only view their own ledger"
            )
        with self._lock:
            member = self._data.find_member(member_id)
            if member is None:
                return self._member_not_found(member_id)
            return OperationResult.ok(ledger.build_statement(self._data, member))

    def dashboard(self, auth: AuthUser, today: date) -> OperationResult[DashboardStats]:
        missing = self._member_scope_missing(auth)
        if missing:
            return missing
        with self._lock:
            return OperationResult.ok(
                statistics.dashboard_stats(self._data, today, self._scope(auth))
            )

    def savings_trend(self, auth: AuthUser) -> OperationResult[list[SavingsTrendPoint]]:
        missing = self._member_scope_missing(auth)
        if missing:
            return missing
        with self._lock:
            return OperationResult.ok(statistics.savings_trend(self._data, self._scope(auth)))

    def payment_alerts(self, auth: AuthUser, today: date) -> OperationResult[list[PaymentAlert]]:
        missing = self._member_scope_missing(auth)
        if missing:
            return missing
        with self._lock:
            return OperationResult.ok(
                statistics.payment_alerts(self._data, today, self._scope(auth))
            )

    def monthly_report(self, auth: AuthUser, month: str) -> OperationResult[MonthlyReport]:
        denied = self._require_admin(auth, "monthly_report")
        if denied:
            return denied
        with self._lock:
            return OperationResult.ok(statistics.monthly_report(self._data, month))

    def month_summary(self, auth: AuthUser, month: str) -> OperationResult[MonthSummary]:
        missing = self._member_scope_missing(auth)
        if missing:
            return missing
        with self._lock:
            return OperationResult.ok(
                statistics.month_summary(self._data, month, self._scope(auth))
            )

    def active_loans(
        self,
        auth: AuthUser,
        sort_by: str = "amount",
        descending: bool = True,
        search: str = "",
    ) -> OperationResult[list[ActiveLoan]]:
        denied = self._require_admin(auth, "active_loans")
        if denied:
            return denied
        if sort_by not in statistics.ACTIVE_LOAN_SORT_FIELDS:
            return OperationResult.fail(
                ErrorKind.VALIDATION_ERROR,
                f"sort_by must be one of {', '.join(statistics.ACTIVE_LOAN_SORT_FIELDS)}",
            )
        with self._lock:
            return OperationResult.ok(
                statistics.active_loans(self._data, sort_by, descending, search)
            )

    def suggest_payment(
        self,
        auth: AuthUser,
        member_id: str,
        month: str,
        today: date,
    ) -> OperationResult[PaymentSuggestion]:
        """Pre-filled payment terms. Members may only ask about themselves."""
        if not auth.is_admin and auth.member_id != member_id:
            return OperationResult.fail(
                ErrorKind.UNAUTHORIZED, "Members can only view their own payment terms"
            )
        with self._lock:
            member = self._data.find_member(member_id)
            if member is None:
                return self._member_not_found(member_id)
            return OperationResult.ok(
                statistics.suggest_payment(self._data, member, month, today)
            )

    def recent_expenses(self, auth: AuthUser, limit: int = 5) -> OperationResult[list[ExpenseEntry]]:
        denied = self._require_admin(auth, "recent_expenses")
        if denied:
            return denied
        with self._lock:
            return OperationResult.ok(statistics.recent_expenses(self._data, limit))

    def unread_notification_count(self, auth: AuthUser) -> OperationResult[int]:
        denied = self._require_admin(auth, "unread_notification_count")
        if denied:
            return denied
        with self._lock:
            return OperationResult.ok(statistics.unread_notification_count(self._data))

    def recent_meeting_notes_count(self, now: Optional[datetime] = None, days: int = 3) -> int:
        with self._lock:
            return statistics.recent_meeting_notes_count(
                self._data, now or self._clock(), days
            )

    def visible_meeting_notes(self, auth: AuthUser) -> list[MeetingNote]:
        with self._lock:
            return [
                note.model_copy()
                for note in statistics.visible_meeting_notes(self._data, auth.is_admin)
            ]

    def current_month(self) -> str:
        return month_of(self._clock().date())
