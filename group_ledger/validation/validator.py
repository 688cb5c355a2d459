"""
Two-Stage Validation Pipeline

DESIGN DECISION: Every mutation input is validated in two distinct stages:

STAGE 1 - FIELD VALIDATION:
- Required field presence
- Sign and range of amounts
- Month format (YYYY-MM)
- This catches malformed requests

STAGE 2 - BUSINESS VALIDATION:
- Overpayment of principal
- Duplicate collections for the same member and month
- Unusual rates
- This catches legal-but-suspicious requests

Stage 2 only runs when stage 1 passes, and it only ever produces
warnings. Warnings never block a mutation; errors become
VALIDATION_ERROR results.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them to the caller.
"""

import re
from decimal import Decimal
from typing import Optional

from group_ledger.models.group import MONTH_PATTERN, GroupData, GroupSettings, Member
from group_ledger.models.results import ValidationIssue, ValidationResult


_MONTH_RE = re.compile(MONTH_PATTERN)
_PHONE_RE = re.compile(r"^\d{10}$")

ZERO = Decimal("0")


def _error(field: str, issue_type: str, message: str, fix: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="error",
        suggested_fix=fix,
    )


def _warning(field: str, issue_type: str, message: str, fix: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="warning",
        suggested_fix=fix,
    )


def is_valid_month(month: Optional[str]) -> bool:
    """True for a YYYY-MM month key."""
    return bool(month) and _MONTH_RE.match(month) is not None


class LedgerValidator:
    """
    Validates mutation inputs before they touch the event store.

    Stateless: the group data needed by business checks is passed per call.
    """

    # =========================================================================
    # STAGE 1 HELPERS
    # =========================================================================

    def _check_month(self, month: Optional[str], issues: list[ValidationIssue]) -> None:
        if not month:
            issues.append(_error(
                "month", "missing", "Month is required",
                "Use the YYYY-MM format, e.g. 2024-03",
            ))
        elif not is_valid_month(month):
            issues.append(_error(
                "month", "invalid_format", f"Month '{month}' is not in YYYY-MM format",
                "Use the YYYY-MM format, e.g. 2024-03",
            ))

    def _check_positive(self, field: str, value: Decimal, issues: list[ValidationIssue]) -> None:
        if value <= ZERO:
            issues.append(_error(
                field, "invalid_value", f"{field} must be greater than zero",
            ))

    def _check_non_negative(self, field: str, value: Decimal, issues: list[ValidationIssue]) -> None:
        if value < ZERO:
            issues.append(_error(
                field, "invalid_value", f"{field} cannot be negative",
            ))

    def _check_text(self, field: str, value: Optional[str], issues: list[ValidationIssue]) -> None:
        if value is None or not value.strip():
            issues.append(_error(field, "missing", f"{field} is required"))

    def _check_due_day(self, due_day: Optional[int], issues: list[ValidationIssue]) -> None:
        if due_day is not None and not 1 <= due_day <= 28:
            issues.append(_error(
                "due_day", "out_of_range", f"Due day {due_day} must be between 1 and 28",
                "Days 29-31 do not exist in every month",
            ))

    @staticmethod
    def _result(operation: str, issues: list[ValidationIssue]) -> ValidationResult:
        return ValidationResult(operation=operation, issues=issues)

    # =========================================================================
    # LOANS & RATES
    # =========================================================================

    def validate_loan(
        self,
        amount: Decimal,
        interest_rate: Decimal,
    ) -> ValidationResult:
        issues: list[ValidationIssue] = []
        self._check_positive("amount", amount, issues)

        if not issues:
            issues.extend(self._rate_warnings(interest_rate))

        return self._result("issue_loan", issues)

    def validate_rate_change(
        self,
        member: Member,
        new_rate: Decimal,
    ) -> ValidationResult:
        """Rates are never rejected; negative or unchanged rates are flagged."""
        issues = self._rate_warnings(new_rate)
        if new_rate == member.loan_interest_rate:
            issues.append(_warning(
                "new_rate", "unchanged",
                f"{member.name} already pays {new_rate}% per month",
            ))
        return self._result("adjust_interest_rate", issues)

    def _rate_warnings(self, rate: Decimal) -> list[ValidationIssue]:
        issues = []
        if rate < ZERO:
            issues.append(_warning(
                "interest_rate", "suspicious_value",
                f"Interest rate {rate}% is negative",
                "Please verify the rate",
            ))
        elif rate > Decimal("10"):
            issues.append(_warning(
                "interest_rate", "suspicious_value",
                f"Interest rate {rate}% per month seems unusually high",
                "Rates are monthly percentages",
            ))
        return issues

    # =========================================================================
    # PAYMENTS
    # =========================================================================

    def _validate_payment_fields(
        self,
        month: str,
        savings: Decimal,
        principal_paid: Decimal,
        interest_paid: Decimal,
        penalty: Decimal,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: field validation.

        Returns: (is_valid, list_of_issues)
        """
        issues: list[ValidationIssue] = []
        self._check_month(month, issues)
        self._check_non_negative("savings", savings, issues)
        self._check_non_negative("principal_paid", principal_paid, issues)
        self._check_non_negative("interest_paid", interest_paid, issues)
        self._check_non_negative("penalty", penalty, issues)

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_payment_business(
        self,
        data: GroupData,
        member: Member,
        month: str,
        principal_paid: Decimal,
    ) -> list[ValidationIssue]:
        """
        Stage 2: business validation.

        Overpaid principal is absorbed by the store (balance floors at
        zero), so it is only reported here.
        """
        issues = []

        if principal_paid > member.current_loan_principal:
            issues.append(_warning(
                "principal_paid", "overpayment",
                (
                    f"Principal paid ({principal_paid}) exceeds the outstanding "
                    f"balance ({member.current_loan_principal}); the excess is not credited"
                ),
                "Reduce principal paid to the outstanding balance",
            ))

        if any(r.member_id == member.id and r.month == month for r in data.records):
            issues.append(_warning(
                "month", "potential_duplicate",
                f"{member.name} already has a payment recorded for {month}",
                "Please verify this isn't a duplicate entry",
            ))

        return issues

    def validate_payment(
        self,
        data: GroupData,
        member: Member,
        month: str,
        savings: Decimal,
        principal_paid: Decimal,
        interest_paid: Decimal,
        penalty: Decimal,
    ) -> ValidationResult:
        fields_valid, issues = self._validate_payment_fields(
            month, savings, principal_paid, interest_paid, penalty
        )
        if fields_valid:
            issues.extend(self._validate_payment_business(data, member, month, principal_paid))

        if fields_valid and savings + principal_paid + interest_paid + penalty == ZERO:
            issues.append(_warning(
                "total", "empty", "Payment total is zero",
            ))

        return self._result("record_payment", issues)

    # =========================================================================
    # EXPENSES
    # =========================================================================

    def validate_admin_payment(
        self,
        month: str,
        amount: Decimal,
        period_months: int,
    ) -> ValidationResult:
        issues: list[ValidationIssue] = []
        self._check_month(month, issues)
        self._check_positive("amount", amount, issues)
        if period_months < 1:
            issues.append(_error(
                "period_months", "out_of_range", "Period must cover at least one month",
            ))
        return self._result("add_admin_payment", issues)

    def validate_misc_payment(
        self,
        month: str,
        amount: Decimal,
        description: Optional[str],
    ) -> ValidationResult:
        issues: list[ValidationIssue] = []
        self._check_month(month, issues)
        self._check_positive("amount", amount, issues)
        self._check_text("description", description, issues)
        return self._result("add_misc_payment", issues)

    # =========================================================================
    # MEMBERS & SETTINGS
    # =========================================================================

    def validate_member(
        self,
        name: Optional[str],
        phone: Optional[str],
        loan_cap: Optional[Decimal],
        due_day: Optional[int],
        operation: str = "add_member",
    ) -> ValidationResult:
        """
        Validate member fields.

        For updates, None means "unchanged" and is not checked.
        """
        issues: list[ValidationIssue] = []

        if operation == "add_member" or name is not None:
            self._check_text("name", name, issues)
        if loan_cap is not None:
            self._check_non_negative("loan_cap", loan_cap, issues)
        self._check_due_day(due_day, issues)

        # Members log in with their phone number
        if phone and not _PHONE_RE.match(phone):
            issues.append(_warning(
                "phone", "invalid_format",
                f"Phone '{phone}' is not a 10-digit number",
                "The member will not be able to log in with this number",
            ))

        return self._result(operation, issues)

    def validate_settings(self, settings: GroupSettings) -> ValidationResult:
        issues: list[ValidationIssue] = []
        self._check_text("name", settings.name, issues)
        self._check_non_negative("monthly_savings_amount", settings.monthly_savings_amount, issues)
        self._check_due_day(settings.due_day, issues)
        issues.extend(self._rate_warnings(settings.default_interest_rate))
        return self._result("update_settings", issues)

    def validate_savings_target(self, month: str, amount: Decimal) -> ValidationResult:
        issues: list[ValidationIssue] = []
        self._check_month(month, issues)
        self._check_non_negative("amount", amount, issues)
        return self._result("set_monthly_savings_target", issues)

    # =========================================================================
    # MEETING NOTES
    # =========================================================================

    def validate_meeting_note(self, month: str, content: Optional[str]) -> ValidationResult:
        issues: list[ValidationIssue] = []
        self._check_month(month, issues)
        self._check_text("content", content, issues)
        return self._result("add_meeting_note", issues)

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show to the treasurer.
        """
        if result.is_valid and not result.warnings:
            return "✅ All checks passed."

        lines = []
        if result.has_errors:
            lines.append("❌ Please fix the following:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"  • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"    → {issue.suggested_fix}")

        if result.warnings:
            lines.append("⚠️ Please double-check:")
            for issue in result.issues:
                if issue.severity == "warning":
                    lines.append(f"  • {issue.message}")

        return "\n".join(lines)
