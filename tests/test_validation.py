"""
Tests for the two-stage validation pipeline.
"""

from decimal import Decimal

import pytest

from group_ledger.models.group import GroupSettings, Member, PaymentRecord
from group_ledger.validation import LedgerValidator, is_valid_month


ZERO = Decimal("0")


@pytest.fixture
def validator():
    return LedgerValidator()


@pytest.fixture
def borrower():
    return Member(
        id="m1",
        name="Asha Patel",
        current_loan_principal=Decimal("1000"),
        loan_interest_rate=Decimal("2"),
    )


class TestMonthFormat:
    """Tests for the YYYY-MM check."""

    @pytest.mark.parametrize("month", ["2024-01", "2024-12", "1999-06"])
    def test_valid(self, month):
        assert is_valid_month(month) is True

    @pytest.mark.parametrize("month", ["", None, "2024-13", "2024-00", "2024-3", "03-2024", "2024/03"])
    def test_invalid(self, month):
        assert is_valid_month(month) is False


class TestLoanValidation:
    """Tests for loan and rate checks."""

    def test_amount_must_be_positive(self, validator):
        result = validator.validate_loan(ZERO, Decimal("2"))
        assert result.has_errors
        assert result.issues[0].field == "amount"

    def test_high_rate_is_warning(self, validator):
        result = validator.validate_loan(Decimal("1000"), Decimal("15"))
        assert result.is_valid
        assert len(result.warnings) == 1

    def test_negative_rate_is_warning(self, validator):
        result = validator.validate_loan(Decimal("1000"), Decimal("-1"))
        assert result.is_valid
        assert "negative" in result.warnings[0]

    def test_unchanged_rate_warning(self, validator, borrower):
        result = validator.validate_rate_change(borrower, Decimal("2"))
        assert result.is_valid
        assert result.issues[0].issue_type == "unchanged"

    def test_zero_rate_change_is_clean(self, validator, borrower):
        result = validator.validate_rate_change(borrower, ZERO)
        assert result.issues == []


class TestPaymentValidation:
    """Tests for the payment pipeline."""

    def test_field_errors_skip_business_checks(self, validator, group_data, borrower):
        """Stage 2 warnings only appear once stage 1 passes."""
        result = validator.validate_payment(
            group_data, borrower, "bad", ZERO, Decimal("5000"), ZERO, ZERO
        )
        assert result.has_errors
        assert all(issue.issue_type != "overpayment" for issue in result.issues)

    def test_each_negative_component_reported(self, validator, group_data, borrower):
        minus = Decimal("-1")
        result = validator.validate_payment(group_data, borrower, "2024-03", minus, minus, minus, minus)
        assert result.error_count == 4

    def test_overpayment_is_warning(self, validator, group_data, borrower):
        result = validator.validate_payment(
            group_data, borrower, "2024-03", ZERO, Decimal("1500"), ZERO, ZERO
        )
        assert result.is_valid
        assert result.issues[0].issue_type == "overpayment"

    def test_duplicate_month_is_warning(self, validator, group_data, borrower):
        group_data.records.append(PaymentRecord(member_id="m1", month="2024-03", savings=Decimal("1000")))
        result = validator.validate_payment(
            group_data, borrower, "2024-03", Decimal("1000"), ZERO, ZERO, ZERO
        )
        assert result.is_valid
        assert [i.issue_type for i in result.issues] == ["potential_duplicate"]

    def test_zero_total_is_warning(self, validator, group_data, borrower):
        result = validator.validate_payment(group_data, borrower, "2024-03", ZERO, ZERO, ZERO, ZERO)
        assert result.is_valid
        assert result.warnings == ["Payment total is zero"]


class TestOtherValidation:
    """Tests for expense, member, settings and note checks."""

    def test_admin_payment_period(self, validator):
        result = validator.validate_admin_payment("2024-03", Decimal("100"), 0)
        assert result.issues[0].field == "period_months"

    def test_misc_payment_description(self, validator):
        result = validator.validate_misc_payment("2024-03", Decimal("100"), "")
        assert result.has_errors
        assert result.issues[0].field == "description"

    def test_member_name_required_on_add(self, validator):
        assert validator.validate_member(None, None, None, None).has_errors

    def test_member_name_optional_on_update(self, validator):
        result = validator.validate_member(None, None, None, None, operation="update_member")
        assert result.is_valid
        assert result.operation == "update_member"

    def test_member_due_day_range(self, validator):
        assert validator.validate_member("Asha", None, None, 29).has_errors
        assert validator.validate_member("Asha", None, None, 28).is_valid

    def test_member_negative_cap(self, validator):
        assert validator.validate_member("Asha", None, Decimal("-1"), None).has_errors

    def test_member_phone_warning(self, validator):
        result = validator.validate_member("Asha", "98765", None, None)
        assert result.is_valid
        assert result.issues[0].field == "phone"

    def test_settings(self, validator):
        settings = GroupSettings(monthly_savings_amount=Decimal("1000"), default_interest_rate=Decimal("12"))
        result = validator.validate_settings(settings)
        assert result.is_valid
        assert len(result.warnings) == 1

    def test_savings_target_may_be_zero(self, validator):
        assert validator.validate_savings_target("2024-03", ZERO).is_valid
        assert validator.validate_savings_target("2024-03", Decimal("-1")).has_errors

    def test_meeting_note(self, validator):
        result = validator.validate_meeting_note("", "  ")
        assert result.error_count == 2


class TestUserFriendlySummary:
    """Tests for the treasurer-facing summary."""

    def test_all_clear(self, validator):
        result = validator.validate_loan(Decimal("100"), Decimal("2"))
        assert validator.get_user_friendly_summary(result) == "✅ All checks passed."

    def test_errors_and_fixes(self, validator):
        result = validator.validate_meeting_note("March", "Minutes")
        summary = validator.get_user_friendly_summary(result)
        assert "Please fix the following" in summary
        assert "YYYY-MM" in summary

    def test_warnings(self, validator):
        result = validator.validate_loan(Decimal("100"), Decimal("20"))
        summary = validator.get_user_friendly_summary(result)
        assert "Please double-check" in summary


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
