"""
Tests for loading older stored snapshots.
"""

from copy import deepcopy
from datetime import timezone
from decimal import Decimal

import pytest

from group_ledger.models.group import CURRENT_SCHEMA_VERSION
from group_ledger.services.storage import (
    MigrationError,
    default_group_data,
    migrate_group_data,
)


LEGACY_SNAPSHOT = {
    "settings": {
        "name": "Old Group",
        "monthlySavingsAmount": 500,
        "defaultInterestRate": 2,
    },
    "members": [
        {
            "id": "1",
            "name": "Asha",
            "phone": "9876543210",
            "joiningDate": "2022-05-01",
            "currentLoanPrincipal": 3000,
            "loanInterestRate": 2,
            "dueDay": 0,
        },
    ],
    "records": [
        {
            "id": "r1",
            "memberId": "1",
            "month": "2023-10",
            "savings": 500,
            "principalPaid": 1000,
            "interestPaid": 80,
            "penalty": 0,
            "timestamp": "2023-10-05",
        },
    ],
    "loansIssued": [
        {
            "id": "l1",
            "memberId": "1",
            "amount": 4000,
            "interestRate": 2,
            "date": "2023-09-01",
        },
    ],
}


class TestMigration:
    """Tests for migrate_group_data."""

    def test_fills_missing_collections(self):
        data = migrate_group_data(LEGACY_SNAPSHOT)

        assert data.schema_version == CURRENT_SCHEMA_VERSION
        assert data.interest_rate_changes == []
        assert data.meeting_notes == []
        assert data.admin_payments == []
        assert data.misc_payments == []
        assert data.notifications == []
        assert data.monthly_savings_targets == {}

    def test_fills_member_and_settings_defaults(self):
        data = migrate_group_data(LEGACY_SNAPSHOT)

        assert data.settings.due_day == 10
        member = data.members[0]
        assert member.loan_cap == Decimal("50000")
        assert member.due_day is None
        assert member.current_loan_principal == Decimal("3000")

    def test_custom_defaults(self):
        data = migrate_group_data(LEGACY_SNAPSHOT, default_due_day=5, default_loan_cap=20000)
        assert data.settings.due_day == 5
        assert data.members[0].loan_cap == Decimal("20000")

    def test_widens_bare_dates(self):
        """Date-only timestamps become midnight UTC."""
        data = migrate_group_data(LEGACY_SNAPSHOT)

        timestamp = data.records[0].timestamp
        assert timestamp.tzinfo == timezone.utc
        assert (timestamp.year, timestamp.month, timestamp.day, timestamp.hour) == (2023, 10, 5, 0)
        assert data.loans_issued[0].date.day == 1

    def test_input_not_modified(self):
        raw = deepcopy(LEGACY_SNAPSHOT)
        migrate_group_data(raw)
        assert raw == LEGACY_SNAPSHOT

    def test_current_data_round_trips(self):
        """Migrating already-current data is a no-op."""
        seed = default_group_data()
        assert migrate_group_data(seed.to_json_dict()).to_json_dict() == seed.to_json_dict()

    def test_rejects_non_object(self):
        with pytest.raises(MigrationError):
            migrate_group_data(["not", "a", "dict"])

    def test_rejects_invalid_data(self):
        broken = deepcopy(LEGACY_SNAPSHOT)
        broken["records"][0]["month"] = "October"
        with pytest.raises(MigrationError):
            migrate_group_data(broken)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
