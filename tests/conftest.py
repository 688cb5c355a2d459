"""Shared fixtures for the group ledger tests."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from group_ledger.models.group import AuthUser, GroupData, GroupSettings, Member
from group_ledger.store import GroupLedgerStore


class StepClock:
    """Deterministic clock: each call is one minute after the previous."""

    def __init__(self, start: datetime):
        self._next = start

    def __call__(self) -> datetime:
        now = self._next
        self._next = now + timedelta(minutes=1)
        return now


@pytest.fixture
def clock() -> StepClock:
    return StepClock(datetime(2024, 3, 5, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def admin() -> AuthUser:
    return AuthUser.administrator()


@pytest.fixture
def group_data() -> GroupData:
    return GroupData(
        settings=GroupSettings(
            name="Test Group",
            monthly_savings_amount=Decimal("1000"),
            default_interest_rate=Decimal("2"),
            due_day=10,
        ),
        members=[
            Member(id="m1", name="Asha Patel", phone="9876543210", loan_cap=Decimal("50000")),
            Member(id="m2", name="Ravi Kumar", phone="9988776655", loan_cap=Decimal("10000")),
        ],
    )


@pytest.fixture
def member_user(group_data) -> AuthUser:
    return AuthUser.for_member(group_data.members[0])


@pytest.fixture
def store(group_data, clock) -> GroupLedgerStore:
    return GroupLedgerStore(group_data, clock=clock)
