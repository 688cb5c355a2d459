"""
Schema Migration for Stored Group Data

Older snapshots predate several fields (loan caps, due days, expense and
note collections, schema versions). Defaults are filled in ONCE, here, at
load time. Business logic never checks for missing fields.

Version history:
    1 - original snapshot shape (no schemaVersion key)
    2 - every collection present, settings.dueDay and member loanCap filled,
        date-only timestamps widened to midnight UTC
"""

from copy import deepcopy
from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import ValidationError

from group_ledger.models.group import (
    CURRENT_SCHEMA_VERSION,
    GroupData,
    GroupSettings,
    LoanIssuedRecord,
    Member,
)


DEFAULT_DUE_DAY = 10
DEFAULT_LOAN_CAP = 50000

COLLECTION_KEYS = (
    "members",
    "records",
    "loansIssued",
    "interestRateChanges",
    "meetingNotes",
    "adminPayments",
    "miscPayments",
    "notifications",
)

# (collection, timestamp field) pairs whose values may be bare dates
TIMESTAMP_FIELDS = (
    ("records", "timestamp"),
    ("loansIssued", "date"),
    ("interestRateChanges", "date"),
    ("adminPayments", "timestamp"),
    ("miscPayments", "timestamp"),
    ("meetingNotes", "createdAt"),
    ("meetingNotes", "publishedAt"),
    ("notifications", "timestamp"),
)


class MigrationError(ValueError):
    """Stored data could not be brought to the current schema."""
    pass


def _widen_date(value: Any) -> Any:
    """'2023-11-01' -> '2023-11-01T00:00:00Z'; anything else unchanged."""
    if isinstance(value, str) and len(value) == 10:
        try:
            date.fromisoformat(value)
        except ValueError:
            return value
        return f"{value}T00:00:00Z"
    return value


def migrate_group_data(
    raw: dict,
    default_due_day: int = DEFAULT_DUE_DAY,
    default_loan_cap: Decimal | int = DEFAULT_LOAN_CAP,
) -> GroupData:
    """
    Bring a raw stored snapshot to the current schema and parse it.

    The input dict is not modified.

    Raises:
        MigrationError: If the migrated data still fails validation
    """
    if not isinstance(raw, dict):
        raise MigrationError(f"Expected a JSON object, got {type(raw).__name__}")

    data = deepcopy(raw)

    for key in COLLECTION_KEYS:
        if not data.get(key):
            data[key] = []
    if not data.get("monthlySavingsTargets"):
        data["monthlySavingsTargets"] = {}

    settings = data.get("settings") or {}
    if settings.get("dueDay") is None:
        settings["dueDay"] = default_due_day
    data["settings"] = settings

    for member in data["members"]:
        if member.get("loanCap") is None:
            member["loanCap"] = str(default_loan_cap)
        if member.get("dueDay") in (0, ""):
            member["dueDay"] = None

    for collection, field in TIMESTAMP_FIELDS:
        for item in data[collection]:
            if field in item:
                item[field] = _widen_date(item[field])

    data["schemaVersion"] = CURRENT_SCHEMA_VERSION

    try:
        return GroupData.model_validate(data)
    except ValidationError as e:
        raise MigrationError(f"Stored group data is invalid: {e}") from e


def default_group_data() -> GroupData:
    """
    Seed data used when nothing has been stored yet.

    Two members, one of whom already carries a 5000 loan at 2%, with the
    matching disbursement so her statement reconciles.
    """
    return GroupData(
        settings=GroupSettings(
            name="Unity Savings Group",
            monthly_savings_amount=Decimal("1000"),
            default_interest_rate=Decimal("2"),
            due_day=DEFAULT_DUE_DAY,
        ),
        members=[
            Member(
                id="1",
                name="John Doe",
                phone="9876543210",
                joining_date=date(2023, 1, 1),
                loan_interest_rate=Decimal("2"),
                loan_cap=Decimal("50000"),
            ),
            Member(
                id="2",
                name="Jane Smith",
                phone="9988776655",
                joining_date=date(2023, 1, 15),
                current_loan_principal=Decimal("5000"),
                loan_interest_rate=Decimal("2"),
                loan_cap=Decimal("25000"),
            ),
        ],
        loans_issued=[
            LoanIssuedRecord(
                id="init-1",
                member_id="2",
                amount=Decimal("5000"),
                interest_rate=Decimal("2"),
                date="2023-11-01T00:00:00Z",
            ),
        ],
    )
