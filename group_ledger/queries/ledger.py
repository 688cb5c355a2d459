"""
Ledger Reconstruction Engine

DESIGN DECISION: A member's statement is REPLAYED, never stored.
The engine collects the member's disbursements, principal repayments and
rate changes, sorts them oldest first, and walks them with a running
balance. Only after the walk is finished are the rows reversed for
display (newest first).

GUARANTEES:
- Pure function of GroupData: no hidden state, same input, same output
- Events replay by (time, store-assigned sequence), which is the order
  the store applied them. Legacy events without a sequence tie-break by
  insertion order (loans, then payments, then rate changes)
- Repayments floor the running balance at zero exactly as recording a
  payment floors the cached principal, so the closing balance equals
  Member.current_loan_principal for any sequence of store mutations
"""

from datetime import datetime
from decimal import Decimal
from typing import Union

from group_ledger.models.group import (
    GroupData,
    InterestRateChangeRecord,
    LoanIssuedRecord,
    Member,
    PaymentRecord,
)
from group_ledger.models.views import LedgerEntry, LedgerEntryType, LedgerStatement


ZERO = Decimal("0")

LedgerEvent = Union[LoanIssuedRecord, PaymentRecord, InterestRateChangeRecord]


def _event_time(event: LedgerEvent) -> datetime:
    if isinstance(event, PaymentRecord):
        return event.timestamp
    return event.date


def _replay_key(event: LedgerEvent) -> tuple[datetime, int]:
    return _event_time(event), event.sequence


def collect_events(data: GroupData, member_id: str) -> list[LedgerEvent]:
    """
    The member's loan-related events in replay order.

    Payments without a principal component do not move the balance and
    are left out.
    """
    events: list[LedgerEvent] = []
    events.extend(l for l in data.loans_issued if l.member_id == member_id)
    events.extend(
        r for r in data.records
        if r.member_id == member_id and r.principal_paid > ZERO
    )
    events.extend(c for c in data.interest_rate_changes if c.member_id == member_id)

    # list.sort is stable, so full ties keep insertion order
    events.sort(key=_replay_key)
    return events


def replay_balance(events: list[LedgerEvent]) -> Decimal:
    """Closing balance of an ordered event list."""
    balance = ZERO
    for event in events:
        if isinstance(event, LoanIssuedRecord):
            balance += event.amount
        elif isinstance(event, PaymentRecord):
            balance = max(ZERO, balance - event.principal_paid)
    return balance


def build_statement(data: GroupData, member: Member) -> LedgerStatement:
    """
    Replay a member's loan history into a statement.

    Rows are returned newest first; the replay itself always runs
    oldest first.
    """
    entries: list[LedgerEntry] = []
    balance = ZERO
    total_disbursed = ZERO
    total_repaid = ZERO
    total_interest = ZERO

    for event in collect_events(data, member.id):
        if isinstance(event, LoanIssuedRecord):
            balance += event.amount
            total_disbursed += event.amount
            entries.append(LedgerEntry(
                id=event.id,
                date=event.date,
                entry_type=LedgerEntryType.DISBURSEMENT,
                amount=event.amount,
                balance=balance,
                description=f"Loan disbursed at {event.interest_rate}% monthly",
                new_rate=event.interest_rate,
            ))

        elif isinstance(event, PaymentRecord):
            before = balance
            balance = max(ZERO, balance - event.principal_paid)
            # only the part that reduced principal; the floor absorbs the rest
            total_repaid += before - balance
            total_interest += event.interest_paid
            description = f"Principal repaid for {event.month}"
            if event.interest_paid > ZERO:
                description += f" (interest paid {event.interest_paid})"
            entries.append(LedgerEntry(
                id=event.id,
                date=event.timestamp,
                entry_type=LedgerEntryType.REPAYMENT,
                amount=-event.principal_paid,
                interest=event.interest_paid,
                balance=balance,
                description=description,
            ))

        else:
            entries.append(LedgerEntry(
                id=event.id,
                date=event.date,
                entry_type=LedgerEntryType.RATE_ADJUST,
                amount=ZERO,
                balance=balance,
                description=f"Rate changed {event.old_rate}% → {event.new_rate}%",
                old_rate=event.old_rate,
                new_rate=event.new_rate,
                reason=event.reason,
            ))

    entries.reverse()

    return LedgerStatement(
        member_id=member.id,
        member_name=member.name,
        entries=entries,
        closing_balance=balance,
        cached_balance=member.current_loan_principal,
        total_disbursed=total_disbursed,
        total_repaid=total_repaid,
        total_interest_paid=total_interest,
    )
