"""Input validation package."""

from group_ledger.validation.validator import LedgerValidator, is_valid_month

__all__ = ["LedgerValidator", "is_valid_month"]
