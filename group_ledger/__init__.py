"""
Group Ledger - Source Package

The bookkeeping core of a small community savings group: member savings,
loans and repayments, interest changes, group expenses, meeting minutes
and notifications.

DESIGN PRINCIPLES:
1. Events are appended, never edited
2. Every view is derived from the event log
3. Rejections are returned, never silently dropped
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Group Ledger Team"
