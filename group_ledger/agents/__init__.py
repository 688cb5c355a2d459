"""AI agents package."""

from group_ledger.agents.insights import (
    EMPTY_RESPONSE_MESSAGE,
    FALLBACK_MESSAGE,
    FinancialInsights,
    InsightsAgent,
    InsightsSnapshot,
    build_prompt,
)

__all__ = [
    "EMPTY_RESPONSE_MESSAGE",
    "FALLBACK_MESSAGE",
    "FinancialInsights",
    "InsightsAgent",
    "InsightsSnapshot",
    "build_prompt",
]
