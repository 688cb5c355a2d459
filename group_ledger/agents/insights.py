"""
AI Insights Agent

DESIGN DECISION: The model only ever sees an aggregate SNAPSHOT.
The snapshot is computed deterministically by the statistics engine and
then handed to Gemini for a written summary. The model never reads or
writes the ledger itself.

CRITICAL BOUNDARIES:
- CAN: Summarize the snapshot, score financial health, suggest actions
- CANNOT: Change any ledger state
- CANNOT: See anything beyond the snapshot (no phone numbers, no notes)

The agent raises on any failure. Turning failures into a user-facing
message (and enforcing the timeout) is the service's job.
"""

import json
from decimal import Decimal
from typing import Any, Optional

import google.generativeai as genai
from pydantic import BaseModel, Field

from group_ledger.config import GeminiSettings, get_settings
from group_ledger.models.group import GroupData
from group_ledger.queries.statistics import collection_totals


FALLBACK_MESSAGE = (
    "Error connecting to AI advisor. Please check your network or try again later."
)
EMPTY_RESPONSE_MESSAGE = "Unable to generate insights at this time."


class InsightsSnapshot(BaseModel):
    """Aggregate figures sent to the model."""

    group_name: str
    monthly_savings_target: Decimal
    member_count: int
    total_savings: Decimal
    total_interest: Decimal
    active_loan_burden: Decimal
    members_with_loans: int
    recent_payments: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Last few payment records, oldest first, without member names"
    )

    @classmethod
    def from_group(cls, data: GroupData, recent_records: int = 5) -> "InsightsSnapshot":
        totals = collection_totals(data.records)
        recent = data.records[-recent_records:] if recent_records > 0 else []
        return cls(
            group_name=data.settings.name,
            monthly_savings_target=data.settings.monthly_savings_amount,
            member_count=len(data.members),
            total_savings=totals.savings,
            total_interest=totals.interest,
            active_loan_burden=sum(
                (m.current_loan_principal for m in data.members), Decimal("0")
            ),
            members_with_loans=sum(1 for m in data.members if m.has_active_loan),
            recent_payments=[
                r.model_dump(mode="json", by_alias=True) for r in recent
            ],
        )


class FinancialInsights(BaseModel):
    """Model output plus where it came from."""

    text: str
    model_name: str


def build_prompt(snapshot: InsightsSnapshot) -> str:
    return f"""Analyze this micro-finance group data and provide a concise professional summary (max 300 words).
Group Name: {snapshot.group_name}
Monthly Savings Target: {snapshot.monthly_savings_target}
Total Members: {snapshot.member_count}
Total Accumulated Savings: {snapshot.total_savings}
Total Interest Earned: {snapshot.total_interest}
Current Active Loan Burden: {snapshot.active_loan_burden}

Data Context:
- Recent payments: {json.dumps(snapshot.recent_payments)}
- Members with loans: {snapshot.members_with_loans}

Please provide:
1. Financial Health Score (1-10)
2. Key Insights (e.g., collection efficiency, loan risk)
3. Actionable Recommendations for the group administrator.

Use ONLY the figures above. Do NOT invent members, amounts or dates."""


class InsightsAgent:
    """
    Gemini-backed financial advisor for the group administrator.

    RESPONSIBILITIES:
    - Turn an InsightsSnapshot into a short written assessment

    BOUNDARIES:
    - Read-only with respect to the ledger
    - Raises on network, quota or empty-response failures
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        model: Optional[Any] = None,
    ):
        self._settings = settings or get_settings().gemini
        self._model = model or self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        return genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    @property
    def model_name(self) -> str:
        return self._settings.model_name

    async def generate_insights(self, snapshot: InsightsSnapshot) -> FinancialInsights:
        """Ask the model for a health score, insights and recommendations."""
        response = await self._model.generate_content_async(build_prompt(snapshot))
        text = (response.text or "").strip()
        return FinancialInsights(
            text=text or EMPTY_RESPONSE_MESSAGE,
            model_name=self.model_name,
        )
