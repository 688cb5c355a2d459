"""
Configuration Management for Group Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from decimal import Decimal
from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageBackend(str, Enum):
    """Where the group snapshot is persisted."""
    MEMORY = "memory"
    JSON = "json"
    SHEETS = "sheets"


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the Google Sheets spreadsheet to use"
    )

    # Sheet names within the spreadsheet
    snapshots_sheet_name: str = Field(
        default="Snapshots",
        description="Name of the sheet holding group data snapshots"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )
    snapshot_retention: int = Field(
        default=20,
        ge=1,
        description="Snapshot rows kept in the Snapshots sheet; older rows are deleted"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class GeminiSettings(BaseSettings):
    """Gemini LLM configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GEMINI_",
        extra="ignore"
    )

    api_key: str = Field(
        ...,
        description="Gemini API key"
    )
    model_name: str = Field(
        default="gemini-1.5-flash",
        description="Gemini model to use"
    )
    max_tokens: int = Field(
        default=1024,
        ge=100,
        le=8192,
        description="Maximum tokens in response"
    )
    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Model temperature (lower = more deterministic)"
    )


class LedgerSettings(BaseSettings):
    """
    Main ledger settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    environment: str = Field(
        default="development",
        description="Application environment"
    )

    # Persistence
    storage_backend: StorageBackend = Field(
        default=StorageBackend.JSON,
        description="Where group data snapshots are saved"
    )
    data_file_path: str = Field(
        default="data/group_finance_data_v1.json",
        description="File used by the JSON storage backend"
    )

    # Loan rules
    enforce_loan_cap: bool = Field(
        default=True,
        description="Reject loans that would push a member over their cap"
    )
    default_loan_cap: Decimal = Field(
        default=Decimal("50000"),
        ge=0,
        description="Loan cap given to members created without one"
    )
    default_due_day: int = Field(
        default=10,
        ge=1,
        le=28,
        description="Due day used when stored settings carry none"
    )

    # Insights
    insights_timeout_seconds: float = Field(
        default=20.0,
        gt=0,
        description="Upper bound on one insights call"
    )
    insights_recent_records: int = Field(
        default=5,
        ge=0,
        le=50,
        description="How many of the latest payment records go into the prompt"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def gemini(self) -> GeminiSettings:
        return GeminiSettings()

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    sections = {
        "google_sheets": lambda: settings.google_sheets,
        "gemini": lambda: settings.gemini,
        "ledger": lambda: settings.ledger,
    }

    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
