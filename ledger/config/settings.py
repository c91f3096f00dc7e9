"""
Configuration Management for the Shared Ledger

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The canonical category order, the reserved income label and the export
labels live next to the storage settings so a deployment can rename them
without touching the ledger logic.
"""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_CANONICAL_CATEGORIES = ["Income", "Category A", "Category B", "Misc"]


class LedgerSettings(BaseSettings):
    """
    Ledger behaviour: category ranking, income classification, export labels.

    List values are read from the environment as JSON, e.g.
    LEDGER_CANONICAL_CATEGORIES='["Income", "Food", "Misc"]'
    """

    model_config = SettingsConfigDict(
        env_prefix="LEDGER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    canonical_categories: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CANONICAL_CATEGORIES),
        min_length=1,
        description="Preferred category order, used as the primary sort key"
    )
    income_category: str = Field(
        default="Income",
        min_length=1,
        description="The single category treated as income"
    )

    # Export
    paid_label: str = Field(
        default="Paid",
        description="Status label for settled entries"
    )
    unpaid_label: str = Field(
        default="Unpaid",
        description="Status label for unsettled entries"
    )
    export_date_format: str = Field(
        default="%Y/%m/%d %H:%M",
        description="strftime format for the export Date column"
    )

    # Validation thresholds
    max_amount: float = Field(
        default=1000000.0,
        gt=0,
        description="Amounts above this are flagged for review"
    )

    @field_validator('canonical_categories')
    @classmethod
    def validate_unique_categories(cls, v: list[str]) -> list[str]:
        """Canonical labels must be non-empty and distinct."""
        cleaned = [label.strip() for label in v]
        if any(not label for label in cleaned):
            raise ValueError("Canonical categories cannot be blank")
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("Canonical categories must be unique")
        return cleaned

    @model_validator(mode='after')
    def validate_income_is_canonical(self) -> 'LedgerSettings':
        """The income label is a reserved canonical category."""
        if self.income_category not in self.canonical_categories:
            raise ValueError(
                f"Income category {self.income_category!r} must be one of "
                f"the canonical categories {self.canonical_categories}"
            )
        return self


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        env_file=".env",
        env_file_encoding="utf-8",
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
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet holding ledger entries"
    )
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
    )
    export_sheet_name: str = Field(
        default="Export",
        description="Name of the sheet the export projection is written to"
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


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum level for local structured logs"
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

    # Sub-settings are loaded lazily so the ledger works without a sheet

    @property
    def ledger(self) -> LedgerSettings:
        return LedgerSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, object]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    {setting_name}_error entry for each group that failed.
    Useful for startup checks.
    """
    results: dict[str, object] = {}
    settings = get_settings()

    for name in ("ledger", "google_sheets", "app"):
        try:
            _ = getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results


def load_ledger_settings(settings: Optional[LedgerSettings] = None) -> LedgerSettings:
    """Return the given ledger settings, or load them from the environment."""
    return settings if settings is not None else get_settings().ledger
