"""
Configuration Management for Trip Finance

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Nothing in the core reads ambient state (session flags, local storage);
callers receive settings explicitly and pass owner ids and dates in.
"""

from decimal import Decimal
from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AssistantSettings(BaseSettings):
    """AI completion endpoint configuration."""

    model_config = SettingsConfigDict(
        env_prefix="ASSISTANT_",
        extra="ignore"
    )

    base_url: str = Field(
        ...,
        description="Base URL of the hosted functions backend"
    )
    api_key: str = Field(
        ...,
        description="Publishable key sent as bearer token"
    )
    analysis_path: str = Field(
        default="/functions/v1/financial-assistant",
        description="Path of the one-shot analysis function"
    )
    chat_path: str = Field(
        default="/functions/v1/ai-chat",
        description="Path of the conversational chat function"
    )
    timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Transport timeout for a whole assistant stream"
    )

    @field_validator('base_url')
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def analysis_url(self) -> str:
        return f"{self.base_url}{self.analysis_path}"

    @property
    def chat_url(self) -> str:
        return f"{self.base_url}{self.chat_path}"


class ExchangeRateSettings(BaseSettings):
    """Exchange rate provider configuration (Frankfurter API)."""

    model_config = SettingsConfigDict(
        env_prefix="EXCHANGE_RATE_",
        extra="ignore"
    )

    base_url: str = Field(
        default="https://api.frankfurter.dev/v1",
        description="Frankfurter API base URL"
    )
    base_currency: str = Field(
        default="EUR",
        description="Currency being priced"
    )
    target_currency: str = Field(
        default="BRL",
        description="Currency the rate is quoted in"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
    )


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
    income_sheet_name: str = Field(default="IncomeEntries")
    expense_sheet_name: str = Field(default="ExpenseCategories")
    investment_sheet_name: str = Field(default="Investments")
    settings_sheet_name: str = Field(default="AppSettings")
    snapshots_sheet_name: str = Field(default="FinancialSnapshots")
    audit_sheet_name: str = Field(
        default="AuditLog",
        description="Name of the sheet for audit logs"
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

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    default_owner_id: str = Field(
        default="shared",
        description="Owner id used when the caller has no session identity"
    )
    participants: str = Field(
        default="Gabriel,Myrelle,Ambos",
        description="Comma-separated participant names; the first is the default"
    )

    # Goal
    default_meta_entradas: Decimal = Field(
        default=Decimal("35000"),
        ge=0,
        description="Income goal used until the user sets one"
    )

    # Alert thresholds
    low_balance_threshold: Decimal = Field(
        default=Decimal("1000"),
        ge=0,
        description="Current balance below this (and above zero) raises an alert"
    )
    savings_ratio_threshold: Decimal = Field(
        default=Decimal("20"),
        ge=0,
        description="Savings ratio (%) at or above which a positive alert is shown"
    )
    budget_warning_percentage: Decimal = Field(
        default=Decimal("80"),
        gt=0,
        lt=100,
        description="Budget usage (%) from which a category is near its limit"
    )
    due_soon_days: int = Field(
        default=7,
        ge=0,
        description="Unpaid categories due within this many days raise an alert"
    )
    due_critical_days: int = Field(
        default=2,
        ge=0,
        description="Upcoming due dates within this many days are critical"
    )

    @property
    def participants_list(self) -> list[str]:
        """Get participants as a list."""
        return [name.strip() for name in self.participants.split(",") if name.strip()]


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

    # Sub-settings are loaded lazily to allow partial configuration

    @property
    def assistant(self) -> AssistantSettings:
        return AssistantSettings()

    @property
    def exchange_rate(self) -> ExchangeRateSettings:
        return ExchangeRateSettings()

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


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, with an extra
    "<name>_error" entry describing each failure.
    """
    results = {}

    settings = get_settings()

    sections = {
        "assistant": lambda: settings.assistant,
        "exchange_rate": lambda: settings.exchange_rate,
        "google_sheets": lambda: settings.google_sheets,
        "app": lambda: settings.app,
    }

    for name, load in sections.items():
        try:
            load()
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
