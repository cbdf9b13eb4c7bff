"""Configuration package."""

from trip_finance.config.settings import (
    AppSettings,
    AssistantSettings,
    ExchangeRateSettings,
    GoogleSheetsSettings,
    Settings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "AppSettings",
    "AssistantSettings",
    "ExchangeRateSettings",
    "GoogleSheetsSettings",
    "Settings",
    "get_settings",
    "validate_all_settings",
]
