"""Formatting and parsing helpers."""

from trip_finance.utils.formatters import (
    coerce_amount,
    format_currency,
    format_date,
    parse_currency_input,
    parse_date_input,
)

__all__ = [
    "coerce_amount",
    "format_currency",
    "format_date",
    "parse_currency_input",
    "parse_date_input",
]
