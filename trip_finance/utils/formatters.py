"""
Formatting and forgiving input parsing.

User input is messy: amounts arrive as "R$ 1.234,56", "1,234.56" or
"12,5", dates as "25/11/2025", "2025-11-25" or spreadsheet serial
numbers. Parsing never raises - unparseable amounts become zero and
unparseable dates become None.
"""

import re
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional, Union

# Spreadsheet serial dates count days from 1899-12-30
SPREADSHEET_EPOCH = date(1899, 12, 30)

CURRENCY_SYMBOLS = {
    "BRL": "R$",
    "EUR": "€",
    "USD": "US$",
}

_CURRENCY_NOISE = re.compile(r"[A-Za-z$€£¥₹₽₿]+")
_LEADING_NUMBER = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)")
_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DAY_FIRST = re.compile(r"^(\d{1,2})[/\-.](\d{1,2})[/\-.](\d{2,4})$")
_YEAR_FIRST = re.compile(r"^(\d{4})[/\-.](\d{1,2})[/\-.](\d{1,2})$")

CENTS = Decimal("0.01")


def _leading_decimal(text: str) -> Decimal:
    """Parse the numeric prefix of text, zero if there is none."""
    match = _LEADING_NUMBER.match(text)
    if not match:
        return Decimal("0")
    try:
        return Decimal(match.group())
    except InvalidOperation:
        return Decimal("0")


def parse_currency_input(value: str) -> Decimal:
    """
    Parse a user-typed amount into a Decimal.

    The last of "." and "," is the decimal separator when both appear.
    A lone comma followed by at most two digits is a decimal comma,
    otherwise it separates thousands.
    """
    cleaned = _CURRENCY_NOISE.sub("", value)
    cleaned = re.sub(r"\s+", "", cleaned)

    if "." in cleaned and "," in cleaned:
        if cleaned.rfind(",") > cleaned.rfind("."):
            # 1.234,56
            return _leading_decimal(cleaned.replace(".", "").replace(",", ".", 1))
        # 1,234.56
        return _leading_decimal(cleaned.replace(",", ""))

    if "," in cleaned:
        parts = cleaned.split(",")
        if len(parts) == 2 and len(parts[1]) <= 2:
            return _leading_decimal(cleaned.replace(",", "."))
        return _leading_decimal(cleaned.replace(",", ""))

    return _leading_decimal(cleaned)


def coerce_amount(value) -> Decimal:
    """Coerce any amount-like value to Decimal, defaulting to zero."""
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal("0")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return Decimal("0")
        return Decimal(str(value))
    return parse_currency_input(str(value))


def _safe_date(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def parse_date_input(value: Union[str, int, float, date, None]) -> Optional[date]:
    """
    Parse a date typed by a user or imported from a spreadsheet.

    Accepts ISO dates, DD/MM/YYYY (also with - or .), MM/DD/YYYY when
    the second number can only be a day, YYYY/MM/DD and spreadsheet
    serial numbers. Returns None for anything else.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        try:
            return SPREADSHEET_EPOCH + timedelta(days=int(value))
        except (OverflowError, ValueError):
            return None

    text = str(value).strip()
    if not text or text in ("—", "-"):
        return None

    if _ISO_DATE.match(text):
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass

    match = _DAY_FIRST.match(text)
    if match:
        first, second, year_str = match.groups()
        year = 2000 + int(year_str) if len(year_str) == 2 else int(year_str)
        parsed = _safe_date(year, int(second), int(first))
        if parsed:
            return parsed
        # Only a US-style date can have a "month" above 12
        if int(second) > 12:
            parsed = _safe_date(year, int(first), int(second))
            if parsed:
                return parsed

    match = _YEAR_FIRST.match(text)
    if match:
        year, month, day = (int(part) for part in match.groups())
        parsed = _safe_date(year, month, day)
        if parsed:
            return parsed

    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def format_currency(value: Union[Decimal, int, float], currency: str = "BRL") -> str:
    """Format an amount pt-BR style, e.g. R$ 1.234,56."""
    amount = coerce_amount(value).quantize(CENTS, rounding=ROUND_HALF_UP)
    symbol = CURRENCY_SYMBOLS.get(currency, currency)
    digits = f"{abs(amount):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    sign = "-" if amount < 0 else ""
    return f"{sign}{symbol} {digits}"


def format_date(value: Union[str, int, float, date, None]) -> str:
    """Format a date as DD/MM/YYYY, or an em dash when missing/invalid."""
    parsed = parse_date_input(value)
    if parsed is None:
        return "—"
    return parsed.strftime("%d/%m/%Y")
