"""
Period and record filters.

Period filters keep records whose date falls inside a calendar period
relative to "today" (inclusive on both ends). Records without a date
are only kept by the ALL period. Record filters narrow income entries
by free text, person, status, tags, date and value.
"""

import calendar
from datetime import date
from typing import Optional, Sequence, TypeVar

from trip_finance.models.finance import (
    ExpenseCategory,
    IncomeEntry,
    PeriodFilter,
    PeriodType,
    RecordFilter,
)

T = TypeVar("T")


def _month_start(day: date) -> date:
    return day.replace(day=1)


def _month_end(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def _months_back(day: date, months: int) -> date:
    """First day of the month `months` before day's month."""
    index = day.year * 12 + (day.month - 1) - months
    return date(index // 12, index % 12 + 1, 1)


def period_range(period: PeriodFilter, today: date) -> Optional[tuple[date, date]]:
    """
    Inclusive (from, to) for a period, or None when it does not filter.

    A custom period with only one bound is open on the other side.
    """
    if period.type == PeriodType.THIS_MONTH:
        return _month_start(today), _month_end(today)
    if period.type == PeriodType.LAST_MONTH:
        start = _months_back(today, 1)
        return start, _month_end(start)
    if period.type == PeriodType.LAST_3_MONTHS:
        return _months_back(today, 2), _month_end(today)
    if period.type == PeriodType.THIS_YEAR:
        return date(today.year, 1, 1), date(today.year, 12, 31)
    if period.type == PeriodType.CUSTOM:
        if period.custom_from is None and period.custom_to is None:
            return None
        start = period.custom_from or date.min
        end = period.custom_to or date.max
        # A reversed range is read as the same range
        return (start, end) if start <= end else (end, start)
    return None


def _filter_on(records: Sequence[T], field: str, period: PeriodFilter, today: date) -> list[T]:
    bounds = period_range(period, today)
    if bounds is None:
        return list(records)
    start, end = bounds
    return [
        r for r in records
        if getattr(r, field) is not None and start <= getattr(r, field) <= end
    ]


def filter_by_period(
    entries: Sequence[IncomeEntry],
    period: PeriodFilter,
    today: date,
) -> list[IncomeEntry]:
    """Income entries dated inside the period."""
    return _filter_on(entries, "data", period, today)


def filter_expenses_by_period(
    categories: Sequence[ExpenseCategory],
    period: PeriodFilter,
    today: date,
) -> list[ExpenseCategory]:
    """Expense categories due inside the period."""
    return _filter_on(categories, "vencimento", period, today)


def _matches(entry: IncomeEntry, criteria: RecordFilter) -> bool:
    if criteria.search:
        needle = criteria.search.casefold()
        haystack = f"{entry.descricao} {entry.notas or ''}".casefold()
        if needle not in haystack:
            return False
    if criteria.person is not None and entry.pessoa != criteria.person:
        return False
    if criteria.status is not None and entry.status != criteria.status:
        return False
    if criteria.tags and not criteria.tags <= entry.tags:
        return False
    if criteria.date_from is not None or criteria.date_to is not None:
        if entry.data is None:
            return False
        if criteria.date_from is not None and entry.data < criteria.date_from:
            return False
        if criteria.date_to is not None and entry.data > criteria.date_to:
            return False
    if criteria.value_min is not None and entry.valor < criteria.value_min:
        return False
    if criteria.value_max is not None and entry.valor > criteria.value_max:
        return False
    return True


def filter_income_entries(
    entries: Sequence[IncomeEntry],
    criteria: RecordFilter,
) -> list[IncomeEntry]:
    """Entries matching every set criterion, in their original order."""
    if not criteria.is_active:
        return list(entries)
    return [e for e in entries if _matches(e, criteria)]
