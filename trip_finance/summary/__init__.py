"""
Summary package.

Pure derivations over the raw records: totals and balances, goal and
payment progress, budget and due date classification, smart alerts,
what-if simulations, saved snapshot comparison and period filters.
"""

from trip_finance.summary.alerts import generate_alerts, savings_ratio
from trip_finance.summary.engine import (
    compute_summary,
    convert_balance,
    goal_progress,
    payment_progress,
    people_summary,
    person_stats,
)
from trip_finance.summary.filters import (
    filter_by_period,
    filter_expenses_by_period,
    filter_income_entries,
    period_range,
)
from trip_finance.summary.simulator import (
    simulate_exchange_change,
    simulate_extra_income,
    simulate_payment,
)
from trip_finance.summary.snapshots import build_snapshot, compare_with_current
from trip_finance.summary.thresholds import (
    classify_budget,
    classify_due_date,
    days_until,
    upcoming_due_dates,
)

__all__ = [
    "build_snapshot",
    "classify_budget",
    "classify_due_date",
    "compare_with_current",
    "compute_summary",
    "convert_balance",
    "days_until",
    "filter_by_period",
    "filter_expenses_by_period",
    "filter_income_entries",
    "generate_alerts",
    "goal_progress",
    "payment_progress",
    "people_summary",
    "period_range",
    "person_stats",
    "savings_ratio",
    "simulate_exchange_change",
    "simulate_extra_income",
    "simulate_payment",
    "upcoming_due_dates",
]
