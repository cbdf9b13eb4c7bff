"""
Budget and due date thresholds.

Both classifications are pure and take "today" explicitly, so the
same inputs always give the same answer.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from trip_finance.models.finance import (
    AlertSeverity,
    BudgetClassification,
    BudgetStatus,
    DueDateClassification,
    DueItem,
    DueItemStatus,
    DueUrgency,
    ExpenseCategory,
)

HUNDRED = Decimal("100")
BUDGET_WARNING_PERCENTAGE = Decimal("80")
DUE_SOON_DAYS = 7
DUE_CRITICAL_DAYS = 2
DUE_URGENT_DAYS = 3


def classify_budget(
    total: Decimal,
    meta_orcamento: Optional[Decimal],
    warning_percentage: Decimal = BUDGET_WARNING_PERCENTAGE,
) -> Optional[BudgetClassification]:
    """
    Classify a category's spending against its budget ceiling.

    No ceiling (None or zero) means no classification.
    Below the warning percentage is on track, from there up to 100% is
    near the limit, and 100% or more is over budget.
    """
    if not meta_orcamento:
        return None

    percentage = Decimal(total) / Decimal(meta_orcamento) * HUNDRED

    if percentage >= HUNDRED:
        status = BudgetStatus.OVER_BUDGET
    elif percentage >= warning_percentage:
        status = BudgetStatus.NEAR_LIMIT
    else:
        status = BudgetStatus.ON_TRACK

    return BudgetClassification(status=status, percentage=percentage)


def days_until(due: date, today: date) -> int:
    """Whole days from today until the due date (negative when past)."""
    return (due - today).days


def classify_due_date(
    vencimento: Optional[date],
    falta_pagar: Decimal,
    today: date,
    soon_days: int = DUE_SOON_DAYS,
    critical_days: int = DUE_CRITICAL_DAYS,
) -> Optional[DueDateClassification]:
    """
    Classify how urgent the remaining payment of a category is.

    Fully paid categories and categories without a due date are skipped.
    Past due dates are overdue (critical). Due dates within soon_days are
    upcoming: critical within critical_days, a warning otherwise.
    Anything further away needs no alert.
    """
    if vencimento is None or falta_pagar <= 0:
        return None

    days = days_until(vencimento, today)

    if days < 0:
        return DueDateClassification(
            urgency=DueUrgency.OVERDUE,
            days_until_due=days,
            severity=AlertSeverity.CRITICAL,
        )

    if days <= soon_days:
        severity = (
            AlertSeverity.CRITICAL if days <= critical_days
            else AlertSeverity.WARNING
        )
        return DueDateClassification(
            urgency=DueUrgency.UPCOMING,
            days_until_due=days,
            severity=severity,
        )

    return None


def upcoming_due_dates(
    expense_categories: Sequence[ExpenseCategory],
    today: date,
) -> list[DueItem]:
    """
    Every unpaid category with a due date, most urgent first.

    Unlike classify_due_date this lists far-away due dates too.
    """
    items = []
    for category in expense_categories:
        if category.vencimento is None or category.falta_pagar <= 0:
            continue

        days = days_until(category.vencimento, today)
        if days < 0:
            status = DueItemStatus.OVERDUE
        elif days <= DUE_URGENT_DAYS:
            status = DueItemStatus.URGENT
        elif days <= DUE_SOON_DAYS:
            status = DueItemStatus.SOON
        else:
            status = DueItemStatus.NORMAL

        items.append(DueItem(
            id=category.id,
            categoria=category.categoria,
            falta_pagar=category.falta_pagar,
            vencimento=category.vencimento,
            pessoa=category.pessoa,
            moeda=category.moeda,
            days_until_due=days,
            status=status,
        ))

    # Stable sort keeps insertion order for equal days
    items.sort(key=lambda item: item.days_until_due)
    return items
