"""
Smart Alerts

Alerts are ephemeral: they are rebuilt from scratch from the current
records on every call and never stored. Keys are deterministic, so
the same data and the same "today" always give the same alerts.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Sequence

from trip_finance.config import AppSettings, get_settings
from trip_finance.models.finance import (
    AlertSeverity,
    AlertType,
    BudgetStatus,
    DueUrgency,
    ExpenseCategory,
    FinancialSummary,
    RecordKind,
    SmartAlert,
)
from trip_finance.summary.thresholds import classify_budget, classify_due_date
from trip_finance.utils.formatters import format_currency

HUNDRED = Decimal("100")


def _whole(value: Decimal) -> Decimal:
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def _category_alert(
    alert_type: AlertType,
    category: ExpenseCategory,
    title: str,
    message: str,
    severity: AlertSeverity,
) -> SmartAlert:
    return SmartAlert(
        key=f"{alert_type.value}:{category.id}",
        title=title,
        message=message,
        alert_type=alert_type,
        severity=severity,
        related_table=RecordKind.EXPENSE.value,
        related_id=category.id,
    )


def _due_date_alerts(
    expense_categories: Sequence[ExpenseCategory],
    today: date,
    settings: AppSettings,
) -> list[SmartAlert]:
    alerts = []
    for category in expense_categories:
        classification = classify_due_date(
            category.vencimento,
            category.falta_pagar,
            today,
            soon_days=settings.due_soon_days,
            critical_days=settings.due_critical_days,
        )
        if classification is None:
            continue

        amount = format_currency(category.falta_pagar, category.moeda.value)
        days = classification.days_until_due

        if classification.urgency == DueUrgency.OVERDUE:
            alerts.append(_category_alert(
                AlertType.OVERDUE,
                category,
                title=f"Vencimento atrasado: {category.categoria}",
                message=f"{amount} está {abs(days)} dias atrasado!",
                severity=classification.severity,
            ))
        else:
            when = "hoje" if days == 0 else f"{days} dias"
            alerts.append(_category_alert(
                AlertType.DUE_DATE,
                category,
                title=f"Vencimento próximo: {category.categoria}",
                message=f"Falta pagar {amount} em {when}",
                severity=classification.severity,
            ))
    return alerts


def _budget_alerts(
    expense_categories: Sequence[ExpenseCategory],
    settings: AppSettings,
) -> list[SmartAlert]:
    alerts = []
    for category in expense_categories:
        classification = classify_budget(
            category.total,
            category.meta_orcamento,
            warning_percentage=settings.budget_warning_percentage,
        )
        if classification is None or classification.status == BudgetStatus.ON_TRACK:
            continue

        severity = (
            AlertSeverity.CRITICAL
            if classification.status == BudgetStatus.OVER_BUDGET
            else AlertSeverity.WARNING
        )
        currency = category.moeda.value
        alerts.append(_category_alert(
            AlertType.BUDGET_LIMIT,
            category,
            title=f"Orçamento alto: {category.categoria}",
            message=(
                f"{_whole(classification.percentage)}% do orçamento foi utilizado "
                f"({format_currency(category.total, currency)} de "
                f"{format_currency(category.meta_orcamento, currency)})"
            ),
            severity=severity,
        ))
    return alerts


def savings_ratio(summary: FinancialSummary) -> Decimal:
    """Projected balance as a percentage of realized income (0 without income)."""
    if summary.total_entradas <= 0:
        return Decimal("0")
    return summary.saldo_final_previsto / summary.total_entradas * HUNDRED


def generate_alerts(
    expense_categories: Sequence[ExpenseCategory],
    summary: FinancialSummary,
    today: date,
    settings: Optional[AppSettings] = None,
) -> list[SmartAlert]:
    """
    Build the alert list for the current data.

    Order: due date and overdue alerts per category, expenses over
    income, budget usage per category, low balance, good savings.
    """
    settings = settings or get_settings().app
    alerts = _due_date_alerts(expense_categories, today, settings)

    if summary.total_saidas > summary.total_entradas:
        alerts.append(SmartAlert(
            key=AlertType.BUDGET_WARNING.value,
            title="Despesas excedem entradas",
            message=(
                f"Suas despesas ({format_currency(summary.total_saidas)}) são "
                f"maiores que as entradas ({format_currency(summary.total_entradas)})"
            ),
            alert_type=AlertType.BUDGET_WARNING,
            severity=AlertSeverity.CRITICAL,
        ))

    alerts.extend(_budget_alerts(expense_categories, settings))

    if 0 < summary.saldo_atual < settings.low_balance_threshold:
        alerts.append(SmartAlert(
            key=AlertType.LOW_BALANCE.value,
            title="Saldo baixo",
            message=f"Seu saldo atual é de apenas {format_currency(summary.saldo_atual)}",
            alert_type=AlertType.LOW_BALANCE,
            severity=AlertSeverity.WARNING,
        ))

    ratio = savings_ratio(summary)
    if ratio >= settings.savings_ratio_threshold:
        alerts.append(SmartAlert(
            key=AlertType.POSITIVE.value,
            title="Ótima economia!",
            message=f"Você está guardando {_whole(ratio)}% das suas entradas",
            alert_type=AlertType.POSITIVE,
            severity=AlertSeverity.INFO,
        ))

    return alerts
