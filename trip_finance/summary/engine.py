"""
Summary Engine

DESIGN DECISION: Every derived number lives here, in pure functions.
Nothing is cached and nothing is read from storage, so recomputing
on every change is always safe and the functions can be tested
without any UI or backend.

GUARANTEES:
- Empty inputs give an all-zero summary
- No division by zero, no NaN, no Infinity, no exceptions for finite input
- Balances are never clamped; a negative balance signals overspend
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Optional, Sequence

from trip_finance.models.finance import (
    EntryStatus,
    ExpenseCategory,
    FinancialSummary,
    GoalProgress,
    IncomeEntry,
    Investment,
    Person,
    PersonStats,
)

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENTS = Decimal("0.01")


def _sum(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)


def _positive(value) -> Optional[Decimal]:
    """Return value as Decimal when it is a usable positive number."""
    if value is None:
        return None
    value = Decimal(value)
    if not value.is_finite() or value <= 0:
        return None
    return value


def convert_balance(balance: Decimal, taxa_cambio) -> Decimal:
    """
    Convert a BRL balance into EUR using a BRL-per-EUR rate.

    A missing or zero rate means "no conversion available" and the
    BRL value is returned unchanged.
    """
    rate = _positive(taxa_cambio)
    if rate is None:
        return balance
    return (balance / rate).quantize(CENTS, rounding=ROUND_HALF_UP)


def compute_summary(
    income_entries: Sequence[IncomeEntry],
    expense_categories: Sequence[ExpenseCategory],
    investments: Sequence[Investment] = (),
    meta_entradas=None,
    taxa_cambio=ZERO,
) -> FinancialSummary:
    """
    Derive the financial summary from raw records.

    Investments and the goal are accepted so every consumer calls this
    with the same inputs; neither is part of the summary math. Goal
    progress is computed separately by goal_progress().
    """
    total_entradas = _sum(
        e.valor for e in income_entries if e.status == EntryStatus.ENTRADA
    )
    total_futuros = _sum(
        e.valor for e in income_entries if e.status == EntryStatus.FUTUROS
    )

    total_saidas = _sum(c.total for c in expense_categories)
    total_pago = _sum(c.pago for c in expense_categories)
    # Never summed from the stored falta_pagar
    total_a_pagar = total_saidas - total_pago

    saldo_final_previsto = total_entradas - total_saidas
    saldo_final_com_futuros = saldo_final_previsto + total_futuros
    saldo_atual = total_entradas - total_pago

    rate = _positive(taxa_cambio) or ZERO

    return FinancialSummary(
        total_entradas=total_entradas,
        total_saidas=total_saidas,
        total_pago=total_pago,
        total_a_pagar=total_a_pagar,
        total_futuros=total_futuros,
        saldo_final_previsto=saldo_final_previsto,
        saldo_final_com_futuros=saldo_final_com_futuros,
        saldo_atual=saldo_atual,
        saldo_apos_cambio_eur=convert_balance(saldo_final_previsto, rate),
        taxa_cambio=rate,
    )


def goal_progress(total_entradas: Decimal, meta_entradas) -> GoalProgress:
    """
    Progress of realized income towards the goal.

    A zero or missing goal means "no goal set": the percentage is None
    and consumers must not render a progress indicator.
    """
    meta = _positive(meta_entradas)
    if meta is None:
        return GoalProgress(
            meta_entradas=ZERO,
            total_entradas=total_entradas,
            percentage=None,
        )
    return GoalProgress(
        meta_entradas=meta,
        total_entradas=total_entradas,
        percentage=total_entradas / meta * HUNDRED,
    )


def payment_progress(total_pago: Decimal, total_saidas: Decimal) -> Decimal:
    """Share of expenses already paid, capped at 100. Zero without expenses."""
    if total_saidas <= 0:
        return ZERO
    return min(total_pago / total_saidas * HUNDRED, HUNDRED)


def _belongs_to(record_person: Person, person: Person) -> bool:
    # Individual stats only count their own records; shared stats only shared ones
    return record_person == person


def person_stats(
    income_entries: Sequence[IncomeEntry],
    expense_categories: Sequence[ExpenseCategory],
    person: Person,
) -> PersonStats:
    """Totals for one participant (or for the shared AMBOS bucket)."""
    entries = [e for e in income_entries if _belongs_to(e.pessoa, person)]
    categories = [c for c in expense_categories if _belongs_to(c.pessoa, person)]

    total_entradas = _sum(e.valor for e in entries if e.status == EntryStatus.ENTRADA)
    total_futuros = _sum(e.valor for e in entries if e.status == EntryStatus.FUTUROS)
    total_saidas = _sum(c.total for c in categories)
    total_pago = _sum(c.pago for c in categories)

    return PersonStats(
        person=person,
        total_entradas=total_entradas,
        total_futuros=total_futuros,
        total_saidas=total_saidas,
        total_pago=total_pago,
        saldo=total_entradas - total_saidas,
    )


def people_summary(
    income_entries: Sequence[IncomeEntry],
    expense_categories: Sequence[ExpenseCategory],
    people: Optional[Sequence[Person]] = None,
) -> list[PersonStats]:
    """Per-person stats for every participant, shared bucket last."""
    people = people or list(Person)
    return [person_stats(income_entries, expense_categories, p) for p in people]
