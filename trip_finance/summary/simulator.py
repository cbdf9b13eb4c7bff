"""
Decision Simulator

What-if scenarios over the current summary: paying an amount now,
a different exchange rate, an extra income. Nothing is stored; each
function returns the balances the scenario would lead to.

Amounts accept the same messy input as the records ("R$ 1.200,50").
An unusable amount counts as zero and an unusable rate falls back to
the current one.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Optional

from trip_finance.models.finance import (
    ExchangeSimulation,
    FinancialSummary,
    IncomeSimulation,
    PaymentSimulation,
)
from trip_finance.summary.engine import CENTS, HUNDRED, _positive, convert_balance
from trip_finance.utils.formatters import coerce_amount


def _to_eur(balance: Decimal, rate: Optional[Decimal]) -> Optional[Decimal]:
    if rate is None:
        return None
    return convert_balance(balance, rate)


def _rate(value) -> Optional[Decimal]:
    """A positive rate, or None. Typed rates use a decimal comma or point."""
    if value is None:
        return None
    if isinstance(value, str):
        try:
            return _positive(Decimal(value.strip().replace(",", ".")))
        except InvalidOperation:
            return None
    return _positive(coerce_amount(value))


def simulate_payment(summary: FinancialSummary, amount) -> PaymentSimulation:
    """Pay `amount` now: both balances drop by it."""
    value = coerce_amount(amount)
    return PaymentSimulation(
        amount=value,
        new_balance=summary.saldo_atual - value,
        new_projected=summary.saldo_final_previsto - value,
        impact=-value,
    )


def simulate_exchange_change(
    summary: FinancialSummary,
    new_rate,
    current_rate=None,
) -> ExchangeSimulation:
    """
    Projected balance in EUR at the current rate and at `new_rate`.

    current_rate defaults to the rate the summary was computed with.
    """
    current = _rate(current_rate if current_rate is not None else summary.taxa_cambio)
    new = _rate(new_rate) or current

    current_eur = _to_eur(summary.saldo_final_previsto, current)
    new_eur = _to_eur(summary.saldo_final_previsto, new)

    difference = None
    if current_eur is not None and new_eur is not None:
        difference = new_eur - current_eur

    percent_change = None
    if current is not None and new is not None:
        percent_change = ((new - current) / current * HUNDRED).quantize(
            CENTS, rounding=ROUND_HALF_UP
        )

    return ExchangeSimulation(
        current_rate=current or Decimal("0"),
        new_rate=new or Decimal("0"),
        current_eur=current_eur,
        new_eur=new_eur,
        difference=difference,
        percent_change=percent_change,
    )


def simulate_extra_income(
    summary: FinancialSummary,
    amount,
    taxa_cambio=None,
) -> IncomeSimulation:
    """Receive `amount` extra: both balances grow by it."""
    value = coerce_amount(amount)
    rate = _rate(taxa_cambio if taxa_cambio is not None else summary.taxa_cambio)
    new_projected = summary.saldo_final_previsto + value
    return IncomeSimulation(
        amount=value,
        new_balance=summary.saldo_atual + value,
        new_projected=new_projected,
        new_eur=_to_eur(new_projected, rate),
    )
