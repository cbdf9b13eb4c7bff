"""
Payloads sent to the assistant.

The analysis function receives raw numbers (financialData); the chat
function receives pt-BR formatted amounts (financialContext) it can
quote back verbatim. Both are plain JSON-safe dicts.
"""

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from trip_finance.models.finance import FinancialSnapshot, FinancialSummary
from trip_finance.summary.engine import goal_progress
from trip_finance.utils.formatters import format_currency


def _number(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def _progress_label(summary: FinancialSummary, meta_entradas: Decimal) -> Optional[str]:
    """Goal progress as "42.5%", or None when no goal is set."""
    progress = goal_progress(summary.total_entradas, meta_entradas)
    if progress.percentage is None:
        return None
    return f"{progress.percentage.quantize(Decimal('0.1'), rounding=ROUND_HALF_UP)}%"


def build_financial_data(
    snapshot: FinancialSnapshot,
    summary: FinancialSummary,
) -> dict[str, Any]:
    """Snapshot of the plan for the one-shot analysis."""
    resumo: dict[str, Any] = {
        "totalEntradas": _number(summary.total_entradas),
        "totalFuturos": _number(summary.total_futuros),
        "totalSaidas": _number(summary.total_saidas),
        "totalPago": _number(summary.total_pago),
        "totalAPagar": _number(summary.total_a_pagar),
        "saldoAtual": _number(summary.saldo_atual),
        "saldoFinalPrevisto": _number(summary.saldo_final_previsto),
        "saldoFinalComFuturos": _number(summary.saldo_final_com_futuros),
        "taxaCambio": _number(summary.taxa_cambio),
        "saldoEmEuros": _number(summary.saldo_apos_cambio_eur),
        "metaEntradas": _number(snapshot.meta_entradas),
    }
    progress = _progress_label(summary, snapshot.meta_entradas)
    if progress is not None:
        resumo["progressoMeta"] = progress

    return {
        "resumo": resumo,
        "entradas": [
            {
                "descricao": e.descricao,
                "valor": _number(e.valor),
                "pessoa": e.pessoa.value,
                "status": e.status.value,
                "data": _iso(e.data),
            }
            for e in snapshot.income_entries
        ],
        "despesas": [
            {
                "categoria": c.categoria,
                "total": _number(c.total),
                "pago": _number(c.pago),
                "faltaPagar": _number(c.falta_pagar),
                "vencimento": _iso(c.vencimento),
                "pessoa": c.pessoa.value,
            }
            for c in snapshot.expense_categories
        ],
        "investimentos": [
            {"categoria": i.categoria, "valor": _number(i.valor)}
            for i in snapshot.investments
        ],
    }


def build_chat_context(
    snapshot: FinancialSnapshot,
    summary: FinancialSummary,
    target_date: Optional[date] = None,
) -> dict[str, Any]:
    """Context for the free-form chat, amounts pre-formatted."""
    total_investimentos = sum((i.valor for i in snapshot.investments), Decimal("0"))

    resumo: dict[str, Any] = {
        "totalEntradas": format_currency(summary.total_entradas),
        "totalFuturos": format_currency(summary.total_futuros),
        "totalSaidas": format_currency(summary.total_saidas),
        "totalPago": format_currency(summary.total_pago),
        "totalAPagar": format_currency(summary.total_a_pagar),
        "saldoAtual": format_currency(summary.saldo_atual),
        "saldoFinalPrevisto": format_currency(summary.saldo_final_previsto),
        "saldoComFuturos": format_currency(summary.saldo_final_com_futuros),
        "totalInvestimentos": format_currency(total_investimentos),
        "metaEntradas": format_currency(snapshot.meta_entradas),
    }
    progress = _progress_label(summary, snapshot.meta_entradas)
    if progress is not None:
        resumo["progressoMeta"] = progress

    return {
        "resumo": resumo,
        "dataAlvo": _iso(target_date),
        "entradas": [
            {
                "descricao": e.descricao,
                "valor": _number(e.valor),
                "pessoa": e.pessoa.value,
                "status": e.status.value,
                "data": _iso(e.data),
            }
            for e in snapshot.income_entries
        ],
        "saidas": [
            {
                "categoria": c.categoria,
                "total": _number(c.total),
                "pago": _number(c.pago),
                "faltaPagar": _number(c.falta_pagar),
                "vencimento": _iso(c.vencimento),
                "pessoa": c.pessoa.value,
                "metaOrcamento": _number(c.meta_orcamento),
            }
            for c in snapshot.expense_categories
        ],
        "investimentos": [
            {"categoria": i.categoria, "valor": _number(i.valor)}
            for i in snapshot.investments
        ],
    }
