"""
Tests for the payloads sent to the assistant.
"""

import json

import pytest
from datetime import date
from decimal import Decimal

from trip_finance.assistant.context import build_chat_context, build_financial_data
from trip_finance.models.finance import (
    EntryStatus,
    ExpenseCategory,
    FinancialSnapshot,
    IncomeEntry,
    Investment,
    Person,
)
from trip_finance.summary.engine import compute_summary


def make_snapshot(meta_entradas="1000"):
    return FinancialSnapshot(
        income_entries=[
            IncomeEntry(valor="425", descricao="Salário", data=date(2026, 1, 5)),
            IncomeEntry(valor="100", status=EntryStatus.FUTUROS, pessoa=Person.MYRELLE),
        ],
        expense_categories=[
            ExpenseCategory(
                categoria="Hotel",
                total="300",
                pago="100",
                metaOrcamento="500",
                vencimento=date(2026, 2, 1),
            ),
        ],
        investments=[Investment(categoria="CDB", valor="1500")],
        meta_entradas=Decimal(meta_entradas),
    )


def summary_for(snapshot, taxa_cambio="0"):
    return compute_summary(
        snapshot.income_entries,
        snapshot.expense_categories,
        snapshot.investments,
        snapshot.meta_entradas,
        Decimal(taxa_cambio),
    )


class TestFinancialData:
    """Tests for build_financial_data."""

    def test_summary_numbers(self):
        """Test raw numbers in the resumo block."""
        snapshot = make_snapshot()
        data = build_financial_data(snapshot, summary_for(snapshot, "5"))
        resumo = data["resumo"]

        assert resumo["totalEntradas"] == 425.0
        assert resumo["totalFuturos"] == 100.0
        assert resumo["totalSaidas"] == 300.0
        assert resumo["totalPago"] == 100.0
        assert resumo["totalAPagar"] == 200.0
        assert resumo["saldoAtual"] == 325.0
        assert resumo["saldoFinalPrevisto"] == 125.0
        assert resumo["saldoFinalComFuturos"] == 225.0
        assert resumo["taxaCambio"] == 5.0
        assert resumo["saldoEmEuros"] == 25.0
        assert resumo["metaEntradas"] == 1000.0
        assert resumo["progressoMeta"] == "42.5%"

    def test_no_goal_no_progress(self):
        """Test that progress is omitted without a goal."""
        snapshot = make_snapshot(meta_entradas="0")
        data = build_financial_data(snapshot, summary_for(snapshot))
        assert "progressoMeta" not in data["resumo"]

    def test_records(self):
        """Test the record listings."""
        snapshot = make_snapshot()
        data = build_financial_data(snapshot, summary_for(snapshot))

        assert data["entradas"][0] == {
            "descricao": "Salário",
            "valor": 425.0,
            "pessoa": "Gabriel",
            "status": "Entrada",
            "data": "2026-01-05",
        }
        assert data["entradas"][1]["data"] is None
        assert data["despesas"][0]["faltaPagar"] == 200.0
        assert data["despesas"][0]["vencimento"] == "2026-02-01"
        assert data["investimentos"] == [{"categoria": "CDB", "valor": 1500.0}]

    def test_json_safe(self):
        """Test that the payload serializes as-is."""
        snapshot = make_snapshot()
        json.dumps(build_financial_data(snapshot, summary_for(snapshot)))


class TestChatContext:
    """Tests for build_chat_context."""

    def test_formatted_amounts(self):
        """Test pt-BR formatting in the chat resumo."""
        snapshot = make_snapshot()
        context = build_chat_context(snapshot, summary_for(snapshot))
        resumo = context["resumo"]

        assert resumo["totalEntradas"] == "R$ 425,00"
        assert resumo["saldoComFuturos"] == "R$ 225,00"
        assert resumo["totalInvestimentos"] == "R$ 1.500,00"
        assert resumo["metaEntradas"] == "R$ 1.000,00"
        assert resumo["progressoMeta"] == "42.5%"

    def test_target_date(self):
        """Test the optional target date."""
        snapshot = make_snapshot()
        summary = summary_for(snapshot)
        assert build_chat_context(snapshot, summary)["dataAlvo"] is None
        context = build_chat_context(snapshot, summary, date(2026, 7, 1))
        assert context["dataAlvo"] == "2026-07-01"

    def test_budget_ceiling_in_outflows(self):
        """Test that the chat sees each category's budget."""
        snapshot = make_snapshot()
        context = build_chat_context(snapshot, summary_for(snapshot))
        assert context["saidas"][0]["metaOrcamento"] == 500.0
        json.dumps(context)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
