"""
Tests for the planner and assistant flows.

Everything runs on in-memory storage; HTTP is faked with httpx.MockTransport.
"""

import asyncio
import json

import httpx
import pytest
from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from trip_finance.assistant import AssistantClient, AssistantMode, AssistantOutcome
from trip_finance.audit import AuditLogger
from trip_finance.config import AppSettings, AssistantSettings, ExchangeRateSettings
from trip_finance.models.audit import AuditEventType
from trip_finance.models.finance import (
    AlertType,
    BudgetStatus,
    ChatMessage,
    EntryStatus,
    PeriodFilter,
    PeriodType,
    Person,
    RecordFilter,
    RecordKind,
)
from trip_finance.orchestrator import AssistantFlow, FinancePlanner, create_app_components
from trip_finance.services.exchange_rate import ExchangeRateService
from trip_finance.services.storage import (
    InMemoryAuditStorage,
    InMemoryFinanceStorage,
    NotFoundError,
)

TODAY = date(2026, 1, 10)
OWNER = "casal"


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def planner(audit_storage):
    return FinancePlanner(
        storage=InMemoryFinanceStorage(),
        audit_logger=AuditLogger(audit_storage),
        settings=AppSettings(_env_file=None, participants="Gabriel,Myrelle,Ambos"),
    )


def run(coro):
    return asyncio.run(coro)


class TestRecordLifecycle:
    """Tests for adding, updating and deleting records."""

    def test_new_income_defaults(self, planner):
        """Test zero amount, today's date and first participant."""
        entry = run(planner.add_income_entry(OWNER, today=TODAY))
        assert entry.valor == Decimal("0")
        assert entry.data == TODAY
        assert entry.pessoa == Person.GABRIEL
        assert entry.status == EntryStatus.ENTRADA

    def test_new_future_income(self, planner):
        """Test adding a projected entry."""
        entry = run(planner.add_income_entry(
            OWNER, status=EntryStatus.FUTUROS, today=TODAY, valor="R$ 1.200,50"
        ))
        assert entry.status == EntryStatus.FUTUROS
        assert entry.valor == Decimal("1200.50")

    def test_update_expense_recomputes_remainder(self, planner):
        """Test that a payment updates the remainder."""
        category = run(planner.add_expense_category(OWNER, categoria="Hotel", total="1000"))
        updated = run(planner.update_expense_category(OWNER, category.id, pago="250"))
        assert updated.falta_pagar == Decimal("750")

    def test_mutations_are_audited(self, planner, audit_storage):
        """Test one audit event per mutation."""
        investment = run(planner.add_investment(OWNER, categoria="CDB", valor="100"))
        run(planner.update_investment(OWNER, investment.id, valor="150"))
        run(planner.delete_investment(OWNER, investment.id))

        types = [e.event_type for e in audit_storage.events]
        assert types == [
            AuditEventType.RECORD_CREATED,
            AuditEventType.RECORD_UPDATED,
            AuditEventType.RECORD_DELETED,
        ]
        assert all(e.entity_id == investment.id for e in audit_storage.events)
        assert audit_storage.events[1].details == {"fields": ["valor"]}

    def test_income_update_and_delete(self, planner):
        """Test the income entry lifecycle."""
        entry = run(planner.add_income_entry(OWNER, today=TODAY, valor="10"))
        updated = run(planner.update_income_entry(OWNER, entry.id, descricao="Bônus"))
        assert updated.descricao == "Bônus"
        assert updated.valor == Decimal("10")

        assert run(planner.delete_income_entry(OWNER, entry.id))
        assert run(planner.load_snapshot(OWNER)).income_entries == []

    def test_delete_unknown_category(self, planner):
        """Test that deleting a missing record is reported."""
        with pytest.raises(NotFoundError):
            run(planner.delete_expense_category(OWNER, uuid4()))

    def test_goal(self, planner):
        """Test goal default and update."""
        assert run(planner.load_snapshot(OWNER)).meta_entradas == Decimal("35000")
        assert run(planner.set_goal(OWNER, "40.000,00")) == Decimal("40000.00")
        assert run(planner.load_snapshot(OWNER)).meta_entradas == Decimal("40000.00")


class TestDashboard:
    """Tests for build_dashboard."""

    def test_dashboard(self, planner):
        """Test that every derived view is present and consistent."""
        run(planner.add_income_entry(OWNER, today=TODAY, valor="10000"))
        run(planner.add_income_entry(
            OWNER, status=EntryStatus.FUTUROS, today=TODAY, valor="2000"
        ))
        hotel = run(planner.add_expense_category(
            OWNER,
            categoria="Hotel",
            total="900",
            pago="300",
            metaOrcamento="1000",
            vencimento=date(2026, 1, 12),
        ))
        run(planner.set_goal(OWNER, "20000"))

        dashboard = run(planner.build_dashboard(OWNER, today=TODAY))

        assert dashboard.generated_for == TODAY
        assert dashboard.summary.total_entradas == Decimal("10000")
        assert dashboard.summary.total_futuros == Decimal("2000")
        assert dashboard.summary.saldo_atual == Decimal("9700")
        assert dashboard.summary.taxa_cambio == Decimal("0")
        assert dashboard.goal.percentage == Decimal("50")
        assert dashboard.payment_progress.quantize(Decimal("0.01")) == Decimal("33.33")

        assert len(dashboard.budgets) == 1
        assert dashboard.budgets[0].category_id == hotel.id
        assert dashboard.budgets[0].classification.status == BudgetStatus.NEAR_LIMIT

        assert [item.id for item in dashboard.due_items] == [hotel.id]
        assert dashboard.due_items[0].days_until_due == 2

        alert_types = [a.alert_type for a in dashboard.alerts]
        assert alert_types[0] == AlertType.DUE_DATE
        assert AlertType.BUDGET_LIMIT in alert_types

        people = {p.person: p for p in dashboard.people}
        assert people[Person.GABRIEL].total_entradas == Decimal("10000")
        assert people[Person.AMBOS].total_saidas == Decimal("900")

    def test_empty_dashboard(self, planner):
        """Test an owner without records."""
        dashboard = run(planner.build_dashboard(OWNER, today=TODAY))
        assert dashboard.summary.saldo_atual == Decimal("0")
        assert dashboard.payment_progress == Decimal("0")
        assert dashboard.alerts == []

    def test_dashboard_rate_from_service(self, audit_storage):
        """Test the rate in the summary and its fallback after a failure."""
        responses = iter([
            httpx.Response(200, json={"base": "EUR", "rates": {"BRL": 6.0}}),
            httpx.Response(503),
        ])
        audit_logger = AuditLogger(audit_storage)
        rates = ExchangeRateService(
            settings=ExchangeRateSettings(),
            client=httpx.AsyncClient(
                transport=httpx.MockTransport(lambda request: next(responses))
            ),
            audit_logger=audit_logger,
        )
        planner = FinancePlanner(
            storage=InMemoryFinanceStorage(),
            exchange_rates=rates,
            audit_logger=audit_logger,
            settings=AppSettings(_env_file=None),
        )

        first = run(planner.build_dashboard(OWNER, today=TODAY))
        second = run(planner.build_dashboard(OWNER, today=TODAY))

        assert first.summary.taxa_cambio == Decimal("6.0")
        assert second.summary.taxa_cambio == Decimal("6.0")
        assert [e.event_type for e in audit_storage.events] == [
            AuditEventType.EXCHANGE_RATE_FETCHED,
            AuditEventType.EXCHANGE_RATE_FAILED,
        ]


class TestImportExport:
    """Tests for bulk import and export."""

    def test_import_replaces_everything(self, planner, audit_storage):
        """Test that an import replaces records and the goal."""
        run(planner.add_income_entry(OWNER, today=TODAY, valor="1"))

        snapshot = run(planner.import_data(
            OWNER,
            income_entries=[{"id": "import-1", "valor": "500", "data": "05/01/2026"}],
            expense_categories=[
                {"categoria": "Hotel", "total": 1000, "pago": 400, "faltaPagar": 1}
            ],
            meta_entradas="25000",
        ))

        stored = run(planner.load_snapshot(OWNER))
        assert len(stored.income_entries) == 1
        assert isinstance(stored.income_entries[0].id, UUID)
        assert stored.income_entries[0].data == date(2026, 1, 5)
        assert stored.expense_categories[0].falta_pagar == Decimal("600")
        assert stored.investments == []
        assert stored.meta_entradas == Decimal("25000")
        assert snapshot.income_entries[0].id == stored.income_entries[0].id

        imported = audit_storage.events[-1]
        assert imported.event_type == AuditEventType.DATA_IMPORTED
        assert imported.details[RecordKind.INCOME.value] == 1

    def test_invalid_import_writes_nothing(self, planner, audit_storage):
        """Test that a bad record aborts the import before any write."""
        original = run(planner.add_income_entry(OWNER, today=TODAY, valor="1"))
        with pytest.raises(ValueError):
            run(planner.import_data(
                OWNER,
                income_entries=[{"valor": "10", "pessoa": "Desconhecido"}],
            ))
        stored = run(planner.load_snapshot(OWNER))
        assert [e.id for e in stored.income_entries] == [original.id]
        assert audit_storage.events[-1].event_type == AuditEventType.SYSTEM_ERROR

    def test_export_round_trips(self, planner):
        """Test that an export can be imported back unchanged."""
        run(planner.add_income_entry(OWNER, today=TODAY, valor="10", tags=["urgente"]))
        run(planner.add_expense_category(OWNER, categoria="Hotel", total="50", pago="20"))
        run(planner.add_investment(OWNER, categoria="CDB", valor="5"))

        exported = run(planner.export_data(OWNER))
        assert exported["expenseCategories"][0]["faltaPagar"] == "30"
        assert exported["metaEntradas"] == 35000.0
        json.dumps(exported)

        before = run(planner.load_snapshot(OWNER))
        run(planner.import_data(
            OWNER,
            income_entries=exported["incomeEntries"],
            expense_categories=exported["expenseCategories"],
            investments=exported["investments"],
            meta_entradas=exported["metaEntradas"],
        ))
        assert run(planner.load_snapshot(OWNER)) == before


class TestPlanningTools:
    """Tests for simulations, filters and saved snapshots."""

    def test_simulate(self, planner):
        """Test the three scenarios over the stored plan."""
        run(planner.add_income_entry(OWNER, today=TODAY, valor="10000"))
        run(planner.add_expense_category(OWNER, categoria="Hotel", total="4000", pago="1000"))

        result = run(planner.simulate(
            OWNER, payment="500", new_rate="5", extra_income="1000"
        ))

        assert result.payment.new_balance == Decimal("8500")
        assert result.payment.new_projected == Decimal("5500")
        assert result.income.new_projected == Decimal("7000")
        assert result.exchange.current_eur is None
        assert result.exchange.new_eur == Decimal("1200.00")

    def test_filter_records(self, planner):
        """Test a period plus criteria over income, and the period over expenses."""
        run(planner.add_income_entry(OWNER, today=TODAY, valor="100", descricao="Salário"))
        run(planner.add_income_entry(
            OWNER, today=TODAY, valor="50", descricao="Freela", pessoa=Person.MYRELLE
        ))
        run(planner.add_income_entry(OWNER, today=date(2025, 12, 5), valor="70"))
        run(planner.add_expense_category(
            OWNER, categoria="Hotel", total="10", vencimento=date(2026, 1, 20)
        ))
        run(planner.add_expense_category(OWNER, categoria="Seguro", total="10"))
        run(planner.add_investment(OWNER, categoria="CDB", valor="5"))

        filtered = run(planner.filter_records(
            OWNER,
            period=PeriodFilter(type=PeriodType.THIS_MONTH),
            criteria=RecordFilter(person="Gabriel"),
            today=TODAY,
        ))

        assert [e.descricao for e in filtered.income_entries] == ["Salário"]
        assert [c.categoria for c in filtered.expense_categories] == ["Hotel"]
        assert len(filtered.investments) == 1

        everything = run(planner.filter_records(OWNER, today=TODAY))
        assert len(everything.income_entries) == 3
        assert len(everything.expense_categories) == 2

    def test_snapshot_lifecycle(self, planner, audit_storage):
        """Test saving, comparing and deleting a snapshot, with its audit trail."""
        run(planner.add_income_entry(OWNER, today=TODAY, valor="1000"))
        run(planner.add_expense_category(OWNER, categoria="Hotel", total="300"))

        saved = run(planner.create_snapshot(
            OWNER, notes="antes do hotel", created_by="gabriel", today=TODAY
        ))
        assert saved.snapshot_date == TODAY
        assert saved.data.summary.saldo_final_previsto == Decimal("700")
        assert len(saved.data.income_entries) == 1

        run(planner.add_income_entry(OWNER, today=TODAY, valor="500"))
        run(planner.add_expense_category(OWNER, categoria="Voo", total="200"))

        [comparison] = run(planner.compare_snapshots(OWNER))
        assert comparison.snapshot_id == saved.id
        assert comparison.entradas == Decimal("500")
        assert comparison.saidas == Decimal("200")
        assert comparison.saldo == Decimal("300")

        assert [s.id for s in run(planner.list_snapshots(OWNER))] == [saved.id]
        assert run(planner.delete_snapshot(OWNER, saved.id))
        assert run(planner.list_snapshots(OWNER)) == []

        snapshot_events = [
            e for e in audit_storage.events if e.entity_type == "snapshot"
        ]
        assert [e.event_type for e in snapshot_events] == [
            AuditEventType.SNAPSHOT_CREATED,
            AuditEventType.SNAPSHOT_DELETED,
        ]
        assert snapshot_events[0].entity_id == saved.id

    def test_delete_unknown_snapshot(self, planner, audit_storage):
        """Test that a missing snapshot raises and is not audited."""
        with pytest.raises(NotFoundError):
            run(planner.delete_snapshot(OWNER, uuid4()))
        assert audit_storage.events == []


def sse(*contents):
    lines = [
        f"data: {json.dumps({'choices': [{'delta': {'content': c}}]})}\n"
        for c in contents
    ]
    return ("".join(lines) + "data: [DONE]\n").encode("utf-8")


def make_flow(planner, audit_storage, handler):
    client = AssistantClient(
        settings=AssistantSettings(base_url="https://fn.example", api_key="pk-test"),
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return AssistantFlow(planner, client=client, audit_logger=AuditLogger(audit_storage))


class TestAssistantFlow:
    """Tests for AssistantFlow."""

    def test_analyze(self, planner, audit_storage):
        """Test the analysis payload, the streamed text and the audit trail."""
        run(planner.add_income_entry(OWNER, today=TODAY, valor="1000"))
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=sse("Tudo ", "certo"))

        flow = make_flow(planner, audit_storage, handler)
        updates = []
        result = run(flow.analyze(OWNER, on_update=updates.append))

        assert result.outcome == AssistantOutcome.COMPLETED
        assert result.text == "Tudo certo"
        assert updates == ["Tudo ", "Tudo certo"]
        assert seen["body"]["financialData"]["resumo"]["totalEntradas"] == 1000.0

        started, completed = audit_storage.events[-2:]
        assert started.event_type == AuditEventType.ASSISTANT_QUERY_STARTED
        assert completed.event_type == AuditEventType.ASSISTANT_QUERY_COMPLETED
        assert started.correlation_id == completed.correlation_id
        assert completed.details == {"outcome": "completed", "characters": 10}

    def test_chat(self, planner, audit_storage):
        """Test the chat payload."""
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=sse("Olá"))

        flow = make_flow(planner, audit_storage, handler)
        messages = [ChatMessage(role="user", content="Vai sobrar dinheiro?")]
        result = run(flow.chat(OWNER, messages, target_date=date(2026, 6, 1)))

        assert result.text == "Olá"
        assert seen["body"]["messages"][0]["content"] == "Vai sobrar dinheiro?"
        assert seen["body"]["financialContext"]["dataAlvo"] == "2026-06-01"

    def test_rejection_is_audited(self, planner, audit_storage):
        """Test that a 429 is reported and audited as rejected."""
        flow = make_flow(
            planner, audit_storage, lambda request: httpx.Response(429)
        )
        result = run(flow.analyze(OWNER))

        assert result.outcome == AssistantOutcome.RATE_LIMITED
        assert not result.ok
        rejected = audit_storage.events[-1]
        assert rejected.event_type == AuditEventType.ASSISTANT_QUERY_REJECTED
        assert rejected.error_code == "429"

    def test_failure_is_audited(self, planner, audit_storage):
        """Test that a server error is reported and audited as failed."""
        flow = make_flow(
            planner, audit_storage, lambda request: httpx.Response(500, json={"error": "x"})
        )
        result = run(flow.analyze(OWNER))

        assert result.outcome == AssistantOutcome.FAILED
        assert audit_storage.events[-1].event_type == AuditEventType.ASSISTANT_QUERY_FAILED

    def test_unexpected_error_is_audited_and_raised(self, planner, audit_storage):
        """Test that a bug in the stream is recorded, then propagated."""
        async def broken_stream():
            raise KeyError("boom")
            yield

        flow = make_flow(planner, audit_storage, lambda request: httpx.Response(200))
        with pytest.raises(KeyError):
            run(flow._run(OWNER, AssistantMode.ANALYSIS, broken_stream, None))

        failed = audit_storage.events[-1]
        assert failed.event_type == AuditEventType.EXTERNAL_SERVICE_ERROR
        assert failed.details == {"service": "assistant"}


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_in_memory_without_assistant(self, monkeypatch):
        """Test wiring when nothing external is configured."""
        monkeypatch.delenv("ASSISTANT_BASE_URL", raising=False)
        monkeypatch.delenv("ASSISTANT_API_KEY", raising=False)

        planner, flow, sheets_client = create_app_components(use_storage=False)

        assert isinstance(planner, FinancePlanner)
        assert flow is None
        assert sheets_client is None

    def test_with_assistant(self, monkeypatch):
        """Test that a configured endpoint enables the assistant flow."""
        monkeypatch.setenv("ASSISTANT_BASE_URL", "https://fn.example")
        monkeypatch.setenv("ASSISTANT_API_KEY", "pk-test")

        planner, flow, _ = create_app_components(use_storage=False)

        assert isinstance(flow, AssistantFlow)
        snapshot = run(planner.load_snapshot(OWNER))
        assert snapshot.income_entries == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
