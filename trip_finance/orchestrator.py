"""
Main Orchestrator for Trip Finance

This module ties together all the components and defines the
end-to-end flows for:
1. Planning (records → storage → summary, goal, budgets, alerts)
2. Planning tools (what-if simulations, saved snapshots, period filters)
3. Assistant (snapshot → completion endpoint → streamed text)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Derived numbers are recomputed from storage on every dashboard build
- Every mutation is audited
- Assistant failures are reported with a notice, never retried

This is the "glue" that keeps the pure summary code and the
external collaborators apart.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Callable, Optional, Sequence, Union
from uuid import UUID, uuid4

import structlog
from pydantic import ValidationError

from trip_finance.assistant import (
    AssistantClient,
    AssistantMode,
    AssistantOutcome,
    AssistantResult,
    AssistantSession,
    build_chat_context,
    build_financial_data,
)
from trip_finance.audit import AuditLogger, create_correlation_id
from trip_finance.config import AppSettings, get_settings
from trip_finance.models.finance import (
    RECORD_MODELS,
    CategoryBudget,
    ChatMessage,
    Dashboard,
    DecisionSimulation,
    EntryStatus,
    ExpenseCategory,
    FinancialSnapshot,
    FinancialSummary,
    IncomeEntry,
    Investment,
    PeriodFilter,
    Person,
    RecordFilter,
    RecordKind,
    SavedSnapshot,
    SnapshotComparison,
)
from trip_finance.services.exchange_rate import ExchangeRateService
from trip_finance.services.storage import (
    FinanceStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsFinanceStorage,
    InMemoryFinanceStorage,
)
from trip_finance.summary import (
    build_snapshot,
    classify_budget,
    compare_with_current,
    compute_summary,
    filter_by_period,
    filter_expenses_by_period,
    filter_income_entries,
    generate_alerts,
    goal_progress,
    payment_progress,
    people_summary,
    simulate_exchange_change,
    simulate_extra_income,
    simulate_payment,
    upcoming_due_dates,
)
from trip_finance.utils.formatters import coerce_amount

logger = structlog.get_logger(__name__)

RecordInput = Union[dict[str, Any], IncomeEntry, ExpenseCategory, Investment]


class FinancePlanner:
    """
    Owns the record lifecycle and derives the dashboard.

    Callers pass the owner_id (and optionally "today") explicitly;
    nothing is read from ambient session state.
    """

    def __init__(
        self,
        storage: FinanceStorageInterface,
        exchange_rates: Optional[ExchangeRateService] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._exchange_rates = exchange_rates
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app

    @property
    def settings(self) -> AppSettings:
        return self._settings

    def default_person(self) -> Person:
        """First configured participant, used for new income entries."""
        for name in self._settings.participants_list:
            try:
                return Person(name)
            except ValueError:
                continue
        return Person.GABRIEL

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    async def load_snapshot(self, owner_id: str) -> FinancialSnapshot:
        """Load every record of the owner plus the goal (default when never set)."""
        goal = await self._storage.get_goal(owner_id)
        return FinancialSnapshot(
            income_entries=await self._storage.list_records(owner_id, RecordKind.INCOME),
            expense_categories=await self._storage.list_records(owner_id, RecordKind.EXPENSE),
            investments=await self._storage.list_records(owner_id, RecordKind.INVESTMENT),
            meta_entradas=goal if goal is not None else self._settings.default_meta_entradas,
        )

    async def exchange_rate(self) -> Decimal:
        """Current EUR->BRL rate, or 0 when no rate service is configured."""
        if self._exchange_rates is None:
            return Decimal("0")
        return await self._exchange_rates.current_rate()

    async def load_summary(self, owner_id: str) -> tuple[FinancialSnapshot, FinancialSummary]:
        """The owner's records and the summary derived from them at the current rate."""
        snapshot = await self.load_snapshot(owner_id)
        summary = compute_summary(
            snapshot.income_entries,
            snapshot.expense_categories,
            snapshot.investments,
            snapshot.meta_entradas,
            await self.exchange_rate(),
        )
        return snapshot, summary

    async def build_dashboard(
        self,
        owner_id: str,
        today: Optional[date] = None,
    ) -> Dashboard:
        """
        Derive everything a consumer renders, in one pass.

        Nothing here is cached: two calls with the same data and the
        same "today" return the same dashboard.
        """
        today = today or date.today()
        snapshot, summary = await self.load_summary(owner_id)

        budgets = []
        for category in snapshot.expense_categories:
            classification = classify_budget(
                category.total,
                category.meta_orcamento,
                warning_percentage=self._settings.budget_warning_percentage,
            )
            if classification is not None:
                budgets.append(CategoryBudget(
                    category_id=category.id,
                    categoria=category.categoria,
                    classification=classification,
                ))

        return Dashboard(
            generated_for=today,
            summary=summary,
            goal=goal_progress(summary.total_entradas, snapshot.meta_entradas),
            payment_progress=payment_progress(summary.total_pago, summary.total_saidas),
            budgets=budgets,
            due_items=upcoming_due_dates(snapshot.expense_categories, today),
            alerts=generate_alerts(
                snapshot.expense_categories, summary, today, self._settings
            ),
            people=people_summary(snapshot.income_entries, snapshot.expense_categories),
        )

    # -------------------------------------------------------------------------
    # Record lifecycle
    # -------------------------------------------------------------------------

    async def _add(self, owner_id: str, kind: RecordKind, record):
        saved = await self._storage.insert_record(owner_id, kind, record)
        if self._audit_logger:
            await self._audit_logger.log_record_created(owner_id, kind.value, saved.id)
        return saved

    async def _update(
        self,
        owner_id: str,
        kind: RecordKind,
        record_id: UUID,
        updates: dict[str, Any],
    ):
        updated = await self._storage.update_record(owner_id, kind, record_id, updates)
        if self._audit_logger:
            await self._audit_logger.log_record_updated(
                owner_id, kind.value, record_id, sorted(updates)
            )
        return updated

    async def _delete(self, owner_id: str, kind: RecordKind, record_id: UUID) -> bool:
        deleted = await self._storage.delete_record(owner_id, kind, record_id)
        if self._audit_logger:
            await self._audit_logger.log_record_deleted(owner_id, kind.value, record_id)
        return deleted

    async def add_income_entry(
        self,
        owner_id: str,
        status: EntryStatus = EntryStatus.ENTRADA,
        today: Optional[date] = None,
        **fields: Any,
    ) -> IncomeEntry:
        """New income entry: zero amount, today's date, first participant unless given."""
        data = {
            "valor": Decimal("0"),
            "data": today or date.today(),
            "pessoa": self.default_person(),
            **fields,
            "status": status,
        }
        return await self._add(owner_id, RecordKind.INCOME, IncomeEntry.model_validate(data))

    async def update_income_entry(
        self,
        owner_id: str,
        entry_id: UUID,
        **updates: Any,
    ) -> IncomeEntry:
        return await self._update(owner_id, RecordKind.INCOME, entry_id, updates)

    async def delete_income_entry(self, owner_id: str, entry_id: UUID) -> bool:
        return await self._delete(owner_id, RecordKind.INCOME, entry_id)

    async def add_expense_category(self, owner_id: str, **fields: Any) -> ExpenseCategory:
        return await self._add(
            owner_id, RecordKind.EXPENSE, ExpenseCategory.model_validate(fields)
        )

    async def update_expense_category(
        self,
        owner_id: str,
        category_id: UUID,
        **updates: Any,
    ) -> ExpenseCategory:
        """Partial update; falta_pagar is recomputed from total and pago."""
        return await self._update(owner_id, RecordKind.EXPENSE, category_id, updates)

    async def delete_expense_category(self, owner_id: str, category_id: UUID) -> bool:
        return await self._delete(owner_id, RecordKind.EXPENSE, category_id)

    async def add_investment(self, owner_id: str, **fields: Any) -> Investment:
        return await self._add(
            owner_id, RecordKind.INVESTMENT, Investment.model_validate(fields)
        )

    async def update_investment(
        self,
        owner_id: str,
        investment_id: UUID,
        **updates: Any,
    ) -> Investment:
        return await self._update(owner_id, RecordKind.INVESTMENT, investment_id, updates)

    async def delete_investment(self, owner_id: str, investment_id: UUID) -> bool:
        return await self._delete(owner_id, RecordKind.INVESTMENT, investment_id)

    async def set_goal(self, owner_id: str, value: Any) -> Decimal:
        """Store the income goal. Unparseable input becomes 0 (no goal)."""
        amount = coerce_amount(value)
        await self._storage.set_goal(owner_id, amount)
        if self._audit_logger:
            await self._audit_logger.log_goal_updated(owner_id, str(amount))
        return amount

    # -------------------------------------------------------------------------
    # Import / export
    # -------------------------------------------------------------------------

    @staticmethod
    def _import_record(kind: RecordKind, item: RecordInput):
        model = RECORD_MODELS[kind]
        if isinstance(item, model):
            return item
        data = dict(item)
        # Foreign ids (e.g. "import-3") are replaced
        try:
            data["id"] = UUID(str(data.get("id")))
        except ValueError:
            data["id"] = uuid4()
        return model.model_validate(data)

    async def import_data(
        self,
        owner_id: str,
        income_entries: Sequence[RecordInput] = (),
        expense_categories: Sequence[RecordInput] = (),
        investments: Sequence[RecordInput] = (),
        meta_entradas: Any = None,
    ) -> FinancialSnapshot:
        """
        Replace every record of the owner, then set the goal.

        Records are validated before anything is written, so a bad
        import leaves the stored data untouched.
        """
        try:
            snapshot = FinancialSnapshot(
                income_entries=[
                    self._import_record(RecordKind.INCOME, r) for r in income_entries
                ],
                expense_categories=[
                    self._import_record(RecordKind.EXPENSE, r) for r in expense_categories
                ],
                investments=[
                    self._import_record(RecordKind.INVESTMENT, r) for r in investments
                ],
                meta_entradas=(
                    coerce_amount(meta_entradas)
                    if meta_entradas is not None
                    else self._settings.default_meta_entradas
                ),
            )
        except ValidationError as e:
            if self._audit_logger:
                await self._audit_logger.log_error(
                    error_type="ImportValidationError",
                    error_message=str(e),
                    details={"owner_id": owner_id},
                )
            raise

        await self._storage.replace_all(
            owner_id,
            snapshot.income_entries,
            snapshot.expense_categories,
            snapshot.investments,
        )
        await self._storage.set_goal(owner_id, snapshot.meta_entradas)

        if self._audit_logger:
            await self._audit_logger.log_data_imported(
                owner_id,
                {
                    RecordKind.INCOME.value: len(snapshot.income_entries),
                    RecordKind.EXPENSE.value: len(snapshot.expense_categories),
                    RecordKind.INVESTMENT.value: len(snapshot.investments),
                },
            )
        return snapshot

    async def export_data(self, owner_id: str) -> dict[str, Any]:
        """Everything import_data accepts, as JSON-safe camelCase data."""
        snapshot = await self.load_snapshot(owner_id)
        return {
            "incomeEntries": [
                r.model_dump(mode="json", by_alias=True) for r in snapshot.income_entries
            ],
            "expenseCategories": [
                r.model_dump(mode="json", by_alias=True) for r in snapshot.expense_categories
            ],
            "investments": [
                r.model_dump(mode="json", by_alias=True) for r in snapshot.investments
            ],
            "metaEntradas": float(snapshot.meta_entradas),
        }

    # -------------------------------------------------------------------------
    # Planning tools
    # -------------------------------------------------------------------------

    async def simulate(
        self,
        owner_id: str,
        payment: Any = 0,
        new_rate: Any = None,
        extra_income: Any = 0,
    ) -> DecisionSimulation:
        """What-if scenarios over the current summary. Nothing is stored."""
        _, summary = await self.load_summary(owner_id)
        return DecisionSimulation(
            payment=simulate_payment(summary, payment),
            exchange=simulate_exchange_change(summary, new_rate),
            income=simulate_extra_income(summary, extra_income),
        )

    async def filter_records(
        self,
        owner_id: str,
        period: Optional[PeriodFilter] = None,
        criteria: Optional[RecordFilter] = None,
        today: Optional[date] = None,
    ) -> FinancialSnapshot:
        """
        The owner's records narrowed to a period and filter criteria.

        The period applies to income dates and expense due dates; the
        criteria apply to income entries only. Investments are kept.
        """
        today = today or date.today()
        period = period or PeriodFilter()
        snapshot = await self.load_snapshot(owner_id)

        income_entries = filter_by_period(snapshot.income_entries, period, today)
        if criteria is not None:
            income_entries = filter_income_entries(income_entries, criteria)

        return FinancialSnapshot(
            income_entries=income_entries,
            expense_categories=filter_expenses_by_period(
                snapshot.expense_categories, period, today
            ),
            investments=snapshot.investments,
            meta_entradas=snapshot.meta_entradas,
        )

    async def create_snapshot(
        self,
        owner_id: str,
        notes: Optional[str] = None,
        created_by: Optional[str] = None,
        today: Optional[date] = None,
    ) -> SavedSnapshot:
        """Save the current records and summary for later comparison."""
        records, summary = await self.load_summary(owner_id)
        snapshot = build_snapshot(
            records,
            summary,
            today or date.today(),
            notes=notes,
            created_by=created_by,
        )
        saved = await self._storage.save_snapshot(owner_id, snapshot)
        if self._audit_logger:
            await self._audit_logger.log_snapshot_created(
                owner_id, saved.id, saved.snapshot_date.isoformat()
            )
        return saved

    async def list_snapshots(self, owner_id: str, limit: int = 12) -> list[SavedSnapshot]:
        return await self._storage.list_snapshots(owner_id, limit)

    async def delete_snapshot(self, owner_id: str, snapshot_id: UUID) -> bool:
        deleted = await self._storage.delete_snapshot(owner_id, snapshot_id)
        if self._audit_logger:
            await self._audit_logger.log_snapshot_deleted(owner_id, snapshot_id)
        return deleted

    async def compare_snapshots(
        self,
        owner_id: str,
        limit: int = 12,
    ) -> list[SnapshotComparison]:
        """How the plan moved since each saved snapshot, newest first."""
        _, summary = await self.load_summary(owner_id)
        return [
            compare_with_current(summary, saved)
            for saved in await self._storage.list_snapshots(owner_id, limit)
        ]


class AssistantFlow:
    """
    Orchestrates assistant queries.

    Flow:
    1. Load the snapshot and derive the summary
    2. Build the payload for the analysis or chat endpoint
    3. Stream the answer through the session (last query wins)
    4. Audit the outcome

    Failures become an AssistantResult with a notice. Nothing is retried.
    """

    def __init__(
        self,
        planner: FinancePlanner,
        client: Optional[AssistantClient] = None,
        audit_logger: Optional[AuditLogger] = None,
        session: Optional[AssistantSession] = None,
    ):
        self._planner = planner
        self._client = client or AssistantClient()
        self._audit_logger = audit_logger
        self._session = session or AssistantSession()

    @property
    def session(self) -> AssistantSession:
        return self._session

    def cancel(self) -> None:
        self._session.cancel()

    async def analyze(
        self,
        owner_id: str,
        on_update: Optional[Callable[[str], None]] = None,
    ) -> AssistantResult:
        """One-shot analysis of the owner's plan."""
        snapshot, summary = await self._planner.load_summary(owner_id)
        financial_data = build_financial_data(snapshot, summary)
        return await self._run(
            owner_id,
            AssistantMode.ANALYSIS,
            lambda: self._client.stream_analysis(financial_data),
            on_update,
        )

    async def chat(
        self,
        owner_id: str,
        messages: Sequence[ChatMessage],
        on_update: Optional[Callable[[str], None]] = None,
        target_date: Optional[date] = None,
    ) -> AssistantResult:
        """Continue a conversation; the last message is the user's question."""
        snapshot, summary = await self._planner.load_summary(owner_id)
        context = build_chat_context(snapshot, summary, target_date)
        return await self._run(
            owner_id,
            AssistantMode.CHAT,
            lambda: self._client.stream_chat(list(messages), context),
            on_update,
        )

    async def _run(
        self,
        owner_id: str,
        mode: AssistantMode,
        stream_factory,
        on_update: Optional[Callable[[str], None]],
    ) -> AssistantResult:
        correlation_id = create_correlation_id()

        if self._audit_logger:
            await self._audit_logger.log_assistant_started(
                owner_id, mode.value, correlation_id
            )

        try:
            result = await self._session.run(
                stream_factory, mode=mode, on_update=on_update
            )
        except Exception as e:
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="assistant",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_result(owner_id, result, correlation_id)

        return result

    async def _audit_result(
        self,
        owner_id: str,
        result: AssistantResult,
        correlation_id: UUID,
    ) -> None:
        if result.outcome in (
            AssistantOutcome.RATE_LIMITED,
            AssistantOutcome.QUOTA_EXHAUSTED,
        ):
            await self._audit_logger.log_assistant_rejected(
                owner_id, result.status_code or 0, correlation_id
            )
        elif result.outcome == AssistantOutcome.FAILED:
            await self._audit_logger.log_assistant_failed(
                owner_id, result.error_message or "unknown error", correlation_id
            )
        else:
            await self._audit_logger.log_assistant_completed(
                owner_id=owner_id,
                outcome=result.outcome.value,
                characters=len(result.text),
                correlation_id=correlation_id,
            )


def create_app_components(
    use_storage: bool = True,
) -> tuple[FinancePlanner, Optional[AssistantFlow], Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on in-memory storage.

    Returns:
        (planner, assistant_flow, sheets_client). assistant_flow is None
        when the assistant endpoint is not configured.
    """
    sheets_client = None
    storage: FinanceStorageInterface = InMemoryFinanceStorage()
    audit_logger = AuditLogger()  # Local-only logging

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            storage = GoogleSheetsFinanceStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None

    planner = FinancePlanner(
        storage=storage,
        exchange_rates=ExchangeRateService(audit_logger=audit_logger),
        audit_logger=audit_logger,
    )

    assistant_flow = None
    try:
        assistant_flow = AssistantFlow(
            planner,
            client=AssistantClient(),
            audit_logger=audit_logger,
        )
    except ValidationError as e:
        logger.warning("assistant_not_configured", error=str(e))

    return planner, assistant_flow, sheets_client
