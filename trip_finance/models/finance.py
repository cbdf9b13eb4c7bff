"""
Core Data Models for Trip Finance

These models define the schemas for every record the planner reads
or derives. They are designed to:
1. Enforce type safety at runtime
2. Accept messy user input without crashing (amounts and dates are coerced)
3. Serialize with the camelCase names the assistant backend expects
4. Keep derived values derived - nothing computed is trusted from storage

DESIGN DECISION: Money is Decimal everywhere. Floats never enter the
summary math, so totals are exact and can never become NaN or Infinity.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from trip_finance.utils.formatters import coerce_amount, parse_date_input


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Person(str, Enum):
    """Participants in the shared plan. AMBOS marks shared records."""
    GABRIEL = "Gabriel"
    MYRELLE = "Myrelle"
    AMBOS = "Ambos"


class EntryStatus(str, Enum):
    """
    Income entry status.

    Only ENTRADA counts towards realized income. FUTUROS entries are
    projections and are tracked separately.
    """
    ENTRADA = "Entrada"
    FUTUROS = "Futuros"


class EntryTag(str, Enum):
    URGENTE = "urgente"
    OPCIONAL = "opcional"
    CONFIRMADO = "confirmado"
    PENDENTE = "pendente"
    RECORRENTE = "recorrente"


class Currency(str, Enum):
    BRL = "BRL"
    EUR = "EUR"
    USD = "USD"


class RecordKind(str, Enum):
    """The record collections owned by the persistence collaborator."""
    INCOME = "income_entries"
    EXPENSE = "expense_categories"
    INVESTMENT = "investments"


class BudgetStatus(str, Enum):
    """Budget usage of a single expense category."""
    ON_TRACK = "on_track"
    NEAR_LIMIT = "near_limit"
    OVER_BUDGET = "over_budget"


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertType(str, Enum):
    DUE_DATE = "due_date"
    OVERDUE = "overdue"
    BUDGET_WARNING = "budget_warning"
    BUDGET_LIMIT = "budget_limit"
    LOW_BALANCE = "low_balance"
    POSITIVE = "positive"


class DueUrgency(str, Enum):
    OVERDUE = "overdue"
    UPCOMING = "upcoming"


class DueItemStatus(str, Enum):
    """Status shown in the upcoming due dates listing."""
    OVERDUE = "overdue"
    URGENT = "urgent"
    SOON = "soon"
    NORMAL = "normal"


# =============================================================================
# RECORDS - owned by the persistence collaborator
# =============================================================================

class _Record(BaseModel):
    """Shared configuration for persisted records."""
    model_config = ConfigDict(
        str_strip_whitespace=True,
        populate_by_name=True,
    )

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique record ID"
    )


class IncomeEntry(_Record):
    """
    A single income record.

    Amounts and dates typed by users are coerced: an unparseable
    amount becomes zero and an unparseable date becomes None.
    """

    valor: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Amount received or expected"
    )
    descricao: str = Field(
        default="",
        max_length=200,
    )
    data: Optional[date] = Field(
        default=None,
        description="Date the money arrived (or is expected)"
    )
    pessoa: Person = Person.GABRIEL
    status: EntryStatus = EntryStatus.ENTRADA
    tags: set[EntryTag] = Field(default_factory=set)
    notas: Optional[str] = Field(
        default=None,
        max_length=1000,
    )
    moeda: Currency = Currency.BRL

    @field_validator('valor', mode='before')
    @classmethod
    def coerce_valor(cls, v):
        return coerce_amount(v)

    @field_validator('data', mode='before')
    @classmethod
    def coerce_data(cls, v):
        return parse_date_input(v)


class ExpenseCategory(_Record):
    """
    An expense category with its total cost and what has been paid.

    CRITICAL: falta_pagar is always recomputed as total - pago.
    Whatever value arrives (from storage or an import) is discarded,
    so a stale stored value can never drift from its inputs.
    """

    categoria: str = Field(
        default="",
        max_length=200,
    )
    total: Decimal = Field(default=Decimal("0"), ge=0)
    pago: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Amount already paid"
    )
    falta_pagar: Decimal = Field(
        default=Decimal("0"),
        alias="faltaPagar",
        description="Remaining amount (derived)"
    )
    meta_orcamento: Optional[Decimal] = Field(
        default=None,
        ge=0,
        alias="metaOrcamento",
        description="Optional budget ceiling"
    )
    vencimento: Optional[date] = Field(
        default=None,
        description="Due date of the remaining amount"
    )
    notas: Optional[str] = Field(
        default=None,
        max_length=1000,
    )
    pessoa: Person = Person.AMBOS
    moeda: Currency = Currency.BRL

    @field_validator('total', 'pago', 'falta_pagar', mode='before')
    @classmethod
    def coerce_amounts(cls, v):
        return coerce_amount(v)

    @field_validator('meta_orcamento', mode='before')
    @classmethod
    def coerce_budget(cls, v):
        if v is None or v == "":
            return None
        return coerce_amount(v)

    @field_validator('vencimento', mode='before')
    @classmethod
    def coerce_vencimento(cls, v):
        return parse_date_input(v)

    @model_validator(mode='after')
    def recompute_falta_pagar(self) -> 'ExpenseCategory':
        self.falta_pagar = self.total - self.pago
        return self


class Investment(_Record):
    """An investment line. Not folded into the summary math."""

    categoria: str = Field(default="", max_length=200)
    valor: Decimal = Field(default=Decimal("0"), ge=0)
    moeda: Currency = Currency.BRL

    @field_validator('valor', mode='before')
    @classmethod
    def coerce_valor(cls, v):
        return coerce_amount(v)


RECORD_MODELS: dict[RecordKind, type[_Record]] = {
    RecordKind.INCOME: IncomeEntry,
    RecordKind.EXPENSE: ExpenseCategory,
    RecordKind.INVESTMENT: Investment,
}


# =============================================================================
# DERIVED MODELS - computed on every read, never persisted
# =============================================================================

class FinancialSummary(BaseModel):
    """
    Aggregated view of all records.

    Invariants:
        total_a_pagar = total_saidas - total_pago
        saldo_atual = total_entradas - total_pago
        saldo_final_previsto = total_entradas - total_saidas

    Balances may be negative (overspend) and are never clamped.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    total_entradas: Decimal = Field(default=Decimal("0"), alias="totalEntradas")
    total_saidas: Decimal = Field(default=Decimal("0"), alias="totalSaidas")
    total_pago: Decimal = Field(default=Decimal("0"), alias="totalPago")
    total_a_pagar: Decimal = Field(default=Decimal("0"), alias="totalAPagar")
    total_futuros: Decimal = Field(default=Decimal("0"), alias="totalFuturos")
    saldo_final_previsto: Decimal = Field(default=Decimal("0"), alias="saldoFinalPrevisto")
    saldo_final_com_futuros: Decimal = Field(default=Decimal("0"), alias="saldoFinalComFuturos")
    saldo_atual: Decimal = Field(default=Decimal("0"), alias="saldoAtual")
    saldo_apos_cambio_eur: Decimal = Field(default=Decimal("0"), alias="saldoAposCambioEUR")
    taxa_cambio: Decimal = Field(default=Decimal("0"), alias="taxaCambio")


class GoalProgress(BaseModel):
    """Progress of realized income towards the goal (metaEntradas)."""

    meta_entradas: Decimal
    total_entradas: Decimal
    percentage: Optional[Decimal] = Field(
        default=None,
        description="None when no goal is set - nothing should be rendered"
    )

    @property
    def has_goal(self) -> bool:
        return self.percentage is not None

    @property
    def reached(self) -> bool:
        return self.percentage is not None and self.percentage >= 100


class BudgetClassification(BaseModel):
    status: BudgetStatus
    percentage: Decimal


class DueDateClassification(BaseModel):
    urgency: DueUrgency
    days_until_due: int
    severity: AlertSeverity


class DueItem(BaseModel):
    """An unpaid category with a due date, as shown in the due dates panel."""

    id: UUID
    categoria: str
    falta_pagar: Decimal
    vencimento: date
    pessoa: Person
    moeda: Currency
    days_until_due: int
    status: DueItemStatus


class SmartAlert(BaseModel):
    """
    An ephemeral alert derived from the current data.

    Alerts are never stored. The key is deterministic so the same
    inputs (and the same "today") always produce the same alerts.
    """
    model_config = ConfigDict(frozen=True)

    key: str
    title: str
    message: str
    alert_type: AlertType
    severity: AlertSeverity
    related_table: Optional[str] = None
    related_id: Optional[UUID] = None


class PersonStats(BaseModel):
    person: Person
    total_entradas: Decimal = Decimal("0")
    total_futuros: Decimal = Decimal("0")
    total_saidas: Decimal = Decimal("0")
    total_pago: Decimal = Decimal("0")
    saldo: Decimal = Decimal("0")


class FinancialSnapshot(BaseModel):
    """Everything the summary needs, as loaded from storage."""

    income_entries: list[IncomeEntry] = Field(default_factory=list)
    expense_categories: list[ExpenseCategory] = Field(default_factory=list)
    investments: list[Investment] = Field(default_factory=list)
    meta_entradas: Decimal = Decimal("0")


class CategoryBudget(BaseModel):
    category_id: UUID
    categoria: str
    classification: BudgetClassification


class Dashboard(BaseModel):
    """Everything a consumer renders, derived in one pass."""

    generated_for: date
    summary: FinancialSummary
    goal: GoalProgress
    payment_progress: Decimal
    budgets: list[CategoryBudget] = Field(default_factory=list)
    due_items: list[DueItem] = Field(default_factory=list)
    alerts: list[SmartAlert] = Field(default_factory=list)
    people: list[PersonStats] = Field(default_factory=list)


# =============================================================================
# COLLABORATOR MODELS
# =============================================================================

class ExchangeRate(BaseModel):
    """A rate quoted as target units per one base unit (e.g. BRL per EUR)."""

    base: str = "EUR"
    target: str = "BRL"
    rate: Decimal = Field(..., gt=0)
    fetched_at: datetime = Field(default_factory=datetime.utcnow)


class ChatMessage(BaseModel):
    role: str = Field(..., pattern="^(user|assistant)$")
    content: str


# =============================================================================
# PLANNING TOOLS - simulations, saved snapshots, filters
# =============================================================================

class PaymentSimulation(BaseModel):
    """Balances after paying an amount right now."""

    amount: Decimal
    new_balance: Decimal
    new_projected: Decimal
    impact: Decimal


class ExchangeSimulation(BaseModel):
    """
    Projected balance in EUR under a different rate.

    EUR values are None while no current rate is known.
    """

    current_rate: Decimal
    new_rate: Decimal
    current_eur: Optional[Decimal] = None
    new_eur: Optional[Decimal] = None
    difference: Optional[Decimal] = None
    percent_change: Optional[Decimal] = None


class IncomeSimulation(BaseModel):
    """Balances after an extra income."""

    amount: Decimal
    new_balance: Decimal
    new_projected: Decimal
    new_eur: Optional[Decimal] = None


class DecisionSimulation(BaseModel):
    """The three what-if scenarios computed together."""

    payment: PaymentSimulation
    exchange: ExchangeSimulation
    income: IncomeSimulation


class SnapshotType(str, Enum):
    MANUAL = "manual"
    AUTOMATIC = "automatic"


class SnapshotData(BaseModel):
    """The frozen state a saved snapshot carries."""
    model_config = ConfigDict(populate_by_name=True)

    summary: FinancialSummary
    income_entries: list[IncomeEntry] = Field(default_factory=list, alias="incomeEntries")
    expense_categories: list[ExpenseCategory] = Field(
        default_factory=list, alias="expenseCategories"
    )
    investments: list[Investment] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class SavedSnapshot(BaseModel):
    """A point-in-time copy of the plan, kept for later comparison."""

    id: UUID = Field(default_factory=uuid4)
    snapshot_date: date
    snapshot_type: SnapshotType = SnapshotType.MANUAL
    data: SnapshotData
    notes: Optional[str] = Field(default=None, max_length=1000)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    created_by: Optional[str] = None

    @field_validator('notes', mode='before')
    @classmethod
    def blank_notes(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class SnapshotComparison(BaseModel):
    """Current totals minus the totals saved in a snapshot."""

    snapshot_id: UUID
    entradas: Decimal
    saidas: Decimal
    saldo: Decimal


class PeriodType(str, Enum):
    ALL = "all"
    THIS_MONTH = "thisMonth"
    LAST_MONTH = "lastMonth"
    LAST_3_MONTHS = "last3Months"
    THIS_YEAR = "thisYear"
    CUSTOM = "custom"


class PeriodFilter(BaseModel):
    """A named period, or a custom inclusive date range."""
    model_config = ConfigDict(populate_by_name=True)

    type: PeriodType = PeriodType.ALL
    custom_from: Optional[date] = Field(default=None, alias="from")
    custom_to: Optional[date] = Field(default=None, alias="to")

    @field_validator('custom_from', 'custom_to', mode='before')
    @classmethod
    def coerce_dates(cls, v):
        return parse_date_input(v)


class RecordFilter(BaseModel):
    """
    Free-form filter over income entries.

    Unset criteria match everything; set criteria are combined with AND.
    """
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    search: str = ""
    person: Optional[Person] = None
    status: Optional[EntryStatus] = None
    tags: set[EntryTag] = Field(default_factory=set)
    date_from: Optional[date] = Field(default=None, alias="dateFrom")
    date_to: Optional[date] = Field(default=None, alias="dateTo")
    value_min: Optional[Decimal] = Field(default=None, alias="valueMin")
    value_max: Optional[Decimal] = Field(default=None, alias="valueMax")

    @field_validator('person', 'status', mode='before')
    @classmethod
    def all_means_unset(cls, v):
        if v in ("", "all"):
            return None
        return v

    @field_validator('date_from', 'date_to', mode='before')
    @classmethod
    def coerce_dates(cls, v):
        return parse_date_input(v)

    @field_validator('value_min', 'value_max', mode='before')
    @classmethod
    def coerce_values(cls, v):
        if v is None or v == "":
            return None
        return coerce_amount(v)

    @property
    def is_active(self) -> bool:
        return bool(
            self.search
            or self.person is not None
            or self.status is not None
            or self.tags
            or self.date_from is not None
            or self.date_to is not None
            or self.value_min is not None
            or self.value_max is not None
        )
