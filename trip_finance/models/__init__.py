"""
Data Models Package

This package contains all Pydantic models used in Trip Finance.
All data flowing through the system must conform to these schemas.
"""

from trip_finance.models.finance import (
    RECORD_MODELS,
    AlertSeverity,
    AlertType,
    BudgetClassification,
    BudgetStatus,
    CategoryBudget,
    ChatMessage,
    Currency,
    Dashboard,
    DecisionSimulation,
    DueDateClassification,
    DueItem,
    DueItemStatus,
    DueUrgency,
    EntryStatus,
    EntryTag,
    ExchangeRate,
    ExchangeSimulation,
    ExpenseCategory,
    FinancialSnapshot,
    FinancialSummary,
    GoalProgress,
    IncomeEntry,
    IncomeSimulation,
    Investment,
    PaymentSimulation,
    PeriodFilter,
    PeriodType,
    Person,
    PersonStats,
    RecordFilter,
    RecordKind,
    SavedSnapshot,
    SmartAlert,
    SnapshotComparison,
    SnapshotData,
    SnapshotType,
)
from trip_finance.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Finance models
    "RECORD_MODELS",
    "AlertSeverity",
    "AlertType",
    "BudgetClassification",
    "BudgetStatus",
    "CategoryBudget",
    "ChatMessage",
    "Currency",
    "Dashboard",
    "DecisionSimulation",
    "DueDateClassification",
    "DueItem",
    "DueItemStatus",
    "DueUrgency",
    "EntryStatus",
    "EntryTag",
    "ExchangeRate",
    "ExchangeSimulation",
    "ExpenseCategory",
    "FinancialSnapshot",
    "FinancialSummary",
    "GoalProgress",
    "IncomeEntry",
    "IncomeSimulation",
    "Investment",
    "PaymentSimulation",
    "PeriodFilter",
    "PeriodType",
    "Person",
    "PersonStats",
    "RecordFilter",
    "RecordKind",
    "SavedSnapshot",
    "SmartAlert",
    "SnapshotComparison",
    "SnapshotData",
    "SnapshotType",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
