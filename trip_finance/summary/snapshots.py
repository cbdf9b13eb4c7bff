"""Saved snapshots: freezing the current plan and comparing against it."""

from datetime import date
from typing import Optional

from trip_finance.models.finance import (
    FinancialSnapshot,
    FinancialSummary,
    SavedSnapshot,
    SnapshotComparison,
    SnapshotData,
    SnapshotType,
)


def build_snapshot(
    records: FinancialSnapshot,
    summary: FinancialSummary,
    today: date,
    notes: Optional[str] = None,
    created_by: Optional[str] = None,
    snapshot_type: SnapshotType = SnapshotType.MANUAL,
) -> SavedSnapshot:
    """Copy the records and their summary into a new snapshot dated today."""
    return SavedSnapshot(
        snapshot_date=today,
        snapshot_type=snapshot_type,
        notes=notes,
        created_by=created_by,
        data=SnapshotData(
            summary=summary,
            income_entries=[e.model_copy() for e in records.income_entries],
            expense_categories=[c.model_copy() for c in records.expense_categories],
            investments=[i.model_copy() for i in records.investments],
        ),
    )


def compare_with_current(
    current: FinancialSummary,
    saved: SavedSnapshot,
) -> SnapshotComparison:
    """How much income, expenses and the projected balance moved since the snapshot."""
    then = saved.data.summary
    return SnapshotComparison(
        snapshot_id=saved.id,
        entradas=current.total_entradas - then.total_entradas,
        saidas=current.total_saidas - then.total_saidas,
        saldo=current.saldo_final_previsto - then.saldo_final_previsto,
    )
