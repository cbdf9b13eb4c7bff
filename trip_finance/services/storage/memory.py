"""
In-Memory Storage Implementation

Used by the tests and for offline use. Behaves like the Google Sheets
backend: insertion order is preserved, records are scoped by owner_id,
and every stored record is a validated copy.
"""

from decimal import Decimal
from typing import Any, Optional, Sequence
from uuid import UUID

from trip_finance.models.audit import AuditEvent
from trip_finance.models.finance import (
    ExpenseCategory,
    IncomeEntry,
    Investment,
    RecordKind,
    SavedSnapshot,
)
from trip_finance.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    FinanceStorageInterface,
    NotFoundError,
    Record,
    merge_record,
    newest_snapshots_first,
)


class InMemoryFinanceStorage(FinanceStorageInterface):
    """Finance records held in process memory."""

    def __init__(self):
        self._records: dict[str, dict[RecordKind, list[Record]]] = {}
        self._goals: dict[str, Decimal] = {}
        self._snapshots: dict[str, list[SavedSnapshot]] = {}

    def _bucket(self, owner_id: str, kind: RecordKind) -> list[Record]:
        owner = self._records.setdefault(
            owner_id, {k: [] for k in RecordKind}
        )
        return owner[kind]

    def _index_of(self, bucket: list[Record], record_id: UUID) -> int:
        for idx, record in enumerate(bucket):
            if record.id == record_id:
                return idx
        return -1

    async def list_records(self, owner_id: str, kind: RecordKind) -> list[Record]:
        return [r.model_copy() for r in self._bucket(owner_id, kind)]

    async def get_record(
        self,
        owner_id: str,
        kind: RecordKind,
        record_id: UUID,
    ) -> Optional[Record]:
        bucket = self._bucket(owner_id, kind)
        idx = self._index_of(bucket, record_id)
        return bucket[idx].model_copy() if idx >= 0 else None

    async def insert_record(
        self,
        owner_id: str,
        kind: RecordKind,
        record: Record,
    ) -> Record:
        bucket = self._bucket(owner_id, kind)
        if self._index_of(bucket, record.id) >= 0:
            raise DuplicateError(f"Record already exists in {kind.value}: {record.id}")
        bucket.append(record.model_copy())
        return record

    async def update_record(
        self,
        owner_id: str,
        kind: RecordKind,
        record_id: UUID,
        updates: dict[str, Any],
    ) -> Record:
        bucket = self._bucket(owner_id, kind)
        idx = self._index_of(bucket, record_id)
        if idx < 0:
            raise NotFoundError(f"Record not found in {kind.value}: {record_id}")
        updated = merge_record(kind, bucket[idx], updates)
        bucket[idx] = updated
        return updated.model_copy()

    async def delete_record(
        self,
        owner_id: str,
        kind: RecordKind,
        record_id: UUID,
    ) -> bool:
        bucket = self._bucket(owner_id, kind)
        idx = self._index_of(bucket, record_id)
        if idx < 0:
            raise NotFoundError(f"Record not found in {kind.value}: {record_id}")
        del bucket[idx]
        return True

    async def replace_all(
        self,
        owner_id: str,
        income_entries: Sequence[IncomeEntry],
        expense_categories: Sequence[ExpenseCategory],
        investments: Sequence[Investment],
    ) -> None:
        self._records[owner_id] = {
            RecordKind.INCOME: [r.model_copy() for r in income_entries],
            RecordKind.EXPENSE: [r.model_copy() for r in expense_categories],
            RecordKind.INVESTMENT: [r.model_copy() for r in investments],
        }

    async def get_goal(self, owner_id: str) -> Optional[Decimal]:
        return self._goals.get(owner_id)

    async def set_goal(self, owner_id: str, value: Decimal) -> None:
        self._goals[owner_id] = Decimal(value)

    async def save_snapshot(
        self,
        owner_id: str,
        snapshot: SavedSnapshot,
    ) -> SavedSnapshot:
        saved = self._snapshots.setdefault(owner_id, [])
        if any(s.id == snapshot.id for s in saved):
            raise DuplicateError(f"Snapshot already exists: {snapshot.id}")
        saved.append(snapshot.model_copy(deep=True))
        return snapshot

    async def list_snapshots(
        self,
        owner_id: str,
        limit: int = 12,
    ) -> list[SavedSnapshot]:
        snapshots = [s.model_copy(deep=True) for s in self._snapshots.get(owner_id, [])]
        return newest_snapshots_first(snapshots, limit)

    async def delete_snapshot(self, owner_id: str, snapshot_id: UUID) -> bool:
        saved = self._snapshots.get(owner_id, [])
        for idx, snapshot in enumerate(saved):
            if snapshot.id == snapshot_id:
                del saved[idx]
                return True
        raise NotFoundError(f"Snapshot not found: {snapshot_id}")


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only audit log held in process memory."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self.events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self.events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
