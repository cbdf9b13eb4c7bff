"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep Google Sheets as the backend without tying business logic to it
2. Use in-memory storage for tests and offline use
3. Swap in a real database later

The interface is intentionally simple - we're not building a full ORM.
Records are scoped by an opaque owner_id; how that identity is
established is the caller's concern.
"""

from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Any, Optional, Sequence
from uuid import UUID

from trip_finance.models.audit import AuditEvent
from trip_finance.models.finance import (
    RECORD_MODELS,
    ExpenseCategory,
    IncomeEntry,
    Investment,
    RecordKind,
    SavedSnapshot,
)

# Any of IncomeEntry, ExpenseCategory, Investment
Record = Any


class FinanceStorageInterface(ABC):
    """
    Abstract interface for the finance record store.

    Any storage implementation (Google Sheets, in-memory, PostgreSQL)
    must implement these methods. Listing preserves insertion order.
    """

    @abstractmethod
    async def list_records(self, owner_id: str, kind: RecordKind) -> list[Record]:
        """
        List every record of one kind for an owner, in insertion order.
        """
        pass

    @abstractmethod
    async def get_record(
        self,
        owner_id: str,
        kind: RecordKind,
        record_id: UUID,
    ) -> Optional[Record]:
        """
        Retrieve a record by its ID.

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    async def insert_record(
        self,
        owner_id: str,
        kind: RecordKind,
        record: Record,
    ) -> Record:
        """
        Append a new record.

        Raises:
            DuplicateError: If a record with the same ID exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_record(
        self,
        owner_id: str,
        kind: RecordKind,
        record_id: UUID,
        updates: dict[str, Any],
    ) -> Record:
        """
        Apply a partial update and return the revalidated record.

        Raises:
            NotFoundError: If the record doesn't exist
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_record(
        self,
        owner_id: str,
        kind: RecordKind,
        record_id: UUID,
    ) -> bool:
        """
        Delete a record by ID.

        Raises:
            NotFoundError: If the record doesn't exist
        """
        pass

    @abstractmethod
    async def replace_all(
        self,
        owner_id: str,
        income_entries: Sequence[IncomeEntry],
        expense_categories: Sequence[ExpenseCategory],
        investments: Sequence[Investment],
    ) -> None:
        """
        Replace every record of the owner (used by imports).

        The goal is left untouched; callers set it separately.
        """
        pass

    @abstractmethod
    async def get_goal(self, owner_id: str) -> Optional[Decimal]:
        """Return the stored income goal, or None if never set."""
        pass

    @abstractmethod
    async def set_goal(self, owner_id: str, value: Decimal) -> None:
        """Insert or update the income goal."""
        pass

    @abstractmethod
    async def save_snapshot(
        self,
        owner_id: str,
        snapshot: SavedSnapshot,
    ) -> SavedSnapshot:
        """
        Store a snapshot of the plan.

        Raises:
            DuplicateError: If a snapshot with the same ID exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def list_snapshots(
        self,
        owner_id: str,
        limit: int = 12,
    ) -> list[SavedSnapshot]:
        """
        List the owner's snapshots, newest snapshot_date first.

        Snapshots of the same day are ordered by created_at, newest first.
        """
        pass

    @abstractmethod
    async def delete_snapshot(self, owner_id: str, snapshot_id: UUID) -> bool:
        """
        Delete a snapshot by ID.

        Raises:
            NotFoundError: If the snapshot doesn't exist
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one assistant query).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


def merge_record(kind: RecordKind, record: Record, updates: dict[str, Any]) -> Record:
    """
    Apply updates to a record and validate the result.

    The ID is never changed by an update. Derived fields (falta_pagar)
    are recomputed by the model on validation.
    """
    model = RECORD_MODELS[kind]
    data = record.model_dump()
    data.update({k: v for k, v in updates.items() if k != "id"})
    data["id"] = record.id
    return model.model_validate(data)


def newest_snapshots_first(snapshots: list[SavedSnapshot], limit: int) -> list[SavedSnapshot]:
    ordered = sorted(
        snapshots,
        key=lambda s: (s.snapshot_date, s.created_at),
        reverse=True,
    )
    return ordered[:max(limit, 0)]


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
