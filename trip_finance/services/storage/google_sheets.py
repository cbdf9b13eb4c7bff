"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the storage backend because:
1. Both participants can view and fix their data directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (a trip plan is a few hundred rows)
- No transactions (replace_all deletes then appends)
- Limited query capabilities (we filter by owner_id in Python)

One worksheet per record kind, a settings worksheet holding the income
goal and a snapshots worksheet with one JSON payload per saved snapshot.
Every row starts with the owner_id.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Sequence
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from pydantic import ValidationError
from tenacity import (
    AsyncRetrying,
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from trip_finance.config import GoogleSheetsSettings, get_settings
from trip_finance.models.audit import AuditEvent, AuditEventType, AuditSeverity
from trip_finance.models.finance import (
    RECORD_MODELS,
    ExpenseCategory,
    IncomeEntry,
    Investment,
    RecordKind,
    SavedSnapshot,
    SnapshotData,
)
from trip_finance.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    FinanceStorageInterface,
    NotFoundError,
    Record,
    StorageError,
    merge_record,
    newest_snapshots_first,
)

logger = structlog.get_logger(__name__)


# Column mappings per record kind. owner_id is always first, id second.
RECORD_COLUMNS: dict[RecordKind, list[str]] = {
    RecordKind.INCOME: [
        "owner_id",
        "id",
        "descricao",
        "valor",
        "data",
        "pessoa",
        "status",
        "tags_json",
        "notas",
        "moeda",
    ],
    RecordKind.EXPENSE: [
        "owner_id",
        "id",
        "categoria",
        "total",
        "pago",
        "falta_pagar",
        "meta_orcamento",
        "vencimento",
        "notas",
        "pessoa",
        "moeda",
    ],
    RecordKind.INVESTMENT: [
        "owner_id",
        "id",
        "categoria",
        "valor",
        "moeda",
    ],
}

SETTINGS_COLUMNS = ["owner_id", "meta_entradas", "updated_at"]

SNAPSHOT_COLUMNS = [
    "owner_id",
    "id",
    "snapshot_date",
    "snapshot_type",
    "notes",
    "created_at",
    "created_by",
    "data_json",
]

# Column mappings for Audit sheet
AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "owner_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

# Lookup and validation errors are answers, not transient failures
_WRITE_RETRY_POLICY: dict[str, Any] = {
    "stop": stop_after_attempt(3),
    "wait": wait_exponential(multiplier=1, min=2, max=10),
    "retry": retry_if_not_exception_type(
        (NotFoundError, DuplicateError, ValidationError)
    ),
    "reraise": True,
}
_write_retry = retry(**_WRITE_RETRY_POLICY)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and creates missing worksheets with headers.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(
        self,
        title: str,
        columns: list[str],
        rows: int = 1000,
    ) -> gspread.Worksheet:
        """Get a worksheet, creating it with a header row if missing."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_records_sheet(self, kind: RecordKind) -> gspread.Worksheet:
        titles = {
            RecordKind.INCOME: self._settings.income_sheet_name,
            RecordKind.EXPENSE: self._settings.expense_sheet_name,
            RecordKind.INVESTMENT: self._settings.investment_sheet_name,
        }
        return self.get_worksheet(titles[kind], RECORD_COLUMNS[kind])

    def get_settings_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.settings_sheet_name, SETTINGS_COLUMNS, rows=100
        )

    def get_snapshots_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(
            self._settings.snapshots_sheet_name, SNAPSHOT_COLUMNS, rows=200
        )

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self.get_worksheet(
            self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000
        )


def _cell(value: Any) -> str:
    """Serialize a single field value for a RAW cell."""
    if value is None:
        return ""
    if hasattr(value, "value"):
        return str(value.value)
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)


class GoogleSheetsFinanceStorage(FinanceStorageInterface):
    """
    Google Sheets implementation of the finance record store.

    Records are stored one per row. Tags are JSON-serialized.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _record_to_row(self, owner_id: str, kind: RecordKind, record: Record) -> list:
        """Convert a record to a spreadsheet row."""
        row = []
        for column in RECORD_COLUMNS[kind]:
            if column == "owner_id":
                row.append(owner_id)
            elif column == "tags_json":
                row.append(json.dumps(sorted(tag.value for tag in record.tags)))
            else:
                row.append(_cell(getattr(record, column)))
        return row

    def _row_to_record(self, kind: RecordKind, row: list) -> Record:
        """Convert a spreadsheet row to a record. Amounts and dates are coerced by the model."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        data: dict[str, Any] = {}
        for idx, column in enumerate(RECORD_COLUMNS[kind]):
            if column == "owner_id":
                continue
            if column == "tags_json":
                raw = safe_get(idx)
                data["tags"] = json.loads(raw) if raw else []
                continue
            value = safe_get(idx)
            data[column] = value if value else None

        # Empty cells fall back to the model defaults
        data = {k: v for k, v in data.items() if v is not None}
        return RECORD_MODELS[kind].model_validate(data)

    def _owner_rows(self, sheet: gspread.Worksheet, owner_id: str) -> list[tuple[int, list]]:
        """(sheet row number, row) pairs belonging to the owner, header skipped."""
        all_rows = sheet.get_all_values()
        return [
            (idx, row)
            for idx, row in enumerate(all_rows[1:], start=2)
            if row and row[0] == owner_id and len(row) > 1 and row[1]
        ]

    async def list_records(self, owner_id: str, kind: RecordKind) -> list[Record]:
        try:
            sheet = self._client.get_records_sheet(kind)
            rows = self._owner_rows(sheet, owner_id)
        except Exception as e:
            raise StorageError(f"Failed to list {kind.value}: {e}")

        records = []
        for _, row in rows:
            try:
                records.append(self._row_to_record(kind, row))
            except Exception as e:
                # Skip malformed rows; they stay visible in the sheet for fixing
                logger.warning(
                    "sheets_row_skipped",
                    kind=kind.value,
                    record_id=row[1],
                    error=str(e),
                )
        return records

    async def get_record(
        self,
        owner_id: str,
        kind: RecordKind,
        record_id: UUID,
    ) -> Optional[Record]:
        for record in await self.list_records(owner_id, kind):
            if record.id == record_id:
                return record
        return None

    async def insert_record(
        self,
        owner_id: str,
        kind: RecordKind,
        record: Record,
    ) -> Record:
        """
        Append one record row.

        A failed append may still have reached the sheet. A retry that
        finds the row already there counts the insert as done.
        """
        async for attempt in AsyncRetrying(**_WRITE_RETRY_POLICY):
            with attempt:
                await self._append_record(
                    owner_id,
                    kind,
                    record,
                    retrying=attempt.retry_state.attempt_number > 1,
                )
        return record

    async def _append_record(
        self,
        owner_id: str,
        kind: RecordKind,
        record: Record,
        retrying: bool,
    ) -> None:
        try:
            sheet = self._client.get_records_sheet(kind)
            for _, row in self._owner_rows(sheet, owner_id):
                if row[1] == str(record.id):
                    if retrying:
                        logger.info(
                            "sheets_insert_already_applied",
                            kind=kind.value,
                            record_id=str(record.id),
                        )
                        return
                    raise DuplicateError(
                        f"Record already exists in {kind.value}: {record.id}"
                    )
            sheet.append_row(
                self._record_to_row(owner_id, kind, record),
                value_input_option="RAW",
            )
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to insert into {kind.value}: {e}")

    @_write_retry
    async def update_record(
        self,
        owner_id: str,
        kind: RecordKind,
        record_id: UUID,
        updates: dict[str, Any],
    ) -> Record:
        try:
            sheet = self._client.get_records_sheet(kind)
            for idx, row in self._owner_rows(sheet, owner_id):
                if row[1] == str(record_id):
                    updated = merge_record(kind, self._row_to_record(kind, row), updates)
                    new_row = self._record_to_row(owner_id, kind, updated)

                    # Update each cell in the row
                    for col_idx, value in enumerate(new_row, start=1):
                        sheet.update_cell(idx, col_idx, value)

                    return updated

            raise NotFoundError(f"Record not found in {kind.value}: {record_id}")
        except (NotFoundError, ValidationError):
            raise
        except Exception as e:
            raise StorageError(f"Failed to update {kind.value}: {e}")

    async def delete_record(
        self,
        owner_id: str,
        kind: RecordKind,
        record_id: UUID,
    ) -> bool:
        """Delete one record row. A retry that finds the row gone counts as done."""
        async for attempt in AsyncRetrying(**_WRITE_RETRY_POLICY):
            with attempt:
                await self._delete_row(
                    owner_id,
                    kind,
                    record_id,
                    retrying=attempt.retry_state.attempt_number > 1,
                )
        return True

    async def _delete_row(
        self,
        owner_id: str,
        kind: RecordKind,
        record_id: UUID,
        retrying: bool,
    ) -> None:
        try:
            sheet = self._client.get_records_sheet(kind)
            for idx, row in self._owner_rows(sheet, owner_id):
                if row[1] == str(record_id):
                    sheet.delete_rows(idx)
                    return

            if retrying:
                logger.info(
                    "sheets_delete_already_applied",
                    kind=kind.value,
                    record_id=str(record_id),
                )
                return
            raise NotFoundError(f"Record not found in {kind.value}: {record_id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete from {kind.value}: {e}")

    async def replace_all(
        self,
        owner_id: str,
        income_entries: Sequence[IncomeEntry],
        expense_categories: Sequence[ExpenseCategory],
        investments: Sequence[Investment],
    ) -> None:
        batches = {
            RecordKind.INCOME: income_entries,
            RecordKind.EXPENSE: expense_categories,
            RecordKind.INVESTMENT: investments,
        }
        try:
            for kind, records in batches.items():
                sheet = self._client.get_records_sheet(kind)

                # Bottom-up so earlier row numbers stay valid
                for idx, _ in reversed(self._owner_rows(sheet, owner_id)):
                    sheet.delete_rows(idx)

                if records:
                    sheet.append_rows(
                        [self._record_to_row(owner_id, kind, r) for r in records],
                        value_input_option="RAW",
                    )
        except Exception as e:
            raise StorageError(f"Failed to replace records: {e}")

    async def get_goal(self, owner_id: str) -> Optional[Decimal]:
        try:
            sheet = self._client.get_settings_sheet()
            for row in sheet.get_all_values()[1:]:
                if row and row[0] == owner_id and len(row) > 1 and row[1]:
                    return Decimal(row[1])
            return None
        except Exception as e:
            raise StorageError(f"Failed to read goal: {e}")

    @_write_retry
    async def set_goal(self, owner_id: str, value: Decimal) -> None:
        try:
            sheet = self._client.get_settings_sheet()
            now = datetime.utcnow().isoformat()
            for idx, row in enumerate(sheet.get_all_values()[1:], start=2):
                if row and row[0] == owner_id:
                    sheet.update_cell(idx, 2, str(value))
                    sheet.update_cell(idx, 3, now)
                    return
            sheet.append_row([owner_id, str(value), now], value_input_option="RAW")
        except Exception as e:
            raise StorageError(f"Failed to save goal: {e}")

    def _snapshot_to_row(self, owner_id: str, snapshot: SavedSnapshot) -> list:
        return [
            owner_id,
            str(snapshot.id),
            snapshot.snapshot_date.isoformat(),
            snapshot.snapshot_type.value,
            snapshot.notes or "",
            snapshot.created_at.isoformat(),
            snapshot.created_by or "",
            snapshot.data.model_dump_json(by_alias=True),
        ]

    def _row_to_snapshot(self, row: list) -> SavedSnapshot:
        padded = list(row) + [""] * (len(SNAPSHOT_COLUMNS) - len(row))
        return SavedSnapshot(
            id=UUID(padded[1]),
            snapshot_date=padded[2],
            snapshot_type=padded[3] or "manual",
            notes=padded[4] or None,
            created_at=padded[5],
            created_by=padded[6] or None,
            data=SnapshotData.model_validate_json(padded[7]),
        )

    async def save_snapshot(
        self,
        owner_id: str,
        snapshot: SavedSnapshot,
    ) -> SavedSnapshot:
        """Append one snapshot row; a retry finding the row already there is done."""
        async for attempt in AsyncRetrying(**_WRITE_RETRY_POLICY):
            with attempt:
                await self._append_snapshot(
                    owner_id,
                    snapshot,
                    retrying=attempt.retry_state.attempt_number > 1,
                )
        return snapshot

    async def _append_snapshot(
        self,
        owner_id: str,
        snapshot: SavedSnapshot,
        retrying: bool,
    ) -> None:
        try:
            sheet = self._client.get_snapshots_sheet()
            for _, row in self._owner_rows(sheet, owner_id):
                if row[1] == str(snapshot.id):
                    if retrying:
                        return
                    raise DuplicateError(f"Snapshot already exists: {snapshot.id}")
            sheet.append_row(
                self._snapshot_to_row(owner_id, snapshot),
                value_input_option="RAW",
            )
        except DuplicateError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save snapshot: {e}")

    async def list_snapshots(
        self,
        owner_id: str,
        limit: int = 12,
    ) -> list[SavedSnapshot]:
        try:
            rows = self._owner_rows(self._client.get_snapshots_sheet(), owner_id)
        except Exception as e:
            raise StorageError(f"Failed to list snapshots: {e}")

        snapshots = []
        for _, row in rows:
            try:
                snapshots.append(self._row_to_snapshot(row))
            except Exception as e:
                logger.warning("sheets_snapshot_skipped", snapshot_id=row[1], error=str(e))
        return newest_snapshots_first(snapshots, limit)

    @_write_retry
    async def delete_snapshot(self, owner_id: str, snapshot_id: UUID) -> bool:
        try:
            sheet = self._client.get_snapshots_sheet()
            for idx, row in self._owner_rows(sheet, owner_id):
                if row[1] == str(snapshot_id):
                    sheet.delete_rows(idx)
                    return True

            raise NotFoundError(f"Snapshot not found: {snapshot_id}")
        except NotFoundError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete snapshot: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
        def safe_get(index: int, default: str = "") -> str:
            try:
                return row[index] if row[index] else default
            except IndexError:
                return default

        return AuditEvent(
            event_id=UUID(safe_get(0)),
            timestamp=datetime.fromisoformat(safe_get(1)),
            event_type=AuditEventType(safe_get(2)),
            severity=AuditSeverity(safe_get(3)),
            owner_id=safe_get(4) or None,
            entity_type=safe_get(5) or None,
            entity_id=UUID(safe_get(6)) if safe_get(6) else None,
            correlation_id=UUID(safe_get(7)) if safe_get(7) else None,
            description=safe_get(8),
            details=json.loads(safe_get(9)) if safe_get(9) else {},
            error_message=safe_get(10) or None,
            is_user_action=safe_get(11).lower() == "true",
        )

    def _read_events(self, keep) -> list[AuditEvent]:
        sheet = self._client.get_audit_sheet()
        events = []
        for row in sheet.get_all_values()[1:]:
            if not row or not row[0] or not keep(row):
                continue
            try:
                events.append(self._row_to_event(row))
            except Exception:
                continue
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event. Never raises - audit must not break the main flow."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            logger.warning("audit_event_write_failed", error=str(e))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = self._read_events(
                lambda row: len(row) > 7 and row[7] == str(correlation_id)
            )
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        try:
            events = self._read_events(
                lambda row: (
                    len(row) > 6
                    and row[5] == entity_type
                    and row[6] == str(entity_id)
                )
            )
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        try:
            events = self._read_events(lambda row: True)
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        # Sort newest first
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
