"""
Audit Logger

DESIGN DECISION: Every mutation of the plan and every call to an
external collaborator is logged. This provides:
1. Traceability of who changed which record
2. Debugging capability when the assistant or rate provider misbehaves

The audit logger:
- Is async so it fits the storage and assistant flows
- Gracefully handles failures (never crashes the app if logging fails)
- Supports correlation IDs to trace one assistant query end to end
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from trip_finance.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from trip_finance.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit storage backend, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_record_created(
        self,
        owner_id: str,
        kind: str,
        record_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.record_created(owner_id, kind, record_id))

    async def log_record_updated(
        self,
        owner_id: str,
        kind: str,
        record_id: UUID,
        fields: list[str],
    ) -> None:
        await self.log(
            AuditEventBuilder.record_updated(owner_id, kind, record_id, fields)
        )

    async def log_record_deleted(
        self,
        owner_id: str,
        kind: str,
        record_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.record_deleted(owner_id, kind, record_id))

    async def log_goal_updated(self, owner_id: str, value: str) -> None:
        await self.log(AuditEventBuilder.goal_updated(owner_id, value))

    async def log_snapshot_created(
        self,
        owner_id: str,
        snapshot_id: UUID,
        snapshot_date: str,
    ) -> None:
        await self.log(
            AuditEventBuilder.snapshot_created(owner_id, snapshot_id, snapshot_date)
        )

    async def log_snapshot_deleted(self, owner_id: str, snapshot_id: UUID) -> None:
        await self.log(AuditEventBuilder.snapshot_deleted(owner_id, snapshot_id))

    async def log_data_imported(
        self,
        owner_id: str,
        counts: dict[str, int],
    ) -> None:
        """Log a full replacement of the owner's records."""
        await self.log(AuditEventBuilder.data_imported(owner_id, counts))

    async def log_exchange_rate_fetched(
        self,
        base: str,
        target: str,
        rate: str,
    ) -> None:
        await self.log(AuditEventBuilder.exchange_rate_fetched(base, target, rate))

    async def log_exchange_rate_failed(self, error_message: str) -> None:
        await self.log(AuditEventBuilder.exchange_rate_failed(error_message))

    async def log_assistant_started(
        self,
        owner_id: str,
        mode: str,
        correlation_id: UUID,
    ) -> None:
        """Log the start of an assistant query (analysis or chat)."""
        await self.log(
            AuditEventBuilder.assistant_query_started(owner_id, mode, correlation_id)
        )

    async def log_assistant_completed(
        self,
        owner_id: str,
        outcome: str,
        characters: int,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.assistant_query_completed(
                owner_id=owner_id,
                outcome=outcome,
                characters=characters,
                correlation_id=correlation_id,
            )
        )

    async def log_assistant_rejected(
        self,
        owner_id: str,
        status_code: int,
        correlation_id: UUID,
    ) -> None:
        """Log a 429/402 refusal from the completion endpoint."""
        await self.log(
            AuditEventBuilder.assistant_query_rejected(
                owner_id, status_code, correlation_id
            )
        )

    async def log_assistant_failed(
        self,
        owner_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.assistant_query_failed(
                owner_id, error_message, correlation_id
            )
        )

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of an assistant query and pass it through
    every event the query produces.
    """
    return uuid4()
