"""
Audit Models for Trip Finance

Every mutation of the plan and every call to an external collaborator
is logged for audit purposes. This provides:
1. Traceability of who changed which record
2. Debugging information when the assistant or rate provider fails
3. Ability to reconstruct how the numbers evolved

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Records
    RECORD_CREATED = "record_created"
    RECORD_UPDATED = "record_updated"
    RECORD_DELETED = "record_deleted"
    GOAL_UPDATED = "goal_updated"
    DATA_IMPORTED = "data_imported"
    SNAPSHOT_CREATED = "snapshot_created"
    SNAPSHOT_DELETED = "snapshot_deleted"

    # Exchange rate
    EXCHANGE_RATE_FETCHED = "exchange_rate_fetched"
    EXCHANGE_RATE_FAILED = "exchange_rate_failed"

    # Assistant
    ASSISTANT_QUERY_STARTED = "assistant_query_started"
    ASSISTANT_QUERY_COMPLETED = "assistant_query_completed"
    ASSISTANT_QUERY_REJECTED = "assistant_query_rejected"
    ASSISTANT_QUERY_FAILED = "assistant_query_failed"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Whose plan was touched
    owner_id: Optional[str] = Field(
        default=None,
        description="Opaque user/session identity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'income_entries', 'assistant_query')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one assistant query)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "owner_id": self.owner_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, owner_id, entity_type,
         entity_id, correlation_id, description, details_json,
         error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.owner_id or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.record_created(owner_id, "income_entries", entry.id)
        event = AuditEventBuilder.assistant_query_started(owner_id, "analysis", correlation_id)
    """

    @staticmethod
    def record_created(
        owner_id: str,
        kind: str,
        record_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_CREATED,
            owner_id=owner_id,
            entity_type=kind,
            entity_id=record_id,
            description=f"Record created in {kind}",
            is_user_action=True,
        )

    @staticmethod
    def record_updated(
        owner_id: str,
        kind: str,
        record_id: UUID,
        fields: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_UPDATED,
            owner_id=owner_id,
            entity_type=kind,
            entity_id=record_id,
            description=f"Record updated in {kind}: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def record_deleted(
        owner_id: str,
        kind: str,
        record_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECORD_DELETED,
            owner_id=owner_id,
            entity_type=kind,
            entity_id=record_id,
            description=f"Record deleted from {kind}",
            is_user_action=True,
        )

    @staticmethod
    def goal_updated(owner_id: str, value: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.GOAL_UPDATED,
            owner_id=owner_id,
            entity_type="goal",
            description=f"Income goal set to {value}",
            details={"meta_entradas": value},
            is_user_action=True,
        )

    @staticmethod
    def snapshot_created(owner_id: str, snapshot_id: UUID, snapshot_date: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_CREATED,
            owner_id=owner_id,
            entity_type="snapshot",
            entity_id=snapshot_id,
            description=f"Snapshot saved for {snapshot_date}",
            details={"snapshot_date": snapshot_date},
            is_user_action=True,
        )

    @staticmethod
    def snapshot_deleted(owner_id: str, snapshot_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SNAPSHOT_DELETED,
            owner_id=owner_id,
            entity_type="snapshot",
            entity_id=snapshot_id,
            description=f"Deleted snapshot {snapshot_id}",
            is_user_action=True,
        )

    @staticmethod
    def data_imported(
        owner_id: str,
        counts: dict[str, int],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_IMPORTED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            description="All records replaced by an import",
            details=counts,
            is_user_action=True,
        )

    @staticmethod
    def exchange_rate_fetched(base: str, target: str, rate: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXCHANGE_RATE_FETCHED,
            entity_type="exchange_rate",
            description=f"Exchange rate {base}->{target}: {rate}",
            details={"base": base, "target": target, "rate": rate},
        )

    @staticmethod
    def exchange_rate_failed(error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXCHANGE_RATE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="exchange_rate",
            description="Exchange rate unavailable, balances shown unconverted",
            error_message=error_message,
        )

    @staticmethod
    def assistant_query_started(
        owner_id: str,
        mode: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSISTANT_QUERY_STARTED,
            owner_id=owner_id,
            entity_type="assistant_query",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description=f"Assistant {mode} requested",
            details={"mode": mode},
            is_user_action=True,
        )

    @staticmethod
    def assistant_query_completed(
        owner_id: str,
        outcome: str,
        characters: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSISTANT_QUERY_COMPLETED,
            owner_id=owner_id,
            entity_type="assistant_query",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description=f"Assistant finished ({outcome}) with {characters} characters",
            details={"outcome": outcome, "characters": characters},
        )

    @staticmethod
    def assistant_query_rejected(
        owner_id: str,
        status_code: int,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSISTANT_QUERY_REJECTED,
            severity=AuditSeverity.WARNING,
            owner_id=owner_id,
            entity_type="assistant_query",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description=f"Assistant refused the request with status {status_code}",
            error_code=str(status_code),
        )

    @staticmethod
    def assistant_query_failed(
        owner_id: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ASSISTANT_QUERY_FAILED,
            severity=AuditSeverity.ERROR,
            owner_id=owner_id,
            entity_type="assistant_query",
            entity_id=correlation_id,
            correlation_id=correlation_id,
            description="Assistant query failed",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
