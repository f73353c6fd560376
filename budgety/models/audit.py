"""
Audit Models for Budgety

Significant domain actions are recorded as audit events. This gives:
1. Traceability of who changed what in a family
2. The only record of what the daily recurring tick did (its failures are
   never shown to users)
3. Debugging information when things go wrong

Audit logs are append-only. We never delete or modify them.
"""

from datetime import date, datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from budgety.models.common import utcnow


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Families
    FAMILY_CREATED = "family_created"
    FAMILY_UPDATED = "family_updated"
    FAMILY_DELETED = "family_deleted"
    INVITE_CREATED = "invite_created"
    MEMBER_JOINED = "member_joined"
    MEMBER_ROLE_UPDATED = "member_role_updated"
    MEMBER_REMOVED = "member_removed"

    # Expenses
    EXPENSE_CREATED = "expense_created"
    EXPENSE_UPDATED = "expense_updated"
    EXPENSE_DELETED = "expense_deleted"

    # Recurring templates
    RECURRING_CREATED = "recurring_created"
    RECURRING_UPDATED = "recurring_updated"
    RECURRING_DELETED = "recurring_deleted"
    RECURRING_MATERIALIZED = "recurring_materialized"
    RECURRING_FAILED = "recurring_failed"

    # Scheduled tick
    TICK_STARTED = "tick_started"
    TICK_COMPLETED = "tick_completed"
    TICK_SKIPPED = "tick_skipped"

    # Budgets
    BUDGET_UPDATED = "budget_updated"

    # System events
    SYSTEM_ERROR = "system_error"


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

    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=utcnow,
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

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'recurring_expense', 'family')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    family_id: Optional[UUID] = Field(
        default=None,
        description="Family the entity belongs to"
    )
    actor_id: Optional[UUID] = Field(
        default=None,
        description="User who triggered the event; None for scheduled work"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., all events of one tick)"
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
    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "family_id": str(self.family_id) if self.family_id else None,
            "actor_id": str(self.actor_id) if self.actor_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entity_changed(AuditEventType.EXPENSE_CREATED, "expense", expense_id, family_id, actor_id)
        event = AuditEventBuilder.recurring_failed(template_id, family_id, error, correlation_id)
    """

    @staticmethod
    def family_created(family_id: UUID, name: str, actor_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FAMILY_CREATED,
            entity_type="family",
            entity_id=family_id,
            family_id=family_id,
            actor_id=actor_id,
            description=f"Family created: {name}",
            details={"name": name},
        )

    @staticmethod
    def family_changed(
        event_type: AuditEventType,
        family_id: UUID,
        actor_id: UUID,
        fields: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="family",
            entity_id=family_id,
            family_id=family_id,
            actor_id=actor_id,
            description=f"Family {event_type.value.split('_')[-1]}",
            details={"fields": fields},
        )

    @staticmethod
    def member_changed(
        event_type: AuditEventType,
        member_id: UUID,
        family_id: UUID,
        actor_id: UUID,
        role: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="family_member",
            entity_id=member_id,
            family_id=family_id,
            actor_id=actor_id,
            description=event_type.value.replace("_", " ").capitalize(),
            details={"role": role} if role else {},
        )

    @staticmethod
    def entity_changed(
        event_type: AuditEventType,
        entity_type: str,
        entity_id: UUID,
        family_id: UUID,
        actor_id: UUID,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            family_id=family_id,
            actor_id=actor_id,
            description=event_type.value.replace("_", " ").capitalize(),
            details=details or {},
        )

    @staticmethod
    def recurring_materialized(
        template_id: UUID,
        family_id: UUID,
        expense_id: UUID,
        due_date: date,
        next_due_date: date,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_MATERIALIZED,
            entity_type="recurring_expense",
            entity_id=template_id,
            family_id=family_id,
            correlation_id=correlation_id,
            description=f"Recurring expense materialized for {due_date.isoformat()}",
            details={
                "expense_id": str(expense_id),
                "due_date": due_date.isoformat(),
                "next_due_date": next_due_date.isoformat(),
            },
        )

    @staticmethod
    def recurring_failed(
        template_id: UUID,
        family_id: UUID,
        error_message: str,
        correlation_id: UUID,
        expense_created: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="recurring_expense",
            entity_id=template_id,
            family_id=family_id,
            correlation_id=correlation_id,
            description="Recurring expense processing failed",
            details={"expense_created": expense_created},
            error_message=error_message,
        )

    @staticmethod
    def tick(
        event_type: AuditEventType,
        job_name: str,
        run_date: date,
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        severity = (
            AuditSeverity.WARNING
            if event_type == AuditEventType.TICK_SKIPPED
            else AuditSeverity.INFO
        )
        return AuditEvent(
            event_type=event_type,
            severity=severity,
            entity_type="job",
            correlation_id=correlation_id,
            description=f"{job_name} {event_type.value.split('_')[-1]} for {run_date.isoformat()}",
            details={"job_name": job_name, "run_date": run_date.isoformat(), **(details or {})},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            correlation_id=correlation_id,
            description=f"System error: {error_type}",
            details=details or {},
            error_message=error_message,
        )
