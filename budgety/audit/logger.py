"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Complete traceability of who changed what in a family
2. The only trace of the daily recurring tick (its failures never reach users)
3. Debugging capability

The audit logger:
- Gracefully handles failures (doesn't break a request if audit storage fails)
- Supports correlation IDs to trace related events (one tick, one request)
"""

import logging
import sys
from datetime import date
from typing import Optional
from uuid import UUID, uuid4

import structlog

from budgety.models.audit import AuditEvent, AuditEventBuilder, AuditEventType, AuditSeverity
from budgety.services.storage import AuditStorageInterface, StorageError


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """
    Configure structlog over the standard library logging module.

    JSON lines by default; human-readable console output when
    ``json_logs`` is False (debug mode).
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

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
            renderer,
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
    2. Audit storage (for persistence), when configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("budgety.audit")

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
            except StorageError as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    # Families

    async def log_family_created(self, family_id: UUID, name: str, actor_id: UUID) -> None:
        await self.log(AuditEventBuilder.family_created(family_id, name, actor_id))

    async def log_family_updated(self, family_id: UUID, actor_id: UUID, fields: list[str]) -> None:
        await self.log(AuditEventBuilder.family_changed(
            AuditEventType.FAMILY_UPDATED, family_id, actor_id, fields,
        ))

    async def log_family_deleted(self, family_id: UUID, actor_id: UUID) -> None:
        await self.log(AuditEventBuilder.family_changed(
            AuditEventType.FAMILY_DELETED, family_id, actor_id, [],
        ))

    async def log_invite_created(self, invite_id: UUID, family_id: UUID, actor_id: UUID) -> None:
        await self.log(AuditEventBuilder.entity_changed(
            AuditEventType.INVITE_CREATED, "invite", invite_id, family_id, actor_id,
        ))

    async def log_member_changed(
        self,
        event_type: AuditEventType,
        member_id: UUID,
        family_id: UUID,
        actor_id: UUID,
        role: Optional[str] = None,
    ) -> None:
        """Log a member joining, changing role or being removed."""
        await self.log(AuditEventBuilder.member_changed(
            event_type, member_id, family_id, actor_id, role,
        ))

    # Expenses, templates and budgets

    async def log_entity_changed(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: UUID,
        family_id: UUID,
        actor_id: UUID,
        details: Optional[dict] = None,
    ) -> None:
        await self.log(AuditEventBuilder.entity_changed(
            event_type, entity_type, entity_id, family_id, actor_id, details,
        ))

    # Recurring tick

    async def log_recurring_materialized(
        self,
        template_id: UUID,
        family_id: UUID,
        expense_id: UUID,
        due_date: date,
        next_due_date: date,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.recurring_materialized(
            template_id=template_id,
            family_id=family_id,
            expense_id=expense_id,
            due_date=due_date,
            next_due_date=next_due_date,
            correlation_id=correlation_id,
        ))

    async def log_recurring_failed(
        self,
        template_id: UUID,
        family_id: UUID,
        error_message: str,
        correlation_id: UUID,
        expense_created: bool = False,
    ) -> None:
        await self.log(AuditEventBuilder.recurring_failed(
            template_id=template_id,
            family_id=family_id,
            error_message=error_message,
            correlation_id=correlation_id,
            expense_created=expense_created,
        ))

    async def log_tick(
        self,
        event_type: AuditEventType,
        job_name: str,
        run_date: date,
        correlation_id: UUID,
        details: Optional[dict] = None,
    ) -> None:
        """Log a tick starting, completing or being skipped."""
        await self.log(AuditEventBuilder.tick(
            event_type, job_name, run_date, correlation_id, details,
        ))

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


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a unit of work (e.g., one recurring tick).
    Pass it through all subsequent operations.
    """
    return uuid4()
