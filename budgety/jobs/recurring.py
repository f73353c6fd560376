"""
Recurring Expense Processor

Materializes every due recurring template into a concrete Expense and
moves the template's cursor forward by one frequency step.

DESIGN DECISION: Each template is processed INDEPENDENTLY.
1. One failing template never stops the others
2. Nothing is retried within a pass; the next daily pass picks up
   whatever is still due
3. Create-then-advance gives at-least-once semantics: if the cursor
   write fails after the expense is saved, the template stays due and
   is materialized again later

Every outcome is logged (structlog) and recorded as an audit event,
tied together by the pass's correlation id.
"""

from datetime import date, timedelta
from typing import Optional
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from budgety.audit import AuditLogger, create_correlation_id
from budgety.models.expense import Expense, Frequency, RecurringExpense
from budgety.services.storage import StorageError, StorageInterface
from budgety.utils.dates import add_months, add_years

logger = structlog.get_logger(__name__)


def advance_due_date(current: date, frequency: Frequency) -> date:
    """
    Step a due date forward by one frequency unit.

    Month and year steps clamp to the end of the target month, starting
    from ``current`` (so Jan 31 -> Feb 28 -> Mar 28).
    """
    if frequency == Frequency.DAILY:
        return current + timedelta(days=1)
    if frequency == Frequency.WEEKLY:
        return current + timedelta(days=7)
    if frequency == Frequency.MONTHLY:
        return add_months(current, 1)
    if frequency == Frequency.YEARLY:
        return add_years(current, 1)
    raise ValueError(f"Unknown frequency: {frequency}")


class ProcessingSummary(BaseModel):
    """Outcome of one processing pass."""
    run_date: date
    correlation_id: UUID
    selected: int = 0
    materialized: int = 0
    failed: int = 0
    failed_template_ids: list[UUID] = Field(default_factory=list)


class RecurringExpenseProcessor:
    """
    Runs one processing pass over the due templates.

    GUARANTEES:
    - A materialized expense is dated at the template's pre-advance due date
    - The amount is copied as stored, never re-truncated
    - A template is never advanced without its expense having been saved
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger(storage)

    async def process_due(
        self,
        today: date,
        correlation_id: Optional[UUID] = None,
    ) -> ProcessingSummary:
        """
        Materialize every template due on ``today``.

        Args:
            today: Calendar date in the scheduler timezone
            correlation_id: Ties this pass's audit events together

        Returns:
            ProcessingSummary with per-outcome counts
        """
        correlation_id = correlation_id or create_correlation_id()
        templates = await self._storage.list_due_recurring(today)

        summary = ProcessingSummary(
            run_date=today,
            correlation_id=correlation_id,
            selected=len(templates),
        )
        logger.info(
            f"Processing {len(templates)} recurring expense(s)",
            run_date=today.isoformat(),
            correlation_id=str(correlation_id),
        )

        for template in templates:
            if await self._process_one(template, correlation_id):
                summary.materialized += 1
            else:
                summary.failed += 1
                summary.failed_template_ids.append(template.id)

        logger.info(
            "recurring_pass_finished",
            run_date=today.isoformat(),
            selected=summary.selected,
            materialized=summary.materialized,
            failed=summary.failed,
            correlation_id=str(correlation_id),
        )
        return summary

    async def _process_one(self, template: RecurringExpense, correlation_id: UUID) -> bool:
        due_date = template.next_due_date
        expense: Optional[Expense] = None

        try:
            next_due_date = advance_due_date(due_date, template.frequency)
            expense = await self._storage.save_expense(Expense(
                amount=template.amount,
                description=template.description,
                expense_date=due_date,
                category_id=template.category_id,
                family_id=template.family_id,
                created_by_id=template.created_by_id,
            ))
            if not await self._storage.set_next_due_date(template.id, next_due_date):
                raise StorageError(f"Recurring expense {template.id} vanished before advancing")
        except Exception as e:
            logger.error(
                "recurring_expense_failed",
                template_id=str(template.id),
                error=str(e),
                expense_created=expense is not None,
                correlation_id=str(correlation_id),
            )
            await self._audit_logger.log_recurring_failed(
                template_id=template.id,
                family_id=template.family_id,
                error_message=str(e),
                correlation_id=correlation_id,
                expense_created=expense is not None,
            )
            return False

        await self._audit_logger.log_recurring_materialized(
            template_id=template.id,
            family_id=template.family_id,
            expense_id=expense.id,
            due_date=due_date,
            next_due_date=next_due_date,
            correlation_id=correlation_id,
        )
        return True
