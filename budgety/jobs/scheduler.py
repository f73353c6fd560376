"""
Daily Job Runner

One tick per calendar day at local midnight of the scheduler timezone.

DESIGN DECISION: The tick is an explicit, idempotent job.
1. ``run_once`` can be called by anything (the in-process loop, the CLI,
   an external cron) and claims the day's job lock first
2. The lock key is (job name, calendar date), so instances sharing a
   database run at most one tick per day between them
3. Tick failures are logged and audited, never raised to a caller that
   cannot act on them
"""

import asyncio
from datetime import date, datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

import structlog

from budgety.audit import AuditLogger, create_correlation_id
from budgety.config import SchedulerSettings, get_settings
from budgety.jobs.recurring import ProcessingSummary, RecurringExpenseProcessor
from budgety.models.audit import AuditEventType
from budgety.models.common import utcnow
from budgety.services.storage import StorageError, StorageInterface

logger = structlog.get_logger(__name__)


def local_today(now: datetime, tz: ZoneInfo) -> date:
    """Calendar date of ``now`` in ``tz`` (naive datetimes are taken as UTC)."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=ZoneInfo("UTC"))
    return now.astimezone(tz).date()


def seconds_until_next_midnight(now: datetime, tz: ZoneInfo) -> float:
    """Seconds from ``now`` until the next local midnight in ``tz``."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=ZoneInfo("UTC"))
    local = now.astimezone(tz)
    midnight = datetime.combine(local.date() + timedelta(days=1), datetime.min.time(), tzinfo=tz)
    return max((midnight - local).total_seconds(), 0.0)


class DailyJobRunner:
    """Runs the recurring-expense pass at most once per calendar day."""

    def __init__(
        self,
        storage: StorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[SchedulerSettings] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger(storage)
        self._settings = settings or get_settings().scheduler
        self._processor = RecurringExpenseProcessor(storage, self._audit_logger)

    @property
    def job_name(self) -> str:
        return self._settings.job_name

    async def run_once(self, now: Optional[datetime] = None) -> Optional[ProcessingSummary]:
        """
        Run today's tick unless another caller already claimed it.

        Returns:
            The pass summary, or None if the tick was skipped or failed
        """
        today = local_today(now or utcnow(), self._settings.tzinfo)
        correlation_id = create_correlation_id()

        try:
            claimed = await self._storage.acquire(self.job_name, today.isoformat())
        except StorageError as e:
            logger.error("tick_lock_failed", job_name=self.job_name, run_date=today.isoformat(), error=str(e))
            await self._audit_logger.log_error(
                "tick_lock_failed", str(e),
                details={"job_name": self.job_name, "run_date": today.isoformat()},
                correlation_id=correlation_id,
            )
            return None

        if not claimed:
            logger.info("tick_skipped", job_name=self.job_name, run_date=today.isoformat())
            await self._audit_logger.log_tick(
                AuditEventType.TICK_SKIPPED, self.job_name, today, correlation_id,
                details={"reason": "already claimed"},
            )
            return None

        await self._audit_logger.log_tick(
            AuditEventType.TICK_STARTED, self.job_name, today, correlation_id,
        )

        try:
            summary = await self._processor.process_due(today, correlation_id)
        except StorageError as e:
            # Selecting the due templates failed; tomorrow's tick retries.
            logger.error("tick_failed", job_name=self.job_name, run_date=today.isoformat(), error=str(e))
            await self._audit_logger.log_error(
                "tick_failed", str(e),
                details={"job_name": self.job_name, "run_date": today.isoformat()},
                correlation_id=correlation_id,
            )
            return None

        await self._audit_logger.log_tick(
            AuditEventType.TICK_COMPLETED, self.job_name, today, correlation_id,
            details={
                "selected": summary.selected,
                "materialized": summary.materialized,
                "failed": summary.failed,
            },
        )
        return summary

    async def run_forever(self) -> None:
        """Sleep until each local midnight and run the tick. Cancel to stop."""
        tz = self._settings.tzinfo
        logger.info("scheduler_started", job_name=self.job_name, timezone=self._settings.timezone)
        while True:
            delay = seconds_until_next_midnight(utcnow(), tz)
            logger.debug("scheduler_sleeping", seconds=round(delay))
            await asyncio.sleep(delay)
            await self.run_once()
