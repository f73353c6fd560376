"""Scheduled jobs: the daily recurring-expense pass."""

from budgety.jobs.recurring import ProcessingSummary, RecurringExpenseProcessor, advance_due_date
from budgety.jobs.scheduler import DailyJobRunner, local_today, seconds_until_next_midnight

__all__ = [
    "DailyJobRunner",
    "ProcessingSummary",
    "RecurringExpenseProcessor",
    "advance_due_date",
    "local_today",
    "seconds_until_next_midnight",
]
