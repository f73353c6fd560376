"""
Expense and Recurring Expense Models

An Expense is a financial fact: an amount spent on a given economic date,
in a category, by a family member. It is created either directly by a
user or by the recurring engine on behalf of a template.

A RecurringExpense is a template. ``next_due_date`` is its cursor: it
starts at ``start_date`` and only ever moves forward, one frequency step
per processing pass in which the template was due.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import Field, model_validator

from budgety.models.budget import CategoryRef
from budgety.models.common import ApiModel, Money, PositiveMoney, utcnow
from budgety.models.family import UserRef


class Frequency(str, Enum):
    """How often a recurring template produces an expense."""
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class ExpenseSort(str, Enum):
    """Sort keys accepted by the expense list (always newest first)."""
    DATE = "date"
    CREATED_AT = "createdAt"


# =============================================================================
# EXPENSE
# =============================================================================

class Expense(ApiModel):
    """A stored expense."""

    id: UUID = Field(default_factory=uuid4)
    amount: Money
    description: str = Field(..., min_length=1, max_length=500)
    expense_date: date = Field(
        ...,
        alias="date",
        description="Economic date of the charge, not the creation time"
    )
    category_id: UUID
    family_id: UUID
    created_by_id: UUID
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ExpenseView(Expense):
    """Expense with its category and creator resolved."""

    category: CategoryRef
    created_by: UserRef


class ExpenseCreate(ApiModel):
    amount: PositiveMoney
    description: str = Field(..., min_length=1, max_length=500)
    expense_date: date = Field(..., alias="date")
    category_id: UUID


class ExpenseUpdate(ApiModel):
    amount: Optional[PositiveMoney] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    expense_date: Optional[date] = Field(default=None, alias="date")
    category_id: Optional[UUID] = None


class ExpenseFilter(ApiModel):
    """Filters for the expense list; date bounds are inclusive."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    category_id: Optional[UUID] = None
    created_by_id: Optional[UUID] = None
    sort: ExpenseSort = ExpenseSort.DATE


# =============================================================================
# RECURRING EXPENSE
# =============================================================================

class RecurringExpense(ApiModel):
    """A template for a repeating charge."""

    id: UUID = Field(default_factory=uuid4)
    amount: Money
    description: str = Field(..., min_length=1, max_length=500)
    frequency: Frequency
    start_date: date
    end_date: Optional[date] = None
    next_due_date: date
    is_active: bool = True
    family_id: UUID
    category_id: UUID
    created_by_id: UUID
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def is_due(self, today: date) -> bool:
        """
        True if the template must be materialized on ``today``.

        Inactive templates and templates whose end date has passed are
        never due, whatever their cursor says.
        """
        if not self.is_active:
            return False
        if self.next_due_date > today:
            return False
        return self.end_date is None or self.end_date >= today


class RecurringExpenseView(RecurringExpense):
    category: CategoryRef
    created_by: UserRef


class RecurringExpenseCreate(ApiModel):
    amount: PositiveMoney
    description: str = Field(..., min_length=1, max_length=500)
    frequency: Frequency
    start_date: date
    end_date: Optional[date] = None
    category_id: UUID

    @model_validator(mode='after')
    def validate_dates(self) -> 'RecurringExpenseCreate':
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")
        return self


class RecurringExpenseUpdate(ApiModel):
    """Partial update; fields left out (or null) are not touched."""

    amount: Optional[PositiveMoney] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    frequency: Optional[Frequency] = None
    end_date: Optional[date] = None
    category_id: Optional[UUID] = None
    is_active: Optional[bool] = None
