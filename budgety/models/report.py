"""
Report Models

Read-only shapes returned by the report endpoints. Amounts are raw sums of
stored (already truncated) values; only the percentage fields are rounded,
half-up to one decimal.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from pydantic import Field

from budgety.models.common import ApiModel, Money
from budgety.models.expense import ExpenseView


class CategoryAmount(ApiModel):
    category_id: UUID
    name: str
    icon: Optional[str] = None
    amount: Money


class MemberSpendingEntry(ApiModel):
    user_id: UUID
    name: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    total_spent: Money
    percent_of_total: float = Field(ge=0)
    top_categories: list[CategoryAmount] = Field(default_factory=list)


class MemberSpendingReport(ApiModel):
    month: str
    total_budget: Money
    total_spent: Money
    utilization_percent: float = Field(ge=0)
    members: list[MemberSpendingEntry] = Field(default_factory=list)


class CategoryUtilization(ApiModel):
    category_id: UUID
    name: str
    icon: Optional[str] = None
    budgeted: Money
    spent: Money
    utilization_percent: float = Field(ge=0)


class BudgetUtilizationReport(ApiModel):
    month: str
    categories: list[CategoryUtilization] = Field(default_factory=list)


class CategoryShare(ApiModel):
    category_id: UUID
    name: str
    icon: Optional[str] = None
    amount: Money
    percent: float = Field(ge=0)


class CategorySplitReport(ApiModel):
    month: str
    categories: list[CategoryShare] = Field(default_factory=list)


class DayAmount(ApiModel):
    day: date = Field(..., alias="date")
    amount: Money


class DailySpendingReport(ApiModel):
    month: str
    days: list[DayAmount] = Field(default_factory=list)


class MonthAmount(ApiModel):
    month: str
    amount: Money


class MonthlyTrendReport(ApiModel):
    months: list[MonthAmount] = Field(default_factory=list)


class TopExpensesReport(ApiModel):
    month: str
    expenses: list[ExpenseView] = Field(default_factory=list)
