"""
Category and budget models.

Categories are either global defaults (``family_id`` is None) or owned by
one family. Budgets are an optional family-wide monthly figure (stored on
the family) plus per-category amounts for a given month.
"""

from typing import Optional
from uuid import UUID, uuid4

from pydantic import Field

from budgety.models.common import ApiModel, MonthString, NonNegativeMoney


DEFAULT_CATEGORIES: list[tuple[str, str]] = [
    ("Groceries/Kirana", "shopping-cart"),
    ("Rent", "home"),
    ("Utilities", "zap"),
    ("Transport", "car"),
    ("Medical/Health", "heart-pulse"),
    ("Education", "graduation-cap"),
    ("Dining Out", "utensils"),
    ("Entertainment", "film"),
    ("Shopping", "shopping-bag"),
    ("EMI/Loans", "landmark"),
    ("Household Help", "hand-helping"),
    ("Mobile/Internet", "wifi"),
]


class Category(ApiModel):
    """An expense category."""

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    icon: Optional[str] = Field(default=None, max_length=50)
    is_default: bool = False
    family_id: Optional[UUID] = None

    def visible_to(self, family_id: UUID) -> bool:
        """Defaults are shared by every family; others only by their owner."""
        if self.is_default and self.family_id is None:
            return True
        return self.family_id == family_id


class CategoryRef(ApiModel):
    """Category summary embedded in expenses and reports."""

    id: UUID
    name: str
    icon: Optional[str] = None

    @classmethod
    def from_category(cls, category: Optional[Category], category_id: UUID) -> "CategoryRef":
        if category is None:
            return cls(id=category_id, name="")
        return cls(id=category.id, name=category.name, icon=category.icon)


class CategoryCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=100)
    icon: Optional[str] = Field(default=None, max_length=50)


class CategoryUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    icon: Optional[str] = Field(default=None, max_length=50)


class CategoryBudget(ApiModel):
    """Budgeted amount for one category in one month."""

    id: UUID = Field(default_factory=uuid4)
    family_id: UUID
    category_id: UUID
    month: MonthString
    amount: NonNegativeMoney


class CategoryBudgetView(ApiModel):
    id: UUID
    month: str
    amount: NonNegativeMoney
    category_id: UUID
    category: CategoryRef


class BudgetOverview(ApiModel):
    """Overall monthly budget and the category budgets of one month."""

    monthly_budget: Optional[NonNegativeMoney] = None
    category_budgets: list[CategoryBudgetView] = Field(default_factory=list)


class OverallBudgetUpdate(ApiModel):
    monthly_budget: NonNegativeMoney


class CategoryBudgetItem(ApiModel):
    category_id: UUID
    amount: NonNegativeMoney


class CategoryBudgetsUpsert(ApiModel):
    month: MonthString
    budgets: list[CategoryBudgetItem] = Field(default_factory=list)
