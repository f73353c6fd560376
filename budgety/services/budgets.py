"""
Budgets.

A family has one optional overall monthly budget (stored on the family,
the same figure every month) and per-category budgets keyed by month.
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

from budgety.audit import AuditLogger
from budgety.models.audit import AuditEventType
from budgety.models.budget import (
    BudgetOverview,
    CategoryBudget,
    CategoryBudgetsUpsert,
    CategoryBudgetView,
    CategoryRef,
)
from budgety.models.family import Family
from budgety.services.categories import CategoryService
from budgety.services.errors import NotFoundError, require_month
from budgety.services.storage import StorageInterface


class BudgetService:
    def __init__(
        self,
        storage: StorageInterface,
        categories: Optional[CategoryService] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._categories = categories or CategoryService(storage)
        self._audit_logger = audit_logger

    async def _get_family(self, family_id: UUID) -> Family:
        family = await self._storage.get_family(family_id)
        if family is None:
            raise NotFoundError("Family not found")
        return family

    async def _views(self, budgets: list[CategoryBudget]) -> list[CategoryBudgetView]:
        categories = await self._storage.get_categories([b.category_id for b in budgets])
        return [
            CategoryBudgetView(
                id=budget.id,
                month=budget.month,
                amount=budget.amount,
                category_id=budget.category_id,
                category=CategoryRef.from_category(
                    categories.get(budget.category_id), budget.category_id,
                ),
            )
            for budget in budgets
        ]

    async def get_budgets(self, family_id: UUID, month: str) -> BudgetOverview:
        require_month(month)
        family = await self._get_family(family_id)
        budgets = await self._storage.list_category_budgets(family_id, month)
        return BudgetOverview(
            monthly_budget=family.monthly_budget,
            category_budgets=await self._views(budgets),
        )

    async def set_overall_budget(
        self,
        family_id: UUID,
        actor_id: UUID,
        amount: Decimal,
    ) -> Family:
        family = await self._get_family(family_id)
        family.monthly_budget = amount
        family = await self._storage.update_family(family)

        if self._audit_logger:
            await self._audit_logger.log_entity_changed(
                AuditEventType.BUDGET_UPDATED, "family", family_id, family_id, actor_id,
                details={"monthly_budget": str(amount)},
            )
        return family

    async def upsert_category_budgets(
        self,
        family_id: UUID,
        actor_id: UUID,
        data: CategoryBudgetsUpsert,
    ) -> list[CategoryBudgetView]:
        """
        Set the budget of each listed category for ``data.month``.

        Every category must be usable by the family; nothing is written
        if one isn't.
        """
        await self._get_family(family_id)
        for item in data.budgets:
            await self._categories.resolve_category(family_id, item.category_id)

        stored = []
        for item in data.budgets:
            stored.append(await self._storage.upsert_category_budget(CategoryBudget(
                family_id=family_id,
                category_id=item.category_id,
                month=data.month,
                amount=item.amount,
            )))

        if self._audit_logger:
            await self._audit_logger.log_entity_changed(
                AuditEventType.BUDGET_UPDATED, "family", family_id, family_id, actor_id,
                details={"month": data.month, "categories": len(stored)},
            )
        return await self._views(stored)
