"""Budget routes."""

from uuid import UUID

from fastapi import APIRouter, Query

from budgety.api.dependencies import FamilyAdminDep, FamilyMemberDep, Services
from budgety.models.budget import (
    BudgetOverview,
    CategoryBudgetsUpsert,
    CategoryBudgetView,
    OverallBudgetUpdate,
)
from budgety.models.family import Family

router = APIRouter(prefix="/families/{family_id}/budgets", tags=["budgets"])


@router.get("", response_model=BudgetOverview)
async def get_budgets(
    family_id: UUID,
    member: FamilyMemberDep,
    services: Services,
    month: str = Query(...),
):
    return await services.budgets.get_budgets(family_id, month)


@router.put("", response_model=Family)
async def set_overall_budget(
    family_id: UUID,
    data: OverallBudgetUpdate,
    admin: FamilyAdminDep,
    services: Services,
):
    return await services.budgets.set_overall_budget(family_id, admin.user_id, data.monthly_budget)


@router.put("/categories", response_model=list[CategoryBudgetView])
async def upsert_category_budgets(
    family_id: UUID,
    data: CategoryBudgetsUpsert,
    admin: FamilyAdminDep,
    services: Services,
):
    return await services.budgets.upsert_category_budgets(family_id, admin.user_id, data)
