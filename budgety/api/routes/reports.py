"""
Report routes.

Month parameters are validated by the report service, so a malformed
month is a 400 like any other rejected request.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query

from budgety.api.dependencies import FamilyMemberDep, Services
from budgety.models.report import (
    BudgetUtilizationReport,
    CategorySplitReport,
    DailySpendingReport,
    MemberSpendingReport,
    MonthlyTrendReport,
    TopExpensesReport,
)

router = APIRouter(prefix="/families/{family_id}/reports", tags=["reports"])


@router.get("/member-spending", response_model=MemberSpendingReport)
async def member_spending(
    family_id: UUID,
    member: FamilyMemberDep,
    services: Services,
    month: str = Query(...),
):
    return await services.reports.member_spending(family_id, month)


@router.get("/budget-utilization", response_model=BudgetUtilizationReport)
async def budget_utilization(
    family_id: UUID,
    member: FamilyMemberDep,
    services: Services,
    month: str = Query(...),
):
    return await services.reports.budget_utilization(family_id, month)


@router.get("/category-split", response_model=CategorySplitReport)
async def category_split(
    family_id: UUID,
    member: FamilyMemberDep,
    services: Services,
    month: str = Query(...),
):
    return await services.reports.category_split(family_id, month)


@router.get("/daily-spending", response_model=DailySpendingReport)
async def daily_spending(
    family_id: UUID,
    member: FamilyMemberDep,
    services: Services,
    month: str = Query(...),
):
    return await services.reports.daily_spending(family_id, month)


@router.get("/monthly-trend", response_model=MonthlyTrendReport)
async def monthly_trend(
    family_id: UUID,
    member: FamilyMemberDep,
    services: Services,
    months: Optional[int] = Query(None),
):
    return await services.reports.monthly_trend(family_id, months)


@router.get("/top-expenses", response_model=TopExpensesReport)
async def top_expenses(
    family_id: UUID,
    member: FamilyMemberDep,
    services: Services,
    month: str = Query(...),
    limit: Optional[int] = Query(None),
):
    return await services.reports.top_expenses(family_id, month, limit)
