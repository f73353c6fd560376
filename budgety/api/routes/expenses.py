"""Expense routes."""

from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from budgety.api.dependencies import FamilyMemberDep, Services
from budgety.models.common import Page
from budgety.models.expense import (
    ExpenseCreate,
    ExpenseFilter,
    ExpenseSort,
    ExpenseUpdate,
    ExpenseView,
)

router = APIRouter(prefix="/families/{family_id}/expenses", tags=["expenses"])


@router.post("", response_model=ExpenseView, status_code=status.HTTP_201_CREATED)
async def create_expense(
    family_id: UUID,
    data: ExpenseCreate,
    member: FamilyMemberDep,
    services: Services,
):
    return await services.expenses.create_expense(family_id, member, data)


@router.get("", response_model=Page[ExpenseView])
async def list_expenses(
    family_id: UUID,
    member: FamilyMemberDep,
    services: Services,
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    start_date: Optional[date] = Query(None, alias="startDate"),
    end_date: Optional[date] = Query(None, alias="endDate"),
    category_id: Optional[UUID] = Query(None, alias="categoryId"),
    created_by_id: Optional[UUID] = Query(None, alias="createdById"),
    sort: ExpenseSort = Query(ExpenseSort.DATE),
):
    """List expenses newest first; ``limit`` is capped server-side."""
    filters = ExpenseFilter(
        start_date=start_date,
        end_date=end_date,
        category_id=category_id,
        created_by_id=created_by_id,
        sort=sort,
    )
    return await services.expenses.list_expenses(family_id, filters, page, limit)


@router.get("/{expense_id}", response_model=ExpenseView)
async def get_expense(
    family_id: UUID,
    expense_id: UUID,
    member: FamilyMemberDep,
    services: Services,
):
    return await services.expenses.get_expense(family_id, expense_id)


@router.patch("/{expense_id}", response_model=ExpenseView)
async def update_expense(
    family_id: UUID,
    expense_id: UUID,
    changes: ExpenseUpdate,
    member: FamilyMemberDep,
    services: Services,
):
    return await services.expenses.update_expense(family_id, expense_id, member, changes)


@router.delete("/{expense_id}", response_model=ExpenseView)
async def delete_expense(
    family_id: UUID,
    expense_id: UUID,
    member: FamilyMemberDep,
    services: Services,
):
    return await services.expenses.delete_expense(family_id, expense_id, member)
