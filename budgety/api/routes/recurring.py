"""Recurring expense template routes."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query, status

from budgety.api.dependencies import FamilyMemberDep, Services
from budgety.models.common import Page
from budgety.models.expense import (
    RecurringExpenseCreate,
    RecurringExpenseUpdate,
    RecurringExpenseView,
)

router = APIRouter(prefix="/families/{family_id}/recurring-expenses", tags=["recurring-expenses"])


@router.post("", response_model=RecurringExpenseView, status_code=status.HTTP_201_CREATED)
async def create_recurring(
    family_id: UUID,
    data: RecurringExpenseCreate,
    member: FamilyMemberDep,
    services: Services,
):
    return await services.recurring.create_recurring(family_id, member, data)


@router.get("", response_model=Page[RecurringExpenseView])
async def list_recurring(
    family_id: UUID,
    member: FamilyMemberDep,
    services: Services,
    page: Optional[int] = Query(None, ge=1),
    limit: Optional[int] = Query(None, ge=1),
):
    return await services.recurring.list_recurring(family_id, page, limit)


@router.patch("/{template_id}", response_model=RecurringExpenseView)
async def update_recurring(
    family_id: UUID,
    template_id: UUID,
    changes: RecurringExpenseUpdate,
    member: FamilyMemberDep,
    services: Services,
):
    """Only the creator or an ADMIN may edit a template."""
    return await services.recurring.update_recurring(family_id, template_id, member, changes)


@router.delete("/{template_id}", response_model=RecurringExpenseView)
async def delete_recurring(
    family_id: UUID,
    template_id: UUID,
    member: FamilyMemberDep,
    services: Services,
):
    return await services.recurring.delete_recurring(family_id, template_id, member)
