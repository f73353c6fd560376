"""Category routes. Default categories are visible to every family and read-only."""

from uuid import UUID

from fastapi import APIRouter, status

from budgety.api.dependencies import FamilyAdminDep, FamilyMemberDep, Services
from budgety.models.budget import Category, CategoryCreate, CategoryUpdate

router = APIRouter(prefix="/families/{family_id}/categories", tags=["categories"])


@router.get("", response_model=list[Category])
async def list_categories(family_id: UUID, member: FamilyMemberDep, services: Services):
    return await services.categories.list_categories(family_id)


@router.post("", response_model=Category, status_code=status.HTTP_201_CREATED)
async def create_category(
    family_id: UUID,
    data: CategoryCreate,
    admin: FamilyAdminDep,
    services: Services,
):
    return await services.categories.create_category(family_id, data)


@router.patch("/{category_id}", response_model=Category)
async def update_category(
    family_id: UUID,
    category_id: UUID,
    changes: CategoryUpdate,
    admin: FamilyAdminDep,
    services: Services,
):
    return await services.categories.update_category(family_id, category_id, changes)


@router.delete("/{category_id}", response_model=Category)
async def delete_category(
    family_id: UUID,
    category_id: UUID,
    admin: FamilyAdminDep,
    services: Services,
):
    return await services.categories.delete_category(family_id, category_id)
