"""Family, membership and invite routes."""

from uuid import UUID

from fastapi import APIRouter, Response, status

from budgety.api.dependencies import CurrentUser, FamilyAdminDep, FamilyMemberDep, Services
from budgety.models.family import (
    Family,
    FamilyCreate,
    FamilyDetail,
    FamilyMemberView,
    FamilyUpdate,
    InviteView,
    JoinFamilyRequest,
    MemberRoleUpdate,
)

router = APIRouter(prefix="/families", tags=["families"])


@router.post("", response_model=Family, status_code=status.HTTP_201_CREATED)
async def create_family(data: FamilyCreate, user: CurrentUser, services: Services):
    """Create a family; the caller becomes its first ADMIN."""
    return await services.families.create_family(user.id, data)


@router.get("", response_model=list[Family])
async def list_families(user: CurrentUser, services: Services):
    return await services.families.list_families(user.id)


@router.post("/join", response_model=Family)
async def join_family(data: JoinFamilyRequest, user: CurrentUser, services: Services):
    return await services.families.join_family(user.id, data.code)


@router.get("/{family_id}", response_model=FamilyDetail)
async def get_family(family_id: UUID, member: FamilyMemberDep, services: Services):
    return await services.families.get_family_detail(family_id)


@router.patch("/{family_id}", response_model=Family)
async def update_family(
    family_id: UUID,
    changes: FamilyUpdate,
    admin: FamilyAdminDep,
    services: Services,
):
    return await services.families.update_family(family_id, admin.user_id, changes)


@router.delete("/{family_id}", response_model=Family)
async def delete_family(family_id: UUID, admin: FamilyAdminDep, services: Services):
    return await services.families.delete_family(family_id, admin.user_id)


@router.patch("/{family_id}/members/{member_id}", response_model=FamilyMemberView)
async def update_member_role(
    family_id: UUID,
    member_id: UUID,
    data: MemberRoleUpdate,
    admin: FamilyAdminDep,
    services: Services,
):
    return await services.families.update_member_role(family_id, member_id, data.role, admin.user_id)


@router.delete(
    "/{family_id}/members/{member_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
)
async def remove_member(
    family_id: UUID,
    member_id: UUID,
    admin: FamilyAdminDep,
    services: Services,
):
    await services.families.remove_member(family_id, member_id, admin.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{family_id}/invites",
    response_model=InviteView,
    status_code=status.HTTP_201_CREATED,
)
async def create_invite(family_id: UUID, admin: FamilyAdminDep, services: Services):
    return await services.families.create_invite(family_id, admin.user_id)
