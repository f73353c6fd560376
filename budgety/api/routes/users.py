"""Current-user profile routes."""

from fastapi import APIRouter

from budgety.api.dependencies import CurrentUser, Services
from budgety.models.family import User, UserUpdate

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=User)
async def get_me(user: CurrentUser):
    return user


@router.patch("/me", response_model=User)
async def update_me(changes: UserUpdate, user: CurrentUser, services: Services):
    return await services.users.update_user(user.id, changes)
