"""In-app notification routes for the current user."""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Query

from budgety.api.dependencies import CurrentUser, Services
from budgety.models.notification import Notification, NotificationPage, UnreadCount

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationPage)
async def list_notifications(
    user: CurrentUser,
    services: Services,
    limit: int = Query(20, ge=1, le=100),
    cursor: Optional[UUID] = Query(None),
    unread_only: bool = Query(False, alias="unreadOnly"),
):
    """Newest first; pass the last id of a page as ``cursor`` for the next one."""
    return await services.notifications.list_for_user(user.id, limit, cursor, unread_only)


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(user: CurrentUser, services: Services):
    return await services.notifications.unread_count(user.id)


@router.patch("/read-all")
async def mark_all_read(user: CurrentUser, services: Services):
    await services.notifications.mark_all_read(user.id)
    return {"success": True}


@router.patch("/{notification_id}/read", response_model=Notification)
async def mark_read(notification_id: UUID, user: CurrentUser, services: Services):
    return await services.notifications.mark_read(notification_id, user.id)


@router.delete("/{notification_id}", response_model=Notification)
async def dismiss(notification_id: UUID, user: CurrentUser, services: Services):
    return await services.notifications.dismiss(notification_id, user.id)
