"""
In-app notifications.

Notifications are side effects of other actions (a large expense, a new
member). Producing them must never fail the action that triggered them,
so ``notify_family_members`` logs storage errors instead of raising.
"""

from typing import Any, Optional
from uuid import UUID

import structlog

from budgety.models.notification import Notification, NotificationPage, UnreadCount
from budgety.services.errors import NotFoundError
from budgety.services.storage import StorageError, StorageInterface

logger = structlog.get_logger(__name__)


class NotificationService:
    def __init__(self, storage: StorageInterface):
        self._storage = storage

    async def create(
        self,
        user_id: UUID,
        type: str,
        title: str,
        body: str,
        family_id: Optional[UUID] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> Notification:
        notification = Notification(
            type=type,
            title=title,
            body=body,
            user_id=user_id,
            family_id=family_id,
            data=data,
        )
        saved = await self._storage.save_notifications([notification])
        return saved[0]

    async def list_for_user(
        self,
        user_id: UUID,
        limit: int = 20,
        cursor: Optional[UUID] = None,
        unread_only: bool = False,
    ) -> NotificationPage:
        data, total = await self._storage.list_notifications(
            user_id, limit=limit, cursor=cursor, unread_only=unread_only,
        )
        return NotificationPage(data=data, total=total)

    async def unread_count(self, user_id: UUID) -> UnreadCount:
        return UnreadCount(count=await self._storage.count_unread(user_id))

    async def _get_owned(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self._storage.get_notification(notification_id)
        if notification is None or notification.user_id != user_id:
            raise NotFoundError("Notification not found")
        return notification

    async def mark_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self._get_owned(notification_id, user_id)
        await self._storage.mark_read(notification_id)
        notification.is_read = True
        return notification

    async def mark_all_read(self, user_id: UUID) -> int:
        return await self._storage.mark_all_read(user_id)

    async def dismiss(self, notification_id: UUID, user_id: UUID) -> Notification:
        notification = await self._get_owned(notification_id, user_id)
        await self._storage.delete_notification(notification_id)
        return notification

    async def notify_family_members(
        self,
        family_id: UUID,
        type: str,
        title: str,
        body: str,
        data: Optional[dict[str, Any]] = None,
        exclude_user_id: Optional[UUID] = None,
    ) -> list[Notification]:
        """
        Send one notification to every member of a family except
        ``exclude_user_id``.

        Returns the stored notifications; an empty list if storage failed.
        """
        try:
            members = await self._storage.list_members(family_id)
            notifications = [
                Notification(
                    type=type,
                    title=title,
                    body=body,
                    user_id=member.user_id,
                    family_id=family_id,
                    data=data,
                )
                for member in members
                if member.user_id != exclude_user_id
            ]
            return await self._storage.save_notifications(notifications)
        except StorageError as e:
            logger.error(
                "family_notification_failed",
                family_id=str(family_id),
                notification_type=type,
                error=str(e),
            )
            return []
