"""In-app notification models."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import Field

from budgety.models.common import ApiModel, utcnow


class NotificationType(str, Enum):
    LARGE_EXPENSE = "LARGE_EXPENSE"
    MEMBER_JOINED = "MEMBER_JOINED"


class Notification(ApiModel):
    id: UUID = Field(default_factory=uuid4)
    type: str = Field(..., min_length=1, max_length=50)
    title: str = Field(..., min_length=1, max_length=200)
    body: str = Field(..., max_length=1000)
    data: Optional[dict[str, Any]] = None
    is_read: bool = False
    user_id: UUID
    family_id: Optional[UUID] = None
    created_at: datetime = Field(default_factory=utcnow)


class NotificationPage(ApiModel):
    """Cursor-paginated notifications; ``total`` counts the whole filter."""

    data: list[Notification]
    total: int = Field(ge=0)


class UnreadCount(ApiModel):
    count: int = Field(ge=0)
