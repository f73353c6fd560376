"""
Family Management

A family is the tenant boundary. This service owns:
1. Creating a family (the creator becomes its first ADMIN, atomically)
2. Invites: short one-time codes with an expiry
3. Joining through an invite (atomic with marking the invite used)
4. Member roles, with the rule that a family always keeps an ADMIN

Role checks for ADMIN-only operations happen before these methods are
called (see ``AccessService.require_member``). The "last admin" rule is a
business rule, so it lives here.
"""

import secrets
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from budgety.audit import AuditLogger
from budgety.config import AppSettings, get_settings
from budgety.models.audit import AuditEventType
from budgety.models.common import utcnow
from budgety.models.family import (
    Family,
    FamilyCreate,
    FamilyDetail,
    FamilyMember,
    FamilyMemberView,
    FamilyRole,
    FamilyUpdate,
    Invite,
    InviteView,
    MemberUser,
)
from budgety.models.notification import NotificationType
from budgety.services.errors import InvalidRequestError, NotFoundError
from budgety.services.notifications import NotificationService
from budgety.services.storage import DuplicateError, StorageInterface

INVITE_CODE_ATTEMPTS = 5


def generate_invite_code() -> str:
    """Six uppercase hex characters."""
    return secrets.token_hex(3).upper()


class FamilyService:
    """Families, members and invites."""

    def __init__(
        self,
        storage: StorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        notifications: Optional[NotificationService] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._notifications = notifications or NotificationService(storage)
        self._settings = settings or get_settings().app

    async def get_family(self, family_id: UUID) -> Family:
        family = await self._storage.get_family(family_id)
        if family is None:
            raise NotFoundError("Family not found")
        return family

    async def create_family(self, user_id: UUID, data: FamilyCreate) -> Family:
        """
        Create a family with the caller as its ADMIN.

        Family and membership are stored in one transaction.
        """
        family = Family(
            name=data.name,
            currency=data.currency or self._settings.default_currency,
            monthly_budget=data.monthly_budget,
        )
        admin = FamilyMember(
            family_id=family.id,
            user_id=user_id,
            role=FamilyRole.ADMIN,
        )
        family = await self._storage.create_family(family, admin)

        if self._audit_logger:
            await self._audit_logger.log_family_created(family.id, family.name, user_id)
        return family

    async def list_families(self, user_id: UUID) -> list[Family]:
        return await self._storage.list_families_for_user(user_id)

    async def _member_views(self, members: list[FamilyMember]) -> list[FamilyMemberView]:
        users = await self._storage.get_users([m.user_id for m in members])
        views = []
        for member in members:
            user = users.get(member.user_id)
            views.append(FamilyMemberView(
                id=member.id,
                role=member.role,
                joined_at=member.joined_at,
                user_id=member.user_id,
                user=MemberUser(
                    id=user.id,
                    name=user.name,
                    email=user.email,
                    display_name=user.display_name,
                    avatar_url=user.avatar_url,
                ) if user else None,
            ))
        return views

    async def get_family_detail(self, family_id: UUID) -> FamilyDetail:
        family = await self.get_family(family_id)
        members = await self._storage.list_members(family_id)
        return FamilyDetail(
            **family.model_dump(),
            members=await self._member_views(members),
        )

    async def update_family(
        self,
        family_id: UUID,
        actor_id: UUID,
        changes: FamilyUpdate,
    ) -> Family:
        family = await self.get_family(family_id)
        fields = changes.model_dump(exclude_none=True)
        if not fields:
            return family

        family = await self._storage.update_family(family.model_copy(update=fields))
        if self._audit_logger:
            await self._audit_logger.log_family_updated(family_id, actor_id, sorted(fields))
        return family

    async def delete_family(self, family_id: UUID, actor_id: UUID) -> Family:
        """Delete a family and everything it owns; returns the deleted family."""
        family = await self.get_family(family_id)
        await self._storage.delete_family(family_id)
        if self._audit_logger:
            await self._audit_logger.log_family_deleted(family_id, actor_id)
        return family

    # =========================================================================
    # INVITES
    # =========================================================================

    async def create_invite(self, family_id: UUID, actor_id: UUID) -> InviteView:
        """
        Issue a one-time invite code valid for ``invite_ttl_hours``.

        Codes are short, so a collision with an existing code is possible;
        we draw a new one a few times before giving up.
        """
        await self.get_family(family_id)
        expires_at = utcnow() + timedelta(hours=self._settings.invite_ttl_hours)

        for attempt in range(INVITE_CODE_ATTEMPTS):
            invite = Invite(
                code=generate_invite_code(),
                family_id=family_id,
                created_by=actor_id,
                expires_at=expires_at,
            )
            try:
                invite = await self._storage.save_invite(invite)
                break
            except DuplicateError:
                if attempt == INVITE_CODE_ATTEMPTS - 1:
                    raise

        if self._audit_logger:
            await self._audit_logger.log_invite_created(invite.id, family_id, actor_id)
        return InviteView(code=invite.code, expires_at=invite.expires_at)

    async def join_family(
        self,
        user_id: UUID,
        code: str,
        now: Optional[datetime] = None,
    ) -> Family:
        """
        Redeem an invite code and join its family as MEMBER.

        Raises:
            InvalidRequestError: If the code is unknown, used or expired,
                or the user already belongs to the family
        """
        now = now or utcnow()
        invite = await self._storage.get_invite_by_code(code.upper())
        if invite is None or not invite.is_redeemable(now):
            raise InvalidRequestError("Invalid or expired invite code")

        if await self._storage.get_membership(invite.family_id, user_id) is not None:
            raise InvalidRequestError("Already a member of this family")

        member = FamilyMember(
            family_id=invite.family_id,
            user_id=user_id,
            role=FamilyRole.MEMBER,
            joined_at=now,
        )
        try:
            joined = await self._storage.redeem_invite(invite.id, member, now)
        except DuplicateError:
            raise InvalidRequestError("Already a member of this family")
        if joined is None:
            raise InvalidRequestError("Invalid or expired invite code")

        family = await self.get_family(invite.family_id)

        if self._audit_logger:
            await self._audit_logger.log_member_changed(
                AuditEventType.MEMBER_JOINED, joined.id, family.id, user_id,
                role=joined.role.value,
            )

        user = await self._storage.get_user(user_id)
        name = (user.display_name or user.name) if user else "Someone"
        await self._notifications.notify_family_members(
            family_id=family.id,
            type=NotificationType.MEMBER_JOINED.value,
            title="New family member",
            body=f"{name} joined {family.name}",
            data={"memberId": str(joined.id), "userId": str(user_id)},
            exclude_user_id=user_id,
        )
        return family

    # =========================================================================
    # MEMBERS
    # =========================================================================

    async def _get_family_member(self, family_id: UUID, member_id: UUID) -> FamilyMember:
        member = await self._storage.get_member(member_id)
        if member is None or member.family_id != family_id:
            raise NotFoundError("Member not found")
        return member

    async def _admin_count(self, family_id: UUID) -> int:
        members = await self._storage.list_members(family_id)
        return sum(1 for m in members if m.role == FamilyRole.ADMIN)

    async def update_member_role(
        self,
        family_id: UUID,
        member_id: UUID,
        role: FamilyRole,
        actor_id: UUID,
    ) -> FamilyMemberView:
        member = await self._get_family_member(family_id, member_id)

        if member.role == FamilyRole.ADMIN and role != FamilyRole.ADMIN:
            if await self._admin_count(family_id) <= 1:
                raise InvalidRequestError("Cannot demote the last admin")

        member.role = role
        member = await self._storage.update_member(member)

        if self._audit_logger:
            await self._audit_logger.log_member_changed(
                AuditEventType.MEMBER_ROLE_UPDATED, member.id, family_id, actor_id,
                role=role.value,
            )
        views = await self._member_views([member])
        return views[0]

    async def remove_member(self, family_id: UUID, member_id: UUID, actor_id: UUID) -> None:
        member = await self._get_family_member(family_id, member_id)

        if member.role == FamilyRole.ADMIN:
            if await self._admin_count(family_id) <= 1:
                raise InvalidRequestError("Cannot remove the last admin")

        await self._storage.delete_member(member_id)

        if self._audit_logger:
            await self._audit_logger.log_member_changed(
                AuditEventType.MEMBER_REMOVED, member_id, family_id, actor_id,
            )
