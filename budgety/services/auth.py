"""
Session lookup and family permission checks.

Authentication itself belongs to the external identity provider. This
module only resolves an opaque session token to a user and answers the
two authorization questions every family-scoped operation asks:
is the caller a member, and is their role high enough.
"""

import secrets
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

from budgety.models.common import utcnow
from budgety.models.family import AuthSession, FamilyMember, FamilyRole, User
from budgety.services.errors import ForbiddenError, NotFoundError, UnauthenticatedError
from budgety.services.storage import StorageInterface


def ensure_creator_or_admin(member: FamilyMember, created_by_id: UUID) -> None:
    """
    Gate edits on expenses and recurring templates.

    Raises:
        ForbiddenError: Unless the caller created the record or is an ADMIN
    """
    if created_by_id != member.user_id and not member.role.satisfies(FamilyRole.ADMIN):
        raise ForbiddenError("Only the creator or admin can edit")


class AccessService:
    """Resolves sessions and family memberships."""

    def __init__(self, storage: StorageInterface):
        self._storage = storage

    async def authenticate(self, token: Optional[str], now: Optional[datetime] = None) -> User:
        """
        Resolve a session token to its user.

        Raises:
            UnauthenticatedError: If the token is missing, unknown or expired
        """
        if not token:
            raise UnauthenticatedError("Authentication required")

        session = await self._storage.get_session(token)
        if session is None or session.is_expired(now or utcnow()):
            raise UnauthenticatedError("Invalid or expired session")

        user = await self._storage.get_user(session.user_id)
        if user is None:
            raise UnauthenticatedError("Invalid or expired session")
        return user

    async def require_member(
        self,
        family_id: UUID,
        user_id: UUID,
        required: FamilyRole = FamilyRole.MEMBER,
    ) -> FamilyMember:
        """
        Return the caller's membership if it grants ``required``.

        Raises:
            ForbiddenError: If the user is not a member or the role is too low
        """
        member = await self._storage.get_membership(family_id, user_id)
        if member is None:
            raise ForbiddenError("Not a member of this family")
        if not member.role.satisfies(required):
            raise ForbiddenError("Admin access required")
        return member

    async def issue_session(self, user_id: UUID, ttl: timedelta) -> AuthSession:
        """
        Create a session for a user.

        Only the development CLI calls this; in production sessions come
        from the identity provider.
        """
        if await self._storage.get_user(user_id) is None:
            raise NotFoundError("User not found")
        now = utcnow()
        session = AuthSession(
            token=secrets.token_urlsafe(32),
            user_id=user_id,
            expires_at=now + ttl,
            created_at=now,
        )
        return await self._storage.save_session(session)
