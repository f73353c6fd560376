"""
Family, membership and identity models.

A family is the tenant: every expense, budget and recurring template
belongs to exactly one. Users join families with a role; the role gate is
a small ordered enum rather than string comparisons.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import Field, field_validator

from budgety.models.common import ApiModel, NonNegativeMoney, utcnow


class FamilyRole(str, Enum):
    """
    Role of a user inside a family.

    Roles are ordered: MEMBER < ADMIN. Use ``satisfies`` for every
    permission check.
    """
    MEMBER = "MEMBER"
    ADMIN = "ADMIN"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    def satisfies(self, required: "FamilyRole") -> bool:
        """True if this role grants at least the required level."""
        return self.rank >= required.rank


_ROLE_RANK = {
    FamilyRole.MEMBER: 0,
    FamilyRole.ADMIN: 1,
}


# =============================================================================
# IDENTITY
# =============================================================================

class User(ApiModel):
    """A user known to the identity provider."""

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., min_length=3, max_length=255)
    display_name: Optional[str] = Field(default=None, max_length=100)
    avatar_url: Optional[str] = Field(default=None, max_length=500)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class UserRef(ApiModel):
    """Public summary of a user, embedded in expenses."""

    id: UUID
    name: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None

    @classmethod
    def from_user(cls, user: Optional[User], user_id: UUID) -> "UserRef":
        if user is None:
            return cls(id=user_id, name="")
        return cls(
            id=user.id,
            name=user.name,
            display_name=user.display_name,
            avatar_url=user.avatar_url,
        )


class UserUpdate(ApiModel):
    """Profile fields a user may change on themselves."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    display_name: Optional[str] = Field(default=None, max_length=100)
    avatar_url: Optional[str] = Field(default=None, max_length=500)


class AuthSession(ApiModel):
    """
    An opaque session issued by the identity provider.

    The API never creates sessions on the request path; it only looks
    them up by token.
    """

    token: str = Field(..., min_length=16)
    user_id: UUID
    expires_at: datetime
    created_at: datetime = Field(default_factory=utcnow)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


# =============================================================================
# FAMILY
# =============================================================================

class Family(ApiModel):
    """A household sharing expenses and budgets."""

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=100)
    currency: str = Field(default="INR", min_length=3, max_length=3)
    monthly_budget: Optional[NonNegativeMoney] = None
    large_expense_threshold: Optional[NonNegativeMoney] = Field(
        default=None,
        description="Expenses at or above this amount notify the other members"
    )
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class FamilyMember(ApiModel):
    """Membership of one user in one family."""

    id: UUID = Field(default_factory=uuid4)
    family_id: UUID
    user_id: UUID
    role: FamilyRole = FamilyRole.MEMBER
    joined_at: datetime = Field(default_factory=utcnow)


class MemberUser(ApiModel):
    id: UUID
    name: str
    email: str
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None


class FamilyMemberView(ApiModel):
    """Membership as shown in the family detail."""

    id: UUID
    role: FamilyRole
    joined_at: datetime
    user_id: UUID
    user: Optional[MemberUser] = None


class FamilyDetail(Family):
    members: list[FamilyMemberView] = Field(default_factory=list)


class FamilyCreate(ApiModel):
    name: str = Field(..., min_length=1, max_length=100)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    monthly_budget: Optional[NonNegativeMoney] = None

    @field_validator('currency')
    @classmethod
    def uppercase_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class FamilyUpdate(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    monthly_budget: Optional[NonNegativeMoney] = None
    large_expense_threshold: Optional[NonNegativeMoney] = None

    @field_validator('currency')
    @classmethod
    def uppercase_currency(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v


class MemberRoleUpdate(ApiModel):
    role: FamilyRole


# =============================================================================
# INVITES
# =============================================================================

class Invite(ApiModel):
    """
    A one-time code letting a user join a family as MEMBER.

    Codes are 6 uppercase hex characters and expire after a configurable
    number of hours.
    """

    id: UUID = Field(default_factory=uuid4)
    code: str = Field(..., min_length=6, max_length=6)
    family_id: UUID
    created_by: UUID
    expires_at: datetime
    used_by: Optional[UUID] = None
    used_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utcnow)

    def is_redeemable(self, now: datetime) -> bool:
        return self.used_by is None and self.expires_at > now


class InviteView(ApiModel):
    code: str
    expires_at: datetime


class JoinFamilyRequest(ApiModel):
    code: str = Field(..., min_length=6, max_length=6)

    @field_validator('code')
    @classmethod
    def uppercase_code(cls, v: str) -> str:
        return v.upper()
