"""
Abstract Storage Interface

DESIGN DECISION: We define abstract interfaces for storage operations.
This allows us to:
1. Run on SQLite locally and PostgreSQL in production through one code path
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interfaces are intentionally simple - we're not exposing an ORM.
Just the operations the services, the recurring engine and the reports need.

Every multi-statement unit that must be atomic (family creation, invite
redemption) is a single method here, so each backend can wrap it in its
own transaction.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from budgety.models.audit import AuditEvent
from budgety.models.budget import Category, CategoryBudget
from budgety.models.expense import Expense, ExpenseFilter, RecurringExpense
from budgety.models.family import (
    AuthSession,
    Family,
    FamilyMember,
    Invite,
    User,
)
from budgety.models.notification import Notification


class UserStorageInterface(ABC):
    """
    Users and the sessions issued for them.

    The identity provider owns both; the API reads sessions and lets users
    edit their own profile.
    """

    @abstractmethod
    async def save_user(self, user: User) -> User:
        """
        Insert a new user.

        Raises:
            DuplicateError: If the email is already registered
        """
        pass

    @abstractmethod
    async def get_user(self, user_id: UUID) -> Optional[User]:
        pass

    @abstractmethod
    async def get_users(self, user_ids: list[UUID]) -> dict[UUID, User]:
        """
        Fetch several users at once.

        Returns:
            Mapping of id to user; unknown ids are simply absent
        """
        pass

    @abstractmethod
    async def update_user(self, user: User) -> User:
        """
        Raises:
            RecordNotFoundError: If the user doesn't exist
        """
        pass

    @abstractmethod
    async def save_session(self, session: AuthSession) -> AuthSession:
        pass

    @abstractmethod
    async def get_session(self, token: str) -> Optional[AuthSession]:
        """
        Look up a session by its opaque token.

        Expired sessions are returned as stored; callers check expiry.
        """
        pass


class FamilyStorageInterface(ABC):
    """Families, memberships and invites."""

    @abstractmethod
    async def create_family(self, family: Family, admin: FamilyMember) -> Family:
        """
        Insert a family together with its first ADMIN membership.

        Both rows are written in one transaction: either both exist
        afterwards or neither does.

        Args:
            family: The new family
            admin: Membership of the creating user (role ADMIN)

        Returns:
            The stored family
        """
        pass

    @abstractmethod
    async def get_family(self, family_id: UUID) -> Optional[Family]:
        pass

    @abstractmethod
    async def list_families_for_user(self, user_id: UUID) -> list[Family]:
        """
        List every family the user is a member of, oldest membership first.
        """
        pass

    @abstractmethod
    async def update_family(self, family: Family) -> Family:
        """
        Raises:
            RecordNotFoundError: If the family doesn't exist
        """
        pass

    @abstractmethod
    async def delete_family(self, family_id: UUID) -> bool:
        """
        Delete a family and everything it owns (members, invites,
        categories, budgets, expenses, recurring templates, notifications).

        Returns:
            True if the family existed
        """
        pass

    @abstractmethod
    async def get_membership(self, family_id: UUID, user_id: UUID) -> Optional[FamilyMember]:
        pass

    @abstractmethod
    async def get_member(self, member_id: UUID) -> Optional[FamilyMember]:
        pass

    @abstractmethod
    async def list_members(self, family_id: UUID) -> list[FamilyMember]:
        """List memberships of a family in join order."""
        pass

    @abstractmethod
    async def update_member(self, member: FamilyMember) -> FamilyMember:
        pass

    @abstractmethod
    async def delete_member(self, member_id: UUID) -> bool:
        pass

    @abstractmethod
    async def save_invite(self, invite: Invite) -> Invite:
        """
        Raises:
            DuplicateError: If an invite with the same code exists
        """
        pass

    @abstractmethod
    async def get_invite_by_code(self, code: str) -> Optional[Invite]:
        """Most recent invite carrying this code, whatever its state."""
        pass

    @abstractmethod
    async def redeem_invite(
        self,
        invite_id: UUID,
        member: FamilyMember,
        used_at: datetime,
    ) -> Optional[FamilyMember]:
        """
        Add ``member`` to the invite's family and mark the invite used.

        Both writes happen in one transaction. The invite is re-checked
        inside it, so two users racing for one code cannot both win.

        Returns:
            The stored membership, or None if the invite was no longer
            redeemable (used or expired at ``used_at``)

        Raises:
            DuplicateError: If the user is already a member of the family
        """
        pass


class CategoryStorageInterface(ABC):
    """Categories and per-month category budgets."""

    @abstractmethod
    async def save_category(self, category: Category) -> Category:
        pass

    @abstractmethod
    async def get_category(self, category_id: UUID) -> Optional[Category]:
        pass

    @abstractmethod
    async def get_categories(self, category_ids: list[UUID]) -> dict[UUID, Category]:
        pass

    @abstractmethod
    async def list_categories(self, family_id: UUID) -> list[Category]:
        """
        List the global defaults plus the family's own categories,
        ordered by name.
        """
        pass

    @abstractmethod
    async def list_default_categories(self) -> list[Category]:
        pass

    @abstractmethod
    async def update_category(self, category: Category) -> Category:
        pass

    @abstractmethod
    async def category_in_use(self, category_id: UUID) -> bool:
        """True if any expense or recurring template references the category."""
        pass

    @abstractmethod
    async def delete_category(self, category_id: UUID) -> bool:
        """
        Delete a category together with its category budgets.

        Callers check ``category_in_use`` first.
        """
        pass

    @abstractmethod
    async def list_category_budgets(self, family_id: UUID, month: str) -> list[CategoryBudget]:
        pass

    @abstractmethod
    async def upsert_category_budget(self, budget: CategoryBudget) -> CategoryBudget:
        """
        Insert or update the budget keyed by (family, category, month).

        Returns:
            The stored budget; on update it keeps its original id
        """
        pass


class ExpenseStorageInterface(ABC):
    """Expenses and recurring expense templates."""

    @abstractmethod
    async def save_expense(self, expense: Expense) -> Expense:
        pass

    @abstractmethod
    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        pass

    @abstractmethod
    async def update_expense(self, expense: Expense) -> Expense:
        pass

    @abstractmethod
    async def delete_expense(self, expense_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_expenses(
        self,
        family_id: UUID,
        filters: ExpenseFilter,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Expense], int]:
        """
        List a family's expenses, newest first by the filter's sort key.

        Args:
            family_id: Family to list
            filters: Inclusive date bounds, category, creator and sort key
            limit: Maximum number of results
            offset: Number of results to skip

        Returns:
            The page of expenses and the total matching count
        """
        pass

    @abstractmethod
    async def list_expenses_between(
        self,
        family_id: UUID,
        start: date,
        end: date,
    ) -> list[Expense]:
        """
        All of a family's expenses dated in the half-open range [start, end).
        """
        pass

    @abstractmethod
    async def save_recurring(self, template: RecurringExpense) -> RecurringExpense:
        pass

    @abstractmethod
    async def get_recurring(self, template_id: UUID) -> Optional[RecurringExpense]:
        pass

    @abstractmethod
    async def update_recurring(self, template: RecurringExpense) -> RecurringExpense:
        """
        Save a template's editable fields.

        ``next_due_date`` is left as stored; only ``set_next_due_date``
        moves it. The returned template carries the stored cursor.
        """
        pass

    @abstractmethod
    async def delete_recurring(self, template_id: UUID) -> bool:
        pass

    @abstractmethod
    async def list_recurring(
        self,
        family_id: UUID,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[RecurringExpense], int]:
        """List a family's templates, newest first, with the total count."""
        pass

    @abstractmethod
    async def list_due_recurring(self, today: date) -> list[RecurringExpense]:
        """
        Select every template due on ``today`` across all families.

        Due means: active, next_due_date on or before today, and no end
        date or an end date on or after today.
        """
        pass

    @abstractmethod
    async def set_next_due_date(self, template_id: UUID, next_due_date: date) -> bool:
        """
        Persist a template's advanced cursor.

        Returns:
            True if the template still exists
        """
        pass


class NotificationStorageInterface(ABC):
    """Per-user in-app notifications."""

    @abstractmethod
    async def save_notifications(self, notifications: list[Notification]) -> list[Notification]:
        pass

    @abstractmethod
    async def get_notification(self, notification_id: UUID) -> Optional[Notification]:
        pass

    @abstractmethod
    async def list_notifications(
        self,
        user_id: UUID,
        limit: int = 20,
        cursor: Optional[UUID] = None,
        unread_only: bool = False,
    ) -> tuple[list[Notification], int]:
        """
        List a user's notifications, newest first.

        Args:
            user_id: Recipient
            limit: Maximum number of results
            cursor: Id of the last notification of the previous page;
                results start right after it
            unread_only: Only unread notifications

        Returns:
            The page and the total count for the filter (ignoring cursor)
        """
        pass

    @abstractmethod
    async def count_unread(self, user_id: UUID) -> int:
        pass

    @abstractmethod
    async def mark_read(self, notification_id: UUID) -> bool:
        pass

    @abstractmethod
    async def mark_all_read(self, user_id: UUID) -> int:
        """Returns the number of notifications changed."""
        pass

    @abstractmethod
    async def delete_notification(self, notification_id: UUID) -> bool:
        pass


class JobLockInterface(ABC):
    """
    Once-per-key mutual exclusion for scheduled jobs.

    Every instance sharing the store can try to claim the same key; only
    the first claim succeeds.
    """

    @abstractmethod
    async def acquire(self, job_name: str, run_key: str) -> bool:
        """
        Claim ``(job_name, run_key)``.

        Returns:
            True if this caller claimed it, False if it was already claimed
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one recurring tick).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Returns:
            List of recent events (newest first)
        """
        pass


class StorageInterface(
    UserStorageInterface,
    FamilyStorageInterface,
    CategoryStorageInterface,
    ExpenseStorageInterface,
    NotificationStorageInterface,
    JobLockInterface,
    AuditStorageInterface,
):
    """Everything the application needs from one backend."""


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class RecordNotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class StorageUnavailableError(StorageError):
    """Could not connect to storage backend."""
    pass
