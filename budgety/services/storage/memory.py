"""
In-Memory Storage Implementation

Dict-backed implementation of every storage interface, used by the tests
and for local experiments. Records are copied on the way in and on the
way out so callers can never mutate stored state by accident.

Nothing here awaits, so each method runs atomically with respect to the
event loop; that is what makes create_family and redeem_invite
transactional in this backend.
"""

from datetime import date, datetime
from typing import Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel

from budgety.models.audit import AuditEvent
from budgety.models.budget import Category, CategoryBudget
from budgety.models.common import utcnow
from budgety.models.expense import (
    Expense,
    ExpenseFilter,
    ExpenseSort,
    RecurringExpense,
)
from budgety.models.family import (
    AuthSession,
    Family,
    FamilyMember,
    Invite,
    User,
)
from budgety.models.notification import Notification
from budgety.services.storage.interface import (
    DuplicateError,
    RecordNotFoundError,
    StorageInterface,
)

M = TypeVar("M", bound=BaseModel)


def _copy(record: M) -> M:
    return record.model_copy(deep=True)


class InMemoryStorage(StorageInterface):
    """Storage backend holding everything in process memory."""

    def __init__(self):
        self.users: dict[UUID, User] = {}
        self.sessions: dict[str, AuthSession] = {}
        self.families: dict[UUID, Family] = {}
        self.members: dict[UUID, FamilyMember] = {}
        self.invites: dict[UUID, Invite] = {}
        self.categories: dict[UUID, Category] = {}
        self.category_budgets: dict[UUID, CategoryBudget] = {}
        self.expenses: dict[UUID, Expense] = {}
        self.recurring: dict[UUID, RecurringExpense] = {}
        self.notifications: dict[UUID, Notification] = {}
        self.job_locks: set[tuple[str, str]] = set()
        self.audit_events: list[AuditEvent] = []

    # =========================================================================
    # USERS
    # =========================================================================

    async def save_user(self, user: User) -> User:
        if any(u.email.lower() == user.email.lower() for u in self.users.values()):
            raise DuplicateError(f"Email already registered: {user.email}")
        self.users[user.id] = _copy(user)
        return _copy(user)

    async def get_user(self, user_id: UUID) -> Optional[User]:
        user = self.users.get(user_id)
        return _copy(user) if user else None

    async def get_users(self, user_ids: list[UUID]) -> dict[UUID, User]:
        return {uid: _copy(self.users[uid]) for uid in set(user_ids) if uid in self.users}

    async def update_user(self, user: User) -> User:
        if user.id not in self.users:
            raise RecordNotFoundError(f"User not found: {user.id}")
        user.updated_at = utcnow()
        self.users[user.id] = _copy(user)
        return _copy(user)

    async def save_session(self, session: AuthSession) -> AuthSession:
        self.sessions[session.token] = _copy(session)
        return _copy(session)

    async def get_session(self, token: str) -> Optional[AuthSession]:
        session = self.sessions.get(token)
        return _copy(session) if session else None

    # =========================================================================
    # FAMILIES
    # =========================================================================

    async def create_family(self, family: Family, admin: FamilyMember) -> Family:
        self.families[family.id] = _copy(family)
        self.members[admin.id] = _copy(admin)
        return _copy(family)

    async def get_family(self, family_id: UUID) -> Optional[Family]:
        family = self.families.get(family_id)
        return _copy(family) if family else None

    async def list_families_for_user(self, user_id: UUID) -> list[Family]:
        memberships = sorted(
            (m for m in self.members.values() if m.user_id == user_id),
            key=lambda m: m.joined_at,
        )
        return [
            _copy(self.families[m.family_id])
            for m in memberships
            if m.family_id in self.families
        ]

    async def update_family(self, family: Family) -> Family:
        if family.id not in self.families:
            raise RecordNotFoundError(f"Family not found: {family.id}")
        family.updated_at = utcnow()
        self.families[family.id] = _copy(family)
        return _copy(family)

    async def delete_family(self, family_id: UUID) -> bool:
        if self.families.pop(family_id, None) is None:
            return False

        for table in (
            self.members,
            self.invites,
            self.category_budgets,
            self.expenses,
            self.recurring,
            self.notifications,
        ):
            for key in [k for k, v in table.items() if v.family_id == family_id]:
                del table[key]
        for key in [k for k, c in self.categories.items() if c.family_id == family_id]:
            del self.categories[key]
        return True

    async def get_membership(self, family_id: UUID, user_id: UUID) -> Optional[FamilyMember]:
        for member in self.members.values():
            if member.family_id == family_id and member.user_id == user_id:
                return _copy(member)
        return None

    async def get_member(self, member_id: UUID) -> Optional[FamilyMember]:
        member = self.members.get(member_id)
        return _copy(member) if member else None

    async def list_members(self, family_id: UUID) -> list[FamilyMember]:
        members = [_copy(m) for m in self.members.values() if m.family_id == family_id]
        members.sort(key=lambda m: m.joined_at)
        return members

    async def update_member(self, member: FamilyMember) -> FamilyMember:
        if member.id not in self.members:
            raise RecordNotFoundError(f"Member not found: {member.id}")
        self.members[member.id] = _copy(member)
        return _copy(member)

    async def delete_member(self, member_id: UUID) -> bool:
        return self.members.pop(member_id, None) is not None

    async def save_invite(self, invite: Invite) -> Invite:
        if any(i.code == invite.code for i in self.invites.values()):
            raise DuplicateError(f"Invite code already exists: {invite.code}")
        self.invites[invite.id] = _copy(invite)
        return _copy(invite)

    async def get_invite_by_code(self, code: str) -> Optional[Invite]:
        matches = [i for i in self.invites.values() if i.code == code]
        if not matches:
            return None
        return _copy(max(matches, key=lambda i: i.created_at))

    async def redeem_invite(
        self,
        invite_id: UUID,
        member: FamilyMember,
        used_at: datetime,
    ) -> Optional[FamilyMember]:
        invite = self.invites.get(invite_id)
        if invite is None or not invite.is_redeemable(used_at):
            return None
        for existing in self.members.values():
            if existing.family_id == invite.family_id and existing.user_id == member.user_id:
                raise DuplicateError("User is already a member of this family")

        invite.used_by = member.user_id
        invite.used_at = used_at
        self.members[member.id] = _copy(member)
        return _copy(member)

    # =========================================================================
    # CATEGORIES & BUDGETS
    # =========================================================================

    async def save_category(self, category: Category) -> Category:
        self.categories[category.id] = _copy(category)
        return _copy(category)

    async def get_category(self, category_id: UUID) -> Optional[Category]:
        category = self.categories.get(category_id)
        return _copy(category) if category else None

    async def get_categories(self, category_ids: list[UUID]) -> dict[UUID, Category]:
        return {
            cid: _copy(self.categories[cid])
            for cid in set(category_ids)
            if cid in self.categories
        }

    async def list_categories(self, family_id: UUID) -> list[Category]:
        categories = [_copy(c) for c in self.categories.values() if c.visible_to(family_id)]
        categories.sort(key=lambda c: c.name)
        return categories

    async def list_default_categories(self) -> list[Category]:
        categories = [
            _copy(c) for c in self.categories.values()
            if c.is_default and c.family_id is None
        ]
        categories.sort(key=lambda c: c.name)
        return categories

    async def update_category(self, category: Category) -> Category:
        if category.id not in self.categories:
            raise RecordNotFoundError(f"Category not found: {category.id}")
        self.categories[category.id] = _copy(category)
        return _copy(category)

    async def category_in_use(self, category_id: UUID) -> bool:
        return any(e.category_id == category_id for e in self.expenses.values()) or any(
            t.category_id == category_id for t in self.recurring.values()
        )

    async def delete_category(self, category_id: UUID) -> bool:
        if self.categories.pop(category_id, None) is None:
            return False
        for key in [k for k, b in self.category_budgets.items() if b.category_id == category_id]:
            del self.category_budgets[key]
        return True

    async def list_category_budgets(self, family_id: UUID, month: str) -> list[CategoryBudget]:
        return [
            _copy(b) for b in self.category_budgets.values()
            if b.family_id == family_id and b.month == month
        ]

    async def upsert_category_budget(self, budget: CategoryBudget) -> CategoryBudget:
        for existing in self.category_budgets.values():
            if (
                existing.family_id == budget.family_id
                and existing.category_id == budget.category_id
                and existing.month == budget.month
            ):
                existing.amount = budget.amount
                return _copy(existing)
        self.category_budgets[budget.id] = _copy(budget)
        return _copy(budget)

    # =========================================================================
    # EXPENSES
    # =========================================================================

    async def save_expense(self, expense: Expense) -> Expense:
        self.expenses[expense.id] = _copy(expense)
        return _copy(expense)

    async def get_expense(self, expense_id: UUID) -> Optional[Expense]:
        expense = self.expenses.get(expense_id)
        return _copy(expense) if expense else None

    async def update_expense(self, expense: Expense) -> Expense:
        if expense.id not in self.expenses:
            raise RecordNotFoundError(f"Expense not found: {expense.id}")
        expense.updated_at = utcnow()
        self.expenses[expense.id] = _copy(expense)
        return _copy(expense)

    async def delete_expense(self, expense_id: UUID) -> bool:
        return self.expenses.pop(expense_id, None) is not None

    async def list_expenses(
        self,
        family_id: UUID,
        filters: ExpenseFilter,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[Expense], int]:
        expenses = []
        for expense in self.expenses.values():
            if expense.family_id != family_id:
                continue
            if filters.start_date and expense.expense_date < filters.start_date:
                continue
            if filters.end_date and expense.expense_date > filters.end_date:
                continue
            if filters.category_id and expense.category_id != filters.category_id:
                continue
            if filters.created_by_id and expense.created_by_id != filters.created_by_id:
                continue
            expenses.append(expense)

        if filters.sort == ExpenseSort.CREATED_AT:
            expenses.sort(key=lambda e: e.created_at, reverse=True)
        else:
            expenses.sort(key=lambda e: (e.expense_date, e.created_at), reverse=True)

        return [_copy(e) for e in expenses[offset:offset + limit]], len(expenses)

    async def list_expenses_between(
        self,
        family_id: UUID,
        start: date,
        end: date,
    ) -> list[Expense]:
        expenses = [
            _copy(e) for e in self.expenses.values()
            if e.family_id == family_id and start <= e.expense_date < end
        ]
        expenses.sort(key=lambda e: (e.expense_date, e.created_at))
        return expenses

    # =========================================================================
    # RECURRING EXPENSES
    # =========================================================================

    async def save_recurring(self, template: RecurringExpense) -> RecurringExpense:
        self.recurring[template.id] = _copy(template)
        return _copy(template)

    async def get_recurring(self, template_id: UUID) -> Optional[RecurringExpense]:
        template = self.recurring.get(template_id)
        return _copy(template) if template else None

    async def update_recurring(self, template: RecurringExpense) -> RecurringExpense:
        if template.id not in self.recurring:
            raise RecordNotFoundError(f"Recurring expense not found: {template.id}")
        # The cursor belongs to the processor; keep whatever it last wrote
        stored = self.recurring[template.id]
        updated = template.model_copy(update={
            "next_due_date": stored.next_due_date,
            "updated_at": utcnow(),
        })
        self.recurring[template.id] = _copy(updated)
        return _copy(updated)

    async def delete_recurring(self, template_id: UUID) -> bool:
        return self.recurring.pop(template_id, None) is not None

    async def list_recurring(
        self,
        family_id: UUID,
        limit: int = 20,
        offset: int = 0,
    ) -> tuple[list[RecurringExpense], int]:
        templates = [t for t in self.recurring.values() if t.family_id == family_id]
        templates.sort(key=lambda t: t.created_at, reverse=True)
        return [_copy(t) for t in templates[offset:offset + limit]], len(templates)

    async def list_due_recurring(self, today: date) -> list[RecurringExpense]:
        due = [_copy(t) for t in self.recurring.values() if t.is_due(today)]
        due.sort(key=lambda t: (t.next_due_date, t.created_at))
        return due

    async def set_next_due_date(self, template_id: UUID, next_due_date: date) -> bool:
        template = self.recurring.get(template_id)
        if template is None:
            return False
        template.next_due_date = next_due_date
        template.updated_at = utcnow()
        return True

    # =========================================================================
    # NOTIFICATIONS
    # =========================================================================

    async def save_notifications(self, notifications: list[Notification]) -> list[Notification]:
        for notification in notifications:
            self.notifications[notification.id] = _copy(notification)
        return [_copy(n) for n in notifications]

    async def get_notification(self, notification_id: UUID) -> Optional[Notification]:
        notification = self.notifications.get(notification_id)
        return _copy(notification) if notification else None

    async def list_notifications(
        self,
        user_id: UUID,
        limit: int = 20,
        cursor: Optional[UUID] = None,
        unread_only: bool = False,
    ) -> tuple[list[Notification], int]:
        matching = [
            n for n in self.notifications.values()
            if n.user_id == user_id and not (unread_only and n.is_read)
        ]
        matching.sort(key=lambda n: (n.created_at, str(n.id)), reverse=True)

        start = 0
        if cursor is not None:
            positions = [i for i, n in enumerate(matching) if n.id == cursor]
            if not positions:
                return [], len(matching)
            start = positions[0] + 1

        return [_copy(n) for n in matching[start:start + limit]], len(matching)

    async def count_unread(self, user_id: UUID) -> int:
        return sum(
            1 for n in self.notifications.values()
            if n.user_id == user_id and not n.is_read
        )

    async def mark_read(self, notification_id: UUID) -> bool:
        notification = self.notifications.get(notification_id)
        if notification is None:
            return False
        notification.is_read = True
        return True

    async def mark_all_read(self, user_id: UUID) -> int:
        changed = 0
        for notification in self.notifications.values():
            if notification.user_id == user_id and not notification.is_read:
                notification.is_read = True
                changed += 1
        return changed

    async def delete_notification(self, notification_id: UUID) -> bool:
        return self.notifications.pop(notification_id, None) is not None

    # =========================================================================
    # JOB LOCKS & AUDIT
    # =========================================================================

    async def acquire(self, job_name: str, run_key: str) -> bool:
        key = (job_name, run_key)
        if key in self.job_locks:
            return False
        self.job_locks.add(key)
        return True

    async def append_event(self, event: AuditEvent) -> bool:
        self.audit_events.append(_copy(event))
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        events = [_copy(e) for e in self.audit_events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_events_by_entity(self, entity_type: str, entity_id: UUID) -> list[AuditEvent]:
        events = [
            _copy(e) for e in self.audit_events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        events = sorted(self.audit_events, key=lambda e: e.timestamp, reverse=True)
        return [_copy(e) for e in events[:limit]]
