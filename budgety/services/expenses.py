"""
Expense Management

Expenses are created by members (and by the recurring engine, which
writes through storage directly). Reads are family-scoped; edits and
deletes are allowed to the creator and to ADMINs.

Creating an expense at or above the family's large-expense threshold
notifies the other members. That notification is best effort.
"""

from typing import Optional
from uuid import UUID

from budgety.audit import AuditLogger
from budgety.config import AppSettings, get_settings
from budgety.models.audit import AuditEventType
from budgety.models.budget import CategoryRef
from budgety.models.common import Page
from budgety.models.expense import (
    Expense,
    ExpenseCreate,
    ExpenseFilter,
    ExpenseUpdate,
    ExpenseView,
)
from budgety.models.family import FamilyMember, UserRef
from budgety.models.notification import NotificationType
from budgety.services.auth import ensure_creator_or_admin
from budgety.services.categories import CategoryService
from budgety.services.errors import NotFoundError
from budgety.services.notifications import NotificationService
from budgety.services.storage import StorageInterface


def page_window(page: Optional[int], limit: Optional[int], settings: AppSettings) -> tuple[int, int]:
    """Normalize page/limit query values to (page, limit)."""
    page = max(page or 1, 1)
    limit = min(max(limit or settings.default_page_size, 1), settings.max_page_size)
    return page, limit


async def build_expense_views(
    storage: StorageInterface,
    expenses: list[Expense],
) -> list[ExpenseView]:
    """Attach category and creator summaries, fetching each only once."""
    categories = await storage.get_categories([e.category_id for e in expenses])
    users = await storage.get_users([e.created_by_id for e in expenses])
    return [
        ExpenseView(
            **expense.model_dump(),
            category=CategoryRef.from_category(categories.get(expense.category_id), expense.category_id),
            created_by=UserRef.from_user(users.get(expense.created_by_id), expense.created_by_id),
        )
        for expense in expenses
    ]


class ExpenseService:
    """CRUD for a family's expenses."""

    def __init__(
        self,
        storage: StorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        categories: Optional[CategoryService] = None,
        notifications: Optional[NotificationService] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._categories = categories or CategoryService(storage)
        self._notifications = notifications or NotificationService(storage)
        self._settings = settings or get_settings().app

    async def _view(self, expense: Expense) -> ExpenseView:
        views = await build_expense_views(self._storage, [expense])
        return views[0]

    async def _get_scoped(self, family_id: UUID, expense_id: UUID) -> Expense:
        expense = await self._storage.get_expense(expense_id)
        if expense is None or expense.family_id != family_id:
            raise NotFoundError("Expense not found")
        return expense

    async def create_expense(
        self,
        family_id: UUID,
        member: FamilyMember,
        data: ExpenseCreate,
    ) -> ExpenseView:
        await self._categories.resolve_category(family_id, data.category_id)

        expense = await self._storage.save_expense(Expense(
            amount=data.amount,
            description=data.description,
            expense_date=data.expense_date,
            category_id=data.category_id,
            family_id=family_id,
            created_by_id=member.user_id,
        ))

        if self._audit_logger:
            await self._audit_logger.log_entity_changed(
                AuditEventType.EXPENSE_CREATED, "expense", expense.id, family_id, member.user_id,
                details={"amount": str(expense.amount)},
            )

        view = await self._view(expense)
        await self._notify_if_large(view)
        return view

    async def _notify_if_large(self, expense: ExpenseView) -> None:
        family = await self._storage.get_family(expense.family_id)
        if family is None or family.large_expense_threshold is None:
            return
        if expense.amount < family.large_expense_threshold:
            return

        who = expense.created_by.display_name or expense.created_by.name or "A member"
        await self._notifications.notify_family_members(
            family_id=family.id,
            type=NotificationType.LARGE_EXPENSE.value,
            title="Large expense added",
            body=f"{who} spent {family.currency} {expense.amount} on {expense.description}",
            data={"expenseId": str(expense.id), "amount": float(expense.amount)},
            exclude_user_id=expense.created_by_id,
        )

    async def list_expenses(
        self,
        family_id: UUID,
        filters: ExpenseFilter,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Page[ExpenseView]:
        page, limit = page_window(page, limit, self._settings)
        expenses, total = await self._storage.list_expenses(
            family_id, filters, limit=limit, offset=(page - 1) * limit,
        )
        return Page[ExpenseView](
            data=await build_expense_views(self._storage, expenses),
            total=total,
            page=page,
            limit=limit,
        )

    async def get_expense(self, family_id: UUID, expense_id: UUID) -> ExpenseView:
        return await self._view(await self._get_scoped(family_id, expense_id))

    async def update_expense(
        self,
        family_id: UUID,
        expense_id: UUID,
        member: FamilyMember,
        changes: ExpenseUpdate,
    ) -> ExpenseView:
        """Apply the non-null fields of ``changes``."""
        expense = await self._get_scoped(family_id, expense_id)
        ensure_creator_or_admin(member, expense.created_by_id)

        fields = changes.model_dump(exclude_none=True)
        if "category_id" in fields:
            await self._categories.resolve_category(family_id, changes.category_id)

        if fields:
            expense = await self._storage.update_expense(expense.model_copy(update=fields))
            if self._audit_logger:
                await self._audit_logger.log_entity_changed(
                    AuditEventType.EXPENSE_UPDATED, "expense", expense.id, family_id, member.user_id,
                    details={"fields": sorted(fields)},
                )
        return await self._view(expense)

    async def delete_expense(
        self,
        family_id: UUID,
        expense_id: UUID,
        member: FamilyMember,
    ) -> ExpenseView:
        expense = await self._get_scoped(family_id, expense_id)
        ensure_creator_or_admin(member, expense.created_by_id)

        view = await self._view(expense)
        await self._storage.delete_expense(expense_id)

        if self._audit_logger:
            await self._audit_logger.log_entity_changed(
                AuditEventType.EXPENSE_DELETED, "expense", expense_id, family_id, member.user_id,
            )
        return view
