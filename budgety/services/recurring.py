"""
Recurring expense templates (CRUD).

Materializing due templates is the job of ``budgety.jobs.recurring``;
this module only manages the templates themselves.
"""

from typing import Optional
from uuid import UUID

from budgety.audit import AuditLogger
from budgety.config import AppSettings, get_settings
from budgety.models.audit import AuditEventType
from budgety.models.budget import CategoryRef
from budgety.models.common import Page
from budgety.models.expense import (
    RecurringExpense,
    RecurringExpenseCreate,
    RecurringExpenseUpdate,
    RecurringExpenseView,
)
from budgety.models.family import FamilyMember, UserRef
from budgety.services.auth import ensure_creator_or_admin
from budgety.services.categories import CategoryService
from budgety.services.errors import InvalidRequestError, NotFoundError
from budgety.services.expenses import page_window
from budgety.services.storage import StorageInterface


class RecurringExpenseService:
    def __init__(
        self,
        storage: StorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        categories: Optional[CategoryService] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger
        self._categories = categories or CategoryService(storage)
        self._settings = settings or get_settings().app

    async def _views(self, templates: list[RecurringExpense]) -> list[RecurringExpenseView]:
        categories = await self._storage.get_categories([t.category_id for t in templates])
        users = await self._storage.get_users([t.created_by_id for t in templates])
        return [
            RecurringExpenseView(
                **template.model_dump(),
                category=CategoryRef.from_category(categories.get(template.category_id), template.category_id),
                created_by=UserRef.from_user(users.get(template.created_by_id), template.created_by_id),
            )
            for template in templates
        ]

    async def _get_scoped(self, family_id: UUID, template_id: UUID) -> RecurringExpense:
        template = await self._storage.get_recurring(template_id)
        if template is None or template.family_id != family_id:
            raise NotFoundError("Recurring expense not found")
        return template

    async def create_recurring(
        self,
        family_id: UUID,
        member: FamilyMember,
        data: RecurringExpenseCreate,
    ) -> RecurringExpenseView:
        """Create a template whose first due date is its start date."""
        await self._categories.resolve_category(family_id, data.category_id)

        template = await self._storage.save_recurring(RecurringExpense(
            amount=data.amount,
            description=data.description,
            frequency=data.frequency,
            start_date=data.start_date,
            end_date=data.end_date,
            next_due_date=data.start_date,
            is_active=True,
            family_id=family_id,
            category_id=data.category_id,
            created_by_id=member.user_id,
        ))

        if self._audit_logger:
            await self._audit_logger.log_entity_changed(
                AuditEventType.RECURRING_CREATED, "recurring_expense", template.id,
                family_id, member.user_id,
                details={"frequency": template.frequency.value, "amount": str(template.amount)},
            )
        return (await self._views([template]))[0]

    async def list_recurring(
        self,
        family_id: UUID,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Page[RecurringExpenseView]:
        page, limit = page_window(page, limit, self._settings)
        templates, total = await self._storage.list_recurring(
            family_id, limit=limit, offset=(page - 1) * limit,
        )
        return Page[RecurringExpenseView](
            data=await self._views(templates),
            total=total,
            page=page,
            limit=limit,
        )

    async def update_recurring(
        self,
        family_id: UUID,
        template_id: UUID,
        member: FamilyMember,
        changes: RecurringExpenseUpdate,
    ) -> RecurringExpenseView:
        """
        Apply the non-null fields of ``changes``.

        The cursor (next due date) is never edited here.
        """
        template = await self._get_scoped(family_id, template_id)
        ensure_creator_or_admin(member, template.created_by_id)

        fields = changes.model_dump(exclude_none=True)
        if "category_id" in fields:
            await self._categories.resolve_category(family_id, changes.category_id)
        if changes.end_date is not None and changes.end_date < template.start_date:
            raise InvalidRequestError("End date cannot be before start date")

        if fields:
            template = await self._storage.update_recurring(template.model_copy(update=fields))
            if self._audit_logger:
                await self._audit_logger.log_entity_changed(
                    AuditEventType.RECURRING_UPDATED, "recurring_expense", template.id,
                    family_id, member.user_id,
                    details={"fields": sorted(fields)},
                )
        return (await self._views([template]))[0]

    async def delete_recurring(
        self,
        family_id: UUID,
        template_id: UUID,
        member: FamilyMember,
    ) -> RecurringExpenseView:
        template = await self._get_scoped(family_id, template_id)
        ensure_creator_or_admin(member, template.created_by_id)

        view = (await self._views([template]))[0]
        await self._storage.delete_recurring(template_id)

        if self._audit_logger:
            await self._audit_logger.log_entity_changed(
                AuditEventType.RECURRING_DELETED, "recurring_expense", template_id,
                family_id, member.user_id,
            )
        return view
