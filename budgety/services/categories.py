"""
Expense categories.

Twelve global default categories are shared by every family and can't
be changed by anyone. Families add their own on top. Any category id a
client sends (on an expense, a template or a budget) goes through
``resolve_category`` so a family can never reference another family's
category.
"""

from typing import Optional
from uuid import UUID

import structlog

from budgety.models.budget import DEFAULT_CATEGORIES, Category, CategoryCreate, CategoryUpdate
from budgety.services.errors import InvalidRequestError, NotFoundError
from budgety.services.storage import StorageInterface

logger = structlog.get_logger(__name__)


class CategoryService:
    def __init__(self, storage: StorageInterface):
        self._storage = storage

    async def list_categories(self, family_id: UUID) -> list[Category]:
        """Defaults plus the family's own categories, by name."""
        return await self._storage.list_categories(family_id)

    async def resolve_category(self, family_id: UUID, category_id: UUID) -> Category:
        """
        Return a category usable by the family.

        Raises:
            NotFoundError: If it doesn't exist or belongs to another family
        """
        category = await self._storage.get_category(category_id)
        if category is None or not category.visible_to(family_id):
            raise NotFoundError("Category not found")
        return category

    async def _get_owned(self, family_id: UUID, category_id: UUID) -> Category:
        # Defaults have no family, so they never pass this check
        category = await self._storage.get_category(category_id)
        if category is None or category.family_id != family_id or category.is_default:
            raise NotFoundError("Category not found")
        return category

    async def create_category(self, family_id: UUID, data: CategoryCreate) -> Category:
        category = Category(
            name=data.name,
            icon=data.icon,
            is_default=False,
            family_id=family_id,
        )
        return await self._storage.save_category(category)

    async def update_category(
        self,
        family_id: UUID,
        category_id: UUID,
        changes: CategoryUpdate,
    ) -> Category:
        category = await self._get_owned(family_id, category_id)
        fields = changes.model_dump(exclude_none=True)
        if not fields:
            return category
        return await self._storage.update_category(category.model_copy(update=fields))

    async def delete_category(self, family_id: UUID, category_id: UUID) -> Category:
        """
        Delete a family category and its budgets.

        Raises:
            NotFoundError: For defaults and other families' categories
            InvalidRequestError: If expenses or templates still use it
        """
        category = await self._get_owned(family_id, category_id)
        if await self._storage.category_in_use(category_id):
            raise InvalidRequestError("Category is in use by expenses or recurring expenses")
        await self._storage.delete_category(category_id)
        return category

    async def seed_default_categories(self, defaults: Optional[list[tuple[str, str]]] = None) -> int:
        """
        Create the global default categories that don't exist yet.

        Safe to run repeatedly; matching is by name.

        Returns:
            Number of categories created
        """
        existing = {c.name for c in await self._storage.list_default_categories()}
        created = 0
        for name, icon in defaults or DEFAULT_CATEGORIES:
            if name in existing:
                continue
            await self._storage.save_category(
                Category(name=name, icon=icon, is_default=True, family_id=None)
            )
            created += 1

        logger.info("default_categories_seeded", created=created, existing=len(existing))
        return created
