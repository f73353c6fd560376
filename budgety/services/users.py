"""User profile operations."""

from uuid import UUID

from budgety.models.family import User, UserUpdate
from budgety.services.errors import InvalidRequestError, NotFoundError
from budgety.services.storage import DuplicateError, StorageInterface


class UserService:
    def __init__(self, storage: StorageInterface):
        self._storage = storage

    async def get_user(self, user_id: UUID) -> User:
        user = await self._storage.get_user(user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    async def update_user(self, user_id: UUID, changes: UserUpdate) -> User:
        """Apply the fields present (and not null) in ``changes``."""
        user = await self.get_user(user_id)
        updated = user.model_copy(update=changes.model_dump(exclude_none=True))
        return await self._storage.update_user(updated)

    async def register_user(self, name: str, email: str) -> User:
        """
        Record a user. Normally the identity provider does this; the CLI
        uses it to bootstrap development accounts.
        """
        try:
            return await self._storage.save_user(User(name=name, email=email))
        except DuplicateError:
            raise InvalidRequestError(f"Email already registered: {email}")
