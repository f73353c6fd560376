"""
Services package.

Domain services live in their own modules (``budgety.services.families``,
``budgety.services.expenses``...). This package only re-exports the error
types and the storage layer they share.
"""

from budgety.services.errors import (
    BudgetyError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
    UnauthenticatedError,
)
from budgety.services.storage import (
    DuplicateError,
    InMemoryStorage,
    RecordNotFoundError,
    SqlDatabase,
    SqlStorage,
    StorageError,
    StorageInterface,
    StorageUnavailableError,
)

__all__ = [
    # Domain errors
    "BudgetyError",
    "ForbiddenError",
    "InvalidRequestError",
    "NotFoundError",
    "UnauthenticatedError",
    # Storage
    "DuplicateError",
    "InMemoryStorage",
    "RecordNotFoundError",
    "SqlDatabase",
    "SqlStorage",
    "StorageError",
    "StorageInterface",
    "StorageUnavailableError",
]
