"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
SqlStorage is the production backend; InMemoryStorage backs the tests.
"""

from budgety.services.storage.interface import (
    AuditStorageInterface,
    CategoryStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
    FamilyStorageInterface,
    JobLockInterface,
    NotificationStorageInterface,
    RecordNotFoundError,
    StorageError,
    StorageInterface,
    StorageUnavailableError,
    UserStorageInterface,
)
from budgety.services.storage.memory import InMemoryStorage
from budgety.services.storage.sql import SqlDatabase, SqlStorage

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "CategoryStorageInterface",
    "ExpenseStorageInterface",
    "FamilyStorageInterface",
    "JobLockInterface",
    "NotificationStorageInterface",
    "StorageInterface",
    "UserStorageInterface",
    # Exceptions
    "DuplicateError",
    "RecordNotFoundError",
    "StorageError",
    "StorageUnavailableError",
    # Implementations
    "InMemoryStorage",
    "SqlDatabase",
    "SqlStorage",
]
