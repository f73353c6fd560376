"""
Shared fixtures.

Async services are driven with ``run`` (asyncio.run) so the suite needs
no async pytest plugin. Every fixture works on a fresh InMemoryStorage.
"""

import asyncio
from datetime import date, timedelta
from decimal import Decimal

import pytest

from budgety.audit import AuditLogger
from budgety.models.budget import Category
from budgety.models.common import utcnow
from budgety.models.expense import Expense
from budgety.models.family import AuthSession, Family, FamilyMember, FamilyRole, User
from budgety.services.storage import InMemoryStorage


def run(coro):
    """Run a coroutine to completion."""
    return asyncio.run(coro)


def add_user(storage: InMemoryStorage, name: str, email: str = None) -> User:
    user = User(name=name, email=email or f"{name.lower()}@example.com")
    return run(storage.save_user(user))


def add_family(storage: InMemoryStorage, admin: User, **fields) -> Family:
    family = Family(name=fields.pop("name", "Sharma Family"), **fields)
    membership = FamilyMember(family_id=family.id, user_id=admin.id, role=FamilyRole.ADMIN)
    return run(storage.create_family(family, membership))


def add_member(
    storage: InMemoryStorage,
    family: Family,
    user: User,
    role: FamilyRole = FamilyRole.MEMBER,
) -> FamilyMember:
    member = FamilyMember(family_id=family.id, user_id=user.id, role=role)
    storage.members[member.id] = member
    return member


def add_category(storage: InMemoryStorage, name: str, family: Family = None, icon: str = None) -> Category:
    category = Category(
        name=name,
        icon=icon,
        is_default=family is None,
        family_id=family.id if family else None,
    )
    return run(storage.save_category(category))


def add_expense(
    storage: InMemoryStorage,
    family: Family,
    user: User,
    category: Category,
    amount: str,
    on: date,
    description: str = "Expense",
) -> Expense:
    expense = Expense(
        amount=Decimal(amount),
        description=description,
        expense_date=on,
        category_id=category.id,
        family_id=family.id,
        created_by_id=user.id,
    )
    return run(storage.save_expense(expense))


def add_session(storage: InMemoryStorage, user: User, token: str = None) -> str:
    session = AuthSession(
        token=token or f"token-{user.id.hex}",
        user_id=user.id,
        expires_at=utcnow() + timedelta(days=1),
    )
    run(storage.save_session(session))
    return session.token


def membership(storage: InMemoryStorage, family: Family, user: User) -> FamilyMember:
    return run(storage.get_membership(family.id, user.id))


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def audit_logger(storage):
    return AuditLogger(storage)


@pytest.fixture
def admin(storage):
    return add_user(storage, "Asha")


@pytest.fixture
def member_user(storage):
    return add_user(storage, "Ravi")


@pytest.fixture
def family(storage, admin, member_user):
    family = add_family(storage, admin)
    add_member(storage, family, member_user)
    return family


@pytest.fixture
def groceries(storage):
    return add_category(storage, "Groceries/Kirana", icon="shopping-cart")


@pytest.fixture
def rent(storage):
    return add_category(storage, "Rent", icon="home")
