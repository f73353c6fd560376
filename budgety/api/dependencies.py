"""
Request dependencies.

Services are built once per application and hung off ``app.state``;
routes reach them (and the caller's identity and membership) through
FastAPI dependencies.
"""

from typing import Annotated, Optional
from uuid import UUID

from fastapi import Depends, Request

from budgety.audit import AuditLogger
from budgety.config import Settings, get_settings
from budgety.jobs import DailyJobRunner
from budgety.models.family import FamilyMember, FamilyRole, User
from budgety.reports import ReportService
from budgety.services.auth import AccessService
from budgety.services.budgets import BudgetService
from budgety.services.categories import CategoryService
from budgety.services.expenses import ExpenseService
from budgety.services.families import FamilyService
from budgety.services.notifications import NotificationService
from budgety.services.recurring import RecurringExpenseService
from budgety.services.storage import StorageInterface
from budgety.services.users import UserService


class ServiceContainer:
    """Every service of one application, sharing one storage backend."""

    def __init__(self, storage: StorageInterface, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        app_settings = settings.app

        self.storage = storage
        self.settings = settings
        self.audit_logger = AuditLogger(storage)
        self.access = AccessService(storage)
        self.users = UserService(storage)
        self.notifications = NotificationService(storage)
        self.categories = CategoryService(storage)
        self.families = FamilyService(
            storage, self.audit_logger, self.notifications, app_settings,
        )
        self.budgets = BudgetService(storage, self.categories, self.audit_logger)
        self.expenses = ExpenseService(
            storage, self.audit_logger, self.categories, self.notifications, app_settings,
        )
        self.recurring = RecurringExpenseService(
            storage, self.audit_logger, self.categories, app_settings,
        )
        self.reports = ReportService(storage, app_settings.member_top_categories)
        self.job_runner = DailyJobRunner(storage, self.audit_logger, settings.scheduler)


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


Services = Annotated[ServiceContainer, Depends(get_services)]


def session_token(request: Request) -> Optional[str]:
    """Bearer token if present, otherwise the session cookie."""
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    cookie_name = request.app.state.services.settings.auth.session_cookie_name
    return request.cookies.get(cookie_name)


async def get_current_user(request: Request, services: Services) -> User:
    return await services.access.authenticate(session_token(request))


CurrentUser = Annotated[User, Depends(get_current_user)]


async def get_family_member(
    services: Services,
    user: CurrentUser,
    family_id: UUID,
) -> FamilyMember:
    return await services.access.require_member(family_id, user.id)


async def get_family_admin(
    services: Services,
    user: CurrentUser,
    family_id: UUID,
) -> FamilyMember:
    return await services.access.require_member(family_id, user.id, FamilyRole.ADMIN)


FamilyMemberDep = Annotated[FamilyMember, Depends(get_family_member)]
FamilyAdminDep = Annotated[FamilyMember, Depends(get_family_admin)]
