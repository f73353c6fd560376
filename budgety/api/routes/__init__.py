"""API routers, one per resource."""

from budgety.api.routes import (
    budgets,
    categories,
    expenses,
    families,
    notifications,
    recurring,
    reports,
    users,
)

ROUTERS = [
    users.router,
    families.router,
    categories.router,
    expenses.router,
    recurring.router,
    budgets.router,
    reports.router,
    notifications.router,
]

__all__ = ["ROUTERS"]
