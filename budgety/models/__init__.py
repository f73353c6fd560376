"""
Data Models Package

All Pydantic models used by Budgety. Data crossing the API, the services
and the storage layer must conform to these schemas.
"""

from budgety.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from budgety.models.budget import (
    DEFAULT_CATEGORIES,
    BudgetOverview,
    Category,
    CategoryBudget,
    CategoryBudgetItem,
    CategoryBudgetsUpsert,
    CategoryBudgetView,
    CategoryCreate,
    CategoryRef,
    CategoryUpdate,
    OverallBudgetUpdate,
)
from budgety.models.common import (
    ApiModel,
    Money,
    NonNegativeMoney,
    Page,
    PositiveMoney,
    utcnow,
)
from budgety.models.expense import (
    Expense,
    ExpenseCreate,
    ExpenseFilter,
    ExpenseSort,
    ExpenseUpdate,
    ExpenseView,
    Frequency,
    RecurringExpense,
    RecurringExpenseCreate,
    RecurringExpenseUpdate,
    RecurringExpenseView,
)
from budgety.models.family import (
    AuthSession,
    Family,
    FamilyCreate,
    FamilyDetail,
    FamilyMember,
    FamilyMemberView,
    FamilyRole,
    FamilyUpdate,
    Invite,
    InviteView,
    JoinFamilyRequest,
    MemberRoleUpdate,
    MemberUser,
    User,
    UserRef,
    UserUpdate,
)
from budgety.models.notification import (
    Notification,
    NotificationPage,
    NotificationType,
    UnreadCount,
)
from budgety.models.report import (
    BudgetUtilizationReport,
    CategoryAmount,
    CategoryShare,
    CategorySplitReport,
    CategoryUtilization,
    DailySpendingReport,
    DayAmount,
    MemberSpendingEntry,
    MemberSpendingReport,
    MonthAmount,
    MonthlyTrendReport,
    TopExpensesReport,
)

__all__ = [
    # Common
    "ApiModel",
    "Money",
    "NonNegativeMoney",
    "Page",
    "PositiveMoney",
    "utcnow",
    # Identity and families
    "AuthSession",
    "Family",
    "FamilyCreate",
    "FamilyDetail",
    "FamilyMember",
    "FamilyMemberView",
    "FamilyRole",
    "FamilyUpdate",
    "Invite",
    "InviteView",
    "JoinFamilyRequest",
    "MemberRoleUpdate",
    "MemberUser",
    "User",
    "UserRef",
    "UserUpdate",
    # Categories and budgets
    "DEFAULT_CATEGORIES",
    "BudgetOverview",
    "Category",
    "CategoryBudget",
    "CategoryBudgetItem",
    "CategoryBudgetsUpsert",
    "CategoryBudgetView",
    "CategoryCreate",
    "CategoryRef",
    "CategoryUpdate",
    "OverallBudgetUpdate",
    # Expenses
    "Expense",
    "ExpenseCreate",
    "ExpenseFilter",
    "ExpenseSort",
    "ExpenseUpdate",
    "ExpenseView",
    "Frequency",
    "RecurringExpense",
    "RecurringExpenseCreate",
    "RecurringExpenseUpdate",
    "RecurringExpenseView",
    # Notifications
    "Notification",
    "NotificationPage",
    "NotificationType",
    "UnreadCount",
    # Reports
    "BudgetUtilizationReport",
    "CategoryAmount",
    "CategoryShare",
    "CategorySplitReport",
    "CategoryUtilization",
    "DailySpendingReport",
    "DayAmount",
    "MemberSpendingEntry",
    "MemberSpendingReport",
    "MonthAmount",
    "MonthlyTrendReport",
    "TopExpensesReport",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
