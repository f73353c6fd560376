"""
Report Aggregation

DESIGN DECISION: Reports are DETERMINISTIC, read-only functions of the
stored rows. Nothing is cached and nothing is estimated.

Every monthly report reads the half-open date range
[first-of-month, first-of-next-month). Money sums are the raw stored
values (already truncated on entry); only percentages are rounded,
half-up to one decimal.
"""

from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from budgety.config import get_settings
from budgety.models.budget import CategoryRef
from budgety.models.expense import Expense
from budgety.models.family import UserRef
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
from budgety.services.errors import NotFoundError, require_month
from budgety.services.expenses import build_expense_views
from budgety.services.storage import StorageInterface
from budgety.utils.dates import add_months, format_month, month_days, parse_month, recent_months
from budgety.utils.money import ZERO, percent

DEFAULT_TREND_MONTHS = 6
MAX_TREND_MONTHS = 24
DEFAULT_TOP_EXPENSES = 5
MAX_TOP_EXPENSES = 50


def _sum(expenses: list[Expense]) -> Decimal:
    return sum((e.amount for e in expenses), ZERO)


def _totals_by(expenses: list[Expense], key) -> dict[UUID, Decimal]:
    totals: dict[UUID, Decimal] = defaultdict(lambda: ZERO)
    for expense in expenses:
        totals[key(expense)] += expense.amount
    return dict(totals)


class ReportService:
    """
    Builds the spending reports of one family.

    GUARANTEES:
    - Only returns figures computed from stored rows
    - Percentages are 0, never an error, when their base is 0
    """

    def __init__(self, storage: StorageInterface, top_categories: Optional[int] = None):
        self._storage = storage
        self._top_categories = top_categories or get_settings().app.member_top_categories

    async def _month_expenses(self, family_id: UUID, month: str) -> list[Expense]:
        start = require_month(month)
        return await self._storage.list_expenses_between(family_id, start, add_months(start, 1))

    async def _category_refs(self, category_ids) -> dict[UUID, CategoryRef]:
        ids = list(category_ids)
        categories = await self._storage.get_categories(ids)
        return {cid: CategoryRef.from_category(categories.get(cid), cid) for cid in ids}

    async def member_spending(self, family_id: UUID, month: str) -> MemberSpendingReport:
        """
        Spending per member for the month, biggest spender first.

        Each member carries their top categories by amount.
        """
        expenses = await self._month_expenses(family_id, month)
        family = await self._storage.get_family(family_id)
        if family is None:
            raise NotFoundError("Family not found")
        total_budget = family.monthly_budget or ZERO

        if not expenses:
            return MemberSpendingReport(
                month=month,
                total_budget=total_budget,
                total_spent=ZERO,
                utilization_percent=0,
                members=[],
            )

        total_spent = _sum(expenses)
        by_member: dict[UUID, list[Expense]] = defaultdict(list)
        for expense in expenses:
            by_member[expense.created_by_id].append(expense)

        users = await self._storage.get_users(list(by_member))
        refs = await self._category_refs({e.category_id for e in expenses})

        members = []
        for user_id, member_expenses in by_member.items():
            spent = _sum(member_expenses)
            category_totals = _totals_by(member_expenses, lambda e: e.category_id)
            top = sorted(
                category_totals.items(),
                key=lambda item: (-item[1], refs[item[0]].name),
            )[:self._top_categories]
            user = UserRef.from_user(users.get(user_id), user_id)

            members.append(MemberSpendingEntry(
                user_id=user_id,
                name=user.name,
                display_name=user.display_name,
                avatar_url=user.avatar_url,
                total_spent=spent,
                percent_of_total=percent(spent, total_spent),
                top_categories=[
                    CategoryAmount(
                        category_id=cid,
                        name=refs[cid].name,
                        icon=refs[cid].icon,
                        amount=amount,
                    )
                    for cid, amount in top
                ],
            ))

        members.sort(key=lambda m: m.total_spent, reverse=True)

        return MemberSpendingReport(
            month=month,
            total_budget=total_budget,
            total_spent=total_spent,
            utilization_percent=percent(total_spent, total_budget),
            members=members,
        )

    async def budget_utilization(self, family_id: UUID, month: str) -> BudgetUtilizationReport:
        """Spent versus budgeted for every category budget of the month."""
        expenses = await self._month_expenses(family_id, month)
        budgets = await self._storage.list_category_budgets(family_id, month)
        if not budgets:
            return BudgetUtilizationReport(month=month, categories=[])

        spent_by_category = _totals_by(expenses, lambda e: e.category_id)
        refs = await self._category_refs({b.category_id for b in budgets})

        categories = [
            CategoryUtilization(
                category_id=budget.category_id,
                name=refs[budget.category_id].name,
                icon=refs[budget.category_id].icon,
                budgeted=budget.amount,
                spent=spent_by_category.get(budget.category_id, ZERO),
                utilization_percent=percent(
                    spent_by_category.get(budget.category_id, ZERO), budget.amount,
                ),
            )
            for budget in budgets
        ]
        categories.sort(key=lambda c: (-c.utilization_percent, c.name))
        return BudgetUtilizationReport(month=month, categories=categories)

    async def category_split(self, family_id: UUID, month: str) -> CategorySplitReport:
        """Share of the month's spending per category, largest first."""
        expenses = await self._month_expenses(family_id, month)
        total = _sum(expenses)
        totals = _totals_by(expenses, lambda e: e.category_id)
        refs = await self._category_refs(totals)

        categories = [
            CategoryShare(
                category_id=cid,
                name=refs[cid].name,
                icon=refs[cid].icon,
                amount=amount,
                percent=percent(amount, total),
            )
            for cid, amount in totals.items()
        ]
        categories.sort(key=lambda c: (-c.amount, c.name))
        return CategorySplitReport(month=month, categories=categories)

    async def daily_spending(self, family_id: UUID, month: str) -> DailySpendingReport:
        """One entry per calendar day of the month; days without spending are 0."""
        expenses = await self._month_expenses(family_id, month)
        by_day: dict[date, Decimal] = defaultdict(lambda: ZERO)
        for expense in expenses:
            by_day[expense.expense_date] += expense.amount

        return DailySpendingReport(
            month=month,
            days=[DayAmount(day=day, amount=by_day.get(day, ZERO)) for day in month_days(month)],
        )

    async def monthly_trend(
        self,
        family_id: UUID,
        months: Optional[int] = None,
        today: Optional[date] = None,
    ) -> MonthlyTrendReport:
        """
        Total spending of the last ``months`` months, oldest first,
        ending with the current month.
        """
        count = DEFAULT_TREND_MONTHS if months is None else min(max(months, 1), MAX_TREND_MONTHS)
        if today is None:
            today = datetime.now(get_settings().scheduler.tzinfo).date()

        labels = recent_months(today, count)
        start = parse_month(labels[0])
        end = add_months(parse_month(labels[-1]), 1)
        expenses = await self._storage.list_expenses_between(family_id, start, end)

        totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
        for expense in expenses:
            totals[format_month(expense.expense_date)] += expense.amount

        return MonthlyTrendReport(
            months=[MonthAmount(month=label, amount=totals.get(label, ZERO)) for label in labels],
        )

    async def top_expenses(
        self,
        family_id: UUID,
        month: str,
        limit: Optional[int] = None,
    ) -> TopExpensesReport:
        """The month's largest expenses, with category and creator attached."""
        limit = DEFAULT_TOP_EXPENSES if limit is None else min(max(limit, 1), MAX_TOP_EXPENSES)
        expenses = await self._month_expenses(family_id, month)
        expenses.sort(key=lambda e: (e.amount, e.expense_date), reverse=True)

        return TopExpensesReport(
            month=month,
            expenses=await build_expense_views(self._storage, expenses[:limit]),
        )
