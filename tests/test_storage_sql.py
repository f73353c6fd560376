"""
Tests for SqlStorage over an in-memory SQLite database.

Each test gets a fresh database; rows referenced by foreign keys are
created first, as they would be in PostgreSQL.
"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from budgety.jobs import RecurringExpenseProcessor
from budgety.models.audit import AuditEventBuilder, AuditEventType
from budgety.models.budget import Category, CategoryBudget
from budgety.models.common import utcnow
from budgety.models.expense import Expense, ExpenseFilter, Frequency, RecurringExpense
from budgety.models.family import AuthSession, Family, FamilyMember, FamilyRole, Invite, User
from budgety.models.notification import Notification
from budgety.services.storage import DuplicateError, SqlDatabase, SqlStorage
from tests.conftest import run


@pytest.fixture
def sql():
    database = SqlDatabase("sqlite://", echo=False)
    database.init_schema()
    yield SqlStorage(database)
    database.dispose()


@pytest.fixture
def seeded(sql):
    """A family with one admin, one member and one default category."""
    admin = run(sql.save_user(User(name="Asha", email="asha@example.com")))
    member = run(sql.save_user(User(name="Ravi", email="ravi@example.com")))
    family = Family(name="Sharma Family", monthly_budget=Decimal("50000"))
    run(sql.create_family(family, FamilyMember(family_id=family.id, user_id=admin.id, role=FamilyRole.ADMIN)))
    run(sql.redeem_invite(
        run(sql.save_invite(Invite(
            code="ABC123",
            family_id=family.id,
            created_by=admin.id,
            expires_at=utcnow() + timedelta(hours=1),
        ))).id,
        FamilyMember(family_id=family.id, user_id=member.id),
        utcnow(),
    ))
    category = run(sql.save_category(Category(name="Rent", icon="home", is_default=True)))
    return {"admin": admin, "member": member, "family": family, "category": category}


def _expense(seeded, amount, on, user="admin"):
    return Expense(
        amount=Decimal(amount),
        description="Expense",
        expense_date=on,
        category_id=seeded["category"].id,
        family_id=seeded["family"].id,
        created_by_id=seeded[user].id,
    )


class TestUsersAndSessions:

    def test_duplicate_email(self, sql):
        run(sql.save_user(User(name="Asha", email="asha@example.com")))
        with pytest.raises(DuplicateError):
            run(sql.save_user(User(name="Other", email="asha@example.com")))

    def test_session_round_trip_keeps_utc(self, sql):
        user = run(sql.save_user(User(name="Asha", email="asha@example.com")))
        expires = datetime(2026, 3, 1, 18, 30, tzinfo=timezone.utc)
        run(sql.save_session(AuthSession(token="t" * 32, user_id=user.id, expires_at=expires)))

        stored = run(sql.get_session("t" * 32))

        assert stored.user_id == user.id
        assert stored.expires_at == expires
        assert stored.expires_at.tzinfo is not None


class TestFamilies:

    def test_create_family_adds_admin(self, sql, seeded):
        admin_membership = run(sql.get_membership(seeded["family"].id, seeded["admin"].id))
        assert admin_membership.role == FamilyRole.ADMIN
        family = run(sql.get_family(seeded["family"].id))
        assert family.monthly_budget == Decimal("50000")
        assert [f.id for f in run(sql.list_families_for_user(seeded["member"].id))] == [family.id]

    def test_invite_redeems_once(self, sql, seeded):
        newcomer = run(sql.save_user(User(name="Kiran", email="kiran@example.com")))
        # Already used by the seeded member
        invite = run(sql.get_invite_by_code("ABC123"))
        assert invite.used_by == seeded["member"].id

        joined = run(sql.redeem_invite(
            invite.id, FamilyMember(family_id=seeded["family"].id, user_id=newcomer.id), utcnow(),
        ))

        assert joined is None
        assert run(sql.get_membership(seeded["family"].id, newcomer.id)) is None

    def test_redeem_by_existing_member_rolls_back(self, sql, seeded):
        family = seeded["family"]
        invite = run(sql.save_invite(Invite(
            code="DEF456",
            family_id=family.id,
            created_by=seeded["admin"].id,
            expires_at=utcnow() + timedelta(hours=1),
        )))

        with pytest.raises(DuplicateError):
            run(sql.redeem_invite(invite.id, FamilyMember(family_id=family.id, user_id=seeded["member"].id), utcnow()))

        assert run(sql.get_invite_by_code("DEF456")).used_by is None

    def test_expired_invite_not_redeemed(self, sql, seeded):
        newcomer = run(sql.save_user(User(name="Kiran", email="kiran@example.com")))
        invite = run(sql.save_invite(Invite(
            code="EEE111",
            family_id=seeded["family"].id,
            created_by=seeded["admin"].id,
            expires_at=utcnow() - timedelta(minutes=1),
        )))
        assert run(sql.redeem_invite(
            invite.id, FamilyMember(family_id=seeded["family"].id, user_id=newcomer.id), utcnow(),
        )) is None

    def test_duplicate_invite_code(self, sql, seeded):
        with pytest.raises(DuplicateError):
            run(sql.save_invite(Invite(
                code="ABC123",
                family_id=seeded["family"].id,
                created_by=seeded["admin"].id,
                expires_at=utcnow() + timedelta(hours=1),
            )))

    def test_delete_family_cascades(self, sql, seeded):
        family_id = seeded["family"].id
        run(sql.save_expense(_expense(seeded, "10", date(2026, 3, 1))))

        assert run(sql.delete_family(family_id))

        assert run(sql.get_family(family_id)) is None
        assert run(sql.list_members(family_id)) == []
        assert run(sql.list_expenses(family_id, ExpenseFilter()))[1] == 0
        # Defaults are shared, not owned
        assert run(sql.get_category(seeded["category"].id)) is not None


class TestExpenses:

    def test_amount_and_date_round_trip(self, sql, seeded):
        saved = run(sql.save_expense(_expense(seeded, "1000.55", date(2026, 3, 31))))
        stored = run(sql.get_expense(saved.id))
        assert stored.amount == Decimal("1000.55")
        assert stored.expense_date == date(2026, 3, 31)

    def test_month_range_is_half_open(self, sql, seeded):
        for on in (date(2026, 2, 28), date(2026, 3, 1), date(2026, 3, 31), date(2026, 4, 1)):
            run(sql.save_expense(_expense(seeded, "1", on)))

        expenses = run(sql.list_expenses_between(seeded["family"].id, date(2026, 3, 1), date(2026, 4, 1)))

        assert [e.expense_date for e in expenses] == [date(2026, 3, 1), date(2026, 3, 31)]

    def test_list_filters_and_pages(self, sql, seeded):
        run(sql.save_expense(_expense(seeded, "10", date(2026, 3, 1))))
        run(sql.save_expense(_expense(seeded, "20", date(2026, 3, 2), user="member")))
        run(sql.save_expense(_expense(seeded, "30", date(2026, 3, 3))))

        data, total = run(sql.list_expenses(seeded["family"].id, ExpenseFilter(), limit=2, offset=0))
        assert total == 3
        assert [e.amount for e in data] == [Decimal("30"), Decimal("20")]

        data, total = run(sql.list_expenses(
            seeded["family"].id, ExpenseFilter(created_by_id=seeded["member"].id),
        ))
        assert total == 1

    def test_category_budget_upsert(self, sql, seeded):
        family_id, category_id = seeded["family"].id, seeded["category"].id
        run(sql.upsert_category_budget(CategoryBudget(
            family_id=family_id, category_id=category_id, month="2026-03", amount=Decimal("100"),
        )))
        run(sql.upsert_category_budget(CategoryBudget(
            family_id=family_id, category_id=category_id, month="2026-03", amount=Decimal("250"),
        )))

        budgets = run(sql.list_category_budgets(family_id, "2026-03"))

        assert [b.amount for b in budgets] == [Decimal("250")]
        assert run(sql.category_in_use(category_id)) is False


class TestRecurringAndLocks:

    def _template(self, seeded, due, **fields):
        return RecurringExpense(
            amount=Decimal("15000"),
            description="Rent",
            frequency=Frequency.MONTHLY,
            start_date=fields.pop("start_date", due),
            next_due_date=due,
            family_id=seeded["family"].id,
            category_id=seeded["category"].id,
            created_by_id=seeded["admin"].id,
            **fields,
        )

    def test_due_selection(self, sql, seeded):
        due = run(sql.save_recurring(self._template(seeded, date(2026, 3, 10))))
        run(sql.save_recurring(self._template(seeded, date(2026, 3, 10), is_active=False)))
        run(sql.save_recurring(self._template(seeded, date(2026, 3, 11))))
        run(sql.save_recurring(self._template(
            seeded, date(2026, 3, 1), start_date=date(2026, 1, 1), end_date=date(2026, 3, 9),
        )))
        ends_today = run(sql.save_recurring(self._template(
            seeded, date(2026, 3, 10), start_date=date(2026, 1, 10), end_date=date(2026, 3, 10),
        )))

        selected = run(sql.list_due_recurring(date(2026, 3, 10)))

        assert {t.id for t in selected} == {due.id, ends_today.id}

    def test_processor_over_sql(self, sql, seeded):
        template = run(sql.save_recurring(self._template(seeded, date(2026, 1, 31))))
        processor = RecurringExpenseProcessor(sql)

        first = run(processor.process_due(date(2026, 1, 31)))
        second = run(processor.process_due(date(2026, 1, 31)))

        assert first.materialized == 1
        assert second.selected == 0
        assert run(sql.get_recurring(template.id)).next_due_date == date(2026, 2, 28)
        assert run(sql.category_in_use(seeded["category"].id)) is True
        events = run(sql.get_events_by_correlation_id(first.correlation_id))
        assert [e.event_type for e in events] == [AuditEventType.RECURRING_MATERIALIZED]

    def test_update_leaves_cursor_alone(self, sql, seeded):
        template = run(sql.save_recurring(self._template(seeded, date(2026, 3, 10))))
        run(sql.set_next_due_date(template.id, date(2026, 4, 10)))

        updated = run(sql.update_recurring(template.model_copy(update={"amount": Decimal("99.00")})))

        stored = run(sql.get_recurring(template.id))
        assert stored.next_due_date == date(2026, 4, 10)
        assert stored.amount == Decimal("99.00")
        assert updated.next_due_date == date(2026, 4, 10)

    def test_job_lock_claimed_once(self, sql):
        assert run(sql.acquire("recurring-expenses", "2026-03-10")) is True
        assert run(sql.acquire("recurring-expenses", "2026-03-10")) is False
        assert run(sql.acquire("recurring-expenses", "2026-03-11")) is True


class TestNotificationsAndAudit:

    def test_cursor_pages_do_not_overlap(self, sql, seeded):
        user_id = seeded["admin"].id
        base = datetime(2026, 3, 1, tzinfo=timezone.utc)
        run(sql.save_notifications([
            Notification(type="LARGE_EXPENSE", title=f"N{i}", body="b", user_id=user_id,
                         created_at=base + timedelta(minutes=i))
            for i in range(5)
        ]))

        first, total = run(sql.list_notifications(user_id, limit=2))
        second, _ = run(sql.list_notifications(user_id, limit=2, cursor=first[-1].id))

        assert total == 5
        assert [n.title for n in first] == ["N4", "N3"]
        assert [n.title for n in second] == ["N2", "N1"]

    def test_unread_counts(self, sql, seeded):
        user_id = seeded["admin"].id
        saved = run(sql.save_notifications([
            Notification(type="MEMBER_JOINED", title=f"N{i}", body="b", user_id=user_id)
            for i in range(3)
        ]))
        run(sql.mark_read(saved[0].id))
        assert run(sql.count_unread(user_id)) == 2
        assert run(sql.mark_all_read(user_id)) == 2
        assert run(sql.count_unread(user_id)) == 0

    def test_audit_events_by_entity(self, sql):
        family_id = uuid4()
        run(sql.append_event(AuditEventBuilder.family_created(family_id, "Sharma Family", uuid4())))
        events = run(sql.get_events_by_entity("family", family_id))
        assert len(events) == 1
        assert events[0].details == {"name": "Sharma Family"}
