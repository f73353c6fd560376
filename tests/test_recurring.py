"""
Tests for the recurring expense engine.

Covers template CRUD rules, the due-date arithmetic and one processing
pass end to end over InMemoryStorage.
"""

import pytest
from datetime import date
from decimal import Decimal

from budgety.jobs.recurring import RecurringExpenseProcessor, advance_due_date
from budgety.models.audit import AuditEventType
from budgety.models.expense import (
    Frequency,
    RecurringExpense,
    RecurringExpenseCreate,
    RecurringExpenseUpdate,
)
from budgety.services.errors import ForbiddenError, InvalidRequestError, NotFoundError
from budgety.services.recurring import RecurringExpenseService
from budgety.services.storage import InMemoryStorage, StorageUnavailableError
from tests.conftest import add_category, add_family, add_user, membership, run


def _template(family, user, category, frequency=Frequency.MONTHLY, due=date(2026, 1, 31), **fields):
    return RecurringExpense(
        amount=fields.pop("amount", Decimal("15000.00")),
        description=fields.pop("description", "Rent"),
        frequency=frequency,
        start_date=fields.pop("start_date", due),
        next_due_date=due,
        family_id=family.id,
        category_id=category.id,
        created_by_id=user.id,
        **fields,
    )


class TestAdvanceDueDate:

    def test_daily_and_weekly(self):
        assert advance_due_date(date(2026, 2, 28), Frequency.DAILY) == date(2026, 3, 1)
        assert advance_due_date(date(2026, 12, 29), Frequency.WEEKLY) == date(2027, 1, 5)

    def test_monthly_clamps(self):
        assert advance_due_date(date(2026, 1, 31), Frequency.MONTHLY) == date(2026, 2, 28)
        assert advance_due_date(date(2024, 1, 31), Frequency.MONTHLY) == date(2024, 2, 29)

    def test_clamped_day_stays_clamped(self):
        feb = advance_due_date(date(2026, 1, 31), Frequency.MONTHLY)
        assert advance_due_date(feb, Frequency.MONTHLY) == date(2026, 3, 28)

    def test_yearly_from_leap_day(self):
        assert advance_due_date(date(2024, 2, 29), Frequency.YEARLY) == date(2025, 2, 28)


class TestRecurringExpenseService:

    def test_create_sets_cursor_to_start_date(self, storage, family, admin, rent):
        service = RecurringExpenseService(storage)
        view = run(service.create_recurring(
            family.id,
            membership(storage, family, admin),
            RecurringExpenseCreate(
                amount="15000.999",
                description="Rent",
                frequency=Frequency.MONTHLY,
                start_date=date(2026, 4, 1),
                category_id=rent.id,
            ),
        ))
        assert view.next_due_date == date(2026, 4, 1)
        assert view.amount == Decimal("15000.99")
        assert view.is_active
        assert view.category.name == "Rent"
        assert view.created_by.id == admin.id

    def test_create_rejects_foreign_category(self, storage, family, admin):
        other_family = add_family(storage, add_user(storage, "Meera"), name="Other")
        foreign = add_category(storage, "Pets", family=other_family)
        service = RecurringExpenseService(storage)
        with pytest.raises(NotFoundError, match="Category not found"):
            run(service.create_recurring(
                family.id,
                membership(storage, family, admin),
                RecurringExpenseCreate(
                    amount=100,
                    description="Food",
                    frequency=Frequency.WEEKLY,
                    start_date=date(2026, 4, 1),
                    category_id=foreign.id,
                ),
            ))

    def test_member_cannot_edit_others_template(self, storage, family, admin, member_user, rent):
        template = run(storage.save_recurring(_template(family, admin, rent)))
        service = RecurringExpenseService(storage)
        with pytest.raises(ForbiddenError, match="Only the creator or admin can edit"):
            run(service.update_recurring(
                family.id, template.id,
                membership(storage, family, member_user),
                RecurringExpenseUpdate(amount=10),
            ))
        with pytest.raises(ForbiddenError):
            run(service.delete_recurring(family.id, template.id, membership(storage, family, member_user)))

    def test_admin_can_edit_members_template(self, storage, family, admin, member_user, rent):
        template = run(storage.save_recurring(_template(family, member_user, rent)))
        service = RecurringExpenseService(storage)
        view = run(service.update_recurring(
            family.id, template.id,
            membership(storage, family, admin),
            RecurringExpenseUpdate(is_active=False, amount="99.999"),
        ))
        assert not view.is_active
        assert view.amount == Decimal("99.99")
        assert view.next_due_date == template.next_due_date

    def test_update_rejects_end_before_start(self, storage, family, admin, rent):
        template = run(storage.save_recurring(_template(family, admin, rent, due=date(2026, 5, 1))))
        service = RecurringExpenseService(storage)
        with pytest.raises(InvalidRequestError):
            run(service.update_recurring(
                family.id, template.id,
                membership(storage, family, admin),
                RecurringExpenseUpdate(end_date=date(2026, 4, 1)),
            ))

    def test_template_of_other_family_is_not_found(self, storage, family, admin, rent):
        other_admin = add_user(storage, "Meera")
        other_family = add_family(storage, other_admin, name="Other")
        template = run(storage.save_recurring(_template(other_family, other_admin, rent)))
        service = RecurringExpenseService(storage)
        with pytest.raises(NotFoundError, match="Recurring expense not found"):
            run(service.delete_recurring(family.id, template.id, membership(storage, family, admin)))

    def test_list_is_paginated(self, storage, family, admin, rent):
        for _ in range(3):
            run(storage.save_recurring(_template(family, admin, rent)))
        page = run(RecurringExpenseService(storage).list_recurring(family.id, page=2, limit=2))
        assert page.total == 3
        assert page.page == 2
        assert len(page.data) == 1


class TestRecurringExpenseProcessor:

    @pytest.mark.parametrize("frequency, expected", [
        (Frequency.DAILY, date(2026, 3, 11)),
        (Frequency.WEEKLY, date(2026, 3, 17)),
        (Frequency.MONTHLY, date(2026, 4, 10)),
        (Frequency.YEARLY, date(2027, 3, 10)),
    ])
    def test_one_pass_materializes_and_advances(self, storage, family, admin, rent, frequency, expected):
        template = run(storage.save_recurring(
            _template(family, admin, rent, frequency=frequency, due=date(2026, 3, 10))
        ))

        summary = run(RecurringExpenseProcessor(storage).process_due(date(2026, 3, 10)))

        assert summary.selected == 1
        assert summary.materialized == 1
        assert summary.failed == 0
        expenses = list(storage.expenses.values())
        assert len(expenses) == 1
        assert expenses[0].expense_date == date(2026, 3, 10)
        assert expenses[0].amount == template.amount
        assert expenses[0].created_by_id == admin.id
        assert storage.recurring[template.id].next_due_date == expected

    def test_month_end_template_over_three_passes(self, storage, family, admin, rent):
        template = run(storage.save_recurring(_template(family, admin, rent, due=date(2026, 1, 31))))
        processor = RecurringExpenseProcessor(storage)

        run(processor.process_due(date(2026, 1, 31)))
        run(processor.process_due(date(2026, 2, 28)))
        run(processor.process_due(date(2026, 3, 28)))

        dates = sorted(e.expense_date for e in storage.expenses.values())
        assert dates == [date(2026, 1, 31), date(2026, 2, 28), date(2026, 3, 28)]
        assert storage.recurring[template.id].next_due_date == date(2026, 4, 28)

    def test_second_pass_selects_nothing(self, storage, family, admin, rent):
        run(storage.save_recurring(_template(family, admin, rent, frequency=Frequency.DAILY, due=date(2026, 3, 10))))
        processor = RecurringExpenseProcessor(storage)

        first = run(processor.process_due(date(2026, 3, 10)))
        second = run(processor.process_due(date(2026, 3, 10)))

        assert first.materialized == 1
        assert second.selected == 0
        assert len(storage.expenses) == 1

    def test_inactive_and_ended_templates_are_skipped(self, storage, family, admin, rent):
        run(storage.save_recurring(_template(family, admin, rent, due=date(2026, 3, 1), is_active=False)))
        run(storage.save_recurring(_template(
            family, admin, rent, due=date(2026, 3, 1), start_date=date(2026, 1, 1), end_date=date(2026, 3, 9),
        )))
        run(storage.save_recurring(_template(family, admin, rent, due=date(2026, 3, 11))))

        summary = run(RecurringExpenseProcessor(storage).process_due(date(2026, 3, 10)))

        assert summary.selected == 0
        assert storage.expenses == {}

    def test_end_date_today_still_materializes(self, storage, family, admin, rent):
        run(storage.save_recurring(_template(
            family, admin, rent, due=date(2026, 3, 10), start_date=date(2026, 1, 10), end_date=date(2026, 3, 10),
        )))
        summary = run(RecurringExpenseProcessor(storage).process_due(date(2026, 3, 10)))
        assert summary.materialized == 1

    def test_failure_is_isolated_and_audited(self, family, admin, rent):
        class FlakyStorage(InMemoryStorage):
            def __init__(self, failing_description):
                super().__init__()
                self.failing_description = failing_description

            async def save_expense(self, expense):
                if expense.description == self.failing_description:
                    raise StorageUnavailableError("database is locked")
                return await super().save_expense(expense)

        storage = FlakyStorage("Broken")
        broken = run(storage.save_recurring(_template(family, admin, rent, due=date(2026, 3, 10), description="Broken")))
        healthy = run(storage.save_recurring(_template(family, admin, rent, due=date(2026, 3, 10), description="Gym")))

        summary = run(RecurringExpenseProcessor(storage).process_due(date(2026, 3, 10)))

        assert summary.selected == 2
        assert summary.materialized == 1
        assert summary.failed == 1
        assert summary.failed_template_ids == [broken.id]
        # The failed template keeps its cursor and is retried by a later pass
        assert storage.recurring[broken.id].next_due_date == date(2026, 3, 10)
        assert storage.recurring[healthy.id].next_due_date == date(2026, 4, 10)

        failed = [e for e in storage.audit_events if e.event_type == AuditEventType.RECURRING_FAILED]
        assert len(failed) == 1
        assert failed[0].entity_id == broken.id
        assert failed[0].correlation_id == summary.correlation_id

    def test_cursor_write_failure_leaves_template_due(self, family, admin, rent):
        class NoCursorStorage(InMemoryStorage):
            async def set_next_due_date(self, template_id, next_due_date):
                raise StorageUnavailableError("connection reset")

        storage = NoCursorStorage()
        template = run(storage.save_recurring(_template(family, admin, rent, due=date(2026, 3, 10))))

        summary = run(RecurringExpenseProcessor(storage).process_due(date(2026, 3, 10)))

        assert summary.failed == 1
        assert len(storage.expenses) == 1
        assert run(storage.list_due_recurring(date(2026, 3, 10)))[0].id == template.id
        event = next(e for e in storage.audit_events if e.event_type == AuditEventType.RECURRING_FAILED)
        assert event.details["expense_created"] is True

    def test_unadvanceable_template_does_not_stop_the_pass(self, storage, family, admin, rent):
        # The day after 9999-12-31 cannot be represented
        stuck = run(storage.save_recurring(_template(
            family, admin, rent, frequency=Frequency.DAILY, due=date(9999, 12, 31), description="Stuck",
        )))
        healthy = run(storage.save_recurring(_template(family, admin, rent, due=date(2026, 3, 10))))

        summary = run(RecurringExpenseProcessor(storage).process_due(date(9999, 12, 31)))

        assert summary.materialized == 1
        assert summary.failed_template_ids == [stuck.id]
        assert [e.description for e in storage.expenses.values()] == ["Rent"]
        assert storage.recurring[healthy.id].next_due_date == date(2026, 4, 10)
        event = next(e for e in storage.audit_events if e.event_type == AuditEventType.RECURRING_FAILED)
        assert event.entity_id == stuck.id
        assert event.details["expense_created"] is False

    def test_template_edit_keeps_cursor_written_by_a_pass(self, storage, family, admin, rent):
        template = run(storage.save_recurring(_template(family, admin, rent, due=date(2026, 3, 10))))
        stale = run(storage.get_recurring(template.id))

        run(RecurringExpenseProcessor(storage).process_due(date(2026, 3, 10)))
        updated = run(storage.update_recurring(stale.model_copy(update={"amount": Decimal("99.00")})))

        assert updated.next_due_date == date(2026, 4, 10)
        assert storage.recurring[template.id].next_due_date == date(2026, 4, 10)
        assert storage.recurring[template.id].amount == Decimal("99.00")

    def test_materialized_events_share_correlation_id(self, storage, family, admin, rent):
        run(storage.save_recurring(_template(family, admin, rent, due=date(2026, 3, 10))))
        summary = run(RecurringExpenseProcessor(storage).process_due(date(2026, 3, 10)))
        events = run(storage.get_events_by_correlation_id(summary.correlation_id))
        assert [e.event_type for e in events] == [AuditEventType.RECURRING_MATERIALIZED]
