"""
Unit tests for ObligationScheduler and due-date advancement.
"""

import uuid
import pytest
from decimal import Decimal

from billcycle.exceptions import CalendarArithmeticError
from billcycle.models.recurring_template import RecurringFrequency
from billcycle.models.transaction import TransactionType
from billcycle.services.recurring.scheduler_service import ObligationScheduler, calculate_next_due_date
from tests.fixtures.recurring_fixtures import utc, create_template


@pytest.fixture
def scheduler():
    return ObligationScheduler()


class TestCalculateNextDueDate:
    """Tests for one-period advancement."""

    @pytest.mark.parametrize("frequency,expected", [
        (RecurringFrequency.DAILY, utc(2026, 1, 16)),
        (RecurringFrequency.WEEKLY, utc(2026, 1, 22)),
        (RecurringFrequency.BIWEEKLY, utc(2026, 1, 29)),
        (RecurringFrequency.MONTHLY, utc(2026, 2, 15)),
        (RecurringFrequency.QUARTERLY, utc(2026, 4, 15)),
        (RecurringFrequency.YEARLY, utc(2027, 1, 15)),
    ])
    def test_advances_one_period(self, frequency, expected):
        assert calculate_next_due_date(utc(2026, 1, 15), frequency) == expected

    def test_month_end_clamps(self):
        assert calculate_next_due_date(utc(2026, 1, 31), RecurringFrequency.MONTHLY) == utc(2026, 2, 28)
        assert calculate_next_due_date(utc(2028, 1, 31), RecurringFrequency.MONTHLY) == utc(2028, 2, 29)
        assert calculate_next_due_date(utc(2025, 11, 30), RecurringFrequency.QUARTERLY) == utc(2026, 2, 28)

    def test_leap_day_yearly_clamps(self):
        assert calculate_next_due_date(utc(2028, 2, 29), RecurringFrequency.YEARLY) == utc(2029, 2, 28)

    def test_year_overflow_raises(self):
        with pytest.raises(CalendarArithmeticError):
            calculate_next_due_date(utc(9999, 6, 1), RecurringFrequency.YEARLY)


class TestGenerateDue:
    """Tests for the batch scheduling run."""

    def test_materializes_due_subscription(self, scheduler):
        template = create_template()

        result = scheduler.generate_due(utc(2026, 1, 2), [template])

        assert len(result.materialized_transactions) == 1
        txn = result.materialized_transactions[0]
        assert txn.date == utc(2026, 1, 1)
        assert txn.amount == Decimal("17.99")
        assert txn.description == "Netflix"
        assert txn.parent_template_id == template.template_id
        assert txn.transaction_type == TransactionType.EXPENSE

        updated = result.mutations[0].template
        assert updated.next_due_date == utc(2026, 2, 1)
        assert updated.last_processed_date == utc(2026, 1, 1)
        assert updated.generated_transaction_ids == [txn.transaction_id]
        assert updated.is_active is True

    def test_due_exactly_now_is_processed(self, scheduler):
        result = scheduler.generate_due(utc(2026, 1, 1), [create_template()])

        assert len(result.mutations) == 1

    def test_input_is_not_mutated(self, scheduler):
        template = create_template()
        before = template.model_dump()

        scheduler.generate_due(utc(2026, 1, 2), [template])

        assert template.model_dump() == before

    def test_second_run_is_idempotent(self, scheduler):
        now = utc(2026, 1, 2)
        first = scheduler.generate_due(now, [create_template()])

        second = scheduler.generate_due(now, [first.mutations[0].template])

        assert second.mutations == []
        assert second.materialized_transactions == []

    def test_not_due_and_paused_are_ignored(self, scheduler):
        future = create_template(next_due_date=utc(2026, 3, 1))
        paused = create_template(is_active=False)

        result = scheduler.generate_due(utc(2026, 1, 2), [future, paused])

        assert result.mutations == []
        assert result.failures == []

    def test_one_occurrence_per_run_when_behind(self, scheduler):
        template = create_template(next_due_date=utc(2025, 10, 1))

        result = scheduler.generate_due(utc(2026, 1, 15), [template])

        assert len(result.materialized_transactions) == 1
        assert result.mutations[0].template.next_due_date == utc(2025, 11, 1)

    def test_month_end_template_clamps(self, scheduler):
        template = create_template(next_due_date=utc(2026, 1, 31))

        result = scheduler.generate_due(utc(2026, 1, 31), [template])

        assert result.mutations[0].template.next_due_date == utc(2026, 2, 28)

    def test_deactivates_when_past_end_date(self, scheduler):
        template = create_template(
            start_date=utc(2025, 12, 1),
            next_due_date=utc(2026, 1, 1),
            end_date=utc(2025, 12, 15),
        )

        result = scheduler.generate_due(utc(2026, 1, 2), [template])

        assert result.materialized_transactions == []
        assert len(result.deactivated_templates) == 1
        assert result.deactivated_templates[0].next_due_date == utc(2026, 1, 1)

    def test_last_occurrence_before_end_date_deactivates(self, scheduler):
        template = create_template(end_date=utc(2026, 1, 20))

        result = scheduler.generate_due(utc(2026, 1, 2), [template])

        assert len(result.materialized_transactions) == 1
        updated = result.mutations[0].template
        assert updated.is_active is False
        assert updated.next_due_date == utc(2026, 1, 1)
        assert updated.last_processed_date == utc(2026, 1, 1)

    def test_occurrence_on_end_date_keeps_template_active(self, scheduler):
        template = create_template(end_date=utc(2026, 2, 1))

        result = scheduler.generate_due(utc(2026, 1, 2), [template])

        assert result.mutations[0].template.is_active is True
        assert result.mutations[0].template.next_due_date == utc(2026, 2, 1)

    def test_calendar_failure_is_isolated(self, scheduler):
        broken = create_template(
            name="Domain renewal",
            frequency=RecurringFrequency.YEARLY,
            next_due_date=utc(9999, 6, 1),
        )
        healthy = create_template(next_due_date=utc(9999, 1, 1))
        before = broken.model_dump()

        result = scheduler.generate_due(utc(9999, 7, 1), [broken, healthy])

        assert len(result.failures) == 1
        assert result.failures[0].template_id == broken.template_id
        assert result.failures[0].name == "Domain renewal"
        assert [m.template_id for m in result.mutations] == [healthy.template_id]
        assert broken.model_dump() == before

    def test_processing_order(self, scheduler):
        later = create_template(name="Later", next_due_date=utc(2026, 1, 1))
        earlier = create_template(name="Earlier", next_due_date=utc(2025, 12, 1))

        result = scheduler.generate_due(utc(2026, 1, 2), [later, earlier])

        assert [m.template.name for m in result.mutations] == ["Earlier", "Later"]

    def test_materialized_transaction_copies_template_fields(self, scheduler):
        template = create_template(
            name="Salary",
            amount=Decimal("3000"),
            transaction_type=TransactionType.INCOME,
            notes="[Other]",
        )

        result = scheduler.generate_due(utc(2026, 1, 2), [template])

        txn = result.materialized_transactions[0]
        assert txn.transaction_type == TransactionType.INCOME
        assert txn.notes == "[Other]"
        assert txn.category_id == template.category_id


class TestQueries:
    """Tests for overdue, upcoming and reminder queries."""

    def test_overdue_is_strict(self, scheduler):
        due_now = create_template(name="Now", next_due_date=utc(2026, 1, 10))
        overdue = create_template(name="Overdue", next_due_date=utc(2026, 1, 5))
        paused = create_template(name="Paused", next_due_date=utc(2026, 1, 1), is_active=False)

        result = scheduler.overdue_templates([due_now, overdue, paused], utc(2026, 1, 10))

        assert [t.name for t in result] == ["Overdue"]

    def test_due_templates_order_and_filter(self, scheduler):
        second = create_template(name="B", next_due_date=utc(2026, 1, 5)).model_copy(
            update={'template_id': uuid.UUID(int=2)}
        )
        first = create_template(name="A", next_due_date=utc(2026, 1, 5)).model_copy(
            update={'template_id': uuid.UUID(int=1)}
        )
        oldest = create_template(name="Oldest", next_due_date=utc(2025, 12, 1))
        future = create_template(name="Future", next_due_date=utc(2026, 1, 11))
        paused = create_template(name="Paused", next_due_date=utc(2026, 1, 1), is_active=False)

        result = scheduler.due_templates([second, future, first, paused, oldest], utc(2026, 1, 10))

        assert [t.name for t in result] == ["Oldest", "A", "B"]

    def test_upcoming_window_inclusive(self, scheduler):
        templates = [
            create_template(name="Today", next_due_date=utc(2026, 1, 10)),
            create_template(name="Edge", next_due_date=utc(2026, 1, 17)),
            create_template(name="Beyond", next_due_date=utc(2026, 1, 18)),
            create_template(name="Past", next_due_date=utc(2026, 1, 9)),
        ]

        result = scheduler.upcoming_templates(templates, utc(2026, 1, 10))

        assert [t.name for t in result] == ["Today", "Edge"]

    def test_upcoming_custom_window(self, scheduler):
        templates = [create_template(next_due_date=utc(2026, 1, 25))]

        assert scheduler.upcoming_templates(templates, utc(2026, 1, 10), within_days=7) == []
        assert len(scheduler.upcoming_templates(templates, utc(2026, 1, 10), within_days=30)) == 1

    def test_reminders_skip_overdue_autopay(self, scheduler):
        templates = [
            create_template(name="Manual overdue", next_due_date=utc(2026, 1, 1)),
            create_template(name="Autopay overdue", next_due_date=utc(2026, 1, 1), is_auto_pay=True),
            create_template(name="Autopay upcoming", next_due_date=utc(2026, 1, 12), is_auto_pay=True),
        ]

        result = scheduler.reminder_candidates(templates, utc(2026, 1, 10))

        assert [t.name for t in result] == ["Manual overdue", "Autopay upcoming"]


class TestLifecycle:
    """Tests for pause, resume and monthly cost."""

    def test_pause_and_resume(self, scheduler):
        template = create_template()

        paused = scheduler.pause(template, utc(2026, 1, 5))
        resumed = scheduler.resume(paused, utc(2026, 2, 5))

        assert template.is_active is True
        assert paused.is_active is False
        assert resumed.is_active is True
        assert resumed.next_due_date == template.next_due_date
        assert resumed.updated_at == utc(2026, 2, 5)

    def test_paused_template_is_never_advanced(self, scheduler):
        paused = scheduler.pause(create_template(), utc(2026, 1, 1))

        assert scheduler.generate_due(utc(2026, 6, 1), [paused]).mutations == []

    def test_monthly_cost_normalizes_frequencies(self, scheduler):
        templates = [
            create_template(amount=Decimal("12"), frequency=RecurringFrequency.MONTHLY),
            create_template(amount=Decimal("120"), frequency=RecurringFrequency.YEARLY),
            create_template(amount=Decimal("30"), frequency=RecurringFrequency.QUARTERLY),
            create_template(amount=Decimal("100"), is_active=False),
        ]

        assert scheduler.monthly_cost(templates) == Decimal("32")

    def test_weekly_counts_fifty_two_per_year(self, scheduler):
        templates = [create_template(amount=Decimal("12"), frequency=RecurringFrequency.WEEKLY)]

        assert scheduler.monthly_cost(templates) == Decimal("52")

    def test_monthly_cost_type_filter(self, scheduler):
        templates = [
            create_template(amount=Decimal("15")),
            create_template(name="Salary", amount=Decimal("3000"), transaction_type=TransactionType.INCOME),
        ]

        assert scheduler.monthly_cost(templates, TransactionType.EXPENSE) == Decimal("15")
        assert scheduler.monthly_cost(templates) == Decimal("3015")
