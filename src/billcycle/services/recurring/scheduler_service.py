"""
Obligation Scheduler.

Owns the due-date state machine of each recurring template.

## States

- Active: is_active True
- Paused: is_active False; never advanced
- Overdue (derived): Active and next_due_date before now

There is no "ended" state. Crossing end_date flips is_active to False.

## One run, per due template

1. end_date set and next_due_date > end_date: deactivate, nothing materialized
2. Materialize one transaction dated next_due_date
3. last_processed_date = next_due_date
4. Advance next_due_date; if the advanced date is past end_date, deactivate
   instead

Templates several periods behind catch up one occurrence per run. The
scheduler never mutates its input; it returns TemplateMutation copies.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence

from billcycle.exceptions import CalendarArithmeticError
from billcycle.models.mutation import TemplateMutation, ScheduleFailure, ScheduleRunResult
from billcycle.models.recurring_template import RecurringTemplate, RecurringFrequency
from billcycle.models.transaction import Transaction, TransactionType
from billcycle.utils.temporal_utils import add_days, add_months, add_years, ensure_utc

logger = logging.getLogger(__name__)

_ADVANCE_RULES: Dict[RecurringFrequency, Callable[[datetime], datetime]] = {
    RecurringFrequency.DAILY: lambda d: add_days(d, 1),
    RecurringFrequency.WEEKLY: lambda d: add_days(d, 7),
    RecurringFrequency.BIWEEKLY: lambda d: add_days(d, 14),
    RecurringFrequency.MONTHLY: lambda d: add_months(d, 1),
    RecurringFrequency.QUARTERLY: lambda d: add_months(d, 3),
    RecurringFrequency.YEARLY: lambda d: add_years(d, 1),
}


def calculate_next_due_date(date: datetime, frequency: RecurringFrequency) -> datetime:
    """
    Advance a due date by one period of the given frequency.

    Month-based frequencies clamp the day to the end of the target month.

    Raises:
        CalendarArithmeticError: If the result is not a representable date
    """
    return _ADVANCE_RULES[frequency](date)


class ObligationScheduler:
    """Advances due templates and materializes their transactions."""

    def __init__(self, reminder_window_days: int = 7):
        self.reminder_window_days = reminder_window_days

    calculate_next_due_date = staticmethod(calculate_next_due_date)

    def process_template(self, template: RecurringTemplate, now: datetime) -> TemplateMutation:
        """
        Apply one scheduling step to a due template.

        Args:
            template: An active template with next_due_date <= now
            now: Current time, used for updated_at

        Returns:
            TemplateMutation with the updated copy and any materialized transaction

        Raises:
            CalendarArithmeticError: If next_due_date cannot be advanced; the
                input template is untouched and nothing is materialized
        """
        now = ensure_utc(now)
        updated = template.model_copy(deep=True)
        due_date = updated.next_due_date

        if updated.end_date is not None and due_date > updated.end_date:
            logger.info(f"Template {updated.template_id} ({updated.name}) is past its end date, deactivating")
            updated.is_active = False
            updated.updated_at = now
            return TemplateMutation(template=updated)

        # Advance first so a failure leaves nothing half-applied
        next_due = calculate_next_due_date(due_date, updated.frequency)

        transaction = Transaction(
            amount=updated.amount,
            date=due_date,
            transaction_type=updated.transaction_type,
            description=updated.name,
            notes=updated.notes,
            parent_template_id=updated.template_id,
            category_id=updated.category_id,
            account_id=updated.account_id,
            created_at=now,
            updated_at=now,
        )
        updated.generated_transaction_ids.append(transaction.transaction_id)
        updated.last_processed_date = due_date

        if updated.end_date is not None and next_due > updated.end_date:
            logger.info(f"Template {updated.template_id} ({updated.name}) reached its end date, deactivating")
            updated.is_active = False
        else:
            updated.next_due_date = next_due
        updated.updated_at = now

        return TemplateMutation(template=updated, transactions=[transaction])

    def generate_due(self, now: datetime, templates: Sequence[RecurringTemplate]) -> ScheduleRunResult:
        """
        Process every active template that is due at `now`.

        Templates that are inactive or not yet due are ignored. Due templates
        are processed in (next_due_date, template_id) order. A template whose
        date cannot be advanced is reported in failures and left unchanged.

        Args:
            now: Current time
            templates: Candidate templates (typically all active templates)

        Returns:
            ScheduleRunResult with one mutation per processed template
        """
        now = ensure_utc(now)
        due = self.due_templates(templates, now)

        result = ScheduleRunResult()
        for template in due:
            try:
                result.mutations.append(self.process_template(template, now))
            except CalendarArithmeticError as e:
                logger.error(
                    f"Could not advance template {template.template_id} ({template.name}): {str(e)}",
                    extra={'template_id': str(template.template_id), 'frequency': template.frequency.value}
                )
                result.failures.append(ScheduleFailure(
                    template_id=template.template_id,
                    name=template.name,
                    error=str(e)
                ))

        logger.info(
            f"Scheduler run at {now.isoformat()}: {len(due)} due, "
            f"{len(result.materialized_transactions)} materialized, {len(result.failures)} failed"
        )
        return result

    def due_templates(self, templates: Sequence[RecurringTemplate], now: datetime) -> List[RecurringTemplate]:
        """Active templates due at now, in (next_due_date, template_id) order."""
        now = ensure_utc(now)
        return sorted(
            (t for t in templates if t.is_due(now)),
            key=lambda t: (t.next_due_date, str(t.template_id))
        )

    def overdue_templates(self, templates: Sequence[RecurringTemplate], now: datetime) -> List[RecurringTemplate]:
        """Active templates whose due date is strictly before now, oldest first."""
        now = ensure_utc(now)
        overdue = [t for t in templates if t.is_overdue(now)]
        return sorted(overdue, key=lambda t: t.next_due_date)

    def upcoming_templates(
        self,
        templates: Sequence[RecurringTemplate],
        now: datetime,
        within_days: Optional[int] = None
    ) -> List[RecurringTemplate]:
        """Active templates due between now and now + within_days inclusive, soonest first."""
        now = ensure_utc(now)
        days = self.reminder_window_days if within_days is None else within_days
        horizon = add_days(now, days)
        upcoming = [
            t for t in templates
            if t.is_active and now <= t.next_due_date <= horizon
        ]
        return sorted(upcoming, key=lambda t: t.next_due_date)

    def reminder_candidates(
        self,
        templates: Sequence[RecurringTemplate],
        now: datetime,
        within_days: Optional[int] = None
    ) -> List[RecurringTemplate]:
        """
        Templates a notification layer should remind about.

        Upcoming templates plus overdue ones that are not paid automatically.
        Auto-pay templates are still reminded about before they fall due.
        """
        overdue = [t for t in self.overdue_templates(templates, now) if not t.is_auto_pay]
        return overdue + self.upcoming_templates(templates, now, within_days)

    def pause(self, template: RecurringTemplate, now: datetime) -> RecurringTemplate:
        """Return a paused copy of the template."""
        paused = template.model_copy(deep=True)
        paused.is_active = False
        paused.updated_at = ensure_utc(now)
        return paused

    def resume(self, template: RecurringTemplate, now: datetime) -> RecurringTemplate:
        """
        Return a reactivated copy of the template.

        The due date is kept as is, so a template resumed after its due date
        is immediately overdue and materializes on the next run.
        """
        resumed = template.model_copy(deep=True)
        resumed.is_active = True
        resumed.updated_at = ensure_utc(now)
        return resumed

    def monthly_cost(
        self,
        templates: Sequence[RecurringTemplate],
        transaction_type: Optional[TransactionType] = None
    ) -> Decimal:
        """Sum of monthly-equivalent amounts of active templates, optionally of one type."""
        return sum(
            (t.monthly_equivalent_amount for t in templates
             if t.is_active and (transaction_type is None or t.transaction_type == transaction_type)),
            Decimal("0")
        )
