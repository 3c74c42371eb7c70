"""
Recurring Engine.

Batch entry points that wire the services to a RecordStore. Each entry point
reads a snapshot from the store, runs the pure service logic and, for the
mutating ones, persists the result.

Mutations of one template are serialized with a per-template lock held from
the re-read through the persist, so two overlapping generate_due runs never
materialize the same occurrence twice.
"""

import logging
import threading
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from billcycle.exceptions import CalendarArithmeticError, InputError, StorageError
from billcycle.models.cancellation import CancellationSuggestion
from billcycle.models.detection import DetectionResult
from billcycle.models.forecast import ForecastSummary
from billcycle.models.mutation import ScheduleFailure, ScheduleRunResult, TemplateMutation
from billcycle.models.recurring_template import RecurringFrequency, RecurringTemplate
from billcycle.services.recurring.cancellation_service import CancellationScorer
from billcycle.services.recurring.config import EngineConfig, DEFAULT_CONFIG
from billcycle.services.recurring.detection_service import PatternDetector, TagExtractor
from billcycle.services.recurring.forecast_service import ForecastEngine
from billcycle.services.recurring.price_history_service import PriceHistoryTracker
from billcycle.services.recurring.scheduler_service import ObligationScheduler
from billcycle.utils.bill_tags import extract_bill_tags
from billcycle.utils.db.base import RecordStore, TransactionFilter
from billcycle.utils.performance import EnginePerformanceTracker
from billcycle.utils.temporal_utils import add_months, ensure_utc

logger = logging.getLogger(__name__)


class RecurringEngine:
    """
    Facade over detection, scheduling, price tracking, forecasting and scoring.

    Usage:
        engine = RecurringEngine(InMemoryRecordStore(templates=templates))
        result = engine.generate_due(now)
        summary = engine.forecast(now)
    """

    def __init__(
        self,
        store: RecordStore,
        config: Optional[EngineConfig] = None,
        tag_extractor: TagExtractor = extract_bill_tags
    ):
        self.store = store
        self.config = config or DEFAULT_CONFIG
        self.detector = PatternDetector(self.config, tag_extractor)
        self.scheduler = ObligationScheduler(self.config.reminder_window_days)
        self.price_tracker = PriceHistoryTracker()
        self.forecaster = ForecastEngine(self.config.forecast)
        self.scorer = CancellationScorer(self.config.cancellation)
        # One lock per template id seen; entries are never evicted, so the map
        # grows with the number of distinct templates this engine has scheduled.
        self._locks: Dict[uuid.UUID, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _template_lock(self, template_id: uuid.UUID) -> threading.Lock:
        with self._locks_guard:
            if template_id not in self._locks:
                self._locks[template_id] = threading.Lock()
            return self._locks[template_id]

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def generate_due(self, now: datetime) -> ScheduleRunResult:
        """
        Materialize due occurrences of every active template and persist them.

        Each template is persisted in its own atomic call. A calendar or
        storage failure for one template is logged and reported in the
        result's failures; the template keeps its stored state and the rest of
        the batch carries on.
        """
        now = ensure_utc(now)
        result = ScheduleRunResult()

        with EnginePerformanceTracker("generate_due") as tracker:
            with tracker.stage("fetch"):
                snapshot = self.store.fetch_active_templates()
            tracker.set_template_count(len(snapshot))

            due = self.scheduler.due_templates(snapshot, now)

            with tracker.stage("schedule"):
                for template in due:
                    with self._template_lock(template.template_id):
                        self._generate_for_template(template, now, result)

            tracker.set_results_produced(len(result.materialized_transactions))
            tracker.set_failures(len(result.failures))

        return result

    def _generate_for_template(self, template: RecurringTemplate, now: datetime, result: ScheduleRunResult) -> None:
        try:
            current = self.store.fetch_template(template.template_id)
            if current is None or not current.is_due(now):
                logger.debug(f"Template {template.template_id} no longer due, skipping")
                return
            mutation = self.scheduler.process_template(current, now)
            self.store.persist([mutation])
        except CalendarArithmeticError as e:
            logger.error(
                f"Could not advance template {template.template_id} ({template.name}): {str(e)}",
                extra={'template_id': str(template.template_id)}
            )
            result.failures.append(self._failure(template, e))
        except StorageError as e:
            logger.error(
                f"Storage error while scheduling template {template.template_id} ({template.name}): {str(e)}",
                exc_info=True,
                extra={'template_id': str(template.template_id), 'operation': e.operation}
            )
            result.failures.append(self._failure(template, e))
        else:
            result.mutations.append(mutation)

    @staticmethod
    def _failure(template: RecurringTemplate, error: Exception) -> ScheduleFailure:
        return ScheduleFailure(template_id=template.template_id, name=template.name, error=str(error))

    def overdue(self, now: datetime) -> List[RecurringTemplate]:
        return self.scheduler.overdue_templates(self.store.fetch_active_templates(), now)

    def upcoming(self, now: datetime, within_days: Optional[int] = None) -> List[RecurringTemplate]:
        return self.scheduler.upcoming_templates(self.store.fetch_active_templates(), now, within_days)

    def reminders(self, now: datetime, within_days: Optional[int] = None) -> List[RecurringTemplate]:
        return self.scheduler.reminder_candidates(self.store.fetch_active_templates(), now, within_days)

    def monthly_cost(self) -> Decimal:
        return self.scheduler.monthly_cost(self.store.fetch_active_templates())

    def pause(self, template_id: uuid.UUID, now: datetime) -> RecurringTemplate:
        return self._update_template(template_id, lambda t: self.scheduler.pause(t, now))

    def resume(self, template_id: uuid.UUID, now: datetime) -> RecurringTemplate:
        return self._update_template(template_id, lambda t: self.scheduler.resume(t, now))

    # ------------------------------------------------------------------
    # Detection and promotion
    # ------------------------------------------------------------------

    def detect(self, payee: str) -> Optional[DetectionResult]:
        """Detect a recurrence candidate for one payee from unlinked history."""
        if not payee or not payee.strip():
            raise InputError("Payee must not be empty")
        transactions = self.store.fetch_transactions(TransactionFilter(linked=False, description=payee))
        return self.detector.detect(payee, transactions, self.store.fetch_active_templates())

    def detect_candidates(self) -> List[DetectionResult]:
        """Detect candidates for every payee in the unlinked history."""
        with EnginePerformanceTracker("detect_candidates") as tracker:
            with tracker.stage("fetch"):
                transactions = self.store.fetch_transactions(TransactionFilter(linked=False))
                templates = self.store.fetch_active_templates()
            tracker.set_transaction_count(len(transactions))

            with tracker.stage("detection"):
                results = self.detector.detect_candidates(transactions, templates)
            tracker.set_results_produced(len(results))
        return results

    def promote(
        self,
        result: DetectionResult,
        now: datetime,
        frequency: Optional[RecurringFrequency] = None,
        amount: Optional[Decimal] = None,
        is_auto_pay: bool = False
    ) -> RecurringTemplate:
        """
        Create a template from a detection and link its transactions.

        Raises:
            StorageError: If the template and links could not be persisted
        """
        mutation = self.detector.build_template(result, now, frequency, amount, is_auto_pay)
        self.store.persist([mutation])
        return mutation.template

    # ------------------------------------------------------------------
    # Price history
    # ------------------------------------------------------------------

    def record_price(
        self,
        template_id: uuid.UUID,
        amount: Decimal,
        now: datetime,
        date: Optional[datetime] = None,
        update_amount: bool = False
    ) -> RecurringTemplate:
        return self._update_template(
            template_id,
            lambda t: self.price_tracker.record_price(t, amount, now, date, update_amount)
        )

    def _update_template(
        self,
        template_id: uuid.UUID,
        change: Callable[[RecurringTemplate], RecurringTemplate]
    ) -> RecurringTemplate:
        """
        Apply a change to a stored template under its lock and persist it.

        Raises:
            InputError: If the template does not exist
            StorageError: If the store fails
        """
        with self._template_lock(template_id):
            current = self.store.fetch_template(template_id)
            if current is None:
                raise InputError(f"Template {template_id} not found")
            updated = change(current)
            self.store.persist([TemplateMutation(template=updated)])
            return updated

    # ------------------------------------------------------------------
    # Read-only analysis
    # ------------------------------------------------------------------

    def forecast(self, now: datetime) -> ForecastSummary:
        """Forecast next month from the store's history window."""
        now = ensure_utc(now)
        with EnginePerformanceTracker("forecast") as tracker:
            with tracker.stage("fetch"):
                since = add_months(now, -self.config.forecast.history_months)
                transactions = self.store.fetch_transactions(TransactionFilter(since=since))
                categories = self.store.fetch_active_budget_categories()
                templates = self.store.fetch_active_templates()
            tracker.set_transaction_count(len(transactions))
            tracker.set_template_count(len(templates))

            with tracker.stage("forecast"):
                summary = self.forecaster.forecast(transactions, categories, templates, now)
            tracker.set_results_produced(len(summary.category_forecasts))
        return summary

    def cancellation_suggestions(self, now: datetime) -> List[CancellationSuggestion]:
        """Score active expense templates against their transaction history."""
        with EnginePerformanceTracker("cancellation_scoring") as tracker:
            with tracker.stage("fetch"):
                templates = self.store.fetch_active_templates()
                transactions = self.store.fetch_transactions()
            tracker.set_template_count(len(templates))
            tracker.set_transaction_count(len(transactions))

            with tracker.stage("scoring"):
                suggestions = self.scorer.score(templates, transactions, now)
            tracker.set_results_produced(len(suggestions))
        return suggestions
