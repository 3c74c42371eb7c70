"""
Recurring obligation services.

This package provides detection of recurring payees, the due-date scheduler,
price history tracking, next-month forecasting and cancellation scoring,
plus the RecurringEngine facade that runs them against a record store.
"""

from billcycle.services.recurring.config import (
    EngineConfig,
    FrequencyThresholds,
    VariabilityConfig,
    ForecastConfig,
    CancellationConfig,
    DEFAULT_CONFIG,
)
from billcycle.services.recurring.analyzers import FrequencyInferencer, VariabilityAnalyzer
from billcycle.services.recurring.detection_service import PatternDetector
from billcycle.services.recurring.scheduler_service import ObligationScheduler, calculate_next_due_date
from billcycle.services.recurring.price_history_service import PriceHistoryTracker
from billcycle.services.recurring.forecast_service import ForecastEngine, exponential_weighted_average
from billcycle.services.recurring.cancellation_service import CancellationScorer
from billcycle.services.recurring.engine import RecurringEngine

__all__ = [
    'EngineConfig',
    'FrequencyThresholds',
    'VariabilityConfig',
    'ForecastConfig',
    'CancellationConfig',
    'DEFAULT_CONFIG',
    'FrequencyInferencer',
    'VariabilityAnalyzer',
    'PatternDetector',
    'ObligationScheduler',
    'calculate_next_due_date',
    'PriceHistoryTracker',
    'ForecastEngine',
    'exponential_weighted_average',
    'CancellationScorer',
    'RecurringEngine',
]
