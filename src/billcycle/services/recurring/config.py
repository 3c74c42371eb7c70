"""
Configuration classes for the recurring-obligation engine.

Centralizes all thresholds, weights and penalties used by detection,
forecasting and cancellation scoring.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Tuple, Optional

from billcycle.models.recurring_template import RecurringFrequency, PERIODS_PER_YEAR


@dataclass
class FrequencyThresholds:
    """
    Day range thresholds for frequency classification.

    Each threshold is an inclusive (min_days, max_days) range over the mean
    whole-day gap. Gaps above the quarterly range classify as yearly. There is
    no daily range: one-day gaps fall into weekly.
    """

    weekly: Tuple[int, int] = (0, 10)
    """Weekly recurrence: 0 to 10 days between occurrences."""

    biweekly: Tuple[int, int] = (11, 21)
    """Bi-weekly recurrence: 11 to 21 days between occurrences."""

    monthly: Tuple[int, int] = (22, 45)
    """Monthly recurrence: 22 to 45 days between occurrences."""

    quarterly: Tuple[int, int] = (46, 120)
    """Quarterly recurrence: 46 to 120 days between occurrences."""

    def to_dict(self) -> Dict[RecurringFrequency, Tuple[int, int]]:
        """
        Convert thresholds to a dictionary mapping frequency enum to ranges.

        Returns:
            Dictionary mapping RecurringFrequency to (min_days, max_days),
            in ascending order of period
        """
        return {
            RecurringFrequency.WEEKLY: self.weekly,
            RecurringFrequency.BIWEEKLY: self.biweekly,
            RecurringFrequency.MONTHLY: self.monthly,
            RecurringFrequency.QUARTERLY: self.quarterly,
        }


@dataclass
class VariabilityConfig:
    """Configuration for fixed/variable amount classification."""

    relative_spread_threshold: Decimal = Decimal("0.05")
    """(max - min) / min must exceed this for an amount to be variable."""


@dataclass
class ForecastConfig:
    """
    Configuration for next-month forecasting.

    historical_weight and recurring_weight must sum to 1.0.
    """

    ewma_alpha: Decimal = Decimal("0.4")
    """Decay factor: the i-th oldest of N months is weighted alpha^(N-1-i)."""

    historical_weight: Decimal = Decimal("0.7")
    recurring_weight: Decimal = Decimal("0.3")

    history_months: int = 6
    """Months of history before `now` considered by the forecast."""

    trend_threshold_pct: float = 10.0
    """Three-month change beyond +/- this percentage is a trend."""

    high_confidence_months: int = 6
    medium_confidence_months: int = 3

    periods_per_year: Dict[RecurringFrequency, int] = field(default_factory=lambda: dict(PERIODS_PER_YEAR))
    """Occurrences per year used for monthly-equivalent normalization."""

    def __post_init__(self):
        """Validate weights and alpha."""
        total = self.historical_weight + self.recurring_weight
        if total != Decimal("1"):
            raise ValueError(
                f"Forecast blend weights must sum to 1.0, got {total}. "
                f"Weights: historical={self.historical_weight}, "
                f"recurring={self.recurring_weight}"
            )
        if not Decimal("0") < self.ewma_alpha <= Decimal("1"):
            raise ValueError(f"ewma_alpha must be in (0, 1], got {self.ewma_alpha}")
        if self.medium_confidence_months > self.high_confidence_months:
            raise ValueError("medium_confidence_months must not exceed high_confidence_months")


@dataclass
class CancellationConfig:
    """Penalties and thresholds for cancellation scoring (score starts at 100)."""

    high_cost_share_pct: float = 25.0
    moderate_cost_share_pct: float = 15.0

    high_cost_penalty: int = 20
    moderate_cost_penalty: int = 10
    price_increase_penalty: int = 15
    inactivity_penalty: int = 25
    variable_amount_penalty: int = 5

    suggestion_threshold: int = 70
    """Only templates scoring strictly below this are suggested."""

    inactivity_months: int = 3
    """No materialized transaction within this many months counts as unused."""


class EngineConfig:
    """
    Master configuration for the recurring-obligation engine.

    Aggregates all configuration classes into a single configuration object.
    """

    def __init__(
        self,
        frequency_thresholds: Optional[FrequencyThresholds] = None,
        variability: Optional[VariabilityConfig] = None,
        forecast: Optional[ForecastConfig] = None,
        cancellation: Optional[CancellationConfig] = None,
        min_occurrences: int = 2,
        reminder_window_days: int = 7
    ):
        """
        Initialize engine configuration.

        Args:
            frequency_thresholds: Frequency thresholds config (creates default if None)
            variability: Variability config (creates default if None)
            forecast: Forecast config (creates default if None)
            cancellation: Cancellation scoring config (creates default if None)
            min_occurrences: Matching transactions required for a detection
            reminder_window_days: Default look-ahead for upcoming/reminder queries
        """
        self.frequency_thresholds = frequency_thresholds or FrequencyThresholds()
        self.variability = variability or VariabilityConfig()
        self.forecast = forecast or ForecastConfig()
        self.cancellation = cancellation or CancellationConfig()
        self.min_occurrences = min_occurrences
        self.reminder_window_days = reminder_window_days

    @classmethod
    def from_environment(cls) -> 'EngineConfig':
        """
        Create configuration from environment variables with fallback to defaults.

        Environment variables:
        - BILLCYCLE_MIN_OCCURRENCES
        - BILLCYCLE_REMINDER_WINDOW_DAYS
        - BILLCYCLE_VARIABILITY_THRESHOLD
        - BILLCYCLE_EWMA_ALPHA
        - BILLCYCLE_HISTORICAL_WEIGHT (recurring weight is 1 minus this)
        - BILLCYCLE_HISTORY_MONTHS
        - BILLCYCLE_TREND_THRESHOLD_PCT
        - BILLCYCLE_SUGGESTION_THRESHOLD
        - BILLCYCLE_INACTIVITY_MONTHS
        """
        historical_weight = Decimal(os.getenv('BILLCYCLE_HISTORICAL_WEIGHT', '0.7'))
        return cls(
            variability=VariabilityConfig(
                relative_spread_threshold=Decimal(os.getenv('BILLCYCLE_VARIABILITY_THRESHOLD', '0.05'))
            ),
            forecast=ForecastConfig(
                ewma_alpha=Decimal(os.getenv('BILLCYCLE_EWMA_ALPHA', '0.4')),
                historical_weight=historical_weight,
                recurring_weight=Decimal("1") - historical_weight,
                history_months=int(os.getenv('BILLCYCLE_HISTORY_MONTHS', 6)),
                trend_threshold_pct=float(os.getenv('BILLCYCLE_TREND_THRESHOLD_PCT', 10.0)),
            ),
            cancellation=CancellationConfig(
                suggestion_threshold=int(os.getenv('BILLCYCLE_SUGGESTION_THRESHOLD', 70)),
                inactivity_months=int(os.getenv('BILLCYCLE_INACTIVITY_MONTHS', 3)),
            ),
            min_occurrences=int(os.getenv('BILLCYCLE_MIN_OCCURRENCES', 2)),
            reminder_window_days=int(os.getenv('BILLCYCLE_REMINDER_WINDOW_DAYS', 7)),
        )


# Default configuration instance
DEFAULT_CONFIG = EngineConfig()
