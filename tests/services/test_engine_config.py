"""
Tests for engine configuration defaults, validation and environment loading.
"""

import pytest
from decimal import Decimal

from billcycle.models.recurring_template import RecurringFrequency
from billcycle.services.recurring.config import (
    EngineConfig,
    ForecastConfig,
    FrequencyThresholds,
)


class TestDefaults:

    def test_frequency_thresholds_in_ascending_order(self):
        thresholds = FrequencyThresholds().to_dict()

        assert list(thresholds) == [
            RecurringFrequency.WEEKLY,
            RecurringFrequency.BIWEEKLY,
            RecurringFrequency.MONTHLY,
            RecurringFrequency.QUARTERLY,
        ]
        assert RecurringFrequency.DAILY not in thresholds
        assert thresholds[RecurringFrequency.MONTHLY] == (22, 45)

    def test_engine_defaults(self):
        config = EngineConfig()

        assert config.min_occurrences == 2
        assert config.reminder_window_days == 7
        assert config.forecast.ewma_alpha == Decimal("0.4")
        assert config.cancellation.suggestion_threshold == 70
        assert config.forecast.periods_per_year[RecurringFrequency.WEEKLY] == 52


class TestForecastConfigValidation:

    def test_weights_must_sum_to_one(self):
        with pytest.raises(ValueError, match="sum to 1.0"):
            ForecastConfig(historical_weight=Decimal("0.6"), recurring_weight=Decimal("0.3"))

    @pytest.mark.parametrize("alpha", [Decimal("0"), Decimal("1.5"), Decimal("-0.1")])
    def test_alpha_range(self, alpha):
        with pytest.raises(ValueError, match="ewma_alpha"):
            ForecastConfig(ewma_alpha=alpha)

    def test_confidence_tiers_ordered(self):
        with pytest.raises(ValueError):
            ForecastConfig(high_confidence_months=2, medium_confidence_months=3)


class TestFromEnvironment:

    def test_defaults_without_environment(self, monkeypatch):
        for name in (
            'BILLCYCLE_MIN_OCCURRENCES',
            'BILLCYCLE_HISTORICAL_WEIGHT',
            'BILLCYCLE_EWMA_ALPHA',
            'BILLCYCLE_SUGGESTION_THRESHOLD',
        ):
            monkeypatch.delenv(name, raising=False)

        config = EngineConfig.from_environment()

        assert config.min_occurrences == 2
        assert config.forecast.historical_weight == Decimal("0.7")
        assert config.forecast.recurring_weight == Decimal("0.3")

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv('BILLCYCLE_MIN_OCCURRENCES', '3')
        monkeypatch.setenv('BILLCYCLE_REMINDER_WINDOW_DAYS', '14')
        monkeypatch.setenv('BILLCYCLE_HISTORICAL_WEIGHT', '0.6')
        monkeypatch.setenv('BILLCYCLE_EWMA_ALPHA', '0.5')
        monkeypatch.setenv('BILLCYCLE_INACTIVITY_MONTHS', '6')

        config = EngineConfig.from_environment()

        assert config.min_occurrences == 3
        assert config.reminder_window_days == 14
        assert config.forecast.historical_weight == Decimal("0.6")
        assert config.forecast.recurring_weight == Decimal("0.4")
        assert config.forecast.ewma_alpha == Decimal("0.5")
        assert config.cancellation.inactivity_months == 6

    def test_invalid_alpha_rejected(self, monkeypatch):
        monkeypatch.setenv('BILLCYCLE_EWMA_ALPHA', '0')

        with pytest.raises(ValueError):
            EngineConfig.from_environment()
