"""
Unit tests for ForecastEngine and the exponentially weighted average.
"""

import pytest
from decimal import Decimal

from billcycle.models.forecast import ForecastConfidence, SpendTrend
from billcycle.models.recurring_template import RecurringFrequency
from billcycle.models.transaction import TransactionType
from billcycle.services.recurring.forecast_service import (
    ForecastEngine,
    exponential_weighted_average,
    quantize_money,
)
from tests.fixtures.recurring_fixtures import (
    utc,
    create_transaction,
    create_template,
    create_category,
    create_monthly_series,
)

NOW = utc(2026, 6, 20)


@pytest.fixture
def engine():
    return ForecastEngine()


class TestExponentialWeightedAverage:
    """Tests for the EWMA helper."""

    def test_constant_series(self):
        assert exponential_weighted_average([Decimal("100")] * 3) == Decimal("100")

    def test_recent_values_dominate(self):
        amounts = [Decimal("0"), Decimal("0"), Decimal("200")]
        mean = sum(amounts) / 3

        assert exponential_weighted_average(amounts) > mean

    def test_weights(self):
        # weights 0.4 and 1
        result = exponential_weighted_average([Decimal("100"), Decimal("200")])

        assert quantize_money(result) == Decimal("171.43")

    def test_single_and_empty(self):
        assert exponential_weighted_average([Decimal("42")]) == Decimal("42")
        assert exponential_weighted_average([]) == Decimal("0")

    def test_alpha_one_is_plain_mean(self):
        amounts = [Decimal("10"), Decimal("20"), Decimal("30")]

        assert exponential_weighted_average(amounts, alpha=Decimal("1")) == Decimal("20")


class TestBlendAndTrend:
    """Tests for blending and trend classification."""

    def test_blend_weights(self, engine):
        assert engine.blend([Decimal("300")], Decimal("300"), Decimal("100")) == Decimal("240")

    def test_blend_never_below_recurring(self, engine):
        assert engine.blend([Decimal("100")], Decimal("100"), Decimal("200")) == Decimal("200")

    def test_blend_without_history_uses_recurring(self, engine):
        assert engine.blend([], Decimal("0"), Decimal("50")) == Decimal("50")

    def test_blend_without_recurring_uses_history(self, engine):
        assert engine.blend([Decimal("80")], Decimal("80"), Decimal("0")) == Decimal("80")

    @pytest.mark.parametrize("amounts,expected", [
        (["100", "100", "120"], SpendTrend.INCREASING),
        (["100", "100", "85"], SpendTrend.DECREASING),
        (["100", "150", "105"], SpendTrend.STABLE),
        (["100", "100", "110"], SpendTrend.STABLE),
        (["0", "50", "100"], SpendTrend.STABLE),
        (["100", "120"], SpendTrend.INSUFFICIENT),
        (["500", "100", "100", "130"], SpendTrend.INCREASING),
    ])
    def test_determine_trend(self, engine, amounts, expected):
        assert engine.determine_trend([Decimal(a) for a in amounts]) == expected


class TestForecast:
    """Tests for the full forecast."""

    def test_steady_income_high_confidence(self, engine):
        salary = create_monthly_series([Decimal("3000")] * 6, utc(2026, 6, 15))

        summary = engine.forecast(salary, [], [], NOW)

        assert summary.confidence == ForecastConfidence.HIGH
        assert summary.month_count == 6
        assert summary.predicted_income == Decimal("3000")

    @pytest.mark.parametrize("months,expected", [
        (1, ForecastConfidence.LOW),
        (2, ForecastConfidence.LOW),
        (3, ForecastConfidence.MEDIUM),
        (5, ForecastConfidence.MEDIUM),
        (6, ForecastConfidence.HIGH),
    ])
    def test_confidence_tiers(self, engine, months, expected):
        salary = create_monthly_series([Decimal("3000")] * months, utc(2026, 6, 15))

        assert engine.forecast(salary, [], [], NOW).confidence == expected

    def test_forecast_month_is_start_of_next_month(self, engine):
        summary = engine.forecast([], [], [], NOW)

        assert summary.forecast_month == utc(2026, 7, 1)

    def test_transactions_outside_window_are_ignored(self, engine):
        transactions = [
            create_transaction("Salary", Decimal("9000"), utc(2025, 11, 1), TransactionType.INCOME),
            create_transaction("Salary", Decimal("3000"), utc(2026, 6, 1), TransactionType.INCOME),
            create_transaction("Salary", Decimal("9000"), utc(2026, 6, 25), TransactionType.INCOME),
        ]

        summary = engine.forecast(transactions, [], [], NOW)

        assert summary.month_count == 1
        assert summary.predicted_income == Decimal("3000")

    def test_category_forecast_from_history(self, engine):
        groceries = create_category("Groceries", Decimal("300"))
        spend = create_monthly_series(
            [Decimal("400")] * 6,
            utc(2026, 6, 10),
            transaction_type=TransactionType.EXPENSE,
            description="Tesco",
            category_id=groceries.category_id,
        )

        summary = engine.forecast(spend, [groceries], [], NOW)
        forecast = summary.get_category(groceries.category_id)

        assert forecast.predicted_spend == Decimal("400")
        assert forecast.average_spend == Decimal("400")
        assert forecast.months_of_data == 6
        assert forecast.trend == SpendTrend.STABLE
        assert forecast.is_likely_over_budget is True
        assert forecast.overspend_amount == Decimal("100")
        assert summary.over_budget_categories == [forecast]

    def test_recurring_floor_applies(self, engine):
        utilities = create_category("Utilities", Decimal("200"))
        salary = create_monthly_series([Decimal("3000")] * 3, utc(2026, 6, 15))
        template = create_template(
            name="Electric Ireland",
            amount=Decimal("150"),
            frequency=RecurringFrequency.BIWEEKLY,
            category_id=utilities.category_id,
        )

        summary = engine.forecast(salary, [utilities], [template], NOW)
        forecast = summary.get_category(utilities.category_id)

        # 150 * 26 / 12
        assert forecast.recurring_amount == Decimal("325.00")
        assert forecast.predicted_spend == Decimal("325.00")
        assert forecast.historical_prediction == Decimal("0")
        assert forecast.months_of_data == 0

    def test_no_history_uses_recurring_amount(self, engine):
        utilities = create_category("Utilities", Decimal("200"))
        template = create_template(amount=Decimal("45"), category_id=utilities.category_id)

        summary = engine.forecast([], [utilities], [template], NOW)

        assert summary.confidence == ForecastConfidence.LOW
        assert summary.predicted_income == Decimal("0")
        assert summary.get_category(utilities.category_id).predicted_spend == Decimal("45")
        assert summary.get_category(utilities.category_id).trend == SpendTrend.INSUFFICIENT

    def test_paused_and_income_templates_do_not_count(self, engine):
        category = create_category("Subscriptions", Decimal("50"))
        templates = [
            create_template(amount=Decimal("20"), category_id=category.category_id, is_active=False),
            create_template(
                name="Refund",
                amount=Decimal("30"),
                transaction_type=TransactionType.INCOME,
                category_id=category.category_id,
            ),
        ]

        summary = engine.forecast([], [category], templates, NOW)

        assert summary.get_category(category.category_id).predicted_spend == Decimal("0")

    def test_categories_sorted_by_utilisation(self, engine):
        small = create_category("Small", Decimal("1000"))
        tight = create_category("Tight", Decimal("100"))
        inactive = create_category("Retired", Decimal("10"), is_active=False)
        templates = [
            create_template(name="A", amount=Decimal("90"), category_id=tight.category_id),
            create_template(name="B", amount=Decimal("100"), category_id=small.category_id),
        ]

        summary = engine.forecast([], [small, tight, inactive], templates, NOW)

        assert [c.category_name for c in summary.category_forecasts] == ["Tight", "Small"]

    def test_summary_totals(self, engine):
        category = create_category("Rent", Decimal("1500"))
        salary = create_monthly_series([Decimal("3000")] * 6, utc(2026, 6, 15))
        template = create_template(name="Rent", amount=Decimal("1500"), category_id=category.category_id)

        summary = engine.forecast(salary, [category], [template], NOW)

        assert summary.predicted_expenses == Decimal("1500")
        assert summary.predicted_net == Decimal("1500")
        assert summary.predicted_savings_rate == pytest.approx(50.0)

    def test_money_is_quantized_to_cents(self, engine):
        category = create_category("Subscriptions", Decimal("50"))
        template = create_template(
            amount=Decimal("10"), frequency=RecurringFrequency.WEEKLY, category_id=category.category_id
        )

        summary = engine.forecast([], [category], [template], NOW)

        # 10 * 52 / 12 = 43.333...
        assert summary.get_category(category.category_id).predicted_spend == Decimal("43.33")
