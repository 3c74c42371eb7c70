"""
Forecast Engine.

Projects next-month income and per-category spend from up to six months of
history. The engine is read-only.

## Method

- Group history by calendar month; the number of months sets confidence
  (6+ high, 3+ medium, otherwise low)
- Predict income as an EWMA of monthly income totals
- Predict each category as an EWMA of its monthly expense totals, blended
  with the monthly-equivalent of its active recurring templates and floored
  at that recurring amount
- Classify each category's trend from its last three monthly totals

Monetary outputs are quantized to cents; percentages are floats.
"""

import logging
import uuid
from collections import defaultdict
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Optional, Sequence

from billcycle.models.category import BudgetCategory
from billcycle.models.forecast import (
    CategoryForecast,
    ForecastConfidence,
    ForecastSummary,
    SpendTrend,
)
from billcycle.models.recurring_template import RecurringTemplate, monthly_equivalent
from billcycle.models.transaction import Transaction, TransactionType
from billcycle.services.recurring.config import ForecastConfig
from billcycle.utils.temporal_utils import MonthKey, add_months, ensure_utc, month_key, start_of_next_month

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def quantize_money(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def exponential_weighted_average(amounts: Sequence[Decimal], alpha: Decimal = Decimal("0.4")) -> Decimal:
    """
    Exponentially weighted average biased towards the most recent values.

    The i-th oldest of N amounts is weighted alpha^(N-1-i), so the newest
    has weight 1. One amount is returned as is; none gives zero.

    Args:
        amounts: Amounts ordered oldest first
        alpha: Decay factor in (0, 1]

    Returns:
        Exact Decimal weighted average
    """
    if not amounts:
        return Decimal("0")
    if len(amounts) == 1:
        return amounts[0]

    count = len(amounts)
    weighted_sum = Decimal("0")
    weight_sum = Decimal("0")
    for index, amount in enumerate(amounts):
        weight = alpha ** (count - 1 - index)
        weighted_sum += amount * weight
        weight_sum += weight

    if weight_sum <= 0:
        return amounts[-1]
    return weighted_sum / weight_sum


class ForecastEngine:
    """Builds a ForecastSummary for the month after `now`."""

    def __init__(self, config: Optional[ForecastConfig] = None):
        self.config = config or ForecastConfig()

    def forecast(
        self,
        transactions: Sequence[Transaction],
        budget_categories: Sequence[BudgetCategory],
        templates: Sequence[RecurringTemplate],
        now: datetime
    ) -> ForecastSummary:
        """
        Forecast next month's income and category spend.

        Args:
            transactions: Historical transactions; anything outside the
                history window before `now` is ignored
            budget_categories: Categories to forecast; inactive ones are skipped
            templates: Recurring templates; only active expense templates count
            now: Current time

        Returns:
            ForecastSummary with categories sorted by predicted utilisation
        """
        now = ensure_utc(now)
        history_start = add_months(now, -self.config.history_months)
        history = [txn for txn in transactions if history_start <= txn.date <= now]

        monthly_data = self._group_by_month(history)
        month_count = len(monthly_data)
        confidence = self._confidence(month_count)

        income_series = self._monthly_totals(monthly_data, TransactionType.INCOME)
        predicted_income = exponential_weighted_average(income_series, self.config.ewma_alpha)

        recurring_by_category = self._recurring_by_category(templates)

        category_forecasts = [
            self._forecast_category(category, monthly_data, recurring_by_category.get(category.category_id, Decimal("0")))
            for category in budget_categories
            if category.is_active
        ]
        category_forecasts.sort(key=lambda c: c.predicted_utilisation, reverse=True)

        summary = ForecastSummary(
            forecast_month=start_of_next_month(now),
            predicted_income=quantize_money(predicted_income),
            category_forecasts=category_forecasts,
            confidence=confidence,
            month_count=month_count,
        )

        logger.info(
            f"Forecast for {summary.forecast_month.date().isoformat()}: "
            f"income {summary.predicted_income}, expenses {summary.predicted_expenses}, "
            f"{month_count} months of data ({confidence.value} confidence)",
            extra={'over_budget': len(summary.over_budget_categories)}
        )
        return summary

    def _group_by_month(self, transactions: Sequence[Transaction]) -> Dict[MonthKey, List[Transaction]]:
        """Transactions grouped by (year, month), keys in chronological order."""
        grouped: Dict[MonthKey, List[Transaction]] = defaultdict(list)
        for txn in transactions:
            grouped[month_key(txn.date)].append(txn)
        return {key: grouped[key] for key in sorted(grouped)}

    def _confidence(self, month_count: int) -> ForecastConfidence:
        if month_count >= self.config.high_confidence_months:
            return ForecastConfidence.HIGH
        if month_count >= self.config.medium_confidence_months:
            return ForecastConfidence.MEDIUM
        return ForecastConfidence.LOW

    def _monthly_totals(
        self,
        monthly_data: Dict[MonthKey, List[Transaction]],
        transaction_type: TransactionType,
        category_id: Optional[uuid.UUID] = None
    ) -> List[Decimal]:
        """Per-month totals of one transaction type, one entry per grouped month (zeros included)."""
        totals = []
        for month_transactions in monthly_data.values():
            totals.append(sum(
                (txn.amount for txn in month_transactions
                 if txn.transaction_type == transaction_type
                 and (category_id is None or txn.category_id == category_id)),
                Decimal("0")
            ))
        return totals

    def _recurring_by_category(self, templates: Sequence[RecurringTemplate]) -> Dict[uuid.UUID, Decimal]:
        """Monthly-equivalent total of active expense templates per category."""
        totals: Dict[uuid.UUID, Decimal] = defaultdict(lambda: Decimal("0"))
        for template in templates:
            if not template.is_active or template.transaction_type != TransactionType.EXPENSE:
                continue
            if template.category_id is None:
                continue
            totals[template.category_id] += monthly_equivalent(
                template.amount, template.frequency, self.config.periods_per_year
            )
        return dict(totals)

    def _forecast_category(
        self,
        category: BudgetCategory,
        monthly_data: Dict[MonthKey, List[Transaction]],
        recurring_amount: Decimal
    ) -> CategoryForecast:
        monthly_amounts = self._monthly_totals(monthly_data, TransactionType.EXPENSE, category.category_id)
        historical_prediction = exponential_weighted_average(monthly_amounts, self.config.ewma_alpha)
        predicted = self.blend(monthly_amounts, historical_prediction, recurring_amount)

        average = (
            sum(monthly_amounts, Decimal("0")) / Decimal(len(monthly_amounts))
            if monthly_amounts else Decimal("0")
        )

        return CategoryForecast(
            category_id=category.category_id,
            category_name=category.name,
            budget_amount=category.budget_amount,
            predicted_spend=quantize_money(predicted),
            historical_prediction=quantize_money(historical_prediction),
            recurring_amount=quantize_money(recurring_amount),
            average_spend=quantize_money(average),
            months_of_data=sum(1 for amount in monthly_amounts if amount > 0),
            trend=self.determine_trend(monthly_amounts),
        )

    def blend(
        self,
        monthly_amounts: Sequence[Decimal],
        historical_prediction: Decimal,
        recurring_amount: Decimal
    ) -> Decimal:
        """
        Blend the historical prediction with the known recurring amount.

        Never returns less than the recurring amount when it is positive.
        With no monthly history the recurring amount is the prediction.
        """
        if not monthly_amounts:
            return recurring_amount
        if recurring_amount > 0:
            blended = (
                historical_prediction * self.config.historical_weight
                + recurring_amount * self.config.recurring_weight
            )
            return max(blended, recurring_amount)
        return historical_prediction

    def determine_trend(self, amounts: Sequence[Decimal]) -> SpendTrend:
        """Trend over the last three monthly totals [a, b, c], comparing c to a."""
        if len(amounts) < 3:
            return SpendTrend.INSUFFICIENT

        first, _, last = amounts[-3:]
        if first <= 0:
            return SpendTrend.STABLE

        change_pct = float((last - first) / first * 100)
        if change_pct > self.config.trend_threshold_pct:
            return SpendTrend.INCREASING
        if change_pct < -self.config.trend_threshold_pct:
            return SpendTrend.DECREASING
        return SpendTrend.STABLE
