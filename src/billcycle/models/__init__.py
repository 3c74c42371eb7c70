"""Domain models for recurring obligations, transactions and forecasts."""

from billcycle.models.transaction import Transaction, TransactionType
from billcycle.models.recurring_template import (
    RecurringTemplate,
    RecurringFrequency,
    PriceSnapshot,
    PERIODS_PER_YEAR,
    monthly_equivalent,
    price_change_percentage,
)
from billcycle.models.category import BudgetCategory
from billcycle.models.bill_type import BillType, LEGACY_BILL_TYPE_MAPPINGS
from billcycle.models.detection import AmountStatistics, DetectionResult
from billcycle.models.forecast import (
    SpendTrend,
    ForecastConfidence,
    CategoryForecast,
    ForecastSummary,
)
from billcycle.models.cancellation import CancellationSuggestion
from billcycle.models.mutation import TemplateMutation, ScheduleFailure, ScheduleRunResult

__all__ = [
    'Transaction',
    'TransactionType',
    'RecurringTemplate',
    'RecurringFrequency',
    'PriceSnapshot',
    'PERIODS_PER_YEAR',
    'monthly_equivalent',
    'price_change_percentage',
    'BudgetCategory',
    'BillType',
    'LEGACY_BILL_TYPE_MAPPINGS',
    'AmountStatistics',
    'DetectionResult',
    'SpendTrend',
    'ForecastConfidence',
    'CategoryForecast',
    'ForecastSummary',
    'CancellationSuggestion',
    'TemplateMutation',
    'ScheduleFailure',
    'ScheduleRunResult',
]
