"""
Forecast Models.

Transient output of the ForecastEngine. Monetary figures are Decimal;
utilisation and savings percentages are floats for display only.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, ConfigDict


class SpendTrend(str, Enum):
    """Direction of a category's spend over its last three months."""
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"
    INSUFFICIENT = "insufficient"


class ForecastConfidence(str, Enum):
    """Confidence tier derived from the number of months of history."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CategoryForecast(BaseModel):
    """Predicted next-month spend for one budget category."""
    category_id: uuid.UUID = Field(alias="categoryId")
    category_name: str = Field(alias="categoryName")
    budget_amount: Decimal = Field(alias="budgetAmount")
    predicted_spend: Decimal = Field(alias="predictedSpend")
    historical_prediction: Decimal = Field(alias="historicalPrediction")
    recurring_amount: Decimal = Field(alias="recurringAmount")
    average_spend: Decimal = Field(alias="averageSpend")
    months_of_data: int = Field(alias="monthsOfData")
    trend: SpendTrend

    model_config = ConfigDict(
        populate_by_name=True,
        json_encoders={
            Decimal: str,
            uuid.UUID: str
        },
        use_enum_values=False
    )

    @property
    def predicted_utilisation(self) -> float:
        """Predicted spend as a percentage of budget; 0 when there is no budget."""
        if self.budget_amount <= 0:
            return 0.0
        return float(self.predicted_spend / self.budget_amount * 100)

    @property
    def is_likely_over_budget(self) -> bool:
        return self.budget_amount > 0 and self.predicted_spend > self.budget_amount

    @property
    def overspend_amount(self) -> Decimal:
        return max(self.predicted_spend - self.budget_amount, Decimal("0"))


class ForecastSummary(BaseModel):
    """Next-month income and spending projection."""
    forecast_month: datetime = Field(alias="forecastMonth")
    predicted_income: Decimal = Field(alias="predictedIncome")
    category_forecasts: List[CategoryForecast] = Field(default_factory=list, alias="categoryForecasts")
    confidence: ForecastConfidence
    month_count: int = Field(alias="monthCount")

    model_config = ConfigDict(
        populate_by_name=True,
        json_encoders={
            Decimal: str
        },
        use_enum_values=False
    )

    @property
    def predicted_expenses(self) -> Decimal:
        return sum((c.predicted_spend for c in self.category_forecasts), Decimal("0"))

    @property
    def predicted_net(self) -> Decimal:
        return self.predicted_income - self.predicted_expenses

    @property
    def predicted_savings_rate(self) -> float:
        if self.predicted_income <= 0:
            return 0.0
        return float(self.predicted_net / self.predicted_income * 100)

    @property
    def over_budget_categories(self) -> List[CategoryForecast]:
        return [c for c in self.category_forecasts if c.is_likely_over_budget]

    def get_category(self, category_id: uuid.UUID) -> Optional[CategoryForecast]:
        for forecast in self.category_forecasts:
            if forecast.category_id == category_id:
                return forecast
        return None
