"""
Detection result models.

A DetectionResult is transient: it is produced by the PatternDetector and
handed to the caller, who may promote it to a RecurringTemplate.
"""

from typing import Dict, List, Optional
from decimal import Decimal

from pydantic import BaseModel, Field, ConfigDict

from billcycle.models.bill_type import BillType
from billcycle.models.recurring_template import RecurringFrequency
from billcycle.models.transaction import Transaction


class AmountStatistics(BaseModel):
    """Descriptive statistics over a set of observed amounts."""
    minimum: Decimal
    maximum: Decimal
    mean: Decimal
    is_variable: bool = Field(alias="isVariable")

    model_config = ConfigDict(
        populate_by_name=True,
        json_encoders={
            Decimal: str
        }
    )

    @property
    def spread(self) -> Decimal:
        return self.maximum - self.minimum


class DetectionResult(BaseModel):
    """A recurrence candidate inferred from unlinked transaction history."""
    payee: str
    transactions: List[Transaction]  # Sorted by date ascending
    frequency: RecurringFrequency
    suggested_amount: Decimal = Field(alias="suggestedAmount")
    amount_statistics: AmountStatistics = Field(alias="amountStatistics")
    interval_statistics: Dict[str, float] = Field(default_factory=dict, alias="intervalStatistics")
    bill_tags: List[BillType] = Field(default_factory=list, alias="billTags")
    suggested_notes: Optional[str] = Field(default=None, alias="suggestedNotes")

    model_config = ConfigDict(
        populate_by_name=True,
        json_encoders={
            Decimal: str
        },
        use_enum_values=False
    )

    @property
    def average_amount(self) -> Decimal:
        return self.amount_statistics.mean

    @property
    def is_variable_amount(self) -> bool:
        return self.amount_statistics.is_variable

    @property
    def has_bill_tags(self) -> bool:
        return len(self.bill_tags) > 0

    @property
    def occurrence_count(self) -> int:
        return len(self.transactions)
