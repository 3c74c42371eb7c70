"""
Recurring Template Models.

This module provides Pydantic models for declared recurring obligations
(bills, subscriptions, regular income), their price history, and the
frequency enum shared by detection, scheduling and forecasting.
"""

import uuid
from typing import Optional, List, Dict, Any
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from typing_extensions import Self

from billcycle.models.transaction import TransactionType
from billcycle.utils.serde_utils import (
    to_decimal,
    to_dynamodb_value,
    convert_datetime_fields,
    from_dynamodb_bool,
)
from billcycle.utils.temporal_utils import ensure_utc, whole_days_between

NEXT_DUE_BEFORE_START_ERROR_MESSAGE = "next_due_date must not be earlier than start_date"


class RecurringFrequency(str, Enum):
    """Frequency of a recurring obligation."""
    DAILY = "daily"            # +1 day
    WEEKLY = "weekly"          # +7 days
    BIWEEKLY = "biweekly"      # +14 days
    MONTHLY = "monthly"        # +1 calendar month
    QUARTERLY = "quarterly"    # +3 calendar months
    YEARLY = "yearly"          # +1 calendar year


# Occurrences per year, used to normalize any frequency to a per-month figure
# (amount * periods / 12). Weekly therefore counts as 52/12 ~ 4.33 per month.
PERIODS_PER_YEAR: Dict[RecurringFrequency, int] = {
    RecurringFrequency.DAILY: 365,
    RecurringFrequency.WEEKLY: 52,
    RecurringFrequency.BIWEEKLY: 26,
    RecurringFrequency.MONTHLY: 12,
    RecurringFrequency.QUARTERLY: 4,
    RecurringFrequency.YEARLY: 1,
}


def monthly_equivalent(
    amount: Decimal,
    frequency: RecurringFrequency,
    periods_per_year: Optional[Dict[RecurringFrequency, int]] = None
) -> Decimal:
    """
    Normalize a recurring amount to its monthly-equivalent figure.

    Args:
        amount: Amount charged each period
        frequency: Native frequency of the amount
        periods_per_year: Optional override of the occurrences-per-year table

    Returns:
        Exact Decimal monthly-equivalent amount
    """
    table = periods_per_year or PERIODS_PER_YEAR
    return amount * Decimal(table[frequency]) / Decimal(12)


def price_change_percentage(history: List["PriceSnapshot"]) -> Optional[float]:
    """
    Percentage change from the first recorded price to the latest.

    History is taken in insertion order. Returns None with fewer than two
    snapshots or when the first price is zero.
    """
    if len(history) < 2:
        return None
    first = history[0].amount
    latest = history[-1].amount
    if first == 0:
        return None
    return float((latest - first) / first * 100)


class PriceSnapshot(BaseModel):
    """A dated price observation for a recurring template."""
    date: datetime
    amount: Decimal

    model_config = ConfigDict(
        json_encoders={
            Decimal: str
        }
    )

    @field_validator('amount', mode='before')
    @classmethod
    def ensure_amount_is_decimal(cls, v: Any) -> Decimal:
        return to_decimal(v)

    @field_validator('date')
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return ensure_utc(v)


class RecurringTemplate(BaseModel):
    """
    A declared recurring obligation.

    Lifecycle:
    - Created by promoting a DetectionResult or by explicit user action
    - Advanced and deactivated by the ObligationScheduler
    - Price snapshots appended by the PriceHistoryTracker
    - Never deleted by the engine

    A template with is_active False is paused; the scheduler never advances
    it. There is no separate "ended" flag: crossing end_date deactivates.
    """
    template_id: uuid.UUID = Field(default_factory=uuid.uuid4, alias="templateId")
    name: str = Field(min_length=1, max_length=500)
    amount: Decimal
    transaction_type: TransactionType = Field(default=TransactionType.EXPENSE, alias="transactionType")
    frequency: RecurringFrequency

    # Schedule
    start_date: datetime = Field(alias="startDate")
    end_date: Optional[datetime] = Field(default=None, alias="endDate")
    next_due_date: Optional[datetime] = Field(default=None, alias="nextDueDate")
    last_processed_date: Optional[datetime] = Field(default=None, alias="lastProcessedDate")

    # Flags
    is_active: bool = Field(default=True, alias="isActive")
    is_auto_pay: bool = Field(default=False, alias="isAutoPay")  # Suppresses overdue alerts downstream
    is_variable_amount: bool = Field(default=False, alias="isVariableAmount")

    price_history: List[PriceSnapshot] = Field(default_factory=list, alias="priceHistory")

    # Opaque references, not interpreted by the engine
    category_id: Optional[uuid.UUID] = Field(default=None, alias="categoryId")
    account_id: Optional[uuid.UUID] = Field(default=None, alias="accountId")
    notes: Optional[str] = Field(default=None, max_length=1000)

    generated_transaction_ids: List[uuid.UUID] = Field(default_factory=list, alias="generatedTransactionIds")

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="createdAt")
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), alias="updatedAt")

    model_config = ConfigDict(
        populate_by_name=True,
        json_encoders={
            Decimal: str,
            uuid.UUID: str
        },
        use_enum_values=False  # Preserve enum objects (not strings) for type safety
    )

    @field_validator('amount', mode='before')
    @classmethod
    def ensure_amount_is_decimal(cls, v: Any) -> Decimal:
        return to_decimal(v)

    @field_validator('start_date', 'end_date', 'next_due_date', 'last_processed_date', 'created_at', 'updated_at')
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is None:
            return None
        return ensure_utc(v)

    @model_validator(mode='after')
    def default_and_check_next_due_date(self) -> Self:
        if self.next_due_date is None:
            self.next_due_date = self.start_date
        elif self.next_due_date < self.start_date:
            raise ValueError(NEXT_DUE_BEFORE_START_ERROR_MESSAGE)
        return self

    @property
    def monthly_equivalent_amount(self) -> Decimal:
        """Amount normalized to a per-month figure regardless of frequency."""
        return monthly_equivalent(self.amount, self.frequency)

    @property
    def price_increase_percentage(self) -> Optional[float]:
        return price_change_percentage(self.price_history)

    @property
    def has_price_increase(self) -> bool:
        percentage = self.price_increase_percentage
        return percentage is not None and percentage > 0

    def is_due(self, now: datetime) -> bool:
        """Active and next_due_date <= now (the scheduler's selection rule)."""
        return self.is_active and self.next_due_date <= ensure_utc(now)

    def is_overdue(self, now: datetime) -> bool:
        """Active and strictly past due."""
        return self.is_active and self.next_due_date < ensure_utc(now)

    def days_until_due(self, now: datetime) -> int:
        """Calendar days from the start of now's day to the start of the due day."""
        today = ensure_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)
        due_day = self.next_due_date.replace(hour=0, minute=0, second=0, microsecond=0)
        return whole_days_between(today, due_day)

    def to_dynamodb_item(self) -> Dict[str, Any]:
        """Convert to DynamoDB item format."""
        data = to_dynamodb_value(self.model_dump(by_alias=True, exclude_none=True))

        # DynamoDB GSIs require string types for boolean attributes to enable indexing
        for key in ('isActive', 'isAutoPay', 'isVariableAmount'):
            if key in data:
                data[key] = 'true' if data[key] else 'false'

        return data

    @classmethod
    def from_dynamodb_item(cls, data: Dict[str, Any]) -> Self:
        """
        Create from DynamoDB item data.

        An unrecognised frequency or transactionType is not guessed at; it
        raises ValidationError so the store reports the record as unreadable.
        """
        converted_data = data.copy()
        convert_datetime_fields(
            converted_data,
            ['startDate', 'endDate', 'nextDueDate', 'lastProcessedDate', 'createdAt', 'updatedAt']
        )

        if converted_data.get('priceHistory'):
            snapshots = []
            for entry in converted_data['priceHistory']:
                entry = dict(entry)
                convert_datetime_fields(entry, ['date'])
                snapshots.append(entry)
            converted_data['priceHistory'] = snapshots

        for key in ('isActive', 'isAutoPay', 'isVariableAmount'):
            if key in converted_data:
                converted_data[key] = from_dynamodb_bool(converted_data[key])

        return cls.model_validate(converted_data)

