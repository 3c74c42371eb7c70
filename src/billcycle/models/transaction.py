import uuid
from typing import Dict, Any, Optional
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing_extensions import Self

from billcycle.utils.serde_utils import (
    to_decimal,
    to_dynamodb_value,
    convert_datetime_fields,
)
from billcycle.utils.temporal_utils import ensure_utc


class TransactionType(str, Enum):
    """Direction of money movement. Amounts are unsigned; the type implies the sign."""
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class Transaction(BaseModel):
    """
    Represents a single historical transaction.

    Transactions materialized from a recurring template carry the template's id
    in parent_template_id. The link is a weak foreign key resolved through the
    record store, never an in-memory reference.
    """
    transaction_id: uuid.UUID = Field(default_factory=uuid.uuid4, alias="transactionId")
    amount: Decimal
    date: datetime
    transaction_type: TransactionType = Field(default=TransactionType.EXPENSE, alias="transactionType")
    description: str = Field(max_length=1000)
    notes: Optional[str] = Field(default=None, max_length=1000)
    parent_template_id: Optional[uuid.UUID] = Field(default=None, alias="parentTemplateId")
    category_id: Optional[uuid.UUID] = Field(default=None, alias="categoryId")
    account_id: Optional[uuid.UUID] = Field(default=None, alias="accountId")
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

    @field_validator('amount')
    @classmethod
    def check_unsigned_amount(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("amount must be unsigned; use transaction_type for direction")
        return v

    @field_validator('date', 'created_at', 'updated_at')
    @classmethod
    def normalize_timezone(cls, v: datetime) -> datetime:
        return ensure_utc(v)

    @property
    def is_linked(self) -> bool:
        """True when the transaction belongs to a recurring template."""
        return self.parent_template_id is not None

    def to_dynamodb_item(self) -> Dict[str, Any]:
        """Convert to DynamoDB item format."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        return to_dynamodb_value(data)

    @classmethod
    def from_dynamodb_item(cls, data: Dict[str, Any]) -> Self:
        """
        Create from DynamoDB item data.

        Raises:
            ValidationError: If a stored field, including an unrecognised
                transactionType, does not parse
        """
        converted_data = data.copy()
        convert_datetime_fields(converted_data, ['date', 'createdAt', 'updatedAt'])
        return cls.model_validate(converted_data)
