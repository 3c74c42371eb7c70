import uuid
import logging
from typing import Any, Dict
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing_extensions import Self

from billcycle.utils.serde_utils import to_decimal, to_dynamodb_value, from_dynamodb_bool

logger = logging.getLogger(__name__)


class BudgetCategory(BaseModel):
    """A spending category with a monthly budget, used as a forecast bucket."""
    category_id: uuid.UUID = Field(default_factory=uuid.uuid4, alias="categoryId")
    name: str = Field(min_length=1, max_length=100)
    budget_amount: Decimal = Field(default=Decimal("0"), alias="budgetAmount")
    is_active: bool = Field(default=True, alias="isActive")

    model_config = ConfigDict(
        populate_by_name=True,
        json_encoders={
            Decimal: str,
            uuid.UUID: str
        }
    )

    @field_validator('budget_amount', mode='before')
    @classmethod
    def ensure_amount_is_decimal(cls, v: Any) -> Decimal:
        return to_decimal(v)

    @field_validator('budget_amount')
    @classmethod
    def check_non_negative_budget(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("budget_amount must not be negative")
        return v

    def to_dynamodb_item(self) -> Dict[str, Any]:
        """Convert to DynamoDB item format."""
        data = to_dynamodb_value(self.model_dump(by_alias=True, exclude_none=True))
        data['isActive'] = 'true' if data['isActive'] else 'false'
        return data

    @classmethod
    def from_dynamodb_item(cls, data: Dict[str, Any]) -> Self:
        """Create from DynamoDB item data."""
        converted_data = data.copy()
        if 'isActive' in converted_data:
            converted_data['isActive'] = from_dynamodb_bool(converted_data['isActive'])
        return cls.model_validate(converted_data)
