import uuid
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field, ConfigDict


class CancellationSuggestion(BaseModel):
    """A subscription flagged as worth reviewing for cancellation (lower score = more concerning)."""
    template_id: uuid.UUID = Field(alias="templateId")
    name: str
    score: int = Field(ge=0, le=100)
    reasons: List[str] = Field(min_length=1)
    monthly_cost: Decimal = Field(alias="monthlyCost")
    cost_share: float = Field(alias="costShare")  # Percentage of total recurring spend

    model_config = ConfigDict(
        populate_by_name=True,
        json_encoders={
            Decimal: str,
            uuid.UUID: str
        }
    )
