"""
Serialization and deserialization utility functions for models.

This module contains helper functions for converting between different data formats
and types, particularly for use with Pydantic models and DynamoDB.

Naming Conventions:
- to_X: Convert TO a type (e.g., to_decimal, to_dynamodb_value)
- from_X: Convert FROM a type (e.g., from_dynamodb_datetime)
"""
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from billcycle.utils.temporal_utils import ensure_utc, from_epoch_ms, to_epoch_ms


def to_decimal(value: Any) -> Decimal:
    """
    Convert input value to Decimal without passing through binary floats.

    Args:
        value: Decimal, int, str or float amount

    Returns:
        Decimal amount

    Raises:
        ValueError: If the value cannot be represented as a Decimal

    Examples:
        >>> to_decimal("17.99")
        Decimal('17.99')

        >>> to_decimal(0.1)
        Decimal('0.1')
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount value: {value}. Booleans are not amounts.")
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError) as e:
        raise ValueError(f"Invalid amount value: {value}. Could not convert to Decimal.") from e


def to_dynamodb_value(value: Any) -> Any:
    """
    Recursively convert a model_dump() value into DynamoDB supported types.

    UUIDs become strings, datetimes become epoch milliseconds and enums
    become their values. Lists and dicts are converted element-wise.
    """
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, datetime):
        return to_epoch_ms(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: to_dynamodb_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dynamodb_value(v) for v in value]
    return value


def from_dynamodb_datetime(value: Any) -> Optional[datetime]:
    """
    Convert a stored timestamp back into a UTC datetime.

    Accepts epoch milliseconds as int or Decimal (DynamoDB returns numbers as
    Decimal) and passes datetimes through unchanged.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, Decimal)):
        return from_epoch_ms(int(value))
    if isinstance(value, str) and value.lstrip('-').isdigit():
        return from_epoch_ms(int(value))
    raise ValueError(f"Cannot convert {value!r} to datetime")


def convert_datetime_fields(data: Dict[str, Any], fields: Iterable[str]) -> None:
    """Convert the named timestamp fields of a DynamoDB item in place."""
    for field in fields:
        if field in data and data[field] is not None:
            data[field] = from_dynamodb_datetime(data[field])


def from_dynamodb_bool(value: Any) -> bool:
    """DynamoDB GSI booleans are stored as 'true'/'false' strings."""
    if isinstance(value, str):
        return value.lower() == 'true'
    return bool(value)
