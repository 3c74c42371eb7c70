"""
Record store utilities.

The DynamoDB adapter needs boto3 (the `dynamodb` extra) and is imported
from billcycle.utils.db.dynamodb directly.
"""

from .base import RecordStore, TransactionFilter
from .memory import InMemoryRecordStore

__all__ = [
    'RecordStore',
    'TransactionFilter',
    'InMemoryRecordStore',
]
