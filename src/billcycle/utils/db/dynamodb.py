"""
DynamoDB record store.

Tables are looked up lazily from environment variables:

- BILLCYCLE_TEMPLATES_TABLE      (partition key: templateId)
- BILLCYCLE_TRANSACTIONS_TABLE   (partition key: transactionId)
- BILLCYCLE_CATEGORIES_TABLE     (partition key: categoryId)

Each persist() call is a single TransactWriteItems request so a template and
the transactions materialized for it land together or not at all.
"""

import os
import logging
import uuid
from functools import reduce
from typing import Any, Callable, Dict, List, Optional, Sequence, TypeVar

import boto3
from boto3.dynamodb.conditions import Attr
from boto3.dynamodb.types import TypeSerializer

from billcycle.exceptions import StorageError
from billcycle.models.category import BudgetCategory
from billcycle.models.mutation import TemplateMutation
from billcycle.models.recurring_template import RecurringTemplate
from billcycle.models.transaction import Transaction
from billcycle.utils.db.base import TransactionFilter
from billcycle.utils.db.decorators import dynamodb_operation, monitor_performance, retry_on_throttle
from billcycle.utils.temporal_utils import to_epoch_ms

logger = logging.getLogger(__name__)

T = TypeVar('T')

# DynamoDB rejects transactions with more than this many items
MAX_TRANSACT_ITEMS = 100


class DynamoDBTables:
    """
    Lazy table resource lookup.

    Usage:
        tables = DynamoDBTables()
        templates = tables.templates
    """

    # Table key to environment variable mapping
    TABLE_CONFIGS = {
        'templates': 'BILLCYCLE_TEMPLATES_TABLE',
        'transactions': 'BILLCYCLE_TRANSACTIONS_TABLE',
        'categories': 'BILLCYCLE_CATEGORIES_TABLE',
    }

    def __init__(self, dynamodb_resource: Optional[Any] = None):
        self._dynamodb = dynamodb_resource or boto3.resource('dynamodb')
        self._tables: Dict[str, Any] = {}

    @property
    def resource(self) -> Any:
        return self._dynamodb

    def table_name(self, table_key: str) -> str:
        """
        Resolve a table name from its environment variable.

        Raises:
            StorageError: If the key is unknown or the variable is not set
        """
        env_var_name = self.TABLE_CONFIGS.get(table_key)
        if not env_var_name:
            raise StorageError(f"Unknown table key: {table_key}", operation="table_lookup")
        table_name = os.environ.get(env_var_name)
        if not table_name:
            raise StorageError(
                f"Environment variable {env_var_name} not set, table '{table_key}' unavailable",
                operation="table_lookup"
            )
        return table_name

    def _get_table(self, table_key: str) -> Any:
        """Get table resource with lazy initialization."""
        if table_key not in self._tables:
            table_name = self.table_name(table_key)
            self._tables[table_key] = self._dynamodb.Table(table_name)
            logger.info(f"Initialized table: {table_key} ({table_name})")
        return self._tables[table_key]

    @property
    def templates(self) -> Any:
        return self._get_table('templates')

    @property
    def transactions(self) -> Any:
        return self._get_table('transactions')

    @property
    def categories(self) -> Any:
        return self._get_table('categories')


def scan_all(
    table: Any,
    scan_params: Dict[str, Any],
    transform: Callable[[Dict[str, Any]], T]
) -> List[T]:
    """Execute a paginated scan and transform every item."""
    items: List[T] = []
    current_params = scan_params.copy()
    while True:
        response = table.scan(**current_params)
        items.extend(transform(item) for item in response.get('Items', []))
        last_evaluated_key = response.get('LastEvaluatedKey')
        if not last_evaluated_key:
            return items
        current_params['ExclusiveStartKey'] = last_evaluated_key


def build_transaction_condition(transaction_filter: TransactionFilter) -> Optional[Any]:
    """
    Translate a TransactionFilter into a scan FilterExpression.

    Description matching is case-insensitive and is applied after the scan.
    """
    conditions = []
    if transaction_filter.since is not None:
        conditions.append(Attr('date').gte(to_epoch_ms(transaction_filter.since)))
    if transaction_filter.until is not None:
        conditions.append(Attr('date').lt(to_epoch_ms(transaction_filter.until)))
    if transaction_filter.linked is True:
        conditions.append(Attr('parentTemplateId').exists())
    elif transaction_filter.linked is False:
        conditions.append(Attr('parentTemplateId').not_exists())
    if transaction_filter.parent_template_id is not None:
        conditions.append(Attr('parentTemplateId').eq(str(transaction_filter.parent_template_id)))
    if transaction_filter.transaction_type is not None:
        conditions.append(Attr('transactionType').eq(transaction_filter.transaction_type.value))
    if not conditions:
        return None
    return reduce(lambda left, right: left & right, conditions)


class DynamoDBRecordStore:
    """RecordStore backed by three DynamoDB tables."""

    def __init__(self, tables: Optional[DynamoDBTables] = None, client: Optional[Any] = None):
        self.tables = tables or DynamoDBTables()
        self._client = client or self.tables.resource.meta.client
        self._serializer = TypeSerializer()

    @monitor_performance(operation_type="scan", warn_threshold_ms=500)
    @dynamodb_operation("fetch_transactions")
    @retry_on_throttle(max_attempts=3)
    def fetch_transactions(self, transaction_filter: Optional[TransactionFilter] = None) -> List[Transaction]:
        scan_params: Dict[str, Any] = {}
        if transaction_filter is not None:
            condition = build_transaction_condition(transaction_filter)
            if condition is not None:
                scan_params['FilterExpression'] = condition

        transactions = scan_all(self.tables.transactions, scan_params, Transaction.from_dynamodb_item)
        if transaction_filter is not None:
            transactions = [txn for txn in transactions if transaction_filter.matches(txn)]
        transactions.sort(key=lambda t: (t.date, str(t.transaction_id)))
        return transactions

    @monitor_performance(operation_type="scan", warn_threshold_ms=500)
    @dynamodb_operation("fetch_active_templates")
    @retry_on_throttle(max_attempts=3)
    def fetch_active_templates(self) -> List[RecurringTemplate]:
        return scan_all(
            self.tables.templates,
            {'FilterExpression': Attr('isActive').eq('true')},
            RecurringTemplate.from_dynamodb_item
        )

    @monitor_performance(warn_threshold_ms=200)
    @dynamodb_operation("fetch_template")
    @retry_on_throttle(max_attempts=3)
    def fetch_template(self, template_id: uuid.UUID) -> Optional[RecurringTemplate]:
        response = self.tables.templates.get_item(Key={'templateId': str(template_id)})
        if 'Item' not in response:
            return None
        return RecurringTemplate.from_dynamodb_item(response['Item'])

    @monitor_performance(operation_type="scan", warn_threshold_ms=500)
    @dynamodb_operation("fetch_active_budget_categories")
    @retry_on_throttle(max_attempts=3)
    def fetch_active_budget_categories(self) -> List[BudgetCategory]:
        return scan_all(
            self.tables.categories,
            {'FilterExpression': Attr('isActive').eq('true')},
            BudgetCategory.from_dynamodb_item
        )

    def _put(self, table_name: str, item: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'Put': {
                'TableName': table_name,
                'Item': {key: self._serializer.serialize(value) for key, value in item.items()}
            }
        }

    @monitor_performance(operation_type="transact_write", warn_threshold_ms=500)
    @dynamodb_operation("persist")
    @retry_on_throttle(max_attempts=3)
    def persist(self, mutations: Sequence[TemplateMutation]) -> None:
        """
        Write all templates and transactions in one TransactWriteItems call.

        Raises:
            StorageError: If the batch exceeds DynamoDB's transaction size
                limit or the write fails
        """
        templates_table = self.tables.table_name('templates')
        transactions_table = self.tables.table_name('transactions')

        transact_items = []
        for mutation in mutations:
            transact_items.append(self._put(templates_table, mutation.template.to_dynamodb_item()))
            for txn in mutation.transactions:
                transact_items.append(self._put(transactions_table, txn.to_dynamodb_item()))

        if not transact_items:
            return
        if len(transact_items) > MAX_TRANSACT_ITEMS:
            raise StorageError(
                f"Persist batch has {len(transact_items)} items; limit is {MAX_TRANSACT_ITEMS}",
                operation="persist"
            )

        self._client.transact_write_items(TransactItems=transact_items)
        logger.info(f"Persisted {len(mutations)} template mutations ({len(transact_items)} items)")
