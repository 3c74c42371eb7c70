"""
Record store interface.

This module provides:
- The RecordStore protocol every storage adapter implements
- TransactionFilter, the query object accepted by fetch_transactions

The engine never talks to a database directly; it is handed a RecordStore.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional, Protocol, Sequence

from billcycle.models.category import BudgetCategory
from billcycle.models.mutation import TemplateMutation
from billcycle.models.recurring_template import RecurringTemplate
from billcycle.models.transaction import Transaction, TransactionType
from billcycle.utils.temporal_utils import ensure_utc


@dataclass(frozen=True)
class TransactionFilter:
    """
    Query filter for fetch_transactions.

    All criteria are optional and combined with AND. Date bounds are
    inclusive of since and exclusive of until.
    """
    since: Optional[datetime] = None
    until: Optional[datetime] = None
    linked: Optional[bool] = None  # True: has parent template; False: unlinked
    description: Optional[str] = None  # Case-insensitive exact match
    parent_template_id: Optional[uuid.UUID] = None
    transaction_type: Optional[TransactionType] = None

    def matches(self, transaction: Transaction) -> bool:
        """Return True when the transaction satisfies every criterion."""
        if self.since is not None and transaction.date < ensure_utc(self.since):
            return False
        if self.until is not None and transaction.date >= ensure_utc(self.until):
            return False
        if self.linked is not None and transaction.is_linked != self.linked:
            return False
        if self.description is not None and transaction.description.lower() != self.description.lower():
            return False
        if self.parent_template_id is not None and transaction.parent_template_id != self.parent_template_id:
            return False
        if self.transaction_type is not None and transaction.transaction_type != self.transaction_type:
            return False
        return True


class RecordStore(Protocol):
    """
    Storage collaborator for templates, transactions and budget categories.

    persist() is atomic per call: either every template and transaction in
    the given mutations is written, or none is and StorageError is raised.
    """

    def fetch_transactions(self, transaction_filter: Optional[TransactionFilter] = None) -> List[Transaction]:
        ...

    def fetch_active_templates(self) -> List[RecurringTemplate]:
        ...

    def fetch_template(self, template_id: uuid.UUID) -> Optional[RecurringTemplate]:
        ...

    def fetch_active_budget_categories(self) -> List[BudgetCategory]:
        ...

    def persist(self, mutations: Sequence[TemplateMutation]) -> None:
        ...
