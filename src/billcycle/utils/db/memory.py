"""
In-memory record store.

Keeps deep copies of every record so callers never share mutable state with
the store. persist() stages all writes and swaps them in only when the whole
batch is valid.
"""

import logging
import uuid
from typing import Dict, Iterable, List, Optional, Sequence

from billcycle.exceptions import StorageError
from billcycle.models.category import BudgetCategory
from billcycle.models.mutation import TemplateMutation
from billcycle.models.recurring_template import RecurringTemplate
from billcycle.models.transaction import Transaction
from billcycle.utils.db.base import TransactionFilter

logger = logging.getLogger(__name__)


class InMemoryRecordStore:
    """RecordStore backed by dictionaries; used in tests and embedded hosts."""

    def __init__(
        self,
        templates: Optional[Iterable[RecurringTemplate]] = None,
        transactions: Optional[Iterable[Transaction]] = None,
        categories: Optional[Iterable[BudgetCategory]] = None
    ):
        self._templates: Dict[uuid.UUID, RecurringTemplate] = {}
        self._transactions: Dict[uuid.UUID, Transaction] = {}
        self._categories: Dict[uuid.UUID, BudgetCategory] = {}
        self.add_templates(templates or [])
        self.add_transactions(transactions or [])
        self.add_categories(categories or [])

    def add_templates(self, templates: Iterable[RecurringTemplate]) -> None:
        for template in templates:
            self._templates[template.template_id] = template.model_copy(deep=True)

    def add_transactions(self, transactions: Iterable[Transaction]) -> None:
        for transaction in transactions:
            self._transactions[transaction.transaction_id] = transaction.model_copy(deep=True)

    def add_categories(self, categories: Iterable[BudgetCategory]) -> None:
        for category in categories:
            self._categories[category.category_id] = category.model_copy(deep=True)

    def fetch_transactions(self, transaction_filter: Optional[TransactionFilter] = None) -> List[Transaction]:
        """Return matching transactions ordered by date."""
        matched = [
            txn for txn in self._transactions.values()
            if transaction_filter is None or transaction_filter.matches(txn)
        ]
        matched.sort(key=lambda t: (t.date, str(t.transaction_id)))
        return [txn.model_copy(deep=True) for txn in matched]

    def fetch_active_templates(self) -> List[RecurringTemplate]:
        return [t.model_copy(deep=True) for t in self._templates.values() if t.is_active]

    def fetch_template(self, template_id: uuid.UUID) -> Optional[RecurringTemplate]:
        template = self._templates.get(template_id)
        return template.model_copy(deep=True) if template else None

    def fetch_active_budget_categories(self) -> List[BudgetCategory]:
        return [c.model_copy(deep=True) for c in self._categories.values() if c.is_active]

    def persist(self, mutations: Sequence[TemplateMutation]) -> None:
        """
        Write all mutations or none.

        Raises:
            StorageError: If a transaction id in the batch already belongs to
                a different template
        """
        staged_templates = dict(self._templates)
        staged_transactions = dict(self._transactions)

        for mutation in mutations:
            staged_templates[mutation.template_id] = mutation.template.model_copy(deep=True)
            for txn in mutation.transactions:
                existing = staged_transactions.get(txn.transaction_id)
                if existing is not None and existing.parent_template_id not in (None, txn.parent_template_id):
                    raise StorageError(
                        f"Transaction {txn.transaction_id} is already linked to template "
                        f"{existing.parent_template_id}",
                        operation="persist"
                    )
                staged_transactions[txn.transaction_id] = txn.model_copy(deep=True)

        self._templates = staged_templates
        self._transactions = staged_transactions
        logger.debug(f"Persisted {len(mutations)} template mutations")
