"""
Recurring Pattern Detection Service.

Turns raw transaction history into recurrence candidates without anyone
declaring the obligation first.

## Detection Pipeline

1. Keep transactions whose description equals the payee (case-insensitive)
   and that are not yet linked to a template
2. Require at least two matches and no active template with the same name
3. Sort by date; infer frequency, gap statistics and amount variability
4. Suggest the latest observed amount, not the mean
5. Collect bill tags from the matches' notes in first-seen order

Matching is exact after lowercasing. There is no fuzzy matching.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence

from billcycle.exceptions import InputError
from billcycle.models.bill_type import BillType
from billcycle.models.detection import DetectionResult
from billcycle.models.mutation import TemplateMutation
from billcycle.models.recurring_template import RecurringTemplate, RecurringFrequency
from billcycle.models.transaction import Transaction
from billcycle.services.recurring.analyzers import FrequencyInferencer, VariabilityAnalyzer
from billcycle.services.recurring.config import EngineConfig, DEFAULT_CONFIG
from billcycle.services.recurring.scheduler_service import calculate_next_due_date
from billcycle.utils.bill_tags import extract_bill_tags, format_bill_tags
from billcycle.utils.temporal_utils import ensure_utc

logger = logging.getLogger(__name__)

TagExtractor = Callable[[Optional[str]], Sequence[BillType]]


class PatternDetector:
    """
    Detects recurring payees in unlinked transaction history.

    Uses a FrequencyInferencer and a VariabilityAnalyzer built from the
    configuration, and an injected tag extractor for bill tags in notes.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        tag_extractor: TagExtractor = extract_bill_tags
    ):
        """
        Initialize the detector.

        Args:
            config: Optional engine configuration. If None, uses DEFAULT_CONFIG.
            tag_extractor: Maps a notes string to the bill types it carries
        """
        self.config = config or DEFAULT_CONFIG
        self.tag_extractor = tag_extractor
        self.frequency_inferencer = FrequencyInferencer(
            frequency_thresholds=self.config.frequency_thresholds.to_dict()
        )
        self.variability_analyzer = VariabilityAnalyzer(
            relative_spread_threshold=self.config.variability.relative_spread_threshold
        )

    def detect(
        self,
        payee: str,
        transactions: Sequence[Transaction],
        active_templates: Sequence[RecurringTemplate]
    ) -> Optional[DetectionResult]:
        """
        Detect a recurrence candidate for one payee.

        Args:
            payee: Payee label to match against transaction descriptions
            transactions: Transaction history to scan
            active_templates: Templates already declared; a matching active
                name suppresses detection

        Returns:
            DetectionResult, or None when there is no candidate

        Raises:
            InputError: If payee is empty
        """
        if not payee or not payee.strip():
            raise InputError("Payee must not be empty")

        lowercased_payee = payee.lower()
        matching = [
            txn for txn in transactions
            if txn.description.lower() == lowercased_payee and not txn.is_linked
        ]

        if len(matching) < self.config.min_occurrences:
            logger.debug(f"Only {len(matching)} unlinked transactions for '{payee}', skipping")
            return None

        if any(t.is_active and t.name.lower() == lowercased_payee for t in active_templates):
            logger.debug(f"Active template already exists for '{payee}', skipping")
            return None

        matching.sort(key=lambda t: t.date)

        dates = [txn.date for txn in matching]
        frequency = self.frequency_inferencer.infer(dates)
        intervals = self.frequency_inferencer.interval_statistics(dates)
        statistics = self.variability_analyzer.analyze([txn.amount for txn in matching])
        bill_tags = self._collect_bill_tags(matching)

        logger.info(
            f"Detected {frequency.value} pattern for '{payee}' from {len(matching)} transactions",
            extra={
                'payee': payee,
                'variable': statistics.is_variable,
                'spread': statistics.spread,
                'mean_gap_days': intervals['mean'],
                'tags': len(bill_tags)
            }
        )

        return DetectionResult(
            payee=payee,
            transactions=matching,
            frequency=frequency,
            suggested_amount=matching[-1].amount,
            amount_statistics=statistics,
            interval_statistics=intervals,
            bill_tags=bill_tags,
            suggested_notes=format_bill_tags(bill_tags),
        )

    def detect_candidates(
        self,
        transactions: Sequence[Transaction],
        active_templates: Sequence[RecurringTemplate]
    ) -> List[DetectionResult]:
        """
        Run detection for every distinct payee in the unlinked history.

        Payees are grouped case-insensitively; the first-seen spelling is used
        as the payee label. Results are ordered by payee.
        """
        payees: Dict[str, str] = {}
        for txn in transactions:
            if txn.is_linked or not txn.description.strip():
                continue
            payees.setdefault(txn.description.lower(), txn.description)

        results = []
        for key in sorted(payees):
            result = self.detect(payees[key], transactions, active_templates)
            if result is not None:
                results.append(result)
        return results

    def _collect_bill_tags(self, transactions: Sequence[Transaction]) -> List[BillType]:
        """Union of bill tags across transactions, preserving first-seen order."""
        collected: List[BillType] = []
        for txn in transactions:
            for bill_type in self.tag_extractor(txn.notes):
                if bill_type not in collected:
                    collected.append(bill_type)
        return collected

    def build_template(
        self,
        result: DetectionResult,
        now: datetime,
        frequency: Optional[RecurringFrequency] = None,
        amount: Optional[Decimal] = None,
        is_auto_pay: bool = False
    ) -> TemplateMutation:
        """
        Promote a detection into a new active template.

        The template starts at the first match and is next due one period
        after the latest match. The matching transactions are linked to it
        retroactively and returned alongside it for a single persist call.

        Args:
            result: Detection to promote
            now: Current time, used for created_at/updated_at
            frequency: Override of the inferred frequency
            amount: Override of the suggested amount
            is_auto_pay: Whether the obligation is paid automatically

        Returns:
            TemplateMutation with the new template and the linked transactions

        Raises:
            CalendarArithmeticError: If the next due date cannot be computed
        """
        now = ensure_utc(now)
        frequency = frequency or result.frequency
        first = result.transactions[0]
        latest = result.transactions[-1]

        template = RecurringTemplate(
            name=result.payee,
            amount=amount if amount is not None else result.suggested_amount,
            transaction_type=latest.transaction_type,
            frequency=frequency,
            start_date=first.date,
            next_due_date=calculate_next_due_date(latest.date, frequency),
            is_active=True,
            is_auto_pay=is_auto_pay,
            is_variable_amount=result.is_variable_amount,
            category_id=latest.category_id,
            account_id=latest.account_id,
            notes=result.suggested_notes,
            created_at=now,
            updated_at=now,
        )

        linked = []
        for txn in result.transactions:
            linked_txn = txn.model_copy(update={'parent_template_id': template.template_id, 'updated_at': now})
            template.generated_transaction_ids.append(linked_txn.transaction_id)
            linked.append(linked_txn)

        logger.info(
            f"Built template {template.template_id} for '{result.payee}' "
            f"({frequency.value}, {template.amount}), linking {len(linked)} transactions"
        )
        return TemplateMutation(template=template, transactions=linked)
