"""
Cancellation Scorer.

Scores each active expense template from 0 to 100 on how worthwhile it is to
keep. Lower scores are more concerning. Read-only.
"""

import logging
import uuid
from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from billcycle.models.cancellation import CancellationSuggestion
from billcycle.models.recurring_template import RecurringTemplate
from billcycle.models.transaction import Transaction, TransactionType
from billcycle.services.recurring.config import CancellationConfig
from billcycle.services.recurring.forecast_service import quantize_money
from billcycle.utils.temporal_utils import add_months, ensure_utc

logger = logging.getLogger(__name__)


class CancellationScorer:
    """
    Penalty-based scoring of subscriptions.

    Starting from 100:
    - cost share above the high threshold: high cost penalty, with a reason
    - cost share above the moderate threshold: moderate penalty, no reason
    - price increased since first recorded: penalty, with a reason
    - nothing materialized recently though something was before: penalty,
      with a reason
    - variable amount: small penalty, no reason

    Only templates scoring below the suggestion threshold with at least one
    reason are suggested.
    """

    def __init__(self, config: Optional[CancellationConfig] = None):
        self.config = config or CancellationConfig()

    def score(
        self,
        templates: Sequence[RecurringTemplate],
        transactions: Sequence[Transaction],
        now: datetime
    ) -> List[CancellationSuggestion]:
        """
        Score active expense templates.

        Args:
            templates: Templates to consider; inactive and non-expense ones are skipped
            transactions: Transaction history used for the recent-usage check
            now: Current time

        Returns:
            Suggestions sorted by ascending score, then name
        """
        now = ensure_utc(now)
        candidates = [
            t for t in templates
            if t.is_active and t.transaction_type == TransactionType.EXPENSE
        ]
        total_monthly = sum((t.monthly_equivalent_amount for t in candidates), Decimal("0"))
        linked = self._linked_transactions(candidates, transactions)
        recent_cutoff = add_months(now, -self.config.inactivity_months)

        suggestions = []
        for template in candidates:
            suggestion = self._score_template(
                template,
                total_monthly,
                linked.get(template.template_id, []),
                recent_cutoff
            )
            if suggestion is not None:
                suggestions.append(suggestion)

        suggestions.sort(key=lambda s: (s.score, s.name))
        logger.info(f"Scored {len(candidates)} templates, {len(suggestions)} cancellation suggestions")
        return suggestions

    def _linked_transactions(
        self,
        templates: Sequence[RecurringTemplate],
        transactions: Sequence[Transaction]
    ) -> Dict[uuid.UUID, List[Transaction]]:
        """
        Transactions per template, by parent_template_id, falling back to the
        template's generated_transaction_ids for unlinked records.
        """
        by_generated_id = {
            txn_id: template.template_id
            for template in templates
            for txn_id in template.generated_transaction_ids
        }
        linked: Dict[uuid.UUID, List[Transaction]] = defaultdict(list)
        for txn in transactions:
            template_id = txn.parent_template_id or by_generated_id.get(txn.transaction_id)
            if template_id is not None:
                linked[template_id].append(txn)
        return linked

    def _score_template(
        self,
        template: RecurringTemplate,
        total_monthly: Decimal,
        transactions: Sequence[Transaction],
        recent_cutoff: datetime
    ) -> Optional[CancellationSuggestion]:
        cfg = self.config
        score = 100
        reasons: List[str] = []

        monthly_cost = template.monthly_equivalent_amount
        cost_share = float(monthly_cost / total_monthly * 100) if total_monthly > 0 else 0.0

        if cost_share > cfg.high_cost_share_pct:
            score -= cfg.high_cost_penalty
            reasons.append(f"High cost: {cost_share:.0f}% of recurring spend")
        elif cost_share > cfg.moderate_cost_share_pct:
            score -= cfg.moderate_cost_penalty

        increase = template.price_increase_percentage
        if increase is not None and increase > 0:
            score -= cfg.price_increase_penalty
            reasons.append(f"Price increased {increase:.0f}% since first recorded")

        ever_materialized = len(transactions) > 0 or len(template.generated_transaction_ids) > 0
        recently_materialized = any(txn.date >= recent_cutoff for txn in transactions)
        if ever_materialized and not recently_materialized:
            score -= cfg.inactivity_penalty
            reasons.append(f"No transactions in last {cfg.inactivity_months} months")

        if template.is_variable_amount:
            score -= cfg.variable_amount_penalty

        score = max(score, 0)
        if score >= cfg.suggestion_threshold or not reasons:
            return None

        return CancellationSuggestion(
            template_id=template.template_id,
            name=template.name,
            score=score,
            reasons=reasons,
            monthly_cost=quantize_money(monthly_cost),
            cost_share=cost_share,
        )
