"""
Price History Tracker.

Appends dated price snapshots to templates and reports the change from the
first recorded price to the latest.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Optional

from billcycle.models.recurring_template import RecurringTemplate, PriceSnapshot, price_change_percentage
from billcycle.utils.serde_utils import to_decimal
from billcycle.utils.temporal_utils import ensure_utc

logger = logging.getLogger(__name__)


class PriceHistoryTracker:
    """Records price snapshots in insertion order; callers append in date order."""

    def record_price(
        self,
        template: RecurringTemplate,
        amount: Decimal,
        now: datetime,
        date: Optional[datetime] = None,
        update_amount: bool = False
    ) -> RecurringTemplate:
        """
        Append a price snapshot to a copy of the template.

        Args:
            template: Template to record against
            amount: Observed price
            now: Current time; also the snapshot date when date is None
            date: Snapshot date
            update_amount: Also make this the template's amount

        Returns:
            Updated template copy
        """
        now = ensure_utc(now)
        snapshot = PriceSnapshot(date=date or now, amount=to_decimal(amount))

        updated = template.model_copy(deep=True)
        updated.price_history.append(snapshot)
        if update_amount:
            updated.amount = snapshot.amount
        updated.updated_at = now

        logger.debug(
            f"Recorded price {snapshot.amount} for template {updated.template_id} "
            f"({len(updated.price_history)} snapshots)"
        )
        return updated

    def price_increase_percentage(self, template: RecurringTemplate) -> Optional[float]:
        """(latest - first) / first * 100; None with fewer than 2 snapshots or a zero first price."""
        return price_change_percentage(template.price_history)

    def has_price_increase(self, template: RecurringTemplate) -> bool:
        percentage = self.price_increase_percentage(template)
        return percentage is not None and percentage > 0
