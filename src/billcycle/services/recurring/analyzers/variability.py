"""
Variability analyzer for recurring obligation detection.

Decides whether an obligation has a fixed or variable amount.
"""

from decimal import Decimal
from typing import Sequence

from billcycle.exceptions import InputError
from billcycle.models.detection import AmountStatistics


class VariabilityAnalyzer:
    """
    Computes amount statistics and the fixed/variable classification.

    With a positive minimum the amount is variable when the relative spread
    (max - min) / min strictly exceeds the threshold. With a zero or negative
    minimum any difference at all makes it variable.
    """

    def __init__(self, relative_spread_threshold: Decimal = Decimal("0.05")):
        self.relative_spread_threshold = relative_spread_threshold

    def analyze(self, amounts: Sequence[Decimal]) -> AmountStatistics:
        """
        Analyze a sequence of amounts.

        Args:
            amounts: Observed amounts, at least one

        Returns:
            AmountStatistics with exact Decimal min, max and mean

        Raises:
            InputError: If amounts is empty
        """
        if not amounts:
            raise InputError("Cannot analyze variability of an empty amount sequence")

        minimum = min(amounts)
        maximum = max(amounts)
        mean = sum(amounts, Decimal("0")) / Decimal(len(amounts))

        if minimum > 0:
            is_variable = (maximum - minimum) / minimum > self.relative_spread_threshold
        else:
            is_variable = maximum != minimum

        return AmountStatistics(
            minimum=minimum,
            maximum=maximum,
            mean=mean,
            is_variable=is_variable
        )
