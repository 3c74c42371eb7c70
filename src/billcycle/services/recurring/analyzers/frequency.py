"""
Frequency inferencer for recurring obligation detection.

Analyzes gaps between occurrence dates to infer a recurrence frequency.
"""

import logging
from datetime import datetime
from typing import List, Dict, Sequence, Tuple

import numpy as np

from billcycle.models.recurring_template import RecurringFrequency
from billcycle.utils.temporal_utils import whole_days_between

logger = logging.getLogger(__name__)


class FrequencyInferencer:
    """
    Infers recurrence frequency from a date-ordered sequence of timestamps.

    The mean gap is the sum of whole-day gaps integer-divided by the number of
    gaps, matched against inclusive day ranges. Anything beyond the last
    range is yearly; fewer than two dates default to monthly.
    """

    def __init__(self, frequency_thresholds: Dict[RecurringFrequency, Tuple[int, int]]):
        """
        Initialize the frequency inferencer.

        Args:
            frequency_thresholds: Dictionary mapping RecurringFrequency to (min_days, max_days) tuples
        """
        self.frequency_thresholds = frequency_thresholds

    def infer(self, dates: Sequence[datetime]) -> RecurringFrequency:
        """
        Infer recurrence frequency from occurrence dates.

        Args:
            dates: Occurrence dates sorted ascending

        Returns:
            RecurringFrequency matching the mean gap
        """
        if len(dates) < 2:
            return RecurringFrequency.MONTHLY

        gaps = self._calculate_gaps(dates)
        mean_gap = sum(gaps) // len(gaps)
        frequency = self._match_to_frequency(mean_gap)
        logger.debug(f"Mean gap of {mean_gap} days over {len(gaps)} intervals -> {frequency.value}")
        return frequency

    def _calculate_gaps(self, dates: Sequence[datetime]) -> List[int]:
        """Whole-day gaps between consecutive dates."""
        return [whole_days_between(dates[i - 1], dates[i]) for i in range(1, len(dates))]

    def _match_to_frequency(self, mean_gap: int) -> RecurringFrequency:
        for frequency, (min_days, max_days) in self.frequency_thresholds.items():
            if min_days <= mean_gap <= max_days:
                return frequency
        return RecurringFrequency.YEARLY

    def interval_statistics(self, dates: Sequence[datetime]) -> Dict[str, float]:
        """
        Calculate detailed gap statistics.

        Args:
            dates: Occurrence dates sorted ascending

        Returns:
            Dictionary with mean, std, min, max gaps in days
        """
        if len(dates) < 2:
            return {
                'mean': 0.0,
                'std': 0.0,
                'min': 0.0,
                'max': 0.0
            }

        gaps = self._calculate_gaps(dates)

        return {
            'mean': float(np.mean(gaps)),
            'std': float(np.std(gaps)),
            'min': float(min(gaps)),
            'max': float(max(gaps))
        }
