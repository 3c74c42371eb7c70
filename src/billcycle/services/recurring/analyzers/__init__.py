"""
Analyzers for recurring obligation detection.

Each analyzer extracts one aspect of a recurrence candidate from its
matching transactions.
"""

from billcycle.services.recurring.analyzers.frequency import FrequencyInferencer
from billcycle.services.recurring.analyzers.variability import VariabilityAnalyzer

__all__ = [
    'FrequencyInferencer',
    'VariabilityAnalyzer',
]
