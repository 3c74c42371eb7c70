"""
Exception taxonomy for the recurring-obligation engine.

"No detection" and "no suggestion" outcomes are never exceptions; they are
returned as None or empty collections.
"""


class BillcycleError(Exception):
    """Base class for all engine errors."""
    pass


class InputError(BillcycleError, ValueError):
    """Raised when an operation receives malformed or empty input."""
    pass


class CalendarArithmeticError(BillcycleError):
    """Raised when a due date cannot be advanced to a valid calendar date."""
    pass


class StorageError(BillcycleError):
    """Raised by record store adapters when a fetch or persist fails."""

    def __init__(self, message: str, operation: str = "unknown"):
        super().__init__(message)
        self.operation = operation
