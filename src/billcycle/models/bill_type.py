"""
Bill type tags.

Bill types are stored as bracketed tags inside a transaction's free-text
notes, e.g. "[Gas][Electric] paid by direct debit". Older records used a
coarser six-value vocabulary that is translated on read.
"""

from enum import Enum
from typing import Dict, List


class BillType(str, Enum):
    """Categorical bill label carried in notes as a bracketed tag."""
    # Energy
    GAS = "Gas"
    ELECTRIC = "Electric"
    WATER = "Water"
    # Communications
    INTERNET = "Internet"
    TV = "TV"
    MOBILE = "Mobile"
    LANDLINE = "Landline"
    # Subscriptions
    STREAMING = "Streaming"
    SOFTWARE = "Software"
    # Insurance
    HEALTH_INSURANCE = "Health Insurance"
    HOME_INSURANCE = "Home Insurance"
    CAR_INSURANCE = "Car Insurance"
    # Other
    OTHER = "Other"

    @property
    def tag(self) -> str:
        """The bracketed form stored in notes."""
        return f"[{self.value}]"


# Legacy tag value -> current bill types
LEGACY_BILL_TYPE_MAPPINGS: Dict[str, List[BillType]] = {
    "Internet & TV": [BillType.INTERNET, BillType.TV],
    "Gas & Electric": [BillType.GAS, BillType.ELECTRIC],
    "Phone": [BillType.MOBILE],
    "Subscription": [BillType.STREAMING],
    "Insurance": [BillType.HOME_INSURANCE],
}
