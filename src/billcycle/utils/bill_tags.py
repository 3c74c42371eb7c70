"""
Bill tag extraction.

Bill types travel inside a transaction's free-text notes as bracketed tags
("[Gas][Electric] quarterly estimate"). This module is the single place that
parses them; detection receives the extractor as an injected callable.
"""

import re
import logging
from typing import List, Optional, Sequence

from billcycle.models.bill_type import BillType, LEGACY_BILL_TYPE_MAPPINGS

logger = logging.getLogger(__name__)

BILL_TAG_PATTERN = re.compile(r"\[([^\[\]]+)\]")

_BILL_TYPES_BY_VALUE = {bill_type.value: bill_type for bill_type in BillType}


def extract_bill_tags(notes: Optional[str]) -> List[BillType]:
    """
    Extract bill types from bracketed tags in a notes string.

    Legacy tags are translated to their current equivalents. Unknown tags are
    ignored. The result holds each bill type once, in first-seen order.

    Args:
        notes: Free-text notes, possibly None

    Returns:
        List of BillType values (empty when there are no recognised tags)

    Examples:
        >>> extract_bill_tags("[Internet & TV] bundle")
        [<BillType.INTERNET: 'Internet'>, <BillType.TV: 'TV'>]
    """
    if not notes:
        return []

    found: List[BillType] = []
    for raw in BILL_TAG_PATTERN.findall(notes):
        value = raw.strip()
        if value in _BILL_TYPES_BY_VALUE:
            candidates: Sequence[BillType] = [_BILL_TYPES_BY_VALUE[value]]
        elif value in LEGACY_BILL_TYPE_MAPPINGS:
            candidates = LEGACY_BILL_TYPE_MAPPINGS[value]
        else:
            logger.debug(f"Ignoring unrecognised tag: [{value}]")
            continue

        for bill_type in candidates:
            if bill_type not in found:
                found.append(bill_type)

    return found


def format_bill_tags(bill_types: Sequence[BillType]) -> Optional[str]:
    """Concatenate bill types as bracketed tags; None when there are none."""
    if not bill_types:
        return None
    return "".join(bill_type.tag for bill_type in bill_types)
