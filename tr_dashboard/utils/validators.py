"""Data validation utilities."""
from typing import List, Optional
import logging
import re

logger = logging.getLogger(__name__)

REPLACEMENT_CHAR = '�'
MONTH_PATTERN = re.compile(r'^\d{4}-\d{2}$')


def find_garbled_headers(headers: List[str]) -> List[str]:
    """
    Return headers that contain the Unicode replacement character.

    A CSV saved as GBK and decoded as UTF-8 produces such headers; the
    upload still proceeds, but callers should warn the operator.

    Args:
        headers: Header labels from the parsed CSV

    Returns:
        List of suspicious (non-blank) headers
    """
    return [h for h in headers if h and h.strip() and REPLACEMENT_CHAR in h]


def validate_month_format(month: Optional[str]) -> bool:
    """True if month is a YYYY-MM string."""
    return bool(month) and bool(MONTH_PATTERN.match(month))
