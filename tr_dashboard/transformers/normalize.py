"""
Normalization helpers for raw CSV rows.

Provides:
- get_cell_value(): alias-table lookup with whitespace-trimmed fallback
- to_datetime() / to_number(): best-effort coercion of cell text
- extract_report_year() / infer_stat_month() / infer_ledger_year(): partition keys
- detect_material_type(): substrate marker lookup for cycle stats rows
"""

import re
from datetime import datetime
from typing import Any, List, Mapping, Optional

import pandas as pd

ISO_FORMAT = '%Y-%m-%dT%H:%M:%S.000Z'
SUBSTRATE_MARKER = '基板'

_DATE_RE = re.compile(
    r'^(\d{4})-(\d{1,2})-(\d{1,2})'
    r'(?:[ T](\d{1,2}):(\d{2})(?::(\d{2})(?:\.\d+)?)?)?Z?$'
)
_NUMBER_RE = re.compile(r'^[+-]?(?:\d+(?:\.\d*)?|\.\d+)')
_TWO_DIGITS_RE = re.compile(r'(\d{2})')
_STAT_MONTH_RE = re.compile(r'(\d{2})年(\d{1,2})月')
_LEDGER_YEAR_RES = [
    re.compile(r'（(\d{4})）'),
    re.compile(r'\((\d{4})\)'),
    re.compile(r'(\d{4})'),
]


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, float) and pd.isna(value):
        return False
    return value != ''


def get_cell_value(row: Mapping[str, Any], aliases: List[str]) -> Optional[Any]:
    """
    Return the first non-empty cell among the header aliases.

    For each alias an exact header match is tried first, then a header that
    equals the alias after trimming surrounding whitespace (exports often
    carry ' 三包流水号' style headers).

    Args:
        row: Parsed CSV row (header -> cell)
        aliases: Accepted header spellings, in priority order

    Returns:
        Cell value, or None if no alias resolves to a non-empty cell
    """
    for alias in aliases:
        value = row.get(alias)
        if _present(value):
            return value
        for header, cell in row.items():
            if isinstance(header, str) and header.strip() == alias and _present(cell):
                return cell
    return None


def to_text(value: Any, default: Optional[str] = '') -> Optional[str]:
    """Cell as stripped text, or default when blank."""
    if not _present(value):
        return default
    text = str(value).strip()
    return text if text else default


def to_number(value: Any, default: float = 0.0) -> float:
    """
    Leading numeric prefix of a cell, like '2.12' or '1,234.5元'.

    Returns default for blanks and text with no numeric prefix.
    """
    if not _present(value):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    match = _NUMBER_RE.match(str(value).strip().replace(',', ''))
    if not match:
        return default
    try:
        return float(match.group(0))
    except ValueError:
        return default


def to_datetime(value: Any) -> Optional[str]:
    """
    Normalize a date/time cell to an ISO-8601 timestamp.

    Handles:
    - 2025/11/20 16:00
    - 2025/7/16 9:27:22
    - 2025-07-16
    - anything else pandas can parse

    Args:
        value: Raw cell value

    Returns:
        'YYYY-MM-DDTHH:MM:SS.000Z', or None if unparseable
    """
    if not _present(value):
        return None

    text = str(value).strip().replace('/', '-')
    match = _DATE_RE.match(text)
    if match:
        year, month, day, hour, minute, second = match.groups()
        try:
            dt = datetime(
                int(year), int(month), int(day),
                int(hour or 0), int(minute or 0), int(second or 0),
            )
        except ValueError:
            return None
        return dt.strftime(ISO_FORMAT)

    # Fallback: pandas flexible parser
    dt = pd.to_datetime(text, errors='coerce')
    if pd.isna(dt):
        return None
    if dt.tzinfo is not None:
        dt = dt.tz_convert('UTC').tz_localize(None)
    return dt.strftime(ISO_FORMAT)


def extract_report_year(serial: str, default: int = 2025) -> int:
    """
    Report year embedded in a serial number.

    The first run of two digits is the year: 'MBY25001' -> 2025.
    """
    match = _TWO_DIGITS_RE.search(serial or '')
    if match:
        return 2000 + int(match.group(1))
    return default


def infer_stat_month(filename: str) -> Optional[str]:
    """
    Statistics month from a file name like '周期统计确认(25年11月).csv'.

    Returns:
        'YYYY-MM', or None if the name has no 'NN年M月' token
    """
    match = _STAT_MONTH_RE.search(filename or '')
    if not match:
        return None
    return f'20{match.group(1)}-{int(match.group(2)):02d}'


def infer_ledger_year(filename: str) -> Optional[int]:
    """
    Ledger year from a file name like '三包台账（2025）.csv'.

    Full-width parentheses are checked first, then ASCII ones, then any
    four-digit run.
    """
    for pattern in _LEDGER_YEAR_RES:
        match = pattern.search(filename or '')
        if match:
            return int(match.group(1))
    return None


def detect_material_type(row: Mapping[str, Any]) -> str:
    """
    Best-effort substrate marker for a cycle stats row.

    The export carries '基板' / '非基板' in an unlabeled trailing column, so
    every cell is scanned and the last one containing the marker wins.
    Returns '' when no cell carries it.
    """
    material_type = ''
    for value in row.values():
        if isinstance(value, str) and SUBSTRATE_MARKER in value:
            material_type = value.strip()
    return material_type
