"""
Aggregation engine.

Pure group-by/reduce functions over row dictionaries fetched from the
backend. Every function accepts an empty list and returns zero or an empty
list. Missing categorical values are bucketed under an explicit label so
that distribution totals always reconcile with the input row count.

Distributions are returned as [{'name': label, 'value': n}] sorted by value
descending; ties keep the order in which labels were first seen.
"""

import math
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

import pandas as pd

from tr_dashboard.config.settings import settings
from tr_dashboard.schemas.records import SENTINEL_TIMESTAMP

UNKNOWN = '未知'
NO_DESCRIPTION = '未描述'
CLOSED_MARKER = '结'
FAULT_LABEL_LENGTH = 20
# Any spelling of the epoch marks a node that has not ended yet
OPEN_END = pd.to_datetime(SENTINEL_TIMESTAMP, utc=True)

Row = Mapping[str, Any]


# ----------------------------------------------------------------------
# Scalars
# ----------------------------------------------------------------------

def round2(value: float) -> float:
    return round(float(value), 2)


def to_float(value: Any) -> float:
    """Numeric value of a cell; None, blanks and garbage count as 0."""
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(number) else number


def mean(values: Iterable[Any]) -> float:
    """Arithmetic mean rounded to 2 decimals; 0 for no values."""
    numbers = [to_float(v) for v in values]
    if not numbers:
        return 0.0
    return round2(sum(numbers) / len(numbers))


def median(values: Iterable[Any]) -> float:
    """
    Median of a numeric sequence.

    Odd length returns the middle element, even length the average of the
    two middle elements rounded to 2 decimals. Empty input returns 0.

    >>> median([5, 7, 9, 20])
    8.0
    >>> median([5, 7, 9])
    7.0
    """
    numbers = sorted(to_float(v) for v in values)
    if not numbers:
        return 0.0
    mid = len(numbers) // 2
    if len(numbers) % 2:
        return numbers[mid]
    return round2((numbers[mid - 1] + numbers[mid]) / 2)


def close_rate(rows: Sequence[Row], status_field: str = 'status', marker: str = CLOSED_MARKER) -> float:
    """Percentage of rows whose status contains the closing marker, 1 decimal."""
    if not rows:
        return 0.0
    closed = sum(1 for row in rows if marker in str(row.get(status_field) or ''))
    return round(closed / len(rows) * 100, 1)


def truncate_label(text: str, limit: int = FAULT_LABEL_LENGTH) -> str:
    return text[:limit] + '...' if len(text) > limit else text


# ----------------------------------------------------------------------
# Distributions
# ----------------------------------------------------------------------

def _label(value: Any, unknown: str) -> str:
    if value is None or value == '':
        return unknown
    if isinstance(value, float) and math.isnan(value):
        return unknown
    return str(value)


def _labels(rows: Sequence[Row], field: str, unknown: str) -> pd.Series:
    return pd.Series([_label(row.get(field), unknown) for row in rows], dtype=object)


def _numbers(rows: Sequence[Row], field: str) -> pd.Series:
    return pd.Series([to_float(row.get(field)) for row in rows], dtype=float)


def _ranked(series: pd.Series, top_n: Optional[int]) -> pd.Series:
    ranked = series.sort_values(ascending=False, kind='stable')
    return ranked.head(top_n) if top_n is not None else ranked


def frequency_distribution(
    rows: Sequence[Row],
    field: str,
    unknown: str = UNKNOWN,
    top_n: Optional[int] = None,
    transform: Optional[Callable[[str], str]] = None,
) -> List[Dict[str, Any]]:
    """
    Count rows per value of a categorical field.

    Args:
        rows: Input rows
        field: Categorical column
        unknown: Label for missing values
        top_n: Keep only the N most frequent labels
        transform: Applied to each label before grouping

    Returns:
        [{'name': label, 'value': count}] sorted by count descending
    """
    if not rows:
        return []
    labels = _labels(rows, field, unknown)
    if transform is not None:
        labels = labels.map(transform)
    counts = _ranked(labels.groupby(labels, sort=False).size(), top_n)
    return [{'name': name, 'value': int(count)} for name, count in counts.items()]


def fault_top_list(rows: Sequence[Row], top_n: int = 10) -> List[Dict[str, Any]]:
    """Most frequent fault descriptions, labels cut to 20 characters + '...'."""
    return frequency_distribution(
        rows,
        'fault_description',
        unknown=NO_DESCRIPTION,
        top_n=top_n,
        transform=truncate_label,
    )


def _top_counts(counts: Dict[str, int], top_n: int) -> List[Dict[str, Any]]:
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [{'name': name, 'value': value} for name, value in ranked[:top_n]]


def fault_frequency(
    rows: Sequence[Row],
    limit: int = 20,
    breakdown_n: int = 5,
    sample_n: int = 5,
) -> List[Dict[str, Any]]:
    """
    Group rows by full fault description with supporting detail.

    Each group carries its count, the top departments and customers
    reporting it, and the first few tickets as samples.

    Args:
        rows: Overview rows
        limit: Number of fault groups to return
        breakdown_n: Entries in each department/customer breakdown
        sample_n: Sample tickets per group

    Returns:
        [{'desc', 'count', 'departments', 'customers', 'samples'}] by count descending
    """
    groups: Dict[str, Dict[str, Any]] = {}
    for row in rows:
        desc = _label(row.get('fault_description'), NO_DESCRIPTION)
        group = groups.setdefault(desc, {
            'desc': desc,
            'count': 0,
            'departments': {},
            'customers': {},
            'samples': [],
        })
        group['count'] += 1
        dept = _label(row.get('department'), UNKNOWN)
        customer = _label(row.get('customer_name'), UNKNOWN)
        group['departments'][dept] = group['departments'].get(dept, 0) + 1
        group['customers'][customer] = group['customers'].get(customer, 0) + 1
        if len(group['samples']) < sample_n:
            group['samples'].append({
                'serial': row.get('serial_number'),
                'material': row.get('material_name'),
                'customer': row.get('customer_name'),
                'department': row.get('department'),
            })

    ranked = sorted(groups.values(), key=lambda g: g['count'], reverse=True)[:limit]
    for group in ranked:
        group['departments'] = _top_counts(group['departments'], breakdown_n)
        group['customers'] = _top_counts(group['customers'], breakdown_n)
    return ranked


def sum_by(
    rows: Sequence[Row],
    field: str,
    amount_field: str = 'amount',
    top_n: Optional[int] = None,
    unknown: str = UNKNOWN,
) -> List[Dict[str, Any]]:
    """
    Sum an amount column per value of a categorical field.

    Returns:
        [{'name': label, 'value': total}] sorted by total descending
    """
    if not rows:
        return []
    frame = pd.DataFrame({
        'label': _labels(rows, field, unknown),
        'amount': _numbers(rows, amount_field),
    })
    totals = _ranked(frame.groupby('label', sort=False)['amount'].sum(), top_n)
    return [{'name': name, 'value': round2(total)} for name, total in totals.items()]


def with_percent(distribution: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Copy of a distribution with each entry's whole-number share of the total."""
    total = sum(item['value'] for item in distribution)
    return [
        {**item, 'percent': round(item['value'] / total * 100) if total else 0}
        for item in distribution
    ]


# ----------------------------------------------------------------------
# Monthly series
# ----------------------------------------------------------------------

def monthly_trend(
    rows: Sequence[Row],
    month_field: str = 'stat_month',
    value_field: str = 'total_cycle_time',
) -> List[Dict[str, Any]]:
    """
    Row count and mean value per YYYY-MM month.

    >>> monthly_trend([
    ...     {'stat_month': '2025-01', 'total_cycle_time': 2},
    ...     {'stat_month': '2025-01', 'total_cycle_time': 4},
    ...     {'stat_month': '2025-03', 'total_cycle_time': 10},
    ... ])
    [{'month': '2025-01', 'count': 2, 'avgTime': '3.00'}, {'month': '2025-03', 'count': 1, 'avgTime': '10.00'}]
    """
    rows = [row for row in rows if row.get(month_field)]
    if not rows:
        return []
    frame = pd.DataFrame({
        'month': [str(row[month_field]) for row in rows],
        'value': _numbers(rows, value_field),
    })
    grouped = frame.groupby('month', sort=True)['value'].agg(['size', 'mean'])
    return [
        {'month': month, 'count': int(stats['size']), 'avgTime': f'{stats["mean"]:.2f}'}
        for month, stats in grouped.iterrows()
    ]


def _months(values: Iterable[Any]) -> pd.Series:
    parsed = pd.to_datetime(
        pd.Series(list(values), dtype=object),
        utc=True,
        errors='coerce',
        format='ISO8601',
    )
    return parsed.dt.strftime('%Y-%m')


def monthly_amount_trend(
    rows: Sequence[Row],
    date_field: str = 'apply_date',
    amount_field: str = 'amount',
) -> List[Dict[str, Any]]:
    """
    Amount summed per month of a date column; undated rows are skipped.

    Returns:
        [{'month': 'YYYY-MM', 'amount': total}] ascending by month
    """
    rows = [row for row in rows if row.get(date_field)]
    if not rows:
        return []
    frame = pd.DataFrame({
        'month': _months(row[date_field] for row in rows),
        'amount': _numbers(rows, amount_field),
    }).dropna(subset=['month'])
    totals = frame.groupby('month', sort=True)['amount'].sum()
    return [{'month': month, 'amount': round2(total)} for month, total in totals.items()]


STAGE_COLUMNS = {
    'avg_audit': ['hq_audit_time'],
    'avg_ship': ['ship_time'],
    'avg_smec': ['branch_submit_time', 'supp_invest_time', 'branch_invest_time'],
    'avg_total': ['total_cycle_time'],
}


def stage_trend(rows: Sequence[Row], last_n: int = 6) -> List[Dict[str, Any]]:
    """
    Per-month average time of each processing stage.

    The SMEC stage is branch submission + supplementary investigation +
    on-site investigation. Averages are 2-decimal strings; only the most
    recent last_n months are kept, ascending.
    """
    rows = [row for row in rows if row.get('stat_month')]
    if not rows:
        return []
    frame = pd.DataFrame({'month': [str(row['stat_month']) for row in rows]})
    for name, columns in STAGE_COLUMNS.items():
        frame[name] = sum(_numbers(rows, column) for column in columns)

    averages = frame.groupby('month', sort=True).mean().tail(last_n)
    return [
        {'month': month, **{name: f'{values[name]:.2f}' for name in STAGE_COLUMNS}}
        for month, values in averages.iterrows()
    ]


# ----------------------------------------------------------------------
# Tickets
# ----------------------------------------------------------------------

def long_cycle_tickets(
    rows: Sequence[Row],
    threshold: Optional[float] = None,
    field: str = 'total_cycle_time',
) -> List[Row]:
    """Rows whose cycle time exceeds the threshold, longest first."""
    limit = settings.LONG_CYCLE_DAYS if threshold is None else threshold
    over = [row for row in rows if to_float(row.get(field)) > limit]
    return sorted(over, key=lambda row: to_float(row.get(field)), reverse=True)


def _timestamp(value: Any) -> Optional[pd.Timestamp]:
    if not value:
        return None
    stamp = pd.to_datetime(value, utc=True, errors='coerce')
    return None if pd.isna(stamp) else stamp


def node_durations(logs: Sequence[Row], now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """
    Time spent at each node of a ticket's processing log.

    An end time at the epoch sentinel (in any ISO spelling) or missing
    means the node is still open and is measured up to now. Negative
    spans count as 0. 'percent'
    scales each duration against the longest one, capped at 100.

    Args:
        logs: Person-node rows ordered by start time
        now: Clock for open nodes (UTC now by default)

    Returns:
        One dict per log row: node, person_name, start_time, end_time,
        open, days, percent
    """
    current = pd.Timestamp(now or datetime.now(timezone.utc))
    if current.tzinfo is None:
        current = current.tz_localize('UTC')

    entries = []
    for log in logs:
        end_value = log.get('end_time')
        end = _timestamp(end_value)
        is_open = not end_value or end == OPEN_END
        start = _timestamp(log.get('start_time'))
        if is_open:
            end = current
        days = 0.0
        if start is not None and end is not None:
            days = max((end - start).total_seconds() / 86400, 0.0)
        entries.append({
            'node': log.get('node'),
            'person_name': log.get('person_name'),
            'start_time': log.get('start_time'),
            'end_time': None if is_open else end_value,
            'open': is_open,
            'days': round(days, 1),
            '_raw_days': days,
        })

    longest = max((e['_raw_days'] for e in entries), default=0) or 1
    for entry in entries:
        entry['percent'] = round(min(entry.pop('_raw_days') / longest * 100, 100), 1)
    return entries
