"""
Cross-filters and modal re-aggregations for the annual dashboard.

Each enlarged chart ("modal") has its own set of dropdown filters. A filter
value of ALL ('全部') matches every row; any other value must equal the
row's field exactly.
"""
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from tr_dashboard.analytics.aggregations import (
    UNKNOWN,
    fault_frequency,
    frequency_distribution,
    monthly_amount_trend,
    monthly_trend,
    sum_by,
    to_float,
    with_percent,
)

ALL = '全部'
DETAIL_LIMIT = 200

MONTHLY_TREND = 'monthly_trend'
MONTHLY_AMOUNT = 'monthly_amount'
FAULT_TOP = 'fault_top'
DEPT_TOP = 'dept_top'
CUSTOMER_AMOUNT_TOP = 'customer_amount_top'
WARRANTY_TYPE_DIST = 'warranty_type_dist'
CATEGORY_DIST = 'category_dist'
CATEGORY_AMOUNT_DIST = 'category_amount_dist'
DETAIL_LIST = 'detail_list'

MODAL_TITLES = {
    MONTHLY_TREND: '月度工单量与周期趋势（放大）',
    MONTHLY_AMOUNT: '月度费用趋势（放大）',
    FAULT_TOP: 'Top 故障描述（放大）',
    DEPT_TOP: '部门工单 Top 榜（放大）',
    CUSTOMER_AMOUNT_TOP: '客户费用 Top 榜（放大）',
    WARRANTY_TYPE_DIST: '三包类型分布（放大）',
    CATEGORY_DIST: '问题类别分布（放大）',
    CATEGORY_AMOUNT_DIST: '问题类别费用占比（放大）',
    DETAIL_LIST: '三包清单（详情）',
}

# Filterable fields per modal, all initialised to ALL
MODAL_FILTER_FIELDS = {
    MONTHLY_TREND: ('department', 'customer_name', 'material_type'),
    MONTHLY_AMOUNT: ('department', 'customer_name'),
    FAULT_TOP: ('department', 'customer_name'),
    DEPT_TOP: ('customer_name', 'warranty_type'),
    CUSTOMER_AMOUNT_TOP: ('department', 'category'),
}

LEDGER_DETAIL_COLUMNS = [
    'serial_number', 'material_name', 'drawing_number', 'apply_date', 'customer_name',
    'department', 'category', 'amount', 'status', 'resolution', 'cause',
]
OVERVIEW_DETAIL_COLUMNS = [
    'serial_number', 'material_name', 'drawing_number', 'customer_name', 'department', 'warranty_type',
]

# detail kind -> (source, grouping field, columns)
DETAIL_KINDS = {
    'category': ('ledger', 'category', LEDGER_DETAIL_COLUMNS),
    'category_amount': ('ledger', 'category', LEDGER_DETAIL_COLUMNS),
    'department': ('ledger', 'department', LEDGER_DETAIL_COLUMNS),
    'warranty_type': ('overview', 'warranty_type', OVERVIEW_DETAIL_COLUMNS),
    'material': ('overview', 'material_name', OVERVIEW_DETAIL_COLUMNS),
}

Row = Mapping[str, Any]


def default_filters() -> Dict[str, Dict[str, str]]:
    return {modal: {f: ALL for f in fields} for modal, fields in MODAL_FILTER_FIELDS.items()}


def apply_filters(rows: Sequence[Row], filters: Mapping[str, str]) -> List[Row]:
    """Rows matching every non-ALL filter value."""
    active = {f: v for f, v in filters.items() if v != ALL}
    return [row for row in rows if all(row.get(f) == v for f, v in active.items())]


def filter_options(rows: Sequence[Row], field: str) -> List[str]:
    """ALL followed by the distinct non-empty values of a field in first-seen order."""
    seen = dict.fromkeys(row.get(field) for row in rows if row.get(field))
    return [ALL, *seen]


def trend_view(cycle_rows: Sequence[Row], filters: Mapping[str, str]) -> Dict[str, Any]:
    rows = apply_filters(cycle_rows, filters)
    return {
        'monthly_trend': monthly_trend(rows),
        'department_data': frequency_distribution(rows, 'department'),
    }


def amount_view(ledger_rows: Sequence[Row], filters: Mapping[str, str]) -> Dict[str, Any]:
    rows = apply_filters(ledger_rows, filters)
    return {
        'monthly_amount_trend': monthly_amount_trend(rows),
        'dept_amount_top': sum_by(rows, 'department', top_n=10),
        'customer_amount_top': sum_by(rows, 'customer_name', top_n=10),
    }


def fault_view(overview_rows: Sequence[Row], filters: Mapping[str, str]) -> List[Dict[str, Any]]:
    return fault_frequency(apply_filters(overview_rows, filters))


def dept_top_view(overview_rows: Sequence[Row], filters: Mapping[str, str]) -> List[Dict[str, Any]]:
    return frequency_distribution(apply_filters(overview_rows, filters), 'department')


def customer_amount_view(ledger_rows: Sequence[Row], filters: Mapping[str, str]) -> List[Dict[str, Any]]:
    return sum_by(apply_filters(ledger_rows, filters), 'customer_name')


def share_view(distribution: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Distribution with whole-number percentages for the pie modals."""
    return with_percent(distribution)


def _drawing_number(row: Row, overview_rows: Sequence[Row]) -> str:
    material = row.get('material_name')
    for candidate in overview_rows:
        if candidate.get('serial_number') != row.get('serial_number'):
            continue
        if material and candidate.get('material_name') != material:
            continue
        return candidate.get('drawing_number') or ''
    return ''


def _date_only(value: Any) -> str:
    if not value:
        return ''
    stamp = pd.to_datetime(value, utc=True, errors='coerce')
    return '' if pd.isna(stamp) else stamp.strftime('%Y-%m-%d')


def detail_rows(
    kind: str,
    value: str,
    overview_rows: Sequence[Row],
    ledger_rows: Sequence[Row],
    limit: int = DETAIL_LIMIT,
) -> Tuple[List[str], List[Dict[str, Any]]]:
    """
    Ticket list behind one clicked chart segment.

    Ledger rows have no drawing number; it is looked up from the overview
    rows by serial number (and material name when the ledger row has one).

    Args:
        kind: category / category_amount / department / warranty_type / material
        value: Clicked label (UNKNOWN matches rows with a missing value)
        overview_rows: Overview rows of the year
        ledger_rows: Ledger rows of the year
        limit: Maximum rows returned

    Returns:
        (columns, rows) with rows restricted to those columns

    Raises:
        KeyError: For an unknown kind
    """
    source, field, columns = DETAIL_KINDS[kind]
    rows = ledger_rows if source == 'ledger' else overview_rows
    matched = [row for row in rows if (row.get(field) or UNKNOWN) == value][:limit]

    formatted = []
    for row in matched:
        item = {c: row.get(c) for c in columns}
        if 'drawing_number' in item and source == 'ledger':
            item['drawing_number'] = _drawing_number(row, overview_rows)
        if 'apply_date' in item:
            item['apply_date'] = _date_only(row.get('apply_date'))
        if 'amount' in item:
            item['amount'] = round(to_float(row.get('amount')))
        formatted.append(item)
    return columns, formatted


def modal_title(modal: Optional[str]) -> str:
    return MODAL_TITLES.get(modal, '')
