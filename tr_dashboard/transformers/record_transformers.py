"""Transformers for the four upload kinds."""
from datetime import datetime, timezone
from typing import Any, Dict, Hashable, Mapping, Optional
import logging

from tr_dashboard.config.settings import settings
from tr_dashboard.schemas.records import (
    SENTINEL_TIMESTAMP,
    CycleStatsRecord,
    LedgerRecord,
    OverviewRecord,
    PersonNodeRecord,
)
from tr_dashboard.schemas.registry import CYCLE_STATS, LEDGER, OVERVIEW, PERSON_NODE
from tr_dashboard.utils.helpers import current_month

from .base_transformer import BaseTransformer
from .header_aliases import (
    CYCLE_STATS_ALIASES,
    LEDGER_ALIASES,
    OVERVIEW_ALIASES,
    PERSON_NODE_ALIASES,
)
from .normalize import (
    detect_material_type,
    extract_report_year,
    infer_ledger_year,
    infer_stat_month,
    to_datetime,
    to_number,
    to_text,
)

logger = logging.getLogger(__name__)


class OverviewTransformer(BaseTransformer):
    """Transform 三包概况 rows; report year comes from the serial number."""

    schema = OverviewRecord
    aliases = OVERVIEW_ALIASES

    def __init__(self):
        super().__init__(OVERVIEW)

    def _transform_record(self, row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        serial = to_text(self.cell(row, 'serial_number'))
        if not serial:
            return None

        return {
            'serial_number': serial,
            'report_year': extract_report_year(serial, settings.DEFAULT_REPORT_YEAR),
            'department': to_text(self.cell(row, 'department')),
            'customer_name': to_text(self.cell(row, 'customer_name'), None),
            'installation_stage': to_text(self.cell(row, 'installation_stage'), None),
            'material_name': to_text(self.cell(row, 'material_name')),
            'drawing_number': to_text(self.cell(row, 'drawing_number')),
            'warranty_count': max(0, int(to_number(self.cell(row, 'warranty_count')))),
            'warranty_type': to_text(self.cell(row, 'warranty_type')),
            'fault_description': to_text(self.cell(row, 'fault_description')),
        }

    def key(self, record: Dict[str, Any]) -> Hashable:
        return (record['serial_number'], record['material_name'], record['drawing_number'])


class PersonNodeTransformer(BaseTransformer):
    """
    Transform 人员节点 log rows.

    Missing start/end times become SENTINEL_TIMESTAMP so that the
    five-column unique index can detect repeats.
    """

    schema = PersonNodeRecord
    aliases = PERSON_NODE_ALIASES

    def __init__(self):
        super().__init__(PERSON_NODE)

    def _transform_record(self, row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        serial = to_text(self.cell(row, 'serial_number'))
        if not serial:
            return None

        return {
            'serial_number': serial,
            'start_time': to_datetime(self.cell(row, 'start_time')) or SENTINEL_TIMESTAMP,
            'end_time': to_datetime(self.cell(row, 'end_time')) or SENTINEL_TIMESTAMP,
            'node': to_text(self.cell(row, 'node')),
            'person_name': to_text(self.cell(row, 'person_name')),
        }

    def key(self, record: Dict[str, Any]) -> Hashable:
        return (
            record['serial_number'],
            record['start_time'],
            record['end_time'],
            record['node'],
            record['person_name'],
        )


class CycleStatsTransformer(BaseTransformer):
    """
    Transform monthly 周期统计 rows.

    stat_month precedence: explicit override, then the 'NN年M月' token in
    the file name, then the current calendar month.
    """

    schema = CycleStatsRecord
    aliases = CYCLE_STATS_ALIASES

    def __init__(
        self,
        filename: str = '',
        month_override: Optional[str] = None,
        now: Optional[datetime] = None,
    ):
        super().__init__(CYCLE_STATS)
        self.stat_month = resolve_stat_month(filename, month_override, now)

    def _transform_record(self, row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        serial = to_text(self.cell(row, 'serial_number'))
        if not serial:
            return None

        dispatch = to_number(self.cell(row, 'hq_dispatch_time'))
        material_type = to_text(self.cell(row, 'material_type')) or detect_material_type(row)

        return {
            'serial_number': serial,
            'stat_month': self.stat_month,
            'hq_dispatch_time': dispatch,
            'hq_audit_time': to_number(self.cell(row, 'hq_audit_time')),
            'branch_submit_time': to_number(self.cell(row, 'branch_submit_time')),
            'supp_invest_time': to_number(self.cell(row, 'supp_invest_time')),
            'branch_invest_time': to_number(self.cell(row, 'branch_invest_time')),
            'ship_time': dispatch,
            'total_cycle_time': to_number(self.cell(row, 'total_cycle_time')),
            'department': to_text(self.cell(row, 'department')),
            'customer_name': to_text(self.cell(row, 'customer_name')),
            'material_type': material_type,
        }

    def key(self, record: Dict[str, Any]) -> Hashable:
        return (record['serial_number'], record['stat_month'])


class LedgerTransformer(BaseTransformer):
    """
    Transform annual 三包台账 rows.

    report_year precedence: year token in the file name, then the current year.
    """

    schema = LedgerRecord
    aliases = LEDGER_ALIASES

    def __init__(self, filename: str = '', now: Optional[datetime] = None):
        super().__init__(LEDGER)
        self.report_year = resolve_ledger_year(filename, now)

    def _transform_record(self, row: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
        serial = to_text(self.cell(row, 'serial_number'))
        if not serial:
            return None

        return {
            'serial_number': serial,
            'report_year': self.report_year,
            'department': to_text(self.cell(row, 'department')),
            'customer_name': to_text(self.cell(row, 'customer_name')),
            'warranty_type': to_text(self.cell(row, 'warranty_type')),
            'material_name': to_text(self.cell(row, 'material_name')),
            'quantity': to_number(self.cell(row, 'quantity')),
            'amount': to_number(self.cell(row, 'amount')),
            'resolution': to_text(self.cell(row, 'resolution')),
            'status': to_text(self.cell(row, 'status')),
            'category': to_text(self.cell(row, 'category')),
            'cause': to_text(self.cell(row, 'cause')),
            'apply_date': to_datetime(self.cell(row, 'apply_date')),
        }

    def key(self, record: Dict[str, Any]) -> Hashable:
        return (record['serial_number'], record['report_year'])


def resolve_stat_month(
    filename: str = '',
    month_override: Optional[str] = None,
    now: Optional[datetime] = None,
) -> str:
    """stat_month by precedence: override -> file name -> current month."""
    return month_override or infer_stat_month(filename) or current_month(now)


def resolve_ledger_year(filename: str = '', now: Optional[datetime] = None) -> int:
    """report_year by precedence: file name year -> current year."""
    year = infer_ledger_year(filename)
    if year is not None:
        return year
    return (now or datetime.now(timezone.utc)).year


def build_transformer(
    kind: str,
    filename: str = '',
    month_override: Optional[str] = None,
    now: Optional[datetime] = None,
) -> BaseTransformer:
    """
    Create the transformer for an upload kind.

    Args:
        kind: One of overview / person_node / cycle_stats / ledger
        filename: Uploaded file name (partition key inference)
        month_override: Operator-selected stat month for cycle stats
        now: Clock override for the current-month/year fallbacks

    Raises:
        KeyError: For an unknown kind
    """
    if kind == OVERVIEW:
        return OverviewTransformer()
    if kind == PERSON_NODE:
        return PersonNodeTransformer()
    if kind == CYCLE_STATS:
        return CycleStatsTransformer(filename, month_override, now)
    if kind == LEDGER:
        return LedgerTransformer(filename, now)
    raise KeyError(f'Unknown record kind {kind!r}')
