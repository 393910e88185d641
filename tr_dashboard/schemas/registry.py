"""
Registry of upload kinds.

Maps each logical CSV kind selected by the uploading user to its target
table, conflict columns, storage folder and record schema. The pipeline,
the offline utilities and the maintenance operations all resolve tables
through this registry.
"""

from dataclasses import dataclass
from typing import Dict, Tuple, Type

from pydantic import BaseModel

from tr_dashboard.config.settings import settings
from .records import CycleStatsRecord, LedgerRecord, OverviewRecord, PersonNodeRecord


@dataclass(frozen=True)
class RecordKind:
    """Static description of one upload kind."""
    name: str
    label: str
    table: str
    conflict_columns: Tuple[str, ...]
    folder: str
    schema: Type[BaseModel]
    delimiter: str = ','


OVERVIEW = 'overview'
PERSON_NODE = 'person_node'
CYCLE_STATS = 'cycle_stats'
LEDGER = 'ledger'


RECORD_KINDS: Dict[str, RecordKind] = {
    OVERVIEW: RecordKind(
        name=OVERVIEW,
        label='MESE三包概况',
        table=settings.OVERVIEW_TABLE,
        conflict_columns=('serial_number', 'material_name', 'drawing_number'),
        folder='overview',
        schema=OverviewRecord,
    ),
    PERSON_NODE: RecordKind(
        name=PERSON_NODE,
        label='人员节点日志',
        table=settings.PERSON_NODE_TABLE,
        conflict_columns=('serial_number', 'start_time', 'end_time', 'node', 'person_name'),
        folder='person_nodes',
        schema=PersonNodeRecord,
        delimiter='\t',
    ),
    CYCLE_STATS: RecordKind(
        name=CYCLE_STATS,
        label='月度周期统计',
        table=settings.CYCLE_STATS_TABLE,
        conflict_columns=('serial_number', 'stat_month'),
        folder='cycle_stats',
        schema=CycleStatsRecord,
    ),
    LEDGER: RecordKind(
        name=LEDGER,
        label='TR年度三包台账',
        table=settings.LEDGER_TABLE,
        conflict_columns=('serial_number', 'report_year'),
        folder='ledger',
        schema=LedgerRecord,
    ),
}


def get_record_kind(name: str) -> RecordKind:
    """
    Look up an upload kind by name.

    Raises:
        KeyError: If the kind is not registered
    """
    try:
        return RECORD_KINDS[name]
    except KeyError:
        raise KeyError(
            f'Unknown record kind {name!r}; expected one of {sorted(RECORD_KINDS)}'
        ) from None


def storage_folder(name: str) -> str:
    """Storage folder for a kind, 'misc' for anything unregistered."""
    kind = RECORD_KINDS.get(name)
    return kind.folder if kind else 'misc'
