"""
Record schemas and the upload-kind registry.
"""

from .records import (
    SENTINEL_TIMESTAMP,
    CycleStatsRecord,
    LedgerRecord,
    OverviewRecord,
    PersonNodeRecord,
)
from .registry import (
    CYCLE_STATS,
    LEDGER,
    OVERVIEW,
    PERSON_NODE,
    RECORD_KINDS,
    RecordKind,
    get_record_kind,
    storage_folder,
)

__all__ = [
    'SENTINEL_TIMESTAMP',
    'CycleStatsRecord',
    'LedgerRecord',
    'OverviewRecord',
    'PersonNodeRecord',
    'CYCLE_STATS',
    'LEDGER',
    'OVERVIEW',
    'PERSON_NODE',
    'RECORD_KINDS',
    'RecordKind',
    'get_record_kind',
    'storage_folder',
]
