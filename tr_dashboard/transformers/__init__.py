"""
CSV normalization: alias tables, cell coercion and per-kind transformers.
"""

from .base_transformer import BaseTransformer
from .record_transformers import (
    CycleStatsTransformer,
    LedgerTransformer,
    OverviewTransformer,
    PersonNodeTransformer,
    build_transformer,
    resolve_ledger_year,
    resolve_stat_month,
)

__all__ = [
    'BaseTransformer',
    'CycleStatsTransformer',
    'LedgerTransformer',
    'OverviewTransformer',
    'PersonNodeTransformer',
    'build_transformer',
    'resolve_ledger_year',
    'resolve_stat_month',
]
