"""
Backend loaders: deduplicating batch upserts and raw-file archival.
"""

from .storage_loader import StorageLoader, archive_path
from .upsert_loader import UpsertBatchLoader, deduplicate, remediation_hint

__all__ = [
    'StorageLoader',
    'UpsertBatchLoader',
    'archive_path',
    'deduplicate',
    'remediation_hint',
]
