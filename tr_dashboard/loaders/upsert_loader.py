"""Deduplicating batch upsert loader."""
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Sequence

from tr_dashboard.config.settings import settings
from tr_dashboard.connectors.supabase_connector import SupabaseConnector
from tr_dashboard.errors import BackendError, BackendWriteError
from tr_dashboard.pipeline.run_log import RunLog
from tr_dashboard.utils.helpers import chunk_list

from .base_loader import BaseLoader


def deduplicate(
    records: Iterable[Dict[str, Any]],
    key_fn: Callable[[Dict[str, Any]], Hashable],
) -> List[Dict[str, Any]]:
    """
    Collapse records sharing a composite key, last write wins.

    Later records replace earlier ones with the same key; each key keeps
    the position of its first occurrence.

    Args:
        records: Normalized records in input order
        key_fn: Function building the composite natural key

    Returns:
        One record per distinct key
    """
    unique: Dict[Hashable, Dict[str, Any]] = {}
    for record in records:
        unique[key_fn(record)] = record
    return list(unique.values())


def remediation_hint(message: str, table: str, conflict_columns: Sequence[str]) -> Optional[str]:
    """
    Actionable hint for recognized backend error messages.

    Args:
        message: Raw backend message
        table: Target table
        conflict_columns: Conflict target of the failing upsert

    Returns:
        Hint text, or None when the message is not recognized
    """
    lowered = (message or '').lower()
    if 'on conflict' in lowered:
        return (
            f'提示: 数据库约束不匹配。请确认表 {table} 在 '
            f'({", ".join(conflict_columns)}) 上建立了唯一约束。'
        )
    if 'relation' in lowered and 'does not exist' in lowered:
        return f'提示: 表 {table} 不存在，请先在 Supabase 中创建该表。'
    if 'function' in lowered and 'does not exist' in lowered:
        return '提示: 服务端函数不存在，请先在 Supabase SQL Editor 中部署对应的函数。'
    return None


class UpsertBatchLoader(BaseLoader):
    """
    Submit records to a table in fixed-size upsert batches.

    Batches go out strictly one after another. The first failing batch
    aborts the run; batches already accepted stay committed.
    """

    def __init__(
        self,
        connector: SupabaseConnector,
        run_log: Optional[RunLog] = None,
        batch_size: Optional[int] = None,
    ):
        """
        Args:
            connector: Backend connector
            run_log: Sink for '进度: done/total' messages
            batch_size: Rows per upsert call (UPLOAD_BATCH_SIZE by default)
        """
        super().__init__('upsert', connector, run_log)
        self.batch_size = batch_size or settings.UPLOAD_BATCH_SIZE
        self.batch_count = 0

    def load(
        self,
        data: List[Dict[str, Any]],
        table: str,
        on_conflict: Sequence[str],
        **kwargs,
    ) -> int:
        """
        Upsert records in batches.

        Args:
            data: Deduplicated records
            table: Target table
            on_conflict: Natural key columns used as the conflict target

        Returns:
            Number of records upserted

        Raises:
            BackendWriteError: On the first failing batch
        """
        self.loaded_count = 0
        self.batch_count = 0
        total = len(data)
        if not data:
            self.logger.warning(f'No records to load into {table}')
            return 0

        for batch in chunk_list(data, self.batch_size):
            try:
                self.connector.upsert(table, batch, on_conflict)
            except BackendError as e:
                raise BackendWriteError(
                    e.message,
                    table=table,
                    completed=self.loaded_count,
                    total=total,
                    status_code=e.status_code,
                    code=e.code,
                    hint=remediation_hint(e.message, table, on_conflict),
                ) from e
            self.batch_count += 1
            self.loaded_count += len(batch)
            self.report(f'进度: {self.loaded_count}/{total}')

        self.logger.info(f'Upserted {self.loaded_count} records into {table} in {self.batch_count} batches')
        return self.loaded_count

    def get_load_stats(self) -> Dict[str, Any]:
        stats = super().get_load_stats()
        stats['batch_count'] = self.batch_count
        stats['batch_size'] = self.batch_size
        return stats
