"""
CSV ingestion pipeline.

Runs one uploaded file through the full chain:

    archive raw bytes -> parse CSV -> normalize rows -> deduplicate -> batch upsert

Errors never escape process(): they are converted into RunLog entries and
an IngestResult with ok=False. Archival failures only warn; parsing and
write failures stop the file. Nothing already written (archived blob,
committed batches) is rolled back.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

import requests

from tr_dashboard.connectors.supabase_connector import SupabaseConnector
from tr_dashboard.errors import BackendError, BackendWriteError, InputError
from tr_dashboard.extractors.csv_extractor import CsvExtractor
from tr_dashboard.loaders.storage_loader import StorageLoader
from tr_dashboard.loaders.upsert_loader import UpsertBatchLoader, deduplicate
from tr_dashboard.schemas.registry import CYCLE_STATS, LEDGER, get_record_kind
from tr_dashboard.transformers.normalize import infer_stat_month
from tr_dashboard.transformers.record_transformers import (
    CycleStatsTransformer,
    LedgerTransformer,
    build_transformer,
)
from tr_dashboard.utils.validators import find_garbled_headers, validate_month_format

from .run_log import RunLog

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """Outcome of one file upload."""
    kind: str
    filename: str
    ok: bool = False
    raw_count: int = 0
    unique_count: int = 0
    loaded_count: int = 0
    archived_path: Optional[str] = None
    partition: Optional[str] = None
    error: Optional[str] = None
    hint: Optional[str] = None
    warnings: List[str] = field(default_factory=list)


@dataclass
class MonthPlan:
    """Statistics month chosen for a cycle stats upload."""
    month: str
    inferred: bool


def plan_cycle_month(filename: str, selected_month: Optional[str] = None) -> MonthPlan:
    """
    Decide the statistics month for an interactive cycle stats upload.

    An operator-selected month wins. Otherwise the month is inferred from
    the file name and must be confirmed by the caller (inferred=True).

    Raises:
        InputError: When no month is selected and none can be inferred, or
            the selected month is not YYYY-MM
    """
    if selected_month:
        if not validate_month_format(selected_month):
            raise InputError(f'月份格式错误: {selected_month}，请使用 YYYY-MM')
        return MonthPlan(month=selected_month, inferred=False)

    inferred = infer_stat_month(filename)
    if inferred:
        return MonthPlan(month=inferred, inferred=True)
    raise InputError('请先选择该文件所属的统计月份！')


_KIND_NOUNS = {
    'overview': '概况数据',
    'person_node': '人员节点数据',
    'cycle_stats': '周期统计数据',
    'ledger': '年度台账数据',
}


class IngestionPipeline:
    """
    Upload one CSV export into its backend table.

    Example:
        >>> with SupabaseConnector() as connector:
        ...     pipeline = IngestionPipeline(connector)
        ...     result = pipeline.process_path('overview', 'MESE三包概况.csv')
    """

    def __init__(
        self,
        connector: SupabaseConnector,
        run_log: Optional[RunLog] = None,
        batch_size: Optional[int] = None,
        archive: bool = True,
    ):
        """
        Args:
            connector: Backend connector
            run_log: Sink for user-visible messages (a new one by default)
            batch_size: Rows per upsert call
            archive: Upload the raw file to storage before ingesting
        """
        self.connector = connector
        self.run_log = run_log or RunLog(logger)
        self.archive = archive
        self.extractor = CsvExtractor()
        self.upsert_loader = UpsertBatchLoader(connector, self.run_log, batch_size)
        self.storage_loader = StorageLoader(connector, self.run_log)

    def process_path(
        self,
        kind: str,
        path: Union[str, Path],
        month_override: Optional[str] = None,
        delimiter: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> IngestResult:
        """Read a local file and process it."""
        path = Path(path)
        try:
            content = path.read_bytes()
        except OSError as e:
            self.run_log.error(f'文件读取失败: {path.name}: {e}')
            return IngestResult(kind=kind, filename=path.name, error=str(e))
        return self.process(kind, path.name, content, month_override, delimiter, now)

    def process(
        self,
        kind: str,
        filename: str,
        content: bytes,
        month_override: Optional[str] = None,
        delimiter: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> IngestResult:
        """
        Archive, parse, normalize, deduplicate and upsert one file.

        Args:
            kind: overview / person_node / cycle_stats / ledger
            filename: Original file name (partition keys are inferred from it)
            content: Raw file bytes
            month_override: Statistics month for cycle stats uploads
            delimiter: CSV delimiter; None detects comma vs tab
            now: Clock override for month/year fallbacks

        Returns:
            IngestResult (never raises for input or backend errors)
        """
        result = IngestResult(kind=kind, filename=filename)
        try:
            record_kind = get_record_kind(kind)
        except KeyError as e:
            result.error = str(e)
            self.run_log.error(result.error)
            return result

        self.run_log.info(f'开始处理文件: {filename} ({kind})')

        if self.archive:
            result.archived_path = self._archive(kind, filename, content, now, result)

        try:
            rows = self.extractor.extract(content, delimiter=delimiter, source_name=filename)
        except InputError as e:
            result.error = str(e)
            self.run_log.error(result.error)
            return result

        self._inspect_headers(result)
        result.raw_count = len(rows)

        transformer = build_transformer(kind, filename, month_override, now)
        try:
            transformer.require_key_column(self.extractor.headers)
        except InputError as e:
            result.error = str(e)
            self.run_log.error(result.error)
            return result

        records = deduplicate(transformer.transform(rows), transformer.key)
        result.unique_count = len(records)
        result.partition = self._partition_label(transformer)

        self.run_log.info(self._sync_message(kind, result))

        try:
            result.loaded_count = self.upsert_loader.load(
                records,
                table=record_kind.table,
                on_conflict=record_kind.conflict_columns,
            )
        except BackendWriteError as e:
            result.error = e.message
            result.hint = e.hint
            self.run_log.error(f'数据入库失败: {e.message}')
            if e.hint:
                self.run_log.error(e.hint)
            return result
        except requests.RequestException as e:
            result.error = str(e)
            self.run_log.error(f'数据入库失败: {e}')
            return result

        result.ok = True
        self.run_log.success(f'{filename} 处理完成！')
        return result

    def _archive(
        self,
        kind: str,
        filename: str,
        content: bytes,
        now: Optional[datetime],
        result: IngestResult,
    ) -> Optional[str]:
        """Archive the raw file; failures are warnings only."""
        try:
            return self.storage_loader.archive_upload(kind, filename, content, now)
        except (BackendError, requests.RequestException) as e:
            msg = f'[警告] 原始文件归档失败: {e} (不影响数据入库)'
            result.warnings.append(msg)
            self.run_log.warning(msg)
            return None

    def _inspect_headers(self, result: IngestResult) -> None:
        headers = self.extractor.visible_headers()
        if not headers:
            return
        self.run_log.info(f'[调试] CSV表头识别: {", ".join(headers)}')
        if find_garbled_headers(headers):
            msg = '[警告] 检测到表头疑似乱码，请另存为 UTF-8 再上传。'
            result.warnings.append(msg)
            self.run_log.warning(msg)

    @staticmethod
    def _partition_label(transformer) -> Optional[str]:
        if isinstance(transformer, CycleStatsTransformer):
            return transformer.stat_month
        if isinstance(transformer, LedgerTransformer):
            return str(transformer.report_year)
        return None

    @staticmethod
    def _sync_message(kind: str, result: IngestResult) -> str:
        noun = _KIND_NOUNS[kind]
        if kind == CYCLE_STATS:
            return f'正在同步 {result.unique_count} 条{noun} (月份: {result.partition})...'
        if kind == LEDGER:
            return f'正在同步 {result.unique_count} 条{noun} ({result.partition})...'
        return (
            f'正在同步 {result.unique_count} 条{noun} '
            f'(原始 {result.raw_count} 条, 去重后保留最新)...'
        )
