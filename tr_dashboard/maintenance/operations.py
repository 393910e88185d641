"""
Confirmation-gated destructive maintenance operations.

Each operation checks its confirmation first and then issues exactly one
backend call, with no retry. The outcome is reported to the RunLog and
returned as a MaintenanceResult; nothing is raised past the operation.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import requests

from tr_dashboard.config.settings import settings
from tr_dashboard.connectors.supabase_connector import SupabaseConnector
from tr_dashboard.errors import BackendError, ConfirmationError
from tr_dashboard.pipeline.run_log import RunLog
from tr_dashboard.schemas.registry import get_record_kind
from tr_dashboard.utils.validators import validate_month_format

logger = logging.getLogger(__name__)

CONFIRMATION_TOKEN = 'DELETE'
CANCELLED = '操作已取消'
TRUNCATE_FUNCTION_HINT = '提示: 请先在 Supabase 执行 rpc_cleanup_v4.sql'


@dataclass
class MaintenanceResult:
    """Outcome of one maintenance operation."""
    action: str
    executed: bool = False
    ok: bool = False
    message: str = ''
    details: Dict[str, Any] = field(default_factory=dict)


def require_confirmation(confirmation: Optional[str]) -> None:
    """
    Raises:
        ConfirmationError: Unless the typed token is exactly DELETE
    """
    if confirmation != CONFIRMATION_TOKEN:
        raise ConfirmationError(CANCELLED)


class MaintenanceOperations:
    """Administrative operations on the backend tables."""

    def __init__(self, connector: SupabaseConnector, run_log: Optional[RunLog] = None):
        self.connector = connector
        self.run_log = run_log or RunLog(logger)

    def cleanup_duplicates(self, confirmation: Optional[str]) -> MaintenanceResult:
        """
        Run the server-side de-duplication procedure.

        Reports the procedure's deleted_null_sn, deleted_overview and
        deleted_nodes counts as returned.

        Args:
            confirmation: Typed confirmation token, must be 'DELETE'
        """
        result = MaintenanceResult(action='cleanup_duplicates')
        try:
            require_confirmation(confirmation)
        except ConfirmationError as e:
            result.message = str(e)
            return result

        self.run_log.info('开始执行数据库去重...')
        result.executed = True
        try:
            data = self.connector.rpc('cleanup_duplicates') or {}
        except (BackendError, requests.RequestException) as e:
            result.message = f'去重失败: {_message(e)}'
            self.run_log.error(result.message)
            return result

        result.ok = True
        result.details = dict(data) if isinstance(data, dict) else {'result': data}
        result.message = (
            f'去重完成！清理无效数据: {result.details.get("deleted_null_sn")} 条, '
            f'重复概况: {result.details.get("deleted_overview")} 条, '
            f'重复节点: {result.details.get("deleted_nodes")} 条'
        )
        self.run_log.success(result.message)
        return result

    def truncate_table(self, kind: str, confirmation: Optional[str]) -> MaintenanceResult:
        """
        Empty a whole table through the truncate_table function.

        Args:
            kind: Record kind whose table is emptied
            confirmation: Typed confirmation token, must be 'DELETE'

        Raises:
            KeyError: For an unknown record kind
        """
        record_kind = get_record_kind(kind)
        result = MaintenanceResult(action='truncate_table', details={'table': record_kind.table})
        try:
            require_confirmation(confirmation)
        except ConfirmationError as e:
            result.message = str(e)
            return result

        self.run_log.warning(f'正在清空 {record_kind.label} 数据...')
        result.executed = True
        try:
            self.connector.rpc('truncate_table', {'table_name': record_kind.table})
        except (BackendError, requests.RequestException) as e:
            message = _message(e)
            result.message = f'清空失败: {message}'
            self.run_log.error(result.message)
            if 'function truncate_table' in message and 'does not exist' in message:
                self.run_log.warning(TRUNCATE_FUNCTION_HINT)
            return result

        result.ok = True
        result.message = f'{record_kind.label} 数据已全部清空'
        self.run_log.success(result.message)
        return result

    def delete_month(self, month: Optional[str], confirmation: Optional[str]) -> MaintenanceResult:
        """
        Delete every cycle stats row of one statistics month.

        Args:
            month: Statistics month, YYYY-MM
            confirmation: Typed confirmation token, must be 'DELETE'
        """
        result = MaintenanceResult(action='delete_month', details={'month': month})
        if not validate_month_format(month):
            result.message = '格式错误！请使用 YYYY-MM 格式，例如 2026-01'
            return result
        try:
            require_confirmation(confirmation)
        except ConfirmationError as e:
            result.message = str(e)
            return result

        self.run_log.warning(f'正在删除 {month} 月份的周期数据...')
        result.executed = True
        try:
            deleted = self.connector.delete(settings.CYCLE_STATS_TABLE, eq={'stat_month': month})
        except (BackendError, requests.RequestException) as e:
            result.message = f'删除失败: {_message(e)}'
            self.run_log.error(result.message)
            return result

        result.ok = True
        result.details['deleted'] = deleted
        result.message = f'删除成功！已清除 {month} 月份的数据'
        self.run_log.success(result.message)
        return result


def _message(error: Exception) -> str:
    return error.message if isinstance(error, BackendError) else str(error)
