"""Unit tests for confirmation-gated maintenance operations."""
import pytest

from tr_dashboard.errors import BackendError
from tr_dashboard.maintenance.operations import (
    CANCELLED,
    TRUNCATE_FUNCTION_HINT,
    MaintenanceOperations,
)


@pytest.fixture
def operations(mock_connector, run_log):
    return MaintenanceOperations(mock_connector, run_log)


class TestCleanupDuplicates:
    """Test the server-side de-duplication call."""

    @pytest.mark.parametrize('confirmation', [None, '', 'y', 'yes', 'delete'])
    def test_wrong_token_makes_no_call(self, operations, mock_connector, confirmation):
        result = operations.cleanup_duplicates(confirmation)
        assert result.executed is False
        assert result.message == CANCELLED
        mock_connector.rpc.assert_not_called()

    def test_reports_counts(self, operations, mock_connector, run_log):
        mock_connector.rpc.return_value = {'deleted_null_sn': 1, 'deleted_overview': 2, 'deleted_nodes': 3}
        result = operations.cleanup_duplicates('DELETE')

        assert result.ok is True
        mock_connector.rpc.assert_called_once_with('cleanup_duplicates')
        assert run_log.messages('success') == ['去重完成！清理无效数据: 1 条, 重复概况: 2 条, 重复节点: 3 条']

    def test_failure(self, operations, mock_connector):
        mock_connector.rpc.side_effect = BackendError('permission denied')
        result = operations.cleanup_duplicates('DELETE')
        assert result.ok is False
        assert result.message == '去重失败: permission denied'


class TestTruncateTable:
    """Test table truncation."""

    @pytest.mark.parametrize('confirmation', [None, '', 'delete', 'DELETE '])
    def test_wrong_token_makes_no_call(self, operations, mock_connector, confirmation):
        result = operations.truncate_table('overview', confirmation)
        assert result.executed is False
        assert result.message == CANCELLED
        mock_connector.rpc.assert_not_called()

    def test_single_call(self, operations, mock_connector, run_log):
        result = operations.truncate_table('ledger', 'DELETE')

        assert result.ok is True
        mock_connector.rpc.assert_called_once_with('truncate_table', {'table_name': 'mese_ledger'})
        assert run_log.messages('warning') == ['正在清空 TR年度三包台账 数据...']

    def test_missing_function_hint(self, operations, mock_connector, run_log):
        mock_connector.rpc.side_effect = BackendError('function truncate_table(text) does not exist')
        result = operations.truncate_table('overview', 'DELETE')

        assert result.ok is False
        assert mock_connector.rpc.call_count == 1
        assert run_log.messages('error') == ['清空失败: function truncate_table(text) does not exist']
        assert run_log.messages('warning')[-1] == TRUNCATE_FUNCTION_HINT

    def test_unknown_kind(self, operations):
        with pytest.raises(KeyError):
            operations.truncate_table('bogus', 'DELETE')


class TestDeleteMonth:
    """Test deletion of one month of cycle stats."""

    def test_bad_format(self, operations, mock_connector):
        result = operations.delete_month('2025-3', 'DELETE')
        assert result.message == '格式错误！请使用 YYYY-MM 格式，例如 2026-01'
        mock_connector.delete.assert_not_called()

    def test_needs_confirmation(self, operations, mock_connector):
        result = operations.delete_month('2025-03', 'no')
        assert result.message == CANCELLED
        mock_connector.delete.assert_not_called()

    def test_deletes(self, operations, mock_connector):
        mock_connector.delete.return_value = 12
        result = operations.delete_month('2025-03', 'DELETE')

        mock_connector.delete.assert_called_once_with('mese_cycle_stats', eq={'stat_month': '2025-03'})
        assert result.ok is True
        assert result.details['deleted'] == 12
        assert result.message == '删除成功！已清除 2025-03 月份的数据'
