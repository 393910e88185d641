"""Integration tests for the command line interface."""
import json

import pytest
import requests

from tr_dashboard import cli
from tr_dashboard.config.settings import Settings

OVERVIEW_CSV = '三包流水号,分公司,物料名称,图号\nMBY25001,上海分公司,主板,D1\n'


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, 'configure_logging', lambda name: None)


@pytest.fixture
def backend(fake_backend, monkeypatch):
    calls = []

    def connect():
        calls.append(1)
        return fake_backend

    monkeypatch.setattr(cli, '_connect', connect)
    fake_backend.connect_calls = calls
    return fake_backend


class TestIngest:
    """Test the ingest command."""

    def test_upload(self, backend, tmp_path):
        path = tmp_path / 'overview.csv'
        path.write_text(OVERVIEW_CSV, encoding='utf-8')

        assert cli.main(['ingest', 'overview', str(path), '--no-archive']) == 0
        assert [r['serial_number'] for r in backend.rows('mese_overview')] == ['MBY25001']
        assert backend.blobs == {}

    def test_failed_file_exits_nonzero(self, backend, tmp_path):
        assert cli.main(['ingest', 'overview', str(tmp_path / 'missing.csv')]) == 1

    def test_cycle_stats_without_month(self, backend, tmp_path):
        """Test no backend call is made when the month is unknown."""
        path = tmp_path / '周期统计.csv'
        path.write_text('三包流水号\nA\n', encoding='utf-8')

        assert cli.main(['ingest', 'cycle_stats', str(path)]) == 1
        assert backend.connect_calls == []

    def test_cycle_stats_inferred_month_accepted(self, backend, tmp_path):
        path = tmp_path / '周期统计(25年3月).csv'
        path.write_text('三包流水号,全周期统计时间\nA,5\n', encoding='utf-8')

        assert cli.main(['ingest', 'cycle_stats', str(path), '--yes', '--no-archive']) == 0
        assert backend.rows('mese_cycle_stats')[0]['stat_month'] == '2025-03'

    def test_cycle_stats_inferred_month_declined(self, backend, tmp_path, monkeypatch):
        path = tmp_path / '周期统计(25年3月).csv'
        path.write_text('三包流水号\nA\n', encoding='utf-8')
        monkeypatch.setattr('builtins.input', lambda prompt: 'n')

        assert cli.main(['ingest', 'cycle_stats', str(path)]) == 1
        assert backend.upsert_calls == []


class TestReadCommands:
    """Test dashboard, monthly and detail output."""

    def test_dashboard_json(self, backend, capsys):
        backend.upsert('mese_overview', [
            {'serial_number': 'MBY25001', 'report_year': 2025, 'department': '上海',
             'material_name': '主板', 'drawing_number': ''},
        ], ('serial_number', 'material_name', 'drawing_number'))

        assert cli.main(['dashboard', '--year', '2025', '--json']) == 0
        stats = json.loads(capsys.readouterr().out)
        assert stats['total_count'] == 1
        assert stats['top_dept'] == {'name': '上海', 'count': 1}

    def test_monthly_without_data(self, backend, capsys):
        assert cli.main(['monthly']) == 0
        assert '暂无周期统计数据' in capsys.readouterr().out

    def test_detail(self, backend, capsys):
        assert cli.main(['detail', 'MBY25001']) == 0
        assert '工单: MBY25001' in capsys.readouterr().out

    @pytest.fixture
    def unreachable(self, backend, monkeypatch):
        def select(*args, **kwargs):
            raise requests.ConnectionError('Max retries exceeded')

        monkeypatch.setattr(backend, 'select', select)
        return backend

    @pytest.mark.parametrize('argv', [['monthly'], ['monthly', '--month', '2025-03'], ['detail', 'MBY25001']])
    def test_network_failure_exits_nonzero(self, unreachable, capsys, argv):
        assert cli.main(argv) == 1
        assert 'Max retries exceeded' in capsys.readouterr().err


class TestMaintenance:
    """Test confirmation handling of maintenance commands."""

    def test_truncate_wrong_token(self, backend, capsys):
        assert cli.main(['maintenance', 'truncate', 'overview', '--confirm', 'delete']) == 1
        assert backend.rpc_calls == []
        assert '操作已取消' in capsys.readouterr().out

    def test_truncate(self, backend):
        assert cli.main(['maintenance', 'truncate', 'overview', '--confirm', 'DELETE']) == 0
        assert backend.rpc_calls == [('truncate_table', {'table_name': 'mese_overview'})]

    def test_delete_month_prompts(self, backend, monkeypatch):
        backend.upsert('mese_cycle_stats', [
            {'serial_number': 'A', 'stat_month': '2025-03'},
            {'serial_number': 'B', 'stat_month': '2025-04'},
        ], ('serial_number', 'stat_month'))
        monkeypatch.setattr('builtins.input', lambda prompt: 'DELETE')

        assert cli.main(['maintenance', 'delete-month', '2025-03']) == 0
        assert [r['stat_month'] for r in backend.rows('mese_cycle_stats')] == ['2025-04']

    def test_cleanup_with_token(self, backend):
        backend.rpc_result = {'deleted_null_sn': 0, 'deleted_overview': 0, 'deleted_nodes': 0}
        assert cli.main(['maintenance', 'cleanup', '--confirm', 'DELETE']) == 0
        assert backend.rpc_calls == [('cleanup_duplicates', None)]

    @pytest.mark.parametrize('answer', ['y', 'yes', 'delete'])
    def test_cleanup_prompt_needs_token(self, backend, monkeypatch, capsys, answer):
        monkeypatch.setattr('builtins.input', lambda prompt: answer)

        assert cli.main(['maintenance', 'cleanup']) == 1
        assert backend.rpc_calls == []
        assert '操作已取消' in capsys.readouterr().out


class TestConfiguration:
    """Test missing configuration handling."""

    def test_missing_settings(self, monkeypatch, capsys):
        monkeypatch.setattr(Settings, 'SUPABASE_URL', '')
        assert cli.main(['dashboard', '--year', '2025']) == 1
        assert 'SUPABASE_URL' in capsys.readouterr().err

    def test_parser_rejects_unknown_kind(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(['ingest', 'bogus', 'a.csv'])
