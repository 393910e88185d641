"""Integration tests for the CSV ingestion pipeline against an in-memory backend."""
from datetime import datetime, timezone

import pytest

from tr_dashboard.errors import InputError
from tr_dashboard.pipeline.ingest import IngestionPipeline, plan_cycle_month
from tr_dashboard.schemas.records import SENTINEL_TIMESTAMP

NOW = datetime(2025, 3, 9, tzinfo=timezone.utc)

OVERVIEW_CSV = (
    '三包流水号,分公司,客户名称,物料名称,图号,数量,三包类型,故障描述\n'
    'MBY25001,上海分公司,万科中心,主板,DWG-001,2,质量三包,异响\n'
    'MBY25001,上海分公司,万科中心,主板,DWG-001,3,质量三包,异响加剧\n'
    'MBY24002,北京分公司,,门机,,,安装三包,\n'
    ',广州分公司,,曳引机,,,,\n'
).encode('utf-8')

CYCLE_CSV = (
    '三包流水号,提出部门,客户名称,总部制造发运时间,总部审核处置时间,全周期统计时间,备注\n'
    'MBY25001,上海,万科,3,2,12.5天,基板故障\n'
    'MBY25002,北京,保利,1,1,30,\n'
).encode('utf-8')

LEDGER_CSV = (
    'TR编号,提出部门,金额,结案状态,申请日期\n'
    'TR001,上海,1200,已结案,2025/3/1\n'
    'TR002,北京,abc,处理中,\n'
).encode('utf-8')

PERSON_NODE_TSV = (
    '三包流水号\t处理开始时间\t处理结束时间\t流程节点\t处理人姓名\n'
    'MBY25001\t2025-01-01 08:00:00\t2025-01-02 08:00:00\t提交\t张三\n'
    'MBY25001\t2025-01-02 08:00:00\t\t审核\t李四\n'
).encode('utf-8')


@pytest.fixture
def pipeline(fake_backend, run_log):
    return IngestionPipeline(fake_backend, run_log, batch_size=100)


class TestOverviewUpload:
    """Test the full chain for overview exports."""

    def test_upload(self, pipeline, fake_backend, run_log):
        result = pipeline.process('overview', 'MESE三包概况.csv', OVERVIEW_CSV, now=NOW)

        assert result.ok is True
        assert result.raw_count == 4
        assert result.unique_count == 2
        assert result.loaded_count == 2
        assert result.archived_path.startswith('overview/2025-03/')
        assert f'mese-data/{result.archived_path}' in fake_backend.blobs

        rows = {r['serial_number']: r for r in fake_backend.rows('mese_overview')}
        assert rows['MBY25001']['warranty_count'] == 3
        assert rows['MBY25001']['fault_description'] == '异响加剧'
        assert rows['MBY25001']['report_year'] == 2025
        assert rows['MBY24002']['report_year'] == 2024
        assert rows['MBY24002']['customer_name'] is None

        messages = run_log.messages()
        assert messages[0] == '开始处理文件: MESE三包概况.csv (overview)'
        assert messages[-1] == 'MESE三包概况.csv 处理完成！'
        assert '正在同步 2 条概况数据 (原始 4 条, 去重后保留最新)...' in messages

    def test_reupload_is_idempotent(self, pipeline, fake_backend):
        """Test uploading the same file twice leaves the same rows."""
        pipeline.process('overview', 'a.csv', OVERVIEW_CSV, now=NOW)
        first = sorted(fake_backend.rows('mese_overview'), key=lambda r: r['serial_number'])
        pipeline.process('overview', 'a.csv', OVERVIEW_CSV, now=NOW)
        second = sorted(fake_backend.rows('mese_overview'), key=lambda r: r['serial_number'])

        assert first == second

    def test_archive_failure_only_warns(self, pipeline, fake_backend, run_log):
        fake_backend.fail_upload = 'Bucket not found'
        result = pipeline.process('overview', 'a.csv', OVERVIEW_CSV, now=NOW)

        assert result.ok is True
        assert result.archived_path is None
        assert result.warnings == ['[警告] 原始文件归档失败: Bucket not found (不影响数据入库)']
        assert len(fake_backend.rows('mese_overview')) == 2

    def test_write_failure_carries_hint(self, pipeline, fake_backend, run_log):
        fake_backend.fail_upsert_after = 0
        result = pipeline.process('overview', 'a.csv', OVERVIEW_CSV, now=NOW)

        assert result.ok is False
        assert 'ON CONFLICT' in result.error
        assert 'serial_number, material_name, drawing_number' in result.hint
        errors = run_log.messages('error')
        assert errors[0].startswith('数据入库失败: ')
        assert errors[1] == result.hint

    def test_garbled_header_warns(self, pipeline, fake_backend, run_log):
        content = (
            '三包流水号,'.encode('utf-8') + '分公司'.encode('gbk') + b'\n'
            + 'MBY25001,'.encode('utf-8') + '上海'.encode('gbk') + b'\n'
        )
        result = pipeline.process('overview', 'MESE三包概况.csv', content, now=NOW)

        assert result.ok is True
        assert result.loaded_count == 1
        assert '[警告] 检测到表头疑似乱码，请另存为 UTF-8 再上传。' in result.warnings

    def test_without_archive(self, fake_backend, run_log):
        result = IngestionPipeline(fake_backend, run_log, archive=False).process('overview', 'a.csv', OVERVIEW_CSV)
        assert result.archived_path is None
        assert fake_backend.blobs == {}


class TestOtherKinds:
    """Test partition inference for the remaining kinds."""

    def test_cycle_stats_month_from_filename(self, pipeline, fake_backend):
        result = pipeline.process('cycle_stats', '周期统计确认(25年11月).csv', CYCLE_CSV, now=NOW)

        assert result.ok is True
        assert result.partition == '2025-11'
        rows = {r['serial_number']: r for r in fake_backend.rows('mese_cycle_stats')}
        assert rows['MBY25001']['stat_month'] == '2025-11'
        assert rows['MBY25001']['total_cycle_time'] == 12.5
        assert rows['MBY25001']['ship_time'] == rows['MBY25001']['hq_dispatch_time'] == 3
        assert rows['MBY25001']['material_type'] == '基板故障'

    def test_cycle_stats_override_wins(self, pipeline, fake_backend):
        result = pipeline.process(
            'cycle_stats', '周期统计确认(25年11月).csv', CYCLE_CSV, month_override='2025-12', now=NOW,
        )
        assert result.partition == '2025-12'
        assert {r['stat_month'] for r in fake_backend.rows('mese_cycle_stats')} == {'2025-12'}

    def test_ledger_year_from_filename(self, pipeline, fake_backend):
        result = pipeline.process('ledger', 'TR三包台账（2024）.csv', LEDGER_CSV, now=NOW)

        assert result.partition == '2024'
        rows = {r['serial_number']: r for r in fake_backend.rows('mese_ledger')}
        assert rows['TR001']['report_year'] == 2024
        assert rows['TR001']['amount'] == 1200
        assert rows['TR002']['amount'] == 0
        assert rows['TR002']['apply_date'] is None

    def test_person_nodes_tab_delimited(self, pipeline, fake_backend):
        result = pipeline.process('person_node', '人员节点.csv', PERSON_NODE_TSV, now=NOW)

        assert result.ok is True
        rows = fake_backend.rows('mese_person_node')
        assert len(rows) == 2
        open_node = next(r for r in rows if r['node'] == '审核')
        assert open_node['end_time'] == SENTINEL_TIMESTAMP


class TestFailures:
    """Test inputs that stop before any write."""

    def test_empty_file(self, pipeline, fake_backend):
        result = pipeline.process('overview', 'empty.csv', b'', now=NOW)
        assert result.ok is False
        assert fake_backend.upsert_calls == []

    def test_unknown_kind(self, pipeline, run_log):
        result = pipeline.process('bogus', 'a.csv', OVERVIEW_CSV)
        assert result.ok is False
        assert run_log.has_errors()

    def test_missing_path(self, pipeline, tmp_path):
        result = pipeline.process_path('overview', tmp_path / 'missing.csv')
        assert result.ok is False
        assert result.filename == 'missing.csv'

    def test_missing_serial_column(self, pipeline, fake_backend, run_log):
        content = '编号,分公司\nMBY25001,上海\n'.encode('utf-8')
        result = pipeline.process('overview', 'MESE三包概况.csv', content, now=NOW)

        assert result.ok is False
        assert '三包流水号' in result.error
        assert fake_backend.upsert_calls == []
        assert run_log.has_errors()

    def test_padded_serial_header_accepted(self, pipeline, fake_backend):
        content = ' 三包流水号 ,分公司\nMBY25001,上海\n'.encode('utf-8')
        result = pipeline.process('overview', 'MESE三包概况.csv', content, now=NOW)

        assert result.ok is True
        assert result.loaded_count == 1

    def test_process_path(self, pipeline, fake_backend, tmp_path):
        path = tmp_path / 'overview.csv'
        path.write_bytes(OVERVIEW_CSV)
        assert pipeline.process_path('overview', path, now=NOW).loaded_count == 2


class TestPlanCycleMonth:
    """Test month selection for interactive cycle stats uploads."""

    def test_selected_month(self):
        plan = plan_cycle_month('x.csv', '2025-04')
        assert (plan.month, plan.inferred) == ('2025-04', False)

    def test_inferred_needs_confirmation(self):
        plan = plan_cycle_month('周期统计(25年3月).csv')
        assert (plan.month, plan.inferred) == ('2025-03', True)

    def test_no_month(self):
        with pytest.raises(InputError):
            plan_cycle_month('周期统计.csv')

    def test_bad_selected_month(self):
        with pytest.raises(InputError):
            plan_cycle_month('x.csv', '2025/04')
