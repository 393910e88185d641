"""Unit tests for KPI assembly."""
from datetime import datetime, timezone

from tr_dashboard.analytics.dashboard import (
    DashboardStats,
    build_dashboard_stats,
    build_month_stats,
    build_ticket_detail,
)

OVERVIEW = [
    {'serial_number': 'A1', 'department': '上海', 'warranty_type': '质量三包', 'material_name': '主板',
     'fault_description': '异响'},
    {'serial_number': 'A2', 'department': '上海', 'warranty_type': '安装三包', 'material_name': '门机',
     'fault_description': '异响'},
    {'serial_number': 'A3', 'department': '北京', 'warranty_type': None, 'material_name': '主板',
     'fault_description': ''},
]


class TestDashboardStats:
    """Test the annual KPI set."""

    def test_kpis(self, cycle_rows, ledger_rows):
        stats = build_dashboard_stats(1234, OVERVIEW, cycle_rows, ledger_rows)

        assert stats.total_count == 1234
        assert stats.avg_cycle_time == 5.33
        assert stats.closed_cycle_count == 3
        assert stats.top_dept == {'name': '上海', 'count': 2}
        assert stats.warranty_type_data[-1] == {'name': '未知', 'value': 1}
        assert stats.top_materials[0] == {'name': '主板', 'value': 2}
        assert stats.top_faults[0] == {'name': '异响', 'value': 2}
        assert stats.amount_total == 5500.0
        assert stats.avg_amount == 550.0
        assert stats.close_rate == 40.0
        assert stats.category_amount_data == [
            {'name': '未知', 'value': 3400.0},
            {'name': '电气', 'value': 2100.0},
        ]

    def test_empty_year(self):
        """Test an empty year yields zeros and empty lists."""
        stats = build_dashboard_stats(0, [], [], [])
        assert stats == DashboardStats()
        assert stats.top_dept == {'name': 'N/A', 'count': 0}

    def test_to_dict(self):
        assert DashboardStats().to_dict()['monthly_trend'] == []


class TestMonthStats:
    """Test the monthly analysis figures."""

    def test_month(self):
        rows = [{'serial_number': str(t), 'total_cycle_time': t} for t in (5, 25, 20, 40)]
        stats = build_month_stats('2025-03', rows, threshold=20)

        assert stats.total_count == 4
        assert stats.avg_cycle_time == 22.5
        assert stats.median_cycle_time == 22.5
        assert stats.long_cycle_count == 2
        assert [r['serial_number'] for r in stats.long_cycle_list] == ['40', '25']

    def test_long_cycle_list_capped(self):
        rows = [{'total_cycle_time': 30 + i} for i in range(25)]
        stats = build_month_stats('2025-03', rows, threshold=20)
        assert stats.long_cycle_count == 25
        assert len(stats.long_cycle_list) == 20

    def test_empty_month(self):
        stats = build_month_stats('2025-04', [])
        assert stats.total_count == 0
        assert stats.median_cycle_time == 0


class TestTicketDetail:
    """Test the per-ticket view."""

    def test_detail(self, cycle_rows):
        logs = [{'node': '提交', 'person_name': '张三',
                 'start_time': '2025-01-01T00:00:00.000Z', 'end_time': '2025-01-03T00:00:00.000Z'}]
        detail = build_ticket_detail(
            'A1', OVERVIEW[:1], logs, cycle_rows[0], now=datetime(2025, 2, 1, tzinfo=timezone.utc),
        )

        assert detail.overview_list == OVERVIEW[:1]
        assert detail.logs[0]['days'] == 2.0
        assert detail.stages[0] == {'name': '总部制造发运', 'value': 0.0}
        assert detail.stages[1] == {'name': '总部审核处置', 'value': 1.0}
        assert detail.stages[-1] == {'name': '全周期总计', 'value': 2.0}

    def test_missing_cycle(self):
        detail = build_ticket_detail('X', [], [], None)
        assert detail.cycle == {}
        assert all(stage['value'] == 0 for stage in detail.stages)
