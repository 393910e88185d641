"""Unit tests for dashboard view state."""
from datetime import datetime

import pytest

from tr_dashboard.analytics.dashboard import DashboardStats
from tr_dashboard.views.filters import ALL, DEPT_TOP, DETAIL_LIST, MONTHLY_TREND
from tr_dashboard.views.state import DashboardState, report_years


class TestNavigation:
    """Test year, modal and filter actions."""

    def test_defaults(self):
        state = DashboardState(year=2025)
        assert state.modal is None
        assert state.filters[MONTHLY_TREND] == {
            'department': ALL, 'customer_name': ALL, 'material_type': ALL,
        }

    def test_select_year(self):
        state = DashboardState(year=2025)
        state.select_year(2024)
        assert state.year == 2024

    def test_select_unavailable_year(self):
        with pytest.raises(ValueError):
            DashboardState(year=2025).select_year(1999)

    def test_years_follow_the_clock(self):
        assert report_years(datetime(2025, 6, 1)) == [2023, 2024, 2025, 2026]
        assert report_years(datetime(2030, 1, 1))[-1] == 2030

    def test_current_year_is_selectable(self):
        state = DashboardState(year=2025)
        state.select_year(datetime.now().year)
        assert state.year == datetime.now().year

    def test_open_and_close_detail(self):
        state = DashboardState(year=2025)
        state.open_detail('category', '电气')
        assert state.modal == DETAIL_LIST
        assert state.detail_criteria == ('category', '电气')

        state.close_modal()
        assert state.modal is None
        assert state.detail_criteria is None

    def test_open_unknown_modal(self):
        with pytest.raises(ValueError):
            DashboardState(year=2025).open_modal('nope')

    def test_set_filter(self):
        state = DashboardState(year=2025)
        state.set_filter(DEPT_TOP, 'warranty_type', '质量三包')
        assert state.filters[DEPT_TOP]['warranty_type'] == '质量三包'

    def test_set_filter_rejects_unknown_field(self):
        with pytest.raises(ValueError):
            DashboardState(year=2025).set_filter(DEPT_TOP, 'material_type', 'x')


class TestFetchTokens:
    """Test that only the latest fetch is applied."""

    def test_stale_response_is_discarded(self):
        """Test a slow response for a superseded year never lands."""
        state = DashboardState(year=2025)
        first = state.begin_fetch()
        state.select_year(2024)
        second = state.begin_fetch()

        stale = DashboardStats(total_count=1)
        fresh = DashboardStats(total_count=2)

        assert state.receive_fetch(second, [], [], [], fresh) is True
        assert state.receive_fetch(first, [{'x': 1}], [], [], stale) is False
        assert state.stats.total_count == 2
        assert state.overview_rows == []
        assert state.loading is False

    def test_failure_sets_error(self):
        state = DashboardState(year=2025)
        token = state.begin_fetch()
        assert state.loading is True

        assert state.fail_fetch(token, 'timeout') is True
        assert state.error == 'timeout'
        assert state.loading is False

    def test_stale_failure_is_ignored(self):
        state = DashboardState(year=2025)
        old = state.begin_fetch()
        state.begin_fetch()
        assert state.fail_fetch(old, 'boom') is False
        assert state.error is None
        assert state.loading is True
