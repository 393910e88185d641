"""Dashboard view models: state, cross-filters and fetch services."""
from .filters import ALL, apply_filters, detail_rows, filter_options
from .service import DashboardService, YearData
from .state import DashboardState

__all__ = [
    'ALL',
    'apply_filters',
    'detail_rows',
    'filter_options',
    'DashboardService',
    'YearData',
    'DashboardState',
]
