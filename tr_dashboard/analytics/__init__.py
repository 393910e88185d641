"""Aggregation engine and dashboard KPI assembly."""
from .aggregations import (
    close_rate,
    fault_frequency,
    fault_top_list,
    frequency_distribution,
    long_cycle_tickets,
    mean,
    median,
    monthly_amount_trend,
    monthly_trend,
    node_durations,
    round2,
    stage_trend,
    sum_by,
    with_percent,
)
from .dashboard import (
    DashboardStats,
    MonthStats,
    TicketDetail,
    build_dashboard_stats,
    build_month_stats,
    build_ticket_detail,
)

__all__ = [
    'close_rate',
    'fault_frequency',
    'fault_top_list',
    'frequency_distribution',
    'long_cycle_tickets',
    'mean',
    'median',
    'monthly_amount_trend',
    'monthly_trend',
    'node_durations',
    'round2',
    'stage_trend',
    'sum_by',
    'with_percent',
    'DashboardStats',
    'MonthStats',
    'TicketDetail',
    'build_dashboard_stats',
    'build_month_stats',
    'build_ticket_detail',
]
