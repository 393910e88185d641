"""KPI assembly for the annual dashboard, the monthly analysis and ticket detail."""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .aggregations import (
    close_rate,
    fault_top_list,
    frequency_distribution,
    long_cycle_tickets,
    mean,
    median,
    monthly_amount_trend,
    monthly_trend,
    node_durations,
    round2,
    sum_by,
    to_float,
)

TOP_N = 10
LONG_CYCLE_LIST_SIZE = 20

# (label, cycle stats column) for the per-ticket stage breakdown
STAGE_BREAKDOWN = [
    ('总部制造发运', 'hq_dispatch_time'),
    ('总部审核处置', 'hq_audit_time'),
    ('分公司审核提交', 'branch_submit_time'),
    ('补充调查', 'supp_invest_time'),
    ('分公司现场调查', 'branch_invest_time'),
    ('全周期总计', 'total_cycle_time'),
]


@dataclass
class DashboardStats:
    """Annual dashboard figures for one report year."""
    total_count: int = 0
    avg_cycle_time: float = 0.0
    closed_cycle_count: int = 0
    top_dept: Dict[str, Any] = field(default_factory=lambda: {'name': 'N/A', 'count': 0})
    warranty_type_data: List[Dict[str, Any]] = field(default_factory=list)
    monthly_trend: List[Dict[str, Any]] = field(default_factory=list)
    department_data: List[Dict[str, Any]] = field(default_factory=list)
    top_materials: List[Dict[str, Any]] = field(default_factory=list)
    top_faults: List[Dict[str, Any]] = field(default_factory=list)
    amount_total: float = 0.0
    avg_amount: float = 0.0
    close_rate: float = 0.0
    monthly_amount_trend: List[Dict[str, Any]] = field(default_factory=list)
    resolution_data: List[Dict[str, Any]] = field(default_factory=list)
    category_data: List[Dict[str, Any]] = field(default_factory=list)
    category_amount_data: List[Dict[str, Any]] = field(default_factory=list)
    dept_amount_top: List[Dict[str, Any]] = field(default_factory=list)
    customer_amount_top: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def build_dashboard_stats(
    total_count: int,
    overview_rows: Sequence[Mapping[str, Any]],
    cycle_rows: Sequence[Mapping[str, Any]],
    ledger_rows: Sequence[Mapping[str, Any]],
) -> DashboardStats:
    """
    Compute every annual KPI from the fetched raw rows.

    Args:
        total_count: Exact overview row count reported by the backend
        overview_rows: Overview rows of the year
        cycle_rows: Cycle stats rows whose stat_month falls in the year
        ledger_rows: Ledger rows of the year

    Returns:
        DashboardStats
    """
    trend = monthly_trend(cycle_rows)
    departments = frequency_distribution(overview_rows, 'department', top_n=TOP_N)
    top_dept = (
        {'name': departments[0]['name'], 'count': departments[0]['value']}
        if departments else {'name': 'N/A', 'count': 0}
    )

    amounts = [to_float(row.get('amount')) for row in ledger_rows]
    amount_total = round2(sum(amounts))

    return DashboardStats(
        total_count=total_count or 0,
        avg_cycle_time=mean(row.get('total_cycle_time') for row in cycle_rows),
        closed_cycle_count=sum(item['count'] for item in trend),
        top_dept=top_dept,
        warranty_type_data=frequency_distribution(overview_rows, 'warranty_type'),
        monthly_trend=trend,
        department_data=departments,
        top_materials=frequency_distribution(overview_rows, 'material_name', top_n=TOP_N),
        top_faults=fault_top_list(overview_rows, top_n=TOP_N),
        amount_total=amount_total,
        avg_amount=mean(amounts),
        close_rate=close_rate(ledger_rows),
        monthly_amount_trend=monthly_amount_trend(ledger_rows),
        resolution_data=frequency_distribution(ledger_rows, 'resolution'),
        category_data=frequency_distribution(ledger_rows, 'category'),
        category_amount_data=sum_by(ledger_rows, 'category'),
        dept_amount_top=sum_by(ledger_rows, 'department', top_n=TOP_N),
        customer_amount_top=sum_by(ledger_rows, 'customer_name', top_n=TOP_N),
    )


@dataclass
class MonthStats:
    """Cycle time figures for one statistics month."""
    month: str
    total_count: int = 0
    avg_cycle_time: float = 0.0
    median_cycle_time: float = 0.0
    long_cycle_count: int = 0
    long_cycle_list: List[Mapping[str, Any]] = field(default_factory=list)


def build_month_stats(
    month: str,
    rows: Sequence[Mapping[str, Any]],
    threshold: Optional[float] = None,
) -> MonthStats:
    """Count, mean, median and long-cycle tickets of one month's cycle stats rows."""
    if not rows:
        return MonthStats(month=month)

    times = [row.get('total_cycle_time') for row in rows]
    long_cycle = long_cycle_tickets(rows, threshold)
    return MonthStats(
        month=month,
        total_count=len(rows),
        avg_cycle_time=mean(times),
        median_cycle_time=median(times),
        long_cycle_count=len(long_cycle),
        long_cycle_list=long_cycle[:LONG_CYCLE_LIST_SIZE],
    )


@dataclass
class TicketDetail:
    """Everything known about one serial number."""
    serial_number: str
    overview_list: List[Mapping[str, Any]] = field(default_factory=list)
    logs: List[Dict[str, Any]] = field(default_factory=list)
    cycle: Mapping[str, Any] = field(default_factory=dict)
    stages: List[Dict[str, Any]] = field(default_factory=list)


def stage_breakdown(cycle: Mapping[str, Any]) -> List[Dict[str, Any]]:
    """Per-stage durations of one cycle stats row; missing values are 0."""
    return [{'name': label, 'value': to_float(cycle.get(column))} for label, column in STAGE_BREAKDOWN]


def build_ticket_detail(
    serial_number: str,
    overview_rows: Sequence[Mapping[str, Any]],
    logs: Sequence[Mapping[str, Any]],
    cycle: Optional[Mapping[str, Any]],
    now: Optional[datetime] = None,
) -> TicketDetail:
    """Assemble the ticket view: material lines, node timeline and stage breakdown."""
    cycle = cycle or {}
    return TicketDetail(
        serial_number=serial_number,
        overview_list=list(overview_rows),
        logs=node_durations(logs, now),
        cycle=cycle,
        stages=stage_breakdown(cycle),
    )
