"""Fetch-and-aggregate services behind the dashboard pages."""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import requests

from tr_dashboard.analytics.aggregations import stage_trend
from tr_dashboard.analytics.dashboard import (
    MonthStats,
    TicketDetail,
    build_dashboard_stats,
    build_month_stats,
    build_ticket_detail,
)
from tr_dashboard.config.settings import settings
from tr_dashboard.connectors.supabase_connector import SupabaseConnector
from tr_dashboard.errors import BackendError
from tr_dashboard.extractors.backend_extractor import BackendExtractor

from .state import DashboardState

logger = logging.getLogger(__name__)

CYCLE_TREND_COLUMNS = 'stat_month,total_cycle_time,department,customer_name,material_type'
STAGE_COLUMNS = (
    'stat_month,hq_audit_time,ship_time,total_cycle_time,'
    'branch_submit_time,supp_invest_time,branch_invest_time'
)
LEDGER_COLUMNS = (
    'serial_number,material_name,amount,resolution,category,cause,'
    'department,customer_name,report_year,apply_date,status'
)


@dataclass
class YearData:
    """Raw rows behind the annual dashboard."""
    year: int
    total_count: int = 0
    overview_rows: List[Dict[str, Any]] = field(default_factory=list)
    cycle_rows: List[Dict[str, Any]] = field(default_factory=list)
    ledger_rows: List[Dict[str, Any]] = field(default_factory=list)


class DashboardService:
    """
    Read side of the dashboard.

    Every call re-fetches from the backend and recomputes; nothing is cached.

    Example:
        >>> with SupabaseConnector() as connector:
        ...     service = DashboardService(connector)
        ...     state = DashboardState(year=2025)
        ...     service.refresh(state)
        ...     state.stats.total_count
    """

    def __init__(self, connector: SupabaseConnector, page_size: Optional[int] = None):
        self.connector = connector
        self.extractor = BackendExtractor(connector, page_size)

    # ------------------------------------------------------------------
    # Annual dashboard
    # ------------------------------------------------------------------

    def fetch_year(self, year: int) -> YearData:
        """
        Fetch all rows for one report year.

        Overview rows are counted exactly and then paged in full; cycle
        stats are matched by a 'YYYY-%' month pattern; ledger rows by year.

        Raises:
            BackendError: If any request fails
        """
        total = self.connector.count(settings.OVERVIEW_TABLE, eq={'report_year': year})
        overview = self.extractor.extract(settings.OVERVIEW_TABLE, eq={'report_year': year})
        cycle = self.extractor.extract(
            settings.CYCLE_STATS_TABLE,
            columns=CYCLE_TREND_COLUMNS,
            ilike={'stat_month': f'{year}-%'},
            order=[('stat_month', True)],
        )
        ledger = self.extractor.extract(
            settings.LEDGER_TABLE,
            columns=LEDGER_COLUMNS,
            eq={'report_year': year},
        )
        logger.info(
            f'Fetched {year}: {len(overview)}/{total} overview, '
            f'{len(cycle)} cycle stats, {len(ledger)} ledger rows'
        )
        return YearData(year, total, overview, cycle, ledger)

    def refresh(self, state: DashboardState) -> bool:
        """
        Fetch and aggregate the state's selected year.

        Failures are recorded on the state instead of raised.

        Returns:
            True if the result was applied, False if it failed or a newer
            fetch superseded it
        """
        token = state.begin_fetch()
        try:
            data = self.fetch_year(state.year)
        except (BackendError, requests.RequestException) as e:
            logger.error(f'Error fetching dashboard data: {e}')
            state.fail_fetch(token, str(e))
            return False

        stats = build_dashboard_stats(
            data.total_count,
            data.overview_rows,
            data.cycle_rows,
            data.ledger_rows,
        )
        return state.receive_fetch(token, data.overview_rows, data.cycle_rows, data.ledger_rows, stats)

    # ------------------------------------------------------------------
    # Monthly analysis
    # ------------------------------------------------------------------

    def available_months(self) -> List[str]:
        """Distinct statistics months, newest first."""
        rows = self.extractor.extract(
            settings.CYCLE_STATS_TABLE,
            columns='stat_month',
            order=[('stat_month', False)],
        )
        return list(dict.fromkeys(row['stat_month'] for row in rows if row.get('stat_month')))

    def month_stats(self, month: str) -> MonthStats:
        rows = self.extractor.extract(settings.CYCLE_STATS_TABLE, eq={'stat_month': month})
        return build_month_stats(month, rows)

    def stage_trend(self, last_n: int = 6) -> List[Dict[str, Any]]:
        """Average stage times of the most recent months."""
        rows = self.extractor.extract(
            settings.CYCLE_STATS_TABLE,
            columns=STAGE_COLUMNS,
            order=[('stat_month', True)],
        )
        return stage_trend(rows, last_n)

    def ticket_detail(
        self,
        serial_number: str,
        month: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> TicketDetail:
        """
        Look up one ticket across all tables.

        Overview and node rows are matched by serial prefix to tolerate
        trailing invisible characters in stored serials. The cycle stats
        row of the given month is preferred; otherwise the latest month
        recorded for the serial is used.
        """
        serial = serial_number.strip()
        pattern = {'serial_number': f'{serial}%'}
        overview = self.connector.select(settings.OVERVIEW_TABLE, ilike=pattern)
        logs = self.connector.select(
            settings.PERSON_NODE_TABLE,
            ilike=pattern,
            order=[('start_time', True)],
        )

        cycle = []
        if month:
            cycle = self.connector.select(
                settings.CYCLE_STATS_TABLE,
                eq={'serial_number': serial, 'stat_month': month},
                limit=1,
            )
        if not cycle:
            cycle = self.connector.select(
                settings.CYCLE_STATS_TABLE,
                eq={'serial_number': serial},
                order=[('stat_month', False)],
                limit=1,
            )

        logger.info(f'Ticket {serial}: {len(overview)} material lines, {len(logs)} node logs')
        return build_ticket_detail(serial, overview, logs, cycle[0] if cycle else {}, now)
