"""
Application state of the annual dashboard.

All mutable view state lives in one DashboardState; it only changes through
the named action methods below. Fetches are guarded by a request token:
begin_fetch() issues a new token and receive_fetch()/fail_fetch() apply a
result only when its token is still the latest, so a slow response for a
superseded year can never overwrite the current one.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from tr_dashboard.analytics.dashboard import DashboardStats

from .filters import DETAIL_KINDS, DETAIL_LIST, MODAL_FILTER_FIELDS, MODAL_TITLES, default_filters

logger = logging.getLogger(__name__)

FIRST_REPORT_YEAR = 2023
LAST_PLANNED_YEAR = 2026


def report_years(now: Optional[datetime] = None) -> List[int]:
    """Selectable years: 2023 through the later of 2026 and the current year."""
    current = (now or datetime.now()).year
    return list(range(FIRST_REPORT_YEAR, max(current, LAST_PLANNED_YEAR) + 1))


@dataclass
class DashboardState:
    """Display state: selected year, open modal, filters, raw rows and stats."""
    year: int = field(default_factory=lambda: datetime.now().year)
    available_years: List[int] = field(default_factory=report_years)
    modal: Optional[str] = None
    detail_criteria: Optional[Tuple[str, str]] = None
    filters: Dict[str, Dict[str, str]] = field(default_factory=default_filters)
    overview_rows: List[Dict[str, Any]] = field(default_factory=list)
    cycle_rows: List[Dict[str, Any]] = field(default_factory=list)
    ledger_rows: List[Dict[str, Any]] = field(default_factory=list)
    stats: DashboardStats = field(default_factory=DashboardStats)
    loading: bool = False
    error: Optional[str] = None
    request_token: int = 0

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def select_year(self, year: int) -> None:
        if year not in self.available_years:
            raise ValueError(f'Year {year} is not available')
        self.year = year

    def open_modal(self, modal: str) -> None:
        if modal not in MODAL_TITLES:
            raise ValueError(f'Unknown modal: {modal}')
        self.modal = modal

    def open_detail(self, kind: str, value: str) -> None:
        """Open the ticket list behind one chart segment."""
        if kind not in DETAIL_KINDS:
            raise ValueError(f'Unknown detail kind: {kind}')
        self.detail_criteria = (kind, value)
        self.modal = DETAIL_LIST

    def close_modal(self) -> None:
        self.modal = None
        self.detail_criteria = None

    def set_filter(self, modal: str, field_name: str, value: str) -> None:
        """
        Change one dropdown filter of a modal.

        Raises:
            ValueError: If the modal has no such filter
        """
        if field_name not in MODAL_FILTER_FIELDS.get(modal, ()):
            raise ValueError(f'Modal {modal} has no filter {field_name}')
        self.filters[modal][field_name] = value

    # ------------------------------------------------------------------
    # Fetch lifecycle
    # ------------------------------------------------------------------

    def begin_fetch(self) -> int:
        """Mark a fetch as started and return its token."""
        self.request_token += 1
        self.loading = True
        self.error = None
        return self.request_token

    def is_current(self, token: int) -> bool:
        return token == self.request_token

    def receive_fetch(
        self,
        token: int,
        overview_rows: List[Dict[str, Any]],
        cycle_rows: List[Dict[str, Any]],
        ledger_rows: List[Dict[str, Any]],
        stats: DashboardStats,
    ) -> bool:
        """
        Apply fetched rows and computed stats.

        Returns:
            False when the token is stale and the result was discarded
        """
        if not self.is_current(token):
            logger.debug(f'Discarding stale dashboard response (token {token}, current {self.request_token})')
            return False
        self.overview_rows = overview_rows
        self.cycle_rows = cycle_rows
        self.ledger_rows = ledger_rows
        self.stats = stats
        self.loading = False
        return True

    def fail_fetch(self, token: int, message: str) -> bool:
        """Record a failed fetch; stale failures are ignored like stale results."""
        if not self.is_current(token):
            return False
        self.error = message
        self.loading = False
        return True
