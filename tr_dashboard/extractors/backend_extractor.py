"""Extractor for paginated reads from backend tables."""
from typing import Any, Dict, Iterable, List, Optional, Tuple

from tr_dashboard.config.settings import settings
from tr_dashboard.connectors.supabase_connector import SupabaseConnector

from .base_extractor import BaseExtractor


class BackendExtractor(BaseExtractor):
    """
    Fetch complete result sets from a backend table.

    The REST API caps each response, so rows are requested in fixed pages
    (FETCH_PAGE_SIZE, 1000 by default) until a short page comes back.
    """

    def __init__(self, connector: SupabaseConnector, page_size: Optional[int] = None):
        """
        Initialize the backend extractor.

        Args:
            connector: Backend connector
            page_size: Rows per request
        """
        super().__init__('backend')
        self.connector = connector
        self.page_size = page_size or settings.FETCH_PAGE_SIZE

    def extract(
        self,
        table: str,
        columns: str = '*',
        eq: Optional[Dict[str, Any]] = None,
        ilike: Optional[Dict[str, str]] = None,
        order: Optional[Iterable[Tuple[str, bool]]] = None,
    ) -> List[Dict[str, Any]]:
        """
        Fetch every row matching the filters, page by page.

        Args:
            table: Table name
            columns: Column list
            eq: Equality filters
            ilike: Pattern filters
            order: (column, ascending) pairs

        Returns:
            All matching rows, concatenated in page order
        """
        rows: List[Dict[str, Any]] = []
        offset = 0
        order = list(order) if order else None

        while True:
            page = self.connector.select(
                table,
                columns=columns,
                eq=eq,
                ilike=ilike,
                order=order,
                offset=offset,
                limit=self.page_size,
            )
            rows.extend(page)
            if len(page) < self.page_size:
                break
            offset += self.page_size

        self.log_extraction(len(rows), table)
        return rows
