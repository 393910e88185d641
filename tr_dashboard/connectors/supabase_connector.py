"""Connector for the Supabase REST, RPC and Storage endpoints."""
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from tr_dashboard.config.settings import settings
from tr_dashboard.errors import BackendError

logger = logging.getLogger(__name__)

_CONTENT_RANGE_TOTAL = re.compile(r'/(\d+)\s*$')


class SupabaseConnector:
    """
    Thin client over the Supabase HTTP API.

    Exposes exactly the operations the dashboard needs: exact counts,
    filtered/paginated selects, upsert with a conflict target, delete by
    filter, named RPC calls and blob upload. Every non-2xx response is
    raised as BackendError carrying the backend's message.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[int] = None,
        retry_attempts: Optional[int] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize Supabase connector.

        Args:
            base_url: Project URL (defaults to SUPABASE_URL)
            api_key: Service role or anon key (defaults from settings)
            timeout: Request timeout in seconds
            retry_attempts: Retries for idempotent reads on 5xx
            session: Pre-built session (tests inject a mock here)
        """
        self.name = 'supabase'
        self.logger = logging.getLogger(f'{__name__}.{self.name}')
        self.base_url = (base_url or settings.SUPABASE_URL).rstrip('/')
        self.api_key = api_key or settings.get_api_key()
        self.timeout = timeout if timeout is not None else settings.SUPABASE_TIMEOUT
        self.retry_attempts = (
            retry_attempts if retry_attempts is not None
            else settings.SUPABASE_RETRY_ATTEMPTS
        )
        self.session = session or requests.Session()
        if session is None:
            self._setup_retry_strategy()
        self.authenticate()

    def _setup_retry_strategy(self) -> None:
        """Configure retry strategy for reads; writes are never retried."""
        retry_strategy = Retry(
            total=self.retry_attempts,
            backoff_factor=1,
            status_forcelist=[502, 503, 504],
            allowed_methods=['GET', 'HEAD'],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount('http://', adapter)
        self.session.mount('https://', adapter)

    def authenticate(self) -> bool:
        """
        Authenticate with the API.
        Supabase key auth just sets the apikey and bearer headers.
        """
        if not self.api_key:
            self.logger.warning('No Supabase key configured')
            return False
        self.session.headers.update({
            'apikey': self.api_key,
            'Authorization': f'Bearer {self.api_key}',
            'User-Agent': 'tr-dashboard/1.0',
        })
        return True

    def close(self) -> None:
        """Close the session."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ------------------------------------------------------------------
    # Table operations
    # ------------------------------------------------------------------

    def count(
        self,
        table: str,
        eq: Optional[Dict[str, Any]] = None,
        ilike: Optional[Dict[str, str]] = None,
    ) -> int:
        """
        Exact row count for a filtered table.

        Args:
            table: Table name
            eq: Equality filters {column: value}
            ilike: Case-insensitive pattern filters {column: pattern}

        Returns:
            Number of matching rows
        """
        params = self._filter_params(eq=eq, ilike=ilike)
        params['select'] = '*'
        response = self._request(
            'HEAD',
            self._rest_url(table),
            params=params,
            headers={'Prefer': 'count=exact'},
        )
        total = self._parse_total(response)
        return total or 0

    def select(
        self,
        table: str,
        columns: str = '*',
        eq: Optional[Dict[str, Any]] = None,
        ilike: Optional[Dict[str, str]] = None,
        order: Optional[Iterable[Tuple[str, bool]]] = None,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Select rows from a table.

        Args:
            table: Table name
            columns: Comma-separated column list
            eq: Equality filters {column: value}
            ilike: Case-insensitive pattern filters ('%' wildcards)
            order: Sequence of (column, ascending) pairs
            offset: First row index (inclusive)
            limit: Maximum rows to return

        Returns:
            List of row dictionaries
        """
        params = self._filter_params(eq=eq, ilike=ilike)
        params['select'] = columns
        if order:
            params['order'] = ','.join(
                f'{col}.{"asc" if ascending else "desc"}' for col, ascending in order
            )
        if offset is not None:
            params['offset'] = offset
        if limit is not None:
            params['limit'] = limit

        response = self._request('GET', self._rest_url(table), params=params)
        return response.json() or []

    def upsert(
        self,
        table: str,
        rows: List[Dict[str, Any]],
        on_conflict: Iterable[str],
    ) -> None:
        """
        Insert or update rows keyed by a conflict target.

        Args:
            table: Table name
            rows: Row payloads
            on_conflict: Unique column set used for conflict detection
        """
        self._request(
            'POST',
            self._rest_url(table),
            params={'on_conflict': ','.join(on_conflict)},
            json=rows,
            headers={'Prefer': 'resolution=merge-duplicates,return=minimal'},
        )

    def delete(self, table: str, eq: Dict[str, Any]) -> Optional[int]:
        """
        Delete rows matching equality filters.

        Args:
            table: Table name
            eq: Equality filters; required so a bare call cannot wipe a table

        Returns:
            Deleted row count when the backend reports it, else None
        """
        if not eq:
            raise ValueError('delete requires at least one filter')
        response = self._request(
            'DELETE',
            self._rest_url(table),
            params=self._filter_params(eq=eq),
            headers={'Prefer': 'count=exact,return=minimal'},
        )
        return self._parse_total(response)

    def rpc(self, function: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """
        Call a named server-side function.

        Args:
            function: Function name
            params: Named arguments

        Returns:
            Decoded JSON result (None for void functions)
        """
        response = self._request(
            'POST',
            f'{self.base_url}/rest/v1/rpc/{function}',
            json=params or {},
        )
        if not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------
    # Storage operations
    # ------------------------------------------------------------------

    def list_buckets(self) -> List[Dict[str, Any]]:
        """List storage buckets."""
        response = self._request('GET', f'{self.base_url}/storage/v1/bucket')
        return response.json() or []

    def create_bucket(self, bucket: str, public: bool = False) -> None:
        """Create a storage bucket."""
        self._request(
            'POST',
            f'{self.base_url}/storage/v1/bucket',
            json={'id': bucket, 'name': bucket, 'public': public},
        )

    def upload_blob(
        self,
        bucket: str,
        path: str,
        content: bytes,
        content_type: str = 'text/csv',
        upsert: bool = True,
    ) -> str:
        """
        Upload a blob to object storage.

        Args:
            bucket: Bucket name
            path: Object path inside the bucket
            content: Raw bytes
            content_type: MIME type
            upsert: Overwrite an existing object at the same path

        Returns:
            The object path
        """
        self._request(
            'POST',
            f'{self.base_url}/storage/v1/object/{bucket}/{path}',
            data=content,
            headers={
                'Content-Type': content_type,
                'x-upsert': 'true' if upsert else 'false',
            },
        )
        return path

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _rest_url(self, table: str) -> str:
        return f'{self.base_url}/rest/v1/{table}'

    @staticmethod
    def _filter_params(
        eq: Optional[Dict[str, Any]] = None,
        ilike: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Build PostgREST filter query parameters."""
        params: Dict[str, Any] = {}
        for column, value in (eq or {}).items():
            params[column] = f'eq.{value}'
        for column, pattern in (ilike or {}).items():
            params[column] = f'ilike.{pattern.replace("%", "*")}'
        return params

    @staticmethod
    def _parse_total(response: requests.Response) -> Optional[int]:
        """Read the total from a 'Content-Range: 0-9/123' header."""
        content_range = response.headers.get('Content-Range', '')
        match = _CONTENT_RANGE_TOTAL.search(content_range)
        return int(match.group(1)) if match else None

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """Send a request and raise BackendError on non-2xx responses."""
        headers = kwargs.pop('headers', None) or {}
        response = self.session.request(
            method,
            url,
            headers=headers,
            timeout=self.timeout,
            **kwargs,
        )
        if response.status_code >= 400:
            message, code = self._error_message(response)
            self.logger.error(f'{method} {url} failed ({response.status_code}): {message}')
            raise BackendError(message, status_code=response.status_code, code=code)
        return response

    @staticmethod
    def _error_message(response: requests.Response) -> Tuple[str, Optional[str]]:
        """Extract the backend's message from a PostgREST or Storage error body."""
        try:
            body = response.json()
        except ValueError:
            return (response.text or f'HTTP {response.status_code}'), None

        if isinstance(body, dict):
            message = body.get('message') or body.get('error') or body.get('msg')
            code = body.get('code') or body.get('statusCode')
            return (message or str(body)), (str(code) if code is not None else None)
        return str(body), None
