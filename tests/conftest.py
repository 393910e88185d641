"""Pytest configuration and fixtures."""
import fnmatch
from typing import Any, Dict, List, Optional

import pytest
from unittest.mock import MagicMock

from tr_dashboard.connectors.supabase_connector import SupabaseConnector
from tr_dashboard.errors import BackendError
from tr_dashboard.pipeline.run_log import RunLog


class FakeBackend:
    """
    In-memory stand-in for the Supabase connector.

    Upserts merge on the conflict columns like PostgREST's
    merge-duplicates resolution; selects support eq/ilike/order/offset/limit.
    """

    def __init__(self):
        self.tables: Dict[str, Dict[tuple, Dict[str, Any]]] = {}
        self.blobs: Dict[str, bytes] = {}
        self.buckets: List[str] = ['mese-data']
        self.upsert_calls: List[int] = []
        self.rpc_calls: List[tuple] = []
        self.fail_upsert_after: Optional[int] = None
        self.fail_upload: Optional[str] = None
        self.rpc_result: Any = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        return False

    def upsert(self, table, rows, on_conflict):
        if self.fail_upsert_after is not None and len(self.upsert_calls) >= self.fail_upsert_after:
            raise BackendError('there is no unique or exclusion constraint matching the ON CONFLICT specification')
        self.upsert_calls.append(len(rows))
        store = self.tables.setdefault(table, {})
        for row in rows:
            store[tuple(row[c] for c in on_conflict)] = dict(row)

    def rows(self, table) -> List[Dict[str, Any]]:
        return list(self.tables.get(table, {}).values())

    def _filtered(self, table, eq=None, ilike=None):
        rows = self.rows(table)
        for column, value in (eq or {}).items():
            rows = [r for r in rows if str(r.get(column)) == str(value)]
        for column, pattern in (ilike or {}).items():
            glob = pattern.replace('%', '*').lower()
            rows = [r for r in rows if fnmatch.fnmatch(str(r.get(column, '')).lower(), glob)]
        return rows

    def count(self, table, eq=None, ilike=None):
        return len(self._filtered(table, eq, ilike))

    def select(self, table, columns='*', eq=None, ilike=None, order=None, offset=None, limit=None):
        rows = self._filtered(table, eq, ilike)
        for column, ascending in reversed(list(order or [])):
            rows = sorted(rows, key=lambda r: str(r.get(column, '')), reverse=not ascending)
        if columns != '*':
            wanted = columns.split(',')
            rows = [{c: r.get(c) for c in wanted} for r in rows]
        start = offset or 0
        end = start + limit if limit is not None else None
        return rows[start:end]

    def delete(self, table, eq):
        doomed = self._filtered(table, eq)
        store = self.tables.get(table, {})
        for key, row in list(store.items()):
            if row in doomed:
                del store[key]
        return len(doomed)

    def rpc(self, function, params=None):
        self.rpc_calls.append((function, params))
        return self.rpc_result

    def list_buckets(self):
        return [{'id': b, 'name': b} for b in self.buckets]

    def create_bucket(self, bucket, public=False):
        self.buckets.append(bucket)

    def upload_blob(self, bucket, path, content, content_type='text/csv', upsert=True):
        if self.fail_upload:
            raise BackendError(self.fail_upload)
        self.blobs[f'{bucket}/{path}'] = content
        return path


@pytest.fixture
def fake_backend() -> FakeBackend:
    """In-memory backend."""
    return FakeBackend()


@pytest.fixture
def mock_connector():
    """Mock Supabase connector."""
    connector = MagicMock(spec=SupabaseConnector)
    connector.authenticate.return_value = True
    connector.select.return_value = []
    connector.count.return_value = 0
    connector.list_buckets.return_value = [{'id': 'mese-data', 'name': 'mese-data'}]
    return connector


@pytest.fixture
def run_log() -> RunLog:
    """Fresh run log."""
    return RunLog()


@pytest.fixture
def overview_csv_rows() -> List[Dict[str, str]]:
    """Raw overview rows with MESE headers."""
    return [
        {
            '三包流水号': 'MBY25001',
            '分公司': '上海分公司',
            '客户名称': '万科中心',
            '安装阶段': '保修期',
            '物料名称': '主板',
            '图号': 'DWG-001',
            '数量': '2',
            '三包类型': '质量三包',
            '故障描述': '电梯运行异响',
        },
        {
            '三包流水号': 'MBY25002',
            '分公司': '北京分公司',
            '客户名称': '',
            '安装阶段': '',
            '物料名称': '门机',
            '图号': '',
            '数量': '',
            '三包类型': '安装三包',
            '故障描述': '',
        },
        {
            '三包流水号': '',
            '分公司': '广州分公司',
            '物料名称': '曳引机',
        },
    ]


@pytest.fixture
def cycle_rows() -> List[Dict[str, Any]]:
    """Stored cycle stats rows."""
    return [
        {'serial_number': 'A1', 'stat_month': '2025-01', 'total_cycle_time': 2, 'department': '上海',
         'customer_name': 'X', 'material_type': '基板', 'hq_audit_time': 1, 'ship_time': 1,
         'branch_submit_time': 0.5, 'supp_invest_time': 0.5, 'branch_invest_time': 0},
        {'serial_number': 'A2', 'stat_month': '2025-01', 'total_cycle_time': 4, 'department': '北京',
         'customer_name': 'Y', 'material_type': '非基板', 'hq_audit_time': 3, 'ship_time': 1,
         'branch_submit_time': 1, 'supp_invest_time': 1, 'branch_invest_time': 1},
        {'serial_number': 'A3', 'stat_month': '2025-03', 'total_cycle_time': 10, 'department': '上海',
         'customer_name': 'X', 'material_type': '基板', 'hq_audit_time': 5, 'ship_time': 2,
         'branch_submit_time': 1, 'supp_invest_time': 0, 'branch_invest_time': 2},
    ]


@pytest.fixture
def ledger_rows() -> List[Dict[str, Any]]:
    """Ten stored ledger rows, four of them closed."""
    statuses = ['已结案', '结案', '处理中', '待审核', '已结案', '处理中', '结案', '待审核', '处理中', '处理中']
    return [
        {
            'serial_number': f'L{i}',
            'department': '上海' if i % 2 else '北京',
            'customer_name': f'客户{i % 3}',
            'category': '电气' if i < 6 else None,
            'resolution': '更换',
            'status': status,
            'amount': 100.0 * (i + 1),
            'material_name': '主板',
            'apply_date': f'2025-0{1 + i % 3}-15T00:00:00.000Z',
        }
        for i, status in enumerate(statuses)
    ]
