"""Command line interface for the TR warranty dashboard."""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any, List, Optional

import requests

from .config.settings import settings
from .connectors.supabase_connector import SupabaseConnector
from .errors import BackendError, InputError
from .maintenance.operations import CONFIRMATION_TOKEN, MaintenanceOperations
from .pipeline.ingest import IngestionPipeline, plan_cycle_month
from .pipeline.run_log import RunLog
from .schemas.registry import CYCLE_STATS, RECORD_KINDS
from .utils.logger import configure_logging
from .views.service import DashboardService
from .views.state import DashboardState

logger = logging.getLogger(__name__)


def _run_log() -> RunLog:
    """Run log mirrored to the console through the package logger."""
    return RunLog(logger)


def _connect() -> Optional[SupabaseConnector]:
    missing = settings.validate_required_settings()
    if missing:
        print(f"Error: missing configuration: {', '.join(missing)}", file=sys.stderr)
        return None
    return SupabaseConnector()


def _confirm(question: str) -> bool:
    return input(f'{question} [y/N] ').strip().lower() in ('y', 'yes')


def _dump(data: Any) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def cmd_ingest(args) -> int:
    """Upload one or more CSV exports of the same kind."""
    month = args.month
    if args.kind == CYCLE_STATS:
        try:
            plan = plan_cycle_month(Path(args.files[0]).name, args.month)
        except InputError as e:
            print(f'Error: {e}', file=sys.stderr)
            return 1
        if plan.inferred and not args.yes:
            if not _confirm(f'从文件名推断月份为 "{plan.month}"，是否确认？'):
                print('操作已取消')
                return 1
        month = plan.month

    connector = _connect()
    if connector is None:
        return 1

    failures = 0
    with connector:
        pipeline = IngestionPipeline(
            connector,
            _run_log(),
            batch_size=args.batch_size,
            archive=not args.no_archive,
        )
        for path in args.files:
            result = pipeline.process_path(args.kind, path, month, args.delimiter)
            if not result.ok:
                failures += 1

    return 1 if failures else 0


def cmd_dashboard(args) -> int:
    """Print the annual dashboard figures."""
    connector = _connect()
    if connector is None:
        return 1

    state = DashboardState(year=args.year)
    with connector:
        DashboardService(connector).refresh(state)

    if state.error:
        print(f'Error: {state.error}', file=sys.stderr)
        return 1

    stats = state.stats
    if args.json:
        _dump(stats.to_dict())
        return 0

    print('=' * 60)
    print(f'TR 年度数据分析看板 - {state.year}')
    print('=' * 60)
    print(f'年度工单总数: {stats.total_count}')
    print(f'平均处理周期: {stats.avg_cycle_time} 天 (基于 {stats.closed_cycle_count} 条周期数据)')
    print(f'年度费用总额: ¥{stats.amount_total:,.2f} (单均 ¥{stats.avg_amount})')
    print(f'结案率: {stats.close_rate}%')
    print(f"工单最多部门: {stats.top_dept['name']} ({stats.top_dept['count']})")
    print()
    print('月度趋势:')
    for item in stats.monthly_trend:
        print(f"  {item['month']}  {item['count']:>5}  {item['avgTime']} 天")
    print('三包类型分布:')
    for item in stats.warranty_type_data:
        print(f"  {item['name']}: {item['value']}")
    print('物料 Top 10:')
    for item in stats.top_materials:
        print(f"  {item['name']}: {item['value']}")
    return 0


def cmd_monthly(args) -> int:
    """Print cycle time statistics for one month."""
    connector = _connect()
    if connector is None:
        return 1

    try:
        with connector:
            service = DashboardService(connector)
            month = args.month
            if not month:
                months = service.available_months()
                if not months:
                    print('暂无周期统计数据')
                    return 0
                month = months[0]
            stats = service.month_stats(month)
            trend = service.stage_trend()
    except BackendError as e:
        print(f'Error: {e.message}', file=sys.stderr)
        return 1
    except requests.RequestException as e:
        print(f'Error: {e}', file=sys.stderr)
        return 1

    if args.json:
        _dump({'stats': asdict(stats), 'stage_trend': trend})
        return 0

    print(f'统计月份: {stats.month}')
    print(f'本月三包总数: {stats.total_count}')
    print(f'平均处理周期: {stats.avg_cycle_time} 天')
    print(f'中位数周期: {stats.median_cycle_time} 天')
    print(f'超长周期 (>{settings.LONG_CYCLE_DAYS:g} 天): {stats.long_cycle_count}')
    for row in stats.long_cycle_list:
        print(f"  {row.get('serial_number')}  {row.get('total_cycle_time')} 天  {row.get('department', '')}")
    print('近 6 个月环节趋势:')
    for item in trend:
        print(
            f"  {item['month']}  审核 {item['avg_audit']}  发运 {item['avg_ship']}  "
            f"SMEC {item['avg_smec']}  总计 {item['avg_total']}"
        )
    return 0


def cmd_detail(args) -> int:
    """Print everything known about one serial number."""
    connector = _connect()
    if connector is None:
        return 1

    try:
        with connector:
            detail = DashboardService(connector).ticket_detail(args.serial, args.month)
    except BackendError as e:
        print(f'Error: {e.message}', file=sys.stderr)
        return 1
    except requests.RequestException as e:
        print(f'Error: {e}', file=sys.stderr)
        return 1

    if args.json:
        _dump(asdict(detail))
        return 0

    print(f'工单: {detail.serial_number}')
    for row in detail.overview_list:
        print(f"  物料 {row.get('material_name')}  图号 {row.get('drawing_number')}  {row.get('fault_description')}")
    print('周期耗时分解:')
    for stage in detail.stages:
        print(f"  {stage['name']}: {stage['value']} 天")
    print('处理日志流:')
    for idx, log in enumerate(detail.logs, 1):
        status = '进行中' if log['open'] else f"耗时 {log['days']} 天"
        print(f"  {idx}. {log['node']}  {log['person_name']}  {log['start_time']}  {status}")
    return 0


def cmd_maintenance(args) -> int:
    """Run a confirmation-gated maintenance operation."""
    connector = _connect()
    if connector is None:
        return 1

    with connector:
        ops = MaintenanceOperations(connector, _run_log())
        token = args.confirm
        if token is None:
            if args.action == 'cleanup':
                print('将永久删除重复的历史数据，只保留最新的一条。')
            token = input(f'此操作不可恢复！请输入 "{CONFIRMATION_TOKEN}" 确认: ').strip()
        if args.action == 'cleanup':
            result = ops.cleanup_duplicates(token)
        elif args.action == 'truncate':
            result = ops.truncate_table(args.kind, token)
        else:
            result = ops.delete_month(args.month, token)

    if not result.executed:
        print(result.message)
    return 0 if result.ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='tr-dashboard',
        description='TR warranty dashboard - CSV ingestion, KPIs and maintenance',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Upload exports
  tr-dashboard ingest overview MESE三包概况.csv
  tr-dashboard ingest cycle_stats 周期统计25年3月.csv --month 2025-03
  tr-dashboard ingest ledger TR三包台账（2025）.csv

  # Read back
  tr-dashboard dashboard --year 2025
  tr-dashboard monthly --month 2025-03
  tr-dashboard detail MBY25001

  # Maintenance
  tr-dashboard maintenance cleanup --confirm DELETE
  tr-dashboard maintenance truncate overview --confirm DELETE
  tr-dashboard maintenance delete-month 2025-03
""",
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging')
    subparsers = parser.add_subparsers(dest='command', required=True)

    ingest_parser = subparsers.add_parser('ingest', help='Upload CSV exports')
    ingest_parser.add_argument('kind', choices=list(RECORD_KINDS), help='Record kind of the files')
    ingest_parser.add_argument('files', nargs='+', help='CSV files to upload')
    ingest_parser.add_argument('--month', help='Statistics month (YYYY-MM) for cycle_stats')
    ingest_parser.add_argument('--yes', '-y', action='store_true', help='Accept a month inferred from the file name')
    ingest_parser.add_argument('--delimiter', help='CSV delimiter (detected when omitted)')
    ingest_parser.add_argument('--batch-size', type=int, default=None, help='Rows per upsert request')
    ingest_parser.add_argument('--no-archive', action='store_true', help='Skip raw file archival')
    ingest_parser.set_defaults(func=cmd_ingest)

    dashboard_parser = subparsers.add_parser('dashboard', help='Annual dashboard KPIs')
    dashboard_parser.add_argument('--year', type=int, default=DashboardState().year, help='Report year')
    dashboard_parser.add_argument('--json', action='store_true', help='Print raw JSON')
    dashboard_parser.set_defaults(func=cmd_dashboard)

    monthly_parser = subparsers.add_parser('monthly', help='Monthly cycle time analysis')
    monthly_parser.add_argument('--month', help='Statistics month (latest when omitted)')
    monthly_parser.add_argument('--json', action='store_true', help='Print raw JSON')
    monthly_parser.set_defaults(func=cmd_monthly)

    detail_parser = subparsers.add_parser('detail', help='Ticket detail by serial number')
    detail_parser.add_argument('serial', help='Serial number')
    detail_parser.add_argument('--month', help='Preferred statistics month')
    detail_parser.add_argument('--json', action='store_true', help='Print raw JSON')
    detail_parser.set_defaults(func=cmd_detail)

    maintenance_parser = subparsers.add_parser('maintenance', help='Destructive maintenance operations')
    actions = maintenance_parser.add_subparsers(dest='action', required=True)
    cleanup_parser = actions.add_parser('cleanup', help='Run the server-side de-duplication')
    cleanup_parser.add_argument('--confirm', help=f'Confirmation token ({CONFIRMATION_TOKEN})')
    truncate_parser = actions.add_parser('truncate', help='Empty a whole table')
    truncate_parser.add_argument('kind', choices=list(RECORD_KINDS))
    truncate_parser.add_argument('--confirm', help=f'Confirmation token ({CONFIRMATION_TOKEN})')
    delete_parser = actions.add_parser('delete-month', help='Delete one month of cycle stats')
    delete_parser.add_argument('month', help='Statistics month (YYYY-MM)')
    delete_parser.add_argument('--confirm', help=f'Confirmation token ({CONFIRMATION_TOKEN})')
    maintenance_parser.set_defaults(func=cmd_maintenance)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    configure_logging('tr_dashboard')
    if args.verbose:
        logging.getLogger('tr_dashboard').setLevel(logging.DEBUG)
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
