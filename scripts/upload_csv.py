#!/usr/bin/env python3
"""
Offline CSV upload - push an overview export and a person-node log into the backend.

The overview file is comma-delimited; the person-node log is the
tab-delimited export of the workflow system. Both go through the same
normalize / deduplicate / batch upsert path as dashboard uploads, without
raw file archival.

Requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY (environment or .env).

Usage:
    python scripts/upload_csv.py MESE三包概况.csv MESE三包日志人员节点1229.csv
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from tr_dashboard.config.settings import settings
from tr_dashboard.connectors.supabase_connector import SupabaseConnector
from tr_dashboard.pipeline.ingest import IngestionPipeline
from tr_dashboard.pipeline.run_log import RunLog
from tr_dashboard.schemas.registry import OVERVIEW, PERSON_NODE, get_record_kind
from tr_dashboard.utils.logger import configure_logging

logger = configure_logging('upload_csv', log_to_file=False)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Upload overview and person-node CSV exports')
    parser.add_argument('overview_csv', type=Path, help='Overview export (comma-delimited)')
    parser.add_argument('person_node_csv', type=Path, help='Person-node log export (tab-delimited)')
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    missing = settings.validate_required_settings(privileged=True)
    if missing:
        logger.error(f"请设置 {' 与 '.join(missing)} 环境变量")
        return 1

    run_log = RunLog(logger)
    with SupabaseConnector(api_key=settings.SUPABASE_SERVICE_ROLE_KEY) as connector:
        pipeline = IngestionPipeline(connector, run_log, archive=False)
        for kind, path in ((OVERVIEW, args.overview_csv), (PERSON_NODE, args.person_node_csv)):
            record_kind = get_record_kind(kind)
            result = pipeline.process_path(kind, path, delimiter=record_kind.delimiter)
            if not result.ok:
                return 1
            logger.info(f'{record_kind.label} upsert 完成：{result.loaded_count} 条')

    return 0


if __name__ == '__main__':
    sys.exit(main())
