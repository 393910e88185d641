#!/usr/bin/env python3
"""
Offline archive upload - store an overview export and a person-node log in object storage.

Creates the private archive bucket when missing, then writes

    overview/{YYYY-MM}.csv
    person_nodes/{YYYY-MM}.csv

for the current month, overwriting earlier uploads of the same month.

Requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY (environment or .env).

Usage:
    python scripts/upload_storage.py MESE三包概况.csv MESE三包日志人员节点1229.csv
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import requests

from tr_dashboard.config.settings import settings
from tr_dashboard.connectors.supabase_connector import SupabaseConnector
from tr_dashboard.errors import BackendError
from tr_dashboard.loaders.storage_loader import StorageLoader
from tr_dashboard.schemas.registry import OVERVIEW, PERSON_NODE, storage_folder
from tr_dashboard.utils.helpers import current_month
from tr_dashboard.utils.logger import configure_logging

logger = configure_logging('upload_storage', log_to_file=False)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Archive overview and person-node CSV exports')
    parser.add_argument('overview_csv', type=Path, help='Overview export')
    parser.add_argument('person_node_csv', type=Path, help='Person-node log export')
    return parser.parse_args(argv)


def monthly_paths(now: Optional[datetime] = None) -> List[str]:
    """Object paths of this month's overview and person-node archives."""
    month = current_month(now)
    return [f'{storage_folder(kind)}/{month}.csv' for kind in (OVERVIEW, PERSON_NODE)]


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)

    missing = settings.validate_required_settings(privileged=True)
    if missing:
        logger.error(f"缺少 {' 或 '.join(missing)}")
        return 1

    failures = 0
    with SupabaseConnector(api_key=settings.SUPABASE_SERVICE_ROLE_KEY) as connector:
        loader = StorageLoader(connector)
        try:
            loader.ensure_bucket(public=False)
        except (BackendError, requests.RequestException) as e:
            logger.error(f'存储桶检查/创建出错: {e}')
            return 1

        for local_path, remote_path in zip((args.overview_csv, args.person_node_csv), monthly_paths()):
            try:
                loader.load(local_path.read_bytes(), remote_path)
            except (OSError, BackendError, requests.RequestException) as e:
                logger.error(f'上传失败 {local_path}: {e}')
                failures += 1

    if failures:
        return 1
    logger.info('上传完成')
    return 0


if __name__ == '__main__':
    sys.exit(main())
