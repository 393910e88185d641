"""Loader that archives raw uploads in object storage."""
from datetime import datetime
from typing import Any, Dict, Optional

from tr_dashboard.config.settings import settings
from tr_dashboard.connectors.supabase_connector import SupabaseConnector
from tr_dashboard.errors import BackendError
from tr_dashboard.pipeline.run_log import RunLog
from tr_dashboard.schemas.registry import storage_folder
from tr_dashboard.utils.helpers import current_month, epoch_millis, sanitize_filename

from .base_loader import BaseLoader


def archive_path(
    kind: str,
    filename: str,
    now: Optional[datetime] = None,
    timestamp_ms: Optional[int] = None,
) -> str:
    """
    Object path for an archived upload.

    Layout: {folder}/{YYYY-MM}/{epoch_ms}_{sanitized filename}

    Args:
        kind: Upload kind (decides the folder)
        filename: Original file name
        now: Clock override for the month partition
        timestamp_ms: Clock override for the name prefix
    """
    stamp = timestamp_ms if timestamp_ms is not None else epoch_millis()
    return f'{storage_folder(kind)}/{current_month(now)}/{stamp}_{sanitize_filename(filename)}'


class StorageLoader(BaseLoader):
    """Upload raw CSV bytes to the archive bucket."""

    def __init__(
        self,
        connector: SupabaseConnector,
        run_log: Optional[RunLog] = None,
        bucket: Optional[str] = None,
    ):
        super().__init__('storage', connector, run_log)
        self.bucket = bucket or settings.STORAGE_BUCKET
        self.last_path: Optional[str] = None

    def ensure_bucket(self, public: bool = False) -> bool:
        """
        Create the archive bucket when it does not exist yet.

        Returns:
            True if the bucket was created, False if it already existed
        """
        buckets = self.connector.list_buckets()
        if any(b.get('name') == self.bucket or b.get('id') == self.bucket for b in buckets):
            return False
        self.connector.create_bucket(self.bucket, public=public)
        self.logger.info(f'Created storage bucket {self.bucket}')
        return True

    def load(
        self,
        data: bytes,
        path: str,
        content_type: str = 'text/csv',
        **kwargs,
    ) -> str:
        """
        Upload a blob, overwriting any object at the same path.

        Args:
            data: Raw file bytes
            path: Object path inside the bucket
            content_type: MIME type

        Returns:
            The object path

        Raises:
            BackendError: If the upload is rejected
        """
        self.report(f'正在上传原始文件到存储桶: {path}...')
        try:
            self.connector.upload_blob(self.bucket, path, data, content_type=content_type, upsert=True)
        except BackendError as e:
            if 'bucket not found' in e.message.lower():
                self.report(f'存储桶 {self.bucket} 不存在，请联系管理员创建', 'error')
            raise
        self.last_path = path
        self.loaded_count = len(data)
        self.report('原始文件归档成功', 'success')
        return path

    def archive_upload(
        self,
        kind: str,
        filename: str,
        data: bytes,
        now: Optional[datetime] = None,
    ) -> str:
        """Upload a file under the standard archive layout for its kind."""
        return self.load(data, archive_path(kind, filename, now))

    def get_load_stats(self) -> Dict[str, Any]:
        stats = super().get_load_stats()
        stats.update({'bucket': self.bucket, 'path': self.last_path})
        return stats
