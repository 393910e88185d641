"""General utility helper functions."""
from typing import Any, List
import logging
import re
import time
from datetime import datetime, timezone

logger = logging.getLogger(__name__)


def chunk_list(lst: List[Any], chunk_size: int) -> List[List[Any]]:
    """
    Split a list into chunks.

    Args:
        lst: List to chunk
        chunk_size: Size of each chunk

    Returns:
        List of chunks
    """
    if chunk_size <= 0:
        raise ValueError(f'chunk_size must be positive, got {chunk_size}')
    return [lst[i:i + chunk_size] for i in range(0, len(lst), chunk_size)]


def current_month(now: datetime = None) -> str:
    """Current calendar month as YYYY-MM (UTC)."""
    now = now or datetime.now(timezone.utc)
    return now.strftime('%Y-%m')


def epoch_millis() -> int:
    """Milliseconds since the epoch, used to prefix archived file names."""
    return int(time.time() * 1000)


def sanitize_filename(filename: str) -> str:
    """
    Replace anything outside [a-zA-Z0-9.-] with '_'.

    Object storage rejects many non-ASCII keys, so Chinese file names
    collapse to underscores while keeping the extension readable.
    """
    return re.sub(r'[^a-zA-Z0-9.-]', '_', filename)
