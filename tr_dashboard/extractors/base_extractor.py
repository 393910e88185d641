"""Base extractor class for CSV files and backend tables."""
from abc import ABC, abstractmethod
from typing import Any, Dict, List
import logging
from datetime import datetime

logger = logging.getLogger(__name__)


class BaseExtractor(ABC):
    """
    Abstract base class for row extractors.

    Both extractors return plain row dictionaries: header -> cell text for
    CSV uploads, column -> value for backend tables.
    """

    def __init__(self, name: str):
        """
        Initialize the extractor.

        Args:
            name: Name of the extractor (for logging)
        """
        self.name = name
        self.logger = logging.getLogger(f'{__name__}.{name}')
        self.extracted_at = None
        self.record_count = 0

    @abstractmethod
    def extract(self, *args, **kwargs) -> List[Dict[str, Any]]:
        """
        Extract rows from the source.

        Returns:
            List of row dictionaries
        """
        pass

    def log_extraction(self, record_count: int, source: str) -> None:
        """Record and log extraction completion details."""
        self.extracted_at = datetime.now()
        self.record_count = record_count
        self.logger.info(f'Extracted {record_count} rows from {source}')

    def get_metadata(self) -> Dict[str, Any]:
        """Get metadata about the last extraction."""
        return {
            'extractor': self.name,
            'extracted_at': self.extracted_at.isoformat() if self.extracted_at else None,
            'record_count': self.record_count,
        }
