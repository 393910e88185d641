"""Base loader class for writing records to the backend."""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional
import logging

from tr_dashboard.connectors.supabase_connector import SupabaseConnector
from tr_dashboard.pipeline.run_log import RunLog

logger = logging.getLogger(__name__)


class BaseLoader(ABC):
    """
    Abstract base class for backend loaders.

    Loaders hold a connector and an optional RunLog; user-visible progress
    goes to the RunLog, diagnostics to the module logger.
    """

    def __init__(
        self,
        name: str,
        connector: SupabaseConnector,
        run_log: Optional[RunLog] = None,
    ):
        """
        Initialize the loader.

        Args:
            name: Name of the loader (for logging)
            connector: Backend connector
            run_log: Sink for user-visible progress messages
        """
        self.name = name
        self.connector = connector
        self.run_log = run_log
        self.logger = logging.getLogger(f'{__name__}.{name}')
        self.loaded_count = 0

    @abstractmethod
    def load(self, data: Any, **kwargs) -> Any:
        """Write data to the backend."""
        pass

    def report(self, msg: str, type: str = 'info') -> None:
        """Send a message to the run log when one is attached, else to the logger."""
        if self.run_log is not None:
            self.run_log.add(msg, type)
        else:
            self.logger.info(msg)

    def get_load_stats(self) -> Dict[str, Any]:
        """Get statistics about the last load operation."""
        return {
            'loader': self.name,
            'loaded_count': self.loaded_count,
        }
