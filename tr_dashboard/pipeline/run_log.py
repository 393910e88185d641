"""
User-visible run log.

Every upload or maintenance operation reports to a RunLog: an ordered
list of (time, severity, message) entries that the dashboard shows as its
运行日志 panel. Entries are mirrored into the standard logger so CLI runs
and log files see the same messages.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

INFO = 'info'
SUCCESS = 'success'
WARNING = 'warning'
ERROR = 'error'

_LEVELS = {
    INFO: logging.INFO,
    SUCCESS: logging.INFO,
    WARNING: logging.WARNING,
    ERROR: logging.ERROR,
}


@dataclass
class LogEntry:
    """One line of the run log."""
    msg: str
    type: str = INFO
    time: str = field(default_factory=lambda: datetime.now().strftime('%H:%M:%S'))


class RunLog:
    """Ordered, append-only sink for user-visible progress messages."""

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        on_entry: Optional[Callable[[LogEntry], None]] = None,
    ):
        """
        Args:
            logger: Logger that mirrors each entry (module logger by default)
            on_entry: Optional callback invoked for each new entry
        """
        self.entries: List[LogEntry] = []
        self.logger = logger or logging.getLogger(__name__)
        self.on_entry = on_entry

    def add(self, msg: str, type: str = INFO) -> LogEntry:
        if type not in _LEVELS:
            raise ValueError(f'Unknown log type: {type}')
        entry = LogEntry(msg=msg, type=type)
        self.entries.append(entry)
        self.logger.log(_LEVELS[type], msg)
        if self.on_entry:
            self.on_entry(entry)
        return entry

    def info(self, msg: str) -> LogEntry:
        return self.add(msg, INFO)

    def success(self, msg: str) -> LogEntry:
        return self.add(msg, SUCCESS)

    def warning(self, msg: str) -> LogEntry:
        return self.add(msg, WARNING)

    def error(self, msg: str) -> LogEntry:
        return self.add(msg, ERROR)

    def messages(self, type: Optional[str] = None) -> List[str]:
        """Messages in order, optionally only those of one severity."""
        return [e.msg for e in self.entries if type is None or e.type == type]

    def has_errors(self) -> bool:
        return any(e.type == ERROR for e in self.entries)
