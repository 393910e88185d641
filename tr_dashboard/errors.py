"""Exception types raised across the TR dashboard package."""
from typing import Optional


class DashboardError(Exception):
    """Base class for all errors raised by this package."""


class InputError(DashboardError):
    """Raised when an uploaded CSV cannot be parsed or lacks its key column."""


class ConfirmationError(DashboardError):
    """Raised when a destructive operation is not confirmed correctly."""


class BackendError(DashboardError):
    """
    Raised when the backend rejects a request.

    Carries the backend's own message so callers can show it verbatim.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.hint = hint


class BackendWriteError(BackendError):
    """
    Raised when an upsert batch fails.

    Batches submitted before the failing one stay committed.
    """

    def __init__(
        self,
        message: str,
        table: str,
        completed: int = 0,
        total: int = 0,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message, status_code=status_code, code=code, hint=hint)
        self.table = table
        self.completed = completed
        self.total = total
