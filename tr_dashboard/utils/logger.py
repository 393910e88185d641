"""Logging configuration for the TR dashboard."""
import logging
import logging.handlers
from typing import Optional

from tr_dashboard.config.settings import settings


def configure_logging(name: str, log_to_file: bool = True) -> logging.Logger:
    """
    Configure logging for a module.

    Args:
        name: Logger name (typically __name__)
        log_to_file: Also write to a rotating file under LOG_DIR

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(settings.LOG_LEVEL)

    # Repeated calls (CLI re-entry, tests) must not stack handlers
    if logger.handlers:
        return logger

    # Create formatters and handlers
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    # File handler
    file_handler = _build_file_handler(name) if log_to_file else None
    if file_handler:
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def _build_file_handler(name: str) -> Optional[logging.Handler]:
    """Rotating file handler, or None when the log directory is not writable."""
    try:
        settings.LOG_DIR.mkdir(parents=True, exist_ok=True)
        return logging.handlers.RotatingFileHandler(
            settings.LOG_DIR / f'{name}.log',
            maxBytes=10485760,  # 10MB
            backupCount=5,
            encoding='utf-8',
        )
    except OSError as e:
        logging.getLogger(__name__).warning(f'File logging disabled: {str(e)}')
        return None
