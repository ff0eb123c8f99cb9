"""
Logging configuration - configures the root logger from environment settings.
"""
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from tripdetails.config import LOG_FILE, LOG_FORMAT, LOG_LEVEL

_configured = False


def setup_logging(level: str = LOG_LEVEL, log_file: str | None = LOG_FILE) -> None:
    """Configure root logging once; later calls only adjust the level."""
    global _configured

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    if _configured:
        return

    formatter = logging.Formatter(LOG_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Keep SQL echo out of the application log unless asked for
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True
