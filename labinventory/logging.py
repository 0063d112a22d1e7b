"""Logging utilities for the lab inventory service.

Provides the application-wide logging setup: a console handler, an optional
rotating file handler and retention-based cleanup of rotated log files.
"""

import logging
import os
from datetime import datetime, timedelta
from logging.handlers import RotatingFileHandler
from pathlib import Path
from stat import ST_MTIME

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_configured = False


def _log_file() -> str:
    return os.getenv("LOG_FILE", "")


def configure_logging() -> None:
    """Configure application-wide logging.

    A :class:`~logging.handlers.RotatingFileHandler` keeping the file to
    roughly 1MB with three backups is added when ``LOG_FILE`` is set. The
    level comes from ``LOG_LEVEL``.
    """

    global _configured
    if _configured:
        return

    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)

    formatter = logging.Formatter(LOG_FORMAT)

    log_file = _log_file()
    if log_file:
        file_handler = RotatingFileHandler(
            log_file, maxBytes=1_000_000, backupCount=3
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    root.addHandler(stream_handler)

    _configured = True
    _purge_old_logs()


def get_logger(name: str) -> logging.Logger:
    """Return a logger with the configured settings."""
    return logging.getLogger(name)


def flush_logs() -> None:
    """Flush all log handlers."""
    for handler in logging.getLogger().handlers:
        handler.flush()


def _purge_old_logs() -> None:
    """Delete rotated log files older than ``LOG_RETENTION_DAYS``."""

    log_file = _log_file()
    retention_days = int(os.getenv("LOG_RETENTION_DAYS", "7"))
    if not log_file or retention_days <= 0:
        return

    log_path = Path(log_file).resolve()
    cutoff = datetime.now() - timedelta(days=retention_days)
    for file in log_path.parent.glob(f"{log_path.name}.*"):
        try:
            mtime = datetime.fromtimestamp(file.stat()[ST_MTIME])
        except FileNotFoundError:
            continue
        if mtime < cutoff:
            try:
                file.unlink()
            except FileNotFoundError:
                pass


__all__ = ["configure_logging", "get_logger", "flush_logs"]
