from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

APP_LOGGER_NAME = "cachesifter"
LOG_FILE_NAME = "extraction.log"


class UtcFormatter(logging.Formatter):
    """Formatter that renders timestamps in UTC using ISO-8601."""

    converter = time.gmtime

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        dt = datetime.fromtimestamp(record.created, tz=timezone.utc)
        if datefmt:
            return dt.strftime(datefmt)
        return dt.isoformat(timespec="seconds")


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def configure_logging(
    log_dir: Optional[Path],
    level: Union[int, str] = logging.INFO,
    max_bytes: int = 20 * 1024 * 1024,
    backup_count: int = 5,
    console: bool = True,
) -> Logger:
    """
    Configure the application logger with rotating file and console handlers.

    Args:
        log_dir: Directory for the rotating log file, or None for console only
        level: Logging level, numeric or by name (default: INFO)
        max_bytes: Maximum size per log file before rotation (default: 20 MB)
        backup_count: Number of rotated files to keep (default: 5)
        console: Also log to stderr

    Returns:
        The configured application logger
    """
    formatter = UtcFormatter(
        fmt="%(asctime)sZ %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    app_logger.setLevel(_resolve_level(level))
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()

    log_path = None
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / LOG_FILE_NAME
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        app_logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        app_logger.addHandler(console_handler)

    app_logger.debug("Logging configured. File: %s (max %d MB, %d backups)",
                     log_path, max_bytes // (1024 * 1024), backup_count)
    return app_logger


def get_logger(name: Optional[str] = None) -> Logger:
    """Return a child logger under the application namespace."""
    base = logging.getLogger(APP_LOGGER_NAME)
    if name:
        return base.getChild(name)
    return base
