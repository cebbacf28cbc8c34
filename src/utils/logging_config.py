"""Centralized logging configuration for the follower.

Usage:
    from src.utils.logging_config import setup_logging
    setup_logging(server_name="follower")  # Call once at entry point
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_LEVEL_ENV = "FOLLOWER_LOG_LEVEL"

# Log rotation defaults
MAX_BYTES = 5 * 1024 * 1024  # 5 MB
BACKUP_COUNT = 3


def resolve_level(level: int | str | None = None, debug: bool = False) -> int:
    """Pick the log level: debug flag, then explicit level, then FOLLOWER_LOG_LEVEL."""
    if debug:
        return logging.DEBUG
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, "INFO")
    if isinstance(level, str):
        resolved = logging.getLevelName(level.upper())
        return resolved if isinstance(resolved, int) else logging.INFO
    return level


def setup_logging(
    level: int | str | None = None,
    log_file: str | None = None,
    server_name: str | None = None,
    log_dir: str | Path = "logs",
    debug: bool = False,
    fmt: str = DEFAULT_FORMAT,
    max_bytes: int = MAX_BYTES,
    backup_count: int = BACKUP_COUNT,
) -> None:
    """Configure root logger with consistent format.

    Call this once at the start of each entry point.
    Safe to call multiple times; subsequent calls are no-ops due to basicConfig behavior.

    A file log goes to *log_file*, or to ``<log_dir>/<server_name>.log``
    when only *server_name* is given. Files rotate at *max_bytes* with
    *backup_count* backups.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file is None and server_name:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        log_file = str(Path(log_dir) / f"{server_name}.log")
    if log_file:
        handlers.append(
            RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
            )
        )
    logging.basicConfig(level=resolve_level(level, debug), format=fmt, handlers=handlers)
