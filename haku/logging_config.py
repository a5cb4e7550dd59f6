"""Logging setup for Haku.

All modules log through ``get_logger(__name__)``; ``setup_logging()`` is
called once at startup and sends everything to a rotating log file under
``~/.haku/logs``. The level comes from the caller or ``HAKU_LOG_LEVEL``.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Tuple


LOG_DIR = Path.home() / ".haku" / "logs"
LOG_FILE = LOG_DIR / "haku.log"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAX_BYTES = 10 * 1024 * 1024  # 10MB
BACKUP_COUNT = 5

# Chatty at INFO; only their warnings are interesting here
QUIET_LOGGERS = ("sqlalchemy.engine", "aiosqlite")


def _resolve_level(log_level: Optional[str]) -> Tuple[str, int]:
    """Map a level name (or HAKU_LOG_LEVEL) to a logging level, INFO if unknown."""
    name = (log_level or os.getenv("HAKU_LOG_LEVEL") or "INFO").upper()
    level = logging.getLevelName(name)
    if not isinstance(level, int):
        return "INFO", logging.INFO
    return name, level


def setup_logging(
    log_level: Optional[str] = None,
    console: bool = False
) -> None:
    """Configure the root logger for Haku.

    Replaces any handlers already on the root logger with a rotating file
    handler, plus a stderr handler for warnings and errors when running from
    the command line.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL. Falls back to
                  HAKU_LOG_LEVEL, then INFO.
        console: Also report WARNING and above on stderr.

    Example:
        >>> setup_logging(log_level="DEBUG", console=True)
    """
    level_name, level = _resolve_level(log_level)

    LOG_DIR.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    handlers = []

    file_handler = RotatingFileHandler(
        LOG_FILE,
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8"
    )
    file_handler.setLevel(level)
    handlers.append(file_handler)

    if console:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(max(level, logging.WARNING))
        handlers.append(stderr_handler)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    logging.getLogger(__name__).info(
        f"Logging initialized: level={level_name}, file={LOG_FILE}, console={console}"
    )


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module; pass ``__name__``."""
    return logging.getLogger(name)
