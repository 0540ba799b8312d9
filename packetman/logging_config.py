"""
Logging configuration for packetman.

The TUI owns the terminal, so log output goes to a rotating file under the
config directory. Plain CLI commands may also log to stderr.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from packetman.storage.paths import log_path


def setup_logging(
    level: str = "INFO",
    log_file: Path | None = None,
    max_bytes: int = 1048576,  # 1MB
    backup_count: int = 3,
    enable_console: bool = False,
    enable_file: bool = True,
) -> logging.Logger:
    """
    Set up the ``packetman`` logger.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Log file path (defaults to <config dir>/logs/packetman.log)
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated files to keep
        enable_console: Log to stderr as well
        enable_file: Log to the rotating file

    Returns:
        Configured package logger
    """
    logger = logging.getLogger("packetman")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    fmt = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if enable_console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(fmt)
        logger.addHandler(console_handler)

    if enable_file:
        path = Path(log_file) if log_file else log_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setFormatter(fmt)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger
