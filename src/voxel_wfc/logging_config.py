"""
Centralized logging configuration for voxel_wfc.

Usage:
    from voxel_wfc.logging_config import setup_logging
    setup_logging(logging.DEBUG, "voxel_wfc.log")  # Call once at startup

All voxel_wfc.* loggers write to the console, and optionally to a rotating log file.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import sys

from voxel_wfc.constants import LOG_BACKUP_COUNT, LOG_FORMAT, LOG_LEVEL_DEFAULT, LOG_MAX_FILE_SIZE, LOGGER_NAME


def setup_logging(log_level: int = LOG_LEVEL_DEFAULT, log_file: str | Path | None = None) -> logging.Logger:
    """
    Configure the logging system for voxel_wfc.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        log_level: Level for console and file output (default: INFO)
        log_file: Optional path of a rotating log file

    Returns:
        The configured voxel_wfc root logger
    """
    root_logger = logging.getLogger(LOGGER_NAME)
    root_logger.setLevel(log_level)

    # Clear any existing handlers (for re-initialization)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%H:%M:%S")

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=LOG_MAX_FILE_SIZE,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    # Don't propagate to the Python root logger
    root_logger.propagate = False

    return root_logger
