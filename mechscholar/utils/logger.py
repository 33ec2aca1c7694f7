#!/usr/bin/env python3
"""
Logging configuration for the MechScholar progression engine.
"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Union


def setup_logger(logs_dir: Path, level: Union[int, str] = logging.INFO, console: bool = True) -> logging.Logger:
    """
    Sets up a centralized, rotating file logger.

    Args:
        logs_dir: The directory where log files will be stored.
        level: Logging level name or number.
        console: Also log to stderr.

    Returns:
        A configured instance of logging.Logger.
    """
    logs_dir = Path(logs_dir)
    logs_dir.mkdir(exist_ok=True, parents=True)

    log_file = logs_dir / "mechscholar.log"

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    # Module loggers live under the package name, so the package logger is the root
    logger = logging.getLogger("mechscholar")
    logger.setLevel(level)
    logger.propagate = False

    # If handlers are already configured, do nothing (to prevent duplicates)
    if logger.hasHandlers():
        return logger

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    # Rotates when the log reaches 2MB, keeps 5 backup logs.
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=2 * 1024 * 1024,
        backupCount=5
    )
    file_handler.setFormatter(formatter)

    logger.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger
