# File: therapy_booking/utils/logger.py
"""
Centralized logging configuration for the availability engine.
"""

import logging
import os
import sys
from pathlib import Path
from datetime import datetime
from typing import Optional

LOG_DIR_ENV = "LOG_DIR"
LOG_LEVEL_ENV = "LOG_LEVEL"


def _resolve_level(level: Optional[int]) -> int:
    """Use the explicit level, else LOG_LEVEL from the environment, else INFO."""
    if level is not None:
        return level
    name = os.getenv(LOG_LEVEL_ENV, "INFO").upper()
    return getattr(logging, name, logging.INFO)


def setup_logger(name: str = "therapy_booking", level: Optional[int] = None) -> logging.Logger:
    """
    Configure and return a logger instance.

    Console output goes to stdout; a daily log file is written under LOG_DIR
    (default: ./logs). Set LOG_DIR to an empty string to disable file logging.

    Args:
        name: Logger name
        level: Logging level (default: LOG_LEVEL env var or INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Prevent duplicate handlers
    if logger.handlers:
        return logger

    level = _resolve_level(level)
    logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s | %(levelname)-8s | %(name)s | %(message)s',
        datefmt='%H:%M:%S'
    ))
    logger.addHandler(console_handler)

    log_dir_value = os.getenv(LOG_DIR_ENV, "logs")
    if log_dir_value:
        log_dir = Path(log_dir_value)
        log_dir.mkdir(parents=True, exist_ok=True)

        log_file = log_dir / f"availability_{datetime.now().strftime('%Y%m%d')}.log"
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            '%(asctime)s | %(levelname)-8s | %(name)s:%(funcName)s:%(lineno)d | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        logger.addHandler(file_handler)

    return logger

