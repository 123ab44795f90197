"""
Residential Admin - Logging Configuration

All module loggers live under the "residential_admin" namespace so one
console handler configured at startup covers the whole service.
"""

import logging
from typing import Optional

from residential_admin.config import settings


ROOT_LOGGER_NAME = "residential_admin"


def configure_logging(level: Optional[str] = None) -> logging.Logger:
    """
    Configure and return the service root logger.

    Args:
        level: Logging level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Defaults to settings.LOG_LEVEL.

    Returns:
        Configured root logger for the service
    """
    level_name = (level or settings.LOG_LEVEL).upper()

    formatter = logging.Formatter(settings.LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    # Avoid duplicate handlers when the app is created more than once
    if not logger.handlers:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a module under the service namespace."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
