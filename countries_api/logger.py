"""
Logging setup for the countries service.

One stdout handler on the package root logger; modules call get_logger(__name__).
"""

import logging
import sys

ROOT_LOGGER_NAME = "countries_api"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Logging level name (e.g. "INFO", "DEBUG")

    Returns:
        The configured package root logger
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level.upper())

    # Avoid duplicate handlers when the app is created more than once
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a module logger; names under countries_api share the package handler."""
    return logging.getLogger(name)
