"""
Logging configuration for flexcrawl.

Provides a centralized logger instance with configurable log levels.
"""

import logging
import os
import sys

VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def setup_logger(name: str = "flexcrawl", level: str | None = None) -> logging.Logger:
    """
    Set up and configure a logger instance.

    Args:
        name: The name of the logger (default: "flexcrawl")
        level: Explicit log level; falls back to the LOG_LEVEL environment
            variable, then INFO

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Only attach a handler once, but always honour an explicit level
    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(console_handler)

    log_level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    if log_level not in VALID_LEVELS:
        log_level = "INFO"
    logger.setLevel(getattr(logging, log_level))

    return logger


# Create and export the default logger instance
logger = setup_logger()
