"""Logging configuration using AWS Lambda Powertools."""

import os

from aws_lambda_powertools import Logger

# Read log level from environment (default to INFO)
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()

# CLI level names mapped to logging levels
LOG_LEVEL_MAPPING = {
    "panic": "CRITICAL",
    "fatal": "CRITICAL",
    "error": "ERROR",
    "warn": "WARNING",
    "warning": "WARNING",
    "info": "INFO",
    "debug": "DEBUG",
}

# Powertools gives structured JSON output outside Lambda as well
logger = Logger(
    service="ami-refresh",
    level=LOG_LEVEL,
)


def get_logger():
    """Get the shared logger instance.

    Components take an optional ``logger`` argument and fall back to this one.
    """
    return logger


def set_log_level(level: str) -> None:
    """Change the level of the shared logger (e.g. from the CLI)."""
    logger.setLevel(LOG_LEVEL_MAPPING.get(level.lower(), level.upper()))
