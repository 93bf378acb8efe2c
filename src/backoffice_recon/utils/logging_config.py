"""Logging configuration for the back-office reconciliation application."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGGER_NAME = "backoffice_recon"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"

# Client libraries that log every request or statement at INFO
CHATTY_LIBRARIES = ("sqlalchemy.engine", "httpx", "anthropic")


def level_from_name(name: str) -> int:
    """Translate a configured level name such as "DEBUG" to a logging level."""
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(
    level_name: str = "INFO",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    verbose: bool = False,
) -> logging.Logger:
    """
    Configure logging for the reconciliation commands.

    Args:
        level_name: Level from the ``logging`` section of the config file
        log_file: Optional path of a rotating log file
        log_format: Console format (the config default when omitted)
        verbose: Force DEBUG, overriding the configured level

    Returns:
        The ``backoffice_recon`` package logger
    """
    level = logging.DEBUG if verbose else level_from_name(level_name)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # A click group runs once per invocation; don't stack handlers
    logger.handlers = []

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(log_format or DEFAULT_FORMAT))
    logger.addHandler(console_handler)

    # The file keeps the audit trail of imports and reconciliations
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        )
        file_handler.setLevel(logging.DEBUG)  # Capture all levels in file
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    for name in CHATTY_LIBRARIES:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)

    return logger
