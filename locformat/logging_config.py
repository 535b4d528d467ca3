import logging
import os
import sys
from typing import Optional

from .config import Settings

LOGGER_NAME = "locformat"


def setup_logger(level: str = "INFO", log_file: Optional[str] = None, log_to_console: bool = True) -> logging.Logger:
    """
    Set up the package logger.

    Args:
        level: The logging level as a string (e.g., 'INFO', 'DEBUG').
        log_file: Optional path to a log file.
        log_to_console: Whether to also log to stderr.

    Returns:
        The configured logger instance.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Clear any existing handlers to prevent duplicate logging
    if logger.hasHandlers():
        logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(message)s')

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if log_to_console:
        stream_handler = logging.StreamHandler(sys.stderr)
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)

    return logger


def setup_logger_from_settings(settings: Settings) -> logging.Logger:
    options = settings.logging
    return setup_logger(
        options.get('level') or 'INFO',
        options.get('file'),
        bool(options.get('console', True)),
    )
