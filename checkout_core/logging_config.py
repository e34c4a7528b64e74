"""
logging_config.py — Centralized Logging Configuration for the Checkout Core

This module configures unified logging behavior for the storefront client.
It ensures that all modules log messages consistently.

Features:
    • Console logging on stdout, optional file output
    • Process ID tagging for multi-process visibility
    • Standardized log format for all modules
    • Reduced verbosity for the HTTP stack (httpx, httpcore)
"""

import logging
import sys

from . import config


def setup_logging(level=logging.INFO, log_file=None):
    """
    Configures the global logging system for the application.

    The configuration includes:
        - Log level: INFO (default)
        - Log format: timestamp, log level, process ID, and message
        - Output destinations:
            1. Console (stdout)
            2. File: `log_file` or the LOG_FILE setting, if one is given
        - Reduced verbosity for third-party libraries such as httpx

    Args:
        level (int): Root log level.
        log_file (str | None): Optional path of a persistent log file.
    """
    log_format = '%(asctime)s - %(levelname)s - [PID:%(process)d] - %(message)s'

    handlers = [logging.StreamHandler(sys.stdout)]
    log_file = log_file or config.LOG_FILE
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=level, format=log_format, handlers=handlers)

    # Reduce verbosity from external libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def get_logger(name):
    """
    Returns a logger instance for a given module or component name.

    Args:
        name (str): The logger name, typically the module's __name__.

    Returns:
        logging.Logger: A logger that follows the global format and handlers.
    """
    return logging.getLogger(name)
