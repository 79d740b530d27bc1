"""
Logging Configuration and Utilities

Application logging for shadowsync: colored console output on stderr, or
JSON lines when requested. Every module obtains its logger through
get_logger(), so everything shares the "shadowsync" namespace. The per-run
action log is separate (see core.run_log).

Author: shadowsync Project
License: MIT
"""

import logging
import sys
from typing import Optional

from pythonjsonlogger import jsonlogger


ROOT_LOGGER_NAME = "shadowsync"

CONSOLE_FORMAT = '[%(asctime)s] %(levelname)s - %(name)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ColoredFormatter(logging.Formatter):
    """Formatter that colors the level name for terminals."""

    COLORS = {
        'DEBUG': '\033[36m',
        'INFO': '\033[32m',
        'WARNING': '\033[33m',
        'ERROR': '\033[31m',
        'CRITICAL': '\033[35m',
    }
    RESET = '\033[0m'

    def format(self, record):
        # Copy so other handlers still see the plain level name
        record = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname)
        if color:
            record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def setup_logging(
    log_level: str = "INFO",
    json_format: bool = False,
    colored: Optional[bool] = None
) -> logging.Logger:
    """
    Configure application logging.

    Replaces any handlers installed by an earlier call, so it is safe to
    call again once the final settings are known.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Emit one JSON object per line
        colored: Use ANSI colors (defaults to whether stderr is a terminal)

    Returns:
        The "shadowsync" logger
    """
    level = getattr(logging, str(log_level).upper())
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    if colored is None:
        colored = sys.stderr.isatty()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    if json_format:
        handler.setFormatter(jsonlogger.JsonFormatter('%(asctime)s %(name)s %(levelname)s %(message)s'))
    elif colored:
        handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)

    logger.propagate = False
    logger.debug(f"Logging initialized at {log_level} level")
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance inside the "shadowsync" namespace
    """
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
