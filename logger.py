import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


class ColoredFormatter(logging.Formatter):
    """Formatter that wraps each record in its level color"""

    COLORS = {
        'DEBUG': '\033[36m',  # Cyan
        'INFO': '\033[32m',  # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',  # Red
        'CRITICAL': '\033[41m\033[37m',  # White on Red background
        'RESET': '\033[0m'
    }

    def format(self, record):
        log_message = super().format(record)
        color = self.COLORS.get(record.levelname)
        if color:
            return f"{color}{log_message}{self.COLORS['RESET']}"
        return log_message


def _level_from_env() -> int:
    name = os.getenv("LOG_LEVEL", "INFO").upper()
    return getattr(logging, name, logging.INFO)


def setup_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """Set up and return a logger with colored console output.

    Calling it twice for the same name reuses the existing handler.
    """
    if level is None:
        level = _level_from_env()

    _logger = logging.getLogger(name)
    _logger.setLevel(level)

    if not _logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(ColoredFormatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        _logger.addHandler(handler)

    for handler in _logger.handlers:
        handler.setLevel(level)

    return _logger


# Server side: client, repositories, routes
logger = setup_logger("backend")
# Client side: state containers, validation, error handler
frontend_logger = setup_logger("frontend")
