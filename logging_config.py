"""
Logging setup for the chat service.

Every module logs through `logging.getLogger(__name__)`; `setup_logging`
attaches handlers to the root of those loggers once per process.
"""

import logging
from typing import Optional

from config import get_settings

LOGGER_NAMES = ("api", "context", "catalog", "llm", "search", "storage")
FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

_logging_configured = False


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> None:
    """Configure console (and optional file) logging for the service modules.

    Args:
        level: Logging level name; defaults to LOG_LEVEL.
        log_file: Log file path; defaults to LOG_FILE, no file when unset.
    """
    global _logging_configured
    if _logging_configured:
        return
    _logging_configured = True

    settings = get_settings()
    numeric_level = getattr(logging, (level or settings.log_level).upper(), logging.INFO)
    log_file = log_file or settings.log_file

    fmt = logging.Formatter(FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(fmt)

    for name in LOGGER_NAMES:
        logger = logging.getLogger(name)
        logger.setLevel(numeric_level)
        logger.propagate = False
        for handler in handlers:
            logger.addHandler(handler)
