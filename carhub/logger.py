"""Centralised logging configuration.

Logs go to the console and, when ``LOG_FILE`` is set, to a rotating file.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from .core import get_settings

_configured = False


def _configure_root_logger():
    global _configured
    if _configured:
        return
    _configured = True

    settings = get_settings()
    level = settings.LOG_LEVEL.upper()

    fmt = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root = logging.getLogger()
    root.setLevel(level)

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(fmt)
    root.addHandler(console)

    if settings.LOG_FILE:
        log_dir = os.path.dirname(os.path.abspath(settings.LOG_FILE))
        os.makedirs(log_dir, exist_ok=True)
        # keeps the last 5 x 5MB files
        file_handler = RotatingFileHandler(
            filename=settings.LOG_FILE,
            maxBytes=5 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(fmt)
        root.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """Get a named logger. Call this at the top of every module."""
    _configure_root_logger()
    return logging.getLogger(name)
