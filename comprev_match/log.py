from __future__ import annotations

import logging
import os
import sys

LOG_LEVEL_ENV = "COMPREV_MATCH_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
ROOT_LOGGER = "comprev_match"


def default_level() -> int:
    name = os.environ.get(LOG_LEVEL_ENV, "WARNING").upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.WARNING


def get_logger(name: str) -> logging.Logger:
    """
    Get or create a logger under the comprev_match namespace.

    The package root logger gets a stderr handler the first time any module
    asks for a logger; child loggers propagate to it.
    """
    root = logging.getLogger(ROOT_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root.addHandler(handler)
        root.setLevel(default_level())
    return logging.getLogger(name)


def set_level(level: int) -> None:
    get_logger(ROOT_LOGGER).setLevel(level)
