"""Central logging setup shared by the API process and Celery workers."""

from __future__ import annotations

import logging
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
ROOT_LOGGER_NAME = "memobot"


class LoggingConfig:
    _configured = False

    @classmethod
    def configure(cls, level: str = "INFO") -> None:
        """Install a single stdout handler. Safe to call more than once."""
        if cls._configured:
            logging.getLogger().setLevel(level.upper())
            return
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root = logging.getLogger()
        root.addHandler(handler)
        root.setLevel(level.upper())
        cls._configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger under the memobot namespace."""
    if not name:
        return logging.getLogger(ROOT_LOGGER_NAME)
    if name.startswith(ROOT_LOGGER_NAME):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
