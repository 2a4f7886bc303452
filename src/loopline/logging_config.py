"""
Logging setup for loopline.

Every module logs through `logging.getLogger(__name__)`, so all records land
under the `loopline` namespace. Applications call `configure_logging()` once
(the CLI does it from `AppSettings.logging`); libraries embedding loopline can
leave it alone and configure the root logger themselves.
"""

from __future__ import annotations

import logging
from typing import Optional

from loopline.config import LoggingSettings

LOGGER_NAME = "loopline"


def get_logger(name: str | None = None) -> logging.Logger:
    if name is None:
        return logging.getLogger(LOGGER_NAME)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def configure_logging(
    settings: Optional[LoggingSettings] = None,
    *,
    handler: Optional[logging.Handler] = None,
) -> logging.Logger:
    """
    Apply level and format from `settings` to the `loopline` logger.

    A handler is installed only once; calling this again just updates the level.
    """
    settings = settings or LoggingSettings()
    logger = get_logger()
    logger.setLevel(settings.level)

    if not logger.handlers:
        if handler is None:
            handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(settings.format))
        logger.addHandler(handler)

    return logger
