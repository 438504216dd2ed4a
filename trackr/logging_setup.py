"""Logging configuration for the trackr package."""

import logging
from typing import Optional

from trackr.domain.settings import LoggingSettings

PACKAGE_LOGGER = "trackr"

# Handler installed by the last configure_logging() call
_installed_handler: Optional[logging.Handler] = None


def configure_logging(
    settings: Optional[LoggingSettings] = None,
    handler: Optional[logging.Handler] = None,
) -> logging.Logger:
    """Apply *settings* to the package logger.

    Calling it again replaces the handler installed by a previous call
    instead of stacking another one.
    """
    global _installed_handler

    settings = settings or LoggingSettings()
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(settings.level)

    if _installed_handler is not None:
        logger.removeHandler(_installed_handler)

    handler = handler or logging.StreamHandler()
    handler.setFormatter(logging.Formatter(settings.format))
    logger.addHandler(handler)
    _installed_handler = handler
    return logger
