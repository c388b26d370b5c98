"""
Application logging.

One shared ``idsyncro`` logger with UTC timestamps, a console handler and,
when ``LOG_DIR`` is set, a file handler rotated daily at UTC midnight.
Modules call ``get_logger(__name__)`` to get a child logger.
"""

from __future__ import annotations

import logging
import os
import time
from logging.handlers import TimedRotatingFileHandler

from idsyncro.core.config import get_settings


_APP_LOGGER_NAME = "idsyncro"


class _UTCFormatter(logging.Formatter):
    """Formatter that forces UTC timestamps."""

    converter = staticmethod(time.gmtime)


def _formatter() -> logging.Formatter:
    return _UTCFormatter(
        fmt="%(asctime)sZ %(levelname)s pid=%(process)d %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


def configure_app_logging(level_name: str | None = None, log_dir: str | None = None) -> logging.Logger:
    """Configure and return the application logger.

    Safe to call multiple times.
    """
    settings = get_settings()
    level_name = level_name or settings.log_level
    log_dir = settings.log_dir if log_dir is None else log_dir

    level = getattr(logging, (level_name or "INFO").upper(), logging.INFO)
    app_logger = logging.getLogger(_APP_LOGGER_NAME)
    app_logger.setLevel(level)

    # Avoid duplicate handlers.
    if getattr(app_logger, "_configured", False):
        return app_logger

    sh = logging.StreamHandler()
    sh.setLevel(level)
    sh.setFormatter(_formatter())
    app_logger.addHandler(sh)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        fh = TimedRotatingFileHandler(
            os.path.join(log_dir, "idsyncro.log"),
            when="midnight",
            interval=1,
            backupCount=14,
            utc=True,
            encoding="utf-8",
        )
        fh.setLevel(level)
        fh.setFormatter(_formatter())
        app_logger.addHandler(fh)

    # Do not propagate to the global root logger (prevents double logging).
    app_logger.propagate = False

    app_logger._configured = True  # type: ignore[attr-defined]
    return app_logger


def get_logger(module_name: str | None = None) -> logging.Logger:
    """Get a child of the application logger.

    Example:
        logger = get_logger(__name__)
    """
    configure_app_logging()
    name = module_name or "app"
    if name.startswith(_APP_LOGGER_NAME + ".") or name == _APP_LOGGER_NAME:
        return logging.getLogger(name)
    return logging.getLogger(f"{_APP_LOGGER_NAME}.{name}")
