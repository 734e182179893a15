"""
Logging for shopsync.

Handlers live on the ``shopsync`` package logger only. Module loggers from
``get_logger(__name__)`` are its children and propagate to it, so the
output can be reconfigured at startup (``setup_logging(settings)``) after
modules have already created their loggers. Until then the package logger
is configured from the LOG_LEVEL, LOG_DIR and DEBUG_MODE environment
variables.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

import colorlog


PACKAGE_LOGGER = "shopsync"
LOG_FILE = "shopsync.log"

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_COLORS = {
    'DEBUG': 'cyan',
    'INFO': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'red,bg_white',
}

_configured = False


def _message_format(debug: bool) -> str:
    # Caller location only in debug mode
    if debug:
        return "%(asctime)s [%(levelname)8s] %(name)s.%(funcName)s:%(lineno)d - %(message)s"
    return "%(asctime)s [%(levelname)8s] %(name)s - %(message)s"


def configure_logging(level: str = "INFO", log_dir: Optional[str] = None, debug: bool = False) -> logging.Logger:
    """
    (Re)configure the package logger.

    Args:
        level: Level name, e.g. "INFO"
        log_dir: Directory for a rotating log file; console only when empty
        debug: Include function and line number in every record

    Returns:
        The ``shopsync`` logger
    """
    global _configured

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    message_format = _message_format(debug)

    console = colorlog.StreamHandler(sys.stdout)
    console.setFormatter(colorlog.ColoredFormatter(
        "%(log_color)s" + message_format,
        datefmt=DATE_FORMAT,
        log_colors=LOG_COLORS,
    ))
    package_logger.addHandler(console)

    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        # 5MB per file, keep 5 files
        file_handler = logging.handlers.RotatingFileHandler(
            os.path.join(log_dir, LOG_FILE),
            maxBytes=5 * 1024 * 1024,
            backupCount=5,
            encoding='utf-8',
        )
        file_handler.setFormatter(logging.Formatter(message_format, datefmt=DATE_FORMAT))
        package_logger.addHandler(file_handler)

    package_logger.propagate = False
    _configured = True
    return package_logger


def _configure_from_env() -> None:
    configure_logging(
        level=os.getenv("LOG_LEVEL", "INFO"),
        log_dir=os.getenv("LOG_DIR", "./logs"),
        debug=os.getenv("DEBUG_MODE", "false").lower() == "true",
    )


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger under the ``shopsync`` hierarchy.

    Args:
        name: Logger name. If None, uses the caller's module name.
    """
    if name is None:
        name = sys._getframe(1).f_globals.get('__name__', PACKAGE_LOGGER)

    if not _configured:
        _configure_from_env()

    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


def setup_logging(settings=None) -> None:
    """
    Apply logging configuration at application startup.

    Args:
        settings: ``Settings`` instance; environment variables are used when None
    """
    if settings is None:
        _configure_from_env()
    else:
        configure_logging(settings.log_level, settings.log_dir, settings.debug_mode)

    logger = get_logger(PACKAGE_LOGGER)
    logger.info("Logging system initialized")
    logger.debug(f"Handlers: {[h.__class__.__name__ for h in logger.handlers]}")


def mask_token(token: Optional[str]) -> str:
    """Shorten a credential for log output."""
    if not token:
        return "<none>"
    return f"{token[:6]}..."
