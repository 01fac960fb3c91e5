"""
Demographic Index Engine - Logging Configuration

Console output is JSON when ENVIRONMENT=production and plain text otherwise.
When LOG_DIR is set, each named run also appends to logs/{name}_{YYYYMMDD}.log.
Handlers installed here are mirrored on the root logger so module loggers
(get_logger(__name__)) share them; handlers installed by anyone else are left alone.
"""

import logging
import os
import sys
from datetime import datetime
from typing import List

from pythonjsonlogger import jsonlogger

from config.settings import get_settings

settings = get_settings()

# Marks handlers owned by setup_logging so re-runs replace only those
OWNED_ATTR = "_demographic_index_handler"

JSON_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
TEXT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _resolve_level(level_name: str) -> int:
    level = logging.getLevelName(str(level_name).upper())
    return level if isinstance(level, int) else logging.INFO


def _build_formatter() -> logging.Formatter:
    if settings.ENVIRONMENT == "production":
        return jsonlogger.JsonFormatter(fmt=JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S")
    return logging.Formatter(fmt=TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")


def _build_handlers(name: str, formatter: logging.Formatter) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if settings.LOG_DIR:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        log_file = os.path.join(settings.LOG_DIR, f"{name}_{datetime.now():%Y%m%d}.log")
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setFormatter(formatter)
        setattr(handler, OWNED_ATTR, True)

    return handlers


def _drop_owned_handlers(target: logging.Logger) -> None:
    for handler in [h for h in target.handlers if getattr(h, OWNED_ATTR, False)]:
        target.removeHandler(handler)
        handler.close()


def setup_logging(name: str = "demographic_index") -> logging.Logger:
    """
    Configure logging for a pipeline run.

    Safe to call more than once: handlers from a previous call are closed and
    replaced, never stacked.

    Args:
        name: Logger name, also used as the log file prefix

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(settings.LOG_LEVEL))
    logger.propagate = False

    root_logger = logging.getLogger()
    _drop_owned_handlers(logger)
    _drop_owned_handlers(root_logger)

    handlers = _build_handlers(name, _build_formatter())
    root_logger.setLevel(logger.level)
    for handler in handlers:
        logger.addHandler(handler)
        root_logger.addHandler(handler)

    return logger


def get_logger(module_name: str) -> logging.Logger:
    """Logger for a module (typically __name__)."""
    return logging.getLogger(module_name)
