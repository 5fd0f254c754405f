"""Logging configuration for taskboard.

Logging is off unless ``-v`` or ``--log-file`` is given, so nothing is
written over the Textual screen by default.
"""

import logging
import sys
from datetime import UTC, datetime
from pathlib import Path

LOGGER_NAME = "taskboard"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _level_for(verbose: int) -> int:
    return logging.DEBUG if verbose >= 2 else logging.INFO


def _attach(logger: logging.Logger, handler: logging.Handler, level: int) -> None:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(handler)


def setup_logging(verbose: int = 0, log_file: Path | None = None) -> logging.Logger | None:
    """Configure the ``taskboard`` logger.

    Args:
        verbose: 0 = stderr off, 1 = INFO, 2+ = DEBUG
        log_file: Optional file that receives the same records

    Returns:
        The configured logger, or None when logging stays off.
    """
    if verbose <= 0 and log_file is None:
        return None

    level = _level_for(verbose)
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(level)

    # Calling twice must not duplicate output
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if verbose > 0:
        _attach(logger, logging.StreamHandler(sys.stderr), level)
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        _attach(logger, logging.FileHandler(log_file, encoding="utf-8"), level)

    started = datetime.now(UTC).strftime("%Y-%m-%d %H:%M:%S UTC")
    logger.info("-" * 60)
    logger.info("taskboard starting | %s | level=%s", started, logging.getLevelName(level))
    return logger
