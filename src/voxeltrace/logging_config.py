"""Logging configuration for voxeltrace scripts.

Library modules only create loggers with logging.getLogger(__name__); scripts
call setup_logging() once to see their output.
"""

from __future__ import annotations

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(
    level: str | int = "INFO",
    log_file: str | Path | None = None,
) -> logging.Logger:
    """Set up logging for the voxeltrace package.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL) or number.
        log_file: Optional file that receives the same records.

    Returns:
        The configured "voxeltrace" logger.

    Raises:
        ValueError: If the level name is unknown.
    """
    if isinstance(level, str):
        numeric = logging.getLevelName(level.upper())
        if not isinstance(numeric, int):
            raise ValueError(f"Unknown log level: {level}")
        level = numeric

    logger = logging.getLogger("voxeltrace")
    logger.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    # Replace handlers from an earlier call
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger
