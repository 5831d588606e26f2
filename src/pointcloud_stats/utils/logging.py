"""
Logging Utilities

This module sets up logging for the project with a consistent format for
console and optional file output.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Union

if TYPE_CHECKING:
    from .config import AppConfig

PACKAGE_LOGGER = "pointcloud_stats"

_DATEFMT = '%Y-%m-%d %H:%M:%S'
_CONSOLE_FORMAT = '%(asctime)s | %(levelname)s | %(name)s | %(message)s'
_FILE_FORMAT = '%(asctime)s | %(levelname)s | %(threadName)s | %(name)s | %(message)s'


def _file_handler(log_file: Union[str, Path], level: int) -> logging.FileHandler:
    # Create parent directories if they don't exist
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = logging.FileHandler(log_path)
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_DATEFMT))
    return file_handler


def setup_logger(name: str,
                 level: int = logging.INFO,
                 log_file: Optional[str] = None) -> logging.Logger:
    """
    Set up a logger with consistent formatting.

    Args:
        name: Logger name (usually __name__)
        level: Logging level (default: logging.INFO)
        log_file: Optional log file path. If provided, logs will be written to this file

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    # Avoid adding multiple handlers
    if logger.handlers:
        return logger

    logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATEFMT))
    logger.addHandler(console_handler)

    if log_file:
        logger.addHandler(_file_handler(log_file, level))

    return logger


def set_log_level(level: Union[int, str], name: str = PACKAGE_LOGGER) -> None:
    """
    Change the level of a package logger and all of its handlers.

    Args:
        level: Level as int or name ("DEBUG", "INFO", ...)
        name: Logger name whose descendants should follow the new level
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown logging level: {level!r}")

    root = logging.getLogger(name)
    root.setLevel(level)
    loggers = [root] + [
        logging.getLogger(n)
        for n in list(logging.root.manager.loggerDict)
        if n.startswith(name + ".")
    ]
    for logger in loggers:
        if logger.handlers:
            logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)


def configure_logging(config: "AppConfig", name: str = PACKAGE_LOGGER) -> logging.Logger:
    """
    Apply the ``logging`` section of an AppConfig to the package loggers.

    Sets the level of every package logger. When ``logging.file`` is set, a
    file handler for it is attached to the package logger once; records of
    the module loggers reach it through propagation.

    Returns:
        The package logger
    """
    set_log_level(config.logging.level, name=name)
    package_logger = logging.getLogger(name)

    if config.logging.file:
        log_path = Path(config.logging.file).resolve()
        attached = any(
            isinstance(h, logging.FileHandler) and Path(h.baseFilename) == log_path
            for h in package_logger.handlers
        )
        if not attached:
            package_logger.addHandler(_file_handler(log_path, package_logger.level))

    return package_logger
