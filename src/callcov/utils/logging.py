"""Centralized logging utilities for callcov.

Provides a single place to configure logging and fetch namespaced loggers.
"""

from __future__ import annotations

import logging
import warnings
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

LOGGER_NAMESPACE = "callcov"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "%(levelname)s: %(message)s"

# Log rotation settings
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10 MB
DEFAULT_BACKUP_COUNT = 5


def parse_level(level: Union[int, str]) -> int:
    """Accept ``logging.INFO`` or ``"info"`` style levels."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level: {level}")
    return value


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Path] = None,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
) -> None:
    """Configure logging for the 'callcov' namespace.

    Args:
        level: Logging level for the application logger
        log_file: Optional path for log file output
        max_bytes: Maximum size per log file before rotation (default: 10MB)
        backup_count: Number of backup files to keep (default: 5)

    Notes:
        - Root logger kept at WARNING to suppress third-party noise
        - Console handler uses concise format; file handler (if any) is detailed at DEBUG
    """
    level = parse_level(level)
    logging.getLogger().setLevel(logging.WARNING)

    app_logger = logging.getLogger(LOGGER_NAMESPACE)
    app_logger.setLevel(level)
    # Avoid duplicate logs if called multiple times
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler()
    console.setLevel(level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    app_logger.addHandler(console)

    if log_file:
        log_file = Path(log_file)
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
            app_logger.addHandler(file_handler)
            # File output is detailed even when the console is quiet
            app_logger.setLevel(logging.DEBUG)
        except OSError as e:
            warnings.warn(f"Failed to create log file {log_file}: {e}")

    app_logger.propagate = False


def get_logger(name: str) -> logging.Logger:
    """Return a namespaced logger under 'callcov' root."""
    return logging.getLogger(LOGGER_NAMESPACE).getChild(name)


class LogTemplates:
    """Standard log message templates shared by the analysis passes.

    Example usage:
        logger.info(LogTemplates.CONTIG_DONE.format(
            contig="chr1", positions=248956422, callable=230000000
        ))
    """

    # Pass lifecycle
    PASS_START = "Starting {pass_name} pass over {contigs} contig(s)"
    PASS_SUCCESS = "Completed {pass_name} pass in {duration:.1f}s"
    PASS_CANCELLED = "Cancelled {pass_name} pass at {contig}:{position}"

    # Contig traversal
    CONTIG_START = "Walking {contig} ({length:,} bp)"
    CONTIG_DONE = "Finished {contig}: {positions:,} positions, {callable:,} callable"

    # File operations
    FILE_CREATED = "Created output file: {path} ({size:,} bytes)"
    FILE_LOADED = "Loaded {count:,} records from {path}"
    FILE_NOT_FOUND = "File not found: {path}"

    # Statistics
    COVERAGE_STATS = "Mean coverage {mean:.2f}x over {territory:,} positions ({callable:,} callable)"
