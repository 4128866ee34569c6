"""
Logging setup for the stream recorder.

The recorder's own messages and the raw output of capture processes go to
separate loggers. rtmpdump can print a progress line several times per
second, so its output has its own level and may be written to its own
rotating file instead of the main log.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


PROCESS_OUTPUT_LOGGER = 'streamrec.process'

DEFAULT_FORMAT = '[%(asctime)s] %(levelname)s %(name)s: %(message)s'
PROCESS_OUTPUT_FORMAT = '[%(asctime)s] %(message)s'
DATE_FORMAT = '%Y-%m-%dT%H%M%S'

_initialized = False


def _level(value, default: int = logging.INFO) -> int:
    return getattr(logging, str(value).upper(), default)


def _rotating_handler(log_file: str, max_size_mb: int, backup_count: int) -> RotatingFileHandler:
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    return RotatingFileHandler(
        log_path,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count
    )


def setup_logging(
    log_file: Optional[str] = None,
    level: str = 'INFO',
    max_size_mb: int = 50,
    backup_count: int = 5,
    log_format: Optional[str] = None,
    console: bool = True,
    process_output_level: str = 'INFO',
    process_output_file: Optional[str] = None
) -> None:
    """
    Initialize logging configuration.

    Args:
        log_file: Path to log file (None = no file logging)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        max_size_mb: Maximum log file size in MB before rotation
        backup_count: Number of backup files to keep
        log_format: Log format string
        console: Whether to log to console
        process_output_level: Level for capture process output; WARNING or
            above silences it
        process_output_file: Separate log file for capture process output.
            When set, that output no longer reaches the main handlers.
    """
    global _initialized

    numeric_level = _level(level)
    formatter = logging.Formatter(log_format or DEFAULT_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers = []

    if console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if log_file:
        file_handler = _rotating_handler(log_file, max_size_mb, backup_count)
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    process_logger = logging.getLogger(PROCESS_OUTPUT_LOGGER)
    process_logger.setLevel(_level(process_output_level))
    for handler in process_logger.handlers:
        handler.close()
    process_logger.handlers = []
    process_logger.propagate = True

    if process_output_file:
        output_handler = _rotating_handler(process_output_file, max_size_mb, backup_count)
        output_handler.setFormatter(logging.Formatter(PROCESS_OUTPUT_FORMAT, datefmt=DATE_FORMAT))
        process_logger.addHandler(output_handler)
        process_logger.propagate = False

    # aiohttp access/client chatter is noise at DEBUG
    logging.getLogger('aiohttp').setLevel(max(numeric_level, logging.INFO))

    _initialized = True


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger for the specified module.

    Configures console logging with defaults on first use if nothing has
    been set up yet.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    if not _initialized:
        setup_logging()
    return logging.getLogger(name)


def get_process_logger() -> logging.Logger:
    """Logger that receives capture process output."""
    return get_logger(PROCESS_OUTPUT_LOGGER)


def setup_from_config(config: dict) -> None:
    """
    Setup logging from configuration dictionary.

    Args:
        config: Logging configuration dict with keys:
            - level: Log level
            - debug: Force DEBUG level when true
            - file: Log file path
            - max_size_mb: Max file size
            - backup_count: Backup count
            - format: Log format
            - console: Console output enabled
            - process_output: Dict with ``level`` and ``file`` for capture
              process output
    """
    level = 'DEBUG' if config.get('debug') else config.get('level', 'INFO')
    process_output = config.get('process_output') or {}

    setup_logging(
        log_file=config.get('file'),
        level=level,
        max_size_mb=config.get('max_size_mb', 50),
        backup_count=config.get('backup_count', 5),
        log_format=config.get('format'),
        console=config.get('console', True),
        process_output_level=process_output.get('level', 'INFO'),
        process_output_file=process_output.get('file')
    )
