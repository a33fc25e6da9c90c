"""
Logging utilities for the AasPaas location engine.

All package output goes through the "aaspaas" logger: module loggers created
with logging.getLogger(__name__) propagate to it, and the log_* helpers
write to it directly. HTTP client libraries are kept at WARNING so provider
traffic does not flood the console.
"""

import logging
from pathlib import Path
from typing import Iterable

LOGGER_NAME = "aaspaas"
NOISY_LOGGERS = ("urllib3", "requests", "googlemaps")

_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
_FILE_LOG_FORMAT = (
    '%(asctime)s - %(name)s - %(levelname)s - %(threadName)s - '
    '%(filename)s:%(lineno)d - %(message)s'
)

_logger_initialized = False


def initialize_logger(log_level: str = "INFO",
                      log_file: str = "logs/aaspaas.log",
                      quiet_loggers: Iterable[str] = NOISY_LOGGERS) -> None:
    """
    Attach console and file handlers to the package logger.

    Safe to call more than once; only the first call configures anything.
    The console shows INFO and above, the file keeps everything down to
    DEBUG including the suggestion worker thread names.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL);
                   unknown names fall back to INFO
        log_file: Path to log file, parent directories are created
        quiet_loggers: Third-party loggers capped at WARNING
    """
    global _logger_initialized

    if _logger_initialized:
        return

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
    logger.propagate = False
    logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt='%H:%M:%S'))

    file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(_FILE_LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    _logger_initialized = True
    logger.info(f"Logger initialized with level {log_level.upper()}, file: {log_file}")


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def log_debug(message: str) -> None:
    get_logger().debug(message)


def log_info(message: str) -> None:
    get_logger().info(message)


def log_warning(message: str) -> None:
    get_logger().warning(message)


def log_error(message: str) -> None:
    """Log an error; include the provider or shop id in the message."""
    get_logger().error(message)
