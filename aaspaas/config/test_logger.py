"""
Unit tests for logger_module.py.

Tests cover:
- Handler attachment on the package logger
- Idempotency of initialization
- Quieting of HTTP client loggers
- Convenience logging methods
"""

import logging
from unittest.mock import patch, MagicMock
import pytest

from . import logger_module
from .logger_module import (
    LOGGER_NAME, initialize_logger, log_debug, log_info, log_warning, log_error,
)


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Reset logger state around each test."""
    logger = logging.getLogger(LOGGER_NAME)
    saved = (list(logger.handlers), logger.level, logger.propagate)
    urllib3_level = logging.getLogger("urllib3").level
    logger.handlers.clear()
    logger_module._logger_initialized = False
    yield
    for handler in logger.handlers:
        handler.close()
    logger.handlers[:] = saved[0]
    logger.setLevel(saved[1])
    logger.propagate = saved[2]
    logging.getLogger("urllib3").setLevel(urllib3_level)
    logger_module._logger_initialized = False


def _handlers():
    return logging.getLogger(LOGGER_NAME).handlers


class TestInitializeLogger:
    """Test cases for initialize_logger function."""

    def test_default_parameters(self, tmp_path):
        log_file = tmp_path / "logs" / "aaspaas.log"

        initialize_logger(log_file=str(log_file))

        logger = logging.getLogger(LOGGER_NAME)
        assert logger.level == logging.INFO
        assert logger.propagate is False
        handler_types = [type(h).__name__ for h in _handlers()]
        assert "StreamHandler" in handler_types
        assert "FileHandler" in handler_types
        assert log_file.exists()

    def test_invalid_level_defaults_to_info(self, tmp_path):
        initialize_logger(log_level="INVALID", log_file=str(tmp_path / "test.log"))
        assert logging.getLogger(LOGGER_NAME).level == logging.INFO

    def test_idempotency(self, tmp_path):
        log_file = tmp_path / "test.log"

        initialize_logger(log_file=str(log_file))
        initialize_logger(log_file=str(log_file))
        initialize_logger(log_level="DEBUG", log_file=str(log_file))

        assert len(_handlers()) == 2
        assert logging.getLogger(LOGGER_NAME).level == logging.INFO

    def test_handler_levels(self, tmp_path):
        initialize_logger(log_file=str(tmp_path / "test.log"))

        levels = {type(handler).__name__: handler.level for handler in _handlers()}
        assert levels["StreamHandler"] == logging.INFO
        assert levels["FileHandler"] == logging.DEBUG

    def test_http_loggers_quieted(self, tmp_path):
        logging.getLogger("urllib3").setLevel(logging.DEBUG)

        initialize_logger(log_file=str(tmp_path / "test.log"))

        assert logging.getLogger("urllib3").level == logging.WARNING


class TestConvenienceMethods:
    """Test cases for convenience logging methods."""

    def test_messages_reach_file(self, tmp_path):
        log_file = tmp_path / "test.log"
        initialize_logger(log_level="DEBUG", log_file=str(log_file))

        log_debug("rate window count=25")
        log_info("geocoded via nominatim")
        log_warning("mappls geocode failed")
        log_error("unexpected store error")
        logging.getLogger("aaspaas.search.shop_store").info("module logger message")
        for handler in _handlers():
            handler.flush()

        content = log_file.read_text()
        assert "rate window count=25" in content
        assert "geocoded via nominatim" in content
        assert "WARNING" in content
        assert "unexpected store error" in content
        assert "module logger message" in content

    @patch('logging.getLogger')
    def test_methods_call_correct_levels(self, mock_get_logger):
        mock_logger = MagicMock()
        mock_get_logger.return_value = mock_logger

        log_debug("debug message")
        log_info("info message")
        log_warning("warning message")
        log_error("error message")

        mock_get_logger.assert_called_with(LOGGER_NAME)
        mock_logger.debug.assert_called_once_with("debug message")
        mock_logger.info.assert_called_once_with("info message")
        mock_logger.warning.assert_called_once_with("warning message")
        mock_logger.error.assert_called_once_with("error message")
