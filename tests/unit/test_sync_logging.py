"""Tests for package logging helpers."""

import io
import logging

from ticket_sync.config import SyncSettings
from ticket_sync.sync_logging import LOGGER_NAME, get_logger, setup_logging


class TestGetLogger:
    """Test logger lookup."""

    def test_package_logger(self):
        """Test the default logger is the package logger."""
        assert get_logger().name == LOGGER_NAME

    def test_child_logger(self):
        """Test named loggers are children of the package logger."""
        assert get_logger("sync").name == f"{LOGGER_NAME}.sync"


class TestSetupLogging:
    """Test handler configuration."""

    def teardown_method(self):
        logger = get_logger()
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)

    def test_writes_to_stream(self):
        """Test messages reach the configured stream."""
        stream = io.StringIO()
        setup_logging("DEBUG", stream=stream)
        get_logger().debug("hello")
        assert "hello" in stream.getvalue()

    def test_repeated_setup_does_not_stack(self):
        """Test calling setup twice keeps one handler."""
        setup_logging(stream=io.StringIO())
        setup_logging(stream=io.StringIO())
        assert len(get_logger().handlers) == 1

    def test_unknown_level_falls_back_to_info(self):
        """Test an unknown level name falls back to INFO."""
        logger = setup_logging("LOUD", stream=io.StringIO())
        assert logger.level == logging.INFO

    def test_level_from_settings(self):
        """Test the configured log level applies when no level is given."""
        logger = setup_logging(stream=io.StringIO(), settings=SyncSettings(log_level="warning"))
        assert logger.level == logging.WARNING

    def test_explicit_level_beats_settings(self):
        """Test an explicit level overrides the configured one."""
        logger = setup_logging(
            "DEBUG", stream=io.StringIO(), settings=SyncSettings(log_level="ERROR")
        )
        assert logger.level == logging.DEBUG

    def test_default_level_is_info(self):
        """Test INFO is used when neither level nor settings are given."""
        assert setup_logging(stream=io.StringIO()).level == logging.INFO
