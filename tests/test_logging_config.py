"""
Tests for logging setup.
"""

import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from statuskeeper.logging_config import LIBRARY_LOGGERS, get_logger, setup_logging


@pytest.fixture
def restore_logging() -> Iterator[None]:
    """Put the package and library loggers back after a test."""
    names = ("statuskeeper", *LIBRARY_LOGGERS)
    saved = {
        name: (logging.getLogger(name).level, list(logging.getLogger(name).handlers), logging.getLogger(name).propagate)
        for name in names
    }
    yield
    for name, (level, handlers, propagate) in saved.items():
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.handlers[:] = handlers
        logger.propagate = propagate


@pytest.mark.usefixtures("restore_logging")
class TestSetupLogging:
    """Tests for setup_logging."""

    def test_package_logger(self) -> None:
        setup_logging(level="DEBUG")

        package_logger = logging.getLogger("statuskeeper")
        assert package_logger.level == logging.DEBUG
        assert package_logger.propagate is False
        assert len(package_logger.handlers) == 1

    def test_library_loggers_quieted(self) -> None:
        """Test that debug logging does not turn on request and SQL chatter."""
        setup_logging(level="DEBUG")

        for name in LIBRARY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_library_loggers_follow_higher_levels(self) -> None:
        setup_logging(level="ERROR")

        assert logging.getLogger("urllib3").level == logging.ERROR

    def test_log_file(self, tmp_path: Path) -> None:
        log_file = tmp_path / "statuskeeper.log"

        setup_logging(level="INFO", log_file=str(log_file))
        get_logger("statuskeeper.prober").info("cycle finished")
        for handler in logging.getLogger("statuskeeper").handlers:
            handler.flush()

        assert "cycle finished" in log_file.read_text()


class TestGetLogger:
    """Tests for get_logger."""

    def test_namespace(self) -> None:
        assert get_logger("statuskeeper.store").name == "statuskeeper.store"
        assert get_logger("custom").name == "statuskeeper.custom"
