"""
Tests for custom exceptions and logging helpers.
"""

import logging
import re

import pytest

from vcinfer.exceptions import (
    ConfigurationError,
    InvariantViolationError,
    ModelFileError,
    StatisticalError,
    VcinferError,
)
from vcinfer.indel_error_model import IndelErrorModel
from vcinfer.logging_config import PerformanceLogger, setup_logging, time_it


class TestCustomExceptions:
    """Test custom exception hierarchy."""

    def test_base_exception(self):
        """Test base VcinferError."""
        error = VcinferError("Base error")
        assert str(error) == "Base error"
        assert error.details == {}

        details = {"code": "E001", "context": "test"}
        assert VcinferError("Error with details", details).details == details

    @pytest.mark.parametrize("exc_class", [
        ConfigurationError,
        ModelFileError,
        InvariantViolationError,
        StatisticalError,
    ])
    def test_inheritance(self, exc_class):
        assert issubclass(exc_class, VcinferError)
        with pytest.raises(VcinferError):
            raise exc_class("boom")

    def test_model_file_error(self):
        error = ModelFileError("cannot read", "rates.json", {"line": 3})
        assert isinstance(error, ConfigurationError)
        assert error.filename == "rates.json"
        assert error.details == {"line": 3, "filename": "rates.json"}

    def test_model_file_error_without_filename(self):
        error = ModelFileError("cannot read")
        assert error.filename is None
        assert error.details == {}


class TestLogging:
    """Test logging setup and timing helpers."""

    def test_setup_logging(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        logger = setup_logging("DEBUG", log_file=log_file, console_output=False)
        try:
            assert logger.name == "vcinfer"
            assert logger.level == logging.DEBUG
            assert len(logger.handlers) == 1
            logging.getLogger("vcinfer.call").info("hello")
            for handler in logger.handlers:
                handler.flush()
            assert "hello" in log_file.read_text()
        finally:
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()
            logger.propagate = True

    def test_performance_logger(self, caplog):
        logger = logging.getLogger("vcinfer.test")
        with caplog.at_level(logging.DEBUG, logger="vcinfer.test"):
            with PerformanceLogger(logger, "unit work"):
                pass
        assert "Starting unit work" in caplog.text
        assert "Completed unit work" in caplog.text

    def test_performance_logger_failure(self, caplog):
        logger = logging.getLogger("vcinfer.test")
        with caplog.at_level(logging.DEBUG, logger="vcinfer.test"):
            with pytest.raises(RuntimeError):
                with PerformanceLogger(logger, "unit work"):
                    raise RuntimeError("broken")
        assert "Failed unit work" in caplog.text

    def test_time_it(self, caplog):
        @time_it("decorated work")
        def work(value):
            return value * 2

        with caplog.at_level(logging.DEBUG):
            assert work(21) == 42
        assert "Completed decorated work" in caplog.text

    def test_performance_logger_duration(self):
        timer = PerformanceLogger(logging.getLogger("vcinfer.test"), "timed work")
        assert timer.duration is None
        with timer:
            pass
        assert timer.duration >= 0.0

    def test_performance_logger_level(self, caplog):
        logger = logging.getLogger("vcinfer.test")
        with caplog.at_level(logging.INFO, logger="vcinfer.test"):
            with PerformanceLogger(logger, "loud work", logging.INFO):
                pass
            with PerformanceLogger(logger, "quiet work"):
                pass
        assert "Completed loud work" in caplog.text
        assert "quiet work" not in caplog.text

    def test_failure_names_exception_type(self, caplog):
        with caplog.at_level(logging.ERROR, logger="vcinfer.test"):
            with pytest.raises(KeyError):
                with PerformanceLogger(logging.getLogger("vcinfer.test"), "lookup"):
                    raise KeyError("missing")
        assert "Failed lookup" in caplog.text
        assert "KeyError" in caplog.text

    def test_model_load_reports_duration(self, caplog):
        with caplog.at_level(logging.INFO, logger="vcinfer.indel_error_model"):
            IndelErrorModel("adaptiveDefault")
        assert "Loaded indel error model 'adaptiveDefault'" in caplog.text
        assert re.search(r"contexts in \d+\.\d{3}s", caplog.text)
