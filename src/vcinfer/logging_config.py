"""
Logging configuration for the vcinfer calling core.

Provides a package logger setup plus timing helpers used around model
construction and error-count exports.
"""

import functools
import logging
import time
from pathlib import Path
from typing import Optional, Callable
import sys


class PerformanceLogger:
    """Time a block of work, logging when it starts and how it ended.

    ``duration`` holds the elapsed seconds once the block exits, so callers
    can report it next to their own results. Failures are always logged at
    ERROR; start and completion use ``level``.
    """

    def __init__(self, logger: logging.Logger, operation: str, level: int = logging.DEBUG):
        self.logger = logger
        self.operation = operation
        self.level = level
        self.duration: Optional[float] = None
        self._start: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self._start = time.perf_counter()
        self.logger.log(self.level, f"Starting {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.duration = time.perf_counter() - self._start
        if exc_type is None:
            self.logger.log(self.level, f"Completed {self.operation} in {self.duration:.3f}s")
        else:
            self.logger.error(
                f"Failed {self.operation} after {self.duration:.3f}s: {exc_type.__name__}: {exc_val}"
            )
        return False


def time_it(operation: Optional[str] = None, level: int = logging.DEBUG):
    """Decorator timing each call on the wrapped function's module logger."""
    def decorator(func: Callable) -> Callable:
        op_name = operation or func.__qualname__
        logger = logging.getLogger(func.__module__)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with PerformanceLogger(logger, op_name, level):
                return func(*args, **kwargs)
        return wrapper
    return decorator


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    console_output: bool = True,
    format_string: Optional[str] = None
) -> logging.Logger:
    """Setup logging for the ``vcinfer`` logger hierarchy.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file
        console_output: Whether to output to the console (stderr)
        format_string: Custom format string

    Returns:
        Configured logger instance
    """
    if format_string is None:
        format_string = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger("vcinfer")
    logger.setLevel(numeric_level)
    logger.handlers.clear()

    formatter = logging.Formatter(format_string)

    # stdout is reserved for dump output
    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False

    return logger

