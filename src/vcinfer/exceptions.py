"""
Custom exceptions for the vcinfer calling core.

Configuration faults (bad model names, unreadable model files, invalid
settings) abort construction of the component that needs them. Invariant
violations signal internal logic errors and are never recovered from.
"""


class VcinferError(Exception):
    """Base exception for vcinfer errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(VcinferError):
    """Raised when configuration is invalid."""
    pass


class ModelFileError(ConfigurationError):
    """Raised when an indel error model file cannot be read or parsed."""

    def __init__(self, message: str, filename: str = None, details: dict = None):
        details = dict(details or {})
        if filename is not None:
            details.setdefault("filename", str(filename))
        super().__init__(message, details)
        self.filename = filename


class InvariantViolationError(VcinferError):
    """Raised when an internal invariant is broken.

    Continuing after one of these would silently corrupt statistical
    output, so callers are not expected to catch it.
    """
    pass


class StatisticalError(VcinferError):
    """Raised when a statistical routine receives invalid input."""
    pass
