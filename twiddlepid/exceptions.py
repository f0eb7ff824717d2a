"""
Custom exceptions for TwiddlePID package.
"""


class TwiddlePIDError(Exception):
    """Base exception for all TwiddlePID related errors."""
    pass


class ConfigurationError(TwiddlePIDError):
    """Exception raised when invalid configuration parameters are provided."""
    pass


class InvalidMeasurementError(TwiddlePIDError, ValueError):
    """Exception raised when a cross-track error sample is NaN or infinite."""
    pass


class TuningError(TwiddlePIDError):
    """Exception raised when twiddle does not converge within its window budget."""
    pass
