"""
Custom exceptions for the precise-varcall engine.

Configuration problems are fatal and raised before any per-site work
begins. Internal-consistency violations signal a programming error and
are never recovered from. Numeric edge cases (zero counts, zero
probabilities) are handled by convention and do not raise.
"""


class PreciseVarcallError(Exception):
    """Base exception for precise-varcall errors."""
    
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


class ConfigurationError(PreciseVarcallError):
    """Raised when configuration or a model specification is invalid."""
    pass


class FileFormatError(ConfigurationError):
    """Raised when a model file cannot be read or parsed."""
    pass


class InternalConsistencyError(PreciseVarcallError):
    """Raised when an internal invariant is violated."""
    pass


class StatisticalError(PreciseVarcallError):
    """Raised when a statistical computation receives invalid input."""
    pass
