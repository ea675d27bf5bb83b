"""
Exception and warning types for marginal_inference.

Every exception carries a machine-readable code so callers can
handle specific failure modes programmatically.

Hierarchy:
    MarginalInferenceError
    ├── ConfigurationError (ValueError)
    │   ├── ParseError
    │   └── DimensionError
    ├── EvaluationError (RuntimeError)
    └── ResourceLimitError (MemoryError)

NumericalDegeneracyWarning is never raised, only emitted with warnings.warn.
"""

from typing import Optional

OUTPUT_LENGTH_ERROR = "OUTPUT_LENGTH_ERROR"


class MarginalInferenceError(Exception):
    """Base exception for all marginal_inference errors."""

    def __init__(self, message: str, code: str = "MARGINAL_INFERENCE_ERROR"):
        self.code = code
        super().__init__(message)


class ConfigurationError(MarginalInferenceError, ValueError):
    """Raised for malformed arguments or unsupported option combinations."""

    def __init__(self, message: str, code: str = "CONFIGURATION_ERROR"):
        super().__init__(message, code=code)


class ParseError(ConfigurationError):
    """Raised when a hypothesis formula cannot be parsed or resolved."""

    def __init__(self, message: str, token: Optional[str] = None):
        self.token = token
        super().__init__(message, code="PARSE_ERROR")


class DimensionError(ConfigurationError):
    """Raised when a weight vector, matrix or covariance has the wrong shape."""

    def __init__(self, message: str, expected=None, actual=None):
        self.expected = expected
        self.actual = actual
        super().__init__(message, code="DIMENSION_ERROR")


class EvaluationError(MarginalInferenceError, RuntimeError):
    """
    Raised when the prediction function fails during evaluation.

    code is OUTPUT_LENGTH_ERROR when the function returned the wrong number
    of values. Those failures are fatal even in lenient mode.
    """

    def __init__(self, message: str, index: Optional[int] = None, code: str = "EVALUATION_ERROR"):
        self.index = index
        super().__init__(message, code=code)

    @property
    def is_length_error(self) -> bool:
        return self.code == OUTPUT_LENGTH_ERROR


class ResourceLimitError(MarginalInferenceError, MemoryError):
    """Raised when a requested grid or matrix exceeds the safety threshold."""

    def __init__(self, message: str, requested: float = 0.0, limit: float = 0.0):
        self.requested = requested
        self.limit = limit
        super().__init__(message, code="RESOURCE_LIMIT_ERROR")


class NumericalDegeneracyWarning(RuntimeWarning):
    """Emitted when standard errors are undefined for some rows."""
