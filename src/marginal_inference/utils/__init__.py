"""Utility functions for marginal_inference."""

from .linalg import row_variances, validate_covariance
from .parallel import map_tasks

__all__ = [
    "validate_covariance",
    "row_variances",
    "map_tasks",
]
