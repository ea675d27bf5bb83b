"""
Core orchestration.

- pipeline: quantity -> Jacobian -> hypothesis -> inference -> Estimates
"""

from .pipeline import apply_hypothesis, estimate_quantities

__all__ = [
    "estimate_quantities",
    "apply_hypothesis",
]
