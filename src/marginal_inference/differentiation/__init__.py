"""
Numerical differentiation.

This module provides the finite-difference Jacobian used by the delta method:
- jacobian: J = ∂f/∂β for a vector function f of the coefficients
"""

from .jacobian import JacobianResult, compute_jacobian, step_sizes

__all__ = [
    "JacobianResult",
    "compute_jacobian",
    "step_sizes",
]
