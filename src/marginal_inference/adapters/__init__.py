"""
Model adapters.

The inference core talks to fitted models only through the ModelAdapter
protocol.

Available adapters:
- CallableAdapter: coefficients + covariance + a prediction function
- StatsmodelsAdapter: fitted statsmodels results
"""

from .base import BaseAdapter, CallableAdapter, ModelAdapter, as_adapter
from .sandwich import ROBUST_TYPES, sandwich_vcov
from .statsmodels import StatsmodelsAdapter

__all__ = [
    "ModelAdapter",
    "BaseAdapter",
    "CallableAdapter",
    "StatsmodelsAdapter",
    "as_adapter",
    "sandwich_vcov",
    "ROBUST_TYPES",
]
