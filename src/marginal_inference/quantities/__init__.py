"""
Quantities of interest.

A quantity is a pure function of the coefficient vector with labelled rows:
- predictions: adjusted predictions and marginal means
- comparisons: contrasts and slopes (pre-transforms)
- post: scalar maps applied to estimates and bounds after inference
"""

from .base import BaseQuantity, CoefficientQuantity, CustomQuantity
from .comparisons import (
    COMPARISONS,
    Comparison,
    ComparisonQuantity,
    Contrast,
    build_contrasts,
    resolve_comparison,
)
from .post import TRANSFORMS, apply_post, resolve_transform
from .predictions import MarginalMeansQuantity, PredictionQuantity

__all__ = [
    "BaseQuantity",
    "CustomQuantity",
    "CoefficientQuantity",
    "PredictionQuantity",
    "MarginalMeansQuantity",
    "COMPARISONS",
    "Comparison",
    "ComparisonQuantity",
    "Contrast",
    "build_contrasts",
    "resolve_comparison",
    "TRANSFORMS",
    "apply_post",
    "resolve_transform",
]
