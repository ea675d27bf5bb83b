"""
Inference engine.

- delta: delta-method standard errors, tests and intervals
- posterior: summaries of quantity draws
- intervals: equal-tailed and highest-density intervals
- aggregate: group means baked into the quantity function
"""

from .aggregate import GroupIndex, build_groups
from .delta import RESULT_COLUMNS, check_conf_level, critical_values, delta_method
from .intervals import credible_interval, eti, hdi
from .posterior import evaluate_draws, summarize_draws

__all__ = [
    "GroupIndex",
    "build_groups",
    "RESULT_COLUMNS",
    "check_conf_level",
    "critical_values",
    "delta_method",
    "credible_interval",
    "eti",
    "hdi",
    "evaluate_draws",
    "summarize_draws",
]
