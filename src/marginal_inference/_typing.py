"""Type definitions for marginal_inference.

This module provides type aliases using numpy.typing for clear,
consistent type annotations throughout the package.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Sequence, Union

import numpy as np
from numpy.typing import NDArray

if TYPE_CHECKING:
    import pandas as pd

# Core numeric types
Float64Array = NDArray[np.float64]

# A function of the coefficient vector returning one value per quantity
VectorFunction = Callable[[Float64Array], Float64Array]

# Hypothesis specifications accepted by the resolver
HypothesisLike = Union[None, float, str, Sequence[str], Float64Array, "pd.DataFrame"]

# Grouping specifications accepted by the aggregator
ByLike = Union[None, bool, str, Sequence[str]]
