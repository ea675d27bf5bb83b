"""
Grouping and averaging of quantity vectors.

Averages are computed inside the quantity function f(beta), so the Jacobian
of a group mean is derived by the differentiation engine:

    f_g(β) = Σ_{i∈g} w_i f_i(β) / Σ_{i∈g} w_i
    J_g    = Σ_{i∈g} w_i J_i / Σ_{i∈g} w_i

which carries the within-group covariance of the rows. Standard errors are
never averaged.
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from .._typing import ByLike
from ..exceptions import ConfigurationError, DimensionError


@dataclass
class GroupIndex:
    """
    Row-to-group assignment built once per call.

    Attributes:
        codes: (n,) group code of every row, 0..G-1
        keys: (G, k) DataFrame of group keys (empty columns for overall mean)
        weights: (n,) row weights
    """

    codes: np.ndarray
    keys: pd.DataFrame
    weights: np.ndarray

    @property
    def n_groups(self) -> int:
        return len(self.keys)

    @property
    def n_rows(self) -> int:
        return self.codes.shape[0]

    @classmethod
    def overall(cls, n: int, wts=None) -> "GroupIndex":
        """A single group holding all n rows."""
        return cls(
            codes=np.zeros(n, dtype=np.int64),
            keys=pd.DataFrame(index=pd.RangeIndex(1)),
            weights=_validate_weights(wts, n),
        )

    @classmethod
    def from_frame(cls, data: pd.DataFrame, by, wts=None) -> "GroupIndex":
        """
        Group the rows of `data` by one or more columns.

        Groups are sorted by key; missing keys form their own group.

        Args:
            data: Row labels (one row per quantity)
            by: Column name or list of column names
            wts: Optional (n,) weights or the name of a column of `data`

        Returns:
            GroupIndex
        """
        by = [by] if isinstance(by, str) else list(by)
        missing = [b for b in by if b not in data.columns]
        if missing:
            raise ConfigurationError(
                f"Grouping column(s) {missing} not found. Available: {list(data.columns)}"
            )
        if isinstance(wts, str):
            if wts not in data.columns:
                raise ConfigurationError(f"Weight column {wts!r} not found")
            wts = data[wts].to_numpy()

        grouped = data.groupby(by, sort=True, dropna=False, observed=True)
        codes = grouped.ngroup().to_numpy().astype(np.int64)
        keys = grouped.size().index.to_frame(index=False)
        return cls(codes=codes, keys=keys, weights=_validate_weights(wts, len(data)))

    def mean(self, values: np.ndarray) -> np.ndarray:
        """
        Weighted mean of `values` within each group.

        Args:
            values: (n,) row values

        Returns:
            (G,) group means
        """
        values = np.asarray(values, dtype=float)
        if values.shape[0] != self.n_rows:
            raise DimensionError(
                f"Cannot aggregate {values.shape[0]} values over {self.n_rows} rows",
                expected=self.n_rows,
                actual=values.shape[0],
            )
        totals = np.bincount(self.codes, weights=values * self.weights, minlength=self.n_groups)
        mass = np.bincount(self.codes, weights=self.weights, minlength=self.n_groups)
        with np.errstate(invalid="ignore", divide="ignore"):
            return totals / mass

    def reduce(self, func, *arrays) -> np.ndarray:
        """Apply `func(*group_slices, weights)` to each group; returns (G,)."""
        out = np.empty(self.n_groups)
        for g in range(self.n_groups):
            mask = self.codes == g
            out[g] = func(*(a[mask] for a in arrays), self.weights[mask])
        return out


def _validate_weights(wts, n: int) -> np.ndarray:
    if wts is None:
        return np.ones(n)
    weights = np.asarray(wts, dtype=float).ravel()
    if weights.shape[0] != n:
        raise DimensionError(
            f"Weights have length {weights.shape[0]}, expected {n}",
            expected=n,
            actual=weights.shape[0],
        )
    if not np.all(np.isfinite(weights)) or np.any(weights < 0):
        raise ConfigurationError("Weights must be finite and non-negative")
    return weights


def build_groups(labels: pd.DataFrame, by: ByLike, wts=None) -> Optional[GroupIndex]:
    """
    GroupIndex for a `by` argument.

    Args:
        labels: Row labels of the quantity vector
        by: None/False (no aggregation), True (overall), a column name or a list
        wts: Optional weights

    Returns:
        GroupIndex, or None when no aggregation is requested
    """
    if by is None or by is False:
        return None
    if by is True:
        return GroupIndex.overall(len(labels), _column_or_array(labels, wts))
    return GroupIndex.from_frame(labels, by, wts)


def _column_or_array(labels: pd.DataFrame, wts):
    if isinstance(wts, str):
        if wts not in labels.columns:
            raise ConfigurationError(f"Weight column {wts!r} not found")
        return labels[wts].to_numpy()
    return wts
