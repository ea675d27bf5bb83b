"""
Base classes for quantities of interest.

A quantity is a pure function q(β) -> (N,) together with a label frame that
describes each of its N rows (term, contrast, group keys, ...). The
differentiation engine calls it up to 2P + 1 times; it must not mutate its
inputs and must always return N values.

Quantities can optionally override jacobian() with a closed form. Returning
None falls back to finite differences.
"""

from typing import Callable, List, Optional, Sequence

import numpy as np
import pandas as pd

from ..exceptions import OUTPUT_LENGTH_ERROR, DimensionError, EvaluationError

_OPERATOR_CHARS = set(" +-*/()=,")


class BaseQuantity:
    """
    Base class for quantities of interest.

    Subclasses set `labels` and implement evaluate().
    """

    labels: pd.DataFrame
    name_columns: Optional[Sequence[str]] = None

    def evaluate(self, beta: np.ndarray) -> np.ndarray:
        """Must be implemented by subclasses."""
        raise NotImplementedError("Subclasses must implement evaluate()")

    def __call__(self, beta: np.ndarray) -> np.ndarray:
        values = np.atleast_1d(np.asarray(self.evaluate(beta), dtype=float)).ravel()
        if values.shape[0] != len(self):
            raise EvaluationError(
                f"{self.__class__.__name__} returned {values.shape[0]} values, expected {len(self)}",
                code=OUTPUT_LENGTH_ERROR,
            )
        return values

    def jacobian(self, beta: np.ndarray) -> Optional[np.ndarray]:
        """Default: use finite differences (return None)."""
        return None

    def bounds(self, beta: np.ndarray, conf_level: float) -> Optional[tuple]:
        """Default: no asymmetric intervals (return None)."""
        return None

    def __len__(self) -> int:
        return len(self.labels)

    def row_names(self) -> List[str]:
        """
        One name per row, used to reference rows in hypothesis formulas.

        Built from the label columns that actually vary between rows. A
        single-row quantity is named by its first name column.
        """
        columns = [c for c in (self.name_columns or self.labels.columns) if c in self.labels.columns]
        if not columns:
            return [f"b{i + 1}" for i in range(len(self))]
        frame = self.labels[columns].astype(str)
        varying = [c for c in columns if frame[c].nunique(dropna=False) > 1]
        if not varying:
            varying = columns[:1]
        if len(varying) == 1:
            return frame[varying[0]].tolist()
        return frame[varying].agg(", ".join, axis=1).tolist()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}: {len(self)} rows>"


class CustomQuantity(BaseQuantity):
    """
    Wrapper for a user-provided function of the coefficients.

    Example:
        >>> q = CustomQuantity(lambda b: np.array([b[1] / b[2]]), labels=["ratio"])
    """

    def __init__(
        self,
        fn: Callable[[np.ndarray], np.ndarray],
        labels,
        jacobian_fn: Optional[Callable[[np.ndarray], np.ndarray]] = None,
    ):
        """
        Args:
            fn: Function (P,) -> (N,)
            labels: DataFrame with N rows, or a list of N names
            jacobian_fn: Optional closed-form (P,) -> (N, P) Jacobian
        """
        self._fn = fn
        self._jacobian_fn = jacobian_fn
        if not isinstance(labels, pd.DataFrame):
            labels = pd.DataFrame({"term": list(labels)})
        self.labels = labels.reset_index(drop=True)

    def evaluate(self, beta):
        return self._fn(beta)

    def jacobian(self, beta):
        if self._jacobian_fn is None:
            return None
        return np.atleast_2d(np.asarray(self._jacobian_fn(beta), dtype=float))


class CoefficientQuantity(BaseQuantity):
    """The coefficients themselves: q(β) = β, with J = I."""

    name_columns = ("term",)

    def __init__(self, names: Sequence[str]):
        self.labels = pd.DataFrame({"term": [str(n) for n in names]})

    def evaluate(self, beta):
        beta = np.asarray(beta, dtype=float).ravel()
        if beta.shape[0] != len(self):
            raise DimensionError(
                f"Expected {len(self)} coefficients, got {beta.shape[0]}",
                expected=len(self),
                actual=beta.shape[0],
            )
        return beta.copy()

    def jacobian(self, beta):
        return np.eye(len(self))


def format_name(name: str) -> str:
    """Parenthesize names that contain operators or spaces."""
    name = str(name)
    if _OPERATOR_CHARS & set(name):
        return f"({name})"
    return name
