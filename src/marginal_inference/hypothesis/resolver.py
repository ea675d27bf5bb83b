"""
Resolution of hypothesis specifications.

Every specification becomes K rows over the N current estimates. Affine rows
keep exact weights W (K × N) and propagate as

    estimate' = W · estimate,   J' = W · J

Non-linear formula rows g(b) are differentiated numerically at the current
estimates and propagate through the chain rule J' = (∂g/∂b) · J.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .._typing import HypothesisLike
from ..config import InferenceOptions
from ..differentiation.jacobian import compute_jacobian
from ..exceptions import ConfigurationError, DimensionError
from .parser import Node, parse_formula
from .patterns import PATTERNS, pattern_matrix


@dataclass
class HypothesisRow:
    """One tested combination: exact weights, or a non-linear expression."""

    label: str
    null: float = 0.0
    weights: Optional[np.ndarray] = None
    expression: Optional[Node] = None
    constant: float = 0.0

    @property
    def is_linear(self) -> bool:
        return self.weights is not None


@dataclass
class ResolvedHypothesis:
    """
    Hypothesis rows over N estimates.

    Attributes:
        rows: One HypothesisRow per output row
        keep_labels: True for the scalar-null case, where the rows are the
            estimates themselves and keep their original labels
    """

    rows: List[HypothesisRow]
    n: int
    keep_labels: bool = False
    _nonlinear: List[int] = field(default_factory=list, init=False, repr=False)

    def __post_init__(self):
        self._nonlinear = [k for k, row in enumerate(self.rows) if not row.is_linear]

    def __len__(self) -> int:
        return len(self.rows)

    @property
    def null(self) -> np.ndarray:
        return np.array([row.null for row in self.rows], dtype=float)

    @property
    def labels(self) -> Optional[pd.DataFrame]:
        if self.keep_labels:
            return None
        return pd.DataFrame({"term": [row.label for row in self.rows]})

    @property
    def is_linear(self) -> bool:
        return not self._nonlinear

    def apply(self, values: np.ndarray) -> np.ndarray:
        """
        Map estimates (N,) or draws (N, D) to hypothesis rows (K,) or (K, D).
        """
        values = np.asarray(values, dtype=float)
        if values.shape[0] != self.n:
            raise DimensionError(
                f"Hypothesis expects {self.n} estimates, got {values.shape[0]}",
                expected=self.n,
                actual=values.shape[0],
            )
        out = np.empty((len(self.rows),) + values.shape[1:])
        for k, row in enumerate(self.rows):
            if row.is_linear:
                out[k] = row.weights @ values + row.constant
            else:
                out[k] = np.broadcast_to(row.expression.evaluate(values), values.shape[1:])
        return out

    def gradient(self, estimate: np.ndarray, options: Optional[InferenceOptions] = None) -> np.ndarray:
        """(K, N) derivative of the hypothesis rows w.r.t. the estimates."""
        options = options if options is not None else InferenceOptions()
        G = np.zeros((len(self.rows), self.n))
        for k, row in enumerate(self.rows):
            if row.is_linear:
                G[k] = row.weights
        if self._nonlinear:
            expressions = [self.rows[k].expression for k in self._nonlinear]

            def nonlinear(b):
                return np.array([np.asarray(e.evaluate(b), dtype=float) for e in expressions])

            result = compute_jacobian(nonlinear, estimate, step_floor=options.step_floor, strict=True)
            G[self._nonlinear] = result.jacobian
        return G

    def propagate(
        self, estimate: np.ndarray, jacobian: np.ndarray, options: Optional[InferenceOptions] = None
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Hypothesis estimates (K,) and Jacobian (K, P)."""
        estimate = np.asarray(estimate, dtype=float)
        return self.apply(estimate), self.gradient(estimate, options) @ jacobian


def _from_formulas(formulas: Sequence[str], row_names: Sequence[str], n: int) -> ResolvedHypothesis:
    rows = []
    for formula in formulas:
        equation = parse_formula(formula, row_names)
        expression, null = equation.tested(n)
        form = expression.linear_form(n)
        if form is not None:
            weights, constant = form
            rows.append(HypothesisRow(equation.text, null, weights=weights, constant=constant))
        else:
            rows.append(HypothesisRow(equation.text, null, expression=expression))
    return ResolvedHypothesis(rows, n)


def _from_matrix(matrix, n: int) -> ResolvedHypothesis:
    if isinstance(matrix, pd.DataFrame):
        names = [str(c) for c in matrix.columns]
        weights = matrix.to_numpy(dtype=float)
    else:
        weights = np.asarray(matrix, dtype=float)
        names = None
    if weights.ndim == 1:
        if weights.shape[0] != n:
            raise DimensionError(
                f"Hypothesis weight vector has length {weights.shape[0]}, expected {n}",
                expected=n,
                actual=weights.shape[0],
            )
        return ResolvedHypothesis([HypothesisRow("custom", weights=weights)], n)
    if weights.ndim != 2 or weights.shape[0] != n:
        raise DimensionError(
            f"Hypothesis weight matrix has shape {weights.shape}, expected ({n}, K)",
            expected=(n, "K"),
            actual=weights.shape,
        )
    if names is None:
        names = [str(k + 1) for k in range(weights.shape[1])]
    rows = [HypothesisRow(names[k], weights=weights[:, k].copy()) for k in range(weights.shape[1])]
    return ResolvedHypothesis(rows, n)


def resolve_hypothesis(
    spec: HypothesisLike, row_names: Sequence[str], n: Optional[int] = None
) -> Optional[ResolvedHypothesis]:
    """
    Resolve a hypothesis specification over the current estimates.

    Args:
        spec: None; a number (null value for every estimate); a weight
            vector (N,); a weight matrix (N, K) as ndarray or DataFrame; a
            formula string or list of formula strings; or a pattern name
            ("pairwise", "reference", "sequential", ...)
        row_names: One name per estimate
        n: Number of estimates (defaults to len(row_names))

    Returns:
        ResolvedHypothesis, or None when spec is None
    """
    n = len(row_names) if n is None else n
    if spec is None:
        return None

    if isinstance(spec, bool):
        raise ConfigurationError(f"Invalid hypothesis {spec!r}")

    if isinstance(spec, (int, float, np.integer, np.floating)):
        rows = [HypothesisRow(str(name), float(spec), weights=np.eye(n)[i]) for i, name in enumerate(row_names)]
        return ResolvedHypothesis(rows, n, keep_labels=True)

    if isinstance(spec, str):
        if spec in PATTERNS:
            weights, labels = pattern_matrix(spec, row_names)
            return ResolvedHypothesis([HypothesisRow(label, weights=w) for label, w in zip(labels, weights)], n)
        return _from_formulas([spec], row_names, n)

    if isinstance(spec, (list, tuple)) and spec and all(isinstance(s, str) for s in spec):
        return _from_formulas(list(spec), row_names, n)

    if isinstance(spec, (np.ndarray, pd.DataFrame, pd.Series, list, tuple)):
        if isinstance(spec, pd.Series):
            spec = spec.to_numpy()
        try:
            return _from_matrix(spec, n)
        except (TypeError, ValueError) as exc:
            if isinstance(exc, ConfigurationError):
                raise
            raise ConfigurationError(f"Invalid hypothesis weights: {exc}") from exc

    raise ConfigurationError(f"Unsupported hypothesis specification of type {type(spec).__name__}")
