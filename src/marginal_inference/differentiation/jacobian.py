"""
Jacobian computation via symmetric finite differences.

J[:, i] = (f(β + h_i e_i) - f(β - h_i e_i)) / (2 h_i)
h_i     = max(|β_i|, floor) * sqrt(machine epsilon)

Each column needs two evaluations of f, and each evaluation re-runs the full
prediction pipeline, so this loop dominates the cost of every request. The
columns are independent and can be dispatched to joblib workers.
"""

import warnings
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np

from .._typing import VectorFunction
from ..exceptions import (
    OUTPUT_LENGTH_ERROR,
    EvaluationError,
    MarginalInferenceError,
    NumericalDegeneracyWarning,
)
from ..utils.parallel import map_tasks

SQRT_EPS = np.sqrt(np.finfo(float).eps)


@dataclass
class JacobianResult:
    """Value and Jacobian of a vector function at one point."""

    value: np.ndarray  # (N,) f(x0)
    jacobian: np.ndarray  # (N, P)
    steps: np.ndarray  # (P,) effective step sizes
    failed: Tuple[int, ...] = ()  # columns filled with NaN (lenient mode)

    def __repr__(self) -> str:
        n, p = self.jacobian.shape
        return f"<JacobianResult: {n} x {p}, failed={list(self.failed)}>"


def step_sizes(x0: np.ndarray, step_floor: float = 1.0) -> np.ndarray:
    """
    Relative step sizes for central differences.

    The step is re-derived as (x + h) - x so that it is exactly
    representable at x.

    Args:
        x0: (P,) evaluation point
        step_floor: Lower bound on |x0_i| used for scaling

    Returns:
        (P,) positive steps
    """
    h = np.maximum(np.abs(x0), step_floor) * SQRT_EPS
    return (x0 + h) - x0


def _evaluate(fn: Callable, x: np.ndarray) -> np.ndarray:
    return np.atleast_1d(np.asarray(fn(x), dtype=float)).ravel()


def _difference_column(fn: Callable, x0: np.ndarray, index: int, step: float):
    """One Jacobian column. Returns (column, error) so failures stay per-column."""
    upper = x0.copy()
    lower = x0.copy()
    upper[index] += step
    lower[index] -= step
    try:
        f_upper = _evaluate(fn, upper)
        f_lower = _evaluate(fn, lower)
    except Exception as exc:  # reported by the caller, strict or lenient
        return None, exc
    if f_upper.shape != f_lower.shape:
        return None, EvaluationError(
            f"{f_upper.shape[0]} values above vs {f_lower.shape[0]} below",
            index=index,
            code=OUTPUT_LENGTH_ERROR,
        )
    return (f_upper - f_lower) / (upper[index] - lower[index]), None


def compute_jacobian(
    fn: VectorFunction,
    x0: np.ndarray,
    step_floor: float = 1.0,
    strict: bool = True,
    n_jobs: int = 1,
    backend: Optional[str] = None,
    verbose: bool = False,
    names: Optional[list] = None,
) -> JacobianResult:
    """
    Compute the Jacobian of a vector-valued function by central differences.

    `fn` must be pure: it is called 2P + 1 times on private copies of x0 and
    must return the same number of values every time.

    Args:
        fn: Function (P,) -> (N,)
        x0: (P,) evaluation point (typically the fitted coefficients)
        step_floor: Lower bound on |x0_i| used to size the steps
        strict: Raise on the first failed perturbed evaluation. If False the
            column becomes NaN and a NumericalDegeneracyWarning is emitted.
        n_jobs: joblib workers (1 = sequential)
        backend: joblib backend
        verbose: Show progress
        names: Coefficient names used in error messages

    Returns:
        JacobianResult with f(x0) and the (N, P) Jacobian

    Raises:
        EvaluationError: If f(x0) fails, if an output length changes under
            perturbation, or (strict mode) if any perturbed evaluation fails.
        MarginalInferenceError: Configuration and resource errors raised by
            `fn` propagate unchanged, strict or not.
    """
    x0 = np.asarray(x0, dtype=float).ravel().copy()
    p = x0.shape[0]

    try:
        value = _evaluate(fn, x0)
    except MarginalInferenceError:
        raise
    except Exception as exc:
        raise EvaluationError(f"Prediction failed at the fitted coefficients: {exc}") from exc

    steps = step_sizes(x0, step_floor)
    outputs = map_tasks(
        _difference_column,
        ((fn, x0, i, steps[i]) for i in range(p)),
        n_jobs=n_jobs,
        backend=backend,
        verbose=verbose,
        desc="Jacobian",
        total=p,
    )

    jacobian = np.empty((value.shape[0], p))
    failed = []
    for i, (column, error) in enumerate(outputs):
        label = names[i] if names is not None else i
        if error is not None:
            if isinstance(error, EvaluationError) and error.is_length_error:
                raise EvaluationError(
                    f"Output length changed under perturbation of coefficient {label!r}: {error}",
                    index=i,
                    code=OUTPUT_LENGTH_ERROR,
                ) from error
            if isinstance(error, MarginalInferenceError) and not isinstance(error, EvaluationError):
                raise error
            if strict:
                raise EvaluationError(
                    f"Prediction failed when perturbing coefficient {label!r}: {error}",
                    index=i,
                ) from error
            failed.append(i)
            jacobian[:, i] = np.nan
            continue
        if column.shape != value.shape:
            raise EvaluationError(
                f"Output length changed under perturbation of coefficient {label!r}: "
                f"{column.shape[0]} vs {value.shape[0]}",
                index=i,
                code=OUTPUT_LENGTH_ERROR,
            )
        jacobian[:, i] = column

    if failed:
        shown = [names[i] if names is not None else i for i in failed]
        warnings.warn(
            f"Prediction failed for perturbed coefficient(s) {shown}; "
            "the corresponding Jacobian columns are NaN.",
            NumericalDegeneracyWarning,
            stacklevel=2,
        )

    return JacobianResult(value=value, jacobian=jacobian, steps=steps, failed=tuple(failed))
