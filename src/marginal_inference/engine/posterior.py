"""
Empirical summaries for models that supply coefficient draws.

Bayesian posteriors and bootstrap replicates are handled the same way: the
quantity function is evaluated once per coefficient draw, and each quantity
is summarized by a central tendency and a credible interval over its draws.
Standard errors, statistics and p-values are not defined in this mode.
"""

from typing import Callable

import numpy as np
import pandas as pd

from ..config import InferenceOptions
from ..exceptions import DimensionError, EvaluationError, MarginalInferenceError
from ..utils.parallel import map_tasks
from .delta import check_conf_level
from .intervals import credible_interval


def _evaluate_draw(fn: Callable, beta: np.ndarray, index: int) -> np.ndarray:
    try:
        return np.atleast_1d(np.asarray(fn(beta.copy()), dtype=float)).ravel()
    except MarginalInferenceError:
        raise
    except Exception as exc:
        raise EvaluationError(f"Prediction failed at coefficient draw {index}: {exc}", index=index) from exc


def evaluate_draws(
    fn: Callable[[np.ndarray], np.ndarray],
    coefficient_draws: np.ndarray,
    n_outputs: int,
    options: InferenceOptions,
) -> np.ndarray:
    """
    Evaluate a quantity function at every coefficient draw.

    Args:
        fn: Quantity function (P,) -> (N,)
        coefficient_draws: (D, P) draws
        n_outputs: Expected N
        options: Parallelism and progress settings

    Returns:
        (N, D) quantity draws
    """
    coefficient_draws = np.atleast_2d(np.asarray(coefficient_draws, dtype=float))
    outputs = map_tasks(
        _evaluate_draw,
        ((fn, beta, d) for d, beta in enumerate(coefficient_draws)),
        n_jobs=options.n_jobs,
        backend=options.backend,
        verbose=options.verbose,
        desc="Draws",
        total=coefficient_draws.shape[0],
    )
    for d, out in enumerate(outputs):
        if out.shape[0] != n_outputs:
            raise EvaluationError(
                f"Coefficient draw {d} produced {out.shape[0]} values, expected {n_outputs}",
                index=d,
            )
    return np.column_stack(outputs) if outputs else np.empty((n_outputs, 0))


def summarize_draws(
    draws: np.ndarray,
    conf_level: float = 0.95,
    options: InferenceOptions = None,
) -> pd.DataFrame:
    """
    Point estimates and credible intervals from quantity draws.

    Args:
        draws: (N, D) draws, one row per quantity
        conf_level: Probability mass of the interval
        options: Supplies posterior_center and credible_interval

    Returns:
        DataFrame with the standard result columns; std_error, statistic,
        df and p_value are NaN
    """
    conf_level = check_conf_level(conf_level)
    options = options if options is not None else InferenceOptions()
    draws = np.atleast_2d(np.asarray(draws, dtype=float))
    if draws.shape[1] == 0:
        raise DimensionError("No draws to summarize", expected=">= 1", actual=0)

    n = draws.shape[0]
    estimate = np.empty(n)
    conf_low = np.empty(n)
    conf_high = np.empty(n)
    for k in range(n):
        row = draws[k]
        row = row[~np.isnan(row)]
        estimate[k] = options.posterior_center(row) if row.size else np.nan
        conf_low[k], conf_high[k] = credible_interval(row, conf_level, options.credible_interval)

    nan = np.full(n, np.nan)
    return pd.DataFrame(
        {
            "estimate": estimate,
            "std_error": nan,
            "statistic": nan,
            "df": nan,
            "p_value": nan,
            "conf_low": conf_low,
            "conf_high": conf_high,
        }
    )
