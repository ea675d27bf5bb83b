"""
Delta-method propagation of coefficient uncertainty.

For a quantity vector q(β) with Jacobian J (N × P) at the fitted β̂:

    Var(q_k) = J_k Σ J_kᵀ
    se_k     = sqrt(Var(q_k))
    z_k      = (q_k - null_k) / se_k
    p_k      = 2 (1 - F(|z_k|))
    CI_k     = q_k ± F⁻¹(1 - α/2) se_k

F is Student-t with the model's residual degrees of freedom when finite,
standard normal otherwise. Student-t with infinite df is the normal, so both
paths produce identical numbers at df = inf.
"""

from typing import Optional, Tuple

import numpy as np
import pandas as pd
from scipy import stats

from ..exceptions import ConfigurationError, DimensionError
from ..utils.linalg import row_variances

RESULT_COLUMNS = ["estimate", "std_error", "statistic", "df", "p_value", "conf_low", "conf_high"]


def check_conf_level(conf_level: float) -> float:
    """Validate a confidence level in (0, 1)."""
    try:
        level = float(conf_level)
    except (TypeError, ValueError):
        raise ConfigurationError(f"conf_level must be a number in (0, 1), got {conf_level!r}") from None
    if not 0 < level < 1:
        raise ConfigurationError(f"conf_level must be in (0, 1), got {conf_level!r}")
    return level


def _reference_tail(z: np.ndarray, df: np.ndarray) -> np.ndarray:
    finite = np.isfinite(df)
    out = stats.norm.sf(z)
    if finite.any():
        out = np.where(finite, stats.t.sf(z, np.where(finite, df, 1.0)), out)
    return out


def critical_values(conf_level: float, df: np.ndarray) -> np.ndarray:
    """Two-sided critical value at 1 - (1 - conf_level)/2, per row."""
    q = 1 - (1 - conf_level) / 2
    finite = np.isfinite(df)
    out = np.full(df.shape, stats.norm.ppf(q))
    if finite.any():
        out = np.where(finite, stats.t.ppf(q, np.where(finite, df, 1.0)), out)
    return out


def delta_method(
    estimate: np.ndarray,
    jacobian: np.ndarray,
    vcov: np.ndarray,
    df=np.inf,
    conf_level: float = 0.95,
    null=0.0,
    bounds: Optional[Tuple[np.ndarray, np.ndarray]] = None,
) -> pd.DataFrame:
    """
    Standard errors, statistics, p-values and confidence intervals.

    Args:
        estimate: (N,) point estimates
        jacobian: (N, P) Jacobian of the estimates w.r.t. the coefficients
        vcov: (P, P) coefficient covariance
        df: Degrees of freedom, scalar or (N,). np.inf selects the normal.
        conf_level: Confidence level in (0, 1)
        null: Null value(s) for the test statistic, scalar or (N,)
        bounds: Optional (low, high) arrays supplied by the model. Rows where
            both are finite use them verbatim instead of the symmetric interval.

    Returns:
        DataFrame with columns estimate, std_error, statistic, df, p_value,
        conf_low, conf_high
    """
    conf_level = check_conf_level(conf_level)
    estimate = np.asarray(estimate, dtype=float).ravel()
    jacobian = np.atleast_2d(np.asarray(jacobian, dtype=float))
    vcov = np.atleast_2d(np.asarray(vcov, dtype=float))
    n = estimate.shape[0]

    if jacobian.shape[0] != n:
        raise DimensionError(
            f"Jacobian has {jacobian.shape[0]} rows for {n} estimates",
            expected=n,
            actual=jacobian.shape[0],
        )
    if jacobian.shape[1] != vcov.shape[0]:
        raise DimensionError(
            f"Jacobian has {jacobian.shape[1]} columns but the covariance is "
            f"{vcov.shape[0]} x {vcov.shape[1]}",
            expected=vcov.shape[0],
            actual=jacobian.shape[1],
        )

    df = np.broadcast_to(np.asarray(df, dtype=float), (n,)).copy()
    null = np.broadcast_to(np.asarray(null, dtype=float), (n,))
    if np.any(df <= 0):
        raise ConfigurationError(f"Degrees of freedom must be positive, got {df[df <= 0][0]!r}")

    std_error = np.sqrt(row_variances(jacobian, vcov))

    with np.errstate(divide="ignore", invalid="ignore"):
        statistic = (estimate - null) / std_error
    p_value = 2 * _reference_tail(np.abs(statistic), df)

    crit = critical_values(conf_level, df)
    conf_low = estimate - crit * std_error
    conf_high = estimate + crit * std_error

    if bounds is not None:
        low, high = (np.asarray(b, dtype=float).ravel() for b in bounds)
        supplied = np.isfinite(low) & np.isfinite(high)
        conf_low = np.where(supplied, low, conf_low)
        conf_high = np.where(supplied, high, conf_high)

    return pd.DataFrame(
        {
            "estimate": estimate,
            "std_error": std_error,
            "statistic": statistic,
            "df": df,
            "p_value": p_value,
            "conf_low": conf_low,
            "conf_high": conf_high,
        }
    )
