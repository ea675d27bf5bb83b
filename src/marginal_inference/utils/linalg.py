"""Linear algebra utilities with numerical stability."""

import warnings
from typing import Optional

import numpy as np

from ..exceptions import ConfigurationError, DimensionError, NumericalDegeneracyWarning


def validate_covariance(
    vcov,
    n_coefficients: int,
    names: Optional[list] = None,
    atol: float = 1e-8,
) -> np.ndarray:
    """
    Check a covariance matrix against the coefficient vector.

    DataFrames indexed by coefficient name are re-ordered to match `names`.
    Rank-deficient matrices are accepted; NaN entries are kept and surface
    later as NaN standard errors.

    Args:
        vcov: (P, P) array or DataFrame
        n_coefficients: Length of the coefficient vector
        names: Coefficient names, used to align a labelled DataFrame
        atol: Absolute tolerance for the symmetry check

    Returns:
        (P, P) float array
    """
    if hasattr(vcov, "loc") and names is not None and set(names) <= set(vcov.index):
        vcov = vcov.loc[names, names]
    matrix = np.asarray(vcov, dtype=float)
    if matrix.ndim == 0 and n_coefficients == 1:
        matrix = matrix.reshape(1, 1)
    if matrix.shape != (n_coefficients, n_coefficients):
        raise DimensionError(
            f"Covariance matrix has shape {matrix.shape}, expected "
            f"({n_coefficients}, {n_coefficients}) to match the coefficients",
            expected=(n_coefficients, n_coefficients),
            actual=matrix.shape,
        )
    finite = np.isfinite(matrix) & np.isfinite(matrix.T)
    scale = max(np.nanmax(np.abs(matrix)) if finite.any() else 0.0, 1.0)
    if not np.allclose(matrix[finite], matrix.T[finite], atol=atol * scale, rtol=1e-6):
        raise ConfigurationError("Covariance matrix is not symmetric")
    return matrix


def row_variances(jacobian: np.ndarray, vcov: np.ndarray) -> np.ndarray:
    """
    Compute diag(J Σ Jᵀ) without forming the full product.

    Negative or NaN variances (rank-deficient Σ, failed Jacobian columns)
    are returned as NaN and reported with a NumericalDegeneracyWarning.

    Args:
        jacobian: (N, P) Jacobian
        vcov: (P, P) covariance matrix

    Returns:
        (N,) variances
    """
    with np.errstate(invalid="ignore", over="ignore"):
        variances = np.einsum("ij,jk,ik->i", jacobian, vcov, jacobian)

    # Rounding can push an exact zero slightly negative
    scale = np.einsum("ij,jj,ij->i", np.abs(jacobian), np.abs(vcov), np.abs(jacobian))
    tiny = (variances < 0) & (variances > -1e-12 * np.maximum(scale, 1e-300))
    variances = np.where(tiny, 0.0, variances)

    bad = ~(variances >= 0)
    if bad.any():
        rows = np.flatnonzero(bad)
        shown = ", ".join(str(i) for i in rows[:10])
        warnings.warn(
            f"Variance is negative or undefined for {len(rows)} row(s) "
            f"(first: {shown}). Standard errors set to NaN; the covariance "
            "matrix may be rank-deficient.",
            NumericalDegeneracyWarning,
            stacklevel=3,
        )
        variances = np.where(bad, np.nan, variances)
    return variances

