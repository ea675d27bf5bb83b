"""Sandwich covariance estimators for linear regression fits.

V = B M B, with bread B = (X'X)^{-1} and a meat M built from the residuals.

HC0   M = X' diag(e²) X
HC1   n / (n - p) · HC0
HC2   M = X' diag(e² / (1 - h)) X
HC3   M = X' diag(e² / (1 - h)²) X
CL    M = Σ_g (X_g' e_g)(X_g' e_g)', scaled by G/(G-1) · (n-1)/(n-p)

h is the leverage diag(X B X').
"""

from __future__ import annotations

import numpy as np
import pandas as pd
from scipy import linalg

from .._typing import Float64Array
from ..exceptions import ConfigurationError

ROBUST_TYPES = ("HC0", "HC1", "HC2", "HC3", "cluster")


def bread_matrix(X: Float64Array) -> Float64Array:
    """(X'X)^{-1} through a Cholesky factor, general solver if not PD."""
    XtX = X.T @ X
    identity = np.eye(XtX.shape[0])
    try:
        factor = linalg.cho_factor(XtX, lower=True)
        return linalg.cho_solve(factor, identity)
    except linalg.LinAlgError:
        return linalg.solve(XtX, identity, assume_a="sym")


def leverage(X: Float64Array, bread: Float64Array) -> Float64Array:
    return np.sum((X @ bread) * X, axis=1)


def _weighted_meat(X: Float64Array, weights: Float64Array) -> Float64Array:
    return X.T @ (X * weights[:, np.newaxis])


def cluster_meat(X: Float64Array, residuals: Float64Array, cluster) -> tuple:
    """Outer products of cluster scores; returns (meat, number of clusters)."""
    codes, _ = _factorize(cluster)
    n_clusters = int(codes.max()) + 1
    scores = np.zeros((n_clusters, X.shape[1]))
    np.add.at(scores, codes, X * residuals[:, np.newaxis])
    return scores.T @ scores, n_clusters


def _factorize(cluster):
    codes, uniques = pd.factorize(np.asarray(cluster), sort=True)
    if np.any(codes < 0):
        raise ConfigurationError("Cluster identifiers must not contain missing values")
    return codes, uniques


def sandwich_vcov(
    X: Float64Array,
    residuals: Float64Array,
    kind: str = "HC1",
    cluster=None,
) -> Float64Array:
    """Robust covariance matrix of OLS coefficients.

    Args:
        X: (n, p) design matrix
        residuals: (n,) residuals
        kind: One of "HC0", "HC1", "HC2", "HC3", "cluster"
        cluster: (n,) cluster identifiers, required for kind="cluster"

    Returns:
        (p, p) covariance matrix
    """
    X = np.asarray(X, dtype=float)
    residuals = np.asarray(residuals, dtype=float).ravel()
    n, p = X.shape
    bread = bread_matrix(X)
    e2 = residuals**2

    if kind == "HC0":
        meat = _weighted_meat(X, e2)
    elif kind == "HC1":
        meat = _weighted_meat(X, e2) * (n / (n - p))
    elif kind == "HC2":
        h = leverage(X, bread)
        meat = _weighted_meat(X, e2 / np.maximum(1 - h, 1e-10))
    elif kind == "HC3":
        h = leverage(X, bread)
        meat = _weighted_meat(X, e2 / np.maximum((1 - h) ** 2, 1e-10))
    elif kind == "cluster":
        if cluster is None:
            raise ConfigurationError("vcov='cluster' requires cluster identifiers")
        if len(cluster) != n:
            raise ConfigurationError(
                f"Cluster identifiers have length {len(cluster)}, expected {n}"
            )
        meat, G = cluster_meat(X, residuals, cluster)
        if G < 2:
            raise ConfigurationError(f"Clustered covariance needs at least 2 clusters, got {G}")
        meat = meat * (G / (G - 1)) * ((n - 1) / (n - p))
    else:
        raise ConfigurationError(
            f"Unknown covariance type {kind!r}. Choose from {list(ROBUST_TYPES)}"
        )
    return bread @ meat @ bread
