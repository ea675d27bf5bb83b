"""
Named comparison patterns as weight matrices.

Each pattern over N estimates produces a (K, N) matrix W and K labels:

    pairwise      +1 at i, -1 at j for every i < j        K = N(N-1)/2
    revpairwise   +1 at j, -1 at i for every i < j        K = N(N-1)/2
    reference     +1 at i, -1 at the first row, i > 0     K = N - 1
    revreference  +1 at the first row, -1 at i, i > 0     K = N - 1
    sequential    +1 at i + 1, -1 at i                    K = N - 1
    meandev       row i minus the mean of all rows        K = N
    meanotherdev  row i minus the mean of the other rows  K = N
"""

from typing import List, Sequence, Tuple

import numpy as np

from ..exceptions import ConfigurationError
from ..quantities.base import format_name


def _pairs(n: int):
    return [(i, j) for i in range(n) for j in range(i + 1, n)]


def _contrast_rows(n: int, pairs, names) -> Tuple[np.ndarray, List[str]]:
    weights = np.zeros((len(pairs), n))
    labels = []
    for k, (plus, minus) in enumerate(pairs):
        weights[k, plus] = 1.0
        weights[k, minus] = -1.0
        labels.append(f"{names[plus]} - {names[minus]}")
    return weights, labels


def pairwise(names):
    n = len(names)
    return _contrast_rows(n, _pairs(n), names)


def revpairwise(names):
    n = len(names)
    return _contrast_rows(n, [(j, i) for i, j in _pairs(n)], names)


def reference(names):
    n = len(names)
    return _contrast_rows(n, [(i, 0) for i in range(1, n)], names)


def revreference(names):
    n = len(names)
    return _contrast_rows(n, [(0, i) for i in range(1, n)], names)


def sequential(names):
    n = len(names)
    return _contrast_rows(n, [(i + 1, i) for i in range(n - 1)], names)


def meandev(names):
    n = len(names)
    weights = np.eye(n) - 1.0 / n
    return weights, [f"{name} - Mean" for name in names]


def meanotherdev(names):
    n = len(names)
    weights = np.eye(n) * (1 + 1.0 / (n - 1)) - 1.0 / (n - 1)
    return weights, [f"{name} - Mean (other)" for name in names]


PATTERNS = {
    "pairwise": pairwise,
    "revpairwise": revpairwise,
    "reference": reference,
    "revreference": revreference,
    "sequential": sequential,
    "meandev": meandev,
    "meanotherdev": meanotherdev,
}


def pattern_matrix(name: str, row_names: Sequence[str]) -> Tuple[np.ndarray, List[str]]:
    """
    Weight matrix and labels for a named pattern.

    Args:
        name: Pattern name (see PATTERNS)
        row_names: One name per estimate

    Returns:
        ((K, N) weights, K labels)
    """
    if name not in PATTERNS:
        raise ConfigurationError(f"Unknown hypothesis pattern {name!r}. Choose from {list(PATTERNS)}")
    if len(row_names) < 2:
        raise ConfigurationError(
            f"Hypothesis pattern {name!r} needs at least 2 estimates, got {len(row_names)}"
        )
    names = [format_name(n) for n in row_names]
    return PATTERNS[name](names)
