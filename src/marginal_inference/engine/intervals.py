"""
Credible intervals from posterior or bootstrap draws.

eti: equal-tailed interval, the [α/2, 1-α/2] empirical quantiles.
hdi: highest-density interval, the narrowest window of the sorted sample
     that still contains a fraction `mass` of the draws.
"""

from typing import Tuple

import numpy as np

from ..exceptions import ConfigurationError


def _check_mass(mass: float) -> None:
    if not 0 < mass < 1:
        raise ConfigurationError(f"Interval mass must be in (0, 1), got {mass!r}")


def eti(draws: np.ndarray, mass: float = 0.95) -> Tuple[float, float]:
    """
    Equal-tailed interval of a 1-D sample.

    Args:
        draws: (D,) sample
        mass: Probability mass inside the interval

    Returns:
        (low, high); (nan, nan) for an empty sample
    """
    _check_mass(mass)
    x = np.asarray(draws, dtype=float)
    x = x[~np.isnan(x)]
    if x.size == 0:
        return np.nan, np.nan
    alpha = 1 - mass
    low, high = np.quantile(x, [alpha / 2, 1 - alpha / 2])
    return float(low), float(high)


def hdi(draws: np.ndarray, mass: float = 0.95) -> Tuple[float, float]:
    """
    Highest-density interval of a 1-D sample.

    With n sorted draws, n - floor(n * mass) of them fall outside the
    interval. Every window that drops k from the bottom and the rest from the
    top is a candidate; the narrowest wins. When no candidate exists (tiny
    samples) the interval is [min, max].

    Args:
        draws: (D,) sample
        mass: Probability mass inside the interval

    Returns:
        (low, high); (nan, nan) for an empty sample
    """
    _check_mass(mass)
    x = np.asarray(draws, dtype=float)
    x = np.sort(x[~np.isnan(x)])
    n = x.size
    if n == 0:
        return np.nan, np.nan

    exclude = n - int(np.floor(n * mass))
    if exclude < 1 or exclude >= n:
        return float(x[0]), float(x[-1])

    lower = x[:exclude]
    upper = x[n - exclude:]
    best = int(np.argmin(upper - lower))
    return float(lower[best]), float(upper[best])


INTERVALS = {"eti": eti, "hdi": hdi}


def credible_interval(draws: np.ndarray, mass: float = 0.95, method: str = "eti") -> Tuple[float, float]:
    """Dispatch to eti or hdi by name."""
    try:
        func = INTERVALS[method]
    except KeyError:
        raise ConfigurationError(
            f"Unknown credible interval {method!r}. Use one of {list(INTERVALS)}"
        ) from None
    return func(draws, mass)
