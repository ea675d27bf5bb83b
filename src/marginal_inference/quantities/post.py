"""
Post-transformations of estimates.

A post-transform maps the estimate and the interval bounds through a scalar
function after inference. Standard errors, statistics and p-values are left
on the untransformed scale, so they describe the quantity before the map.
"""

from typing import Callable, Optional

import numpy as np
import pandas as pd
from scipy.special import expit, logit

from ..exceptions import ConfigurationError

TRANSFORMS = {
    "exp": np.exp,
    "log": np.log,
    "ln": np.log,
    "invlogit": expit,
    "logit": logit,
    "identity": lambda x: x,
}


def resolve_transform(transform) -> Optional[Callable]:
    """
    A callable from a transform_post argument.

    Args:
        transform: None, a callable, or a name in TRANSFORMS

    Returns:
        Callable, or None when no transform is requested
    """
    if transform is None:
        return None
    if isinstance(transform, str):
        try:
            return TRANSFORMS[transform]
        except KeyError:
            raise ConfigurationError(
                f"Unknown transform_post {transform!r}. Choose from {list(TRANSFORMS)} or pass a callable"
            ) from None
    if callable(transform):
        return transform
    raise ConfigurationError(f"transform_post must be a string or a callable, got {transform!r}")


def apply_post(frame: pd.DataFrame, transform: Callable) -> pd.DataFrame:
    """
    Map estimate, conf_low and conf_high through `transform`.

    Bounds are re-ordered afterwards so that decreasing maps still give
    conf_low <= conf_high.
    """
    out = frame.copy()
    with np.errstate(all="ignore"):
        estimate = np.asarray(transform(out["estimate"].to_numpy(dtype=float)), dtype=float)
        low = np.asarray(transform(out["conf_low"].to_numpy(dtype=float)), dtype=float)
        high = np.asarray(transform(out["conf_high"].to_numpy(dtype=float)), dtype=float)
    if estimate.shape != (len(out),):
        raise ConfigurationError(
            f"transform_post must be elementwise; returned shape {estimate.shape} for {len(out)} rows"
        )
    out["estimate"] = estimate
    out["conf_low"] = np.fmin(low, high)
    out["conf_high"] = np.fmax(low, high)
    return out
