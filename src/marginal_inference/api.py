"""
Public API.

Every function takes a fitted model (a statsmodels result or any
ModelAdapter), builds a quantity of interest and runs one inference call:

    predictions     adjusted predictions, per row or averaged by group
    comparisons     contrasts between counterfactual predictions
    slopes          derivatives of predictions w.r.t. regressors
    hypotheses      tests on coefficients or on a previous result
    marginal_means  predictions averaged over a balanced grid

The avg_* variants average over the whole grid (by=True) unless `by` is set.
"""

from typing import Optional

import numpy as np
import pandas as pd

from .adapters.base import as_adapter
from .config import InferenceOptions, resolve_options
from .core.pipeline import apply_hypothesis, estimate_quantities
from .datagrid import datagrid, datagridcf
from .engine.aggregate import build_groups
from .exceptions import ConfigurationError, DimensionError
from .quantities.base import CoefficientQuantity
from .quantities.comparisons import (
    ComparisonQuantity,
    build_contrasts,
    is_categorical,
    levels_of,
    normalize_variables,
)
from .quantities.predictions import MarginalMeansQuantity, PredictionQuantity
from .results import Estimates

SLOPES = ("dydx", "dydxavg")


def _resolve_newdata(adapter, newdata, options: InferenceOptions) -> pd.DataFrame:
    if newdata is None:
        data = adapter.get_data()
        if data is None:
            raise ConfigurationError("newdata is required: the model does not carry its estimation data")
        return data.reset_index(drop=True)
    if isinstance(newdata, str):
        if newdata == "mean":
            return datagrid(model=adapter, options=options)
        if newdata == "median":
            return datagrid(model=adapter, fun_numeric=np.median, options=options)
        raise ConfigurationError(f"newdata must be a DataFrame, 'mean' or 'median', got {newdata!r}")
    if not isinstance(newdata, pd.DataFrame):
        raise ConfigurationError(f"newdata must be a DataFrame, got {type(newdata).__name__}")
    return newdata.reset_index(drop=True)


def _counterfactual_values(data: pd.DataFrame, variables) -> dict:
    """Grid values per variable: all levels, or Tukey's five numbers."""
    specs = normalize_variables(variables, None)
    values = {}
    for name, spec in specs.items():
        if name not in data.columns:
            raise ConfigurationError(f"Variable {name!r} not found in the data")
        if spec is not None:
            values[name] = spec
        elif is_categorical(data[name]):
            values[name] = levels_of(data[name])
        else:
            values[name] = np.unique(np.nanquantile(data[name].to_numpy(dtype=float), [0, 0.25, 0.5, 0.75, 1]))
    return values


def predictions(
    model,
    newdata=None,
    variables=None,
    by=None,
    type: str = "response",
    vcov=True,
    conf_level: float = 0.95,
    hypothesis=None,
    transform_post=None,
    wts=None,
    df: Optional[float] = None,
    options: Optional[InferenceOptions] = None,
) -> Estimates:
    """
    Adjusted predictions.

    Args:
        model: Fitted model or ModelAdapter
        newdata: DataFrame, "mean", "median", or None for the model's data
        variables: Counterfactual values: a name, a list of names, or a dict
            {name: values}. The grid is replicated for every combination.
        by: None (one row per grid row), True (overall mean), or column
            name(s) to average within
        type: Prediction scale ("response", "link", ...)
        vcov: True, a robust estimator name, or a covariance matrix
        conf_level: Confidence level in (0, 1)
        hypothesis: Hypothesis specification applied to the predictions
        transform_post: Callable or name applied to estimates and bounds
        wts: Weights for the averages (array or column name)
        df: Degrees of freedom override; np.inf for the normal reference
        options: InferenceOptions for this call

    Returns:
        Estimates
    """
    options = resolve_options(options)
    adapter = as_adapter(model)
    data = _resolve_newdata(adapter, newdata, options)
    if variables is not None:
        n_rows = len(data)
        data = datagridcf(data, options=options, **_counterfactual_values(data, variables))
        if wts is not None and not isinstance(wts, str):
            wts = np.asarray(wts, dtype=float).ravel()
            if wts.shape[0] != n_rows:
                raise DimensionError(
                    f"Weights have length {wts.shape[0]}, expected {n_rows}",
                    expected=n_rows,
                    actual=wts.shape[0],
                )
            # weights follow their original row into every counterfactual copy
            wts = wts[data["rowidcf"].to_numpy()]
    groups = build_groups(data, by, wts)
    quantity = PredictionQuantity(adapter, data, type=type, groups=groups)
    return estimate_quantities(
        adapter,
        quantity,
        vcov=vcov,
        conf_level=conf_level,
        hypothesis=hypothesis,
        transform_post=transform_post,
        df=df,
        options=options,
        kind="predictions",
    )


def comparisons(
    model,
    variables=None,
    newdata=None,
    comparison="difference",
    by=None,
    type: str = "response",
    vcov=True,
    conf_level: float = 0.95,
    hypothesis=None,
    transform_post=None,
    wts=None,
    df: Optional[float] = None,
    options: Optional[InferenceOptions] = None,
) -> Estimates:
    """
    Contrasts between counterfactual predictions.

    Args:
        model: Fitted model or ModelAdapter
        variables: Focal variable(s). A dict maps names to contrasts: for
            numeric variables a step (default 1, centered), "sd", "2sd",
            "iqr", "minmax", a (lo, hi) pair or a callable; for categorical
            variables "reference" (default), "pairwise", "sequential" or a
            (lo, hi) pair of levels. None uses every regressor.
        newdata: DataFrame, "mean", "median", or None for the model's data
        comparison: "difference", "ratio", "lnratio", "dydx", "lnor", their
            "avg" variants, or a callable fn(hi, lo)
        by: None, True or column name(s) of the data to average within
        type: Prediction scale
        vcov: Covariance specification
        conf_level: Confidence level in (0, 1)
        hypothesis: Hypothesis specification applied to the contrasts
        transform_post: Callable or name applied to estimates and bounds
        wts: Weights (array or column name)
        df: Degrees of freedom override
        options: InferenceOptions for this call

    Returns:
        Estimates
    """
    options = resolve_options(options)
    adapter = as_adapter(model)
    data = _resolve_newdata(adapter, newdata, options)
    contrasts = build_contrasts(data, normalize_variables(variables, adapter.get_variables()))
    quantity = ComparisonQuantity(
        adapter,
        data,
        contrasts,
        comparison=comparison,
        type=type,
        by=by,
        wts=wts,
        max_rows=options.max_grid_rows,
        beta=adapter.get_coefficients().to_numpy(dtype=float),
    )
    return estimate_quantities(
        adapter,
        quantity,
        vcov=vcov,
        conf_level=conf_level,
        hypothesis=hypothesis,
        transform_post=transform_post,
        df=df,
        options=options,
        kind="comparisons",
    )


def slopes(
    model,
    variables=None,
    newdata=None,
    slope: str = "dydx",
    eps: Optional[float] = None,
    by=None,
    type: str = "response",
    vcov=True,
    conf_level: float = 0.95,
    hypothesis=None,
    transform_post=None,
    wts=None,
    df: Optional[float] = None,
    options: Optional[InferenceOptions] = None,
) -> Estimates:
    """
    Partial derivatives of predictions with respect to regressors.

    Numeric variables use central differences x ± eps/2 with eps = 1e-4
    times the range of x unless given. Categorical variables report level
    contrasts against the reference level.

    Args:
        model: Fitted model or ModelAdapter
        variables: Focal variable(s); a dict may map names to their own eps
        newdata: DataFrame, "mean", "median", or None for the model's data
        slope: "dydx" or "dydxavg"
        eps: Step for numeric variables
        by: None, True or column name(s) to average within
        transform_post: Not supported for slopes; must be None

    Returns:
        Estimates
    """
    if slope not in SLOPES:
        raise ConfigurationError(f"slope must be one of {SLOPES}, got {slope!r}")
    if transform_post is not None:
        raise ConfigurationError(
            f"transform_post={transform_post!r} is not supported by slopes; "
            "use comparisons(..., comparison='dydx', transform_post=...) instead"
        )
    options = resolve_options(options)
    adapter = as_adapter(model)
    data = _resolve_newdata(adapter, newdata, options)
    contrasts = build_contrasts(
        data, normalize_variables(variables, adapter.get_variables()), slopes=True, eps=eps
    )
    quantity = ComparisonQuantity(
        adapter,
        data,
        contrasts,
        comparison=slope,
        type=type,
        by=by,
        wts=wts,
        max_rows=options.max_grid_rows,
    )
    return estimate_quantities(
        adapter,
        quantity,
        vcov=vcov,
        conf_level=conf_level,
        hypothesis=hypothesis,
        transform_post=transform_post,
        df=df,
        options=options,
        kind="slopes",
    )


def hypotheses(
    model,
    hypothesis=None,
    vcov=True,
    conf_level: Optional[float] = None,
    transform_post=None,
    df: Optional[float] = None,
    options: Optional[InferenceOptions] = None,
) -> Estimates:
    """
    Tests on model coefficients, or on the rows of a previous result.

    Args:
        model: Fitted model, ModelAdapter, or Estimates from an earlier call
        hypothesis: Formula ("b1 = b2"), weights, pattern name or null value
        vcov: Covariance specification (ignored for Estimates)
        conf_level: Confidence level (default 0.95, or that of the Estimates)
        transform_post: Callable or name applied to estimates and bounds
        df: Degrees of freedom override
        options: InferenceOptions for this call

    Returns:
        Estimates

    Example:
        >>> hypotheses(fit, "x1 = x2")
        >>> hypotheses(avg_slopes(fit), "pairwise")
    """
    if isinstance(model, Estimates):
        if transform_post is not None:
            raise ConfigurationError("transform_post is not supported when testing a previous result")
        return apply_hypothesis(model, hypothesis, conf_level=conf_level, df=df, options=options)

    adapter = as_adapter(model)
    quantity = CoefficientQuantity(adapter.get_coefficients().index)
    return estimate_quantities(
        adapter,
        quantity,
        vcov=vcov,
        conf_level=0.95 if conf_level is None else conf_level,
        hypothesis=hypothesis,
        transform_post=transform_post,
        df=df,
        options=options,
        kind="hypotheses",
    )


def marginal_means(
    model,
    variables=None,
    newdata=None,
    type: str = "response",
    vcov=True,
    conf_level: float = 0.95,
    hypothesis=None,
    transform_post=None,
    df: Optional[float] = None,
    options: Optional[InferenceOptions] = None,
) -> Estimates:
    """
    Marginal means of categorical regressors.

    Predictions are made on a balanced grid (every combination of the
    levels of all categorical regressors, numeric regressors at their mean)
    and averaged by each level of each focal variable.

    Args:
        model: Fitted model or ModelAdapter
        variables: Focal categorical variable(s); default all of them
        newdata: Data the grid is based on (default: the model's data)

    Returns:
        Estimates with one row per (term, value)
    """
    options = resolve_options(options)
    adapter = as_adapter(model)
    data = _resolve_newdata(adapter, newdata, options)
    regressors = adapter.get_variables() or list(data.columns)
    categorical = [v for v in regressors if v in data.columns and is_categorical(data[v])]
    if not categorical:
        raise ConfigurationError("marginal_means needs at least one categorical regressor")

    focal = list(normalize_variables(variables, categorical))
    bad = [v for v in focal if v not in categorical]
    if bad:
        raise ConfigurationError(f"Focal variable(s) {bad} are not categorical regressors. Available: {categorical}")

    grid = datagrid(data, model=adapter, options=options, **{v: levels_of(data[v]) for v in categorical})
    quantity = MarginalMeansQuantity(adapter, grid, focal, type=type)
    return estimate_quantities(
        adapter,
        quantity,
        vcov=vcov,
        conf_level=conf_level,
        hypothesis=hypothesis,
        transform_post=transform_post,
        df=df,
        options=options,
        kind="marginal_means",
    )


def avg_predictions(model, by=True, **kwargs) -> Estimates:
    """predictions averaged over the grid, or within `by` groups."""
    return predictions(model, by=by, **kwargs)


def avg_comparisons(model, by=True, **kwargs) -> Estimates:
    """comparisons averaged over the grid, or within `by` groups."""
    return comparisons(model, by=by, **kwargs)


def avg_slopes(model, by=True, **kwargs) -> Estimates:
    """slopes averaged over the grid, or within `by` groups."""
    return slopes(model, by=by, **kwargs)
