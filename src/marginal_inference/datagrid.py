"""
Prediction grids.

typical:        one row per combination of the user-supplied values; every
                other column held at a typical value (mean for floats,
                rounded mean for integers, mode otherwise).
counterfactual: the full data replicated once per combination of the
                user-supplied values, with `rowidcf` pointing back to the
                original row.
"""

import warnings
from typing import Callable, Optional

import numpy as np
import pandas as pd

from .adapters import as_adapter
from .config import resolve_options
from .exceptions import ConfigurationError, ResourceLimitError

GRID_TYPES = ("typical", "counterfactual")


def _mode(series: pd.Series):
    modes = series.mode(dropna=True)
    if modes.empty:
        return np.nan
    return modes.iloc[0]


def _rounded_mean(series: pd.Series):
    return int(np.round(series.mean()))


def _column_kind(series: pd.Series) -> str:
    if pd.api.types.is_bool_dtype(series):
        return "logical"
    if isinstance(series.dtype, pd.CategoricalDtype) or pd.api.types.is_object_dtype(series):
        return "categorical"
    if pd.api.types.is_integer_dtype(series):
        return "integer"
    if pd.api.types.is_float_dtype(series):
        return "numeric"
    return "other"


def _values_for(series: Optional[pd.Series], name: str, value) -> list:
    """User-supplied grid values as a list, validated against the column."""
    if callable(value):
        if series is None:
            raise ConfigurationError(f"Cannot apply a function to {name!r}: the column is not in the data")
        value = value(series)
    if isinstance(value, (pd.Series, pd.Index, np.ndarray)):
        values = list(value)
    elif isinstance(value, (list, tuple, set)):
        values = list(value)
    else:
        values = [value]
    if not values:
        raise ConfigurationError(f"No values supplied for {name!r}")
    if series is not None and isinstance(series.dtype, pd.CategoricalDtype):
        unknown = [v for v in values if v not in series.cat.categories]
        if unknown:
            raise ConfigurationError(
                f"Value(s) {unknown} are not levels of {name!r}. "
                f"Available: {list(series.cat.categories)}"
            )
    return values


def _restore_dtypes(grid: pd.DataFrame, data: pd.DataFrame) -> pd.DataFrame:
    for name in grid.columns:
        if name in data.columns and isinstance(data[name].dtype, pd.CategoricalDtype):
            original = data[name].cat
            grid[name] = pd.Categorical(grid[name], categories=original.categories, ordered=original.ordered)
    return grid


def _check_size(requested: float, limit: float) -> None:
    if requested > limit:
        raise ResourceLimitError(
            f"The requested grid has {requested:,.0f} rows, above the limit of {limit:,.0f}. "
            "Supply fewer values or raise max_grid_rows",
            requested=requested,
            limit=limit,
        )


def datagrid(
    newdata: Optional[pd.DataFrame] = None,
    model=None,
    grid_type: str = "typical",
    fun_numeric: Callable = np.mean,
    fun_integer: Callable = _rounded_mean,
    fun_categorical: Callable = _mode,
    fun_logical: Callable = _mode,
    fun_other: Callable = _mode,
    options=None,
    **at,
) -> pd.DataFrame:
    """
    Build a prediction grid.

    Args:
        newdata: Data the grid is based on (default: the model's data)
        model: Fitted model or adapter, used when newdata is None and to
            restrict typical grids to the model's regressors
        grid_type: "typical" or "counterfactual"
        fun_numeric: Summary of float columns (typical grids)
        fun_integer: Summary of integer columns
        fun_categorical: Summary of categorical and string columns
        fun_logical: Summary of boolean columns
        fun_other: Summary of any other column
        options: InferenceOptions (max_grid_rows)
        **at: Column values; scalars, sequences, or callables applied to
            the column (e.g. x=lambda s: s.quantile([0.25, 0.75]))

    Returns:
        DataFrame

    Example:
        >>> datagrid(model=fit, x1=[0, 1], group=["a", "b"])
    """
    options = resolve_options(options)
    if grid_type not in GRID_TYPES:
        raise ConfigurationError(f"grid_type must be one of {GRID_TYPES}, got {grid_type!r}")

    adapter = None
    if model is not None:
        adapter = as_adapter(model)
    if newdata is None:
        newdata = adapter.get_data() if adapter is not None else None
        if newdata is None:
            raise ConfigurationError("datagrid needs newdata or a model that carries its data")
    data = newdata.reset_index(drop=True)

    missing = [name for name in at if name not in data.columns]
    if missing:
        warnings.warn(f"Variable(s) {missing} are not in the data; they are added as given.", UserWarning, stacklevel=2)

    values = {name: _values_for(data[name] if name in data.columns else None, name, value) for name, value in at.items()}
    n_combinations = float(np.prod([len(v) for v in values.values()])) if values else 1.0

    if grid_type == "counterfactual":
        _check_size(len(data) * n_combinations, options.max_grid_rows)
        base = data.drop(columns=[name for name in values if name in data.columns])
        if values:
            combos = pd.MultiIndex.from_product(list(values.values()), names=list(values)).to_frame(index=False)
            grid = combos.merge(base, how="cross")
        else:
            grid = base.copy()
        grid["rowidcf"] = np.tile(np.arange(len(data)), int(n_combinations))
        ordered = [c for c in data.columns if c in grid.columns] + [c for c in grid.columns if c not in data.columns]
        return _restore_dtypes(grid[ordered], data)

    _check_size(n_combinations, options.max_grid_rows)
    columns = list(data.columns)
    if adapter is not None:
        variables = adapter.get_variables()
        if variables:
            columns = [c for c in columns if c in variables or c in values]

    summaries = {
        "numeric": fun_numeric,
        "integer": fun_integer,
        "categorical": fun_categorical,
        "logical": fun_logical,
        "other": fun_other,
    }
    typical = {
        name: summaries[_column_kind(data[name])](data[name])
        for name in columns
        if name not in values
    }
    if values:
        grid = pd.MultiIndex.from_product(list(values.values()), names=list(values)).to_frame(index=False)
    else:
        grid = pd.DataFrame(index=pd.RangeIndex(1))
    for name, value in typical.items():
        grid[name] = value
    ordered = [c for c in columns if c in grid.columns] + [c for c in grid.columns if c not in columns]
    return _restore_dtypes(grid[ordered].reset_index(drop=True), data)


def datagridcf(newdata: Optional[pd.DataFrame] = None, model=None, options=None, **at) -> pd.DataFrame:
    """Counterfactual grid: datagrid(..., grid_type="counterfactual")."""
    return datagrid(newdata=newdata, model=model, grid_type="counterfactual", options=options, **at)
