"""
Contrasts and slopes.

For each focal variable two counterfactual copies of the data are built, lo
and hi, that differ only in that variable. The comparison function maps the
two prediction vectors to the quantity:

    difference     hi - lo
    differenceavg  mean(hi - lo)
    ratio          hi / lo
    ratioavg       mean(hi) / mean(lo)
    lnratio        log(hi / lo)
    lnratioavg     mean(log(hi / lo))
    dydx           (hi - lo) / step
    dydxavg        mean((hi - lo) / step)
    lnor           log(odds(hi) / odds(lo))
    lnoravg        log(odds(mean(hi)) / odds(mean(lo)))

"avg" comparisons produce one row per group (or one overall row). Row-wise
comparisons with `by` are averaged within groups. All counterfactual copies
are stacked into one frame, so one evaluation of q(β) is one model call.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import numpy as np
import pandas as pd

from ..engine.aggregate import GroupIndex
from ..exceptions import OUTPUT_LENGTH_ERROR, ConfigurationError, EvaluationError, ResourceLimitError
from .base import BaseQuantity
from .predictions import _predict, expand_levels, level_column, response_levels


def _wmean(x, w):
    return np.sum(x * w) / np.sum(w)


def _odds(p):
    return p / (1 - p)


@dataclass(frozen=True)
class Comparison:
    """
    A named comparison function.

    fn(hi, lo, step, w) returns one value per row, or a single value when
    `average` is True.
    """

    name: str
    fn: Callable
    average: bool


COMPARISONS: Dict[str, Comparison] = {
    c.name: c
    for c in [
        Comparison("difference", lambda hi, lo, step, w: hi - lo, False),
        Comparison("differenceavg", lambda hi, lo, step, w: _wmean(hi - lo, w), True),
        Comparison("ratio", lambda hi, lo, step, w: hi / lo, False),
        Comparison("ratioavg", lambda hi, lo, step, w: _wmean(hi, w) / _wmean(lo, w), True),
        Comparison("lnratio", lambda hi, lo, step, w: np.log(hi / lo), False),
        Comparison("lnratioavg", lambda hi, lo, step, w: _wmean(np.log(hi / lo), w), True),
        Comparison("dydx", lambda hi, lo, step, w: (hi - lo) / step, False),
        Comparison("dydxavg", lambda hi, lo, step, w: _wmean((hi - lo) / step, w), True),
        Comparison("lnor", lambda hi, lo, step, w: np.log(_odds(hi) / _odds(lo)), False),
        Comparison(
            "lnoravg",
            lambda hi, lo, step, w: np.log(_odds(_wmean(hi, w)) / _odds(_wmean(lo, w))),
            True,
        ),
    ]
}


def resolve_comparison(comparison, sample: Optional[tuple] = None) -> Comparison:
    """
    Look up a comparison by name, or wrap a callable fn(hi, lo).

    A callable returning one value per row is row-wise; one returning a
    single value is an average. The sample (hi, lo) predictions at the fitted
    coefficients decide which.
    """
    if isinstance(comparison, Comparison):
        return comparison
    if isinstance(comparison, str):
        try:
            return COMPARISONS[comparison]
        except KeyError:
            raise ConfigurationError(
                f"Unknown comparison {comparison!r}. Choose from {list(COMPARISONS)} or pass a callable"
            ) from None
    if callable(comparison):
        average = False
        if sample is not None:
            hi, lo = sample
            out = np.atleast_1d(np.asarray(comparison(hi, lo), dtype=float))
            if out.shape[0] == 1 and hi.shape[0] != 1:
                average = True
            elif out.shape[0] != hi.shape[0]:
                raise ConfigurationError(
                    f"Custom comparison returned {out.shape[0]} values; expected 1 or {hi.shape[0]}"
                )
        name = getattr(comparison, "__name__", "custom")
        return Comparison(name, lambda hi, lo, step, w, _f=comparison: _f(hi, lo), average)
    raise ConfigurationError(f"comparison must be a string or a callable, got {comparison!r}")


@dataclass
class Contrast:
    """One focal-variable contrast: two counterfactual frames and the step."""

    term: str
    label: str
    lo: pd.DataFrame
    hi: pd.DataFrame
    step: np.ndarray


def is_categorical(series: pd.Series) -> bool:
    return (
        isinstance(series.dtype, pd.CategoricalDtype)
        or pd.api.types.is_bool_dtype(series)
        or pd.api.types.is_object_dtype(series)
        or pd.api.types.is_string_dtype(series)
    )


def levels_of(series: pd.Series) -> list:
    """Levels in model order: categories, [False, True], or sorted unique values."""
    if isinstance(series.dtype, pd.CategoricalDtype):
        return list(series.cat.categories)
    if pd.api.types.is_bool_dtype(series):
        return [False, True]
    return sorted(series.dropna().unique().tolist())


def assign(frame: pd.DataFrame, variable: str, values) -> pd.DataFrame:
    """Copy of `frame` with `variable` replaced, keeping categorical dtypes."""
    out = frame.copy()
    original = frame[variable]
    values = np.broadcast_to(np.asarray(values, dtype=object if is_categorical(original) else float), (len(frame),))
    if isinstance(original.dtype, pd.CategoricalDtype):
        out[variable] = pd.Categorical(values, categories=original.cat.categories, ordered=original.cat.ordered)
    elif pd.api.types.is_bool_dtype(original):
        out[variable] = values.astype(bool)
    else:
        out[variable] = values.copy()
    return out


def _format(value) -> str:
    if isinstance(value, (float, np.floating)):
        return f"{value:g}"
    return str(value)


def numeric_contrasts(data: pd.DataFrame, variable: str, spec) -> List[Contrast]:
    """
    Contrasts for a numeric variable.

    spec: step size d (x ± d/2), "sd", "2sd", "iqr", "minmax", a (lo, hi)
    pair, or a callable fn(x) -> (lo, hi).
    """
    x = data[variable].to_numpy(dtype=float)
    n = len(x)

    if callable(spec):
        lo, hi = spec(x)
        lo = np.broadcast_to(np.asarray(lo, dtype=float), (n,))
        hi = np.broadcast_to(np.asarray(hi, dtype=float), (n,))
        label = "custom"
    elif isinstance(spec, str):
        if spec == "sd":
            d = np.std(x, ddof=1)
            lo, hi, label = x - d / 2, x + d / 2, "+sd"
        elif spec == "2sd":
            d = np.std(x, ddof=1)
            lo, hi, label = x - d, x + d, "+2sd"
        elif spec == "iqr":
            q1, q3 = np.nanquantile(x, [0.25, 0.75])
            lo, hi, label = np.full(n, q1), np.full(n, q3), "Q3 - Q1"
        elif spec == "minmax":
            lo, hi, label = np.full(n, np.nanmin(x)), np.full(n, np.nanmax(x)), "Max - Min"
        else:
            raise ConfigurationError(
                f"Unknown contrast {spec!r} for numeric variable {variable!r}. "
                "Use a number, 'sd', '2sd', 'iqr', 'minmax', a (lo, hi) pair or a callable"
            )
    elif isinstance(spec, (tuple, list)) and len(spec) == 2:
        lo_value, hi_value = (float(v) for v in spec)
        lo, hi, label = np.full(n, lo_value), np.full(n, hi_value), f"{_format(hi_value)} - {_format(lo_value)}"
    elif np.isscalar(spec) and not isinstance(spec, bool):
        d = float(spec)
        lo, hi, label = x - d / 2, x + d / 2, f"+{_format(d)}"
    else:
        raise ConfigurationError(f"Invalid contrast {spec!r} for numeric variable {variable!r}")

    return [
        Contrast(
            term=variable,
            label=label,
            lo=assign(data, variable, lo),
            hi=assign(data, variable, hi),
            step=np.asarray(hi, dtype=float) - np.asarray(lo, dtype=float),
        )
    ]


def categorical_contrasts(data: pd.DataFrame, variable: str, spec="reference") -> List[Contrast]:
    """
    Contrasts between levels of a categorical or boolean variable.

    spec: "reference" (each level vs the first), "pairwise", "sequential",
    or an explicit (lo, hi) pair of levels.
    """
    levels = levels_of(data[variable])
    if isinstance(spec, str):
        if spec == "reference":
            pairs = [(levels[0], level) for level in levels[1:]]
        elif spec == "pairwise":
            pairs = [(levels[i], levels[j]) for i in range(len(levels)) for j in range(i + 1, len(levels))]
        elif spec == "sequential":
            pairs = list(zip(levels[:-1], levels[1:]))
        else:
            raise ConfigurationError(
                f"Unknown contrast {spec!r} for categorical variable {variable!r}. "
                "Use 'reference', 'pairwise', 'sequential' or a (lo, hi) pair"
            )
    elif isinstance(spec, (tuple, list)) and len(spec) == 2:
        unknown = [v for v in spec if v not in levels]
        if unknown:
            raise ConfigurationError(
                f"Level(s) {unknown} not found in {variable!r}. Available: {levels}"
            )
        pairs = [tuple(spec)]
    else:
        raise ConfigurationError(f"Invalid contrast {spec!r} for categorical variable {variable!r}")

    if not pairs:
        raise ConfigurationError(f"Variable {variable!r} has fewer than two levels")

    n = len(data)
    return [
        Contrast(
            term=variable,
            label=f"{_format(hi)} - {_format(lo)}",
            lo=assign(data, variable, [lo] * n),
            hi=assign(data, variable, [hi] * n),
            step=np.ones(n),
        )
        for lo, hi in pairs
    ]


def slope_contrasts(data: pd.DataFrame, variable: str, eps: Optional[float] = None) -> List[Contrast]:
    """
    Central-difference contrasts in a regressor: x ± eps/2.

    eps defaults to 1e-4 times the range of x. Categorical variables fall
    back to level contrasts against the reference (step 1).
    """
    if is_categorical(data[variable]):
        return categorical_contrasts(data, variable, "reference")
    x = data[variable].to_numpy(dtype=float)
    if eps is None:
        spread = np.nanmax(x) - np.nanmin(x) if len(x) else 0.0
        eps = 1e-4 * spread if spread > 0 else 1e-4
    return [
        Contrast(
            term=variable,
            label="dY/dX",
            lo=assign(data, variable, x - eps / 2),
            hi=assign(data, variable, x + eps / 2),
            step=np.full(len(x), float(eps)),
        )
    ]


def normalize_variables(variables, available: Optional[list]) -> Dict[str, object]:
    """Map a `variables` argument to {name: spec}, spec None meaning default."""
    if variables is None:
        if not available:
            raise ConfigurationError("No focal variables given and the model does not report any")
        return {v: None for v in available}
    if isinstance(variables, str):
        return {variables: None}
    if isinstance(variables, dict):
        return dict(variables)
    return {v: None for v in variables}


def build_contrasts(
    data: pd.DataFrame,
    variables: Dict[str, object],
    slopes: bool = False,
    eps: Optional[float] = None,
) -> List[Contrast]:
    """
    Contrasts for every focal variable.

    Args:
        data: Rows at which to compare
        variables: {name: spec}; spec None selects the default (step 1 or
            "reference"; for slopes, eps)
        slopes: Build central differences in the regressors
        eps: Slope step (default 1e-4 times the range)

    Returns:
        List of Contrast, in variable order
    """
    contrasts = []
    for variable, spec in variables.items():
        if variable not in data.columns:
            raise ConfigurationError(
                f"Variable {variable!r} not found in the data. Available: {list(data.columns)}"
            )
        if slopes:
            contrasts.extend(slope_contrasts(data, variable, spec if spec is not None else eps))
        elif is_categorical(data[variable]):
            contrasts.extend(categorical_contrasts(data, variable, "reference" if spec is None else spec))
        else:
            contrasts.extend(numeric_contrasts(data, variable, 1 if spec is None else spec))
    return contrasts


class ComparisonQuantity(BaseQuantity):
    """
    Stacked contrasts for one or more focal variables.

    The lo and hi frames of every contrast are concatenated once; each
    evaluation predicts the stacked frame in a single adapter call and
    applies the comparison contrast by contrast.
    """

    def __init__(
        self,
        adapter,
        data: pd.DataFrame,
        contrasts: List[Contrast],
        comparison="difference",
        type: str = "response",
        by=None,
        wts=None,
        max_rows: float = 1e9,
        beta: Optional[np.ndarray] = None,
    ):
        """
        Args:
            adapter: ModelAdapter
            data: Rows at which contrasts are evaluated
            contrasts: Output of build_contrasts
            comparison: Name in COMPARISONS or callable fn(hi, lo)
            type: Prediction scale
            by: None, True, a column name or a list of columns of `data`
            wts: Optional weights (array or column name of `data`)
            max_rows: Largest stacked frame allowed
            beta: Fitted coefficients, used to classify callable comparisons
        """
        if not contrasts:
            raise ConfigurationError("No contrasts to compute")
        self.adapter = adapter
        self.type = type
        self.contrasts = contrasts
        self.n = len(data)

        requested = 2 * self.n * len(contrasts)
        if requested > max_rows:
            raise ResourceLimitError(
                f"Comparisons need {requested:,} rows of counterfactual data, "
                f"above the limit of {max_rows:,.0f}",
                requested=requested,
                limit=max_rows,
            )
        self.stacked = pd.concat(
            [frame for c in contrasts for frame in (c.lo, c.hi)], ignore_index=True
        )
        self.levels = response_levels(adapter, data, type)
        self.n_levels = 1 if self.levels is None else len(self.levels)

        sample = None
        if callable(comparison) and not isinstance(comparison, Comparison) and beta is not None:
            preds = self._predict(beta)
            sample = (preds[self.n: 2 * self.n, 0], preds[: self.n, 0])
        self.comparison = resolve_comparison(comparison, sample)

        data = data.reset_index(drop=True)
        by = self._drop_label_columns(by)
        if by is None or by is False:
            self.groups = GroupIndex.overall(self.n, _weights(data, wts)) if self.comparison.average else None
        elif by is True:
            self.groups = GroupIndex.overall(self.n, _weights(data, wts))
        else:
            self.groups = GroupIndex.from_frame(data, by, wts)
        self._weights = self.groups.weights if self.groups is not None else np.ones(self.n)
        self.labels = self._build_labels(data)
        if self.groups is not None:
            self.name_columns = tuple(c for c in self.labels.columns if c != "rowid")
        elif self.levels is not None:
            self.name_columns = (self.labels.columns[0], "term", "contrast", "rowid")
        else:
            self.name_columns = ("term", "contrast", "rowid")

    @staticmethod
    def _drop_label_columns(by):
        if by is None or isinstance(by, bool):
            return by
        by = [by] if isinstance(by, str) else list(by)
        by = [b for b in by if b not in ("term", "contrast")]
        return by if by else True

    def _build_labels(self, data: pd.DataFrame) -> pd.DataFrame:
        frames = []
        for c in self.contrasts:
            if self.groups is None:
                frame = data.copy()
                frame.insert(0, "rowid", np.arange(self.n))
            else:
                frame = self.groups.keys.copy()
            frame.insert(0, "contrast", c.label)
            frame.insert(0, "term", c.term)
            frames.append(frame)
        if self.levels is not None:
            column = level_column(frames[0])
            frames = [expand_levels(frame, self.levels, column) for frame in frames]
        return pd.concat(frames, ignore_index=True)

    def _predict(self, beta) -> np.ndarray:
        return _predict(self.adapter, beta, self.stacked, self.type, self.n_levels)

    def _apply(self, hi, lo, step) -> np.ndarray:
        fn = self.comparison.fn
        if self.groups is None:
            out = np.atleast_1d(np.asarray(fn(hi, lo, step, self._weights), dtype=float))
        elif self.comparison.average:
            out = self.groups.reduce(fn, hi, lo, step)
        else:
            out = self.groups.mean(np.asarray(fn(hi, lo, step, self._weights), dtype=float))
        return out

    def evaluate(self, beta):
        preds = self._predict(beta)
        expected = self.n if self.groups is None else self.groups.n_groups
        outputs = []
        for k, c in enumerate(self.contrasts):
            offset = 2 * k * self.n
            for level in range(self.n_levels):
                lo = preds[offset: offset + self.n, level]
                hi = preds[offset + self.n: offset + 2 * self.n, level]
                out = self._apply(hi, lo, c.step)
                if out.shape[0] != expected:
                    raise EvaluationError(
                        f"Comparison {self.comparison.name!r} returned {out.shape[0]} values for "
                        f"{c.term!r}, expected {expected}",
                        code=OUTPUT_LENGTH_ERROR,
                    )
                outputs.append(out)
        return np.concatenate(outputs)


def _weights(data: pd.DataFrame, wts):
    if isinstance(wts, str):
        if wts not in data.columns:
            raise ConfigurationError(f"Weight column {wts!r} not found")
        return data[wts].to_numpy()
    return wts
