"""
Adjusted predictions and marginal means.

PredictionQuantity:    q(β) = predict(β, data)           one row per data row
                       q(β) = group_mean(predict(β, data)) with `by`
MarginalMeansQuantity: q(β) = [mean_{level}(predict(β, grid)) for each focal
                       variable and level], over a balanced grid

Multi-category models return one prediction per row per response level,
laid out row-major as an (n, K) matrix raveled. Every quantity is then
computed once per response level and the label frame gains a leading
"group" column naming the level.
"""

from typing import List, Optional, Sequence

import numpy as np
import pandas as pd

from ..engine.aggregate import GroupIndex
from ..exceptions import OUTPUT_LENGTH_ERROR, EvaluationError, MarginalInferenceError
from .base import BaseQuantity

RESPONSE_COLUMN = "group"


def _predict(adapter, beta, data, type, n_levels: int = 1) -> np.ndarray:
    """(n, K) prediction matrix; K is 1 unless the outcome is multi-category."""
    values = np.atleast_1d(np.asarray(adapter.get_predictions(beta, data, type), dtype=float)).ravel()
    if values.shape[0] != len(data) * n_levels:
        levels = f" and {n_levels} response levels" if n_levels > 1 else ""
        raise EvaluationError(
            f"Model returned {values.shape[0]} predictions for {len(data)} rows of data{levels}",
            code=OUTPUT_LENGTH_ERROR,
        )
    return values.reshape(len(data), n_levels)


def response_levels(adapter, data: pd.DataFrame, type: str = "response") -> Optional[List]:
    """
    Response levels of a multi-category model, or None for a single outcome.

    Adapters may report the levels through get_response_levels(). Otherwise
    their number is read off one prediction for the first row of `data` at
    the fitted coefficients, and the levels are numbered from 0.
    """
    levels = adapter.get_response_levels()
    if levels is None:
        if len(data) == 0:
            return None
        beta = adapter.get_coefficients().to_numpy(dtype=float)
        try:
            values = np.atleast_1d(np.asarray(adapter.get_predictions(beta, data.iloc[:1], type), dtype=float))
        except MarginalInferenceError:
            raise
        except Exception as exc:
            raise EvaluationError(f"Prediction failed at the fitted coefficients: {exc}") from exc
        if values.size == 0:
            raise EvaluationError("Model returned no predictions for one row of data", code=OUTPUT_LENGTH_ERROR)
        levels = list(range(values.size))
    levels = list(levels)
    return levels if len(levels) > 1 else None


def level_column(labels: pd.DataFrame) -> str:
    """Name of the response-level column; never shadows a data column."""
    name = RESPONSE_COLUMN
    while name in labels.columns:
        name = f"response_{name}"
    return name


def expand_levels(labels: pd.DataFrame, levels: Optional[List], column: Optional[str] = None) -> pd.DataFrame:
    """Repeat `labels` once per response level, with the level as first column."""
    if levels is None:
        return labels
    column = column or level_column(labels)
    frames = []
    for level in levels:
        frame = labels.copy()
        frame.insert(0, column, level)
        frames.append(frame)
    return pd.concat(frames, ignore_index=True)


class PredictionQuantity(BaseQuantity):
    """Predictions on a grid, optionally averaged within groups."""

    def __init__(
        self,
        adapter,
        data: pd.DataFrame,
        type: str = "response",
        groups: Optional[GroupIndex] = None,
    ):
        """
        Args:
            adapter: ModelAdapter
            data: Rows to predict for
            type: Prediction scale passed to the adapter
            groups: Optional GroupIndex over the rows of `data`
        """
        self.adapter = adapter
        self.data = data.reset_index(drop=True)
        self.type = type
        self.groups = groups
        self.levels = response_levels(adapter, self.data, type)
        self.n_levels = 1 if self.levels is None else len(self.levels)
        if groups is None:
            labels = self.data.copy()
            labels.insert(0, "rowid", np.arange(len(self.data)))
            name_columns = ("rowid",)
        else:
            labels = groups.keys.copy()
            name_columns = tuple(labels.columns)
        if self.levels is not None:
            column = level_column(labels)
            labels = expand_levels(labels, self.levels, column)
            name_columns = (column,) + name_columns
        self.labels = labels
        self.name_columns = name_columns

    def evaluate(self, beta):
        values = _predict(self.adapter, beta, self.data, self.type, self.n_levels)
        if self.groups is not None:
            return np.concatenate([self.groups.mean(values[:, k]) for k in range(self.n_levels)])
        return values.T.ravel()

    def bounds(self, beta, conf_level):
        if self.groups is not None or self.levels is not None:
            return None
        return self.adapter.get_prediction_bounds(beta, self.data, self.type, conf_level)


class MarginalMeansQuantity(BaseQuantity):
    """
    Marginal means of categorical focal variables.

    Predictions are made once on a balanced grid (every combination of the
    levels of the categorical regressors, other regressors at typical values)
    and averaged by each level of each focal variable.
    """

    def __init__(
        self,
        adapter,
        grid: pd.DataFrame,
        variables: Sequence[str],
        type: str = "response",
        wts=None,
    ):
        self.adapter = adapter
        self.grid = grid.reset_index(drop=True)
        self.type = type
        self.variables = list(variables)
        self.groups = [GroupIndex.from_frame(self.grid, v, wts) for v in self.variables]
        frames = []
        for variable, groups in zip(self.variables, self.groups):
            frames.append(
                pd.DataFrame({"term": variable, "value": groups.keys[variable].astype(object).to_numpy()})
            )
        labels = pd.concat(frames, ignore_index=True)
        self.levels = response_levels(adapter, self.grid, type)
        self.n_levels = 1 if self.levels is None else len(self.levels)
        self.name_columns = ("term", "value")
        if self.levels is not None:
            labels = expand_levels(labels, self.levels, RESPONSE_COLUMN)
            self.name_columns = (RESPONSE_COLUMN,) + self.name_columns
        self.labels = labels

    def evaluate(self, beta):
        values = _predict(self.adapter, beta, self.grid, self.type, self.n_levels)
        return np.concatenate(
            [g.mean(values[:, k]) for k in range(self.n_levels) for g in self.groups]
        )
