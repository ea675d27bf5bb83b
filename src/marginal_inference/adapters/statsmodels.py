"""
Adapter for fitted statsmodels results.

Works with the formula API (smf.ols, smf.logit, smf.glm, ...) and the array
API (sm.OLS(y, X)). Predictions at perturbed coefficients go through
model.predict(params, exog), so the model is never refit.

Multinomial models (MNLogit) have a (k, J - 1) parameter matrix. It is
flattened column by column, one equation after the other, which is the order
of cov_params(); predictions are the (n, J) probabilities raveled by row.
"""

import re
from typing import Optional

import numpy as np
import pandas as pd
from patsy import NAAction, build_design_matrices
from statsmodels.base.model import Results
from statsmodels.base.wrapper import ResultsWrapper
from statsmodels.discrete.discrete_model import MultinomialModel
from statsmodels.regression.linear_model import RegressionResults

from ..exceptions import ConfigurationError, DimensionError
from .base import BaseAdapter
from .sandwich import ROBUST_TYPES, sandwich_vcov

PREDICTION_TYPES = ("response", "link")
_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_.]*")
_INTERCEPT_NAMES = ("const", "Intercept")


def is_statsmodels_result(model) -> bool:
    return isinstance(model, (Results, ResultsWrapper))


def _level_name(value) -> str:
    if isinstance(value, (float, np.floating)) and float(value).is_integer():
        return str(int(value))
    return str(value)


class StatsmodelsAdapter(BaseAdapter):
    """
    ModelAdapter for statsmodels results objects.

    Example:
        >>> import statsmodels.formula.api as smf
        >>> fit = smf.ols("y ~ x1 + x2", data=df).fit()
        >>> adapter = StatsmodelsAdapter(fit)
        >>> adapter.get_predictions(fit.params.to_numpy(), df.head())
    """

    def __init__(self, result, cluster=None):
        """
        Args:
            result: Fitted statsmodels results (wrapped or unwrapped)
            cluster: Cluster identifiers for vcov="cluster", either an (n,)
                array or the name of a column of the estimation data
        """
        if not is_statsmodels_result(result):
            raise ConfigurationError(f"Expected a statsmodels results object, got {type(result).__name__}")
        self.result = result
        self.model = result.model
        self.cluster = cluster
        self._design_info = getattr(self.model.data, "design_info", None)
        self._names = list(self.model.exog_names)
        self._levels = None
        self._coefficient_names = self._names
        if isinstance(self.model, MultinomialModel):
            ynames = getattr(self.model, "_ynames_map", None) or {}
            self._levels = [_level_name(ynames.get(j, j)) for j in range(int(self.model.J))]
            self._coefficient_names = [f"{level}:{name}" for level in self._levels[1:] for name in self._names]

    @property
    def is_formula(self) -> bool:
        return self._design_info is not None

    @property
    def is_multinomial(self) -> bool:
        return self._levels is not None

    def get_coefficients(self) -> pd.Series:
        params = np.asarray(self.result.params, dtype=float).ravel(order="F")
        return pd.Series(params, index=self._coefficient_names)

    def get_response_levels(self) -> Optional[list]:
        return self._levels

    def get_covariance(self, vcov=True) -> np.ndarray:
        if vcov is True or vcov is None:
            return np.asarray(self.result.cov_params(), dtype=float)
        if isinstance(vcov, str):
            return self._robust_covariance(vcov)
        raise ConfigurationError(f"Unsupported vcov specification {vcov!r}")

    def _robust_covariance(self, kind: str) -> np.ndarray:
        if kind not in ROBUST_TYPES:
            raise ConfigurationError(f"Unknown vcov {kind!r}. Choose from {list(ROBUST_TYPES)}")
        unwrapped = getattr(self.result, "_results", self.result)
        if not isinstance(unwrapped, RegressionResults):
            raise ConfigurationError(
                f"vcov={kind!r} is only available for linear regression results, "
                f"got {type(unwrapped).__name__}"
            )
        cluster = self.cluster
        if isinstance(cluster, str):
            data = self.get_data()
            if data is None or cluster not in data.columns:
                raise ConfigurationError(f"Cluster column {cluster!r} not found in the estimation data")
            cluster = data[cluster].to_numpy()
        return sandwich_vcov(self.model.wexog, unwrapped.wresid, kind=kind, cluster=cluster)

    def design_matrix(self, data: pd.DataFrame) -> np.ndarray:
        """Regressor matrix for `data`, in the column order of the coefficients."""
        if self.is_formula:
            (exog,) = build_design_matrices(
                [self._design_info], data, NA_action=NAAction(NA_types=[]), return_type="dataframe"
            )
            return exog.to_numpy(dtype=float)

        frame = data.copy()
        for name in _INTERCEPT_NAMES:
            if name in self._names and name not in frame.columns:
                frame[name] = 1.0
        missing = [n for n in self._names if n not in frame.columns]
        if missing:
            raise ConfigurationError(f"newdata is missing regressor column(s) {missing}")
        return frame[self._names].to_numpy(dtype=float)

    def get_predictions(self, coefficients, data, type="response"):
        if type not in PREDICTION_TYPES:
            raise ConfigurationError(f"Unknown prediction type {type!r}. Choose from {list(PREDICTION_TYPES)}")
        params = np.asarray(coefficients, dtype=float)
        exog = self.design_matrix(data)
        n_equations = 1 if self._levels is None else len(self._levels) - 1
        if exog.shape[1] * n_equations != params.shape[0]:
            raise DimensionError(
                f"Design matrix has {exog.shape[1]} columns for {params.shape[0]} coefficients",
                expected=params.shape[0],
                actual=exog.shape[1] * n_equations,
            )
        if self.is_multinomial:
            params = params.reshape(exog.shape[1], -1, order="F")
            if type == "link":
                return np.column_stack([np.zeros(len(exog)), exog @ params]).ravel()
            return np.asarray(self.model.predict(params, exog), dtype=float).ravel()
        if type == "link":
            return exog @ params
        return np.asarray(self.model.predict(params, exog), dtype=float).ravel()

    def get_degrees_of_freedom(self) -> float:
        unwrapped = getattr(self.result, "_results", self.result)
        if isinstance(unwrapped, RegressionResults):
            return float(unwrapped.df_resid)
        return np.inf

    def get_data(self) -> Optional[pd.DataFrame]:
        data = self.model.data
        frame = getattr(data, "frame", None)
        if frame is not None:
            row_labels = getattr(data, "row_labels", None)
            if row_labels is not None and len(row_labels) != len(frame):
                frame = frame.loc[row_labels]
            return frame.reset_index(drop=True)
        exog = pd.DataFrame(np.asarray(self.model.exog), columns=self._names)
        return exog.drop(columns=[n for n in _INTERCEPT_NAMES if n in exog.columns])

    def get_variables(self) -> Optional[list]:
        data = self.get_data()
        if not self.is_formula:
            return list(data.columns)
        variables = []
        for term in self._design_info.terms:
            for factor in term.factors:
                for token in _IDENTIFIER.findall(factor.name()):
                    if token in data.columns and token not in variables:
                        variables.append(token)
        return variables
