"""
Base protocol and classes for model adapters.

A ModelAdapter is the only thing the inference core knows about a fitted
model. It exposes the coefficients, their covariance, predictions at
arbitrary (counterfactual) coefficient vectors, the residual degrees of
freedom, and optionally coefficient draws.

Optional capabilities return None to signal "not available", in which case
the core falls back to its generic path (e.g. symmetric intervals instead of
model-supplied bounds).
"""

from typing import Callable, Optional, Protocol, Sequence, runtime_checkable

import numpy as np
import pandas as pd

from ..exceptions import ConfigurationError, DimensionError
from ..utils.linalg import validate_covariance


@runtime_checkable
class ModelAdapter(Protocol):
    """
    Protocol for fitted-model adapters.

    Implementations must make get_predictions pure: calling it with a
    perturbed coefficient vector must not refit or mutate the model, and the
    number of returned values must only depend on `data`.
    """

    def get_coefficients(self) -> pd.Series:
        """Fitted coefficients indexed by name."""
        ...

    def get_covariance(self, vcov=True) -> np.ndarray:
        """
        Coefficient covariance.

        Args:
            vcov: True for the model's default estimator, a string naming a
                robust estimator ("HC0".."HC3", "cluster"), or a matrix used
                verbatim.

        Returns:
            (P, P) covariance aligned with get_coefficients()
        """
        ...

    def get_predictions(self, coefficients: np.ndarray, data: pd.DataFrame, type: str = "response") -> np.ndarray:
        """
        Predictions for every row of `data` at the given coefficients.

        Args:
            coefficients: (P,) coefficient vector, possibly perturbed
            data: Rows to predict for
            type: Prediction scale ("response", "link", ...)

        Returns:
            (n,) predictions, or (n * K,) for K response levels laid out as
            an (n, K) array raveled row by row
        """
        ...

    def get_degrees_of_freedom(self) -> float:
        """Residual degrees of freedom; np.inf selects the normal reference."""
        ...

    def get_posterior_draws(self) -> Optional[np.ndarray]:
        """(D, P) coefficient draws, or None for covariance-based inference."""
        ...


class BaseAdapter:
    """
    Base class for model adapters.

    Provides defaults for the optional capabilities. Subclasses implement
    get_coefficients, get_covariance and get_predictions.
    """

    def get_coefficients(self) -> pd.Series:
        """Must be implemented by subclasses."""
        raise NotImplementedError("Subclasses must implement get_coefficients()")

    def get_covariance(self, vcov=True) -> np.ndarray:
        """Must be implemented by subclasses."""
        raise NotImplementedError("Subclasses must implement get_covariance()")

    def get_predictions(self, coefficients: np.ndarray, data: pd.DataFrame, type: str = "response") -> np.ndarray:
        """Must be implemented by subclasses."""
        raise NotImplementedError("Subclasses must implement get_predictions()")

    def get_degrees_of_freedom(self) -> float:
        """Default: normal reference distribution."""
        return np.inf

    def get_posterior_draws(self) -> Optional[np.ndarray]:
        """Default: no draws."""
        return None

    def get_data(self) -> Optional[pd.DataFrame]:
        """Default: no estimation data; callers must pass newdata."""
        return None

    def get_variables(self) -> Optional[list]:
        """Default: every column of the estimation data is a regressor."""
        data = self.get_data()
        return None if data is None else list(data.columns)

    def get_prediction_bounds(
        self, coefficients: np.ndarray, data: pd.DataFrame, type: str, conf_level: float
    ) -> Optional[tuple]:
        """Default: no model-supplied intervals."""
        return None

    def get_response_levels(self) -> Optional[list]:
        """Default: unknown; inferred from the length of one prediction."""
        return None

    def resolve_covariance(self, vcov=True) -> np.ndarray:
        """get_covariance, validated against the coefficients."""
        coefs = self.get_coefficients()
        if isinstance(vcov, (np.ndarray, pd.DataFrame)):
            matrix = vcov
        else:
            matrix = self.get_covariance(vcov)
        return validate_covariance(matrix, len(coefs), names=list(coefs.index))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(n_coefficients={len(self.get_coefficients())})"


class CallableAdapter(BaseAdapter):
    """
    Adapter built from plain values and a prediction function.

    Enables inference for any model whose predictions can be written as
    predict_fn(coefficients, data, type).
    """

    def __init__(
        self,
        coefficients,
        vcov=None,
        predict_fn: Optional[Callable[[np.ndarray, pd.DataFrame, str], np.ndarray]] = None,
        df: float = np.inf,
        draws: Optional[np.ndarray] = None,
        data: Optional[pd.DataFrame] = None,
        variables: Optional[Sequence[str]] = None,
        interval_fn: Optional[Callable] = None,
        levels: Optional[Sequence] = None,
    ):
        """
        Create an adapter from coefficients and a prediction function.

        Args:
            coefficients: Series indexed by name, dict, or array (named b1..bP)
            vcov: (P, P) covariance, required unless `draws` is given
            predict_fn: Function (coefficients, data, type) -> (n,) predictions.
                Optional when only coefficient-level hypotheses are needed.
            df: Residual degrees of freedom (np.inf for normal)
            draws: Optional (D, P) coefficient draws
            data: Optional estimation data (default grid for predictions)
            variables: Optional list of regressor names
            interval_fn: Optional function (coefficients, data, type,
                conf_level) -> (low, high) supplying exact intervals
            levels: Names of the response levels when predict_fn returns
                (n * K,) values for a multi-category outcome. Numbered from
                0 when omitted.
        """
        self._coefficients = _as_series(coefficients)
        p = len(self._coefficients)
        if vcov is None and draws is None:
            raise ConfigurationError("CallableAdapter needs a covariance matrix or coefficient draws")
        self._vcov = None if vcov is None else validate_covariance(vcov, p, list(self._coefficients.index))
        if draws is not None:
            draws = np.atleast_2d(np.asarray(draws, dtype=float))
            if draws.shape[1] != p:
                raise DimensionError(
                    f"Draws have {draws.shape[1]} columns, expected {p}",
                    expected=p,
                    actual=draws.shape[1],
                )
        self._draws = draws
        self._predict_fn = predict_fn
        self._df = float(df) if df is not None else np.inf
        self._data = data
        self._variables = list(variables) if variables is not None else None
        self._interval_fn = interval_fn
        self._levels = list(levels) if levels is not None else None

    def get_coefficients(self) -> pd.Series:
        return self._coefficients

    def get_covariance(self, vcov=True) -> np.ndarray:
        if isinstance(vcov, str):
            raise ConfigurationError(
                f"CallableAdapter cannot compute vcov={vcov!r}; pass a covariance matrix instead"
            )
        if self._vcov is None:
            return np.cov(self._draws, rowvar=False).reshape(len(self._coefficients), -1)
        return self._vcov

    def get_predictions(self, coefficients, data, type="response"):
        if self._predict_fn is None:
            raise ConfigurationError("CallableAdapter was created without predict_fn")
        return np.asarray(self._predict_fn(coefficients, data, type), dtype=float)

    def get_degrees_of_freedom(self) -> float:
        return self._df

    def get_posterior_draws(self) -> Optional[np.ndarray]:
        return self._draws

    def get_data(self) -> Optional[pd.DataFrame]:
        return self._data

    def get_variables(self) -> Optional[list]:
        if self._variables is not None:
            return self._variables
        return super().get_variables()

    def get_prediction_bounds(self, coefficients, data, type, conf_level):
        if self._interval_fn is None:
            return None
        return self._interval_fn(coefficients, data, type, conf_level)

    def get_response_levels(self) -> Optional[list]:
        return self._levels


def _as_series(coefficients) -> pd.Series:
    if isinstance(coefficients, pd.Series):
        return coefficients.astype(float)
    if isinstance(coefficients, dict):
        return pd.Series(coefficients, dtype=float)
    values = np.atleast_1d(np.asarray(coefficients, dtype=float)).ravel()
    return pd.Series(values, index=[f"b{i + 1}" for i in range(values.shape[0])])


def as_adapter(model) -> BaseAdapter:
    """
    Wrap a fitted model in the matching adapter.

    Args:
        model: A ModelAdapter, or a fitted statsmodels results object

    Returns:
        Adapter instance

    Raises:
        ConfigurationError: If no adapter handles the model
    """
    if isinstance(model, BaseAdapter):
        return model
    if isinstance(model, ModelAdapter):
        return _ProtocolAdapter(model)

    from .statsmodels import StatsmodelsAdapter, is_statsmodels_result

    if is_statsmodels_result(model):
        return StatsmodelsAdapter(model)

    raise ConfigurationError(
        f"No adapter for model of type {type(model).__name__}. "
        "Wrap it in CallableAdapter or implement the ModelAdapter protocol."
    )


class _ProtocolAdapter(BaseAdapter):
    """Gives protocol-only objects the BaseAdapter defaults."""

    def __init__(self, model):
        self._model = model

    def get_coefficients(self):
        return _as_series(self._model.get_coefficients())

    def get_covariance(self, vcov=True):
        return self._model.get_covariance(vcov)

    def get_predictions(self, coefficients, data, type="response"):
        return self._model.get_predictions(coefficients, data, type)

    def get_degrees_of_freedom(self):
        return self._model.get_degrees_of_freedom()

    def get_posterior_draws(self):
        return self._model.get_posterior_draws()

    def get_data(self):
        getter = getattr(self._model, "get_data", None)
        return getter() if getter is not None else None

    def get_variables(self):
        getter = getattr(self._model, "get_variables", None)
        return getter() if getter is not None else super().get_variables()

    def get_prediction_bounds(self, coefficients, data, type, conf_level):
        getter = getattr(self._model, "get_prediction_bounds", None)
        if getter is None:
            return None
        return getter(coefficients, data, type, conf_level)

    def get_response_levels(self):
        getter = getattr(self._model, "get_response_levels", None)
        return getter() if getter is not None else None
