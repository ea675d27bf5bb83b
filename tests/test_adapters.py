"""Tests for model adapters and sandwich covariances."""

import numpy as np
import pandas as pd
import pytest
import statsmodels.api as sm

from marginal_inference import (
    CallableAdapter,
    ModelAdapter,
    StatsmodelsAdapter,
    as_adapter,
    hypotheses,
    predictions,
)
from marginal_inference.adapters import sandwich_vcov
from marginal_inference.exceptions import ConfigurationError, DimensionError


class TestCallableAdapter:
    """Test suite for CallableAdapter."""

    def test_array_coefficients_are_named(self):
        adapter = CallableAdapter([1.0, 2.0], vcov=np.eye(2))
        assert list(adapter.get_coefficients().index) == ["b1", "b2"]

    def test_needs_covariance_or_draws(self):
        with pytest.raises(ConfigurationError, match="covariance matrix or coefficient draws"):
            CallableAdapter([1.0, 2.0])

    def test_covariance_shape(self):
        with pytest.raises(DimensionError):
            CallableAdapter([1.0, 2.0], vcov=np.eye(3))

    def test_asymmetric_covariance(self):
        with pytest.raises(ConfigurationError, match="symmetric"):
            CallableAdapter([1.0, 2.0], vcov=np.array([[1.0, 0.5], [0.0, 1.0]]))

    def test_labelled_covariance_is_aligned(self):
        vcov = pd.DataFrame([[4.0, 0.0], [0.0, 1.0]], index=["b", "a"], columns=["b", "a"])
        adapter = CallableAdapter(pd.Series({"a": 1.0, "b": 2.0}), vcov=vcov)
        np.testing.assert_array_equal(np.diag(adapter.get_covariance()), [1.0, 4.0])

    def test_covariance_from_draws(self, seed):
        draws = np.random.default_rng(seed).normal(size=(200, 2))
        adapter = CallableAdapter([0.0, 0.0], draws=draws)
        np.testing.assert_allclose(adapter.get_covariance(), np.cov(draws, rowvar=False))

    def test_draw_columns(self):
        with pytest.raises(DimensionError):
            CallableAdapter([1.0, 2.0], draws=np.zeros((10, 3)))

    def test_string_vcov_rejected(self, known_adapter):
        with pytest.raises(ConfigurationError, match="CallableAdapter"):
            hypotheses(known_adapter, vcov="HC1")

    def test_missing_predict_fn(self, known_adapter):
        with pytest.raises(ConfigurationError, match="predict_fn"):
            predictions(known_adapter, newdata=pd.DataFrame({"x": [1.0]}))

    def test_model_supplied_bounds(self, linear_adapter, linear_data):
        def interval(coefficients, data, type, conf_level):
            return np.full(len(data), -10.0), np.full(len(data), 10.0)

        adapter = CallableAdapter(
            linear_adapter.get_coefficients(),
            vcov=linear_adapter.get_covariance(),
            predict_fn=linear_adapter._predict_fn,
            data=linear_data[["x1", "x2"]],
            interval_fn=interval,
        )

        result = predictions(adapter, newdata=linear_data.head(3))

        assert np.all(result["conf_low"] == -10.0)
        assert np.all(result["conf_high"] == 10.0)
        assert np.all(np.isfinite(result.std_error))

    def test_response_levels(self, known_adapter):
        adapter = CallableAdapter([1.0, 2.0], vcov=np.eye(2), levels=("low", "high"))

        assert adapter.get_response_levels() == ["low", "high"]
        assert known_adapter.get_response_levels() is None


class TestProtocol:
    """Test suite for protocol-only models."""

    class Model:
        def get_coefficients(self):
            return np.array([1.0, 3.0])

        def get_covariance(self, vcov=True):
            return np.diag([0.25, 1.0])

        def get_predictions(self, coefficients, data, type="response"):
            return coefficients[0] + coefficients[1] * data["x"].to_numpy()

        def get_degrees_of_freedom(self):
            return 20.0

        def get_posterior_draws(self):
            return None

    def test_is_model_adapter(self):
        assert isinstance(self.Model(), ModelAdapter)

    def test_wrapped_with_defaults(self):
        adapter = as_adapter(self.Model())

        assert adapter.get_data() is None
        assert adapter.get_prediction_bounds(None, None, "response", 0.95) is None

    def test_inference(self):
        result = predictions(self.Model(), newdata=pd.DataFrame({"x": [0.0, 1.0]}))

        np.testing.assert_allclose(result.estimate, [1.0, 4.0])
        np.testing.assert_allclose(result.std_error, [0.5, np.sqrt(1.25)], rtol=1e-6)
        assert np.all(result["df"] == 20.0)

    def test_unknown_model(self):
        with pytest.raises(ConfigurationError, match="No adapter"):
            as_adapter(object())


class TestStatsmodelsAdapter:
    """Test suite for StatsmodelsAdapter."""

    def test_formula_variables(self, ols_group_fit):
        adapter = StatsmodelsAdapter(ols_group_fit)
        assert set(adapter.get_variables()) == {"x1", "x2", "group"}

    def test_formula_data(self, ols_fit, linear_data):
        data = StatsmodelsAdapter(ols_fit).get_data()
        pd.testing.assert_frame_equal(data, linear_data.reset_index(drop=True))

    def test_array_api(self, linear_data):
        X = sm.add_constant(linear_data[["x1", "x2"]])
        fit = sm.OLS(linear_data["y"], X).fit()
        adapter = StatsmodelsAdapter(fit)

        assert list(adapter.get_data().columns) == ["x1", "x2"]
        result = predictions(fit, newdata=linear_data[["x1", "x2"]].head(4))
        np.testing.assert_allclose(result.estimate, fit.fittedvalues.to_numpy()[:4])

    def test_array_api_missing_column(self, linear_data):
        X = sm.add_constant(linear_data[["x1", "x2"]])
        fit = sm.OLS(linear_data["y"], X).fit()
        with pytest.raises(ConfigurationError, match="missing regressor"):
            predictions(fit, newdata=linear_data[["x1"]])

    def test_unknown_prediction_type(self, ols_fit):
        with pytest.raises(ConfigurationError, match="prediction type"):
            predictions(ols_fit, type="probability")

    def test_degrees_of_freedom(self, ols_fit, logit_fit):
        assert StatsmodelsAdapter(ols_fit).get_degrees_of_freedom() == ols_fit.df_resid
        assert StatsmodelsAdapter(logit_fit).get_degrees_of_freedom() == np.inf

    def test_cluster_column(self, ols_group_fit):
        adapter = StatsmodelsAdapter(ols_group_fit, cluster="nope")
        with pytest.raises(ConfigurationError, match="Cluster column"):
            adapter.get_covariance("cluster")

    def test_multinomial_coefficients_align_with_covariance(self, mnlogit_fit):
        adapter = StatsmodelsAdapter(mnlogit_fit)
        coefs = adapter.get_coefficients()

        assert adapter.is_multinomial
        assert adapter.get_response_levels() == ["0", "1", "2"]
        assert list(coefs.index) == ["1:Intercept", "1:x1", "2:Intercept", "2:x1"]
        assert adapter.resolve_covariance().shape == (4, 4)
        np.testing.assert_allclose(coefs.to_numpy(), np.asarray(mnlogit_fit.params).ravel(order="F"))
        se = mnlogit_fit.bse.to_numpy().ravel(order="F")
        np.testing.assert_allclose(np.sqrt(np.diag(adapter.get_covariance())), se)

    def test_multinomial_predictions_are_row_major(self, mnlogit_fit, multinomial_data):
        adapter = StatsmodelsAdapter(mnlogit_fit)
        head = multinomial_data.head(5)
        beta = adapter.get_coefficients().to_numpy()

        values = adapter.get_predictions(beta, head)

        np.testing.assert_allclose(values, np.asarray(mnlogit_fit.predict(head)).ravel())

    def test_multinomial_link_has_zero_baseline(self, mnlogit_fit, multinomial_data):
        adapter = StatsmodelsAdapter(mnlogit_fit)
        head = multinomial_data.head(3)
        b = mnlogit_fit.params.to_numpy()

        eta = adapter.get_predictions(adapter.get_coefficients().to_numpy(), head, type="link").reshape(3, 3)

        np.testing.assert_allclose(eta[:, 0], 0.0)
        np.testing.assert_allclose(eta[:, 1], b[0, 0] + b[1, 0] * head["x1"].to_numpy())
        np.testing.assert_allclose(eta[:, 2], b[0, 1] + b[1, 1] * head["x1"].to_numpy())

    def test_binary_model_has_no_levels(self, logit_fit):
        adapter = StatsmodelsAdapter(logit_fit)
        assert not adapter.is_multinomial
        assert adapter.get_response_levels() is None


class TestSandwich:
    """Test suite for sandwich_vcov."""

    def test_hc0_formula(self, seed):
        rng = np.random.default_rng(seed)
        X = np.column_stack([np.ones(50), rng.normal(size=50)])
        e = rng.normal(size=50)

        V = sandwich_vcov(X, e, kind="HC0")

        bread = np.linalg.inv(X.T @ X)
        expected = bread @ (X.T * e**2) @ X @ bread
        np.testing.assert_allclose(V, expected, rtol=1e-10)

    def test_cluster_needs_ids(self):
        with pytest.raises(ConfigurationError, match="requires cluster"):
            sandwich_vcov(np.eye(3), np.ones(3), kind="cluster")

    def test_single_cluster(self):
        X = np.column_stack([np.ones(4), np.arange(4.0)])
        with pytest.raises(ConfigurationError, match="at least 2 clusters"):
            sandwich_vcov(X, np.ones(4), kind="cluster", cluster=[1, 1, 1, 1])

    def test_unknown_kind(self):
        with pytest.raises(ConfigurationError):
            sandwich_vcov(np.eye(3), np.ones(3), kind="HC5")
