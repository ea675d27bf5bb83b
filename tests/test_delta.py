"""Tests for delta-method propagation."""

import numpy as np
import pytest
from scipy import stats

from marginal_inference.engine import delta_method
from marginal_inference.exceptions import (
    ConfigurationError,
    DimensionError,
    NumericalDegeneracyWarning,
)


@pytest.fixture
def problem(seed):
    """Random estimates, Jacobian and a positive-definite covariance."""
    rng = np.random.default_rng(seed)
    J = rng.normal(size=(4, 3))
    L = rng.normal(size=(3, 3))
    vcov = L @ L.T + 0.1 * np.eye(3)
    estimate = rng.normal(size=4)
    return estimate, J, vcov


class TestDeltaMethod:
    """Test suite for delta_method."""

    def test_standard_errors(self, problem):
        """se_k = sqrt(J_k Σ J_kᵀ)."""
        estimate, J, vcov = problem

        frame = delta_method(estimate, J, vcov)

        expected = np.sqrt(np.diag(J @ vcov @ J.T))
        np.testing.assert_allclose(frame["std_error"], expected, rtol=1e-12)

    def test_linear_combination(self, problem):
        """se(w·q) = sqrt(w J Σ Jᵀ wᵀ)."""
        estimate, J, vcov = problem
        w = np.array([1.0, -2.0, 0.5, 0.0])

        frame = delta_method(np.array([w @ estimate]), (w @ J)[None, :], vcov)

        expected = np.sqrt(w @ J @ vcov @ J.T @ w)
        assert frame["std_error"].iloc[0] == pytest.approx(expected, rel=1e-12)

    def test_normal_reference(self, problem):
        """df = inf uses the normal distribution."""
        estimate, J, vcov = problem

        frame = delta_method(estimate, J, vcov, df=np.inf, conf_level=0.9)

        se = frame["std_error"].to_numpy()
        z = estimate / se
        crit = stats.norm.ppf(0.95)
        np.testing.assert_allclose(frame["statistic"], z)
        np.testing.assert_allclose(frame["p_value"], 2 * stats.norm.sf(np.abs(z)))
        np.testing.assert_allclose(frame["conf_low"], estimate - crit * se)
        np.testing.assert_allclose(frame["conf_high"], estimate + crit * se)
        assert np.all(np.isinf(frame["df"]))

    def test_student_reference(self, problem):
        """Finite df uses Student-t."""
        estimate, J, vcov = problem

        frame = delta_method(estimate, J, vcov, df=12)

        se = frame["std_error"].to_numpy()
        z = estimate / se
        np.testing.assert_allclose(frame["p_value"], 2 * stats.t.sf(np.abs(z), 12))
        np.testing.assert_allclose(frame["conf_high"], estimate + stats.t.ppf(0.975, 12) * se)

    def test_large_df_approaches_normal(self, problem):
        """Student-t with very large df is numerically the normal."""
        estimate, J, vcov = problem

        normal = delta_method(estimate, J, vcov, df=np.inf)
        student = delta_method(estimate, J, vcov, df=1e10)

        np.testing.assert_allclose(student["p_value"], normal["p_value"], rtol=1e-6)
        np.testing.assert_allclose(student["conf_low"], normal["conf_low"], rtol=1e-6)

    def test_intervals_contain_estimate(self, problem):
        """Symmetric intervals satisfy conf_low <= estimate <= conf_high."""
        estimate, J, vcov = problem

        frame = delta_method(estimate, J, vcov)

        assert np.all(frame["conf_low"] <= frame["estimate"])
        assert np.all(frame["estimate"] <= frame["conf_high"])

    def test_null_value(self, problem):
        """The statistic is centred on the null value."""
        estimate, J, vcov = problem

        frame = delta_method(estimate, J, vcov, null=1.5)

        np.testing.assert_allclose(frame["statistic"], (estimate - 1.5) / frame["std_error"])

    def test_negative_variance_gives_nan(self):
        """Negative variances become NaN standard errors with a warning."""
        with pytest.warns(NumericalDegeneracyWarning):
            frame = delta_method(np.array([1.0]), np.array([[1.0]]), np.array([[-1.0]]))

        assert np.isnan(frame["std_error"].iloc[0])
        assert np.isnan(frame["p_value"].iloc[0])

    def test_rank_deficient_covariance(self):
        """A singular covariance does not raise."""
        vcov = np.array([[1.0, 1.0], [1.0, 1.0]])
        J = np.array([[1.0, -1.0], [1.0, 0.0]])

        frame = delta_method(np.array([0.0, 2.0]), J, vcov)

        assert frame["std_error"].iloc[0] == pytest.approx(0.0, abs=1e-12)
        assert frame["std_error"].iloc[1] == pytest.approx(1.0)

    def test_asymmetric_bounds_used_verbatim(self, problem):
        """Supplied bounds replace the symmetric interval where finite."""
        estimate, J, vcov = problem
        low = np.array([-5.0, np.nan, -5.0, np.nan])
        high = np.array([5.0, np.nan, 6.0, np.nan])

        frame = delta_method(estimate, J, vcov, bounds=(low, high))
        symmetric = delta_method(estimate, J, vcov)

        assert frame["conf_low"].iloc[0] == -5.0
        assert frame["conf_high"].iloc[2] == 6.0
        assert frame["conf_low"].iloc[1] == symmetric["conf_low"].iloc[1]

    @pytest.mark.parametrize("level", [0, 1, 1.5, -0.2])
    def test_invalid_conf_level(self, problem, level):
        """conf_level outside (0, 1) is a configuration error."""
        estimate, J, vcov = problem
        with pytest.raises(ConfigurationError):
            delta_method(estimate, J, vcov, conf_level=level)

    def test_dimension_mismatch(self, problem):
        """Jacobian columns must match the covariance."""
        estimate, J, _ = problem
        with pytest.raises(DimensionError):
            delta_method(estimate, J, np.eye(2))
