"""Pytest configuration and fixtures for marginal_inference tests."""

import numpy as np
import pandas as pd
import pytest
import statsmodels.formula.api as smf

from marginal_inference import CallableAdapter


@pytest.fixture
def seed():
    """Random seed for reproducibility."""
    return 42


@pytest.fixture
def linear_data(seed):
    """Generate linear DGP data: y = 1 + 0.5 x1 - 0.3 x2 + group effect + e.

    group has levels a, b, c with effects 0, 0.4, -0.2.
    """
    rng = np.random.default_rng(seed)
    n = 300
    x1 = rng.normal(size=n)
    x2 = rng.normal(size=n)
    group = rng.choice(["a", "b", "c"], size=n)
    effect = pd.Series(group).map({"a": 0.0, "b": 0.4, "c": -0.2}).to_numpy()
    y = 1.0 + 0.5 * x1 - 0.3 * x2 + effect + rng.normal(scale=0.5, size=n)
    return pd.DataFrame({"y": y, "x1": x1, "x2": x2, "group": group})


@pytest.fixture
def ols_fit(linear_data):
    """OLS fit of y ~ x1 + x2."""
    return smf.ols("y ~ x1 + x2", data=linear_data).fit()


@pytest.fixture
def ols_group_fit(linear_data):
    """OLS fit with a categorical regressor."""
    return smf.ols("y ~ x1 + x2 + group", data=linear_data).fit()


@pytest.fixture
def logit_data(seed):
    """Generate logit DGP: P(y=1) = expit(-0.5 + 1.0 x1 + 0.5 x2)."""
    rng = np.random.default_rng(seed)
    n = 500
    x1 = rng.normal(size=n)
    x2 = rng.normal(size=n)
    p = 1 / (1 + np.exp(-(-0.5 + 1.0 * x1 + 0.5 * x2)))
    y = rng.binomial(1, p)
    return pd.DataFrame({"y": y, "x1": x1, "x2": x2})


@pytest.fixture
def logit_fit(logit_data):
    """Logit fit of y ~ x1 + x2."""
    return smf.logit("y ~ x1 + x2", data=logit_data).fit(disp=0)


@pytest.fixture
def multinomial_data(seed):
    """Generate a three-category outcome y in {0, 1, 2}.

    log(P(1)/P(0)) = 0.3 + 0.8 x1, log(P(2)/P(0)) = -0.2 - 0.6 x1.
    """
    rng = np.random.default_rng(seed)
    n = 500
    x1 = rng.normal(size=n)
    eta = np.column_stack([np.zeros(n), 0.3 + 0.8 * x1, -0.2 - 0.6 * x1])
    p = np.exp(eta) / np.exp(eta).sum(axis=1, keepdims=True)
    y = np.array([rng.choice(3, p=row) for row in p])
    return pd.DataFrame({"y": y, "x1": x1})


@pytest.fixture
def mnlogit_fit(multinomial_data):
    """Multinomial logit fit of y ~ x1 with level 0 as baseline."""
    return smf.mnlogit("y ~ x1", data=multinomial_data).fit(disp=0)


@pytest.fixture
def known_adapter():
    """Two independent estimates with known variances (se 0.2 and 0.3)."""
    return CallableAdapter(
        coefficients=pd.Series({"alpha": 1.0, "beta": 2.0}),
        vcov=np.diag([0.04, 0.09]),
    )


def linear_predict(coefficients, data, type="response"):
    """b0 + b1 x1 + b2 x2."""
    b = np.asarray(coefficients)
    return b[0] + b[1] * data["x1"].to_numpy() + b[2] * data["x2"].to_numpy()


@pytest.fixture
def linear_adapter(linear_data):
    """CallableAdapter for a linear predictor with a fixed covariance."""
    vcov = np.array(
        [
            [0.010, 0.002, 0.000],
            [0.002, 0.020, 0.001],
            [0.000, 0.001, 0.015],
        ]
    )
    return CallableAdapter(
        coefficients=pd.Series({"Intercept": 1.0, "x1": 0.5, "x2": -0.3}),
        vcov=vcov,
        predict_fn=linear_predict,
        data=linear_data[["x1", "x2", "group"]],
        variables=["x1", "x2"],
    )
