"""Tests for grouping and averaging."""

import numpy as np
import pandas as pd
import pytest

from marginal_inference.engine import GroupIndex, build_groups
from marginal_inference.exceptions import ConfigurationError, DimensionError


@pytest.fixture
def frame():
    return pd.DataFrame(
        {
            "g": ["b", "a", "b", "c", "a", "b"],
            "h": [1, 1, 2, 2, 1, 2],
            "w": [1.0, 2.0, 1.0, 1.0, 0.0, 2.0],
        }
    )


class TestGroupIndex:
    """Test suite for GroupIndex."""

    def test_keys_sorted(self, frame):
        groups = GroupIndex.from_frame(frame, "g")

        assert groups.keys["g"].tolist() == ["a", "b", "c"]
        assert groups.codes.tolist() == [1, 0, 1, 2, 0, 1]

    def test_mean_matches_groupby(self, frame):
        values = np.arange(6.0)
        groups = GroupIndex.from_frame(frame, ["g", "h"])

        expected = pd.Series(values).groupby([frame["g"], frame["h"]]).mean().to_numpy()
        np.testing.assert_allclose(groups.mean(values), expected)

    def test_weighted_mean(self, frame):
        values = np.array([1.0, 10.0, 3.0, 5.0, 100.0, 6.0])
        groups = GroupIndex.from_frame(frame, "g", wts="w")

        means = groups.mean(values)

        assert means[0] == pytest.approx(10.0)
        assert means[1] == pytest.approx((1 + 3 + 12) / 4)

    def test_overall(self):
        groups = GroupIndex.overall(4)
        assert groups.n_groups == 1
        assert groups.mean(np.array([1.0, 2.0, 3.0, 6.0]))[0] == pytest.approx(3.0)

    def test_missing_keys_form_a_group(self):
        frame = pd.DataFrame({"g": ["a", None, "a", None]})
        groups = GroupIndex.from_frame(frame, "g")
        assert groups.n_groups == 2

    def test_reduce(self, frame):
        groups = GroupIndex.from_frame(frame, "g")
        out = groups.reduce(lambda x, w: x.max(), np.arange(6.0))
        np.testing.assert_array_equal(out, [4.0, 5.0, 3.0])

    def test_weight_length_mismatch(self, frame):
        with pytest.raises(DimensionError):
            GroupIndex.from_frame(frame, "g", wts=np.ones(3))

    def test_negative_weights(self):
        with pytest.raises(ConfigurationError):
            GroupIndex.overall(2, wts=[1.0, -1.0])

    def test_unknown_column(self, frame):
        with pytest.raises(ConfigurationError, match="not found"):
            GroupIndex.from_frame(frame, "nope")

    def test_value_length_mismatch(self, frame):
        with pytest.raises(DimensionError):
            GroupIndex.from_frame(frame, "g").mean(np.ones(5))


class TestBuildGroups:
    """Test suite for build_groups."""

    def test_none_and_false(self, frame):
        assert build_groups(frame, None) is None
        assert build_groups(frame, False) is None

    def test_true_is_overall(self, frame):
        groups = build_groups(frame, True, wts="w")
        assert groups.n_groups == 1
        np.testing.assert_array_equal(groups.weights, frame["w"].to_numpy())


class TestAggregateJacobian:
    """Group means are differentiated, not averaged after the fact."""

    def test_group_jacobian_is_mean_of_row_jacobians(self, linear_adapter):
        from marginal_inference import avg_predictions, predictions

        rows = predictions(linear_adapter)
        grouped = avg_predictions(linear_adapter, by="group")

        data = linear_adapter.get_data()
        X = np.column_stack([np.ones(len(data)), data["x1"], data["x2"]])
        expected = pd.DataFrame(X).groupby(data["group"].to_numpy()).mean().to_numpy()

        np.testing.assert_allclose(grouped.jacobian, expected, rtol=1e-6, atol=1e-6)
        np.testing.assert_allclose(rows.jacobian, X, rtol=1e-6, atol=1e-6)

    def test_group_se_is_not_mean_of_row_ses(self, linear_adapter):
        from marginal_inference import avg_predictions, predictions

        rows = predictions(linear_adapter)
        overall = avg_predictions(linear_adapter)

        assert overall.std_error[0] < rows.std_error.mean()
