"""Tests for hypothesis formulas, patterns and resolution."""

import numpy as np
import pandas as pd
import pytest

from marginal_inference.exceptions import ConfigurationError, DimensionError, ParseError
from marginal_inference.hypothesis import (
    PATTERNS,
    parse_formula,
    pattern_matrix,
    resolve_hypothesis,
    tokenize,
)

NAMES = ["x1", "x2", "x3"]


class TestTokenize:
    """Test suite for the formula tokenizer."""

    def test_tokens(self):
        tokens = tokenize("b1 + `x 1` = 2.5e-1")
        assert [(t.kind, t.text) for t in tokens] == [
            ("name", "b1"),
            ("op", "+"),
            ("name", "x 1"),
            ("op", "="),
            ("number", "2.5e-1"),
        ]

    def test_unknown_character(self):
        with pytest.raises(ParseError) as info:
            tokenize("b1 $ b2")
        assert info.value.token == "$"


class TestParseFormula:
    """Test suite for parse_formula."""

    def test_difference(self):
        equation = parse_formula("b1 = b2", NAMES)
        expression, null = equation.tested(3)

        weights, constant = expression.linear_form(3)
        np.testing.assert_array_equal(weights, [1.0, -1.0, 0.0])
        assert constant == 0.0 and null == 0.0

    def test_constant_rhs_is_null(self):
        expression, null = parse_formula("b2 = 2", NAMES).tested(3)

        weights, _ = expression.linear_form(3)
        np.testing.assert_array_equal(weights, [0.0, 1.0, 0.0])
        assert null == 2.0

    def test_precedence(self):
        expression, _ = parse_formula("2 * b1 - b2 / 4 + -(b3)", NAMES).tested(3)
        weights, _ = expression.linear_form(3)
        np.testing.assert_allclose(weights, [2.0, -0.25, -1.0])

    def test_labels_resolve(self):
        expression, _ = parse_formula("x1 - x3", NAMES).tested(3)
        weights, _ = expression.linear_form(3)
        np.testing.assert_array_equal(weights, [1.0, 0.0, -1.0])

    def test_backtick_names(self):
        names = ["x1, +1", "x2, +1"]
        expression, _ = parse_formula("`x1, +1` = `x2, +1`", names).tested(2)
        weights, _ = expression.linear_form(2)
        np.testing.assert_array_equal(weights, [1.0, -1.0])

    def test_ratio_is_nonlinear(self):
        expression, null = parse_formula("b1 / b2 = 1", NAMES).tested(3)

        assert expression.linear_form(3) is None
        assert null == 1.0
        assert expression.evaluate(np.array([2.0, 4.0, 1.0])) == pytest.approx(0.5)

    def test_evaluates_over_draws(self):
        expression, _ = parse_formula("b1 * b2", NAMES).tested(3)
        draws = np.arange(12.0).reshape(3, 4)
        np.testing.assert_array_equal(expression.evaluate(draws), draws[0] * draws[1])

    def test_out_of_range_shortcut(self):
        with pytest.raises(ParseError, match="out of range") as info:
            parse_formula("b4 = 0", NAMES)
        assert info.value.token == "b4"

    def test_unknown_name(self):
        with pytest.raises(ParseError, match="Unknown name") as info:
            parse_formula("x9 = 0", NAMES)
        assert info.value.token == "x9"

    def test_ambiguous_name(self):
        with pytest.raises(ParseError, match="ambiguous"):
            parse_formula("a = c", ["a", "a", "c"])

    @pytest.mark.parametrize("formula", ["b1 = = b2", "(b1 + b2", "b1 b2", "", "b1 +"])
    def test_syntax_errors(self, formula):
        with pytest.raises(ParseError):
            parse_formula(formula, NAMES)

    def test_parse_error_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            parse_formula("b1 = b", NAMES)


class TestPatterns:
    """Test suite for named comparison patterns."""

    @pytest.mark.parametrize(
        "name, rows",
        [
            ("pairwise", 6),
            ("revpairwise", 6),
            ("reference", 3),
            ("revreference", 3),
            ("sequential", 3),
            ("meandev", 4),
            ("meanotherdev", 4),
        ],
    )
    def test_row_counts(self, name, rows):
        weights, labels = pattern_matrix(name, ["a", "b", "c", "d"])
        assert weights.shape == (rows, 4)
        assert len(labels) == rows

    @pytest.mark.parametrize("name", sorted(PATTERNS))
    def test_rows_sum_to_zero(self, name):
        weights, _ = pattern_matrix(name, ["a", "b", "c", "d"])
        np.testing.assert_allclose(weights.sum(axis=1), 0.0, atol=1e-12)

    def test_labels(self):
        _, labels = pattern_matrix("pairwise", ["a", "b", "c"])
        assert labels == ["a - b", "a - c", "b - c"]
        _, labels = pattern_matrix("reference", ["a", "b", "c"])
        assert labels == ["b - a", "c - a"]
        _, labels = pattern_matrix("meandev", ["a", "b"])
        assert labels == ["a - Mean", "b - Mean"]

    def test_names_with_operators_are_parenthesized(self):
        _, labels = pattern_matrix("sequential", ["x, +1", "y, +1"])
        assert labels == ["(y, +1) - (x, +1)"]

    def test_meanotherdev(self):
        weights, _ = pattern_matrix("meanotherdev", ["a", "b", "c"])
        np.testing.assert_allclose(weights[0], [1.0, -0.5, -0.5])

    def test_needs_two_rows(self):
        with pytest.raises(ConfigurationError, match="at least 2"):
            pattern_matrix("pairwise", ["a"])


class TestResolveHypothesis:
    """Test suite for resolve_hypothesis."""

    def test_none(self):
        assert resolve_hypothesis(None, NAMES) is None

    def test_scalar_null_keeps_labels(self):
        resolved = resolve_hypothesis(0.5, NAMES)

        assert resolved.labels is None
        np.testing.assert_array_equal(resolved.null, [0.5, 0.5, 0.5])
        np.testing.assert_array_equal(resolved.apply(np.array([1.0, 2.0, 3.0])), [1.0, 2.0, 3.0])

    def test_bool_rejected(self):
        with pytest.raises(ConfigurationError):
            resolve_hypothesis(True, NAMES)

    def test_formula_labels(self):
        resolved = resolve_hypothesis(["b1 = b2", "b3 = 0"], NAMES)
        assert resolved.labels["term"].tolist() == ["b1 = b2", "b3 = 0"]

    def test_pattern(self):
        resolved = resolve_hypothesis("pairwise", NAMES)
        assert resolved.labels["term"].tolist() == ["x1 - x2", "x1 - x3", "x2 - x3"]

    def test_weight_vector(self):
        resolved = resolve_hypothesis(np.array([1.0, -1.0, 0.0]), NAMES)

        assert resolved.labels["term"].tolist() == ["custom"]
        np.testing.assert_array_equal(resolved.apply(np.array([3.0, 1.0, 7.0])), [2.0])

    def test_weight_matrix_labels(self):
        matrix = np.array([[1.0, 0.0], [-1.0, 1.0], [0.0, -1.0]])
        resolved = resolve_hypothesis(matrix, NAMES)
        assert resolved.labels["term"].tolist() == ["1", "2"]

        frame = pd.DataFrame(matrix, columns=["first", "second"])
        resolved = resolve_hypothesis(frame, NAMES)
        assert resolved.labels["term"].tolist() == ["first", "second"]

    def test_weight_length_mismatch(self):
        with pytest.raises(DimensionError):
            resolve_hypothesis(np.ones(4), NAMES)
        with pytest.raises(DimensionError):
            resolve_hypothesis(np.ones((2, 2)), NAMES)

    def test_unsupported(self):
        with pytest.raises(ConfigurationError, match="Unsupported"):
            resolve_hypothesis(object(), NAMES)

    def test_apply_draws(self):
        resolved = resolve_hypothesis("b1 - b2 = 0", NAMES)
        draws = np.arange(12.0).reshape(3, 4)
        np.testing.assert_array_equal(resolved.apply(draws), (draws[0] - draws[1])[None, :])

    def test_constant_on_lhs_shifts_estimate(self):
        resolved = resolve_hypothesis("b1 + 1 = 3", NAMES)

        assert resolved.apply(np.array([1.0, 0.0, 0.0]))[0] == pytest.approx(2.0)
        assert resolved.null[0] == 3.0

    def test_nonlinear_gradient(self):
        resolved = resolve_hypothesis("b1 / b2 = 1", NAMES)

        G = resolved.gradient(np.array([2.0, 4.0, 1.0]))

        np.testing.assert_allclose(G, [[0.25, -0.125, 0.0]], rtol=1e-6, atol=1e-9)

    def test_propagate_linear(self):
        resolved = resolve_hypothesis("b1 = b2", ["a", "b"])
        J = np.array([[1.0, 2.0], [3.0, 5.0]])

        value, jacobian = resolved.propagate(np.array([4.0, 1.0]), J)

        np.testing.assert_array_equal(value, [3.0])
        np.testing.assert_array_equal(jacobian, [[-2.0, -3.0]])
