"""Tests for process-wide options."""

import numpy as np
import pytest

from marginal_inference import InferenceOptions, get_options, option_context, set_options
from marginal_inference.config import resolve_options
from marginal_inference.exceptions import ConfigurationError


@pytest.fixture
def restore_options():
    """Restore the process-wide options after a test that changes them."""
    previous = get_options()
    yield
    set_options(**{name: getattr(previous, name) for name in InferenceOptions.__dataclass_fields__})


class TestInferenceOptions:
    """Test suite for InferenceOptions."""

    def test_defaults(self):
        options = InferenceOptions()

        assert options.credible_interval == "eti"
        assert options.posterior_center is np.median
        assert options.strict is True
        assert options.n_jobs == 1
        assert options.step_floor == 1.0

    def test_frozen(self):
        with pytest.raises(AttributeError):
            InferenceOptions().strict = False

    @pytest.mark.parametrize(
        "changes",
        [
            {"credible_interval": "hpd"},
            {"posterior_center": "median"},
            {"n_jobs": 0},
            {"step_floor": 0.0},
            {"max_grid_rows": -1},
        ],
    )
    def test_invalid(self, changes):
        with pytest.raises(ConfigurationError):
            InferenceOptions(**changes)


class TestProcessOptions:
    """Test suite for get_options, set_options and option_context."""

    def test_set_options_returns_previous(self, restore_options):
        before = get_options()

        previous = set_options(strict=False)

        assert previous is before
        assert get_options().strict is False

    def test_unknown_option(self):
        with pytest.raises(ConfigurationError, match="Unknown option"):
            set_options(precision=3)

    def test_context_restores(self):
        before = get_options()
        with option_context(credible_interval="hdi") as options:
            assert options.credible_interval == "hdi"
            assert get_options().credible_interval == "hdi"
        assert get_options() is before

    def test_context_restores_on_error(self):
        before = get_options()
        with pytest.raises(RuntimeError):
            with option_context(n_jobs=2):
                raise RuntimeError("boom")
        assert get_options() is before

    def test_resolve_options(self):
        explicit = InferenceOptions(strict=False)

        assert resolve_options(explicit) is explicit
        assert resolve_options(None) is get_options()
        with pytest.raises(ConfigurationError, match="InferenceOptions"):
            resolve_options({"strict": False})
