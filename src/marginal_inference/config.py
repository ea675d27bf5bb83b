"""
Process-wide options for marginal_inference.

Options live in a frozen dataclass. Every top-level call reads the current
object once (or uses the ``options=`` argument) and threads it through the
computation; nothing mutates it mid-call.

Example:
    >>> from marginal_inference import option_context
    >>> with option_context(credible_interval="hdi"):
    ...     result = predictions(adapter)
"""

from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import Callable, Iterator, Optional

import numpy as np

from .exceptions import ConfigurationError

CREDIBLE_INTERVALS = ("eti", "hdi")


@dataclass(frozen=True)
class InferenceOptions:
    """
    Immutable configuration for one top-level call.

    Attributes:
        credible_interval: Interval estimator for posterior draws, "eti"
            (equal-tailed) or "hdi" (highest density).
        posterior_center: Central tendency applied to the draws of each
            quantity (default: numpy.median).
        strict: If True, a failed perturbed evaluation in the Jacobian raises
            EvaluationError. If False the column is filled with NaN.
        n_jobs: Number of joblib workers for Jacobian columns and posterior
            draws. 1 runs sequentially.
        backend: joblib backend name (None uses the joblib default).
        step_floor: Lower bound on |beta_i| when sizing finite-difference steps.
        max_grid_rows: Largest number of rows a prediction grid may have.
        verbose: Show progress bars.
    """

    credible_interval: str = "eti"
    posterior_center: Callable[..., float] = np.median
    strict: bool = True
    n_jobs: int = 1
    backend: Optional[str] = None
    step_floor: float = 1.0
    max_grid_rows: float = 1e9
    verbose: bool = False

    def __post_init__(self):
        if self.credible_interval not in CREDIBLE_INTERVALS:
            raise ConfigurationError(
                f"credible_interval must be one of {CREDIBLE_INTERVALS}, "
                f"got {self.credible_interval!r}"
            )
        if not callable(self.posterior_center):
            raise ConfigurationError(
                f"posterior_center must be callable, got {self.posterior_center!r}"
            )
        if not isinstance(self.n_jobs, (int, np.integer)) or self.n_jobs == 0:
            raise ConfigurationError(f"n_jobs must be a non-zero integer, got {self.n_jobs!r}")
        if not self.step_floor > 0:
            raise ConfigurationError(f"step_floor must be positive, got {self.step_floor!r}")
        if not self.max_grid_rows > 0:
            raise ConfigurationError(
                f"max_grid_rows must be positive, got {self.max_grid_rows!r}"
            )


_OPTIONS = InferenceOptions()


def get_options() -> InferenceOptions:
    """Return the current process-wide options."""
    return _OPTIONS


def set_options(**changes) -> InferenceOptions:
    """
    Replace the process-wide options.

    Args:
        **changes: Fields of InferenceOptions to change

    Returns:
        The previous options object (useful for restoring)
    """
    global _OPTIONS
    unknown = set(changes) - set(InferenceOptions.__dataclass_fields__)
    if unknown:
        raise ConfigurationError(f"Unknown option(s): {sorted(unknown)}")
    previous = _OPTIONS
    _OPTIONS = replace(_OPTIONS, **changes)
    return previous


@contextmanager
def option_context(**changes) -> Iterator[InferenceOptions]:
    """Temporarily change the process-wide options."""
    global _OPTIONS
    previous = set_options(**changes)
    try:
        yield _OPTIONS
    finally:
        _OPTIONS = previous


def resolve_options(options: Optional[InferenceOptions] = None) -> InferenceOptions:
    """Options for one call: the explicit argument or the process defaults."""
    if options is None:
        return get_options()
    if not isinstance(options, InferenceOptions):
        raise ConfigurationError(
            f"options must be an InferenceOptions instance, got {type(options).__name__}"
        )
    return options
