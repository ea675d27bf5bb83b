"""
One top-level inference call.

    quantity q(β)  ->  J = ∂q/∂β at β̂  ->  hypothesis (W·q, W·J or G·J)
                   ->  delta method with Σ  ->  post-transform  ->  Estimates

When the model supplies coefficient draws, q is evaluated at every draw
instead and the draws are summarized empirically.
"""

from typing import Optional

import numpy as np
import pandas as pd

from ..adapters.base import as_adapter
from ..config import InferenceOptions, resolve_options
from ..differentiation.jacobian import compute_jacobian
from ..engine.delta import check_conf_level, delta_method
from ..engine.posterior import evaluate_draws, summarize_draws
from ..exceptions import ConfigurationError, DimensionError
from ..hypothesis.resolver import resolve_hypothesis
from ..quantities.base import BaseQuantity
from ..quantities.post import apply_post, resolve_transform
from ..results import Estimates


def _degrees_of_freedom(adapter, df) -> np.ndarray:
    if df is None:
        df = adapter.get_degrees_of_freedom()
    df = np.inf if df is None else df
    return np.asarray(df, dtype=float)


def _assemble(labels: pd.DataFrame, stats: pd.DataFrame) -> pd.DataFrame:
    labels = labels.reset_index(drop=True)
    clashes = [c for c in labels.columns if c in stats.columns]
    if clashes:
        labels = labels.rename(columns={c: f"{c}_label" for c in clashes})
    return pd.concat([labels, stats.reset_index(drop=True)], axis=1)


def estimate_quantities(
    model,
    quantity: BaseQuantity,
    vcov=True,
    conf_level: float = 0.95,
    hypothesis=None,
    transform_post=None,
    df=None,
    options: Optional[InferenceOptions] = None,
    kind: str = "estimates",
) -> Estimates:
    """
    Estimates, standard errors and intervals for a quantity of interest.

    Args:
        model: Fitted model or ModelAdapter
        quantity: BaseQuantity evaluated at the coefficients
        vcov: Covariance specification passed to the adapter
        conf_level: Confidence level in (0, 1)
        hypothesis: Hypothesis specification (see resolve_hypothesis)
        transform_post: Post-transform of estimates and bounds
        df: Degrees of freedom override (np.inf for normal)
        options: InferenceOptions for this call (default: process options)
        kind: Name recorded in the result

    Returns:
        Estimates
    """
    options = resolve_options(options)
    conf_level = check_conf_level(conf_level)
    post = resolve_transform(transform_post)
    adapter = as_adapter(model)

    coefficients = adapter.get_coefficients()
    beta = coefficients.to_numpy(dtype=float)
    row_names = quantity.row_names()
    resolved = resolve_hypothesis(hypothesis, row_names, len(quantity))
    coefficient_draws = adapter.get_posterior_draws()

    jacobian = None
    vcov_matrix = None
    quantity_draws = None

    if coefficient_draws is not None:
        coefficient_draws = np.atleast_2d(np.asarray(coefficient_draws, dtype=float))
        if coefficient_draws.shape[1] != beta.shape[0]:
            raise DimensionError(
                f"Coefficient draws have {coefficient_draws.shape[1]} columns, expected {beta.shape[0]}",
                expected=beta.shape[0],
                actual=coefficient_draws.shape[1],
            )
        quantity_draws = evaluate_draws(quantity, coefficient_draws, len(quantity), options)
        if resolved is not None:
            quantity_draws = resolved.apply(quantity_draws)
        stats = summarize_draws(quantity_draws, conf_level, options)
    else:
        vcov_matrix = adapter.resolve_covariance(vcov)
        analytic = quantity.jacobian(beta)
        if analytic is not None:
            value = quantity(beta)
            jacobian = np.atleast_2d(np.asarray(analytic, dtype=float))
        else:
            result = compute_jacobian(
                quantity,
                beta,
                step_floor=options.step_floor,
                strict=options.strict,
                n_jobs=options.n_jobs,
                backend=options.backend,
                verbose=options.verbose,
                names=list(coefficients.index),
            )
            value, jacobian = result.value, result.jacobian
        if jacobian.shape != (len(quantity), beta.shape[0]):
            raise DimensionError(
                f"Jacobian has shape {jacobian.shape}, expected ({len(quantity)}, {beta.shape[0]})",
                expected=(len(quantity), beta.shape[0]),
                actual=jacobian.shape,
            )

        null = 0.0
        bounds = None
        if resolved is not None:
            value, jacobian = resolved.propagate(value, jacobian, options)
            null = resolved.null
        else:
            bounds = quantity.bounds(beta, conf_level)
        stats = delta_method(
            value,
            jacobian,
            vcov_matrix,
            df=_degrees_of_freedom(adapter, df),
            conf_level=conf_level,
            null=null,
            bounds=bounds,
        )

    if resolved is not None and resolved.labels is not None:
        labels = resolved.labels
        row_names = labels["term"].tolist()
    else:
        labels = quantity.labels
    frame = _assemble(labels, stats)
    if post is not None:
        frame = apply_post(frame, post)

    return Estimates(
        frame=frame,
        jacobian=jacobian,
        vcov=vcov_matrix,
        draws=quantity_draws,
        conf_level=conf_level,
        kind=kind,
        transform_post=transform_post,
        row_names=list(row_names),
    )


def apply_hypothesis(
    estimates: Estimates,
    hypothesis,
    conf_level: Optional[float] = None,
    df=None,
    options: Optional[InferenceOptions] = None,
) -> Estimates:
    """
    Hypothesis tests on a previous result, re-using its Jacobian or draws.

    Args:
        estimates: Output of an earlier call
        hypothesis: Hypothesis specification
        conf_level: Confidence level (default: that of `estimates`)
        df: Degrees of freedom override
        options: InferenceOptions for this call

    Returns:
        Estimates
    """
    options = resolve_options(options)
    if estimates.transform_post is not None:
        raise ConfigurationError(
            "Hypotheses cannot be tested on post-transformed estimates; "
            "apply transform_post in the final call instead"
        )
    conf_level = check_conf_level(estimates.conf_level if conf_level is None else conf_level)
    resolved = resolve_hypothesis(hypothesis, estimates.row_names, len(estimates))
    if resolved is None:
        return estimates

    if estimates.is_posterior:
        draws = resolved.apply(estimates.draws)
        stats = summarize_draws(draws, conf_level, options)
        jacobian = None
    else:
        if estimates.jacobian is None or estimates.vcov is None:
            raise ConfigurationError("These estimates carry neither a Jacobian nor draws")
        value, jacobian = resolved.propagate(estimates.estimate, estimates.jacobian, options)
        if df is None:
            per_row = estimates.frame["df"].to_numpy(dtype=float)
            df = np.nanmin(per_row) if per_row.size else np.inf
        stats = delta_method(
            value, jacobian, estimates.vcov, df=df, conf_level=conf_level, null=resolved.null
        )
        draws = None

    labels = resolved.labels if resolved.labels is not None else estimates.frame[estimates.label_columns]
    row_names = labels["term"].tolist() if resolved.labels is not None else estimates.row_names
    return Estimates(
        frame=_assemble(labels, stats),
        jacobian=jacobian,
        vcov=estimates.vcov,
        draws=draws,
        conf_level=conf_level,
        kind="hypotheses",
        row_names=list(row_names),
    )
