"""
marginal_inference: Predictions, Comparisons, Slopes and Hypothesis Tests

Delta-method inference for quantities of interest derived from fitted
regression models. Any model can be used through the ModelAdapter protocol;
fitted statsmodels results work out of the box.

Usage:
    import statsmodels.formula.api as smf
    from marginal_inference import avg_slopes, comparisons, hypotheses

    fit = smf.logit("y ~ x1 + x2 + group", data=df).fit()

    # Average marginal effects
    print(avg_slopes(fit).summary())

    # Risk ratio of a one-unit change in x1, averaged over the sample
    comparisons(fit, variables="x1", comparison="ratioavg")

    # Wald test on coefficients
    hypotheses(fit, "x1 = x2")

    # Models without a statsmodels result
    from marginal_inference import CallableAdapter
    adapter = CallableAdapter(coefs, vcov, predict_fn=my_predict, data=df)
    predictions(adapter, by="group")
"""

__version__ = "0.1.0"

from .adapters import (
    BaseAdapter,
    CallableAdapter,
    ModelAdapter,
    StatsmodelsAdapter,
    as_adapter,
)
from .api import (
    avg_comparisons,
    avg_predictions,
    avg_slopes,
    comparisons,
    hypotheses,
    marginal_means,
    predictions,
    slopes,
)
from .config import InferenceOptions, get_options, option_context, set_options
from .datagrid import datagrid, datagridcf
from .differentiation import compute_jacobian
from .engine import delta_method, eti, hdi
from .exceptions import (
    ConfigurationError,
    DimensionError,
    EvaluationError,
    MarginalInferenceError,
    NumericalDegeneracyWarning,
    ParseError,
    ResourceLimitError,
)
from .quantities import CustomQuantity
from .results import EstimateRecord, Estimates

__all__ = [
    # Version
    "__version__",
    # Main API
    "predictions",
    "avg_predictions",
    "comparisons",
    "avg_comparisons",
    "slopes",
    "avg_slopes",
    "hypotheses",
    "marginal_means",
    # Grids
    "datagrid",
    "datagridcf",
    # Adapters
    "ModelAdapter",
    "BaseAdapter",
    "CallableAdapter",
    "StatsmodelsAdapter",
    "as_adapter",
    # Results
    "Estimates",
    "EstimateRecord",
    # Configuration
    "InferenceOptions",
    "get_options",
    "set_options",
    "option_context",
    # Building blocks
    "compute_jacobian",
    "delta_method",
    "eti",
    "hdi",
    "CustomQuantity",
    # Errors
    "MarginalInferenceError",
    "ConfigurationError",
    "ParseError",
    "DimensionError",
    "EvaluationError",
    "ResourceLimitError",
    "NumericalDegeneracyWarning",
]
