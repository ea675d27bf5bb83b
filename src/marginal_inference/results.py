"""Result containers for marginal effects, predictions and hypothesis tests."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from tabulate import tabulate

from .engine.delta import RESULT_COLUMNS


@dataclass(frozen=True)
class EstimateRecord:
    """One row of output. df is None under the normal reference."""

    estimate: float
    std_error: float
    statistic: float
    df: Optional[float]
    p_value: float
    conf_low: float
    conf_high: float
    labels: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Estimates:
    """
    Container for the output of one top-level call.

    Attributes:
        frame: Label columns followed by estimate, std_error, statistic, df,
            p_value, conf_low, conf_high
        jacobian: (N, P) Jacobian of the estimates, None in draws mode
        vcov: (P, P) coefficient covariance, None in draws mode
        draws: (N, D) quantity draws, None in covariance mode
        conf_level: Confidence level of the intervals
        kind: Name of the call that produced the result
        transform_post: Post-transform applied to estimate and bounds
        row_names: Names used to refer to rows in hypothesis formulas
    """

    frame: pd.DataFrame
    jacobian: Optional[np.ndarray] = None
    vcov: Optional[np.ndarray] = None
    draws: Optional[np.ndarray] = None
    conf_level: float = 0.95
    kind: str = "estimates"
    transform_post: Optional[Any] = None
    row_names: List[str] = field(default_factory=list)

    @property
    def label_columns(self) -> List[str]:
        return [c for c in self.frame.columns if c not in RESULT_COLUMNS]

    @property
    def estimate(self) -> np.ndarray:
        return self.frame["estimate"].to_numpy()

    @property
    def std_error(self) -> np.ndarray:
        return self.frame["std_error"].to_numpy()

    @property
    def is_posterior(self) -> bool:
        return self.draws is not None

    def to_frame(self) -> pd.DataFrame:
        """Copy of the result table."""
        return self.frame.copy()

    def records(self) -> List[EstimateRecord]:
        """One immutable EstimateRecord per row."""
        labels = self.frame[self.label_columns].to_dict("records")
        out = []
        for row, label in zip(self.frame[RESULT_COLUMNS].itertuples(index=False), labels):
            out.append(
                EstimateRecord(
                    estimate=row.estimate,
                    std_error=row.std_error,
                    statistic=row.statistic,
                    df=float(row.df) if np.isfinite(row.df) else None,
                    p_value=row.p_value,
                    conf_low=row.conf_low,
                    conf_high=row.conf_high,
                    labels=label,
                )
            )
        return out

    def __len__(self) -> int:
        return len(self.frame)

    def __getitem__(self, key):
        return self.frame[key]

    def __repr__(self) -> str:
        mode = "draws" if self.is_posterior else "delta"
        return f"<Estimates: {self.kind}, {len(self)} rows, {mode}, conf_level={self.conf_level}>"

    def summary(self, digits: int = 4) -> str:
        """
        Formatted result table.

        Args:
            digits: Decimal places for estimates and intervals

        Returns:
            Formatted summary string
        """
        level = int(round(self.conf_level * 100))
        shown = [c for c in self.label_columns if c != "rowid"] or self.label_columns
        rows = []
        for i in range(len(self.frame)):
            r = self.frame.iloc[i]
            rows.append(
                [*(r[c] for c in shown)]
                + [
                    f"{r['estimate']:.{digits}f}",
                    "-" if np.isnan(r["std_error"]) else f"{r['std_error']:.{digits}f}",
                    "-" if np.isnan(r["statistic"]) else f"{r['statistic']:.3f}",
                    "-" if np.isnan(r["p_value"]) else f"{r['p_value']:.4f}",
                    f"[{r['conf_low']:.{digits}f}, {r['conf_high']:.{digits}f}]",
                ]
            )
        stat = "z" if self._normal else "t"
        headers = shown + ["Estimate", "Std. Error", stat, f"Pr(>|{stat}|)", f"[{level}% CI]"]

        lines = []
        lines.append("=" * 78)
        lines.append(f"  {self.kind.replace('_', ' ').capitalize()}")
        lines.append("=" * 78)
        lines.append(tabulate(rows, headers=headers, tablefmt="simple"))
        lines.append("-" * 78)
        if self.is_posterior:
            lines.append(f"Draws:            {self.draws.shape[1]}")
        elif not self._normal:
            finite = self.frame["df"].to_numpy()
            lines.append(f"Df:               {np.nanmin(finite):g}")
        if self.transform_post is not None:
            lines.append("Estimates and intervals are post-transformed; std. errors and")
            lines.append("p-values refer to the untransformed scale.")
        lines.append("=" * 78)
        return "\n".join(lines)

    @property
    def _normal(self) -> bool:
        df = self.frame["df"].to_numpy(dtype=float)
        return self.is_posterior or not np.isfinite(df).any()
