"""
Summary statistics for distributed outputs.

The reporting shell only needs one number, but a Monte Carlo result is
more useful with its spread attached: standard deviation, standard error of
the mean, quantiles and a central coverage interval.

The convergence study re-evaluates a model at growing ensemble sizes; the
standard error of the mean should shrink roughly like 1 / sqrt(N).
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .ensemble import DistributedValue

DEFAULT_QUANTILES: Tuple[float, ...] = (0.025, 0.5, 0.975)


def _safe_div(num: float, den: float) -> float:
    return float(num / den) if den != 0 else 0.0


@dataclass(frozen=True)
class PressureDropSummary:
    """Scalar summary of a pressure drop ensemble (all values in Pa)."""
    mean: float
    std: float
    standard_error: float
    representative: float
    n_samples: int
    quantiles: Dict[float, float] = field(default_factory=dict)

    @property
    def relative_uncertainty(self) -> float:
        return _safe_div(self.std, abs(self.mean))

    def coverage_interval(self) -> Tuple[float, float]:
        """(lowest, highest) reported quantile."""
        if not self.quantiles:
            return self.mean, self.mean
        qs = sorted(self.quantiles)
        return self.quantiles[qs[0]], self.quantiles[qs[-1]]

    def to_dict(self) -> Dict[str, object]:
        d = asdict(self)
        d["quantiles"] = {f"{q:g}": v for q, v in self.quantiles.items()}
        d["relative_uncertainty"] = self.relative_uncertainty
        return d


def summarize(
    value: DistributedValue,
    rng: np.random.Generator,
    quantiles: Sequence[float] = DEFAULT_QUANTILES,
) -> PressureDropSummary:
    """Summarize an ensemble; `rng` only picks the representative draw."""
    return PressureDropSummary(
        mean=value.mean(),
        std=value.std(),
        standard_error=value.standard_error(),
        representative=value.sample_one(rng),
        n_samples=value.n_samples,
        quantiles=value.quantiles(quantiles),
    )


def convergence_study(
    evaluate: Callable[[np.random.Generator, int], DistributedValue],
    sizes: Sequence[int],
    seed: Optional[int] = 0,
    repeats: int = 5,
) -> List[Dict[str, float]]:
    """Evaluate a model at each ensemble size, `repeats` times.

    Args:
        evaluate: (rng, n_samples) -> DistributedValue.
        sizes: Ensemble sizes, evaluated in the given order.
        seed: Base seed; every (size, repeat) gets its own child stream.
        repeats: Independent evaluations per size.

    Returns:
        One row per size with the average estimated standard error and the
        observed spread (std) of the repeated means.
    """
    repeats = int(repeats)
    if repeats < 1:
        raise ValueError("repeats must be >= 1")
    ss = np.random.SeedSequence(seed)
    children = ss.spawn(len(sizes) * repeats)

    rows: List[Dict[str, float]] = []
    for i, n in enumerate(sizes):
        means = []
        errors = []
        for r in range(repeats):
            rng = np.random.default_rng(children[i * repeats + r])
            value = evaluate(rng, int(n))
            means.append(value.mean())
            errors.append(value.standard_error())
        rows.append(
            {
                "n_samples": int(n),
                "mean": float(np.mean(means)),
                "standard_error": float(np.mean(errors)),
                "spread_of_means": float(np.std(means, ddof=1)) if repeats > 1 else 0.0,
            }
        )
    return rows
