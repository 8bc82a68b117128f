"""
Parametric distribution specs.

A spec is a small frozen description of how a distributed value is generated.
Specs validate their own parameters and know how to draw an ensemble from an
explicit generator; they hold no random state themselves.

Supported families:
- Uniform(low, high): all mass on [low, high]
- LogNormal(mean, scale): strictly positive, parameterized by the mean and
  standard deviation of the variable itself (not of its logarithm)
"""

from __future__ import annotations

import math
import sys
from dataclasses import asdict, dataclass
from typing import Any, ClassVar, Dict, Optional, Tuple, Type

import numpy as np

from .errors import InvalidParameterError, InvalidRangeError


@dataclass(frozen=True)
class DistributionSpec:
    kind: ClassVar[str] = "base"

    def validate(self, parameter: Optional[str] = None) -> None:
        raise NotImplementedError

    def support(self) -> Tuple[float, float]:
        """Closed interval containing every possible draw."""
        raise NotImplementedError

    def draw(self, rng: np.random.Generator, n: int) -> np.ndarray:
        """Draw `n` iid samples. Assumes `validate` has passed."""
        raise NotImplementedError

    @property
    def mean(self) -> float:
        raise NotImplementedError

    @property
    def std(self) -> float:
        raise NotImplementedError


@dataclass(frozen=True)
class Uniform(DistributionSpec):
    """Continuous uniform distribution on [low, high]."""
    kind: ClassVar[str] = "uniform"

    low: float
    high: float

    @classmethod
    def centered(cls, center: float, half_width: float) -> "Uniform":
        """Uniform(center - half_width, center + half_width)."""
        return cls(center - half_width, center + half_width)

    def validate(self, parameter: Optional[str] = None) -> None:
        if not (math.isfinite(self.low) and math.isfinite(self.high)):
            raise InvalidRangeError(
                f"bounds must be finite, got low={self.low!r}, high={self.high!r}",
                parameter=parameter,
                distribution=self.kind,
            )
        if self.low > self.high:
            raise InvalidRangeError(
                f"low={self.low!r} is greater than high={self.high!r}",
                parameter=parameter,
                distribution=self.kind,
            )

    def support(self) -> Tuple[float, float]:
        return float(self.low), float(self.high)

    def draw(self, rng: np.random.Generator, n: int) -> np.ndarray:
        if self.low == self.high:
            return np.full(n, float(self.low))
        x = rng.uniform(self.low, self.high, size=n)
        # Generator.uniform is half-open and may round up to `high` in float64.
        return np.clip(x, self.low, self.high)

    @property
    def mean(self) -> float:
        return 0.5 * (self.low + self.high)

    @property
    def std(self) -> float:
        return (self.high - self.low) / math.sqrt(12.0)


@dataclass(frozen=True)
class LogNormal(DistributionSpec):
    """Log-normal distribution with the given mean and standard deviation."""
    kind: ClassVar[str] = "lognormal"

    mean_value: float
    scale: float

    def validate(self, parameter: Optional[str] = None) -> None:
        if not (math.isfinite(self.mean_value) and math.isfinite(self.scale)):
            raise InvalidParameterError(
                f"parameters must be finite, got mean={self.mean_value!r}, scale={self.scale!r}",
                parameter=parameter,
                distribution=self.kind,
            )
        if self.scale < 0:
            raise InvalidParameterError(
                f"scale must be >= 0, got {self.scale!r}",
                parameter=parameter,
                distribution=self.kind,
            )
        if self.mean_value <= 0:
            raise InvalidParameterError(
                f"mean must be > 0 for a strictly positive distribution, got {self.mean_value!r}",
                parameter=parameter,
                distribution=self.kind,
            )

    def log_params(self) -> Tuple[float, float]:
        """(mu, sigma) of the underlying normal distribution."""
        sigma2 = math.log1p((self.scale / self.mean_value) ** 2)
        mu = math.log(self.mean_value) - 0.5 * sigma2
        return mu, math.sqrt(sigma2)

    def support(self) -> Tuple[float, float]:
        if self.scale == 0:
            return float(self.mean_value), float(self.mean_value)
        # Open at zero; the smallest normal float stands in for the endpoint.
        return sys.float_info.min, math.inf

    def draw(self, rng: np.random.Generator, n: int) -> np.ndarray:
        if self.scale == 0:
            return np.full(n, float(self.mean_value))
        mu, sigma = self.log_params()
        return rng.lognormal(mean=mu, sigma=sigma, size=n)

    @property
    def mean(self) -> float:
        return float(self.mean_value)

    @property
    def std(self) -> float:
        return float(self.scale)


# =============================================================================
# FACTORY: dict -> spec
# =============================================================================

class DistributionFactory:
    _MAP: Dict[str, Type[DistributionSpec]] = {
        "uniform": Uniform,
        "lognormal": LogNormal,
    }

    @classmethod
    def from_dict(cls, d: Dict[str, Any], parameter: Optional[str] = None) -> DistributionSpec:
        """Build a spec from e.g. {"kind": "uniform", "low": 0.9, "high": 1.1}.

        Log-normal accepts either `mean_value` or `mean` for the mean.
        `parameter` names the model input in validation errors.
        """
        kind = d.get("kind", None)
        if kind not in cls._MAP:
            raise KeyError(f"Unknown distribution kind '{kind}'. Known: {sorted(cls._MAP.keys())}")
        params = {k: v for k, v in d.items() if k != "kind"}
        if kind == "lognormal" and "mean" in params:
            params["mean_value"] = params.pop("mean")
        T = cls._MAP[str(kind)]
        spec = T(**{k: float(v) for k, v in params.items()})  # type: ignore[arg-type]
        spec.validate(parameter=parameter)
        return spec

    @staticmethod
    def to_dict(spec: DistributionSpec) -> Dict[str, Any]:
        """Inverse of `from_dict` (used for config copies and run ids)."""
        return {"kind": spec.kind, **asdict(spec)}
