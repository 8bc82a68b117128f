"""
Monte Carlo representation of uncertain values.

A `DistributedValue` is an ensemble of N independent draws plus the closed
support interval the draws are guaranteed to lie in. Arithmetic is applied
elementwise to the ensembles (so each output member is the formula evaluated
at one joint draw of the inputs) and the support is carried along with
interval arithmetic. Support tracking is what lets `divide` refuse a
denominator that may be zero even if no sampled member happens to hit it.

Approximation error: the ensemble mean has standard error std / sqrt(N).
"""

from __future__ import annotations

import math
import sys
from numbers import Real
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import DivisionDomainError, InvalidParameterError


Support = Tuple[float, float]

# Stand-in for the open endpoint of a strictly positive support.
_TINY = sys.float_info.min


def _contains_zero(s: Support) -> bool:
    return s[0] <= 0.0 <= s[1]


def _away_from_zero(s: Support, positive: bool) -> Support:
    """Undo endpoint underflow for a support known to exclude zero."""
    if positive:
        return max(s[0], _TINY), max(s[1], _TINY)
    return min(s[0], -_TINY), min(s[1], -_TINY)


def _mul_interval(a: Support, b: Support) -> Support:
    products = []
    for x in a:
        for y in b:
            # 0 * inf is nan; an endpoint of exactly zero contributes zero.
            products.append(0.0 if (x == 0.0 or y == 0.0) else x * y)
    out = (min(products), max(products))
    if not (_contains_zero(a) or _contains_zero(b)):
        out = _away_from_zero(out, positive=(a[0] > 0.0) == (b[0] > 0.0))
    return out


def _pow(x: float, p: float) -> float:
    with np.errstate(over="ignore", under="ignore"):
        return float(np.power(np.float64(x), p))


class DistributedValue:
    """An uncertain value represented by a read-only sample ensemble.

    Args:
        samples: 1D array of draws (copied and write-protected).
        support: (lower, upper) bounds of the generating distribution.
            Defaults to the sample range.
        name: Optional label used in error messages.
        distribution: Kind of the generating distribution ("uniform",
            "lognormal"), reported alongside `name` in errors.
    """

    __array_priority__ = 1000  # make `ndarray * DistributedValue` defer to us

    def __init__(
        self,
        samples: Sequence[float] | np.ndarray,
        support: Optional[Support] = None,
        name: Optional[str] = None,
        distribution: Optional[str] = None,
    ):
        arr = np.array(samples, dtype=np.float64).reshape(-1)
        if arr.size < 1:
            raise InvalidParameterError("ensemble must contain at least one sample", parameter=name)
        arr.setflags(write=False)
        self._samples = arr
        if support is None:
            support = (float(arr.min()), float(arr.max()))
        lo, hi = float(support[0]), float(support[1])
        if lo > hi:
            raise InvalidParameterError(f"support lower bound {lo} exceeds upper bound {hi}", parameter=name)
        self._support: Support = (lo, hi)
        self.name = name
        self.distribution = distribution

    @classmethod
    def constant(cls, value: float, n_samples: int = 1, name: Optional[str] = None) -> "DistributedValue":
        """A degenerate distribution (every member equal to `value`)."""
        value = float(value)
        return cls(np.full(int(n_samples), value), support=(value, value), name=name)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def samples(self) -> np.ndarray:
        return self._samples

    @property
    def support(self) -> Support:
        return self._support

    @property
    def n_samples(self) -> int:
        return int(self._samples.size)

    def __len__(self) -> int:
        return self.n_samples

    def __repr__(self) -> str:
        label = f"{self.name}: " if self.name else ""
        return (
            f"DistributedValue({label}mean={self.mean():.6g}, std={self.std():.3g}, "
            f"n={self.n_samples}, support=[{self._support[0]:.6g}, {self._support[1]:.6g}])"
        )

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def mean(self) -> float:
        return float(np.mean(self._samples))

    def std(self) -> float:
        """Sample standard deviation (ddof=1; 0 for a single member)."""
        if self.n_samples < 2:
            return 0.0
        return float(np.std(self._samples, ddof=1))

    def standard_error(self) -> float:
        """Standard error of the ensemble mean, std / sqrt(N)."""
        return self.std() / math.sqrt(self.n_samples)

    def quantiles(self, qs: Sequence[float]) -> Dict[float, float]:
        qs_arr = np.asarray(list(qs), dtype=np.float64)
        if np.any((qs_arr < 0.0) | (qs_arr > 1.0)):
            raise ValueError(f"quantiles must lie in [0, 1], got {list(qs)}")
        values = np.quantile(self._samples, qs_arr)
        return {float(q): float(v) for q, v in zip(qs_arr, values)}

    def sample_one(self, rng: np.random.Generator) -> float:
        """Pick one ensemble member uniformly at random."""
        idx = int(rng.integers(0, self.n_samples))
        return float(self._samples[idx])

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def __mul__(self, other: Operand) -> "DistributedValue":
        return multiply(self, other)

    def __rmul__(self, other: Operand) -> "DistributedValue":
        return multiply(other, self)

    def __truediv__(self, other: Operand) -> "DistributedValue":
        return divide(self, other)

    def __rtruediv__(self, other: Operand) -> "DistributedValue":
        return divide(other, self)

    def __add__(self, other: Operand) -> "DistributedValue":
        return add(self, other)

    def __radd__(self, other: Operand) -> "DistributedValue":
        return add(other, self)

    def __sub__(self, other: Operand) -> "DistributedValue":
        return add(self, negate(_as_distributed(other, self.n_samples)))

    def __rsub__(self, other: Operand) -> "DistributedValue":
        return add(other, negate(self))

    def __neg__(self) -> "DistributedValue":
        return negate(self)

    def __pow__(self, exponent: float) -> "DistributedValue":
        return power(self, exponent)


Operand = Union[DistributedValue, float, int]


def _as_distributed(x: Operand, n_samples: int) -> DistributedValue:
    if isinstance(x, DistributedValue):
        return x
    if isinstance(x, (Real, np.floating, np.integer)):
        return DistributedValue.constant(float(x), n_samples=n_samples)
    raise TypeError(f"Cannot combine DistributedValue with {type(x).__name__}")


def _broadcast_constant(x: DistributedValue, n_samples: int) -> DistributedValue:
    out = DistributedValue.constant(x.support[0], n_samples, name=x.name)
    out.distribution = x.distribution
    return out


def _coerce_pair(a: Operand, b: Operand) -> Tuple[DistributedValue, DistributedValue]:
    if isinstance(a, DistributedValue):
        n = a.n_samples
    elif isinstance(b, DistributedValue):
        n = b.n_samples
    else:
        n = 1
    da, db = _as_distributed(a, n), _as_distributed(b, n)
    if da.n_samples != db.n_samples:
        # A constant broadcasts; two real ensembles must be aligned member by member.
        if da.n_samples == 1 and da.support[0] == da.support[1]:
            da = _broadcast_constant(da, db.n_samples)
        elif db.n_samples == 1 and db.support[0] == db.support[1]:
            db = _broadcast_constant(db, da.n_samples)
        else:
            raise ValueError(f"Ensemble sizes differ: {da.n_samples} vs {db.n_samples}")
    return da, db


def multiply(a: Operand, b: Operand) -> DistributedValue:
    """Elementwise product of two independent distributed values (or a scalar)."""
    da, db = _coerce_pair(a, b)
    return DistributedValue(da.samples * db.samples, support=_mul_interval(da.support, db.support))


def scale(a: Operand, factor: float) -> DistributedValue:
    """Multiply a distributed value by a deterministic scalar."""
    return multiply(a, float(factor))


def divide(a: Operand, b: Operand) -> DistributedValue:
    """Elementwise quotient.

    Raises DivisionDomainError, naming the denominator and its distribution,
    when the denominator support contains zero, when a member is exactly
    zero, or when a finite numerator member overflows to infinity (e.g. a
    denominator that underflowed to a subnormal).
    """
    da, db = _coerce_pair(a, b)
    if _contains_zero(db.support):
        raise DivisionDomainError(
            f"denominator support [{db.support[0]:.6g}, {db.support[1]:.6g}] contains zero",
            parameter=db.name,
            distribution=db.distribution,
        )
    if np.any(db.samples == 0.0):
        raise DivisionDomainError(
            "denominator ensemble contains zero", parameter=db.name, distribution=db.distribution
        )
    with np.errstate(over="ignore", divide="ignore"):
        quotient = da.samples / db.samples
    overflow = ~np.isfinite(quotient) & np.isfinite(da.samples)
    if np.any(overflow):
        raise DivisionDomainError(
            f"quotient overflows for {int(np.count_nonzero(overflow))} member(s); "
            f"smallest |denominator| is {float(np.min(np.abs(db.samples))):.6g}",
            parameter=db.name,
            distribution=db.distribution,
        )
    lo, hi = db.support
    # Support lies strictly on one side of zero; 1 / inf is 0.0.
    recip = _away_from_zero((1.0 / hi, 1.0 / lo), positive=lo > 0.0)
    return DistributedValue(quotient, support=_mul_interval(da.support, recip))


def add(a: Operand, b: Operand) -> DistributedValue:
    da, db = _coerce_pair(a, b)
    return DistributedValue(
        da.samples + db.samples,
        support=(da.support[0] + db.support[0], da.support[1] + db.support[1]),
    )


def negate(a: DistributedValue) -> DistributedValue:
    return DistributedValue(
        -a.samples, support=(-a.support[1], -a.support[0]), name=a.name, distribution=a.distribution
    )


def power(a: Operand, exponent: float) -> DistributedValue:
    """Elementwise power. Integer exponents work on any support; negative ones divide."""
    da = _as_distributed(a, 1)
    p = float(exponent)
    if not math.isfinite(p):
        raise InvalidParameterError(f"exponent must be finite, got {exponent!r}", parameter=da.name)
    if p == 0.0:
        return DistributedValue.constant(1.0, da.n_samples)
    if p < 0.0:
        return divide(1.0, power(da, -p))

    lo, hi = da.support
    is_int = p.is_integer()
    if not is_int and lo < 0.0:
        raise InvalidParameterError(
            f"non-integer exponent {p} of a value whose support [{lo:.6g}, {hi:.6g}] is negative",
            parameter=da.name,
        )

    out = np.power(da.samples, p)
    odd = is_int and int(p) % 2 == 1
    if lo >= 0.0 or odd:
        support = (_pow(lo, p), _pow(hi, p))
    elif hi <= 0.0:
        support = (_pow(hi, p), _pow(lo, p))
    else:
        support = (0.0, max(_pow(lo, p), _pow(hi, p)))
    if not _contains_zero(da.support):
        support = _away_from_zero(support, positive=lo > 0.0 or not odd)
    return DistributedValue(out, support=support, name=da.name, distribution=da.distribution)


def concatenate(parts: Sequence[DistributedValue], name: Optional[str] = None) -> DistributedValue:
    """Pool independently drawn ensembles of the same quantity into one."""
    if not parts:
        raise ValueError("concatenate needs at least one ensemble")
    return DistributedValue(
        np.concatenate([p.samples for p in parts]),
        support=(min(p.support[0] for p in parts), max(p.support[1] for p in parts)),
        name=name,
    )


def mean(value: DistributedValue) -> float:
    """Ensemble mean; repeatable and non-mutating."""
    return value.mean()


def sample_one(value: DistributedValue, rng: np.random.Generator) -> float:
    """One representative draw from the ensemble."""
    return value.sample_one(rng)


__all__ = [
    "DistributedValue",
    "multiply",
    "scale",
    "divide",
    "add",
    "negate",
    "power",
    "concatenate",
    "mean",
    "sample_one",
]
