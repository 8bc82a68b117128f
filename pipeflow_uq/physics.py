"""
Poiseuille pressure drop for laminar flow in a cylindrical pipe.

    dp = 8 * pi * mu * L * Q / A^2

where:
    mu  dynamic viscosity of the fluid (Pa s)
    L   pipe length (m)
    Q   volumetric flow rate (m^3/s)
    A   cross-sectional area of the pipe (m^2)

Uncertain inputs:
- Q, L, A are uniform over [mean - tolerance, mean + tolerance]
- mu is log-normal with the given mean and standard deviation

Any input can be given a different distribution through `overrides`, a
mapping from input name to a distribution spec (see `INPUT_NAMES`).

The model is only meaningful for laminar flow in a sufficiently long pipe;
the flow regime is not checked here.
"""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np

from .distributions import DistributionSpec, LogNormal, Uniform
from .engine import DEFAULT_N_SAMPLES, sample
from .ensemble import DistributedValue, concatenate, divide, multiply, power, scale
from .errors import DivisionDomainError, InvalidParameterError
from .seed import spawn_rngs

logger = logging.getLogger(__name__)

POISEUILLE_FACTOR = 8.0 * math.pi

# Draw order; also the exponents of dp = c * Q^1 * mu^1 * L^1 * A^-2.
INPUT_NAMES: Tuple[str, ...] = ("flow_rate", "dynamic_viscosity", "length", "cross_section")
_EXPONENTS: Dict[str, float] = {"flow_rate": 1.0, "dynamic_viscosity": 1.0, "length": 1.0, "cross_section": -2.0}

Overrides = Mapping[str, DistributionSpec]


@dataclass(frozen=True)
class Fluid:
    """Fluid properties. Defaults: water at 20 degC with a 0.1 % flow meter."""
    mean_flow_rate: float = 0.5               # (m^3/s)
    flow_rate_stdev: float = 0.0001           # (m^3/s), uniform half-width
    mean_dynamic_viscosity: float = 0.001     # (Pa s)
    dynamic_viscosity_stdev: float = 0.002e-6  # (Pa s)

    def flow_rate_spec(self) -> Uniform:
        return Uniform.centered(self.mean_flow_rate, self.flow_rate_stdev)

    def viscosity_spec(self) -> LogNormal:
        return LogNormal(self.mean_dynamic_viscosity, self.dynamic_viscosity_stdev)


@dataclass(frozen=True)
class Pipe:
    """Pipe geometry with manufacturing tolerances."""
    length: float = 1.0                     # (m)
    length_tolerance: float = 0.01          # (m)
    cross_section: float = 0.1              # (m^2)
    cross_section_tolerance: float = 0.001  # (m^2)

    def length_spec(self) -> Uniform:
        return Uniform.centered(self.length, self.length_tolerance)

    def cross_section_spec(self) -> Uniform:
        return Uniform.centered(self.cross_section, self.cross_section_tolerance)


def _check_overrides(overrides: Optional[Overrides]) -> Dict[str, DistributionSpec]:
    overrides = dict(overrides or {})
    unknown = sorted(set(overrides) - set(INPUT_NAMES))
    if unknown:
        raise KeyError(f"Unknown model inputs {unknown}. Known: {list(INPUT_NAMES)}")
    return overrides


def input_specs(fluid: Fluid, pipe: Pipe, overrides: Optional[Overrides] = None) -> Dict[str, DistributionSpec]:
    """Distribution spec of every model input, keyed by input name."""
    specs: Dict[str, DistributionSpec] = {
        "flow_rate": fluid.flow_rate_spec(),
        "dynamic_viscosity": fluid.viscosity_spec(),
        "length": pipe.length_spec(),
        "cross_section": pipe.cross_section_spec(),
    }
    specs.update(_check_overrides(overrides))
    return specs


def central_values(fluid: Fluid, pipe: Pipe, overrides: Optional[Overrides] = None) -> Dict[str, float]:
    """Nominal value of every input; an overridden input uses its spec mean."""
    values = {
        "flow_rate": fluid.mean_flow_rate,
        "dynamic_viscosity": fluid.mean_dynamic_viscosity,
        "length": pipe.length,
        "cross_section": pipe.cross_section,
    }
    for name, spec in _check_overrides(overrides).items():
        values[name] = spec.mean
    return values


def poiseuille(viscosity, length, flow_rate, cross_section):
    """Evaluate 8 pi mu L Q / A^2 on distributed values (or plain floats)."""
    numerator = scale(multiply(multiply(viscosity, length), flow_rate), POISEUILLE_FACTOR)
    return divide(numerator, power(cross_section, 2))


def compute_pressure_drop(
    fluid: Fluid,
    pipe: Pipe,
    rng: Optional[np.random.Generator] = None,
    n_samples: int = DEFAULT_N_SAMPLES,
    overrides: Optional[Overrides] = None,
) -> DistributedValue:
    """Monte Carlo pressure drop (Pa).

    The four inputs are drawn fresh and independently on every call. Any
    failure while drawing or dividing aborts the whole evaluation.

    Args:
        fluid: Fluid properties.
        pipe: Pipe geometry.
        rng: Random source; pass an equally seeded generator to reproduce a result.
        n_samples: Ensemble size. 1 gives a single-draw evaluation.
        overrides: Optional {input name: spec} replacing the default distributions.
    """
    if rng is None:
        rng = np.random.default_rng()

    specs = input_specs(fluid, pipe, overrides)
    inputs = {name: sample(specs[name], rng, n_samples, name=name) for name in INPUT_NAMES}

    dp = poiseuille(inputs["dynamic_viscosity"], inputs["length"], inputs["flow_rate"], inputs["cross_section"])
    dp.name = "pressure_drop"
    return dp


def compute_pressure_drop_parallel(
    fluid: Fluid,
    pipe: Pipe,
    seed: Optional[int],
    n_samples: int = DEFAULT_N_SAMPLES,
    n_chunks: int = 8,
    n_workers: int = 4,
    overrides: Optional[Overrides] = None,
) -> DistributedValue:
    """Pressure drop ensemble drawn in `n_chunks` independent streams.

    Chunk k always uses child stream k of `seed` and chunks are pooled in
    chunk order, so the result depends on (seed, n_samples, n_chunks) only,
    not on `n_workers` or thread scheduling.
    """
    n_samples = int(n_samples)
    if n_samples < 1:
        raise InvalidParameterError(f"n_samples must be >= 1, got {n_samples}", parameter="pressure_drop")
    n_chunks = max(1, min(int(n_chunks), n_samples))

    sizes = [n_samples // n_chunks + (1 if k < n_samples % n_chunks else 0) for k in range(n_chunks)]
    rngs = spawn_rngs(seed, n_chunks)

    def _chunk(k: int) -> DistributedValue:
        return compute_pressure_drop(fluid, pipe, rng=rngs[k], n_samples=sizes[k], overrides=overrides)

    with ThreadPoolExecutor(max_workers=max(1, int(n_workers))) as pool:
        parts: List[DistributedValue] = list(pool.map(_chunk, range(n_chunks)))

    logger.debug("pooled %d chunks into %d samples", n_chunks, n_samples)
    return concatenate(parts, name="pressure_drop")


def point_estimate_pressure_drop(fluid: Fluid, pipe: Pipe, overrides: Optional[Overrides] = None) -> float:
    """Deterministic pressure drop at the central value of every input."""
    x = central_values(fluid, pipe, overrides)
    if x["cross_section"] == 0:
        kind = input_specs(fluid, pipe, overrides)["cross_section"].kind
        raise DivisionDomainError("cross-section is zero", parameter="cross_section", distribution=kind)
    return (
        POISEUILLE_FACTOR
        * x["dynamic_viscosity"]
        * x["length"]
        * x["flow_rate"]
        / x["cross_section"] ** 2
    )


def linearized_pressure_drop(
    fluid: Fluid, pipe: Pipe, overrides: Optional[Overrides] = None
) -> Tuple[float, float]:
    """First-order (GUM) propagation through the power law.

    For dp = c * mu * L * Q * A^-2 the relative standard uncertainty is the
    root-sum-of-squares of the input relative uncertainties weighted by their
    exponents. Uniform inputs contribute half_width / sqrt(3).

    Returns:
        (dp, u_dp) in Pa.
    """
    value = point_estimate_pressure_drop(fluid, pipe, overrides)
    specs = input_specs(fluid, pipe, overrides)
    x = central_values(fluid, pipe, overrides)
    rel2 = 0.0
    for name in INPUT_NAMES:
        if x[name] == 0:
            raise DivisionDomainError(
                "relative uncertainty undefined at zero central value", parameter=name, distribution=specs[name].kind
            )
        rel2 += (_EXPONENTS[name] * specs[name].std / x[name]) ** 2
    return value, abs(value) * math.sqrt(rel2)
