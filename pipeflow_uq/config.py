"""
Configuration system for pipeflow_uq.

Design goals:
- Human-editable run specs (YAML)
- Deterministic run identification (hash of config)
- Defaults reproduce the reference case: water at 20 degC in a 1 m pipe

We intentionally avoid heavy config frameworks; YAML + dataclasses are enough.
"""

from __future__ import annotations

import hashlib
import json
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple

import yaml

from .distributions import DistributionFactory, DistributionSpec
from .physics import INPUT_NAMES, Fluid, Pipe
from .seed import SeedConfig


# =============================================================================
# RUN / SAMPLING CONFIGS
# =============================================================================

@dataclass(frozen=True)
class RunConfig:
    """Run-level configuration (filesystem + resume semantics)."""
    root_dir: str = "runs"
    experiment_name: str = "pressure_drop"
    notes: str = ""
    track: bool = True  # write experiments.csv + runs/<run_id>/
    resume_if_completed: bool = False
    overwrite_run_dir: bool = False  # if True, delete/overwrite run_dir (dangerous)


@dataclass(frozen=True)
class SamplingConfig:
    """Monte Carlo settings."""
    n_samples: int = 100_000
    # Value printed as "the" pressure difference: ensemble mean or one draw.
    report: Literal["mean", "sample"] = "mean"
    quantiles: Tuple[float, ...] = (0.025, 0.5, 0.975)
    n_workers: int = 1  # > 1 draws chunks in parallel from spawned streams
    n_chunks: int = 8


# =============================================================================
# TOP-LEVEL CONFIG
# =============================================================================

@dataclass(frozen=True)
class ExperimentConfig:
    run: RunConfig = field(default_factory=RunConfig)
    seed: SeedConfig = field(default_factory=SeedConfig)
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    fluid: Fluid = field(default_factory=Fluid)
    pipe: Pipe = field(default_factory=Pipe)
    # Per-input distribution overrides, e.g. {"dynamic_viscosity": Uniform(...)}
    inputs: Dict[str, DistributionSpec] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a nested dict suitable for hashing and saving."""
        def dc_to_dict(x: Any) -> Dict[str, Any]:
            return x.__dict__.copy()

        sampling = dc_to_dict(self.sampling)
        sampling["quantiles"] = list(self.sampling.quantiles)
        return {
            "run": dc_to_dict(self.run),
            "seed": dc_to_dict(self.seed),
            "sampling": sampling,
            "fluid": dc_to_dict(self.fluid),
            "pipe": dc_to_dict(self.pipe),
            "inputs": {name: DistributionFactory.to_dict(spec) for name, spec in sorted(self.inputs.items())},
        }

    def identity_dict(self) -> Dict[str, Any]:
        """Everything that determines the result (run bookkeeping excluded)."""
        d = self.to_dict()
        d.pop("run")
        return d

    def run_id(self, n_chars: int = 12) -> str:
        """Short SHA-256 of the canonical JSON of `identity_dict()`.

        Seeded configs map to a stable id, so a rerun lands on the same row in
        experiments.csv. An unseeded run never reproduces, so it gets a random
        suffix and its own run directory.
        """
        canonical = json.dumps(self.identity_dict(), sort_keys=True, separators=(",", ":"), ensure_ascii=True)
        digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()[: int(n_chars)]
        if self.seed.seed is None:
            return f"{digest}-{uuid.uuid4().hex[:8]}"
        return digest


def load_yaml_config(path: str | Path) -> Dict[str, Any]:
    """Load a YAML file into a Python dict."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config must be a mapping at top level: {path}")
    return data


def _section(data: Dict[str, Any], key: str) -> Dict[str, Any]:
    section = data.get(key, {}) or {}
    if not isinstance(section, dict):
        raise ValueError(f"Config section '{key}' must be a mapping")
    return section


def _floats(section: Dict[str, Any]) -> Dict[str, float]:
    return {k: float(v) for k, v in section.items()}


def build_experiment_config(data: Optional[Dict[str, Any]] = None) -> ExperimentConfig:
    """Build ExperimentConfig from a nested dict.

    Expected top-level keys (all optional):
    - run, seed, sampling, fluid, pipe
    - inputs: {input name: {"kind": ..., <params>}} replacing the default
      distribution of that input
    """
    data = data or {}
    known = {"run", "seed", "sampling", "fluid", "pipe", "inputs"}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ValueError(f"Unknown config sections {unknown}. Known: {sorted(known)}")

    run = RunConfig(**_section(data, "run"))
    seed = SeedConfig(**_section(data, "seed"))

    sampling_dict = dict(_section(data, "sampling"))
    if "quantiles" in sampling_dict:
        sampling_dict["quantiles"] = tuple(float(q) for q in sampling_dict["quantiles"])
    sampling = SamplingConfig(**sampling_dict)

    fluid = Fluid(**_floats(_section(data, "fluid")))
    pipe = Pipe(**_floats(_section(data, "pipe")))

    inputs: Dict[str, DistributionSpec] = {}
    for name, spec_dict in _section(data, "inputs").items():
        if name not in INPUT_NAMES:
            raise ValueError(f"Unknown input '{name}' in 'inputs'. Known: {list(INPUT_NAMES)}")
        if not isinstance(spec_dict, dict):
            raise ValueError(f"inputs.{name} must be a mapping with a 'kind' key")
        inputs[name] = DistributionFactory.from_dict(spec_dict, parameter=name)

    # Small sanity checks (distribution parameters are validated when drawn)
    if sampling.n_samples < 1:
        raise ValueError(f"sampling.n_samples must be >= 1, got {sampling.n_samples}")
    if sampling.report not in ("mean", "sample"):
        raise ValueError(f"sampling.report must be 'mean' or 'sample', got '{sampling.report}'")
    if any(not 0.0 <= q <= 1.0 for q in sampling.quantiles):
        raise ValueError(f"sampling.quantiles must lie in [0, 1], got {list(sampling.quantiles)}")
    if sampling.n_workers < 1 or sampling.n_chunks < 1:
        raise ValueError("sampling.n_workers and sampling.n_chunks must be >= 1")

    return ExperimentConfig(run=run, seed=seed, sampling=sampling, fluid=fluid, pipe=pipe, inputs=inputs)
