"""
CLI runner: `python -m pipeflow_uq.run [--config path/to/config.yaml]`

This is the orchestrator: it composes
- config -> run_id + filesystem layout
- seeded generator
- Monte Carlo pressure drop + summary
- run tracking

Output contract (stdout):
    Pressure difference is given by: <value> Pa
where <value> is the ensemble mean (`sampling.report: mean`, default) or one
representative draw (`sampling.report: sample`).
"""

from __future__ import annotations

import argparse
import logging
import platform
import sys
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

import numpy as np

from .config import ExperimentConfig, build_experiment_config, load_yaml_config
from .errors import PipeflowError
from .ensemble import DistributedValue
from .logging import (
    CSVExperimentTracker,
    JSONLRunLogger,
    RunPaths,
    save_config_copy,
    save_summary,
    setup_logging,
)
from .metrics import PressureDropSummary, summarize
from .physics import (
    compute_pressure_drop,
    compute_pressure_drop_parallel,
    linearized_pressure_drop,
    point_estimate_pressure_drop,
)
from .seed import make_rng, set_global_seed

logger = logging.getLogger(__name__)


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Pressure drop in a cylindrical pipe with uncertain inputs")
    p.add_argument("--config", type=str, default=None, help="Path to YAML config (defaults: water at 20 degC)")
    p.add_argument("--seed", type=int, default=None, help="Override seed.seed")
    p.add_argument("--n-samples", type=int, default=None, help="Override sampling.n_samples")
    p.add_argument("--no-track", action="store_true", help="Do not write runs/ bookkeeping")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    p.add_argument("--log-file", type=str, default=None, help="Also write diagnostics to this file")
    return p.parse_args(argv)


def _apply_overrides(cfg: ExperimentConfig, args: argparse.Namespace) -> ExperimentConfig:
    if args.seed is not None:
        cfg = replace(cfg, seed=replace(cfg.seed, seed=args.seed))
    if args.n_samples is not None:
        if args.n_samples < 1:
            raise ValueError(f"--n-samples must be >= 1, got {args.n_samples}")
        cfg = replace(cfg, sampling=replace(cfg.sampling, n_samples=args.n_samples))
    if args.no_track:
        cfg = replace(cfg, run=replace(cfg.run, track=False))
    return cfg


def evaluate(cfg: ExperimentConfig) -> PressureDropSummary:
    """Evaluate the configured pressure drop and summarize it."""
    s = cfg.sampling
    if s.n_workers > 1:
        dp: DistributedValue = compute_pressure_drop_parallel(
            cfg.fluid, cfg.pipe, seed=cfg.seed.seed,
            n_samples=s.n_samples, n_chunks=s.n_chunks, n_workers=s.n_workers,
            overrides=cfg.inputs,
        )
        # Representative draw uses a stream disjoint from the chunk streams
        rng = make_rng(None if cfg.seed.seed is None else cfg.seed.seed + 1)
    else:
        rng = make_rng(cfg.seed.seed)
        dp = compute_pressure_drop(cfg.fluid, cfg.pipe, rng=rng, n_samples=s.n_samples, overrides=cfg.inputs)
    return summarize(dp, rng, quantiles=s.quantiles)


def format_report(summary: PressureDropSummary, report: str = "mean") -> str:
    value = summary.mean if report == "mean" else summary.representative
    lines = [f"Pressure difference is given by: {value:f} Pa"]
    if summary.n_samples > 1:
        lines.append(f"  std: {summary.std:.6g} Pa (standard error of mean {summary.standard_error:.3g} Pa, N={summary.n_samples})")
        for q, v in sorted(summary.quantiles.items()):
            lines.append(f"  q{q:g}: {v:.6f} Pa")
    return "\n".join(lines)


@dataclass(frozen=True)
class RunOutcome:
    """What happened to one configured run."""
    run_id: str
    status: str  # COMPLETED | FAILED | SKIPPED
    summary: Optional[PressureDropSummary] = None
    error: str = ""

    @property
    def ok(self) -> bool:
        return self.status != "FAILED"


def execute(cfg: ExperimentConfig) -> RunOutcome:
    """Run one experiment: evaluate, print the report and track it if enabled."""
    if cfg.seed.seed_global:
        set_global_seed(cfg.seed)

    run_id = cfg.run_id(n_chars=12)

    if not cfg.run.track:
        try:
            summary = evaluate(cfg)
        except PipeflowError as e:
            print(f"[FAILED] {type(e).__name__}: {e}")
            return RunOutcome(run_id, "FAILED", error=f"{type(e).__name__}: {e}")
        print(format_report(summary, cfg.sampling.report))
        return RunOutcome(run_id, "COMPLETED", summary=summary)

    cfg_dict = cfg.to_dict()
    root_dir = Path(cfg.run.root_dir)
    paths = RunPaths(root_dir=root_dir, run_id=run_id)

    # Trackers/loggers
    tracker = CSVExperimentTracker(root_dir=root_dir)

    # Resume semantics: an identical seeded config gives an identical result
    if tracker.get_status(run_id) == "COMPLETED" and cfg.run.resume_if_completed:
        print(f"[SKIP] run_id={run_id} already COMPLETED (resume_if_completed=True).")
        return RunOutcome(run_id, "SKIPPED")

    paths.prepare(overwrite=cfg.run.overwrite_run_dir)
    save_config_copy(paths, cfg_dict)
    run_logger = JSONLRunLogger(paths)

    tracker.start_run(
        run_id=run_id,
        experiment_name=cfg.run.experiment_name,
        n_samples=cfg.sampling.n_samples,
        notes=str(cfg.run.notes),
    )
    run_logger.log_event(
        "run_start",
        {
            "run_id": run_id,
            "experiment_name": cfg.run.experiment_name,
            "python": sys.version,
            "platform": platform.platform(),
            "numpy_version": np.__version__,
        },
    )

    try:
        summary = evaluate(cfg)
        point = point_estimate_pressure_drop(cfg.fluid, cfg.pipe, overrides=cfg.inputs)
        lin_value, lin_u = linearized_pressure_drop(cfg.fluid, cfg.pipe, overrides=cfg.inputs)
        run_logger.log_event("summary", {"summary": summary.to_dict()})

        save_summary(
            paths,
            {
                "run_id": run_id,
                "experiment_name": cfg.run.experiment_name,
                "fluid": cfg_dict["fluid"],
                "pipe": cfg_dict["pipe"],
                "inputs": cfg_dict["inputs"],
                "monte_carlo": summary.to_dict(),
                "point_estimate_pa": point,
                "linearized": {"value_pa": lin_value, "std_pa": lin_u},
                "report": cfg.sampling.report,
            },
        )
        tracker.complete_run(run_id, mean_pa=summary.mean, std_pa=summary.std)
        logger.info("run %s completed: mean=%.6g std=%.3g", run_id, summary.mean, summary.std)

        print(format_report(summary, cfg.sampling.report))
        return RunOutcome(run_id, "COMPLETED", summary=summary)

    except Exception as e:
        run_logger.log_exception(e)
        tracker.fail_run(run_id, e)
        print(f"[FAILED] run_id={run_id} error={type(e).__name__}: {e}")
        return RunOutcome(run_id, "FAILED", error=f"{type(e).__name__}: {e}")


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING, log_file=args.log_file)

    raw = load_yaml_config(args.config) if args.config else {}
    cfg = _apply_overrides(build_experiment_config(raw), args)
    return 0 if execute(cfg).ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
