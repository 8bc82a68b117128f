"""
Sweep runner: execute a directory of YAML configs sequentially.

Typical use is a tolerance study: one config per pipe/fluid variant. After the
last run a table compares the pressure drop mean, spread and relative
uncertainty across configs. Files starting with "_" are scratch configs and
are skipped.

Usage:
    python -m pipeflow_uq.sweep --config_dir configs
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import List, Optional, Tuple

from .config import build_experiment_config, load_yaml_config
from .logging import CSVExperimentTracker
from .run import RunOutcome, execute


def _parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Run a sweep of pressure drop configs")
    p.add_argument("--config_dir", type=str, required=True, help="Directory containing YAML configs")
    p.add_argument("--pattern", type=str, default="*.yaml", help="Glob pattern (default: *.yaml)")
    return p.parse_args(argv)


def _run_one(path: Path) -> Tuple[RunOutcome, Optional[str]]:
    """Returns the outcome and the tracking root (None for untracked runs)."""
    try:
        cfg = build_experiment_config(load_yaml_config(path))
    except (ValueError, TypeError, KeyError) as e:
        print(f"[FAILED] invalid config {path.name}: {type(e).__name__}: {e}")
        return RunOutcome("-", "FAILED", error=f"{type(e).__name__}: {e}"), None
    return execute(cfg), (cfg.run.root_dir if cfg.run.track else None)


def _row(name: str, outcome: RunOutcome, root_dir: Optional[str]) -> List[str]:
    mean = std = rel = "-"
    if outcome.summary is not None:
        s = outcome.summary
        mean, std, rel = f"{s.mean:.6g}", f"{s.std:.3g}", f"{100.0 * s.relative_uncertainty:.3g}%"
    elif outcome.status == "SKIPPED" and root_dir is not None:
        # Result of the earlier identical run
        prev = CSVExperimentTracker(root_dir=Path(root_dir)).get_row(outcome.run_id)
        if prev is not None:
            mean, std = prev.mean_pa or "-", prev.std_pa or "-"
    return [name, outcome.run_id, outcome.status, mean, std, rel]


def format_table(rows: List[List[str]]) -> str:
    header = ["config", "run_id", "status", "mean_pa", "std_pa", "rel_unc"]
    widths = [max(len(r[i]) for r in [header] + rows) for i in range(len(header))]
    lines = ["  ".join(cell.ljust(w) for cell, w in zip(r, widths)).rstrip() for r in [header] + rows]
    return "\n".join(lines)


def main(argv: Optional[list[str]] = None) -> int:
    args = _parse_args(argv)
    config_dir = Path(args.config_dir)
    if not config_dir.exists():
        raise FileNotFoundError(f"config_dir not found: {config_dir}")

    configs = [p for p in sorted(config_dir.glob(args.pattern)) if not p.name.startswith("_")]
    if not configs:
        print(f"No configs matching {args.pattern} in {config_dir}")
        return 0

    rows: List[List[str]] = []
    any_fail = False
    for path in configs:
        print(f"\n=== RUN {path} ===")
        outcome, root_dir = _run_one(path)
        any_fail = any_fail or not outcome.ok
        rows.append(_row(path.stem, outcome, root_dir))

    print("\n=== SWEEP SUMMARY ===")
    print(format_table(rows))
    return 1 if any_fail else 0


if __name__ == "__main__":
    raise SystemExit(main())
