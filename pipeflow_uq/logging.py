"""
Run logging utilities.

This module provides three complementary logging streams:

1) A **global** CSV index: `runs/experiments.csv`
   - one row per run_id
   - status transitions: STARTED -> COMPLETED/FAILED
   - quick scan of the pressure drop mean and spread

2) A **per-run** JSONL event log: `runs/<run_id>/events.jsonl`
   - append-only stream of structured events (inputs, summary, errors)

3) Console diagnostics through the stdlib `logging` package, configured
   once by `setup_logging` for the `pipeflow_uq` namespace.
"""

from __future__ import annotations

import csv
import json
import logging
import shutil
import sys
import time
import traceback
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


@dataclass(frozen=True)
class RunPaths:
    """Files of one tracked run, all under `root_dir/run_id/`."""
    root_dir: Path
    run_id: str

    @property
    def run_dir(self) -> Path:
        return self.root_dir / self.run_id

    @property
    def events_path(self) -> Path:
        return self.run_dir / "events.jsonl"

    @property
    def summary_path(self) -> Path:
        return self.run_dir / "summary.json"

    @property
    def config_copy_path(self) -> Path:
        return self.run_dir / "config.yaml"

    def prepare(self, overwrite: bool = False) -> None:
        """Create the run directory; `overwrite` first removes a previous one."""
        if overwrite and self.run_dir.exists():
            shutil.rmtree(self.run_dir)
        self.run_dir.mkdir(parents=True, exist_ok=True)


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """Configure the `pipeflow_uq` logger.

    Args:
        level: Logging level (e.g. logging.DEBUG, logging.INFO)
        log_file: Optional path to save logs to a file.
    """
    logger = logging.getLogger("pipeflow_uq")
    logger.setLevel(level)

    # Avoid duplicate handlers when called twice (tests, sweeps)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def _utc_timestamp() -> str:
    """UTC timestamp in ISO-like format (seconds resolution)."""
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


@dataclass
class ExperimentRow:
    """A single row in experiments.csv."""
    run_id: str
    status: str  # STARTED | COMPLETED | FAILED
    started_at: str
    completed_at: str = ""
    failed_at: str = ""
    experiment_name: str = ""
    n_samples: str = ""
    mean_pa: str = ""
    std_pa: str = ""
    notes: str = ""


_FIELDNAMES = list(asdict(ExperimentRow("", "", "")).keys())


class CSVExperimentTracker:
    """A lightweight global CSV tracker.

    - start_run writes/updates a STARTED row
    - complete_run marks COMPLETED and stores mean/std of the pressure drop
    - fail_run marks FAILED and stores the error summary
    """

    def __init__(self, root_dir: Path):
        self.root_dir = Path(root_dir)
        self.root_dir.mkdir(parents=True, exist_ok=True)
        self.csv_path = self.root_dir / "experiments.csv"

        # Ensure header exists
        if not self.csv_path.exists():
            with open(self.csv_path, "w", newline="", encoding="utf-8") as f:
                csv.DictWriter(f, fieldnames=_FIELDNAMES).writeheader()

    def _read_all(self) -> Dict[str, ExperimentRow]:
        rows: Dict[str, ExperimentRow] = {}
        if not self.csv_path.exists():
            return rows

        with open(self.csv_path, "r", newline="", encoding="utf-8") as f:
            for r in csv.DictReader(f):
                run_id = r.get("run_id", "")
                if run_id:
                    rows[run_id] = ExperimentRow(**{k: r.get(k, "") or "" for k in _FIELDNAMES})
        return rows

    def _write_all(self, rows: Dict[str, ExperimentRow]) -> None:
        with open(self.csv_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=_FIELDNAMES)
            writer.writeheader()
            for run_id in sorted(rows.keys()):
                writer.writerow(asdict(rows[run_id]))

    def get_row(self, run_id: str) -> Optional[ExperimentRow]:
        return self._read_all().get(run_id)

    def get_status(self, run_id: str) -> Optional[str]:
        rows = self._read_all()
        if run_id in rows:
            return rows[run_id].status
        return None

    def start_run(self, run_id: str, experiment_name: str, n_samples: int, notes: str = "") -> None:
        rows = self._read_all()
        started_at = _utc_timestamp()

        row = rows.get(run_id)
        if row is None:
            row = ExperimentRow(
                run_id=run_id,
                status="STARTED",
                started_at=started_at,
                experiment_name=experiment_name,
                n_samples=str(int(n_samples)),
                notes=notes,
            )
        else:
            # Rerun of an identical config; keep started_at of the first attempt.
            row.status = "STARTED"
            row.started_at = row.started_at or started_at
            row.experiment_name = experiment_name or row.experiment_name
            row.n_samples = str(int(n_samples))
            row.notes = notes or row.notes

        rows[run_id] = row
        self._write_all(rows)

    def complete_run(self, run_id: str, mean_pa: float, std_pa: float) -> None:
        rows = self._read_all()
        row = rows.get(run_id)
        if row is None:
            row = ExperimentRow(run_id=run_id, status="COMPLETED", started_at=_utc_timestamp())

        row.status = "COMPLETED"
        row.completed_at = _utc_timestamp()
        row.mean_pa = f"{mean_pa:.6g}"
        row.std_pa = f"{std_pa:.6g}"
        rows[run_id] = row
        self._write_all(rows)

    def fail_run(self, run_id: str, error: BaseException) -> None:
        rows = self._read_all()
        row = rows.get(run_id)
        if row is None:
            row = ExperimentRow(run_id=run_id, status="FAILED", started_at=_utc_timestamp())

        row.status = "FAILED"
        row.failed_at = _utc_timestamp()
        row.notes = f"{type(error).__name__}: {error}"
        rows[run_id] = row
        self._write_all(rows)


class JSONLRunLogger:
    """Append-only event logger for a single run."""
    def __init__(self, paths: RunPaths):
        self.paths = paths
        self.paths.run_dir.mkdir(parents=True, exist_ok=True)

    def log_event(self, event_type: str, payload: Dict[str, Any]) -> None:
        event = {
            "ts": _utc_timestamp(),
            "event": event_type,
            **payload,
        }
        with open(self.paths.events_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(event, ensure_ascii=False) + "\n")

    def log_exception(self, error: BaseException) -> None:
        payload: Dict[str, Any] = {
            "error_type": type(error).__name__,
            "error": str(error),
            "traceback": traceback.format_exc(),
        }
        # Distribution errors say which input failed
        for attr in ("parameter", "distribution"):
            value = getattr(error, attr, None)
            if value is not None:
                payload[attr] = value
        self.log_event("exception", payload)


def save_config_copy(paths: RunPaths, config_dict: Dict[str, Any]) -> None:
    """Save the config as YAML inside the run directory."""
    with open(paths.config_copy_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(config_dict, f, sort_keys=False)


def save_summary(paths: RunPaths, summary: Dict[str, Any]) -> None:
    """Save final summary as JSON."""
    with open(paths.summary_path, "w", encoding="utf-8") as f:
        json.dump(summary, f, indent=2, ensure_ascii=False)
