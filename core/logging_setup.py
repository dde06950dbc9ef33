# dballoc/core/logging_setup.py
from __future__ import annotations
import logging
from pathlib import Path
import csv
from datetime import datetime

LOGGER_NAME = "dballoc"

def get_logger(component: str) -> logging.Logger:
    """Child of the project logger, so setup_logging() handlers apply to it."""
    return logging.getLogger(f"{LOGGER_NAME}.{component}")

def setup_logging(log_dir: Path, name: str = LOGGER_NAME, level: str = "INFO") -> logging.Logger:
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    lvl = getattr(logging, str(level).upper(), logging.INFO)
    logger = logging.getLogger(name)
    logger.setLevel(lvl)
    # File handler
    fh = logging.FileHandler(log_dir / f"{name}.log")
    fh.setLevel(lvl)
    # Console handler
    ch = logging.StreamHandler()
    ch.setLevel(lvl)
    fmt = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    fh.setFormatter(fmt)
    ch.setFormatter(fmt)
    # Avoid duplicate handlers on reruns
    if not logger.handlers:
        logger.addHandler(fh)
        logger.addHandler(ch)
    else:
        fh.close()
    return logger

# One row per batch entry; a rejected instance fills only seed/size/status/error.
RUN_COLUMNS = (
    "seed", "pools", "workloads", "status", "timed_out", "runtime",
    "baseline_cost", "solution_cost", "savings", "savings_pct", "pools_used", "error",
)

class RunCSVWriter:
    """
    Appends one row per solved (or rejected) instance to a batch CSV.
    The header is written once, when the file is created; columns a row
    does not fill are left empty.
    """
    def __init__(self, path: Path, columns=RUN_COLUMNS):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        self.path = path
        self.columns = list(columns)
        if not path.exists():
            with path.open("w", newline="") as f:
                csv.DictWriter(f, fieldnames=self.columns).writeheader()

    def write_row(self, row: dict) -> None:
        with self.path.open("a", newline="") as f:
            csv.DictWriter(f, fieldnames=self.columns, restval="").writerow(row)

    def write_result(self, seed: int, inst, result) -> None:
        """Row for one batch entry: `result` carries either a report or a DataError."""
        row = {"seed": seed, "pools": inst.num_pools, "workloads": inst.num_workloads}
        if result.error is not None:
            row.update(status="DATA_ERROR", error=str(result.error))
        else:
            rep = result.report
            row.update(
                status=rep.status.value,
                timed_out=rep.timed_out,
                runtime=round(rep.runtime, 4),
                baseline_cost=rep.baseline_cost,
                solution_cost=rep.solution_cost,
                savings=rep.savings,
                savings_pct=None if rep.savings_percentage is None else round(rep.savings_percentage, 4),
                pools_used=len(rep.pools),
                error="" if rep.solved else rep.message,
            )
        self.write_row(row)

def run_stamp(prefix: str = "batch") -> str:
    """File stem for one batch run, e.g. batch_20240131_094500."""
    return f"{prefix}_{datetime.now().strftime('%Y%m%d_%H%M%S')}"
