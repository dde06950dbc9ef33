# dballoc/allocation/pipeline.py
from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence
import time

from core.errors import DataError
from core.models import AllocationInstance
from core.logging_setup import get_logger
from allocation.decoder import decode_solution
from allocation.formulation import build_formulation
from allocation.models import AllocationReport
from allocation.solvers.base import SolverAdapter

logger = get_logger("pipeline")


def solve_instance(
    inst: AllocationInstance,
    solver: SolverAdapter,
    *,
    time_limit: Optional[float] = None,
    threshold: float = 0.5,
    tolerance: float = 1e-6,
) -> AllocationReport:
    """
    One run: formulation -> solver -> decoded report.
    Construction errors (DataError and subclasses) propagate before any solve.
    """
    form = build_formulation(inst)
    logger.info(
        "Solving %d workloads on %d pools with %s (%d variables, %d constraints)",
        inst.num_workloads, inst.num_pools, solver.name, form.num_vars, len(form.constraints),
    )
    t0 = time.perf_counter()
    outcome = solver.solve(form, time_limit=time_limit)
    report = decode_solution(inst, form, outcome, threshold=threshold, tolerance=tolerance)
    if report.solved:
        logger.info(
            "%s in %.3fs: cost %.2f of %.2f, saving %.2f (%.2f%%) on %d pools",
            report.status.value, time.perf_counter() - t0, report.solution_cost,
            report.baseline_cost, report.savings, report.savings_percentage, len(report.pools),
        )
    else:
        logger.warning("Run ended with %s; no allocation produced.", report.status.value)
    return report


@dataclass
class BatchResult:
    """Outcome of one batch entry: a report, or the construction error that stopped it."""
    index: int
    report: Optional[AllocationReport] = None
    error: Optional[DataError] = None


def solve_many(
    instances: Sequence[AllocationInstance],
    make_solver: Callable[[], SolverAdapter],
    *,
    max_workers: int = 4,
    time_limit: Optional[float] = None,
    threshold: float = 0.5,
    tolerance: float = 1e-6,
) -> List[BatchResult]:
    """
    Solve independent instances in a thread pool, one adapter per run.
    Results come back in input order; a DataError only fails its own entry.
    """
    def _run(idx: int, inst: AllocationInstance) -> BatchResult:
        try:
            report = solve_instance(
                inst, make_solver(), time_limit=time_limit, threshold=threshold, tolerance=tolerance,
            )
        except DataError as exc:
            logger.error("Instance %d rejected: %s", idx, exc)
            return BatchResult(index=idx, error=exc)
        return BatchResult(index=idx, report=report)

    if not instances:
        return []
    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as ex:
        futures = [ex.submit(_run, idx, inst) for idx, inst in enumerate(instances)]
        return [f.result() for f in futures]
