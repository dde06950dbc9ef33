# dballoc/allocation/decoder.py
from __future__ import annotations
from typing import Dict, List
import numpy as np

from core.models import AllocationInstance, AssignmentSolution
from core.logging_setup import get_logger
from core.solution_checks import check_capacity_respected, check_unique_assignment
from allocation.formulation import Formulation
from allocation.models import AllocationReport, PoolAllocation, SolverOutcome, SolverStatus

logger = get_logger("decoder")

SOLVED = {SolverStatus.OPTIMAL, SolverStatus.FEASIBLE_SUBOPTIMAL}

def savings_percentage(baseline: float, solution_cost: float) -> float:
    """100 * (baseline - solution) / baseline, defined as 0 for a zero baseline."""
    if baseline == 0:
        return 0.0
    return 100.0 * (baseline - solution_cost) / baseline

def _terminal_report(outcome: SolverOutcome) -> AllocationReport:
    return AllocationReport(
        status=outcome.status,
        solver_status=outcome.status,
        timed_out=outcome.status == SolverStatus.TIMEOUT,
        runtime=outcome.runtime,
        mip_gap=outcome.mip_gap,
        backend=outcome.backend,
        message=outcome.message,
    )

def decode_assignment(
    inst: AllocationInstance,
    form: Formulation,
    values: np.ndarray,
    threshold: float = 0.5,
) -> AssignmentSolution:
    """
    Turn raw variable values into a complete assignment.
    Binary values are read as 1 when >= threshold. A workload goes to the pool
    with its largest x value, which tolerates solver round-off; a workload with
    no x value at the threshold makes the values undecodable (ValueError).
    """
    x = form.x_matrix(values)
    k = form.k_vector(values)
    sizes = inst.sizes

    assigned_pool: Dict[int, int] = {}
    for i in range(inst.num_workloads):
        row = x[i, :]
        j = int(np.argmax(row))
        hits = int((row >= threshold).sum())
        if hits == 0:
            raise ValueError(
                f"workload {i} has no x-value >= {threshold:.2f} (max {float(row[j]):.6f})"
            )
        if hits > 1:
            logger.warning(
                "Workload %d has %d x-values >= %.2f; using pool %d.", i, hits, threshold, j,
            )
        assigned_pool[i] = j

    used = k >= threshold
    # zero-size workloads may sit on a pool with k = 0; move them onto a used pool
    if used.any():
        target = int(np.flatnonzero(used)[0])
        for i, j in assigned_pool.items():
            if not used[j] and sizes[i] == 0.0:
                assigned_pool[i] = target

    load = np.zeros(inst.num_pools, dtype=float)
    for i, j in assigned_pool.items():
        load[j] += sizes[i]

    # a pool holding a workload is used whatever the rounded k says
    carrying = np.bincount(list(assigned_pool.values()), minlength=inst.num_pools) > 0
    if np.any(carrying & ~used):
        logger.warning(
            "Pools %s hold workloads with k below %.2f; marking them used.",
            np.flatnonzero(carrying & ~used).tolist(), threshold,
        )
        used = used | carrying
    return AssignmentSolution(assigned_pool=assigned_pool, used=used, load=load)

def decode_solution(
    inst: AllocationInstance,
    form: Formulation,
    outcome: SolverOutcome,
    threshold: float = 0.5,
    tolerance: float = 1e-6,
) -> AllocationReport:
    """
    Build the allocation report for one solver outcome.

    OPTIMAL and FEASIBLE_SUBOPTIMAL outcomes are decoded; a TIMEOUT carrying an
    incumbent is reported as FEASIBLE_SUBOPTIMAL with `timed_out` set. Every
    other outcome (INFEASIBLE, UNBOUNDED, SOLVER_ERROR, TIMEOUT without an
    incumbent) yields a terminal report with no solution and no savings.
    An incumbent that does not decode into a complete, capacity-respecting
    assignment (within `tolerance`) is reported as SOLVER_ERROR.
    """
    if outcome.status == SolverStatus.TIMEOUT and outcome.has_incumbent:
        status = SolverStatus.FEASIBLE_SUBOPTIMAL
    elif outcome.status in SOLVED and outcome.has_incumbent:
        status = outcome.status
    else:
        if outcome.status in SOLVED:
            logger.error("Solver reported %s without variable values.", outcome.status.value)
            return _terminal_report(SolverOutcome(
                status=SolverStatus.SOLVER_ERROR,
                runtime=outcome.runtime,
                backend=outcome.backend,
                message=outcome.message or f"{outcome.status.value} reported without values",
            ))
        return _terminal_report(outcome)

    values = np.asarray(outcome.values, dtype=float)
    if values.shape[0] != form.num_vars:
        logger.error("Solver returned %d values for %d variables.", values.shape[0], form.num_vars)
        return _terminal_report(SolverOutcome(
            status=SolverStatus.SOLVER_ERROR,
            runtime=outcome.runtime,
            backend=outcome.backend,
            message=f"expected {form.num_vars} values, got {values.shape[0]}",
        ))

    try:
        solution = decode_assignment(inst, form, values, threshold)
        check_unique_assignment(inst, solution)
        check_capacity_respected(inst, solution, tol=tolerance)
    except (ValueError, AssertionError) as exc:
        logger.error("Discarding %s incumbent: %s", outcome.status.value, exc)
        return _terminal_report(SolverOutcome(
            status=SolverStatus.SOLVER_ERROR,
            runtime=outcome.runtime,
            backend=outcome.backend,
            message=f"invalid incumbent: {exc}",
        ))

    baseline = inst.baseline_cost
    solution_cost = float(inst.costs[solution.used].sum())
    if np.isfinite(outcome.objective_value) and not np.isclose(
        solution_cost, outcome.objective_value, rtol=1e-6, atol=1e-6
    ):
        logger.warning(
            "Decoded cost %.6f differs from solver objective %.6f.", solution_cost, outcome.objective_value
        )
    savings = baseline - solution_cost

    pools: List[PoolAllocation] = []
    for j in solution.used_pools:
        pool = inst.pools[j]
        members = solution.workloads_in(j)
        pools.append(PoolAllocation(
            index=j,
            name=pool.name,
            capacity=pool.capacity,
            cost=pool.cost,
            load=float(solution.load[j]),
            utilization=float(solution.load[j] / pool.capacity) if pool.capacity > 0 else 0.0,
            workload_indices=members,
            workload_names=[inst.workloads[i].name for i in members],
        ))

    return AllocationReport(
        status=status,
        solver_status=outcome.status,
        timed_out=outcome.status == SolverStatus.TIMEOUT,
        baseline_cost=baseline,
        solution_cost=solution_cost,
        savings=savings,
        savings_percentage=savings_percentage(baseline, solution_cost),
        pools=pools,
        solution=solution,
        runtime=outcome.runtime,
        mip_gap=outcome.mip_gap,
        backend=outcome.backend,
        message=outcome.message,
    )

def format_report(report: AllocationReport) -> str:
    """Human-readable summary of a report."""
    lines = ["=== ALLOCATION RESULT ==="]
    lines.append(f"Status:           {report.status.value}")
    if report.timed_out:
        lines.append("Time limit reached; best solution found so far.")
    lines.append(f"Backend:          {report.backend or '-'}")
    lines.append(f"Runtime (s):      {round(report.runtime, 3)}")
    if not report.solved:
        if report.message:
            lines.append(f"Message:          {report.message}")
        lines.append("No allocation produced.")
        return "\n".join(lines)

    lines.append(f"Current cost:     {report.baseline_cost:.2f}")
    lines.append(f"Solution cost:    {report.solution_cost:.2f}")
    lines.append(f"Savings:          {report.savings:.2f} ({report.savings_percentage:.2f}%)")
    lines.append("")
    lines.append("Pools used:")
    for p in report.pools:
        lines.append(f"  [{p.index}] {p.name} - LOAD = {100.0 * p.utilization:.2f}%")
    lines.append("")
    lines.append("Workloads in each pool:")
    for p in report.pools:
        lines.append(f"  [{p.index}] {p.name} = {' '.join(p.workload_names)}")
    return "\n".join(lines)
