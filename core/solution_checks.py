import numpy as np

from core.models import AllocationInstance, AssignmentSolution

def check_unique_assignment(inst: AllocationInstance, solution: AssignmentSolution) -> None:
    """Ensure each workload is assigned to exactly one existing pool."""
    missing = [i for i in range(inst.num_workloads) if i not in solution.assigned_pool]
    if missing:
        raise AssertionError(f"Each workload must be assigned exactly once. Unplaced workloads: {missing[:10]}")
    stray = [i for i, j in solution.assigned_pool.items() if not 0 <= j < inst.num_pools]
    if stray:
        raise AssertionError(f"Workloads assigned to unknown pools: {stray[:10]}")

def check_capacity_respected(inst: AllocationInstance, solution: AssignmentSolution, tol: float = 1e-6) -> np.ndarray:
    """Ensure loads match the assigned sizes and stay within capacity on every pool."""
    sizes = inst.sizes
    loads = np.zeros(inst.num_pools, dtype=float)
    for i, j in solution.assigned_pool.items():
        loads[j] += sizes[i]
    if not np.allclose(loads, solution.load, rtol=0.0, atol=tol):
        viol = np.flatnonzero(~np.isclose(loads, solution.load, rtol=0.0, atol=tol)).tolist()
        raise AssertionError(f"Reported load differs from assigned sizes at pools (0-based): {viol}")
    if not np.all(loads <= inst.capacities + tol):
        viol = np.flatnonzero(loads > inst.capacities + tol).tolist()
        raise AssertionError(f"Capacity violation at pools (0-based): {viol}")
    unused_loaded = np.flatnonzero((loads > tol) & ~solution.used).tolist()
    if unused_loaded:
        raise AssertionError(f"Pools carry load but are not marked used: {unused_loaded}")
    return loads
