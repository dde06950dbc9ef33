# dballoc/core/models.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple
import numpy as np

from core.errors import DataError

PoolId = int
WorkloadId = int

# ---------------------------
# Static problem definitions
# ---------------------------

@dataclass(frozen=True)
class Workload:
    """
    Workload (item), e.g. a database.
    - name: label for reporting; duplicates are distinct workloads
    - size: resource demand (storage/CPU units)
    """
    name: str
    size: float

@dataclass(frozen=True)
class ResourcePool:
    """
    Resource pool (bin), e.g. a virtual machine.
    - name: label for reporting; not required to be unique
    - capacity: maximum aggregate workload size
    - cost: fixed charge if the pool is used at all
    """
    name: str
    capacity: float
    cost: float

@dataclass(frozen=True)
class AllocationInstance:
    """
    Ordered pools and workloads. Indices are the only identifiers the
    formulation uses; names are for reporting.
    - growth_percentage: headroom already applied to the sizes (None = none)
    """
    pools: Tuple[ResourcePool, ...]
    workloads: Tuple[Workload, ...]
    growth_percentage: Optional[float] = None

    @classmethod
    def build(
        cls,
        pools: Sequence[ResourcePool],
        workloads: Sequence[Workload],
        growth_percentage: Optional[float] = None,
    ) -> "AllocationInstance":
        """Construct an instance, applying the growth adjustment exactly once."""
        from core.general_utils import apply_growth
        grown = apply_growth(list(workloads), growth_percentage)
        return cls(tuple(pools), tuple(grown), growth_percentage)

    @classmethod
    def from_columns(
        cls,
        pool_names: Sequence[str],
        capacities: Sequence[float],
        costs: Sequence[float],
        workload_names: Sequence[str],
        sizes: Sequence[float],
        growth_percentage: Optional[float] = None,
    ) -> "AllocationInstance":
        """
        Build from the parallel sequences a loader hands over:
        (pool name, capacity, cost) and (workload name, size).
        """
        if not (len(pool_names) == len(capacities) == len(costs)):
            raise DataError(
                f"pool columns differ in length: names={len(pool_names)}, "
                f"capacities={len(capacities)}, costs={len(costs)}"
            )
        if len(workload_names) != len(sizes):
            raise DataError(
                f"workload columns differ in length: names={len(workload_names)}, sizes={len(sizes)}"
            )
        try:
            pools = [ResourcePool(str(n), float(c), float(p)) for n, c, p in zip(pool_names, capacities, costs)]
            workloads = [Workload(str(n), float(s)) for n, s in zip(workload_names, sizes)]
        except (TypeError, ValueError) as exc:
            raise DataError(f"non-numeric capacity, cost or size: {exc}") from exc
        return cls.build(pools, workloads, growth_percentage)

    @property
    def num_pools(self) -> int:
        return len(self.pools)

    @property
    def num_workloads(self) -> int:
        return len(self.workloads)

    @property
    def sizes(self) -> np.ndarray:
        return np.array([w.size for w in self.workloads], dtype=float)

    @property
    def capacities(self) -> np.ndarray:
        return np.array([p.capacity for p in self.pools], dtype=float)

    @property
    def costs(self) -> np.ndarray:
        return np.array([p.cost for p in self.pools], dtype=float)

    @property
    def baseline_cost(self) -> float:
        """Cost of the current, fully provisioned state (every pool billed)."""
        return float(self.costs.sum())

# ---------------------------
# Decoded solution
# ---------------------------

@dataclass
class AssignmentSolution:
    """
    Complete, capacity-respecting assignment decoded from a solver outcome.
    - assigned_pool: mapping workload index -> pool index (every workload present)
    - used: boolean flag per pool
    - load: aggregate assigned size per pool
    """
    assigned_pool: Dict[WorkloadId, PoolId]
    used: np.ndarray
    load: np.ndarray

    def workloads_in(self, pool: PoolId) -> List[WorkloadId]:
        """Workload indices placed on `pool`, in instance order."""
        return sorted(i for i, j in self.assigned_pool.items() if j == pool)

    @property
    def used_pools(self) -> List[PoolId]:
        return [int(j) for j in np.flatnonzero(self.used)]
