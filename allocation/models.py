from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
import numpy as np
import pandas as pd

from core.models import AssignmentSolution


class SolverStatus(str, Enum):
    """Backend-independent termination status."""
    OPTIMAL = "OPTIMAL"
    FEASIBLE_SUBOPTIMAL = "FEASIBLE_SUBOPTIMAL"
    INFEASIBLE = "INFEASIBLE"
    UNBOUNDED = "UNBOUNDED"
    TIMEOUT = "TIMEOUT"
    SOLVER_ERROR = "SOLVER_ERROR"


@dataclass
class SolverOutcome:
    """
    What a backend returned for one formulation.
    - values: one entry per formulation variable, or None without an incumbent
    - objective_value/mip_gap: inf when no incumbent exists; mip_gap is also
      inf when the backend cannot report a bound (CBC through PuLP)
    """
    status: SolverStatus
    values: Optional[np.ndarray] = None
    objective_value: float = float("inf")
    mip_gap: float = float("inf")
    runtime: float = 0.0
    backend: str = ""
    message: str = ""

    @property
    def has_incumbent(self) -> bool:
        return self.values is not None


@dataclass
class PoolAllocation:
    """One used pool in the report."""
    index: int
    name: str
    capacity: float
    cost: float
    load: float
    utilization: float
    workload_indices: List[int]
    workload_names: List[str]


@dataclass
class AllocationReport:
    """
    Result of one run. `solution` is None for terminal statuses, in which case
    no costs or savings are reported.
    - status: OPTIMAL / FEASIBLE_SUBOPTIMAL when solved, otherwise the terminal status
    - solver_status: status as normalized from the backend (may be TIMEOUT with an incumbent)
    """
    status: SolverStatus
    solver_status: SolverStatus
    timed_out: bool = False
    baseline_cost: Optional[float] = None
    solution_cost: Optional[float] = None
    savings: Optional[float] = None
    savings_percentage: Optional[float] = None
    pools: List[PoolAllocation] = field(default_factory=list)
    solution: Optional[AssignmentSolution] = None
    runtime: float = 0.0
    mip_gap: float = float("inf")
    backend: str = ""
    message: str = ""

    @property
    def solved(self) -> bool:
        return self.solution is not None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-serializable view (non-finite numbers become None)."""
        def _num(v):
            if v is None or not np.isfinite(v):
                return None
            return float(v)

        return {
            "status": self.status.value,
            "solver_status": self.solver_status.value,
            "timed_out": self.timed_out,
            "backend": self.backend,
            "runtime": _num(self.runtime),
            "mip_gap": _num(self.mip_gap),
            "baseline_cost": _num(self.baseline_cost),
            "solution_cost": _num(self.solution_cost),
            "savings": _num(self.savings),
            "savings_percentage": _num(self.savings_percentage),
            "message": self.message,
            "pools": [
                {
                    "index": p.index,
                    "name": p.name,
                    "capacity": p.capacity,
                    "cost": p.cost,
                    "load": p.load,
                    "utilization": p.utilization,
                    "workloads": list(p.workload_names),
                }
                for p in self.pools
            ],
        }

    def assignments_frame(self) -> pd.DataFrame:
        """One row per placed workload, sorted by pool then workload index."""
        cols = ["pool_index", "pool_name", "workload_index", "workload_name", "utilization"]
        rows = [
            {
                "pool_index": p.index,
                "pool_name": p.name,
                "workload_index": i,
                "workload_name": name,
                "utilization": p.utilization,
            }
            for p in self.pools
            for i, name in zip(p.workload_indices, p.workload_names)
        ]
        if not rows:
            return pd.DataFrame(columns=cols)
        return pd.DataFrame(rows, columns=cols).sort_values(["pool_index", "workload_index"]).reset_index(drop=True)
