# dballoc/core/general_utils.py
from __future__ import annotations
from dataclasses import replace
from typing import List, Optional, Sequence, Union
import math
import numbers
import numpy as np

from core.errors import DataError, MalformedInstanceError
from core.models import AllocationInstance, Workload

def make_rng(seed: Optional[int] = None) -> np.random.Generator:
    """
    Return a modern NumPy RNG (PCG64). If seed=None, it is non-deterministic.
    """
    return np.random.default_rng(seed)

def growth_factor(percentage: float) -> float:
    if isinstance(percentage, bool) or not isinstance(percentage, numbers.Real):
        raise DataError(f"Growth percentage must be a number, got {percentage!r}.")
    if not math.isfinite(percentage):
        raise DataError(f"Growth percentage must be finite, got {percentage}.")
    if percentage <= -100.0:
        raise DataError(
            f"Growth percentage {percentage} would shrink every workload to a zero or negative size."
        )
    return 1.0 + percentage / 100.0

def apply_growth(
    workloads: Sequence[Union[Workload, float]],
    percentage: Optional[float],
) -> Sequence[Union[Workload, float]]:
    """
    Reserve headroom for future growth: scale every size by (1 + percentage/100).
    percentage=None means no adjustment and returns `workloads` unchanged.
    Accepts Workload objects or plain sizes and returns the same kind.
    """
    if percentage is None:
        return workloads
    factor = growth_factor(percentage)
    grown: List[Union[Workload, float]] = []
    for w in workloads:
        if isinstance(w, Workload):
            grown.append(replace(w, size=w.size * factor))
        else:
            grown.append(float(w) * factor)
    return grown

def validate_instance(inst: AllocationInstance) -> None:
    """
    Reject instances a formulation cannot be built from: empty sequences or
    negative / non-finite sizes, capacities and costs.
    """
    if inst.num_workloads == 0:
        raise MalformedInstanceError("Instance has no workloads.")
    if inst.num_pools == 0:
        raise MalformedInstanceError("Instance has no resource pools.")
    for label, values in (("size", inst.sizes), ("capacity", inst.capacities), ("cost", inst.costs)):
        bad = np.flatnonzero(~np.isfinite(values) | (values < 0))
        if bad.size:
            raise MalformedInstanceError(
                f"Every {label} must be finite and non-negative. Violations at indices: {bad[:10].tolist()}"
            )

def oversized_workloads(inst: AllocationInstance) -> List[int]:
    """Workload indices that exceed every pool's capacity (infeasible by construction)."""
    if inst.num_pools == 0:
        return list(range(inst.num_workloads))
    largest = float(inst.capacities.max())
    return [int(i) for i in np.flatnonzero(inst.sizes > largest)]
