# dballoc/data/generators.py
from __future__ import annotations
from typing import Optional, Sequence, Tuple
import numpy as np

from core.models import AllocationInstance, ResourcePool, Workload
from core.general_utils import make_rng

# (name, capacity, cost) tiers of provisioned VMs
DEFAULT_POOL_TIERS: Tuple[Tuple[str, float, float], ...] = (
    ("SMALL", 1.5, 385.0),
    ("MEDIUM", 3.0, 736.0),
    ("LARGE", 6.0, 982.0),
    ("EXTRA LARGE", 12.0, 1128.0),
)

def _sample_sizes(
    rng: np.random.Generator,
    count: int,
    size_beta: Tuple[float, float],
    size_bounds: Tuple[float, float],
) -> np.ndarray:
    """
    Draw 'count' workload sizes from a Beta distribution mapped onto the bounds.
    """
    alpha, beta = size_beta
    lo, hi = size_bounds
    assert alpha > 0 and beta > 0, "size_beta must be positive."
    assert 0.0 < lo < hi, "size_bounds must satisfy 0 < lower < upper."
    u = rng.beta(alpha, beta, size=count).astype(float)
    return lo + u * (hi - lo)

def generate_random_instance(
    seed: int,
    num_pools: int,
    num_workloads: int,
    *,
    tiers: Sequence[Tuple[str, float, float]] = DEFAULT_POOL_TIERS,
    size_beta: Tuple[float, float] = (1.0, 3.0),
    size_bounds: Tuple[float, float] = (0.01, 8.0),
    ensure_fits: bool = True,
    growth_percentage: Optional[float] = None,
) -> AllocationInstance:
    """
    Create a reproducible instance:
    - num_pools pools drawn uniformly from the tier catalogue
    - num_workloads workloads with sizes ~ Beta(a, b) scaled into size_bounds
    - ensure_fits: clip every size to the largest drawn capacity (before growth),
      and make sure total capacity covers total demand by adding the largest tier
      to the pool list when needed
    """
    rng = make_rng(seed)
    tier_idx = rng.integers(0, len(tiers), size=num_pools)
    pools = [ResourcePool(*tiers[t]) for t in tier_idx]
    sizes = _sample_sizes(rng, num_workloads, size_beta, size_bounds)

    if ensure_fits and pools:
        largest = max(p.capacity for p in pools)
        sizes = np.minimum(sizes, largest)
        biggest_tier = max(tiers, key=lambda t: t[1])
        while sum(p.capacity for p in pools) < float(sizes.sum()):
            pools.append(ResourcePool(*biggest_tier))

    workloads = [Workload(f"db{j}", float(sizes[j])) for j in range(num_workloads)]
    return AllocationInstance.build(pools, workloads, growth_percentage)
