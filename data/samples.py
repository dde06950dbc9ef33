# dballoc/data/samples.py
"""
Built-in instances.

- cloud_consolidation: ten provisioned VMs and thirteen databases; "B" and "C"
  appear twice and are distinct databases.
- three_tier: one small, one medium and one large pool; total demand 13.3 does
  not fit the large pool alone.
"""
from __future__ import annotations
from typing import Callable, Dict, Optional

from core.models import AllocationInstance

def cloud_consolidation(growth_percentage: Optional[float] = None) -> AllocationInstance:
    return AllocationInstance.from_columns(
        pool_names=["EXTRA LARGE", "LARGE", "LARGE", "SMALL", "SMALL", "SMALL", "SMALL", "MEDIUM", "LARGE", "LARGE"],
        capacities=[12, 6, 6, 1.5, 1.5, 1.5, 1.5, 3, 6, 6],
        costs=[1128, 982, 982, 385, 385, 385, 385, 736, 982, 982],
        workload_names=["A", "B", "C", "D", "E", "F", "G", "H", "I", "J", "L", "B", "C"],
        sizes=[8.6, 4.4, 4.15, 0.9, 0.11, 0.01, 1.4, 1.12, 0.3, 0.2, 0.02, 4.4, 4.15],
        growth_percentage=growth_percentage,
    )

def three_tier(growth_percentage: Optional[float] = None) -> AllocationInstance:
    return AllocationInstance.from_columns(
        pool_names=["SMALL", "MEDIUM", "LARGE"],
        capacities=[1, 4, 10],
        costs=[100, 300, 350],
        workload_names=[f"db{i}" for i in range(7)],
        sizes=[0.4, 0.7, 4.3, 4.6, 2.7, 0.1, 0.5],
        growth_percentage=growth_percentage,
    )

SAMPLES: Dict[str, Callable[[Optional[float]], AllocationInstance]] = {
    "cloud_consolidation": cloud_consolidation,
    "three_tier": three_tier,
}

def get_sample(name: str, growth_percentage: Optional[float] = None) -> AllocationInstance:
    try:
        factory = SAMPLES[name]
    except KeyError:
        raise ValueError(f"Unknown sample instance {name!r}; choose from {sorted(SAMPLES)}") from None
    return factory(growth_percentage)
