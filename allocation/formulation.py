# dballoc/allocation/formulation.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Dict, List
import numpy as np

from core.models import AllocationInstance
from core.general_utils import validate_instance, oversized_workloads
from core.logging_setup import get_logger

logger = get_logger("formulation")

BINARY = "B"
CONTINUOUS = "C"

FAMILY_ASSIGN = "assign"
FAMILY_LOAD = "load"
FAMILY_CAPACITY = "capacity"

@dataclass(frozen=True)
class LinearConstraint:
    """
    One row: sum(coeffs[v] * var[v]) <sense> rhs, with sense in {"==", "<="}.
    """
    name: str
    family: str
    coeffs: Dict[int, float]
    sense: str
    rhs: float

@dataclass
class Formulation:
    """
    Variable-sized bin packing as a binary program, kept as plain data so any
    backend can consume it verbatim.

    Variables, in this order:
    - x[i,j] in {0,1}: workload i placed on pool j (row-major, I*J entries)
    - k[j]   in {0,1}: pool j used
    - load[j] >= 0   : aggregate size placed on pool j

    Constraints:
    - assign:   sum_j x[i,j] == 1                 for every workload i
    - load:     sum_i w_i x[i,j] - load[j] == 0   for every pool j
    - capacity: load[j] - c_j k[j] <= 0           for every pool j

    Objective: minimize sum_j p_j k[j].
    """
    num_workloads: int
    num_pools: int
    var_names: List[str]
    var_types: List[str]
    lower: np.ndarray
    upper: np.ndarray
    objective: np.ndarray
    constraints: List[LinearConstraint] = field(default_factory=list)
    sense: str = "min"

    @property
    def num_vars(self) -> int:
        return len(self.var_names)

    def x_index(self, i: int, j: int) -> int:
        return i * self.num_pools + j

    def k_index(self, j: int) -> int:
        return self.num_workloads * self.num_pools + j

    def load_index(self, j: int) -> int:
        return self.num_workloads * self.num_pools + self.num_pools + j

    def family(self, name: str) -> List[LinearConstraint]:
        return [c for c in self.constraints if c.family == name]

    def x_matrix(self, values: np.ndarray) -> np.ndarray:
        """Reshape a full value vector into the (I x J) assignment block."""
        n = self.num_workloads * self.num_pools
        return np.asarray(values[:n], dtype=float).reshape(self.num_workloads, self.num_pools)

    def k_vector(self, values: np.ndarray) -> np.ndarray:
        start = self.k_index(0)
        return np.asarray(values[start:start + self.num_pools], dtype=float)

    def load_vector(self, values: np.ndarray) -> np.ndarray:
        start = self.load_index(0)
        return np.asarray(values[start:start + self.num_pools], dtype=float)

def build_formulation(inst: AllocationInstance) -> Formulation:
    """
    Translate an instance into decision variables, constraints and objective.
    Raises MalformedInstanceError for empty or invalid data; does not solve.
    """
    validate_instance(inst)
    I, J = inst.num_workloads, inst.num_pools
    sizes, caps, costs = inst.sizes, inst.capacities, inst.costs

    too_big = oversized_workloads(inst)
    if too_big:
        logger.warning(
            "Workloads %s exceed every pool's capacity; the instance is infeasible.", too_big[:10]
        )

    names: List[str] = []
    types: List[str] = []
    for i in range(I):
        for j in range(J):
            names.append(f"x_{i}_{j}")
            types.append(BINARY)
    names += [f"k_{j}" for j in range(J)]
    types += [BINARY] * J
    names += [f"load_{j}" for j in range(J)]
    types += [CONTINUOUS] * J

    n_vars = len(names)
    lower = np.zeros(n_vars, dtype=float)
    upper = np.ones(n_vars, dtype=float)
    upper[I * J + J:] = np.inf

    objective = np.zeros(n_vars, dtype=float)
    objective[I * J:I * J + J] = costs

    form = Formulation(
        num_workloads=I,
        num_pools=J,
        var_names=names,
        var_types=types,
        lower=lower,
        upper=upper,
        objective=objective,
    )

    # Every workload in exactly one pool
    for i in range(I):
        coeffs = {form.x_index(i, j): 1.0 for j in range(J)}
        form.constraints.append(LinearConstraint(f"assign_{i}", FAMILY_ASSIGN, coeffs, "==", 1.0))

    # Pool load equals the sum of the sizes placed on it
    for j in range(J):
        coeffs = {form.x_index(i, j): float(sizes[i]) for i in range(I)}
        coeffs[form.load_index(j)] = -1.0
        form.constraints.append(LinearConstraint(f"load_def_{j}", FAMILY_LOAD, coeffs, "==", 0.0))

    # Load only on used pools, and never above capacity
    for j in range(J):
        coeffs = {form.load_index(j): 1.0, form.k_index(j): -float(caps[j])}
        form.constraints.append(LinearConstraint(f"cap_{j}", FAMILY_CAPACITY, coeffs, "<=", 0.0))

    logger.debug(
        "Built formulation: %d workloads, %d pools, %d variables, %d constraints",
        I, J, form.num_vars, len(form.constraints),
    )
    return form
