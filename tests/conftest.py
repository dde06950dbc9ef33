from pathlib import Path
from typing import Dict, List, Optional

import numpy as np
import pytest

from allocation.formulation import Formulation
from allocation.models import SolverOutcome
from allocation.solvers.base import SolverAdapter
from core.models import AllocationInstance


CONFIG_PATH = Path(__file__).resolve().parents[1] / "configs" / "default.yaml"


def values_from_assignment(
    inst: AllocationInstance,
    form: Formulation,
    assignment: Dict[int, int],
    extra_used: Optional[List[int]] = None,
) -> np.ndarray:
    """Full variable vector (x, k, load) for a workload -> pool mapping."""
    vals = np.zeros(form.num_vars, dtype=float)
    sizes = inst.sizes
    for i, j in assignment.items():
        vals[form.x_index(i, j)] = 1.0
        vals[form.k_index(j)] = 1.0
        vals[form.load_index(j)] += sizes[i]
    for j in extra_used or []:
        vals[form.k_index(j)] = 1.0
    return vals


class StubSolver(SolverAdapter):
    """Returns canned outcomes and records what it was asked to solve."""
    name = "stub"

    def __init__(self, outcome_fn, **kwargs):
        super().__init__(**kwargs)
        self.outcome_fn = outcome_fn
        self.calls = []

    def solve(self, form, time_limit=None):
        self.calls.append((form, self.effective_time_limit(time_limit)))
        return self.outcome_fn(form)


@pytest.fixture
def config_path() -> Path:
    return CONFIG_PATH


@pytest.fixture
def make_values():
    return values_from_assignment


@pytest.fixture
def stub_solver():
    def _make(outcome_fn, **kwargs):
        return StubSolver(outcome_fn, **kwargs)
    return _make


@pytest.fixture
def outcome():
    def _make(status, values=None, objective_value=float("inf")):
        return SolverOutcome(
            status=status,
            values=values,
            objective_value=objective_value,
            runtime=0.01,
            backend="stub",
        )
    return _make
