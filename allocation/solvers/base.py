from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Callable, Optional

from core.config import SolverConfig
from allocation.formulation import Formulation
from allocation.models import SolverOutcome


class SolverAdapter(ABC):
    """
    Boundary to a mixed-integer linear backend: translate a Formulation into
    the backend's calls, solve, and normalize the status. No business logic.
    """
    name: str = "abstract"

    def __init__(
        self,
        *,
        time_limit: Optional[float] = 60.0,
        mip_gap: float = 0.0,
        threads: int = 0,
        log_to_console: bool = False,
    ) -> None:
        self.time_limit = time_limit
        self.mip_gap = mip_gap
        self.threads = threads
        self.log_to_console = log_to_console

    def effective_time_limit(self, time_limit: Optional[float]) -> Optional[float]:
        return self.time_limit if time_limit is None else time_limit

    @abstractmethod
    def solve(self, form: Formulation, time_limit: Optional[float] = None) -> SolverOutcome:
        """Solve `form`; `time_limit` (seconds) overrides the adapter default."""


def make_solver(cfg: SolverConfig) -> SolverAdapter:
    """Adapter for `cfg.backend` ("gurobi" or "pulp")."""
    backend = cfg.backend.lower()
    kwargs = dict(
        time_limit=cfg.time_limit,
        mip_gap=cfg.mip_gap,
        threads=cfg.threads,
        log_to_console=cfg.log_to_console,
    )
    if backend == "gurobi":
        from allocation.solvers.gurobi_adapter import GurobiAdapter
        return GurobiAdapter(**kwargs)
    if backend == "pulp":
        from allocation.solvers.pulp_adapter import PulpAdapter
        return PulpAdapter(**kwargs)
    raise ValueError(f"Unknown solver backend: {cfg.backend}")


def solver_factory(cfg: SolverConfig) -> Callable[[], SolverAdapter]:
    """Factory producing a fresh adapter per run (batch mode)."""
    def factory() -> SolverAdapter:
        return make_solver(cfg)
    return factory
