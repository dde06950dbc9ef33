from __future__ import annotations
from typing import Dict, Optional
import time
import numpy as np

import gurobipy as gp
from gurobipy import GRB

from core.logging_setup import get_logger
from allocation.formulation import BINARY, Formulation
from allocation.models import SolverOutcome, SolverStatus
from allocation.solvers.base import SolverAdapter

logger = get_logger("solvers.gurobi")

# Limits other than time: stopped early, whatever was found is the best known.
_EARLY_STOP = (
    GRB.NODE_LIMIT,
    GRB.ITERATION_LIMIT,
    GRB.SOLUTION_LIMIT,
    GRB.USER_OBJ_LIMIT,
    GRB.INTERRUPTED,
    GRB.SUBOPTIMAL,
)

_WITH_VALUES = (SolverStatus.OPTIMAL, SolverStatus.FEASIBLE_SUBOPTIMAL, SolverStatus.TIMEOUT)


def _attr(m: "gp.Model", name: str) -> float:
    try:
        return float(getattr(m, name))
    except (gp.GurobiError, AttributeError):
        return float("inf")


def _status_name(code: int) -> str:
    """
    Version-independent mapping of Gurobi status codes to names
    (avoids private attributes such as _intToStatus).
    """
    return {
        GRB.OPTIMAL:         "OPTIMAL",
        GRB.INFEASIBLE:      "INFEASIBLE",
        GRB.INF_OR_UNBD:     "INF_OR_UNBD",
        GRB.UNBOUNDED:       "UNBOUNDED",
        GRB.TIME_LIMIT:      "TIME_LIMIT",
        GRB.INTERRUPTED:     "INTERRUPTED",
        GRB.SUBOPTIMAL:      "SUBOPTIMAL",
        GRB.USER_OBJ_LIMIT:  "USER_OBJ_LIMIT",
        GRB.NODE_LIMIT:      "NODE_LIMIT",
        GRB.SOLUTION_LIMIT:  "SOLUTION_LIMIT",
        GRB.ITERATION_LIMIT: "ITERATION_LIMIT",
        GRB.NUMERIC:         "NUMERIC",
    }.get(code, f"STATUS_{code}")


def normalize_status(code: int, has_solution: bool) -> SolverStatus:
    """Map a Gurobi status code onto SolverStatus."""
    if code == GRB.OPTIMAL:
        return SolverStatus.OPTIMAL
    if code == GRB.TIME_LIMIT:
        return SolverStatus.TIMEOUT
    # INF_OR_UNBD: costs are non-negative, so the program cannot be unbounded
    if code in (GRB.INFEASIBLE, GRB.INF_OR_UNBD):
        return SolverStatus.INFEASIBLE
    if code == GRB.UNBOUNDED:
        return SolverStatus.UNBOUNDED
    if code in _EARLY_STOP and has_solution:
        return SolverStatus.FEASIBLE_SUBOPTIMAL
    return SolverStatus.SOLVER_ERROR


class GurobiAdapter(SolverAdapter):
    """
    gurobipy backend. Each solve runs in its own Env/Model, so independent
    runs may execute in parallel threads.
    """
    name = "gurobi"

    def solve(self, form: Formulation, time_limit: Optional[float] = None) -> SolverOutcome:
        limit = self.effective_time_limit(time_limit)
        t0 = time.perf_counter()
        try:
            with gp.Env(empty=True) as env:
                env.setParam("OutputFlag", 1 if self.log_to_console else 0)
                env.start()
                with gp.Model("db_allocation", env=env) as m:
                    xs = self._build_model(m, form)
                    if limit is not None:
                        m.Params.TimeLimit = float(limit)
                    m.Params.MIPGap = self.mip_gap
                    if self.threads:
                        m.Params.Threads = self.threads
                    m.optimize()
                    return self._extract(m, xs, form)
        except gp.GurobiError as exc:
            logger.exception("Gurobi failed: %s", exc)
            return SolverOutcome(
                status=SolverStatus.SOLVER_ERROR,
                runtime=time.perf_counter() - t0,
                backend=self.name,
                message=str(exc),
            )

    # ---------- Model construction ----------

    @staticmethod
    def _build_model(m: "gp.Model", form: Formulation) -> Dict[int, "gp.Var"]:
        xs: Dict[int, gp.Var] = {}
        for v, (name, kind) in enumerate(zip(form.var_names, form.var_types)):
            ub = form.upper[v] if np.isfinite(form.upper[v]) else GRB.INFINITY
            xs[v] = m.addVar(
                lb=float(form.lower[v]),
                ub=float(ub),
                vtype=GRB.BINARY if kind == BINARY else GRB.CONTINUOUS,
                name=name,
            )
        m.update()

        for row in form.constraints:
            idx = list(row.coeffs)
            expr = gp.LinExpr([row.coeffs[v] for v in idx], [xs[v] for v in idx])
            if row.sense == "==":
                m.addConstr(expr == row.rhs, name=row.name)
            elif row.sense == "<=":
                m.addConstr(expr <= row.rhs, name=row.name)
            else:
                raise ValueError(f"Unsupported constraint sense {row.sense!r} in {row.name}")

        obj = gp.LinExpr(
            [float(form.objective[v]) for v in range(form.num_vars) if form.objective[v] != 0.0],
            [xs[v] for v in range(form.num_vars) if form.objective[v] != 0.0],
        )
        m.setObjective(obj, GRB.MINIMIZE if form.sense == "min" else GRB.MAXIMIZE)
        m.update()
        return xs

    # ---------- Extraction ----------

    def _extract(self, m: "gp.Model", xs: Dict[int, "gp.Var"], form: Formulation) -> SolverOutcome:
        """
        Only read var.X / ObjVal when Gurobi knows a solution (SolCount > 0).
        """
        has_solution = (getattr(m, "SolCount", 0) or 0) > 0
        status = normalize_status(m.Status, has_solution)
        values = None
        if has_solution and status in _WITH_VALUES:
            values = np.array([xs[v].X for v in range(form.num_vars)], dtype=float)
        logger.info("Gurobi finished with %s -> %s", _status_name(m.Status), status.value)
        return SolverOutcome(
            status=status,
            values=values,
            objective_value=_attr(m, "ObjVal") if values is not None else float("inf"),
            mip_gap=_attr(m, "MIPGap") if values is not None else float("inf"),
            runtime=float(m.Runtime),
            backend=self.name,
            message=_status_name(m.Status),
        )
