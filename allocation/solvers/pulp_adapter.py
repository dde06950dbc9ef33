from __future__ import annotations
from typing import List, Optional
import time
import numpy as np

import pulp

from core.logging_setup import get_logger
from allocation.formulation import BINARY, Formulation
from allocation.models import SolverOutcome, SolverStatus
from allocation.solvers.base import SolverAdapter

logger = get_logger("solvers.pulp")

_WITH_VALUES = (SolverStatus.OPTIMAL, SolverStatus.FEASIBLE_SUBOPTIMAL, SolverStatus.TIMEOUT)


def normalize_status(status: int, sol_status: int, time_limited: bool) -> SolverStatus:
    """
    Map PuLP's problem status and solution status onto SolverStatus.
    With a time limit set, CBC stops on time as "integer feasible" when it holds
    an incumbent and as "not solved" when it does not, so both read as TIMEOUT.
    """
    if status == pulp.LpStatusInfeasible or sol_status == pulp.LpSolutionInfeasible:
        return SolverStatus.INFEASIBLE
    if status == pulp.LpStatusUnbounded or sol_status == pulp.LpSolutionUnbounded:
        return SolverStatus.UNBOUNDED
    if sol_status == pulp.LpSolutionOptimal:
        return SolverStatus.OPTIMAL
    if sol_status == pulp.LpSolutionIntegerFeasible:
        return SolverStatus.TIMEOUT if time_limited else SolverStatus.FEASIBLE_SUBOPTIMAL
    if time_limited and sol_status == pulp.LpSolutionNoSolutionFound:
        return SolverStatus.TIMEOUT
    return SolverStatus.SOLVER_ERROR


class PulpAdapter(SolverAdapter):
    """
    PuLP backend driving the CBC binary bundled with PuLP. CBC runs as a
    separate process per solve, so concurrent runs share no solver state.
    """
    name = "pulp"

    def solve(self, form: Formulation, time_limit: Optional[float] = None) -> SolverOutcome:
        limit = self.effective_time_limit(time_limit)
        prob, xs = self._build_problem(form)
        cmd = pulp.PULP_CBC_CMD(
            msg=self.log_to_console,
            timeLimit=limit,
            gapRel=self.mip_gap if self.mip_gap else None,
            threads=self.threads or None,
        )
        t0 = time.perf_counter()
        try:
            prob.solve(cmd)
        except pulp.PulpSolverError as exc:
            logger.exception("CBC failed: %s", exc)
            return SolverOutcome(
                status=SolverStatus.SOLVER_ERROR,
                runtime=time.perf_counter() - t0,
                backend=self.name,
                message=str(exc),
            )
        runtime = time.perf_counter() - t0

        status = normalize_status(prob.status, prob.sol_status, limit is not None)
        values = None
        if status in _WITH_VALUES and any(v.varValue is not None for v in xs):
            values = np.array([v.varValue if v.varValue is not None else 0.0 for v in xs], dtype=float)
        logger.info(
            "CBC finished with %s -> %s", pulp.LpStatus.get(prob.status, prob.status), status.value
        )
        return SolverOutcome(
            status=status,
            values=values,
            objective_value=float(form.objective @ values) if values is not None else float("inf"),
            # PuLP does not hand back CBC's best bound, so a non-optimal gap is unknown
            mip_gap=0.0 if status == SolverStatus.OPTIMAL else float("inf"),
            runtime=runtime,
            backend=self.name,
            message=str(pulp.LpStatus.get(prob.status, prob.status)),
        )

    # ---------- Model construction ----------

    @staticmethod
    def _build_problem(form: Formulation):
        sense = pulp.LpMinimize if form.sense == "min" else pulp.LpMaximize
        prob = pulp.LpProblem("db_allocation", sense)
        xs: List[pulp.LpVariable] = []
        for v, (name, kind) in enumerate(zip(form.var_names, form.var_types)):
            ub = float(form.upper[v]) if np.isfinite(form.upper[v]) else None
            xs.append(pulp.LpVariable(
                name,
                lowBound=float(form.lower[v]),
                upBound=ub,
                cat=pulp.LpBinary if kind == BINARY else pulp.LpContinuous,
            ))

        prob.setObjective(pulp.lpSum(
            float(form.objective[v]) * xs[v] for v in range(form.num_vars) if form.objective[v] != 0.0
        ))

        for row in form.constraints:
            expr = pulp.lpSum(c * xs[v] for v, c in row.coeffs.items())
            if row.sense == "==":
                prob.addConstraint(expr == row.rhs, name=row.name)
            elif row.sense == "<=":
                prob.addConstraint(expr <= row.rhs, name=row.name)
            else:
                raise ValueError(f"Unsupported constraint sense {row.sense!r} in {row.name}")
        return prob, xs
