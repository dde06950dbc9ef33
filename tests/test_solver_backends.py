import numpy as np
import pytest

from allocation.formulation import build_formulation
from allocation.models import SolverStatus
from allocation.pipeline import solve_instance, solve_many
from allocation.solvers.base import make_solver, solver_factory
from core.config import SolverConfig
from core.models import AllocationInstance, ResourcePool, Workload
from core.solution_checks import check_capacity_respected, check_unique_assignment
from data.generators import generate_random_instance
from data.samples import cloud_consolidation, three_tier

BACKENDS = ["pulp", "gurobi"]


@pytest.fixture(params=BACKENDS)
def solver(request):
    return make_solver(SolverConfig(backend=request.param, time_limit=30, mip_gap=0.0))


def assert_valid(inst, report):
    check_unique_assignment(inst, report.solution)
    loads = check_capacity_respected(inst, report.solution)
    assert np.all(loads <= inst.capacities + 1e-6)
    assert report.solution_cost == pytest.approx(float(inst.costs[report.solution.used].sum()))
    assert 0.0 <= report.solution_cost <= report.baseline_cost + 1e-6
    assert report.savings_percentage == pytest.approx(
        100.0 * (report.baseline_cost - report.solution_cost) / report.baseline_cost
    )


def test_three_tier_needs_medium_and_large(solver):
    inst = three_tier()
    report = solve_instance(inst, solver)
    assert report.status == SolverStatus.OPTIMAL
    assert_valid(inst, report)
    assert report.solution_cost == pytest.approx(650)
    assert [p.name for p in report.pools] == ["MEDIUM", "LARGE"]


def test_raw_outcome_values_cover_every_variable(solver):
    inst = three_tier()
    form = build_formulation(inst)
    outcome = solver.solve(form)
    assert outcome.status == SolverStatus.OPTIMAL
    assert outcome.values.shape == (form.num_vars,)
    assert outcome.objective_value == pytest.approx(650)
    loads = form.load_vector(outcome.values)
    assert loads.sum() == pytest.approx(inst.sizes.sum(), abs=1e-5)


def test_cloud_consolidation_saves_money(solver):
    inst = cloud_consolidation()
    report = solve_instance(inst, solver)
    assert report.status == SolverStatus.OPTIMAL
    assert_valid(inst, report)
    assert report.baseline_cost == pytest.approx(7332)
    assert report.savings > 0
    # only the EXTRA LARGE pool can hold database A
    holder = [p for p in report.pools if "A" in p.workload_names]
    assert len(holder) == 1 and holder[0].name == "EXTRA LARGE"


def test_growth_never_lowers_cost(solver):
    base = solve_instance(cloud_consolidation(), solver)
    grown = solve_instance(cloud_consolidation(growth_percentage=10), solver)
    assert grown.status == SolverStatus.OPTIMAL
    assert grown.solution_cost >= base.solution_cost - 1e-6


def test_oversized_workload_is_infeasible(solver):
    inst = AllocationInstance.build(
        [ResourcePool("SMALL", 1.0, 100.0), ResourcePool("MEDIUM", 2.0, 150.0)],
        [Workload("huge", 5.0)],
    )
    report = solve_instance(inst, solver)
    assert report.status == SolverStatus.INFEASIBLE
    assert report.solution is None
    assert report.savings is None


@pytest.mark.parametrize("seed", [1, 2, 3])
def test_random_instances_are_complete_and_within_capacity(solver, seed):
    inst = generate_random_instance(seed, num_pools=6, num_workloads=10)
    report = solve_instance(inst, solver)
    if report.status == SolverStatus.INFEASIBLE:
        pytest.skip("generated instance has no packing")
    assert report.status in {SolverStatus.OPTIMAL, SolverStatus.FEASIBLE_SUBOPTIMAL}
    assert_valid(inst, report)


@pytest.mark.parametrize("backend", BACKENDS)
def test_batch_runs_in_parallel(backend):
    cfg = SolverConfig(backend=backend, time_limit=30)
    instances = [three_tier(), three_tier(growth_percentage=5), cloud_consolidation()]
    results = solve_many(instances, solver_factory(cfg), max_workers=3)
    assert [r.error for r in results] == [None, None, None]
    assert results[0].report.solution_cost == pytest.approx(650)
    for inst, res in zip(instances, results):
        assert res.report.status == SolverStatus.OPTIMAL
        assert_valid(inst, res.report)


def test_unknown_backend_is_rejected():
    with pytest.raises(ValueError):
        make_solver(SolverConfig(backend="cplex"))


# neither backend proves optimality on these sizes within the limit
TIGHT_LIMITS = [("pulp", 60, 1.0), ("gurobi", 40, 0.01)]


def assert_timed_out(report):
    assert report.solver_status == SolverStatus.TIMEOUT
    assert report.timed_out
    if report.solution is None:
        assert report.status == SolverStatus.TIMEOUT
        assert report.savings is None
    else:
        assert report.status == SolverStatus.FEASIBLE_SUBOPTIMAL
        assert report.solved


@pytest.mark.parametrize("backend, size, limit", TIGHT_LIMITS)
def test_tight_time_limit_reports_timeout(backend, size, limit):
    inst = generate_random_instance(7, num_pools=size, num_workloads=size, size_beta=(2.0, 2.0))
    adapter = make_solver(SolverConfig(backend=backend, time_limit=limit))
    outcome = adapter.solve(build_formulation(inst))
    assert outcome.status == SolverStatus.TIMEOUT

    report = solve_instance(inst, adapter)
    assert_timed_out(report)
    if report.solution is not None:
        assert_valid(inst, report)


def test_cbc_gap_is_unknown_without_optimality():
    inst = generate_random_instance(7, num_pools=60, num_workloads=60, size_beta=(2.0, 2.0))
    outcome = make_solver(SolverConfig(backend="pulp", time_limit=1.0)).solve(build_formulation(inst))
    assert outcome.status == SolverStatus.TIMEOUT
    assert outcome.mip_gap == float("inf")
