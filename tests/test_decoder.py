import json

import numpy as np
import pytest

from allocation.decoder import decode_solution, format_report, savings_percentage
from allocation.formulation import build_formulation
from allocation.models import SolverStatus
from core.models import AllocationInstance, AssignmentSolution, ResourcePool, Workload
from core.solution_checks import check_capacity_respected, check_unique_assignment
from data.samples import cloud_consolidation, three_tier

# large pool: 0.4 + 4.3 + 4.6 + 0.5, medium pool: 0.7 + 2.7 + 0.1
PACKING = {0: 2, 1: 1, 2: 2, 3: 2, 4: 1, 5: 1, 6: 2}


@pytest.fixture
def solved(make_values, outcome):
    inst = three_tier()
    form = build_formulation(inst)
    vals = make_values(inst, form, PACKING)
    return inst, form, outcome(SolverStatus.OPTIMAL, vals, 650.0)


def test_decodes_complete_exclusive_assignment(solved):
    inst, form, out = solved
    report = decode_solution(inst, form, out)
    assert report.status == SolverStatus.OPTIMAL
    assert report.solved
    assert report.solution.assigned_pool == PACKING
    check_unique_assignment(inst, report.solution)
    check_capacity_respected(inst, report.solution)

    placed = [i for p in report.pools for i in p.workload_indices]
    assert sorted(placed) == list(range(7))


def test_costs_and_savings(solved):
    inst, form, out = solved
    report = decode_solution(inst, form, out)
    assert report.baseline_cost == pytest.approx(750)
    assert report.solution_cost == pytest.approx(650)
    assert report.savings == pytest.approx(100)
    assert report.savings_percentage == pytest.approx(100 * 100 / 750)
    assert report.solution_cost == pytest.approx(sum(inst.pools[p.index].cost for p in report.pools))


def test_used_pools_report_utilization_and_ordered_names(solved):
    inst, form, out = solved
    report = decode_solution(inst, form, out)
    assert [p.index for p in report.pools] == [1, 2]
    medium, large = report.pools
    assert medium.name == "MEDIUM"
    assert medium.workload_names == ["db1", "db4", "db5"]
    assert medium.load == pytest.approx(3.5)
    assert medium.utilization == pytest.approx(3.5 / 4)
    assert large.workload_names == ["db0", "db2", "db3", "db6"]
    assert large.utilization == pytest.approx(9.8 / 10)


def test_tolerates_floating_point_noise(make_values, outcome):
    inst = three_tier()
    form = build_formulation(inst)
    vals = make_values(inst, form, PACKING)
    x_block = form.num_workloads * form.num_pools
    noisy = vals.copy()
    noisy[:x_block] = np.where(vals[:x_block] > 0.5, 0.9999996, 3e-7)
    noisy[form.k_index(0)] = 4e-7
    noisy[form.k_index(1)] = 0.99999
    report = decode_solution(inst, form, outcome(SolverStatus.OPTIMAL, noisy, 650.0))
    assert report.solution.assigned_pool == PACKING
    assert report.solution.used.tolist() == [False, True, True]


def test_loaded_pool_with_low_flag_is_still_used(make_values, outcome):
    inst = three_tier()
    form = build_formulation(inst)
    vals = make_values(inst, form, PACKING)
    vals[form.k_index(1)] = 0.2
    report = decode_solution(inst, form, outcome(SolverStatus.OPTIMAL, vals))
    assert report.solution.used.tolist() == [False, True, True]
    assert report.solution_cost == pytest.approx(650)


def test_used_pool_without_load_is_reported_with_no_workloads(make_values, outcome):
    inst = AllocationInstance.build(
        [ResourcePool("free", 1.0, 0.0), ResourcePool("paid", 5.0, 10.0)],
        [Workload("a", 2.0)],
    )
    form = build_formulation(inst)
    vals = make_values(inst, form, {0: 1}, extra_used=[0])
    report = decode_solution(inst, form, outcome(SolverStatus.OPTIMAL, vals))
    assert [p.index for p in report.pools] == [0, 1]
    assert report.pools[0].workload_names == []
    assert report.pools[0].utilization == 0.0
    assert report.solution_cost == pytest.approx(10.0)


def test_duplicate_names_stay_distinct(make_values, outcome):
    inst = cloud_consolidation()
    form = build_formulation(inst)
    # the two "B" and two "C" databases each get their own LARGE pool
    packing = {i: 0 for i in range(13)}
    packing.update({1: 1, 11: 2, 2: 8, 12: 9, 6: 7})
    vals = make_values(inst, form, packing)
    report = decode_solution(inst, form, outcome(SolverStatus.OPTIMAL, vals))
    names = [n for p in report.pools for n in p.workload_names]
    assert names.count("B") == 2
    assert names.count("C") == 2
    assert len(names) == 13


def test_suboptimal_is_not_promoted(solved, outcome):
    inst, form, out = solved
    report = decode_solution(inst, form, outcome(SolverStatus.FEASIBLE_SUBOPTIMAL, out.values, 650.0))
    assert report.status == SolverStatus.FEASIBLE_SUBOPTIMAL
    assert not report.timed_out


def test_timeout_with_incumbent_is_feasible_suboptimal(solved, outcome):
    inst, form, out = solved
    report = decode_solution(inst, form, outcome(SolverStatus.TIMEOUT, out.values, 650.0))
    assert report.status == SolverStatus.FEASIBLE_SUBOPTIMAL
    assert report.solver_status == SolverStatus.TIMEOUT
    assert report.timed_out
    assert report.solution_cost == pytest.approx(650)


@pytest.mark.parametrize("status", [
    SolverStatus.INFEASIBLE,
    SolverStatus.UNBOUNDED,
    SolverStatus.SOLVER_ERROR,
    SolverStatus.TIMEOUT,
])
def test_terminal_statuses_produce_no_solution(status, outcome):
    inst = three_tier()
    form = build_formulation(inst)
    report = decode_solution(inst, form, outcome(status))
    assert report.status == status
    assert report.solution is None
    assert report.pools == []
    assert report.baseline_cost is None
    assert report.savings is None
    assert report.savings_percentage is None
    assert "No allocation produced." in format_report(report)


def test_optimal_without_values_is_solver_error(outcome):
    inst = three_tier()
    form = build_formulation(inst)
    report = decode_solution(inst, form, outcome(SolverStatus.OPTIMAL))
    assert report.status == SolverStatus.SOLVER_ERROR
    assert not report.solved


def test_wrong_value_count_is_solver_error(outcome):
    inst = three_tier()
    form = build_formulation(inst)
    report = decode_solution(inst, form, outcome(SolverStatus.OPTIMAL, np.ones(3)))
    assert report.status == SolverStatus.SOLVER_ERROR


def test_zero_baseline_gives_zero_percentage(make_values, outcome):
    inst = AllocationInstance.build([ResourcePool("free", 5.0, 0.0)], [Workload("a", 1.0)])
    form = build_formulation(inst)
    vals = make_values(inst, form, {0: 0})
    report = decode_solution(inst, form, outcome(SolverStatus.OPTIMAL, vals, 0.0))
    assert report.baseline_cost == 0.0
    assert report.savings_percentage == 0.0
    assert savings_percentage(0.0, 0.0) == 0.0
    assert savings_percentage(200.0, 50.0) == pytest.approx(75.0)


def test_report_serialization_and_frame(solved):
    inst, form, out = solved
    report = decode_solution(inst, form, out)
    data = json.loads(json.dumps(report.to_dict()))
    assert data["status"] == "OPTIMAL"
    assert [p["workloads"] for p in data["pools"]] == [["db1", "db4", "db5"], ["db0", "db2", "db3", "db6"]]

    frame = report.assignments_frame()
    assert len(frame) == 7
    assert frame["pool_index"].tolist() == [1, 1, 1, 2, 2, 2, 2]

    text = format_report(report)
    assert "Savings:          100.00 (13.33%)" in text
    assert "[2] LARGE - LOAD = 98.00%" in text


def test_checks_flag_overloaded_and_incomplete_solutions():
    inst = three_tier()
    everything_on_medium = AssignmentSolution(
        assigned_pool={i: 1 for i in range(7)},
        used=np.array([False, True, False]),
        load=np.array([0.0, float(inst.sizes.sum()), 0.0]),
    )
    with pytest.raises(AssertionError, match="Capacity violation"):
        check_capacity_respected(inst, everything_on_medium)

    del everything_on_medium.assigned_pool[3]
    with pytest.raises(AssertionError, match="Unplaced"):
        check_unique_assignment(inst, everything_on_medium)


def test_overloaded_incumbent_is_solver_error(make_values, outcome):
    inst = three_tier()
    form = build_formulation(inst)
    vals = make_values(inst, form, {i: 1 for i in range(7)})
    report = decode_solution(inst, form, outcome(SolverStatus.FEASIBLE_SUBOPTIMAL, vals, 300.0))
    assert report.status == SolverStatus.SOLVER_ERROR
    assert not report.solved
    assert report.pools == []
    assert "Capacity violation" in report.message


def test_unassigned_workload_is_solver_error(outcome):
    inst = AllocationInstance.build(
        [ResourcePool("small", 1.0, 10.0), ResourcePool("big", 10.0, 20.0)],
        [Workload("a", 5.0)],
    )
    form = build_formulation(inst)
    vals = np.zeros(form.num_vars)
    vals[form.k_index(1)] = 1.0
    report = decode_solution(inst, form, outcome(SolverStatus.FEASIBLE_SUBOPTIMAL, vals, 20.0))
    assert report.status == SolverStatus.SOLVER_ERROR
    assert not report.solved
    assert report.savings is None


def test_timeout_with_broken_incumbent_is_solver_error(make_values, outcome):
    inst = three_tier()
    form = build_formulation(inst)
    vals = make_values(inst, form, {i: 0 for i in range(7)})
    report = decode_solution(inst, form, outcome(SolverStatus.TIMEOUT, vals, 100.0))
    assert report.status == SolverStatus.SOLVER_ERROR
    assert report.solution is None


def test_zero_size_workload_on_unflagged_pool_is_listed(make_values, outcome):
    inst = AllocationInstance.build(
        [ResourcePool("paid", 5.0, 10.0), ResourcePool("idle", 5.0, 10.0)],
        [Workload("a", 2.0), Workload("empty", 0.0)],
    )
    form = build_formulation(inst)
    vals = make_values(inst, form, {0: 0, 1: 1})
    vals[form.k_index(1)] = 0.0
    report = decode_solution(inst, form, outcome(SolverStatus.OPTIMAL, vals, 10.0))
    assert report.status == SolverStatus.OPTIMAL
    assert [p.name for p in report.pools] == ["paid"]
    assert report.pools[0].workload_names == ["a", "empty"]
    assert report.solution.assigned_pool == {0: 0, 1: 0}
    assert report.solution_cost == pytest.approx(10.0)
    check_unique_assignment(inst, report.solution)


def test_only_zero_size_workloads_mark_their_pool_used(make_values, outcome):
    inst = AllocationInstance.build(
        [ResourcePool("first", 5.0, 10.0), ResourcePool("second", 5.0, 30.0)],
        [Workload("empty", 0.0)],
    )
    form = build_formulation(inst)
    vals = make_values(inst, form, {0: 1})
    vals[form.k_index(1)] = 0.0
    report = decode_solution(inst, form, outcome(SolverStatus.OPTIMAL, vals, 0.0))
    assert report.solved
    assert [p.name for p in report.pools] == ["second"]
    assert report.pools[0].workload_names == ["empty"]
