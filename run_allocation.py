import argparse
import sys
from pathlib import Path

from core.config import load_config
from core.errors import DataError
from core.logging_setup import setup_logging
from allocation.decoder import format_report
from allocation.pipeline import solve_instance
from allocation.solvers.base import make_solver
from core.solution_checks import check_capacity_respected, check_unique_assignment
from data.io import load_instance, save_json
from data.samples import SAMPLES, get_sample

def main(argv=None) -> int:
    ap = argparse.ArgumentParser(description="Consolidate databases onto the cheapest set of VMs.")
    ap.add_argument('--config', type=str, default='configs/default.yaml')
    src = ap.add_mutually_exclusive_group()
    src.add_argument('--instance', type=str, help='JSON instance file')
    src.add_argument('--sample', type=str, default='cloud_consolidation', choices=sorted(SAMPLES))
    ap.add_argument('--growth', type=float, default=None, help='headroom percentage per workload')
    ap.add_argument('--backend', type=str, choices=['gurobi', 'pulp'])
    ap.add_argument('--time-limit', type=float)
    ap.add_argument('--json-out', type=str, help='write the report as JSON')
    ap.add_argument('--log', action='store_true', help='show backend solver log')
    args = ap.parse_args(argv)

    cfg = load_config(args.config)
    if args.backend:
        cfg.solver.backend = args.backend
    if args.log:
        cfg.solver.log_to_console = True
    growth = args.growth if args.growth is not None else cfg.growth.percentage
    logger = setup_logging(Path(cfg.logging.log_dir), cfg.logging.name, cfg.logging.level)

    try:
        if args.instance:
            inst = load_instance(Path(args.instance), growth_percentage=growth)
        else:
            inst = get_sample(args.sample, growth)
        report = solve_instance(
            inst,
            make_solver(cfg.solver),
            time_limit=args.time_limit,
            threshold=cfg.decode.threshold,
            tolerance=cfg.decode.tolerance,
        )
    except DataError as exc:
        logger.error("Invalid instance: %s", exc)
        return 2

    print(format_report(report))
    if report.solved:
        check_unique_assignment(inst, report.solution)
        check_capacity_respected(inst, report.solution, tol=cfg.decode.tolerance)
        print("\nAssignments:\n", report.assignments_frame().to_string(index=False))
    if args.json_out:
        save_json(report.to_dict(), Path(args.json_out))
    return 0 if report.solved else 1

if __name__ == '__main__':
    sys.exit(main())
