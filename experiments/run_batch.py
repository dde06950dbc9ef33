from __future__ import annotations
import argparse
from pathlib import Path

from core.config import load_config
from core.logging_setup import setup_logging, RunCSVWriter, run_stamp
from allocation.pipeline import solve_many
from allocation.solvers.base import solver_factory
from data.generators import generate_random_instance

def main(argv=None) -> None:
    ap = argparse.ArgumentParser(description="Solve a batch of generated instances in parallel.")
    ap.add_argument('--config', type=str, default='configs/default.yaml')
    ap.add_argument('--pools', type=int, default=10)
    ap.add_argument('--workloads', type=int, default=20)
    ap.add_argument('--out', type=str, default='results')
    args = ap.parse_args(argv)

    cfg = load_config(args.config)
    logger = setup_logging(Path(cfg.logging.log_dir), cfg.logging.name, cfg.logging.level)
    seeds = list(cfg.batch.seeds)

    instances = [
        generate_random_instance(seed, args.pools, args.workloads, growth_percentage=cfg.growth.percentage)
        for seed in seeds
    ]
    results = solve_many(
        instances,
        solver_factory(cfg.solver),
        max_workers=cfg.batch.max_workers,
        threshold=cfg.decode.threshold,
        tolerance=cfg.decode.tolerance,
    )

    writer = RunCSVWriter(Path(args.out) / f"{run_stamp()}.csv")
    for seed, inst, res in zip(seeds, instances, results):
        writer.write_result(seed, inst, res)
    logger.info("Batch of %d instances written to %s", len(results), writer.path)

if __name__ == "__main__":
    main()
