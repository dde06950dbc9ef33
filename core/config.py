# dballoc/core/config.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Optional, Tuple
import yaml
from pathlib import Path

@dataclass
class GrowthConfig:
    """
    Reserved headroom per workload.
    - percentage: sizes are scaled by (1 + percentage/100) once; None = no adjustment
    """
    percentage: Optional[float] = None

@dataclass
class SolverConfig:
    """
    Solver backend and its limits.
    - backend: "gurobi" | "pulp"
    - time_limit: seconds; the solve returns TIMEOUT once it is exhausted (None = unbounded)
    - mip_gap: relative optimality gap at which the backend may stop
    - threads: 0 lets the backend decide
    - log_to_console: forward the backend's own log output
    """
    backend: str = "gurobi"
    time_limit: Optional[float] = 60.0
    mip_gap: float = 0.0
    threads: int = 0
    log_to_console: bool = False

@dataclass
class DecodeConfig:
    """
    Decoding of raw solver values.
    - threshold: binary values >= threshold count as 1
    - tolerance: absolute tolerance for load/capacity checks
    """
    threshold: float = 0.5
    tolerance: float = 1e-6

@dataclass
class BatchConfig:
    """
    Batch mode over independent instances.
    - max_workers: thread pool size
    - seeds: RNG seeds for generated instances
    """
    max_workers: int = 4
    seeds: Tuple[int, ...] = (1, 2, 3)

@dataclass
class LoggingConfig:
    log_dir: str = "logs"
    name: str = "dballoc"
    level: str = "INFO"

@dataclass
class Config:
    growth: GrowthConfig = field(default_factory=GrowthConfig)
    solver: SolverConfig = field(default_factory=SolverConfig)
    decode: DecodeConfig = field(default_factory=DecodeConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

def load_config(path: str | Path) -> Config:
    """
    Load YAML into strongly-typed dataclasses. Fails early on unknown keys.
    Missing sections fall back to their defaults.
    """
    data = yaml.safe_load(Path(path).read_text()) or {}
    batch = dict(data.get("batch") or {})
    if "seeds" in batch:
        batch["seeds"] = tuple(batch["seeds"])
    return Config(
        growth=GrowthConfig(**(data.get("growth") or {})),
        solver=SolverConfig(**(data.get("solver") or {})),
        decode=DecodeConfig(**(data.get("decode") or {})),
        batch=BatchConfig(**batch),
        logging=LoggingConfig(**(data.get("logging") or {})),
    )
