# dballoc/data/io.py
from __future__ import annotations
from pathlib import Path
import json
from typing import Any, Dict, Optional

from core.errors import DataError
from core.models import AllocationInstance, ResourcePool, Workload

def save_instance(inst: AllocationInstance, path: Path) -> None:
    """
    Serialize an instance as JSON. Sizes are written as stored, i.e. already
    growth-adjusted, so the file carries no growth percentage to re-apply.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "pools": [{"name": p.name, "capacity": p.capacity, "cost": p.cost} for p in inst.pools],
        "workloads": [{"name": w.name, "size": w.size} for w in inst.workloads],
        "growth_percentage": None,
    }
    path.write_text(json.dumps(data, indent=2))

def load_instance(path: Path, growth_percentage: Optional[float] = None) -> AllocationInstance:
    """
    Load an instance from JSON back into strong types. Growth is applied once:
    `growth_percentage` if given, otherwise the file's own value (if any).
    """
    try:
        data = json.loads(Path(path).read_text())
        pools = [ResourcePool(str(p["name"]), float(p["capacity"]), float(p["cost"])) for p in data["pools"]]
        workloads = [Workload(str(w["name"]), float(w["size"])) for w in data["workloads"]]
    except (KeyError, TypeError, ValueError) as exc:
        raise DataError(f"Malformed instance file {path}: {exc}") from exc
    if growth_percentage is None:
        growth_percentage = data.get("growth_percentage")
    return AllocationInstance.build(pools, workloads, growth_percentage)

def save_json(obj: Dict[str, Any], path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(obj, indent=2))
