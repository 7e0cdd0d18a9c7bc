from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List

from .metrics import TickMetrics


@dataclass(slots=True)
class Snapshot:
    tick: int
    metrics: TickMetrics
    ants: List[Dict[str, Any]]
    world: "SnapshotWorld"
    metadata: "SnapshotMetadata"
    fields: "SnapshotFields"


@dataclass(slots=True)
class SnapshotWorld:
    width: float
    height: float
    obstacles: List[Dict[str, Any]]
    foods: List[Dict[str, Any]]
    nest: Dict[str, Any]


@dataclass(slots=True)
class SnapshotMetadata:
    width: float
    height: float
    sim_dt: float
    tick_rate: float
    seed: int
    config_version: str


@dataclass(slots=True)
class SnapshotFields:
    pheromones: Dict[str, Any]
