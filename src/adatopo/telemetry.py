"""
AdaTopo Telemetry
=================

Gauge recording for topology health, with summary statistics and
Prometheus text export.

Recorded series (all prefixed ``adatopo_``):
- topology_efficiency, topology_resilience, topology_connectivity,
  topology_load_balance, topology_clustering_coefficient
- topology_average_path_length, topology_diameter (only when finite)
- topology_nodes, topology_connections
- optimization_duration_seconds

Every point carries a ``topology`` label with the active topology type.

Usage:
    telemetry = TopologyTelemetry()
    await telemetry.record_metrics(metrics, TopologyType.MESH, nodes=5, connections=10)
    stats = await telemetry.get_stats("adatopo_topology_efficiency", topology="mesh")
    await telemetry.export_prometheus(Path("topology.prom"))
"""

from __future__ import annotations

import asyncio
import logging
import math
import statistics
import time
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from adatopo.models import TopologyMetrics, TopologyType

logger = logging.getLogger("adatopo.telemetry")

PREFIX = "adatopo_"


@dataclass
class TelemetryPoint:
    name: str
    value: float
    timestamp: float
    labels: Dict[str, str] = field(default_factory=dict)


class TopologyTelemetry:
    """Bounded in-memory gauge store.

    Args:
        max_points: Oldest points are dropped once this many are held.
    """

    def __init__(self, max_points: int = 10_000):
        self._points: deque[TelemetryPoint] = deque(maxlen=max_points)
        self._lock = asyncio.Lock()

    async def record(self, name: str, value: float, **labels: str) -> None:
        async with self._lock:
            self._points.append(
                TelemetryPoint(name=name, value=float(value), timestamp=time.time(), labels=labels)
            )

    async def record_metrics(
        self,
        metrics: TopologyMetrics,
        topology: TopologyType,
        nodes: int,
        connections: int,
    ) -> None:
        """Record one gauge point per metric field for the given snapshot."""
        values = {
            "topology_efficiency": metrics.efficiency,
            "topology_resilience": metrics.resilience,
            "topology_connectivity": metrics.connectivity,
            "topology_load_balance": metrics.load_balance,
            "topology_clustering_coefficient": metrics.clustering_coefficient,
            "topology_average_path_length": metrics.average_path_length,
            "topology_diameter": metrics.network_diameter,
            "topology_nodes": nodes,
            "topology_connections": connections,
        }
        now = time.time()
        label = {"topology": TopologyType(topology).value}
        async with self._lock:
            for name, value in values.items():
                if not math.isfinite(value):
                    continue
                self._points.append(TelemetryPoint(PREFIX + name, float(value), now, dict(label)))

    async def get_stats(self, name: str, **filter_labels: str) -> Dict[str, Any]:
        """count/sum/min/max/mean/p50/p95 for matching points; {} when none match."""
        async with self._lock:
            values = [
                p.value for p in self._points
                if p.name == name and all(p.labels.get(k) == v for k, v in filter_labels.items())
            ]
        if not values:
            return {}
        return {
            "count": len(values),
            "sum": sum(values),
            "min": min(values),
            "max": max(values),
            "mean": statistics.mean(values),
            "p50": self._percentile(values, 0.50),
            "p95": self._percentile(values, 0.95),
            "last": values[-1],
        }

    async def export_prometheus(self, output_path: Path) -> int:
        """Write the latest value of each (name, labels) series in Prometheus text format.

        Returns:
            Number of series written.
        """
        async with self._lock:
            latest: Dict[tuple, TelemetryPoint] = {}
            for p in self._points:
                latest[(p.name, tuple(sorted(p.labels.items())))] = p

        lines: List[str] = []
        current = None
        for (name, labels), p in sorted(latest.items()):
            if name != current:
                if current is not None:
                    lines.append("")
                lines.append(f"# TYPE {name} gauge")
                current = name
            if labels:
                label_str = ",".join(f'{k}="{v}"' for k, v in labels)
                lines.append(f"{name}{{{label_str}}} {p.value} {int(p.timestamp * 1000)}")
            else:
                lines.append(f"{name} {p.value} {int(p.timestamp * 1000)}")

        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        logger.info(f"Exported {len(latest)} telemetry series to {output_path}")
        return len(latest)

    async def clear(self) -> None:
        async with self._lock:
            self._points.clear()

    def __len__(self) -> int:
        return len(self._points)

    @staticmethod
    def _percentile(values: List[float], p: float) -> float:
        ordered = sorted(values)
        index = min(int(len(ordered) * p), len(ordered) - 1)
        return ordered[index]
